"""Tests for Celery tasks — rate refresh and background KYC processing."""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.dialects import postgresql

from app.models.exchange_rate import ExchangeRate
from app.models.user import KYCStatus
from app.services.kyc_service import FixedKYCDecision, set_kyc_decision
from app.services.rate_service import CachedRate, SQLAlchemyExchangeRateRepository, set_rate_provider
from app.tasks.celery_app import celery_app
from app.tasks.kyc_tasks import _process_kyc_verification_async, process_kyc_verification
from app.tasks.rate_tasks import _refresh_exchange_rates_async, refresh_exchange_rates


@pytest.fixture
def session_factory(mock_db):
    """Stand-in for ``async_session`` yielding the mock session."""
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=mock_db)
    ctx.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=ctx)


@pytest.fixture
def fixed_provider(rate_provider):
    set_rate_provider(rate_provider)
    yield rate_provider
    set_rate_provider(None)


class TestBeatSchedule:

    def test_refresh_runs_every_fifteen_minutes(self):
        entry = celery_app.conf.beat_schedule["refresh-exchange-rates"]
        assert entry["task"] == "app.tasks.rate_tasks.refresh_exchange_rates"
        assert entry["schedule"] == 900
        assert entry["options"] == {"expires": 900}

    def test_tasks_routed_to_their_queues(self):
        routes = celery_app.conf.task_routes
        assert routes["app.tasks.rate_tasks.refresh_exchange_rates"] == {"queue": "rates"}
        assert routes["app.tasks.kyc_tasks.process_kyc_verification"] == {"queue": "kyc"}


class TestRefreshExchangeRates:

    @pytest.mark.asyncio
    async def test_refreshes_and_commits(self, mock_db, session_factory, fixed_provider):
        with patch("app.database.async_session", session_factory):
            result = await _refresh_exchange_rates_async()

        assert result == {"refreshed": {"USD/INR": "83.25"}}
        assert fixed_provider.calls == 1
        mock_db.execute.assert_awaited_once()
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_upstream_failure_propagates(self, mock_db, session_factory, fixed_provider):
        fixed_provider.error = RuntimeError("timeout")
        with patch("app.database.async_session", session_factory):
            with pytest.raises(RuntimeError):
                await _refresh_exchange_rates_async()
        mock_db.commit.assert_not_awaited()
        mock_db.rollback.assert_awaited_once()

    def test_sync_task_wrapper(self, session_factory, fixed_provider):
        with patch("app.database.async_session", session_factory):
            result = refresh_exchange_rates.run()
        assert "USD/INR" in result["refreshed"]


class TestProcessKYCVerification:

    @pytest.mark.asyncio
    async def test_approves_user(self, mock_db, db_results, make_result, make_user, session_factory):
        target = make_user(kyc_status=KYCStatus.UNDER_REVIEW)
        db_results(make_result(target))
        set_kyc_decision(FixedKYCDecision(True))
        try:
            with patch("app.database.async_session", session_factory):
                result = await _process_kyc_verification_async(str(target.id))
        finally:
            set_kyc_decision(None)

        assert result == {"user_id": str(target.id), "status": "APPROVED", "approved": True}
        assert target.kyc_status == KYCStatus.APPROVED
        mock_db.commit.assert_awaited_once()

    def test_sync_task_wrapper_rejects(self, db_results, make_result, make_user, session_factory):
        target = make_user(kyc_status=KYCStatus.UNDER_REVIEW)
        db_results(make_result(target))
        set_kyc_decision(FixedKYCDecision(False))
        try:
            with patch("app.database.async_session", session_factory):
                result = process_kyc_verification.run(str(target.id))
        finally:
            set_kyc_decision(None)

        assert result["status"] == "REJECTED"


class TestSQLAlchemyExchangeRateRepository:

    @pytest.mark.asyncio
    async def test_get_pair_maps_row(self, mock_db, db_results, make_result):
        updated = datetime(2026, 1, 15, tzinfo=timezone.utc)
        row = ExchangeRate(from_currency="USD", to_currency="INR", rate=Decimal("83.250000"),
                           source="mock", updated_at=updated)
        db_results(make_result(row))

        entry = await SQLAlchemyExchangeRateRepository(mock_db).get_pair("USD", "INR")

        assert entry.rate == Decimal("83.25")
        assert entry.updated_at == updated
        assert entry.source == "mock"

    @pytest.mark.asyncio
    async def test_get_pair_missing(self, mock_db, db_results, make_result):
        db_results(make_result(None))
        assert await SQLAlchemyExchangeRateRepository(mock_db).get_pair("USD", "INR") is None

    @pytest.mark.asyncio
    async def test_upsert_pair_overwrites_the_single_row(self, mock_db):
        entry = CachedRate("USD", "INR", Decimal("83.41"), datetime(2026, 1, 15, tzinfo=timezone.utc), "mock")

        await SQLAlchemyExchangeRateRepository(mock_db).upsert_pair(entry)

        stmt = mock_db.execute.await_args.args[0]
        sql = " ".join(str(stmt.compile(dialect=postgresql.dialect())).split())
        assert sql.startswith("INSERT INTO exchange_rates")
        assert sql.endswith(
            "ON CONFLICT ON CONSTRAINT uq_exchange_rates_pair DO UPDATE SET "
            "rate = excluded.rate, source = excluded.source, updated_at = excluded.updated_at"
        )
        mock_db.begin_nested.assert_called_once()
        mock_db.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_read_runs_in_savepoint(self, mock_db, db_results, make_result):
        db_results(make_result(None))
        await SQLAlchemyExchangeRateRepository(mock_db).get_pair("USD", "INR")
        mock_db.begin_nested.assert_called_once()
