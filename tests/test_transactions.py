"""Tests for transaction endpoints — create, list, get, stats, admin status changes."""

import uuid
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from app.models.audit_log import AuditLog
from app.models.transaction import RiskLevel, Transaction, TransactionStatus
from app.models.user import KYCStatus
from app.services.quote_engine import TransferQuoteEngine
from app.services.rate_service import ExchangeRateSource, SQLAlchemyExchangeRateRepository
from app.services.transaction_service import TransactionService


def _added(mock_db, model):
    return [c.args[0] for c in mock_db.add.call_args_list if isinstance(c.args[0], model)]


@pytest.fixture
def beneficiary(user, make_beneficiary):
    return make_beneficiary(user)


# ---------------------------------------------------------------------------
# POST /api/v1/transactions/
# ---------------------------------------------------------------------------


class TestCreateTransaction:

    @pytest.mark.asyncio
    async def test_small_transfer_goes_straight_to_processing(
        self, client, mock_db, db_results, make_result, user, beneficiary, auth_headers,
    ):
        """$1,000 → ₹83,250 with a $5 fee, LOW risk, PROCESSING."""
        db_results(make_result(user), make_result(beneficiary))

        resp = await client.post(
            "/api/v1/transactions/",
            json={"beneficiary_id": str(beneficiary.id), "amount": 1000, "purpose": "Family Support"},
            headers=auth_headers,
        )

        assert resp.status_code == 201
        data = resp.json()
        assert data["reference"].startswith("TXN")
        assert Decimal(data["amount"]) == Decimal("1000")
        assert Decimal(data["fee"]) == Decimal("5")
        assert Decimal(data["recipient_amount"]) == Decimal("83250")
        assert Decimal(data["exchange_rate"]) == Decimal("83.25")
        assert Decimal(data["total_debit"]) == Decimal("1005")
        assert data["risk_level"] == "LOW"
        assert data["risk_flags"] == []
        assert data["status"] == "PROCESSING"
        assert data["purpose"] == "Family Support"

        txn = _added(mock_db, Transaction)[0]
        assert txn.user_id == user.id
        assert txn.beneficiary_id == beneficiary.id
        audit = _added(mock_db, AuditLog)[0]
        assert audit.action == "TRANSACTION_CREATED"
        mock_db.flush.assert_awaited()

    @pytest.mark.asyncio
    async def test_high_value_transfer_held_pending(
        self, client, mock_db, db_results, make_result, user, beneficiary, auth_headers,
    ):
        """$15,000 is HIGH risk with HIGH_AMOUNT and waits for review."""
        db_results(make_result(user), make_result(beneficiary))

        resp = await client.post(
            "/api/v1/transactions/",
            json={"beneficiary_id": str(beneficiary.id), "amount": "15000"},
            headers=auth_headers,
        )

        assert resp.status_code == 201
        data = resp.json()
        assert Decimal(data["fee"]) == Decimal("75")
        assert data["risk_level"] == "HIGH"
        assert data["risk_flags"] == ["HIGH_AMOUNT"]
        assert data["status"] == "PENDING"

    @pytest.mark.asyncio
    async def test_fee_and_recipient_rounded_to_cents(
        self, client, mock_db, db_results, make_result, user, beneficiary, auth_headers,
    ):
        db_results(make_result(user), make_result(beneficiary))

        resp = await client.post(
            "/api/v1/transactions/",
            json={"beneficiary_id": str(beneficiary.id), "amount": "1234.567"},
            headers=auth_headers,
        )

        assert resp.status_code == 201
        txn = _added(mock_db, Transaction)[0]
        assert txn.fee == Decimal("6.17")
        assert txn.recipient_amount == Decimal("102777.70")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -10, "50000.01"])
    async def test_invalid_amount_returns_400(
        self, client, mock_db, db_results, make_result, user, beneficiary, auth_headers, amount,
    ):
        db_results(make_result(user), make_result(beneficiary))

        resp = await client.post(
            "/api/v1/transactions/",
            json={"beneficiary_id": str(beneficiary.id), "amount": amount},
            headers=auth_headers,
        )

        assert resp.status_code == 400
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_beneficiary_returns_404(
        self, client, mock_db, db_results, make_result, user, auth_headers,
    ):
        db_results(make_result(user), make_result(None))

        resp = await client.post(
            "/api/v1/transactions/",
            json={"beneficiary_id": str(uuid.uuid4()), "amount": 100},
            headers=auth_headers,
        )

        assert resp.status_code == 404
        assert resp.json()["detail"] == "Beneficiary not found"

    @pytest.mark.asyncio
    async def test_kyc_required(self, client, db_results, make_result, make_user, headers_for, mock_redis):
        """Users without APPROVED KYC cannot send money."""
        pending = make_user(kyc_status=KYCStatus.UNDER_REVIEW)
        db_results(make_result(pending))

        resp = await client.post(
            "/api/v1/transactions/",
            json={"beneficiary_id": str(uuid.uuid4()), "amount": 100},
            headers=headers_for(pending),
        )

        assert resp.status_code == 403
        assert resp.json()["detail"] == "KYC verification required"
        mock_redis.incr.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rate_limited_after_ten_per_hour(
        self, client, mock_db, db_results, make_result, user, auth_headers, mock_redis,
    ):
        mock_redis.incr.return_value = 11
        db_results(make_result(user))

        resp = await client.post(
            "/api/v1/transactions/",
            json={"beneficiary_id": str(uuid.uuid4()), "amount": 100},
            headers=auth_headers,
        )

        assert resp.status_code == 429
        mock_redis.incr.assert_awaited_once_with(f"rate_limit:transactions:{user.id}")
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_rate_window_set_on_first_request(
        self, client, db_results, make_result, user, beneficiary, auth_headers, mock_redis,
    ):
        db_results(make_result(user), make_result(beneficiary))

        await client.post(
            "/api/v1/transactions/",
            json={"beneficiary_id": str(beneficiary.id), "amount": 100},
            headers=auth_headers,
        )

        mock_redis.expire.assert_awaited_once_with(f"rate_limit:transactions:{user.id}", 3600)

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client):
        resp = await client.post(
            "/api/v1/transactions/",
            json={"beneficiary_id": str(uuid.uuid4()), "amount": 100},
        )
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_missing_amount_is_schema_error(self, client, db_results, make_result, user, auth_headers):
        db_results(make_result(user))
        resp = await client.post(
            "/api/v1/transactions/",
            json={"beneficiary_id": str(uuid.uuid4())},
            headers=auth_headers,
        )
        assert resp.status_code == 422


class TestCreateWithDatabaseRateCache:
    """The real SQLAlchemy cache repository sharing the request session."""

    @pytest.mark.asyncio
    async def test_failed_cache_write_rolls_back_savepoint_only(
        self, mock_db, db_results, make_result, user, beneficiary, rate_provider, clock,
    ):
        rate_provider.rate = Decimal("84.10")
        source = ExchangeRateSource(
            SQLAlchemyExchangeRateRepository(mock_db), provider=rate_provider, clock=clock,
        )
        service = TransactionService(mock_db, TransferQuoteEngine(source, clock=clock))
        db_results(
            make_result(beneficiary),
            make_result(None),
            OperationalError("INSERT INTO exchange_rates", {}, Exception("check constraint")),
        )

        txn = await service.create_transaction(user, beneficiary.id, Decimal("1000"))

        assert txn.exchange_rate == Decimal("83.25")
        assert txn.status == TransactionStatus.PROCESSING
        assert _added(mock_db, Transaction) == [txn]
        mock_db.flush.assert_awaited_once()

        savepoint = mock_db.begin_nested.return_value
        assert mock_db.begin_nested.call_count == 2
        exc_type = savepoint.__aexit__.await_args_list[-1].args[0]
        assert exc_type is OperationalError


# ---------------------------------------------------------------------------
# GET /api/v1/transactions/
# ---------------------------------------------------------------------------


class TestListTransactions:

    @pytest.mark.asyncio
    async def test_paginated_list(
        self, client, db_results, make_result, user, beneficiary, make_transaction, auth_headers,
    ):
        txns = [make_transaction(user, beneficiary, amount=a) for a in ("100", "250")]
        db_results(make_result(user), make_result(scalar=12), make_result(items=txns))

        resp = await client.get(
            "/api/v1/transactions/", params={"page": 2, "limit": 5}, headers=auth_headers,
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 12
        assert data["page"] == 2
        assert data["limit"] == 5
        assert data["total_pages"] == 3
        assert [Decimal(t["amount"]) for t in data["items"]] == [Decimal("100"), Decimal("250")]

    @pytest.mark.asyncio
    async def test_empty_list(self, client, db_results, make_result, user, auth_headers):
        db_results(make_result(user), make_result(scalar=0), make_result(items=[]))

        resp = await client.get("/api/v1/transactions/", headers=auth_headers)

        assert resp.status_code == 200
        assert resp.json()["total_pages"] == 0

    @pytest.mark.asyncio
    async def test_invalid_status_filter(self, client, db_results, make_result, user, auth_headers):
        db_results(make_result(user))
        resp = await client.get(
            "/api/v1/transactions/", params={"status": "SETTLED"}, headers=auth_headers,
        )
        assert resp.status_code == 422


# ---------------------------------------------------------------------------
# GET /api/v1/transactions/{id}
# ---------------------------------------------------------------------------


class TestGetTransaction:

    @pytest.mark.asyncio
    async def test_found(
        self, client, db_results, make_result, user, beneficiary, make_transaction, auth_headers,
    ):
        txn = make_transaction(user, beneficiary, amount="15000")
        db_results(make_result(user), make_result(txn))

        resp = await client.get(f"/api/v1/transactions/{txn.id}", headers=auth_headers)

        assert resp.status_code == 200
        assert resp.json()["reference"] == txn.reference
        assert resp.json()["risk_flags"] == ["HIGH_AMOUNT"]

    @pytest.mark.asyncio
    async def test_other_users_transaction_is_404(self, client, db_results, make_result, user, auth_headers):
        db_results(make_result(user), make_result(None))

        resp = await client.get(f"/api/v1/transactions/{uuid.uuid4()}", headers=auth_headers)

        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# GET /api/v1/transactions/stats
# ---------------------------------------------------------------------------


class TestTransactionStats:

    @pytest.mark.asyncio
    async def test_stats(self, client, db_results, make_result, user, auth_headers):
        db_results(
            make_result(user),
            make_result(scalar=8),                    # total
            make_result(scalar=6),                    # completed
            make_result(scalar=Decimal("12500.00")),  # volume
            make_result(scalar=2),                    # pending
            make_result(scalar=1),                    # high risk
        )

        resp = await client.get("/api/v1/transactions/stats", headers=auth_headers)

        assert resp.status_code == 200
        data = resp.json()
        assert data["total_transactions"] == 8
        assert data["completed_transactions"] == 6
        assert Decimal(data["total_volume"]) == Decimal("12500.00")
        assert data["pending_transactions"] == 2
        assert data["high_risk_transactions"] == 1
        assert Decimal(data["success_rate"]) == Decimal("75.00")

    @pytest.mark.asyncio
    async def test_stats_with_no_transactions(self, client, db_results, make_result, user, auth_headers):
        db_results(make_result(user), *[make_result(scalar=0) for _ in range(5)])

        resp = await client.get("/api/v1/transactions/stats", headers=auth_headers)

        assert Decimal(resp.json()["success_rate"]) == Decimal("0")


# ---------------------------------------------------------------------------
# PATCH /api/v1/transactions/{id}/status
# ---------------------------------------------------------------------------


class TestUpdateTransactionStatus:

    @pytest.mark.asyncio
    async def test_admin_completes_processing_transfer(
        self, client, mock_db, db_results, make_result, admin_user, user, beneficiary,
        make_transaction, admin_headers,
    ):
        txn = make_transaction(user, beneficiary, status=TransactionStatus.PROCESSING)
        db_results(make_result(admin_user), make_result(txn))

        resp = await client.patch(
            f"/api/v1/transactions/{txn.id}/status",
            json={"status": "COMPLETED"},
            headers=admin_headers,
        )

        assert resp.status_code == 200
        assert resp.json()["status"] == "COMPLETED"
        audit = _added(mock_db, AuditLog)[0]
        assert audit.action == "TRANSACTION_STATUS_UPDATED"
        assert audit.details == {"reference": txn.reference, "from": "PROCESSING", "to": "COMPLETED"}

    @pytest.mark.asyncio
    async def test_admin_approves_pending_review(
        self, client, db_results, make_result, admin_user, user, beneficiary,
        make_transaction, admin_headers,
    ):
        txn = make_transaction(user, beneficiary, amount="20000")
        assert txn.risk_level == RiskLevel.HIGH
        db_results(make_result(admin_user), make_result(txn))

        resp = await client.patch(
            f"/api/v1/transactions/{txn.id}/status",
            json={"status": "PROCESSING"},
            headers=admin_headers,
        )

        assert resp.status_code == 200
        assert txn.status == TransactionStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_terminal_state_cannot_move(
        self, client, db_results, make_result, admin_user, user, beneficiary,
        make_transaction, admin_headers,
    ):
        txn = make_transaction(user, beneficiary, status=TransactionStatus.COMPLETED)
        db_results(make_result(admin_user), make_result(txn))

        resp = await client.patch(
            f"/api/v1/transactions/{txn.id}/status",
            json={"status": "PROCESSING"},
            headers=admin_headers,
        )

        assert resp.status_code == 409
        assert txn.status == TransactionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_unknown_transaction(self, client, db_results, make_result, admin_user, admin_headers):
        db_results(make_result(admin_user), make_result(None))

        resp = await client.patch(
            f"/api/v1/transactions/{uuid.uuid4()}/status",
            json={"status": "COMPLETED"},
            headers=admin_headers,
        )

        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_regular_user_forbidden(self, client, db_results, make_result, user, auth_headers):
        db_results(make_result(user))

        resp = await client.patch(
            f"/api/v1/transactions/{uuid.uuid4()}/status",
            json={"status": "COMPLETED"},
            headers=auth_headers,
        )

        assert resp.status_code == 403
        assert resp.json()["detail"] == "Insufficient permissions"
