"""Tests for the Transaction model — defaults, references, status transitions."""

import re
import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from app.models.transaction import (
    VALID_TRANSITIONS,
    RiskLevel,
    Transaction,
    TransactionStatus,
    generate_reference,
)


@pytest.fixture
def txn():
    """Create a minimal Transaction instance."""
    return Transaction(
        user_id=uuid.uuid4(),
        beneficiary_id=uuid.uuid4(),
        amount=Decimal("1000"),
        exchange_rate=Decimal("83.25"),
        fee=Decimal("5"),
        recipient_amount=Decimal("83250"),
    )


class TestTransactionDefaults:

    def test_defaults(self, txn):
        assert txn.id is not None
        assert txn.status == TransactionStatus.PENDING
        assert txn.risk_level == RiskLevel.LOW
        assert txn.risk_flags == []
        assert txn.currency == "INR"
        assert txn.created_at is not None

    def test_reference_format(self, txn):
        assert re.match(r"^TXN\d{6}[A-Z0-9]{4}$", txn.reference)

    def test_reference_uses_clock_digits(self):
        now = datetime(2026, 1, 15, 12, 0, 0, 123000, tzinfo=timezone.utc)
        millis = str(int(now.timestamp() * 1000))
        assert generate_reference(now).startswith(f"TXN{millis[-6:]}")

    def test_reference_suffix_varies(self):
        now = datetime(2026, 1, 15, tzinfo=timezone.utc)
        refs = {generate_reference(now) for _ in range(50)}
        assert len(refs) > 1

    def test_repr(self, txn):
        assert txn.reference in repr(txn)
        assert "PENDING" in repr(txn)


class TestStatusTransitions:

    @pytest.mark.parametrize(
        "start, end",
        [
            (TransactionStatus.PENDING, TransactionStatus.PROCESSING),
            (TransactionStatus.PENDING, TransactionStatus.FAILED),
            (TransactionStatus.PENDING, TransactionStatus.CANCELLED),
            (TransactionStatus.PROCESSING, TransactionStatus.COMPLETED),
            (TransactionStatus.PROCESSING, TransactionStatus.FAILED),
            (TransactionStatus.PROCESSING, TransactionStatus.CANCELLED),
        ],
    )
    def test_valid(self, txn, start, end):
        txn.status = start
        txn.transition_to(end)
        assert txn.status == end

    def test_pending_cannot_skip_to_completed(self, txn):
        with pytest.raises(ValueError, match="PENDING -> COMPLETED"):
            txn.transition_to(TransactionStatus.COMPLETED)

    @pytest.mark.parametrize(
        "terminal", [TransactionStatus.COMPLETED, TransactionStatus.FAILED, TransactionStatus.CANCELLED],
    )
    def test_terminal_states_are_final(self, txn, terminal):
        txn.status = terminal
        for target in TransactionStatus:
            assert not Transaction.is_valid_transition(terminal, target)
        assert VALID_TRANSITIONS[terminal] == set()

    def test_transition_bumps_updated_at(self, txn):
        before = txn.updated_at
        txn.transition_to(TransactionStatus.PROCESSING)
        assert txn.updated_at >= before


class TestRisk:

    @pytest.mark.parametrize(
        "level, expected",
        [(RiskLevel.LOW, False), (RiskLevel.NORMAL, False), (RiskLevel.HIGH, True), (RiskLevel.CRITICAL, True)],
    )
    def test_is_high_risk(self, txn, level, expected):
        txn.risk_level = level
        assert txn.is_high_risk is expected
