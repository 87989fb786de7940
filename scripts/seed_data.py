"""
Development data seeder — populates the database with sample PayFlow data.

Usage:
    python scripts/seed_data.py

Creates:
  - admin@payflow.com / admin123 (ADMIN, KYC approved)
  - user@example.com / user123 (USER, KYC approved)
  - 2 Indian beneficiaries for the test user
  - 3 transactions priced with the live fee and risk rules
  - the USD/INR cached rate (83.25)
  - a handful of audit log entries

Idempotent: users are looked up by email and skipped if present.
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert

from app.database import session_scope
from app.models.audit_log import AuditLog
from app.models.beneficiary import Beneficiary
from app.models.exchange_rate import ExchangeRate
from app.models.transaction import Transaction, TransactionStatus
from app.models.user import KYCStatus, User, UserRole
from app.services.quote_engine import (
    assess_risk_level,
    calculate_fee,
    initial_status_for,
    risk_flags_for,
)

SEED_RATE = Decimal("83.25")
CENTS = Decimal("0.01")

SEED_USERS = [
    {
        "email": "admin@payflow.com",
        "name": "Admin User",
        "password": "admin123",
        "role": UserRole.ADMIN,
        "account_number": "PF000001",
    },
    {
        "email": "user@example.com",
        "name": "John Doe",
        "password": "user123",
        "role": UserRole.USER,
        "account_number": "PF000002",
        "phone_number": "+1-555-0123",
        "address": "123 Main St, New York, NY 10001",
    },
]

SEED_BENEFICIARIES = [
    {
        "name": "Rajesh Kumar",
        "email": "rajesh@example.com",
        "bank_name": "State Bank of India (SBI)",
        "account_number": "12345678901234567890",
        "ifsc_code": "SBIN0001234",
        "mobile_number": "+91-9876543210",
        "address": "Mumbai, Maharashtra",
    },
    {
        "name": "Priya Sharma",
        "email": "priya@example.com",
        "bank_name": "HDFC Bank",
        "account_number": "98765432109876543210",
        "ifsc_code": "HDFC0001234",
        "mobile_number": "+91-9123456789",
        "address": "Delhi, India",
    },
]

# (reference, amount USD, rate, purpose, beneficiary index, final status)
SEED_TRANSACTIONS = [
    ("TXN001001", Decimal("1000"), Decimal("83.25"), "Family Support", 0, TransactionStatus.COMPLETED),
    ("TXN001002", Decimal("500"), Decimal("83.18"), "Education Expenses", 1, TransactionStatus.PROCESSING),
    ("TXN001003", Decimal("15000"), Decimal("83.30"), "Medical Treatment", 0, TransactionStatus.COMPLETED),
]


def _walk_to_status(txn: Transaction, target: TransactionStatus) -> None:
    """Step a transaction forward through valid transitions until it reaches *target*."""
    for step in (TransactionStatus.PROCESSING, TransactionStatus.COMPLETED):
        if txn.status == target:
            return
        txn.transition_to(step)


def _build_transaction(user: User, beneficiary: Beneficiary, spec: tuple) -> Transaction:
    reference, amount, rate, purpose, _, target = spec
    risk_level = assess_risk_level(amount)
    txn = Transaction(
        reference=reference,
        user_id=user.id,
        beneficiary_id=beneficiary.id,
        amount=amount,
        currency="INR",
        exchange_rate=rate,
        fee=calculate_fee(amount).quantize(CENTS),
        recipient_amount=(amount * rate).quantize(CENTS),
        purpose=purpose,
        status=initial_status_for(risk_level),
        risk_level=risk_level,
        risk_flags=sorted(risk_flags_for(amount)),
    )
    _walk_to_status(txn, target)
    return txn


async def seed() -> None:
    """Insert sample data into the database. Safe to run multiple times."""
    async with session_scope() as session:
        existing = set((await session.execute(select(User.email))).scalars().all())
        if {u["email"] for u in SEED_USERS} <= existing:
            print("  Seed users already present, nothing to do.")
            return

        users: dict[str, User] = {}
        for data in SEED_USERS:
            user = User(
                email=data["email"],
                name=data["name"],
                role=data["role"],
                account_number=data["account_number"],
                kyc_status=KYCStatus.APPROVED,
                phone_number=data.get("phone_number"),
                address=data.get("address"),
            )
            user.set_password(data["password"])
            session.add(user)
            users[data["email"]] = user

        admin = users["admin@payflow.com"]
        customer = users["user@example.com"]

        beneficiaries: list[Beneficiary] = []
        for data in SEED_BENEFICIARIES:
            fields = {k: v for k, v in data.items() if k != "account_number"}
            beneficiary = Beneficiary(user_id=customer.id, **fields)
            beneficiary.set_account_number(data["account_number"])
            session.add(beneficiary)
            beneficiaries.append(beneficiary)

        txns = [
            _build_transaction(customer, beneficiaries[spec[4]], spec)
            for spec in SEED_TRANSACTIONS
        ]
        session.add_all(txns)

        await session.execute(
            insert(ExchangeRate)
            .values(
                from_currency="USD",
                to_currency="INR",
                rate=SEED_RATE,
                source="seed",
                updated_at=datetime.now(timezone.utc),
            )
            .on_conflict_do_update(
                constraint="uq_exchange_rates_pair",
                set_={"rate": SEED_RATE, "source": "seed", "updated_at": datetime.now(timezone.utc)},
            )
        )

        session.add_all([
            AuditLog(
                user_id=admin.id, action="USER_CREATED", resource="USER",
                details={"target_user_id": str(customer.id)},
            ),
            AuditLog(
                user_id=customer.id, action="BENEFICIARY_CREATED", resource="BENEFICIARY",
                details={"beneficiary_id": str(beneficiaries[0].id)},
            ),
            AuditLog(
                user_id=customer.id, action="TRANSACTION_CREATED", resource="TRANSACTION",
                details={"reference": txns[0].reference},
            ),
        ])

    _print_summary(users, beneficiaries, txns)


def _print_summary(users: dict, beneficiaries: list[Beneficiary], txns: list[Transaction]) -> None:
    print("\n  Seed complete!")
    print(f"  Users: {', '.join(users)}")
    print(f"  Beneficiaries: {len(beneficiaries)}")
    for txn in txns:
        print(
            f"    {txn.reference}: ${txn.amount} -> INR {txn.recipient_amount} "
            f"({txn.risk_level.value}, {txn.status.value})"
        )
    print(f"  USD/INR rate: {SEED_RATE}")


if __name__ == "__main__":
    asyncio.run(seed())
