"""
Shared test fixtures for PayFlow.

Provides async test client, database session mocks, Redis mocks,
an in-memory rate cache, and RSA key fixtures for JWT testing.
"""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from cryptography.fernet import Fernet
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient

from app.api.deps import get_rate_source
from app.config import settings
from app.database import get_db
from app.models.beneficiary import Beneficiary
from app.models.transaction import Transaction
from app.models.user import KYCStatus, User, UserRole, configure_fernet
from app.redis_client import get_redis
from app.services import auth_service
from app.services.rate_service import CachedRate, ExchangeRateSource
from app.services.quote_engine import (
    assess_risk_level,
    calculate_fee,
    initial_status_for,
    risk_flags_for,
)


# --- Fernet Key Fixture ---


@pytest.fixture(scope="session")
def test_fernet_key():
    """Generate a Fernet key for tests."""
    return Fernet.generate_key()


@pytest.fixture(autouse=True)
def setup_fernet(test_fernet_key):
    """Encrypt account numbers and KYC data with the test Fernet key."""
    configure_fernet(test_fernet_key)


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Cheap bcrypt cost so register/login tests stay quick."""
    monkeypatch.setattr(settings, "BCRYPT_ROUNDS", 4)


# --- RSA Key Fixtures ---


@pytest.fixture(scope="session")
def test_rsa_keys():
    """Generate a temporary RSA keypair for test JWT signing."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )

    return {"private_key": private_pem, "public_key": public_pem}


@pytest.fixture(autouse=True)
def auth_service_with_keys(test_rsa_keys):
    """Configure auth_service to use test RSA keys for every test."""
    auth_service.configure_keys(
        private_key=test_rsa_keys["private_key"],
        public_key=test_rsa_keys["public_key"],
        algorithm="RS256",
    )


# --- Mock Redis ---


@pytest.fixture
def mock_redis():
    """AsyncMock Redis client with common methods."""
    redis = AsyncMock()
    redis.setex = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.delete = AsyncMock()
    redis.incr = AsyncMock(return_value=1)
    redis.expire = AsyncMock()
    return redis


# --- Clock and rate cache doubles ---


class FakeClock:
    """Mutable clock; call ``advance`` to move time forward."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta) -> None:
        self.now = self.now + delta


class InMemoryRateRepository:
    """Dict-backed stand-in for the exchange_rates table."""

    def __init__(self, entries: list[CachedRate] | None = None):
        self.rows = {(e.from_currency, e.to_currency): e for e in entries or []}
        self.upserts = 0

    async def get_pair(self, from_currency, to_currency):
        return self.rows.get((from_currency, to_currency))

    async def upsert_pair(self, entry):
        self.upserts += 1
        self.rows[(entry.from_currency, entry.to_currency)] = entry


class FixedRateProvider:
    """Returns a fixed rate and counts upstream calls."""

    name = "fixed"

    def __init__(self, rate=Decimal("83.25"), error: Exception | None = None):
        self.rate = Decimal(str(rate))
        self.error = error
        self.calls = 0

    async def fetch_rate(self, from_currency, to_currency):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.rate


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rate_repository():
    return InMemoryRateRepository()


@pytest.fixture
def rate_provider():
    return FixedRateProvider()


@pytest.fixture
def rate_source(rate_repository, rate_provider, clock):
    """ExchangeRateSource over the in-memory cache and fixed 83.25 provider."""
    return ExchangeRateSource(rate_repository, provider=rate_provider, clock=clock)


# --- Mock Database Session ---


def make_result(value=None, scalar=None, items=None):
    """
    Build a MagicMock shaped like a SQLAlchemy Result.

    ``value`` feeds scalar_one_or_none, ``scalar`` feeds scalar_one
    and ``items`` feeds scalars().all().
    """
    result = MagicMock()
    result.scalar_one_or_none = MagicMock(return_value=value)
    result.scalar_one = MagicMock(return_value=scalar)
    result.scalars.return_value.all.return_value = list(items or [])
    return result


def queue_results(mock_db, *results):
    """Make successive db.execute() calls return *results* in order."""
    mock_db.execute = AsyncMock(side_effect=list(results))


def _make_user(**overrides) -> User:
    """Create a User with test defaults via the normal constructor."""
    defaults = {
        "email": "john@example.com",
        "name": "John Doe",
        "password_hash": "not-a-real-hash",
        "kyc_status": KYCStatus.APPROVED,
    }
    defaults.update(overrides)
    return User(**defaults)


def _make_beneficiary(user: User, **overrides) -> Beneficiary:
    defaults = {
        "user_id": user.id,
        "name": "Rajesh Kumar",
        "email": "rajesh@example.com",
        "bank_name": "State Bank of India",
        "ifsc_code": "SBIN0001234",
        "mobile_number": "+91-9876543210",
    }
    account_number = overrides.pop("account_number", "12345678901234")
    defaults.update(overrides)
    beneficiary = Beneficiary(**defaults)
    beneficiary.set_account_number(account_number)
    return beneficiary


def _make_transaction(user: User, beneficiary: Beneficiary, amount="1000", rate="83.25", **overrides) -> Transaction:
    amount = Decimal(amount)
    rate = Decimal(rate)
    level = assess_risk_level(amount)
    defaults = {
        "user_id": user.id,
        "beneficiary_id": beneficiary.id,
        "amount": amount,
        "currency": "INR",
        "exchange_rate": rate,
        "fee": calculate_fee(amount).quantize(Decimal("0.01")),
        "recipient_amount": (amount * rate).quantize(Decimal("0.01")),
        "purpose": "Family Support",
        "status": initial_status_for(level),
        "risk_level": level,
        "risk_flags": sorted(risk_flags_for(amount)),
    }
    defaults.update(overrides)
    return Transaction(**defaults)


@pytest.fixture
def make_user():
    """Factory fixture for creating User instances."""
    return _make_user


@pytest.fixture
def make_beneficiary():
    return _make_beneficiary


@pytest.fixture
def make_transaction():
    return _make_transaction


@pytest.fixture
def user(make_user):
    """KYC-approved customer."""
    return make_user()


@pytest.fixture
def admin_user(make_user):
    return make_user(email="admin@payflow.com", name="Admin User", role=UserRole.ADMIN)


def bearer(user: User) -> dict:
    """Authorization header carrying an access token for *user*."""
    return {"Authorization": f"Bearer {auth_service.issue_token(user)}"}


@pytest.fixture
def auth_headers(user):
    return bearer(user)


@pytest.fixture
def admin_headers(admin_user):
    return bearer(admin_user)


@pytest.fixture
def mock_db():
    """AsyncMock database session."""
    db = AsyncMock()

    db.execute = AsyncMock(return_value=make_result())
    db.flush = AsyncMock()
    db.add = MagicMock()
    db.delete = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()

    savepoint = MagicMock()
    savepoint.__aenter__ = AsyncMock(return_value=savepoint)
    savepoint.__aexit__ = AsyncMock(return_value=False)
    db.begin_nested = MagicMock(return_value=savepoint)

    return db


# --- Dependency Override Helpers ---


@pytest_asyncio.fixture
async def client(mock_db, mock_redis, rate_source):
    """
    Async HTTP test client with get_db, get_redis and the rate source
    overridden to use test doubles.
    """
    from app.main import app

    async def override_get_db():
        yield mock_db

    async def override_get_redis():
        return mock_redis

    async def override_get_rate_source():
        return rate_source

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_rate_source] = override_get_rate_source

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# --- Helper fixtures ---


@pytest.fixture(name="make_result")
def make_result_fixture():
    """Factory for Result-shaped mocks (see ``make_result``)."""
    return make_result


@pytest.fixture
def db_results(mock_db):
    """Queue execute() results: ``db_results(make_result(user), make_result(scalar=3))``."""

    def _queue(*results):
        queue_results(mock_db, *results)

    return _queue


@pytest.fixture
def headers_for():
    """Build an Authorization header for any user."""
    return bearer
