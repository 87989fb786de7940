"""
FX rate source — upstream fetching, single-row cache per pair, and fallback.

Policy:
  - One cached row per ordered currency pair (``exchange_rates`` table)
  - Cached row younger than FX_RATE_CACHE_TTL_SECONDS (15 min) is returned as-is
  - Otherwise a fresh rate is fetched and the row is upserted (last write wins)
  - Any lookup/refresh failure falls back to a fixed default rate

Uses a mock generator (83.25 ± 0.25) or open.er-api.com when FX_RATE_MOCK is off.
"""

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Protocol

import httpx
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.clock import Clock, utcnow
from app.models.exchange_rate import ExchangeRate

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

RATE_PRECISION = Decimal("0.000001")

# Maximum mock deviation either side of the base rate
MOCK_SPREAD = Decimal("0.5")

FALLBACK_SOURCE = "fallback"


def fallback_rate(from_currency: str, to_currency: str) -> Decimal:
    """Fixed rate used when the cache and upstream are both unavailable."""
    if (from_currency, to_currency) == ("USD", "INR"):
        return settings.FX_DEFAULT_USD_INR
    return Decimal("1")


# ---------------------------------------------------------------------------
# Cached rate value
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CachedRate:
    """A rate for one currency pair and when it was last refreshed."""
    from_currency: str
    to_currency: str
    rate: Decimal
    updated_at: datetime
    source: str


# ---------------------------------------------------------------------------
# Rate provider protocol
# ---------------------------------------------------------------------------


class RateProvider(Protocol):
    name: str

    async def fetch_rate(self, from_currency: str, to_currency: str) -> Decimal:
        """Return units of *to_currency* per 1 *from_currency*."""
        ...


class MockRateProvider:
    """Simulates a small fluctuation around the base USD/INR rate."""

    name = "mock"

    def __init__(self, base_rate: Decimal | None = None, rng: random.Random | None = None):
        self.base_rate = base_rate if base_rate is not None else settings.FX_DEFAULT_USD_INR
        self._rng = rng or random.Random()

    async def fetch_rate(self, from_currency: str, to_currency: str) -> Decimal:
        if (from_currency, to_currency) != ("USD", "INR"):
            return Decimal("1")
        jitter = (Decimal(str(self._rng.random())) - Decimal("0.5")) * MOCK_SPREAD
        return (self.base_rate + jitter).quantize(RATE_PRECISION, rounding=ROUND_HALF_UP)


class ExchangeRateAPIProvider:
    """Fetch live rates from exchangerate-api.com (free tier)."""

    name = "exchangerate-api"
    API_URL = "https://open.er-api.com/v6/latest/{base}"

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout if timeout is not None else settings.FX_RATE_TIMEOUT_SECONDS

    async def fetch_rate(self, from_currency: str, to_currency: str) -> Decimal:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.get(self.API_URL.format(base=from_currency))
            resp.raise_for_status()
            data = resp.json()

        if data.get("result") != "success":
            raise RuntimeError(f"Rate API error: {data}")

        rate = data["rates"].get(to_currency)
        if rate is None:
            raise RuntimeError(f"Rate API has no {to_currency} rate for {from_currency}")
        return Decimal(str(rate)).quantize(RATE_PRECISION, rounding=ROUND_HALF_UP)


# Module-level provider override (for tests)
_provider: RateProvider | None = None


def get_rate_provider() -> RateProvider:
    """Return the configured rate provider."""
    if _provider is not None:
        return _provider
    if settings.FX_RATE_MOCK:
        return MockRateProvider()
    return ExchangeRateAPIProvider()


def set_rate_provider(provider: RateProvider | None) -> None:
    """Override the rate provider (for testing)."""
    global _provider
    _provider = provider


# ---------------------------------------------------------------------------
# Repository: persistence port for the cache row
# ---------------------------------------------------------------------------


class ExchangeRateRepository(Protocol):
    async def get_pair(self, from_currency: str, to_currency: str) -> CachedRate | None: ...

    async def upsert_pair(self, entry: CachedRate) -> None: ...


class SQLAlchemyExchangeRateRepository:
    """
    Stores cached rates in the ``exchange_rates`` table.

    Each statement runs in a savepoint, so a failed cache read or write
    rolls back alone and the request's transaction stays usable.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_pair(self, from_currency: str, to_currency: str) -> CachedRate | None:
        async with self.db.begin_nested():
            result = await self.db.execute(
                select(ExchangeRate).where(
                    ExchangeRate.from_currency == from_currency,
                    ExchangeRate.to_currency == to_currency,
                )
            )
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return CachedRate(
            from_currency=row.from_currency,
            to_currency=row.to_currency,
            rate=Decimal(row.rate),
            updated_at=row.updated_at,
            source=row.source,
        )

    async def upsert_pair(self, entry: CachedRate) -> None:
        stmt = insert(ExchangeRate).values(
            from_currency=entry.from_currency,
            to_currency=entry.to_currency,
            rate=entry.rate,
            source=entry.source,
            updated_at=entry.updated_at,
        )
        stmt = stmt.on_conflict_do_update(
            constraint="uq_exchange_rates_pair",
            set_={
                "rate": stmt.excluded.rate,
                "source": stmt.excluded.source,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        async with self.db.begin_nested():
            await self.db.execute(stmt)
        await self.db.flush()


# ---------------------------------------------------------------------------
# ExchangeRateSource
# ---------------------------------------------------------------------------


class ExchangeRateSource:
    """Cached exchange rates with time-based staleness and fallback."""

    def __init__(
        self,
        repository: ExchangeRateRepository,
        provider: RateProvider | None = None,
        clock: Clock = utcnow,
        ttl: timedelta | None = None,
    ):
        self.repository = repository
        self.provider = provider or get_rate_provider()
        self.clock = clock
        self.ttl = ttl if ttl is not None else timedelta(seconds=settings.FX_RATE_CACHE_TTL_SECONDS)

    def is_fresh(self, entry: CachedRate) -> bool:
        return self.clock() - entry.updated_at < self.ttl

    async def refresh(self, from_currency: str, to_currency: str) -> CachedRate:
        """Fetch a fresh rate upstream and overwrite the cache row."""
        rate = await self.provider.fetch_rate(from_currency, to_currency)
        if rate <= 0:
            raise ValueError(f"Upstream returned non-positive rate {rate}")

        entry = CachedRate(
            from_currency=from_currency,
            to_currency=to_currency,
            rate=rate,
            updated_at=self.clock(),
            source=self.provider.name,
        )
        await self.repository.upsert_pair(entry)
        logger.info(
            "Refreshed %s/%s rate: %s (source=%s)",
            from_currency, to_currency, rate, entry.source,
        )
        return entry

    async def current(self, from_currency: str, to_currency: str) -> CachedRate:
        """
        Return the cached entry for the pair, refreshing it when stale.

        Never raises: on any failure a fallback entry is returned.
        """
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        try:
            cached = await self.repository.get_pair(from_currency, to_currency)
            if cached is not None and self.is_fresh(cached):
                return cached
            return await self.refresh(from_currency, to_currency)
        except Exception:
            logger.exception(
                "Exchange rate lookup failed for %s/%s; using fallback rate",
                from_currency, to_currency,
            )
            return CachedRate(
                from_currency=from_currency,
                to_currency=to_currency,
                rate=fallback_rate(from_currency, to_currency),
                updated_at=self.clock(),
                source=FALLBACK_SOURCE,
            )

    async def get_rate(self, from_currency: str, to_currency: str) -> Decimal:
        """Units of *to_currency* per 1 *from_currency*."""
        entry = await self.current(from_currency, to_currency)
        return entry.rate
