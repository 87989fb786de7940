"""
Rate Celery tasks — refresh cached exchange rates ahead of expiry.

Requests still refresh lazily on a stale read; this task just keeps
the common pairs warm so quotes rarely wait on the upstream provider.
"""

import asyncio
import logging

from app.tasks.celery_app import RATE_REFRESH_TASK, celery_app

logger = logging.getLogger(__name__)

TRACKED_PAIRS = [("USD", "INR")]


async def _refresh_exchange_rates_async(pairs=None) -> dict:
    """Refresh every pair in one session; a failure rolls back all of them."""
    from app.database import session_scope
    from app.services.rate_service import ExchangeRateSource, SQLAlchemyExchangeRateRepository

    refreshed = {}
    async with session_scope() as session:
        source = ExchangeRateSource(SQLAlchemyExchangeRateRepository(session))
        for from_currency, to_currency in pairs or TRACKED_PAIRS:
            entry = await source.refresh(from_currency, to_currency)
            refreshed[f"{from_currency}/{to_currency}"] = str(entry.rate)

    return {"refreshed": refreshed}


@celery_app.task(name=RATE_REFRESH_TASK)
def refresh_exchange_rates():
    """
    Pull fresh rates for every tracked pair.

    Celery tasks are synchronous, so the async body runs on a private loop.
    """
    logger.info("Refreshing exchange rates")
    loop = asyncio.new_event_loop()
    try:
        result = loop.run_until_complete(_refresh_exchange_rates_async())
        logger.info("Exchange rates refreshed: %s", result["refreshed"])
        return result
    except Exception:
        logger.exception("Exchange rate refresh failed")
        raise
    finally:
        loop.close()
