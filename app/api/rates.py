"""
Exchange-rate endpoints — current pair rate and a non-binding transfer quote.
"""

import logging
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.deps import get_quote_engine, get_rate_source
from app.core.errors import ValidationError
from app.schemas.rate import RateData, TransferQuoteResponse
from app.services.quote_engine import TransferQuoteEngine
from app.services.rate_service import ExchangeRateSource

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/current", response_model=RateData)
async def current_rate(
    from_currency: str = Query("USD", alias="from", pattern="^[A-Za-z]{3}$"),
    to_currency: str = Query("INR", alias="to", pattern="^[A-Za-z]{3}$"),
    rate_source: ExchangeRateSource = Depends(get_rate_source),
):
    """Cached rate, refreshed from the provider once older than 15 minutes."""
    entry = await rate_source.current(from_currency, to_currency)
    return RateData(
        from_currency=entry.from_currency,
        to_currency=entry.to_currency,
        rate=entry.rate,
        updated_at=entry.updated_at,
        source=entry.source,
    )


@router.get("/quote", response_model=TransferQuoteResponse)
async def transfer_quote(
    amount: Decimal = Query(..., description="Amount to send in USD"),
    currency: str = Query("INR", pattern="^[A-Za-z]{3}$"),
    quote_engine: TransferQuoteEngine = Depends(get_quote_engine),
):
    try:
        quote = await quote_engine.quote(amount, currency.upper())
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    return TransferQuoteResponse(
        amount=quote.requested_amount_usd,
        currency=quote.destination_currency,
        exchange_rate=quote.exchange_rate,
        fee=quote.fee_usd,
        recipient_amount=quote.recipient_amount,
        total_debit=quote.total_debit_usd,
        risk_level=quote.risk_level.value,
        risk_flags=sorted(quote.risk_flags),
        initial_status=quote.initial_status.value,
    )
