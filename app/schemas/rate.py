"""
Pydantic schemas for FX rates and transfer quotes.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class RateData(BaseModel):
    """Current exchange rate for a currency pair."""
    from_currency: str
    to_currency: str
    rate: Decimal
    updated_at: datetime
    source: str


class TransferQuoteResponse(BaseModel):
    """Non-binding preview of a transfer's pricing and risk tier."""
    amount: Decimal
    currency: str
    exchange_rate: Decimal
    fee: Decimal
    recipient_amount: Decimal
    total_debit: Decimal
    risk_level: str
    risk_flags: list[str]
    initial_status: str
