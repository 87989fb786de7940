"""
Transfer quote engine — fee, exchange rate, risk tier, and initial status.

Quote pipeline for a USD amount sent to a beneficiary's currency:
  1. Reject amounts <= 0 or above MAX_TRANSFER_USD (before any rate lookup)
  2. Look up the USD→destination rate via ExchangeRateSource
  3. fee = max(MIN_FEE_USD, amount * FEE_PERCENT / 100)
  4. Risk tier from the USD amount:
         >= 50,000 -> CRITICAL
         >= 10,000 -> HIGH
         >=  5,000 -> NORMAL
         otherwise -> LOW
  5. HIGH / CRITICAL transfers start PENDING (manual review), others PROCESSING
  6. recipient_amount = amount * rate

Amounts are kept unrounded; persistence quantizes to 2 dp.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from app.config import settings
from app.core.clock import Clock, utcnow
from app.core.errors import ValidationError
from app.models.transaction import RiskLevel, TransactionStatus, generate_reference
from app.services.rate_service import ExchangeRateSource

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SOURCE_CURRENCY = "USD"

# Risk tiers: (min_amount_usd, level), ordered highest-first so the first match wins.
RISK_TIERS = [
    (Decimal("50000"), RiskLevel.CRITICAL),
    (Decimal("10000"), RiskLevel.HIGH),
    (Decimal("5000"), RiskLevel.NORMAL),
]

HIGH_AMOUNT_FLAG = "HIGH_AMOUNT"
CRITICAL_AMOUNT_FLAG = "CRITICAL_AMOUNT"

HIGH_AMOUNT_THRESHOLD = Decimal("10000")
CRITICAL_AMOUNT_THRESHOLD = Decimal("50000")

REVIEW_LEVELS = frozenset({RiskLevel.HIGH, RiskLevel.CRITICAL})


class InvalidAmountError(ValidationError):
    """Raised when a transfer amount is not positive or exceeds the ceiling."""


# ---------------------------------------------------------------------------
# Quote
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Quote:
    """Priced and risk-assessed transfer, prior to persistence."""
    reference: str
    requested_amount_usd: Decimal
    destination_currency: str
    exchange_rate: Decimal
    fee_usd: Decimal
    recipient_amount: Decimal
    risk_level: RiskLevel
    risk_flags: frozenset[str]
    initial_status: TransactionStatus

    @property
    def total_debit_usd(self) -> Decimal:
        """Amount charged to the sender (transfer + fee)."""
        return self.requested_amount_usd + self.fee_usd


# ---------------------------------------------------------------------------
# Pure pricing / risk rules
# ---------------------------------------------------------------------------


def to_decimal(value) -> Decimal:
    """Coerce ints, strings and floats to Decimal without binary float artefacts."""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidAmountError(f"Amount is not a number: {value!r}")


def calculate_fee(amount_usd: Decimal) -> Decimal:
    percent_fee = amount_usd * settings.FEE_PERCENT / Decimal("100")
    return max(settings.MIN_FEE_USD, percent_fee)


def assess_risk_level(amount_usd: Decimal) -> RiskLevel:
    for threshold, level in RISK_TIERS:
        if amount_usd >= threshold:
            return level
    return RiskLevel.LOW


def risk_flags_for(amount_usd: Decimal) -> frozenset[str]:
    flags = set()
    if amount_usd >= HIGH_AMOUNT_THRESHOLD:
        flags.add(HIGH_AMOUNT_FLAG)
    if amount_usd >= CRITICAL_AMOUNT_THRESHOLD:
        flags.add(CRITICAL_AMOUNT_FLAG)
    return frozenset(flags)


def initial_status_for(risk_level: RiskLevel) -> TransactionStatus:
    if risk_level in REVIEW_LEVELS:
        return TransactionStatus.PENDING
    return TransactionStatus.PROCESSING


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class TransferQuoteEngine:
    """Builds Quotes from a USD amount and a destination currency."""

    def __init__(
        self,
        rate_source: ExchangeRateSource,
        clock: Clock = utcnow,
        max_amount_usd: Decimal | None = None,
    ):
        self.rate_source = rate_source
        self.clock = clock
        self.max_amount_usd = (
            max_amount_usd if max_amount_usd is not None else settings.MAX_TRANSFER_USD
        )

    def validate_amount(self, amount_usd) -> Decimal:
        """Return the amount as Decimal or raise InvalidAmountError."""
        amount = to_decimal(amount_usd)
        if not amount.is_finite() or amount <= 0:
            raise InvalidAmountError("Amount must be greater than zero")
        if amount > self.max_amount_usd:
            raise InvalidAmountError(
                f"Maximum transfer amount is ${self.max_amount_usd:,.0f}"
            )
        return amount

    async def quote(self, amount_usd, destination_currency: str = "INR") -> Quote:
        amount = self.validate_amount(amount_usd)
        currency = destination_currency.upper()

        rate = await self.rate_source.get_rate(SOURCE_CURRENCY, currency)
        risk_level = assess_risk_level(amount)

        quote = Quote(
            reference=generate_reference(self.clock()),
            requested_amount_usd=amount,
            destination_currency=currency,
            exchange_rate=rate,
            fee_usd=calculate_fee(amount),
            recipient_amount=amount * rate,
            risk_level=risk_level,
            risk_flags=risk_flags_for(amount),
            initial_status=initial_status_for(risk_level),
        )

        if quote.risk_level in REVIEW_LEVELS:
            logger.warning(
                "Quote %s flagged for review: $%s risk=%s flags=%s",
                quote.reference, amount, risk_level.value, sorted(quote.risk_flags),
            )
        return quote
