"""Fallback exchange rates for Deal Engine."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from .models import FxQuote, FxSource

# Units of each currency per 1 USD
FALLBACK_RATES: dict[str, Decimal] = {
    "USD": Decimal("1.00"),
    "EUR": Decimal("0.96"),
    "GBP": Decimal("0.80"),
    "CAD": Decimal("1.36"),
    "AUD": Decimal("1.53"),
    "JPY": Decimal("149.50"),
    "AED": Decimal("3.67"),
    "SAR": Decimal("3.75"),
    "SGD": Decimal("1.34"),
    "HKD": Decimal("7.82"),
    "INR": Decimal("83.50"),
    "BRL": Decimal("4.97"),
    "MXN": Decimal("17.15"),
    "CNY": Decimal("7.24"),
}

RATE_PLACES = Decimal("0.000001")


def cross_rate(from_currency: str, to_currency: str, table: dict[str, Decimal] | None = None) -> Decimal:
    """Get the rate converting one unit of from_currency into to_currency."""
    table = FALLBACK_RATES if table is None else table
    from_currency = from_currency.upper()
    to_currency = to_currency.upper()
    if from_currency == to_currency:
        return Decimal("1")
    if from_currency not in table or to_currency not in table:
        raise KeyError(f"No rate for {from_currency}->{to_currency}")
    return (table[to_currency] / table[from_currency]).quantize(RATE_PLACES, rounding=ROUND_HALF_UP)


def identity_quote(currency: str, timestamp: datetime | None = None) -> FxQuote:
    """Quote for converting a currency into itself."""
    return FxQuote(
        from_currency=currency.upper(),
        to_currency=currency.upper(),
        rate=Decimal("1"),
        timestamp=timestamp or datetime.now(timezone.utc),
        source=FxSource.LIVE,
    )


def fallback_quote(
    from_currency: str, to_currency: str, timestamp: datetime | None = None
) -> FxQuote:
    """Quote from the hardcoded fallback table."""
    return FxQuote(
        from_currency=from_currency.upper(),
        to_currency=to_currency.upper(),
        rate=cross_rate(from_currency, to_currency),
        timestamp=timestamp or datetime.now(timezone.utc),
        source=FxSource.FALLBACK,
    )
