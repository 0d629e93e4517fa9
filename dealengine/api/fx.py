"""Exchange rate client with caching and fallback rates."""

from __future__ import annotations

import logging
import threading
import time
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

import requests

from dealengine.core.config import Settings
from dealengine.core.fx import FALLBACK_RATES, fallback_quote, identity_quote
from dealengine.core.models import FxQuote, FxSource

logger = logging.getLogger(__name__)


class FxRateError(Exception):
    """Raised when a live exchange rate cannot be obtained."""

    pass


class FxRateProvider(Protocol):
    """Anything that can quote an exchange rate."""

    def rate(self, from_currency: str, to_currency: str, as_of: date | None = None) -> FxQuote:
        ...


class FxClient:
    """Exchange rate client for a freecurrencyapi-style endpoint.

    Rates are cached per base currency for the configured TTL. When a live
    lookup fails the client serves the last rates it fetched successfully,
    then the hardcoded table, and marks those quotes as fallback.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize the FX client."""
        self.settings = settings
        self.config = settings.fx
        self.mock_mode = settings.fx.mock_mode

        self.session = requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "Connection": "keep-alive",
        })

        # (base, date or None) -> (rates, fetched timestamp, monotonic fetch time)
        self._cache: dict[tuple[str, str | None], tuple[dict[str, Decimal], datetime, float]] = {}
        self._last_known: dict[str, tuple[dict[str, Decimal], datetime]] = {}
        self._lock = threading.Lock()

    @property
    def historical_url(self) -> str:
        """Historical rates endpoint next to the latest-rates endpoint."""
        return self.config.api_url.rsplit("/", 1)[0] + "/historical"

    def _make_request(self, base: str, as_of: date | None) -> dict[str, Any]:
        """Request rates for a base currency.

        Raises:
            FxRateError: On transport errors, non-200 responses or bad JSON.
        """
        params: dict[str, Any] = {"apikey": self.config.api_key, "base_currency": base}
        url = self.config.api_url
        if as_of is not None:
            url = self.historical_url
            params["date"] = as_of.isoformat()

        try:
            response = self.session.get(url, params=params, timeout=self.config.timeout_seconds)
        except requests.RequestException as e:
            raise FxRateError(f"FX request failed: {e}") from e

        if response.status_code == 429:
            raise FxRateError("FX provider rate limit reached")
        if response.status_code != 200:
            raise FxRateError(f"FX provider returned HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise FxRateError(f"FX provider returned invalid JSON: {e}") from e

    def parse_rates(self, data: dict[str, Any], as_of: date | None = None) -> dict[str, Decimal]:
        """Parse the provider's ``data`` object into Decimal rates."""
        payload = data.get("data")
        if as_of is not None and isinstance(payload, dict):
            payload = payload.get(as_of.isoformat(), payload)
        if not isinstance(payload, dict) or not payload:
            raise FxRateError("FX response has no rate data")

        rates: dict[str, Decimal] = {}
        for currency, value in payload.items():
            try:
                rate = Decimal(str(value))
            except InvalidOperation:
                logger.debug(f"Skipping unparseable rate for {currency}: {value!r}")
                continue
            if rate > 0:
                rates[currency.upper()] = rate
        return rates

    def get_rates(self, base: str, as_of: date | None = None) -> tuple[dict[str, Decimal], datetime]:
        """Get all rates for a base currency, using the cache when fresh."""
        base = base.upper()
        cache_key = (base, as_of.isoformat() if as_of else None)
        ttl_seconds = self.config.cache_ttl_minutes * 60

        with self._lock:
            cached = self._cache.get(cache_key)
            if cached and (as_of is not None or time.monotonic() - cached[2] < ttl_seconds):
                return cached[0], cached[1]

        rates = self.parse_rates(self._make_request(base, as_of), as_of)
        fetched_at = datetime.now(timezone.utc)

        with self._lock:
            self._cache[cache_key] = (rates, fetched_at, time.monotonic())
            if as_of is None:
                self._last_known[base] = (rates, fetched_at)
        return rates, fetched_at

    def rate(self, from_currency: str, to_currency: str, as_of: date | None = None) -> FxQuote:
        """Quote the rate converting one unit of from_currency into to_currency.

        Raises:
            FxRateError: Only when neither live, cached nor table rates cover the pair.
        """
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        if from_currency == to_currency:
            return identity_quote(from_currency)
        if self.mock_mode:
            return self._table_quote(from_currency, to_currency)

        try:
            rates, fetched_at = self.get_rates(from_currency, as_of)
            if to_currency not in rates:
                raise FxRateError(f"No live rate for {from_currency}->{to_currency}")
            return FxQuote(
                from_currency=from_currency,
                to_currency=to_currency,
                rate=rates[to_currency],
                timestamp=fetched_at,
                source=FxSource.LIVE,
            )
        except FxRateError as e:
            logger.warning(f"Using fallback rate for {from_currency}->{to_currency}: {e}")

        with self._lock:
            last_known = self._last_known.get(from_currency)
        if last_known and to_currency in last_known[0]:
            return FxQuote(
                from_currency=from_currency,
                to_currency=to_currency,
                rate=last_known[0][to_currency],
                timestamp=last_known[1],
                source=FxSource.FALLBACK,
            )
        return self._table_quote(from_currency, to_currency)

    def _table_quote(self, from_currency: str, to_currency: str) -> FxQuote:
        if from_currency not in FALLBACK_RATES or to_currency not in FALLBACK_RATES:
            raise FxRateError(f"No fallback rate for {from_currency}->{to_currency}")
        return fallback_quote(from_currency, to_currency)

    def clear_cache(self) -> None:
        """Drop cached rates (last-known rates are kept)."""
        with self._lock:
            self._cache.clear()
