"""Mock market data for running without marketplace credentials."""

from __future__ import annotations

import random
import zlib
from decimal import Decimal

from dealengine.core.defaults import PARTNER_PROFILES, VAT_RATES, marketplace_currency
from dealengine.core.fx import FALLBACK_RATES
from dealengine.core.models import (
    ChannelType,
    DataSource,
    MarketSnapshot,
    PriceHistory,
    to_money,
)

MOCK_CATEGORIES = ("Electronics", "Toys & Games", "Video Games", "Home & Kitchen", "Books")
PARTNER_MARKETPLACE = "US"


def _seed(*parts: str) -> int:
    """Stable seed from string parts (independent of PYTHONHASHSEED)."""
    return zlib.crc32("|".join(parts).encode("utf-8"))


def mock_base_price(ean: str) -> Decimal:
    """Reference USD price for a product, before VAT."""
    rng = random.Random(_seed(ean))
    return to_money(Decimal(rng.randint(1500, 15000)) / 100)


def mock_category(ean: str) -> str:
    """Sales rank category for a product."""
    rng = random.Random(_seed(ean, "category"))
    return rng.choice(MOCK_CATEGORIES)


def local_price(ean: str, marketplace: str) -> Decimal:
    """Mock VAT-inclusive shelf price in the marketplace currency."""
    currency = marketplace_currency(marketplace)
    rate = FALLBACK_RATES.get(currency, Decimal("1"))
    vat = VAT_RATES.get(marketplace, Decimal("0"))
    return to_money(mock_base_price(ean) * rate * (1 + vat))


def _price_history(rng: random.Random, price: Decimal) -> PriceHistory:
    spread = Decimal(rng.randint(3, 40)) / 100
    return PriceHistory(
        trend=rng.choice(("stable", "stable", "rising", "declining")),
        min_price=to_money(price * (1 - spread / 2)),
        max_price=to_money(price * (1 + spread / 2)),
        avg_price=price,
    )


class MockMarketDataProvider:
    """Deterministic market data seeded by the EAN.

    The same EAN always produces the same snapshots. Retailer and distributor
    data only exists for the US marketplace.
    """

    def __init__(self, missing: set[str] | None = None) -> None:
        """Initialize, optionally with channel keys that should return no data."""
        self.missing = missing or set()

    def fetch(
        self, ean: str, channel: ChannelType, marketplace: str, partner: str = ""
    ) -> MarketSnapshot | None:
        """Generate a snapshot for one channel."""
        marketplace = marketplace.upper()
        key = f"{partner or channel.value}-{marketplace}"
        if key in self.missing:
            return None

        rng = random.Random(_seed(ean, key))
        currency = marketplace_currency(marketplace)

        if channel == ChannelType.AMAZON:
            price = local_price(ean, marketplace)
            return MarketSnapshot(
                channel=channel,
                marketplace=marketplace,
                sell_price=to_money(price * Decimal(rng.randint(95, 105)) / 100),
                currency=currency,
                sales_rank=rng.randint(500, 200000),
                sales_rank_category=mock_category(ean),
                fba_seller_count=rng.randint(1, 12),
                price_history=_price_history(rng, price),
                data_source=DataSource.MOCK,
            )

        if channel == ChannelType.EBAY:
            price = local_price(ean, marketplace)
            sold = rng.randint(0, 60) if rng.random() > 0.5 else None
            return MarketSnapshot(
                channel=channel,
                marketplace=marketplace,
                sell_price=to_money(price * Decimal(rng.randint(88, 100)) / 100),
                currency=currency,
                active_listings=rng.randint(1, 40),
                sold_last_90_days=sold,
                data_source=DataSource.MOCK,
            )

        profile = PARTNER_PROFILES.get(partner)
        if profile is None or profile.channel != channel or marketplace != PARTNER_MARKETPLACE:
            return None
        return MarketSnapshot(
            channel=channel,
            marketplace=marketplace,
            sell_price=mock_base_price(ean),
            currency=currency,
            partner=partner,
            data_source=DataSource.MOCK,
        )
