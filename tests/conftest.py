"""Pytest configuration and fixtures."""

from __future__ import annotations

import math
from decimal import Decimal
from pathlib import Path

import pytest

from dealengine.core.config import Settings
from dealengine.core.engine import DealEngine
from dealengine.core.models import (
    ChannelEvaluation,
    ChannelType,
    ConfidenceLevel,
    DealRequest,
    DemandEstimate,
    DutyMethod,
    FeeBreakdown,
    FxSource,
    LandedCost,
    MarketSnapshot,
    PriceHistory,
    Recommendation,
    ShippingMethod,
)


@pytest.fixture
def settings() -> Settings:
    """Create default settings for testing."""
    s = Settings()
    s.fx.mock_mode = True
    return s


@pytest.fixture
def engine(settings: Settings) -> DealEngine:
    """Create a deal engine with default settings."""
    return DealEngine(settings)


@pytest.fixture
def sample_request() -> DealRequest:
    """Create a sample purchase request."""
    return DealRequest(
        ean="5012345678900",
        quantity=100,
        buy_price=Decimal("10.00"),
        currency="USD",
        supplier_region="CN",
        product_category="Electronics",
    )


@pytest.fixture
def amazon_us() -> MarketSnapshot:
    """Amazon US listing with a good rank and stable price."""
    return MarketSnapshot(
        channel=ChannelType.AMAZON,
        marketplace="US",
        sell_price=Decimal("60.00"),
        currency="USD",
        sales_rank=2000,
        sales_rank_category="Electronics",
        fba_seller_count=4,
        price_history=PriceHistory(trend="stable"),
    )


@pytest.fixture
def ebay_uk() -> MarketSnapshot:
    """eBay UK listing with sold history."""
    return MarketSnapshot(
        channel=ChannelType.EBAY,
        marketplace="UK",
        sell_price=Decimal("132.65"),
        currency="GBP",
        active_listings=12,
        sold_last_90_days=30,
    )


@pytest.fixture
def walmart_us() -> MarketSnapshot:
    """Walmart reference price."""
    return MarketSnapshot(
        channel=ChannelType.RETAILER,
        marketplace="US",
        sell_price=Decimal("100.00"),
        currency="USD",
        partner="walmart",
    )


@pytest.fixture
def ingram_us() -> MarketSnapshot:
    """Ingram Micro reference price."""
    return MarketSnapshot(
        channel=ChannelType.DISTRIBUTOR,
        marketplace="US",
        sell_price=Decimal("100.00"),
        currency="USD",
        partner="ingram_micro",
    )


@pytest.fixture
def sample_snapshots(amazon_us, ebay_uk, walmart_us, ingram_us) -> list[MarketSnapshot]:
    """One snapshot per channel type."""
    return [amazon_us, ebay_uk, walmart_us, ingram_us]


@pytest.fixture
def channel_factory():
    """Build ChannelEvaluation objects with just the fields a test cares about."""

    def make(
        key: str = "amazon-US",
        margin_percent: str = "30",
        capacity: int = 100,
        confidence_score: int = 80,
        quantity: int = 100,
        net_proceeds: str = "143.46",
        fx_rate: str = "1",
        channel: ChannelType = ChannelType.AMAZON,
        minimum_order: int = 0,
        recommendation: Recommendation | None = None,
    ) -> ChannelEvaluation:
        margin = Decimal(margin_percent)
        if recommendation is None:
            if margin >= 25:
                recommendation = Recommendation.SELL
            elif margin >= 15:
                recommendation = Recommendation.CONSIDER
            else:
                recommendation = Recommendation.AVOID
        if confidence_score >= 75:
            confidence = ConfidenceLevel.HIGH
        elif confidence_score >= 50:
            confidence = ConfidenceLevel.MEDIUM
        else:
            confidence = ConfidenceLevel.LOW

        landed = LandedCost(
            buy_price=Decimal("100.00"),
            duty=Decimal("0"),
            duty_rate=Decimal("0"),
            duty_method=DutyMethod.CATEGORY,
            duty_category="default",
            shipping=Decimal("0"),
            shipping_method=ShippingMethod.AIR,
            transit_days=7,
            import_vat=Decimal("0"),
            import_vat_included=True,
            total=Decimal("100.00"),
            currency="USD",
            origin="CN",
            destination="US",
        )
        proceeds = Decimal(net_proceeds)
        return ChannelEvaluation(
            channel=channel,
            marketplace=key.split("-")[-1],
            partner="",
            key=key,
            sell_price=proceeds,
            fees=FeeBreakdown(sell_price=proceeds, currency="USD", net_proceeds=proceeds),
            vat=Decimal("0"),
            net_proceeds=proceeds,
            landed_cost=landed,
            landed_cost_converted=Decimal("100.00"),
            fx_rate=Decimal(fx_rate),
            fx_source=FxSource.LIVE,
            net_margin=proceeds - Decimal("100.00"),
            margin_percent=margin,
            recommendation=recommendation,
            demand=DemandEstimate(
                low=capacity,
                mid=capacity * 2,
                high=capacity * 3,
                confidence=confidence,
                confidence_score=confidence_score,
                absorption_capacity_per_month=capacity,
            ),
            months_to_sell=quantity / capacity if capacity > 0 else math.inf,
            currency="USD",
            minimum_order=minimum_order,
        )

    return make


@pytest.fixture
def repository(tmp_path: Path):
    """Repository backed by a temporary SQLite database."""
    from dealengine.db.repository import Repository
    from dealengine.db.session import close_database, configure_database, init_database

    configure_database(f"sqlite:///{tmp_path / 'deals.db'}")
    init_database()
    yield Repository()
    close_database()
