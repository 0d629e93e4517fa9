"""Tests for demand estimation."""

from decimal import Decimal

from dealengine.core.defaults import PARTNER_PROFILES
from dealengine.core.demand import (
    MOCK_SIGNAL,
    DemandEstimator,
    confidence_level,
    get_category_formula,
    target_share,
)
from dealengine.core.models import (
    ChannelType,
    ConfidenceLevel,
    DataSource,
    MarketSnapshot,
    PriceHistory,
)


class TestHelpers:
    """Tests for demand helper functions."""

    def test_category_formula_lookup(self):
        """Test exact, partial and default category formulas."""
        assert get_category_formula("Electronics") == (120000, 0.78)
        assert get_category_formula("Consumer Electronics") == (120000, 0.78)
        assert get_category_formula("Widgets") == (50000, 0.75)
        assert get_category_formula(None) == (50000, 0.75)

    def test_target_share_tiers(self):
        """Test safe share shrinks as competition grows."""
        assert target_share(0) == 0.35
        assert target_share(1) == 0.35
        assert target_share(2) == 0.25
        assert target_share(5) == 0.18
        assert target_share(10) == 0.12
        assert target_share(15) == 0.08

    def test_confidence_levels(self):
        """Test confidence bands."""
        assert confidence_level(75) == ConfidenceLevel.HIGH
        assert confidence_level(74) == ConfidenceLevel.MEDIUM
        assert confidence_level(50) == ConfidenceLevel.MEDIUM
        assert confidence_level(49) == ConfidenceLevel.LOW


class TestRankToSales:
    """Tests for the sales rank formula."""

    def test_range_ordering(self):
        """Test low <= mid <= high."""
        low, mid, high = DemandEstimator().rank_to_sales(1000, "Electronics", "US")

        assert 1 <= low <= mid <= high

    def test_better_rank_sells_more(self):
        """Test monthly sales fall as the rank grows."""
        estimator = DemandEstimator()
        mids = [estimator.rank_to_sales(r, "Toys & Games", "US")[1] for r in (100, 1000, 10000, 100000)]

        assert mids == sorted(mids, reverse=True)
        assert mids[0] > mids[-1]

    def test_marketplace_scaling(self):
        """Test smaller marketplaces sell fewer units at the same rank."""
        estimator = DemandEstimator()
        us = estimator.rank_to_sales(500, "Electronics", "US")[1]
        uk = estimator.rank_to_sales(500, "Electronics", "UK")[1]

        assert uk < us

    def test_floor_of_one(self):
        """Test very poor ranks still estimate one sale."""
        assert DemandEstimator().rank_to_sales(10_000_000, None, "US") == (1, 1, 1)

    def test_invalid_rank(self):
        """Test non-positive ranks estimate nothing."""
        assert DemandEstimator().rank_to_sales(0, None, "US") == (0, 0, 0)


class TestConfidence:
    """Tests for the confidence score."""

    def test_capped_at_100(self):
        """Test every strong signal together caps at 100."""
        history = PriceHistory(
            trend="stable",
            min_price=Decimal("98"),
            max_price=Decimal("103"),
            avg_price=Decimal("100"),
        )
        score, signals = DemandEstimator().confidence(500, 6, history)

        assert score == 100
        assert "Low price variance (<10%)" in signals

    def test_weak_signals(self):
        """Test weak signals give low confidence."""
        history = PriceHistory(
            trend="declining",
            min_price=Decimal("50"),
            max_price=Decimal("100"),
            avg_price=Decimal("100"),
        )
        score, signals = DemandEstimator().confidence(150000, 1, history)

        assert score == 20
        assert confidence_level(score) == ConfidenceLevel.LOW
        assert "High price volatility (>30%)" in signals

    def test_no_signals(self):
        """Test no data scores zero."""
        assert DemandEstimator().confidence(None, 0, None) == (0, [])


class TestEstimate:
    """Tests for DemandEstimator.estimate."""

    def test_amazon_rank(self, amazon_us):
        """Test the rank path uses seller count for absorption."""
        estimate = DemandEstimator().estimate(amazon_us)

        assert estimate.confidence_score == 70
        assert estimate.confidence == ConfidenceLevel.MEDIUM
        assert estimate.absorption_capacity_per_month == int(estimate.mid * 0.25)

    def test_ebay_sold_history(self, ebay_uk):
        """Test eBay sold history."""
        estimate = DemandEstimator().estimate(ebay_uk)

        assert estimate.mid == 12
        assert estimate.low == 7
        assert estimate.high == 15
        assert estimate.absorption_capacity_per_month == 8
        assert estimate.confidence == ConfidenceLevel.HIGH
        assert estimate.methodology == "eBay sold history"

    def test_ebay_listing_heuristic(self):
        """Test the eBay listing heuristic."""
        snapshot = MarketSnapshot(
            channel=ChannelType.EBAY,
            marketplace="UK",
            sell_price=Decimal("30"),
            currency="GBP",
            active_listings=8,
        )
        estimate = DemandEstimator().estimate(snapshot)

        assert estimate.mid == 115
        assert estimate.absorption_capacity_per_month == 80
        assert estimate.confidence_score == 25

    def test_ebay_listing_cap(self):
        """Test the eBay heuristic is capped."""
        snapshot = MarketSnapshot(
            channel=ChannelType.EBAY,
            marketplace="US",
            sell_price=Decimal("150"),
            currency="USD",
            active_listings=40,
        )
        estimate = DemandEstimator().estimate(snapshot)

        assert estimate.mid == 800
        assert estimate.absorption_capacity_per_month == 560
        assert estimate.confidence == ConfidenceLevel.MEDIUM

    def test_retailer(self, walmart_us):
        """Test retailer demand from the category multiplier."""
        estimate = DemandEstimator().estimate(walmart_us, "Electronics")

        assert (estimate.low, estimate.mid, estimate.high) == (20, 40, 60)
        assert estimate.absorption_capacity_per_month == 6
        assert estimate.confidence == ConfidenceLevel.LOW

    def test_distributor(self, ingram_us):
        """Test distributor volume from its monthly capacity."""
        estimate = DemandEstimator().estimate(ingram_us, "Electronics", PARTNER_PROFILES["ingram_micro"])

        assert (estimate.low, estimate.mid, estimate.high) == (2400, 4000, 8000)
        assert estimate.absorption_capacity_per_month == 800
        assert estimate.confidence == ConfidenceLevel.MEDIUM

    def test_no_signal(self):
        """Test a listing without demand data has no capacity."""
        snapshot = MarketSnapshot(
            channel=ChannelType.AMAZON, marketplace="DE", sell_price=Decimal("40"), currency="EUR"
        )
        estimate = DemandEstimator().estimate(snapshot)

        assert estimate.absorption_capacity_per_month == 0
        assert estimate.confidence == ConfidenceLevel.LOW

    def test_mock_data_downgraded(self, amazon_us):
        """Test sample data never reports more than low confidence."""
        history = PriceHistory(
            trend="stable", min_price=Decimal("59"), max_price=Decimal("61"), avg_price=Decimal("60")
        )
        snapshot = MarketSnapshot(
            channel=ChannelType.AMAZON,
            marketplace="US",
            sell_price=Decimal("60"),
            currency="USD",
            sales_rank=500,
            fba_seller_count=8,
            price_history=history,
            data_source=DataSource.MOCK,
        )
        estimate = DemandEstimator().estimate(snapshot)

        assert estimate.confidence == ConfidenceLevel.LOW
        assert estimate.confidence_score == 25
        assert MOCK_SIGNAL in estimate.signals
