"""Demand estimation for Deal Engine.

Monthly sales are estimated from the sales rank with a category power law
(``sales = coefficient / rank ** exponent``) calibrated on the reference
marketplace (US) and scaled by the relative size of the target marketplace.
Channels without a rank fall back to listing counts (eBay) or to
category-multiplier estimates (retailers and distributors).
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal

from .defaults import (
    DISTRIBUTOR_CATEGORY_ADJUSTMENTS,
    RETAILER_CATEGORY_ADJUSTMENTS,
    category_adjustment,
)
from .models import (
    ChannelType,
    ConfidenceLevel,
    DataSource,
    DemandEstimate,
    MarketSnapshot,
    PartnerProfile,
    PriceHistory,
)

# Reference market (US) coefficients: monthly sales = coefficient / rank ** exponent
CATEGORY_FORMULAS: dict[str, tuple[float, float]] = {
    "Books": (250000, 0.80),
    "Kindle Store": (200000, 0.78),
    "Clothing, Shoes & Jewelry": (180000, 0.82),
    "Home & Kitchen": (150000, 0.80),
    "Electronics": (120000, 0.78),
    "Toys & Games": (100000, 0.75),
    "Video Games": (80000, 0.72),
    "PC & Video Games": (80000, 0.72),
    "Sports & Outdoors": (75000, 0.78),
    "Beauty & Personal Care": (70000, 0.76),
    "Health & Household": (70000, 0.76),
    "Baby": (60000, 0.74),
    "Pet Supplies": (55000, 0.76),
    "Office Products": (50000, 0.78),
    "Grocery & Gourmet Food": (50000, 0.80),
    "Computers & Accessories": (45000, 0.74),
    "Camera & Photo": (40000, 0.72),
    "Patio, Lawn & Garden": (40000, 0.76),
    "Automotive": (35000, 0.74),
    "Arts, Crafts & Sewing": (35000, 0.74),
    "Musical Instruments": (30000, 0.70),
    "Industrial & Scientific": (25000, 0.72),
    "default": (50000, 0.75),
}

# Marketplace size relative to the reference market
MARKETPLACE_FACTORS = {
    "US": 1.00,
    "UK": 0.30,
    "DE": 0.35,
    "FR": 0.20,
    "IT": 0.15,
    "ES": 0.12,
    "CA": 0.18,
    "JP": 0.25,
    "AU": 0.10,
}
DEFAULT_MARKETPLACE_FACTOR = 0.30

# eBay listing heuristic factors
EBAY_MARKET_FACTORS = {"US": 1.5, "UK": 1.0, "DE": 1.2, "FR": 0.8, "IT": 0.6, "AU": 0.5}
EBAY_UNITS_PER_LISTING = 12
EBAY_MAX_MONTHLY = 800

RETAILER_BASE_DEMAND = 100

MOCK_SIGNAL = "Sample data / Mock signal"


def _round(value: float) -> int:
    """Round half up to an integer."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def get_category_formula(category: str | None) -> tuple[float, float]:
    """Get the (coefficient, exponent) pair for a category."""
    if category:
        if category in CATEGORY_FORMULAS:
            return CATEGORY_FORMULAS[category]
        lowered = category.lower()
        for name, formula in CATEGORY_FORMULAS.items():
            if name != "default" and name.lower() in lowered:
                return formula
    return CATEGORY_FORMULAS["default"]


def target_share(seller_count: int) -> float:
    """Safe market share to target given the number of competing sellers."""
    if seller_count >= 15:
        return 0.08
    if seller_count >= 10:
        return 0.12
    if seller_count >= 5:
        return 0.18
    if seller_count >= 2:
        return 0.25
    return 0.35


def confidence_level(score: int) -> ConfidenceLevel:
    """Map a 0-100 confidence score to a band."""
    if score >= 75:
        return ConfidenceLevel.HIGH
    if score >= 50:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


class DemandEstimator:
    """Estimates monthly sales, confidence and absorption capacity per channel."""

    LOW_FACTOR = 0.65
    HIGH_FACTOR = 1.25

    def estimate(
        self,
        snapshot: MarketSnapshot,
        product_category: str | None = None,
        partner: PartnerProfile | None = None,
    ) -> DemandEstimate:
        """Estimate demand for one channel snapshot."""
        category = snapshot.sales_rank_category or product_category
        if snapshot.sales_rank and snapshot.sales_rank > 0:
            estimate = self.estimate_from_rank(
                snapshot.sales_rank,
                category,
                snapshot.marketplace,
                snapshot.fba_seller_count or 0,
                snapshot.price_history,
            )
        elif snapshot.channel == ChannelType.EBAY:
            estimate = self.estimate_from_listings(snapshot)
        elif snapshot.channel == ChannelType.RETAILER:
            estimate = self.estimate_retailer(product_category)
        elif snapshot.channel == ChannelType.DISTRIBUTOR and partner is not None:
            estimate = self.estimate_distributor(product_category, partner)
        else:
            estimate = DemandEstimate(signals=("No demand signal available",), methodology="none")

        if snapshot.data_source == DataSource.MOCK:
            estimate = self._downgrade_mock(estimate)
        return estimate

    def rank_to_sales(
        self, rank: int, category: str | None, marketplace: str
    ) -> tuple[int, int, int]:
        """Convert a sales rank into a low/mid/high monthly sales range."""
        if rank <= 0:
            return 0, 0, 0
        coefficient, exponent = get_category_formula(category)
        factor = MARKETPLACE_FACTORS.get(marketplace, DEFAULT_MARKETPLACE_FACTOR)
        base = coefficient / math.pow(rank, exponent) * factor
        low = max(1, math.floor(base * self.LOW_FACTOR))
        mid = max(1, math.floor(base))
        high = max(1, math.floor(base * self.HIGH_FACTOR))
        return low, mid, high

    def confidence(
        self, rank: int | None, seller_count: int, price_history: PriceHistory | None
    ) -> tuple[int, list[str]]:
        """Score demand confidence from the available signals."""
        score = 0
        signals: list[str] = []

        if rank and rank > 0:
            if rank < 1000:
                score += 35
                signals.append("Strong sales rank (Top 1000)")
            elif rank < 10000:
                score += 30
                signals.append("Good sales rank (Top 10K)")
            elif rank < 100000:
                score += 20
                signals.append("Sales rank available")
            else:
                score += 10
                signals.append("Low sales rank (reduced accuracy)")

        if seller_count >= 5:
            score += 25
            signals.append(f"{seller_count} FBA sellers (validated demand)")
        elif seller_count >= 2:
            score += 15
            signals.append(f"{seller_count} FBA sellers")
        elif seller_count == 1:
            score += 5
            signals.append("Single FBA seller (limited signal)")

        if price_history is not None:
            if price_history.trend == "stable":
                score += 25
                signals.append("Price stable last 30 days")
            elif price_history.trend == "rising":
                score += 20
                signals.append("Price rising (strong demand)")
            elif price_history.trend == "declining":
                score += 10
                signals.append("Price declining (possible saturation)")

            if price_history.min_price and price_history.max_price and price_history.avg_price:
                variance = (price_history.max_price - price_history.min_price) / price_history.avg_price
                if variance < Decimal("0.10"):
                    score += 15
                    signals.append("Low price variance (<10%)")
                elif variance > Decimal("0.30"):
                    score -= 5
                    signals.append("High price volatility (>30%)")

        return max(0, min(score, 100)), signals

    def estimate_from_rank(
        self,
        rank: int,
        category: str | None,
        marketplace: str,
        seller_count: int,
        price_history: PriceHistory | None = None,
    ) -> DemandEstimate:
        """Estimate demand from a sales rank."""
        low, mid, high = self.rank_to_sales(rank, category, marketplace)
        score, signals = self.confidence(rank, seller_count, price_history)
        return DemandEstimate(
            low=low,
            mid=mid,
            high=high,
            confidence=confidence_level(score),
            confidence_score=score,
            absorption_capacity_per_month=math.floor(mid * target_share(seller_count)),
            signals=tuple(signals),
            methodology="Category coefficient formula scaled by marketplace size",
        )

    def estimate_from_listings(self, snapshot: MarketSnapshot) -> DemandEstimate:
        """Estimate eBay demand from sold history or active listing count."""
        sold = snapshot.sold_last_90_days or 0
        listings = snapshot.active_listings or 0

        if sold > 0:
            monthly = _round(sold * 0.4)
            score = 75 if sold > 20 else 50
            signals = [f"Sold {sold} units in last 90 days"]
            methodology = "eBay sold history"
        elif listings > 0:
            price = float(snapshot.sell_price)
            if price > 100:
                price_factor = 1.5
            elif price > 50:
                price_factor = 1.2
            elif price < 10:
                price_factor = 0.6
            else:
                price_factor = 1.0

            if listings > 20:
                competition = 2.0
            elif listings > 10:
                competition = 1.5
            elif listings > 5:
                competition = 1.2
            elif listings <= 2:
                competition = 0.8
            else:
                competition = 1.0

            market = EBAY_MARKET_FACTORS.get(snapshot.marketplace, 1.0)
            raw = listings * market * price_factor * competition * EBAY_UNITS_PER_LISTING
            monthly = _round(min(raw, EBAY_MAX_MONTHLY))
            score = 50 if listings > 20 else 25
            signals = [f"{listings} active listings"]
            methodology = "eBay active listing heuristic"
        else:
            return DemandEstimate(signals=("No eBay demand signal",), methodology="none")

        return DemandEstimate(
            low=math.floor(monthly * self.LOW_FACTOR),
            mid=monthly,
            high=math.floor(monthly * self.HIGH_FACTOR),
            confidence=confidence_level(score),
            confidence_score=score,
            absorption_capacity_per_month=math.floor(monthly * 0.7),
            signals=tuple(signals),
            methodology=methodology,
        )

    def estimate_retailer(self, category: str | None) -> DemandEstimate:
        """Estimate retailer demand from the category multiplier."""
        _, multiplier = category_adjustment(RETAILER_CATEGORY_ADJUSTMENTS, category)
        mid = _round(RETAILER_BASE_DEMAND * float(multiplier))
        return DemandEstimate(
            low=_round(mid * 0.5),
            mid=mid,
            high=_round(mid * 1.5),
            confidence=ConfidenceLevel.LOW,
            confidence_score=25,
            absorption_capacity_per_month=_round(mid * 0.15),
            signals=("Retailer demand estimated from category",),
            methodology="Retailer category multiplier",
        )

    def estimate_distributor(
        self, category: str | None, partner: PartnerProfile
    ) -> DemandEstimate:
        """Estimate distributor volume from its monthly capacity."""
        _, multiplier = category_adjustment(DISTRIBUTOR_CATEGORY_ADJUSTMENTS, category)
        volume = _round(partner.monthly_capacity * float(multiplier))
        mid = _round(volume * 0.5)
        return DemandEstimate(
            low=_round(volume * 0.3),
            mid=mid,
            high=volume,
            confidence=ConfidenceLevel.MEDIUM,
            confidence_score=50,
            absorption_capacity_per_month=_round(mid * 0.20),
            signals=(f"{partner.display_name} capacity estimate",),
            methodology="Distributor capacity estimate",
        )

    def _downgrade_mock(self, estimate: DemandEstimate) -> DemandEstimate:
        """Force low confidence for estimates built on sample data."""
        signals = tuple(s for s in estimate.signals if "high confidence" not in s.lower())
        return DemandEstimate(
            low=estimate.low,
            mid=estimate.mid,
            high=estimate.high,
            confidence=ConfidenceLevel.LOW,
            confidence_score=min(estimate.confidence_score, 25),
            absorption_capacity_per_month=estimate.absorption_capacity_per_month,
            signals=signals + (MOCK_SIGNAL,),
            methodology=estimate.methodology,
        )
