"""Core data models for Deal Engine."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

CENT = Decimal("0.01")


def to_money(value: Decimal | int | float | str) -> Decimal:
    """Quantize a value to cents using half-up rounding."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Any, field_name: str = "value") -> Decimal:
    """Convert an input value to Decimal, rejecting non-numeric input."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be numeric, got {value!r}")
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"{field_name} must be numeric, got {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"{field_name} must be finite, got {value!r}")
    return result


class LookupEnum(str, Enum):
    """String enum with case-insensitive lookup."""

    @classmethod
    def from_string(cls, value: str):
        """Convert string to enum member."""
        value_lower = str(value).strip().lower()
        for member in cls:
            if member.value.lower() == value_lower or member.name.lower() == value_lower:
                return member
        raise ValueError(f"Unknown {cls.__name__}: {value}")

    @classmethod
    def values(cls) -> list[str]:
        """Get list of enum values."""
        return [m.value for m in cls]


class ChannelType(LookupEnum):
    """Sales channel variants."""

    AMAZON = "amazon"
    EBAY = "ebay"
    RETAILER = "retailer"
    DISTRIBUTOR = "distributor"


class DataSource(LookupEnum):
    """Origin of a market snapshot."""

    LIVE = "live"
    MOCK = "mock"
    ESTIMATED = "estimated"


class ShippingMethod(LookupEnum):
    """Freight method."""

    SEA = "sea"
    AIR = "air"
    EXPRESS = "express"


class DutyMethod(LookupEnum):
    """How import duty is determined."""

    CATEGORY = "category"
    HSCODE = "hscode"
    DIRECT = "direct"


class Recommendation(LookupEnum):
    """Per-channel recommendation."""

    SELL = "Sell"
    CONSIDER = "Consider"  # Sell with caution
    AVOID = "Avoid"

    @property
    def is_sellable(self) -> bool:
        """Whether the channel may receive allocated inventory."""
        return self in (Recommendation.SELL, Recommendation.CONSIDER)


class ConfidenceLevel(LookupEnum):
    """Demand confidence band."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class Decision(LookupEnum):
    """Overall deal decision."""

    BUY = "Buy"
    RENEGOTIATE = "Renegotiate"
    SOURCE_ELSEWHERE = "Source Elsewhere"
    PASS = "Pass"


class FxSource(LookupEnum):
    """Where an exchange rate came from."""

    LIVE = "live"
    FALLBACK = "fallback"


class ComplianceSeverity(LookupEnum):
    """Severity of a selling restriction."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ==================== Inputs ====================


@dataclass(frozen=True)
class PriceHistory:
    """30-day price history summary for a listing."""

    trend: str = "stable"  # "stable", "rising", "declining"
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    avg_price: Decimal | None = None


@dataclass(frozen=True)
class MarketSnapshot:
    """Raw per-channel market data for one product."""

    channel: ChannelType
    marketplace: str
    sell_price: Decimal
    currency: str
    partner: str = ""  # Retailer or distributor id
    sales_rank: int | None = None
    sales_rank_category: str | None = None
    active_listings: int | None = None
    sold_last_90_days: int | None = None
    fba_seller_count: int | None = None
    price_history: PriceHistory | None = None
    data_source: DataSource = DataSource.LIVE

    @property
    def key(self) -> str:
        """Unique channel key, e.g. ``amazon-UK`` or ``walmart-US``."""
        return f"{self.partner or self.channel.value}-{self.marketplace}"


@dataclass
class DealRequest:
    """Purchase terms for a single deal evaluation."""

    ean: str
    quantity: int
    buy_price: Decimal
    currency: str = "USD"
    supplier_region: str = "CN"
    hs_code: str | None = None
    product_category: str | None = None
    listing_prices: dict[str, Decimal] = field(default_factory=dict)
    assumption_overrides: dict[str, Any] | None = None
    weight_kg: Decimal | None = None
    shipping_method: ShippingMethod = ShippingMethod.AIR
    reclaim_vat: bool = False
    brand: str | None = None
    title: str | None = None

    def __post_init__(self) -> None:
        """Normalize codes to upper case."""
        self.currency = self.currency.upper()
        self.supplier_region = self.supplier_region.upper()
        self.listing_prices = {k.upper(): v for k, v in self.listing_prices.items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DealRequest":
        """Build a request from a camelCase or snake_case mapping."""

        def pick(*names: str, default: Any = None) -> Any:
            for name in names:
                if name in data and data[name] is not None:
                    return data[name]
            return default

        weight = pick("weightKg", "weight_kg")
        method = pick("shippingMethod", "shipping_method", default="air")
        listing_prices = pick("listingPrices", "listing_prices", default={})
        quantity = pick("quantity", default=0)
        if isinstance(quantity, float) and not quantity.is_integer():
            raise ValueError(f"quantity must be a whole number, got {quantity!r}")

        return cls(
            ean=str(pick("ean", default="")).strip(),
            quantity=int(quantity),
            buy_price=to_decimal(pick("buyPrice", "buy_price", default=0), "buyPrice"),
            currency=str(pick("currency", default="USD")),
            supplier_region=str(pick("supplierRegion", "supplier_region", default="CN")),
            hs_code=pick("hsCode", "hs_code"),
            product_category=pick("productCategory", "product_category"),
            listing_prices={
                str(k): to_decimal(v, f"listingPrices.{k}") for k, v in listing_prices.items()
            },
            assumption_overrides=pick("assumptionOverrides", "assumption_overrides"),
            weight_kg=to_decimal(weight, "weightKg") if weight is not None else None,
            shipping_method=ShippingMethod.from_string(method),
            reclaim_vat=bool(pick("reclaimVat", "reclaim_vat", default=False)),
            brand=pick("brand"),
            title=pick("title", "productTitle", "product_title"),
        )


# ==================== Assumptions ====================


@dataclass(frozen=True)
class ShippingRule:
    """Freight rate for one route and method."""

    rate_per_kg: Decimal
    min_charge: Decimal
    transit_days: int


@dataclass(frozen=True)
class DutyRule:
    """Import duty rule for one route."""

    category_rates: Mapping[str, Decimal]
    method: DutyMethod = DutyMethod.CATEGORY
    rate: Decimal | None = None
    amount: Decimal | None = None
    hs_code: str | None = None

    def category_rate(self, duty_category: str) -> Decimal:
        """Get the rate for a duty category, or the route default."""
        if duty_category in self.category_rates:
            return self.category_rates[duty_category]
        return self.category_rates.get("default", Decimal("0.05"))


@dataclass(frozen=True)
class FeeRule:
    """Selling fee schedule for one marketplace and channel."""

    marketplace: str
    channel: ChannelType
    currency: str
    vat_rate: Decimal
    deduct_vat: bool
    referral_rate: Decimal | None = None  # None means use category table
    fba_fee: Decimal | None = None  # None means use size tier table
    closing_fee: Decimal | None = None  # None means media rule
    final_value_rate: Decimal = Decimal("0.1325")
    per_order_fee: Decimal = Decimal("0.30")
    payment_fee_rate: Decimal | None = None
    fee_schedule_version: str = "2025-01"


@dataclass(frozen=True)
class PartnerProfile:
    """Retailer or distributor commercial terms."""

    name: str
    display_name: str
    channel: ChannelType
    price_multiplier: Decimal = Decimal("1")  # Retail price vs reference, or distributor buy %
    commission_rate: Decimal = Decimal("0")
    payment_fee_rate: Decimal = Decimal("0")
    minimum_order: int = 0
    monthly_capacity: int = 0
    categories: tuple[str, ...] = ()


@dataclass(frozen=True)
class OverrideRecord:
    """Audit entry for one overridden assumption field."""

    field: str
    old_value: str | None
    new_value: str
    source: str = "override"
    note: str = ""


RouteKey = tuple[str, str]
MarketplaceKey = tuple[str, ChannelType]


@dataclass(frozen=True)
class AssumptionSet:
    """Effective assumptions for one evaluation. Never mutated."""

    shipping: Mapping[RouteKey, Mapping[ShippingMethod, ShippingRule]]
    duty: Mapping[RouteKey, DutyRule]
    fees: Mapping[MarketplaceKey, FeeRule]
    partners: Mapping[str, PartnerProfile]
    default_shipping: Mapping[ShippingMethod, ShippingRule]
    default_duty: DutyRule
    vat_rates: Mapping[str, Decimal]
    version: str = "1.0.0"
    effective_date: str = "2025-01-01"
    overridden_fields: frozenset[str] = frozenset()
    audit: tuple[OverrideRecord, ...] = ()

    def __post_init__(self) -> None:
        """Freeze the mapping fields."""
        for name in ("shipping", "duty", "fees", "partners", "default_shipping", "vat_rates"):
            value = getattr(self, name)
            if not isinstance(value, MappingProxyType):
                object.__setattr__(self, name, MappingProxyType(dict(value)))

    def shipping_rule(
        self, origin: str, destination: str, method: ShippingMethod
    ) -> tuple[ShippingRule, bool]:
        """Get the shipping rule for a route, and whether it is route-specific."""
        rules = self.shipping.get((origin, destination))
        if rules and method in rules:
            return rules[method], True
        return self.default_shipping[method], False

    def duty_rule(self, origin: str, destination: str) -> DutyRule:
        """Get the duty rule for a route, or the generic default."""
        return self.duty.get((origin, destination), self.default_duty)

    def vat_rate(self, destination: str) -> Decimal:
        """Get the destination VAT rate."""
        return self.vat_rates.get(destination, Decimal("0"))

    def fee_rule(self, marketplace: str, channel: ChannelType) -> FeeRule | None:
        """Get the fee schedule for a marketplace and channel."""
        return self.fees.get((marketplace, channel))

    def is_overridden(self, field_key: str) -> bool:
        """Check whether a field was set by an override."""
        return field_key in self.overridden_fields


# ==================== Results ====================


@dataclass(frozen=True)
class FxQuote:
    """Exchange rate from one currency to another."""

    from_currency: str
    to_currency: str
    rate: Decimal
    timestamp: datetime
    source: FxSource = FxSource.LIVE


@dataclass(frozen=True)
class LandedCost:
    """Per-unit landed cost in the buy-side currency."""

    buy_price: Decimal
    duty: Decimal
    duty_rate: Decimal
    duty_method: DutyMethod
    duty_category: str
    shipping: Decimal
    shipping_method: ShippingMethod
    transit_days: int
    import_vat: Decimal
    import_vat_included: bool
    total: Decimal
    currency: str
    origin: str
    destination: str
    notes: tuple[str, ...] = ()


@dataclass(frozen=True)
class FeeBreakdown:
    """Selling fees and net proceeds for one channel, in the channel currency."""

    sell_price: Decimal
    currency: str
    referral_fee: Decimal = Decimal("0")
    fulfillment_fee: Decimal = Decimal("0")
    closing_fee: Decimal = Decimal("0")
    final_value_fee: Decimal = Decimal("0")
    per_order_fee: Decimal = Decimal("0")
    commission_fee: Decimal = Decimal("0")
    payment_fee: Decimal = Decimal("0")
    total_fees: Decimal = Decimal("0")
    vat: Decimal = Decimal("0")  # VAT contained in the sell price
    vat_rate: Decimal = Decimal("0")
    vat_deducted: Decimal = Decimal("0")
    net_proceeds: Decimal = Decimal("0")
    fee_schedule_version: str = "2025-01"


@dataclass(frozen=True)
class DemandEstimate:
    """Monthly sales range and absorption capacity for one channel."""

    low: int = 0
    mid: int = 0
    high: int = 0
    confidence: ConfidenceLevel = ConfidenceLevel.LOW
    confidence_score: int = 0
    absorption_capacity_per_month: int = 0
    signals: tuple[str, ...] = ()
    methodology: str = ""


@dataclass(frozen=True)
class ChannelEvaluation:
    """Derived per-channel evaluation."""

    channel: ChannelType
    marketplace: str
    partner: str
    key: str
    sell_price: Decimal
    fees: FeeBreakdown
    vat: Decimal
    net_proceeds: Decimal
    landed_cost: LandedCost
    landed_cost_converted: Decimal
    fx_rate: Decimal
    fx_source: FxSource
    net_margin: Decimal
    margin_percent: Decimal
    recommendation: Recommendation
    demand: DemandEstimate
    months_to_sell: float
    currency: str
    minimum_order: int = 0
    data_source: DataSource = DataSource.LIVE
    risk_flags: tuple[str, ...] = ()
    margin_drivers: tuple[str, ...] = ()  # Set when the margin trips the guardrail

    @property
    def total_fees(self) -> Decimal:
        """Sum of channel fees, excluding VAT."""
        return self.fees.total_fees

    @property
    def has_capacity(self) -> bool:
        """Whether the channel can absorb any units."""
        return self.demand.absorption_capacity_per_month > 0 and math.isfinite(self.months_to_sell)


@dataclass(frozen=True)
class ScoreBreakdown:
    """Deal score subscores, each 0-100."""

    margin_score: Decimal
    demand_score: Decimal
    volume_risk_score: Decimal
    reliability_score: Decimal
    months_to_sell: float
    channels_found: int


@dataclass(frozen=True)
class DealScore:
    """Overall deal score and its breakdown."""

    overall: int
    breakdown: ScoreBreakdown


@dataclass(frozen=True)
class ChannelAllocation:
    """Units placed on one channel."""

    key: str
    quantity: int
    cap: int
    margin_percent: Decimal
    months_to_sell: float
    phase: int


@dataclass(frozen=True)
class AllocationPlan:
    """Quantity split across channels plus held units."""

    total_quantity: int
    allocated: Mapping[str, int]
    hold: int
    rationale: str
    details: tuple[ChannelAllocation, ...] = ()

    def __post_init__(self) -> None:
        """Freeze the allocation map."""
        if not isinstance(self.allocated, MappingProxyType):
            object.__setattr__(self, "allocated", MappingProxyType(dict(self.allocated)))

    @property
    def allocated_quantity(self) -> int:
        """Total units placed on channels."""
        return sum(self.allocated.values())


@dataclass(frozen=True)
class NegotiationSupport:
    """Supplier negotiation targets in the buy-side currency."""

    current_buy_price: Decimal
    target_buy_price: Decimal
    walk_away_price: Decimal
    savings: Decimal
    savings_percent: Decimal
    currency: str
    reference_channel: str
    message: str


@dataclass(frozen=True)
class SourcingSuggestion:
    """Alternative sourcing region."""

    region: str
    name: str
    savings_low_percent: int
    savings_high_percent: int
    pros: str
    cons: str


@dataclass(frozen=True)
class SupplierTypeSuggestion:
    """Alternative supplier type."""

    supplier_type: str
    savings_low_percent: int
    savings_high_percent: int
    description: str


@dataclass(frozen=True)
class ComplianceFlag:
    """One selling restriction found for a product."""

    flag_type: str  # BRAND_GATED, TRANSPARENCY_REQUIRED, CATEGORY_RESTRICTED, HAZMAT_RISK
    severity: ComplianceSeverity
    title: str
    description: str
    action: str
    notes: str = ""
    matched_keywords: tuple[str, ...] = ()


@dataclass(frozen=True)
class ComplianceReport:
    """All selling restrictions for a product, with the overall risk."""

    flags: tuple[ComplianceFlag, ...] = ()
    overall_risk: ComplianceSeverity = ComplianceSeverity.LOW
    can_sell: bool = True
    can_sell_with_approval: bool = True
    summary: str = "No compliance issues detected"


@dataclass(frozen=True)
class DealEvaluation:
    """Aggregate result of one evaluation call."""

    ean: str
    quantity: int
    deal_score: DealScore
    decision: Decision
    explanation: str
    best_channel: ChannelEvaluation | None
    channel_analysis: tuple[ChannelEvaluation, ...]
    allocation: AllocationPlan
    assumptions_version: str
    overridden_fields: frozenset[str] = frozenset()
    negotiation: NegotiationSupport | None = None
    sourcing_suggestions: tuple[SourcingSuggestion, ...] = ()
    supplier_suggestions: tuple[SupplierTypeSuggestion, ...] = ()
    fx_fallback_used: bool = False
    warnings: tuple[str, ...] = ()
    compliance: ComplianceReport = field(default_factory=ComplianceReport)
    assumption_audit: tuple[OverrideRecord, ...] = ()
