"""Channel selling fee calculation for Deal Engine."""

from __future__ import annotations

from decimal import Decimal
from typing import Callable

from .defaults import (
    DISTRIBUTOR_CATEGORY_ADJUSTMENTS,
    RETAILER_CATEGORY_ADJUSTMENTS,
    category_adjustment,
    marketplace_currency,
)
from .models import (
    AssumptionSet,
    ChannelType,
    FeeBreakdown,
    FeeRule,
    MarketSnapshot,
    PartnerProfile,
    to_money,
)

D = Decimal

# Referral rates by marketplace and category (2025 schedules)
REFERRAL_RATES: dict[str, dict[str, Decimal]] = {
    "US": {
        "Electronics": D("0.08"),
        "Consumer Electronics": D("0.08"),
        "Computers": D("0.08"),
        "Camera & Photo": D("0.08"),
        "Cell Phones & Accessories": D("0.08"),
        "Jewelry": D("0.20"),
        "Watches": D("0.16"),
        "Amazon Device Accessories": D("0.45"),
        "default": D("0.15"),
    },
    "UK": {
        "Electronics": D("0.08"),
        "Computers": D("0.08"),
        "Jewellery": D("0.20"),
        "Jewelry": D("0.20"),
        "default": D("0.15"),
    },
}
for _marketplace in ("DE", "FR", "IT", "ES", "AU"):
    REFERRAL_RATES[_marketplace] = {
        "Electronics": D("0.08"),
        "Computers": D("0.08"),
        "Jewelry": D("0.20"),
        "default": D("0.15"),
    }

# US apparel referral tiers: (max price, rate)
APPAREL_TIERS = ((D("15"), D("0.05")), (D("20"), D("0.10")), (None, D("0.17")))
APPAREL_CATEGORIES = ("Apparel", "Clothing")

MEDIA_CATEGORIES = ("Books", "Music", "DVD", "Software", "Video")
CLOSING_FEES = {"US": D("1.80")}
DEFAULT_CLOSING_FEE = D("0.50")

# FBA fulfilment tiers: US in ounces, elsewhere in grams
_EU_SMALL = ((100, D("2.37")), (210, D("2.50")), (400, D("2.78")))
_EU_LARGE = (
    (400, D("3.21")), (900, D("3.51")), (1400, D("4.24")), (1900, D("4.60")), (2900, D("5.38")),
    (3900, D("5.71")), (5900, D("6.14")), (8900, D("6.60")), (12000, D("7.54")),
)
FBA_TIERS: dict[str, dict] = {
    "US": {
        "small": ((2, D("3.06")), (4, D("3.15")), (6, D("3.24")), (8, D("3.33")), (10, D("3.43")),
                  (12, D("3.53")), (14, D("3.60")), (16, D("3.87"))),
        "large": ((4, D("3.68")), (8, D("3.90")), (12, D("4.15")), (16, D("4.55")), (24, D("5.00")),
                  (32, D("5.30")), (48, D("5.70")), (80, D("6.15")), (160, D("7.05")), (320, D("7.46"))),
        "bulky_base": D("9.61"),
        "bulky_per_unit": D("0.38"),  # Per lb above the first
    },
    "UK": {
        "small": ((100, D("2.04")), (210, D("2.16")), (400, D("2.41"))),
        "large": ((400, D("2.80")), (900, D("3.05")), (1400, D("3.68")), (1900, D("3.99")),
                  (2900, D("4.66")), (3900, D("4.95")), (5900, D("5.32")), (8900, D("5.72")),
                  (12000, D("6.53"))),
        "bulky_base": D("7.78"),
        "bulky_per_unit": D("0.30"),  # Per kg above the first
    },
    "DE": {"small": _EU_SMALL, "large": _EU_LARGE, "bulky_base": D("9.07"), "bulky_per_unit": D("0.35")},
    "AU": {
        "small": ((100, D("3.20")), (210, D("3.40")), (400, D("3.80"))),
        "large": ((400, D("4.50")), (900, D("5.00")), (1400, D("5.80")), (1900, D("6.30")),
                  (2900, D("7.20")), (3900, D("7.80")), (5900, D("8.40")), (8900, D("9.00")),
                  (12000, D("10.30"))),
        "bulky_base": D("12.50"),
        "bulky_per_unit": D("0.45"),
    },
}
for _marketplace in ("FR", "IT", "ES"):
    FBA_TIERS[_marketplace] = FBA_TIERS["DE"]

KG_TO_OZ = D("35.274")
DEFAULT_WEIGHT_KG = D("0.5")


class ChannelDataError(ValueError):
    """Raised when a snapshot cannot be priced for its channel."""

    pass


def referral_rate(marketplace: str, category: str | None, sell_price: Decimal) -> Decimal:
    """Get the marketplace referral rate for a category."""
    rates = REFERRAL_RATES.get(marketplace, REFERRAL_RATES["US"])
    if category:
        if marketplace == "US" and category in APPAREL_CATEGORIES:
            for max_price, rate in APPAREL_TIERS:
                if max_price is None or sell_price <= max_price:
                    return rate
        if category in rates:
            return rates[category]
    return rates["default"]


def fba_fee(marketplace: str, weight_kg: Decimal | None) -> Decimal:
    """Get the FBA fulfilment fee from the weight-based size tiers."""
    weight_kg = weight_kg if weight_kg and weight_kg > 0 else DEFAULT_WEIGHT_KG
    tiers = FBA_TIERS.get(marketplace, FBA_TIERS["US"])
    if marketplace in FBA_TIERS and marketplace != "US":
        weight = weight_kg * 1000
        unit_weight = weight_kg
    else:
        weight = weight_kg * KG_TO_OZ
        unit_weight = weight / 16  # lb

    for tier in ("small", "large"):
        for max_weight, fee in tiers[tier]:
            if weight <= max_weight:
                return fee
    extra_units = max(unit_weight - 1, D("0"))
    return to_money(tiers["bulky_base"] + extra_units * tiers["bulky_per_unit"])


def closing_fee(marketplace: str, category: str | None) -> Decimal:
    """Get the per-item closing fee (media categories only)."""
    if category in MEDIA_CATEGORIES:
        return CLOSING_FEES.get(marketplace, DEFAULT_CLOSING_FEE)
    return D("0")


def extract_vat(gross_price: Decimal, vat_rate: Decimal) -> Decimal:
    """Get the VAT contained in a VAT-inclusive price."""
    if vat_rate <= 0:
        return D("0")
    return to_money(gross_price - gross_price / (1 + vat_rate))


class FeeCalculator:
    """Computes channel fees and net proceeds, one function per channel type."""

    def __init__(self, assumptions: AssumptionSet) -> None:
        """Initialize with the effective assumptions."""
        self.assumptions = assumptions
        self._handlers: dict[ChannelType, Callable[..., FeeBreakdown]] = {
            ChannelType.AMAZON: self._amazon_fees,
            ChannelType.EBAY: self._ebay_fees,
            ChannelType.RETAILER: self._retailer_fees,
            ChannelType.DISTRIBUTOR: self._distributor_fees,
        }

    def get_rule(self, snapshot: MarketSnapshot) -> FeeRule:
        """Get the fee schedule for a snapshot's marketplace and channel."""
        rule = self.assumptions.fee_rule(snapshot.marketplace, snapshot.channel)
        if rule is not None:
            return rule
        return FeeRule(
            marketplace=snapshot.marketplace,
            channel=snapshot.channel,
            currency=snapshot.currency or marketplace_currency(snapshot.marketplace),
            vat_rate=self.assumptions.vat_rate(snapshot.marketplace),
            deduct_vat=snapshot.channel == ChannelType.AMAZON,
        )

    def get_partner(self, snapshot: MarketSnapshot) -> PartnerProfile:
        """Get the retailer or distributor profile for a snapshot."""
        partner = self.assumptions.partners.get(snapshot.partner)
        if partner is None or partner.channel != snapshot.channel:
            raise ChannelDataError(f"Unknown {snapshot.channel.value} partner: {snapshot.partner!r}")
        return partner

    def calculate(
        self,
        snapshot: MarketSnapshot,
        product_category: str | None = None,
        weight_kg: Decimal | None = None,
        reclaim_vat: bool = False,
    ) -> FeeBreakdown:
        """Calculate fees, VAT and net proceeds for a channel snapshot."""
        if snapshot.sell_price is None or snapshot.sell_price <= 0:
            raise ChannelDataError(f"No usable price for {snapshot.key}")
        rule = self.get_rule(snapshot)
        if snapshot.currency and snapshot.currency.upper() != rule.currency:
            raise ChannelDataError(
                f"{snapshot.key} priced in {snapshot.currency}, expected {rule.currency}"
            )
        category = product_category or snapshot.sales_rank_category
        return self._handlers[snapshot.channel](snapshot, rule, category, weight_kg, reclaim_vat)

    def _finish(
        self,
        rule: FeeRule,
        sell_price: Decimal,
        reclaim_vat: bool,
        **fees: Decimal,
    ) -> FeeBreakdown:
        """Total the fees, apply VAT and compute net proceeds."""
        fees = {name: to_money(value) for name, value in fees.items()}
        total_fees = sum(fees.values(), D("0"))
        vat = extract_vat(sell_price, rule.vat_rate)
        vat_deducted = vat if (rule.deduct_vat or reclaim_vat) else D("0")
        return FeeBreakdown(
            sell_price=sell_price,
            currency=rule.currency,
            total_fees=total_fees,
            vat=vat,
            vat_rate=rule.vat_rate,
            vat_deducted=vat_deducted,
            net_proceeds=sell_price - total_fees - vat_deducted,
            fee_schedule_version=rule.fee_schedule_version,
            **fees,
        )

    def _amazon_fees(
        self,
        snapshot: MarketSnapshot,
        rule: FeeRule,
        category: str | None,
        weight_kg: Decimal | None,
        reclaim_vat: bool,
    ) -> FeeBreakdown:
        sell_price = to_money(snapshot.sell_price)
        rate = rule.referral_rate
        if rate is None:
            rate = referral_rate(snapshot.marketplace, category, sell_price)
        return self._finish(
            rule,
            sell_price,
            reclaim_vat,
            referral_fee=sell_price * rate,
            fulfillment_fee=rule.fba_fee if rule.fba_fee is not None else fba_fee(snapshot.marketplace, weight_kg),
            closing_fee=rule.closing_fee if rule.closing_fee is not None else closing_fee(snapshot.marketplace, category),
        )

    def _ebay_fees(
        self,
        snapshot: MarketSnapshot,
        rule: FeeRule,
        category: str | None,
        weight_kg: Decimal | None,
        reclaim_vat: bool,
    ) -> FeeBreakdown:
        sell_price = to_money(snapshot.sell_price)
        # Final value fee includes payment processing
        return self._finish(
            rule,
            sell_price,
            reclaim_vat,
            final_value_fee=sell_price * rule.final_value_rate,
            per_order_fee=rule.per_order_fee,
        )

    def _retailer_fees(
        self,
        snapshot: MarketSnapshot,
        rule: FeeRule,
        category: str | None,
        weight_kg: Decimal | None,
        reclaim_vat: bool,
    ) -> FeeBreakdown:
        partner = self.get_partner(snapshot)
        price_adjust, _ = category_adjustment(RETAILER_CATEGORY_ADJUSTMENTS, category)
        sell_price = to_money(snapshot.sell_price * partner.price_multiplier * price_adjust)
        commission_rate = rule.referral_rate if rule.referral_rate is not None else partner.commission_rate
        payment_rate = (
            rule.payment_fee_rate if rule.payment_fee_rate is not None else partner.payment_fee_rate
        )
        return self._finish(
            rule,
            sell_price,
            reclaim_vat,
            commission_fee=sell_price * commission_rate,
            payment_fee=sell_price * payment_rate,
        )

    def _distributor_fees(
        self,
        snapshot: MarketSnapshot,
        rule: FeeRule,
        category: str | None,
        weight_kg: Decimal | None,
        reclaim_vat: bool,
    ) -> FeeBreakdown:
        # The distributor buys the stock outright, so there are no selling fees
        partner = self.get_partner(snapshot)
        price_adjust, _ = category_adjustment(DISTRIBUTOR_CATEGORY_ADJUSTMENTS, category)
        proceeds = to_money(snapshot.sell_price * partner.price_multiplier * price_adjust)
        return self._finish(rule, proceeds, reclaim_vat)
