"""Versioned default assumption tables for Deal Engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping

from .models import (
    AssumptionSet,
    ChannelType,
    DutyRule,
    FeeRule,
    PartnerProfile,
    ShippingMethod,
    ShippingRule,
)

ASSUMPTIONS_VERSION = "1.0.0"
ASSUMPTIONS_EFFECTIVE_DATE = "2025-01-01"

D = Decimal


def _rules(sea: tuple, air: tuple, express: tuple) -> dict[ShippingMethod, ShippingRule]:
    """Build a method -> rule map from (per_kg, min_charge, transit_days) tuples."""
    return {
        ShippingMethod.SEA: ShippingRule(D(sea[0]), D(sea[1]), sea[2]),
        ShippingMethod.AIR: ShippingRule(D(air[0]), D(air[1]), air[2]),
        ShippingMethod.EXPRESS: ShippingRule(D(express[0]), D(express[1]), express[2]),
    }


# Freight per kg, minimum charge and transit days, 2024-2025 carrier averages
SHIPPING_RATES: dict[tuple[str, str], dict[ShippingMethod, ShippingRule]] = {
    ("CN", "US"): _rules(("2.50", "150", 30), ("6.00", "80", 7), ("12.00", "30", 3)),
    ("CN", "UK"): _rules(("3.00", "180", 35), ("7.00", "90", 7), ("14.00", "35", 4)),
    ("CN", "DE"): _rules(("2.80", "170", 35), ("6.50", "85", 7), ("13.00", "32", 4)),
    ("CN", "FR"): _rules(("2.90", "175", 36), ("6.80", "88", 7), ("13.50", "33", 4)),
    ("CN", "IT"): _rules(("3.00", "180", 38), ("7.00", "90", 8), ("14.00", "35", 5)),
    ("CN", "AU"): _rules(("2.20", "140", 25), ("5.50", "70", 5), ("11.00", "28", 3)),
    ("EU", "US"): _rules(("2.00", "120", 20), ("5.00", "60", 5), ("10.00", "25", 2)),
    ("EU", "UK"): _rules(("1.50", "50", 7), ("3.50", "40", 2), ("7.00", "20", 1)),
    ("EU", "DE"): _rules(("1.00", "30", 3), ("2.50", "25", 1), ("5.00", "15", 1)),
    ("EU", "FR"): _rules(("1.20", "35", 3), ("2.80", "28", 1), ("5.50", "16", 1)),
    ("EU", "IT"): _rules(("1.30", "38", 4), ("3.00", "30", 2), ("6.00", "18", 1)),
    ("EU", "AU"): _rules(("3.50", "200", 35), ("8.00", "100", 10), ("16.00", "40", 5)),
    ("UK", "US"): _rules(("2.20", "100", 18), ("5.50", "55", 4), ("11.00", "28", 2)),
    ("UK", "DE"): _rules(("1.80", "60", 5), ("4.00", "45", 2), ("8.00", "22", 1)),
    ("UK", "FR"): _rules(("1.60", "55", 4), ("3.50", "40", 2), ("7.00", "20", 1)),
    ("UK", "IT"): _rules(("2.00", "65", 6), ("4.50", "50", 3), ("9.00", "25", 2)),
    ("UK", "AU"): _rules(("3.00", "180", 30), ("7.50", "95", 12), ("15.00", "38", 4)),
    ("US", "UK"): _rules(("2.50", "110", 20), ("6.00", "65", 4), ("12.00", "30", 2)),
    ("US", "DE"): _rules(("2.50", "115", 22), ("6.00", "70", 5), ("12.00", "32", 3)),
    ("US", "FR"): _rules(("2.60", "118", 22), ("6.20", "72", 5), ("12.50", "33", 3)),
    ("US", "IT"): _rules(("2.70", "120", 24), ("6.50", "75", 6), ("13.00", "35", 3)),
    ("US", "AU"): _rules(("2.00", "130", 25), ("5.00", "60", 8), ("10.00", "28", 3)),
}

DEFAULT_SHIPPING = _rules(("3.00", "150", 30), ("7.00", "80", 7), ("15.00", "40", 5))

# Supplier regions that use another region's freight table
ORIGIN_ALIASES = {"DE": "EU", "FR": "EU", "IT": "EU", "ES": "EU", "NL": "EU", "GB": "UK"}

_CN_EU_DUTY = {
    "electronics": "0.00", "computers": "0.00", "video_games": "0.00", "toys_games": "0.047",
    "clothing_apparel": "0.12", "footwear": "0.08", "furniture": "0.00", "home_garden": "0.04",
    "sports_outdoors": "0.04", "health_beauty": "0.00", "kitchen": "0.03", "pet_supplies": "0.00",
    "automotive": "0.04", "jewelry": "0.025", "watches": "0.045", "books_media": "0.00",
    "musical_instruments": "0.035", "default": "0.04",
}
_EU_EXPORT_DUTY = {
    "US": {"electronics": "0.00", "toys_games": "0.00", "clothing_apparel": "0.08", "default": "0.03"},
    "UK": {"default": "0.00"},
    "AU": {"electronics": "0.00", "toys_games": "0.00", "clothing_apparel": "0.05", "default": "0.05"},
}

# Duty rates by origin -> destination -> duty category
DUTY_RATES: dict[tuple[str, str], dict[str, str]] = {
    ("CN", "US"): {
        "electronics": "0.00", "computers": "0.00", "video_games": "0.00", "toys_games": "0.00",
        "clothing_apparel": "0.12", "footwear": "0.20", "furniture": "0.00", "home_garden": "0.05",
        "sports_outdoors": "0.04", "health_beauty": "0.00", "kitchen": "0.03", "pet_supplies": "0.00",
        "automotive": "0.025", "jewelry": "0.065", "watches": "0.065", "books_media": "0.00",
        "musical_instruments": "0.045", "default": "0.05",
    },
    ("CN", "UK"): _CN_EU_DUTY,
    ("CN", "DE"): _CN_EU_DUTY,
    ("CN", "FR"): _CN_EU_DUTY,
    ("CN", "IT"): _CN_EU_DUTY,
    ("CN", "AU"): {
        "electronics": "0.00", "computers": "0.00", "video_games": "0.00", "toys_games": "0.00",
        "clothing_apparel": "0.05", "footwear": "0.10", "furniture": "0.00", "home_garden": "0.05",
        "sports_outdoors": "0.05", "health_beauty": "0.00", "kitchen": "0.05", "pet_supplies": "0.00",
        "automotive": "0.05", "jewelry": "0.05", "watches": "0.05", "books_media": "0.00",
        "musical_instruments": "0.05", "default": "0.05",
    },
    ("UK", "US"): {"electronics": "0.00", "toys_games": "0.00", "default": "0.03"},
    ("UK", "DE"): {"default": "0.00"},
    ("UK", "FR"): {"default": "0.00"},
    ("UK", "IT"): {"default": "0.00"},
    ("UK", "AU"): {"electronics": "0.00", "toys_games": "0.00", "default": "0.05"},
    ("US", "UK"): {"electronics": "0.00", "toys_games": "0.00", "default": "0.03"},
    ("US", "DE"): {"electronics": "0.00", "toys_games": "0.00", "default": "0.03"},
    ("US", "FR"): {"electronics": "0.00", "toys_games": "0.00", "default": "0.03"},
    ("US", "IT"): {"electronics": "0.00", "toys_games": "0.00", "default": "0.03"},
    ("US", "AU"): {"electronics": "0.00", "toys_games": "0.00", "default": "0.05"},
}
for _origin in ("EU", "DE", "FR", "IT", "ES"):
    for _dest, _rates in _EU_EXPORT_DUTY.items():
        DUTY_RATES[(_origin, _dest)] = _rates
    for _dest in ("DE", "FR", "IT", "ES"):
        if _dest != _origin:
            # Intra-EU trade
            DUTY_RATES[(_origin, _dest)] = {"default": "0.00"}

DEFAULT_DUTY_RATE = D("0.05")

# Product category name -> duty category
DUTY_CATEGORY_MAPPING = {
    "Video Games": "video_games",
    "Electronics": "electronics",
    "Computers & Accessories": "computers",
    "Computers": "computers",
    "Toys & Games": "toys_games",
    "Toys": "toys_games",
    "Clothing, Shoes & Jewelry": "clothing_apparel",
    "Clothing": "clothing_apparel",
    "Apparel": "clothing_apparel",
    "Shoes": "footwear",
    "Home & Kitchen": "kitchen",
    "Garden & Outdoor": "home_garden",
    "Sports & Outdoors": "sports_outdoors",
    "Health & Beauty": "health_beauty",
    "Pet Supplies": "pet_supplies",
    "Automotive": "automotive",
    "Jewelry": "jewelry",
    "Watches": "watches",
    "Books": "books_media",
    "Musical Instruments": "musical_instruments",
    "Furniture": "furniture",
}

# HS chapter (first two digits) -> duty category
HS_CHAPTER_CATEGORIES = {
    "49": "books_media",
    "61": "clothing_apparel",
    "62": "clothing_apparel",
    "64": "footwear",
    "71": "jewelry",
    "84": "computers",
    "85": "electronics",
    "87": "automotive",
    "91": "watches",
    "92": "musical_instruments",
    "94": "furniture",
    "95": "toys_games",
}

# Destination VAT/GST rates
VAT_RATES = {
    "US": D("0"),
    "UK": D("0.20"),
    "DE": D("0.19"),
    "FR": D("0.20"),
    "IT": D("0.22"),
    "ES": D("0.21"),
    "AU": D("0.10"),
    "CA": D("0"),
    "JP": D("0.10"),
}

MARKETPLACE_CURRENCIES = {
    "US": "USD",
    "UK": "GBP",
    "DE": "EUR",
    "FR": "EUR",
    "IT": "EUR",
    "ES": "EUR",
    "NL": "EUR",
    "CA": "CAD",
    "AU": "AUD",
    "JP": "JPY",
}

FEE_MARKETPLACES = ("US", "UK", "DE", "FR", "IT", "ES", "AU")

PARTNER_PROFILES: dict[str, PartnerProfile] = {
    "walmart": PartnerProfile(
        name="walmart",
        display_name="Walmart",
        channel=ChannelType.RETAILER,
        price_multiplier=D("0.93"),
        commission_rate=D("0.15"),
        payment_fee_rate=D("0.043"),
    ),
    "target": PartnerProfile(
        name="target",
        display_name="Target",
        channel=ChannelType.RETAILER,
        price_multiplier=D("0.96"),
        commission_rate=D("0.15"),
        payment_fee_rate=D("0.029"),
    ),
    "ingram_micro": PartnerProfile(
        name="ingram_micro",
        display_name="Ingram Micro",
        channel=ChannelType.DISTRIBUTOR,
        price_multiplier=D("0.55"),
        minimum_order=500,
        monthly_capacity=10000,
        categories=("Electronics", "Video Games", "Computers"),
    ),
    "alliance_entertainment": PartnerProfile(
        name="alliance_entertainment",
        display_name="Alliance Entertainment",
        channel=ChannelType.DISTRIBUTOR,
        price_multiplier=D("0.58"),
        minimum_order=1000,
        monthly_capacity=20000,
        categories=("Video Games", "Toys", "Media"),
    ),
}


def _default_fee_rules() -> dict[tuple[str, ChannelType], FeeRule]:
    """Build the default fee schedule for every marketplace and channel."""
    rules: dict[tuple[str, ChannelType], FeeRule] = {}
    for marketplace in FEE_MARKETPLACES:
        currency = MARKETPLACE_CURRENCIES[marketplace]
        vat_rate = VAT_RATES[marketplace]
        rules[(marketplace, ChannelType.AMAZON)] = FeeRule(
            marketplace=marketplace,
            channel=ChannelType.AMAZON,
            currency=currency,
            vat_rate=vat_rate,
            deduct_vat=True,
        )
        rules[(marketplace, ChannelType.EBAY)] = FeeRule(
            marketplace=marketplace,
            channel=ChannelType.EBAY,
            currency=currency,
            vat_rate=vat_rate,
            deduct_vat=False,
            per_order_fee=D("0.35") if currency == "EUR" else D("0.30"),
        )
    for channel in (ChannelType.RETAILER, ChannelType.DISTRIBUTOR):
        rules[("US", channel)] = FeeRule(
            marketplace="US",
            channel=channel,
            currency="USD",
            vat_rate=VAT_RATES["US"],
            deduct_vat=False,
        )
    return rules


@dataclass(frozen=True)
class AssumptionDefaults:
    """Immutable, versioned system defaults passed into each evaluation."""

    version: str = ASSUMPTIONS_VERSION
    effective_date: str = ASSUMPTIONS_EFFECTIVE_DATE
    shipping: Mapping = field(default_factory=lambda: MappingProxyType(SHIPPING_RATES))
    default_shipping: Mapping = field(default_factory=lambda: MappingProxyType(DEFAULT_SHIPPING))
    duty: Mapping = field(
        default_factory=lambda: MappingProxyType(
            {
                route: DutyRule(category_rates=MappingProxyType({k: D(v) for k, v in rates.items()}))
                for route, rates in DUTY_RATES.items()
            }
        )
    )
    default_duty: DutyRule = field(
        default_factory=lambda: DutyRule(
            category_rates=MappingProxyType({"default": DEFAULT_DUTY_RATE})
        )
    )
    fees: Mapping = field(default_factory=lambda: MappingProxyType(_default_fee_rules()))
    partners: Mapping = field(default_factory=lambda: MappingProxyType(PARTNER_PROFILES))
    vat_rates: Mapping = field(default_factory=lambda: MappingProxyType(VAT_RATES))

    def to_assumption_set(self) -> AssumptionSet:
        """Create an assumption set with no overrides applied."""
        return AssumptionSet(
            shipping=self.shipping,
            duty=self.duty,
            fees=self.fees,
            partners=self.partners,
            default_shipping=self.default_shipping,
            default_duty=self.default_duty,
            vat_rates=self.vat_rates,
            version=self.version,
            effective_date=self.effective_date,
        )


def resolve_origin(origin: str, table: Mapping[tuple[str, str], object], destination: str) -> str:
    """Map a supplier region onto the origin key used by a route table."""
    origin = origin.upper()
    if (origin, destination) in table:
        return origin
    return ORIGIN_ALIASES.get(origin, origin)


def marketplace_currency(marketplace: str) -> str:
    """Get the selling currency for a marketplace."""
    return MARKETPLACE_CURRENCIES.get(marketplace.upper(), "USD")


# Category -> (price adjust, monthly demand multiplier)
RETAILER_CATEGORY_ADJUSTMENTS = {
    "Video Games": (D("1.0"), D("0.3")),
    "Electronics": (D("0.98"), D("0.4")),
    "Toys": (D("1.02"), D("0.5")),
    "Home": (D("0.95"), D("0.35")),
    "default": (D("1.0"), D("0.3")),
}

DISTRIBUTOR_CATEGORY_ADJUSTMENTS = {
    "Video Games": (D("1.0"), D("1.0")),
    "Electronics": (D("0.95"), D("0.8")),
    "Toys": (D("1.05"), D("1.2")),
    "Media": (D("0.90"), D("0.6")),
    "default": (D("1.0"), D("0.5")),
}


def category_adjustment(
    table: Mapping[str, tuple[Decimal, Decimal]], category: str | None
) -> tuple[Decimal, Decimal]:
    """Look up a category adjustment by exact or partial name match."""
    if category:
        if category in table:
            return table[category]
        lowered = category.lower()
        for name, adjustment in table.items():
            if name != "default" and name.lower() in lowered:
                return adjustment
    return table["default"]
