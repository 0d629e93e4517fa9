"""Import duty calculation for Deal Engine."""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal

from .defaults import DUTY_CATEGORY_MAPPING, HS_CHAPTER_CATEGORIES, resolve_origin
from .models import AssumptionSet, DutyMethod, to_money


@dataclass(frozen=True)
class DutyQuote:
    """Result of a per-unit duty calculation."""

    method: DutyMethod
    category: str
    rate: Decimal
    amount: Decimal
    hs_code: str | None = None
    notes: str = ""


def duty_category_for(product_category: str | None, hs_code: str | None = None) -> str:
    """Map a product category name (or HS chapter) onto a duty category."""
    if product_category:
        if product_category in DUTY_CATEGORY_MAPPING:
            return DUTY_CATEGORY_MAPPING[product_category]
        lowered = product_category.lower()
        for name, category in DUTY_CATEGORY_MAPPING.items():
            if name.lower() == lowered:
                return category
        slug = re.sub(r"[^a-z0-9]+", "_", lowered).strip("_")
        if slug in DUTY_CATEGORY_MAPPING.values():
            return slug
    if hs_code:
        chapter = re.sub(r"\D", "", hs_code)[:2]
        if chapter in HS_CHAPTER_CATEGORIES:
            return HS_CHAPTER_CATEGORIES[chapter]
    return "default"


class DutyCalculator:
    """Calculates import duty using the route's duty rule."""

    FALLBACK_ORIGIN = "CN"
    FALLBACK_DESTINATION = "US"

    def __init__(self, assumptions: AssumptionSet) -> None:
        """Initialize with the effective assumptions."""
        self.assumptions = assumptions

    def route(self, origin: str, destination: str) -> tuple[str, str]:
        """Pick the duty table route: unknown origins use CN, unknown destinations use US."""
        table = self.assumptions.duty
        route_origin = resolve_origin(origin, table, destination)
        if (route_origin, destination) in table:
            return route_origin, destination
        if route_origin not in {o for o, _ in table}:
            route_origin = self.FALLBACK_ORIGIN
        if (route_origin, destination) not in table:
            destination = self.FALLBACK_DESTINATION
        return route_origin, destination

    def calculate(
        self,
        buy_price: Decimal,
        origin: str,
        destination: str,
        product_category: str | None = None,
        hs_code: str | None = None,
    ) -> DutyQuote:
        """Calculate per-unit duty on the buy price."""
        route_origin, route_destination = self.route(origin, destination.upper())
        rule = self.assumptions.duty_rule(route_origin, route_destination)
        destination = route_destination

        if rule.method == DutyMethod.DIRECT and rule.amount is not None:
            rate = rule.amount / buy_price if buy_price > 0 else Decimal("0")
            return DutyQuote(
                method=DutyMethod.DIRECT,
                category=duty_category_for(product_category, hs_code),
                rate=rate,
                amount=to_money(rule.amount),
                hs_code=rule.hs_code,
                notes="Fixed duty amount",
            )

        if rule.method == DutyMethod.HSCODE:
            code = rule.hs_code or hs_code
            category = duty_category_for(None, code)
            if rule.rate is not None:
                rate = rule.rate
                notes = f"HS {code} override rate"
            else:
                rate = rule.category_rate(category)
                notes = f"HS chapter {category}"
            return DutyQuote(
                method=DutyMethod.HSCODE,
                category=category,
                rate=rate,
                amount=to_money(buy_price * rate),
                hs_code=code,
                notes=notes,
            )

        category = duty_category_for(product_category, hs_code)
        rate = rule.category_rate(category)
        return DutyQuote(
            method=DutyMethod.CATEGORY,
            category=category,
            rate=rate,
            amount=to_money(buy_price * rate),
            hs_code=hs_code,
            notes=f"{route_origin}-{destination} {category} rate",
        )
