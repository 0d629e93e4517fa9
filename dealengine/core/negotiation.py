"""Supplier negotiation targets and alternative sourcing suggestions."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from .models import (
    ChannelEvaluation,
    Decision,
    NegotiationSupport,
    SourcingSuggestion,
    SupplierTypeSuggestion,
    to_money,
)

if TYPE_CHECKING:
    from .config import Settings


@dataclass(frozen=True)
class SourcingRegion:
    """Reference data for one sourcing region."""

    name: str
    cost_index: Decimal  # Relative unit cost, CN = 1.00
    savings_low_percent: int
    savings_high_percent: int
    pros: str
    cons: str


SOURCING_REGIONS: dict[str, SourcingRegion] = {
    "CN": SourcingRegion("China", Decimal("1.00"), 10, 20, "Lowest cost, high volume", "Longer lead times"),
    "VN": SourcingRegion("Vietnam", Decimal("0.95"), 5, 15, "Lower tariffs to US", "Limited categories"),
    "IN": SourcingRegion("India", Decimal("0.92"), 5, 15, "Low cost, growing capacity", "Variable quality"),
    "MX": SourcingRegion("Mexico", Decimal("1.10"), 0, 10, "USMCA benefits, fast shipping to US", "Higher labor cost"),
    "TW": SourcingRegion("Taiwan", Decimal("1.15"), 0, 5, "High quality electronics", "Higher cost"),
    "EU": SourcingRegion("EU", Decimal("1.30"), 0, 5, "UK/EU tariff benefits", "Higher base cost"),
}
# Regions outside the table are treated like CN
DEFAULT_COST_INDEX = Decimal("1.00")

SUPPLIER_TYPES = (
    SupplierTypeSuggestion("Manufacturer Direct", 15, 25, "Buy from the factory and cut out intermediary margin"),
    SupplierTypeSuggestion("Trading Company", 5, 10, "Consolidated sourcing with modest markup"),
    SupplierTypeSuggestion("Wholesale Distributor", 0, 5, "Fast availability at near-current pricing"),
)


def region_cost_index(region: str) -> Decimal:
    """Get the relative cost index of a sourcing region."""
    entry = SOURCING_REGIONS.get(region.upper())
    return entry.cost_index if entry else DEFAULT_COST_INDEX


def cheaper_regions(supplier_region: str) -> list[SourcingSuggestion]:
    """List reference regions with a lower cost index than the supplier's, cheapest first."""
    current = region_cost_index(supplier_region)
    candidates = sorted(
        (
            (code, region)
            for code, region in SOURCING_REGIONS.items()
            if code != supplier_region.upper() and region.cost_index < current
        ),
        key=lambda item: (item[1].cost_index, item[0]),
    )
    return [
        SourcingSuggestion(
            region=code,
            name=region.name,
            savings_low_percent=region.savings_low_percent,
            savings_high_percent=region.savings_high_percent,
            pros=region.pros,
            cons=region.cons,
        )
        for code, region in candidates
    ]


class NegotiationAdvisor:
    """Derives target and walk-away buy prices from the best channel."""

    def __init__(self, settings: Settings) -> None:
        """Initialize the negotiation advisor."""
        self.config = settings.negotiation

    def advise(
        self,
        decision: Decision,
        best: ChannelEvaluation | None,
        buy_price: Decimal,
        currency: str,
    ) -> NegotiationSupport | None:
        """Calculate negotiation targets for Renegotiate and Source Elsewhere decisions."""
        if decision not in (Decision.RENEGOTIATE, Decision.SOURCE_ELSEWHERE) or best is None:
            return None
        if best.fx_rate <= 0:
            return None

        proceeds = best.net_proceeds / best.fx_rate
        target = to_money(proceeds / (1 + self.config.target_margin))
        walk_away = to_money(proceeds / (1 + self.config.walk_away_margin))
        savings = to_money(buy_price - target)
        savings_percent = (
            to_money(savings / buy_price * 100) if buy_price > 0 else Decimal("0")
        )

        # Targets are solved against the bare buy price; the margin also carries duty,
        # shipping and import VAT
        target_percent = self.config.target_margin * 100
        if best.margin_percent >= target_percent:
            message = (
                f"Current margin of {best.margin_percent}% on {best.key} "
                f"already meets the target margin."
            )
        elif buy_price <= target:
            message = (
                f"Current price {buy_price} {currency} is at or below the target buy price of "
                f"{target} {currency}, but landed costs hold the margin on {best.key} at "
                f"{best.margin_percent}%; reduce freight or duty costs, or find another supplier."
            )
        elif buy_price <= walk_away:
            message = (
                f"Current price is within the walk-away limit; negotiate towards "
                f"{target} {currency} (walk away above {walk_away} {currency})."
            )
        else:
            message = (
                f"Current price is above the walk-away limit of {walk_away} {currency}; "
                f"negotiate to {target} {currency} or find another supplier."
            )

        return NegotiationSupport(
            current_buy_price=buy_price,
            target_buy_price=target,
            walk_away_price=walk_away,
            savings=savings,
            savings_percent=savings_percent,
            currency=currency,
            reference_channel=best.key,
            message=message,
        )

    def sourcing(
        self, decision: Decision, supplier_region: str
    ) -> tuple[tuple[SourcingSuggestion, ...], tuple[SupplierTypeSuggestion, ...]]:
        """Suggest alternative regions and supplier types for Source Elsewhere."""
        if decision != Decision.SOURCE_ELSEWHERE:
            return (), ()
        return tuple(cheaper_regions(supplier_region)), SUPPLIER_TYPES
