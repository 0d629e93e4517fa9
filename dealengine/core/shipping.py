"""Freight cost calculation for Deal Engine."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from .defaults import resolve_origin
from .models import AssumptionSet, ShippingMethod, to_money


@dataclass(frozen=True)
class ShippingQuote:
    """Result of a freight cost calculation."""

    origin: str
    destination: str
    method: ShippingMethod
    weight_kg: Decimal
    quantity: int
    rate_per_kg: Decimal
    min_charge: Decimal
    transit_days: int
    total_cost: Decimal
    per_unit_cost: Decimal
    route_specific: bool
    notes: str = ""


class ShippingCalculator:
    """Calculates per-unit freight cost for a shipment."""

    DEFAULT_WEIGHT_KG = Decimal("0.5")

    def __init__(self, assumptions: AssumptionSet) -> None:
        """Initialize with the effective assumptions."""
        self.assumptions = assumptions

    def calculate(
        self,
        weight_kg: Decimal | None,
        quantity: int,
        origin: str,
        destination: str,
        method: ShippingMethod = ShippingMethod.AIR,
    ) -> ShippingQuote:
        """Calculate freight for the whole shipment and split it per unit."""
        notes = []
        if weight_kg is None or weight_kg <= 0:
            weight_kg = self.DEFAULT_WEIGHT_KG
            notes.append(f"Weight unknown, using {self.DEFAULT_WEIGHT_KG}kg")
        quantity = max(quantity, 1)

        destination = destination.upper()
        route_origin = resolve_origin(origin, self.assumptions.shipping, destination)
        rule, route_specific = self.assumptions.shipping_rule(route_origin, destination, method)
        if not route_specific:
            notes.append(f"No rate for {route_origin}-{destination}, using generic {method.value} rate")

        total_weight = weight_kg * quantity
        total_cost = max(total_weight * rule.rate_per_kg, rule.min_charge)

        return ShippingQuote(
            origin=route_origin,
            destination=destination,
            method=method,
            weight_kg=weight_kg,
            quantity=quantity,
            rate_per_kg=rule.rate_per_kg,
            min_charge=rule.min_charge,
            transit_days=rule.transit_days,
            total_cost=to_money(total_cost),
            per_unit_cost=to_money(total_cost / quantity),
            route_specific=route_specific,
            notes="; ".join(notes),
        )
