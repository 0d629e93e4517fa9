"""Landed cost calculation for Deal Engine."""

from __future__ import annotations

from .duty import DutyCalculator
from .models import AssumptionSet, DealRequest, LandedCost, to_money
from .shipping import ShippingCalculator


class LandedCostCalculator:
    """Combines buy price, duty, freight and import VAT into a per-unit cost basis."""

    def __init__(self, assumptions: AssumptionSet) -> None:
        """Initialize with the effective assumptions."""
        self.assumptions = assumptions
        self.shipping_calculator = ShippingCalculator(assumptions)
        self.duty_calculator = DutyCalculator(assumptions)

    def calculate(self, request: DealRequest, destination: str) -> LandedCost:
        """Calculate landed cost for delivering one unit to a destination market.

        Amounts are in the buy-side currency. Import VAT is always computed and
        only added to the total when the buyer cannot reclaim it.
        """
        destination = destination.upper()
        duty = self.duty_calculator.calculate(
            request.buy_price,
            request.supplier_region,
            destination,
            product_category=request.product_category,
            hs_code=request.hs_code,
        )
        shipping = self.shipping_calculator.calculate(
            request.weight_kg,
            request.quantity,
            request.supplier_region,
            destination,
            request.shipping_method,
        )

        vat_rate = self.assumptions.vat_rate(destination)
        import_vat = to_money((request.buy_price + duty.amount + shipping.per_unit_cost) * vat_rate)
        include_vat = not request.reclaim_vat

        total = request.buy_price + duty.amount + shipping.per_unit_cost
        if include_vat:
            total += import_vat

        notes = tuple(n for n in (duty.notes, shipping.notes) if n)
        if request.reclaim_vat and import_vat > 0:
            notes += ("Import VAT reclaimed, excluded from cost basis",)

        return LandedCost(
            buy_price=request.buy_price,
            duty=duty.amount,
            duty_rate=duty.rate,
            duty_method=duty.method,
            duty_category=duty.category,
            shipping=shipping.per_unit_cost,
            shipping_method=shipping.method,
            transit_days=shipping.transit_days,
            import_vat=import_vat,
            import_vat_included=include_vat,
            total=to_money(total),
            currency=request.currency,
            origin=request.supplier_region,
            destination=destination,
            notes=notes,
        )
