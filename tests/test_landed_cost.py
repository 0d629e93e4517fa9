"""Tests for shipping, duty and landed cost calculations."""

from decimal import Decimal

import pytest

from dealengine.core.assumptions import AssumptionResolver
from dealengine.core.defaults import AssumptionDefaults
from dealengine.core.duty import DutyCalculator, duty_category_for
from dealengine.core.landed_cost import LandedCostCalculator
from dealengine.core.models import DealRequest, DutyMethod, ShippingMethod
from dealengine.core.shipping import ShippingCalculator


@pytest.fixture
def assumptions():
    """Default assumptions with no overrides."""
    return AssumptionDefaults().to_assumption_set()


def make_request(**kwargs) -> DealRequest:
    values = {
        "ean": "5012345678900",
        "quantity": 100,
        "buy_price": Decimal("20.00"),
        "currency": "USD",
        "supplier_region": "CN",
        "product_category": "Toys & Games",
    }
    values.update(kwargs)
    return DealRequest(**values)


class TestShippingCalculator:
    """Tests for ShippingCalculator."""

    def test_air_freight_per_unit(self, assumptions) -> None:
        quote = ShippingCalculator(assumptions).calculate(Decimal("0.5"), 100, "CN", "US")

        assert quote.total_cost == Decimal("300.00")
        assert quote.per_unit_cost == Decimal("3.00")
        assert quote.transit_days == 7
        assert quote.route_specific

    def test_minimum_charge(self, assumptions) -> None:
        quote = ShippingCalculator(assumptions).calculate(Decimal("0.5"), 10, "CN", "US")

        assert quote.total_cost == Decimal("80.00")
        assert quote.per_unit_cost == Decimal("8.00")

    def test_unknown_weight_uses_default(self, assumptions) -> None:
        quote = ShippingCalculator(assumptions).calculate(None, 100, "CN", "US")

        assert quote.weight_kg == Decimal("0.5")
        assert "Weight unknown" in quote.notes

    def test_unknown_route_uses_generic_rate(self, assumptions) -> None:
        quote = ShippingCalculator(assumptions).calculate(
            Decimal("0.5"), 100, "VN", "US", ShippingMethod.SEA
        )

        assert not quote.route_specific
        assert quote.rate_per_kg == Decimal("3.00")
        assert quote.total_cost == Decimal("150.00")

    def test_origin_alias(self, assumptions) -> None:
        quote = ShippingCalculator(assumptions).calculate(Decimal("1"), 100, "DE", "US")

        assert quote.origin == "EU"
        assert quote.route_specific


class TestDutyCalculator:
    """Tests for DutyCalculator."""

    def test_category_mapping(self) -> None:
        assert duty_category_for("Toys & Games") == "toys_games"
        assert duty_category_for("toys & games") == "toys_games"
        assert duty_category_for(None, "8517.62") == "electronics"
        assert duty_category_for("Gadgets") == "default"

    def test_category_rate(self, assumptions) -> None:
        quote = DutyCalculator(assumptions).calculate(Decimal("20.00"), "CN", "UK", "Toys & Games")

        assert quote.method == DutyMethod.CATEGORY
        assert quote.rate == Decimal("0.047")
        assert quote.amount == Decimal("0.94")

    def test_unknown_origin_falls_back_to_cn(self, assumptions) -> None:
        calculator = DutyCalculator(assumptions)

        assert calculator.route("VN", "UK") == ("CN", "UK")
        quote = calculator.calculate(Decimal("20.00"), "VN", "UK", "Clothing")
        assert quote.rate == Decimal("0.12")

    def test_unknown_destination_falls_back_to_us(self, assumptions) -> None:
        assert DutyCalculator(assumptions).route("CN", "JP") == ("CN", "US")

    def test_direct_override(self) -> None:
        assumptions = AssumptionResolver().resolve(
            {"dutyOverrides": {"origin": "CN", "destination": "US", "amount": 2.5}}
        )
        quote = DutyCalculator(assumptions).calculate(Decimal("20.00"), "CN", "US", "Toys & Games")

        assert quote.method == DutyMethod.DIRECT
        assert quote.amount == Decimal("2.50")
        assert quote.rate == Decimal("0.125")

    def test_hscode_override_rate(self) -> None:
        assumptions = AssumptionResolver().resolve(
            {"dutyOverrides": {"origin": "CN", "destination": "US", "hsCode": "950300", "rate": 0.1}}
        )
        quote = DutyCalculator(assumptions).calculate(Decimal("20.00"), "CN", "US", "Electronics")

        assert quote.method == DutyMethod.HSCODE
        assert quote.hs_code == "950300"
        assert quote.amount == Decimal("2.00")


class TestLandedCostCalculator:
    """Tests for LandedCostCalculator."""

    def test_us_landed_cost(self, assumptions) -> None:
        landed = LandedCostCalculator(assumptions).calculate(make_request(), "US")

        assert landed.duty == Decimal("0.00")
        assert landed.shipping == Decimal("3.00")
        assert landed.import_vat == Decimal("0.00")
        assert landed.total == Decimal("23.00")

    def test_uk_landed_cost_includes_import_vat(self, assumptions) -> None:
        landed = LandedCostCalculator(assumptions).calculate(make_request(), "UK")

        assert landed.duty == Decimal("0.94")
        assert landed.shipping == Decimal("3.50")
        assert landed.import_vat == Decimal("4.89")
        assert landed.import_vat_included
        assert landed.total == Decimal("29.33")

    def test_reclaimed_vat_excluded(self, assumptions) -> None:
        landed = LandedCostCalculator(assumptions).calculate(make_request(reclaim_vat=True), "UK")

        assert landed.import_vat == Decimal("4.89")
        assert not landed.import_vat_included
        assert landed.total == Decimal("24.44")

    def test_total_is_sum_of_parts(self, assumptions) -> None:
        calculator = LandedCostCalculator(assumptions)
        for destination in ("US", "UK", "DE", "FR", "IT", "AU"):
            landed = calculator.calculate(make_request(), destination)
            assert landed.total == (
                landed.buy_price + landed.duty + landed.shipping + landed.import_vat
            )
