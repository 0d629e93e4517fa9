"""Tests for evaluation serialization."""

import json
from dataclasses import replace
from decimal import Decimal

from dealengine.core.models import AllocationPlan
from dealengine.utils.serialization import serialize_allocation, serialize_evaluation


class TestSerializeEvaluation:
    """Tests for serialize_evaluation."""

    def test_output_contract(self, engine, sample_request, sample_snapshots):
        """Test the top-level keys and their shapes."""
        result = serialize_evaluation(engine.evaluate(sample_request, sample_snapshots))

        assert result["dealQualityScore"] == 91
        assert result["decision"] == "Buy"
        assert result["bestChannel"] == "ebay-UK"
        assert set(result["evaluation"]) == {
            "netMargin",
            "demandConfidence",
            "volumeRisk",
            "dataReliability",
        }
        assert result["evaluation"]["dataReliability"]["channelsFound"] == 4
        assert [p["key"] for p in result["pricing"]] == [d["key"] for d in result["demandEstimates"]]
        assert result["assumptions"] == {"version": "1.0.0", "overriddenFields": [], "audit": []}
        assert result["compliance"]["flagCount"] == 0
        assert result["compliance"]["overallRisk"] == "low"
        assert "negotiation" not in result
        assert "sourcingSuggestions" not in result

    def test_json_safe(self, engine, sample_request, sample_snapshots):
        """Test the result survives a strict JSON round trip."""
        result = serialize_evaluation(engine.evaluate(sample_request, sample_snapshots))

        assert json.loads(json.dumps(result, allow_nan=False)) == result

    def test_numbers_are_floats(self, engine, sample_request, sample_snapshots):
        """Test Decimal amounts become plain numbers."""
        result = serialize_evaluation(engine.evaluate(sample_request, sample_snapshots))
        ebay = next(p for p in result["pricing"] if p["key"] == "ebay-UK")

        assert ebay["netProceeds"] == 114.77
        assert ebay["fees"]["totalFees"] == 17.88
        assert ebay["fxSource"] == "fallback"

    def test_infinite_months_become_null(self, engine, sample_request, amazon_us):
        """Test channels with no capacity report null months to sell."""
        evaluation = engine.evaluate(sample_request, [replace(amazon_us, sell_price=Decimal("15.00"))])
        result = serialize_evaluation(evaluation)

        assert result["evaluation"]["volumeRisk"]["monthsToSell"] is None
        json.dumps(result, allow_nan=False)

    def test_negotiation_included(self, engine, sample_request, amazon_us):
        """Test Renegotiate results include negotiation support."""
        evaluation = engine.evaluate(sample_request, [replace(amazon_us, sell_price=Decimal("22.50"))])
        result = serialize_evaluation(evaluation)

        assert result["decision"] == "Renegotiate"
        assert result["negotiation"]["targetBuyPrice"] == 12.56
        assert result["negotiation"]["walkAwayPrice"] == 13.65


class TestSerializeAllocation:
    """Tests for serialize_allocation."""

    def test_empty_plan(self):
        """Test a plan with everything held."""
        plan = AllocationPlan(total_quantity=50, allocated={}, hold=50, rationale="No sellable channels; holding all units.")
        result = serialize_allocation(plan)

        assert result["allocated"] == {}
        assert result["allocatedQuantity"] == 0
        assert result["hold"] == 50
        assert result["details"] == []


class TestAssumptionAudit:
    """Tests for the serialized assumption audit trail."""

    def test_audit_records(self, engine, sample_request, amazon_us) -> None:
        request = replace(
            sample_request,
            assumption_overrides={"feeOverrides": {"marketplace": "US", "referralRate": 1.5}},
        )
        result = serialize_evaluation(engine.evaluate(request, [amazon_us]))
        audit = result["assumptions"]["audit"]

        assert [r["field"] for r in audit] == ["fees.US-amazon.referral_rate"]
        assert audit[0]["source"] == "override"
        assert audit[0]["note"] == "clamped from 1.5"


class TestGuardrail:
    """Tests for the serialized margin guardrail."""

    def test_guardrail_serialized(self, engine, sample_request, sample_snapshots) -> None:
        result = serialize_evaluation(engine.evaluate(sample_request, sample_snapshots))
        pricing = {p["key"]: p for p in result["pricing"]}

        assert pricing["ebay-UK"]["guardrail"] == {
            "flagged": True,
            "drivers": ["High price delta (>3x buy price)"],
        }

    def test_no_guardrail(self, engine, sample_request, amazon_us) -> None:
        evaluation = engine.evaluate(sample_request, [replace(amazon_us, sell_price=Decimal("22.50"))])

        assert serialize_evaluation(evaluation)["pricing"][0]["guardrail"] is None
