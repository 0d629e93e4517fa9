"""JSON-safe serialization of deal evaluations."""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Any

from dealengine.core.models import (
    AllocationPlan,
    ChannelEvaluation,
    ComplianceReport,
    DealEvaluation,
    FeeBreakdown,
    LandedCost,
    NegotiationSupport,
)


def _num(value: Decimal | int | float | None) -> float | int | None:
    """Convert a number to a JSON-safe value; infinity becomes None."""
    if value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return float(value)


def _months(value: float) -> float | None:
    return None if math.isinf(value) else round(value, 2)


def serialize_fees(fees: FeeBreakdown) -> dict[str, Any]:
    return {
        "referralFee": _num(fees.referral_fee),
        "fulfillmentFee": _num(fees.fulfillment_fee),
        "closingFee": _num(fees.closing_fee),
        "finalValueFee": _num(fees.final_value_fee),
        "perOrderFee": _num(fees.per_order_fee),
        "commissionFee": _num(fees.commission_fee),
        "paymentFee": _num(fees.payment_fee),
        "totalFees": _num(fees.total_fees),
        "vat": _num(fees.vat),
        "vatRate": _num(fees.vat_rate),
        "vatDeducted": _num(fees.vat_deducted),
        "feeScheduleVersion": fees.fee_schedule_version,
    }


def serialize_landed_cost(landed: LandedCost) -> dict[str, Any]:
    return {
        "buyPrice": _num(landed.buy_price),
        "duty": _num(landed.duty),
        "dutyRate": _num(landed.duty_rate),
        "dutyMethod": landed.duty_method.value,
        "dutyCategory": landed.duty_category,
        "shipping": _num(landed.shipping),
        "shippingMethod": landed.shipping_method.value,
        "transitDays": landed.transit_days,
        "importVat": _num(landed.import_vat),
        "importVatIncluded": landed.import_vat_included,
        "total": _num(landed.total),
        "currency": landed.currency,
        "origin": landed.origin,
        "destination": landed.destination,
        "notes": list(landed.notes),
    }


def serialize_channel(channel: ChannelEvaluation) -> dict[str, Any]:
    """Serialize one channel's pricing."""
    return {
        "key": channel.key,
        "channel": channel.channel.value,
        "marketplace": channel.marketplace,
        "partner": channel.partner or None,
        "currency": channel.currency,
        "sellPrice": _num(channel.sell_price),
        "fees": serialize_fees(channel.fees),
        "totalFees": _num(channel.total_fees),
        "vat": _num(channel.vat),
        "netProceeds": _num(channel.net_proceeds),
        "landedCost": serialize_landed_cost(channel.landed_cost),
        "landedCostConverted": _num(channel.landed_cost_converted),
        "fxRate": _num(channel.fx_rate),
        "fxSource": channel.fx_source.value,
        "netMargin": _num(channel.net_margin),
        "marginPercent": _num(channel.margin_percent),
        "recommendation": channel.recommendation.value,
        "dataSource": channel.data_source.value,
        "riskFlags": list(channel.risk_flags),
        "guardrail": (
            {"flagged": True, "drivers": list(channel.margin_drivers)}
            if channel.margin_drivers
            else None
        ),
    }


def serialize_demand(channel: ChannelEvaluation) -> dict[str, Any]:
    """Serialize one channel's demand estimate."""
    demand = channel.demand
    return {
        "key": channel.key,
        "estimatedMonthlySales": {"low": demand.low, "mid": demand.mid, "high": demand.high},
        "confidence": demand.confidence.value,
        "confidenceScore": demand.confidence_score,
        "absorptionCapacityPerMonth": demand.absorption_capacity_per_month,
        "monthsToSell": _months(channel.months_to_sell),
        "signals": list(demand.signals),
        "methodology": demand.methodology,
    }


def serialize_allocation(plan: AllocationPlan) -> dict[str, Any]:
    return {
        "totalQuantity": plan.total_quantity,
        "allocated": dict(plan.allocated),
        "allocatedQuantity": plan.allocated_quantity,
        "hold": plan.hold,
        "rationale": plan.rationale,
        "details": [
            {
                "key": d.key,
                "quantity": d.quantity,
                "share": _num(
                    Decimal(d.quantity) / plan.total_quantity if plan.total_quantity else Decimal("0")
                ),
                "cap": d.cap,
                "marginPercent": _num(d.margin_percent),
                "monthsToSell": _months(d.months_to_sell),
                "phase": d.phase,
            }
            for d in plan.details
        ],
    }


def serialize_negotiation(negotiation: NegotiationSupport) -> dict[str, Any]:
    return {
        "currentBuyPrice": _num(negotiation.current_buy_price),
        "targetBuyPrice": _num(negotiation.target_buy_price),
        "walkAwayPrice": _num(negotiation.walk_away_price),
        "savings": _num(negotiation.savings),
        "savingsPercent": _num(negotiation.savings_percent),
        "currency": negotiation.currency,
        "referenceChannel": negotiation.reference_channel,
        "message": negotiation.message,
    }


def serialize_compliance(report: ComplianceReport) -> dict[str, Any]:
    return {
        "flags": [
            {
                "type": f.flag_type,
                "severity": f.severity.value,
                "title": f.title,
                "description": f.description,
                "action": f.action,
                "notes": f.notes or None,
                "matchedKeywords": list(f.matched_keywords),
            }
            for f in report.flags
        ],
        "flagCount": len(report.flags),
        "overallRisk": report.overall_risk.value,
        "canSell": report.can_sell,
        "canSellWithApproval": report.can_sell_with_approval,
        "summary": report.summary,
    }


def serialize_evaluation(evaluation: DealEvaluation) -> dict[str, Any]:
    """Serialize an evaluation to the JSON output contract."""
    breakdown = evaluation.deal_score.breakdown
    best = evaluation.best_channel

    result: dict[str, Any] = {
        "ean": evaluation.ean,
        "quantity": evaluation.quantity,
        "dealQualityScore": evaluation.deal_score.overall,
        "decision": evaluation.decision.value,
        "explanation": evaluation.explanation,
        "evaluation": {
            "netMargin": {
                "score": _num(breakdown.margin_score),
                "bestMarginPercent": _num(best.margin_percent) if best else None,
            },
            "demandConfidence": {
                "score": _num(breakdown.demand_score),
                "level": best.demand.confidence.value if best else None,
            },
            "volumeRisk": {
                "score": _num(breakdown.volume_risk_score),
                "monthsToSell": _months(breakdown.months_to_sell),
            },
            "dataReliability": {
                "score": _num(breakdown.reliability_score),
                "channelsFound": breakdown.channels_found,
            },
        },
        "bestChannel": best.key if best else None,
        "pricing": [serialize_channel(c) for c in evaluation.channel_analysis],
        "demandEstimates": [serialize_demand(c) for c in evaluation.channel_analysis],
        "allocation": serialize_allocation(evaluation.allocation),
        "assumptions": {
            "version": evaluation.assumptions_version,
            "overriddenFields": sorted(evaluation.overridden_fields),
            "audit": [
                {
                    "field": r.field,
                    "oldValue": r.old_value,
                    "newValue": r.new_value,
                    "source": r.source,
                    "note": r.note,
                }
                for r in evaluation.assumption_audit
            ],
        },
        "compliance": serialize_compliance(evaluation.compliance),
        "fxFallbackUsed": evaluation.fx_fallback_used,
        "warnings": list(evaluation.warnings),
    }

    if evaluation.negotiation is not None:
        result["negotiation"] = serialize_negotiation(evaluation.negotiation)
    if evaluation.sourcing_suggestions or evaluation.supplier_suggestions:
        result["sourcingSuggestions"] = {
            "alternatives": [
                {
                    "region": s.region,
                    "name": s.name,
                    "estimatedSavings": f"{s.savings_low_percent}-{s.savings_high_percent}%",
                    "pros": s.pros,
                    "cons": s.cons,
                }
                for s in evaluation.sourcing_suggestions
            ],
            "supplierTypes": [
                {
                    "type": s.supplier_type,
                    "estimatedSavings": f"{s.savings_low_percent}-{s.savings_high_percent}%",
                    "description": s.description,
                }
                for s in evaluation.supplier_suggestions
            ],
        }
    return result
