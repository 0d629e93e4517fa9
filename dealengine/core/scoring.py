"""Deal scoring for Deal Engine."""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Sequence

from .models import ChannelEvaluation, DealScore, Decision, ScoreBreakdown

if TYPE_CHECKING:
    from .config import Settings


def total_months_to_sell(quantity: int, channels: Sequence[ChannelEvaluation]) -> float:
    """Months needed to sell a quantity through all sellable channels."""
    capacity = sum(
        c.demand.absorption_capacity_per_month
        for c in channels
        if c.recommendation.is_sellable
    )
    if capacity <= 0:
        return math.inf
    return quantity / capacity


class DealScorer:
    """Combines margin, demand, volume risk and reliability into one score."""

    # Volume risk steps: (max months to sell, score)
    VOLUME_STEPS = ((1, 100), (2, 80), (3, 60), (6, 40), (12, 20))
    CHANNEL_POINTS = 20

    def __init__(self, settings: Settings) -> None:
        """Initialize the deal scorer."""
        self.settings = settings

    def normalize_margin(self, margin_percent: Decimal) -> Decimal:
        """Normalize the best margin percentage to a 0-100 score."""
        m = margin_percent
        if m >= 40:
            return Decimal("100")
        if m >= 25:
            return 75 + (m - 25) / 15 * 25
        if m >= 15:
            return 50 + (m - 15) / 10 * 25
        if m >= 0:
            return m / 15 * 50
        return Decimal("0")

    def normalize_volume_risk(self, months_to_sell: float) -> Decimal:
        """Normalize months-to-sell to a 0-100 score (faster is better)."""
        for max_months, score in self.VOLUME_STEPS:
            if months_to_sell <= max_months:
                return Decimal(score)
        return Decimal("0")

    def normalize_reliability(self, channels_found: int) -> Decimal:
        """Score data reliability by the number of channels with data."""
        return Decimal(min(100, channels_found * self.CHANNEL_POINTS))

    def score(
        self,
        quantity: int,
        channels: Sequence[ChannelEvaluation],
        best: ChannelEvaluation | None,
    ) -> DealScore:
        """Calculate the deal score."""
        weights = self.settings.scoring_weights
        months = total_months_to_sell(quantity, channels)

        margin_score = self.normalize_margin(best.margin_percent) if best else Decimal("0")
        demand_score = Decimal(best.demand.confidence_score) if best else Decimal("0")
        volume_score = self.normalize_volume_risk(months)
        reliability_score = self.normalize_reliability(len(channels))

        weighted = (
            margin_score * weights.margin
            + demand_score * weights.demand
            + volume_score * weights.volume_risk
            + reliability_score * weights.reliability
        )
        overall = int(weighted.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

        return DealScore(
            overall=max(0, min(overall, 100)),
            breakdown=ScoreBreakdown(
                margin_score=margin_score.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP),
                demand_score=demand_score,
                volume_risk_score=volume_score,
                reliability_score=reliability_score,
                months_to_sell=months,
                channels_found=len(channels),
            ),
        )

    def decide(
        self, overall: int, margin_percent: Decimal, has_cheaper_source: bool
    ) -> Decision:
        """Apply the decision table, top to bottom."""
        t = self.settings.thresholds
        if overall >= t.buy_score and margin_percent >= t.buy_margin:
            return Decision.BUY
        if t.renegotiate_score <= overall < t.buy_score and margin_percent >= t.renegotiate_margin:
            return Decision.RENEGOTIATE
        if (
            overall >= t.renegotiate_score
            and margin_percent >= t.renegotiate_margin
            and has_cheaper_source
        ):
            return Decision.SOURCE_ELSEWHERE
        return Decision.PASS

    def explain(
        self,
        decision: Decision,
        score: DealScore,
        best: ChannelEvaluation | None,
        quantity: int,
    ) -> str:
        """Build a human-readable explanation of the decision."""
        if best is None:
            return "No channel could be evaluated for this product."

        months = score.breakdown.months_to_sell
        if math.isinf(months):
            pace = "no channel has capacity to absorb the stock"
        else:
            pace = f"about {months:.1f} months to sell {quantity} units"
        summary = (
            f"Best channel {best.key} returns {best.margin_percent}% net margin "
            f"with {best.demand.confidence.value.lower()} demand confidence; {pace}."
        )

        if decision == Decision.BUY:
            lead = f"Strong deal (score {score.overall})."
        elif decision == Decision.RENEGOTIATE:
            lead = f"Workable deal (score {score.overall}) but below the buy threshold; renegotiate the buy price."
        elif decision == Decision.SOURCE_ELSEWHERE:
            lead = f"Viable margin (score {score.overall}) but a cheaper sourcing region is available."
        elif best.margin_percent < self.settings.thresholds.renegotiate_margin:
            lead = f"Margin too thin to justify the purchase (score {score.overall})."
        else:
            lead = f"Deal quality too low to justify the purchase (score {score.overall})."
        return f"{lead} {summary}"
