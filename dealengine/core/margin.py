"""Margin evaluation for Deal Engine."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from .models import Recommendation, to_money


@dataclass(frozen=True)
class MarginResult:
    """Net margin for one channel, in the channel currency."""

    landed_cost_converted: Decimal
    net_margin: Decimal
    margin_percent: Decimal
    recommendation: Recommendation


class MarginEvaluator:
    """Compares net proceeds against the converted landed cost."""

    SELL_MARGIN = Decimal("25")
    CAUTION_MARGIN = Decimal("15")
    PERCENT_PLACES = Decimal("0.01")

    def convert(self, amount: Decimal, fx_rate: Decimal) -> Decimal:
        """Convert a buy-side amount into the channel currency."""
        return to_money(amount * fx_rate)

    def recommend(self, margin_percent: Decimal) -> Recommendation:
        """Map a margin percentage to a recommendation."""
        if margin_percent >= self.SELL_MARGIN:
            return Recommendation.SELL
        if margin_percent >= self.CAUTION_MARGIN:
            return Recommendation.CONSIDER
        return Recommendation.AVOID

    def evaluate(
        self, net_proceeds: Decimal, landed_cost: Decimal, fx_rate: Decimal
    ) -> MarginResult:
        """Evaluate margin. The landed cost is converted here and nowhere else."""
        landed_converted = self.convert(landed_cost, fx_rate)
        net_margin = net_proceeds - landed_converted
        if landed_converted > 0:
            margin_percent = (net_margin / landed_converted * 100).quantize(
                self.PERCENT_PLACES, rounding=ROUND_HALF_UP
            )
        else:
            margin_percent = Decimal("0")
        return MarginResult(
            landed_cost_converted=landed_converted,
            net_margin=net_margin,
            margin_percent=margin_percent,
            recommendation=self.recommend(margin_percent),
        )
