"""Inventory allocation across sales channels."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Sequence

from .models import (
    AllocationPlan,
    ChannelAllocation,
    ChannelEvaluation,
    ConfidenceLevel,
)

if TYPE_CHECKING:
    from .config import Settings

logger = logging.getLogger(__name__)


class AllocationPlanner:
    """Splits a purchase quantity across sellable channels.

    Phase 1 places a share of the stock on the highest-margin channels.
    Phase 2 places the rest on the fastest-selling channels. Each channel is
    capped by its absorption capacity and by a maximum share of the total, and
    anything that cannot be placed is held.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize the allocation planner."""
        self.config = settings.allocation

    def channel_cap(self, channel: ChannelEvaluation, total: int) -> int:
        """Maximum units a channel may receive."""
        capacity_cap = self.config.capacity_months * channel.demand.absorption_capacity_per_month
        share_cap = math.floor(self.config.max_channel_share * total)
        return max(0, min(capacity_cap, share_cap))

    def plan(self, quantity: int, channels: Sequence[ChannelEvaluation]) -> AllocationPlan:
        """Build the allocation plan for a quantity."""
        eligible = [c for c in channels if c.recommendation.is_sellable]
        if not eligible:
            return AllocationPlan(
                total_quantity=quantity,
                allocated={},
                hold=quantity,
                rationale="No sellable channels; holding all units.",
            )

        caps = {c.key: self.channel_cap(c, quantity) for c in eligible}
        allocated: dict[str, int] = {c.key: 0 for c in eligible}
        phases: dict[str, int] = {}

        def place(channel: ChannelEvaluation, limit: int, phase: int) -> int:
            room = caps[channel.key] - allocated[channel.key]
            take = min(room, limit)
            if take <= 0:
                return 0
            if channel.minimum_order and allocated[channel.key] + take < channel.minimum_order:
                logger.debug(
                    f"Skipping {channel.key}: {allocated[channel.key] + take} units "
                    f"below minimum order {channel.minimum_order}"
                )
                return 0
            allocated[channel.key] += take
            phases.setdefault(channel.key, phase)
            return take

        # Phase 1: best margin first
        budget = math.floor(self.config.phase1_share * quantity)
        by_margin = sorted(eligible, key=lambda c: (-c.margin_percent, c.key))
        for channel in by_margin:
            if budget <= 0:
                break
            if channel.margin_percent < self.config.min_margin_percent:
                continue
            budget -= place(channel, budget, 1)

        # Phase 2: fastest sell-through first
        remaining = quantity - sum(allocated.values())
        by_speed = sorted(eligible, key=lambda c: (c.months_to_sell, c.key))
        for channel in by_speed:
            if remaining <= 0:
                break
            remaining -= place(channel, remaining, 2)

        placed = {key: qty for key, qty in allocated.items() if qty > 0}
        hold = quantity - sum(placed.values())
        details = tuple(
            ChannelAllocation(
                key=c.key,
                quantity=placed[c.key],
                cap=caps[c.key],
                margin_percent=c.margin_percent,
                months_to_sell=c.months_to_sell,
                phase=phases[c.key],
            )
            for c in by_margin
            if c.key in placed
        )

        return AllocationPlan(
            total_quantity=quantity,
            allocated=placed,
            hold=hold,
            rationale=self._rationale(quantity, hold, eligible, caps, details),
            details=details,
        )

    def _rationale(
        self,
        quantity: int,
        hold: int,
        eligible: Sequence[ChannelEvaluation],
        caps: dict[str, int],
        details: Sequence[ChannelAllocation],
    ) -> str:
        share_cap = math.floor(self.config.max_channel_share * quantity)
        parts: list[str] = []

        if hold == 0:
            parts.append(f"All {quantity} units allocated across {len(details)} channel(s).")
        else:
            reasons: list[str] = []
            capacity_bound = any(
                caps[c.key] < share_cap
                or c.demand.absorption_capacity_per_month <= 0
                for c in eligible
            )
            if capacity_bound:
                reasons.append("insufficient absorption capacity")
            if any(caps[c.key] == share_cap for c in eligible):
                reasons.append("risk of market flooding")
            if any(c.demand.confidence == ConfidenceLevel.LOW for c in eligible):
                reasons.append("low demand confidence")
            if not details:
                reasons.append("no sellable channels")
            reason_text = "; ".join(reasons) if reasons else "channel limits reached"
            parts.append(f"Holding {hold} of {quantity} units: {reason_text}.")

        for d in details:
            months = "n/a" if math.isinf(d.months_to_sell) else f"{d.months_to_sell:.1f} months"
            parts.append(
                f"{d.key}: {d.quantity} units (phase {d.phase}, cap {d.cap}, "
                f"{d.margin_percent}% margin, {months} to sell)."
            )
        return " ".join(parts)

