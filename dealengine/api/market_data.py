"""Market data provider interface."""

from __future__ import annotations

from typing import Protocol

from dealengine.core.models import ChannelType, MarketSnapshot


class MarketDataProvider(Protocol):
    """Source of per-channel market snapshots for a product."""

    def fetch(
        self, ean: str, channel: ChannelType, marketplace: str, partner: str = ""
    ) -> MarketSnapshot | None:
        """Fetch one snapshot, or None when the channel has no listing."""
        ...
