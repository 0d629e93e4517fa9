"""Utility modules for Deal Engine."""

from .mock_data import MockMarketDataProvider
from .serialization import serialize_evaluation

__all__ = [
    "MockMarketDataProvider",
    "serialize_evaluation",
]
