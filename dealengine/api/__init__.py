"""External data clients for Deal Engine."""

from .fx import FxClient, FxRateError, FxRateProvider
from .market_data import MarketDataProvider

__all__ = [
    "FxClient",
    "FxRateError",
    "FxRateProvider",
    "MarketDataProvider",
]
