"""Core business logic for Deal Engine."""

from .assumptions import AssumptionResolver, OverrideValidationError, describe_assumptions
from .config import Settings, get_settings
from .defaults import AssumptionDefaults
from .engine import DealEngine, InvalidDealRequestError, NoMarketDataError
from .fees import ChannelDataError, FeeCalculator
from .landed_cost import LandedCostCalculator
from .models import (
    AllocationPlan,
    AssumptionSet,
    ChannelEvaluation,
    ChannelType,
    DataSource,
    DealEvaluation,
    DealRequest,
    Decision,
    FxQuote,
    FxSource,
    MarketSnapshot,
    PriceHistory,
    Recommendation,
)

__all__ = [
    "AssumptionResolver",
    "OverrideValidationError",
    "describe_assumptions",
    "Settings",
    "get_settings",
    "AssumptionDefaults",
    "DealEngine",
    "InvalidDealRequestError",
    "NoMarketDataError",
    "ChannelDataError",
    "FeeCalculator",
    "LandedCostCalculator",
    "AllocationPlan",
    "AssumptionSet",
    "ChannelEvaluation",
    "ChannelType",
    "DataSource",
    "DealEvaluation",
    "DealRequest",
    "Decision",
    "FxQuote",
    "FxSource",
    "MarketSnapshot",
    "PriceHistory",
    "Recommendation",
]
