"""Database layer for Deal Engine."""

from .models import (
    AssumptionChangeDB,
    AssumptionOverrideSetDB,
    AssumptionPresetDB,
    Base,
    DealEvaluationDB,
)
from .repository import Repository
from .session import configure_database, get_engine, get_session, init_database

__all__ = [
    "Base",
    "DealEvaluationDB",
    "AssumptionOverrideSetDB",
    "AssumptionPresetDB",
    "AssumptionChangeDB",
    "Repository",
    "configure_database",
    "get_engine",
    "get_session",
    "init_database",
]
