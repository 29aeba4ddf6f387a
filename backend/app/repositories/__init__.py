"""Repository abstractions for database interactions."""

from .pipeline_models import SettlementRunInput
from .settlement_repository import SettlementRepository

__all__ = [
    "SettlementRepository",
    "SettlementRunInput",
]
