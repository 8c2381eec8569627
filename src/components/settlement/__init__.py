"""
Settlement component - Closed-pool stake settlement.
"""

from ._impl import InMemorySettlementStore
from .component import (
    SettlementService,
    build_settlement_transactions,
    calculate_settlement,
    validate_stake,
)
from .models import (
    DEFAULT_CONFIG,
    SettlementBreakdown,
    SettlementConfig,
    SettlementResult,
    SettlementTransaction,
    StakeConfig,
    TransactionType,
    TriggeredBy,
)
from .ports import SettlementStorePort

__all__ = [
    # Service
    "SettlementService",
    # Pure functions
    "calculate_settlement",
    "build_settlement_transactions",
    "validate_stake",
    # Models
    "SettlementBreakdown",
    "SettlementConfig",
    "SettlementResult",
    "SettlementTransaction",
    "StakeConfig",
    "TransactionType",
    "TriggeredBy",
    "DEFAULT_CONFIG",
    # Ports
    "SettlementStorePort",
    # Adapters
    "InMemorySettlementStore",
]
