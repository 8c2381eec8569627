"""
Progress component - Append-only application ledger.
"""

from ._impl import InMemoryProgressRepo
from .component import ProgressLedger, build_leaderboard, classify_member
from .models import (
    MAX_COUNT_CHANGE,
    ON_TRACK_RATIO,
    LeaderboardEntry,
    MemberProgress,
    MemberStatus,
    ProgressDeltaOutput,
    ProgressEvent,
    ProgressKey,
)
from .ports import ProgressRepoPort

__all__ = [
    # Service
    "ProgressLedger",
    # Pure functions
    "build_leaderboard",
    "classify_member",
    # Models
    "LeaderboardEntry",
    "MemberProgress",
    "MemberStatus",
    "ProgressDeltaOutput",
    "ProgressEvent",
    "ProgressKey",
    "ON_TRACK_RATIO",
    "MAX_COUNT_CHANGE",
    # Ports
    "ProgressRepoPort",
    # Adapters
    "InMemoryProgressRepo",
]
