"""
Clock port.

All stored timestamps are UTC. Local-time work goes through the zoned
calendar with an explicit zone, never through the clock.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol


class ClockPort(Protocol):
    """Monotonic UTC clock."""

    def now_utc(self) -> datetime:
        """Get current UTC time (timezone-aware)."""
        ...
