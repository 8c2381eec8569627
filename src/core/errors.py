"""
Error taxonomy for the cycle and settlement accounting engine.

- InvalidConfigError: unknown time zone, non-positive stake, bad start day.
  Fatal, surfaced to the caller, never retried.
- InvalidInputError: malformed call input (empty member list, naive datetime).
- InvalidStateError: caller logic error against the ledger (decrement at zero).
- AlreadySettledError: duplicate settlement attempt. Benign; carries the
  stored result so callers can show it instead of failing the user flow.
- StoreUnavailableError: timeout or I/O failure in a persistence adapter.
  Retryable; every mutating operation is keyed and safe to replay verbatim.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.components.settlement.models import SettlementResult


class AccountingError(Exception):
    """Base class for engine errors."""


class InvalidConfigError(AccountingError):
    """Configuration is unusable (zone, stake, start day)."""


class InvalidInputError(InvalidConfigError):
    """Call input is malformed."""


class InvalidStateError(AccountingError):
    """Operation is not valid for the current ledger state."""

    def __init__(self, message: str, *, count: int = 0) -> None:
        self.count = count
        super().__init__(message)


class AlreadySettledError(AccountingError):
    """A settlement already exists for this group and window."""

    def __init__(self, existing: SettlementResult) -> None:
        self.existing = existing
        super().__init__(
            f"Window {existing.cycle_key} of group {existing.group_id} is already settled"
        )


class StoreUnavailableError(AccountingError):
    """Persistence collaborator timed out or failed."""


class LeaseHeldError(StoreUnavailableError):
    """Another runner holds the settlement lease for this window."""

    def __init__(self, group_id: str, cycle_key: str, holder: str | None = None) -> None:
        self.group_id = group_id
        self.cycle_key = cycle_key
        self.holder = holder
        super().__init__(
            f"Settlement lease for {group_id}/{cycle_key} is held by {holder or 'another runner'}"
        )
