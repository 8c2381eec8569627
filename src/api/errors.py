"""
Engine error -> HTTP error mapping.

- InvalidConfigError / InvalidInputError -> 422
- InvalidStateError -> 409
- AlreadySettledError -> 409, body carries the stored result
- StoreUnavailableError (incl. LeaseHeldError) -> 503, retryable
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from fastapi import HTTPException

from src.core.errors import (
    AccountingError,
    AlreadySettledError,
    InvalidConfigError,
    InvalidStateError,
    LeaseHeldError,
    StoreUnavailableError,
)


def to_http_exception(
    exc: AccountingError,
    serialize_result: Callable[[Any], dict[str, Any]] | None = None,
) -> HTTPException:
    if isinstance(exc, AlreadySettledError):
        detail: dict[str, Any] = {"code": "already_settled", "message": str(exc)}
        if serialize_result is not None:
            detail["existing"] = serialize_result(exc.existing)
        return HTTPException(status_code=409, detail=detail)

    if isinstance(exc, InvalidStateError):
        return HTTPException(
            status_code=409,
            detail={"code": "invalid_state", "message": str(exc), "count": exc.count},
        )

    if isinstance(exc, InvalidConfigError):
        return HTTPException(
            status_code=422,
            detail={"code": "invalid_input", "message": str(exc)},
        )

    if isinstance(exc, StoreUnavailableError):
        code = "lease_held" if isinstance(exc, LeaseHeldError) else "store_unavailable"
        return HTTPException(
            status_code=503,
            detail={"code": code, "message": str(exc), "retryable": True},
        )

    return HTTPException(
        status_code=500,
        detail={"code": "accounting_error", "message": str(exc)},
    )
