"""ServiceResult and ServiceError — the contract every service returns.

INVARIANT: Service methods never raise for expected failures (unknown
element, missing relationship, invalid input, store errors). They return
``ok=False`` with an error code instead.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

# Error codes
NOT_FOUND = "NOT_FOUND"
STORE_ERROR = "STORE_ERROR"
RELATIONSHIP_NOT_FOUND = "RELATIONSHIP_NOT_FOUND"
INVALID_RELATIONSHIP = "INVALID_RELATIONSHIP"
DUPLICATE_ELEMENT = "DUPLICATE_ELEMENT"
INVALID_KIND = "INVALID_KIND"
CANCELLED = "CANCELLED"


class ServiceError(BaseModel):
    """Structured error payload within a ServiceResult."""

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)


class ServiceResult(BaseModel):
    """Return type for all service operations.

    Attributes:
        ok: Whether the operation succeeded.
        op: Name of the operation (e.g. ``"dependencies"``).
        data: Operation-specific payload on success.
        warnings: Non-fatal issues encountered during the operation.
        error: Structured error if ``ok`` is False.
        meta: Optional metadata (timing, counts, etc.).
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None
    meta: dict[str, Any] | None = None

    @classmethod
    def failure(
        cls,
        op: str,
        code: str,
        message: str,
        *,
        detail: dict[str, Any] | None = None,
    ) -> ServiceResult:
        return cls(
            ok=False,
            op=op,
            error=ServiceError(code=code, message=message, detail=detail or {}),
        )
