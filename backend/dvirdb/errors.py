# backend/dvirdb/errors.py
"""
Domain errors raised by the inspection and defect services.

Every error carries a machine-readable `code` and a `detail` list of
``{"field": ..., "reason": ...}`` items, the same shape the workflow engine
uses for guard failures. HTTP mapping lives in `dvirdb.main`.
"""

from __future__ import annotations

from typing import Dict, List, Optional


FieldProblems = List[Dict[str, str]]


class DVIRError(Exception):
    """Base class for all engine errors."""

    code = "dvir_error"

    def __init__(self, message: str, *, detail: Optional[FieldProblems] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail: FieldProblems = detail or []

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "detail": self.detail}


class InvalidInput(DVIRError):
    """Missing or malformed required field. Nothing is applied."""

    code = "invalid_input"

    @classmethod
    def missing(cls, *fields: str) -> "InvalidInput":
        return cls(
            f"Missing required fields: {', '.join(fields)}",
            detail=[{"field": f, "reason": "required"} for f in fields],
        )


class InvalidTransition(DVIRError):
    """Status change not permitted from the current state. State is unchanged."""

    code = "invalid_transition"


class Unauthorized(DVIRError):
    """Caller lacks the capability required for the operation."""

    code = "unauthorized"


class NotFound(DVIRError):
    code = "not_found"


class DependencyDegraded(DVIRError):
    """
    A non-critical read failed.

    Callers swallow this into a best-effort result; it must never reach an
    API client.
    """

    code = "dependency_degraded"


class StorageFailure(DVIRError):
    """A write could not be committed. Retryable; no partial state remains."""

    code = "storage_failure"

    def __init__(
        self,
        message: str,
        *,
        detail: Optional[FieldProblems] = None,
        retryable: bool = True,
    ) -> None:
        super().__init__(message, detail=detail)
        self.retryable = retryable
