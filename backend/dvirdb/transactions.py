# backend/dvirdb/transactions.py
"""
Transaction helpers shared by the services that own a transaction boundary.

A failed write is rolled back and surfaced as a retryable StorageFailure;
nothing retries internally.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import StorageFailure

logger = logging.getLogger(__name__)


def storage_failure(
    db: Session,
    exc: SQLAlchemyError,
    *,
    operation: str,
    entity_id: Optional[str] = None,
) -> StorageFailure:
    """Roll back after `exc` and return the StorageFailure to raise."""
    db.rollback()
    logger.error(
        "Write failed",
        exc_info=exc,
        extra={
            "error_class": StorageFailure.code,
            "operation": operation,
            "entity_id": entity_id,
        },
    )
    return StorageFailure(f"Could not write {operation}; retry the request.")


def commit_or_fail(db: Session, *, operation: str, entity_id: Optional[str] = None) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, operation=operation, entity_id=entity_id) from exc


def flush_or_fail(db: Session, *, operation: str) -> None:
    try:
        db.flush()
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, operation=operation) from exc
