"""
Identity lookups consumed by the inspection engine.

The identity service is the authority on users; these helpers only answer
"does this user exist" and "what role do they hold" from the local mirror.
"""

from __future__ import annotations

from typing import Optional, Union

from sqlalchemy.orm import Session

from . import models


def _normalise_id(user_id: Union[str, int, None]) -> Optional[str]:
    if user_id is None:
        return None
    normalised = str(user_id).strip()
    return normalised or None


def get_user(db: Session, user_id: Union[str, int, None]) -> Optional[models.User]:
    normalised = _normalise_id(user_id)
    if normalised is None:
        return None
    return db.query(models.User).filter(models.User.id == normalised).first()


def user_exists(db: Session, user_id: Union[str, int, None]) -> bool:
    normalised = _normalise_id(user_id)
    if normalised is None:
        return False
    return (
        db.query(models.User.id).filter(models.User.id == normalised).first()
        is not None
    )


def get_role(db: Session, user_id: Union[str, int, None]) -> Optional[models.AccountRole]:
    user = get_user(db, user_id)
    return user.role if user else None
