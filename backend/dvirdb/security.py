# backend/dvirdb/security.py

"""
Security helpers for DVIRdb.

Responsibilities:
- JWT access token creation (dev tooling / tests) and decoding
- FastAPI dependencies for the current user
- Access to the capability policy used by the services

Identities and credentials are owned by the external identity service; this
module never sees a password. Tokens carry the user id in `sub` and are
signed with the shared `SECRET_KEY`.
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta
from typing import Optional, Union

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from .database import get_db
from dvirdb.apps.accounts import models as account_models
from dvirdb.apps.accounts import services as account_services
from dvirdb.apps.accounts.policy import DEFAULT_POLICY, AccessPolicy

# ---------------------------------------------------------------------------
# CONFIG
# ---------------------------------------------------------------------------

# In production, ALWAYS override these via environment variables.
SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME_IN_PRODUCTION")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

try:
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(
        os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60")
    )
except ValueError:
    ACCESS_TOKEN_EXPIRE_MINUTES = 60

# Tokens are issued by the identity service; the URL only feeds the OpenAPI docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


# ---------------------------------------------------------------------------
# JWT TOKENS
# ---------------------------------------------------------------------------


def create_access_token(
    *,
    data: dict,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed JWT.

    The `data` dict should already include the subject, e.g.:
        {"sub": user.id}
    """
    to_encode = data.copy()

    expire = datetime.utcnow() + (
        expires_delta
        if expires_delta is not None
        else timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})

    return jwt.encode(to_encode, SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_subject(token: str) -> Optional[str]:
    """Return the `sub` claim of a valid token, or None."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None
    subject: Optional[Union[str, int]] = payload.get("sub")
    if subject is None:
        return None
    return str(subject)


# ---------------------------------------------------------------------------
# FASTAPI DEPENDENCIES
# ---------------------------------------------------------------------------


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> account_models.User:
    """
    Decode the JWT access token and return the corresponding User.
    """
    user_id = decode_subject(token)
    if user_id is None:
        raise _credentials_exception()

    user = account_services.get_user(db, user_id)
    if user is None:
        raise _credentials_exception()

    return user


def get_current_active_user(
    current_user: account_models.User = Depends(get_current_user),
) -> account_models.User:
    """
    Ensure the current user is active.

    Deactivated identities are blocked here rather than deeper in the app.
    """
    if not getattr(current_user, "is_active", False):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Inactive user account",
        )
    return current_user


def get_access_policy() -> AccessPolicy:
    """
    Dependency returning the capability policy for this request.

    Override with `app.dependency_overrides[get_access_policy]` to run the
    API under different grants.
    """
    return DEFAULT_POLICY
