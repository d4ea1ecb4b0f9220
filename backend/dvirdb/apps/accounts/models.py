# backend/dvirdb/apps/accounts/models.py

from __future__ import annotations

import enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Index,
    String,
    func,
)

from dvirdb.database import Base
from dvirdb.utils.identifiers import generate_uuid7


# ---------------------------------------------------------------------------
# ENUMS
# ---------------------------------------------------------------------------


class AccountRole(str, enum.Enum):
    """Roles as assigned by the identity provider.

    What each role may do is decided by `policy.AccessPolicy`, not here.
    """

    ADMIN = "ADMIN"                   # may hard-delete defects
    FLEET_MANAGER = "FLEET_MANAGER"   # reviews and approves DVIRs
    MECHANIC = "MECHANIC"             # corrects defects
    DRIVER = "DRIVER"                 # performs inspections
    VIEW_ONLY = "VIEW_ONLY"


# ---------------------------------------------------------------------------
# USERS
# ---------------------------------------------------------------------------


class User(Base):
    """
    Local mirror of an identity held by the external identity service.

    Identities are provisioned elsewhere; the engine only needs to know that
    a user exists, whether they are active and which role they hold. No
    credentials are stored here.
    """

    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_role_active", "role", "is_active"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)

    email = Column(String(255), nullable=False, unique=True, index=True)
    full_name = Column(String(255), nullable=False)

    role = Column(
        Enum(AccountRole, name="account_role_enum"),
        nullable=False,
        default=AccountRole.DRIVER,
        index=True,
    )

    is_active = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    @property
    def is_admin(self) -> bool:
        return self.role == AccountRole.ADMIN

    def __repr__(self) -> str:
        return f"<User id={self.id} role={self.role}>"
