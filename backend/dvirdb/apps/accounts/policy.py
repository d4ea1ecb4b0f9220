# backend/dvirdb/apps/accounts/policy.py
"""
Capability policy for inspection and defect operations.

Services receive an `AccessPolicy` and call `policy.require(actor, ...)`
before touching any row. Routers use the process default
(`DEFAULT_POLICY`); tests and other deployments can inject their own
grants.
"""

from __future__ import annotations

import enum
from typing import Dict, FrozenSet, Mapping, Optional

from dvirdb.errors import Unauthorized

from .models import AccountRole, User


class Capability(str, enum.Enum):
    READ = "READ"
    INSPECT = "INSPECT"              # create inspections and defects
    UPDATE_DEFECT = "UPDATE_DEFECT"  # status changes, corrections, deferrals
    REVIEW = "REVIEW"                # review / approve inspections
    HARD_DELETE = "HARD_DELETE"      # administrative defect removal


_FIELD_CAPABILITIES = frozenset(
    {Capability.READ, Capability.INSPECT, Capability.UPDATE_DEFECT}
)

DEFAULT_GRANTS: Dict[AccountRole, FrozenSet[Capability]] = {
    AccountRole.ADMIN: frozenset(Capability),
    AccountRole.FLEET_MANAGER: _FIELD_CAPABILITIES | {Capability.REVIEW},
    AccountRole.MECHANIC: _FIELD_CAPABILITIES,
    AccountRole.DRIVER: _FIELD_CAPABILITIES,
    AccountRole.VIEW_ONLY: frozenset({Capability.READ}),
}


class AccessPolicy:
    def __init__(
        self,
        grants: Optional[Mapping[AccountRole, FrozenSet[Capability]]] = None,
    ) -> None:
        self._grants = dict(grants if grants is not None else DEFAULT_GRANTS)

    def capabilities_for(self, actor: Optional[User]) -> FrozenSet[Capability]:
        if actor is None or not getattr(actor, "is_active", False):
            return frozenset()
        return self._grants.get(actor.role, frozenset())

    def allows(self, actor: Optional[User], capability: Capability) -> bool:
        return capability in self.capabilities_for(actor)

    def require(self, actor: Optional[User], capability: Capability) -> User:
        if not self.allows(actor, capability):
            who = getattr(actor, "id", None) or "anonymous"
            raise Unauthorized(
                f"User {who} lacks {capability.value} capability.",
                detail=[{"field": "actor", "reason": f"{capability.value} required"}],
            )
        return actor


DEFAULT_POLICY = AccessPolicy()
