from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from dvirdb.apps.accounts.models import User
from dvirdb.apps.accounts.policy import AccessPolicy, Capability
from dvirdb.database import get_read_db
from dvirdb.security import get_access_policy, get_current_active_user

from . import schemas, services


router = APIRouter(
    prefix="/audit",
    tags=["audit"],
)


@router.get("/", response_model=List[schemas.AuditEventRead])
def list_audit_events(
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    action: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
    policy: AccessPolicy = Depends(get_access_policy),
):
    # Reviewers and admins see the trail; drivers do not.
    policy.require(current_user, Capability.REVIEW)
    return services.list_audit_events(
        db,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        start=start,
        end=end,
    )
