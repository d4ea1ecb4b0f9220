from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from dvirdb.apps.audit import services as audit_services
from dvirdb.errors import InvalidInput, InvalidTransition

from .registry import WORKFLOWS


def _state(value: Any) -> str:
    return getattr(value, "value", value)


def check_transition(
    db: Session,
    *,
    entity_type: str,
    from_state: Any,
    to_state: Any,
    before_obj: Any,
    after_obj: Any,
) -> None:
    """
    Validate a transition without recording it.

    Raises InvalidTransition when the registry does not allow the move and
    InvalidInput when a guard reports missing requirements.
    """
    from_state = _state(from_state)
    to_state = _state(to_state)

    workflow = WORKFLOWS.get(entity_type)
    if not workflow:
        raise InvalidTransition(
            f"No workflow registered for {entity_type}",
            detail=[{"field": "entity_type", "reason": f"No workflow registered for {entity_type}"}],
        )

    transitions = workflow.get("transitions", {})
    allowed = transitions.get(from_state, {})
    guards = allowed.get(to_state)

    if guards is None:
        raise InvalidTransition(
            f"Cannot transition {entity_type} from {from_state} to {to_state}",
            detail=[{"field": "status", "reason": f"Cannot transition from {from_state} to {to_state}"}],
        )

    failures: List[Dict[str, str]] = []
    for guard in guards:
        failures.extend(
            guard(
                db,
                before_obj=before_obj,
                after_obj=after_obj,
                from_state=from_state,
                to_state=to_state,
            )
        )

    if failures:
        raise InvalidInput(
            f"Missing requirements for {entity_type} {from_state} -> {to_state}",
            detail=failures,
        )


def apply_transition(
    db: Session,
    *,
    actor_user_id: Optional[str],
    entity_type: str,
    entity_id: str,
    from_state: Any,
    to_state: Any,
    before_obj: Any,
    after_obj: Any,
    correlation_id: Optional[str] = None,
    critical: bool = True,
) -> None:
    check_transition(
        db,
        entity_type=entity_type,
        from_state=from_state,
        to_state=to_state,
        before_obj=before_obj,
        after_obj=after_obj,
    )

    before_payload: Dict[str, Any] = {"status": _state(from_state)}
    after_payload: Dict[str, Any] = {"status": _state(to_state)}
    if isinstance(before_obj, dict):
        before_payload.update(before_obj)
    if isinstance(after_obj, dict):
        after_payload.update(after_obj)

    audit_services.log_event(
        db,
        actor_user_id=actor_user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action="transition",
        before=before_payload,
        after=after_payload,
        correlation_id=correlation_id,
        metadata={"workflow": entity_type},
        critical=critical,
    )
