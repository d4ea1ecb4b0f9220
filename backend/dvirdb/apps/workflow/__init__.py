from .engine import apply_transition, check_transition
from .registry import WORKFLOWS, allowed_targets

__all__ = ["WORKFLOWS", "allowed_targets", "apply_transition", "check_transition"]
