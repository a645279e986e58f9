"""Werewolf validation module.

Runtime invariant checks for the session state. The game can run them
after every operation (GameSettings.validate_invariants) so that a rule
bug rolls the operation back instead of corrupting the session.

Files:
- types.py: ValidationViolation, ValidationSeverity, ValidationError
- state_consistency.py: S.1-S.7 state invariant checks
"""

from .types import ValidationViolation, ValidationSeverity, ValidationError
from .state_consistency import validate_state, ensure_valid

__all__ = [
    "ValidationViolation",
    "ValidationSeverity",
    "ValidationError",
    "validate_state",
    "ensure_valid",
]
