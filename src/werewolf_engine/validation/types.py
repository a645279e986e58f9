"""Violation records produced by the state checks, and the error that carries them."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ValidationSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"  # logged, never rolls an operation back


class ValidationViolation(BaseModel):
    """One broken state rule."""

    rule_id: str  # "S.1" .. "S.7"
    message: str
    severity: ValidationSeverity = ValidationSeverity.ERROR
    context: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        return self.severity == ValidationSeverity.ERROR

    def __str__(self) -> str:
        return f"{self.rule_id} [{self.severity.value}] {self.message}"


class ValidationError(Exception):
    """The state broke at least one ERROR rule; the operation is rolled back."""

    def __init__(self, violations: list[ValidationViolation]):
        self.violations = violations
        super().__init__("; ".join(str(v) for v in self.errors) or "no violations")

    @property
    def errors(self) -> list[ValidationViolation]:
        return [v for v in self.violations if v.is_error]
