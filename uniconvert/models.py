from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ValidationStatus(str, Enum):
    VALID = "valid"
    INVALID = "invalid"
    WARNING = "warning"


MESSAGE_NO_CURRICULUM = "curriculum not yet uploaded"
MESSAGE_CODE_VALID = "code valid"
MESSAGE_CODE_NOT_FOUND = "code not found"
MESSAGE_CORRECTED_BY_AI = "corrected by AI"


@dataclass(frozen=True)
class RowRecord:
    """User-entered fields of one grade row, before it gets an id and a status."""

    student_id: str
    course_name: str
    numeric_grade: float = 0.0
    letter_grade: str = ""
    equivalence_code: str = ""
    curriculum_label: str = ""


@dataclass
class GradeRow:
    student_id: str
    course_name: str
    numeric_grade: float
    letter_grade: str
    equivalence_code: str
    curriculum_label: str
    row_id: int
    status: ValidationStatus
    message: str
    suggested_code: str | None = None
    suggested_reason: str | None = None

    @property
    def has_suggestion(self) -> bool:
        return self.suggested_code is not None


@dataclass(frozen=True)
class CurriculumEntry:
    code: str
    course_name: str = ""
    credits: float | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Stats:
    total: int = 0
    valid: int = 0
    invalid: int = 0
    warning: int = 0


@dataclass(frozen=True)
class ValidationResult:
    status: ValidationStatus
    message: str
