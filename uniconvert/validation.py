from __future__ import annotations

from dataclasses import replace
from typing import AbstractSet, Iterable, Sequence

from uniconvert.models import (
    MESSAGE_CODE_NOT_FOUND,
    MESSAGE_CODE_VALID,
    MESSAGE_NO_CURRICULUM,
    GradeRow,
    RowRecord,
    Stats,
    ValidationResult,
    ValidationStatus,
)


def validate_code(code: str, code_set: AbstractSet[str], curriculum_loaded: bool) -> ValidationResult:
    if not curriculum_loaded:
        return ValidationResult(ValidationStatus.WARNING, MESSAGE_NO_CURRICULUM)
    if str(code or "").strip() in code_set:
        return ValidationResult(ValidationStatus.VALID, MESSAGE_CODE_VALID)
    return ValidationResult(ValidationStatus.INVALID, MESSAGE_CODE_NOT_FOUND)


def validate(row: GradeRow | RowRecord, code_set: AbstractSet[str], curriculum_loaded: bool) -> ValidationResult:
    """Status of one row against a code set. Pure; safe to call again whenever the curriculum changes."""
    return validate_code(row.equivalence_code, code_set, curriculum_loaded)


def compute_stats(rows: Iterable[GradeRow]) -> Stats:
    total = valid = invalid = warning = 0
    for row in rows:
        total += 1
        if row.status is ValidationStatus.VALID:
            valid += 1
        elif row.status is ValidationStatus.INVALID:
            invalid += 1
        else:
            warning += 1
    return Stats(total=total, valid=valid, invalid=invalid, warning=warning)


def revalidate_all(
    rows: Sequence[GradeRow],
    code_set: AbstractSet[str],
    curriculum_loaded: bool,
) -> tuple[list[GradeRow], Stats]:
    """Re-check every row against the current curriculum.

    Returns fresh row objects with status and message refreshed (everything
    else, including ids and pending suggestions, is carried over) plus the
    stats of the new list.
    """
    refreshed: list[GradeRow] = []
    for row in rows:
        result = validate(row, code_set, curriculum_loaded)
        refreshed.append(replace(row, status=result.status, message=result.message))
    return refreshed, compute_stats(refreshed)
