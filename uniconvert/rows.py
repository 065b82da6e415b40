from __future__ import annotations

import math

from uniconvert.models import RowRecord

def clean_lines(text: str | None) -> list[str]:
    """Split a pasted column into trimmed, non-empty lines."""
    if not text:
        return []
    return [line.strip() for line in text.splitlines() if line.strip()]


def parse_grade(value: str | float | int | None) -> float:
    """Parse a numeric grade, accepting a comma decimal separator. Anything unusable becomes 0."""
    if value is None:
        return 0.0
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value) if math.isfinite(value) else 0.0
    text = str(value).strip().replace(",", ".", 1)
    if not text:
        return 0.0
    try:
        parsed = float(text)
    except ValueError:
        return 0.0
    return parsed if math.isfinite(parsed) else 0.0


def _line_or_default(lines: list[str], index: int) -> str:
    # The course-name column drives the row count. A shorter column pads with
    # "" and lines beyond the last course name are ignored.
    return lines[index] if index < len(lines) else ""


def build_bulk_rows(
    course_names: str,
    numeric_grades: str = "",
    letter_grades: str = "",
    codes: str = "",
    *,
    student_id: str = "",
    curriculum_label: str = "",
) -> list[RowRecord]:
    """Turn pasted columns into one record per course name.

    Every column is cleaned with clean_lines first, so blank lines inside a
    paste never shift the alignment. Row ``i`` pairs the ``i``-th course name
    with the ``i``-th line of each other column, or an empty default when that
    column ran out. Mismatched column lengths are not an error.
    """
    names = clean_lines(course_names)
    grades = clean_lines(numeric_grades)
    letters = clean_lines(letter_grades)
    code_lines = clean_lines(codes)

    records: list[RowRecord] = []
    for i, name in enumerate(names):
        records.append(
            RowRecord(
                student_id=student_id,
                course_name=name,
                numeric_grade=parse_grade(_line_or_default(grades, i)),
                letter_grade=_line_or_default(letters, i),
                equivalence_code=_line_or_default(code_lines, i),
                curriculum_label=curriculum_label,
            )
        )
    return records


def build_single_row(
    student_id: str,
    course_name: str,
    numeric_grade: str | float | None = "",
    letter_grade: str = "",
    equivalence_code: str = "",
    curriculum_label: str = "",
) -> list[RowRecord]:
    # Student id and course name are required; without them nothing is produced.
    if not (student_id or "").strip() or not (course_name or "").strip():
        return []
    return [
        RowRecord(
            student_id=student_id,
            course_name=course_name,
            numeric_grade=parse_grade(numeric_grade),
            letter_grade=letter_grade,
            equivalence_code=equivalence_code,
            curriculum_label=curriculum_label,
        )
    ]
