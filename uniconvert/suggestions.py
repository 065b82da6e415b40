from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from uniconvert.errors import SuggestionError
from uniconvert.models import MESSAGE_CORRECTED_BY_AI, CurriculumEntry, GradeRow, ValidationStatus

logger = logging.getLogger(__name__)

NO_MATCH = "NO_MATCH"


@dataclass(frozen=True)
class Suggestion:
    original_name: str
    suggested_code: str
    reason: str = ""


@dataclass(frozen=True)
class InvalidItem:
    course_name: str
    current_code: str


@dataclass(frozen=True)
class CurriculumItem:
    code: str
    course_name: str


Matcher = Callable[[Sequence[InvalidItem], Sequence[CurriculumItem]], list[Suggestion]]


def build_payload(
    invalid_rows: Iterable[GradeRow],
    curriculum: Iterable[CurriculumEntry],
) -> tuple[list[InvalidItem], list[CurriculumItem]]:
    """Reduce rows and curriculum to code/name pairs to keep the AI request small."""
    invalid_items = [InvalidItem(row.course_name, row.equivalence_code) for row in invalid_rows]
    curriculum_items = [CurriculumItem(entry.code, entry.course_name) for entry in curriculum]
    return invalid_items, curriculum_items


def merge_suggestions(rows: Iterable[GradeRow], suggestions: Sequence[Suggestion]) -> int:
    """Attach suggestions to invalid rows by exact course-name match.

    Rows are visited in list order and each one claims the first unclaimed
    suggestion carrying its exact course name, so two invalid rows sharing a
    name with a single suggestion between them leave the second row without
    one. A NO_MATCH answer is claimed but changes nothing. Only the
    suggestion fields are written; code and status stay as they were.

    Returns the number of rows that received a suggestion.
    """
    claimed: set[int] = set()
    attached = 0
    for row in rows:
        if row.status is not ValidationStatus.INVALID:
            continue
        match_index = next(
            (
                index
                for index, suggestion in enumerate(suggestions)
                if index not in claimed and suggestion.original_name == row.course_name
            ),
            None,
        )
        if match_index is None:
            continue
        claimed.add(match_index)
        suggestion = suggestions[match_index]
        if suggestion.suggested_code == NO_MATCH:
            continue
        row.suggested_code = suggestion.suggested_code
        row.suggested_reason = suggestion.reason
        attached += 1
    return attached


def apply_suggestion(row: GradeRow, new_code: str) -> GradeRow:
    # Accepted suggestions are trusted as-is; the code is not re-checked against the curriculum.
    row.equivalence_code = new_code
    row.status = ValidationStatus.VALID
    row.message = MESSAGE_CORRECTED_BY_AI
    row.suggested_code = None
    row.suggested_reason = None
    return row


class SuggestionReconciler:
    def __init__(self, matcher: Matcher) -> None:
        self._matcher = matcher

    def request_suggestions(
        self,
        invalid_rows: Sequence[GradeRow],
        curriculum: Iterable[CurriculumEntry],
    ) -> list[Suggestion]:
        invalid_items, curriculum_items = build_payload(invalid_rows, curriculum)
        logger.info(
            "Requesting suggestions for %d invalid rows against %d curriculum entries",
            len(invalid_items),
            len(curriculum_items),
        )
        try:
            suggestions = self._matcher(invalid_items, curriculum_items)
        except SuggestionError:
            raise
        except Exception as exc:
            raise SuggestionError(f"AI matching request failed: {exc}") from exc
        return list(suggestions)

    def reconcile(self, rows: Sequence[GradeRow], curriculum: Iterable[CurriculumEntry]) -> int:
        """Fetch the whole batch first, then merge; a failed request touches no row."""
        invalid_rows = [row for row in rows if row.status is ValidationStatus.INVALID]
        if not invalid_rows:
            return 0
        suggestions = self.request_suggestions(invalid_rows, curriculum)
        attached = merge_suggestions(invalid_rows, suggestions)
        logger.info("Attached %d of %d suggestions", attached, len(suggestions))
        return attached
