from __future__ import annotations

import itertools
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping

from uniconvert.config import Settings, load_settings
from uniconvert.curriculum import CurriculumStore, entries_from_rows
from uniconvert.errors import SpreadsheetDecodeError, SuggestionError
from uniconvert.gemini import GeminiMatcher
from uniconvert.models import GradeRow, RowRecord, Stats, ValidationStatus
from uniconvert.normalize import normalize_records
from uniconvert.spreadsheet import Source, export_filename, read_first_sheet, rows_to_xlsx_bytes, write_rows
from uniconvert.suggestions import Matcher, SuggestionReconciler, apply_suggestion
from uniconvert.validation import compute_stats, revalidate_all, validate

logger = logging.getLogger(__name__)

CURRICULUM_READ_ERROR = "Failed to read curriculum file: "
AI_MATCHING_ERROR = "AI matching failed. Make sure the API key is valid."


class DatasetController:
    """Owns the grade rows of one session and every operation that changes them.

    Stats are recomputed from the row list after each mutation. Row ids come
    from a per-controller counter and are never handed out twice.
    """

    def __init__(self, matcher: Matcher | None = None, settings: Settings | None = None) -> None:
        self.settings = settings or load_settings()
        self.curriculum = CurriculumStore()
        self.last_error: str | None = None
        self.ai_processing = False
        self._rows: list[GradeRow] = []
        self._stats = Stats()
        self._ids = itertools.count(1)
        self._matcher = matcher

    @property
    def rows(self) -> tuple[GradeRow, ...]:
        return tuple(self._rows)

    @property
    def stats(self) -> Stats:
        return self._stats

    def _refresh_stats(self) -> None:
        self._stats = compute_stats(self._rows)

    def find_row(self, row_id: int) -> GradeRow | None:
        return next((row for row in self._rows if row.row_id == row_id), None)

    def invalid_rows(self) -> list[GradeRow]:
        return [row for row in self._rows if row.status is ValidationStatus.INVALID]

    # ── Row entry ────────────────────────────────────────────────────────────

    def add_rows(self, records: Iterable[RowRecord]) -> list[GradeRow]:
        loaded = not self.curriculum.is_empty()
        added: list[GradeRow] = []
        for record in records:
            result = validate(record, self.curriculum.codes, loaded)
            added.append(
                GradeRow(
                    student_id=record.student_id,
                    course_name=record.course_name,
                    numeric_grade=record.numeric_grade,
                    letter_grade=record.letter_grade,
                    equivalence_code=record.equivalence_code,
                    curriculum_label=record.curriculum_label,
                    row_id=next(self._ids),
                    status=result.status,
                    message=result.message,
                )
            )
        self._rows.extend(added)
        self._refresh_stats()
        logger.debug("Added %d rows (total %d)", len(added), self._stats.total)
        return added

    def delete_row(self, row_id: int) -> None:
        self._rows = [row for row in self._rows if row.row_id != row_id]
        self._refresh_stats()
        logger.debug("Deleted row %s (total %d)", row_id, self._stats.total)

    def clear_all(self) -> None:
        self._rows = []
        self._refresh_stats()
        self.last_error = None
        logger.info("Dataset cleared")

    # ── Curriculum ───────────────────────────────────────────────────────────

    def load_curriculum(self, raw_rows: Iterable[Mapping[Any, Any]]) -> None:
        """Replace the curriculum and re-check every existing row against it."""
        entries = entries_from_rows(normalize_records(raw_rows))
        self.curriculum.load(entries)
        self._rows, self._stats = revalidate_all(
            self._rows,
            self.curriculum.codes,
            not self.curriculum.is_empty(),
        )

    def upload_curriculum(self, source: Source, filename: str | None = None) -> bool:
        try:
            raw_rows = read_first_sheet(source, filename=filename)
        except SpreadsheetDecodeError as exc:
            self.last_error = CURRICULUM_READ_ERROR + str(exc)
            logger.warning("Curriculum upload rejected: %s", exc)
            return False
        self.load_curriculum(raw_rows)
        self.last_error = None
        return True

    # ── AI suggestions ───────────────────────────────────────────────────────

    def can_request_suggestions(self) -> bool:
        return (
            not self.ai_processing
            and bool(self._rows)
            and not self.curriculum.is_empty()
            and self._stats.invalid > 0
        )

    def _get_matcher(self) -> Matcher:
        if self._matcher is None:
            self._matcher = GeminiMatcher(self.settings)
        return self._matcher

    def request_suggestions(self) -> int:
        """Ask the matcher for codes for every invalid row.

        Returns the number of rows that got a suggestion. On failure the
        error is recorded in last_error and re-raised as SuggestionError.
        """
        if not self.can_request_suggestions():
            return 0
        self.ai_processing = True
        try:
            reconciler = SuggestionReconciler(self._get_matcher())
            return reconciler.reconcile(self._rows, self.curriculum.entries)
        except SuggestionError as exc:
            self.last_error = AI_MATCHING_ERROR
            logger.error("AI matching failed: %s", exc)
            raise
        finally:
            self.ai_processing = False

    def apply_suggestion(self, row_id: int, new_code: str) -> GradeRow | None:
        row = self.find_row(row_id)
        if row is None:
            return None
        apply_suggestion(row, new_code)
        self._refresh_stats()
        logger.info("Applied code %s to row %d", new_code, row_id)
        return row

    # ── Export ───────────────────────────────────────────────────────────────

    def can_export(self) -> bool:
        return self._stats.total > 0

    def export_bytes(self) -> tuple[str, bytes]:
        if not self.can_export():
            raise ValueError("Nothing to export: the dataset is empty.")
        return export_filename(), rows_to_xlsx_bytes(self._rows)

    def export(self, directory: Path) -> Path:
        if not self.can_export():
            raise ValueError("Nothing to export: the dataset is empty.")
        return write_rows(self._rows, Path(directory) / export_filename())
