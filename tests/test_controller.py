from __future__ import annotations

import io
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from openpyxl import Workbook, load_workbook

from uniconvert.config import Settings
from uniconvert.controller import AI_MATCHING_ERROR, CURRICULUM_READ_ERROR, DatasetController
from uniconvert.errors import SuggestionError
from uniconvert.models import Stats, ValidationStatus
from uniconvert.rows import build_bulk_rows, build_single_row
from uniconvert.suggestions import Suggestion

CURRICULUM_ROWS = [
    {"Kode MK ": "IF101", "Nama MK": "Algoritma dan Pemrograman", "SKS": 3},
    {"Kode MK ": " IF201 ", "Nama MK": "Basis Data", "SKS": 4},
]


def curriculum_bytes(rows: list[list]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.append(["Kode MK", "Nama MK", "SKS"])
    for row in rows:
        ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


class FakeMatcher:
    def __init__(self, suggestions=None, error: Exception | None = None):
        self.suggestions = suggestions or []
        self.error = error
        self.calls = []

    def __call__(self, invalid_items, curriculum_items):
        self.calls.append((list(invalid_items), list(curriculum_items)))
        if self.error is not None:
            raise self.error
        return list(self.suggestions)


class ControllerTestCase(unittest.TestCase):
    def make_controller(self, matcher=None) -> DatasetController:
        return DatasetController(matcher=matcher, settings=Settings(api_key="test-key"))

    def assertStatsConsistent(self, controller: DatasetController) -> None:
        rows = controller.rows
        stats = controller.stats
        self.assertEqual(stats.total, len(rows))
        self.assertEqual(stats.total, stats.valid + stats.invalid + stats.warning)
        self.assertEqual(stats.valid, sum(1 for r in rows if r.status is ValidationStatus.VALID))
        self.assertEqual(stats.invalid, sum(1 for r in rows if r.status is ValidationStatus.INVALID))


class RowEntryTests(ControllerTestCase):
    def test_rows_added_before_curriculum_are_warnings(self):
        controller = self.make_controller()
        controller.add_rows(build_bulk_rows("A\nB", codes="IF101\nX", student_id="1"))
        self.assertTrue(all(row.status is ValidationStatus.WARNING for row in controller.rows))
        self.assertEqual(controller.stats, Stats(total=2, valid=0, invalid=0, warning=2))

    def test_rows_added_after_curriculum_are_validated_once(self):
        controller = self.make_controller()
        controller.load_curriculum(CURRICULUM_ROWS)
        added = controller.add_rows(build_bulk_rows("A\nB", codes="IF201\nX", student_id="1"))
        self.assertEqual([row.status for row in added], [ValidationStatus.VALID, ValidationStatus.INVALID])
        self.assertEqual(controller.stats, Stats(total=2, valid=1, invalid=1, warning=0))
        self.assertStatsConsistent(controller)

    def test_row_ids_are_unique_and_never_reused(self):
        controller = self.make_controller()
        first = controller.add_rows(build_bulk_rows("A\nB", student_id="1"))
        controller.delete_row(first[1].row_id)
        controller.clear_all()
        later = controller.add_rows(build_bulk_rows("C", student_id="1"))
        ids = [row.row_id for row in first + later]
        self.assertEqual(len(ids), len(set(ids)))

    def test_single_and_bulk_entry_validate_identically(self):
        controller = self.make_controller()
        controller.load_curriculum(CURRICULUM_ROWS)
        single = controller.add_rows(build_single_row("1", "Basis Data", "80", "A", "IF201", "K"))[0]
        bulk = controller.add_rows(build_bulk_rows("Basis Data", "80", "A", "IF201", student_id="1", curriculum_label="K"))[0]
        self.assertEqual((single.status, single.message), (bulk.status, bulk.message))

    def test_delete_removes_only_that_row(self):
        controller = self.make_controller()
        rows = controller.add_rows(build_bulk_rows("A\nB\nC", student_id="1"))
        controller.delete_row(rows[1].row_id)
        self.assertEqual([row.course_name for row in controller.rows], ["A", "C"])
        self.assertStatsConsistent(controller)

    def test_deleting_unknown_id_is_a_no_op(self):
        controller = self.make_controller()
        controller.add_rows(build_bulk_rows("A", student_id="1"))
        before_rows, before_stats = controller.rows, controller.stats
        controller.delete_row(9999)
        self.assertEqual(controller.rows, before_rows)
        self.assertEqual(controller.stats, before_stats)

    def test_clear_all_resets_rows_stats_and_error(self):
        controller = self.make_controller()
        controller.add_rows(build_bulk_rows("A\nB", student_id="1"))
        controller.last_error = "old"
        controller.clear_all()
        self.assertEqual(controller.rows, ())
        self.assertEqual(controller.stats, Stats())
        self.assertIsNone(controller.last_error)

    def test_clear_all_on_empty_dataset(self):
        controller = self.make_controller()
        controller.clear_all()
        self.assertEqual(controller.stats, Stats(0, 0, 0, 0))


class CurriculumLoadTests(ControllerTestCase):
    def test_loading_revalidates_existing_rows(self):
        controller = self.make_controller()
        controller.add_rows(build_bulk_rows("A\nB\nC", codes="IF101\nIF201\nZZ", student_id="1"))
        controller.load_curriculum(CURRICULUM_ROWS)
        self.assertEqual(
            [row.status for row in controller.rows],
            [ValidationStatus.VALID, ValidationStatus.VALID, ValidationStatus.INVALID],
        )
        for row in controller.rows:
            self.assertEqual(row.status is ValidationStatus.VALID, row.equivalence_code.strip() in {"IF101", "IF201"})
        self.assertStatsConsistent(controller)

    def test_new_curriculum_replaces_old_one(self):
        controller = self.make_controller()
        controller.add_rows(build_bulk_rows("A", codes="IF101", student_id="1"))
        controller.load_curriculum(CURRICULUM_ROWS)
        controller.load_curriculum([{"kode_mk": "NEW"}])
        self.assertIs(controller.rows[0].status, ValidationStatus.INVALID)
        self.assertEqual(controller.curriculum.codes, {"NEW"})

    def test_empty_curriculum_turns_rows_back_to_warnings(self):
        controller = self.make_controller()
        controller.load_curriculum(CURRICULUM_ROWS)
        controller.add_rows(build_bulk_rows("A", codes="IF101", student_id="1"))
        controller.load_curriculum([])
        self.assertIs(controller.rows[0].status, ValidationStatus.WARNING)
        self.assertStatsConsistent(controller)

    def test_revalidation_keeps_row_ids(self):
        controller = self.make_controller()
        ids = [row.row_id for row in controller.add_rows(build_bulk_rows("A\nB", student_id="1"))]
        controller.load_curriculum(CURRICULUM_ROWS)
        self.assertEqual([row.row_id for row in controller.rows], ids)

    def test_upload_reads_first_sheet(self):
        controller = self.make_controller()
        controller.last_error = "stale"
        ok = controller.upload_curriculum(curriculum_bytes([["IF101", "Algoritma", 3]]), filename="kurikulum.xlsx")
        self.assertTrue(ok)
        self.assertIsNone(controller.last_error)
        self.assertEqual(controller.curriculum.codes, {"IF101"})

    def test_failed_upload_keeps_previous_state(self):
        controller = self.make_controller()
        controller.load_curriculum(CURRICULUM_ROWS)
        controller.add_rows(build_bulk_rows("A", codes="IF101", student_id="1"))
        rows_before = controller.rows
        ok = controller.upload_curriculum(b"not-a-workbook", filename="broken.xlsx")
        self.assertFalse(ok)
        self.assertTrue(controller.last_error.startswith(CURRICULUM_READ_ERROR))
        self.assertEqual(controller.curriculum.codes, {"IF101", "IF201"})
        self.assertEqual(controller.rows, rows_before)


class SuggestionFlowTests(ControllerTestCase):
    def setUp(self):
        self.matcher = FakeMatcher([Suggestion("Basis Data", "IF201", "same course")])
        self.controller = self.make_controller(self.matcher)
        self.controller.load_curriculum(CURRICULUM_ROWS)
        self.rows = self.controller.add_rows(
            build_bulk_rows("Basis Data\nAlgoritma", codes="BD01\nIF101", student_id="1")
        )

    def test_request_attaches_suggestions_without_changing_status(self):
        self.assertEqual(self.controller.request_suggestions(), 1)
        row = self.controller.find_row(self.rows[0].row_id)
        self.assertEqual(row.suggested_code, "IF201")
        self.assertIs(row.status, ValidationStatus.INVALID)
        self.assertFalse(self.controller.ai_processing)
        invalid_items, curriculum_items = self.matcher.calls[0]
        self.assertEqual([item.course_name for item in invalid_items], ["Basis Data"])
        self.assertEqual(len(curriculum_items), 2)

    def test_apply_marks_row_valid_even_for_unknown_code(self):
        row_id = self.rows[0].row_id
        self.controller.request_suggestions()
        row = self.controller.apply_suggestion(row_id, "NEW1")
        self.assertEqual(row.equivalence_code, "NEW1")
        self.assertIs(row.status, ValidationStatus.VALID)
        self.assertIsNone(row.suggested_code)
        self.assertFalse(self.controller.curriculum.contains("NEW1"))
        self.assertEqual(self.controller.stats, Stats(total=2, valid=2, invalid=0, warning=0))

    def test_apply_unknown_row_is_a_no_op(self):
        self.assertIsNone(self.controller.apply_suggestion(12345, "IF201"))
        self.assertEqual(self.controller.stats.invalid, 1)

    def test_failure_is_atomic_and_recorded(self):
        self.controller.request_suggestions()
        self.matcher.error = TimeoutError("slow")
        self.controller.add_rows(build_bulk_rows("Jaringan", codes="JK1", student_id="1"))
        with self.assertRaises(SuggestionError):
            self.controller.request_suggestions()
        self.assertEqual(self.controller.last_error, AI_MATCHING_ERROR)
        self.assertFalse(self.controller.ai_processing)
        suggestions = [row.suggested_code for row in self.controller.rows]
        self.assertEqual(suggestions, ["IF201", None, None])

    def test_nothing_to_do_without_invalid_rows_or_curriculum(self):
        controller = self.make_controller(self.matcher)
        controller.add_rows(build_bulk_rows("A", codes="X", student_id="1"))
        self.assertFalse(controller.can_request_suggestions())
        self.assertEqual(controller.request_suggestions(), 0)
        self.assertEqual(len(self.matcher.calls), 0)

    def test_in_flight_request_blocks_a_second_one(self):
        self.controller.ai_processing = True
        self.assertEqual(self.controller.request_suggestions(), 0)
        self.assertEqual(self.matcher.calls, [])


class ExportTests(ControllerTestCase):
    def test_export_writes_six_columns(self):
        controller = self.make_controller()
        controller.add_rows(build_single_row("12345", "Basis Data", "85", "A", "IF201", "K2024"))
        with tempfile.TemporaryDirectory() as tmpdir, mock.patch.dict(os.environ, {"UNICONVERT_OUTPUT_STAMP": "20260301T010203"}):
            path = controller.export(Path(tmpdir))
            self.assertEqual(path.name, "Rekap_Konversi_Gabungan_20260301T010203.xlsx")
            ws = load_workbook(path).active
            values = list(ws.iter_rows(values_only=True))
        self.assertEqual(len(values[0]), 6)
        self.assertEqual(values[1], ("12345", "Basis Data", 85, "A", "IF201", "K2024"))

    def test_export_of_empty_dataset_is_refused(self):
        controller = self.make_controller()
        self.assertFalse(controller.can_export())
        with self.assertRaises(ValueError):
            controller.export_bytes()


if __name__ == "__main__":
    unittest.main()
