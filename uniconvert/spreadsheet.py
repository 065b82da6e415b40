"""
spreadsheet.py — workbook decode/encode for uniconvert

Decode:
    rows = read_first_sheet("kurikulum.xlsx")
    rows = read_first_sheet(uploaded_bytes, filename="kurikulum.xlsx")

    Only the first sheet is read. Its header row supplies the keys; fully
    empty rows are dropped and empty cells come back as "".

Encode:
    write_rows(rows, Path("out") / export_filename())
    payload = rows_to_xlsx_bytes(rows)

    The export carries exactly six columns (see EXPORT_HEADERS). Row ids,
    validation state and suggestions never leave the process.
"""

from __future__ import annotations

import io
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, BinaryIO, Iterable, Union

import openpyxl
import pandas as pd
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from uniconvert.errors import SpreadsheetDecodeError
from uniconvert.models import GradeRow

logger = logging.getLogger(__name__)

Source = Union[str, Path, bytes, BinaryIO]

SUPPORTED_SUFFIXES = {".xlsx", ".xlsm", ".xls"}
EXPORT_SHEET_TITLE = "Hasil Konversi"
EXPORT_HEADERS = [
    "nim",
    "nama_mk",
    "nilai_angka",
    "nilai_huruf",
    "kode_mk_penyetaraan",
    "kurikulum_mk_penyetaraan",
]
EXPORT_PREFIX = "Rekap_Konversi_Gabungan_"
OUTPUT_STAMP_ENV = "UNICONVERT_OUTPUT_STAMP"
HEADER_COLOR = "4CAF50"


# ══════════════════════════════════════════════════════════════════════════════
# DECODE
# ══════════════════════════════════════════════════════════════════════════════

def _source_suffix(source: Source, filename: str | None) -> str | None:
    if filename:
        return Path(filename).suffix.lower()
    if isinstance(source, (str, Path)):
        return Path(source).suffix.lower()
    return None


def read_first_sheet(source: Source, filename: str | None = None) -> list[dict[str, Any]]:
    """
    Read the first sheet of a workbook into header-keyed row dicts.

    Raises:
        SpreadsheetDecodeError  for unsupported, missing, corrupt or unreadable
                                input. The original exception is chained.
    """
    suffix = _source_suffix(source, filename)
    if suffix is not None and suffix not in SUPPORTED_SUFFIXES:
        supported = ", ".join(sorted(SUPPORTED_SUFFIXES))
        raise SpreadsheetDecodeError(f"Unsupported format '{suffix or '[missing extension]'}'. Supported: {supported}")

    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)

    try:
        df = pd.read_excel(source, sheet_name=0, dtype=object)
    except ImportError as exc:
        if suffix == ".xls":
            raise SpreadsheetDecodeError(".xls files require xlrd — run: pip install xlrd") from exc
        raise SpreadsheetDecodeError(str(exc)) from exc
    except Exception as exc:
        raise SpreadsheetDecodeError(f"Could not read workbook: {exc}") from exc

    df = df.dropna(how="all")
    df = df.astype(object).where(df.notna(), "")
    rows = df.to_dict(orient="records")
    logger.debug("Decoded %d rows with columns %s", len(rows), list(df.columns))
    return rows


# ══════════════════════════════════════════════════════════════════════════════
# ENCODE
# ══════════════════════════════════════════════════════════════════════════════

def timestamp_token(now: datetime | None = None) -> str:
    override = os.environ.get(OUTPUT_STAMP_ENV)
    if override:
        return override
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y%m%dT%H%M%S")


def export_filename(now: datetime | None = None) -> str:
    return f"{EXPORT_PREFIX}{timestamp_token(now)}.xlsx"


def export_values(row: GradeRow) -> list[Any]:
    return [
        row.student_id,
        row.course_name,
        row.numeric_grade,
        row.letter_grade,
        row.equivalence_code,
        row.curriculum_label,
    ]


def _infer_col_widths(rows: list[list], min_width: int = 10, max_width: int = 60, sample: int = 300) -> list[int]:
    if not rows:
        return []
    widths = [max(min_width, min(max_width, len(str(v)) + 2)) for v in rows[0]]
    for row in rows[1 : sample + 1]:
        for i, val in enumerate(row):
            widths[i] = max(widths[i], min(max_width, len(str(val)) + 2))
    return widths


def _style_sheet(ws, col_widths: list[int], header_color: str) -> None:
    """Bold coloured header, frozen first row, column widths."""
    fill = PatternFill("solid", fgColor=header_color)
    font = Font(bold=True, color="FFFFFF")
    for cell in ws[1]:
        cell.font = font
        cell.fill = fill
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=False)
    ws.freeze_panes = "A2"
    for i, width in enumerate(col_widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = width


def build_workbook(rows: Iterable[GradeRow]) -> openpyxl.Workbook:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = EXPORT_SHEET_TITLE
    ws.append(EXPORT_HEADERS)
    rows_for_width: list[list] = [list(EXPORT_HEADERS)]
    for row in rows:
        values = export_values(row)
        ws.append(values)
        rows_for_width.append(values)
    _style_sheet(ws, _infer_col_widths(rows_for_width), HEADER_COLOR)
    return wb


def rows_to_xlsx_bytes(rows: Iterable[GradeRow]) -> bytes:
    buffer = io.BytesIO()
    build_workbook(rows).save(buffer)
    return buffer.getvalue()


def write_rows(rows: Iterable[GradeRow], output_path: Path) -> Path:
    output_path = Path(output_path)
    if output_path.exists():
        raise FileExistsError(f"Refusing to overwrite existing output: {output_path}")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    build_workbook(rows).save(output_path)
    logger.info("Export written: %s", output_path)
    return output_path
