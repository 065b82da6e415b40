#!/usr/bin/env python3
from __future__ import annotations

import hashlib

import pandas as pd
import streamlit as st

from uniconvert.config import configure_logging, load_settings
from uniconvert.controller import DatasetController
from uniconvert.errors import SuggestionError
from uniconvert.models import GradeRow, ValidationStatus
from uniconvert.rows import build_bulk_rows, build_single_row, clean_lines
from uniconvert.spreadsheet import SUPPORTED_SUFFIXES

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
STATUS_LABELS = {
    ValidationStatus.VALID: "✅ Valid",
    ValidationStatus.INVALID: "❌ Invalid",
    ValidationStatus.WARNING: "⚠️ Warning",
}
BULK_FIELDS = ("bulk_course_names", "bulk_numeric_grades", "bulk_letter_grades", "bulk_codes")
SINGLE_ROW_FIELDS = ("single_course_name", "single_numeric_grade", "single_letter_grade", "single_code")


def status_label(status: ValidationStatus) -> str:
    return STATUS_LABELS[status]


def rows_frame(rows: list[GradeRow] | tuple[GradeRow, ...]) -> pd.DataFrame:
    records = [
        {
            "Student ID": row.student_id,
            "Course": row.course_name,
            "Grade": row.numeric_grade,
            "Letter": row.letter_grade,
            "Code": row.equivalence_code,
            "Curriculum": row.curriculum_label,
            "Status": status_label(row.status),
            "Message": row.message,
            "Suggestion": row.suggested_code or "",
        }
        for row in rows
    ]
    return pd.DataFrame(records, columns=["Student ID", "Course", "Grade", "Letter", "Code", "Curriculum", "Status", "Message", "Suggestion"])


def line_count(text: str) -> int:
    return len(clean_lines(text))


def upload_signature(name: str, payload: bytes) -> str:
    return f"{name}:{hashlib.sha256(payload).hexdigest()}"


def ensure_state() -> None:
    if "controller" not in st.session_state:
        settings = load_settings()
        configure_logging(settings.log_level)
        st.session_state["controller"] = DatasetController(settings=settings)
    st.session_state.setdefault("curriculum_signature", None)
    st.session_state.setdefault("curriculum_name", None)
    st.session_state.setdefault("ai_requested", False)
    st.session_state.setdefault("flash", None)


def controller() -> DatasetController:
    return st.session_state["controller"]


# ── Curriculum upload ──────────────────────────────────────────────────────────

def render_curriculum_upload() -> None:
    uploaded = st.file_uploader(
        "Upload reference curriculum",
        type=sorted(suffix.lstrip(".") for suffix in SUPPORTED_SUFFIXES),
        help="Used for validation. Needs a code column (Kode MK) and a name column (Nama MK).",
        key="curriculum_upload",
    )
    if uploaded is None:
        return
    payload = uploaded.getvalue()
    signature = upload_signature(uploaded.name, payload)
    if st.session_state["curriculum_signature"] == signature:
        return
    st.session_state["curriculum_signature"] = signature
    if controller().upload_curriculum(payload, filename=uploaded.name):
        st.session_state["curriculum_name"] = uploaded.name


# ── Data entry ────────────────────────────────────────────────────────────────

def clear_bulk_columns() -> None:
    for key in BULK_FIELDS:
        st.session_state[key] = ""


def submit_bulk() -> None:
    records = build_bulk_rows(
        st.session_state.get("bulk_course_names", ""),
        st.session_state.get("bulk_numeric_grades", ""),
        st.session_state.get("bulk_letter_grades", ""),
        st.session_state.get("bulk_codes", ""),
        student_id=st.session_state.get("bulk_student_id", "").strip(),
        curriculum_label=st.session_state.get("bulk_curriculum_label", "").strip(),
    )
    if not st.session_state.get("bulk_student_id", "").strip() or not records:
        st.session_state["flash"] = "Student ID and at least one course name are required."
        return
    controller().add_rows(records)
    st.session_state["flash"] = None
    # Keep the curriculum label for the next student.
    st.session_state["bulk_student_id"] = ""
    clear_bulk_columns()


def submit_single() -> None:
    records = build_single_row(
        st.session_state.get("single_student_id", ""),
        st.session_state.get("single_course_name", ""),
        st.session_state.get("single_numeric_grade", ""),
        st.session_state.get("single_letter_grade", ""),
        st.session_state.get("single_code", ""),
        st.session_state.get("single_curriculum_label", ""),
    )
    if not records:
        st.session_state["flash"] = "Student ID and course name are required."
        return
    controller().add_rows(records)
    st.session_state["flash"] = None
    for key in SINGLE_ROW_FIELDS:
        st.session_state[key] = ""


def render_bulk_form() -> None:
    left, right = st.columns(2)
    left.text_input("Student ID", key="bulk_student_id", placeholder="e.g. 12345678")
    right.text_input("Curriculum", key="bulk_curriculum_label", placeholder="e.g. Kurikulum 2024")

    columns = st.columns(4)
    labels = ("Course names *", "Numeric grades", "Letter grades", "Equivalence codes")
    for column, key, label in zip(columns, BULK_FIELDS, labels):
        text = st.session_state.get(key, "")
        column.text_area(f"{label} ({line_count(text)} rows)", key=key, height=220)

    submit_col, clear_col = st.columns([3, 1])
    submit_col.button("Add rows", type="primary", width="stretch", on_click=submit_bulk)
    clear_col.button("Clear columns", width="stretch", on_click=clear_bulk_columns)


def render_single_form() -> None:
    first = st.columns(3)
    first[0].text_input("Student ID *", key="single_student_id")
    first[1].text_input("Course name *", key="single_course_name")
    first[2].text_input("Curriculum", key="single_curriculum_label")
    second = st.columns(3)
    second[0].text_input("Numeric grade", key="single_numeric_grade")
    second[1].text_input("Letter grade", key="single_letter_grade")
    second[2].text_input("Equivalence code", key="single_code")
    st.button("Add row", type="primary", width="stretch", on_click=submit_single)


def render_input_form() -> None:
    bulk_tab, single_tab = st.tabs(["Bulk paste", "Single entry"])
    with bulk_tab:
        render_bulk_form()
    with single_tab:
        render_single_form()
    if st.session_state.get("flash"):
        st.warning(st.session_state["flash"])


# ── Toolbar & table ───────────────────────────────────────────────────────────

def run_ai_matching() -> None:
    try:
        count = controller().request_suggestions()
    except SuggestionError:
        return
    st.session_state["flash"] = None if count else "The AI matcher found no usable suggestions."


def render_toolbar() -> None:
    ctl = controller()
    stats = ctl.stats
    metrics = st.columns(6)
    metrics[0].metric("Total", stats.total)
    metrics[1].metric("Valid", stats.valid)
    metrics[2].metric("Invalid", stats.invalid)

    if stats.total > 0:
        metrics[3].button("Clear all", width="stretch", on_click=ctl.clear_all)

    if stats.invalid > 0 and not ctl.curriculum.is_empty():
        if st.session_state["ai_requested"]:
            with st.spinner("Asking the AI matcher..."):
                run_ai_matching()
            st.session_state["ai_requested"] = False
            st.rerun()
        if metrics[4].button(
            "Fix with AI",
            width="stretch",
            disabled=not ctl.settings.has_credentials or not ctl.can_request_suggestions(),
            help=None if ctl.settings.has_credentials else "Set GEMINI_API_KEY to enable AI matching.",
        ):
            st.session_state["ai_requested"] = True
            st.rerun()

    if ctl.can_export():
        filename, payload = ctl.export_bytes()
        metrics[5].download_button(
            "Export Excel",
            data=payload,
            file_name=filename,
            mime=XLSX_MIME,
            width="stretch",
        )
    else:
        metrics[5].button("Export Excel", width="stretch", disabled=True)


def render_row_actions(rows: tuple[GradeRow, ...]) -> None:
    ctl = controller()
    for row in rows:
        if not (row.has_suggestion and row.status is ValidationStatus.INVALID):
            continue
        left, right = st.columns([4, 1])
        left.info(
            f"{row.course_name}: suggested **{row.suggested_code}**"
            + (f" ({row.suggested_reason})" if row.suggested_reason else "")
        )
        right.button(
            "Apply",
            key=f"apply_{row.row_id}",
            width="stretch",
            on_click=ctl.apply_suggestion,
            args=(row.row_id, row.suggested_code),
        )


def render_table() -> None:
    ctl = controller()
    rows = ctl.rows
    if not rows:
        st.info("No rows yet. Paste columns above or add a single row.")
        return
    st.dataframe(rows_frame(rows), width="stretch", hide_index=True)
    render_row_actions(rows)
    with st.expander("Delete rows"):
        for row in rows:
            left, right = st.columns([4, 1])
            left.caption(f"{row.student_id} · {row.course_name} · {row.equivalence_code or '-'}")
            right.button("Delete", key=f"delete_{row.row_id}", on_click=ctl.delete_row, args=(row.row_id,))


def main() -> None:
    st.set_page_config(page_title="UniConvert", page_icon="🎓", layout="wide", initial_sidebar_state="collapsed")
    ensure_state()

    header, upload = st.columns([2, 1])
    with header:
        st.title("UniConvert")
        st.caption("Manual grade entry with curriculum code validation")
        if st.session_state.get("curriculum_name"):
            st.caption(f"Curriculum: {st.session_state['curriculum_name']} ({len(controller().curriculum)} courses)")
    with upload:
        render_curriculum_upload()

    if controller().last_error:
        st.error(controller().last_error)

    render_input_form()
    render_toolbar()
    render_table()


if __name__ == "__main__":
    main()
