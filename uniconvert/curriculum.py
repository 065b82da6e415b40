from __future__ import annotations

import logging
import math
from typing import Any, Iterable, Mapping

from uniconvert.models import CurriculumEntry
from uniconvert.normalize import CODE_KEYS, CREDIT_KEYS, NAME_KEYS, first_present

logger = logging.getLogger(__name__)


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value)


def _credits(value: Any) -> float | None:
    text = _text(value).strip().replace(",", ".")
    if not text:
        return None
    try:
        parsed = float(text)
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


def entry_from_row(row: Mapping[str, Any]) -> CurriculumEntry:
    """Build an entry from one row whose keys were already normalised."""
    code_key, code = first_present(row, CODE_KEYS)
    name_key, name = first_present(row, NAME_KEYS)
    credit_key, credits = first_present(row, CREDIT_KEYS)
    used = {code_key, name_key, credit_key}
    extra = {key: value for key, value in row.items() if key not in used}
    return CurriculumEntry(
        code=_text(code),
        course_name=_text(name).strip(),
        credits=_credits(credits),
        extra=extra,
    )


def entries_from_rows(rows: Iterable[Mapping[str, Any]]) -> list[CurriculumEntry]:
    return [entry_from_row(row) for row in rows]


class CurriculumStore:
    """Current reference curriculum. Loading always replaces the previous one."""

    def __init__(self) -> None:
        self._entries: tuple[CurriculumEntry, ...] = ()
        self._codes: frozenset[str] = frozenset()

    def load(self, entries: Iterable[CurriculumEntry]) -> None:
        self._entries = tuple(entries)
        self._codes = frozenset(entry.code.strip() for entry in self._entries)
        logger.info("Curriculum loaded: %d entries, %d distinct codes", len(self._entries), len(self._codes))

    def is_empty(self) -> bool:
        return not self._entries

    def contains(self, code: str) -> bool:
        return str(code).strip() in self._codes

    @property
    def codes(self) -> frozenset[str]:
        return self._codes

    @property
    def entries(self) -> tuple[CurriculumEntry, ...]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)
