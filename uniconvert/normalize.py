from __future__ import annotations

from typing import Any, Iterable, Mapping

CODE_KEYS = ("kode_mk", "code", "course_code", "kode")
NAME_KEYS = ("nama_mk", "course_name", "name", "nama")
CREDIT_KEYS = ("sks", "credits", "credit_hours")


def normalize_key(key: Any) -> str:
    return str(key).strip().lower().replace(" ", "_")


def normalize_keys(row: Mapping[Any, Any]) -> dict[str, Any]:
    """Canonicalise spreadsheet headers so "Kode MK" and "kode_mk " land on the same key.

    Values pass through untouched. If two headers collapse to the same key the
    later column wins, matching plain dict assignment order.
    """
    return {normalize_key(key): value for key, value in row.items()}


def normalize_records(rows: Iterable[Mapping[Any, Any]]) -> list[dict[str, Any]]:
    return [normalize_keys(row) for row in rows]


def first_present(row: Mapping[str, Any], keys: tuple[str, ...]) -> tuple[str | None, Any]:
    for key in keys:
        if key in row:
            return key, row[key]
    return None, None
