#!/usr/bin/env python3
"""
Generates sample-data/kurikulum_sample.xlsx, a small reference curriculum for
trying out uniconvert by hand.

Run from the repo root:
    python sample-data/generate_curriculum.py

Quirks baked in:
  - Headers use spacing/casing variants ("Kode MK ", "Nama MK", "SKS") that
    the key normaliser has to fold into kode_mk / nama_mk / sks
  - One code carries stray whitespace (" IF103 ") and must still validate
  - Row 6 is completely empty and is dropped on read
  - A second sheet exists but only the first one is read
"""

from pathlib import Path
import openpyxl

OUTPUT = Path(__file__).parent / "kurikulum_sample.xlsx"

wb = openpyxl.Workbook()

# ── Sheet 1: Kurikulum ───────────────────────────────────────────────────────
ws = wb.active
ws.title = "Kurikulum 2024"
ws.append(["Kode MK ", "Nama MK", "SKS", "Semester"])

data = [
    ["IF101",   "Algoritma dan Pemrograman",  3, 1],
    ["IF102",   "Matematika Diskrit",         3, 1],
    [" IF103 ", "Struktur Data",              3, 2],
    ["IF201",   "Basis Data",                 4, 3],
    [None,      None,                         None, None],   # empty row
    ["IF202",   "Jaringan Komputer",          3, 3],
    ["IF301",   "Kecerdasan Buatan",          3, 5],
]
for row in data:
    ws.append(row)

# ── Sheet 2: Notes (ignored on read) ─────────────────────────────────────────
notes = wb.create_sheet("Catatan")
notes.append(["Only the first sheet is used for validation."])

wb.save(OUTPUT)
print(f"Created: {OUTPUT}")
