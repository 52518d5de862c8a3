#!/usr/bin/env python3
"""
Spreadsheet I/O.

All sheets are read as plain string grids (no header inference) so the
callers can address cells by position the way the content team lays out
the workbooks. Empty cells become ''.
"""

import logging
from pathlib import Path
from typing import List, Sequence

import pandas as pd

from storylinker.errors import MissingInputError

logger = logging.getLogger(__name__)

Rows = List[List[str]]


def _frame_to_rows(frame: pd.DataFrame) -> Rows:
    frame = frame.fillna('')
    return [[str(value) for value in row] for row in frame.itertuples(index=False, name=None)]


def read_rows(path: Path, sheet: int = 0) -> Rows:
    """Read one sheet of an .xlsx (or a .csv) file as rows of strings.

    Args:
        path: Spreadsheet path
        sheet: Zero-based sheet index (ignored for csv)

    Raises:
        MissingInputError: If the file does not exist
    """
    path = Path(path)
    if not path.exists():
        raise MissingInputError(path, "spreadsheet")

    if path.suffix.lower() == '.csv':
        frame = pd.read_csv(path, header=None, dtype=str, keep_default_na=False)
    else:
        frame = pd.read_excel(path, sheet_name=sheet, header=None, dtype=str, engine='openpyxl')
    return _frame_to_rows(frame)


def read_sheets(path: Path) -> List[Rows]:
    """Read every sheet of a workbook, in workbook order."""
    path = Path(path)
    if not path.exists():
        raise MissingInputError(path, "workbook")

    sheets = pd.read_excel(path, sheet_name=None, header=None, dtype=str, engine='openpyxl')
    return [_frame_to_rows(frame) for frame in sheets.values()]


def cell(row: Sequence[str], index: int) -> str:
    """Cell value or '' when the row is shorter than index."""
    if index < len(row):
        return row[index]
    return ''


def write_rows(path: Path, header: Sequence[str], rows: Sequence[Sequence[str]],
               sheet_name: str = 'Data') -> None:
    """Write a single-sheet workbook with a header row."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame = pd.DataFrame([list(r) for r in rows], columns=list(header))
    frame.to_excel(path, sheet_name=sheet_name, index=False, engine='openpyxl')
    logger.debug(f"Wrote {len(rows)} rows to {path}")
