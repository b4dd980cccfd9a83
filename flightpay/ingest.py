from __future__ import annotations
import csv
import re
import zipfile
import logging
from io import BytesIO
from typing import Any, List
import numpy as np
import pandas as pd
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from .utils import cell_text

logger = logging.getLogger(__name__)

CSV_SUFFIXES = (".csv",)
_LEADING_ZERO_RE = re.compile(r"^[+-]?0\d")


class SpreadsheetError(ValueError):
    """The upload is not a readable table at all."""
# =========================

# Excel: first sheet as a matrix, merged cells expanded
# =========================
def _first_sheet_matrix(wb_bytes: bytes) -> List[List[Any]]:
    wb = load_workbook(BytesIO(wb_bytes), data_only=True)
    ws = wb.worksheets[0]
    matrix = [list(vals) for vals in ws.iter_rows(values_only=True)]

    # a merged "Team" or "Parent" block only stores its value in the top-left cell
    for rng in ws.merged_cells.ranges:
        c0, r0, c1, r1 = rng.bounds
        anchor = matrix[r0 - 1][c0 - 1]
        for r in range(r0 - 1, min(r1, len(matrix))):
            for c in range(c0 - 1, min(c1, len(matrix[r]))):
                if cell_text(matrix[r][c]).strip() == "":
                    matrix[r][c] = anchor
    return matrix
# =========================

# CSV: tolerant read from bytes
# =========================
DELIMITERS = ",;\t|"


def _guess_delimiter(data: bytes, enc: str) -> str:
    # club exports are ',' but Sheets/Numbers sometimes give ';' or tabs
    sample = data[:65536].decode(enc, errors="replace")
    try:
        return csv.Sniffer().sniff(sample, delimiters=DELIMITERS).delimiter
    except csv.Error:
        header = next((ln for ln in sample.splitlines() if ln.strip()), "")
        counts = {d: header.count(d) for d in DELIMITERS}
        best = max(counts, key=counts.get)
        return best if counts[best] else ","


def _read_csv_bytes(data: bytes) -> pd.DataFrame:
    # header=None so the header row stays in the matrix as row 0
    failures = []
    for enc in ("utf-8-sig", "cp1252"):
        try:
            return pd.read_csv(
                BytesIO(data),
                header=None,
                sep=_guess_delimiter(data, enc),
                engine="python",
                encoding=enc,
                dtype=str,
                skip_blank_lines=False,
            )
        except (UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            failures.append(f"{enc}: {e}")
    raise SpreadsheetError("Could not read CSV (" + "; ".join(failures) + ")")


def _coerce_numeric_cells(df: pd.DataFrame) -> pd.DataFrame:
    # read as text so the header row survives; numbers come back as numbers like in Excel.
    # Digit strings with a leading zero (phones, ids) stay text, as Excel keeps them
    num = df.apply(pd.to_numeric, errors="coerce")
    zero_led = df.apply(lambda col: col.astype(str).str.strip().str.match(_LEADING_ZERO_RE.pattern))
    return df.astype(object).where(num.isna() | zero_led, num.astype(object))


def _frame_to_matrix(df: pd.DataFrame) -> List[List[Any]]:
    df = df.astype(object).where(pd.notna(df), None)
    return [[v.item() if isinstance(v, np.generic) else v for v in row] for row in df.values.tolist()]
# =========================

# Main: upload -> matrix
# =========================
def load_matrix(filename: str, data: bytes) -> List[List[Any]]:
    """
    Reads an uploaded tracker into a list of rows (row 0 = headers).

      - CSV: pandas, delimiter sniffed, no header inference
      - Excel: first sheet only, merged cells filled from their top-left cell
      - blank cells are None
    """
    if not data:
        raise SpreadsheetError("Empty upload")

    name = (filename or "").lower()
    if name.endswith(CSV_SUFFIXES):
        matrix = _frame_to_matrix(_coerce_numeric_cells(_read_csv_bytes(data)))
    else:
        try:
            matrix = _first_sheet_matrix(data)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as e:
            raise SpreadsheetError(f"Could not read workbook: {e}") from e

    if not matrix:
        raise SpreadsheetError("No rows found")

    logger.info("Loaded %s: %d rows x %d columns", filename, len(matrix), max(len(r) for r in matrix))
    return matrix
