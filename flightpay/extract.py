from __future__ import annotations
import math
import numbers
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence, Tuple
from .infer import infer_columns, DEFAULT_BALANCE_TOKEN
from .models import PlayerBillingRow
from .utils import cell_text, norm_text, digits_only, as_float

DO_NOT_SEND_MARKERS = ("do not send", "dont send")
COACH_MARKER = "coach"
# =========================

# Cell helpers
# =========================
def _cell(row: Sequence[Any], columns: Dict[str, int], field: str) -> Any:
    # unmapped field or short row -> "column absent"
    idx = columns.get(field)
    if idx is None or idx >= len(row):
        return None
    return row[idx]


def _text(row: Sequence[Any], columns: Dict[str, int], field: str) -> str:
    return cell_text(_cell(row, columns, field)).strip()


def parse_balance(value: Any) -> float:
    """
    Target-month balance cell -> amount owed.
    "Paid" (any case) -> 0, a finite number -> that number, anything else -> 0.
    """
    if isinstance(value, str):
        # "Paid" and any other text: nothing due
        return 0.0
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return 0.0
    val = float(value)
    if not math.isfinite(val):
        return 0.0
    return val


def is_do_not_invoice(notes: str) -> bool:
    n = norm_text(notes)
    return any(m in n for m in DO_NOT_SEND_MARKERS)


def is_coach(cost: float, do_not_invoice: bool, notes: str) -> bool:
    # do-not-invoice wins over the coach waiver
    return cost == 0 and not do_not_invoice and COACH_MARKER in norm_text(notes)
# =========================

# Row -> PlayerBillingRow
# =========================
def extract_row(row: Sequence[Any], columns: Dict[str, int], origin_row: Optional[int] = None) -> Optional[PlayerBillingRow]:
    player = _text(row, columns, "player_name")
    if not player:
        return None

    notes = _text(row, columns, "notes")
    do_not_invoice = is_do_not_invoice(notes)
    cost = as_float(_cell(row, columns, "cost"))

    return PlayerBillingRow(
        player_name=player,
        parent_first=_text(row, columns, "parent_first"),
        parent_last=_text(row, columns, "parent_last"),
        team=_text(row, columns, "team"),
        email=_text(row, columns, "email"),
        phone=digits_only(_cell(row, columns, "phone")),
        cost=cost,
        notes=notes,
        current_balance=parse_balance(_cell(row, columns, "december")),
        is_coach=is_coach(cost, do_not_invoice, notes),
        do_not_invoice=do_not_invoice,
        origin_row=origin_row,
    )


def extract_rows(matrix: Sequence[Sequence[Any]], balance_token: str = DEFAULT_BALANCE_TOKEN) -> Tuple[List[PlayerBillingRow], Dict[str, int]]:
    """
    Header = first row. Returns the extracted rows (blank/separator rows dropped)
    and the inferred column map.
    """
    if not matrix:
        return [], {}

    columns = infer_columns(matrix[0], balance_token=balance_token)
    rows: List[PlayerBillingRow] = []
    for i, raw in enumerate(matrix[1:], start=2):
        r = extract_row(raw or [], columns, origin_row=i)
        if r is not None:
            rows.append(r)
    return rows, columns


def normalize_row(row: PlayerBillingRow) -> PlayerBillingRow:
    """Re-applies the cell rules to a row edited after extraction (preview table)."""
    notes = row.notes.strip()
    do_not_invoice = is_do_not_invoice(notes)
    return replace(
        row,
        player_name=row.player_name.strip(),
        parent_first=row.parent_first.strip(),
        parent_last=row.parent_last.strip(),
        phone=digits_only(row.phone),
        notes=notes,
        is_coach=is_coach(row.cost, do_not_invoice, notes),
        do_not_invoice=do_not_invoice,
    )
