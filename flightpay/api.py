from __future__ import annotations
import logging
from typing import Any, Dict, Iterable, List, Optional, Union
from .extract import extract_rows, normalize_row
from .infer import DEFAULT_BALANCE_TOKEN
from .ingest import load_matrix, SpreadsheetError
from .models import PlayerBillingRow
from .reconcile import reconcile_families
from .store import FamilyStore, ImportResult
from .utils import cell_text

logger = logging.getLogger(__name__)

NO_FILE = "No file provided"
PARSE_FAILED = "Failed to parse file"

RowLike = Union[PlayerBillingRow, Dict[str, Any]]


def parse_upload(filename: Optional[str], data: Optional[bytes], balance_token: str = DEFAULT_BALANCE_TOKEN) -> Dict[str, Any]:
    """
    Upload -> preview payload:
      {"rows": [row dicts], "headers": [inferred field names]}
    or {"error": ...} when there is no file / it is not a table.
    """
    if not filename or not data:
        return {"error": NO_FILE}

    try:
        matrix = load_matrix(filename, data)
        rows, columns = extract_rows(matrix, balance_token=balance_token)
    except SpreadsheetError as e:
        logger.error("Parse error for %s: %s", filename, e)
        return {"error": PARSE_FAILED}
    except Exception:
        logger.exception("Unexpected parse error for %s", filename)
        return {"error": PARSE_FAILED}

    logger.info("Parsed %s: %d player rows, fields %s", filename, len(rows), sorted(columns))
    return {
        "rows": [r.to_dict() for r in rows],
        "headers": list(columns.keys()),
        "header_row": [cell_text(h) for h in matrix[0]],
        "columns": columns,
    }


def _as_rows(rows: Iterable[RowLike]) -> List[PlayerBillingRow]:
    out = []
    for r in rows:
        row = r if isinstance(r, PlayerBillingRow) else PlayerBillingRow.from_dict(r)
        out.append(normalize_row(row))
    # same skip rule as extraction, for rows edited in the preview
    return [r for r in out if r.player_name]


def import_rows(
    rows: Iterable[RowLike],
    store: FamilyStore,
    pricing: Optional[Dict[str, float]] = None,
    balance_strategy: Optional[str] = None,
    atomic: bool = False,
) -> Dict[str, Any]:
    """Preview rows -> families -> store. Returns {"success": n, "errors": [...]}."""
    try:
        families = reconcile_families(_as_rows(rows), pricing=pricing, balance_strategy=balance_strategy)
        result = store.upsert_families(families, atomic=atomic)
    except Exception as e:
        logger.exception("Import error")
        result = ImportResult(errors=[f"Import failed: {e}"])
    return result.to_dict()
