"""
This package contains:
- spreadsheet loading (CSV/XLSX)
- column inference for the club tracker export
- player row extraction (balances, coach / do-not-invoice flags)
- reconciliation of players into family billing records
- the sqlite family store and monthly payment marks
- the Square invoicing client and ledger sync
- dashboard figures and Excel export
"""
from .ingest import load_matrix, SpreadsheetError
from .infer import infer_columns
from .extract import extract_row, extract_rows
from .reconcile import family_key, record_id, reconcile_families
from .store import FamilyStore, ImportResult
from .api import parse_upload, import_rows
from .summary import filter_families, dashboard_stats, families_frame
from .export import export_families_to_excel_bytes

__all__ = [
    "load_matrix",
    "SpreadsheetError",
    "infer_columns",
    "extract_row",
    "extract_rows",
    "family_key",
    "record_id",
    "reconcile_families",
    "FamilyStore",
    "ImportResult",
    "parse_upload",
    "import_rows",
    "filter_families",
    "dashboard_stats",
    "families_frame",
    "export_families_to_excel_bytes",
]
