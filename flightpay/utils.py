import os
import re
import json
import math
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional
from dateutil import parser as dtparser
from dotenv import load_dotenv

load_dotenv(override=False)

BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_DATA_DIR = BASE_DIR / "data"

def load_json(path: Path, default: Any):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError):
        return default

def rules_path() -> Path:
    return DEFAULT_DATA_DIR / "rules.json"

def db_path() -> Path:
    env = os.environ.get("FLIGHTPAY_DB")
    if env:
        return Path(env)
    return DEFAULT_DATA_DIR / "flightpay.db"

RULES = load_json(rules_path(), {})

_NBSP_RE = re.compile(r"[\u00A0\u2007\u202F]")
_NON_DIGIT_RE = re.compile(r"[^0-9]")
_MONTH_RE = re.compile(r"^\d{4}-\d{2}$")


def norm_text(s: Any) -> str:
    """
    Header/notes normalisation:
    - BOM and non-breaking spaces removed
    - lower
    - surrounding whitespace stripped
    """
    if s is None:
        return ""
    s = cell_text(s)
    s = s.replace("\ufeff", "")
    s = _NBSP_RE.sub(" ", s)
    return s.strip().lower()

def cell_text(v: Any) -> str:
    # Excel hands back 5551112222.0 for a phone typed as a number
    if v is None:
        return ""
    if isinstance(v, bool):
        return str(v)
    if isinstance(v, float):
        if math.isnan(v):
            return ""
        if v.is_integer():
            return str(int(v))
    return str(v)

def digits_only(v: Any) -> str:
    return _NON_DIGIT_RE.sub("", cell_text(v))

def as_float(x: Any, default: float = 0.0) -> float:
    if x is None or isinstance(x, bool):
        return default
    try:
        if isinstance(x, (int, float)):
            val = float(x)
        else:
            s = str(x).strip().replace("$", "").replace(",", "")
            val = float(s) if s else default
    except (TypeError, ValueError):
        return default
    if math.isnan(val) or math.isinf(val):
        return default
    return val

def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")

def current_month(today: Optional[date] = None) -> str:
    d = today or date.today()
    return f"{d.year:04d}-{d.month:02d}"

def month_key(value: Any) -> Optional[str]:
    # "2025-12", date objects, or free text like "Dec 2025" -> "2025-12"
    if value is None:
        return None
    if hasattr(value, "year") and hasattr(value, "month"):
        return f"{int(value.year):04d}-{int(value.month):02d}"
    txt = str(value).strip()
    if not txt:
        return None
    if _MONTH_RE.match(txt):
        return txt
    try:
        dt = dtparser.parse(txt, default=datetime(date.today().year, 1, 1), fuzzy=True)
    except (ValueError, OverflowError):
        return None
    return f"{dt.year:04d}-{dt.month:02d}"

def default_due_date(days: int = 7, today: Optional[date] = None) -> str:
    d = today or date.today()
    return (d + timedelta(days=days)).isoformat()
