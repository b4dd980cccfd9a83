from __future__ import annotations
from typing import Any, Callable, Dict, List, Sequence, Tuple
from .utils import norm_text, cell_text, RULES

DEFAULT_BALANCE_TOKEN = str(RULES.get("balance_month_token", "dec"))

# Logical fields produced by column inference
FIELDS = [
    "player_name",
    "parent_first",
    "parent_last",
    "team",
    "email",
    "phone",
    "cost",
    "notes",
    "december",
]

Rule = Tuple[str, Callable[[str], bool]]

# Evaluated independently for every header cell; a later matching cell wins
BASE_RULES: List[Rule] = [
    ("player_name", lambda h: "player" in h),
    ("parent_first", lambda h: "parent" in h and "first" in h),
    ("parent_last", lambda h: "parent" in h and "last" in h),
    ("team", lambda h: h == "team"),
    ("email", lambda h: "email" in h),
    ("phone", lambda h: "phone" in h),
    ("cost", lambda h: h == "cost"),
    ("notes", lambda h: h == "notes"),
]


def _balance_rule(token: str) -> Rule:
    # "Dec.1" is how pandas/Excel suffix a second "Dec" column; substring covers it anyway
    t = norm_text(token) or DEFAULT_BALANCE_TOKEN
    return ("december", lambda h: h == f"{t}.1" or h == t or t in h)


def build_rules(balance_token: str = DEFAULT_BALANCE_TOKEN) -> List[Rule]:
    return BASE_RULES + [_balance_rule(balance_token)]


def infer_columns(headers: Sequence[Any], balance_token: str = DEFAULT_BALANCE_TOKEN) -> Dict[str, int]:
    """
    Maps a header row to {logical field -> column index}.

    Matching is case-insensitive and per cell; fields with no matching header
    are simply left out. Never raises.
    """
    rules = build_rules(balance_token)
    columns: Dict[str, int] = {}
    for idx, raw in enumerate(headers or []):
        h = norm_text(raw)
        if not h:
            continue
        for field, matches in rules:
            if matches(h):
                columns[field] = idx
    return columns


def describe_columns(headers: Sequence[Any], columns: Dict[str, int]) -> List[Dict[str, Any]]:
    # for the import preview: which header fed which field
    out = []
    for field in FIELDS:
        idx = columns.get(field)
        out.append({
            "field": field,
            "column": idx + 1 if idx is not None else None,
            "header": cell_text(headers[idx]) if idx is not None and idx < len(headers) else "",
        })
    return out
