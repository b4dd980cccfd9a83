from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
from .models import FamilyRecord, PlayerBillingRow, PlayerEntry, PRICING
from .utils import RULES

_NON_ID_RE = re.compile(r"[^a-z0-9]")

BALANCE_STRATEGIES = ("max", "sum")
DEFAULT_BALANCE_STRATEGY = str(RULES.get("balance_aggregation", "max"))


def family_key(row: PlayerBillingRow) -> str:
    # phone is already digits-only, so "(555) 111-2222" and "555-111-2222" collide as intended
    return f"{row.parent_first}_{row.parent_last}_{row.phone}".lower()


def record_id(key: str) -> str:
    return _NON_ID_RE.sub("_", key)


def load_pricing(overrides: Optional[Dict[str, float]] = None) -> Dict[str, float]:
    pricing = dict(PRICING)
    pricing.update({k: float(v) for k, v in (RULES.get("pricing") or {}).items() if k in PRICING})
    if overrides:
        pricing.update({k: float(v) for k, v in overrides.items() if k in PRICING})
    return pricing


@dataclass
class _Accumulator:
    first: PlayerBillingRow
    players: List[PlayerEntry] = field(default_factory=list)
    balance: float = 0.0
    explicit_rate: float = 0.0
    do_not_invoice: bool = False


def _fold_balance(current: float, new: float, strategy: str) -> float:
    """
    The tracker tends to repeat the family's running balance on every
    sibling's row, so "max" is the default; "sum" is for per-player ledgers.
    """
    if strategy == "sum":
        return current + new
    return max(current, new)


def _explicit_rate(cost: float, pricing: Dict[str, float]) -> float:
    # a per-player cost equal to the standard single rate is the list price, not an override
    if cost and cost != pricing["single_player"]:
        return cost
    return 0.0


def reconcile_families(
    rows: Iterable[PlayerBillingRow],
    pricing: Optional[Dict[str, float]] = None,
    balance_strategy: Optional[str] = None,
) -> List[FamilyRecord]:
    """
    Folds player rows into one FamilyRecord per FamilyKey, in first-seen order.

    - players keep spreadsheet order
    - balance: max (or sum) over the family's rows
    - do_not_invoice: OR over every row
    - monthly_rate: explicit cost from any row, else the siblings/single tier
      (coaches don't count as siblings)

    Deterministic: no timestamps, ids derived from the key only.
    """
    prices = load_pricing(pricing)
    strategy = balance_strategy or DEFAULT_BALANCE_STRATEGY
    if strategy not in BALANCE_STRATEGIES:
        raise ValueError(f"Unknown balance strategy: {strategy}")

    seen: Dict[str, _Accumulator] = {}
    for r in rows:
        key = family_key(r)
        player = PlayerEntry(name=r.player_name, team=r.team, is_coach=r.is_coach)

        acc = seen.get(key)
        if acc is None:
            seen[key] = _Accumulator(
                first=r,
                players=[player],
                balance=r.current_balance,
                explicit_rate=_explicit_rate(r.cost, prices),
                do_not_invoice=r.do_not_invoice,
            )
            continue

        acc.players.append(player)
        acc.balance = _fold_balance(acc.balance, r.current_balance, strategy)
        acc.do_not_invoice = acc.do_not_invoice or r.do_not_invoice
        if not acc.explicit_rate:
            acc.explicit_rate = _explicit_rate(r.cost, prices)

    families: List[FamilyRecord] = []
    for key, acc in seen.items():
        paying = [p for p in acc.players if not p.is_coach]
        tier = prices["siblings"] if len(paying) > 1 else prices["single_player"]
        parent = acc.first
        families.append(FamilyRecord(
            id=record_id(key),
            first_name=parent.parent_first,
            last_name=parent.parent_last,
            email=parent.email or None,
            phone=parent.phone,
            players=list(acc.players),
            current_balance=acc.balance,
            monthly_rate=acc.explicit_rate or tier,
            do_not_invoice=acc.do_not_invoice,
            notes=parent.notes,
        ))
    return families
