from __future__ import annotations
import numpy as np
import pandas as pd
from typing import Dict, List
from .models import FamilyRecord

VIEWS = ("all", "owes", "paid")

FAMILY_COLUMNS = [
    "ID", "Parent", "Email", "Phone", "Players", "Teams",
    "Monthly rate", "Balance", "Status", "Month status", "Paid via", "Notes",
]


def filter_families(families: List[FamilyRecord], view: str = "all") -> List[FamilyRecord]:
    # do-not-invoice families never show up on the billing dashboard
    out = [f for f in families if not f.do_not_invoice]
    if view == "owes":
        return [f for f in out if f.current_balance > 0]
    if view == "paid":
        return [f for f in out if f.current_balance == 0]
    return out


def dashboard_stats(families: List[FamilyRecord]) -> Dict[str, float]:
    balances = np.array([f.current_balance for f in families], dtype=float)
    total = int(len(families))
    paid = int((balances == 0).sum()) if total else 0
    return {
        "total_owed": float(balances.sum()) if total else 0.0,
        "families": total,
        "paid": paid,
        "owing": total - paid,
        "collection_rate": round(paid / total * 100, 1) if total else 0.0,
    }


def families_frame(families: List[FamilyRecord], month: str) -> pd.DataFrame:
    rows = []
    for f in families:
        ev = f.payments.get(month)
        rows.append({
            "ID": f.id,
            "Parent": f.display_name,
            "Email": f.email or "",
            "Phone": f.phone,
            "Players": ", ".join(f.player_names),
            "Teams": ", ".join(sorted({p.team for p in f.players if p.team})),
            "Monthly rate": round(float(f.monthly_rate), 2),
            "Balance": round(float(f.current_balance), 2),
            "Status": "Owes" if f.current_balance > 0 else "Paid",
            "Month status": ev.status if ev else "unpaid",
            "Paid via": (ev.method or "") if ev else "",
            "Notes": f.notes,
        })
    if not rows:
        return pd.DataFrame(columns=FAMILY_COLUMNS)
    return pd.DataFrame(rows, columns=FAMILY_COLUMNS)


def players_frame(families: List[FamilyRecord]) -> pd.DataFrame:
    rows = []
    for f in families:
        for p in f.players:
            rows.append({
                "Player": p.name,
                "Team": p.team,
                "Coach": "yes" if p.is_coach else "",
                "Parent": f.display_name,
                "Phone": f.phone,
                "Family ID": f.id,
            })
    cols = ["Player", "Team", "Coach", "Parent", "Phone", "Family ID"]
    if not rows:
        return pd.DataFrame(columns=cols)
    return pd.DataFrame(rows, columns=cols).sort_values(["Team", "Player"]).reset_index(drop=True)


def month_collections(families: List[FamilyRecord]) -> pd.DataFrame:
    # paid families and expected dues per month, from the payments maps
    rows = []
    for f in families:
        for month, ev in f.payments.items():
            rows.append({"month": month, "status": ev.status, "method": ev.method or "", "rate": float(f.monthly_rate)})
    if not rows:
        return pd.DataFrame(columns=["month", "paid_families", "collected"])
    df = pd.DataFrame(rows)
    df = df[df["status"] == "paid"]
    if df.empty:
        return pd.DataFrame(columns=["month", "paid_families", "collected"])
    out = df.groupby("month").agg(
        paid_families=("rate", "count"),
        collected=("rate", "sum"),
    ).reset_index()
    return out.sort_values("month", ascending=False).reset_index(drop=True)
