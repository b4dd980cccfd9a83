"""
models.py
Domain records for family billing (rows, families, payments) and pricing defaults.
"""

from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional
from .utils import as_float, cell_text

# Default monthly dues; data/rules.json may override these
PRICING = {
    "single_player": 95.0,
    "siblings": 170.0,
}

PAYMENT_METHODS = ("square", "zelle", "cash", "check")
PAYMENT_METHOD_LABELS = {"square": "Square", "zelle": "Zelle", "cash": "Cash", "check": "Check"}


@dataclass
class PlayerBillingRow:
    player_name: str
    parent_first: str = ""
    parent_last: str = ""
    team: str = ""
    email: str = ""
    phone: str = ""  # digits only
    cost: float = 0.0
    notes: str = ""
    current_balance: float = 0.0
    is_coach: bool = False
    do_not_invoice: bool = False
    origin_row: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PlayerBillingRow":
        # preview rows come back from the UI; tolerate missing keys
        return cls(
            player_name=cell_text(d.get("player_name")),
            parent_first=cell_text(d.get("parent_first")),
            parent_last=cell_text(d.get("parent_last")),
            team=cell_text(d.get("team")),
            email=cell_text(d.get("email")),
            phone=cell_text(d.get("phone")),
            cost=as_float(d.get("cost")),
            notes=cell_text(d.get("notes")),
            current_balance=as_float(d.get("current_balance")),
            is_coach=bool(d.get("is_coach", False)),
            do_not_invoice=bool(d.get("do_not_invoice", False)),
            origin_row=d.get("origin_row"),
        )


@dataclass(frozen=True)
class PlayerEntry:
    name: str
    team: str
    is_coach: bool


@dataclass(frozen=True)
class PaymentEvent:
    status: str  # paid/partial/unpaid
    method: Optional[str]  # square/zelle/cash/check
    paid_at: Optional[str]


@dataclass
class FamilyRecord:
    id: str
    first_name: str
    last_name: str
    email: Optional[str]
    phone: str
    players: List[PlayerEntry]
    current_balance: float
    monthly_rate: float
    do_not_invoice: bool
    notes: str
    square_customer_id: Optional[str] = None
    payments: Dict[str, PaymentEvent] = field(default_factory=dict)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def player_names(self) -> List[str]:
        return [p.name for p in self.players]

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def payment_status(self, month: str) -> str:
        ev = self.payments.get(month)
        return ev.status if ev else "unpaid"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "players": [asdict(p) for p in self.players],
            "player_names": self.player_names,
            "current_balance": self.current_balance,
            "monthly_rate": self.monthly_rate,
            "do_not_invoice": self.do_not_invoice,
            "notes": self.notes,
            "square_customer_id": self.square_customer_id,
            "payments": {m: asdict(ev) for m, ev in self.payments.items()},
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "FamilyRecord":
        players = [
            PlayerEntry(name=str(p.get("name", "")), team=str(p.get("team", "")), is_coach=bool(p.get("is_coach", False)))
            for p in d.get("players") or []
        ]
        payments = {
            str(m): PaymentEvent(status=str(ev.get("status", "unpaid")), method=ev.get("method"), paid_at=ev.get("paid_at"))
            for m, ev in (d.get("payments") or {}).items()
        }
        return cls(
            id=str(d["id"]),
            first_name=str(d.get("first_name", "")),
            last_name=str(d.get("last_name", "")),
            email=d.get("email") or None,
            phone=str(d.get("phone", "")),
            players=players,
            current_balance=as_float(d.get("current_balance")),
            monthly_rate=as_float(d.get("monthly_rate")),
            do_not_invoice=bool(d.get("do_not_invoice", False)),
            notes=cell_text(d.get("notes")),
            square_customer_id=d.get("square_customer_id") or None,
            payments=payments,
            created_at=d.get("created_at"),
            updated_at=d.get("updated_at"),
        )
