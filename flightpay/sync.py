from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import requests
from .models import FamilyRecord
from .square import SquareClient, SquareError
from .store import FamilyStore
from .utils import RULES, default_due_date, month_key

logger = logging.getLogger(__name__)

CLUB_NAME = str(RULES.get("club_name", "AZ Flight Basketball"))
PENDING_STATUSES = ("UNPAID", "SCHEDULED")
MAX_DIGESTS = 50
_MONTH_TAG_RE = re.compile(r"\((\d{4}-\d{2})\)")

SYNC_FAILED = "Failed to sync with Square"
NO_LOCATION = "No Square location found"
CUSTOMER_NOT_FOUND = "Customer not found. Please create customer in Square first."
INVOICE_FAILED = "Failed to create invoice"


@dataclass
class SyncResult:
    success: bool
    summary: Dict[str, int] = field(default_factory=dict)
    invoices: List[Dict[str, Any]] = field(default_factory=list)
    hints: List[Dict[str, Any]] = field(default_factory=list)
    applied: List[str] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class InvoiceResult:
    success: bool
    invoice_id: Optional[str] = None
    customer_id: Optional[str] = None
    error: Optional[str] = None


def invoice_month(inv: Dict[str, Any]) -> Optional[str]:
    """
    Billing month of an invoice: the "(YYYY-MM)" tag send_family_invoice writes
    into the description, else the month it was created, else its due month.
    """
    m = _MONTH_TAG_RE.search(inv.get("description") or "")
    if m:
        return m.group(1)
    if inv.get("created_at"):
        return month_key(inv["created_at"])
    pay_reqs = inv.get("payment_requests") or [{}]
    return month_key((pay_reqs[0] or {}).get("due_date"))


def invoice_digest(inv: Dict[str, Any]) -> Dict[str, Any]:
    pay_reqs = inv.get("payment_requests") or [{}]
    money = (pay_reqs[0] or {}).get("computed_amount_money") or {}
    return {
        "id": inv.get("id"),
        "status": inv.get("status"),
        "customer_id": (inv.get("primary_recipient") or {}).get("customer_id"),
        "amount": money.get("amount"),
        "created_at": inv.get("created_at"),
        "month": invoice_month(inv),
    }


def summarize_invoices(invoices: List[Dict[str, Any]]) -> Dict[str, int]:
    return {
        "total_invoices": len(invoices),
        "paid_count": sum(1 for i in invoices if i.get("status") == "PAID"),
        "pending": sum(1 for i in invoices if i.get("status") in PENDING_STATUSES),
    }


def reconciliation_hints(families: List[FamilyRecord], invoices: List[Dict[str, Any]], month: str) -> List[Dict[str, Any]]:
    """
    Families whose cached Square customer has a PAID invoice for the selected
    month while that month is not marked paid locally.
    """
    paid_by_customer: Dict[str, str] = {}
    for inv in invoices:
        if inv.get("status") != "PAID":
            continue
        d = invoice_digest(inv)
        if d["customer_id"] and d["month"] == month:
            paid_by_customer.setdefault(d["customer_id"], d["id"])

    hints = []
    for fam in families:
        if not fam.square_customer_id or fam.do_not_invoice:
            continue
        inv_id = paid_by_customer.get(fam.square_customer_id)
        if inv_id and fam.payment_status(month) != "paid":
            hints.append({
                "family_id": fam.id,
                "family": fam.display_name,
                "customer_id": fam.square_customer_id,
                "invoice_id": inv_id,
                "month": month,
            })
    return hints


def sync_with_square(client: SquareClient, store: FamilyStore, month: str, apply: bool = False) -> SyncResult:
    try:
        location_id = client.first_location_id()
        if not location_id:
            return SyncResult(success=False, error=NO_LOCATION)
        invoices = client.list_invoices(location_id)
    except (SquareError, requests.RequestException) as e:
        logger.error("Square sync error: %s", e)
        return SyncResult(success=False, error=SYNC_FAILED)

    hints = reconciliation_hints(store.list_families(), invoices, month)
    applied = []
    if apply:
        for h in hints:
            store.mark_paid(h["family_id"], month, "square")
            applied.append(h["family_id"])

    logger.info("Square sync: %d invoices, %d hints, %d applied", len(invoices), len(hints), len(applied))
    return SyncResult(
        success=True,
        summary=summarize_invoices(invoices),
        invoices=[invoice_digest(i) for i in invoices[:MAX_DIGESTS]],
        hints=hints,
        applied=applied,
    )


def list_square_customers(client: SquareClient) -> List[Dict[str, Any]]:
    customers = client.list_customers()
    return [
        {
            "id": c.get("id"),
            "name": f"{c.get('given_name') or ''} {c.get('family_name') or ''}".strip(),
            "email": c.get("email_address"),
            "phone": c.get("phone_number"),
        }
        for c in customers
    ]


def invoice_title(family: FamilyRecord) -> str:
    players = ", ".join(family.player_names) or "Monthly Fee"
    return f"{CLUB_NAME} - {players}"


def send_family_invoice(
    client: SquareClient,
    store: FamilyStore,
    family: FamilyRecord,
    month: str,
    due_date: Optional[str] = None,
    amount: Optional[float] = None,
) -> InvoiceResult:
    if family.do_not_invoice:
        return InvoiceResult(success=False, error="Family is marked do-not-invoice")

    try:
        customer_id = family.square_customer_id
        if not customer_id:
            customer_id = client.find_customer_id_by_phone(family.phone)
            if not customer_id:
                return InvoiceResult(success=False, error=CUSTOMER_NOT_FOUND)
            store.set_square_customer_id(family.id, customer_id)

        invoice_id = client.create_invoice(
            customer_id=customer_id,
            amount=amount if amount is not None else family.monthly_rate,
            title=invoice_title(family),
            description=f"Monthly club fee for {', '.join(family.player_names)} ({month})",
            due_date=due_date or default_due_date(),
            # one invoice per customer per month, retries included
            idempotency_key=f"{customer_id}-{month}",
        )
    except (SquareError, requests.RequestException) as e:
        logger.error("Create invoice error for %s: %s", family.id, e)
        return InvoiceResult(success=False, error=INVOICE_FAILED)

    return InvoiceResult(success=True, invoice_id=invoice_id, customer_id=customer_id)
