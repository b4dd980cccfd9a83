"""
store.py
SQLite-backed family document store: one JSON document per family, keyed by
the id derived from the family key.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Iterable, List, Optional

from .models import FamilyRecord, PaymentEvent, PAYMENT_METHODS
from .utils import db_path, now_iso

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    success: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"success": self.success, "errors": list(self.errors)}


class FamilyStore:
    def __init__(self, db_file: Optional[Path | str] = None) -> None:
        self.db_file = Path(db_file) if db_file else db_path()

    @contextmanager
    def get_conn(self):
        self.db_file.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_file, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init(self) -> "FamilyStore":
        with self.get_conn() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS families (
                    id TEXT PRIMARY KEY,
                    doc TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
        return self

    # -- reads --------------------------------------------------------------

    def _load(self, conn: sqlite3.Connection, family_id: str) -> Optional[FamilyRecord]:
        row = conn.execute("SELECT doc FROM families WHERE id = ?", (family_id,)).fetchone()
        if not row:
            return None
        return FamilyRecord.from_dict(json.loads(row["doc"]))

    def get_family(self, family_id: str) -> Optional[FamilyRecord]:
        with self.get_conn() as conn:
            return self._load(conn, family_id)

    def list_families(self) -> List[FamilyRecord]:
        with self.get_conn() as conn:
            rows = conn.execute("SELECT doc FROM families").fetchall()
        families = [FamilyRecord.from_dict(json.loads(r["doc"])) for r in rows]
        families.sort(key=lambda f: (f.last_name.lower(), f.first_name.lower(), f.id))
        return families

    # -- writes -------------------------------------------------------------

    def _save(self, conn: sqlite3.Connection, family: FamilyRecord) -> None:
        conn.execute(
            """
            INSERT INTO families(id, doc, updated_at) VALUES(?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET doc=excluded.doc, updated_at=excluded.updated_at
            """,
            (family.id, json.dumps(family.to_dict(), ensure_ascii=False), family.updated_at or now_iso()),
        )

    def _merge_existing(self, conn: sqlite3.Connection, family: FamilyRecord, stamp: str) -> FamilyRecord:
        # re-import replaces spreadsheet fields; payment history and the Square id stay
        existing = self._load(conn, family.id)
        if existing is None:
            return replace(family, created_at=family.created_at or stamp, updated_at=stamp)
        return replace(
            family,
            created_at=existing.created_at or stamp,
            updated_at=stamp,
            square_customer_id=family.square_customer_id or existing.square_customer_id,
            payments={**existing.payments, **family.payments},
        )

    def upsert_families(self, families: Iterable[FamilyRecord], atomic: bool = False) -> ImportResult:
        """
        Create-or-replace by id.

        atomic=False: every family is its own transaction; a failing family is
        reported and the rest still land.
        atomic=True: all or nothing; on failure nothing is written.
        """
        result = ImportResult()
        families = list(families)
        stamp = now_iso()

        if atomic:
            try:
                with self.get_conn() as conn:
                    for fam in families:
                        self._save(conn, self._merge_existing(conn, fam, stamp))
            except (sqlite3.Error, TypeError, ValueError) as e:
                logger.exception("Batch import failed, rolled back %d families", len(families))
                result.errors.append(f"Import failed: {e}")
                return result
            result.success = len(families)
            return result

        for fam in families:
            try:
                with self.get_conn() as conn:
                    self._save(conn, self._merge_existing(conn, fam, stamp))
                result.success += 1
            except (sqlite3.Error, TypeError, ValueError) as e:
                logger.warning("Family %s not saved: %s", fam.id, e)
                result.errors.append(f"{fam.id}: {e}")

        logger.info("Upserted %d/%d families", result.success, len(families))
        return result

    def mark_paid(self, family_id: str, month: str, method: str, paid_at: Optional[str] = None) -> FamilyRecord:
        if method not in PAYMENT_METHODS:
            raise ValueError(f"Unknown payment method: {method}")
        with self.get_conn() as conn:
            fam = self._load(conn, family_id)
            if fam is None:
                raise KeyError(family_id)
            stamp = now_iso()
            fam.payments[month] = PaymentEvent(status="paid", method=method, paid_at=paid_at or stamp)
            fam.current_balance = 0.0
            fam.updated_at = stamp
            self._save(conn, fam)
        logger.info("Marked %s paid for %s via %s", family_id, month, method)
        return fam

    def set_square_customer_id(self, family_id: str, customer_id: str) -> FamilyRecord:
        with self.get_conn() as conn:
            fam = self._load(conn, family_id)
            if fam is None:
                raise KeyError(family_id)
            fam.square_customer_id = customer_id
            fam.updated_at = now_iso()
            self._save(conn, fam)
        return fam
