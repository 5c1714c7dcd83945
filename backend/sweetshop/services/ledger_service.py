"""
Inventory ledger: append-only history of stock movements.

The write path is only ever used from inside a stock-mutating transaction
(``InventoryService.adjust_stock`` and initial stock on sweet creation), so a
ledger row exists exactly when the matching quantity change was committed.
Everything else here is a read-side projection for admin reporting.
"""
from typing import Dict, List, Optional, Tuple, Union

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from sweetshop.models.ledger_entry import LedgerEntry, LedgerKind
from sweetshop.models.sweet import Sweet

SELLING_KINDS = (LedgerKind.RESERVE.value, LedgerKind.PURCHASE.value)


class LedgerException(Exception):
    pass


class UnknownLedgerKind(LedgerException):
    def __init__(self, kind):
        self.kind = kind
        super().__init__(f"Unknown ledger kind: {kind!r}")


def _parse_kind(kind) -> LedgerKind:
    try:
        return LedgerKind(kind)
    except ValueError:
        raise UnknownLedgerKind(kind)


def record_entry(
    db: Session, sweet: Sweet, user_id: Optional[int], qty: int, kind: Union[LedgerKind, str]
) -> LedgerEntry:
    """Append one entry. Never commits; the caller's transaction owns it."""
    entry = LedgerEntry(sweet_id=sweet.id, user_id=user_id, qty=qty, type=_parse_kind(kind).value)
    db.add(entry)
    db.flush()
    return entry


class LedgerService:
    def __init__(self, db: Session):
        self.db = db

    def list_entries(
        self,
        sweet_id: Optional[int] = None,
        kind: Optional[str] = None,
        user_id: Optional[int] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[LedgerEntry], int]:
        query = self.db.query(LedgerEntry)
        if sweet_id is not None:
            query = query.filter(LedgerEntry.sweet_id == sweet_id)
        if kind:
            query = query.filter(LedgerEntry.type == _parse_kind(kind).value)
        if user_id is not None:
            query = query.filter(LedgerEntry.user_id == user_id)
        total = query.with_entities(func.count(LedgerEntry.id)).scalar() or 0
        items = (
            query.order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return items, total

    def movement_summary(self, sweet_id: Optional[int] = None) -> List[Dict]:
        """Per product totals of each movement type."""

        def _sum_of(kind: LedgerKind):
            return func.coalesce(func.sum(case((LedgerEntry.type == kind.value, LedgerEntry.qty), else_=0)), 0)

        query = self.db.query(
            LedgerEntry.sweet_id,
            Sweet.name,
            _sum_of(LedgerKind.RESERVE).label("reserved"),
            _sum_of(LedgerKind.PURCHASE).label("purchased"),
            _sum_of(LedgerKind.RESTOCK).label("restocked"),
        ).outerjoin(Sweet, Sweet.id == LedgerEntry.sweet_id)
        if sweet_id is not None:
            query = query.filter(LedgerEntry.sweet_id == sweet_id)
        rows = query.group_by(LedgerEntry.sweet_id, Sweet.name).order_by(LedgerEntry.sweet_id).all()
        return [
            {
                "product_id": r.sweet_id,
                "name": r.name or "Unknown",
                "reserved": int(r.reserved),
                "purchased": int(r.purchased),
                "restocked": int(r.restocked),
            }
            for r in rows
        ]

    def reconcile(self) -> List[Dict]:
        """
        Compare each sweet's quantity on hand with what its ledger implies
        (restocked - reserved - purchased). Any row with ``consistent`` False
        means stock was changed outside ``adjust_stock``.
        """
        movements = {row["product_id"]: row for row in self.movement_summary()}
        report = []
        for sweet in self.db.query(Sweet).order_by(Sweet.id).all():
            m = movements.get(sweet.id, {"reserved": 0, "purchased": 0, "restocked": 0})
            expected = m["restocked"] - m["reserved"] - m["purchased"]
            report.append(
                {
                    "product_id": sweet.id,
                    "name": sweet.name,
                    "quantity": sweet.quantity,
                    "ledger_quantity": expected,
                    "consistent": expected == sweet.quantity,
                }
            )
        return report

    def top_selling_products(self, limit: int = 10) -> List[Dict]:
        sold = func.sum(LedgerEntry.qty).label("total_quantity")
        rows = (
            self.db.query(LedgerEntry.sweet_id, Sweet.name, sold)
            .outerjoin(Sweet, Sweet.id == LedgerEntry.sweet_id)
            .filter(LedgerEntry.type.in_(SELLING_KINDS))
            .group_by(LedgerEntry.sweet_id, Sweet.name)
            .order_by(sold.desc(), LedgerEntry.sweet_id)
            .limit(limit)
            .all()
        )
        return [
            {"product_id": r.sweet_id, "name": r.name or "Unknown", "total_quantity": int(r.total_quantity or 0)}
            for r in rows
        ]
