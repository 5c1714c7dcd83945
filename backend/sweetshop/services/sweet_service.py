import logging
import math
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from sweetshop.models.ledger_entry import LedgerKind
from sweetshop.models.sweet import Sweet
from sweetshop.services.inventory_service import ProductNotFound, validate_quantity
from sweetshop.services.ledger_service import record_entry
from sweetshop.utils.transactions import smart_transaction

log = logging.getLogger(__name__)

EDITABLE_FIELDS = ("name", "category", "price", "image", "featured", "sugar_free")


class SweetServiceException(Exception):
    pass


class SweetService:
    def __init__(self, db: Session):
        self.db = db

    def _active(self):
        return self.db.query(Sweet).filter(Sweet.active == True)  # noqa: E712

    def get_sweet(self, sweet_id: int) -> Sweet:
        sweet = self._active().filter(Sweet.id == sweet_id).first()
        if not sweet:
            raise ProductNotFound(sweet_id)
        return sweet

    def _paginate(self, query, page: int, limit: int) -> Dict:
        total = query.with_entities(func.count(Sweet.id)).scalar() or 0
        items = (
            query.order_by(Sweet.created_at.desc(), Sweet.id.desc()).offset((page - 1) * limit).limit(limit).all()
        )
        return {
            "items": items,
            "meta": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit) if limit else 0,
            },
        }

    def list_sweets(self, page: int = 1, limit: int = 10) -> Dict:
        return self._paginate(self._active(), page, limit)

    def search_sweets(
        self,
        query: Optional[str] = None,
        category: Optional[str] = None,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Dict:
        q = self._active()
        if query:
            like = f"%{query}%"
            q = q.filter(or_(Sweet.name.ilike(like), Sweet.category.ilike(like)))
        if category:
            q = q.filter(Sweet.category.ilike(category))
        if min_price is not None:
            q = q.filter(Sweet.price >= min_price)
        if max_price is not None:
            q = q.filter(Sweet.price <= max_price)
        return self._paginate(q, page, limit)

    def create_sweet(self, data: Dict, acting_user_id: Optional[int]) -> Sweet:
        """
        Create a sweet. Opening stock is booked as a restock in the same
        transaction so the ledger accounts for every unit on hand.
        """
        quantity = data.get("quantity", 0)
        if quantity:
            validate_quantity(quantity)
        with smart_transaction(self.db):
            sweet = Sweet(
                name=data["name"],
                category=data["category"],
                price=Decimal(str(data["price"])),
                quantity=quantity,
                image=data.get("image"),
                featured=bool(data.get("featured", False)),
                sugar_free=bool(data.get("sugar_free", False)),
            )
            self.db.add(sweet)
            self.db.flush()
            if quantity:
                record_entry(self.db, sweet, acting_user_id, quantity, LedgerKind.RESTOCK)
        log.info("Created sweet id=%s name=%r quantity=%d", sweet.id, sweet.name, sweet.quantity)
        return sweet

    def update_sweet(self, sweet_id: int, data: Dict) -> Sweet:
        if "quantity" in data:
            raise SweetServiceException("Quantity can only change through purchase, reserve or restock")
        with smart_transaction(self.db):
            sweet = self.get_sweet(sweet_id)
            for field in EDITABLE_FIELDS:
                if field in data and data[field] is not None:
                    value = data[field]
                    if field == "price":
                        value = Decimal(str(value))
                    setattr(sweet, field, value)
            self.db.flush()
        log.info("Updated sweet id=%s fields=%s", sweet_id, sorted(k for k in data if k in EDITABLE_FIELDS))
        return sweet

    def delete_sweet(self, sweet_id: int) -> Sweet:
        """Soft delete: ledger entries and order items keep pointing at the row."""
        with smart_transaction(self.db):
            sweet = self.get_sweet(sweet_id)
            sweet.active = False
            self.db.flush()
        log.info("Deactivated sweet id=%s", sweet_id)
        return sweet
