import logging
import os
from dataclasses import dataclass
from typing import Optional, Union

from filelock import FileLock, Timeout
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from sweetshop.config import settings
from sweetshop.models.ledger_entry import LedgerKind
from sweetshop.models.sweet import Sweet
from sweetshop.services.ledger_service import record_entry
from sweetshop.utils.transactions import run_with_retry, smart_transaction

log = logging.getLogger(__name__)


class InventoryException(Exception):
    pass


class ProductNotFound(InventoryException):
    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


class InvalidQuantity(InventoryException):
    def __init__(self, quantity):
        self.quantity = quantity
        super().__init__(f"Quantity must be a positive integer (got {quantity!r})")


class InsufficientStock(InventoryException):
    def __init__(self, product_id: int, available: int, requested: int):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(f"Insufficient stock for product {product_id}: available={available}, requested={requested}")


class InvalidStockOperation(InventoryException):
    pass


class StockLockTimeout(InventoryException):
    pass


@dataclass
class StockAdjustment:
    sweet: Sweet
    transaction_id: int


def validate_quantity(quantity) -> int:
    # bool is an int subclass; reject it along with floats and strings
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantity(quantity)
    return quantity


class InventoryService:
    """
    Every change to a sweet's quantity goes through ``adjust_stock``.

    Mutations of one product are serialized twice over: a per-product file
    lock held until the transaction has committed, and a guarded UPDATE that
    only decrements when enough stock is left. The guard alone is what the
    database enforces, so an oversell is impossible even for a writer that
    never takes the file lock.
    """

    def __init__(self, db: Session):
        self.db = db

    def _lock_for(self, product_id: int) -> FileLock:
        os.makedirs(settings.STOCK_LOCKS_DIR, exist_ok=True)
        return FileLock(os.path.join(settings.STOCK_LOCKS_DIR, f"sweet_{product_id}.lock"))

    def _load_active(self, product_id: int) -> Optional[Sweet]:
        return (
            self.db.query(Sweet)
            .filter(Sweet.id == product_id, Sweet.active == True)  # noqa: E712
            .with_for_update()
            .first()
        )

    def adjust_stock(
        self, product_id: int, requested_qty: int, acting_user_id: Optional[int], kind: Union[LedgerKind, str]
    ) -> StockAdjustment:
        try:
            kind = LedgerKind(kind)
        except ValueError:
            raise InvalidStockOperation(f"Unknown stock operation: {kind!r}")
        validate_quantity(requested_qty)

        lock = self._lock_for(product_id)
        try:
            with lock.acquire(timeout=settings.STOCK_LOCK_TIMEOUT_SECONDS):
                result = run_with_retry(lambda: self._apply(product_id, requested_qty, acting_user_id, kind))
        except Timeout:
            log.warning("Stock lock timeout for product %s (%s x%d)", product_id, kind.value, requested_qty)
            raise StockLockTimeout("Could not acquire stock lock; try again")

        log.info(
            "%s product=%s qty=%d user=%s -> quantity=%d transaction=%d",
            kind.value,
            product_id,
            requested_qty,
            acting_user_id,
            result.sweet.quantity,
            result.transaction_id,
        )
        return result

    def _apply(self, product_id: int, qty: int, user_id: Optional[int], kind: LedgerKind) -> StockAdjustment:
        with smart_transaction(self.db):
            sweet = self._load_active(product_id)
            if not sweet:
                log.info("%s rejected: product %s not found", kind.value, product_id)
                raise ProductNotFound(product_id)

            stmt = update(Sweet).where(Sweet.id == product_id)
            if kind.decrements:
                stmt = stmt.where(Sweet.quantity >= qty).values(quantity=Sweet.quantity - qty)
            else:
                stmt = stmt.values(quantity=Sweet.quantity + qty)
            changed = self.db.execute(stmt.execution_options(synchronize_session=False)).rowcount

            if changed == 0:
                available = self.db.execute(select(Sweet.quantity).where(Sweet.id == product_id)).scalar_one()
                log.info(
                    "%s rejected: product %s has %d, requested %d", kind.value, product_id, available, qty
                )
                raise InsufficientStock(product_id, available, qty)

            entry = record_entry(self.db, sweet, user_id, qty, kind)
            self.db.refresh(sweet)
        return StockAdjustment(sweet=sweet, transaction_id=entry.id)

    def reserve(self, product_id: int, qty: int, acting_user_id: Optional[int]) -> StockAdjustment:
        return self.adjust_stock(product_id, qty, acting_user_id, LedgerKind.RESERVE)

    def purchase(self, product_id: int, qty: int, acting_user_id: Optional[int]) -> StockAdjustment:
        return self.adjust_stock(product_id, qty, acting_user_id, LedgerKind.PURCHASE)

    def restock(self, product_id: int, qty: int, acting_user_id: Optional[int]) -> StockAdjustment:
        return self.adjust_stock(product_id, qty, acting_user_id, LedgerKind.RESTOCK)

    def available_quantity(self, product_id: int) -> int:
        sweet = self.db.query(Sweet).filter(Sweet.id == product_id, Sweet.active == True).first()  # noqa: E712
        if not sweet:
            raise ProductNotFound(product_id)
        return sweet.quantity
