import enum
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from sweetshop.db import Base


class LedgerKind(str, enum.Enum):
    RESERVE = "reserve"
    PURCHASE = "purchase"
    RESTOCK = "restock"

    @property
    def decrements(self) -> bool:
        return self is not LedgerKind.RESTOCK


class LedgerEntry(Base):
    """
    One stock movement. Rows are written in the same transaction as the
    quantity change they describe and are never updated or deleted.
    """

    __tablename__ = "stock_transactions"
    __table_args__ = (CheckConstraint("qty > 0", name="ck_stock_transactions_qty_positive"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    sweet_id = Column(Integer, ForeignKey("sweets.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    qty = Column(Integer, nullable=False)
    type = Column(String(16), nullable=False, index=True)  # reserve, purchase, restock
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False, index=True)

    sweet = relationship("Sweet")
