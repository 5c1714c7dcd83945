from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, Numeric, String

from sweetshop.db import Base


class Sweet(Base):
    __tablename__ = "sweets"
    __table_args__ = (CheckConstraint("quantity >= 0", name="ck_sweets_quantity_non_negative"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(256), nullable=False)
    category = Column(String(128), nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, default=0, nullable=False)
    image = Column(String(512), nullable=True)
    featured = Column(Boolean, default=False, nullable=False)
    sugar_free = Column(Boolean, default=False, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    @property
    def available(self) -> bool:
        return (self.quantity or 0) > 0

    def __repr__(self):
        return f"<Sweet id={self.id} name={self.name} quantity={self.quantity}>"
