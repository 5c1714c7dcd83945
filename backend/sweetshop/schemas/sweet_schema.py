from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from sweetshop.schemas.base import CamelModel, PageMeta


class SweetCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=256)
    category: str = Field(..., min_length=1, max_length=128)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    quantity: int = Field(0, ge=0)
    image: Optional[str] = None
    featured: bool = False
    sugar_free: bool = False


class SweetUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=256)
    category: Optional[str] = Field(None, min_length=1, max_length=128)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    image: Optional[str] = None
    featured: Optional[bool] = None
    sugar_free: Optional[bool] = None


class SweetOut(CamelModel):
    id: int
    name: str
    category: str
    price: Decimal
    quantity: int
    available: bool
    image: Optional[str] = None
    featured: bool
    sugar_free: bool
    created_at: datetime
    updated_at: datetime


class SweetPage(CamelModel):
    items: List[SweetOut]
    meta: PageMeta


class StockChangeIn(CamelModel):
    # strict so "2" or 2.0 is rejected rather than coerced
    quantity: int = Field(..., strict=True)


class StockChangeOut(CamelModel):
    message: str
    product: SweetOut
    transaction_id: int


class ReserveIn(CamelModel):
    product_id: int
    quantity: int = Field(1, strict=True)
