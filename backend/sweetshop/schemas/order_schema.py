from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from sweetshop.schemas.base import CamelModel


class OrderItemIn(CamelModel):
    product_id: int
    quantity: int = Field(..., strict=True)
    price: Decimal = Field(..., ge=0)


class DeliveryIn(CamelModel):
    recipient_name: Optional[str] = None
    delivery_address: Optional[str] = None
    phone_number: Optional[str] = None
    notes: Optional[str] = None


class CreateOrderIn(CamelModel):
    items: List[OrderItemIn]
    delivery: Optional[DeliveryIn] = None


class OrderProductOut(CamelModel):
    id: int
    name: str
    category: str
    image: Optional[str] = None


class OrderItemOut(CamelModel):
    id: int
    product_id: int
    quantity: int
    price: Decimal
    product: Optional[OrderProductOut] = None


class OrderOut(CamelModel):
    id: int
    user_id: int
    total: Decimal
    status: str
    recipient_name: Optional[str] = None
    delivery_address: Optional[str] = None
    phone_number: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemOut] = []


class OrderStatusIn(CamelModel):
    status: str
