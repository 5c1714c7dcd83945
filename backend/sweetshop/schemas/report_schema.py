from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sweetshop.schemas.base import CamelModel


class LedgerEntryOut(CamelModel):
    id: int
    sweet_id: int
    user_id: Optional[int] = None
    qty: int
    type: str
    created_at: datetime


class LedgerPage(CamelModel):
    items: List[LedgerEntryOut]
    total: int
    page: int
    page_size: int


class MovementSummaryOut(CamelModel):
    product_id: int
    name: str
    reserved: int
    purchased: int
    restocked: int


class TopProductOut(CamelModel):
    product_id: int
    name: str
    total_quantity: int


class SalesDayOut(CamelModel):
    date: str
    revenue: Decimal
    orders: int


class AdminStatsOut(CamelModel):
    total_orders: int
    total_users: int
    total_sales: Decimal
