from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from sweetshop.api.deps import require_admin
from sweetshop.db import get_db
from sweetshop.schemas.order_schema import OrderOut, OrderStatusIn
from sweetshop.schemas.report_schema import (
    AdminStatsOut,
    LedgerPage,
    MovementSummaryOut,
    SalesDayOut,
    TopProductOut,
)
from sweetshop.services.ledger_service import LedgerException, LedgerService
from sweetshop.services.order_service import (
    InvalidOrderStatus,
    OrderNotFound,
    OrderService,
    OrderServiceException,
)

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/orders", response_model=List[OrderOut], summary="List all orders")
def list_orders(
    user_id: Optional[int] = Query(None, alias="userId"),
    status: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500, alias="pageSize"),
    db: Session = Depends(get_db),
):
    try:
        return OrderService(db).get_all_orders(
            user_id=user_id, status=status, date_from=date_from, date_to=date_to, page=page, page_size=page_size
        )
    except InvalidOrderStatus as e:
        raise HTTPException(status_code=400, detail={"message": str(e)})


@router.get("/orders/{order_id}", response_model=OrderOut, summary="Get any order")
def get_order(order_id: int, db: Session = Depends(get_db)):
    try:
        return OrderService(db).get_order_by_id(order_id)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail={"message": "Order not found"})


@router.put("/orders/{order_id}/status", response_model=OrderOut, summary="Move an order to a new status")
def update_order_status(order_id: int, payload: OrderStatusIn, db: Session = Depends(get_db)):
    svc = OrderService(db)
    try:
        svc.update_order_status(order_id, payload.status)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail={"message": "Order not found"})
    except OrderServiceException as e:
        raise HTTPException(status_code=400, detail={"message": str(e)})
    return svc.get_order_by_id(order_id)


@router.get("/stats", response_model=AdminStatsOut, summary="Headline numbers")
def stats(db: Session = Depends(get_db)):
    return OrderService(db).admin_stats()


@router.get("/reports/top-products", response_model=List[TopProductOut], summary="Best sellers by units")
def top_products(limit: int = Query(10, ge=1, le=100), db: Session = Depends(get_db)):
    return LedgerService(db).top_selling_products(limit=limit)


@router.get("/reports/sales-by-day", response_model=List[SalesDayOut], summary="Revenue per day")
def sales_by_day(
    days: int = Query(30, ge=1, le=3650),
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    db: Session = Depends(get_db),
):
    svc = OrderService(db)
    if date_from or date_to:
        return svc.sales_by_range(
            date_from or datetime(1970, 1, 1, tzinfo=timezone.utc), date_to or datetime.now(timezone.utc)
        )
    return svc.sales_by_day(days)


@router.get("/ledger", response_model=LedgerPage, summary="Stock movement audit trail")
def ledger(
    product_id: Optional[int] = Query(None, alias="productId"),
    kind: Optional[str] = Query(None, pattern="^(reserve|purchase|restock)$"),
    user_id: Optional[int] = Query(None, alias="userId"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500, alias="pageSize"),
    db: Session = Depends(get_db),
):
    try:
        items, total = LedgerService(db).list_entries(
            sweet_id=product_id, kind=kind, user_id=user_id, page=page, page_size=page_size
        )
    except LedgerException as e:
        raise HTTPException(status_code=400, detail={"message": str(e)})
    return {"items": items, "total": total, "page": page, "page_size": page_size}


@router.get("/ledger/summary", response_model=List[MovementSummaryOut], summary="Units moved per product and type")
def ledger_summary(product_id: Optional[int] = Query(None, alias="productId"), db: Session = Depends(get_db)):
    return LedgerService(db).movement_summary(sweet_id=product_id)
