from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from sweetshop.api.deps import CurrentUser, get_current_user
from sweetshop.api.errors import inventory_http_error
from sweetshop.db import get_db
from sweetshop.schemas.order_schema import CreateOrderIn, OrderOut
from sweetshop.services.inventory_service import InventoryException
from sweetshop.services.order_service import OrderNotFound, OrderService, OrderServiceException

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post("", response_model=OrderOut, status_code=status.HTTP_201_CREATED, summary="Create order (checkout)")
def create_order(payload: CreateOrderIn, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    svc = OrderService(db)
    items = [it.model_dump() for it in payload.items]
    delivery = payload.delivery.model_dump() if payload.delivery else None
    try:
        return svc.create_order(user.id, items, delivery)
    except InventoryException as e:
        raise inventory_http_error(e)
    except OrderServiceException as e:
        raise HTTPException(status_code=400, detail={"message": str(e)})


@router.get("", response_model=List[OrderOut], summary="Orders of the current user")
def my_orders(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return OrderService(db).get_orders_for_user(user.id)


@router.get("/{order_id}", response_model=OrderOut, summary="Get one order")
def get_order(order_id: int, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        order = OrderService(db).get_order_by_id(order_id)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail={"message": "Order not found"})
    # other users' orders are reported as missing rather than forbidden
    if order.user_id != user.id and not user.is_admin:
        raise HTTPException(status_code=404, detail={"message": "Order not found"})
    return order
