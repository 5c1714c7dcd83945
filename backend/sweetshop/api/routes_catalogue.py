from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from sweetshop.api.deps import CurrentUser, get_current_user, require_admin
from sweetshop.api.errors import inventory_http_error
from sweetshop.db import get_db
from sweetshop.schemas.sweet_schema import (
    StockChangeIn,
    StockChangeOut,
    SweetCreate,
    SweetOut,
    SweetPage,
    SweetUpdate,
)
from sweetshop.services.inventory_service import InventoryException, InventoryService, ProductNotFound
from sweetshop.services.sweet_service import SweetService, SweetServiceException

router = APIRouter(prefix="/api/sweets", tags=["catalogue"])


@router.get("", response_model=SweetPage, summary="List sweets, newest first")
def list_sweets(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=200),
    db: Session = Depends(get_db),
):
    return SweetService(db).list_sweets(page=page, limit=limit)


@router.get("/search", response_model=SweetPage, summary="Search sweets by name or category")
def search_sweets(
    q: Optional[str] = Query(None, description="search term"),
    category: Optional[str] = Query(None),
    min_price: Optional[Decimal] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[Decimal] = Query(None, alias="maxPrice", ge=0),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=200),
    db: Session = Depends(get_db),
):
    return SweetService(db).search_sweets(
        query=q, category=category, min_price=min_price, max_price=max_price, page=page, limit=limit
    )


@router.get("/{sweet_id}", response_model=SweetOut, summary="Get sweet by id")
def get_sweet(sweet_id: int, db: Session = Depends(get_db)):
    try:
        return SweetService(db).get_sweet(sweet_id)
    except ProductNotFound:
        raise HTTPException(status_code=404, detail={"message": "Sweet not found"})


@router.post("", response_model=SweetOut, status_code=status.HTTP_201_CREATED, summary="Create a sweet")
def create_sweet(payload: SweetCreate, admin: CurrentUser = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return SweetService(db).create_sweet(payload.model_dump(), acting_user_id=admin.id)
    except InventoryException as e:
        raise HTTPException(status_code=400, detail={"message": str(e)})


@router.put("/{sweet_id}", response_model=SweetOut, summary="Update a sweet")
def update_sweet(
    sweet_id: int, payload: SweetUpdate, admin: CurrentUser = Depends(require_admin), db: Session = Depends(get_db)
):
    try:
        return SweetService(db).update_sweet(sweet_id, payload.model_dump(exclude_unset=True))
    except ProductNotFound:
        raise HTTPException(status_code=404, detail={"message": "Sweet not found"})
    except SweetServiceException as e:
        raise HTTPException(status_code=400, detail={"message": str(e)})


@router.delete("/{sweet_id}", summary="Delete a sweet")
def delete_sweet(sweet_id: int, admin: CurrentUser = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        SweetService(db).delete_sweet(sweet_id)
    except ProductNotFound:
        raise HTTPException(status_code=404, detail={"message": "Sweet not found"})
    return {"message": "Sweet deleted"}


@router.post("/{sweet_id}/purchase", response_model=StockChangeOut, summary="Buy a sweet directly")
def purchase_sweet(
    sweet_id: int, payload: StockChangeIn, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)
):
    try:
        result = InventoryService(db).purchase(sweet_id, payload.quantity, user.id)
    except InventoryException as e:
        raise inventory_http_error(e, missing_status=404)
    return StockChangeOut(message="Purchased", product=SweetOut.model_validate(result.sweet), transaction_id=result.transaction_id)


@router.post("/{sweet_id}/restock", response_model=StockChangeOut, summary="Restock a sweet")
def restock_sweet(
    sweet_id: int, payload: StockChangeIn, admin: CurrentUser = Depends(require_admin), db: Session = Depends(get_db)
):
    try:
        result = InventoryService(db).restock(sweet_id, payload.quantity, admin.id)
    except InventoryException as e:
        raise inventory_http_error(e, missing_status=404)
    return StockChangeOut(message="Restocked", product=SweetOut.model_validate(result.sweet), transaction_id=result.transaction_id)
