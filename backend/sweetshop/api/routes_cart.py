from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from sweetshop.api.deps import CurrentUser, get_current_user
from sweetshop.api.errors import inventory_http_error
from sweetshop.db import get_db
from sweetshop.schemas.sweet_schema import ReserveIn, StockChangeOut, SweetOut
from sweetshop.services.inventory_service import InventoryException, InventoryService

router = APIRouter(prefix="/api/cart", tags=["cart"])


@router.post("/reserve", response_model=StockChangeOut, summary="Reserve stock when an item goes into the cart")
def reserve(payload: ReserveIn, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    payload: { "productId": 3, "quantity": 2 }
    Takes the quantity out of stock immediately; checkout later creates the
    order without decrementing again.
    """
    svc = InventoryService(db)
    try:
        result = svc.reserve(payload.product_id, payload.quantity, user.id)
    except InventoryException as e:
        raise inventory_http_error(e)
    return StockChangeOut(
        message="Reserved", product=SweetOut.model_validate(result.sweet), transaction_id=result.transaction_id
    )
