from fastapi import HTTPException

from sweetshop.services.inventory_service import (
    InsufficientStock,
    InventoryException,
    ProductNotFound,
    StockLockTimeout,
)


def inventory_http_error(exc: InventoryException, missing_status: int = 400) -> HTTPException:
    """
    Translate a stock failure into an HTTP error.

    ``missing_status`` is 404 when the product is addressed by the URL and
    400 when it is only referenced from the request body.
    """
    if isinstance(exc, InsufficientStock):
        return HTTPException(
            status_code=400,
            detail={"message": "Insufficient stock", "available": exc.available, "requested": exc.requested},
        )
    if isinstance(exc, ProductNotFound):
        return HTTPException(status_code=missing_status, detail={"message": str(exc), "productId": exc.product_id})
    if isinstance(exc, StockLockTimeout):
        return HTTPException(status_code=409, detail={"message": str(exc)})
    return HTTPException(status_code=400, detail={"message": str(exc)})
