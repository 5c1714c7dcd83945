import logging
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from sweetshop.config import settings
from sweetshop.models.order import Order, OrderItem, OrderStatus
from sweetshop.models.sweet import Sweet
from sweetshop.models.user import User
from sweetshop.services.inventory_service import ProductNotFound, validate_quantity
from sweetshop.utils.transactions import smart_transaction

log = logging.getLogger(__name__)

CENTS = Decimal("0.01")

# current status -> statuses it may move to
ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.COMPLETED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}

DELIVERY_FIELDS = ("recipient_name", "delivery_address", "phone_number", "notes")


class OrderServiceException(Exception):
    pass


class EmptyCart(OrderServiceException):
    def __init__(self):
        super().__init__("Cart is empty")


class OrderNotFound(OrderServiceException):
    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class InvalidOrderStatus(OrderServiceException):
    pass


class InvalidStatusTransition(OrderServiceException):
    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move order from {current} to {requested}")


class InvalidPrice(OrderServiceException):
    pass


class PriceMismatch(OrderServiceException):
    def __init__(self, product_id: int, submitted: Decimal, current: Decimal):
        self.product_id = product_id
        self.submitted = submitted
        self.current = current
        super().__init__(f"Price for product {product_id} changed: submitted {submitted}, current {current}")


def _to_price(value) -> Decimal:
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidPrice(f"Invalid price: {value!r}")
    if not price.is_finite() or price < 0:
        raise InvalidPrice(f"Invalid price: {value!r}")
    return price.quantize(CENTS, rounding=ROUND_HALF_UP)


class OrderService:
    def __init__(self, db: Session):
        self.db = db

    def _with_items(self):
        return self.db.query(Order).options(selectinload(Order.items).selectinload(OrderItem.product))

    def create_order(self, user_id: int, items: List[Dict], delivery: Optional[Dict] = None) -> Order:
        """
        items: list of {product_id: int, quantity: int, price: number}
        delivery: optional {recipient_name, delivery_address, phone_number, notes}

        Stock is not touched here; it was taken by the reserve or purchase
        call that preceded checkout. Each item keeps the price it was sold at.
        """
        if not items:
            raise EmptyCart()

        lines = []
        for it in items:
            lines.append((it["product_id"], validate_quantity(it["quantity"]), _to_price(it["price"])))
        total = sum((price * qty for _, qty, price in lines), Decimal("0")).quantize(CENTS, rounding=ROUND_HALF_UP)
        delivery = delivery or {}

        with smart_transaction(self.db):
            order = Order(
                user_id=user_id,
                total=total,
                status=OrderStatus.PENDING.value,
                **{f: delivery.get(f) for f in DELIVERY_FIELDS},
            )
            self.db.add(order)
            self.db.flush()
            for product_id, qty, price in lines:
                product = (
                    self.db.query(Sweet).filter(Sweet.id == product_id, Sweet.active == True).first()  # noqa: E712
                )
                if not product:
                    raise ProductNotFound(product_id)
                if settings.ORDER_PRICE_CHECK and _to_price(product.price) != price:
                    raise PriceMismatch(product_id, price, _to_price(product.price))
                order.items.append(OrderItem(product_id=product_id, quantity=qty, price=price))
            self.db.flush()

        log.info("Created order id=%s user=%s items=%d total=%s", order.id, user_id, len(lines), total)
        return order

    def get_order_by_id(self, order_id: int) -> Order:
        order = self._with_items().filter(Order.id == order_id).first()
        if not order:
            raise OrderNotFound(order_id)
        return order

    def get_orders_for_user(self, user_id: int) -> List[Order]:
        return (
            self._with_items()
            .filter(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )

    def get_all_orders(
        self,
        user_id: Optional[int] = None,
        status: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> List[Order]:
        query = self._with_items()
        if user_id is not None:
            query = query.filter(Order.user_id == user_id)
        if status:
            query = query.filter(Order.status == self._parse_status(status).value)
        if date_from:
            query = query.filter(Order.created_at >= date_from)
        if date_to:
            query = query.filter(Order.created_at <= date_to)
        return (
            query.order_by(Order.created_at.desc(), Order.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )

    def _parse_status(self, status: str) -> OrderStatus:
        try:
            return OrderStatus(status)
        except ValueError:
            raise InvalidOrderStatus(f"Unknown order status: {status!r}")

    def update_order_status(self, order_id: int, new_status: str) -> Order:
        target = self._parse_status(new_status)
        with smart_transaction(self.db):
            order = self.db.query(Order).filter(Order.id == order_id).with_for_update().first()
            if not order:
                raise OrderNotFound(order_id)
            current = OrderStatus(order.status)
            if current is target:
                return order
            if target not in ALLOWED_TRANSITIONS[current]:
                raise InvalidStatusTransition(current.value, target.value)
            order.status = target.value
            self.db.flush()
        log.info("Order id=%s status %s -> %s", order_id, current.value, target.value)
        return order

    # --- admin reporting ---

    def admin_stats(self) -> Dict:
        total_orders = self.db.query(func.count(Order.id)).scalar() or 0
        total_users = self.db.query(func.count(User.id)).scalar() or 0
        total_sales = self.db.query(func.coalesce(func.sum(Order.total), 0)).scalar() or 0
        return {
            "total_orders": total_orders,
            "total_users": total_users,
            "total_sales": Decimal(str(total_sales)).quantize(CENTS),
        }

    def sales_by_day(self, days: int = 30) -> List[Dict]:
        since = datetime.now(timezone.utc) - timedelta(days=days)
        return self._bucket_by_day(self.db.query(Order.created_at, Order.total).filter(Order.created_at >= since))

    def sales_by_range(self, date_from: datetime, date_to: datetime) -> List[Dict]:
        return self._bucket_by_day(
            self.db.query(Order.created_at, Order.total).filter(
                Order.created_at >= date_from, Order.created_at <= date_to
            )
        )

    def _bucket_by_day(self, query) -> List[Dict]:
        buckets = OrderedDict()
        for created_at, total in query.all():
            day = created_at.date().isoformat()
            bucket = buckets.setdefault(day, {"date": day, "revenue": Decimal("0"), "orders": 0})
            bucket["revenue"] += Decimal(str(total or 0))
            bucket["orders"] += 1
        return sorted(buckets.values(), key=lambda b: b["date"], reverse=True)
