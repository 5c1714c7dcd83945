from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from sweetshop.config import settings
from sweetshop.db import SessionLocal
from sweetshop.models.order import Order, OrderItem
from sweetshop.models.sweet import Sweet
from sweetshop.services.inventory_service import InvalidQuantity, InventoryService, ProductNotFound
from sweetshop.services.order_service import (
    EmptyCart,
    InvalidOrderStatus,
    InvalidPrice,
    InvalidStatusTransition,
    OrderNotFound,
    OrderService,
    PriceMismatch,
)
from sweetshop.services.sweet_service import SweetService
from tests.conftest import make_sweet, make_user


def _count(model):
    with SessionLocal() as s:
        return s.query(model).count()


def test_checkout_keeps_sold_price_and_total(user_id):
    a = make_sweet(quantity=5, price="100.00", name="Kaju Katli")
    b = make_sweet(quantity=5, price="60.00", name="Gulab Jamun")

    with SessionLocal() as s:
        order = OrderService(s).create_order(
            user_id,
            [
                {"product_id": a, "quantity": 2, "price": 100},
                {"product_id": b, "quantity": 1, "price": "60.00"},
            ],
        )
        order_id = order.id
        assert order.status == "pending"
        assert order.total == Decimal("260.00")

    # a later price change must not reach the stored order
    with SessionLocal() as s:
        SweetService(s).update_sweet(a, {"price": Decimal("150.00")})

    with SessionLocal() as s:
        order = OrderService(s).get_order_by_id(order_id)
        assert order.total == Decimal("260.00")
        assert [(i.product_id, i.quantity, i.price) for i in order.items] == [
            (a, 2, Decimal("100.00")),
            (b, 1, Decimal("60.00")),
        ]
        assert sum(i.price * i.quantity for i in order.items) == order.total


def test_checkout_does_not_touch_stock(user_id):
    pid = make_sweet(quantity=5)
    with SessionLocal() as s:
        InventoryService(s).reserve(pid, 2, user_id)
    with SessionLocal() as s:
        OrderService(s).create_order(user_id, [{"product_id": pid, "quantity": 2, "price": "100.00"}])
    with SessionLocal() as s:
        assert s.get(Sweet, pid).quantity == 3


def test_delivery_details_are_stored(user_id):
    pid = make_sweet()
    with SessionLocal() as s:
        order = OrderService(s).create_order(
            user_id,
            [{"product_id": pid, "quantity": 1, "price": "100.00"}],
            {"recipient_name": "Asha", "delivery_address": "12 Mall Road", "phone_number": "555-0101"},
        )
        assert order.recipient_name == "Asha"
        assert order.delivery_address == "12 Mall Road"
        assert order.notes is None


def test_empty_cart_creates_nothing(user_id):
    with SessionLocal() as s, pytest.raises(EmptyCart):
        OrderService(s).create_order(user_id, [])
    assert _count(Order) == 0


def test_single_item_order(user_id):
    pid = make_sweet(price="85.00")
    with SessionLocal() as s:
        order = OrderService(s).create_order(user_id, [{"product_id": pid, "quantity": 3, "price": "85.00"}])
        assert order.total == Decimal("255.00")
        assert len(order.items) == 1


def test_unknown_product_aborts_whole_order(user_id):
    pid = make_sweet()
    with SessionLocal() as s, pytest.raises(ProductNotFound):
        OrderService(s).create_order(
            user_id,
            [
                {"product_id": pid, "quantity": 1, "price": "100.00"},
                {"product_id": 4242, "quantity": 1, "price": "10.00"},
            ],
        )
    assert _count(Order) == 0
    assert _count(OrderItem) == 0


def test_deleted_sweet_cannot_be_ordered(user_id):
    pid = make_sweet()
    with SessionLocal() as s:
        SweetService(s).delete_sweet(pid)

    with SessionLocal() as s, pytest.raises(ProductNotFound) as exc:
        OrderService(s).create_order(user_id, [{"product_id": pid, "quantity": 1, "price": "100.00"}])
    assert exc.value.product_id == pid
    assert _count(Order) == 0
    assert _count(OrderItem) == 0


@pytest.mark.parametrize("qty", [0, -2, 1.5, True])
def test_bad_line_quantity_is_rejected(user_id, qty):
    pid = make_sweet()
    with SessionLocal() as s, pytest.raises(InvalidQuantity):
        OrderService(s).create_order(user_id, [{"product_id": pid, "quantity": qty, "price": "100.00"}])
    assert _count(Order) == 0


@pytest.mark.parametrize("price", ["-1", "abc", "NaN"])
def test_bad_line_price_is_rejected(user_id, price):
    pid = make_sweet()
    with SessionLocal() as s, pytest.raises(InvalidPrice):
        OrderService(s).create_order(user_id, [{"product_id": pid, "quantity": 1, "price": price}])


def test_price_check_rejects_stale_prices_when_enabled(user_id, monkeypatch):
    pid = make_sweet(price="100.00")
    line = [{"product_id": pid, "quantity": 1, "price": "90.00"}]

    with SessionLocal() as s:
        OrderService(s).create_order(user_id, line)

    monkeypatch.setattr(settings, "ORDER_PRICE_CHECK", True)
    with SessionLocal() as s, pytest.raises(PriceMismatch) as exc:
        OrderService(s).create_order(user_id, line)
    assert exc.value.current == Decimal("100.00")
    assert _count(Order) == 1


def test_orders_for_user_newest_first(user_id):
    other = make_user("other@example.com")
    pid = make_sweet()
    ids = []
    with SessionLocal() as s:
        svc = OrderService(s)
        for owner in (user_id, other, user_id):
            ids.append(svc.create_order(owner, [{"product_id": pid, "quantity": 1, "price": "100.00"}]).id)

    with SessionLocal() as s:
        mine = OrderService(s).get_orders_for_user(user_id)
        assert [o.id for o in mine] == [ids[2], ids[0]]
        everyone = OrderService(s).get_all_orders()
        assert [o.id for o in everyone] == list(reversed(ids))
        assert [o.id for o in OrderService(s).get_all_orders(user_id=other)] == [ids[1]]


def test_get_all_orders_filters(user_id):
    pid = make_sweet()
    with SessionLocal() as s:
        svc = OrderService(s)
        first = svc.create_order(user_id, [{"product_id": pid, "quantity": 1, "price": "100.00"}]).id
        second = svc.create_order(user_id, [{"product_id": pid, "quantity": 1, "price": "100.00"}]).id
        svc.update_order_status(second, "processing")

    with SessionLocal() as s:
        svc = OrderService(s)
        assert [o.id for o in svc.get_all_orders(status="processing")] == [second]
        assert [o.id for o in svc.get_all_orders(status="pending")] == [first]
        later = datetime.now(timezone.utc) + timedelta(days=1)
        assert svc.get_all_orders(date_from=later) == []
        assert len(svc.get_all_orders(page=1, page_size=1)) == 1
        with pytest.raises(InvalidOrderStatus):
            svc.get_all_orders(status="lost")


def test_missing_order():
    with SessionLocal() as s, pytest.raises(OrderNotFound):
        OrderService(s).get_order_by_id(1)


def _new_order(user_id):
    pid = make_sweet()
    with SessionLocal() as s:
        return OrderService(s).create_order(user_id, [{"product_id": pid, "quantity": 1, "price": "100.00"}]).id


def test_status_walks_forward_to_completed(user_id):
    order_id = _new_order(user_id)
    for status in ("processing", "shipped", "completed"):
        with SessionLocal() as s:
            assert OrderService(s).update_order_status(order_id, status).status == status


def test_same_status_is_a_no_op(user_id):
    order_id = _new_order(user_id)
    with SessionLocal() as s:
        assert OrderService(s).update_order_status(order_id, "pending").status == "pending"


@pytest.mark.parametrize(
    "path,bad",
    [
        ((), "shipped"),
        (("cancelled",), "processing"),
        (("processing", "shipped", "completed"), "cancelled"),
        (("processing", "shipped"), "pending"),
    ],
)
def test_disallowed_transitions(user_id, path, bad):
    order_id = _new_order(user_id)
    for status in path:
        with SessionLocal() as s:
            OrderService(s).update_order_status(order_id, status)
    with SessionLocal() as s, pytest.raises(InvalidStatusTransition):
        OrderService(s).update_order_status(order_id, bad)
    with SessionLocal() as s:
        expected = path[-1] if path else "pending"
        assert OrderService(s).get_order_by_id(order_id).status == expected


def test_unknown_status_and_missing_order(user_id):
    order_id = _new_order(user_id)
    with SessionLocal() as s:
        with pytest.raises(InvalidOrderStatus):
            OrderService(s).update_order_status(order_id, "teleported")
        with pytest.raises(OrderNotFound):
            OrderService(s).update_order_status(order_id + 100, "processing")


def test_admin_stats_and_sales_by_day(user_id, admin_id):
    pid = make_sweet()
    with SessionLocal() as s:
        svc = OrderService(s)
        svc.create_order(user_id, [{"product_id": pid, "quantity": 2, "price": "100.00"}])
        svc.create_order(user_id, [{"product_id": pid, "quantity": 1, "price": "49.50"}])

    with SessionLocal() as s:
        svc = OrderService(s)
        stats = svc.admin_stats()
        assert stats == {"total_orders": 2, "total_users": 2, "total_sales": Decimal("249.50")}

        days = svc.sales_by_day(days=7)
        assert len(days) == 1
        assert days[0]["orders"] == 2
        assert days[0]["revenue"] == Decimal("249.50")

        past = datetime.now(timezone.utc) - timedelta(days=10)
        assert svc.sales_by_range(past - timedelta(days=5), past) == []
