import threading

import pytest

from sweetshop.config import settings
from sweetshop.db import SessionLocal
from sweetshop.models.ledger_entry import LedgerEntry, LedgerKind
from sweetshop.models.sweet import Sweet
from sweetshop.services.inventory_service import (
    InsufficientStock,
    InvalidQuantity,
    InvalidStockOperation,
    InventoryService,
    ProductNotFound,
    StockLockTimeout,
)
from sweetshop.services.ledger_service import LedgerService, UnknownLedgerKind
from sweetshop.services.sweet_service import SweetService
from sweetshop.utils.transactions import run_with_retry
from tests.conftest import make_sweet


def _quantity(product_id):
    with SessionLocal() as s:
        return s.get(Sweet, product_id).quantity


def _entries(product_id, kind=None):
    with SessionLocal() as s:
        q = s.query(LedgerEntry).filter(LedgerEntry.sweet_id == product_id)
        if kind:
            q = q.filter(LedgerEntry.type == kind)
        return q.order_by(LedgerEntry.id).all()


def test_purchase_decrements_and_records_one_entry(db, user_id):
    pid = make_sweet(quantity=10)
    result = InventoryService(db).purchase(pid, 3, user_id)

    assert result.sweet.quantity == 7
    assert _quantity(pid) == 7
    purchases = _entries(pid, "purchase")
    assert len(purchases) == 1
    entry = purchases[0]
    assert entry.id == result.transaction_id
    assert entry.qty == 3
    assert entry.user_id == user_id


@pytest.mark.parametrize("kind", ["reserve", "purchase"])
def test_decrement_to_exactly_zero(db, user_id, kind):
    pid = make_sweet(quantity=4)
    result = InventoryService(db).adjust_stock(pid, 4, user_id, kind)
    assert result.sweet.quantity == 0
    assert result.sweet.available is False


def test_insufficient_stock_reports_available_and_changes_nothing(db, user_id):
    pid = make_sweet(quantity=2)
    with pytest.raises(InsufficientStock) as exc:
        InventoryService(db).reserve(pid, 5, user_id)

    assert exc.value.available == 2
    assert exc.value.requested == 5
    assert _quantity(pid) == 2
    assert _entries(pid, "reserve") == []


def test_restock_has_no_upper_bound(db, admin_id):
    pid = make_sweet(quantity=0)
    result = InventoryService(db).restock(pid, 1000, admin_id)
    assert result.sweet.quantity == 1000
    assert result.sweet.available is True
    assert [e.qty for e in _entries(pid, "restock")] == [1000]


def test_missing_product_is_rejected_without_ledger_entry(db, user_id):
    with pytest.raises(ProductNotFound) as exc:
        InventoryService(db).purchase(999, 1, user_id)
    assert exc.value.product_id == 999
    assert _entries(999) == []


@pytest.mark.parametrize("qty", [0, -1, 1.5, "2", True, None])
def test_invalid_quantities_are_rejected_not_coerced(db, admin_id, qty):
    pid = make_sweet(quantity=5)
    with pytest.raises(InvalidQuantity):
        InventoryService(db).restock(pid, qty, admin_id)
    assert _quantity(pid) == 5
    assert len(_entries(pid)) == 1  # opening stock only


def test_unknown_operation_is_rejected(db, user_id):
    pid = make_sweet(quantity=5)
    with pytest.raises(InvalidStockOperation):
        InventoryService(db).adjust_stock(pid, 1, user_id, "steal")
    assert _quantity(pid) == 5


def test_deleted_sweet_cannot_be_adjusted(db, user_id):
    pid = make_sweet(quantity=5)
    with SessionLocal() as s:
        SweetService(s).delete_sweet(pid)
    with pytest.raises(ProductNotFound):
        InventoryService(db).purchase(pid, 1, user_id)
    assert _quantity(pid) == 5


def test_opening_stock_is_booked_as_restock(admin_id):
    pid = make_sweet(quantity=12, acting_user_id=admin_id)
    entries = _entries(pid)
    assert [(e.type, e.qty, e.user_id) for e in entries] == [(LedgerKind.RESTOCK.value, 12, admin_id)]


def test_failure_inside_outer_transaction_rolls_back_only_the_adjustment(user_id):
    pid = make_sweet(quantity=3)
    with SessionLocal() as s:
        s.begin()
        svc = InventoryService(s)
        svc.reserve(pid, 2, user_id)
        with pytest.raises(InsufficientStock) as exc:
            svc.reserve(pid, 2, user_id)
        assert exc.value.available == 1
        s.commit()
    assert _quantity(pid) == 1
    assert len(_entries(pid, "reserve")) == 1


def _run_concurrently(pid, user_id, kind, quantities):
    barrier = threading.Barrier(len(quantities))
    outcomes = []
    lock = threading.Lock()

    def worker(qty):
        s = SessionLocal()
        try:
            barrier.wait()
            try:
                InventoryService(s).adjust_stock(pid, qty, user_id, kind)
                outcome = ("ok", qty, None)
            except InsufficientStock as e:
                outcome = ("insufficient", qty, e.available)
        finally:
            s.close()
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=worker, args=(q,)) for q in quantities]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return outcomes


def test_two_concurrent_purchases_cannot_oversell(user_id):
    pid = make_sweet(quantity=10)
    outcomes = _run_concurrently(pid, user_id, "purchase", [6, 6])

    assert sorted(o[0] for o in outcomes) == ["insufficient", "ok"]
    failed = next(o for o in outcomes if o[0] == "insufficient")
    assert failed[2] == 4
    assert _quantity(pid) == 4
    assert len(_entries(pid, "purchase")) == 1


def test_many_concurrent_reservations_never_exceed_stock(user_id):
    pid = make_sweet(quantity=10)
    outcomes = _run_concurrently(pid, user_id, "reserve", [3] * 8)

    succeeded = [o for o in outcomes if o[0] == "ok"]
    assert len(succeeded) == 3
    assert _quantity(pid) == 1
    reserves = _entries(pid, "reserve")
    assert len(reserves) == len(succeeded)
    assert sum(e.qty for e in reserves) == 9


def test_concurrent_restocks_all_apply(admin_id):
    pid = make_sweet(quantity=0)
    _run_concurrently(pid, admin_id, "restock", [1] * 6)
    assert _quantity(pid) == 6


def test_ledger_reconciles_with_quantities(db, user_id, admin_id):
    a = make_sweet(quantity=10, name="Kaju Katli")
    b = make_sweet(quantity=0, name="Rasgulla")
    svc = InventoryService(db)
    svc.reserve(a, 2, user_id)
    svc.purchase(a, 3, user_id)
    svc.restock(b, 4, admin_id)
    svc.purchase(b, 4, user_id)

    with SessionLocal() as s:
        report = LedgerService(s).reconcile()
        assert [(r["product_id"], r["quantity"], r["consistent"]) for r in report] == [(a, 5, True), (b, 0, True)]

        # a write that bypasses adjust_stock shows up as drift
        s.get(Sweet, b).quantity = 7
        s.commit()
        drifted = {r["product_id"]: r for r in LedgerService(s).reconcile()}
        assert drifted[b]["consistent"] is False
        assert drifted[b]["ledger_quantity"] == 0


def test_busy_product_lock_times_out_without_changes(db, user_id, monkeypatch):
    pid = make_sweet(quantity=5)
    monkeypatch.setattr(settings, "STOCK_LOCK_TIMEOUT_SECONDS", 0.2)

    with InventoryService(db)._lock_for(pid):
        with pytest.raises(StockLockTimeout):
            InventoryService(db).purchase(pid, 1, user_id)

    assert _quantity(pid) == 5
    assert _entries(pid, "purchase") == []
    # lock released, the same call goes through
    assert InventoryService(db).purchase(pid, 1, user_id).sweet.quantity == 4


def test_guarded_update_alone_refuses_oversell(user_id):
    """Writers that skip the file lock still cannot drive stock below zero."""
    pid = make_sweet(quantity=10)
    barrier = threading.Barrier(6)
    outcomes = []
    lock = threading.Lock()

    def worker():
        s = SessionLocal()
        try:
            svc = InventoryService(s)
            barrier.wait()
            try:
                run_with_retry(lambda: svc._apply(pid, 4, user_id, LedgerKind.PURCHASE))
                outcome = "ok"
            except InsufficientStock:
                outcome = "insufficient"
        finally:
            s.close()
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 2
    assert outcomes.count("insufficient") == 4
    assert _quantity(pid) == 2
    assert len(_entries(pid, "purchase")) == 2


def test_ledger_rejects_unknown_kind_filter(db):
    with pytest.raises(UnknownLedgerKind):
        LedgerService(db).list_entries(kind="steal")
