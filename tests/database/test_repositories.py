"""Repository tests.

Tests for the per-table repositories:
- WorkerRepository: upsert, get, exists, list_all, deactivate
- OrderRepository: create, get, update, delete, list_all ordering
- IncomeRepository / ExpenseRepository / TransferRepository: create, list_all
- BaseCRUD: external-session writes commit only with the caller
"""
from datetime import date

import pytest

from database.models import WorkerModel


def _order(worker_id, order_no, order_date=date(2024, 1, 10), **extra):
    data = {
        "order_no": order_no,
        "worker_id": worker_id,
        "quantity": 10,
        "unit_price": 2.0,
        "total_amount": 20.0,
        "order_date": order_date,
        "item_type": "complete",
    }
    data.update(extra)
    return data


# ============================================================
# WorkerRepository Tests
# ============================================================
class TestWorkerRepository:
    """Tests for WorkerRepository."""

    def test_upsert_creates_worker(self, temp_db):
        w = temp_db.workers.upsert({"name": "Tony", "unit_price": 3.5})
        assert w.id > 0
        assert w.name == "Tony"
        assert w.unit_price == 3.5
        assert w.status == "active"

    def test_upsert_updates_by_id(self, temp_db):
        w = temp_db.workers.upsert({"name": "Tony"})
        updated = temp_db.workers.upsert({"id": w.id, "name": "Tony Lee", "phone": "138"})
        assert updated.id == w.id
        assert updated.name == "Tony Lee"
        assert updated.phone == "138"
        assert len(temp_db.workers.list_all()) == 1

    def test_upsert_unknown_id_returns_none(self, temp_db):
        assert temp_db.workers.upsert({"id": 999, "name": "Ghost"}) is None

    def test_get_and_exists(self, temp_db):
        w = temp_db.workers.upsert({"name": "Tony"})
        assert temp_db.workers.get(w.id).name == "Tony"
        assert temp_db.workers.exists(w.id)
        assert not temp_db.workers.exists(12345)
        assert temp_db.workers.get(12345) is None

    def test_list_active_only(self, temp_db):
        a = temp_db.workers.upsert({"name": "Active"})
        b = temp_db.workers.upsert({"name": "Leaving"})
        temp_db.workers.deactivate(b.id)
        active = temp_db.workers.list_all(active_only=True)
        assert [w.id for w in active] == [a.id]
        assert len(temp_db.workers.list_all()) == 2

    def test_deactivate_nonexistent(self, temp_db):
        assert temp_db.workers.deactivate(99999) is None


# ============================================================
# OrderRepository Tests
# ============================================================
class TestOrderRepository:
    """Tests for OrderRepository."""

    def test_create_returns_generated_row(self, temp_db):
        w = temp_db.workers.upsert({"name": "Tony"})
        order = temp_db.orders.create(_order(w.id, "ORD20240110AAA"))
        assert order.order_no == "ORD20240110AAA"
        assert order.order_status == "confirmed"
        assert order.payment_status == "unpaid"
        assert order.paid_amount == 0
        assert order.created_at is not None

    def test_update_by_order_no(self, temp_db):
        w = temp_db.workers.upsert({"name": "Tony"})
        temp_db.orders.create(_order(w.id, "ORD1"))
        updated = temp_db.orders.update("ORD1", {"paid_amount": 5.0, "remarks": "定金"})
        assert updated.paid_amount == 5.0
        assert updated.remarks == "定金"
        assert temp_db.orders.update("MISSING", {"paid_amount": 1}) is None

    def test_delete_by_order_no(self, temp_db):
        w = temp_db.workers.upsert({"name": "Tony"})
        temp_db.orders.create(_order(w.id, "ORD1"))
        assert temp_db.orders.delete("ORD1") is True
        assert temp_db.orders.get("ORD1") is None
        assert temp_db.orders.delete("ORD1") is False

    def test_list_all_newest_first(self, temp_db):
        w = temp_db.workers.upsert({"name": "Tony"})
        temp_db.orders.create(_order(w.id, "OLD", order_date=date(2024, 1, 1)))
        temp_db.orders.create(_order(w.id, "NEW", order_date=date(2024, 1, 20)))
        assert [o.order_no for o in temp_db.orders.list_all()] == ["NEW", "OLD"]


# ============================================================
# Income / Expense / Transfer Tests
# ============================================================
class TestAppendOnlyRepositories:
    """Tests for the append-only record repositories."""

    def test_income_create_and_list(self, temp_db):
        temp_db.incomes.create({"date": date(2024, 1, 2), "platform": "闲鱼",
                                "amount": 100.0, "quantity": 5})
        temp_db.incomes.create({"date": date(2024, 1, 5), "platform": "微信",
                                "amount": 60.0, "quantity": 3, "bank_card": "中信卡"})
        incomes = temp_db.incomes.list_all()
        assert [i.platform for i in incomes] == ["微信", "闲鱼"]
        assert incomes[0].bank_card == "中信卡"

    def test_expense_create(self, temp_db):
        e = temp_db.expenses.create({"date": date(2024, 1, 2), "purpose": "快递",
                                     "amount": 12.0, "quantity": 1})
        assert e.id > 0
        assert e.purpose == "快递"

    def test_transfer_create(self, temp_db):
        w = temp_db.workers.upsert({"name": "Tony"})
        t = temp_db.transfers.create({"worker_id": w.id, "amount": 200.0,
                                      "transfer_date": date(2024, 1, 3)})
        assert t.payment_method == "wechat"
        assert t.verified is False
        assert len(temp_db.transfers.list_all()) == 1


# ============================================================
# External session behaviour
# ============================================================
class TestExternalSession:
    """Writes through a caller session are committed by the caller."""

    def test_rollback_discards_flushed_rows(self, temp_db):
        session = temp_db.get_session()
        try:
            temp_db.workers.upsert({"name": "Temp"}, session=session)
            assert session.query(WorkerModel).count() == 1
            session.rollback()
        finally:
            session.close()
        assert temp_db.workers.list_all() == []

    def test_transaction_commits(self, temp_db):
        with temp_db.transaction() as session:
            temp_db.workers.upsert({"name": "Kept"}, session=session)
        assert [w.name for w in temp_db.workers.list_all()] == ["Kept"]

    def test_transaction_rolls_back_on_error(self, temp_db):
        with pytest.raises(RuntimeError):
            with temp_db.transaction() as session:
                temp_db.workers.upsert({"name": "Lost"}, session=session)
                raise RuntimeError("boom")
        assert temp_db.workers.list_all() == []
