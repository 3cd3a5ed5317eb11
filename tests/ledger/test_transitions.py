"""测试状态流转控制器"""
from dataclasses import asdict
from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from ledger.exceptions import (
    NotFoundError, PersistenceError, TransitionError, ValidationError,
)
from ledger.transitions import can_transition
from tests.conftest import order_payload


class TestStateMachine:
    """状态机"""

    @pytest.mark.parametrize("current, target", [
        ("pending", "confirmed"), ("confirmed", "producing"), ("producing", "delivered"),
        ("delivered", "received"), ("delivered", "completed"), ("pending", "cancelled"),
        ("producing", "cancelled"), ("confirmed", "received"),
    ])
    def test_allowed(self, current, target):
        assert can_transition(current, target)

    @pytest.mark.parametrize("current, target", [
        ("producing", "confirmed"), ("delivered", "pending"), ("received", "cancelled"),
        ("cancelled", "confirmed"), ("completed", "received"), ("confirmed", "confirmed"),
    ])
    def test_rejected(self, current, target):
        assert not can_transition(current, target)


class TestWorkers:
    """工人"""

    def test_save_and_edit(self, controller):
        w = controller.save_worker({"name": "李姐", "unit_price": "6"})
        assert w.unit_price == 6
        edited = controller.save_worker({"id": w.id, "name": "李姐", "unit_price": 7})
        assert edited.id == w.id
        assert edited.unit_price == 7

    def test_edit_keeps_omitted_fields(self, controller):
        w = controller.save_worker({"name": "王阿姨", "phone": "138", "unit_price": 8,
                                    "wechat_nickname": "wang"})
        controller.deactivate_worker(w.id)
        edited = controller.save_worker({"id": w.id, "name": "王阿姨(老)"})
        assert edited.name == "王阿姨(老)"
        assert edited.status == "inactive"
        assert edited.unit_price == 8
        assert edited.phone == "138"
        assert edited.wechat_nickname == "wang"

    def test_edit_can_reactivate(self, controller, worker):
        controller.deactivate_worker(worker.id)
        assert controller.save_worker({"id": worker.id, "status": "active"}).status == "active"

    def test_edit_with_blank_name_rejected(self, controller, worker):
        with pytest.raises(ValidationError):
            controller.save_worker({"id": worker.id, "name": " "})

    def test_edit_unknown_worker(self, controller):
        with pytest.raises(NotFoundError):
            controller.save_worker({"id": 999, "name": "Ghost"})

    def test_deactivate(self, controller, worker):
        assert controller.deactivate_worker(worker.id).status == "inactive"


class TestCreateOrder:
    """新建订单"""

    def test_total_is_quantity_times_price(self, controller, worker, today):
        order = controller.create_order(order_payload(worker.id))
        assert order.total_amount == 850.0
        assert order.order_no.startswith("ORD20240128")
        assert len(order.order_no) == len("ORD20240128") + 3
        assert order.order_status == "confirmed"
        assert order.order_date == today

    def test_zero_price_gives_zero_total(self, controller, today):
        free = controller.save_worker({"name": "学徒", "unit_price": 0})
        order = controller.create_order(order_payload(free.id, unit_price=0, quantity=300))
        assert order.total_amount == 0

    def test_unknown_worker_rejected(self, controller, temp_db):
        with pytest.raises(ValidationError) as exc:
            controller.create_order(order_payload(404))
        assert exc.value.field == "worker_id"
        assert temp_db.orders.list_all() == []

    def test_explicit_order_no(self, controller, worker):
        order = controller.create_order(order_payload(worker.id, order_no="ORD-MANUAL"))
        assert order.order_no == "ORD-MANUAL"
        with pytest.raises(ValidationError):
            controller.create_order(order_payload(worker.id, order_no="ORD-MANUAL"))

    def test_unknown_fields_ignored(self, controller, worker):
        order = controller.create_order(order_payload(worker.id, worker_name="王阿姨"))
        assert order.worker_id == worker.id


class TestUpdateOrder:
    """编辑订单"""

    def test_recompute_total(self, controller, worker):
        order = controller.create_order(order_payload(worker.id))
        updated = controller.update_order(
            {"order_no": order.order_no, "quantity": 200, "unit_price": 8.5}
        )
        assert updated.total_amount == 1700

    def test_explicit_total_kept(self, controller, worker):
        order = controller.create_order(order_payload(worker.id))
        updated = controller.update_order(
            {"order_no": order.order_no, "quantity": 200, "unit_price": 8.5, "total_amount": 1600}
        )
        assert updated.total_amount == 1600

    def test_quantity_only_keeps_total(self, controller, worker):
        order = controller.create_order(order_payload(worker.id))
        updated = controller.update_order({"order_no": order.order_no, "quantity": 200})
        assert updated.total_amount == 850

    def test_payment_status_follows_paid(self, controller, worker):
        order = controller.create_order(order_payload(worker.id))
        partial = controller.update_order({"order_no": order.order_no, "paid_amount": 100})
        assert partial.payment_status == "partial"
        paid = controller.update_order({"order_no": order.order_no, "paid_amount": 850})
        assert paid.payment_status == "paid"

    def test_terminal_order_only_notes(self, controller, worker):
        order = controller.create_order(order_payload(worker.id))
        controller.mark_received(order.order_no)
        noted = controller.update_order({"order_no": order.order_no, "remarks": "质量好"})
        assert noted.remarks == "质量好"
        with pytest.raises(TransitionError):
            controller.update_order({"order_no": order.order_no, "quantity": 1})

    def test_terminal_order_full_form_resubmit(self, controller, worker, temp_db):
        order = controller.create_order(order_payload(worker.id))
        controller.mark_received(order.order_no)
        form = asdict(temp_db.orders.get(order.order_no))
        form["remarks"] = "补记：包装破损两条"
        noted = controller.update_order(form)
        assert noted.remarks == "补记：包装破损两条"
        assert noted.order_status == "received"

        form["quantity"] = 90
        with pytest.raises(TransitionError) as exc:
            controller.update_order(form)
        assert "quantity" in str(exc.value)

    def test_received_status_requires_mark_received(self, controller, worker):
        order = controller.create_order(order_payload(worker.id))
        with pytest.raises(TransitionError):
            controller.update_order({"order_no": order.order_no, "order_status": "received"})

    def test_unknown_order(self, controller):
        with pytest.raises(NotFoundError):
            controller.update_order({"order_no": "NOPE", "remarks": "x"})


class TestMarkReceived:
    """收货入库"""

    def test_settles_and_posts_inventory(self, controller, worker, temp_db, today):
        order = controller.create_order(order_payload(worker.id, quantity=50, paid_amount=100))
        received = controller.mark_received(order.order_no)

        assert received.order_status == "received"
        assert received.receive_date == today
        assert received.total_amount - received.paid_amount == 0
        assert received.payment_status == "paid"

        rows = temp_db.inventory.find_by_related_order(order.order_no)
        assert len(rows) == 1
        assert rows[0].transaction_type == "in"
        assert rows[0].quantity_change == 50
        assert rows[0].item_type == "complete"
        assert rows[0].balance_quantity == 50
        assert rows[0].remarks == "代工收货: 王阿姨"

    def test_posts_to_order_category(self, controller, worker, temp_db):
        temp_db.inventory.append("coil", "in", 10, date(2024, 1, 1))
        order = controller.create_order(order_payload(worker.id, item_type="coil", quantity=40))
        controller.mark_received(order.order_no)
        assert temp_db.inventory.latest_balance("coil") == 50
        assert temp_db.inventory.latest_balance("complete") == 0

    def test_second_receive_rejected(self, controller, worker, temp_db):
        order = controller.create_order(order_payload(worker.id))
        controller.mark_received(order.order_no)
        with pytest.raises(TransitionError):
            controller.mark_received(order.order_no)
        with pytest.raises(TransitionError):
            controller.change_status(order.order_no, "completed")
        assert len(temp_db.inventory.find_by_related_order(order.order_no)) == 1

    def test_cancelled_cannot_be_received(self, controller, worker):
        order = controller.create_order(order_payload(worker.id))
        controller.change_status(order.order_no, "cancelled")
        with pytest.raises(TransitionError):
            controller.mark_received(order.order_no)

    def test_completed_via_change_status(self, controller, worker, temp_db):
        order = controller.create_order(order_payload(worker.id, quantity=5))
        controller.change_status(order.order_no, "delivered")
        done = controller.change_status(order.order_no, "completed")
        assert done.order_status == "completed"
        assert temp_db.inventory.latest_balance("complete") == 5

    def test_declined_confirmation_writes_nothing(self, controller, worker, temp_db):
        order = controller.create_order(order_payload(worker.id))
        messages = []

        def decline(o, message):
            messages.append(message)
            return False

        assert controller.mark_received(order.order_no, confirm=decline) is None
        assert "王阿姨" in messages[0] and "100" in messages[0]
        assert temp_db.orders.get(order.order_no).order_status == "confirmed"
        assert temp_db.inventory.list_all() == []

    def test_inventory_failure_rolls_back_status(self, controller, worker, temp_db, monkeypatch):
        order = controller.create_order(order_payload(worker.id))

        def failing_append(*args, **kwargs):
            raise OperationalError("INSERT INTO inventory", {}, Exception("disk full"))

        monkeypatch.setattr(temp_db.inventory, "append", failing_append)
        with pytest.raises(PersistenceError):
            controller.mark_received(order.order_no)

        stored = temp_db.orders.get(order.order_no)
        assert stored.order_status == "confirmed"
        assert stored.receive_date is None
        assert stored.paid_amount == 0

    def test_unknown_order(self, controller):
        with pytest.raises(NotFoundError):
            controller.mark_received("NOPE")


class TestChangeStatus:
    """普通状态流转"""

    def test_forward(self, controller, worker):
        order = controller.create_order(order_payload(worker.id, order_status="pending"))
        assert controller.change_status(order.order_no, "confirmed").order_status == "confirmed"
        assert controller.change_status(order.order_no, "producing").order_status == "producing"

    def test_backward_rejected(self, controller, worker):
        order = controller.create_order(order_payload(worker.id, order_status="producing"))
        with pytest.raises(TransitionError):
            controller.change_status(order.order_no, "confirmed")

    def test_invalid_status(self, controller, worker):
        order = controller.create_order(order_payload(worker.id))
        with pytest.raises(ValidationError):
            controller.change_status(order.order_no, "lost")


class TestDeleteOrder:
    """删除订单"""

    def test_delete_open_order(self, controller, worker, temp_db):
        order = controller.create_order(order_payload(worker.id))
        assert controller.delete_order(order.order_no) is True
        assert temp_db.orders.get(order.order_no) is None

    def test_delete_received_order_forbidden(self, controller, worker, temp_db):
        order = controller.create_order(order_payload(worker.id))
        controller.mark_received(order.order_no)
        with pytest.raises(TransitionError):
            controller.delete_order(order.order_no)
        assert temp_db.orders.get(order.order_no) is not None

    def test_delete_unknown(self, controller):
        with pytest.raises(NotFoundError):
            controller.delete_order("NOPE")


class TestRecordIncome:
    """销售收入与出库"""

    def test_income_from_zero_goes_negative(self, controller, temp_db):
        income, tx = controller.record_income({"amount": 300, "quantity": 20, "platform": "闲鱼"})
        assert income.amount == 300
        assert tx.transaction_type == "out"
        assert tx.quantity_change == -20
        assert tx.item_type == "complete"
        assert tx.balance_quantity == -20
        assert tx.remarks == "销售出库: 闲鱼"

    def test_income_reduces_complete_only(self, controller, temp_db):
        temp_db.inventory.append("complete", "in", 100, date(2024, 1, 1))
        temp_db.inventory.append("coil", "in", 100, date(2024, 1, 1))
        controller.record_income({"amount": 50, "quantity": 15})
        assert temp_db.inventory.latest_balance("complete") == 85
        assert temp_db.inventory.latest_balance("coil") == 100

    def test_unlisted_platform_still_recorded(self, controller, temp_db):
        income, _ = controller.record_income({"amount": 50, "quantity": 2, "platform": "抖音"})
        assert income.platform == "抖音"
        assert temp_db.inventory.latest_balance("complete") == -2

    def test_invalid_income_writes_nothing(self, controller, temp_db):
        with pytest.raises(ValidationError):
            controller.record_income({"amount": 50})
        assert temp_db.incomes.list_all() == []
        assert temp_db.inventory.list_all() == []

    def test_inventory_failure_rolls_back_income(self, controller, temp_db, monkeypatch):
        def failing_append(*args, **kwargs):
            raise OperationalError("INSERT INTO inventory", {}, Exception("locked"))

        monkeypatch.setattr(temp_db.inventory, "append", failing_append)
        with pytest.raises(PersistenceError):
            controller.record_income({"amount": 50, "quantity": 1})
        assert temp_db.incomes.list_all() == []


class TestOtherWrites:
    """支出、转账、库存更正"""

    def test_expense(self, controller, temp_db):
        e = controller.record_expense({"purpose": "包装袋", "amount": 45, "quantity": 100})
        assert e.purpose == "包装袋"
        assert temp_db.inventory.list_all() == []

    def test_transfer_requires_existing_worker(self, controller, worker):
        t = controller.record_transfer({"worker_id": worker.id, "amount": 200})
        assert t.amount == 200
        with pytest.raises(ValidationError):
            controller.record_transfer({"worker_id": 999, "amount": 200})

    def test_adjust_inventory(self, controller, temp_db, today):
        up = controller.adjust_inventory("main-cord", "increase", 30, remarks="盘点")
        down = controller.adjust_inventory("main-cord", "decrease", 12)
        assert up.transaction_type == "adjust"
        assert up.transaction_date == today
        assert down.quantity_change == -12
        assert down.balance_quantity == 18

    def test_adjust_invalid(self, controller):
        with pytest.raises(ValidationError):
            controller.adjust_inventory("bead", "increase", 3)
        with pytest.raises(ValidationError):
            controller.adjust_inventory("coil", "increase", 0)
