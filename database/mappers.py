"""ORM 对象 → 台账值对象 的转换。

仓库对外只返回 ledger.records 中的纯数据对象，
调用方不会接触到已脱离会话的 ORM 实例。
"""
from ledger.records import (
    Worker, Order, Transfer, InventoryTransaction, IncomeRecord, ExpenseRecord,
)
from .models import (
    WorkerModel, OrderModel, TransferModel, InventoryTransactionModel,
    IncomeModel, ExpenseModel,
)


def _float(value) -> float:
    return float(value) if value is not None else 0.0


def worker_to_record(w: WorkerModel) -> Worker:
    return Worker(
        id=w.id,
        name=w.name,
        wechat_nickname=w.wechat_nickname or "",
        phone=w.phone or "",
        unit_price=_float(w.unit_price),
        status=w.status or "active",
        specialty_type=w.specialty_type,
        address=w.address,
        created_at=w.created_at,
    )


def order_to_record(o: OrderModel) -> Order:
    return Order(
        order_no=o.order_no,
        worker_id=o.worker_id,
        quantity=o.quantity or 0,
        unit_price=_float(o.unit_price),
        total_amount=_float(o.total_amount),
        order_date=o.order_date,
        expected_delivery=o.expected_delivery,
        actual_delivery=o.actual_delivery,
        receive_date=o.receive_date,
        order_status=o.order_status,
        payment_status=o.payment_status,
        paid_amount=_float(o.paid_amount),
        item_type=o.item_type,
        bank_card=o.bank_card,
        chat_record=o.chat_record,
        remarks=o.remarks,
        created_at=o.created_at,
    )


def transfer_to_record(t: TransferModel) -> Transfer:
    return Transfer(
        id=t.id,
        worker_id=t.worker_id,
        amount=_float(t.amount),
        transfer_date=t.transfer_date,
        payment_method=t.payment_method,
        screenshot_url=t.screenshot_url,
        wechat_remark=t.wechat_remark,
        verified=bool(t.verified),
        created_at=t.created_at,
    )


def inventory_to_record(i: InventoryTransactionModel) -> InventoryTransaction:
    return InventoryTransaction(
        id=i.id,
        transaction_date=i.transaction_date,
        transaction_type=i.transaction_type,
        quantity_change=i.quantity_change,
        balance_quantity=i.balance_quantity,
        item_type=i.item_type,
        sequence=i.sequence,
        related_order=i.related_order,
        remarks=i.remarks,
        created_at=i.created_at,
    )


def income_to_record(r: IncomeModel) -> IncomeRecord:
    return IncomeRecord(
        id=r.id,
        date=r.date,
        platform=r.platform or "",
        amount=_float(r.amount),
        quantity=r.quantity or 0,
        bank_card=r.bank_card,
        created_at=r.created_at,
    )


def expense_to_record(e: ExpenseModel) -> ExpenseRecord:
    return ExpenseRecord(
        id=e.id,
        date=e.date,
        purpose=e.purpose,
        amount=_float(e.amount),
        quantity=e.quantity or 0,
        bank_card=e.bank_card,
        created_at=e.created_at,
    )
