"""状态流转控制器 - 订单生命周期与库存联动。

所有写操作都在单一数据库事务里完成：

- 收货（mark-received）：更新订单状态、收货日期、结清工费，
  并追加一条关联订单的“入库”流水；
- 记录销售收入：写入收入记录，并在成品品类追加一条“出库”流水；
- 手工库存更正：按方向与数量追加一条“更正”流水。

任何一步失败都会整体回滚，不会出现“订单已收货但库存没有入库”的不一致。

订单状态机::

    pending → confirmed → producing → delivered → received
                                              ↘ completed
    任一非终态 → cancelled

终态：received / completed / cancelled。
"""
from datetime import date
from typing import Any, Callable, Dict, Optional, Tuple, Type

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from config.business_config import BusinessConfig, business_config as default_business_config
from config.settings import settings
from database.manager import DatabaseManager
from database.mappers import order_to_record
from database.models import (
    Base, ExpenseModel, IncomeModel, OrderModel, TransferModel, WorkerModel,
)
from ledger.exceptions import (
    LedgerError, NotFoundError, PersistenceError, TransitionError, ValidationError,
)
from ledger.normalize import (
    derive_payment_status, generate_id, normalize_expense, normalize_income,
    normalize_order, normalize_order_update, normalize_transfer, normalize_worker,
    signed_adjustment, validate_item_type,
)
from ledger.records import (
    ExpenseRecord, IncomeRecord, InventoryTransaction, ItemType, Order, OrderStatus,
    PaymentStatus, RECEIVED_STATUSES, TERMINAL_STATUSES, TransactionType, Transfer,
    Worker,
)

# 正向流转（不含收货与取消）
_FORWARD_EDGES = {
    OrderStatus.PENDING.value: {
        OrderStatus.CONFIRMED.value, OrderStatus.PRODUCING.value, OrderStatus.DELIVERED.value,
    },
    OrderStatus.CONFIRMED.value: {OrderStatus.PRODUCING.value, OrderStatus.DELIVERED.value},
    OrderStatus.PRODUCING.value: {OrderStatus.DELIVERED.value},
    OrderStatus.DELIVERED.value: set(),
}

# 终态订单仍允许修改的字段
_NOTE_FIELDS = {"bank_card", "chat_record", "remarks"}

_ORDER_NO_ATTEMPTS = 5


def can_transition(current: str, target: str) -> bool:
    """判断订单状态能否从 current 流转到 target。

    收货（received / completed）只能从非终态进入；
    取消可以从任一非终态进入；其余只允许沿状态机向前。
    """
    current = OrderStatus(current).value
    target = OrderStatus(target).value
    if current in TERMINAL_STATUSES or current == target:
        return False
    if target in RECEIVED_STATUSES or target == OrderStatus.CANCELLED.value:
        return True
    return target in _FORWARD_EDGES[current]


def _only_columns(model: Type[Base], payload: Dict[str, Any]) -> Dict[str, Any]:
    columns = set(model.__table__.columns.keys())
    dropped = set(payload) - columns
    if dropped:
        logger.debug(f"Ignoring unknown {model.__tablename__} fields: {sorted(dropped)}")
    return {k: v for k, v in payload.items() if k in columns}


class TransitionController:
    """状态流转控制器。

    每个公开方法对应一次用户提交：先规范化校验，再在一个事务里完成
    主记录写入和联动的库存流水。校验失败时不会发生任何写入。

    Attributes:
        db: 数据库管理器。
        config: 业务配置。

    Example::

        controller = TransitionController(DatabaseManager())
        order = controller.create_order({"worker_id": 1, "quantity": 100,
                                         "unit_price": 8.5, "item_type": "complete"})
        controller.mark_received(order.order_no)
    """

    def __init__(self, db: DatabaseManager,
                 config: Optional[BusinessConfig] = None,
                 today: Optional[Callable[[], date]] = None) -> None:
        """初始化控制器。

        Args:
            db: 数据库管理器。
            config: 业务配置，缺省使用全局 business_config。
            today: 返回“今天”的函数，缺省为 date.today（测试时可注入）。
        """
        self.db = db
        self.config = config or default_business_config
        self._today = today or date.today

    # ================================================================
    # 事务封装
    # ================================================================

    def _run(self, action: str, work: Callable[[Any], Any]) -> Any:
        """在单一事务中执行 work(session)。

        业务异常原样抛出，数据库异常包装为 PersistenceError；两种情况都已回滚。
        """
        try:
            with self.db.transaction() as session:
                return work(session)
        except LedgerError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"{action} failed, transaction rolled back: {e}")
            raise PersistenceError(f"{action} failed: {e}") from e

    def _require_order(self, session, order_no: str) -> OrderModel:
        obj = self.db.orders.get_model(order_no, session, for_update=True)
        if obj is None:
            raise NotFoundError(f"Order not found: {order_no}")
        return obj

    def _require_worker(self, session, worker_id: int) -> None:
        if not self.db.workers.exists(worker_id, session=session):
            raise ValidationError(f"Worker not found: {worker_id}", field="worker_id")

    # ================================================================
    # 工人
    # ================================================================

    def save_worker(self, data: Dict[str, Any]) -> Worker:
        """新建或编辑工人（载荷带 id 时为编辑）。

        Raises:
            ValidationError: 姓名缺失或单价为负。
            NotFoundError: 编辑的工人不存在。
        """
        payload = _only_columns(WorkerModel, normalize_worker(data))

        def _do(session):
            worker = self.db.workers.upsert(payload, session=session)
            if worker is None:
                raise NotFoundError(f"Worker not found: {payload.get('id')}")
            return worker

        worker = self._run("save worker", _do)
        logger.info(f"Worker saved: {worker.id} {worker.name}")
        return worker

    def deactivate_worker(self, worker_id: int) -> Worker:
        """停用工人（软删除）。"""
        def _do(session):
            worker = self.db.workers.deactivate(worker_id, session=session)
            if worker is None:
                raise NotFoundError(f"Worker not found: {worker_id}")
            return worker

        worker = self._run("deactivate worker", _do)
        logger.info(f"Worker deactivated: {worker_id}")
        return worker

    # ================================================================
    # 订单
    # ================================================================

    def _new_order_no(self, session, today: date) -> str:
        for _ in range(_ORDER_NO_ATTEMPTS):
            order_no = generate_id(settings.order_no_prefix, today)
            if not self.db.orders.exists(order_no, session=session):
                return order_no
        raise PersistenceError("Could not generate a unique order number")

    def create_order(self, data: Dict[str, Any]) -> Order:
        """新建代工订单。

        未提供订单号时自动生成；未显式提供总额时按 数量 × 单价 计算。

        Args:
            data: 原始订单载荷。

        Returns:
            新建的 Order。

        Raises:
            ValidationError: 工人/数量/品类缺失，工人不存在，或订单号重复。
        """
        today = self._today()
        defaults = self.config.get_order_defaults()
        payload = normalize_order(
            data, today=today,
            default_delivery_days=defaults.get("delivery_days", 7),
        )
        payload = _only_columns(OrderModel, payload)
        if payload["paid_amount"] > payload["total_amount"]:
            logger.warning(
                f"Order paid {payload['paid_amount']} exceeds total {payload['total_amount']}"
            )

        def _do(session):
            self._require_worker(session, payload["worker_id"])
            if payload.get("order_no"):
                if self.db.orders.exists(payload["order_no"], session=session):
                    raise ValidationError(
                        f"Order number already exists: {payload['order_no']}",
                        field="order_no",
                    )
            else:
                payload["order_no"] = self._new_order_no(session, today)
            return self.db.orders.create(payload, session=session)

        order = self._run("create order", _do)
        logger.info(
            f"Order created: {order.order_no} worker={order.worker_id} "
            f"qty={order.quantity} total={order.total_amount}"
        )
        return order

    def update_order(self, data: Dict[str, Any]) -> Order:
        """编辑订单。

        - 未显式提供总额而同时提供了数量和单价时，重新计算总额；
        - 已付金额按给定值保存，付款状态随之重新推导；
        - 终态订单只允许修改备注类字段；
        - 状态变更必须合法，收货请使用 mark_received。

        Raises:
            NotFoundError: 订单不存在。
            TransitionError: 修改终态订单的业务字段，或非法的状态变更。
            ValidationError: 字段取值非法或工人不存在。
        """
        payload = normalize_order_update(data)
        order_no = payload.pop("order_no")
        payload = _only_columns(OrderModel, payload)

        def _do(session):
            obj = self._require_order(session, order_no)
            if obj.order_status in TERMINAL_STATUSES:
                locked = {
                    key for key, value in payload.items()
                    if key not in _NOTE_FIELDS and getattr(obj, key) != value
                }
                if locked:
                    raise TransitionError(
                        f"Order {order_no} is {obj.order_status}; "
                        f"cannot change {sorted(locked)}"
                    )
            target = payload.get("order_status")
            if target and target != obj.order_status:
                if target in RECEIVED_STATUSES:
                    raise TransitionError(
                        f"Use mark-received to move order {order_no} to {target}"
                    )
                if not can_transition(obj.order_status, target):
                    raise TransitionError(
                        f"Illegal transition {obj.order_status} -> {target}"
                    )
            if "worker_id" in payload:
                self._require_worker(session, payload["worker_id"])

            for key, value in payload.items():
                setattr(obj, key, value)
            obj.payment_status = derive_payment_status(obj.total_amount, obj.paid_amount)
            session.flush()
            if obj.paid_amount > obj.total_amount:
                logger.warning(
                    f"Order {order_no} paid {obj.paid_amount} exceeds total {obj.total_amount}"
                )
            return order_to_record(obj)

        order = self._run("update order", _do)
        logger.info(f"Order updated: {order_no} fields={sorted(payload)}")
        return order

    def change_status(self, order_no: str, status: str,
                      confirm: Optional[Callable[[Order, str], bool]] = None
                      ) -> Optional[Order]:
        """按状态机变更订单状态。

        目标为 received / completed 时走收货流程（含库存入库与结清）。

        Args:
            order_no: 订单号。
            status: 目标状态。
            confirm: 收货确认回调，见 mark_received。

        Raises:
            ValidationError: 目标状态非法。
            NotFoundError: 订单不存在。
            TransitionError: 状态机不允许该流转。
        """
        try:
            target = OrderStatus(status)
        except ValueError:
            raise ValidationError(f"Invalid order_status: {status}", field="order_status")

        if target in RECEIVED_STATUSES:
            return self.mark_received(order_no, status=target.value, confirm=confirm)

        def _do(session):
            obj = self._require_order(session, order_no)
            if not can_transition(obj.order_status, target.value):
                raise TransitionError(
                    f"Illegal transition {obj.order_status} -> {target.value}"
                )
            previous = obj.order_status
            obj.order_status = target.value
            session.flush()
            return previous, order_to_record(obj)

        previous, order = self._run("change order status", _do)
        logger.info(f"Order {order_no} status {previous} -> {target.value}")
        return order

    def mark_received(self, order_no: str, status: str = OrderStatus.RECEIVED.value,
                      confirm: Optional[Callable[[Order, str], bool]] = None
                      ) -> Optional[Order]:
        """确认收货并入库。

        在同一事务中：状态置为已收货（或已完成）、收货日期置为今天、
        已付金额置为总额（结清）、并在订单品类追加一条 +数量 的入库流水。

        Args:
            order_no: 订单号。
            status: received 或 completed。
            confirm: 确认回调 ``confirm(order, message) -> bool``，
                返回 False 时放弃操作且不做任何写入。

        Returns:
            收货后的 Order；确认被拒绝时返回 None。

        Raises:
            NotFoundError: 订单不存在。
            TransitionError: 订单已处于终态，或已有关联的入库流水。
        """
        if status not in RECEIVED_STATUSES:
            raise ValidationError(
                f"mark-received target must be received/completed, got {status}",
                field="order_status",
            )
        today = self._today()

        def _do(session):
            obj = self._require_order(session, order_no)
            if obj.order_status in TERMINAL_STATUSES:
                raise TransitionError(
                    f"Order {order_no} is already {obj.order_status}"
                )
            if self.db.inventory.find_by_related_order(order_no, session=session):
                raise TransitionError(f"Order {order_no} already posted inventory")

            worker = self.db.workers.get(obj.worker_id, session=session)
            worker_name = worker.name if worker else "未知工人"
            if confirm is not None:
                message = (
                    f"确认已收到工人 [{worker_name}] 交付的 {obj.quantity} 条手绳并入库吗？"
                )
                if not confirm(order_to_record(obj), message):
                    return None, None

            obj.order_status = status
            obj.receive_date = today
            if obj.actual_delivery is None:
                obj.actual_delivery = today
            obj.paid_amount = obj.total_amount
            obj.payment_status = PaymentStatus.PAID.value
            session.flush()

            tx = self.db.inventory.append(
                item_type=obj.item_type,
                transaction_type=TransactionType.IN.value,
                quantity_change=obj.quantity,
                transaction_date=today,
                related_order=order_no,
                remarks=f"代工收货: {worker_name}",
                session=session,
            )
            return order_to_record(obj), tx

        order, tx = self._run("mark order received", _do)
        if order is None:
            logger.info(f"Mark-received for {order_no} declined")
            return None
        logger.info(
            f"Order received: {order_no} +{order.quantity} {order.item_type} "
            f"(balance {tx.balance_quantity})"
        )
        return order

    def delete_order(self, order_no: str) -> bool:
        """删除订单（不可恢复）。

        已经产生入库流水的订单不允许删除，需要通过手工库存更正冲销。

        Raises:
            NotFoundError: 订单不存在。
            TransitionError: 订单已有关联的入库流水。
        """
        def _do(session):
            self._require_order(session, order_no)
            if self.db.inventory.find_by_related_order(order_no, session=session):
                raise TransitionError(
                    f"Order {order_no} already posted inventory; adjust inventory instead"
                )
            return self.db.orders.delete(order_no, session=session)

        deleted = self._run("delete order", _do)
        logger.info(f"Order deleted: {order_no}")
        return deleted

    # ================================================================
    # 收支与转账
    # ================================================================

    def record_income(self, data: Dict[str, Any]) -> Tuple[IncomeRecord, InventoryTransaction]:
        """记录销售收入，并在成品品类追加出库流水。

        库存不足时仍然允许（结余可以为负），只记录警告；
        平台不在业务配置的列表中时同样只记录警告。

        Returns:
            (收入记录, 出库流水)。

        Raises:
            ValidationError: 金额或数量缺失。
        """
        payload = _only_columns(IncomeModel, normalize_income(data, today=self._today()))
        if payload["platform"] and payload["platform"] not in self.config.get_platforms():
            logger.warning(f"Income platform not in configured list: {payload['platform']}")
        sellable = self.config.get_sellable_item_type()

        def _do(session):
            income = self.db.incomes.create(payload, session=session)
            tx = self.db.inventory.append(
                item_type=sellable,
                transaction_type=TransactionType.OUT.value,
                quantity_change=-income.quantity,
                transaction_date=income.date,
                remarks=f"销售出库: {income.platform}",
                session=session,
            )
            return income, tx

        income, tx = self._run("record income", _do)
        logger.info(
            f"Income recorded: {income.amount} x{income.quantity} "
            f"platform={income.platform or '-'}"
        )
        if tx.balance_quantity < 0:
            logger.warning(f"Sellable stock is negative after sale: {tx.balance_quantity}")
        return income, tx

    def record_expense(self, data: Dict[str, Any]) -> ExpenseRecord:
        """记录其他支出（无联动）。"""
        payload = _only_columns(ExpenseModel, normalize_expense(data, today=self._today()))
        expense = self._run(
            "record expense",
            lambda session: self.db.expenses.create(payload, session=session),
        )
        logger.info(f"Expense recorded: {expense.purpose} {expense.amount}")
        return expense

    def record_transfer(self, data: Dict[str, Any]) -> Transfer:
        """记录给工人的转账。

        Raises:
            ValidationError: 工人或金额缺失，或工人不存在。
        """
        payload = _only_columns(TransferModel, normalize_transfer(data, today=self._today()))

        def _do(session):
            self._require_worker(session, payload["worker_id"])
            return self.db.transfers.create(payload, session=session)

        transfer = self._run("record transfer", _do)
        logger.info(f"Transfer recorded: worker={transfer.worker_id} {transfer.amount}")
        return transfer

    # ================================================================
    # 库存
    # ================================================================

    def adjust_inventory(self, item_type: str, direction: str, quantity: Any,
                         remarks: Optional[str] = None,
                         transaction_date: Optional[date] = None) -> InventoryTransaction:
        """手工库存更正。

        Args:
            item_type: 品类。
            direction: increase / decrease。
            quantity: 变动数量（正数）。
            remarks: 备注。
            transaction_date: 流水日期，缺省为今天。

        Returns:
            新追加的更正流水。

        Raises:
            ValidationError: 品类、方向或数量非法。
        """
        item_type = validate_item_type(item_type)
        change = signed_adjustment(direction, quantity)
        tx_date = transaction_date or self._today()

        tx = self._run("adjust inventory", lambda session: self.db.inventory.append(
            item_type=item_type,
            transaction_type=TransactionType.ADJUST.value,
            quantity_change=change,
            transaction_date=tx_date,
            remarks=remarks,
            session=session,
        ))
        logger.info(f"Inventory adjusted: {item_type} {change:+d} -> {tx.balance_quantity}")
        if item_type == ItemType.COMPLETE.value and tx.balance_quantity < 0:
            logger.warning(f"Sellable stock is negative after adjustment: {tx.balance_quantity}")
        return tx
