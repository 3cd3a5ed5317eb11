"""台账计算层。

包含值对象与规范化、余额引擎、查询层和报表。
状态流转（ledger.transitions）与异步服务（ledger.service）依赖 database，
需要显式导入。
"""
from ledger.exceptions import (
    LedgerError, ValidationError, NotFoundError, TransitionError,
    PersistenceError, ExternalServiceError, BusyError,
)
from ledger.records import (
    OrderStatus, PaymentStatus, TransactionType, ItemType, WorkerStatus, PaymentMethod,
    Worker, Order, InventoryTransaction, IncomeRecord, ExpenseRecord, Transfer,
    LedgerSnapshot,
)

__all__ = [
    "LedgerError",
    "ValidationError",
    "NotFoundError",
    "TransitionError",
    "PersistenceError",
    "ExternalServiceError",
    "BusyError",
    "OrderStatus",
    "PaymentStatus",
    "TransactionType",
    "ItemType",
    "WorkerStatus",
    "PaymentMethod",
    "Worker",
    "Order",
    "InventoryTransaction",
    "IncomeRecord",
    "ExpenseRecord",
    "Transfer",
    "LedgerSnapshot",
]
