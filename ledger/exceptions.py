"""台账异常定义。

所有业务异常都继承自 LedgerError，调用方可以统一捕获后
返回可重新提交的交互状态，任何异常都不会导致进程退出。
"""
from typing import Optional


class LedgerError(Exception):
    """台账业务异常基类。"""


class ValidationError(LedgerError):
    """必填字段缺失或字段取值非法。

    在任何写入之前抛出，保证不会产生部分写入。

    Attributes:
        field: 出错的字段名（可选）。
    """

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class NotFoundError(LedgerError):
    """订单号或工人ID不存在。"""


class TransitionError(LedgerError):
    """非法的订单状态流转，或删除已入库的订单。"""


class PersistenceError(LedgerError):
    """数据库读写失败，事务已回滚。"""


class ExternalServiceError(LedgerError):
    """外部识别服务调用失败。"""


class BusyError(LedgerError):
    """同一操作正在提交中，拒绝重复提交。"""
