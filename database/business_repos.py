"""业务记录仓库 - 核心业务数据的数据访问层。

管理日常经营产生的交易数据：代工订单、销售收入、其他支出、工人转账。

订单以订单号为自然主键，支持插入后返回生成的行、按订单号更新和删除。
收入/支出/转账只追加。跨表联动（收货入库、销售出库）由
ledger.transitions 在同一个会话里编排，这里只负责单表读写。
"""
from typing import Optional, List, Dict, Any
from sqlalchemy.orm import Session

from ledger.records import Order, IncomeRecord, ExpenseRecord, Transfer
from .base_crud import BaseCRUD
from .connection import DatabaseConnection
from .mappers import (
    order_to_record, income_to_record, expense_to_record, transfer_to_record,
)
from .models import OrderModel, IncomeModel, ExpenseModel, TransferModel


class OrderRepository(BaseCRUD):
    """代工订单 仓库。"""

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def create(self, order_data: Dict[str, Any],
               session: Optional[Session] = None) -> Order:
        """插入订单并返回生成的行。

        Args:
            order_data: 已规范化的订单数据字典（必须包含 order_no）。
            session: 外部会话（可选）。

        Returns:
            新创建的 Order。
        """
        obj = super().create(OrderModel, session=session, **order_data)
        return order_to_record(obj)

    def get_model(self, order_no: str, session: Session,
                  for_update: bool = False) -> Optional[OrderModel]:
        """在给定会话中获取订单 ORM 对象（用于同事务修改）。

        Args:
            order_no: 订单号。
            session: 调用方会话。
            for_update: 是否加行锁（SQLite 下忽略）。

        Returns:
            OrderModel，不存在返回 None。
        """
        query = session.query(OrderModel).filter(OrderModel.order_no == order_no)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get(self, order_no: str,
            session: Optional[Session] = None) -> Optional[Order]:
        """按订单号获取订单。"""
        obj = self.get_by_id(OrderModel, order_no, session=session)
        return order_to_record(obj) if obj else None

    def exists(self, order_no: str,
               session: Optional[Session] = None) -> bool:
        """订单号是否已存在。"""
        return self.get_by_id(OrderModel, order_no, session=session) is not None

    def update(self, order_no: str, fields: Dict[str, Any],
               session: Optional[Session] = None) -> Optional[Order]:
        """按订单号更新订单。

        Returns:
            更新后的 Order，不存在返回 None。
        """
        obj = self.update_by_id(OrderModel, order_no, session=session, **fields)
        return order_to_record(obj) if obj else None

    def delete(self, order_no: str,
               session: Optional[Session] = None) -> bool:
        """按订单号删除订单（不可恢复）。"""
        return self.delete_by_id(OrderModel, order_no, session=session)

    def list_all(self, session: Optional[Session] = None) -> List[Order]:
        """获取全部订单（按下单日期倒序）。"""
        rows = self.get_all(
            OrderModel,
            order_by=(OrderModel.order_date.desc()),
            session=session
        )
        return [order_to_record(o) for o in rows]


class IncomeRepository(BaseCRUD):
    """销售收入 仓库（只追加）。"""

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def create(self, income_data: Dict[str, Any],
               session: Optional[Session] = None) -> IncomeRecord:
        """保存销售收入。

        Args:
            income_data: 已规范化的收入数据字典。
            session: 外部会话（可选）。

        Returns:
            新创建的 IncomeRecord。
        """
        obj = super().create(IncomeModel, session=session, **income_data)
        return income_to_record(obj)

    def list_all(self, session: Optional[Session] = None) -> List[IncomeRecord]:
        """获取全部收入（按日期倒序）。"""
        rows = self.get_all(
            IncomeModel,
            order_by=(IncomeModel.date.desc()),
            session=session
        )
        return [income_to_record(r) for r in rows]


class ExpenseRepository(BaseCRUD):
    """其他支出 仓库（只追加，无联动）。"""

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def create(self, expense_data: Dict[str, Any],
               session: Optional[Session] = None) -> ExpenseRecord:
        """保存其他支出。"""
        obj = super().create(ExpenseModel, session=session, **expense_data)
        return expense_to_record(obj)

    def list_all(self, session: Optional[Session] = None) -> List[ExpenseRecord]:
        """获取全部支出（按日期倒序）。"""
        rows = self.get_all(
            ExpenseModel,
            order_by=(ExpenseModel.date.desc()),
            session=session
        )
        return [expense_to_record(e) for e in rows]


class TransferRepository(BaseCRUD):
    """工人转账 仓库（只追加）。"""

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def create(self, transfer_data: Dict[str, Any],
               session: Optional[Session] = None) -> Transfer:
        """保存转账记录。"""
        obj = super().create(TransferModel, session=session, **transfer_data)
        return transfer_to_record(obj)

    def list_all(self, session: Optional[Session] = None) -> List[Transfer]:
        """获取全部转账（按转账日期倒序）。"""
        rows = self.get_all(
            TransferModel,
            order_by=(TransferModel.transfer_date.desc()),
            session=session
        )
        return [transfer_to_record(t) for t in rows]
