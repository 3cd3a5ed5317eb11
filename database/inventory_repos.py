"""库存仓库 - 库存流水与品类结余索引的数据访问层。

库存流水只追加。每个品类的结余独立计算：
本条流水的 balance_quantity = 同品类上一条流水的 balance_quantity + quantity_change。

为避免每次追加都反向扫描历史，InventoryBalanceModel 为每个品类保存
最新结余和最新序号，并与流水插入在同一会话中更新，二者一起提交或一起回滚。
"""
from datetime import date
from typing import Optional, List, Dict
from sqlalchemy.orm import Session
from loguru import logger

from ledger.records import InventoryTransaction
from .base_crud import BaseCRUD
from .connection import DatabaseConnection
from .mappers import inventory_to_record
from .models import InventoryTransactionModel, InventoryBalanceModel


class InventoryRepository(BaseCRUD):
    """库存流水 仓库。"""

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def _balance_row(self, sess: Session, item_type: str) -> InventoryBalanceModel:
        """获取（必要时从流水重建）品类结余索引行，并加行锁。"""
        row = sess.query(InventoryBalanceModel).filter(
            InventoryBalanceModel.item_type == item_type
        ).with_for_update().first()
        if row is None:
            latest = sess.query(InventoryTransactionModel).filter(
                InventoryTransactionModel.item_type == item_type
            ).order_by(InventoryTransactionModel.sequence.desc()).first()
            row = InventoryBalanceModel(
                item_type=item_type,
                balance_quantity=latest.balance_quantity if latest else 0,
                last_sequence=latest.sequence if latest else 0,
            )
            sess.add(row)
            sess.flush()
        return row

    def append(self, item_type: str, transaction_type: str,
               quantity_change: int, transaction_date: date,
               related_order: Optional[str] = None,
               remarks: Optional[str] = None,
               session: Optional[Session] = None) -> InventoryTransaction:
        """追加一条库存流水，并同步更新品类结余索引。

        Args:
            item_type: 品类。
            transaction_type: in / out / adjust。
            quantity_change: 带符号的变动数量。
            transaction_date: 流水日期。
            related_order: 关联订单号（可选）。
            remarks: 备注（可选）。
            session: 外部会话（可选）。传入时只 flush，由调用方提交。

        Returns:
            新追加的 InventoryTransaction（balance_quantity 为变动后结余）。
        """
        def _do(sess):
            index = self._balance_row(sess, item_type)
            new_balance = index.balance_quantity + quantity_change
            sequence = index.last_sequence + 1

            record = InventoryTransactionModel(
                transaction_date=transaction_date,
                transaction_type=transaction_type,
                quantity_change=quantity_change,
                balance_quantity=new_balance,
                item_type=item_type,
                sequence=sequence,
                related_order=related_order,
                remarks=remarks,
            )
            sess.add(record)

            index.balance_quantity = new_balance
            index.last_sequence = sequence
            sess.flush()
            sess.refresh(record)
            logger.debug(
                f"Inventory {transaction_type} {item_type} "
                f"{quantity_change:+d} -> {new_balance} (#{sequence})"
            )
            return inventory_to_record(record)

        if session:
            return _do(session)

        with self._get_session() as sess:
            result = _do(sess)
            sess.commit()
            return result

    def latest_balance(self, item_type: str,
                       session: Optional[Session] = None) -> int:
        """获取品类最新结余，没有任何流水时为 0。"""
        def _query(sess):
            row = sess.get(InventoryBalanceModel, item_type)
            if row is not None:
                return row.balance_quantity
            latest = sess.query(InventoryTransactionModel).filter(
                InventoryTransactionModel.item_type == item_type
            ).order_by(InventoryTransactionModel.sequence.desc()).first()
            return latest.balance_quantity if latest else 0

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def balances(self, session: Optional[Session] = None) -> Dict[str, int]:
        """获取所有已有流水品类的最新结余。"""
        rows = self.get_all(InventoryBalanceModel, session=session)
        return {r.item_type: r.balance_quantity for r in rows}

    def list_all(self, item_type: Optional[str] = None,
                 session: Optional[Session] = None) -> List[InventoryTransaction]:
        """获取库存流水（按插入顺序）。

        Args:
            item_type: 品类过滤（可选）。
        """
        filters = {"item_type": item_type} if item_type else None
        rows = self.get_all(
            InventoryTransactionModel, filters=filters,
            order_by=InventoryTransactionModel.id.asc(), session=session
        )
        return [inventory_to_record(r) for r in rows]

    def find_by_related_order(self, order_no: str,
                              session: Optional[Session] = None
                              ) -> List[InventoryTransaction]:
        """获取关联某订单的库存流水。"""
        rows = self.get_all(
            InventoryTransactionModel, filters={"related_order": order_no},
            order_by=InventoryTransactionModel.id.asc(), session=session
        )
        return [inventory_to_record(r) for r in rows]

    def rebuild_index(self, session: Optional[Session] = None) -> Dict[str, int]:
        """按流水重建品类结余索引（维护用）。

        Returns:
            重建后的 {品类: 结余}。
        """
        def _do(sess):
            sess.query(InventoryBalanceModel).delete()
            rebuilt: Dict[str, InventoryBalanceModel] = {}
            rows = sess.query(InventoryTransactionModel).order_by(
                InventoryTransactionModel.item_type.asc(),
                InventoryTransactionModel.sequence.asc()
            ).all()
            for r in rows:
                index = rebuilt.get(r.item_type)
                if index is None:
                    index = InventoryBalanceModel(item_type=r.item_type)
                    rebuilt[r.item_type] = index
                index.balance_quantity = r.balance_quantity
                index.last_sequence = r.sequence
            sess.add_all(rebuilt.values())
            sess.flush()
            return {k: v.balance_quantity for k, v in rebuilt.items()}

        if session:
            return _do(session)

        with self._get_session() as sess:
            result = _do(sess)
            sess.commit()
            logger.info(f"Inventory balance index rebuilt: {result}")
            return result
