"""数据库管理器 - 统一门面（Facade）。

DatabaseManager 是 database 模块的统一入口，组合了所有子仓库，
提供两套 API：

1. **子仓库访问**（细粒度）：
   通过 ``db.workers``、``db.orders``、``db.inventory`` 等属性直接访问子仓库，
   适合只涉及单表的读写。

2. **门面方法**（粗粒度）：
   ``load_all()`` 一次性全量加载所有表，得到 LedgerSnapshot；
   ``transaction()`` 提供跨仓库的单一事务，供状态流转等联动写入使用。

设计目标：
- 每次变更后全量重新加载，派生数据总是从数据源重新计算
- 多表联动写入放在同一个事务里，避免状态与库存不一致
"""
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy.orm import Session

from ledger.records import LedgerSnapshot
from .connection import DatabaseConnection
from .entity_repos import WorkerRepository
from .business_repos import (
    OrderRepository, IncomeRepository, ExpenseRepository, TransferRepository
)
from .inventory_repos import InventoryRepository


class DatabaseManager:
    """数据库管理器 - 统一门面。

    Attributes:
        conn: 数据库连接管理器。
        workers: 工人仓库。
        orders: 订单仓库。
        inventory: 库存流水仓库。
        incomes: 销售收入仓库。
        expenses: 其他支出仓库。
        transfers: 转账仓库。

    Example::

        db = DatabaseManager("sqlite:///data/bracelet.db")
        db.create_tables()

        snapshot = db.load_all()
        with db.transaction() as session:
            db.orders.update("ORD20240128A1B", {...}, session=session)
            db.inventory.append("complete", "in", 50, today, session=session)
    """

    def __init__(self, database_url: Optional[str] = None) -> None:
        """初始化数据库管理器。

        Args:
            database_url: 数据库连接URL。如果为None则使用settings配置。
        """
        # 基础设施层
        self.conn = DatabaseConnection(database_url)

        # 实体仓库
        self.workers = WorkerRepository(self.conn)

        # 业务记录仓库
        self.orders = OrderRepository(self.conn)
        self.incomes = IncomeRepository(self.conn)
        self.expenses = ExpenseRepository(self.conn)
        self.transfers = TransferRepository(self.conn)

        # 库存仓库
        self.inventory = InventoryRepository(self.conn)

    # ================================================================
    # 基础设施方法
    # ================================================================

    def create_tables(self) -> None:
        """创建所有数据库表（幂等操作）。"""
        self.conn.create_tables()

    def get_session(self) -> Session:
        """获取数据库会话。"""
        return self.conn.get_session()

    @property
    def database_url(self) -> str:
        """数据库连接URL。"""
        return self.conn.database_url

    @property
    def engine(self):
        """SQLAlchemy 引擎对象。"""
        return self.conn.engine

    def close(self) -> None:
        """关闭数据库连接，释放所有资源。"""
        self.conn.close()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """跨仓库的单一事务。

        代码块正常结束时提交，抛出异常时整体回滚并重新抛出。
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ================================================================
    # 全量加载
    # ================================================================

    def load_all(self) -> LedgerSnapshot:
        """全量加载所有表。

        在同一个会话中读取，保证得到的是一致的记录集。

        Returns:
            LedgerSnapshot，库存流水按插入顺序排列。
        """
        with self.get_session() as session:
            return LedgerSnapshot(
                workers=self.workers.list_all(session=session),
                orders=self.orders.list_all(session=session),
                transfers=self.transfers.list_all(session=session),
                inventory=self.inventory.list_all(session=session),
                incomes=self.incomes.list_all(session=session),
                expenses=self.expenses.list_all(session=session),
            )
