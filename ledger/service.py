"""台账服务 - 面向应用层的异步 API。

- 所有数据库操作通过 ``asyncio.to_thread`` 在线程池中执行，不阻塞事件循环；
- 每次变更成功后全量重新加载记录集（``snapshot``），变更失败时保留原快照；
  变更已提交而重新加载失败时返回提交结果，并把快照标记为过期（``stale``）；
- 同一操作（操作名 + 目标）正在提交时再次提交会抛出 BusyError；
- 读取类方法只基于当前快照，通过余额引擎和查询层计算。
"""
import asyncio
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from config.business_config import BusinessConfig, business_config as default_business_config
from config.settings import settings
from database.manager import DatabaseManager
from extraction.service import ExtractionService, ImageInput, apply_order_extraction
from ledger import balances, normalize, queries, reports
from ledger.exceptions import BusyError, PersistenceError
from ledger.records import (
    ExpenseRecord, IncomeRecord, InventoryTransaction, LedgerSnapshot, Order,
    Transfer, Worker,
)
from ledger.transitions import TransitionController


class LedgerService:
    """台账服务。

    Attributes:
        db: 数据库管理器。
        controller: 状态流转控制器。
        snapshot: 最近一次成功加载的完整记录集。
        stale: 变更已提交但随后的重新加载失败时为 True，
            下一次成功的 refresh() 会清除。

    Example::

        service = LedgerService(DatabaseManager())
        await service.refresh()
        order = await service.create_order({...})
        stats = await service.dashboard()
    """

    def __init__(self, db: DatabaseManager,
                 config: Optional[BusinessConfig] = None,
                 today: Optional[Callable[[], date]] = None,
                 page_size: Optional[int] = None) -> None:
        self.db = db
        self.config = config or default_business_config
        self._today = today or date.today
        self.controller = TransitionController(db, self.config, self._today)
        self.page_size = page_size or settings.page_size
        self.order_pager = queries.Paginator(queries.OrderFilter(), page_size=self.page_size)
        self.income_pager = queries.Paginator(queries.IncomeFilter(), page_size=self.page_size)
        self.inventory_pager = queries.Paginator(page_size=self.page_size)
        self.snapshot = LedgerSnapshot()
        self.stale = False
        self._in_flight: Set[str] = set()

    # ================================================================
    # 加载与防重复提交
    # ================================================================

    async def refresh(self) -> LedgerSnapshot:
        """全量重新加载记录集。

        Raises:
            PersistenceError: 加载失败（原快照保持不变）。
        """
        try:
            snapshot = await asyncio.to_thread(self.db.load_all)
        except SQLAlchemyError as e:
            logger.error(f"Failed to load ledger: {e}")
            raise PersistenceError(f"load failed: {e}") from e
        self.snapshot = snapshot
        self.stale = False
        return snapshot

    def is_busy(self, key: str) -> bool:
        return key in self._in_flight

    @asynccontextmanager
    async def _guard(self, key: str):
        if key in self._in_flight:
            raise BusyError(f"Operation already in progress: {key}")
        self._in_flight.add(key)
        try:
            yield
        finally:
            self._in_flight.discard(key)

    async def _mutate(self, key: str, func: Callable[..., Any], *args, **kwargs) -> Any:
        async with self._guard(key):
            result = await asyncio.to_thread(func, *args, **kwargs)
            # 此时写入已提交，重新加载失败只标记快照过期
            try:
                await self.refresh()
            except PersistenceError as e:
                self.stale = True
                logger.warning(f"{key} committed but ledger reload failed, snapshot is stale: {e}")
            return result

    # ================================================================
    # 变更
    # ================================================================

    async def save_worker(self, data: Dict[str, Any]) -> Worker:
        key = f"save_worker:{data.get('id') or 'new'}"
        return await self._mutate(key, self.controller.save_worker, data)

    async def deactivate_worker(self, worker_id: int) -> Worker:
        return await self._mutate(
            f"deactivate_worker:{worker_id}", self.controller.deactivate_worker, worker_id
        )

    async def create_order(self, data: Dict[str, Any]) -> Order:
        return await self._mutate("create_order", self.controller.create_order, data)

    async def update_order(self, data: Dict[str, Any]) -> Order:
        key = f"update_order:{data.get('order_no')}"
        return await self._mutate(key, self.controller.update_order, data)

    async def change_status(self, order_no: str, status: str,
                            confirm: Optional[Callable[[Order, str], bool]] = None
                            ) -> Optional[Order]:
        return await self._mutate(
            f"order_status:{order_no}", self.controller.change_status,
            order_no, status, confirm,
        )

    async def mark_received(self, order_no: str, status: str = "received",
                            confirm: Optional[Callable[[Order, str], bool]] = None
                            ) -> Optional[Order]:
        return await self._mutate(
            f"order_status:{order_no}", self.controller.mark_received,
            order_no, status, confirm,
        )

    async def delete_order(self, order_no: str) -> bool:
        return await self._mutate(
            f"delete_order:{order_no}", self.controller.delete_order, order_no
        )

    async def record_income(self, data: Dict[str, Any]) -> Tuple[IncomeRecord, InventoryTransaction]:
        return await self._mutate("record_income", self.controller.record_income, data)

    async def record_expense(self, data: Dict[str, Any]) -> ExpenseRecord:
        return await self._mutate("record_expense", self.controller.record_expense, data)

    async def record_transfer(self, data: Dict[str, Any]) -> Transfer:
        return await self._mutate("record_transfer", self.controller.record_transfer, data)

    async def adjust_inventory(self, item_type: str, direction: str, quantity: Any,
                               remarks: Optional[str] = None) -> InventoryTransaction:
        return await self._mutate(
            f"adjust_inventory:{item_type}", self.controller.adjust_inventory,
            item_type, direction, quantity, remarks,
        )

    # ================================================================
    # 订单草稿
    # ================================================================

    def new_order_draft(self) -> Dict[str, Any]:
        """按业务默认值生成新订单草稿。"""
        return normalize.new_order_draft(self.config.get_order_defaults(), self._today())

    async def draft_order_from_chat(self, extractor: ExtractionService, text: str = "",
                                    images: Sequence[ImageInput] = ()) -> Dict[str, Any]:
        """识别聊天内容并合并进新订单草稿。

        工人只在服务中的工人里匹配；识别失败时返回默认草稿。
        """
        draft = self.new_order_draft()
        extraction = await extractor.extract_order(text, images)
        workers = queries.search_workers(self.snapshot.workers, active_only=True)
        return apply_order_extraction(draft, extraction, workers)

    # ================================================================
    # 读取（基于快照）
    # ================================================================

    async def dashboard(self) -> balances.DashboardStats:
        return balances.dashboard_stats(self.snapshot, self._today())

    async def delayed_orders(self) -> List[balances.DelayedOrder]:
        return balances.delayed_orders(self.snapshot, self._today())

    async def category_balances(self) -> Dict[str, int]:
        types = [t["code"] for t in self.config.get_item_types()]
        return balances.category_balances(self.snapshot.inventory, types)

    async def bank_card_flows(self) -> List[balances.CardCashFlow]:
        return balances.bank_card_cash_flow(self.snapshot, self.config.get_bank_cards())

    @staticmethod
    def _turn(pager: queries.Paginator, criteria: Any, page: Optional[int]) -> None:
        if criteria is not None:
            pager.set_criteria(criteria)
        if page is not None:
            pager.go_to(page)

    async def list_orders(self, criteria: Optional[queries.OrderFilter] = None,
                          page: Optional[int] = None) -> queries.Page[Order]:
        """过滤、默认排序并分页的订单列表。

        过滤条件和页码保存在 ``order_pager`` 中：criteria 为 None 时沿用
        上次的条件，page 为 None 时停留在当前页；条件变化时回到第 1 页。
        清除过滤请传入 ``OrderFilter()``。
        """
        self._turn(self.order_pager, criteria, page)
        ordered = queries.query_orders(
            self.snapshot.orders, self.order_pager.criteria, self._today(),
            settings.upcoming_window_days,
        )
        return self.order_pager.apply(ordered)

    async def list_incomes(self, criteria: Optional[queries.IncomeFilter] = None,
                           page: Optional[int] = None) -> queries.Page[IncomeRecord]:
        """过滤并分页的收入列表，条件与页码的保持方式同 list_orders。"""
        self._turn(self.income_pager, criteria, page)
        matched = queries.filter_incomes(self.snapshot.incomes, self.income_pager.criteria)
        return self.income_pager.apply(matched)

    async def list_inventory(self, item_type: Optional[str] = None,
                             page: Optional[int] = None) -> queries.Page[InventoryTransaction]:
        """库存流水（最新在前），item_type 为 None 时列出全部品类。"""
        self.inventory_pager.set_criteria(item_type)
        if page is not None:
            self.inventory_pager.go_to(page)
        rows = [tx for tx in self.snapshot.inventory
                if item_type is None or tx.item_type == item_type]
        rows.reverse()
        return self.inventory_pager.apply(rows)

    async def list_workers(self, keyword: str = "",
                           active_only: bool = False) -> List[Worker]:
        return queries.search_workers(self.snapshot.workers, keyword, active_only)

    async def worker_performance(self) -> List[reports.WorkerPerformance]:
        return reports.worker_performance(self.snapshot)

    async def platform_sales(self) -> Dict[str, float]:
        return reports.platform_sales(self.snapshot)

    async def financial_summary(self) -> reports.FinancialSummary:
        return reports.financial_summary(self.snapshot)
