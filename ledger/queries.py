"""查询层 - 订单/收入/工人的过滤、排序与分页。

所有过滤条件都是可选的，按 AND 组合；只作用于已经加载的记录集，
不访问数据库。
"""
import math
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Any, Generic, List, Optional, Sequence, TypeVar

from ledger.records import IncomeRecord, Order, RECEIVED_STATUSES, Worker

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 50
PAGE_WINDOW = 5


# ================================================================
# 过滤
# ================================================================

@dataclass(frozen=True)
class OrderFilter:
    """订单过滤条件（None 表示不过滤）

    Attributes:
        worker_id: 工人。
        item_type: 品类。
        status: 订单状态。
        start_date: 下单日期下限（含）。
        end_date: 下单日期上限（含）。
    """
    worker_id: Optional[int] = None
    item_type: Optional[str] = None
    status: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def matches(self, order: Order) -> bool:
        if self.worker_id is not None and order.worker_id != self.worker_id:
            return False
        if self.item_type and order.item_type != self.item_type:
            return False
        if self.status and order.order_status != self.status:
            return False
        if self.start_date and order.order_date < self.start_date:
            return False
        if self.end_date and order.order_date > self.end_date:
            return False
        return True


@dataclass(frozen=True)
class IncomeFilter:
    """收入过滤条件（None 表示不过滤）"""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None
    platform: Optional[str] = None

    def matches(self, income: IncomeRecord) -> bool:
        if self.start_date and income.date < self.start_date:
            return False
        if self.end_date and income.date > self.end_date:
            return False
        if self.min_amount is not None and income.amount < self.min_amount:
            return False
        if self.max_amount is not None and income.amount > self.max_amount:
            return False
        if self.platform and income.platform != self.platform:
            return False
        return True


def filter_orders(orders: Sequence[Order],
                  criteria: Optional[OrderFilter] = None) -> List[Order]:
    criteria = criteria or OrderFilter()
    return [o for o in orders if criteria.matches(o)]


def filter_incomes(incomes: Sequence[IncomeRecord],
                   criteria: Optional[IncomeFilter] = None) -> List[IncomeRecord]:
    """按日期区间、金额区间、平台过滤收入，结果按日期倒序。"""
    criteria = criteria or IncomeFilter()
    matched = [i for i in incomes if criteria.matches(i)]
    matched.sort(key=lambda i: (i.date, i.id), reverse=True)
    return matched


def search_workers(workers: Sequence[Worker], keyword: str = "",
                   active_only: bool = False) -> List[Worker]:
    """按姓名或微信昵称搜索工人（区分大小写的子串匹配）。

    Args:
        workers: 工人列表。
        keyword: 关键词，为空时不过滤。
        active_only: 是否只返回服务中的工人。
    """
    result = []
    for worker in workers:
        if active_only and not worker.is_active:
            continue
        if keyword and keyword not in (worker.name or "") \
                and keyword not in (worker.wechat_nickname or ""):
            continue
        result.append(worker)
    return result


# ================================================================
# 排序
# ================================================================

def is_upcoming(order: Order, today: date, window_days: int = 7) -> bool:
    """预计交期在未来 window_days 天以内（已过期的也算）。"""
    if order.expected_delivery is None:
        return False
    return order.expected_delivery <= today + timedelta(days=window_days)


def sort_orders(orders: Sequence[Order], today: Optional[date] = None,
                window_days: int = 7) -> List[Order]:
    """订单默认排序。

    1. 未收货的订单排在已收货（received / completed）之前；
    2. 未收货中，临近交期的排在前面，其余按预计交期倒序（未设置交期的最后）；
    3. 已收货的按收货日期倒序。

    Args:
        orders: 订单列表。
        today: 今天（缺省取系统日期）。
        window_days: 临近交期窗口天数。
    """
    today = today or date.today()
    open_orders = [o for o in orders if o.order_status not in RECEIVED_STATUSES]
    received = [o for o in orders if o.order_status in RECEIVED_STATUSES]

    # 先按次要键排序，再按主键稳定排序
    open_orders.sort(key=lambda o: o.expected_delivery or date.min, reverse=True)
    open_orders.sort(key=lambda o: 0 if is_upcoming(o, today, window_days) else 1)
    received.sort(key=lambda o: o.receive_date or date.min, reverse=True)
    return open_orders + received


def query_orders(orders: Sequence[Order], criteria: Optional[OrderFilter] = None,
                 today: Optional[date] = None, window_days: int = 7) -> List[Order]:
    """过滤后按默认规则排序。"""
    return sort_orders(filter_orders(orders, criteria), today, window_days)


# ================================================================
# 分页
# ================================================================

@dataclass
class Page(Generic[T]):
    """一页数据

    Attributes:
        items: 当前页的记录。
        page: 当前页码（从 1 开始）。
        page_size: 每页条数。
        total_items: 记录总数。
    """
    items: List[T]
    page: int
    page_size: int
    total_items: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_items / self.page_size) if self.page_size else 0

    @property
    def start_item(self) -> int:
        if self.total_items == 0:
            return 0
        return (self.page - 1) * self.page_size + 1

    @property
    def end_item(self) -> int:
        return min(self.page * self.page_size, self.total_items)

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    def page_window(self, size: int = PAGE_WINDOW) -> List[int]:
        """以当前页为中心的页码按钮窗口。"""
        return page_window(self.page, self.total_pages, size)


def page_window(current: int, total_pages: int, size: int = PAGE_WINDOW) -> List[int]:
    """计算页码窗口：总页数不超过 size 时全部展示，否则尽量让当前页居中。"""
    if total_pages <= size:
        return list(range(1, total_pages + 1))
    half = size // 2
    if current <= half + 1:
        start = 1
    elif current >= total_pages - half:
        start = total_pages - size + 1
    else:
        start = current - half
    return list(range(start, start + size))


def paginate(items: Sequence[T], page: int = 1,
             page_size: int = DEFAULT_PAGE_SIZE) -> Page[T]:
    """切出指定页（页码从 1 开始，越界时夹到有效范围）。"""
    if page_size <= 0:
        raise ValueError("page_size must be > 0")
    total = len(items)
    last_page = max(1, math.ceil(total / page_size))
    page = min(max(1, page), last_page)
    start = (page - 1) * page_size
    return Page(
        items=list(items[start:start + page_size]),
        page=page,
        page_size=page_size,
        total_items=total,
    )


@dataclass
class Paginator:
    """带过滤条件的分页状态。

    过滤条件发生任何变化时，页码重置为 1。

    Example::

        pager = Paginator(criteria=OrderFilter())
        pager.go_to(3)
        pager.update_criteria(status="producing")   # 回到第 1 页
    """
    criteria: Any = None
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def update_criteria(self, **changes: Any) -> None:
        """修改部分过滤条件（criteria 需为 dataclass）。"""
        new_criteria = replace(self.criteria, **changes)
        self.set_criteria(new_criteria)

    def set_criteria(self, criteria: Any) -> None:
        if criteria != self.criteria:
            self.criteria = criteria
            self.page = 1

    def go_to(self, page: int) -> None:
        self.page = max(1, page)

    def apply(self, items: Sequence[T]) -> Page[T]:
        """对已过滤、已排序的记录取当前页，并同步夹紧后的页码。"""
        result = paginate(items, self.page, self.page_size)
        self.page = result.page
        return result
