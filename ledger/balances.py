"""余额引擎 - 从完整记录集纯函数地计算派生数据。

不持有任何缓存状态，每次调用都从传入的记录重新计算：
- 各品类库存结余（按品类独立，取该品类最新一条流水）
- 可售库存、在途数量、未付工费
- 营收、已付支出、其他支出、净利润
- 各银行卡收支
- 延期订单

唯一依赖外部的是“今天”，用于延期天数计算，可通过参数注入。
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence

from ledger.records import (
    ExpenseRecord, IncomeRecord, InventoryTransaction, ItemType, LedgerSnapshot,
    Order, TERMINAL_STATUSES, IN_TRANSIT_STATUSES, Transfer,
)

SELLABLE_ITEM_TYPE = ItemType.COMPLETE.value


def _recency_key(tx: InventoryTransaction):
    return (tx.sequence, tx.id)


def category_balance(inventory: Iterable[InventoryTransaction], item_type: str) -> int:
    """计算某品类的当前结余。

    在该品类的流水中按插入先后找出最新一条，返回其 balance_quantity；
    不依赖列表顺序，也不会读到其他品类的最后一条。

    Args:
        inventory: 库存流水。
        item_type: 品类。

    Returns:
        当前结余，没有流水时为 0。
    """
    latest: Optional[InventoryTransaction] = None
    for tx in inventory:
        if tx.item_type != item_type:
            continue
        if latest is None or _recency_key(tx) > _recency_key(latest):
            latest = tx
    return latest.balance_quantity if latest else 0


def category_balances(inventory: Sequence[InventoryTransaction],
                      item_types: Optional[Iterable[str]] = None) -> Dict[str, int]:
    """计算所有品类的当前结余。

    Args:
        inventory: 库存流水。
        item_types: 需要输出的品类，缺省为全部固定品类。
    """
    types = list(item_types) if item_types is not None else [t.value for t in ItemType]
    return {t: category_balance(inventory, t) for t in types}


def sellable_stock(inventory: Iterable[InventoryTransaction]) -> int:
    """可售库存，只统计成品品类。"""
    return category_balance(inventory, SELLABLE_ITEM_TYPE)


def in_transit(orders: Iterable[Order]) -> int:
    """在途数量：已下单但尚未收货的订单数量之和。"""
    return sum(o.quantity for o in orders if o.order_status in IN_TRANSIT_STATUSES)


def unpaid_total(orders: Iterable[Order]) -> float:
    """未付工费：Σ(总额 − 已付)。"""
    return sum(o.total_amount - o.paid_amount for o in orders)


def total_revenue(incomes: Iterable[IncomeRecord]) -> float:
    return sum(i.amount for i in incomes)


def total_paid_expenditure(orders: Iterable[Order],
                           transfers: Iterable[Transfer]) -> float:
    """已付支出：订单已付金额 + 工人转账。"""
    return sum(o.paid_amount for o in orders) + sum(t.amount for t in transfers)


def total_other_expenses(expenses: Iterable[ExpenseRecord]) -> float:
    return sum(e.amount for e in expenses)


def net_profit(snapshot: LedgerSnapshot) -> float:
    """净利润 = 营收 − 已付支出 − 其他支出。"""
    return (
        total_revenue(snapshot.incomes)
        - total_paid_expenditure(snapshot.orders, snapshot.transfers)
        - total_other_expenses(snapshot.expenses)
    )


@dataclass
class CardCashFlow:
    """单张银行卡的收支"""
    card: str
    income: float = 0.0
    expenditure: float = 0.0

    @property
    def balance(self) -> float:
        return self.income - self.expenditure


def bank_card_cash_flow(snapshot: LedgerSnapshot,
                        cards: Iterable[str]) -> List[CardCashFlow]:
    """按配置的银行卡统计收支。

    收入为该卡的销售收入；支出为该卡付出的订单已付金额加上该卡的其他支出。
    未配置的银行卡不会出现在结果中。

    Args:
        snapshot: 完整记录集。
        cards: 配置的银行卡列表。

    Returns:
        与 cards 顺序一致的 CardCashFlow 列表。
    """
    flows = []
    for card in cards:
        income = sum(i.amount for i in snapshot.incomes if i.bank_card == card)
        expenditure = (
            sum(o.paid_amount for o in snapshot.orders if o.bank_card == card)
            + sum(e.amount for e in snapshot.expenses if e.bank_card == card)
        )
        flows.append(CardCashFlow(card=card, income=income, expenditure=expenditure))
    return flows


@dataclass
class DelayedOrder:
    """延期订单"""
    order: Order
    worker_name: str
    delay_days: int


def delayed_orders(snapshot: LedgerSnapshot,
                   today: Optional[date] = None) -> List[DelayedOrder]:
    """找出延期订单。

    未进入终态、设置了预计交期且交期早于今天的订单视为延期，
    延期天数为今天与交期相差的整天数。结果按延期天数降序排列。

    Args:
        snapshot: 完整记录集。
        today: 今天（缺省取系统日期）。
    """
    today = today or date.today()
    result = []
    for order in snapshot.orders:
        if order.order_status in TERMINAL_STATUSES:
            continue
        if order.expected_delivery is None or order.expected_delivery >= today:
            continue
        result.append(DelayedOrder(
            order=order,
            worker_name=snapshot.worker_name(order.worker_id),
            delay_days=(today - order.expected_delivery).days,
        ))
    result.sort(key=lambda d: d.delay_days, reverse=True)
    return result


@dataclass
class DashboardStats:
    """看板统计"""
    sellable_stock: int = 0
    in_transit: int = 0
    unpaid_total: float = 0.0
    total_revenue: float = 0.0
    total_paid_expenditure: float = 0.0
    total_other_expenses: float = 0.0
    net_profit: float = 0.0
    worker_count: int = 0
    category_balances: Dict[str, int] = field(default_factory=dict)
    delayed_orders: List[DelayedOrder] = field(default_factory=list)
    delayed_count: int = 0


def dashboard_stats(snapshot: LedgerSnapshot, today: Optional[date] = None,
                    top_delayed: int = 5) -> DashboardStats:
    """计算看板统计。

    Args:
        snapshot: 完整记录集。
        today: 今天（缺省取系统日期）。
        top_delayed: 看板展示的延期订单条数。
    """
    delayed = delayed_orders(snapshot, today)
    revenue = total_revenue(snapshot.incomes)
    paid = total_paid_expenditure(snapshot.orders, snapshot.transfers)
    other = total_other_expenses(snapshot.expenses)
    return DashboardStats(
        sellable_stock=sellable_stock(snapshot.inventory),
        in_transit=in_transit(snapshot.orders),
        unpaid_total=unpaid_total(snapshot.orders),
        total_revenue=revenue,
        total_paid_expenditure=paid,
        total_other_expenses=other,
        net_profit=revenue - paid - other,
        worker_count=len(snapshot.workers),
        category_balances=category_balances(snapshot.inventory),
        delayed_orders=delayed[:top_delayed],
        delayed_count=len(delayed),
    )


def verify_running_balances(inventory: Iterable[InventoryTransaction]) -> List[InventoryTransaction]:
    """校验各品类结余是否为变动数量的前缀和。

    Returns:
        结余与重放结果不一致的流水列表，全部一致时为空列表。
    """
    by_type: Dict[str, List[InventoryTransaction]] = {}
    for tx in inventory:
        by_type.setdefault(tx.item_type, []).append(tx)

    mismatched = []
    for rows in by_type.values():
        running = 0
        for tx in sorted(rows, key=_recency_key):
            running += tx.quantity_change
            if tx.balance_quantity != running:
                mismatched.append(tx)
    return mismatched
