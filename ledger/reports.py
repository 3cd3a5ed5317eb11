"""统计报表：工人产能、销售渠道构成、财务概要。"""
from dataclasses import dataclass
from typing import Dict, List

from ledger.records import LedgerSnapshot, RECEIVED_STATUSES

UNKNOWN_PLATFORM = "未知平台"


@dataclass
class WorkerPerformance:
    """单个工人的工作量统计"""
    worker_id: int
    name: str
    total_quantity: int
    completed_quantity: int
    order_count: int
    completion_rate: int
    payable: float


def worker_performance(snapshot: LedgerSnapshot) -> List[WorkerPerformance]:
    """统计每个工人的下单量、完成量与应付工费。

    完成量只统计已收货/已完成的订单；完成率为四舍五入后的百分比；
    应付工费 = 下单总量 × 工人当前计件单价。结果按下单总量降序排列。
    """
    rows = []
    for worker in snapshot.workers:
        orders = [o for o in snapshot.orders if o.worker_id == worker.id]
        total = sum(o.quantity for o in orders)
        completed = sum(o.quantity for o in orders if o.order_status in RECEIVED_STATUSES)
        rate = int(completed / total * 100 + 0.5) if total > 0 else 0
        rows.append(WorkerPerformance(
            worker_id=worker.id,
            name=worker.name,
            total_quantity=total,
            completed_quantity=completed,
            order_count=len(orders),
            completion_rate=rate,
            payable=total * worker.unit_price,
        ))
    rows.sort(key=lambda r: r.total_quantity, reverse=True)
    return rows


def platform_sales(snapshot: LedgerSnapshot) -> Dict[str, float]:
    """按销售平台汇总收入金额，未填写平台的记入“未知平台”。"""
    stats: Dict[str, float] = {}
    for income in snapshot.incomes:
        platform = income.platform or UNKNOWN_PLATFORM
        stats[platform] = stats.get(platform, 0.0) + income.amount
    return stats


@dataclass
class FinancialSummary:
    """财务概要

    Attributes:
        total_payable: 订单应付总额。
        total_paid: 订单已付总额。
        debt: 欠付工费。
        total_income: 销售总收入。
        paid_ratio: 已付占应付的百分比。
        gross_margin: 毛利率估算（百分比，四舍五入）。
    """
    total_payable: float
    total_paid: float
    debt: float
    total_income: float
    paid_ratio: float
    gross_margin: int


def financial_summary(snapshot: LedgerSnapshot) -> FinancialSummary:
    payable = sum(o.total_amount for o in snapshot.orders)
    paid = sum(o.paid_amount for o in snapshot.orders)
    income = sum(i.amount for i in snapshot.incomes)
    margin = (income - payable) / (income or 1) * 100
    return FinancialSummary(
        total_payable=payable,
        total_paid=paid,
        debt=payable - paid,
        total_income=income,
        paid_ratio=paid / (payable or 1) * 100,
        gross_margin=round(margin),
    )
