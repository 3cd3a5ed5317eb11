"""业务定时任务

- 每日延期预警：重新加载台账，统计延期订单并写日志
"""
from typing import List

from loguru import logger

from business.scheduler import Scheduler
from config.settings import settings
from ledger.balances import DelayedOrder
from ledger.exceptions import LedgerError
from ledger.service import LedgerService

DELAY_ALERT_JOB_ID = "delay_alert"


async def delay_alert(service: LedgerService) -> List[DelayedOrder]:
    """延期预警任务

    Args:
        service: 台账服务

    Returns:
        当前的延期订单（按延期天数降序）
    """
    try:
        await service.refresh()
    except LedgerError as e:
        logger.error(f"Delay alert skipped, ledger reload failed: {e}")
        return []

    delayed = await service.delayed_orders()
    if not delayed:
        logger.info("Delay alert: no delayed orders")
        return delayed

    worst = delayed[0]
    logger.warning(
        f"Delay alert: {len(delayed)} delayed order(s), worst "
        f"{worst.order.order_no} ({worst.worker_name}) {worst.delay_days} day(s) late"
    )
    for item in delayed:
        logger.info(
            f"  {item.order.order_no} {item.worker_name} "
            f"qty={item.order.quantity} due={item.order.expected_delivery} "
            f"delay={item.delay_days}"
        )
    return delayed


def register_daily_tasks(scheduler: Scheduler, service: LedgerService) -> None:
    """注册所有每日任务"""
    async def _run_delay_alert():
        await delay_alert(service)

    scheduler.add_daily_task_at(
        _run_delay_alert,
        settings.delay_alert_time,
        task_id=DELAY_ALERT_JOB_ID,
        task_name="延期预警",
    )
