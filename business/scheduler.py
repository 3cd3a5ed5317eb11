"""定时任务调度器 - 通用的任务调度框架

具体的业务任务逻辑在 business/tasks.py 中
"""
import asyncio
from typing import Callable, List, Optional, Tuple

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from loguru import logger


def parse_time_of_day(value: str) -> Tuple[int, int]:
    """解析 ``HH:MM`` 格式的时间

    Raises:
        ValueError: 格式或取值非法
    """
    try:
        hour_text, minute_text = value.strip().split(":")
        hour, minute = int(hour_text), int(minute_text)
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid time of day: {value!r}, expected HH:MM")
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid time of day: {value!r}, expected HH:MM")
    return hour, minute


class Scheduler:
    """定时任务调度器

    通用的任务调度框架，不包含具体的业务逻辑
    业务逻辑通过回调函数注入
    """

    def __init__(self, event_loop: Optional[asyncio.AbstractEventLoop] = None):
        """初始化调度器

        Args:
            event_loop: 事件循环，缺省在 start() 时使用当前运行的循环
        """
        if event_loop is not None:
            self.scheduler = AsyncIOScheduler(event_loop=event_loop)
        else:
            self.scheduler = AsyncIOScheduler()

    def add_daily_task(
        self,
        task_func: Callable,
        hour: int = 9,
        minute: int = 0,
        task_id: str = 'daily_task',
        task_name: str = '每日任务'
    ):
        """添加每日定时任务

        Args:
            task_func: 任务函数（async 函数）
            hour: 小时 (0-23)
            minute: 分钟 (0-59)
            task_id: 任务ID
            task_name: 任务名称
        """
        self.scheduler.add_job(
            task_func,
            trigger=CronTrigger(hour=hour, minute=minute),
            id=task_id,
            name=task_name,
            replace_existing=True
        )
        logger.info(f"Added daily task '{task_name}' at {hour:02d}:{minute:02d}")

    def add_daily_task_at(self, task_func: Callable, time_of_day: str,
                          task_id: str = 'daily_task', task_name: str = '每日任务'):
        """按 ``HH:MM`` 添加每日定时任务"""
        hour, minute = parse_time_of_day(time_of_day)
        self.add_daily_task(task_func, hour, minute, task_id, task_name)

    def job_ids(self) -> List[str]:
        return [job.id for job in self.scheduler.get_jobs()]

    def start(self):
        """启动调度器（需要在运行中的事件循环里调用）"""
        self.scheduler.start()
        logger.info("Scheduler started")

    def stop(self):
        """停止调度器"""
        if self.scheduler.running:
            self.scheduler.shutdown()
        logger.info("Scheduler stopped")

    def remove_job(self, job_id: str):
        """移除任务

        Args:
            job_id: 任务ID
        """
        try:
            self.scheduler.remove_job(job_id)
            logger.info(f"Job {job_id} removed")
        except JobLookupError as e:
            logger.warning(f"Failed to remove job {job_id}: {e}")
