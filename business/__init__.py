"""业务任务模块 - 定时调度与每日任务"""
from business.scheduler import Scheduler, parse_time_of_day
from business.tasks import delay_alert, register_daily_tasks

__all__ = ["Scheduler", "parse_time_of_day", "delay_alert", "register_daily_tasks"]
