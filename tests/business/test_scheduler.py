"""测试定时任务调度器与延期预警任务"""
import pytest

from business.scheduler import Scheduler, parse_time_of_day
from business.tasks import DELAY_ALERT_JOB_ID, delay_alert, register_daily_tasks
from tests.conftest import order_payload


class TestParseTimeOfDay:
    """时间解析"""

    def test_valid(self):
        assert parse_time_of_day("09:00") == (9, 0)
        assert parse_time_of_day(" 21:30 ") == (21, 30)

    @pytest.mark.parametrize("value", ["9", "25:00", "09:60", "ab:cd", ""])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_time_of_day(value)


class TestScheduler:
    """调度器"""

    def test_add_and_remove_job(self):
        scheduler = Scheduler()

        async def job():
            pass

        scheduler.add_daily_task(job, hour=9, minute=0, task_id="t1", task_name="测试")
        assert scheduler.job_ids() == ["t1"]
        scheduler.remove_job("t1")
        assert scheduler.job_ids() == []

    def test_remove_missing_job_is_logged(self):
        Scheduler().remove_job("missing")

    def test_register_daily_tasks(self, service):
        scheduler = Scheduler()
        register_daily_tasks(scheduler, service)
        assert DELAY_ALERT_JOB_ID in scheduler.job_ids()

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        scheduler = Scheduler()
        scheduler.start()
        assert scheduler.scheduler.running
        scheduler.stop()


class TestDelayAlert:
    """延期预警任务"""

    @pytest.mark.asyncio
    async def test_no_delays(self, service):
        assert await delay_alert(service) == []

    @pytest.mark.asyncio
    async def test_reports_delayed_orders(self, service, controller):
        worker = controller.save_worker({"name": "王阿姨"})
        controller.create_order(order_payload(worker.id, expected_delivery="2024-01-20"))
        controller.create_order(order_payload(worker.id, expected_delivery="2024-01-26"))
        controller.create_order(order_payload(worker.id, expected_delivery="2024-02-20"))

        delayed = await delay_alert(service)
        assert [d.delay_days for d in delayed] == [8, 2]
