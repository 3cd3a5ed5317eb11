#!/usr/bin/env python3
"""手绳代工台账 - 应用入口

启动后：
1. 连接数据库并建表
2. 加载台账，打印看板概要（库存、在途、待付工费、利润、延期预警）
3. 可选：常驻运行，每天定时执行延期预警

使用方式：
    python app.py

    # 指定数据库
    python app.py --db sqlite:///data/bracelet.db

    # 常驻运行定时任务
    python app.py --serve

环境变量（在 .env 文件中配置，运行 python scripts/setup_env.py 生成）：
    DATABASE_URL      数据库连接地址
    MINIMAX_API_KEY   MiniMax API Key（订单/转账识别，可选）
    DELAY_ALERT_TIME  每日延期预警时间（默认 09:00）
    LOG_LEVEL         日志级别（默认 INFO）
"""
import argparse
import asyncio
import signal
import sys

from loguru import logger


def setup_logging(level: str) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
    )


def print_dashboard(stats, flows, db_url: str) -> None:
    """打印看板概要"""
    print()
    print("=" * 60)
    print("  手绳代工台账")
    print(f"  数据库: {db_url}")
    print("=" * 60)
    print(f"  当前库存(完整): {stats.sellable_stock} 条    在途: {stats.in_transit} 条")
    balances = "  ".join(f"{k}={v}" for k, v in stats.category_balances.items())
    print(f"  各品类结余: {balances}")
    print(f"  累计营收: ¥{stats.total_revenue:.0f}    累计利润: ¥{stats.net_profit:.0f}")
    print(f"  待付工费: ¥{stats.unpaid_total:.0f}    签约工人: {stats.worker_count} 位")
    for flow in flows:
        print(f"  {flow.card}: 收入 ¥{flow.income:.0f} / 支出 ¥{flow.expenditure:.0f} / 结余 ¥{flow.balance:.0f}")
    print(f"  延期预警 ({stats.delayed_count})")
    for item in stats.delayed_orders:
        print(f"    {item.order.order_no} {item.worker_name} 延期 {item.delay_days} 天")
    print("=" * 60)
    print()


async def _serve(service) -> None:
    """常驻运行定时任务，直到收到退出信号"""
    from business.scheduler import Scheduler
    from business.tasks import register_daily_tasks

    scheduler = Scheduler()
    register_daily_tasks(scheduler, service)
    scheduler.start()

    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def signal_handler(signum):
        logger.info(f"收到信号 {signum}，正在关闭服务...")
        shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler, sig)

    print("  定时任务已启动，按 Ctrl+C 停止")
    try:
        await shutdown_event.wait()
    finally:
        scheduler.stop()


async def main():
    from config.settings import settings

    parser = argparse.ArgumentParser(description="手绳代工台账")
    parser.add_argument("--db", default=None, help="数据库连接 URL")
    parser.add_argument("--serve", action="store_true",
                        help="常驻运行每日延期预警")
    parser.add_argument("--log-level", default=settings.log_level,
                        help=f"日志级别 (默认: {settings.log_level})")
    args = parser.parse_args()
    setup_logging(args.log_level)

    from database import DatabaseManager
    from ledger.exceptions import LedgerError
    from ledger.service import LedgerService

    db = None
    try:
        db = DatabaseManager(args.db)
        db.create_tables()
        logger.info(f"数据库已连接: {db.database_url}")

        service = LedgerService(db)
        await service.refresh()
        stats = await service.dashboard()
        flows = await service.bank_card_flows()
        print_dashboard(stats, flows, db.database_url)

        if args.serve:
            await _serve(service)
    except LedgerError as e:
        logger.error(f"启动失败: {e}")
    except asyncio.CancelledError:
        logger.info("任务被取消，正在清理...")
    finally:
        if db is not None:
            db.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        pass
