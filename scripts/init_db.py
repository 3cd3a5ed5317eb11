"""初始化数据库

创建所有表，并按库存流水重建品类结余索引。
可选 --seed-worker 插入一个示例工人。
"""
import argparse
import sys
import os

# 添加项目根目录到路径
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import DatabaseManager
from config.business_config import business_config
from ledger.balances import verify_running_balances
from loguru import logger


def init_database(database_url=None, seed_worker=None):
    """初始化数据库

    Args:
        database_url: 数据库连接URL，缺省使用 settings
        seed_worker: 示例工人姓名（可选）
    """
    logger.info("Initializing database...")

    db = DatabaseManager(database_url)

    logger.info("Creating tables...")
    db.create_tables()

    # 结余索引与流水对齐
    balances = db.inventory.rebuild_index()
    for item in business_config.get_item_types():
        logger.info(f"  {item['label']}({item['code']}): {balances.get(item['code'], 0)}")

    broken = verify_running_balances(db.inventory.list_all())
    if broken:
        logger.warning(f"{len(broken)} inventory row(s) do not match the running sum")

    if seed_worker:
        from ledger.transitions import TransitionController
        worker = TransitionController(db).save_worker({"name": seed_worker})
        logger.info(f"Created worker: {worker.id} {worker.name}")

    db.close()
    logger.info("Database initialization completed!")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="初始化数据库")
    parser.add_argument("--db", default=None, help="数据库连接 URL")
    parser.add_argument("--seed-worker", default=None, help="插入一个示例工人")
    args = parser.parse_args()
    init_database(args.db, args.seed_worker)
