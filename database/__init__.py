"""数据库模块 - 持久化层。

提供 ORM 模型、连接管理、各实体仓库以及统一门面 DatabaseManager。

使用示例：
    ```python
    from database import DatabaseManager

    db = DatabaseManager("sqlite:///data/bracelet.db")
    db.create_tables()
    snapshot = db.load_all()
    ```
"""
from database.manager import DatabaseManager
from database.connection import DatabaseConnection

__all__ = ["DatabaseManager", "DatabaseConnection"]
