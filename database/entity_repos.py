"""实体仓库 - 基础实体的数据访问层。

管理系统中的基础实体（代工工人）。工人只做软停用，不物理删除，
订单通过 worker_id 弱引用工人，删除订单不会影响工人。

仓库继承 BaseCRUD 获得通用能力，并添加领域特定的查询方法。
"""
from typing import Optional, List, Dict, Any
from sqlalchemy.orm import Session

from ledger.records import Worker
from .base_crud import BaseCRUD
from .connection import DatabaseConnection
from .mappers import worker_to_record
from .models import WorkerModel


class WorkerRepository(BaseCRUD):
    """代工工人 仓库。

    管理工人信息：姓名、微信、电话、计件单价、擅长类型等。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def upsert(self, worker_data: Dict[str, Any],
               session: Optional[Session] = None) -> Optional[Worker]:
        """新建或更新工人。

        载荷中带有 id 时按主键更新，否则新建。

        Args:
            worker_data: 已规范化的工人数据字典。
            session: 外部会话（可选）。

        Returns:
            保存后的 Worker，按 id 更新但工人不存在时返回 None。
        """
        data = dict(worker_data)
        worker_id = data.pop("id", None)
        if worker_id:
            obj = self.update_by_id(WorkerModel, worker_id, session=session, **data)
        else:
            obj = self.create(WorkerModel, session=session, **data)
        return worker_to_record(obj) if obj else None

    def get(self, worker_id: int,
            session: Optional[Session] = None) -> Optional[Worker]:
        """按ID获取工人。"""
        obj = self.get_by_id(WorkerModel, worker_id, session=session)
        return worker_to_record(obj) if obj else None

    def exists(self, worker_id: int,
               session: Optional[Session] = None) -> bool:
        """工人是否存在。"""
        return self.get_by_id(WorkerModel, worker_id, session=session) is not None

    def list_all(self, active_only: bool = False,
                 session: Optional[Session] = None) -> List[Worker]:
        """获取工人列表（按ID升序）。

        Args:
            active_only: 是否只返回服务中的工人。

        Returns:
            Worker 列表。
        """
        filters = {"status": "active"} if active_only else None
        rows = self.get_all(
            WorkerModel, filters=filters, order_by=WorkerModel.id.asc(),
            session=session
        )
        return [worker_to_record(w) for w in rows]

    def deactivate(self, worker_id: int,
                   session: Optional[Session] = None) -> Optional[Worker]:
        """停用工人（软删除）。

        Args:
            worker_id: 工人ID。

        Returns:
            更新后的 Worker，不存在返回 None。
        """
        obj = self.update_by_id(
            WorkerModel, worker_id, session=session, status="inactive"
        )
        return worker_to_record(obj) if obj else None
