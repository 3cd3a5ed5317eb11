"""通用 CRUD 基类。

提供与具体业务无关的增删改查能力，各实体仓库继承此类后
只需要补充领域特定的查询方法。

所有方法都支持传入外部会话：传入时只 flush 不 commit，
由调用方统一提交，从而把多个仓库的写入放进同一个事务。
"""
from typing import Optional, List, Dict, Any, Type, TypeVar

from sqlalchemy.orm import Session

from .connection import DatabaseConnection
from .models import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseCRUD:
    """通用 CRUD 基类。

    Attributes:
        conn: 数据库连接管理器。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        self.conn = conn

    def _get_session(self) -> Session:
        """获取新的数据库会话。"""
        return self.conn.get_session()

    def get_by_id(self, model: Type[ModelT], record_id: Any,
                  session: Optional[Session] = None) -> Optional[ModelT]:
        """按主键获取记录。

        Args:
            model: ORM 模型类。
            record_id: 主键值。
            session: 外部会话（可选）。

        Returns:
            ORM 对象，不存在返回 None。
        """
        if session:
            return session.get(model, record_id)

        with self._get_session() as sess:
            return sess.get(model, record_id)

    def get_all(self, model: Type[ModelT],
                filters: Optional[Dict[str, Any]] = None,
                order_by: Optional[Any] = None,
                session: Optional[Session] = None) -> List[ModelT]:
        """获取全部记录（可按字段等值过滤）。

        Args:
            model: ORM 模型类。
            filters: 字段等值过滤条件（可选）。
            order_by: 排序表达式（可选）。
            session: 外部会话（可选）。

        Returns:
            ORM 对象列表。
        """
        def _query(sess):
            query = sess.query(model)
            for key, value in (filters or {}).items():
                query = query.filter(getattr(model, key) == value)
            if order_by is not None:
                query = query.order_by(order_by)
            return query.all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def create(self, model: Type[ModelT], session: Optional[Session] = None,
               **fields: Any) -> ModelT:
        """创建记录。

        Args:
            model: ORM 模型类。
            session: 外部会话（可选）。
            **fields: 字段值。

        Returns:
            新创建的 ORM 对象（已刷新，包含数据库生成的字段）。
        """
        def _do(sess):
            obj = model(**fields)
            sess.add(obj)
            sess.flush()
            sess.refresh(obj)
            return obj

        if session:
            return _do(session)

        with self._get_session() as sess:
            obj = _do(sess)
            sess.commit()
            sess.refresh(obj)
            return obj

    def update_by_id(self, model: Type[ModelT], record_id: Any,
                     session: Optional[Session] = None,
                     **fields: Any) -> Optional[ModelT]:
        """按主键更新记录。

        Args:
            model: ORM 模型类。
            record_id: 主键值。
            session: 外部会话（可选）。
            **fields: 需要更新的字段。

        Returns:
            更新后的 ORM 对象，不存在返回 None。
        """
        def _do(sess):
            obj = sess.get(model, record_id)
            if obj is None:
                return None
            for key, value in fields.items():
                setattr(obj, key, value)
            sess.flush()
            sess.refresh(obj)
            return obj

        if session:
            return _do(session)

        with self._get_session() as sess:
            obj = _do(sess)
            if obj is not None:
                sess.commit()
                sess.refresh(obj)
            return obj

    def delete_by_id(self, model: Type[ModelT], record_id: Any,
                     session: Optional[Session] = None) -> bool:
        """按主键删除记录。

        Returns:
            是否删除成功。
        """
        def _do(sess):
            obj = sess.get(model, record_id)
            if obj is None:
                return False
            sess.delete(obj)
            sess.flush()
            return True

        if session:
            return _do(session)

        with self._get_session() as sess:
            deleted = _do(sess)
            if deleted:
                sess.commit()
            return deleted
