"""SQLAlchemy ORM 模型定义。

本模块定义了所有数据库表的ORM模型，包括：
- 工人、代工订单、转账
- 库存流水与按品类维护的结余索引
- 销售收入、其他支出
"""
from typing import Optional
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, Date, DateTime, Float,
    ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import declarative_base
from datetime import datetime, date

# SQLAlchemy declarative base，所有模型都继承自此类
Base = declarative_base()

# 为Base类添加__allow_unmapped__属性，允许使用旧式类型注解
Base.__allow_unmapped__ = True


class WorkerModel(Base):
    """工人表模型。

    存储代工工人的基本信息与计件单价。工人只做软停用，不物理删除。

    Attributes:
        id: 主键，自增整数。
        name: 姓名，必填，最大长度50字符。
        wechat_nickname: 微信昵称，可选。
        phone: 联系电话，可选。
        unit_price: 计件单价，默认0。
        status: active（服务中）/ inactive（已停用），默认active。
        specialty_type: 擅长的手绳类型（完整、主绳、线圈），可选。
        address: 地址备注，可选。
        created_at: 创建时间。
    """
    __tablename__ = "workers"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    name: str = Column(String(50), nullable=False)
    wechat_nickname: Optional[str] = Column(String(100), default="")
    phone: Optional[str] = Column(String(20), default="")
    unit_price: float = Column(Float, default=0)
    status: str = Column(String(20), default="active")
    specialty_type: Optional[str] = Column(String(20))
    address: Optional[str] = Column(Text)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)


class OrderModel(Base):
    """代工订单表模型。

    以订单号为自然主键。worker_id 只用于查找，不级联删除。

    Attributes:
        order_no: 订单号，主键，形如 ORD20240128A1B。
        worker_id: 工人ID。
        quantity: 数量。
        unit_price: 单价。
        total_amount: 总金额。
        paid_amount: 已付金额。
        order_date: 下单日期。
        expected_delivery: 预计交期，可选。
        actual_delivery: 实际交付日期，可选。
        receive_date: 收货日期，进入已收货状态时设置。
        order_status: 订单状态。
        payment_status: 付款状态。
        item_type: 品类（complete / main-cord / coil）。
        bank_card: 付款银行卡，可选。
        chat_record: 聊天记录原文，可选。
        remarks: 备注，可选。
    """
    __tablename__ = "orders"

    order_no: str = Column(String(32), primary_key=True)
    worker_id: int = Column(Integer, ForeignKey("workers.id"), nullable=False)
    quantity: int = Column(Integer, nullable=False)
    unit_price: float = Column(Float, default=0)
    total_amount: float = Column(Float, default=0)
    paid_amount: float = Column(Float, default=0)
    order_date: date = Column(Date, nullable=False)
    expected_delivery: Optional[date] = Column(Date)
    actual_delivery: Optional[date] = Column(Date)
    receive_date: Optional[date] = Column(Date)
    order_status: str = Column(String(20), default="confirmed")
    payment_status: str = Column(String(20), default="unpaid")
    item_type: str = Column(String(20), nullable=False, default="complete")
    bank_card: Optional[str] = Column(String(50))
    chat_record: Optional[str] = Column(Text)
    remarks: Optional[str] = Column(Text)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)


class TransferModel(Base):
    """转账表模型。

    Attributes:
        id: 主键，自增整数。
        worker_id: 收款工人ID。
        amount: 转账金额。
        transfer_date: 转账日期。
        payment_method: wechat / alipay / bank。
        screenshot_url: 转账截图地址，可选。
        wechat_remark: 微信转账备注，可选。
        verified: 是否已核对。
    """
    __tablename__ = "transfers"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    worker_id: int = Column(Integer, ForeignKey("workers.id"), nullable=False)
    amount: float = Column(Float, nullable=False)
    transfer_date: date = Column(Date, nullable=False)
    payment_method: str = Column(String(20), default="wechat")
    screenshot_url: Optional[str] = Column(String(500))
    wechat_remark: Optional[str] = Column(String(200))
    verified: bool = Column(Boolean, default=False)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)


class InventoryTransactionModel(Base):
    """库存流水表模型（只追加）。

    balance_quantity 是本条流水之后该品类的结余，
    sequence 是该品类内的流水序号，二者与 InventoryBalanceModel 同事务更新。

    Attributes:
        id: 主键，自增整数（插入顺序）。
        transaction_date: 流水日期。
        transaction_type: in / out / adjust。
        quantity_change: 带符号的变动数量。
        balance_quantity: 变动后的品类结余。
        item_type: 品类。
        sequence: 品类内序号。
        related_order: 关联订单号，可选。
        remarks: 备注，可选。
    """
    __tablename__ = "inventory"
    __table_args__ = (
        UniqueConstraint("item_type", "sequence", name="uq_inventory_item_sequence"),
    )

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    transaction_date: date = Column(Date, nullable=False)
    transaction_type: str = Column(String(10), nullable=False)
    quantity_change: int = Column(Integer, nullable=False)
    balance_quantity: int = Column(Integer, nullable=False)
    item_type: str = Column(String(20), nullable=False)
    sequence: int = Column(Integer, nullable=False)
    related_order: Optional[str] = Column(String(32), index=True)
    remarks: Optional[str] = Column(Text)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)


class InventoryBalanceModel(Base):
    """按品类维护的结余索引。

    每个品类一行，记录最新结余和最新流水序号，
    避免每次追加流水时反向扫描全部历史。

    Attributes:
        item_type: 品类，主键。
        balance_quantity: 最新结余。
        last_sequence: 最新流水序号。
        updated_at: 更新时间。
    """
    __tablename__ = "inventory_balances"

    item_type: str = Column(String(20), primary_key=True)
    balance_quantity: int = Column(Integer, nullable=False, default=0)
    last_sequence: int = Column(Integer, nullable=False, default=0)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class IncomeModel(Base):
    """销售收入表模型。

    Attributes:
        id: 主键，自增整数。
        date: 收入日期。
        platform: 销售平台（小红书1店、闲鱼等）。
        amount: 金额。
        quantity: 售出条数。
        bank_card: 收款银行卡，可选。
    """
    __tablename__ = "incomes"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False)
    platform: str = Column(String(50), default="")
    amount: float = Column(Float, nullable=False)
    quantity: int = Column(Integer, nullable=False)
    bank_card: Optional[str] = Column(String(50))
    created_at: datetime = Column(DateTime, default=datetime.utcnow)


class ExpenseModel(Base):
    """其他支出表模型。

    Attributes:
        id: 主键，自增整数。
        date: 支出日期。
        purpose: 用途，必填。
        amount: 金额。
        quantity: 数量。
        bank_card: 支付银行卡，可选。
    """
    __tablename__ = "expenses"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False)
    purpose: str = Column(String(200), nullable=False)
    amount: float = Column(Float, nullable=False)
    quantity: int = Column(Integer, nullable=False)
    bank_card: Optional[str] = Column(String(50))
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
