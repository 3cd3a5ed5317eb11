"""台账值对象定义。

本模块定义了台账计算层使用的强类型记录，包括：
- 工人、代工订单、转账
- 库存流水（按品类独立维护结余）
- 销售收入、其他支出
- LedgerSnapshot：一次全量加载得到的完整记录集

所有记录都是纯数据对象，由 database 层在加载时从 ORM 对象转换而来，
内部计算逻辑只接触这些已经规范化过的对象。
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum, unique
from typing import Dict, List, Optional


@unique
class OrderStatus(str, Enum):
    """订单状态"""
    PENDING = "pending"         # 待确认
    CONFIRMED = "confirmed"     # 已确认
    PRODUCING = "producing"     # 生产中
    DELIVERED = "delivered"     # 已发货（工人已寄出）
    RECEIVED = "received"       # 已收货入库
    COMPLETED = "completed"     # 已完成（收货的另一种终态标记）
    CANCELLED = "cancelled"     # 已取消


@unique
class PaymentStatus(str, Enum):
    """订单付款状态"""
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


@unique
class TransactionType(str, Enum):
    """库存流水类型"""
    IN = "in"           # 入库
    OUT = "out"         # 出库
    ADJUST = "adjust"   # 更正


@unique
class ItemType(str, Enum):
    """库存品类，各品类结余独立计算，只有成品可销售"""
    COMPLETE = "complete"      # 完整
    MAIN_CORD = "main-cord"    # 主绳
    COIL = "coil"              # 线圈


@unique
class WorkerStatus(str, Enum):
    """工人状态（只做软停用，不物理删除）"""
    ACTIVE = "active"
    INACTIVE = "inactive"


@unique
class PaymentMethod(str, Enum):
    """转账方式"""
    WECHAT = "wechat"
    ALIPAY = "alipay"
    BANK = "bank"


# 状态集合保存字符串值，数据库读出的状态可以直接做成员判断
TERMINAL_STATUSES = frozenset({
    OrderStatus.RECEIVED.value, OrderStatus.COMPLETED.value, OrderStatus.CANCELLED.value,
})
RECEIVED_STATUSES = frozenset({OrderStatus.RECEIVED.value, OrderStatus.COMPLETED.value})
IN_TRANSIT_STATUSES = frozenset({
    OrderStatus.CONFIRMED.value, OrderStatus.PRODUCING.value, OrderStatus.DELIVERED.value,
})


@dataclass
class Worker:
    """代工工人

    Attributes:
        id: 主键。
        name: 姓名，必填。
        wechat_nickname: 微信昵称。
        phone: 联系电话。
        unit_price: 计件单价，>= 0。
        status: active / inactive。
        specialty_type: 擅长的手绳类型（完整、主绳、线圈）。
        address: 地址备注。
    """
    id: int
    name: str
    wechat_nickname: str = ""
    phone: str = ""
    unit_price: float = 0.0
    status: str = WorkerStatus.ACTIVE.value
    specialty_type: Optional[str] = None
    address: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == WorkerStatus.ACTIVE


@dataclass
class Order:
    """代工订单

    Attributes:
        order_no: 订单号（自然主键），缺省时自动生成。
        worker_id: 工人ID（弱引用，仅用于查找）。
        quantity: 数量，> 0。
        unit_price: 单价，>= 0。
        total_amount: 总金额，未显式提供时为 quantity × unit_price。
        paid_amount: 已付金额。
        order_date: 下单日期。
        expected_delivery: 预计交期（可选）。
        receive_date: 收货日期，仅在进入已收货状态时设置一次。
        order_status: 订单状态。
        payment_status: 付款状态，由已付/总额推导。
        item_type: 品类，决定收货时计入哪个库存品类。
        bank_card: 付款银行卡。
    """
    order_no: str
    worker_id: int
    quantity: int
    unit_price: float
    total_amount: float
    order_date: date
    expected_delivery: Optional[date] = None
    actual_delivery: Optional[date] = None
    receive_date: Optional[date] = None
    order_status: str = OrderStatus.CONFIRMED.value
    payment_status: str = PaymentStatus.UNPAID.value
    paid_amount: float = 0.0
    item_type: str = ItemType.COMPLETE.value
    bank_card: Optional[str] = None
    chat_record: Optional[str] = None
    remarks: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def unpaid_amount(self) -> float:
        return self.total_amount - self.paid_amount

    @property
    def is_terminal(self) -> bool:
        return self.order_status in TERMINAL_STATUSES

    @property
    def is_received(self) -> bool:
        return self.order_status in RECEIVED_STATUSES


@dataclass
class InventoryTransaction:
    """库存流水（只追加）

    Attributes:
        id: 主键（插入顺序）。
        transaction_date: 流水日期。
        transaction_type: in / out / adjust。
        quantity_change: 带符号的变动数量，出库为负。
        balance_quantity: 本条流水之后该品类的结余。
        item_type: 品类。
        sequence: 该品类内的流水序号，从 1 开始。
        related_order: 关联订单号（收货入库时设置）。
    """
    id: int
    transaction_date: date
    transaction_type: str
    quantity_change: int
    balance_quantity: int
    item_type: str
    sequence: int = 0
    related_order: Optional[str] = None
    remarks: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass
class IncomeRecord:
    """销售收入"""
    id: int
    date: date
    platform: str
    amount: float
    quantity: int
    bank_card: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass
class ExpenseRecord:
    """其他支出"""
    id: int
    date: date
    purpose: str
    amount: float
    quantity: int
    bank_card: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass
class Transfer:
    """给工人的转账"""
    id: int
    worker_id: int
    amount: float
    transfer_date: date
    payment_method: str = PaymentMethod.WECHAT.value
    screenshot_url: Optional[str] = None
    wechat_remark: Optional[str] = None
    verified: bool = False
    created_at: Optional[datetime] = None


@dataclass
class LedgerSnapshot:
    """一次全量加载得到的完整记录集。

    每次变更成功后都会重新加载，余额等派生数据总是从这里重新计算。
    inventory 按插入顺序（id 升序）排列。
    """
    workers: List[Worker] = field(default_factory=list)
    orders: List[Order] = field(default_factory=list)
    transfers: List[Transfer] = field(default_factory=list)
    inventory: List[InventoryTransaction] = field(default_factory=list)
    incomes: List[IncomeRecord] = field(default_factory=list)
    expenses: List[ExpenseRecord] = field(default_factory=list)

    def workers_by_id(self) -> Dict[int, Worker]:
        return {w.id: w for w in self.workers}

    def worker_name(self, worker_id: int, default: str = "未知工人") -> str:
        worker = self.workers_by_id().get(worker_id)
        return worker.name if worker else default

    def find_order(self, order_no: str) -> Optional[Order]:
        for order in self.orders:
            if order.order_no == order_no:
                return order
        return None
