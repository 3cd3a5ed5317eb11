"""边界规范化 - 写入前的校验与数值转换。

所有来自表单、识别服务或 API 的原始字典都在这里统一处理：

- 数值字段（单价、数量、金额、变动数量、已付、总额）转换为数字，
  缺失或格式错误时回退为 0，而不是报错；
- 空的标识字段（id / order_no）从载荷中移除，保证新建与更新的路由明确；
- 必填字段缺失时抛出 ValidationError，此时还没有发生任何写入。

规范化之后的字典可以直接交给 database 层持久化。
"""
import math
import random
import string
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Iterable, Optional

from ledger.exceptions import ValidationError
from ledger.records import (
    ItemType, OrderStatus, PaymentMethod, PaymentStatus, RECEIVED_STATUSES,
    WorkerStatus,
)

_ID_ALPHABET = string.digits + string.ascii_uppercase
_SERVER_FIELDS = ("created_at",)


def to_number(value: Any, default: float = 0.0) -> float:
    """转换为浮点数，缺失或非法时返回 default。"""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def to_int(value: Any, default: int = 0) -> int:
    """转换为整数（向零取整），缺失或非法时返回 default。"""
    number = to_number(value, None)
    if number is None:
        return default
    return int(number)


def is_blank(value: Any) -> bool:
    """None、空字符串、0 都视为“未提供”的标识值。"""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == 0
    return False


def parse_date(value: Any, field_name: str = "date",
               required: bool = False) -> Optional[date]:
    """解析日期值。

    Args:
        value: 日期值（date / datetime / ``YYYY-MM-DD`` 字符串，
            也接受 ISO 时间戳字符串）。
        field_name: 字段名称（用于错误提示）。
        required: 是否必填。

    Returns:
        date 对象，未提供且非必填时返回 None。

    Raises:
        ValidationError: 格式无效，或必填但缺失。
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()[:10]
        try:
            return datetime.strptime(text, "%Y-%m-%d").date()
        except ValueError:
            raise ValidationError(
                f"Invalid date format: {value}, expected YYYY-MM-DD",
                field=field_name,
            )
    if required:
        raise ValidationError(f"{field_name} is required", field=field_name)
    return None


def clean_payload(data: Dict[str, Any],
                  id_fields: Iterable[str] = ("id",)) -> Dict[str, Any]:
    """复制载荷，移除空的标识字段和由数据库生成的字段。"""
    cleaned = dict(data or {})
    for key in id_fields:
        if key in cleaned and is_blank(cleaned[key]):
            del cleaned[key]
    for key in _SERVER_FIELDS:
        cleaned.pop(key, None)
    return cleaned


def generate_id(prefix: str, today: Optional[date] = None,
                rng: Optional[random.Random] = None) -> str:
    """生成可读的自然主键：``{prefix}{YYYYMMDD}{3位36进制随机字符}``。"""
    today = today or date.today()
    chooser = rng or random
    suffix = "".join(chooser.choice(_ID_ALPHABET) for _ in range(3))
    return f"{prefix}{today.strftime('%Y%m%d')}{suffix}"


def derive_payment_status(total_amount: float, paid_amount: float) -> str:
    """由总额和已付推导付款状态。"""
    if paid_amount <= 0:
        return PaymentStatus.UNPAID.value if total_amount > 0 else PaymentStatus.PAID.value
    if paid_amount >= total_amount:
        return PaymentStatus.PAID.value
    return PaymentStatus.PARTIAL.value


def _choice(value: Any, enum_cls, field_name: str, default: Optional[str] = None) -> str:
    if value is None or value == "":
        if default is None:
            raise ValidationError(f"{field_name} is required", field=field_name)
        return default
    raw = value.value if isinstance(value, enum_cls) else str(value).strip()
    allowed = {member.value for member in enum_cls}
    if raw not in allowed:
        raise ValidationError(
            f"Invalid {field_name}: {value}, expected one of {sorted(allowed)}",
            field=field_name,
        )
    return raw


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _positive(data: Dict[str, Any], key: str, caster: Callable[[Any], Any]):
    value = caster(data.get(key))
    if value <= 0:
        raise ValidationError(f"{key} is required and must be > 0", field=key)
    return value


def _non_negative(data: Dict[str, Any], key: str) -> float:
    value = to_number(data.get(key))
    if value < 0:
        raise ValidationError(f"{key} must be >= 0", field=key)
    return value


# ================================================================
# 各记录类型的规范化
# ================================================================

def normalize_worker(data: Dict[str, Any]) -> Dict[str, Any]:
    """规范化工人载荷（新建或编辑）。

    新建时补齐默认值；带 id 的编辑载荷只处理出现的字段，
    未提供的字段（状态、单价、联系方式）保持数据库中的原值。

    Raises:
        ValidationError: 姓名为空，单价为负，或状态非法。
    """
    payload = clean_payload(data)
    editing = "id" in payload
    if editing:
        payload["id"] = _positive(payload, "id", to_int)

    if not editing or "name" in payload:
        name = _text(payload.get("name"))
        if not name:
            raise ValidationError("name is required", field="name")
        payload["name"] = name
    if not editing or "unit_price" in payload:
        payload["unit_price"] = _non_negative(payload, "unit_price")
    if not editing:
        payload["status"] = _choice(
            payload.get("status"), WorkerStatus, "status", WorkerStatus.ACTIVE.value
        )
    elif "status" in payload:
        payload["status"] = _choice(payload["status"], WorkerStatus, "status")
    for key in ("wechat_nickname", "phone"):
        if not editing or key in payload:
            payload[key] = _text(payload.get(key)) or ""
    for key in ("specialty_type", "address"):
        if key in payload:
            payload[key] = _text(payload[key])
    return payload


def _has_value(payload: Dict[str, Any], key: str) -> bool:
    return key in payload and payload[key] is not None and payload[key] != ""


def normalize_order(data: Dict[str, Any], today: Optional[date] = None,
                    default_delivery_days: int = 7) -> Dict[str, Any]:
    """规范化新建订单载荷。

    未显式提供 total_amount（缺失、None 或空字符串）时，
    按 quantity × unit_price 计算；显式提供的值（包括 0）视为覆盖。

    Raises:
        ValidationError: 缺少工人、数量或品类，或新订单直接处于收货终态。
    """
    today = today or date.today()
    payload = clean_payload(data, id_fields=("order_no", "id"))
    payload.pop("id", None)

    payload["worker_id"] = _positive(payload, "worker_id", to_int)
    payload["quantity"] = _positive(payload, "quantity", to_int)
    payload["item_type"] = _choice(payload.get("item_type"), ItemType, "item_type")
    payload["unit_price"] = _non_negative(payload, "unit_price")
    payload["paid_amount"] = _non_negative(payload, "paid_amount")

    if _has_value(payload, "total_amount"):
        payload["total_amount"] = to_number(payload["total_amount"])
    else:
        payload["total_amount"] = payload["quantity"] * payload["unit_price"]

    status = _choice(
        payload.get("order_status"), OrderStatus, "order_status",
        OrderStatus.CONFIRMED.value,
    )
    if status in RECEIVED_STATUSES:
        raise ValidationError(
            "a new order cannot start as received; use mark-received",
            field="order_status",
        )
    payload["order_status"] = status

    payload["order_date"] = parse_date(payload.get("order_date"), "order_date") or today
    if "expected_delivery" in payload:
        payload["expected_delivery"] = parse_date(
            payload.get("expected_delivery"), "expected_delivery"
        )
    else:
        payload["expected_delivery"] = payload["order_date"] + timedelta(days=default_delivery_days)
    payload.pop("receive_date", None)
    payload["payment_status"] = derive_payment_status(
        payload["total_amount"], payload["paid_amount"]
    )
    for key in ("bank_card", "chat_record", "remarks"):
        if key in payload:
            payload[key] = _text(payload[key])
    return payload


def new_order_draft(defaults: Dict[str, Any],
                    today: Optional[date] = None) -> Dict[str, Any]:
    """按业务默认值生成新订单草稿（表单初始值）。

    下单日期为今天，预计交付为今天 + delivery_days；其余字段
    （数量、单价、状态、付款状态、已付、品类）直接取自 defaults。

    Args:
        defaults: ``BusinessConfig.get_order_defaults()`` 的返回值。
        today: 今天的日期，缺省为 date.today()。
    """
    today = today or date.today()
    draft = {key: value for key, value in defaults.items() if key != "delivery_days"}
    draft["order_date"] = today
    draft["expected_delivery"] = today + timedelta(days=to_int(defaults.get("delivery_days"), 7))
    return draft


def normalize_order_update(data: Dict[str, Any]) -> Dict[str, Any]:
    """规范化订单编辑载荷（允许部分字段）。

    只校验载荷中出现的字段。total_amount 未显式提供而 quantity 与
    unit_price 同时提供时重新计算；paid_amount 按给定值保存。
    payment_status 由调用方结合原订单推导。

    Raises:
        ValidationError: 缺少订单号，或出现的字段取值非法。
    """
    payload = clean_payload(data, id_fields=("order_no",))
    payload.pop("id", None)
    order_no = _text(payload.get("order_no"))
    if not order_no:
        raise ValidationError("order_no is required for update", field="order_no")
    payload["order_no"] = order_no

    if "worker_id" in payload:
        payload["worker_id"] = _positive(payload, "worker_id", to_int)
    if "quantity" in payload:
        payload["quantity"] = _positive(payload, "quantity", to_int)
    if "item_type" in payload:
        payload["item_type"] = _choice(payload.get("item_type"), ItemType, "item_type")
    if "unit_price" in payload:
        payload["unit_price"] = _non_negative(payload, "unit_price")
    if "paid_amount" in payload:
        payload["paid_amount"] = _non_negative(payload, "paid_amount")
    if "order_status" in payload:
        payload["order_status"] = _choice(payload["order_status"], OrderStatus, "order_status")

    if _has_value(payload, "total_amount"):
        payload["total_amount"] = to_number(payload["total_amount"])
    else:
        payload.pop("total_amount", None)
        if "quantity" in payload and "unit_price" in payload:
            payload["total_amount"] = payload["quantity"] * payload["unit_price"]

    for key in ("order_date", "expected_delivery", "actual_delivery"):
        if key in payload:
            payload[key] = parse_date(payload[key], key)
    if "order_date" in payload and payload["order_date"] is None:
        del payload["order_date"]
    payload.pop("receive_date", None)
    payload.pop("payment_status", None)
    for key in ("bank_card", "chat_record", "remarks"):
        if key in payload:
            payload[key] = _text(payload[key])
    return payload


def normalize_income(data: Dict[str, Any], today: Optional[date] = None) -> Dict[str, Any]:
    """规范化销售收入载荷。

    Raises:
        ValidationError: 金额或数量缺失（<= 0）。
    """
    payload = clean_payload(data)
    payload.pop("id", None)
    payload["amount"] = _positive(payload, "amount", to_number)
    payload["quantity"] = _positive(payload, "quantity", to_int)
    payload["date"] = parse_date(payload.get("date"), "date") or today or date.today()
    payload["platform"] = _text(payload.get("platform")) or ""
    payload["bank_card"] = _text(payload.get("bank_card"))
    return payload


def normalize_expense(data: Dict[str, Any], today: Optional[date] = None) -> Dict[str, Any]:
    """规范化其他支出载荷。

    Raises:
        ValidationError: 金额、用途或数量缺失。
    """
    payload = clean_payload(data)
    payload.pop("id", None)
    purpose = _text(payload.get("purpose"))
    if not purpose:
        raise ValidationError("purpose is required", field="purpose")
    payload["purpose"] = purpose
    payload["amount"] = _positive(payload, "amount", to_number)
    payload["quantity"] = _positive(payload, "quantity", to_int)
    payload["date"] = parse_date(payload.get("date"), "date") or today or date.today()
    payload["bank_card"] = _text(payload.get("bank_card"))
    return payload


def normalize_transfer(data: Dict[str, Any], today: Optional[date] = None) -> Dict[str, Any]:
    """规范化转账载荷。

    Raises:
        ValidationError: 工人或金额缺失，或转账方式非法。
    """
    payload = clean_payload(data)
    payload.pop("id", None)
    payload["worker_id"] = _positive(payload, "worker_id", to_int)
    payload["amount"] = _positive(payload, "amount", to_number)
    payload["transfer_date"] = (
        parse_date(payload.get("transfer_date"), "transfer_date") or today or date.today()
    )
    payload["payment_method"] = _choice(
        payload.get("payment_method"), PaymentMethod, "payment_method",
        PaymentMethod.WECHAT.value,
    )
    payload["verified"] = bool(payload.get("verified", False))
    for key in ("screenshot_url", "wechat_remark"):
        payload[key] = _text(payload.get(key))
    return payload


def signed_adjustment(direction: str, magnitude: Any) -> int:
    """把“增加/减少 + 数量”转换为带符号的库存变动。

    Raises:
        ValidationError: 方向非法或数量为 0。
    """
    amount = abs(to_int(magnitude))
    if amount == 0:
        raise ValidationError("quantity is required and must be > 0", field="quantity")
    if direction == "increase":
        return amount
    if direction == "decrease":
        return -amount
    raise ValidationError(
        f"Invalid direction: {direction}, expected increase/decrease",
        field="direction",
    )


def validate_item_type(value: Any) -> str:
    """校验库存品类。"""
    return _choice(value, ItemType, "item_type")
