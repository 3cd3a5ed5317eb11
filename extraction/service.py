"""订单/转账识别服务。

把微信聊天文字和截图交给大模型（MiniMax 的 Anthropic 兼容接口），
提取结构化字段：

- 订单：quantity（必填）、unit_price、expected_delivery、worker_name、remarks
- 转账：amount（必填）、receiver_name、date、remark

识别是“尽力而为”的：调用失败、返回内容无法解析、缺少必填字段时
都只记录警告并返回 None，不会影响录入流程。
"""
import base64
import json
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from anthropic import AsyncAnthropic
from loguru import logger

from config.business_config import BusinessConfig, business_config as default_business_config
from config.prompts import get_extraction_prompt
from config.settings import settings
from ledger.exceptions import ExternalServiceError, ValidationError
from ledger.normalize import parse_date, to_int, to_number
from ledger.records import Worker

# (media_type, 原始字节)，例如 ("image/png", b"...")
ImageInput = Tuple[str, bytes]

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


@dataclass
class OrderExtraction:
    """从聊天中识别出的订单字段"""
    quantity: int
    unit_price: Optional[float] = None
    expected_delivery: Optional[date] = None
    worker_name: Optional[str] = None
    remarks: Optional[str] = None


@dataclass
class TransferExtraction:
    """从转账截图中识别出的字段"""
    amount: float
    receiver_name: Optional[str] = None
    date: Optional[date] = None
    remark: Optional[str] = None


def parse_json_object(text: str) -> Dict[str, Any]:
    """从模型输出中取出 JSON 对象（容忍代码块包裹和前后多余文字）。

    Raises:
        ExternalServiceError: 找不到合法的 JSON 对象。
    """
    cleaned = _FENCE_RE.sub("", (text or "").strip())
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start == -1 or end <= start:
        raise ExternalServiceError(f"No JSON object in model output: {text!r}")
    try:
        data = json.loads(cleaned[start:end + 1])
    except json.JSONDecodeError as e:
        raise ExternalServiceError(f"Invalid JSON in model output: {e}") from e
    if not isinstance(data, dict):
        raise ExternalServiceError("Model output is not a JSON object")
    return data


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _optional_date(value: Any) -> Optional[date]:
    try:
        return parse_date(value, "date")
    except ValidationError:
        logger.warning(f"Ignoring unparseable date from extraction: {value!r}")
        return None


def to_order_extraction(data: Dict[str, Any]) -> Optional[OrderExtraction]:
    """把模型返回的字典转换为 OrderExtraction，数量缺失时返回 None。"""
    quantity = to_int(data.get("quantity"))
    if quantity <= 0:
        return None
    unit_price = to_number(data.get("unit_price"), None)
    return OrderExtraction(
        quantity=quantity,
        unit_price=unit_price if unit_price is not None and unit_price >= 0 else None,
        expected_delivery=_optional_date(data.get("expected_delivery")),
        worker_name=_optional_text(data.get("worker_name")),
        remarks=_optional_text(data.get("remarks")),
    )


def to_transfer_extraction(data: Dict[str, Any]) -> Optional[TransferExtraction]:
    """把模型返回的字典转换为 TransferExtraction，金额缺失时返回 None。"""
    amount = to_number(data.get("amount"))
    if amount <= 0:
        return None
    return TransferExtraction(
        amount=amount,
        receiver_name=_optional_text(data.get("receiver_name")),
        date=_optional_date(data.get("date")),
        remark=_optional_text(data.get("remark")),
    )


class ExtractionService:
    """识别服务客户端。

    Attributes:
        model: 模型名称。
        config: 业务配置（提供提示词）。

    Example::

        service = ExtractionService()
        result = await service.extract_order("这批100条，单价8块5，下周三交")
        if result:
            draft = apply_order_extraction(draft, result, workers)
    """

    def __init__(self, client: Optional[Any] = None,
                 model: Optional[str] = None,
                 config: Optional[BusinessConfig] = None,
                 max_tokens: int = 1024) -> None:
        """初始化识别服务。

        Args:
            client: 兼容 ``AsyncAnthropic`` 的客户端，缺省按 settings 创建。
            model: 模型名称，缺省为 settings.minimax_model。
            config: 业务配置，缺省使用全局 business_config。
            max_tokens: 单次回复的最大 token 数。
        """
        self._client = client
        self.model = model or settings.minimax_model
        self.config = config or default_business_config
        self.max_tokens = max_tokens

    @property
    def client(self) -> Any:
        if self._client is None:
            if not settings.minimax_api_key:
                raise ExternalServiceError("MINIMAX_API_KEY is not configured")
            self._client = AsyncAnthropic(
                api_key=settings.minimax_api_key,
                base_url=settings.minimax_base_url,
            )
        return self._client

    @staticmethod
    def _build_content(label: str, text: str,
                       images: Iterable[ImageInput]) -> List[Dict[str, Any]]:
        content: List[Dict[str, Any]] = []
        for media_type, data in images:
            content.append({
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": media_type,
                    "data": base64.b64encode(data).decode("ascii"),
                },
            })
        if text:
            content.append({"type": "text", "text": f"{label}: {text}"})
        return content

    async def _complete(self, kind: str, label: str, text: str,
                        images: Sequence[ImageInput]) -> Dict[str, Any]:
        """调用模型并解析 JSON。

        Raises:
            ExternalServiceError: 调用失败或输出无法解析。
        """
        content = self._build_content(label, text, images)
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=get_extraction_prompt(kind, self.config),
                messages=[{"role": "user", "content": content}],
            )
        except ExternalServiceError:
            raise
        except Exception as e:
            raise ExternalServiceError(f"{kind} extraction request failed: {e}") from e

        output = "".join(
            getattr(block, "text", "") for block in response.content
            if getattr(block, "type", None) == "text"
        )
        return parse_json_object(output)

    async def extract_order(self, text: str = "",
                            images: Sequence[ImageInput] = ()) -> Optional[OrderExtraction]:
        """从聊天文字/截图识别订单。

        Returns:
            OrderExtraction；没有输入、识别失败或缺少数量时返回 None。
        """
        if not text and not images:
            return None
        try:
            data = await self._complete("order", "聊天文本", text, images)
        except ExternalServiceError as e:
            logger.warning(f"Order extraction failed: {e}")
            return None
        result = to_order_extraction(data)
        if result is None:
            logger.warning("Order extraction returned no quantity")
        return result

    async def extract_transfer(self, text: str = "",
                               images: Sequence[ImageInput] = ()) -> Optional[TransferExtraction]:
        """从转账截图/文字识别转账。

        Returns:
            TransferExtraction；没有输入、识别失败或缺少金额时返回 None。
        """
        if not text and not images:
            return None
        try:
            data = await self._complete("transfer", "补充文本", text, images)
        except ExternalServiceError as e:
            logger.warning(f"Transfer extraction failed: {e}")
            return None
        result = to_transfer_extraction(data)
        if result is None:
            logger.warning("Transfer extraction returned no amount")
        return result


def match_worker(name: Optional[str], workers: Sequence[Worker]) -> Optional[Worker]:
    """按名字包含关系（任一方向）匹配工人。"""
    if not name:
        return None
    for worker in workers:
        if not worker.name:
            continue
        if name in worker.name or worker.name in name:
            return worker
    return None


def apply_order_extraction(draft: Dict[str, Any], extraction: Optional[OrderExtraction],
                           workers: Sequence[Worker]) -> Dict[str, Any]:
    """把识别结果合并进订单草稿。

    - 工人按名字包含关系匹配，匹配不到时保留草稿中的工人；
    - 单价缺失时使用匹配到的工人的计件单价，再缺失则保留草稿值；
    - 其余字段缺失时保留草稿值。

    Returns:
        合并后的新草稿（不修改传入的 draft）。
    """
    merged = dict(draft)
    if extraction is None:
        return merged

    worker = match_worker(extraction.worker_name, workers)
    if worker is not None:
        merged["worker_id"] = worker.id

    merged["quantity"] = extraction.quantity or merged.get("quantity")
    if extraction.unit_price:
        merged["unit_price"] = extraction.unit_price
    elif worker is not None:
        merged["unit_price"] = worker.unit_price
    if extraction.expected_delivery is not None:
        merged["expected_delivery"] = extraction.expected_delivery
    if extraction.remarks:
        merged["remarks"] = extraction.remarks
    return merged
