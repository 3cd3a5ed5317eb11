"""识别服务模块 - 从聊天文字/截图提取订单与转账字段"""
from extraction.service import (
    ExtractionService,
    OrderExtraction,
    TransferExtraction,
    apply_order_extraction,
    match_worker,
    parse_json_object,
)

__all__ = [
    "ExtractionService",
    "OrderExtraction",
    "TransferExtraction",
    "apply_order_extraction",
    "match_worker",
    "parse_json_object",
]
