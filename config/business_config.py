"""
业务配置接口 - 支持可替换的业务配置

新项目可以实现自己的业务配置，替换默认配置。
"""
from abc import ABC, abstractmethod
from typing import List, Dict, Any


class BusinessConfig(ABC):
    """业务配置抽象基类"""

    @abstractmethod
    def get_item_types(self) -> List[Dict[str, str]]:
        """获取库存品类列表（code + 显示名）"""
        pass

    @abstractmethod
    def get_sellable_item_type(self) -> str:
        """获取可销售品类（只有成品可以销售出库）"""
        pass

    @abstractmethod
    def get_bank_cards(self) -> List[str]:
        """获取收付款银行卡列表"""
        pass

    @abstractmethod
    def get_platforms(self) -> List[str]:
        """获取销售平台列表"""
        pass

    @abstractmethod
    def get_order_defaults(self) -> Dict[str, Any]:
        """获取新订单草稿的默认值"""
        pass

    @abstractmethod
    def get_order_extraction_prompt(self) -> str:
        """获取订单识别提示词"""
        pass

    @abstractmethod
    def get_transfer_extraction_prompt(self) -> str:
        """获取转账识别提示词"""
        pass


class BraceletWorkshopConfig(BusinessConfig):
    """手绳代工作坊业务配置"""

    def get_item_types(self) -> List[Dict[str, str]]:
        return [
            {"code": "complete", "label": "完整"},
            {"code": "main-cord", "label": "主绳"},
            {"code": "coil", "label": "线圈"},
        ]

    def get_sellable_item_type(self) -> str:
        return "complete"

    def get_bank_cards(self) -> List[str]:
        return ["雪雪卡", "中信卡", "翕翕卡"]

    def get_platforms(self) -> List[str]:
        return ["小红书1店", "小红书2店", "微信", "个人售卖1店", "个人售卖2店", "闲鱼"]

    def get_order_defaults(self) -> Dict[str, Any]:
        return {
            "quantity": 100,
            "unit_price": 0,
            "order_status": "confirmed",
            "payment_status": "unpaid",
            "paid_amount": 0,
            "item_type": "complete",
            "delivery_days": 7,
        }

    def get_order_extraction_prompt(self) -> str:
        return """你是一个生产助手。请从微信聊天内容中提取订单信息。

必须包含: quantity(数量, 整数)。
可选包含: unit_price(单价, 数字), expected_delivery(交货日期, YYYY-MM-DD), worker_name(工人名字), remarks(备注)。
如果是多张图或长文字，请综合判断。

只返回一个 JSON 对象，不要输出其他内容。
"""

    def get_transfer_extraction_prompt(self) -> str:
        return """提取微信/支付宝转账信息。

必须包含: amount(金额, 数字)。
可选包含: receiver_name(收款人名字), date(日期, YYYY-MM-DD), remark(备注)。

只返回一个 JSON 对象，不要输出其他内容。
"""


# 全局业务配置实例（可以在 app.py 中替换）
business_config: BusinessConfig = BraceletWorkshopConfig()
