"""LLM Prompt 定义"""


def get_extraction_prompt(kind: str, config=None) -> str:
    """获取识别提示词

    Args:
        kind: 识别类型，order 或 transfer
        config: 业务配置实例，如果为 None 则使用默认的 business_config
    """
    from config.business_config import business_config
    config = config or business_config
    if kind == "transfer":
        return config.get_transfer_extraction_prompt()
    return config.get_order_extraction_prompt()
