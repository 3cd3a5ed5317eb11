"""全局配置管理

所有用户可配置项均通过 .env 文件设置，运行时自动加载到此处。
订单识别默认使用 MiniMax（Anthropic 兼容接口）。

使用方式：
    1. 运行 python scripts/setup_env.py 生成 .env 文件
    2. 或手动创建 .env 文件（键名见 scripts/setup_env.py）
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用配置 - 所有字段均可通过 .env 或环境变量覆盖"""

    # ========== 数据库 ==========
    database_url: str = "sqlite:///data/bracelet.db"

    # ========== 订单/转账识别（MiniMax LLM） ==========
    minimax_api_key: str = ""
    minimax_model: str = "MiniMax-M2.5"
    minimax_base_url: str = "https://api.minimaxi.com/anthropic"

    # ========== 业务参数 ==========
    order_no_prefix: str = "ORD"
    page_size: int = 50
    upcoming_window_days: int = 7
    delay_alert_time: str = "09:00"

    # ========== 日志 ==========
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


# 全局配置实例
settings = Settings()
