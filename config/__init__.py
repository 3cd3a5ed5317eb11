"""配置模块 - 全局配置与业务配置"""
from config.settings import Settings, settings
from config.business_config import BusinessConfig, BraceletWorkshopConfig, business_config

__all__ = [
    "Settings",
    "settings",
    "BusinessConfig",
    "BraceletWorkshopConfig",
    "business_config",
]
