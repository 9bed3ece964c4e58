"""Hallway 工具模块

提供基础设施支持：
- 配置管理 (HallwayConfig)
- 日志系统 (configure_logging, get_logger)
"""

from .logger import (
    get_logger,
    # 便捷函数
    configure_logging,
)
from .config import HallwayConfig

__all__ = [
    # 配置管理
    "HallwayConfig",
    # 日志系统
    "get_logger",
    # 便捷函数
    "configure_logging",
]
