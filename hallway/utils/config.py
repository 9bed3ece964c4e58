"""Hallway 配置管理

本模块提供统一的配置管理接口，支持环境变量、默认值和运行时配置。
配置优先级：运行时设置（命令行参数）> 环境变量 > 默认值
"""

import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional

from ..exceptions import ConfigError

ENV_PREFIX = "HALLWAY_"
OVERFLOW_POLICIES = ("disconnect", "drop")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class HallwayConfig:
    """Hallway 配置类

    包含服务器、Hub 和日志的所有配置选项。
    """

    # 服务器配置
    host: str = "0.0.0.0"
    port: int = 8080
    path: str = "/chat"

    # Hub 配置
    max_history: int = 100
    outbound_queue_size: int = 256
    hub_queue_size: int = 1024
    overflow_policy: str = "disconnect"

    # WebSocket 配置
    ws_ping_interval: float = 30.0
    ws_ping_timeout: float = 10.0
    ws_close_timeout: float = 10.0
    max_message_size: int = 65536

    # 日志配置
    log_level: str = "INFO"
    log_file: Optional[str] = None
    enable_rich_logging: bool = True

    # 自定义配置
    custom: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "HallwayConfig":
        """从环境变量创建配置

        读取环境变量并创建配置实例。环境变量格式：HALLWAY_<配置名>

        Returns:
            从环境变量读取的配置实例

        Raises:
            ConfigError: 当环境变量无法转换为对应类型时
        """
        config = cls()

        try:
            # 服务器配置
            config.host = os.getenv("HALLWAY_HOST", config.host)
            config.port = int(os.getenv("HALLWAY_PORT", str(config.port)))
            config.path = os.getenv("HALLWAY_PATH", config.path)

            # Hub 配置
            config.max_history = int(
                os.getenv("HALLWAY_MAX_HISTORY", str(config.max_history))
            )
            config.outbound_queue_size = int(
                os.getenv("HALLWAY_OUTBOUND_QUEUE_SIZE", str(config.outbound_queue_size))
            )
            config.hub_queue_size = int(
                os.getenv("HALLWAY_HUB_QUEUE_SIZE", str(config.hub_queue_size))
            )
            config.overflow_policy = os.getenv(
                "HALLWAY_OVERFLOW_POLICY", config.overflow_policy
            ).lower()

            # WebSocket 配置
            config.ws_ping_interval = float(
                os.getenv("HALLWAY_WS_PING_INTERVAL", str(config.ws_ping_interval))
            )
            config.ws_ping_timeout = float(
                os.getenv("HALLWAY_WS_PING_TIMEOUT", str(config.ws_ping_timeout))
            )
            config.ws_close_timeout = float(
                os.getenv("HALLWAY_WS_CLOSE_TIMEOUT", str(config.ws_close_timeout))
            )
            config.max_message_size = int(
                os.getenv("HALLWAY_MAX_MESSAGE_SIZE", str(config.max_message_size))
            )
        except ValueError as e:
            raise ConfigError(f"Invalid environment configuration: {e}")

        # 日志配置
        config.log_level = os.getenv("HALLWAY_LOG_LEVEL", config.log_level)
        config.log_file = os.getenv("HALLWAY_LOG_FILE", config.log_file)
        config.enable_rich_logging = _env_bool(
            "HALLWAY_ENABLE_RICH_LOGGING", config.enable_rich_logging
        )

        return config

    def validate(self) -> None:
        """校验配置取值

        Raises:
            ConfigError: 当某个配置项取值无效时
        """
        if not 0 <= self.port <= 65535:
            raise ConfigError(f"port out of range: {self.port}", {"port": self.port})
        if not self.path.startswith("/"):
            raise ConfigError(f"path must start with '/': {self.path!r}")
        if self.max_history < 0:
            raise ConfigError(f"max_history must be >= 0: {self.max_history}")
        if self.outbound_queue_size < 1:
            raise ConfigError(
                f"outbound_queue_size must be >= 1: {self.outbound_queue_size}"
            )
        if self.hub_queue_size < 1:
            raise ConfigError(f"hub_queue_size must be >= 1: {self.hub_queue_size}")
        if self.overflow_policy not in OVERFLOW_POLICIES:
            raise ConfigError(
                f"overflow_policy must be one of {OVERFLOW_POLICIES}: {self.overflow_policy!r}"
            )

    def update(self, **kwargs) -> None:
        """更新配置项

        值为 None 的参数会被忽略，方便直接传入未设置的命令行参数。

        Args:
            **kwargs: 要更新的配置项
        """
        for key, value in kwargs.items():
            if value is None:
                continue
            if key != "custom" and hasattr(self, key):
                setattr(self, key, value)
            else:
                self.custom[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """获取配置项

        Args:
            key: 配置项名称
            default: 默认值

        Returns:
            配置项的值
        """
        if key != "custom" and hasattr(self, key):
            return getattr(self, key)
        return self.custom.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典

        Returns:
            配置的字典表示
        """
        result = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "custom"}

        # 添加自定义配置
        result.update(self.custom)
        return result
