"""
Hallway - 实时聊天扇出中继

主要组件：
- protocol: 信封定义和序列化
- hub: 单所有者事件循环、会话与 WebSocket 服务器
- client: 异步客户端 SDK
- utils: 配置和日志
"""

__version__ = "1.0.0"

# Protocol core
from .protocol import (
    EnvelopeType,
    Envelope,
    SystemPayload,
    UserCountPayload,
    ChatPayload,
    MessageBuilder,
    ProtocolException,
    ValidationException,
    SerializationException,
)

# Hub server
from .hub import (
    HubServer,
    start_hub_server,
    Hub,
    OverflowPolicy,
    Session,
    HistoryBuffer,
    resolve_identity,
)

# Client
from .client import ChatClient

# Utilities
from .utils import HallwayConfig, configure_logging, get_logger

# Exceptions
from .exceptions import (
    HallwayError,
    HubError,
    HubStoppedError,
    SessionError,
    QueueClosedError,
    ClientError,
    ClientNotConnectedError,
    ConfigError,
)

__all__ = [
    # Version info
    "__version__",
    # Protocol core
    "EnvelopeType",
    "Envelope",
    "SystemPayload",
    "UserCountPayload",
    "ChatPayload",
    "MessageBuilder",
    "ProtocolException",
    "ValidationException",
    "SerializationException",
    # Hub server
    "HubServer",
    "start_hub_server",
    "Hub",
    "OverflowPolicy",
    "Session",
    "HistoryBuffer",
    "resolve_identity",
    # Client
    "ChatClient",
    # Utilities
    "HallwayConfig",
    "configure_logging",
    "get_logger",
    # Exceptions
    "HallwayError",
    "HubError",
    "HubStoppedError",
    "SessionError",
    "QueueClosedError",
    "ClientError",
    "ClientNotConnectedError",
    "ConfigError",
]
