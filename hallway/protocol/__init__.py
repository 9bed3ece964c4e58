"""Hallway 协议核心模块"""

from .exceptions import (
    ProtocolException,
    ValidationException,
    SerializationException,
)
from .types import EnvelopeType
from .messages import (
    # 载荷类型
    SystemPayload,
    UserCountPayload,
    ChatPayload,
    Payload,  # Union 类型
    # 信封
    Envelope,
    MessageBuilder,
    # 工厂函数
    payload_from_dict,
)

__all__ = [
    # 异常类
    "ProtocolException",
    "ValidationException",
    "SerializationException",
    # 类型枚举
    "EnvelopeType",
    # 载荷类型
    "SystemPayload",
    "UserCountPayload",
    "ChatPayload",
    "Payload",
    # 信封
    "Envelope",
    "MessageBuilder",
    # 工厂函数
    "payload_from_dict",
]
