"""Hallway 消息格式定义

本模块定义了 Hallway 的信封结构与三种载荷，所有消息都提供了内置的 JSON
序列化和反序列化方法。

线上格式::

    {"type": "chatMessage", "payload": {"username": "alice", "message": "hi"}}
    {"type": "system", "payload": {"text": "alice joined"}}
    {"type": "userCount", "payload": {"count": 3}}
"""

import json
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Union

from .types import EnvelopeType
from .exceptions import SerializationException, ValidationException


# === 载荷类型定义 ===


@dataclass(frozen=True)
class SystemPayload:
    """服务器公告载荷"""

    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SystemPayload":
        text = data.get("text")
        if not isinstance(text, str):
            raise ValidationException("system payload requires a string 'text'")
        return cls(text=text)


@dataclass(frozen=True)
class UserCountPayload:
    """在线人数载荷"""

    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"count": self.count}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserCountPayload":
        count = data.get("count")
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise ValidationException(
                "userCount payload requires a non-negative integer 'count'"
            )
        return cls(count=count)


@dataclass(frozen=True)
class ChatPayload:
    """聊天消息载荷

    ``username`` 由客户端提供时只作参考，经过 Hub 之前一定会被会话身份覆盖。
    """

    username: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"username": self.username, "message": self.message}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatPayload":
        message = data.get("message")
        if not isinstance(message, str):
            raise ValidationException("chatMessage payload requires a string 'message'")
        # 客户端的 username 无论类型如何都会被会话身份覆盖
        username = data.get("username")
        if not isinstance(username, str):
            username = ""
        return cls(username=username, message=message)


# Union 类型定义
Payload = Union[SystemPayload, UserCountPayload, ChatPayload]

_PAYLOAD_TYPES = {
    EnvelopeType.SYSTEM: SystemPayload,
    EnvelopeType.USER_COUNT: UserCountPayload,
    EnvelopeType.CHAT_MESSAGE: ChatPayload,
}


def payload_from_dict(envelope_type: EnvelopeType, data: Any) -> Payload:
    """按信封类型解析载荷（工厂函数）"""
    if not isinstance(data, dict):
        raise ValidationException(
            f"payload of {envelope_type.value} must be an object, got {type(data).__name__}"
        )
    return _PAYLOAD_TYPES[envelope_type].from_dict(data)


@dataclass(frozen=True)
class Envelope:
    """Hallway 信封消息格式

    ``envelope_type`` 为 None 表示收到了未知类型的帧：解码器接受它，
    但 Hub 永远不会转发它。此时 ``raw_type`` 保存原始类型字符串，
    ``payload`` 保存未解析的原始载荷。
    """

    envelope_type: Optional[EnvelopeType]
    payload: Any
    raw_type: Optional[str] = None

    @property
    def type_name(self) -> Optional[str]:
        """线上使用的类型字符串"""
        if self.envelope_type is not None:
            return self.envelope_type.value
        return self.raw_type

    @property
    def is_known(self) -> bool:
        return self.envelope_type is not None

    @property
    def is_chat(self) -> bool:
        return self.envelope_type is EnvelopeType.CHAT_MESSAGE

    def with_username(self, username: str) -> "Envelope":
        """返回用户名被替换后的聊天信封副本

        Args:
            username: 会话解析出的身份

        Returns:
            新的 Envelope 实例

        Raises:
            ValidationException: 当信封不是聊天消息时
        """
        if not self.is_chat:
            raise ValidationException(
                f"cannot set username on {self.type_name!r} envelope"
            )
        return replace(self, payload=replace(self.payload, username=username))

    def to_dict(self) -> Dict[str, Any]:
        """序列化为字典"""
        payload = self.payload
        if hasattr(payload, "to_dict"):
            payload = payload.to_dict()
        return {"type": self.type_name, "payload": payload}

    @classmethod
    def from_dict(cls, data: Any) -> "Envelope":
        """从字典反序列化

        Args:
            data: 解码后的 JSON 对象

        Returns:
            Envelope 实例，未知类型时 ``envelope_type`` 为 None

        Raises:
            ValidationException: 当结构无效时
        """
        if not isinstance(data, dict):
            raise ValidationException("envelope must be a JSON object")

        raw_type = data.get("type")
        if not isinstance(raw_type, str):
            raise ValidationException("envelope requires a string 'type'")

        envelope_type = EnvelopeType.lookup(raw_type)
        if envelope_type is None:
            return cls(envelope_type=None, payload=data.get("payload"), raw_type=raw_type)

        if "payload" not in data:
            raise ValidationException(f"{raw_type} envelope requires a 'payload'")

        return cls(
            envelope_type=envelope_type,
            payload=payload_from_dict(envelope_type, data["payload"]),
        )

    def to_json(self) -> str:
        """序列化为JSON字符串"""
        try:
            return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            raise SerializationException(f"Failed to serialize envelope: {e}")

    @classmethod
    def from_json(cls, raw: Union[str, bytes]) -> "Envelope":
        """从JSON字符串反序列化"""
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError, RecursionError) as e:
            raise SerializationException(f"Invalid JSON format: {e}")
        return cls.from_dict(data)


class MessageBuilder:
    """消息构建器"""

    @staticmethod
    def system(text: str) -> Envelope:
        """创建服务器公告"""
        return Envelope(EnvelopeType.SYSTEM, SystemPayload(text=text))

    @staticmethod
    def user_count(count: int) -> Envelope:
        """创建在线人数消息"""
        return Envelope(EnvelopeType.USER_COUNT, UserCountPayload(count=count))

    @staticmethod
    def chat(username: str, message: str) -> Envelope:
        """创建聊天消息"""
        return Envelope(
            EnvelopeType.CHAT_MESSAGE, ChatPayload(username=username, message=message)
        )
