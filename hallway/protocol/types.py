"""Hallway 类型定义

本模块定义了 Hallway 线上协议的信封类型枚举。
"""

from enum import Enum
from typing import Optional


class EnvelopeType(Enum):
    """信封类型枚举

    每一帧 WebSocket 消息都带有 ``type`` 字段，接收方据此解释 ``payload``。
    """

    SYSTEM = "system"  # 服务器公告（如 "alice joined"）
    USER_COUNT = "userCount"  # 当前在线人数
    CHAT_MESSAGE = "chatMessage"  # 普通聊天消息

    @classmethod
    def lookup(cls, value: str) -> Optional["EnvelopeType"]:
        """按线上字符串查找类型，未知类型返回 None"""
        try:
            return cls(value)
        except ValueError:
            return None
