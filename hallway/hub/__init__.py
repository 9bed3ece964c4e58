"""
Hub 服务器模块

中央扇出和会话管理：
- 服务器实现
- 单所有者事件循环
- 会话读写任务
- 聊天历史
"""

from .server import HubServer, start_hub_server
from .manager import Hub, HubEvent, OverflowPolicy
from .session import Session, OutboundQueue, resolve_identity
from .history import HistoryBuffer, MAX_HISTORY

__all__ = [
    "HubServer",
    "start_hub_server",
    "Hub",
    "HubEvent",
    "OverflowPolicy",
    "Session",
    "OutboundQueue",
    "resolve_identity",
    "HistoryBuffer",
    "MAX_HISTORY",
]
