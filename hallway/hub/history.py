"""Hub 聊天历史缓冲区"""

from typing import Iterator, List

from ..protocol import Envelope, ValidationException

MAX_HISTORY = 100


class HistoryBuffer:
    """有上限的聊天历史

    按到达顺序保存最近的聊天信封，超过上限时丢弃最旧的条目。
    只属于 Hub 任务，其他任务不得直接读写。
    """

    def __init__(self, capacity: int = MAX_HISTORY):
        if capacity < 0:
            raise ValueError(f"history capacity must be >= 0, got {capacity}")
        self.capacity = capacity
        self._entries: List[Envelope] = []

    def append(self, envelope: Envelope) -> None:
        """追加一条聊天消息

        Args:
            envelope: 聊天信封

        Raises:
            ValidationException: 当信封不是聊天消息时
        """
        if not envelope.is_chat:
            raise ValidationException(
                f"only chatMessage envelopes are kept in history, got {envelope.type_name!r}"
            )
        self._entries.append(envelope)
        overflow = len(self._entries) - self.capacity
        if overflow > 0:
            del self._entries[:overflow]

    def snapshot(self) -> List[Envelope]:
        """返回当前内容的副本"""
        return list(self._entries)

    def __iter__(self) -> Iterator[Envelope]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
