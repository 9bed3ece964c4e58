"""Hub 事件循环

Hub 是会话集合与聊天历史的唯一所有者。所有变更请求（注册、注销、广播）
都通过同一个入站队列送达，由单个任务按到达顺序逐个处理，因此无需加锁。
"""

import asyncio
from enum import Enum
from typing import Any, Coroutine, Dict, List, Set

from .history import HistoryBuffer, MAX_HISTORY
from .session import Session
from ..exceptions import HubError, HubStoppedError
from ..protocol import Envelope, MessageBuilder
from ..utils import get_logger

DEFAULT_HUB_QUEUE_SIZE = 1024
SLOW_CONSUMER_CLOSE_CODE = 1008


class OverflowPolicy(Enum):
    """出站队列已满时的处理策略"""

    DISCONNECT = "disconnect"  # 移除慢速会话并关闭其连接
    DROP = "drop"  # 仅对该会话丢弃这条消息


class HubEvent(Enum):
    """入站事件类型"""

    REGISTER = "register"
    UNREGISTER = "unregister"
    BROADCAST = "broadcast"
    STOP = "stop"


class Hub:
    """单所有者事件循环

    ``sessions`` 和 ``history`` 只在 ``run`` 所在的任务中被读写。
    事件处理函数内部没有挂起点，每个事件的状态变更与扇出在处理下一个
    事件之前完整结束。
    """

    def __init__(
        self,
        max_history: int = MAX_HISTORY,
        queue_size: int = DEFAULT_HUB_QUEUE_SIZE,
        overflow_policy: OverflowPolicy = OverflowPolicy.DISCONNECT,
    ):
        self._sessions: Set[Session] = set()
        self._history = HistoryBuffer(max_history)
        self._events: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.overflow_policy = OverflowPolicy(overflow_policy)

        # 公告任务：保持引用直到完成
        self._tasks: Set[asyncio.Task] = set()

        self._running = False
        self._stopped = False
        self._dropped = 0
        self._disconnected = 0

        self.logger = get_logger("hallway.hub.manager")

    # ===========================================
    # 对外接口：只负责把事件送入队列
    # ===========================================

    async def register(self, session: Session) -> None:
        """请求注册会话"""
        await self._submit(HubEvent.REGISTER, session)

    async def unregister(self, session: Session) -> None:
        """请求注销会话"""
        await self._submit(HubEvent.UNREGISTER, session)

    async def broadcast(self, envelope: Envelope) -> None:
        """请求向所有会话广播信封"""
        await self._submit(HubEvent.BROADCAST, envelope)

    async def stop(self) -> None:
        """请求结束事件循环，已入队的事件会先被处理"""
        if self._stopped:
            return
        if not self._running:
            self._stopped = True
            return
        await self._events.put((HubEvent.STOP, None))

    async def _submit(self, kind: HubEvent, item: Any) -> None:
        if self._stopped:
            raise HubStoppedError(details={"event": kind.value})
        await self._events.put((kind, item))
        # 等待入队期间 Hub 已退出：这个事件不会再被处理
        if self._stopped:
            raise HubStoppedError(details={"event": kind.value})

    # ===========================================
    # 事件循环
    # ===========================================

    @property
    def running(self) -> bool:
        return self._running

    async def run(self) -> None:
        """Hub 主循环，必须在独立任务中运行"""
        if self._running:
            raise HubError("Hub is already running")
        if self._stopped:
            raise HubStoppedError()

        self._running = True
        self.logger.info("Hub 事件循环启动")

        try:
            while True:
                kind, item = await self._events.get()

                if kind is HubEvent.STOP:
                    break
                elif kind is HubEvent.REGISTER:
                    self._handle_register(item)
                elif kind is HubEvent.UNREGISTER:
                    self._handle_unregister(item)
                elif kind is HubEvent.BROADCAST:
                    self._handle_broadcast(item)
        finally:
            self._running = False
            self._stopped = True
            for task in list(self._tasks):
                task.cancel()
            self._discard_pending()
            self.logger.info("Hub 事件循环结束")

    def _discard_pending(self) -> None:
        """丢弃退出后仍在队列中的事件

        取出事件会唤醒阻塞在 ``put`` 上的提交者；涉及的会话关闭出站队列，
        使其写任务能够结束。
        """
        while not self._events.empty():
            kind, item = self._events.get_nowait()
            if kind in (HubEvent.REGISTER, HubEvent.UNREGISTER):
                item.outbound.close()
            if kind is not HubEvent.STOP:
                self.logger.debug(f"Hub 已停止，丢弃 {kind.value} 事件")

    def _handle_register(self, session: Session) -> None:
        if session in self._sessions:
            self.logger.debug(f"{session.identity} 已注册，忽略重复注册")
            return

        self._sessions.add(session)

        # 回放历史，保证先于之后的任何广播到达
        for envelope in self._history:
            if not self._deliver(session, envelope):
                # 回放时已被断开，离开公告已经发出
                return

        count = len(self._sessions)
        self.logger.info(f"{session.identity} 加入，当前在线 {count}")
        self._announce(count, f"{session.identity} joined")

    def _handle_unregister(self, session: Session) -> None:
        if session not in self._sessions:
            self.logger.debug(f"{session.identity} 未注册，忽略注销")
            return
        self._remove(session)

    def _handle_broadcast(self, envelope: Envelope) -> None:
        if envelope.is_chat:
            self._history.append(envelope)

        for session in list(self._sessions):
            self._deliver(session, envelope)

    def _remove(self, session: Session) -> None:
        self._sessions.discard(session)
        session.outbound.close()
        count = len(self._sessions)
        self.logger.info(f"{session.identity} 离开，当前在线 {count}")
        self._announce(count, f"{session.identity} left")

    def _deliver(self, session: Session, envelope: Envelope) -> bool:
        """非阻塞地把信封放入会话的出站队列

        Returns:
            会话是否仍处于注册状态
        """
        if session.outbound.offer(envelope):
            return True

        if self.overflow_policy is OverflowPolicy.DROP:
            self._dropped += 1
            self.logger.warning(
                f"{session.identity} 的出站队列已满，丢弃一条 {envelope.type_name} 消息"
            )
            return True

        self._disconnected += 1
        self.logger.warning(f"{session.identity} 的出站队列已满，断开慢速客户端")
        self._remove(session)
        self._spawn(session.close(code=SLOW_CONSUMER_CLOSE_CODE, reason="slow consumer"))
        return False

    # ===========================================
    # 公告：必须在独立任务中提交，不能在循环内直接等待
    # ===========================================

    def _announce(self, count: int, text: str) -> None:
        self._spawn(self.broadcast(MessageBuilder.user_count(count)))
        self._spawn(self.broadcast(MessageBuilder.system(text)))

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.warning(f"Hub 后台任务失败: {exc!r}")

    # ===========================================
    # 诊断接口（快照，仅供统计和测试）
    # ===========================================

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def identities(self) -> List[str]:
        return sorted(session.identity for session in self._sessions)

    def history_snapshot(self) -> List[Envelope]:
        return self._history.snapshot()

    def get_stats(self) -> Dict[str, Any]:
        """获取 Hub 统计信息

        Returns:
            统计信息字典
        """
        return {
            "running": self._running,
            "sessions": len(self._sessions),
            "history": len(self._history),
            "pending_events": self._events.qsize(),
            "pending_tasks": len(self._tasks),
            "dropped": self._dropped,
            "disconnected": self._disconnected,
            "overflow_policy": self.overflow_policy.value,
        }
