"""测试用的连接替身和辅助函数"""

import asyncio
from typing import List, Optional

from hallway.hub import Hub, OutboundQueue
from hallway.protocol import Envelope

_EOF = object()


class FakeWebSocket:
    """模拟服务器端连接

    ``feed`` 注入客户端帧，``close`` 之后迭代结束；``sent`` 记录发出的文本帧。
    """

    def __init__(self, frames: Optional[List[str]] = None, fail_send: bool = False):
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.sent: List[str] = []
        self.fail_send = fail_send
        self.closed = False
        self.close_code: Optional[int] = None
        self.close_calls = 0
        for frame in frames or []:
            self.feed(frame)

    def feed(self, frame) -> None:
        self.incoming.put_nowait(frame)

    def fail(self, exc: Exception) -> None:
        self.incoming.put_nowait(exc)

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        while True:
            item = await self.incoming.get()
            if item is _EOF:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def send(self, data: str) -> None:
        if self.fail_send:
            raise OSError("broken pipe")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.close_calls += 1
        if self.closed:
            return
        self.closed = True
        self.close_code = code
        self.incoming.put_nowait(_EOF)

    def sent_envelopes(self) -> List[Envelope]:
        return [Envelope.from_json(raw) for raw in self.sent]


class RecordingHub:
    """只记录请求的 Hub 替身"""

    def __init__(self):
        self.broadcasts: List[Envelope] = []
        self.unregistered = []

    async def broadcast(self, envelope: Envelope) -> None:
        self.broadcasts.append(envelope)

    async def unregister(self, session) -> None:
        self.unregistered.append(session)
        session.outbound.close()


async def settle(hub: Hub, rounds: int = 200) -> None:
    """让出控制权直到 Hub 没有待处理的事件和后台任务"""
    idle = 0
    for _ in range(rounds):
        await asyncio.sleep(0)
        stats = hub.get_stats()
        if stats["pending_events"] == 0 and stats["pending_tasks"] == 0:
            idle += 1
            if idle >= 3:
                return
        else:
            idle = 0
    raise AssertionError(f"hub did not settle: {hub.get_stats()}")


async def drain(queue: OutboundQueue) -> List[Envelope]:
    """取出出站队列中当前所有的信封"""
    items = []
    while len(queue):
        items.append(await queue.get())
    return items
