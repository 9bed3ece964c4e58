"""
Hallway 会话

一个会话对应一条 WebSocket 连接，由读任务和写任务组成，
二者共享同一个出站队列和会话身份。
"""

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from websockets.asyncio.server import ServerConnection
from websockets.exceptions import ConnectionClosed

from ..exceptions import HubStoppedError, QueueClosedError
from ..protocol import Envelope, ProtocolException
from ..utils import get_logger

if TYPE_CHECKING:
    from .manager import Hub

DEFAULT_QUEUE_SIZE = 256
ANON_PREFIX = "Anon_"
ANON_TIME_FORMAT = "%H%M%S"

_CLOSED = object()


def resolve_identity(raw: Optional[str], now: Optional[datetime] = None) -> str:
    """解析会话身份

    Args:
        raw: 客户端提供的用户名（查询参数），可为空
        now: 当前时间，默认取服务器本地时间

    Returns:
        去除首尾空白后的用户名；为空时返回 ``Anon_<HHMMSS>``
    """
    name = (raw or "").strip()
    if name:
        return name
    now = now or datetime.now()
    return f"{ANON_PREFIX}{now.strftime(ANON_TIME_FORMAT)}"


class OutboundQueue:
    """有界出站队列

    生产者（Hub）通过非阻塞的 ``offer`` 写入，队列满时由 Hub 决定处理策略；
    消费者（写任务）通过 ``get`` 读取。关闭后已入队的信封仍会被取完，
    之后 ``get`` 返回 None。
    """

    def __init__(self, capacity: int = DEFAULT_QUEUE_SIZE, name: str = ""):
        if capacity < 1:
            raise ValueError(f"queue capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self.name = name
        # 容量由 offer 自行限制，底层队列不设上限以便关闭标记总能入队
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._drained = False

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, envelope: Envelope) -> bool:
        """尝试入队

        Args:
            envelope: 要发送的信封

        Returns:
            入队成功返回 True，队列已满返回 False

        Raises:
            QueueClosedError: 队列已关闭
        """
        if self._closed:
            raise QueueClosedError(self.name)
        if len(self) >= self.capacity:
            return False
        self._queue.put_nowait(envelope)
        return True

    def close(self) -> bool:
        """关闭队列，重复关闭返回 False"""
        if self._closed:
            return False
        self._closed = True
        self._queue.put_nowait(_CLOSED)
        return True

    async def get(self) -> Optional[Envelope]:
        """取出下一个信封，队列关闭且取空后返回 None"""
        if self._drained:
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            self._drained = True
            return None
        return item

    def __len__(self) -> int:
        pending = self._queue.qsize()
        if self._closed and not self._drained:
            pending -= 1
        return pending


class Session:
    """客户端会话"""

    def __init__(
        self,
        identity: str,
        websocket: ServerConnection,
        hub: "Hub",
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ):
        self.identity = identity
        self.websocket = websocket
        self.hub = hub
        self.outbound = OutboundQueue(queue_size, name=identity)
        self.connected_at = datetime.now()
        self._left = False

        self.logger = get_logger("hallway.hub.session")

    def __repr__(self) -> str:
        return f"Session({self.identity!r})"

    @property
    def has_left(self) -> bool:
        return self._left

    async def serve(self) -> None:
        """并发运行读任务和写任务，二者都结束后返回"""
        await asyncio.gather(self.read_pump(), self.write_pump())

    async def read_pump(self) -> None:
        """读取客户端帧并把聊天消息转发给 Hub

        任何读取失败（无效帧、关闭帧、网络错误）都同样结束循环，
        结束时触发一次注销。
        """
        try:
            async for raw in self.websocket:
                envelope = Envelope.from_json(raw)
                if not envelope.is_chat:
                    self.logger.debug(
                        f"忽略来自 {self.identity} 的 {envelope.type_name!r} 帧"
                    )
                    continue

                # 以服务器解析的身份覆盖客户端提供的用户名
                await self.hub.broadcast(envelope.with_username(self.identity))

        except ProtocolException as e:
            self.logger.debug(f"会话 {self.identity} 收到无效帧: {e}")
        except ConnectionClosed as e:
            self.logger.debug(f"会话 {self.identity} 连接已断开: {e}")
        finally:
            await self.leave()

    async def write_pump(self) -> None:
        """把出站队列中的信封写入连接

        队列被 Hub 关闭并取空后正常结束；写入失败时记录日志并注销会话。
        """
        while True:
            envelope = await self.outbound.get()
            if envelope is None:
                break

            try:
                await self.websocket.send(envelope.to_json())
            except ConnectionClosed as e:
                self.logger.debug(f"写入 {self.identity} 时连接已关闭: {e}")
                await self.leave()
                return
            except Exception as e:
                self.logger.warning(f"写入 {self.identity} 失败: {e}")
                await self.leave()
                return

        await self.close()

    async def leave(self) -> None:
        """注销会话（只有第一次调用生效）"""
        if self._left:
            return
        self._left = True

        try:
            await self.hub.unregister(self)
        except HubStoppedError:
            self.logger.debug(f"Hub 已停止，本地关闭 {self.identity} 的出站队列")
            self.outbound.close()
        finally:
            await self.close()

    async def close(self, code: int = 1000, reason: str = "") -> None:
        """关闭底层连接"""
        await self.websocket.close(code=code, reason=reason)
