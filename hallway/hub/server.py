"""Hub WebSocket 服务器"""

import asyncio
from http import HTTPStatus
from typing import Optional
from urllib.parse import parse_qs, urlsplit

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.http11 import Request, Response

from .manager import Hub, OverflowPolicy
from .session import Session, resolve_identity
from ..exceptions import HubStoppedError
from ..utils import HallwayConfig, get_logger

GOING_AWAY_CLOSE_CODE = 1001


class HubServer:
    """Hub WebSocket 服务器

    只有一个可访问路径（默认 ``/chat``）会被升级为 WebSocket，
    其余路径在握手前返回 404。
    """

    def __init__(self, config: Optional[HallwayConfig] = None):
        self.config = config or HallwayConfig()
        self.config.validate()

        self.host = self.config.host
        self.port = self.config.port
        self.path = self.config.path

        # 核心组件
        self.hub = Hub(
            max_history=self.config.max_history,
            queue_size=self.config.hub_queue_size,
            overflow_policy=OverflowPolicy(self.config.overflow_policy),
        )

        # 服务器状态
        self.server: Optional[Server] = None
        self.running = False
        self._hub_task: Optional[asyncio.Task] = None
        self._stopping = False
        self._done = asyncio.Event()
        self._fatal: Optional[BaseException] = None

        self.logger = get_logger("hallway.hub.server")

    async def start(self) -> None:
        """启动 Hub 事件循环和 WebSocket 服务器"""
        if self.running:
            self.logger.warning("服务器已经在运行")
            return

        self.logger.info(f"启动 Hallway 服务器: {self.host}:{self.port}{self.path}")

        self._hub_task = asyncio.create_task(self.hub.run(), name="hallway-hub")
        self._hub_task.add_done_callback(self._on_hub_done)

        try:
            self.server = await serve(
                self._handle_client,
                self.host,
                self.port,
                process_request=self._process_request,
                max_size=self.config.max_message_size,
                ping_interval=self.config.ws_ping_interval,
                ping_timeout=self.config.ws_ping_timeout,
                close_timeout=self.config.ws_close_timeout,
            )
        except Exception as e:
            self.logger.error(f"启动服务器失败: {e}")
            self._stopping = True
            await self.hub.stop()
            await asyncio.gather(self._hub_task, return_exceptions=True)
            raise

        # 端口为 0 时取系统实际分配的端口
        if self.port == 0 and self.server.sockets:
            self.port = self.server.sockets[0].getsockname()[1]

        self.running = True
        self.logger.info(f"Hallway 服务器启动成功，监听端口 {self.port}")

    async def serve_forever(self) -> None:
        """运行直到 ``stop`` 被调用

        Raises:
            HubStoppedError: Hub 事件循环意外退出时
        """
        if not self.running and self._hub_task is None:
            await self.start()
        await self._done.wait()
        if self._fatal is not None:
            raise self._fatal

    async def stop(self) -> None:
        """停止服务器"""
        if not self.running and self.server is None:
            return

        self.logger.info("停止 Hallway 服务器")
        self._stopping = True
        self.running = False

        # 先关闭所有连接，会话借此完成注销
        if self.server:
            self.server.close()
            await self.server.wait_closed()
            self.server = None

        await self.hub.stop()
        if self._hub_task:
            await asyncio.gather(self._hub_task, return_exceptions=True)

        self._done.set()
        self.logger.info("Hallway 服务器已停止")

    def _on_hub_done(self, task: asyncio.Task) -> None:
        if self._stopping or task.cancelled():
            return

        # Hub 一旦退出，注册和广播都永久不可用：整个服务立即失败
        exc = task.exception() or HubStoppedError("Hub event loop exited unexpectedly")
        self.logger.critical(f"Hub 事件循环异常退出: {exc!r}", exc_info=exc)
        self._fatal = exc
        self.running = False
        if self.server:
            self.server.close()
        self._done.set()

    def _process_request(
        self, connection: ServerConnection, request: Request
    ) -> Optional[Response]:
        """握手前的路由分发：只有配置的路径可以升级"""
        if urlsplit(request.path).path != self.path:
            self.logger.debug(f"拒绝未知路径: {request.path}")
            return connection.respond(HTTPStatus.NOT_FOUND, "Not Found\n")
        return None

    async def _handle_client(self, websocket: ServerConnection) -> None:
        """处理客户端连接

        Args:
            websocket: 已完成升级的 WebSocket 连接
        """
        query = parse_qs(urlsplit(websocket.request.path).query)
        identity = resolve_identity(query.get("username", [None])[0])

        session = Session(
            identity, websocket, self.hub, queue_size=self.config.outbound_queue_size
        )

        try:
            await self.hub.register(session)
        except HubStoppedError:
            self.logger.warning(f"Hub 已停止，拒绝 {identity} 的连接")
            await websocket.close(code=GOING_AWAY_CLOSE_CODE, reason="server shutting down")
            return

        self.logger.debug(f"会话建立: {identity} ({websocket.remote_address})")

        try:
            await session.serve()
        except HubStoppedError:
            self.logger.debug(f"Hub 已停止，结束 {identity} 的会话")

    def get_stats(self) -> dict:
        """获取服务器统计信息

        Returns:
            统计信息字典
        """
        return {
            "server": {
                "running": self.running,
                "host": self.host,
                "port": self.port,
                "path": self.path,
            },
            "hub": self.hub.get_stats(),
        }


# 便捷的启动函数
async def start_hub_server(config: Optional[HallwayConfig] = None) -> HubServer:
    """启动 Hub 服务器

    Args:
        config: 服务器配置，默认使用内置默认值

    Returns:
        已启动的服务器实例
    """
    server = HubServer(config)
    await server.start()
    return server
