"""Hallway 客户端"""

import asyncio
from typing import Callable, Optional
from urllib.parse import urlencode

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosedOK

from ..exceptions import ClientNotConnectedError
from ..protocol import Envelope, MessageBuilder
from ..utils import get_logger


class ChatClient:
    """Hallway 聊天客户端

    Usage:
        async with ChatClient("ws://localhost:8080/chat", username="alice") as client:
            await client.send_chat("hi")
            async for envelope in client:
                print(envelope.to_dict())
    """

    def __init__(self, url: str, username: Optional[str] = None):
        self.url = url
        self.username = username
        self.websocket: Optional[ClientConnection] = None

        self.logger = get_logger("hallway.client")

    @property
    def connect_url(self) -> str:
        """带 username 查询参数的连接地址"""
        if self.username is None:
            return self.url
        separator = "&" if "?" in self.url else "?"
        return f"{self.url}{separator}{urlencode({'username': self.username})}"

    @property
    def connected(self) -> bool:
        return self.websocket is not None

    async def connect(self) -> "ChatClient":
        """连接到服务器"""
        self.websocket = await connect(self.connect_url)
        self.logger.debug(f"已连接到 {self.connect_url}")
        return self

    async def close(self) -> None:
        """断开连接"""
        if self.websocket is not None:
            await self.websocket.close()
            self.websocket = None

    async def send(self, envelope: Envelope) -> None:
        """发送信封"""
        await self.send_raw(envelope.to_json())

    async def send_raw(self, data: str) -> None:
        """发送原始文本帧"""
        await self._require_connection().send(data)

    async def send_chat(self, message: str) -> None:
        """发送聊天消息

        用户名由服务器根据连接身份填写，这里带上的值只作参考。
        """
        await self.send(MessageBuilder.chat(self.username or "", message))

    async def receive(self, timeout: Optional[float] = None) -> Envelope:
        """接收下一个信封

        Args:
            timeout: 超时时间（秒），为空时一直等待

        Returns:
            解码后的信封
        """
        raw = await asyncio.wait_for(self._require_connection().recv(), timeout)
        return Envelope.from_json(raw)

    async def receive_until(
        self, predicate: Callable[[Envelope], bool], timeout: Optional[float] = None
    ) -> Envelope:
        """接收信封直到满足条件，跳过其余信封"""

        async def _wait() -> Envelope:
            while True:
                envelope = await self.receive()
                if predicate(envelope):
                    return envelope

        return await asyncio.wait_for(_wait(), timeout)

    def _require_connection(self) -> ClientConnection:
        if self.websocket is None:
            raise ClientNotConnectedError()
        return self.websocket

    def __aiter__(self) -> "ChatClient":
        return self

    async def __anext__(self) -> Envelope:
        try:
            raw = await self._require_connection().recv()
        except ConnectionClosedOK:
            raise StopAsyncIteration
        return Envelope.from_json(raw)

    async def __aenter__(self) -> "ChatClient":
        return await self.connect()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
