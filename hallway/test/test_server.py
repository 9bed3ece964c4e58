#!/usr/bin/env python3
"""端到端测试：真实 WebSocket 服务器与客户端"""

import asyncio
import re

import pytest
from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, InvalidStatus

from hallway.client import ChatClient
from hallway.hub import HubServer
from hallway.protocol import EnvelopeType, MessageBuilder
from hallway.utils import HallwayConfig

TIMEOUT = 5


def make_config(**overrides) -> HallwayConfig:
    config = HallwayConfig(host="127.0.0.1", port=0)
    config.update(**overrides)
    return config


def chat_url(server: HubServer, path: str = "/chat") -> str:
    return f"ws://127.0.0.1:{server.port}{path}"


def is_system(text: str):
    return lambda e: e.envelope_type is EnvelopeType.SYSTEM and e.payload.text == text


def test_spoofing_and_departure_between_two_clients():
    async def scenario():
        server = HubServer(make_config())
        await server.start()
        try:
            alice = await ChatClient(chat_url(server), username="alice").connect()
            await alice.receive_until(is_system("alice joined"), TIMEOUT)

            bob = await ChatClient(chat_url(server), username=" bob ").connect()
            await alice.receive_until(is_system("bob joined"), TIMEOUT)

            await alice.send_raw(
                '{"type":"chatMessage","payload":{"username":"mallory","message":"hi"}}'
            )
            received = await bob.receive_until(lambda e: e.is_chat, TIMEOUT)
            assert received.to_dict() == {
                "type": "chatMessage",
                "payload": {"username": "alice", "message": "hi"},
            }
            # 发送者也会收到自己的消息
            echo = await alice.receive_until(lambda e: e.is_chat, TIMEOUT)
            assert echo.payload.username == "alice"

            await bob.close()

            seen_count = seen_left = False
            while not (seen_count and seen_left):
                envelope = await alice.receive(TIMEOUT)
                if envelope.envelope_type is EnvelopeType.USER_COUNT:
                    seen_count = seen_count or envelope.payload.count == 1
                elif envelope.envelope_type is EnvelopeType.SYSTEM:
                    assert envelope.payload.text == "bob left"
                    seen_left = True

            await alice.close()
        finally:
            await server.stop()

    asyncio.run(scenario())


def test_newcomer_receives_history_first():
    async def scenario():
        server = HubServer(make_config())
        await server.start()
        try:
            async with ChatClient(chat_url(server), username="alice") as alice:
                for i in range(3):
                    await alice.send_chat(f"line {i}")
                for i in range(3):
                    await alice.receive_until(
                        lambda e, i=i: e.is_chat and e.payload.message == f"line {i}",
                        TIMEOUT,
                    )

                async with ChatClient(chat_url(server), username="bob") as bob:
                    replay = [await bob.receive(TIMEOUT) for _ in range(3)]
                    assert [e.payload.message for e in replay] == [
                        "line 0",
                        "line 1",
                        "line 2",
                    ]
                    assert all(e.payload.username == "alice" for e in replay)
        finally:
            await server.stop()

    asyncio.run(scenario())


def test_anonymous_identity_when_username_missing():
    async def scenario():
        server = HubServer(make_config())
        await server.start()
        try:
            async with ChatClient(chat_url(server)) as anon:
                joined = await anon.receive_until(
                    lambda e: e.envelope_type is EnvelopeType.SYSTEM, TIMEOUT
                )
                assert re.fullmatch(r"Anon_\d{6} joined", joined.payload.text)
        finally:
            await server.stop()

    asyncio.run(scenario())


def test_only_chat_path_is_upgraded():
    async def scenario():
        server = HubServer(make_config())
        await server.start()
        try:
            with pytest.raises(InvalidStatus) as excinfo:
                await connect(chat_url(server, "/static/index.html"))
            assert excinfo.value.response.status_code == 404
            assert server.hub.session_count == 0
        finally:
            await server.stop()

    asyncio.run(scenario())


def test_stop_closes_connected_clients():
    async def scenario():
        server = HubServer(make_config())
        await server.start()
        client = await ChatClient(chat_url(server), username="carol").connect()
        await client.receive_until(is_system("carol joined"), TIMEOUT)

        await asyncio.wait_for(server.stop(), TIMEOUT)

        with pytest.raises(ConnectionClosed):
            while True:
                await client.receive(TIMEOUT)
        assert not server.running
        assert server.hub.session_count == 0

    asyncio.run(scenario())


def test_hub_failure_is_fatal():
    async def scenario():
        server = HubServer(make_config())
        await server.start()
        serving = asyncio.create_task(server.serve_forever())
        await asyncio.sleep(0)

        def boom(envelope):
            raise RuntimeError("boom")

        server.hub._handle_broadcast = boom
        await server.hub.broadcast(MessageBuilder.system("trigger"))

        with pytest.raises(RuntimeError, match="boom"):
            await asyncio.wait_for(serving, TIMEOUT)
        assert not server.running

        await server.stop()

    asyncio.run(scenario())
