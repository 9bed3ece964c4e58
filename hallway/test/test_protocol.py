#!/usr/bin/env python3
"""测试 Protocol 模块的信封格式"""

import json

import pytest

from hallway.protocol import (
    ChatPayload,
    Envelope,
    EnvelopeType,
    MessageBuilder,
    SerializationException,
    UserCountPayload,
    ValidationException,
)


def test_wire_format_matches_examples():
    """测试三种信封的线上格式"""
    assert (
        MessageBuilder.chat("alice", "hi").to_json()
        == '{"type":"chatMessage","payload":{"username":"alice","message":"hi"}}'
    )
    assert (
        MessageBuilder.system("alice joined").to_json()
        == '{"type":"system","payload":{"text":"alice joined"}}'
    )
    assert (
        MessageBuilder.user_count(3).to_json()
        == '{"type":"userCount","payload":{"count":3}}'
    )


def test_decode_chat_message():
    envelope = Envelope.from_json(
        '{"type":"chatMessage","payload":{"username":"mallory","message":"hi"}}'
    )

    assert envelope.envelope_type is EnvelopeType.CHAT_MESSAGE
    assert envelope.is_chat
    assert envelope.payload == ChatPayload(username="mallory", message="hi")


def test_decode_chat_without_username():
    """客户端可以不带 username，服务器会填写"""
    envelope = Envelope.from_json('{"type":"chatMessage","payload":{"message":"yo"}}')

    assert envelope.payload.username == ""
    assert envelope.payload.message == "yo"


@pytest.mark.parametrize("username", ["null", "7", '["a"]', "{}"])
def test_decode_chat_ignores_non_string_username(username):
    raw = '{"type":"chatMessage","payload":{"username":' + username + ',"message":"hi"}}'

    envelope = Envelope.from_json(raw)

    assert envelope.payload == ChatPayload(username="", message="hi")


def test_decode_accepts_bytes_and_unicode():
    raw = json.dumps(
        {"type": "chatMessage", "payload": {"username": "a", "message": "你好"}},
        ensure_ascii=False,
    ).encode("utf-8")

    envelope = Envelope.from_json(raw)

    assert envelope.payload.message == "你好"
    assert "你好" in envelope.to_json()


def test_unknown_type_is_accepted_but_marked():
    """未知类型不会让解码器抛错"""
    envelope = Envelope.from_json('{"type":"typing","payload":{"on":true}}')

    assert envelope.envelope_type is None
    assert not envelope.is_known
    assert not envelope.is_chat
    assert envelope.type_name == "typing"
    assert envelope.to_dict() == {"type": "typing", "payload": {"on": True}}


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "",
    ],
)
def test_invalid_json_raises_serialization_error(raw):
    with pytest.raises(SerializationException):
        Envelope.from_json(raw)


@pytest.mark.parametrize(
    "raw",
    [
        "[1, 2]",
        '{"payload": {}}',
        '{"type": 7, "payload": {}}',
        '{"type": "chatMessage"}',
        '{"type": "chatMessage", "payload": "hi"}',
        '{"type": "chatMessage", "payload": {"username": "a"}}',
        '{"type": "chatMessage", "payload": {"message": 1}}',
        '{"type": "userCount", "payload": {"count": -1}}',
        '{"type": "userCount", "payload": {"count": true}}',
        '{"type": "system", "payload": {}}',
    ],
)
def test_malformed_envelopes_raise_validation_error(raw):
    with pytest.raises(ValidationException):
        Envelope.from_json(raw)


def test_user_count_decodes():
    envelope = Envelope.from_json('{"type":"userCount","payload":{"count":0}}')
    assert envelope.payload == UserCountPayload(count=0)


def test_with_username_replaces_only_username():
    original = MessageBuilder.chat("mallory", "hi")

    stamped = original.with_username("alice")

    assert stamped.payload == ChatPayload(username="alice", message="hi")
    # 原信封不受影响
    assert original.payload.username == "mallory"


def test_with_username_rejects_non_chat():
    with pytest.raises(ValidationException):
        MessageBuilder.system("hello").with_username("alice")


def test_deeply_nested_frame_raises_serialization_error():
    raw = "[" * 60000 + "]" * 60000

    with pytest.raises(SerializationException):
        Envelope.from_json(raw)
