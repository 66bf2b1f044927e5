import asyncio
import json

import httpx
import pytest

from stockbot.models import InboundMessage
from stockbot.transport import MessageGate, WppConnectSender

NOW = 1_700_000_000.0


def message(**overrides):
    data = {"conversation_id": "5511999990000@c.us", "body": "cuba", "timestamp_seconds": NOW - 10}
    data.update(overrides)
    return InboundMessage(**data)


@pytest.fixture
def gate():
    return MessageGate(freshness_window_seconds=300, clock=lambda: NOW)


def test_fresh_direct_message_is_accepted(gate):
    decision = gate.check(message())
    assert decision.accepted
    assert decision.reason is None


@pytest.mark.parametrize(
    "overrides,reason",
    [
        ({"timestamp_seconds": NOW - 360}, "stale"),
        ({"timestamp_seconds": NOW - 300}, "stale"),
        ({"is_group": True}, "group"),
        ({"is_status": True}, "status"),
        ({"is_broadcast_channel": True}, "broadcast_channel"),
        ({"conversation_id": "120363000000@newsletter"}, "broadcast_channel"),
        ({"body": "   "}, "empty"),
        ({"body": ""}, "empty"),
    ],
)
def test_gate_rejections(gate, overrides, reason):
    decision = gate.check(message(**overrides))
    assert not decision.accepted
    assert decision.reason == reason


def test_staleness_is_checked_before_other_filters(gate):
    decision = gate.check(message(timestamp_seconds=NOW - 3600, is_group=True))
    assert decision.reason == "stale"


def test_sender_posts_reply_to_session_endpoint():
    captured = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(201, json={"status": "success"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    sender = WppConnectSender("http://wpp.local:21465/", "loja", "secret", client=client)
    assert asyncio.run(sender.send_message("5511999990000@c.us", "Olá!"))
    [request] = captured
    assert str(request.url) == "http://wpp.local:21465/api/loja/send-message"
    assert request.headers["Authorization"] == "Bearer secret"
    assert json.loads(request.content) == {"phone": "5511999990000@c.us", "message": "Olá!", "isGroup": False}


def test_sender_reports_failures():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
    sender = WppConnectSender("http://wpp.local", "loja", "", client=client)
    assert asyncio.run(sender.send_message("5511999990000@c.us", "Olá!")) is False
