"""Tests for the duplex channel and its mock."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest
import websockets

from tutorkit.core.errors import ChannelError
from tutorkit.realtime.channel import (
    ABNORMAL_CLOSURE,
    NORMAL_CLOSURE,
    WebSocketDuplexChannel,
    decode_frame,
)
from tutorkit.realtime.mock import MockDuplexChannel


class TestDecodeFrame:
    def test_text_object(self) -> None:
        assert decode_frame('{"type": "session.created"}') == {"type": "session.created"}

    def test_utf8_bytes(self) -> None:
        assert decode_frame(b'{"setupComplete": {}}') == {"setupComplete": {}}

    @pytest.mark.parametrize("raw", ["not json", "[1, 2]", '"text"', b"\xff\xfe\x00"])
    def test_unusable_frames_dropped(self, raw: str | bytes) -> None:
        assert decode_frame(raw) is None


class TestMockDuplexChannel:
    async def test_open_send_close(self) -> None:
        channel = MockDuplexChannel()
        await channel.open("wss://peer", {"Authorization": "Bearer t"})
        assert channel.is_open
        assert channel.headers == {"Authorization": "Bearer t"}

        await channel.send({"type": "response.create"})
        assert channel.sent_of_type("response.create") == [{"type": "response.create"}]

        await channel.close(NORMAL_CLOSURE, "bye")
        assert not channel.is_open
        assert channel.close_code == NORMAL_CLOSURE
        assert [c.method for c in channel.calls] == ["open", "send", "close"]

    async def test_send_when_closed_raises(self) -> None:
        channel = MockDuplexChannel()
        with pytest.raises(ChannelError):
            await channel.send({"type": "x"})

    async def test_fail_open(self) -> None:
        channel = MockDuplexChannel(fail_open=OSError("refused"))
        with pytest.raises(ChannelError, match="refused"):
            await channel.open("wss://peer")
        assert not channel.is_open

    async def test_simulated_messages_reach_callbacks(self) -> None:
        channel = MockDuplexChannel()
        received: list[dict[str, Any]] = []

        async def on_message(message: dict[str, Any]) -> None:
            received.append(message)

        channel.on_message(on_message)
        await channel.open("wss://peer")
        await channel.simulate_message({"type": "a"})
        await channel.simulate_message({"type": "b"})
        assert [m["type"] for m in received] == ["a", "b"]

    async def test_callback_errors_do_not_stop_others(self) -> None:
        channel = MockDuplexChannel()
        seen: list[str] = []

        def broken(message: dict[str, Any]) -> None:
            raise RuntimeError("boom")

        channel.on_message(broken)
        channel.on_message(lambda m: seen.append(m["type"]))
        await channel.simulate_message({"type": "a"})
        assert seen == ["a"]

    async def test_simulated_close(self) -> None:
        channel = MockDuplexChannel()
        closes: list[tuple[int, str]] = []
        channel.on_close(lambda code, reason: closes.append((code, reason)))
        await channel.open("wss://peer")
        await channel.simulate_close(ABNORMAL_CLOSURE, "network")
        assert closes == [(ABNORMAL_CLOSURE, "network")]
        assert not channel.is_open


class FakeWebSocket:
    """Minimal stand-in for a ``websockets`` client connection."""

    def __init__(self) -> None:
        self.inbound: asyncio.Queue[str | bytes | None] = asyncio.Queue()
        self.sent: list[str] = []
        self.close_code: int | None = None
        self.close_reason: str | None = None
        self.closed_with: tuple[int, str] | None = None

    async def send(self, data: str) -> None:
        self.sent.append(data)

    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        self.closed_with = (code, reason)

    def remote_close(self, code: int | None, reason: str = "") -> None:
        self.close_code = code
        self.close_reason = reason
        self.inbound.put_nowait(None)

    def __aiter__(self) -> FakeWebSocket:
        return self

    async def __anext__(self) -> str | bytes:
        item = await self.inbound.get()
        if item is None:
            raise StopAsyncIteration
        return item


@pytest.fixture
def fake_ws(monkeypatch: pytest.MonkeyPatch) -> FakeWebSocket:
    ws = FakeWebSocket()
    captured: dict[str, Any] = {}

    async def fake_connect(url: str, **kwargs: Any) -> FakeWebSocket:
        captured["url"] = url
        captured.update(kwargs)
        return ws

    monkeypatch.setattr(websockets, "connect", fake_connect)
    ws.connect_args = captured  # type: ignore[attr-defined]
    return ws


class TestWebSocketDuplexChannel:
    async def test_open_passes_headers(self, fake_ws: FakeWebSocket) -> None:
        channel = WebSocketDuplexChannel(open_timeout=3.0)
        await channel.open("wss://peer?model=m", {"Authorization": "Bearer t"})
        args = fake_ws.connect_args  # type: ignore[attr-defined]
        assert args["url"] == "wss://peer?model=m"
        assert args["additional_headers"] == {"Authorization": "Bearer t"}
        assert args["open_timeout"] == 3.0
        assert channel.is_open
        await channel.close()

    async def test_open_failure_wrapped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        async def refuse(url: str, **kwargs: Any) -> None:
            raise OSError("connection refused")

        monkeypatch.setattr(websockets, "connect", refuse)
        channel = WebSocketDuplexChannel()
        with pytest.raises(ChannelError, match="connection refused"):
            await channel.open("wss://peer")
        assert not channel.is_open

    async def test_send_serializes_json(self, fake_ws: FakeWebSocket) -> None:
        channel = WebSocketDuplexChannel()
        await channel.open("wss://peer")
        await channel.send({"type": "response.create"})
        assert json.loads(fake_ws.sent[0]) == {"type": "response.create"}
        await channel.close()

    async def test_send_before_open_raises(self) -> None:
        with pytest.raises(ChannelError):
            await WebSocketDuplexChannel().send({"type": "x"})

    async def test_inbound_frames_decoded(self, fake_ws: FakeWebSocket, advance) -> None:
        channel = WebSocketDuplexChannel()
        received: list[dict[str, Any]] = []
        channel.on_message(received.append)
        await channel.open("wss://peer")

        fake_ws.inbound.put_nowait('{"type": "a"}')
        fake_ws.inbound.put_nowait("garbage")
        fake_ws.inbound.put_nowait(b'{"type": "b"}')
        await advance(10)

        assert [m["type"] for m in received] == ["a", "b"]
        await channel.close()

    async def test_remote_close_reports_code(self, fake_ws: FakeWebSocket, advance) -> None:
        channel = WebSocketDuplexChannel()
        closes: list[tuple[int, str]] = []
        channel.on_close(lambda code, reason: closes.append((code, reason)))
        await channel.open("wss://peer")

        fake_ws.remote_close(4001, "policy")
        await advance(10)

        assert closes == [(4001, "policy")]
        assert not channel.is_open

    async def test_remote_close_without_code_is_abnormal(
        self, fake_ws: FakeWebSocket, advance
    ) -> None:
        channel = WebSocketDuplexChannel()
        closes: list[int] = []
        channel.on_close(lambda code, reason: closes.append(code))
        await channel.open("wss://peer")

        fake_ws.remote_close(None)
        await advance(10)

        assert closes == [ABNORMAL_CLOSURE]

    async def test_local_close_does_not_fire_callbacks(
        self, fake_ws: FakeWebSocket, advance
    ) -> None:
        channel = WebSocketDuplexChannel()
        closes: list[int] = []
        channel.on_close(lambda code, reason: closes.append(code))
        await channel.open("wss://peer")

        await channel.close(NORMAL_CLOSURE, "User disconnect")
        await advance()

        assert closes == []
        assert fake_ws.closed_with == (NORMAL_CLOSURE, "User disconnect")
        assert not channel.is_open

    async def test_close_is_idempotent(self, fake_ws: FakeWebSocket) -> None:
        channel = WebSocketDuplexChannel()
        await channel.open("wss://peer")
        await channel.close()
        await channel.close()
        assert not channel.is_open
