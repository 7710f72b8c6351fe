"""Duplex JSON channel to the peer."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from tutorkit.core.errors import ChannelError

logger = logging.getLogger("tutorkit.realtime.channel")

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006

# Callback type aliases
ChannelMessageCallback = Callable[[dict[str, Any]], Any]
ChannelCloseCallback = Callable[[int, str], Any]


class DuplexChannel(ABC):
    """Bidirectional message channel carrying JSON objects.

    ``on_close`` callbacks fire only when the remote side (or the network)
    ends the channel; a local :meth:`close` does not report back.
    """

    def __init__(self) -> None:
        self._message_callbacks: list[ChannelMessageCallback] = []
        self._close_callbacks: list[ChannelCloseCallback] = []

    @property
    @abstractmethod
    def name(self) -> str: ...

    @property
    @abstractmethod
    def is_open(self) -> bool: ...

    @abstractmethod
    async def open(self, url: str, headers: dict[str, str] | None = None) -> None:
        """Open the channel; raises :class:`ChannelError` on failure."""
        ...

    @abstractmethod
    async def send(self, message: dict[str, Any]) -> None:
        """Send one JSON message; raises :class:`ChannelError` if not open."""
        ...

    @abstractmethod
    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None: ...

    # -- Callback registration --

    def on_message(self, callback: ChannelMessageCallback) -> None:
        self._message_callbacks.append(callback)

    def on_close(self, callback: ChannelCloseCallback) -> None:
        self._close_callbacks.append(callback)

    # -- Callback helpers --

    async def _fire_message_callbacks(self, message: dict[str, Any]) -> None:
        for cb in self._message_callbacks:
            try:
                result = cb(message)
                if hasattr(result, "__await__"):
                    await result
            except Exception:
                logger.exception("Error in message callback (%s)", self.name)

    async def _fire_close_callbacks(self, code: int, reason: str) -> None:
        for cb in self._close_callbacks:
            try:
                result = cb(code, reason)
                if hasattr(result, "__await__"):
                    await result
            except Exception:
                logger.exception("Error in close callback (%s)", self.name)


def decode_frame(raw: str | bytes) -> dict[str, Any] | None:
    """Decode one inbound frame into a JSON object, or ``None`` if unusable."""
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Dropping undecodable binary frame (%d bytes)", len(raw))
            return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Dropping invalid JSON frame (%d chars)", len(raw))
        return None
    if not isinstance(data, dict):
        logger.warning("Dropping non-object JSON frame (%s)", type(data).__name__)
        return None
    return data


class WebSocketDuplexChannel(DuplexChannel):
    """Duplex channel over a ``websockets`` client connection.

    Requires the ``websockets`` package.

    Example:
        channel = WebSocketDuplexChannel()
        channel.on_message(handle_message)
        channel.on_close(handle_close)
        await channel.open("wss://...", {"Authorization": "Bearer ..."})
        await channel.send({"type": "response.create"})
    """

    def __init__(self, *, open_timeout: float = 10.0) -> None:
        super().__init__()
        self._open_timeout = open_timeout
        self._ws: Any | None = None
        self._receive_task: asyncio.Task[None] | None = None
        self._closing = False

    @property
    def name(self) -> str:
        return "WebSocketDuplexChannel"

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._closing

    async def open(self, url: str, headers: dict[str, str] | None = None) -> None:
        try:
            import websockets
        except ImportError as exc:
            raise ImportError(
                "websockets is required for WebSocketDuplexChannel. "
                "Install with: pip install websockets"
            ) from exc

        if self._ws is not None:
            raise ChannelError("Channel is already open")

        try:
            ws = await websockets.connect(
                url,
                additional_headers=headers or {},
                max_size=None,
                open_timeout=self._open_timeout,
            )
        except Exception as exc:
            raise ChannelError(f"Could not open channel: {exc}") from exc

        self._ws = ws
        self._closing = False
        self._receive_task = asyncio.create_task(self._receive_loop(ws), name="duplex_channel_recv")
        logger.info("Channel open (%s)", url.split("?", 1)[0])

    async def send(self, message: dict[str, Any]) -> None:
        ws = self._ws
        if ws is None or self._closing:
            raise ChannelError("Channel is not open")
        try:
            await ws.send(json.dumps(message))
        except Exception as exc:
            raise ChannelError(f"Send failed: {exc}") from exc

    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        ws = self._ws
        if ws is None:
            return
        self._closing = True
        self._ws = None

        task = self._receive_task
        self._receive_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        try:
            await ws.close(code=code, reason=reason)
        except Exception:
            logger.debug("Error while closing channel", exc_info=True)
        logger.info("Channel closed locally (code=%d)", code)

    async def _receive_loop(self, ws: Any) -> None:
        try:
            async for raw in ws:
                message = decode_frame(raw)
                if message is not None:
                    await self._fire_message_callbacks(message)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.debug("Channel receive loop ended with an error", exc_info=True)

        if self._closing or self._ws is not ws:
            return
        self._ws = None
        self._receive_task = None
        code = getattr(ws, "close_code", None) or ABNORMAL_CLOSURE
        reason = getattr(ws, "close_reason", None) or ""
        if code == NORMAL_CLOSURE:
            logger.info("Channel closed by peer (code=%d)", code)
        else:
            logger.warning("Channel closed abnormally (code=%d, reason=%r)", code, reason)
        await self._fire_close_callbacks(code, reason)
