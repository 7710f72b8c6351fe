"""Controllable media surface: the video player the peer operates."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable

logger = logging.getLogger("tutorkit.tools.surface")


class ControllableMediaSurface(ABC):
    """An opaque video player.

    Methods are synchronous and may raise; the tool dispatcher turns any
    exception into a failed tool result.
    """

    @abstractmethod
    def play(self) -> None: ...

    @abstractmethod
    def pause(self) -> None: ...

    @abstractmethod
    def restart(self) -> None:
        """Seek to the start and play."""
        ...

    @abstractmethod
    def seek_to(self, seconds: float) -> None: ...

    @abstractmethod
    def get_current_time(self) -> float: ...

    @abstractmethod
    def is_paused(self) -> bool: ...


class ReadyGatedSurface(ControllableMediaSurface):
    """Wraps a surface whose player becomes usable only after loading.

    Commands issued before :meth:`mark_ready` are queued and flushed in
    FIFO order, each at most once, when the player reports ready.  A queued
    command that raises is logged and does not block the rest.  Queries
    before ready report position 0 and paused.
    """

    def __init__(self, inner: ControllableMediaSurface) -> None:
        self._inner = inner
        self._ready = False
        self._pending: deque[tuple[str, Callable[[], None]]] = deque()

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def mark_ready(self) -> None:
        """Mark the player ready and run queued commands."""
        self._ready = True
        if self._pending:
            logger.info("Player ready, flushing %d queued command(s)", len(self._pending))
        while self._pending:
            label, action = self._pending.popleft()
            try:
                action()
            except Exception:
                logger.exception("Queued player command %s failed", label)

    def reset(self) -> None:
        """A new video is loading: drop queued commands and wait for ready."""
        self._ready = False
        self._pending.clear()

    def _run_or_queue(self, label: str, action: Callable[[], None]) -> None:
        if self._ready:
            action()
            return
        logger.debug("Player not ready, queueing %s", label)
        self._pending.append((label, action))

    def play(self) -> None:
        self._run_or_queue("play", self._inner.play)

    def pause(self) -> None:
        self._run_or_queue("pause", self._inner.pause)

    def restart(self) -> None:
        self._run_or_queue("restart", self._inner.restart)

    def seek_to(self, seconds: float) -> None:
        self._run_or_queue(f"seek_to({seconds:g})", lambda: self._inner.seek_to(seconds))

    def get_current_time(self) -> float:
        if not self._ready:
            return 0.0
        return self._inner.get_current_time()

    def is_paused(self) -> bool:
        if not self._ready:
            return True
        return self._inner.is_paused()


class MockMediaSurface(ControllableMediaSurface):
    """In-memory player for tests.

    Args:
        duration: Clip length; seeks are clamped to it when set.
        fail_on: Method names that raise ``RuntimeError`` when called.
    """

    def __init__(
        self,
        *,
        position: float = 0.0,
        paused: bool = True,
        duration: float | None = None,
        fail_on: set[str] | None = None,
    ) -> None:
        self.calls: list[str] = []
        self.position = position
        self.paused = paused
        self.duration = duration
        self.fail_on = set(fail_on or ())

    def _record(self, method: str) -> None:
        self.calls.append(method)
        if method in self.fail_on:
            raise RuntimeError(f"{method} failed")

    def play(self) -> None:
        self._record("play")
        self.paused = False

    def pause(self) -> None:
        self._record("pause")
        self.paused = True

    def restart(self) -> None:
        self._record("restart")
        self.position = 0.0
        self.paused = False

    def seek_to(self, seconds: float) -> None:
        self._record("seek_to")
        target = max(0.0, seconds)
        if self.duration is not None:
            target = min(target, self.duration)
        self.position = target

    def get_current_time(self) -> float:
        return self.position

    def is_paused(self) -> bool:
        return self.paused
