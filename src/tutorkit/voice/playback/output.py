"""Audio outputs that render the peer's speech.

``AudioOutput.play()`` must not return until the buffer has finished
playing (or ``stop()`` cut it short); the playback queue relies on that to
know when the tutor is still talking.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any

import numpy as np

from tutorkit.voice.microphone import _import_sounddevice
from tutorkit.voice.utils import float_to_pcm16

logger = logging.getLogger("tutorkit.voice.playback.output")


class AudioOutput(ABC):
    """Sink for float32 mono audio."""

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    async def play(self, samples: np.ndarray, sample_rate: int) -> None:
        """Play ``samples`` and return once playback completes or is stopped."""
        ...

    @abstractmethod
    def stop(self) -> None:
        """Abort the buffer currently playing, if any."""
        ...

    async def close(self) -> None:  # noqa: B027
        """Release output resources."""


class SoundDeviceOutput(AudioOutput):
    """Speaker output through a callback-driven ``sounddevice`` stream.

    PortAudio pulls samples at the hardware rate; when nothing is queued
    the callback feeds silence so the stream stays alive between buffers.

    Requires the ``sounddevice`` optional dependency::

        pip install tutorkit[local-audio]
    """

    def __init__(self, *, device: int | str | None = None) -> None:
        self._sd = _import_sounddevice()
        self._device = device
        self._stream: Any | None = None
        self._stream_rate: int | None = None
        self._lock = threading.Lock()
        self._buffer = b""
        self._offset = 0
        self._done: asyncio.Future[None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def name(self) -> str:
        return "SoundDeviceOutput"

    def _ensure_stream(self, sample_rate: int) -> None:
        if self._stream is not None and self._stream_rate == sample_rate:
            return
        self._close_stream()
        stream = self._sd.RawOutputStream(
            samplerate=sample_rate,
            channels=1,
            dtype="int16",
            device=self._device,
            latency="high",
            callback=self._speaker_callback,
        )
        stream.start()
        self._stream = stream
        self._stream_rate = sample_rate
        logger.info("Speaker output opened: %dHz", sample_rate)

    async def play(self, samples: np.ndarray, sample_rate: int) -> None:
        if samples.size == 0:
            return
        self._loop = asyncio.get_running_loop()
        self._ensure_stream(sample_rate)
        done: asyncio.Future[None] = self._loop.create_future()
        with self._lock:
            self._buffer = float_to_pcm16(samples)
            self._offset = 0
            self._done = done
        await done

    def stop(self) -> None:
        with self._lock:
            self._buffer = b""
            self._offset = 0
            done = self._done
            self._done = None
        if done is not None and not done.done():
            done.set_result(None)

    def _resolve(self, done: asyncio.Future[None]) -> None:
        if not done.done():
            done.set_result(None)

    def _speaker_callback(self, outdata: Any, frames: int, time_info: Any, status: Any) -> None:
        """Copy pending audio into the PortAudio buffer; pad with silence."""
        if status:
            logger.debug("Speaker status: %s", status)
        needed = frames * 2
        finished: asyncio.Future[None] | None = None
        with self._lock:
            avail = len(self._buffer) - self._offset
            n = min(avail, needed)
            if n > 0:
                outdata[:n] = self._buffer[self._offset : self._offset + n]
                self._offset += n
            if n < needed:
                outdata[n:needed] = b"\x00" * (needed - n)
            if self._done is not None and self._offset >= len(self._buffer):
                finished = self._done
                self._done = None
        if finished is not None and self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._resolve, finished)

    def _close_stream(self) -> None:
        stream = self._stream
        self._stream = None
        self._stream_rate = None
        if stream is not None:
            with contextlib.suppress(Exception):
                stream.stop()
                stream.close()

    async def close(self) -> None:
        self.stop()
        self._close_stream()


class MockAudioOutput(AudioOutput):
    """Output that records buffers instead of playing them.

    By default each buffer "plays" for its real duration multiplied by
    ``time_scale``.  Call :meth:`hold` to make ``play()`` block until
    :meth:`release` (or :meth:`stop`) so tests can observe mid-playback
    state deterministically.
    """

    def __init__(self, *, time_scale: float = 0.0) -> None:
        self.time_scale = time_scale
        self.played: list[np.ndarray] = []
        self.stop_count = 0
        self.closed = False
        self._gate: asyncio.Event | None = None
        self._interrupt = asyncio.Event()

    @property
    def name(self) -> str:
        return "MockAudioOutput"

    def hold(self) -> None:
        self._gate = asyncio.Event()

    def release(self) -> None:
        if self._gate is not None:
            self._gate.set()
        self._gate = None

    @property
    def samples(self) -> np.ndarray:
        """Everything played so far, concatenated."""
        if not self.played:
            return np.zeros(0, dtype=np.float32)
        return np.concatenate(self.played)

    async def play(self, samples: np.ndarray, sample_rate: int) -> None:
        self.played.append(np.array(samples, copy=True))
        self._interrupt = asyncio.Event()
        waiters = [asyncio.ensure_future(self._interrupt.wait())]
        if self._gate is not None:
            waiters.append(asyncio.ensure_future(self._gate.wait()))
        else:
            waiters.append(
                asyncio.ensure_future(asyncio.sleep(samples.size / sample_rate * self.time_scale))
            )
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for w in waiters:
                w.cancel()

    def stop(self) -> None:
        self.stop_count += 1
        self._interrupt.set()
        if self._gate is not None:
            self._gate.set()
            self._gate = None

    async def close(self) -> None:
        self.stop()
        self.closed = True
