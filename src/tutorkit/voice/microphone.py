"""Microphone sources feeding the capture pipeline.

``SoundDeviceMicrophone`` captures from the system microphone using
``sounddevice``; blocks are handed from the PortAudio thread to the event
loop with ``call_soon_threadsafe``.  ``MockMicrophone`` is fed by tests.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

from tutorkit.core.errors import MicrophoneAccessError

logger = logging.getLogger("tutorkit.voice.microphone")

# Returned by read() once the source is closed.
_EOF = b""


class MicrophoneSource(ABC):
    """Live source of int16 mono PCM blocks."""

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    async def open(self, sample_rate: int) -> None:
        """Start capturing.

        Raises:
            MicrophoneAccessError: Permission denied or no usable device.
        """
        ...

    @abstractmethod
    async def read(self) -> bytes:
        """Wait for the next block; ``b""`` means the source was closed."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Stop capturing and release the device."""
        ...


class SoundDeviceMicrophone(MicrophoneSource):
    """System microphone via ``sounddevice``.

    Requires the ``sounddevice`` optional dependency::

        pip install tutorkit[local-audio]

    Args:
        block_duration_ms: Duration of each PortAudio block.
        device: Sounddevice input device index or name (None = default).
    """

    def __init__(self, *, block_duration_ms: int = 20, device: int | str | None = None) -> None:
        self._sd = _import_sounddevice()
        self._block_duration_ms = block_duration_ms
        self._device = device
        self._stream: Any | None = None
        self._queue: asyncio.Queue[bytes] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def name(self) -> str:
        return "SoundDeviceMicrophone"

    async def open(self, sample_rate: int) -> None:
        if self._stream is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        blocksize = int(sample_rate * self._block_duration_ms / 1000)

        def _mic_callback(indata: Any, frames: int, time_info: Any, status: Any) -> None:
            if status:
                logger.warning("Mic status: %s", status)
            loop = self._loop
            if loop is not None and not loop.is_closed():
                loop.call_soon_threadsafe(self._queue.put_nowait, bytes(indata))

        try:
            stream = self._sd.RawInputStream(
                samplerate=sample_rate,
                blocksize=blocksize,
                channels=1,
                dtype="int16",
                device=self._device,
                callback=_mic_callback,
            )
            stream.start()
        except Exception as exc:
            raise MicrophoneAccessError(f"Could not access microphone: {exc}") from exc
        self._stream = stream
        logger.info("Microphone opened: %dHz, block=%dms", sample_rate, self._block_duration_ms)

    async def read(self) -> bytes:
        return await self._queue.get()

    async def close(self) -> None:
        stream = self._stream
        self._stream = None
        if stream is not None:
            try:
                stream.abort()
                stream.close()
            except Exception:
                logger.exception("Error closing microphone stream")
        self._queue.put_nowait(_EOF)


class MockMicrophone(MicrophoneSource):
    """Microphone fed by tests.

    Example:
        mic = MockMicrophone()
        await mic.open(16000)
        mic.feed(b"\\x00\\x00" * 320)
        block = await mic.read()
    """

    def __init__(self, *, deny: bool = False) -> None:
        self.deny = deny
        self.opened_with: list[int] = []
        self.is_open = False
        self._queue: asyncio.Queue[bytes] = asyncio.Queue()

    @property
    def name(self) -> str:
        return "MockMicrophone"

    async def open(self, sample_rate: int) -> None:
        if self.deny:
            raise MicrophoneAccessError("Permission denied")
        self.opened_with.append(sample_rate)
        self._queue = asyncio.Queue()
        self.is_open = True

    def feed(self, pcm: bytes) -> None:
        """Queue a block as if the hardware had produced it."""
        if pcm:
            self._queue.put_nowait(pcm)

    async def read(self) -> bytes:
        return await self._queue.get()

    async def close(self) -> None:
        self.is_open = False
        self._queue.put_nowait(_EOF)


def _import_sounddevice() -> Any:
    """Import sounddevice, raising a clear error if missing."""
    try:
        import sounddevice as _sd

        return _sd
    except ImportError as exc:
        raise ImportError(
            "sounddevice is required for local audio. "
            "Install it with: pip install tutorkit[local-audio]"
        ) from exc
