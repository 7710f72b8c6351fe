"""Serialised, interruptible playback of the peer's audio."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque

import numpy as np

from tutorkit.models.config import PlaybackConfig
from tutorkit.voice.audio_frame import AudioFrame
from tutorkit.voice.playback.dynamics import OutputChain
from tutorkit.voice.playback.output import AudioOutput
from tutorkit.voice.utils import decode_pcm_base64

logger = logging.getLogger("tutorkit.voice.playback.queue")


class PlaybackQueue:
    """Buffers peer audio chunks and plays them back as continuous audio.

    A single playback task drains *every* queued chunk, concatenates them
    into one buffer (avoiding audible seams between chunks), runs it
    through the output chain and waits for the output to finish before
    looking at the queue again.  Chunks that arrive mid-playback are
    picked up by the next iteration.

    ``is_speaking`` is True from the first chunk until the queue drains
    and the last buffer has finished.  :meth:`flush` empties the queue
    and clears the flag immediately, even mid-buffer.

    Args:
        output: Where audio is rendered.
        sample_rate: Rate of the incoming PCM (peer output rate).
        config: Output chain settings.
    """

    def __init__(
        self,
        output: AudioOutput,
        *,
        sample_rate: int = 24000,
        config: PlaybackConfig | None = None,
    ) -> None:
        self._output = output
        self._sample_rate = sample_rate
        self._chain = OutputChain(sample_rate, config)
        self._queue: deque[AudioFrame] = deque()
        self._sequence = 0
        self._speaking = False
        self._closed = False
        # Bumped on flush so a running loop knows its buffer is stale.
        self._generation = 0
        self._task: asyncio.Task[None] | None = None
        self._idle = asyncio.Event()
        self._idle.set()
        self.chunks_played = 0
        self.samples_played = 0

    @property
    def is_speaking(self) -> bool:
        return self._speaking

    @property
    def pending_chunks(self) -> int:
        return len(self._queue)

    @property
    def is_idle(self) -> bool:
        """Not speaking and nothing queued."""
        return not self._speaking and not self._queue

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    def push(self, audio_b64: str) -> bool:
        """Queue a base64 PCM chunk; returns False if it was dropped."""
        if self._closed:
            logger.debug("Dropping audio chunk: playback queue closed")
            return False
        try:
            pcm = decode_pcm_base64(audio_b64)
        except ValueError:
            logger.warning("Dropping malformed audio chunk (%d chars)", len(audio_b64))
            return False
        if len(pcm) < 2:
            return False
        if len(pcm) % 2:
            pcm = pcm[:-1]
        frame = AudioFrame(data=pcm, sample_rate=self._sample_rate, sequence=self._sequence)
        self._sequence += 1
        self._queue.append(frame)

        if not self._speaking:
            self._speaking = True
            self._idle.clear()
            generation = self._generation
            self._task = asyncio.get_running_loop().create_task(
                self._run(generation), name="playback_queue"
            )
        return True

    async def _run(self, generation: int) -> None:
        try:
            while generation == self._generation and self._queue:
                frames = list(self._queue)
                self._queue.clear()
                merged = np.concatenate([f.to_float() for f in frames])
                buffer = self._chain.process(merged)
                logger.debug(
                    "Playing %d chunk(s), %.0fms (seq %d-%d)",
                    len(frames),
                    merged.size * 1000 / self._sample_rate,
                    frames[0].sequence,
                    frames[-1].sequence,
                )
                await self._output.play(buffer, self._sample_rate)
                if generation != self._generation:
                    return
                self.chunks_played += len(frames)
                self.samples_played += merged.size
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Playback failed; dropping queued audio")
            if generation == self._generation:
                self._queue.clear()
        finally:
            if generation == self._generation:
                self._speaking = False
                self._task = None
                self._idle.set()

    def flush(self) -> int:
        """Discard queued audio and stop the current buffer.

        Returns the number of chunks discarded from the queue.
        """
        dropped = len(self._queue)
        self._generation += 1
        self._queue.clear()
        was_speaking = self._speaking
        self._speaking = False
        self._chain.reset()
        task = self._task
        self._task = None
        if was_speaking:
            self._output.stop()
        if task is not None and not task.done():
            task.cancel()
        self._idle.set()
        if was_speaking or dropped:
            logger.info("Playback flushed (%d queued chunk(s) dropped)", dropped)
        return dropped

    async def wait_until_idle(self) -> None:
        await self._idle.wait()

    async def close(self) -> None:
        """Flush and refuse further audio."""
        task = self._task
        self.flush()
        self._closed = True
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task
