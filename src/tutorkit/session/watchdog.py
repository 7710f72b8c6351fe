"""Silence watchdog: nudges the peer when the student goes quiet."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

from tutorkit.models.config import SilenceConfig
from tutorkit.models.enums import WatchdogState
from tutorkit.session.prompts import ProactivePromptCycle

logger = logging.getLogger("tutorkit.session.watchdog")

# Sends a proactive user turn (already wrapped in the prompt template).
PromptSender = Callable[[str], Awaitable[None]]


class SilenceWatchdog:
    """Arms a timer after each tutor turn and fires a proactive prompt.

    After :meth:`notify_turn_complete` the watchdog waits a short grace
    period, then until the tutor's audio has finished, and arms only if the
    video is paused (no surface counts as paused).  When the timer expires
    it re-checks both conditions: a playing video suppresses the prompt and
    a busy speaker postpones it by ``retry_interval``.  Any student speech
    (:meth:`on_student_speech`) disarms it.

    Args:
        send_prompt: Coroutine delivering the wrapped prompt to the peer.
        is_speaking: Whether the tutor's audio is still playing.
        is_surface_paused: Whether the video is paused or absent.
        config: Timing and prompt configuration.
        prompts: Prompt cycle; defaults to one built from ``config.prompts``.
    """

    def __init__(
        self,
        *,
        send_prompt: PromptSender,
        is_speaking: Callable[[], bool],
        is_surface_paused: Callable[[], bool],
        config: SilenceConfig | None = None,
        prompts: ProactivePromptCycle | None = None,
    ) -> None:
        self._send_prompt = send_prompt
        self._is_speaking = is_speaking
        self._is_surface_paused = is_surface_paused
        self._config = config or SilenceConfig()
        self._prompts = prompts or ProactivePromptCycle(self._config.prompts)
        self._state = WatchdogState.IDLE
        self._generation = 0
        self._task: asyncio.Task[None] | None = None
        self.prompts_sent = 0

    @property
    def state(self) -> WatchdogState:
        return self._state

    @property
    def is_armed(self) -> bool:
        return self._state == WatchdogState.ARMED

    @property
    def prompts(self) -> ProactivePromptCycle:
        return self._prompts

    def notify_turn_complete(self) -> None:
        """The peer finished a turn; start watching for silence."""
        if not self._config.enabled:
            return
        self._restart(self._watch_turn_end)

    def on_student_speech(self) -> None:
        if self._state == WatchdogState.ARMED:
            logger.debug("Student spoke, silence timer cancelled")
        self.cancel()

    def cancel(self) -> None:
        self._generation += 1
        task = self._task
        self._task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self._state = WatchdogState.IDLE

    def _restart(self, factory: Callable[[int], Coroutine[Any, Any, None]]) -> None:
        self.cancel()
        generation = self._generation
        self._task = asyncio.get_running_loop().create_task(
            factory(generation),
            name="silence_watchdog",
        )

    def _stale(self, generation: int) -> bool:
        return generation != self._generation

    async def _watch_turn_end(self, generation: int) -> None:
        cfg = self._config
        await asyncio.sleep(cfg.turn_end_grace)
        while self._is_speaking():
            if self._stale(generation):
                return
            await asyncio.sleep(cfg.turn_end_poll_interval)
        if self._stale(generation):
            return
        if not self._is_surface_paused():
            logger.debug("Video is playing, silence timer not armed")
            return
        self._state = WatchdogState.ARMED
        logger.debug("Silence timer armed (%.1fs)", cfg.timeout)
        await self._countdown(generation)

    async def _countdown(self, generation: int) -> None:
        cfg = self._config
        delay = cfg.timeout
        while True:
            await asyncio.sleep(delay)
            if self._stale(generation):
                return
            if not self._is_surface_paused():
                logger.debug("Video resumed, proactive prompt suppressed")
                self._state = WatchdogState.IDLE
                return
            if self._is_speaking():
                logger.debug("Tutor still speaking, retrying in %.1fs", cfg.retry_interval)
                delay = cfg.retry_interval
                continue
            break

        self._state = WatchdogState.IDLE
        prompt = self._prompts.next()
        message = cfg.prompt_template.format(prompt=prompt)
        logger.info(
            "Student silent for %.1fs, sending proactive prompt #%d",
            cfg.timeout,
            self._prompts.index,
        )
        self.prompts_sent += 1
        try:
            await self._send_prompt(message)
        except Exception:
            logger.exception("Could not send proactive prompt")
