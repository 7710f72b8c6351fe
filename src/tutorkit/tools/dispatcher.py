"""Executes peer tool calls exactly once per call id."""

from __future__ import annotations

import asyncio
import json
import logging
import math
import time
from collections.abc import Awaitable, Callable
from typing import Any

from tutorkit.core.errors import ToolExecutionFailure
from tutorkit.models.config import ToolConfig
from tutorkit.models.tool_call import ToolCallRequest, ToolCallResult
from tutorkit.tools.memory import MemorySink
from tutorkit.tools.surface import ControllableMediaSurface

logger = logging.getLogger("tutorkit.tools.dispatcher")

# Sends the result for one call id back to the peer.
ResultSender = Callable[[ToolCallRequest, ToolCallResult], Awaitable[None]]
# Asks the peer to continue after a result (dialect permitting).
ContinuationRequester = Callable[[], Awaitable[None]]

_Handler = Callable[[dict[str, Any], ToolCallRequest], Awaitable[str]]

NO_VIDEO_MESSAGE = "No video loaded"
SUPERSEDED_MESSAGE = "superseded"


def parse_arguments(args_json: str) -> dict[str, Any]:
    """Parse tool arguments; malformed JSON or a non-object yields ``{}``."""
    try:
        args = json.loads(args_json) if args_json else {}
    except (json.JSONDecodeError, TypeError):
        logger.warning("Malformed tool arguments, using {}: %r", args_json)
        return {}
    if not isinstance(args, dict):
        logger.warning("Tool arguments are not an object, using {}: %r", args_json)
        return {}
    return args


def _number(value: Any) -> float | None:
    """Coerce a JSON value to a finite float, or ``None``."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


class _SpeechWait:
    """One outstanding play/restart wait; set when a newer one supersedes it."""

    def __init__(self, call_id: str) -> None:
        self.call_id = call_id
        self.superseded = asyncio.Event()


class ToolDispatcher:
    """Executes tool calls against the media surface and memory sink.

    Every call id is executed at most once (the processed set is cleared by
    :meth:`reset`).  Each executed call produces exactly one result sent
    through ``send_result``, followed by one ``request_continuation`` when
    the dialect needs it.

    ``play_video`` and ``restart_video`` wait until ``is_speaking()`` is
    false, then a short post-speech buffer, so the video never starts over
    the tutor's voice.  Only one such wait is outstanding: a newer
    play/restart answers the older one with a "superseded" failure.

    Args:
        send_result: Coroutine sending a result to the peer.
        is_speaking: Whether the tutor's audio is still playing.
        request_continuation: Coroutine asking the peer to respond, if any.
        surface: Media surface; video tools fail while it is ``None``.
        memory: Memory sink; memory tools fail while it is ``None``.
        config: Timing configuration.
    """

    def __init__(
        self,
        *,
        send_result: ResultSender,
        is_speaking: Callable[[], bool],
        request_continuation: ContinuationRequester | None = None,
        surface: ControllableMediaSurface | None = None,
        memory: MemorySink | None = None,
        config: ToolConfig | None = None,
    ) -> None:
        self._send_result = send_result
        self._is_speaking = is_speaking
        self._request_continuation = request_continuation
        self.surface = surface
        self.memory = memory
        self._config = config or ToolConfig()
        self._processed: set[str] = set()
        self._generation = 0
        self._tasks: set[asyncio.Task[ToolCallResult | None]] = set()
        self._speech_wait: _SpeechWait | None = None
        self._handlers: dict[str, _Handler] = {
            "play_video": self._play_video,
            "pause_video": self._pause_video,
            "restart_video": self._restart_video,
            "seek_video": self._seek_video,
            "seek_backward": self._seek_backward,
            "seek_forward": self._seek_forward,
            "save_student_name": self._save_student_name,
            "save_emotional_observation": self._save_emotional_observation,
        }

    @property
    def processed_ids(self) -> frozenset[str]:
        return frozenset(self._processed)

    @property
    def pending_count(self) -> int:
        return sum(1 for t in self._tasks if not t.done())

    def dispatch(self, request: ToolCallRequest) -> asyncio.Task[ToolCallResult | None] | None:
        """Schedule ``request`` without blocking; ``None`` if it was skipped."""
        if not self._claim(request):
            return None
        task = asyncio.get_running_loop().create_task(
            self._run(request, self._generation),
            name=f"tool_call:{request.name}:{request.call_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def handle(self, request: ToolCallRequest) -> ToolCallResult | None:
        """Execute ``request`` and return its result; ``None`` if skipped."""
        if not self._claim(request):
            return None
        return await self._run(request, self._generation)

    def cancel_pending(self) -> None:
        """Abandon every in-flight call; none of them will send a result."""
        self._generation += 1
        self._speech_wait = None
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    def reset(self) -> None:
        """Forget processed call ids (new session) and cancel in-flight calls."""
        self.cancel_pending()
        self._processed.clear()

    # -- Execution --

    def _claim(self, request: ToolCallRequest) -> bool:
        if not request.call_id:
            logger.error("Skipping tool call %r without a call id", request.name)
            return False
        if request.call_id in self._processed:
            logger.debug(
                "Ignoring replayed tool call %s (%s, via %s)",
                request.call_id,
                request.name,
                request.shape,
            )
            return False
        self._processed.add(request.call_id)
        return True

    async def _run(self, request: ToolCallRequest, generation: int) -> ToolCallResult | None:
        logger.info(
            "Tool call %s(%s) [%s via %s]",
            request.name,
            request.args_json,
            request.call_id,
            request.shape,
        )
        result = await self._execute(request)
        if generation != self._generation:
            logger.debug("Dropping stale result for tool call %s", request.call_id)
            return None

        logger.info("Tool call %s -> ok=%s %s", request.call_id, result.ok, result.message)
        try:
            await self._send_result(request, result)
            if self._request_continuation is not None:
                await self._request_continuation()
        except Exception:
            logger.exception("Could not deliver result for tool call %s", request.call_id)
        return result

    async def _execute(self, request: ToolCallRequest) -> ToolCallResult:
        handler = self._handlers.get(request.name)
        if handler is None:
            logger.warning("Unknown tool %r (call %s)", request.name, request.call_id)
            return ToolCallResult.failure(f"Unknown function: {request.name}")

        args = parse_arguments(request.args_json)
        try:
            message = await handler(args, request)
        except ToolExecutionFailure as exc:
            return ToolCallResult.failure(str(exc))
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Tool %s failed (call %s)", request.name, request.call_id)
            return ToolCallResult.failure(f"Error executing {request.name}: {exc}")
        return ToolCallResult.success(message)

    def _require_surface(self) -> ControllableMediaSurface:
        surface = self.surface
        if surface is None:
            raise ToolExecutionFailure(NO_VIDEO_MESSAGE)
        return surface

    async def _sleep_unless_superseded(self, wait: _SpeechWait, delay: float) -> None:
        try:
            await asyncio.wait_for(wait.superseded.wait(), timeout=delay)
        except TimeoutError:
            return
        raise ToolExecutionFailure(SUPERSEDED_MESSAGE)

    async def _wait_for_speech_end(self, request: ToolCallRequest) -> None:
        """Block until the tutor is quiet, then for the post-speech buffer.

        Raises :class:`ToolExecutionFailure` when superseded or when the
        tutor keeps talking past ``max_speech_wait``.
        """
        previous = self._speech_wait
        if previous is not None:
            logger.info("Tool call %s supersedes %s", request.call_id, previous.call_id)
            previous.superseded.set()
        wait = _SpeechWait(request.call_id)
        self._speech_wait = wait

        cfg = self._config
        deadline = time.monotonic() + cfg.max_speech_wait
        try:
            while True:
                while self._is_speaking():
                    if time.monotonic() >= deadline:
                        raise ToolExecutionFailure(
                            f"Timed out after {cfg.max_speech_wait:g}s waiting for speech to end"
                        )
                    await self._sleep_unless_superseded(wait, cfg.speech_poll_interval)
                logger.debug("Speech ended, %s waits %.1fs", request.name, cfg.post_speech_delay)
                await self._sleep_unless_superseded(wait, cfg.post_speech_delay)
                if not self._is_speaking():
                    return
        finally:
            if self._speech_wait is wait:
                self._speech_wait = None

    # -- Handlers --

    async def _play_video(self, args: dict[str, Any], request: ToolCallRequest) -> str:
        self._require_surface()
        await self._wait_for_speech_end(request)
        self._require_surface().play()
        return "Video playing"

    async def _restart_video(self, args: dict[str, Any], request: ToolCallRequest) -> str:
        self._require_surface()
        await self._wait_for_speech_end(request)
        self._require_surface().restart()
        return "Video restarted from the beginning"

    async def _pause_video(self, args: dict[str, Any], request: ToolCallRequest) -> str:
        self._require_surface().pause()
        return "Video paused"

    async def _seek_video(self, args: dict[str, Any], request: ToolCallRequest) -> str:
        surface = self._require_surface()
        target = max(0.0, _number(args.get("seconds")) or 0.0)
        surface.seek_to(target)
        return f"Video jumped to {target:g} seconds"

    def _offset(self, args: dict[str, Any]) -> float:
        offset = _number(args.get("seconds"))
        if offset is None or offset <= 0:
            return self._config.default_seek_offset
        return offset

    async def _seek_backward(self, args: dict[str, Any], request: ToolCallRequest) -> str:
        surface = self._require_surface()
        offset = self._offset(args)
        target = max(0.0, surface.get_current_time() - offset)
        surface.seek_to(target)
        return f"Video went back {offset:g} seconds to {target:g}s"

    async def _seek_forward(self, args: dict[str, Any], request: ToolCallRequest) -> str:
        surface = self._require_surface()
        offset = self._offset(args)
        target = surface.get_current_time() + offset
        surface.seek_to(target)
        return f"Video skipped forward {offset:g} seconds to {target:g}s"

    async def _save_student_name(self, args: dict[str, Any], request: ToolCallRequest) -> str:
        name = _text(args.get("name"))
        if name is None or self.memory is None:
            raise ToolExecutionFailure("Could not save the name")
        result = self.memory.save_student_name(name)
        if hasattr(result, "__await__"):
            await result
        return f'Name "{name}" saved to memory'

    async def _save_emotional_observation(
        self, args: dict[str, Any], request: ToolCallRequest
    ) -> str:
        emotion = _text(args.get("emotion"))
        context = _text(args.get("context"))
        if emotion is None or context is None or self.memory is None:
            raise ToolExecutionFailure("Could not record the observation")
        result = self.memory.save_emotional_observation(emotion, context)
        if hasattr(result, "__await__"):
            await result
        return f"Emotional observation recorded: {emotion}"
