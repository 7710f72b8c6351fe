"""SessionController: owns one tutoring session with a realtime peer."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Sequence
from typing import Any

from tutorkit.core.errors import (
    ChannelError,
    CredentialError,
    MicrophoneAccessError,
    NotConnectedError,
)
from tutorkit.models.config import SessionConfig
from tutorkit.models.enums import ConnectionStep, SessionState, TranscriptRole
from tutorkit.models.identity import StudentIdentity
from tutorkit.models.tool_call import ToolCallRequest, ToolCallResult
from tutorkit.realtime.channel import NORMAL_CLOSURE, DuplexChannel, WebSocketDuplexChannel
from tutorkit.realtime.credentials import CredentialIssuer
from tutorkit.realtime.events import (
    AudioDelta,
    Interrupted,
    PeerError,
    PeerEvent,
    SessionReady,
    SpeechStarted,
    SpeechStopped,
    ToolCallsReceived,
    TranscriptDone,
    TurnCompleted,
)
from tutorkit.realtime.protocol import PeerProtocol
from tutorkit.session.prompts import ProactivePromptCycle
from tutorkit.session.watchdog import SilenceWatchdog
from tutorkit.tools.declarations import TUTOR_TOOLS, ToolDeclaration
from tutorkit.tools.dispatcher import ToolDispatcher
from tutorkit.tools.memory import MemorySink
from tutorkit.tools.surface import ControllableMediaSurface
from tutorkit.voice.capture.sink import AudioCaptureSink, CaptureStats
from tutorkit.voice.microphone import MicrophoneSource
from tutorkit.voice.playback.output import AudioOutput
from tutorkit.voice.playback.queue import PlaybackQueue

logger = logging.getLogger("tutorkit.session.controller")

# Callback type aliases
StateCallback = Callable[[SessionState], Any]
ConnectionStepCallback = Callable[[ConnectionStep], Any]
TranscriptCallback = Callable[[str, TranscriptRole], Any]
ErrorCallback = Callable[[str], Any]

DISCONNECT_REASON = "User disconnect"

# Capture stats are logged every N sent frames.
_STATS_LOG_INTERVAL = 100


class _Session:
    """Per-connection state, discarded on disconnect."""

    def __init__(
        self,
        generation: int,
        channel: DuplexChannel,
        playback: PlaybackQueue,
        dispatcher: ToolDispatcher,
        watchdog: SilenceWatchdog,
    ) -> None:
        self.generation = generation
        self.channel = channel
        self.playback = playback
        self.dispatcher = dispatcher
        self.watchdog = watchdog


class SessionController:
    """Runs a voice tutoring session against a realtime peer.

    The controller obtains a credential, opens the duplex channel, sends
    the configuration frame and then routes inbound events: audio to the
    playback queue, tool calls to the dispatcher, turn boundaries to the
    silence watchdog, transcripts and errors to the registered callbacks.
    Microphone audio flows out through the capture sink while listening.

    Only the controller changes :attr:`state`.  Every connection gets a
    fresh generation number; events from an older channel, or arriving
    after :meth:`disconnect`, are dropped.

    Example:
        controller = SessionController(
            protocol=OpenAIRealtimeProtocol(),
            credentials=StaticCredentialIssuer(api_key),
            output=SoundDeviceOutput(),
            microphone=SoundDeviceMicrophone(),
        )
        controller.on_transcript(lambda text, role: print(role, text))
        await controller.connect()
        await controller.start_listening()
    """

    def __init__(
        self,
        *,
        protocol: PeerProtocol,
        credentials: CredentialIssuer,
        output: AudioOutput,
        microphone: MicrophoneSource | None = None,
        channel_factory: Callable[[], DuplexChannel] = WebSocketDuplexChannel,
        config: SessionConfig | None = None,
        student: StudentIdentity | None = None,
        surface: ControllableMediaSurface | None = None,
        memory: MemorySink | None = None,
        tools: Sequence[ToolDeclaration] = TUTOR_TOOLS,
    ) -> None:
        self._protocol = protocol
        self._credentials = credentials
        self._output = output
        self._microphone = microphone
        self._channel_factory = channel_factory
        self._config = config or SessionConfig()
        self._student = student
        self._surface = surface
        self._memory = memory
        self._tools = tuple(tools)
        self._prompts = ProactivePromptCycle(self._config.silence.prompts)

        self._state = SessionState.DISCONNECTED
        self._step = ConnectionStep.IDLE
        self._generation = 0
        self._session: _Session | None = None

        self._listening = False
        self._capture_task: asyncio.Task[None] | None = None
        self._capture: AudioCaptureSink | None = None

        # Callbacks
        self._state_callbacks: list[StateCallback] = []
        self._step_callbacks: list[ConnectionStepCallback] = []
        self._transcript_callbacks: list[TranscriptCallback] = []
        self._error_callbacks: list[ErrorCallback] = []

        self._event_handlers: dict[type, Callable[[_Session, Any], None]] = {
            AudioDelta: self._handle_audio,
            TranscriptDone: self._handle_transcript,
            ToolCallsReceived: self._handle_tool_calls,
            SpeechStarted: self._handle_speech_started,
            SpeechStopped: self._handle_speech_stopped,
            TurnCompleted: self._handle_turn_completed,
            Interrupted: self._handle_interrupted,
            PeerError: self._handle_peer_error,
            SessionReady: self._handle_session_ready,
        }

    # -- Properties --

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def connection_step(self) -> ConnectionStep:
        return self._step

    @property
    def is_listening(self) -> bool:
        return self._listening

    @property
    def is_speaking(self) -> bool:
        session = self._session
        return session is not None and session.playback.is_speaking

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def student(self) -> StudentIdentity | None:
        return self._student

    @property
    def playback(self) -> PlaybackQueue | None:
        return self._session.playback if self._session else None

    @property
    def dispatcher(self) -> ToolDispatcher | None:
        return self._session.dispatcher if self._session else None

    @property
    def watchdog(self) -> SilenceWatchdog | None:
        return self._session.watchdog if self._session else None

    @property
    def capture_stats(self) -> CaptureStats | None:
        return self._capture.stats if self._capture else None

    @property
    def input_sample_rate(self) -> int:
        return self._config.input_sample_rate or self._protocol.input_sample_rate

    @property
    def output_sample_rate(self) -> int:
        return self._config.output_sample_rate or self._protocol.output_sample_rate

    # -- Mutable configuration --

    def set_surface(self, surface: ControllableMediaSurface | None) -> None:
        """Attach (or detach) the video player the peer controls."""
        self._surface = surface
        if self._session is not None:
            self._session.dispatcher.surface = surface

    def set_memory_sink(self, memory: MemorySink | None) -> None:
        self._memory = memory
        if self._session is not None:
            self._session.dispatcher.memory = memory

    def set_callbacks(
        self,
        *,
        on_state_change: StateCallback | None = None,
        on_connection_step: ConnectionStepCallback | None = None,
        on_transcript: TranscriptCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        """Replace the callbacks that are given; others are left untouched."""
        if on_state_change is not None:
            self._state_callbacks = [on_state_change]
        if on_connection_step is not None:
            self._step_callbacks = [on_connection_step]
        if on_transcript is not None:
            self._transcript_callbacks = [on_transcript]
        if on_error is not None:
            self._error_callbacks = [on_error]

    # -- Callback registration --

    def on_state_change(self, callback: StateCallback) -> None:
        self._state_callbacks.append(callback)

    def on_connection_step(self, callback: ConnectionStepCallback) -> None:
        self._step_callbacks.append(callback)

    def on_transcript(self, callback: TranscriptCallback) -> None:
        self._transcript_callbacks.append(callback)

    def on_error(self, callback: ErrorCallback) -> None:
        self._error_callbacks.append(callback)

    # -- Lifecycle --

    async def connect(self) -> None:
        """Open a session with the peer.

        Any failure, cancellation included, leaves the controller in the
        Error state so that ``connect()`` can be called again.

        Raises:
            CredentialError: The credential could not be obtained.
            ChannelError: The channel could not be opened or configured.
        """
        if self._state in (SessionState.CONNECTING, SessionState.CONNECTED):
            logger.info("connect() ignored: session already %s", self._state)
            return

        self._generation += 1
        generation = self._generation
        self._protocol.reset()
        try:
            await self._set_state(SessionState.CONNECTING)
            await self._set_step(ConnectionStep.FETCHING_KEY)
            await self._establish(generation)
        except (CredentialError, ChannelError) as exc:
            # _fail bumps the generation, so a current one means unreported.
            if generation == self._generation:
                await self._fail(generation, f"Connection failed: {exc}")
            raise
        except asyncio.CancelledError:
            if generation == self._generation:
                await self._fail(generation, "Connection attempt cancelled")
            raise
        except Exception as exc:
            if generation == self._generation:
                await self._fail(generation, f"Connection failed: {exc}")
            raise ChannelError(str(exc)) from exc

    async def _establish(self, generation: int) -> None:
        try:
            credential = await self._credentials.issue(
                self._config.system_instruction, self._student
            )
        except CredentialError as exc:
            await self._fail(generation, f"Failed to get token: {exc}")
            raise
        except Exception as exc:
            await self._fail(generation, f"Failed to get token: {exc}")
            raise CredentialError(str(exc)) from exc

        if generation != self._generation:
            logger.info("connect() abandoned: session was torn down meanwhile")
            return

        model = credential.model or self._protocol.default_model
        token = credential.token.get_secret_value()
        await self._set_step(ConnectionStep.CONNECTING_CHANNEL)

        channel = self._channel_factory()
        session = self._build_session(generation, channel)
        channel.on_message(lambda message: self._on_channel_message(generation, message))
        channel.on_close(lambda code, reason: self._on_channel_close(generation, code, reason))
        self._session = session

        try:
            await channel.open(
                self._protocol.build_url(model, token),
                self._protocol.build_headers(token),
            )
        except ChannelError as exc:
            await self._fail(generation, f"Connection failed: {exc}")
            raise

        if generation != self._generation:
            await channel.close(NORMAL_CLOSURE, DISCONNECT_REASON)
            return

        await self._set_step(ConnectionStep.CONFIGURING)
        try:
            await channel.send(
                self._protocol.session_config(self._config, self._tools, model=model)
            )
        except ChannelError as exc:
            await self._fail(generation, f"Could not configure session: {exc}")
            raise

        await self._set_state(SessionState.CONNECTED)
        await self._set_step(ConnectionStep.READY)
        logger.info(
            "Session connected (%s, model=%s, student=%s)",
            self._protocol.name,
            model,
            self._student.student_id if self._student else None,
        )

    async def disconnect(self) -> None:
        """End the session; safe to call in any state."""
        self._generation += 1
        await self._teardown(close_channel=True)
        await self._set_state(SessionState.DISCONNECTED)
        await self._set_step(ConnectionStep.IDLE)

    async def close(self) -> None:
        """Disconnect and release the output and credential issuer."""
        await self.disconnect()
        await self._output.close()
        await self._credentials.close()

    async def start_listening(self) -> None:
        """Open the microphone and stream gated frames to the peer.

        Raises:
            NotConnectedError: The session is not connected.
            MicrophoneAccessError: The microphone could not be opened.
        """
        session = self._require_connected()
        if self._listening:
            return
        microphone = self._microphone
        if microphone is None:
            exc = MicrophoneAccessError("No microphone configured")
            await self._fire_error(str(exc))
            raise exc

        rate = self.input_sample_rate
        try:
            await microphone.open(rate)
        except MicrophoneAccessError as exc:
            await self._fire_error(f"Could not access microphone: {exc}")
            raise

        self._capture = AudioCaptureSink(rate, self._config.capture)
        self._listening = True
        self._capture_task = asyncio.create_task(
            self._capture_loop(session, microphone, self._capture),
            name="session_capture",
        )
        logger.info("Listening (%d Hz, %d ms frames)", rate, self._config.capture.frame_ms)

    async def stop_listening(self) -> None:
        """Stop streaming microphone audio; idempotent."""
        if not self._listening:
            return
        self._listening = False
        task = self._capture_task
        self._capture_task = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        if self._microphone is not None:
            try:
                await self._microphone.close()
            except Exception:
                logger.exception("Error closing microphone")

        capture = self._capture
        session = self._session
        if capture is not None and session is not None and self._state == SessionState.CONNECTED:
            for frame in capture.flush():
                try:
                    await session.channel.send(self._protocol.audio_append(frame))
                except ChannelError:
                    logger.debug("Could not send final capture frame", exc_info=True)
                    break
        if capture is not None:
            stats = capture.stats
            logger.info(
                "Stopped listening (frames in=%d sent=%d suppressed=%d)",
                stats.frames_in,
                stats.frames_sent,
                stats.frames_suppressed,
            )

    async def send_text(self, text: str) -> None:
        """Send a typed user message and ask the peer to respond.

        Raises:
            NotConnectedError: The session is not connected.
        """
        session = self._require_connected()
        session.watchdog.cancel()
        await session.channel.send(self._protocol.user_text(text))
        response = self._protocol.response_request()
        if response is not None:
            await session.channel.send(response)
        await self._fire_transcript(text, TranscriptRole.USER)

    # -- Internals --

    def _require_connected(self) -> _Session:
        session = self._session
        if self._state != SessionState.CONNECTED or session is None:
            raise NotConnectedError("Not connected")
        return session

    def _build_session(self, generation: int, channel: DuplexChannel) -> _Session:
        playback = PlaybackQueue(
            self._output,
            sample_rate=self.output_sample_rate,
            config=self._config.playback,
        )

        async def send_result(request: ToolCallRequest, result: ToolCallResult) -> None:
            await self._send(generation, self._protocol.tool_result(request, result))

        async def request_continuation() -> None:
            response = self._protocol.response_request()
            if response is not None:
                await self._send(generation, response)

        dispatcher = ToolDispatcher(
            send_result=send_result,
            request_continuation=request_continuation,
            is_speaking=lambda: not playback.is_idle,
            surface=self._surface,
            memory=self._memory,
            config=self._config.tools,
        )

        async def send_prompt(message: str) -> None:
            await self._send(generation, self._protocol.user_text(message))
            response = self._protocol.response_request()
            if response is not None:
                await self._send(generation, response)

        watchdog = SilenceWatchdog(
            send_prompt=send_prompt,
            is_speaking=lambda: not playback.is_idle,
            is_surface_paused=self._surface_paused,
            config=self._config.silence,
            prompts=self._prompts,
        )
        return _Session(generation, channel, playback, dispatcher, watchdog)

    def _surface_paused(self) -> bool:
        surface = self._surface
        if surface is None:
            return True
        try:
            return surface.is_paused()
        except Exception:
            logger.exception("Surface is_paused() failed; treating as paused")
            return True

    async def _send(self, generation: int, message: dict[str, Any]) -> None:
        session = self._session
        if session is None or session.generation != generation:
            raise ChannelError("Session is no longer active")
        await session.channel.send(message)

    async def _capture_loop(
        self,
        session: _Session,
        microphone: MicrophoneSource,
        capture: AudioCaptureSink,
    ) -> None:
        sent = 0
        failure: str | None = None
        try:
            while self._listening and self._session is session:
                block = await microphone.read()
                if not block:
                    logger.info("Microphone stream ended")
                    break
                for frame in capture.feed(block):
                    if not self._listening or self._session is not session:
                        return
                    await session.channel.send(self._protocol.audio_append(frame))
                    sent += 1
                    if sent % _STATS_LOG_INTERVAL == 0:
                        stats = capture.stats
                        logger.debug(
                            "Capture: in=%d sent=%d voice=%d suppressed=%d",
                            stats.frames_in,
                            stats.frames_sent,
                            stats.frames_voice,
                            stats.frames_suppressed,
                        )
        except asyncio.CancelledError:
            raise
        except ChannelError as exc:
            logger.warning("Channel unavailable, capture stopped")
            failure = f"Audio capture stopped: {exc}"
        except Exception as exc:
            logger.exception("Capture loop failed")
            failure = f"Audio capture failed: {exc}"
        await self._capture_ended(session, microphone, failure)

    async def _capture_ended(
        self,
        session: _Session,
        microphone: MicrophoneSource,
        failure: str | None,
    ) -> None:
        """Release the microphone after the capture loop stopped by itself."""
        if not self._listening or self._session is not session:
            # stop_listening() or teardown owns the cleanup.
            return
        self._listening = False
        self._capture_task = None
        try:
            await microphone.close()
        except Exception:
            logger.exception("Error closing microphone")
        if failure is not None:
            await self._fire_error(failure)

    async def _on_channel_message(self, generation: int, message: dict[str, Any]) -> None:
        session = self._session
        if generation != self._generation or session is None or session.generation != generation:
            logger.debug("Dropping message from stale channel")
            return
        try:
            events = self._protocol.parse(message)
        except Exception:
            logger.warning("Could not parse peer message", exc_info=True)
            return
        for event in events:
            if self._session is not session:
                return
            await self._handle_event(session, event)

    async def _handle_event(self, session: _Session, event: PeerEvent) -> None:
        handler = self._event_handlers.get(type(event))
        if handler is None:
            logger.debug("Unhandled peer event %s", type(event).__name__)
            return
        handler(session, event)
        if isinstance(event, TranscriptDone):
            await self._fire_transcript(event.text, event.role)
        elif isinstance(event, PeerError):
            await self._fire_error(event.message)

    def _handle_audio(self, session: _Session, event: AudioDelta) -> None:
        session.playback.push(event.audio_b64)

    def _handle_transcript(self, session: _Session, event: TranscriptDone) -> None:
        if event.role == TranscriptRole.USER:
            session.watchdog.on_student_speech()

    def _handle_tool_calls(self, session: _Session, event: ToolCallsReceived) -> None:
        for call in event.calls:
            session.dispatcher.dispatch(call)

    def _handle_speech_started(self, session: _Session, event: SpeechStarted) -> None:
        session.watchdog.on_student_speech()
        if self._config.barge_in:
            session.playback.flush()

    def _handle_speech_stopped(self, session: _Session, event: SpeechStopped) -> None:
        logger.debug("Student stopped speaking")

    def _handle_turn_completed(self, session: _Session, event: TurnCompleted) -> None:
        logger.debug("Turn completed (%s)", event.status)
        session.watchdog.notify_turn_complete()

    def _handle_interrupted(self, session: _Session, event: Interrupted) -> None:
        session.playback.flush()

    def _handle_peer_error(self, session: _Session, event: PeerError) -> None:
        logger.error("Peer error [%s] %s", event.code, event.message)

    def _handle_session_ready(self, session: _Session, event: SessionReady) -> None:
        logger.info("Peer acknowledged session configuration")

    async def _on_channel_close(self, generation: int, code: int, reason: str) -> None:
        if generation != self._generation:
            return
        if code != NORMAL_CLOSURE:
            logger.warning("Channel closed unexpectedly (code=%d, reason=%r)", code, reason)
            await self._fire_error(f"Connection closed unexpectedly (code {code})")
        else:
            logger.info("Channel closed by peer")
        self._generation += 1
        await self._teardown(close_channel=False)
        await self._set_state(SessionState.DISCONNECTED)
        await self._set_step(ConnectionStep.IDLE)

    async def _fail(self, generation: int, message: str) -> None:
        """Abort a connection attempt: tear down, report, state Error."""
        logger.error("Connection attempt failed: %s", message)
        if generation == self._generation:
            self._generation += 1
            await self._teardown(close_channel=True)
        await self._set_state(SessionState.ERROR)
        await self._set_step(ConnectionStep.IDLE)
        await self._fire_error(message)

    async def _teardown(self, *, close_channel: bool) -> None:
        await self.stop_listening()
        self._capture = None
        session = self._session
        self._session = None
        if session is None:
            return
        session.watchdog.cancel()
        session.dispatcher.cancel_pending()
        await session.playback.close()
        if close_channel:
            try:
                await session.channel.close(NORMAL_CLOSURE, DISCONNECT_REASON)
            except Exception:
                logger.exception("Error closing channel")

    async def _set_state(self, state: SessionState) -> None:
        if state == self._state:
            return
        previous = self._state
        self._state = state
        logger.info("Session state %s -> %s", previous, state)
        await self._fire(self._state_callbacks, state)

    async def _set_step(self, step: ConnectionStep) -> None:
        if step == self._step:
            return
        self._step = step
        await self._fire(self._step_callbacks, step)

    # -- Callback helpers --

    async def _fire(self, callbacks: list[Any], *args: Any) -> None:
        for cb in list(callbacks):
            try:
                result = cb(*args)
                if hasattr(result, "__await__"):
                    await result
            except Exception:
                logger.exception("Error in session callback")

    async def _fire_transcript(self, text: str, role: TranscriptRole) -> None:
        await self._fire(self._transcript_callbacks, text, role)

    async def _fire_error(self, message: str) -> None:
        await self._fire(self._error_callbacks, message)
