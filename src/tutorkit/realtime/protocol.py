"""Peer dialects: encode outbound frames and normalize inbound messages.

A protocol object is pure translation; it never touches the network.
The session controller owns the channel and calls :meth:`PeerProtocol.parse`
for every inbound JSON message.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from tutorkit.models.config import SessionConfig
from tutorkit.models.enums import ToolCallShape, TranscriptRole
from tutorkit.models.tool_call import ToolCallRequest, ToolCallResult
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
from tutorkit.tools.declarations import ToolDeclaration

logger = logging.getLogger("tutorkit.realtime.protocol")

_OPENAI_BASE_URL = "wss://api.openai.com/v1/realtime"
_GEMINI_BASE_URL = (
    "wss://generativelanguage.googleapis.com/ws/"
    "google.ai.generativelanguage.v1alpha.GenerativeService.BidiGenerateContent"
)


class PeerProtocol(ABC):
    """Wire dialect of a conversational AI peer."""

    @property
    @abstractmethod
    def name(self) -> str: ...

    @property
    @abstractmethod
    def input_sample_rate(self) -> int:
        """Rate of the PCM the peer expects from the microphone."""
        ...

    @property
    @abstractmethod
    def output_sample_rate(self) -> int:
        """Rate of the PCM the peer sends back."""
        ...

    @property
    @abstractmethod
    def default_model(self) -> str: ...

    @abstractmethod
    def build_url(self, model: str, token: str) -> str: ...

    def build_headers(self, token: str) -> dict[str, str]:
        return {}

    @abstractmethod
    def session_config(
        self,
        config: SessionConfig,
        tools: Sequence[ToolDeclaration],
        *,
        model: str,
    ) -> dict[str, Any]:
        """The one-time configuration frame sent once the channel is open."""
        ...

    @abstractmethod
    def audio_append(self, audio_b64: str) -> dict[str, Any]: ...

    @abstractmethod
    def tool_result(self, request: ToolCallRequest, result: ToolCallResult) -> dict[str, Any]: ...

    @abstractmethod
    def user_text(self, text: str) -> dict[str, Any]:
        """A user message turn carrying ``text``."""
        ...

    def response_request(self) -> dict[str, Any] | None:
        """Frame asking the peer to respond, or ``None`` if it continues on its own."""
        return None

    def reset(self) -> None:
        """Drop per-connection parse state (called on every connect)."""

    @abstractmethod
    def parse(self, message: dict[str, Any]) -> list[PeerEvent]:
        """Translate one inbound message into zero or more events."""
        ...


# -- Tool-call extraction shared by every dialect --


def _call_from_item(item: Any, shape: ToolCallShape) -> ToolCallRequest | None:
    """Extract a call from a function-call item in any of its known layouts.

    Handles ``{name, call_id, arguments}``, ``{function: {name, arguments},
    call_id}``, camelCase ``callId`` and Gemini's ``{name, id, args}``.
    """
    if not isinstance(item, dict):
        return None
    function = item.get("function")
    if not isinstance(function, dict):
        function = {}
    name = item.get("name", function.get("name"))
    call_id = item.get("call_id", item.get("callId"))
    if call_id is None and shape in (ToolCallShape.BATCH, ToolCallShape.INLINE_PART):
        # Only Gemini calls carry the call id as "id"; elsewhere it is the item id.
        call_id = item.get("id")
    arguments = item.get("arguments", function.get("arguments", item.get("args")))
    request = ToolCallRequest.from_raw(name, call_id, arguments, shape)
    if request is None:
        logger.warning(
            "Skipping %s tool call without a valid name/call id: name=%r call_id=%r",
            shape,
            name,
            call_id,
        )
    return request


def _function_call_item(item: Any, shape: ToolCallShape) -> ToolCallRequest | None:
    if not isinstance(item, dict) or item.get("type") != "function_call":
        return None
    if item.get("status") == "in_progress":
        # Arguments have not streamed yet; the completed item follows.
        return None
    return _call_from_item(item, shape)


def extract_tool_calls(message: dict[str, Any]) -> list[ToolCallRequest]:
    """Collect every tool call carried by ``message``, whatever its wire shape.

    The same call may legitimately appear in several messages (for example
    ``response.function_call_arguments.done`` followed by ``response.done``);
    de-duplication by call id is the dispatcher's job.
    """
    calls: list[ToolCallRequest] = []

    def add(request: ToolCallRequest | None) -> None:
        if request is not None:
            calls.append(request)

    event_type = message.get("type")

    if event_type == "response.function_call_arguments.done":
        add(_call_from_item(message, ToolCallShape.ARGUMENTS_DONE))

    elif event_type in ("response.output_item.added", "response.output_item.done"):
        add(_function_call_item(message.get("item"), ToolCallShape.OUTPUT_ITEM))
        add(_function_call_item(message.get("output_item"), ToolCallShape.OUTPUT_ITEM))

    elif event_type in ("conversation.item.created", "conversation.item.updated"):
        add(_function_call_item(message.get("item"), ToolCallShape.CONVERSATION_ITEM))

    elif event_type == "response.done":
        response = message.get("response")
        outputs = response.get("output") if isinstance(response, dict) else None
        if isinstance(outputs, list):
            for item in outputs:
                add(_function_call_item(item, ToolCallShape.TURN_ENVELOPE))

    tool_call = message.get("toolCall")
    if isinstance(tool_call, dict):
        function_calls = tool_call.get("functionCalls")
        if isinstance(function_calls, list):
            for fc in function_calls:
                add(_call_from_item(fc, ToolCallShape.BATCH))

    server_content = message.get("serverContent")
    if isinstance(server_content, dict):
        model_turn = server_content.get("modelTurn")
        parts = model_turn.get("parts") if isinstance(model_turn, dict) else None
        if isinstance(parts, list):
            for part in parts:
                if isinstance(part, dict) and "functionCall" in part:
                    add(_call_from_item(part["functionCall"], ToolCallShape.INLINE_PART))

    return calls


def _declarations(tools: Sequence[ToolDeclaration]) -> list[dict[str, Any]]:
    return [tool.to_dict() for tool in tools]


class OpenAIRealtimeProtocol(PeerProtocol):
    """OpenAI Realtime API dialect (``session.update`` / ``response.create``).

    Audio is pcm16 at 24 kHz in both directions.
    """

    def __init__(
        self,
        *,
        model: str = "gpt-4o-realtime-preview",
        base_url: str | None = None,
        default_voice: str = "echo",
    ) -> None:
        self._model = model
        self._base_url = base_url or _OPENAI_BASE_URL
        self._default_voice = default_voice

    @property
    def name(self) -> str:
        return "OpenAIRealtimeProtocol"

    @property
    def input_sample_rate(self) -> int:
        return 24000

    @property
    def output_sample_rate(self) -> int:
        return 24000

    @property
    def default_model(self) -> str:
        return self._model

    def build_url(self, model: str, token: str) -> str:
        return f"{self._base_url}?model={model}"

    def build_headers(self, token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "OpenAI-Beta": "realtime=v1",
        }

    def session_config(
        self,
        config: SessionConfig,
        tools: Sequence[ToolDeclaration],
        *,
        model: str,
    ) -> dict[str, Any]:
        td = config.turn_detection
        session: dict[str, Any] = {
            "modalities": ["text", "audio"],
            "instructions": config.system_instruction,
            "voice": config.voice or self._default_voice,
            "input_audio_format": "pcm16",
            "output_audio_format": "pcm16",
            "input_audio_transcription": {"model": config.transcription_model},
            "turn_detection": {
                "type": "server_vad",
                "threshold": td.threshold,
                "prefix_padding_ms": td.prefix_padding_ms,
                "silence_duration_ms": td.silence_duration_ms,
            },
        }
        if tools:
            session["tools"] = [{"type": "function", **t} for t in _declarations(tools)]
            session["tool_choice"] = "auto"
        return {"type": "session.update", "session": session}

    def audio_append(self, audio_b64: str) -> dict[str, Any]:
        return {"type": "input_audio_buffer.append", "audio": audio_b64}

    def tool_result(self, request: ToolCallRequest, result: ToolCallResult) -> dict[str, Any]:
        return {
            "type": "conversation.item.create",
            "item": {
                "type": "function_call_output",
                "call_id": request.call_id,
                "output": result.to_output(),
            },
        }

    def user_text(self, text: str) -> dict[str, Any]:
        return {
            "type": "conversation.item.create",
            "item": {
                "type": "message",
                "role": "user",
                "content": [{"type": "input_text", "text": text}],
            },
        }

    def response_request(self) -> dict[str, Any] | None:
        return {"type": "response.create"}

    def parse(self, message: dict[str, Any]) -> list[PeerEvent]:
        event_type = message.get("type", "")
        events: list[PeerEvent] = []

        if event_type in ("response.audio.delta", "response.output_audio.delta"):
            delta = message.get("delta")
            if isinstance(delta, str) and delta:
                events.append(AudioDelta(audio_b64=delta))
            return events

        if event_type in (
            "response.audio_transcript.done",
            "response.output_audio_transcript.done",
        ):
            text = message.get("transcript")
            if isinstance(text, str) and text:
                events.append(TranscriptDone(text=text, role=TranscriptRole.ASSISTANT))
            return events

        if event_type == "conversation.item.input_audio_transcription.completed":
            text = message.get("transcript")
            if isinstance(text, str) and text.strip():
                events.append(TranscriptDone(text=text, role=TranscriptRole.USER))
            return events

        if event_type == "input_audio_buffer.speech_started":
            return [SpeechStarted()]

        if event_type == "input_audio_buffer.speech_stopped":
            return [SpeechStopped()]

        calls = extract_tool_calls(message)
        if calls:
            events.append(ToolCallsReceived(calls=tuple(calls)))

        if event_type == "response.done":
            response = message.get("response")
            if not isinstance(response, dict):
                response = {}
            status = response.get("status") or "completed"
            if status == "cancelled":
                events.append(Interrupted())
            else:
                if status == "failed":
                    details = response.get("status_details")
                    err = details.get("error") if isinstance(details, dict) else None
                    if not isinstance(err, dict):
                        err = {}
                    events.append(
                        PeerError(
                            code=str(err.get("code") or err.get("type") or "response_failed"),
                            message=str(err.get("message") or "Response failed"),
                        )
                    )
                events.append(TurnCompleted(status=str(status)))

        elif event_type in ("session.created", "session.updated"):
            session = message.get("session")
            events.append(SessionReady(details=session if isinstance(session, dict) else {}))

        elif event_type == "error":
            error = message.get("error")
            if not isinstance(error, dict):
                error = {}
            events.append(
                PeerError(
                    code=str(error.get("code") or error.get("type") or "unknown"),
                    message=str(error.get("message") or "Unknown error"),
                )
            )

        return events


class GeminiLiveProtocol(PeerProtocol):
    """Gemini Live (BidiGenerateContent) dialect.

    Microphone audio is 16 kHz, model audio 24 kHz.  The peer continues on
    its own after a tool response, so :meth:`response_request` is ``None``.
    Transcription arrives in fragments and is buffered until the turn ends.
    """

    def __init__(
        self,
        *,
        model: str = "gemini-2.5-flash-native-audio-preview-12-2025",
        base_url: str | None = None,
        default_voice: str = "Puck",
    ) -> None:
        self._model = model
        self._base_url = base_url or _GEMINI_BASE_URL
        self._default_voice = default_voice
        self._transcripts: dict[TranscriptRole, list[str]] = {
            TranscriptRole.USER: [],
            TranscriptRole.ASSISTANT: [],
        }

    @property
    def name(self) -> str:
        return "GeminiLiveProtocol"

    @property
    def input_sample_rate(self) -> int:
        return 16000

    @property
    def output_sample_rate(self) -> int:
        return 24000

    @property
    def default_model(self) -> str:
        return self._model

    def build_url(self, model: str, token: str) -> str:
        return f"{self._base_url}?key={token}"

    def session_config(
        self,
        config: SessionConfig,
        tools: Sequence[ToolDeclaration],
        *,
        model: str,
    ) -> dict[str, Any]:
        td = config.turn_detection
        model_path = model if model.startswith("models/") else f"models/{model}"
        setup: dict[str, Any] = {
            "model": model_path,
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {
                        "prebuiltVoiceConfig": {
                            "voiceName": config.voice or self._default_voice,
                        }
                    }
                },
            },
            "systemInstruction": {"parts": [{"text": config.system_instruction}]},
            "realtimeInputConfig": {
                "automaticActivityDetection": {
                    "prefixPaddingMs": td.prefix_padding_ms,
                    "silenceDurationMs": td.silence_duration_ms,
                }
            },
            "inputAudioTranscription": {},
            "outputAudioTranscription": {},
        }
        if tools:
            setup["tools"] = [{"functionDeclarations": _declarations(tools)}]
        return {"setup": setup}

    def audio_append(self, audio_b64: str) -> dict[str, Any]:
        return {
            "realtimeInput": {
                "mediaChunks": [
                    {
                        "mimeType": f"audio/pcm;rate={self.input_sample_rate}",
                        "data": audio_b64,
                    }
                ]
            }
        }

    def tool_result(self, request: ToolCallRequest, result: ToolCallResult) -> dict[str, Any]:
        return {
            "toolResponse": {
                "functionResponses": [
                    {
                        "id": request.call_id,
                        "name": request.name,
                        "response": result.model_dump(),
                    }
                ]
            }
        }

    def user_text(self, text: str) -> dict[str, Any]:
        return {
            "clientContent": {
                "turns": [{"role": "user", "parts": [{"text": text}]}],
                "turnComplete": True,
            }
        }

    def reset(self) -> None:
        for chunks in self._transcripts.values():
            chunks.clear()

    def _buffer_transcript(self, role: TranscriptRole, payload: Any) -> list[PeerEvent]:
        if not isinstance(payload, dict):
            return []
        events: list[PeerEvent] = []
        text = payload.get("text")
        if isinstance(text, str) and text:
            chunks = self._transcripts[role]
            if role == TranscriptRole.USER and not chunks:
                # Transcription is the only sign of student speech in this dialect.
                events.append(SpeechStarted())
            chunks.append(text)
        if payload.get("finished"):
            events.extend(self._flush_transcript(role))
        return events

    def _flush_transcript(self, role: TranscriptRole) -> list[PeerEvent]:
        chunks = self._transcripts[role]
        text = "".join(chunks).strip()
        chunks.clear()
        if not text:
            return []
        return [TranscriptDone(text=text, role=role)]

    def parse(self, message: dict[str, Any]) -> list[PeerEvent]:
        events: list[PeerEvent] = []

        if "setupComplete" in message:
            events.append(SessionReady())

        server_content = message.get("serverContent")
        if isinstance(server_content, dict):
            events.extend(
                self._buffer_transcript(
                    TranscriptRole.USER, server_content.get("inputTranscription")
                )
            )

            model_turn = server_content.get("modelTurn")
            parts = model_turn.get("parts") if isinstance(model_turn, dict) else None
            if isinstance(parts, list):
                # The student's utterance is complete once the model answers.
                events.extend(self._flush_transcript(TranscriptRole.USER))
                for part in parts:
                    if not isinstance(part, dict):
                        continue
                    inline = part.get("inlineData")
                    if isinstance(inline, dict):
                        data = inline.get("data")
                        if isinstance(data, str) and data:
                            events.append(AudioDelta(audio_b64=data))

            events.extend(
                self._buffer_transcript(
                    TranscriptRole.ASSISTANT, server_content.get("outputTranscription")
                )
            )

        calls = extract_tool_calls(message)
        if calls:
            events.append(ToolCallsReceived(calls=tuple(calls)))

        if isinstance(server_content, dict):
            if server_content.get("interrupted"):
                self._transcripts[TranscriptRole.ASSISTANT].clear()
                events.append(Interrupted())
            if server_content.get("turnComplete"):
                events.extend(self._flush_transcript(TranscriptRole.USER))
                events.extend(self._flush_transcript(TranscriptRole.ASSISTANT))
                events.append(TurnCompleted())

        if "goAway" in message:
            go_away = message.get("goAway") or {}
            logger.warning("Gemini goAway received (timeLeft=%s)", go_away.get("timeLeft"))

        error = message.get("error")
        if isinstance(error, dict):
            events.append(
                PeerError(
                    code=str(error.get("code") or error.get("status") or "unknown"),
                    message=str(error.get("message") or "Unknown error"),
                )
            )

        return events
