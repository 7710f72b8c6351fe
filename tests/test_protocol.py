"""Tests for the peer dialects (outbound frames and inbound parsing)."""

from __future__ import annotations

import json

import pytest

from tutorkit.models.config import SessionConfig, TurnDetectionConfig
from tutorkit.models.enums import ToolCallShape, TranscriptRole
from tutorkit.models.tool_call import ToolCallRequest, ToolCallResult
from tutorkit.realtime.events import (
    AudioDelta,
    Interrupted,
    PeerError,
    SessionReady,
    SpeechStarted,
    SpeechStopped,
    ToolCallsReceived,
    TranscriptDone,
    TurnCompleted,
)
from tutorkit.realtime.protocol import (
    GeminiLiveProtocol,
    OpenAIRealtimeProtocol,
    extract_tool_calls,
)
from tutorkit.tools.declarations import TUTOR_TOOLS


def _calls(events: list) -> list[ToolCallRequest]:
    out: list[ToolCallRequest] = []
    for event in events:
        if isinstance(event, ToolCallsReceived):
            out.extend(event.calls)
    return out


# ---------------------------------------------------------------------------
# Tool-call extraction (every wire shape)
# ---------------------------------------------------------------------------


class TestExtractToolCalls:
    def test_arguments_done(self) -> None:
        calls = extract_tool_calls(
            {
                "type": "response.function_call_arguments.done",
                "name": "seek_video",
                "call_id": "c1",
                "arguments": '{"seconds": 30}',
            }
        )
        assert len(calls) == 1
        assert calls[0].name == "seek_video"
        assert calls[0].call_id == "c1"
        assert json.loads(calls[0].args_json) == {"seconds": 30}
        assert calls[0].shape == ToolCallShape.ARGUMENTS_DONE

    @pytest.mark.parametrize(
        "event_type", ["response.output_item.added", "response.output_item.done"]
    )
    def test_output_item(self, event_type: str) -> None:
        calls = extract_tool_calls(
            {
                "type": event_type,
                "item": {
                    "type": "function_call",
                    "name": "pause_video",
                    "call_id": "c2",
                    "arguments": "{}",
                },
            }
        )
        assert [(c.name, c.call_id, c.shape) for c in calls] == [
            ("pause_video", "c2", ToolCallShape.OUTPUT_ITEM)
        ]

    def test_output_item_under_output_item_key(self) -> None:
        calls = extract_tool_calls(
            {
                "type": "response.output_item.done",
                "output_item": {
                    "type": "function_call",
                    "function": {"name": "play_video", "arguments": "{}"},
                    "callId": "c3",
                },
            }
        )
        assert [(c.name, c.call_id) for c in calls] == [("play_video", "c3")]

    def test_in_progress_item_skipped(self) -> None:
        calls = extract_tool_calls(
            {
                "type": "response.output_item.added",
                "item": {
                    "type": "function_call",
                    "status": "in_progress",
                    "name": "seek_video",
                    "call_id": "c4",
                    "arguments": "",
                },
            }
        )
        assert calls == []

    def test_non_function_items_ignored(self) -> None:
        calls = extract_tool_calls(
            {
                "type": "conversation.item.created",
                "item": {"type": "message", "role": "assistant", "content": []},
            }
        )
        assert calls == []

    @pytest.mark.parametrize(
        "event_type", ["conversation.item.created", "conversation.item.updated"]
    )
    def test_conversation_item(self, event_type: str) -> None:
        calls = extract_tool_calls(
            {
                "type": event_type,
                "item": {
                    "type": "function_call",
                    "name": "save_student_name",
                    "call_id": "c5",
                    "arguments": '{"name": "Ana"}',
                },
            }
        )
        assert calls[0].shape == ToolCallShape.CONVERSATION_ITEM
        assert calls[0].call_id == "c5"

    def test_turn_envelope(self) -> None:
        calls = extract_tool_calls(
            {
                "type": "response.done",
                "response": {
                    "status": "completed",
                    "output": [
                        {"type": "message", "content": []},
                        {
                            "type": "function_call",
                            "name": "pause_video",
                            "call_id": "c6",
                            "arguments": "{}",
                        },
                        {
                            "type": "function_call",
                            "name": "seek_forward",
                            "call_id": "c7",
                            "arguments": '{"seconds": 5}',
                        },
                    ],
                },
            }
        )
        assert [c.call_id for c in calls] == ["c6", "c7"]
        assert all(c.shape == ToolCallShape.TURN_ENVELOPE for c in calls)

    def test_batch(self) -> None:
        calls = extract_tool_calls(
            {
                "toolCall": {
                    "functionCalls": [
                        {"id": "g1", "name": "pause_video", "args": {}},
                        {"id": "g2", "name": "seek_video", "args": {"seconds": 12}},
                    ]
                }
            }
        )
        assert [c.call_id for c in calls] == ["g1", "g2"]
        assert json.loads(calls[1].args_json) == {"seconds": 12}
        assert calls[0].shape == ToolCallShape.BATCH

    def test_inline_part(self) -> None:
        calls = extract_tool_calls(
            {
                "serverContent": {
                    "modelTurn": {
                        "parts": [
                            {"text": "Let me pause."},
                            {"functionCall": {"id": "g3", "name": "pause_video", "args": {}}},
                        ]
                    }
                }
            }
        )
        assert [(c.call_id, c.shape) for c in calls] == [("g3", ToolCallShape.INLINE_PART)]

    @pytest.mark.parametrize(
        "item",
        [
            {"type": "function_call", "call_id": "x"},
            {"type": "function_call", "name": "pause_video"},
            {"type": "function_call", "name": 5, "call_id": "x"},
            {"type": "function_call", "name": "pause_video", "call_id": ""},
            {"type": "function_call", "name": "pause_video", "id": "item_1"},
        ],
    )
    def test_entries_without_name_or_call_id_skipped(self, item: dict) -> None:
        assert extract_tool_calls({"type": "response.output_item.done", "item": item}) == []

    def test_missing_arguments_default_to_empty_object(self) -> None:
        calls = extract_tool_calls(
            {"type": "response.function_call_arguments.done", "name": "play_video", "call_id": "c8"}
        )
        assert calls[0].args_json == "{}"


# ---------------------------------------------------------------------------
# OpenAI Realtime
# ---------------------------------------------------------------------------


class TestOpenAIRealtimeProtocol:
    def test_rates(self) -> None:
        proto = OpenAIRealtimeProtocol()
        assert proto.input_sample_rate == 24000
        assert proto.output_sample_rate == 24000

    def test_url_and_headers(self) -> None:
        proto = OpenAIRealtimeProtocol()
        assert proto.build_url("gpt-x", "tok") == "wss://api.openai.com/v1/realtime?model=gpt-x"
        headers = proto.build_headers("tok")
        assert headers["Authorization"] == "Bearer tok"
        assert headers["OpenAI-Beta"] == "realtime=v1"

    def test_session_config(self) -> None:
        proto = OpenAIRealtimeProtocol()
        config = SessionConfig(
            system_instruction="Be kind.",
            turn_detection=TurnDetectionConfig(threshold=0.7, prefix_padding_ms=400),
        )
        frame = proto.session_config(config, TUTOR_TOOLS, model="gpt-x")
        assert frame["type"] == "session.update"
        session = frame["session"]
        assert session["instructions"] == "Be kind."
        assert session["voice"] == "echo"
        assert session["input_audio_format"] == "pcm16"
        assert session["input_audio_transcription"] == {"model": "whisper-1"}
        assert session["turn_detection"] == {
            "type": "server_vad",
            "threshold": 0.7,
            "prefix_padding_ms": 400,
            "silence_duration_ms": 800,
        }
        assert session["tool_choice"] == "auto"
        names = [t["name"] for t in session["tools"]]
        assert "play_video" in names
        assert "save_emotional_observation" in names
        assert all(t["type"] == "function" for t in session["tools"])

    def test_voice_override(self) -> None:
        frame = OpenAIRealtimeProtocol().session_config(
            SessionConfig(voice="alloy"), [], model="m"
        )
        assert frame["session"]["voice"] == "alloy"
        assert "tools" not in frame["session"]

    def test_outbound_frames(self) -> None:
        proto = OpenAIRealtimeProtocol()
        assert proto.audio_append("AAAA") == {"type": "input_audio_buffer.append", "audio": "AAAA"}
        assert proto.response_request() == {"type": "response.create"}
        text = proto.user_text("hello")
        assert text["item"]["content"] == [{"type": "input_text", "text": "hello"}]
        assert text["item"]["role"] == "user"

    def test_tool_result(self) -> None:
        proto = OpenAIRealtimeProtocol()
        request = ToolCallRequest(name="pause_video", call_id="c1")
        frame = proto.tool_result(request, ToolCallResult.success("Video paused"))
        assert frame["type"] == "conversation.item.create"
        assert frame["item"]["type"] == "function_call_output"
        assert frame["item"]["call_id"] == "c1"
        assert json.loads(frame["item"]["output"]) == {"ok": True, "message": "Video paused"}

    def test_parse_audio_delta(self) -> None:
        events = OpenAIRealtimeProtocol().parse({"type": "response.audio.delta", "delta": "AAAA"})
        assert len(events) == 1
        assert isinstance(events[0], AudioDelta)
        assert events[0].audio_b64 == "AAAA"

    def test_parse_transcripts(self) -> None:
        proto = OpenAIRealtimeProtocol()
        [assistant] = proto.parse({"type": "response.audio_transcript.done", "transcript": "Hi!"})
        [user] = proto.parse(
            {
                "type": "conversation.item.input_audio_transcription.completed",
                "transcript": "Hello",
            }
        )
        assert isinstance(assistant, TranscriptDone)
        assert assistant.role == TranscriptRole.ASSISTANT
        assert isinstance(user, TranscriptDone)
        assert user.role == TranscriptRole.USER
        assert user.text == "Hello"

    def test_parse_blank_user_transcript_ignored(self) -> None:
        events = OpenAIRealtimeProtocol().parse(
            {"type": "conversation.item.input_audio_transcription.completed", "transcript": "  "}
        )
        assert events == []

    def test_parse_speech_markers(self) -> None:
        proto = OpenAIRealtimeProtocol()
        [started] = proto.parse({"type": "input_audio_buffer.speech_started"})
        [stopped] = proto.parse({"type": "input_audio_buffer.speech_stopped"})
        assert isinstance(started, SpeechStarted)
        assert isinstance(stopped, SpeechStopped)

    def test_response_done_completes_turn_after_tool_calls(self) -> None:
        events = OpenAIRealtimeProtocol().parse(
            {
                "type": "response.done",
                "response": {
                    "status": "completed",
                    "output": [
                        {
                            "type": "function_call",
                            "name": "pause_video",
                            "call_id": "c1",
                            "arguments": "{}",
                        }
                    ],
                },
            }
        )
        assert isinstance(events[0], ToolCallsReceived)
        assert isinstance(events[1], TurnCompleted)
        assert events[1].status == "completed"

    def test_cancelled_response_is_interruption(self) -> None:
        events = OpenAIRealtimeProtocol().parse(
            {"type": "response.done", "response": {"status": "cancelled", "output": []}}
        )
        assert len(events) == 1
        assert isinstance(events[0], Interrupted)

    def test_failed_response_reports_error(self) -> None:
        events = OpenAIRealtimeProtocol().parse(
            {
                "type": "response.done",
                "response": {
                    "status": "failed",
                    "status_details": {"error": {"code": "rate_limit", "message": "slow down"}},
                },
            }
        )
        assert isinstance(events[0], PeerError)
        assert events[0].code == "rate_limit"
        assert isinstance(events[1], TurnCompleted)

    def test_error_event(self) -> None:
        [event] = OpenAIRealtimeProtocol().parse(
            {"type": "error", "error": {"code": "bad", "message": "Invalid"}}
        )
        assert isinstance(event, PeerError)
        assert event.message == "Invalid"

    def test_session_updated_is_ready(self) -> None:
        [event] = OpenAIRealtimeProtocol().parse({"type": "session.updated", "session": {}})
        assert isinstance(event, SessionReady)

    def test_unknown_event_ignored(self) -> None:
        assert OpenAIRealtimeProtocol().parse({"type": "rate_limits.updated"}) == []


# ---------------------------------------------------------------------------
# Gemini Live
# ---------------------------------------------------------------------------


class TestGeminiLiveProtocol:
    def test_rates(self) -> None:
        proto = GeminiLiveProtocol()
        assert proto.input_sample_rate == 16000
        assert proto.output_sample_rate == 24000

    def test_url_carries_key(self) -> None:
        url = GeminiLiveProtocol().build_url("m", "secret")
        assert url.startswith("wss://generativelanguage.googleapis.com/")
        assert url.endswith("?key=secret")

    def test_setup_frame(self) -> None:
        frame = GeminiLiveProtocol().session_config(
            SessionConfig(system_instruction="Teach."), TUTOR_TOOLS, model="gemini-x"
        )
        setup = frame["setup"]
        assert setup["model"] == "models/gemini-x"
        assert setup["generationConfig"]["responseModalities"] == ["AUDIO"]
        voice = setup["generationConfig"]["speechConfig"]["voiceConfig"]
        assert voice["prebuiltVoiceConfig"]["voiceName"] == "Puck"
        assert setup["systemInstruction"] == {"parts": [{"text": "Teach."}]}
        declared = setup["tools"][0]["functionDeclarations"]
        assert len(declared) == len(TUTOR_TOOLS)

    def test_no_continuation_request(self) -> None:
        assert GeminiLiveProtocol().response_request() is None

    def test_outbound_frames(self) -> None:
        proto = GeminiLiveProtocol()
        chunk = proto.audio_append("AAAA")["realtimeInput"]["mediaChunks"][0]
        assert chunk == {"mimeType": "audio/pcm;rate=16000", "data": "AAAA"}
        text = proto.user_text("hi")["clientContent"]
        assert text["turnComplete"] is True
        assert text["turns"][0]["parts"] == [{"text": "hi"}]

    def test_tool_result(self) -> None:
        frame = GeminiLiveProtocol().tool_result(
            ToolCallRequest(name="pause_video", call_id="g1"),
            ToolCallResult.failure("No video loaded"),
        )
        response = frame["toolResponse"]["functionResponses"][0]
        assert response == {
            "id": "g1",
            "name": "pause_video",
            "response": {"ok": False, "message": "No video loaded"},
        }

    def test_parse_setup_complete(self) -> None:
        [event] = GeminiLiveProtocol().parse({"setupComplete": {}})
        assert isinstance(event, SessionReady)

    def test_parse_audio_parts(self) -> None:
        events = GeminiLiveProtocol().parse(
            {
                "serverContent": {
                    "modelTurn": {
                        "parts": [
                            {"inlineData": {"mimeType": "audio/pcm", "data": "AAAA"}},
                            {"inlineData": {"mimeType": "audio/pcm", "data": "BBBB"}},
                        ]
                    }
                }
            }
        )
        assert [e.audio_b64 for e in events if isinstance(e, AudioDelta)] == ["AAAA", "BBBB"]

    def test_interrupted(self) -> None:
        events = GeminiLiveProtocol().parse({"serverContent": {"interrupted": True}})
        assert any(isinstance(e, Interrupted) for e in events)

    def test_transcripts_buffered_until_turn_complete(self) -> None:
        proto = GeminiLiveProtocol()
        assert proto.parse({"serverContent": {"outputTranscription": {"text": "Hello "}}}) == []
        assert proto.parse({"serverContent": {"outputTranscription": {"text": "there"}}}) == []
        events = proto.parse({"serverContent": {"turnComplete": True}})
        transcripts = [e for e in events if isinstance(e, TranscriptDone)]
        assert [(t.text, t.role) for t in transcripts] == [
            ("Hello there", TranscriptRole.ASSISTANT)
        ]
        assert isinstance(events[-1], TurnCompleted)

    def test_user_transcript_flushed_when_model_answers(self) -> None:
        proto = GeminiLiveProtocol()
        proto.parse({"serverContent": {"inputTranscription": {"text": "what is "}}})
        proto.parse({"serverContent": {"inputTranscription": {"text": "a fraction"}}})
        events = proto.parse(
            {"serverContent": {"modelTurn": {"parts": [{"inlineData": {"data": "AAAA"}}]}}}
        )
        assert isinstance(events[0], TranscriptDone)
        assert events[0].role == TranscriptRole.USER
        assert events[0].text == "what is a fraction"

    def test_finished_flag_flushes_immediately(self) -> None:
        proto = GeminiLiveProtocol()
        events = proto.parse(
            {"serverContent": {"inputTranscription": {"text": "hi", "finished": True}}}
        )
        assert isinstance(events[0], SpeechStarted)
        assert isinstance(events[1], TranscriptDone)
        assert events[1].text == "hi"

    def test_first_student_fragment_signals_speech(self) -> None:
        proto = GeminiLiveProtocol()
        [first] = proto.parse({"serverContent": {"inputTranscription": {"text": "I think"}}})
        assert isinstance(first, SpeechStarted)
        assert proto.parse({"serverContent": {"inputTranscription": {"text": " so"}}}) == []
        proto.parse({"serverContent": {"turnComplete": True}})
        [again] = proto.parse({"serverContent": {"inputTranscription": {"text": "wait"}}})
        assert isinstance(again, SpeechStarted)

    def test_empty_fragment_does_not_signal_speech(self) -> None:
        proto = GeminiLiveProtocol()
        assert proto.parse({"serverContent": {"inputTranscription": {"text": ""}}}) == []

    def test_model_transcript_does_not_signal_speech(self) -> None:
        proto = GeminiLiveProtocol()
        events = proto.parse({"serverContent": {"outputTranscription": {"text": "Hi"}}})
        assert events == []

    def test_reset_drops_partial_transcripts(self) -> None:
        proto = GeminiLiveProtocol()
        proto.parse({"serverContent": {"outputTranscription": {"text": "stale"}}})
        proto.reset()
        events = proto.parse({"serverContent": {"turnComplete": True}})
        assert not any(isinstance(e, TranscriptDone) for e in events)

    def test_batch_tool_calls(self) -> None:
        events = GeminiLiveProtocol().parse(
            {"toolCall": {"functionCalls": [{"id": "g1", "name": "play_video", "args": {}}]}}
        )
        assert [c.call_id for c in _calls(events)] == ["g1"]

    def test_recognises_envelope_shapes_too(self) -> None:
        events = GeminiLiveProtocol().parse(
            {
                "type": "response.function_call_arguments.done",
                "name": "pause_video",
                "call_id": "c9",
                "arguments": "{}",
            }
        )
        assert [c.call_id for c in _calls(events)] == ["c9"]

    def test_error(self) -> None:
        events = GeminiLiveProtocol().parse({"error": {"code": 400, "message": "bad setup"}})
        assert isinstance(events[0], PeerError)
        assert events[0].code == "400"
