"""Peer-facing realtime layer: dialects, channels and credentials."""

from tutorkit.realtime.channel import (
    ABNORMAL_CLOSURE,
    NORMAL_CLOSURE,
    DuplexChannel,
    WebSocketDuplexChannel,
)
from tutorkit.realtime.credentials import (
    Credential,
    CredentialIssuer,
    HTTPCredentialIssuer,
    StaticCredentialIssuer,
)
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
from tutorkit.realtime.mock import MockCall, MockCredentialIssuer, MockDuplexChannel
from tutorkit.realtime.protocol import (
    GeminiLiveProtocol,
    OpenAIRealtimeProtocol,
    PeerProtocol,
    extract_tool_calls,
)

__all__ = [
    "ABNORMAL_CLOSURE",
    "AudioDelta",
    "Credential",
    "CredentialIssuer",
    "DuplexChannel",
    "GeminiLiveProtocol",
    "HTTPCredentialIssuer",
    "Interrupted",
    "MockCall",
    "MockCredentialIssuer",
    "MockDuplexChannel",
    "NORMAL_CLOSURE",
    "OpenAIRealtimeProtocol",
    "PeerError",
    "PeerEvent",
    "PeerProtocol",
    "SessionReady",
    "SpeechStarted",
    "SpeechStopped",
    "StaticCredentialIssuer",
    "ToolCallsReceived",
    "TranscriptDone",
    "TurnCompleted",
    "WebSocketDuplexChannel",
    "extract_tool_calls",
]
