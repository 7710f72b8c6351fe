"""TutorKit - realtime voice tutoring sessions with a conversational AI peer."""

from tutorkit._version import __version__
from tutorkit.core.errors import (
    ChannelError,
    CredentialError,
    MicrophoneAccessError,
    NotConnectedError,
    ToolExecutionFailure,
    TutorKitError,
)
from tutorkit.models.config import (
    CaptureConfig,
    HTTPCredentialConfig,
    PlaybackConfig,
    SessionConfig,
    SilenceConfig,
    ToolConfig,
    TurnDetectionConfig,
    VADConfig,
)
from tutorkit.models.enums import (
    ConnectionStep,
    SessionState,
    ToolCallShape,
    TranscriptRole,
    WatchdogState,
)
from tutorkit.models.identity import StudentIdentity
from tutorkit.models.tool_call import ToolCallRequest, ToolCallResult
from tutorkit.realtime.channel import DuplexChannel, WebSocketDuplexChannel
from tutorkit.realtime.credentials import (
    Credential,
    CredentialIssuer,
    HTTPCredentialIssuer,
    StaticCredentialIssuer,
)
from tutorkit.realtime.mock import MockCredentialIssuer, MockDuplexChannel
from tutorkit.realtime.protocol import GeminiLiveProtocol, OpenAIRealtimeProtocol, PeerProtocol
from tutorkit.session.controller import SessionController
from tutorkit.session.prompts import ProactivePromptCycle
from tutorkit.session.watchdog import SilenceWatchdog
from tutorkit.tools.declarations import TUTOR_TOOLS, ToolDeclaration
from tutorkit.tools.dispatcher import ToolDispatcher
from tutorkit.tools.memory import CallbackMemorySink, InMemoryMemorySink, MemorySink
from tutorkit.tools.surface import ControllableMediaSurface, MockMediaSurface, ReadyGatedSurface
from tutorkit.voice.capture.sink import AudioCaptureSink
from tutorkit.voice.microphone import MicrophoneSource, MockMicrophone, SoundDeviceMicrophone
from tutorkit.voice.playback.output import AudioOutput, MockAudioOutput, SoundDeviceOutput
from tutorkit.voice.playback.queue import PlaybackQueue

__all__ = [
    # Session
    "SessionController",
    "SilenceWatchdog",
    "ProactivePromptCycle",
    # Voice
    "AudioCaptureSink",
    "AudioOutput",
    "MicrophoneSource",
    "MockAudioOutput",
    "MockMicrophone",
    "PlaybackQueue",
    "SoundDeviceMicrophone",
    "SoundDeviceOutput",
    # Realtime
    "Credential",
    "CredentialIssuer",
    "DuplexChannel",
    "GeminiLiveProtocol",
    "HTTPCredentialIssuer",
    "MockCredentialIssuer",
    "MockDuplexChannel",
    "OpenAIRealtimeProtocol",
    "PeerProtocol",
    "StaticCredentialIssuer",
    "WebSocketDuplexChannel",
    # Tools
    "CallbackMemorySink",
    "ControllableMediaSurface",
    "InMemoryMemorySink",
    "MemorySink",
    "MockMediaSurface",
    "ReadyGatedSurface",
    "TUTOR_TOOLS",
    "ToolDeclaration",
    "ToolDispatcher",
    # Models
    "CaptureConfig",
    "ConnectionStep",
    "HTTPCredentialConfig",
    "PlaybackConfig",
    "SessionConfig",
    "SessionState",
    "SilenceConfig",
    "StudentIdentity",
    "ToolCallRequest",
    "ToolCallResult",
    "ToolCallShape",
    "ToolConfig",
    "TranscriptRole",
    "TurnDetectionConfig",
    "VADConfig",
    "WatchdogState",
    # Errors
    "ChannelError",
    "CredentialError",
    "MicrophoneAccessError",
    "NotConnectedError",
    "ToolExecutionFailure",
    "TutorKitError",
    "__version__",
]
