"""Data models for TutorKit."""

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

__all__ = [
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
]
