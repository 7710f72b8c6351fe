"""Core primitives shared across TutorKit."""

from tutorkit.core.errors import (
    ChannelError,
    CredentialError,
    MicrophoneAccessError,
    NotConnectedError,
    ToolExecutionFailure,
    TutorKitError,
)

__all__ = [
    "ChannelError",
    "CredentialError",
    "MicrophoneAccessError",
    "NotConnectedError",
    "ToolExecutionFailure",
    "TutorKitError",
]
