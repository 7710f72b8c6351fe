"""Exception hierarchy for TutorKit."""

from __future__ import annotations


class TutorKitError(Exception):
    """Base exception for all TutorKit errors."""


class CredentialError(TutorKitError):
    """The short-lived credential could not be obtained."""


class ChannelError(TutorKitError):
    """The duplex channel failed to open or closed abnormally."""

    def __init__(self, message: str, *, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class NotConnectedError(TutorKitError):
    """Operation attempted while the session is not connected."""


class ToolExecutionFailure(TutorKitError):
    """A tool call could not be carried out.

    Raised inside tool handlers only; the dispatcher converts it into a
    failed :class:`~tutorkit.models.tool_call.ToolCallResult` for the peer.
    """


class MicrophoneAccessError(TutorKitError):
    """The microphone could not be opened (permission denied, no device)."""
