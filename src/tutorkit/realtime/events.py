"""Normalized inbound events produced by a peer protocol."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from tutorkit.models.enums import TranscriptRole
from tutorkit.models.tool_call import ToolCallRequest


def _utcnow() -> datetime:
    """Get current UTC time (timezone-aware)."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class AudioDelta:
    """A chunk of synthesized speech from the peer."""

    audio_b64: str
    """Base64-encoded int16 little-endian PCM at the dialect's output rate."""

    timestamp: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class TranscriptDone:
    """A completed transcript for one utterance."""

    text: str
    role: TranscriptRole
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class ToolCallsReceived:
    """One or more tool calls extracted from a single inbound message."""

    calls: tuple[ToolCallRequest, ...]
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class SpeechStarted:
    """The peer's server-side VAD detected the student speaking."""

    timestamp: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class SpeechStopped:
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class TurnCompleted:
    """The peer finished generating a response turn."""

    status: str = "completed"
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class Interrupted:
    """The peer abandoned its current response (student barged in)."""

    timestamp: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class PeerError:
    """An error reported by the peer in-band; the channel stays open."""

    code: str
    message: str
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class SessionReady:
    """The peer acknowledged the configuration frame."""

    details: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_utcnow)


PeerEvent = (
    AudioDelta
    | TranscriptDone
    | ToolCallsReceived
    | SpeechStarted
    | SpeechStopped
    | TurnCompleted
    | Interrupted
    | PeerError
    | SessionReady
)
