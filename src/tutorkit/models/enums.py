"""All string enums for TutorKit."""

from __future__ import annotations

from enum import StrEnum, unique


@unique
class SessionState(StrEnum):
    """Connection state of a tutoring session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@unique
class ConnectionStep(StrEnum):
    """Progress markers reported while ``connect()`` runs."""

    IDLE = "idle"
    FETCHING_KEY = "fetching_key"
    CONNECTING_CHANNEL = "connecting_channel"
    CONFIGURING = "configuring"
    READY = "ready"


@unique
class TranscriptRole(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"


@unique
class ToolCallShape(StrEnum):
    """Wire shape a tool call arrived in."""

    INLINE_PART = "inline_part"
    BATCH = "batch"
    TURN_ENVELOPE = "turn_envelope"
    ARGUMENTS_DONE = "arguments_done"
    OUTPUT_ITEM = "output_item"
    CONVERSATION_ITEM = "conversation_item"


@unique
class WatchdogState(StrEnum):
    IDLE = "idle"
    ARMED = "armed"
