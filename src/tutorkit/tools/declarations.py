"""Tool declarations advertised to the peer in the configuration frame."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ToolDeclaration:
    """A function the peer may call, with a JSON-schema parameter list."""

    name: str
    description: str
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []}
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


def _params(properties: dict[str, Any], required: list[str] | None = None) -> dict[str, Any]:
    return {"type": "object", "properties": properties, "required": required or []}


PLAY_VIDEO = ToolDeclaration(
    name="play_video",
    description=(
        "Resume the lesson video. Only call this after you have finished "
        "speaking; playback starts once your speech has ended."
    ),
)

PAUSE_VIDEO = ToolDeclaration(
    name="pause_video",
    description="Pause the lesson video immediately, e.g. to explain something.",
)

RESTART_VIDEO = ToolDeclaration(
    name="restart_video",
    description="Restart the lesson video from the beginning and play it.",
)

SEEK_VIDEO = ToolDeclaration(
    name="seek_video",
    description="Jump to an absolute position in the lesson video.",
    parameters=_params(
        {"seconds": {"type": "number", "description": "Target position in seconds."}},
        ["seconds"],
    ),
)

SEEK_BACKWARD = ToolDeclaration(
    name="seek_backward",
    description="Rewind the lesson video by a number of seconds (default 10).",
    parameters=_params(
        {"seconds": {"type": "number", "description": "How many seconds to go back."}}
    ),
)

SEEK_FORWARD = ToolDeclaration(
    name="seek_forward",
    description="Skip the lesson video forward by a number of seconds (default 10).",
    parameters=_params(
        {"seconds": {"type": "number", "description": "How many seconds to skip."}}
    ),
)

SAVE_STUDENT_NAME = ToolDeclaration(
    name="save_student_name",
    description="Remember the student's name once they have told you.",
    parameters=_params(
        {"name": {"type": "string", "description": "The student's name."}},
        ["name"],
    ),
)

SAVE_EMOTIONAL_OBSERVATION = ToolDeclaration(
    name="save_emotional_observation",
    description=(
        "Record how the student seems to feel (confused, bored, excited...) "
        "and what prompted the observation."
    ),
    parameters=_params(
        {
            "emotion": {"type": "string", "description": "Observed emotion."},
            "context": {"type": "string", "description": "What led to the observation."},
        },
        ["emotion", "context"],
    ),
)

VIDEO_TOOLS: tuple[ToolDeclaration, ...] = (
    PLAY_VIDEO,
    PAUSE_VIDEO,
    RESTART_VIDEO,
    SEEK_VIDEO,
    SEEK_BACKWARD,
    SEEK_FORWARD,
)

MEMORY_TOOLS: tuple[ToolDeclaration, ...] = (SAVE_STUDENT_NAME, SAVE_EMOTIONAL_OBSERVATION)

TUTOR_TOOLS: tuple[ToolDeclaration, ...] = VIDEO_TOOLS + MEMORY_TOOLS
