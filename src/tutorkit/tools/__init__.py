"""Tools the peer can invoke: video control and student memory."""

from tutorkit.tools.declarations import (
    MEMORY_TOOLS,
    TUTOR_TOOLS,
    VIDEO_TOOLS,
    ToolDeclaration,
)
from tutorkit.tools.dispatcher import ToolDispatcher, parse_arguments
from tutorkit.tools.memory import (
    CallbackMemorySink,
    EmotionalObservation,
    InMemoryMemorySink,
    MemorySink,
)
from tutorkit.tools.surface import ControllableMediaSurface, MockMediaSurface, ReadyGatedSurface

__all__ = [
    "CallbackMemorySink",
    "ControllableMediaSurface",
    "EmotionalObservation",
    "InMemoryMemorySink",
    "MEMORY_TOOLS",
    "MemorySink",
    "MockMediaSurface",
    "ReadyGatedSurface",
    "TUTOR_TOOLS",
    "ToolDeclaration",
    "ToolDispatcher",
    "VIDEO_TOOLS",
    "parse_arguments",
]
