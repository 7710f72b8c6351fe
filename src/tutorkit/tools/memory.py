"""Side-channel memory writes requested by the peer."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from tutorkit.core.errors import ToolExecutionFailure

logger = logging.getLogger("tutorkit.tools.memory")


class MemorySink(ABC):
    """Receives facts about the student.

    Implementations may be sync or async; awaitable results are awaited
    and only success or failure is reported back to the peer.
    """

    @abstractmethod
    def save_student_name(self, name: str) -> Any: ...

    @abstractmethod
    def save_emotional_observation(self, emotion: str, context: str) -> Any: ...


class CallbackMemorySink(MemorySink):
    """Adapts plain callables into a :class:`MemorySink`.

    A missing callable makes the corresponding tool fail.
    """

    def __init__(
        self,
        *,
        on_student_name: Callable[[str], Any] | None = None,
        on_emotional_observation: Callable[[str, str], Any] | None = None,
    ) -> None:
        self._on_student_name = on_student_name
        self._on_emotional_observation = on_emotional_observation

    def save_student_name(self, name: str) -> Any:
        if self._on_student_name is None:
            raise ToolExecutionFailure("Could not save the name")
        return self._on_student_name(name)

    def save_emotional_observation(self, emotion: str, context: str) -> Any:
        if self._on_emotional_observation is None:
            raise ToolExecutionFailure("Could not record the observation")
        return self._on_emotional_observation(emotion, context)


@dataclass
class EmotionalObservation:
    emotion: str
    context: str
    recorded_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class InMemoryMemorySink(MemorySink):
    """Keeps everything in lists; useful for tests and local runs."""

    def __init__(self) -> None:
        self.names: list[str] = []
        self.observations: list[EmotionalObservation] = []

    @property
    def student_name(self) -> str | None:
        return self.names[-1] if self.names else None

    async def save_student_name(self, name: str) -> None:
        self.names.append(name)
        logger.debug("Stored student name %r", name)

    async def save_emotional_observation(self, emotion: str, context: str) -> None:
        self.observations.append(EmotionalObservation(emotion=emotion, context=context))
        logger.debug("Stored emotional observation %r", emotion)
