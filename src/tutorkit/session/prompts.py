"""Rotating proactive prompts used to re-engage a silent student."""

from __future__ import annotations

from collections.abc import Sequence

from tutorkit.models.config import DEFAULT_PROACTIVE_PROMPTS


class ProactivePromptCycle:
    """Hands out prompts in order, wrapping only after the whole list.

    Example:
        cycle = ProactivePromptCycle(["a", "b"])
        [cycle.next() for _ in range(3)]  # ["a", "b", "a"]
    """

    def __init__(self, prompts: Sequence[str] = DEFAULT_PROACTIVE_PROMPTS) -> None:
        if not prompts:
            raise ValueError("prompts must contain at least one entry")
        self._prompts = tuple(prompts)
        self._index = 0

    def __len__(self) -> int:
        return len(self._prompts)

    @property
    def index(self) -> int:
        """How many prompts have been handed out so far."""
        return self._index

    def peek(self) -> str:
        return self._prompts[self._index % len(self._prompts)]

    def next(self) -> str:
        prompt = self.peek()
        self._index += 1
        return prompt
