"""Shared test fixtures and helpers."""

from __future__ import annotations

import asyncio
import base64
from collections.abc import Callable, Coroutine
from typing import Any

import numpy as np
import pytest

from tutorkit.models.config import SessionConfig, SilenceConfig, ToolConfig


@pytest.fixture
def advance() -> Callable[[int], Coroutine[Any, Any, None]]:
    """Yield control to let pending tasks run without real delay.

    Replaces ``await asyncio.sleep(0.05)`` patterns with zero-delay
    event loop yields::

        await advance()       # 5 yields (default)
        await advance(10)     # 10 yields for heavier workloads
    """

    async def _advance(n: int = 5) -> None:
        for _ in range(n):
            await asyncio.sleep(0)

    return _advance


def tone(
    duration_ms: float,
    *,
    sample_rate: int = 16000,
    freq: float = 300.0,
    amplitude: float = 0.3,
) -> np.ndarray:
    """A sine tone as float32 samples."""
    n = int(sample_rate * duration_ms / 1000)
    t = np.arange(n, dtype=np.float64) / sample_rate
    return (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float32)


def pcm(samples: np.ndarray) -> bytes:
    """Float samples to int16 little-endian bytes."""
    return (np.clip(samples, -1.0, 1.0) * 32767).astype("<i2").tobytes()


def silence_pcm(duration_ms: float, sample_rate: int = 16000) -> bytes:
    return b"\x00\x00" * int(sample_rate * duration_ms / 1000)


def b64_pcm(duration_ms: float = 20, *, sample_rate: int = 24000, amplitude: float = 0.1) -> str:
    """A base64 PCM chunk as the peer would send it."""
    data = pcm(tone(duration_ms, sample_rate=sample_rate, amplitude=amplitude))
    return base64.b64encode(data).decode("ascii")


def fast_tool_config(**overrides: Any) -> ToolConfig:
    values: dict[str, Any] = {
        "speech_poll_interval": 0.005,
        "post_speech_delay": 0.01,
        "max_speech_wait": 1.0,
    }
    values.update(overrides)
    return ToolConfig(**values)


def fast_silence_config(**overrides: Any) -> SilenceConfig:
    values: dict[str, Any] = {
        "timeout": 0.05,
        "retry_interval": 0.02,
        "turn_end_grace": 0.005,
        "turn_end_poll_interval": 0.005,
        "prompts": ["first", "second", "third"],
        "prompt_template": "[SYSTEM: {prompt}]",
    }
    values.update(overrides)
    return SilenceConfig(**values)


def fast_session_config(**overrides: Any) -> SessionConfig:
    values: dict[str, Any] = {
        "system_instruction": "Teach fractions.",
        "tools": fast_tool_config(),
        "silence": fast_silence_config(),
    }
    values.update(overrides)
    return SessionConfig(**values)
