"""AudioFrame data model shared by capture and playback."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np


@dataclass
class AudioFrame:
    """A block of 16-bit mono PCM audio.

    Frames are produced by the microphone (capture) or decoded from the
    peer (playback) and consumed exactly once by their queue.  ``sequence``
    increases monotonically with arrival order within one producer.
    """

    data: bytes
    """Raw little-endian int16 PCM bytes."""

    sample_rate: int = 16000
    """Sample rate in Hz."""

    sequence: int = 0
    """Arrival order tag."""

    metadata: dict[str, Any] = field(default_factory=dict)
    """Pipeline stages annotate results here (e.g. ``rms``, ``is_voice``)."""

    def __post_init__(self) -> None:
        if not isinstance(self.data, bytes):
            raise ValueError("AudioFrame.data must be bytes")
        if self.sample_rate <= 0 or self.sample_rate > 192_000:
            raise ValueError(f"sample_rate must be between 1 and 192000, got {self.sample_rate}")
        if len(self.data) % 2 != 0:
            raise ValueError(f"data length ({len(self.data)}) must be divisible by 2")
        if self.sequence < 0:
            raise ValueError(f"sequence must be non-negative, got {self.sequence}")

    @classmethod
    def from_samples(
        cls, samples: np.ndarray, sample_rate: int, sequence: int = 0
    ) -> AudioFrame:
        """Build a frame from float samples in ``[-1, 1]``."""
        from tutorkit.voice.utils import float_to_pcm16

        return cls(data=float_to_pcm16(samples), sample_rate=sample_rate, sequence=sequence)

    @property
    def num_samples(self) -> int:
        return len(self.data) // 2

    @property
    def duration_ms(self) -> float:
        return self.num_samples * 1000.0 / self.sample_rate

    def to_float(self) -> np.ndarray:
        """Samples as float32 in ``[-1, 1)``."""
        from tutorkit.voice.utils import pcm16_to_float

        return pcm16_to_float(self.data)
