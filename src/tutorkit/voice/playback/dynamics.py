"""Output chain for the tutor's voice: gain → compressor → limiter."""

from __future__ import annotations

import numpy as np

from tutorkit.models.config import PlaybackConfig
from tutorkit.voice.capture.filters import DynamicRangeCompressor


class OutputChain:
    """Raises loudness without clipping.

    The compressor keeps state across buffers so consecutive buffers of
    one utterance are treated as a continuous signal.
    """

    def __init__(self, sample_rate: int, config: PlaybackConfig | None = None) -> None:
        self._config = config or PlaybackConfig()
        self._compressor = DynamicRangeCompressor(
            sample_rate=sample_rate,
            threshold_db=self._config.compressor_threshold_db,
            ratio=self._config.compressor_ratio,
            attack_ms=self._config.compressor_attack_ms,
            release_ms=self._config.compressor_release_ms,
            knee_db=self._config.compressor_knee_db,
        )

    def process(self, samples: np.ndarray) -> np.ndarray:
        if samples.size == 0:
            return samples.astype(np.float32)
        boosted = samples * np.float32(self._config.gain)
        compressed = self._compressor.process(boosted)
        ceiling = self._config.limiter_ceiling
        return np.clip(compressed, -ceiling, ceiling).astype(np.float32)

    def reset(self) -> None:
        self._compressor.reset()
