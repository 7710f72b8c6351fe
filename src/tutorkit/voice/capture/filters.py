"""Stateful filter stages for the microphone noise pipeline.

Each stage processes float32 frames in ``[-1, 1]`` and keeps its state
between calls so consecutive frames join without discontinuities.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod

import numpy as np
from scipy import signal

from tutorkit.voice.utils import db_to_linear

logger = logging.getLogger("tutorkit.voice.capture.filters")

# Compressor gain is computed per block of this many milliseconds.
_ENVELOPE_BLOCK_MS = 2.0


class FilterStage(ABC):
    """A single processing stage in the capture chain."""

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def process(self, samples: np.ndarray) -> np.ndarray:
        """Process one frame and return a new array of the same length."""
        ...

    def reset(self) -> None:  # noqa: B027
        """Forget accumulated state."""


class ButterworthFilter(FilterStage):
    """Second-order Butterworth high-pass or low-pass filter.

    Cutoffs at or above Nyquist are clamped to 45% of the sample rate.
    """

    def __init__(self, kind: str, cutoff_hz: float, sample_rate: int, order: int = 2) -> None:
        if kind not in ("highpass", "lowpass"):
            raise ValueError(f"kind must be 'highpass' or 'lowpass', got {kind!r}")
        if cutoff_hz <= 0:
            raise ValueError(f"cutoff_hz must be positive, got {cutoff_hz}")
        limit = 0.45 * sample_rate
        if cutoff_hz > limit:
            logger.debug(
                "%s cutoff %.0f Hz above limit for %d Hz audio, clamping to %.0f Hz",
                kind,
                cutoff_hz,
                sample_rate,
                limit,
            )
            cutoff_hz = limit
        self._kind = kind
        self._cutoff_hz = cutoff_hz
        self._sos = signal.butter(order, cutoff_hz, btype=kind, fs=sample_rate, output="sos")
        self._zi = np.zeros((self._sos.shape[0], 2))

    @property
    def name(self) -> str:
        return f"{self._kind}({self._cutoff_hz:.0f}Hz)"

    @property
    def cutoff_hz(self) -> float:
        return self._cutoff_hz

    def process(self, samples: np.ndarray) -> np.ndarray:
        if samples.size == 0:
            return samples.astype(np.float32)
        out, self._zi = signal.sosfilt(self._sos, samples, zi=self._zi)
        return out.astype(np.float32)

    def reset(self) -> None:
        self._zi = np.zeros((self._sos.shape[0], 2))


class DynamicRangeCompressor(FilterStage):
    """Feed-forward compressor with attack/release envelope smoothing.

    Level detection is RMS over short blocks; gain reduction above
    ``threshold_db`` follows ``ratio`` with an optional soft ``knee_db``.
    """

    def __init__(
        self,
        *,
        sample_rate: int,
        threshold_db: float = -24.0,
        ratio: float = 4.0,
        attack_ms: float = 5.0,
        release_ms: float = 250.0,
        knee_db: float = 0.0,
        makeup_db: float = 0.0,
    ) -> None:
        if ratio < 1.0:
            raise ValueError(f"ratio must be >= 1, got {ratio}")
        self._threshold_db = threshold_db
        self._ratio = ratio
        self._knee_db = max(0.0, knee_db)
        self._makeup = db_to_linear(makeup_db)
        self._block = max(1, int(sample_rate * _ENVELOPE_BLOCK_MS / 1000))
        block_s = self._block / sample_rate
        self._attack_coef = math.exp(-block_s / max(attack_ms / 1000, 1e-6))
        self._release_coef = math.exp(-block_s / max(release_ms / 1000, 1e-6))
        self._envelope_db = -120.0

    @property
    def name(self) -> str:
        return f"compressor({self._threshold_db:.0f}dB,{self._ratio:g}:1)"

    def _gain_reduction_db(self, level_db: float) -> float:
        over = level_db - self._threshold_db
        slope = 1.0 - 1.0 / self._ratio
        if self._knee_db > 0.0:
            half = self._knee_db / 2.0
            if over <= -half:
                return 0.0
            if over < half:
                return -slope * (over + half) ** 2 / (2.0 * self._knee_db)
        elif over <= 0.0:
            return 0.0
        return -slope * over

    def process(self, samples: np.ndarray) -> np.ndarray:
        n = samples.size
        if n == 0:
            return samples.astype(np.float32)
        n_blocks = math.ceil(n / self._block)
        gains = np.empty(n_blocks, dtype=np.float64)
        for i in range(n_blocks):
            block = samples[i * self._block : (i + 1) * self._block]
            level = float(np.sqrt(np.mean(np.square(block, dtype=np.float64))))
            level_db = 20.0 * math.log10(level) if level > 1e-6 else -120.0
            coef = self._attack_coef if level_db > self._envelope_db else self._release_coef
            self._envelope_db = coef * self._envelope_db + (1.0 - coef) * level_db
            gains[i] = db_to_linear(self._gain_reduction_db(self._envelope_db))
        per_sample = np.repeat(gains, self._block)[:n]
        return (samples * per_sample * self._makeup).astype(np.float32)

    def reset(self) -> None:
        self._envelope_db = -120.0


class FilterChain(FilterStage):
    """Runs stages in order."""

    def __init__(self, stages: list[FilterStage]) -> None:
        self._stages = list(stages)

    @property
    def name(self) -> str:
        return " -> ".join(s.name for s in self._stages) or "passthrough"

    @property
    def stages(self) -> list[FilterStage]:
        return list(self._stages)

    def process(self, samples: np.ndarray) -> np.ndarray:
        for stage in self._stages:
            samples = stage.process(samples)
        return samples

    def reset(self) -> None:
        for stage in self._stages:
            stage.reset()
