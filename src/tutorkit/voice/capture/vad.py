"""Adaptive energy + zero-crossing voice activity gate.

The gate tracks the room's ambient level instead of relying on a fixed
threshold, and attenuates rather than hard-mutes non-voice frames so the
transition into silence does not sound chopped.  After a short run of
non-voice frames it stops transmission entirely.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from tutorkit.models.config import VADConfig
from tutorkit.voice.utils import rms, zero_crossings

logger = logging.getLogger("tutorkit.voice.capture.vad")

_DEBUG_SUMMARY_INTERVAL = 30  # frames (~5s at 170ms/frame)


@dataclass
class VADDecision:
    """Classification of one frame."""

    is_voice: bool
    rms: float
    zero_crossings: int
    threshold: float
    noise_floor: float
    gain: float
    """Gain to apply before sending (1.0 for voice)."""
    transmit: bool
    """False once the hangover of non-voice frames is exhausted."""


class AdaptiveVAD:
    """Voice activity detector with an adaptive noise floor and soft gate."""

    def __init__(self, config: VADConfig | None = None) -> None:
        self._config = config or VADConfig()
        self._noise_floor = self._config.initial_noise_floor
        self._silent_run = 0

        # Debug logging counters
        self._debug_frames = 0
        self._debug_voice = 0
        self._debug_suppressed = 0

    @property
    def noise_floor(self) -> float:
        return self._noise_floor

    @property
    def threshold(self) -> float:
        cfg = self._config
        return max(cfg.min_rms, cfg.threshold_ratio * self._noise_floor)

    def _adapt_floor(self, level: float) -> None:
        cfg = self._config
        if level < cfg.floor_update_ratio * self._noise_floor:
            self._noise_floor += cfg.floor_adapt_rate * (level - self._noise_floor)

    def classify(self, samples: np.ndarray) -> VADDecision:
        """Classify a frame and update the adaptive state."""
        cfg = self._config
        level = rms(samples)
        crossings = zero_crossings(samples)
        self._adapt_floor(level)
        threshold = self.threshold

        n = max(samples.size, 1)
        rate = crossings / n
        in_band = cfg.min_zero_crossing_rate <= rate <= cfg.max_zero_crossing_rate
        is_voice = level > threshold and in_band

        if is_voice:
            self._silent_run = 0
            gain = 1.0
            transmit = True
        else:
            self._silent_run += 1
            ratio = min(level / threshold, 1.0) if threshold > 0 else 0.0
            gain = ratio * ratio
            transmit = self._silent_run <= cfg.hangover_frames

        if logger.isEnabledFor(logging.DEBUG):
            self._debug_frames += 1
            self._debug_voice += int(is_voice)
            self._debug_suppressed += int(not transmit)
            if self._debug_frames >= _DEBUG_SUMMARY_INTERVAL:
                logger.debug(
                    "VAD: voice=%d/%d suppressed=%d floor=%.4f threshold=%.4f",
                    self._debug_voice,
                    self._debug_frames,
                    self._debug_suppressed,
                    self._noise_floor,
                    threshold,
                )
                self._debug_frames = 0
                self._debug_voice = 0
                self._debug_suppressed = 0

        return VADDecision(
            is_voice=is_voice,
            rms=level,
            zero_crossings=crossings,
            threshold=threshold,
            noise_floor=self._noise_floor,
            gain=gain,
            transmit=transmit,
        )

    def reset(self) -> None:
        """Reset all internal state."""
        self._noise_floor = self._config.initial_noise_floor
        self._silent_run = 0
        self._debug_frames = 0
        self._debug_voice = 0
        self._debug_suppressed = 0
