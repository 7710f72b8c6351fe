"""Turns raw microphone PCM into gated, encoded frames."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from tutorkit.models.config import CaptureConfig
from tutorkit.voice.audio_frame import AudioFrame
from tutorkit.voice.capture.filters import (
    ButterworthFilter,
    DynamicRangeCompressor,
    FilterChain,
    FilterStage,
)
from tutorkit.voice.capture.vad import AdaptiveVAD
from tutorkit.voice.utils import encode_pcm_base64, float_to_pcm16

logger = logging.getLogger("tutorkit.voice.capture.sink")


@dataclass
class CaptureStats:
    frames_in: int = 0
    frames_sent: int = 0
    frames_voice: int = 0
    frames_suppressed: int = 0


class AudioCaptureSink:
    """Frames, filters, gates and base64-encodes microphone audio.

    Raw int16 blocks of any size are accumulated into fixed-duration
    frames of ``config.frame_ms``.  Each complete frame optionally goes
    through high-pass → low-pass → compressor, then the adaptive VAD gate.
    Frames that survive the gate are returned as base64 strings ready to
    be appended to the peer's input buffer.

    Args:
        sample_rate: Capture sample rate in Hz.
        config: Framing, filter and VAD settings.
    """

    def __init__(self, sample_rate: int = 16000, config: CaptureConfig | None = None) -> None:
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")
        self._config = config or CaptureConfig()
        self._sample_rate = sample_rate
        self._frame_samples = max(1, int(sample_rate * self._config.frame_ms / 1000))
        self._frame_bytes = self._frame_samples * 2
        self._pending = bytearray()
        self._sequence = 0
        self._chain = self._build_chain() if self._config.noise_pipeline else None
        self._vad = AdaptiveVAD(self._config.vad) if self._config.vad.enabled else None
        self.stats = CaptureStats()

    def _build_chain(self) -> FilterChain:
        cfg = self._config
        stages: list[FilterStage] = [
            ButterworthFilter("highpass", cfg.highpass_hz, self._sample_rate),
            ButterworthFilter("lowpass", cfg.lowpass_hz, self._sample_rate),
            DynamicRangeCompressor(
                sample_rate=self._sample_rate,
                threshold_db=cfg.compressor_threshold_db,
                ratio=cfg.compressor_ratio,
                attack_ms=cfg.compressor_attack_ms,
                release_ms=cfg.compressor_release_ms,
            ),
        ]
        chain = FilterChain(stages)
        logger.debug("Capture noise pipeline: %s", chain.name)
        return chain

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def frame_samples(self) -> int:
        return self._frame_samples

    @property
    def vad(self) -> AdaptiveVAD | None:
        return self._vad

    def feed(self, pcm: bytes) -> list[str]:
        """Accept raw int16 PCM and return encoded frames ready to send."""
        if not pcm:
            return []
        self._pending.extend(pcm)
        out: list[str] = []
        while len(self._pending) >= self._frame_bytes:
            chunk = bytes(self._pending[: self._frame_bytes])
            del self._pending[: self._frame_bytes]
            encoded = self._process(chunk)
            if encoded is not None:
                out.append(encoded)
        return out

    def flush(self) -> list[str]:
        """Emit whatever partial frame is buffered (e.g. on stop)."""
        usable = len(self._pending) - len(self._pending) % 2
        if usable == 0:
            self._pending.clear()
            return []
        chunk = bytes(self._pending[:usable])
        self._pending.clear()
        encoded = self._process(chunk)
        return [encoded] if encoded is not None else []

    def process_frame(self, frame: AudioFrame) -> AudioFrame | None:
        """Run one frame through the noise pipeline and gate.

        Returns the frame to transmit (annotated in ``metadata``), or
        ``None`` when the gate suppresses it.
        """
        samples = frame.to_float()
        if self._chain is not None:
            samples = self._chain.process(samples)

        metadata = dict(frame.metadata)
        if self._vad is not None:
            decision = self._vad.classify(samples)
            metadata.update(
                rms=decision.rms,
                is_voice=decision.is_voice,
                noise_floor=decision.noise_floor,
            )
            if decision.is_voice:
                self.stats.frames_voice += 1
            if not decision.transmit:
                self.stats.frames_suppressed += 1
                return None
            if decision.gain < 1.0:
                samples = samples * np.float32(decision.gain)

        return AudioFrame(
            data=float_to_pcm16(samples),
            sample_rate=frame.sample_rate,
            sequence=frame.sequence,
            metadata=metadata,
        )

    def _process(self, chunk: bytes) -> str | None:
        frame = AudioFrame(data=chunk, sample_rate=self._sample_rate, sequence=self._sequence)
        self._sequence += 1
        self.stats.frames_in += 1
        if self._chain is None and self._vad is None:
            self.stats.frames_sent += 1
            return encode_pcm_base64(chunk)
        processed = self.process_frame(frame)
        if processed is None:
            return None
        self.stats.frames_sent += 1
        return encode_pcm_base64(processed.data)

    def reset(self) -> None:
        """Drop buffered audio and filter/VAD state."""
        self._pending.clear()
        self._sequence = 0
        if self._chain is not None:
            self._chain.reset()
        if self._vad is not None:
            self._vad.reset()
        self.stats = CaptureStats()

