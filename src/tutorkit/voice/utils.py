"""Shared audio utilities for the voice subsystem."""

from __future__ import annotations

import base64
import binascii

import numpy as np


def pcm16_to_float(data: bytes) -> np.ndarray:
    """Decode little-endian int16 PCM into float32 samples in ``[-1, 1)``.

    A trailing odd byte is ignored.
    """
    n = len(data) // 2
    if n == 0:
        return np.zeros(0, dtype=np.float32)
    samples = np.frombuffer(data[: n * 2], dtype="<i2")
    return samples.astype(np.float32) / 32768.0


def float_to_pcm16(samples: np.ndarray) -> bytes:
    """Encode float samples as little-endian int16 PCM, clipping to range."""
    if samples.size == 0:
        return b""
    scaled = np.clip(np.asarray(samples, dtype=np.float64) * 32768.0, -32768, 32767)
    return scaled.astype("<i2").tobytes()


def encode_pcm_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_pcm_base64(payload: str) -> bytes:
    """Decode a base64 PCM payload; raises ``ValueError`` when malformed."""
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Invalid base64 audio payload: {exc}") from exc


def rms(samples: np.ndarray) -> float:
    """Root-mean-square level of float samples (0.0 for empty input)."""
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(samples, dtype=np.float64))))


def zero_crossings(samples: np.ndarray) -> int:
    """Number of sign changes between consecutive samples.

    Exact zeros count as positive so a silent frame has no crossings.
    """
    if samples.size < 2:
        return 0
    signs = samples < 0
    return int(np.count_nonzero(signs[1:] != signs[:-1]))


def db_to_linear(db: float) -> float:
    return float(10.0 ** (db / 20.0))
