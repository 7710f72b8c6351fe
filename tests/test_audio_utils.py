"""Tests for AudioFrame and PCM helpers."""

from __future__ import annotations

import numpy as np
import pytest

from tutorkit.voice.audio_frame import AudioFrame
from tutorkit.voice.utils import (
    db_to_linear,
    decode_pcm_base64,
    encode_pcm_base64,
    float_to_pcm16,
    pcm16_to_float,
    rms,
    zero_crossings,
)


class TestAudioFrame:
    def test_defaults(self) -> None:
        frame = AudioFrame(data=b"\x00\x00" * 160)
        assert frame.sample_rate == 16000
        assert frame.sequence == 0
        assert frame.num_samples == 160
        assert frame.duration_ms == pytest.approx(10.0)

    def test_odd_length_rejected(self) -> None:
        with pytest.raises(ValueError, match="divisible by 2"):
            AudioFrame(data=b"\x00\x00\x00")

    def test_bad_sample_rate_rejected(self) -> None:
        with pytest.raises(ValueError, match="sample_rate"):
            AudioFrame(data=b"", sample_rate=0)

    def test_negative_sequence_rejected(self) -> None:
        with pytest.raises(ValueError, match="sequence"):
            AudioFrame(data=b"", sequence=-1)

    def test_non_bytes_rejected(self) -> None:
        with pytest.raises(ValueError, match="bytes"):
            AudioFrame(data=bytearray(4))  # type: ignore[arg-type]

    def test_from_samples(self) -> None:
        frame = AudioFrame.from_samples(np.array([0.0, 0.5, -0.5], dtype=np.float32), 24000, 7)
        assert frame.sample_rate == 24000
        assert frame.sequence == 7
        assert frame.num_samples == 3
        back = frame.to_float()
        assert back[1] == pytest.approx(0.5, abs=1e-4)
        assert back[2] == pytest.approx(-0.5, abs=1e-4)


class TestPcmConversion:
    def test_empty(self) -> None:
        assert pcm16_to_float(b"").size == 0
        assert float_to_pcm16(np.zeros(0, dtype=np.float32)) == b""

    def test_trailing_odd_byte_ignored(self) -> None:
        assert pcm16_to_float(b"\x00\x40\x01").size == 1

    def test_full_scale_clips(self) -> None:
        data = float_to_pcm16(np.array([2.0, -2.0], dtype=np.float32))
        samples = np.frombuffer(data, dtype="<i2")
        assert samples.tolist() == [32767, -32768]

    def test_known_value(self) -> None:
        # 0x4000 == 16384 == 0.5 full scale
        assert pcm16_to_float(b"\x00\x40")[0] == pytest.approx(0.5)


class TestBase64:
    def test_encode(self) -> None:
        assert encode_pcm_base64(b"\x00\x00\xff\x7f") == "AAD/fw=="

    def test_decode(self) -> None:
        assert decode_pcm_base64("AAD/fw==") == b"\x00\x00\xff\x7f"

    def test_decode_invalid(self) -> None:
        with pytest.raises(ValueError, match="Invalid base64"):
            decode_pcm_base64("not base64!!")


class TestLevels:
    def test_rms_of_silence(self) -> None:
        assert rms(np.zeros(100, dtype=np.float32)) == 0.0

    def test_rms_of_constant(self) -> None:
        assert rms(np.full(100, 0.25, dtype=np.float32)) == pytest.approx(0.25)

    def test_rms_empty(self) -> None:
        assert rms(np.zeros(0, dtype=np.float32)) == 0.0

    def test_zero_crossings(self) -> None:
        samples = np.array([0.1, -0.1, 0.1, 0.2, -0.3], dtype=np.float32)
        assert zero_crossings(samples) == 3

    def test_zero_crossings_silence(self) -> None:
        assert zero_crossings(np.zeros(50, dtype=np.float32)) == 0

    def test_db_to_linear(self) -> None:
        assert db_to_linear(0.0) == pytest.approx(1.0)
        assert db_to_linear(-6.0206) == pytest.approx(0.5, rel=1e-3)
