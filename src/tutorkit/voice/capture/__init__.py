"""Microphone capture pipeline."""

from tutorkit.voice.capture.filters import (
    ButterworthFilter,
    DynamicRangeCompressor,
    FilterChain,
    FilterStage,
)
from tutorkit.voice.capture.sink import AudioCaptureSink, CaptureStats
from tutorkit.voice.capture.vad import AdaptiveVAD, VADDecision

__all__ = [
    "AdaptiveVAD",
    "AudioCaptureSink",
    "ButterworthFilter",
    "CaptureStats",
    "DynamicRangeCompressor",
    "FilterChain",
    "FilterStage",
    "VADDecision",
]
