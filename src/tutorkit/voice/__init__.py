"""Audio capture and playback for tutoring sessions."""

from tutorkit.voice.audio_frame import AudioFrame
from tutorkit.voice.capture import AudioCaptureSink, CaptureStats
from tutorkit.voice.microphone import MicrophoneSource, MockMicrophone, SoundDeviceMicrophone
from tutorkit.voice.playback import (
    AudioOutput,
    MockAudioOutput,
    OutputChain,
    PlaybackQueue,
    SoundDeviceOutput,
)

__all__ = [
    "AudioCaptureSink",
    "AudioFrame",
    "AudioOutput",
    "CaptureStats",
    "MicrophoneSource",
    "MockAudioOutput",
    "MockMicrophone",
    "OutputChain",
    "PlaybackQueue",
    "SoundDeviceMicrophone",
    "SoundDeviceOutput",
]
