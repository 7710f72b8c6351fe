"""Playback of the peer's synthesized speech."""

from tutorkit.voice.playback.dynamics import OutputChain
from tutorkit.voice.playback.output import AudioOutput, MockAudioOutput, SoundDeviceOutput
from tutorkit.voice.playback.queue import PlaybackQueue

__all__ = [
    "AudioOutput",
    "MockAudioOutput",
    "OutputChain",
    "PlaybackQueue",
    "SoundDeviceOutput",
]
