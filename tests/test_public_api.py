"""Tests for public API surface."""

from __future__ import annotations

import tutorkit


class TestPublicAPI:
    def test_version_string(self) -> None:
        assert isinstance(tutorkit.__version__, str)
        assert tutorkit.__version__ == "0.1.0"

    def test_all_names_importable(self) -> None:
        for name in tutorkit.__all__:
            obj = getattr(tutorkit, name)
            assert obj is not None, f"{name} is None"

    def test_core_classes_available(self) -> None:
        assert tutorkit.SessionController is not None
        assert tutorkit.OpenAIRealtimeProtocol is not None
        assert tutorkit.GeminiLiveProtocol is not None
        assert tutorkit.ToolDispatcher is not None

    def test_subpackage_imports(self) -> None:
        from tutorkit.realtime import protocol
        from tutorkit.session import controller
        from tutorkit.tools import dispatcher
        from tutorkit.voice.capture import vad
        from tutorkit.voice.playback import queue

        assert protocol is not None
        assert controller is not None
        assert dispatcher is not None
        assert vad is not None
        assert queue is not None

    def test_exception_classes(self) -> None:
        for error in (
            tutorkit.CredentialError,
            tutorkit.ChannelError,
            tutorkit.NotConnectedError,
            tutorkit.MicrophoneAccessError,
            tutorkit.ToolExecutionFailure,
        ):
            assert issubclass(error, tutorkit.TutorKitError)
