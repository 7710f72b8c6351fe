"""TutorKit: a voice tutoring session using the local mic and speakers.

Talk to the tutor through your system microphone; its voice plays through
your speakers.  A console "video player" stands in for the lesson video so
you can watch the tutor pause, rewind and resume it.

Requirements:
    pip install tutorkit[local-audio]

Run with:
    OPENAI_API_KEY=... python examples/local_tutor_session.py
    PEER=gemini GOOGLE_API_KEY=... python examples/local_tutor_session.py
    TOKEN_URL=https://school.example/api/realtime-token python examples/local_tutor_session.py

Environment variables:
    PEER                openai | gemini (default: openai)
    OPENAI_API_KEY      OpenAI API key (PEER=openai without TOKEN_URL)
    GOOGLE_API_KEY      Google API key (PEER=gemini without TOKEN_URL)
    TOKEN_URL           Token endpoint minting short-lived credentials
    STUDENT_ID          Student identifier sent to the token endpoint
    SYSTEM_PROMPT       Custom tutor instructions
    VIDEO_LENGTH        Length of the simulated lesson video in seconds (default: 300)

Press Ctrl+C to stop.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import time

from tutorkit import (
    ControllableMediaSurface,
    GeminiLiveProtocol,
    HTTPCredentialConfig,
    HTTPCredentialIssuer,
    InMemoryMemorySink,
    OpenAIRealtimeProtocol,
    SessionConfig,
    SessionController,
    SoundDeviceMicrophone,
    SoundDeviceOutput,
    StaticCredentialIssuer,
    StudentIdentity,
    TranscriptRole,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger("local_tutor_session")


class ConsoleVideo(ControllableMediaSurface):
    """Pretend video player that logs every command and keeps a clock."""

    def __init__(self, duration: float) -> None:
        self._duration = duration
        self._position = 0.0
        self._started_at: float | None = None

    def _now(self) -> float:
        if self._started_at is None:
            return self._position
        return min(self._duration, self._position + time.monotonic() - self._started_at)

    def play(self) -> None:
        if self._started_at is None:
            self._started_at = time.monotonic()
        logger.info("[video] play at %.1fs", self._position)

    def pause(self) -> None:
        self._position = self._now()
        self._started_at = None
        logger.info("[video] pause at %.1fs", self._position)

    def restart(self) -> None:
        self._position = 0.0
        self._started_at = time.monotonic()
        logger.info("[video] restart")

    def seek_to(self, seconds: float) -> None:
        playing = self._started_at is not None
        self._position = max(0.0, min(self._duration, seconds))
        self._started_at = time.monotonic() if playing else None
        logger.info("[video] seek to %.1fs", self._position)

    def get_current_time(self) -> float:
        return self._now()

    def is_paused(self) -> bool:
        return self._started_at is None


async def main() -> None:
    peer = os.environ.get("PEER", "openai").lower()
    protocol = GeminiLiveProtocol() if peer == "gemini" else OpenAIRealtimeProtocol()

    token_url = os.environ.get("TOKEN_URL")
    if token_url:
        credentials = HTTPCredentialIssuer(HTTPCredentialConfig(url=token_url))
    else:
        key_var = "GOOGLE_API_KEY" if peer == "gemini" else "OPENAI_API_KEY"
        api_key = os.environ.get(key_var)
        if not api_key:
            print(f"Set {key_var} (or TOKEN_URL) to run this example.")
            return
        credentials = StaticCredentialIssuer(api_key)

    config = SessionConfig(
        system_instruction=os.environ.get(
            "SYSTEM_PROMPT",
            "You are a patient math tutor. The student is watching a lesson "
            "video about fractions; pause it to explain, and resume it when "
            "the student is ready.",
        ),
    )
    memory = InMemoryMemorySink()
    video = ConsoleVideo(float(os.environ.get("VIDEO_LENGTH", "300")))

    controller = SessionController(
        protocol=protocol,
        credentials=credentials,
        output=SoundDeviceOutput(),
        microphone=SoundDeviceMicrophone(),
        config=config,
        student=StudentIdentity(student_id=os.environ.get("STUDENT_ID", "local-student")),
        surface=video,
        memory=memory,
    )

    def on_transcript(text: str, role: TranscriptRole) -> None:
        speaker = "Tutor" if role == TranscriptRole.ASSISTANT else "You"
        print(f"{speaker}: {text}")

    controller.set_callbacks(
        on_state_change=lambda state: logger.info("Session %s", state),
        on_transcript=on_transcript,
        on_error=lambda message: logger.error("Session error: %s", message),
    )

    await controller.connect()
    await controller.start_listening()
    video.play()
    logger.info("Tutor session started (%s). Press Ctrl+C to stop.", protocol.name)

    # --- Keep running until Ctrl+C ---
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await stop.wait()

    # --- Cleanup ---
    logger.info("Stopping...")
    await controller.close()
    if memory.student_name:
        logger.info("Student name: %s", memory.student_name)
    for obs in memory.observations:
        logger.info("Observation: %s (%s)", obs.emotion, obs.context)
    logger.info("Done.")


if __name__ == "__main__":
    asyncio.run(main())
