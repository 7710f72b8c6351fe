"""Configuration models for tutoring sessions."""

from __future__ import annotations

from urllib.parse import urlparse

from pydantic import BaseModel, Field, SecretStr, field_validator

DEFAULT_PROACTIVE_PROMPTS: tuple[str, ...] = (
    "Hey, is everything okay? Want me to explain it another way?",
    "So, any questions so far? Feel free to ask!",
    "Are you following along? I can repeat that if you like.",
    "Can you hear me? Shall we keep going?",
    "Any questions up to here? I'm here to help!",
    "Is this tricky? I can explain it more simply if you prefer.",
)

DEFAULT_PROMPT_TEMPLATE = (
    "[SYSTEM: The student has been silent for a few seconds. Take the "
    'initiative and encourage them to participate, for example: "{prompt}"]'
)


class TurnDetectionConfig(BaseModel):
    """Server-side turn detection parameters sent in the configuration frame."""

    threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    prefix_padding_ms: int = 400
    silence_duration_ms: int = 800


class VADConfig(BaseModel):
    """Adaptive voice activity gate applied to outbound microphone frames.

    Levels are linear RMS on the normalized ``[-1, 1]`` sample scale.
    """

    enabled: bool = True
    min_rms: float = 0.01
    """Fixed lower bound for the voice threshold."""
    initial_noise_floor: float = 0.002
    floor_update_ratio: float = 2.0
    """Only frames quieter than ``floor * floor_update_ratio`` move the floor."""
    floor_adapt_rate: float = Field(default=0.05, gt=0.0, le=1.0)
    threshold_ratio: float = 3.0
    """Voice threshold is ``max(min_rms, floor * threshold_ratio)``."""
    min_zero_crossing_rate: float = 0.01
    """Crossings per sample below which a frame is treated as hum/silence."""
    max_zero_crossing_rate: float = 0.35
    """Crossings per sample above which a frame is treated as static."""
    hangover_frames: int = Field(default=3, ge=0)
    """Consecutive non-voice frames sent (attenuated) before suppression."""


class CaptureConfig(BaseModel):
    """Microphone framing and noise pipeline."""

    frame_ms: int = Field(default=170, gt=0)
    noise_pipeline: bool = True
    highpass_hz: float = 85.0
    lowpass_hz: float = 8000.0
    compressor_threshold_db: float = -24.0
    compressor_ratio: float = 4.0
    compressor_attack_ms: float = 5.0
    compressor_release_ms: float = 250.0
    vad: VADConfig = Field(default_factory=VADConfig)


class PlaybackConfig(BaseModel):
    """Output chain applied to the peer's speech."""

    gain: float = 2.0
    compressor_threshold_db: float = -12.0
    compressor_knee_db: float = 20.0
    compressor_ratio: float = 4.0
    compressor_attack_ms: float = 10.0
    compressor_release_ms: float = 150.0
    limiter_ceiling: float = Field(default=0.98, gt=0.0, le=1.0)


class ToolConfig(BaseModel):
    """Tool dispatch timing."""

    speech_poll_interval: float = Field(default=0.1, gt=0.0)
    post_speech_delay: float = Field(default=2.0, ge=0.0)
    """Buffer after the peer stops talking before play/restart fires."""
    max_speech_wait: float = Field(default=60.0, gt=0.0)
    """Upper bound on waiting for speech to end; the call then fails."""
    default_seek_offset: float = Field(default=10.0, gt=0.0)


class SilenceConfig(BaseModel):
    """Proactive re-engagement of a silent student."""

    enabled: bool = True
    timeout: float = Field(default=3.0, gt=0.0)
    retry_interval: float = Field(default=1.0, gt=0.0)
    turn_end_grace: float = Field(default=0.5, ge=0.0)
    turn_end_poll_interval: float = Field(default=0.2, gt=0.0)
    prompts: list[str] = Field(default_factory=lambda: list(DEFAULT_PROACTIVE_PROMPTS))
    prompt_template: str = DEFAULT_PROMPT_TEMPLATE

    @field_validator("prompts")
    @classmethod
    def validate_prompts(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("prompts must contain at least one entry")
        return v


class SessionConfig(BaseModel):
    """Everything a tutoring session needs besides its collaborators.

    Attributes:
        system_instruction: Instructions sent in the configuration frame.
        voice: Peer voice preset.
        transcription_model: Model used for input audio transcription.
        input_sample_rate: Capture rate override; ``None`` uses the dialect's.
        output_sample_rate: Playback rate override; ``None`` uses the dialect's.
        barge_in: Flush playback when the peer reports the student started
            speaking.  Off by default so speaker echo cannot cut the tutor off.
    """

    system_instruction: str = (
        "You are a friendly, patient tutor. Explain clearly and keep the "
        "student engaged."
    )
    voice: str | None = None
    transcription_model: str = "whisper-1"
    input_sample_rate: int | None = None
    output_sample_rate: int | None = None
    barge_in: bool = False
    turn_detection: TurnDetectionConfig = Field(default_factory=TurnDetectionConfig)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    playback: PlaybackConfig = Field(default_factory=PlaybackConfig)
    tools: ToolConfig = Field(default_factory=ToolConfig)
    silence: SilenceConfig = Field(default_factory=SilenceConfig)


class HTTPCredentialConfig(BaseModel):
    """Token endpoint used to mint short-lived peer credentials."""

    url: str
    api_key: SecretStr | None = None
    """Sent as ``Authorization: Bearer`` to the token endpoint."""
    timeout: float = 15.0
    headers: dict[str, str] = Field(default_factory=dict)
    default_model: str | None = None
    """Used when the endpoint response carries no model identifier."""

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError("url must be an http(s) URL with a host")
        return v
