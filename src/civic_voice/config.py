"""Runtime configuration for civic-voice."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_LANGUAGES = ["en", "hi", "ta", "te", "bn"]


class Settings(BaseSettings):
    """Environment-driven runtime settings."""

    model_config = SettingsConfigDict(env_prefix="CIVIC_VOICE_", env_file=".env", extra="ignore")

    app_name: str = "civic-voice"
    log_level: str = "INFO"

    default_language: str = "hi"
    supported_languages: list[str] = Field(default_factory=lambda: list(DEFAULT_LANGUAGES))

    enable_voice_input: bool = True
    enable_voice_output: bool = True
    preserve_context: bool = True
    fallback_to_text: bool = True

    prefer_lightweight_synthesis: bool = True
    enable_rich_synthesis: bool = True
    fallback_to_offline_recognition: bool = True
    confidence_acceptance_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    max_failures_before_fallback: int = Field(default=2, ge=1)
    session_timeout_minutes: int = Field(default=30, ge=1)
    compression_enabled: bool = True

    max_audio_bytes: int = Field(default=5 * 1024 * 1024, gt=0)
    min_audio_bytes: int = Field(default=1024, ge=0)
    assumed_bitrate_kbps: int = Field(default=64, gt=0)
    recognition_compression_level: int = Field(
        default=6,
        ge=1,
        le=10,
        description="Compression level applied before sending audio to the high-accuracy recognizer.",
    )

    default_voice_gender: str = "female"
    synthesis_sample_rate_hz: int = Field(default=22_050, gt=0)


settings = Settings()
