"""Error taxonomy for voice orchestration."""

from __future__ import annotations

from civic_voice.models import FallbackSuggestion


class VoiceError(Exception):
    """Base class for every error raised by civic_voice."""


class ValidationError(VoiceError):
    """Caller supplied empty text, an unsupported language or malformed audio."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or [message]


class BackendUnavailable(VoiceError):
    """A single recognition or synthesis backend could not be used."""

    def __init__(self, backend: str, message: str | None = None) -> None:
        super().__init__(message or f"Backend unavailable: {backend}")
        self.backend = backend


class RecognitionFailed(VoiceError):
    """Speech recognition failed after the cascade was exhausted."""

    def __init__(self, message: str, *, fallback_suggestion: FallbackSuggestion | None = None) -> None:
        super().__init__(message)
        self.fallback_suggestion = fallback_suggestion

    @property
    def suggest_text_fallback(self) -> bool:
        return bool(self.fallback_suggestion and self.fallback_suggestion.should_suggest_fallback)


class RecognitionUnavailable(RecognitionFailed):
    """No recognition backend was usable for the request."""


class SynthesisFailed(VoiceError):
    """Speech synthesis failed after the cascade was exhausted."""


class NoSynthesisEngineAvailable(SynthesisFailed):
    """No synthesis backend can serve the requested language."""

    def __init__(self, language: str) -> None:
        super().__init__(f"No synthesis engine available for language: {language}")
        self.language = language


class SessionNotFound(VoiceError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"No voice context for session: {session_id}")
        self.session_id = session_id


class VoiceInputDisabled(VoiceError):
    """Voice input is switched off in configuration."""


class VoiceOutputDisabled(VoiceError):
    """Voice output is switched off in configuration."""
