"""Contracts for speech recognition and synthesis backends."""

from __future__ import annotations

from typing import Protocol

from civic_voice.models import SynthesizedAudio, TranscriptionResult, VoiceProfile


class RecognitionBackend(Protocol):
    """Converts buffered audio into text.

    Implementations report ``is_available() is False`` rather than raising when
    unreachable, and must not block indefinitely.
    """

    name: str

    async def transcribe(self, audio_bytes: bytes, language_hint: str | None = None) -> TranscriptionResult:
        """Return recognized text from raw audio input."""

    async def detect_language(self, audio_bytes: bytes) -> str:
        """Return a best-guess language code for the audio."""

    async def is_available(self) -> bool:
        """Whether the backend can currently serve requests."""

    def supported_languages(self) -> list[str]:
        """Language codes this backend can transcribe."""


class SynthesisBackend(Protocol):
    """Converts text responses into audio output."""

    name: str

    async def synthesize(self, text: str, language: str, voice: VoiceProfile | None = None) -> SynthesizedAudio:
        """Return playable audio for the given text."""

    async def is_available(self) -> bool:
        """Whether the backend can currently serve requests."""

    def supported_languages(self) -> list[str]:
        """Language codes this backend can speak."""

    async def list_voices(self, language: str) -> list[VoiceProfile]:
        """Voices offered for ``language``."""
