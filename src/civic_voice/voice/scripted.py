"""Deterministic in-memory backends for demos and local development."""

from __future__ import annotations

from civic_voice.config import DEFAULT_LANGUAGES
from civic_voice.errors import BackendUnavailable
from civic_voice.models import AudioFormat, SynthesizedAudio, TranscriptionResult, VoiceProfile

from .interfaces import RecognitionBackend, SynthesisBackend


class ScriptedRecognitionBackend(RecognitionBackend):
    """Returns a fixed transcript; audio shorter than ``min_audio_bytes`` is treated as silence."""

    def __init__(
        self,
        name: str,
        *,
        transcript: str,
        confidence: float,
        alternatives: list[str] | None = None,
        languages: list[str] | None = None,
        detected_language: str = "hi",
        available: bool = True,
        min_audio_bytes: int = 1,
    ) -> None:
        self.name = name
        self.transcript = transcript
        self.confidence = confidence
        self.alternatives = list(alternatives or [])
        self.available = available
        self._languages = list(languages or DEFAULT_LANGUAGES)
        self._detected_language = detected_language
        self._min_audio_bytes = min_audio_bytes

    async def transcribe(self, audio_bytes: bytes, language_hint: str | None = None) -> TranscriptionResult:
        if not self.available:
            raise BackendUnavailable(self.name)
        if len(audio_bytes) < self._min_audio_bytes:
            raise RuntimeError(f"{self.name} heard no speech")
        return TranscriptionResult(
            text=self.transcript,
            confidence=self.confidence,
            detected_language=language_hint or self._detected_language,
            alternatives=list(self.alternatives),
        )

    async def detect_language(self, audio_bytes: bytes) -> str:
        return self._detected_language

    async def is_available(self) -> bool:
        return self.available

    def supported_languages(self) -> list[str]:
        return list(self._languages)


class ScriptedSynthesisBackend(SynthesisBackend):
    """Produces a repeatable byte pattern sized by text length."""

    def __init__(
        self,
        name: str,
        *,
        languages: list[str] | None = None,
        audio_format: AudioFormat = AudioFormat.wav,
        sample_rate_hz: int = 22_050,
        seconds_per_character: float = 0.08,
        bytes_per_character: int = 100,
        available: bool = True,
    ) -> None:
        self.name = name
        self.available = available
        self._languages = list(languages or DEFAULT_LANGUAGES)
        self._format = audio_format
        self._sample_rate_hz = sample_rate_hz
        self._seconds_per_character = seconds_per_character
        self._bytes_per_character = bytes_per_character

    async def synthesize(self, text: str, language: str, voice: VoiceProfile | None = None) -> SynthesizedAudio:
        if not self.available:
            raise BackendUnavailable(self.name)
        size = len(text) * self._bytes_per_character
        codes = [ord(char) for char in text]
        data = bytes((codes[index % len(codes)] + index) % 256 for index in range(size))
        return SynthesizedAudio(
            data=data,
            format=self._format,
            duration_seconds=len(text) * self._seconds_per_character,
            sample_rate_hz=self._sample_rate_hz,
        )

    async def is_available(self) -> bool:
        return self.available

    def supported_languages(self) -> list[str]:
        return list(self._languages)

    async def list_voices(self, language: str) -> list[VoiceProfile]:
        if language not in self._languages:
            return []
        return [VoiceProfile(language=language, gender="female"), VoiceProfile(language=language, gender="male")]
