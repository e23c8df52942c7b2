"""Speech-to-text backends powered by ``speech_recognition``."""

from __future__ import annotations

import asyncio
import importlib.util
import io

from civic_voice.errors import BackendUnavailable, RecognitionFailed
from civic_voice.models import TranscriptionResult

from .interfaces import RecognitionBackend

LOCALES = {
    "en": "en-IN",
    "hi": "hi-IN",
    "ta": "ta-IN",
    "te": "te-IN",
    "bn": "bn-IN",
}

ENGINES = ("google", "sphinx")


class SpeechRecognitionBackend(RecognitionBackend):
    """Recognize WAV or raw PCM bytes with the ``speech_recognition`` package.

    ``engine="google"`` calls the hosted Google Web Speech API and reports its
    confidence. ``engine="sphinx"`` runs CMU PocketSphinx offline; Sphinx gives
    no calibrated score, so ``offline_confidence`` is reported instead.
    """

    def __init__(
        self,
        engine: str = "google",
        *,
        languages: list[str] | None = None,
        default_language: str = "hi",
        sample_rate: int = 16_000,
        sample_width: int = 2,
        offline_confidence: float = 0.7,
    ) -> None:
        if engine not in ENGINES:
            raise ValueError(f"Unknown speech_recognition engine: {engine}")
        self.engine = engine
        self.name = f"speech_recognition:{engine}"
        self._languages = list(languages or (LOCALES if engine == "google" else ["en"]))
        self._default_language = default_language
        self._sample_rate = sample_rate
        self._sample_width = sample_width
        self._offline_confidence = offline_confidence
        try:
            import speech_recognition as sr
        except ImportError:  # pragma: no cover - import guard
            self._sr = None
            self._recognizer = None
        else:
            self._sr = sr
            self._recognizer = sr.Recognizer()

    async def transcribe(self, audio_bytes: bytes, language_hint: str | None = None) -> TranscriptionResult:
        if not await self.is_available():
            raise BackendUnavailable(
                self.name,
                "Voice STT backend unavailable. Install extras with: pip install 'civic-voice[voice]'",
            )
        language = language_hint or self._default_language
        return await asyncio.to_thread(self._transcribe_blocking, audio_bytes, language)

    async def detect_language(self, audio_bytes: bytes) -> str:
        # speech_recognition has no language identification; the configured language is the guess.
        return self._default_language

    async def is_available(self) -> bool:
        if self._sr is None:
            return False
        if self.engine == "sphinx":
            return importlib.util.find_spec("pocketsphinx") is not None
        return True

    def supported_languages(self) -> list[str]:
        return list(self._languages)

    def _transcribe_blocking(self, audio_bytes: bytes, language: str) -> TranscriptionResult:
        sr = self._sr
        audio = self._to_audio_data(audio_bytes)
        locale = LOCALES.get(language, language)
        try:
            if self.engine == "google":
                response = self._recognizer.recognize_google(audio, language=locale, show_all=True)
                return self._from_google(response, language)
            text = self._recognizer.recognize_sphinx(audio, language="en-US")
        except sr.UnknownValueError as exc:
            raise RecognitionFailed(f"{self.name} could not understand the audio") from exc
        except sr.RequestError as exc:
            raise BackendUnavailable(
                self.name,
                "Speech recognition service request failed. Check internet access or switch STT backend.",
            ) from exc
        return TranscriptionResult(text=text, confidence=self._offline_confidence, detected_language=language)

    def _to_audio_data(self, audio_bytes: bytes):
        sr = self._sr
        if audio_bytes[:4] == b"RIFF":
            with sr.AudioFile(io.BytesIO(audio_bytes)) as source:
                return self._recognizer.record(source)
        return sr.AudioData(audio_bytes, sample_rate=self._sample_rate, sample_width=self._sample_width)

    @staticmethod
    def _from_google(response: object, language: str) -> TranscriptionResult:
        if not isinstance(response, dict) or not response.get("alternative"):
            raise RecognitionFailed("Google speech returned no transcription")
        candidates = response["alternative"]
        best = candidates[0]
        return TranscriptionResult(
            text=best.get("transcript", ""),
            confidence=float(best.get("confidence", 0.0)),
            detected_language=language,
            alternatives=[c["transcript"] for c in candidates[1:] if c.get("transcript")],
        )
