"""Accuracy-first speech recognition cascade."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from civic_voice.config import DEFAULT_LANGUAGES
from civic_voice.errors import BackendUnavailable, RecognitionFailed, RecognitionUnavailable, ValidationError
from civic_voice.models import AudioPayload, TranscriptionResult

from .audio import AudioAdapter
from .interfaces import RecognitionBackend


@dataclass(slots=True)
class RecognitionConfig:
    confidence_acceptance_threshold: float = 0.8
    fallback_to_offline: bool = True
    compression_enabled: bool = True
    compression_level: int = 6
    fallback_language: str = "hi"
    supported_languages: list[str] = field(default_factory=lambda: list(DEFAULT_LANGUAGES))


class RecognitionCascade:
    """Tries recognition backends strictly in priority order, never concurrently.

    The first backend is the high-accuracy one; its result is accepted when its
    confidence reaches the acceptance threshold. Later backends are fallbacks and
    are only attempted when offline fallback is enabled and they support the
    request language. A fallback's result is returned as-is. An empty transcript
    never counts as a result, and when no backend produces an acceptable one the
    call fails.
    """

    def __init__(
        self,
        backends: Sequence[RecognitionBackend],
        *,
        config: RecognitionConfig | None = None,
        audio_adapter: AudioAdapter | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if not backends:
            raise ValueError("RecognitionCascade needs at least one backend")
        self._backends = list(backends)
        self._config = config or RecognitionConfig()
        self._audio_adapter = audio_adapter or AudioAdapter()
        self._logger = logger or logging.getLogger("civic_voice.recognition")

    @property
    def backends(self) -> list[RecognitionBackend]:
        return list(self._backends)

    async def transcribe(self, audio: AudioPayload, language: str | None = None) -> TranscriptionResult:
        if not audio.data:
            raise ValidationError("Audio payload is empty")

        resolved_language = language
        last_error: Exception | None = None

        for index, backend in enumerate(self._backends):
            is_fallback = index > 0
            if is_fallback and not self._config.fallback_to_offline:
                break
            if not await self._is_usable(backend):
                self._logger.info("recognition_backend_unavailable", extra={"backend": backend.name})
                continue

            if resolved_language is None:
                resolved_language = await self._guess_language(backend, audio)

            if is_fallback and resolved_language not in backend.supported_languages():
                self._logger.info(
                    "recognition_backend_skipped",
                    extra={"backend": backend.name, "language": resolved_language, "reason": "unsupported_language"},
                )
                continue

            payload = audio
            if index == 0 and self._config.compression_enabled:
                payload = self._audio_adapter.compress(audio, self._config.compression_level)

            try:
                result = await backend.transcribe(payload.data, resolved_language)
            except BackendUnavailable as exc:
                last_error = exc
                self._logger.info("recognition_backend_unavailable", extra={"backend": exc.backend})
                continue
            except Exception as exc:  # noqa: BLE001 - a failing backend hands over to the next one.
                last_error = exc
                self._logger.warning(
                    "recognition_backend_failed",
                    extra={"backend": backend.name, "error": f"{type(exc).__name__}: {exc}"},
                )
                continue

            if not result.text.strip():
                last_error = RecognitionFailed(f"No speech recognized by {backend.name}")
                self._logger.warning("recognition_empty_transcript", extra={"backend": backend.name})
                continue

            if is_fallback or result.confidence >= self._config.confidence_acceptance_threshold:
                self._logger.info(
                    "recognition_accepted",
                    extra={
                        "backend": backend.name,
                        "confidence": result.confidence,
                        "language": result.detected_language,
                        "text_length": len(result.text),
                    },
                )
                return result

            threshold = self._config.confidence_acceptance_threshold
            last_error = RecognitionFailed(
                f"Low-confidence transcription from {backend.name}: {result.confidence:.2f} < {threshold:.2f}"
            )
            self._logger.warning(
                "recognition_low_confidence",
                extra={"backend": backend.name, "confidence": result.confidence, "threshold": threshold},
            )

        raise RecognitionUnavailable(
            "No speech recognition backend returned an acceptable transcription"
        ) from last_error

    async def detect_language(self, audio: AudioPayload) -> str:
        """Ask the first usable backend for a language guess, defaulting on any failure."""
        for index, backend in enumerate(self._backends):
            if index > 0 and not self._config.fallback_to_offline:
                break
            if await self._is_usable(backend):
                return await self._guess_language(backend, audio)
        return self._config.fallback_language

    async def is_available(self) -> bool:
        for index, backend in enumerate(self._backends):
            if index > 0 and not self._config.fallback_to_offline:
                break
            if await self._is_usable(backend):
                return True
        return False

    def supported_languages(self) -> list[str]:
        return list(self._config.supported_languages)

    async def _guess_language(self, backend: RecognitionBackend, audio: AudioPayload) -> str:
        try:
            guessed = await backend.detect_language(audio.data)
        except Exception as exc:  # noqa: BLE001 - detection falls back to the configured language.
            self._logger.warning(
                "language_detection_failed",
                extra={"backend": backend.name, "error": f"{type(exc).__name__}: {exc}"},
            )
            return self._config.fallback_language
        return guessed or self._config.fallback_language

    async def _is_usable(self, backend: RecognitionBackend) -> bool:
        try:
            return bool(await backend.is_available())
        except Exception as exc:  # noqa: BLE001 - a failing availability check must not abort the cascade.
            self._logger.warning(
                "recognition_availability_check_failed",
                extra={"backend": backend.name, "error": f"{type(exc).__name__}: {exc}"},
            )
            return False
