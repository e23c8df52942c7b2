"""Text-to-speech cascade preferring a lightweight offline engine."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace

from civic_voice.config import DEFAULT_LANGUAGES
from civic_voice.errors import BackendUnavailable, NoSynthesisEngineAvailable, SynthesisFailed, ValidationError
from civic_voice.models import AudioFormat, SynthesizedAudio, VoiceProfile

from .audio import compression_settings, resample_wav, sniff_format
from .interfaces import SynthesisBackend

_SSML_TAG_RE = re.compile(r"<[^>]*>")

# Fraction of the sample rate kept per compression level.
COMPRESSION_RATIOS: dict[int, float] = {
    1: 0.3,
    2: 0.4,
    3: 0.5,
    4: 0.6,
    5: 0.7,
    6: 0.75,
    7: 0.8,
    8: 0.85,
    9: 0.9,
    10: 0.95,
}


@dataclass(slots=True)
class SynthesisConfig:
    prefer_lightweight: bool = True
    enable_rich: bool = True
    compression_enabled: bool = True
    default_voice_gender: str = "female"
    supported_languages: list[str] = field(default_factory=lambda: list(DEFAULT_LANGUAGES))


def strip_ssml(text: str) -> str:
    """Drop markup tags and collapse whitespace."""
    return " ".join(_SSML_TAG_RE.sub(" ", text).split())


class SynthesisCascade:
    """Selects a synthesis backend for each request.

    Order: the lightweight backend when preferred and it speaks the language,
    then the rich backend when enabled and reachable, then the lightweight
    backend as a degraded fallback.
    """

    def __init__(
        self,
        lightweight: SynthesisBackend | None,
        rich: SynthesisBackend | None = None,
        *,
        config: SynthesisConfig | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if lightweight is None and rich is None:
            raise ValueError("SynthesisCascade needs at least one backend")
        self._lightweight = lightweight
        self._rich = rich
        self._config = config or SynthesisConfig()
        self._logger = logger or logging.getLogger("civic_voice.synthesis")

    async def synthesize(self, text: str, language: str, voice: VoiceProfile | None = None) -> SynthesizedAudio:
        plain_text = strip_ssml(text or "")
        if not plain_text:
            raise ValidationError("Text cannot be empty")
        if language not in self._config.supported_languages:
            raise ValidationError(f"Language {language} is not supported")

        effective_voice = voice or VoiceProfile(language=language, gender=self._config.default_voice_gender)
        self._logger.info("synthesis_started", extra={"language": language, "text_length": len(plain_text)})

        attempted = False
        last_error: Exception | None = None
        for backend, role in await self._candidates(language):
            attempted = True
            try:
                audio = await backend.synthesize(plain_text, language, effective_voice)
            except BackendUnavailable as exc:
                last_error = exc
                self._logger.info("synthesis_backend_unavailable", extra={"backend": exc.backend, "role": role})
                continue
            except Exception as exc:  # noqa: BLE001 - a failing backend hands over to the next one.
                last_error = exc
                self._logger.warning(
                    "synthesis_backend_failed",
                    extra={"backend": backend.name, "role": role, "error": f"{type(exc).__name__}: {exc}"},
                )
                continue

            self._logger.info(
                "synthesis_succeeded",
                extra={"backend": backend.name, "role": role, "duration_seconds": audio.duration_seconds},
            )
            return audio

        if not attempted:
            raise NoSynthesisEngineAvailable(language)
        raise SynthesisFailed(f"Text-to-speech synthesis failed for language: {language}") from last_error

    async def synthesize_ssml(self, ssml: str, language: str, voice: VoiceProfile | None = None) -> SynthesizedAudio:
        """Prosody markup is not interpreted; tags are stripped before synthesis."""
        return await self.synthesize(strip_ssml(ssml), language, voice)

    async def available_voices(self, language: str) -> list[VoiceProfile]:
        voices: list[VoiceProfile] = []
        if self._lightweight is not None and self._speaks(self._lightweight, language):
            voices.extend(await self._lightweight.list_voices(language))

        if self._rich is not None and self._config.enable_rich and await self._is_reachable(self._rich):
            try:
                voices.extend(await self._rich.list_voices(language))
            except Exception as exc:  # noqa: BLE001 - a voice listing failure only hides those voices.
                self._logger.warning(
                    "synthesis_voice_listing_failed",
                    extra={"backend": self._rich.name, "error": f"{type(exc).__name__}: {exc}"},
                )
        return voices

    def compress(self, audio: SynthesizedAudio, level: int) -> SynthesizedAudio:
        """Resample WAV output by the level's ratio.

        Other formats would need a codec and come back unchanged, as does the
        input on any internal failure.
        """
        compression_settings(level)
        if not self._config.compression_enabled:
            return audio
        if audio.format != AudioFormat.wav or sniff_format(audio.data) != AudioFormat.wav:
            self._logger.info("synthesis_compression_unsupported", extra={"level": level, "format": audio.format.value})
            return audio

        try:
            target_rate = int(audio.sample_rate_hz * COMPRESSION_RATIOS[level])
            resampled = resample_wav(bytes(audio.data), target_rate)
        except Exception:  # noqa: BLE001 - compression is best-effort.
            self._logger.exception("synthesis_compression_failed", extra={"level": level})
            return audio
        if resampled is None:
            return audio

        data, sample_rate_hz = resampled
        compressed = replace(audio, data=data, sample_rate_hz=sample_rate_hz)
        self._logger.info(
            "synthesis_compressed",
            extra={"level": level, "original_size": len(audio.data), "compressed_size": len(compressed.data)},
        )
        return compressed

    async def is_available(self) -> bool:
        if (
            self._lightweight is not None
            and any(self._speaks(self._lightweight, language) for language in self._config.supported_languages)
            and await self._is_reachable(self._lightweight)
        ):
            return True
        return self._rich is not None and self._config.enable_rich and await self._is_reachable(self._rich)

    def supported_languages(self) -> list[str]:
        return list(self._config.supported_languages)

    async def _candidates(self, language: str) -> list[tuple[SynthesisBackend, str]]:
        candidates: list[tuple[SynthesisBackend, str]] = []
        lightweight_ok = self._lightweight is not None and self._speaks(self._lightweight, language)

        if self._config.prefer_lightweight and lightweight_ok:
            candidates.append((self._lightweight, "lightweight"))

        if (
            self._rich is not None
            and self._config.enable_rich
            and self._speaks(self._rich, language)
            and await self._is_reachable(self._rich)
        ):
            candidates.append((self._rich, "rich"))

        if lightweight_ok and not self._config.prefer_lightweight:
            candidates.append((self._lightweight, "degraded"))

        return candidates

    @staticmethod
    def _speaks(backend: SynthesisBackend, language: str) -> bool:
        return language in backend.supported_languages()

    async def _is_reachable(self, backend: SynthesisBackend) -> bool:
        try:
            return bool(await backend.is_available())
        except Exception as exc:  # noqa: BLE001 - a failing availability check must not abort the cascade.
            self._logger.warning(
                "synthesis_availability_check_failed",
                extra={"backend": backend.name, "error": f"{type(exc).__name__}: {exc}"},
            )
            return False
