"""Session-aware orchestration of speech recognition and synthesis."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from civic_voice.config import DEFAULT_LANGUAGES, Settings
from civic_voice.errors import (
    RecognitionFailed,
    SessionNotFound,
    ValidationError,
    VoiceError,
    VoiceInputDisabled,
    VoiceOutputDisabled,
)
from civic_voice.models import (
    AudioPayload,
    ContextStatistics,
    FallbackSuggestion,
    InputMode,
    NetworkQuality,
    SessionContext,
    SynthesizedAudio,
    TranscriptionResult,
    VoiceProfile,
    utc_now,
)
from civic_voice.session import SessionRegistry
from civic_voice.voice.audio import AudioAdapter, AudioAdapterConfig
from civic_voice.voice.interfaces import RecognitionBackend, SynthesisBackend
from civic_voice.voice.recognition import RecognitionCascade, RecognitionConfig
from civic_voice.voice.synthesis import SynthesisCascade, SynthesisConfig


@dataclass(slots=True)
class VoiceOrchestratorConfig:
    """Every tunable of the voice stack in one place."""

    enable_voice_input: bool = True
    enable_voice_output: bool = True
    preserve_context: bool = True
    fallback_to_text: bool = True
    default_language: str = "hi"
    supported_languages: list[str] = field(default_factory=lambda: list(DEFAULT_LANGUAGES))
    max_failures_before_fallback: int = 2
    session_timeout_minutes: int = 30
    compression_enabled: bool = True
    confidence_acceptance_threshold: float = 0.8
    fallback_to_offline_recognition: bool = True
    recognition_compression_level: int = 6
    prefer_lightweight_synthesis: bool = True
    enable_rich_synthesis: bool = True
    default_voice_gender: str = "female"
    max_audio_bytes: int = 5 * 1024 * 1024
    min_audio_bytes: int = 1024
    assumed_bitrate_kbps: int = 64

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence_acceptance_threshold <= 1.0:
            raise ValueError("confidence_acceptance_threshold must be within [0, 1]")
        if self.max_failures_before_fallback < 1:
            raise ValueError("max_failures_before_fallback must be >= 1")
        if self.session_timeout_minutes < 1:
            raise ValueError("session_timeout_minutes must be >= 1")
        if self.default_language not in self.supported_languages:
            raise ValueError(f"default_language {self.default_language!r} is not a supported language")

    @classmethod
    def from_settings(cls, settings: Settings) -> VoiceOrchestratorConfig:
        return cls(
            enable_voice_input=settings.enable_voice_input,
            enable_voice_output=settings.enable_voice_output,
            preserve_context=settings.preserve_context,
            fallback_to_text=settings.fallback_to_text,
            default_language=settings.default_language,
            supported_languages=list(settings.supported_languages),
            max_failures_before_fallback=settings.max_failures_before_fallback,
            session_timeout_minutes=settings.session_timeout_minutes,
            compression_enabled=settings.compression_enabled,
            confidence_acceptance_threshold=settings.confidence_acceptance_threshold,
            fallback_to_offline_recognition=settings.fallback_to_offline_recognition,
            recognition_compression_level=settings.recognition_compression_level,
            prefer_lightweight_synthesis=settings.prefer_lightweight_synthesis,
            enable_rich_synthesis=settings.enable_rich_synthesis,
            default_voice_gender=settings.default_voice_gender,
            max_audio_bytes=settings.max_audio_bytes,
            min_audio_bytes=settings.min_audio_bytes,
            assumed_bitrate_kbps=settings.assumed_bitrate_kbps,
        )

    def audio_config(self) -> AudioAdapterConfig:
        return AudioAdapterConfig(
            compression_enabled=self.compression_enabled,
            max_audio_bytes=self.max_audio_bytes,
            min_audio_bytes=self.min_audio_bytes,
            assumed_bitrate_kbps=self.assumed_bitrate_kbps,
        )

    def recognition_config(self) -> RecognitionConfig:
        return RecognitionConfig(
            confidence_acceptance_threshold=self.confidence_acceptance_threshold,
            fallback_to_offline=self.fallback_to_offline_recognition,
            compression_enabled=self.compression_enabled,
            compression_level=self.recognition_compression_level,
            fallback_language=self.default_language,
            supported_languages=list(self.supported_languages),
        )

    def synthesis_config(self) -> SynthesisConfig:
        return SynthesisConfig(
            prefer_lightweight=self.prefer_lightweight_synthesis,
            enable_rich=self.enable_rich_synthesis,
            compression_enabled=self.compression_enabled,
            default_voice_gender=self.default_voice_gender,
            supported_languages=list(self.supported_languages),
        )


@dataclass(frozen=True, slots=True)
class TextInputResult:
    processed_text: str
    detected_language: str
    confidence: float = 1.0


class VoiceSessionOrchestrator:
    """Public entry point: speech and text input, speech output, and per-session modality tracking."""

    def __init__(
        self,
        recognition: RecognitionCascade,
        synthesis: SynthesisCascade,
        *,
        config: VoiceOrchestratorConfig | None = None,
        audio_adapter: AudioAdapter | None = None,
        clock: Callable[[], datetime] = utc_now,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config or VoiceOrchestratorConfig()
        self._recognition = recognition
        self._synthesis = synthesis
        self._audio = audio_adapter or AudioAdapter(self._config.audio_config())
        self._sessions = SessionRegistry(timeout_minutes=self._config.session_timeout_minutes, clock=clock)
        self._logger = logger or logging.getLogger("civic_voice.orchestrator")

    @classmethod
    def from_backends(
        cls,
        *,
        recognizers: list[RecognitionBackend],
        lightweight_synthesizer: SynthesisBackend | None,
        rich_synthesizer: SynthesisBackend | None = None,
        config: VoiceOrchestratorConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> VoiceSessionOrchestrator:
        """Wire both cascades and a shared audio adapter from one config."""
        config = config or VoiceOrchestratorConfig()
        audio = AudioAdapter(config.audio_config())
        recognition = RecognitionCascade(recognizers, config=config.recognition_config(), audio_adapter=audio)
        synthesis = SynthesisCascade(lightweight_synthesizer, rich_synthesizer, config=config.synthesis_config())
        return cls(recognition, synthesis, config=config, audio_adapter=audio, clock=clock)

    @property
    def config(self) -> VoiceOrchestratorConfig:
        return self._config

    @property
    def audio(self) -> AudioAdapter:
        return self._audio

    async def speech_to_text(
        self,
        audio: AudioPayload,
        language: str | None = None,
        session_id: str | None = None,
    ) -> TranscriptionResult:
        """Transcribe ``audio`` and track the outcome on the session.

        On failure the session's failure counter is incremented. When that
        counter first reaches ``max_failures_before_fallback`` the raised
        :class:`RecognitionFailed` carries a text-fallback suggestion.
        """
        if not self._config.enable_voice_input:
            raise VoiceInputDisabled("Voice input is disabled")

        started = time.perf_counter()
        target_language = self._resolve_language(language, session_id)
        self._logger.info(
            "speech_to_text_started",
            extra={"session_id": session_id, "audio_size": audio.size, "language": target_language},
        )

        try:
            validation = self._audio.validate(audio)
            if not validation.is_valid:
                raise ValidationError("Invalid audio payload", validation.errors)
            result = await self._recognition.transcribe(audio, target_language)
        except VoiceError as exc:
            self._logger.warning(
                "speech_to_text_failed",
                extra={
                    "session_id": session_id,
                    "error": f"{type(exc).__name__}: {exc}",
                    "elapsed_ms": round((time.perf_counter() - started) * 1000, 1),
                },
            )
            suggestion = self._record_voice_failure(session_id) if session_id else None
            if suggestion is not None:
                raise RecognitionFailed(
                    f"Voice input failed after {suggestion.failure_count} attempts. "
                    "Please try typing your message instead.",
                    fallback_suggestion=suggestion,
                ) from exc
            raise

        if session_id and self._config.preserve_context:
            self._sessions.record_success(
                session_id,
                language=result.detected_language or target_language,
                input_mode=InputMode.voice,
            )
        self._logger.info(
            "speech_to_text_succeeded",
            extra={
                "session_id": session_id,
                "confidence": result.confidence,
                "text_length": len(result.text),
                "elapsed_ms": round((time.perf_counter() - started) * 1000, 1),
            },
        )
        return result

    async def text_to_speech(self, text: str, language: str, voice: VoiceProfile | None = None) -> SynthesizedAudio:
        """Stateless pass-through to the synthesis cascade."""
        if not self._config.enable_voice_output:
            raise VoiceOutputDisabled("Voice output is disabled")
        self._logger.info("text_to_speech_started", extra={"language": language, "text_length": len(text or "")})
        return await self._synthesis.synthesize(text, language, voice)

    async def process_text(self, text: str, session_id: str, language: str | None = None) -> TextInputResult:
        """Accept typed input. Text is authoritative, so confidence is always 1.0."""
        if not text or not text.strip():
            raise ValidationError("Text input cannot be empty")

        target_language = self._resolve_language(language, session_id)
        processed = text.strip()
        if self._config.preserve_context:
            self._sessions.record_success(session_id, language=target_language, input_mode=InputMode.text)
        self._logger.info(
            "text_input_processed",
            extra={"session_id": session_id, "text_length": len(processed), "language": target_language},
        )
        return TextInputResult(processed_text=processed, detected_language=target_language)

    async def detect_language(self, audio: AudioPayload) -> str:
        return await self._recognition.detect_language(audio)

    def compress_audio(self, audio: AudioPayload, level: int) -> AudioPayload:
        return self._audio.compress(audio, level)

    def adapt_to_network(self, audio: AudioPayload, quality: NetworkQuality | str) -> AudioPayload:
        return self._audio.adapt_to_network(audio, quality)

    async def is_voice_input_available(self) -> bool:
        return self._config.enable_voice_input and await self._recognition.is_available()

    async def is_voice_output_available(self) -> bool:
        return self._config.enable_voice_output and await self._synthesis.is_available()

    def supported_input_languages(self) -> list[str]:
        return self._recognition.supported_languages()

    def supported_output_languages(self) -> list[str]:
        return self._synthesis.supported_languages()

    def set_context(self, session_id: str, language: str, input_mode: InputMode | str) -> SessionContext | None:
        """Create or refresh a session context. A no-op when context preservation is off."""
        if not self._config.preserve_context:
            return None
        if language not in self._config.supported_languages:
            raise ValidationError(f"Language {language} is not supported")
        mode = InputMode(input_mode)
        self._sessions.upsert(session_id, language=language, input_mode=mode)
        self._logger.info(
            "context_set",
            extra={"session_id": session_id, "language": language, "input_mode": mode.value},
        )
        return self._sessions.snapshot(session_id)

    def get_context(self, session_id: str) -> SessionContext | None:
        """A detached copy of the session context, or ``None`` for an unknown session."""
        return self._sessions.snapshot(session_id)

    def require_context(self, session_id: str) -> SessionContext:
        context = self._sessions.snapshot(session_id)
        if context is None:
            raise SessionNotFound(session_id)
        return context

    def clear_context(self, session_id: str) -> bool:
        removed = self._sessions.remove(session_id)
        if removed:
            self._logger.info("context_cleared", extra={"session_id": session_id})
        return removed

    def switch_input_mode(self, session_id: str, new_mode: InputMode | str, reason: str | None = None) -> bool:
        mode = InputMode(new_mode)
        switched = self._sessions.switch_mode(session_id, mode)
        if switched is None:
            self._logger.warning("input_mode_switch_unknown_session", extra={"session_id": session_id})
            return False

        previous, context = switched
        self._logger.info(
            "input_mode_switched",
            extra={
                "session_id": session_id,
                "from_mode": previous.value,
                "to_mode": mode.value,
                "reason": reason,
                "total_interactions": context.total_interactions,
            },
        )
        return True

    def get_fallback_suggestion(self, session_id: str) -> FallbackSuggestion | None:
        """Recompute the suggestion without changing session state."""
        context = self._sessions.get(session_id)
        if context is None:
            return None
        if self._fallback_due(context):
            return self._suggestion_for(context)
        return FallbackSuggestion(should_suggest_fallback=False, failure_count=context.failure_count)

    def mark_fallback_suggested(self, session_id: str) -> bool:
        return self._sessions.mark_fallback_suggested(session_id)

    def expire_stale_sessions(self) -> int:
        expired = self._sessions.expire_stale()
        for session_id in expired:
            self._logger.info("context_expired", extra={"session_id": session_id})
        return len(expired)

    def context_statistics(self) -> ContextStatistics:
        return self._sessions.statistics()

    def _resolve_language(self, language: str | None, session_id: str | None) -> str:
        if language:
            return language
        if session_id:
            context = self._sessions.get(session_id)
            if context is not None:
                return context.current_language
        return self._config.default_language

    def _record_voice_failure(self, session_id: str) -> FallbackSuggestion | None:
        context = self._sessions.record_failure(session_id, input_mode=InputMode.voice)
        if context is None:
            return None
        self._logger.debug(
            "context_failure_recorded",
            extra={"session_id": session_id, "failure_count": context.failure_count},
        )
        if not self._config.fallback_to_text:
            return None
        claimed = self._sessions.claim_fallback(session_id, self._config.max_failures_before_fallback)
        if claimed is None:
            return None
        suggestion = self._suggestion_for(claimed)
        self._logger.info(
            "fallback_suggested",
            extra={"session_id": session_id, "failure_count": suggestion.failure_count},
        )
        return suggestion

    def _fallback_due(self, context: SessionContext) -> bool:
        return (
            self._config.fallback_to_text
            and context.input_mode == InputMode.voice
            and not context.fallback_suggested
            and context.failure_count >= self._config.max_failures_before_fallback
        )

    @staticmethod
    def _suggestion_for(context: SessionContext) -> FallbackSuggestion:
        return FallbackSuggestion(
            should_suggest_fallback=True,
            failure_count=context.failure_count,
            recommended_mode=InputMode.text,
            last_successful_mode=context.last_successful_mode(),
        )
