import asyncio
import io
import wave

import pytest

from civic_voice.errors import BackendUnavailable, RecognitionFailed, RecognitionUnavailable, ValidationError
from civic_voice.models import AudioPayload, TranscriptionResult
from civic_voice.voice.recognition import RecognitionCascade, RecognitionConfig


class StubRecognizer:
    def __init__(
        self,
        name: str,
        *,
        confidence: float = 0.9,
        available: bool = True,
        languages: list[str] | None = None,
        error: Exception | None = None,
        detected: str | Exception = "ta",
    ) -> None:
        self.name = name
        self.confidence = confidence
        self.available = available
        self.languages = languages or ["en", "hi", "ta", "te", "bn"]
        self.error = error
        self.detected = detected
        self.calls: list[tuple[bytes, str | None]] = []
        self.transcript = f"{name} transcript"

    async def transcribe(self, audio_bytes: bytes, language_hint: str | None = None) -> TranscriptionResult:
        self.calls.append((audio_bytes, language_hint))
        if self.error is not None:
            raise self.error
        return TranscriptionResult(
            text=self.transcript,
            confidence=self.confidence,
            detected_language=language_hint or "hi",
            alternatives=[f"{self.name} alternative"],
        )

    async def detect_language(self, audio_bytes: bytes) -> str:
        if isinstance(self.detected, Exception):
            raise self.detected
        return self.detected

    async def is_available(self) -> bool:
        return self.available

    def supported_languages(self) -> list[str]:
        return self.languages


AUDIO = AudioPayload(data=b"\x01" * 2048)


def _wav(seconds: float, rate_hz: int) -> AudioPayload:
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as writer:
        writer.setnchannels(1)
        writer.setsampwidth(2)
        writer.setframerate(rate_hz)
        writer.writeframes(b"\x10\x00" * int(seconds * rate_hz))
    return AudioPayload(data=buffer.getvalue(), mime_type="audio/wav", sample_rate_hz=rate_hz)


def _transcribe(cascade: RecognitionCascade, audio: AudioPayload = AUDIO, language: str | None = "hi"):
    return asyncio.run(cascade.transcribe(audio, language))


def test_confident_primary_result_is_returned_without_fallback() -> None:
    primary = StubRecognizer("cloud", confidence=0.95)
    fallback = StubRecognizer("offline")

    result = _transcribe(RecognitionCascade([primary, fallback]))

    assert result.text == "cloud transcript"
    assert result.alternatives == ["cloud alternative"]
    assert fallback.calls == []


def test_low_confidence_primary_hands_over_to_fallback() -> None:
    primary = StubRecognizer("cloud", confidence=0.5)
    fallback = StubRecognizer("offline", confidence=0.6)

    result = _transcribe(RecognitionCascade([primary, fallback]))

    assert result.text == "offline transcript"
    assert len(primary.calls) == 1
    assert len(fallback.calls) == 1


def test_unavailable_primary_uses_fallback_for_supported_language() -> None:
    primary = StubRecognizer("cloud", available=False)
    fallback = StubRecognizer("offline", languages=["en", "hi"])

    result = _transcribe(RecognitionCascade([primary, fallback]))

    assert result.text == "offline transcript"
    assert primary.calls == []


def test_fallback_skipped_for_unsupported_language() -> None:
    primary = StubRecognizer("cloud", available=False)
    fallback = StubRecognizer("offline", languages=["en"])

    with pytest.raises(RecognitionUnavailable):
        _transcribe(RecognitionCascade([primary, fallback]), language="ta")

    assert fallback.calls == []


def test_fallback_disabled_by_config() -> None:
    primary = StubRecognizer("cloud", available=False)
    fallback = StubRecognizer("offline")
    cascade = RecognitionCascade([primary, fallback], config=RecognitionConfig(fallback_to_offline=False))

    with pytest.raises(RecognitionFailed):
        _transcribe(cascade)

    assert asyncio.run(cascade.is_available()) is False


def test_failing_backends_exhaust_into_terminal_error() -> None:
    primary = StubRecognizer("cloud", error=BackendUnavailable("cloud"))
    fallback = StubRecognizer("offline", error=RuntimeError("decoder crashed"))

    with pytest.raises(RecognitionUnavailable) as excinfo:
        _transcribe(RecognitionCascade([primary, fallback]))

    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert excinfo.value.fallback_suggestion is None


def test_low_confidence_primary_fails_when_fallback_unusable() -> None:
    primary = StubRecognizer("cloud", confidence=0.4)
    fallback = StubRecognizer("offline", available=False)

    with pytest.raises(RecognitionUnavailable) as excinfo:
        _transcribe(RecognitionCascade([primary, fallback]))

    assert isinstance(excinfo.value.__cause__, RecognitionFailed)
    assert "0.40 < 0.80" in str(excinfo.value.__cause__)


def test_empty_transcript_is_a_failure_even_from_fallback() -> None:
    primary = StubRecognizer("cloud", confidence=0.0)
    primary.transcript = ""
    fallback = StubRecognizer("offline", confidence=0.6)
    fallback.transcript = "  "

    with pytest.raises(RecognitionUnavailable) as excinfo:
        _transcribe(RecognitionCascade([primary, fallback]))

    assert "No speech recognized by offline" in str(excinfo.value.__cause__)
    assert len(fallback.calls) == 1


def test_missing_language_is_guessed_by_first_attempted_backend() -> None:
    primary = StubRecognizer("cloud", available=False)
    fallback = StubRecognizer("offline", detected="bn")

    _transcribe(RecognitionCascade([primary, fallback]), language=None)

    assert fallback.calls[0][1] == "bn"


def test_failed_language_guess_defaults_to_configured_language() -> None:
    primary = StubRecognizer("cloud", detected=RuntimeError("no idea"))
    cascade = RecognitionCascade([primary], config=RecognitionConfig(fallback_language="te"))

    _transcribe(cascade, language=None)

    assert primary.calls[0][1] == "te"
    assert asyncio.run(cascade.detect_language(AUDIO)) == "te"


def test_primary_receives_precompressed_wav_and_fallback_the_original() -> None:
    primary = StubRecognizer("cloud", confidence=0.1)
    fallback = StubRecognizer("offline")
    recording = _wav(3.0, rate_hz=44_100)

    _transcribe(RecognitionCascade([primary, fallback], config=RecognitionConfig(compression_level=6)), audio=recording)

    with wave.open(io.BytesIO(primary.calls[0][0]), "rb") as reader:
        assert reader.getframerate() == 22_050
        assert reader.getnframes() == pytest.approx(3.0 * 22_050, abs=2)
    assert fallback.calls[0][0] == recording.data


def test_compression_disabled_sends_original_audio() -> None:
    primary = StubRecognizer("cloud")
    recording = _wav(3.0, rate_hz=44_100)

    _transcribe(RecognitionCascade([primary], config=RecognitionConfig(compression_enabled=False)), audio=recording)

    assert primary.calls[0][0] == recording.data


def test_empty_audio_is_rejected_before_any_backend() -> None:
    primary = StubRecognizer("cloud")

    with pytest.raises(ValidationError):
        _transcribe(RecognitionCascade([primary]), audio=AudioPayload(data=b""))

    assert primary.calls == []


def test_supported_languages_come_from_config() -> None:
    cascade = RecognitionCascade([StubRecognizer("cloud")], config=RecognitionConfig(supported_languages=["en"]))

    assert cascade.supported_languages() == ["en"]
    with pytest.raises(ValueError):
        RecognitionCascade([])
