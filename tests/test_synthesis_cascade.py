import asyncio
import io
import wave

import pytest

from civic_voice.errors import NoSynthesisEngineAvailable, SynthesisFailed, ValidationError
from civic_voice.models import AudioFormat, SynthesizedAudio, VoiceProfile
from civic_voice.voice.synthesis import SynthesisCascade, SynthesisConfig, strip_ssml


class StubSynthesizer:
    def __init__(
        self,
        name: str,
        *,
        languages: list[str] | None = None,
        available: bool = True,
        error: Exception | None = None,
    ) -> None:
        self.name = name
        self.languages = languages or ["en", "hi", "ta", "te", "bn"]
        self.available = available
        self.error = error
        self.calls: list[tuple[str, str, VoiceProfile | None]] = []

    async def synthesize(self, text: str, language: str, voice: VoiceProfile | None = None) -> SynthesizedAudio:
        self.calls.append((text, language, voice))
        if self.error is not None:
            raise self.error
        return SynthesizedAudio(
            data=self.name.encode() * 10,
            format=AudioFormat.wav,
            duration_seconds=1.5,
            sample_rate_hz=22_050,
        )

    async def is_available(self) -> bool:
        return self.available

    def supported_languages(self) -> list[str]:
        return self.languages

    async def list_voices(self, language: str) -> list[VoiceProfile]:
        return [VoiceProfile(language=language, gender="female")]


def _speak(cascade: SynthesisCascade, text: str = "Namaste", language: str = "hi", voice=None) -> SynthesizedAudio:
    return asyncio.run(cascade.synthesize(text, language, voice))


def test_lightweight_backend_preferred_when_it_speaks_the_language() -> None:
    local = StubSynthesizer("local", languages=["en", "hi"])
    cloud = StubSynthesizer("cloud")

    audio = _speak(SynthesisCascade(local, cloud))

    assert audio.data.startswith(b"local")
    assert cloud.calls == []


def test_rich_backend_used_when_lightweight_lacks_language() -> None:
    local = StubSynthesizer("local", languages=["en", "hi"])
    cloud = StubSynthesizer("cloud")

    audio = _speak(SynthesisCascade(local, cloud), language="ta")

    assert audio.data.startswith(b"cloud")
    assert local.calls == []


def test_degraded_lightweight_when_rich_unreachable() -> None:
    local = StubSynthesizer("local")
    cloud = StubSynthesizer("cloud", available=False)
    cascade = SynthesisCascade(local, cloud, config=SynthesisConfig(prefer_lightweight=False))

    audio = _speak(cascade)

    assert audio.data.startswith(b"local")
    assert cloud.calls == []


def test_rich_preferred_when_lightweight_not_preferred() -> None:
    local = StubSynthesizer("local")
    cloud = StubSynthesizer("cloud")
    cascade = SynthesisCascade(local, cloud, config=SynthesisConfig(prefer_lightweight=False))

    assert _speak(cascade).data.startswith(b"cloud")
    assert local.calls == []


def test_failing_lightweight_hands_over_to_rich() -> None:
    local = StubSynthesizer("local", error=RuntimeError("driver crashed"))
    cloud = StubSynthesizer("cloud")

    audio = _speak(SynthesisCascade(local, cloud))

    assert audio.data.startswith(b"cloud")
    assert len(local.calls) == 1


def test_no_engine_for_language() -> None:
    local = StubSynthesizer("local", languages=["en"])
    cloud = StubSynthesizer("cloud", available=False)

    with pytest.raises(NoSynthesisEngineAvailable) as excinfo:
        _speak(SynthesisCascade(local, cloud), language="bn")

    assert excinfo.value.language == "bn"


def test_rich_disabled_leaves_no_engine() -> None:
    local = StubSynthesizer("local", languages=["en"])
    cloud = StubSynthesizer("cloud")
    cascade = SynthesisCascade(local, cloud, config=SynthesisConfig(enable_rich=False))

    with pytest.raises(NoSynthesisEngineAvailable):
        _speak(cascade, language="ta")

    assert cloud.calls == []


def test_every_candidate_failing_raises_synthesis_failed() -> None:
    local = StubSynthesizer("local", error=RuntimeError("boom"))
    cloud = StubSynthesizer("cloud", error=RuntimeError("quota"))

    with pytest.raises(SynthesisFailed) as excinfo:
        _speak(SynthesisCascade(local, cloud))

    assert not isinstance(excinfo.value, NoSynthesisEngineAvailable)


def test_empty_text_rejected_without_backend_calls() -> None:
    local = StubSynthesizer("local")

    with pytest.raises(ValidationError):
        _speak(SynthesisCascade(local), text="   ")
    with pytest.raises(ValidationError):
        _speak(SynthesisCascade(local), text="<break/>")

    assert local.calls == []


def test_unsupported_language_rejected() -> None:
    local = StubSynthesizer("local", languages=["fr"])
    cascade = SynthesisCascade(local, config=SynthesisConfig(supported_languages=["en", "hi"]))

    with pytest.raises(ValidationError):
        _speak(cascade, language="fr")

    assert local.calls == []


def test_default_voice_follows_configured_gender() -> None:
    local = StubSynthesizer("local")
    cascade = SynthesisCascade(local, config=SynthesisConfig(default_voice_gender="male"))

    _speak(cascade, language="te")

    voice = local.calls[0][2]
    assert voice == VoiceProfile(language="te", gender="male")


def test_ssml_tags_are_stripped_before_synthesis() -> None:
    local = StubSynthesizer("local")
    cascade = SynthesisCascade(local)

    asyncio.run(cascade.synthesize_ssml('<speak>Hello <emphasis level="strong">there</emphasis></speak>', "en"))

    assert local.calls[0][0] == "Hello there"
    assert strip_ssml("<p>a</p><p>b</p>") == "a b"


def test_available_voices_merges_backends() -> None:
    cascade = SynthesisCascade(StubSynthesizer("local", languages=["hi"]), StubSynthesizer("cloud"))

    voices = asyncio.run(cascade.available_voices("hi"))
    rich_only = asyncio.run(cascade.available_voices("ta"))

    assert len(voices) == 2
    assert len(rich_only) == 1


def _wav_bytes(seconds: float, rate_hz: int) -> bytes:
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as writer:
        writer.setnchannels(1)
        writer.setsampwidth(2)
        writer.setframerate(rate_hz)
        writer.writeframes(b"\x30\x00" * int(seconds * rate_hz))
    return buffer.getvalue()


def test_compress_resamples_wav_and_keeps_it_playable() -> None:
    cascade = SynthesisCascade(StubSynthesizer("local"))
    audio = SynthesizedAudio(
        data=_wav_bytes(2.0, 22_050), format=AudioFormat.wav, duration_seconds=2.0, sample_rate_hz=22_050
    )

    compressed = cascade.compress(audio, 1)

    assert compressed.format == AudioFormat.wav
    assert compressed.sample_rate_hz == 6615
    assert compressed.duration_seconds == 2.0
    assert len(compressed.data) < len(audio.data)
    with wave.open(io.BytesIO(compressed.data), "rb") as reader:
        assert reader.getframerate() == 6615
        assert reader.getnframes() == pytest.approx(13_230, abs=2)


def test_compress_leaves_codec_formats_and_corrupt_wav_alone() -> None:
    cascade = SynthesisCascade(StubSynthesizer("local"))
    mp3 = SynthesizedAudio(data=b"ID3" + b"\x00" * 500, format=AudioFormat.mp3, duration_seconds=1.0, sample_rate_hz=44_100)
    mislabeled = SynthesizedAudio(data=b"\x00" * 1000, format=AudioFormat.wav, duration_seconds=2.0, sample_rate_hz=22_050)
    corrupt = SynthesizedAudio(
        data=b"RIFF\x00\x00\x00\x00WAVE" + b"\x01" * 64, format=AudioFormat.wav, duration_seconds=0.1, sample_rate_hz=22_050
    )

    assert cascade.compress(mp3, 1) is mp3
    assert cascade.compress(mislabeled, 1) is mislabeled
    assert cascade.compress(corrupt, 1) is corrupt


def test_compress_respects_disabled_flag_and_level_bounds() -> None:
    cascade = SynthesisCascade(StubSynthesizer("local"), config=SynthesisConfig(compression_enabled=False))
    audio = SynthesizedAudio(data=b"\x00" * 10, format=AudioFormat.wav, duration_seconds=0.5, sample_rate_hz=16_000)

    assert cascade.compress(audio, 5) is audio
    with pytest.raises(ValidationError):
        cascade.compress(audio, 0)


def test_is_available_reflects_backends() -> None:
    offline_only = SynthesisCascade(StubSynthesizer("local", languages=["xx"]), StubSynthesizer("cloud", available=False))
    with_cloud = SynthesisCascade(None, StubSynthesizer("cloud"))
    engine_missing = SynthesisCascade(StubSynthesizer("local", available=False), None)
    engine_missing_cloud_up = SynthesisCascade(StubSynthesizer("local", available=False), StubSynthesizer("cloud"))

    assert asyncio.run(offline_only.is_available()) is False
    assert asyncio.run(engine_missing.is_available()) is False
    assert asyncio.run(engine_missing_cloud_up.is_available()) is True
    assert asyncio.run(with_cloud.is_available()) is True
    with pytest.raises(ValueError):
        SynthesisCascade(None, None)
