"""Text-to-speech backend powered by ``pyttsx3``."""

from __future__ import annotations

import asyncio
import io
import tempfile
import wave
from pathlib import Path

from civic_voice.errors import BackendUnavailable
from civic_voice.models import AudioFormat, SynthesizedAudio, VoiceProfile

from .interfaces import SynthesisBackend

# Rough speaking rate used when the rendered file cannot be inspected.
SECONDS_PER_CHARACTER = 0.08


class Pyttsx3SynthesisBackend(SynthesisBackend):
    """Lightweight offline synthesis that renders speech to WAV with a local pyttsx3 engine."""

    name = "pyttsx3"

    def __init__(
        self,
        *,
        languages: list[str] | None = None,
        rate: int | None = None,
        volume: float | None = None,
        sample_rate_hz: int = 22_050,
    ) -> None:
        self._languages = list(languages or ["en", "hi"])
        self._rate = rate
        self._volume = None if volume is None else max(0.0, min(1.0, volume))
        self._sample_rate_hz = sample_rate_hz
        try:
            import pyttsx3
        except ImportError:  # pragma: no cover - import guard
            self._pyttsx3 = None
        else:
            self._pyttsx3 = pyttsx3

    async def synthesize(self, text: str, language: str, voice: VoiceProfile | None = None) -> SynthesizedAudio:
        if self._pyttsx3 is None:
            raise BackendUnavailable(
                self.name,
                "Voice TTS backend unavailable. Install extras with: pip install 'civic-voice[voice]'",
            )
        return await asyncio.to_thread(self._render, text, language, voice)

    async def is_available(self) -> bool:
        return self._pyttsx3 is not None

    def supported_languages(self) -> list[str]:
        return list(self._languages)

    async def list_voices(self, language: str) -> list[VoiceProfile]:
        if language not in self._languages:
            return []
        return [VoiceProfile(language=language, gender="female"), VoiceProfile(language=language, gender="male")]

    def _render(self, text: str, language: str, voice: VoiceProfile | None) -> SynthesizedAudio:
        engine = self._pyttsx3.init()
        voice_id = self._match_voice(engine, language, voice)
        if voice_id:
            engine.setProperty("voice", voice_id)
        base_rate = self._rate if self._rate is not None else engine.getProperty("rate")
        if voice is not None and base_rate:
            base_rate = int(base_rate * voice.speed)
        if base_rate:
            engine.setProperty("rate", base_rate)
        if self._volume is not None:
            engine.setProperty("volume", self._volume)

        with tempfile.TemporaryDirectory() as tmp_dir:
            target = Path(tmp_dir) / "speech.wav"
            engine.save_to_file(text, str(target))
            engine.runAndWait()
            data = target.read_bytes()

        duration, sample_rate = self._inspect(target_data=data, text=text)
        return SynthesizedAudio(
            data=data,
            format=AudioFormat.wav,
            duration_seconds=duration,
            sample_rate_hz=sample_rate,
        )

    def _inspect(self, *, target_data: bytes, text: str) -> tuple[float, int]:
        try:
            with wave.open(io.BytesIO(target_data), "rb") as handle:
                frames = handle.getnframes()
                rate = handle.getframerate()
        except (wave.Error, EOFError):
            return len(text) * SECONDS_PER_CHARACTER, self._sample_rate_hz
        return (frames / rate if rate else 0.0), rate or self._sample_rate_hz

    @staticmethod
    def _match_voice(engine, language: str, voice: VoiceProfile | None) -> str | None:
        candidates = []
        for installed in engine.getProperty("voices") or []:
            tags = " ".join(
                str(tag.decode() if isinstance(tag, bytes) else tag)
                for tag in (getattr(installed, "languages", None) or [])
            )
            haystack = f"{installed.id} {installed.name} {tags}".lower()
            if language.lower() in haystack:
                candidates.append(installed)
        if not candidates:
            return None
        if voice is not None:
            for installed in candidates:
                if (getattr(installed, "gender", None) or "").lower() == voice.gender:
                    return installed.id
        return candidates[0].id
