"""CLI-side handler wrappers and utility commands."""

from __future__ import annotations

import asyncio
import mimetypes
from pathlib import Path

from civic_voice.models import AudioPayload, SynthesizedAudio, TranscriptionResult, VoiceProfile
from civic_voice.orchestrator import TextInputResult, VoiceSessionOrchestrator


def load_audio(path: str | Path, mime_type: str | None = None) -> AudioPayload:
    """Read an audio file, guessing its media type from the extension when not given."""
    target = Path(path).expanduser()
    guessed, _ = mimetypes.guess_type(target.name)
    return AudioPayload(data=target.read_bytes(), mime_type=mime_type or guessed or "application/octet-stream")


class CliVoiceHandler:
    """Simple sync-friendly facade over the async voice orchestrator."""

    def __init__(self, orchestrator: VoiceSessionOrchestrator) -> None:
        self._orchestrator = orchestrator

    @property
    def orchestrator(self) -> VoiceSessionOrchestrator:
        return self._orchestrator

    def transcribe(
        self,
        audio: AudioPayload,
        *,
        language: str | None = None,
        session_id: str | None = None,
    ) -> TranscriptionResult:
        return asyncio.run(self._orchestrator.speech_to_text(audio, language, session_id))

    def speak(self, text: str, language: str, voice: VoiceProfile | None = None) -> SynthesizedAudio:
        return asyncio.run(self._orchestrator.text_to_speech(text, language, voice))

    def type_text(self, text: str, session_id: str, language: str | None = None) -> TextInputResult:
        return asyncio.run(self._orchestrator.process_text(text, session_id, language))
