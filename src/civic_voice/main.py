"""CLI startup entrypoint for civic-voice."""

from __future__ import annotations

import asyncio
from dataclasses import asdict
from pathlib import Path

import typer
from rich import print

from civic_voice.cli import CliVoiceHandler, load_audio
from civic_voice.config import settings
from civic_voice.errors import RecognitionFailed, VoiceError
from civic_voice.models import AudioFormat, AudioPayload, InputMode, NetworkQuality
from civic_voice.orchestrator import VoiceOrchestratorConfig, VoiceSessionOrchestrator
from civic_voice.telemetry import configure_logging
from civic_voice.voice import ScriptedRecognitionBackend, ScriptedSynthesisBackend

app = typer.Typer(help="civic-voice orchestration entrypoint")

DEMO_TRANSCRIPT = "मुझे सरकारी योजनाओं के बारे में जानकारी चाहिए"
VOICE_EXTRA_HINT = "Voice backend missing. Install with: pip install 'civic-voice[voice]'"


@app.callback()
def main(log_level: str = typer.Option(None, help="Override CIVIC_VOICE_LOG_LEVEL")) -> None:
    configure_logging(log_level or settings.log_level)


def _config() -> VoiceOrchestratorConfig:
    return VoiceOrchestratorConfig.from_settings(settings)


def _build_live_handler(*, recognition: bool = False, synthesis: bool = False) -> CliVoiceHandler:
    """Wire the SpeechRecognition and pyttsx3 backends.

    Only the side a command uses has to be installed; raises RuntimeError when it is missing.
    """
    from civic_voice.voice.stt_speechrecognition import SpeechRecognitionBackend
    from civic_voice.voice.tts_pyttsx3 import Pyttsx3SynthesisBackend

    config = _config()
    google = SpeechRecognitionBackend("google", default_language=config.default_language)
    sphinx = SpeechRecognitionBackend("sphinx", default_language=config.default_language)
    pyttsx3 = Pyttsx3SynthesisBackend(sample_rate_hz=settings.synthesis_sample_rate_hz)
    if recognition and not asyncio.run(google.is_available()):
        raise RuntimeError(VOICE_EXTRA_HINT)
    if synthesis and not asyncio.run(pyttsx3.is_available()):
        raise RuntimeError(VOICE_EXTRA_HINT)

    orchestrator = VoiceSessionOrchestrator.from_backends(
        recognizers=[google, sphinx],
        lightweight_synthesizer=pyttsx3,
        config=config,
    )
    return CliVoiceHandler(orchestrator)


def _build_demo_orchestrator() -> VoiceSessionOrchestrator:
    return VoiceSessionOrchestrator.from_backends(
        recognizers=[
            ScriptedRecognitionBackend("cloud", transcript=DEMO_TRANSCRIPT, confidence=0.96),
            ScriptedRecognitionBackend("offline", transcript=DEMO_TRANSCRIPT, confidence=0.92),
        ],
        lightweight_synthesizer=ScriptedSynthesisBackend("local", languages=["en", "hi"]),
        rich_synthesizer=ScriptedSynthesisBackend("cloud", audio_format=AudioFormat.mp3, sample_rate_hz=44_100),
        config=_config(),
    )


@app.command()
def info() -> None:
    """Show effective configuration and supported languages."""
    config = _config()
    print(
        {
            "app": settings.app_name,
            "default_language": config.default_language,
            "supported_languages": config.supported_languages,
            "max_failures_before_fallback": config.max_failures_before_fallback,
            "session_timeout_minutes": config.session_timeout_minutes,
            "confidence_acceptance_threshold": config.confidence_acceptance_threshold,
            "compression_enabled": config.compression_enabled,
        }
    )


@app.command("validate-audio")
def validate_audio(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Audio file to check"),
    mime: str = typer.Option(None, help="Media type; guessed from the extension when omitted"),
) -> None:
    """Validate an audio file against size and media-type limits."""
    orchestrator = _build_demo_orchestrator()
    audio = load_audio(path, mime)
    result = orchestrator.audio.validate(audio)
    print(
        {
            "path": str(path),
            "mime_type": audio.mime_type,
            "size": audio.size,
            "estimated_duration_seconds": round(orchestrator.audio.estimate_duration_seconds(audio), 2),
            "is_valid": result.is_valid,
            "errors": result.errors,
        }
    )
    if not result.is_valid:
        raise typer.Exit(code=1)


@app.command()
def compress(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Audio file to compress"),
    level: int = typer.Option(None, min=1, max=10, help="Compression level 1 (smallest) to 10"),
    network: NetworkQuality = typer.Option(None, help="Pick the level from network quality instead"),
    out: Path = typer.Option(None, help="Where to write the compressed payload"),
) -> None:
    """Compress an audio file by level or network quality."""
    if (level is None) == (network is None):
        raise typer.BadParameter("Provide exactly one of --level or --network")

    orchestrator = _build_demo_orchestrator()
    audio = load_audio(path)
    if level is not None:
        compressed = orchestrator.compress_audio(audio, level)
    else:
        compressed = orchestrator.adapt_to_network(audio, network)
    if out is not None:
        out.write_bytes(compressed.data)
    print({"original_size": audio.size, "compressed_size": compressed.size, "out": str(out) if out else None})


@app.command()
def transcribe(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="WAV recording to transcribe"),
    language: str = typer.Option(None, help="Language code, e.g. hi"),
) -> None:
    """Transcribe a recording with Google speech, falling back to offline Sphinx."""
    try:
        handler = _build_live_handler(recognition=True)
    except (RuntimeError, ImportError) as exc:
        print({"error": str(exc)})
        raise typer.Exit(code=1)

    try:
        result = handler.transcribe(load_audio(path), language=language)
    except VoiceError as exc:
        print({"error": str(exc)})
        raise typer.Exit(code=1)
    print(asdict(result))


@app.command()
def speak(
    text: str,
    language: str = typer.Option(settings.default_language, help="Language code of the text"),
    out: Path = typer.Option(Path("speech.wav"), help="Where to write the synthesized audio"),
) -> None:
    """Synthesize speech with the local pyttsx3 engine."""
    try:
        handler = _build_live_handler(synthesis=True)
    except (RuntimeError, ImportError) as exc:
        print({"error": str(exc)})
        raise typer.Exit(code=1)

    try:
        audio = handler.speak(text, language)
    except VoiceError as exc:
        print({"error": str(exc)})
        raise typer.Exit(code=1)
    out.write_bytes(audio.data)
    print({"out": str(out), "format": audio.format.value, "duration_seconds": round(audio.duration_seconds, 2)})


@app.command()
def demo(session_id: str = typer.Option("demo-session-001", help="Session id to use")) -> None:
    """Walk through voice success, repeated failures, text fallback and statistics."""
    orchestrator = _build_demo_orchestrator()
    language = orchestrator.config.default_language

    async def _run() -> None:
        orchestrator.set_context(session_id, language, InputMode.voice)
        speech = AudioPayload(data=bytes(index % 256 for index in range(4096)), mime_type="audio/wav")
        result = await orchestrator.speech_to_text(speech, language, session_id)
        print({"step": "voice", "text": result.text, "confidence": result.confidence})

        silence = AudioPayload(data=b"", mime_type="audio/wav")
        for attempt in range(1, orchestrator.config.max_failures_before_fallback + 2):
            try:
                await orchestrator.speech_to_text(silence, language, session_id)
            except RecognitionFailed as exc:
                print({"step": f"failure {attempt}", "error": str(exc), "suggest_text": exc.suggest_text_fallback})
                if exc.suggest_text_fallback:
                    orchestrator.switch_input_mode(session_id, InputMode.text, reason="voice_failure_fallback")
                    typed = await orchestrator.process_text(DEMO_TRANSCRIPT, session_id)
                    print({"step": "text", "text": typed.processed_text, "language": typed.detected_language})
                    break
            except VoiceError as exc:
                print({"step": f"failure {attempt}", "error": str(exc), "suggest_text": False})

        reply = await orchestrator.text_to_speech("नमस्ते, मैं आपकी मदद कर सकता हूँ", language)
        print({"step": "reply", "format": reply.format.value, "bytes": len(reply.data)})

        context = orchestrator.get_context(session_id)
        print(
            {
                "input_mode": context.input_mode.value,
                "failure_count": context.failure_count,
                "history": len(context.history),
                "statistics": asdict(orchestrator.context_statistics()),
            }
        )

    asyncio.run(_run())


if __name__ == "__main__":
    app()
