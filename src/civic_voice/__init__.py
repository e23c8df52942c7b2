"""Voice interaction orchestration for the civic assistant."""

from .errors import (
    BackendUnavailable,
    NoSynthesisEngineAvailable,
    RecognitionFailed,
    RecognitionUnavailable,
    SessionNotFound,
    SynthesisFailed,
    ValidationError,
    VoiceError,
)
from .models import AudioPayload, FallbackSuggestion, InputMode, NetworkQuality, SessionContext, VoiceProfile
from .orchestrator import TextInputResult, VoiceOrchestratorConfig, VoiceSessionOrchestrator

__all__ = [
    "AudioPayload",
    "BackendUnavailable",
    "FallbackSuggestion",
    "InputMode",
    "NetworkQuality",
    "NoSynthesisEngineAvailable",
    "RecognitionFailed",
    "RecognitionUnavailable",
    "SessionContext",
    "SessionNotFound",
    "SynthesisFailed",
    "TextInputResult",
    "ValidationError",
    "VoiceError",
    "VoiceOrchestratorConfig",
    "VoiceProfile",
    "VoiceSessionOrchestrator",
]
