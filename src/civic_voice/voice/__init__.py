"""Speech recognition and synthesis module boundaries."""

from .audio import (
    AudioAdapter,
    AudioAdapterConfig,
    compression_level_for,
    compression_settings,
    resample_wav,
    should_compress,
    sniff_format,
)
from .interfaces import RecognitionBackend, SynthesisBackend
from .recognition import RecognitionCascade, RecognitionConfig
from .scripted import ScriptedRecognitionBackend, ScriptedSynthesisBackend
from .synthesis import SynthesisCascade, SynthesisConfig, strip_ssml

__all__ = [
    "AudioAdapter",
    "AudioAdapterConfig",
    "RecognitionBackend",
    "RecognitionCascade",
    "RecognitionConfig",
    "ScriptedRecognitionBackend",
    "ScriptedSynthesisBackend",
    "SynthesisBackend",
    "SynthesisCascade",
    "SynthesisConfig",
    "compression_level_for",
    "compression_settings",
    "resample_wav",
    "should_compress",
    "sniff_format",
    "strip_ssml",
]
