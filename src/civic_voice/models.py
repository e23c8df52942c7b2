from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

HISTORY_CAPACITY = 10


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InputMode(str, Enum):
    voice = "voice"
    text = "text"


class NetworkQuality(str, Enum):
    poor = "poor"
    fair = "fair"
    good = "good"


class AudioFormat(str, Enum):
    wav = "wav"
    mp3 = "mp3"
    ogg = "ogg"
    webm = "webm"

    @property
    def mime_type(self) -> str:
        return {
            AudioFormat.wav: "audio/wav",
            AudioFormat.mp3: "audio/mpeg",
            AudioFormat.ogg: "audio/ogg",
            AudioFormat.webm: "audio/webm",
        }[self]


class FallbackReason(str, Enum):
    multiple_failures = "multiple_failures"
    low_confidence = "low_confidence"
    service_unavailable = "service_unavailable"


@dataclass(frozen=True, slots=True)
class AudioPayload:
    """Raw audio handed to the pipeline. Never mutated; transforms return a new payload."""

    data: bytes
    mime_type: str = "audio/wav"
    sample_rate_hz: int | None = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(slots=True)
class TranscriptionResult:
    text: str
    confidence: float
    detected_language: str
    alternatives: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class SynthesizedAudio:
    data: bytes
    format: AudioFormat
    duration_seconds: float
    sample_rate_hz: int


@dataclass(frozen=True, slots=True)
class VoiceProfile:
    language: str
    gender: str = "female"
    speed: float = 1.0
    pitch: float = 1.0

    def __post_init__(self) -> None:
        if self.gender not in {"male", "female", "neutral"}:
            raise ValueError(f"Unsupported voice gender: {self.gender}")
        for name in ("speed", "pitch"):
            value = getattr(self, name)
            if not 0.5 <= value <= 2.0:
                raise ValueError(f"Voice {name} must be within [0.5, 2.0], got {value}")


@dataclass(slots=True)
class ValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class CompressionSettings:
    bitrate_kbps: int
    sample_rate_hz: int
    quality: float

    @property
    def target_size_bytes(self) -> int:
        # Ten seconds of audio at the level's bitrate.
        return self.bitrate_kbps * 1000 * 10 // 8


@dataclass(frozen=True, slots=True)
class InteractionRecord:
    timestamp: datetime
    input_mode: InputMode
    succeeded: bool
    language: str


@dataclass(slots=True)
class SessionContext:
    """Per-conversation state owned by the session registry."""

    session_id: str
    current_language: str
    input_mode: InputMode
    last_interaction_at: datetime = field(default_factory=utc_now)
    failure_count: int = 0
    total_interactions: int = 0
    fallback_suggested: bool = False
    history: deque[InteractionRecord] = field(default_factory=lambda: deque(maxlen=HISTORY_CAPACITY))

    def record(self, *, input_mode: InputMode, succeeded: bool, language: str, at: datetime | None = None) -> None:
        timestamp = at or utc_now()
        self.history.append(
            InteractionRecord(timestamp=timestamp, input_mode=input_mode, succeeded=succeeded, language=language)
        )
        self.last_interaction_at = timestamp

    def last_successful_mode(self) -> InputMode | None:
        for entry in reversed(self.history):
            if entry.succeeded:
                return entry.input_mode
        return None


@dataclass(frozen=True, slots=True)
class FallbackSuggestion:
    should_suggest_fallback: bool
    failure_count: int
    reason: FallbackReason = FallbackReason.multiple_failures
    recommended_mode: InputMode = InputMode.text
    last_successful_mode: InputMode | None = None


@dataclass(frozen=True, slots=True)
class ContextStatistics:
    total_sessions: int
    active_sessions: int
    average_interactions_per_session: float
    sessions_by_mode: dict[str, int]
