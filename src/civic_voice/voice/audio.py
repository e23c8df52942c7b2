"""Audio payload validation and bandwidth-driven compression policy."""

from __future__ import annotations

import audioop
import io
import logging
import wave
from dataclasses import dataclass, replace

from civic_voice.errors import ValidationError
from civic_voice.models import AudioFormat, AudioPayload, CompressionSettings, NetworkQuality, ValidationResult

COMPRESSION_TABLE: dict[int, CompressionSettings] = {
    1: CompressionSettings(bitrate_kbps=8, sample_rate_hz=8_000, quality=0.1),
    2: CompressionSettings(bitrate_kbps=16, sample_rate_hz=8_000, quality=0.2),
    3: CompressionSettings(bitrate_kbps=24, sample_rate_hz=11_025, quality=0.3),
    4: CompressionSettings(bitrate_kbps=32, sample_rate_hz=16_000, quality=0.4),
    5: CompressionSettings(bitrate_kbps=48, sample_rate_hz=16_000, quality=0.5),
    6: CompressionSettings(bitrate_kbps=64, sample_rate_hz=22_050, quality=0.6),
    7: CompressionSettings(bitrate_kbps=96, sample_rate_hz=22_050, quality=0.7),
    8: CompressionSettings(bitrate_kbps=128, sample_rate_hz=44_100, quality=0.8),
    9: CompressionSettings(bitrate_kbps=192, sample_rate_hz=44_100, quality=0.9),
    10: CompressionSettings(bitrate_kbps=320, sample_rate_hz=44_100, quality=1.0),
}

NETWORK_COMPRESSION_LEVELS: dict[NetworkQuality, int] = {
    NetworkQuality.poor: 2,
    NetworkQuality.fair: 4,
    NetworkQuality.good: 6,
}

# Payloads above these sizes are worth compressing on the given network.
COMPRESSION_THRESHOLDS: dict[NetworkQuality, int] = {
    NetworkQuality.poor: 100 * 1024,
    NetworkQuality.fair: 500 * 1024,
    NetworkQuality.good: 1024 * 1024,
}

SUPPORTED_MIME_TYPES = frozenset(
    {"audio/wav", "audio/mpeg", "audio/mp3", "audio/ogg", "audio/webm", "audio/x-wav", "audio/x-mpeg"}
)

MIN_DURATION_SECONDS = 0.1

# Leading bytes identifying each container.
_CONTAINER_SIGNATURES: tuple[tuple[bytes, AudioFormat], ...] = (
    (b"OggS", AudioFormat.ogg),
    (b"\x1a\x45\xdf\xa3", AudioFormat.webm),
    (b"ID3", AudioFormat.mp3),
)


@dataclass(slots=True)
class AudioAdapterConfig:
    """Limits and defaults for audio handling."""

    compression_enabled: bool = True
    max_audio_bytes: int = 5 * 1024 * 1024
    min_audio_bytes: int = 1024
    assumed_bitrate_kbps: int = 64
    recognition_format: AudioFormat = AudioFormat.wav


def compression_settings(level: int) -> CompressionSettings:
    """Look up the bitrate/sample-rate pair for a compression level (1..10)."""
    if isinstance(level, bool) or not isinstance(level, int) or level not in COMPRESSION_TABLE:
        raise ValidationError(f"Compression level must be an integer in 1..10, got {level!r}")
    return COMPRESSION_TABLE[level]


def compression_level_for(quality: NetworkQuality | str) -> int:
    return NETWORK_COMPRESSION_LEVELS[NetworkQuality(quality)]


def should_compress(size_bytes: int, quality: NetworkQuality | str) -> bool:
    return size_bytes > COMPRESSION_THRESHOLDS[NetworkQuality(quality)]


def sniff_format(data: bytes) -> AudioFormat | None:
    """Identify the container from its leading bytes; ``None`` for headerless or unknown data."""
    head = bytes(data[:12])
    if head[:4] == b"RIFF" and head[8:12] == b"WAVE":
        return AudioFormat.wav
    for signature, fmt in _CONTAINER_SIGNATURES:
        if head.startswith(signature):
            return fmt
    if len(head) >= 2 and head[0] == 0xFF and head[1] & 0xE0 == 0xE0:
        # Bare MPEG audio frame sync.
        return AudioFormat.mp3
    return None


def resample_wav(data: bytes, max_rate_hz: int) -> tuple[bytes, int] | None:
    """Downmix stereo and resample PCM frames to at most ``max_rate_hz``.

    Returns the new WAV bytes and rate, or ``None`` when nothing would change.
    """
    with wave.open(io.BytesIO(data), "rb") as reader:
        channels = reader.getnchannels()
        sample_width = reader.getsampwidth()
        source_rate = reader.getframerate()
        frames = reader.readframes(reader.getnframes())

    target_rate = min(source_rate, max_rate_hz)
    if channels == 1 and target_rate == source_rate:
        return None

    if channels == 2:
        frames = audioop.tomono(frames, sample_width, 0.5, 0.5)
        channels = 1
    if target_rate != source_rate:
        frames, _ = audioop.ratecv(frames, sample_width, channels, source_rate, target_rate, None)

    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as writer:
        writer.setnchannels(channels)
        writer.setsampwidth(sample_width)
        writer.setframerate(target_rate)
        writer.writeframes(frames)
    return buffer.getvalue(), target_rate


class AudioAdapter:
    """Stateless audio policy: validation, duration estimates, compression and container relabeling."""

    def __init__(self, config: AudioAdapterConfig | None = None, *, logger: logging.Logger | None = None) -> None:
        self._config = config or AudioAdapterConfig()
        self._logger = logger or logging.getLogger("civic_voice.audio")

    @property
    def config(self) -> AudioAdapterConfig:
        return self._config

    def validate(self, audio: AudioPayload) -> ValidationResult:
        """Check payload size and media type. Never raises."""
        errors: list[str] = []
        data = getattr(audio, "data", None)
        mime_type = getattr(audio, "mime_type", None)

        if not isinstance(data, (bytes, bytearray, memoryview)):
            errors.append("Audio payload is missing or not binary data")
            size = 0
        else:
            size = len(data)
            if size > self._config.max_audio_bytes:
                errors.append(f"Audio file too large: {size} bytes (max: {self._config.max_audio_bytes})")
            if size < self._config.min_audio_bytes:
                errors.append("Audio file too small, may be empty or corrupted")

        if not self._is_supported_mime_type(mime_type):
            errors.append(f"Unsupported audio type: {mime_type}")

        return ValidationResult(is_valid=not errors, errors=errors)

    def compress(self, audio: AudioPayload, level: int) -> AudioPayload:
        """Resample ``audio`` toward the sample rate of ``level``.

        Level 1 is the most aggressive (8 kbps / 8 kHz) and level 10 the least
        (320 kbps / 44.1 kHz). Only payloads above the level's size budget are
        touched. WAV payloads are downmixed to mono and resampled to the
        level's rate and stay valid WAV. Other containers need a codec and are
        returned as-is, as is the original payload on any internal failure.
        """
        settings = compression_settings(level)
        if not self._config.compression_enabled:
            return audio

        target_size = settings.target_size_bytes
        if audio.size <= target_size:
            self._logger.debug(
                "audio_compression_skipped",
                extra={"level": level, "size": audio.size, "target_size": target_size},
            )
            return audio

        if sniff_format(audio.data) != AudioFormat.wav:
            self._logger.info(
                "audio_compression_unsupported_container",
                extra={"level": level, "size": audio.size, "mime_type": audio.mime_type},
            )
            return audio

        try:
            resampled = resample_wav(bytes(audio.data), settings.sample_rate_hz)
        except Exception:  # noqa: BLE001 - compression is best-effort.
            self._logger.exception("audio_compression_failed", extra={"level": level, "size": audio.size})
            return audio
        if resampled is None:
            return audio

        data, sample_rate_hz = resampled
        compressed = replace(audio, data=data, sample_rate_hz=sample_rate_hz)
        self._logger.info(
            "audio_compressed",
            extra={
                "level": level,
                "sample_rate_hz": sample_rate_hz,
                "original_size": audio.size,
                "compressed_size": compressed.size,
                "reduction_pct": round((1 - compressed.size / audio.size) * 100, 1),
            },
        )
        return compressed

    def adapt_to_network(self, audio: AudioPayload, quality: NetworkQuality | str) -> AudioPayload:
        """Pick a compression level from the caller-supplied network quality and compress."""
        level = compression_level_for(quality)
        self._logger.debug("audio_network_adaptation", extra={"network_quality": str(quality), "level": level})
        return self.compress(audio, level)

    def estimate_duration_seconds(self, audio: AudioPayload) -> float:
        """Estimate playback length from payload size and the assumed bitrate."""
        try:
            size = len(audio.data)
        except TypeError:
            return MIN_DURATION_SECONDS
        estimated = (size * 8) / (self._config.assumed_bitrate_kbps * 1000)
        return max(MIN_DURATION_SECONDS, estimated)

    def convert_format(self, audio: AudioPayload, target_format: AudioFormat | str) -> AudioPayload:
        """Normalize the media type when the bytes already are ``target_format``.

        Transcoding between containers needs a codec and is left to the
        backends, so any other payload comes back unchanged.
        """
        try:
            fmt = AudioFormat(target_format)
        except ValueError:
            self._logger.warning("audio_format_unknown", extra={"target_format": str(target_format)})
            return audio

        detected = sniff_format(audio.data)
        if detected != fmt:
            self._logger.warning(
                "audio_format_conversion_unsupported",
                extra={"source_format": detected.value if detected else None, "target_format": fmt.value},
            )
            return audio
        if audio.mime_type == fmt.mime_type:
            return audio
        return replace(audio, mime_type=fmt.mime_type)

    def optimize_for_recognition(self, audio: AudioPayload) -> AudioPayload:
        """Balanced compression plus the container recognizers handle best."""
        return self.convert_format(self.compress(audio, 5), self._config.recognition_format)

    @staticmethod
    def _is_supported_mime_type(mime_type: object) -> bool:
        if not isinstance(mime_type, str) or not mime_type:
            return False
        normalized = mime_type.split(";", 1)[0].strip().lower()
        return normalized in SUPPORTED_MIME_TYPES or normalized.startswith("audio/")
