"""
callsense/audit/media.py
=========================
Media Validation — CallSense Audit Stage 0

Responsibility:
    - Validate that an uploaded call recording is non-empty and of a
      supported audio / video format
    - Resolve the mime type sent to the inference API
    - Measure call duration when the container can be decoded

This module does NOT:
    - Transcode or resample audio (the inference API accepts the original)
    - Call any LLM or external API
    - Store data
"""

import io
import logging

from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError

logger = logging.getLogger("callsense.audit.media")


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EXTENSION_MIME_TYPES: dict[str, str] = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".m4a": "audio/mp4",
    ".mp4": "video/mp4",
    ".mpeg": "video/mpeg",
    ".mpg": "video/mpeg",
    ".aac": "audio/aac",
    ".flac": "audio/flac",
    ".wma": "audio/x-ms-wma",
    ".webm": "audio/webm",
}

SUPPORTED_MIME_TYPES: set[str] = {
    "audio/mpeg", "audio/wav", "audio/x-m4a", "audio/mp4", "audio/aac",
    "audio/x-aac", "audio/flac", "audio/x-flac", "audio/x-ms-wma",
    "video/mp4", "video/mpeg", "video/x-m4v",
}

DEFAULT_MIME_TYPE = "audio/mpeg"
UNKNOWN_DURATION = "--:--"

UNSUPPORTED_FORMAT_MESSAGE = (
    "Unsupported format. Please upload Audio (MP3, WAV, M4A) or Video (MP4, MPEG) files."
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class MediaValidationError(Exception):
    """Raised when the uploaded recording fails validation."""
    pass


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_media(audio_bytes: bytes, filename: str, declared_type: str | None = None) -> None:
    """
    Check that the recording is non-empty and of a supported format.

    A file passes when either its declared content type or its extension
    is supported.

    Raises:
        MediaValidationError: On empty input or unsupported format.
    """
    if not audio_bytes:
        raise MediaValidationError("Audio file is empty.")

    ext = _extract_extension(filename or "")
    declared = (declared_type or "").lower()
    if declared not in SUPPORTED_MIME_TYPES and ext not in EXTENSION_MIME_TYPES:
        raise MediaValidationError(UNSUPPORTED_FORMAT_MESSAGE)


def resolve_mime_type(filename: str, declared_type: str | None = None) -> str:
    """
    Mime type to send upstream: extension map first, then the declared
    type, then audio/mpeg when the client sent nothing useful.
    """
    ext = _extract_extension(filename or "")
    if ext in EXTENSION_MIME_TYPES:
        return EXTENSION_MIME_TYPES[ext]
    if declared_type and declared_type != "application/octet-stream":
        return declared_type
    return DEFAULT_MIME_TYPE


def measure_duration(audio_bytes: bytes, filename: str) -> str:
    """
    Return the call duration as ``MM:SS`` (``H:MM:SS`` past an hour).

    Decoding needs ffmpeg for compressed formats; when the recording
    cannot be decoded the duration is reported as unknown.
    """
    ext = _extract_extension(filename or "").lstrip(".") or None
    try:
        audio = AudioSegment.from_file(io.BytesIO(audio_bytes), format=ext)
    except (CouldntDecodeError, OSError, IndexError) as exc:
        logger.warning("Could not decode %s for duration: %s", filename, exc)
        return UNKNOWN_DURATION

    return format_duration(len(audio) / 1000.0)


def format_duration(seconds: float) -> str:
    total = int(round(seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _extract_extension(filename: str) -> str:
    """Return lowercase file extension including the dot, e.g. '.wav'."""
    dot_index = filename.rfind(".")
    if dot_index == -1:
        return ""
    return filename[dot_index:].lower()
