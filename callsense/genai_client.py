"""
callsense/genai_client.py
==========================
Generative-AI Client — CallSense

Responsibility:
    - Build the OpenAI-SDK client for the configured inference endpoint
    - Build content parts (text, inline audio, inline PDF)
    - Send a single-turn request and return the response text
    - Parse JSON responses and classify quota failures

The endpoint is any OpenAI-compatible chat completions API; the default
configuration targets Gemini's compatibility layer.

This module does NOT:
    - Build prompts (owned by the audit, knowledge, live and mentor modules)
    - Retry requests (see callsense.genai_retry)
    - Store data
"""

import base64
import json
import logging
from typing import Any

from openai import OpenAI

from callsense import config

logger = logging.getLogger("callsense.genai_client")

QUOTA_MESSAGE = "API Daily Limit Reached...wait for some times."


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class MalformedResponseError(Exception):
    """Raised when the model's reply cannot be parsed as the expected JSON."""
    pass


class QuotaExceededError(Exception):
    """Raised when the inference API rejects a request for quota reasons."""

    def __init__(self, detail: str = ""):
        self.detail = detail
        super().__init__(QUOTA_MESSAGE)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


def get_client() -> OpenAI:
    """Return a client for the configured inference endpoint."""
    if not config.GENAI_API_KEY:
        raise RuntimeError("GENAI_API_KEY environment variable is not set.")
    return OpenAI(api_key=config.GENAI_API_KEY, base_url=config.GENAI_BASE_URL)


# ---------------------------------------------------------------------------
# Content parts
# ---------------------------------------------------------------------------


def text_part(text: str) -> dict[str, Any]:
    return {"type": "text", "text": text}


def audio_part(data_b64: str, mime_type: str) -> dict[str, Any]:
    """Inline audio part; the format is the mime subtype (audio/wav -> wav)."""
    return {
        "type": "input_audio",
        "input_audio": {"data": data_b64, "format": audio_format(mime_type)},
    }


def pdf_part(data_b64: str, filename: str = "document.pdf") -> dict[str, Any]:
    return {
        "type": "file",
        "file": {
            "filename": filename,
            "file_data": f"data:application/pdf;base64,{data_b64}",
        },
    }


def inline_part(mime_type: str, data_b64: str) -> dict[str, Any]:
    """Route an inline blob to the matching part builder by mime type."""
    if mime_type == "application/pdf":
        return pdf_part(data_b64)
    if mime_type.startswith(("audio/", "video/")):
        return audio_part(data_b64, mime_type)
    return {
        "type": "image_url",
        "image_url": {"url": f"data:{mime_type};base64,{data_b64}"},
    }


_AUDIO_FORMATS: dict[str, str] = {
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/mp4": "m4a",
    "audio/x-m4a": "m4a",
    "audio/aac": "aac",
    "audio/x-aac": "aac",
    "audio/flac": "flac",
    "audio/x-flac": "flac",
    "audio/webm": "webm",
    "audio/x-ms-wma": "wma",
    "video/mp4": "mp4",
    "video/mpeg": "mpeg",
    "video/x-m4v": "mp4",
}


def audio_format(mime_type: str) -> str:
    base = mime_type.split(";", 1)[0].strip().lower()
    if base in _AUDIO_FORMATS:
        return _AUDIO_FORMATS[base]
    if base.startswith("audio/pcm"):
        return "pcm16"
    return base.rsplit("/", 1)[-1] or "mp3"


def encode_b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


def build_request(
    parts: list[dict[str, Any]] | str,
    *,
    model: str | None = None,
    temperature: float | None = None,
    response_schema: dict[str, Any] | None = None,
    json_output: bool = False,
    schema_name: str = "response",
) -> dict[str, Any]:
    """
    Build keyword arguments for ``client.chat.completions.create``.

    A response schema implies JSON output.
    """
    content = parts if isinstance(parts, str) else list(parts)
    kwargs: dict[str, Any] = {
        "model": model or config.GENAI_MODEL,
        "messages": [{"role": "user", "content": content}],
    }
    if temperature is not None:
        kwargs["temperature"] = temperature

    if response_schema is not None:
        kwargs["response_format"] = {
            "type": "json_schema",
            "json_schema": {"name": schema_name, "schema": response_schema},
        }
    elif json_output:
        kwargs["response_format"] = {"type": "json_object"}

    return kwargs


def generate(
    parts: list[dict[str, Any]] | str,
    *,
    client: OpenAI | None = None,
    **request_options: Any,
) -> str:
    """
    Send one request and return the reply text ("" when the model is silent).

    Raises:
        QuotaExceededError: On quota / rate-limit rejection.
        openai.OpenAIError: On any other API failure.
    """
    client = client or get_client()
    kwargs = build_request(parts, **request_options)

    logger.debug("Sending inference request (model=%s).", kwargs["model"])
    try:
        response = client.chat.completions.create(**kwargs)
    except Exception as exc:
        if is_quota_error(exc):
            raise QuotaExceededError(str(exc)) from exc
        raise

    return response.choices[0].message.content or ""


def generate_raw(
    parts: list[dict[str, Any]] | str,
    *,
    client: OpenAI | None = None,
    **request_options: Any,
) -> tuple[str, dict[str, Any]]:
    """Like ``generate`` but also return the full response as a dict."""
    client = client or get_client()
    response = client.chat.completions.create(**build_request(parts, **request_options))
    return response.choices[0].message.content or "", response.model_dump()


# ---------------------------------------------------------------------------
# Proxy payloads ({model, contents, config} in generateContent shape)
# ---------------------------------------------------------------------------


def parts_from_contents(contents: Any) -> list[dict[str, Any]] | str:
    """
    Translate ``contents`` into message content.

    Accepts a plain string, ``{"parts": [...]}`` or a list of such
    objects. Parts are ``{"text": ...}`` or
    ``{"inlineData": {"mimeType": ..., "data": ...}}``.

    Raises:
        ValueError: On an unrecognised shape.
    """
    if isinstance(contents, str):
        return contents

    blocks = contents if isinstance(contents, list) else [contents]
    parts: list[dict[str, Any]] = []
    for block in blocks:
        if isinstance(block, str):
            parts.append(text_part(block))
            continue
        if not isinstance(block, dict) or not isinstance(block.get("parts"), list):
            raise ValueError("contents must be a string or an object with a parts list")
        for part in block["parts"]:
            if "text" in part:
                parts.append(text_part(part["text"]))
            elif "inlineData" in part:
                inline = part["inlineData"]
                parts.append(inline_part(inline.get("mimeType", ""), inline.get("data", "")))
            else:
                raise ValueError(f"Unsupported content part: {sorted(part)}")
    return parts


def options_from_config(config_data: dict[str, Any] | None) -> dict[str, Any]:
    """Map generation config keys onto ``build_request`` options."""
    config_data = config_data or {}
    options: dict[str, Any] = {}
    if config_data.get("temperature") is not None:
        options["temperature"] = config_data["temperature"]
    if config_data.get("responseSchema"):
        options["response_schema"] = config_data["responseSchema"]
    elif config_data.get("responseMimeType") == "application/json":
        options["json_output"] = True
    return options


def parse_json_response(raw: str) -> dict[str, Any]:
    """
    Parse a JSON object reply. Markdown code fences are tolerated.

    Raises:
        MalformedResponseError: If the reply is not a JSON object.
    """
    text = (raw or "").strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
        text = text.strip()

    if not text:
        return {}

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"Model response is not valid JSON: {raw[:200]!r}") from exc

    if not isinstance(parsed, dict):
        raise MalformedResponseError(f"Expected JSON object, got {type(parsed).__name__}")

    return parsed


def is_quota_error(exc: Exception) -> bool:
    """Return True for 429 / quota / resource-exhausted failures."""
    if getattr(exc, "status_code", None) == 429 or getattr(exc, "status", None) == 429:
        return True
    message = str(exc).lower()
    return "429" in message or "quota" in message or "exhausted" in message
