"""
callsense/audit/transcriber.py
===============================
Call Transcription — CallSense Audit Stage 1

Responsibility:
    - Send the call recording to the inference API with a transcription
      prompt and a response schema
    - Return the raw transcript and the client's name when the responder
      addressed them by it

Calls are multilingual (Hindi, English, Gujarati); the transcript is
produced in English, Hinglish or Gujlish.

This module does NOT:
    - Judge compliance or score the call (see auditor.py / scoring)
    - Validate the upload (see media.py)
    - Store data
"""

import logging
from typing import Any

from callsense import genai_client
from callsense.genai_retry import call_with_retry

logger = logging.getLogger("callsense.audit.transcriber")


# ---------------------------------------------------------------------------
# Prompt + schema
# ---------------------------------------------------------------------------

_PROMPT_TEMPLATE: str = (
    "Analyze this sales call between Responder: {agent_name} and a Client "
    "(Hindi, English, or Gujarati).\n\n"
    "GOAL:\n"
    "1. Extract each conversation of both parties, don't miss any.\n"
    "2. Extract a high-fidelity transcript in English, Hinglish or Gujlish.\n"
    "3. Identify if the responder addresses the client by name.\n"
    "4. If found, capture that name for the 'clientName' field.\n\n"
    "Return JSON matching the schema."
)

TRANSCRIPTION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "clientName": {
            "type": "string",
            "description": "Extracted client name or 'Client'",
        },
        "rawTranscript": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "speaker": {"type": "string", "description": '"Responder" or "Client"'},
                    "timestamp": {"type": "string"},
                    "text": {"type": "string"},
                    "review": {"type": "string"},
                },
                "required": ["speaker", "timestamp", "text"],
            },
        },
    },
    "required": ["rawTranscript"],
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def transcribe_call(
    audio_b64: str,
    mime_type: str,
    agent_name: str,
    client=None,
) -> dict[str, Any]:
    """
    Transcribe a call recording.

    Args:
        audio_b64:  Base64 encoded recording.
        mime_type:  Resolved mime type of the recording.
        agent_name: Name of the responder on the call.
        client:     Optional pre-built API client.

    Returns:
        Parsed JSON: ``{"clientName"?: str, "rawTranscript"?: list[dict]}``.

    Raises:
        QuotaExceededError:     On quota rejection.
        MalformedResponseError: If the reply is not JSON.
        openai.OpenAIError:     On other API failures (after 500 retries).
    """
    parts = [
        genai_client.audio_part(audio_b64, mime_type),
        genai_client.text_part(_PROMPT_TEMPLATE.format(agent_name=agent_name)),
    ]

    logger.info("Requesting transcript (%s, agent=%s).", mime_type, agent_name)

    raw = call_with_retry(
        lambda: genai_client.generate(
            parts,
            client=client,
            temperature=0.1,
            response_schema=TRANSCRIPTION_SCHEMA,
            schema_name="call_transcript",
        )
    )
    return genai_client.parse_json_response(raw)
