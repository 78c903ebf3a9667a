"""
callsense/live/copilot.py
==========================
Live Sales Copilot — CallSense

Responsibility:
    - Condense company PDFs + admin instructions into a short "battlecard"
    - Buffer microphone PCM for a live call and, every SEND_INTERVAL
      seconds, ask the model for a transcript line and a whispered
      coaching suggestion
    - Keep the rolling transcript feed and the newest suggestions
    - Classify suggestions (warning vs answer) and lift their [tag]
    - Drop sessions left idle for IDLE_TIMEOUT seconds

Audio arrives from the browser as float32 samples in [-1, 1] (or as
little-endian int16 PCM) at the capture device's sample rate.

This module does NOT:
    - Capture audio (the browser does)
    - Persist anything; sessions live in memory only
"""

import io
import logging
import re
import threading
import time
import wave
from collections import deque
from typing import Any, Callable

import numpy as np

from callsense import config, genai_client
from callsense.models import new_id

logger = logging.getLogger("callsense.live.copilot")


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SEND_INTERVAL: float = 5.0      # seconds of audio buffered per model request
MAX_TRANSCRIPT_LINES: int = 20
MAX_SUGGESTIONS: int = 15

DEFAULT_SAMPLE_RATE: int = 16000
IDLE_TIMEOUT: float = 30 * 60    # seconds without audio or polling before a session is dropped

NO_CONTEXT_FALLBACK = "General Sales Consultation Principles."
CONTEXT_ERROR_MESSAGE = "Error preparing context. Use general knowledge."
CONTEXT_EMPTY_MESSAGE = "Context extraction returned empty."
BACKEND_ERROR_MESSAGE = "Error contacting live copilot backend."

_WARNING_WORDS: tuple[str, ...] = ("caution", "wrong", "correction")
_TAG_RE = re.compile(r"\[(.*?)\]")


_BATTLECARD_PROMPT: str = """
Your task is to create a concise "Sales Battlecard" from the provided documents and instructions.

Target Audience for this Battlecard: An AI Sales Copilot that needs to give real-time, short advice to a human agent during a call.

Structure the output as:
1. PRODUCT_INFO: Key features and benefits (bullet points).
2. PRICING: Exact numbers and plans.
3. OBJECTION_HANDLING: Short counter-arguments for common pushbacks.
4. COMPLIANCE: Mandatory disclaimers.

Keep it dense and information-rich. No fluff.
"""

_COPILOT_PROMPT_TEMPLATE: str = """
You are a Real-Time Sales Copilot.
You are listening to a short segment of a sales call.
Your output will NOT be heard by the client. It is whispered to the Agent.

YOUR GOAL: Help the Agent convert the lead.

INSTRUCTIONS:
1. Listen for questions about pricing, features, or objections.
2. IMMEDIATELY provide the answer or a counter-tactic based on the BATTLECARD below.
3. Keep responses SHORT (under 2 sentences).
4. If the agent is doing well, stay silent. Only intervene to help.

BATTLECARD DATA:
{battlecard}

Return JSON only, with the following shape:
{{
  "transcript": "Short transcription of this segment in English/Hinglish/Gujlish",
  "suggestion": "Your brief coaching suggestion for the agent, or an empty string if none needed"
}}
"""


# ---------------------------------------------------------------------------
# Battlecard
# ---------------------------------------------------------------------------


def prepare_live_context(
    pdf_b64_list: list[str] | None = None,
    instructions: str | None = None,
    client=None,
) -> str:
    """
    Build the battlecard the copilot reasons over.

    With no PDFs and no instructions the API is not called. Failures
    degrade to a fixed message so a live call can still start.
    """
    parts: list[dict[str, Any]] = [genai_client.text_part(_BATTLECARD_PROMPT)]
    for pdf in pdf_b64_list or []:
        parts.append(genai_client.pdf_part(pdf))
    if instructions:
        parts.append(genai_client.text_part(f"Additional Admin Instructions: {instructions}"))

    if len(parts) == 1:
        return instructions or NO_CONTEXT_FALLBACK

    try:
        text = genai_client.generate(
            parts,
            client=client,
            model=config.GENAI_CONTEXT_MODEL,
            temperature=0,
        )
    except Exception as exc:
        logger.error("Context preparation failed: %s", exc)
        return CONTEXT_ERROR_MESSAGE

    return text or CONTEXT_EMPTY_MESSAGE


# ---------------------------------------------------------------------------
# PCM helpers
# ---------------------------------------------------------------------------


def float_to_pcm16(samples) -> np.ndarray:
    """Convert float samples to int16, clamping to [-1, 1] first."""
    clipped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
    scaled = np.where(clipped < 0, clipped * 0x8000, clipped * 0x7FFF)
    return scaled.astype(np.int16)


def pcm16_to_wav(pcm: np.ndarray | bytes, sample_rate: int = DEFAULT_SAMPLE_RATE) -> bytes:
    """Wrap mono int16 PCM in a WAV container."""
    raw = pcm.astype("<i2").tobytes() if isinstance(pcm, np.ndarray) else bytes(pcm)
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(raw)
    return buf.getvalue()


# ---------------------------------------------------------------------------
# Suggestions
# ---------------------------------------------------------------------------


def classify_suggestion(text: str) -> str:
    lowered = text.lower()
    return "warning" if any(word in lowered for word in _WARNING_WORDS) else "answer"


def build_suggestion(text: str, now: float | None = None) -> dict[str, Any]:
    """Turn a raw suggestion into a feed item, lifting the first [tag]."""
    review_tag = None
    cleaned = text
    match = _TAG_RE.search(text)
    if match:
        review_tag = match.group(1)
        cleaned = _TAG_RE.sub("", text, count=1).strip()

    return {
        "id": new_id(),
        "text": cleaned,
        "time": time.strftime("%H:%M:%S", time.localtime(now)),
        "type": classify_suggestion(text),
        "reviewTag": review_tag,
    }


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class LiveSession:
    """One live call: PCM buffer, transcript feed and suggestion feed."""

    def __init__(
        self,
        battlecard: str,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        client=None,
        owner_id: str | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.id = new_id()
        self.battlecard = battlecard
        self.sample_rate = sample_rate
        self.owner_id = owner_id
        self.transcript: deque[dict[str, Any]] = deque(maxlen=MAX_TRANSCRIPT_LINES)
        self.suggestions: list[dict[str, Any]] = []
        self.last_error: str | None = None

        self._client = client
        self._clock = clock
        self._buffer: list[np.ndarray] = []
        self._last_send: float | None = None
        self._lock = threading.Lock()
        self.last_active = clock()

    # -- input ---------------------------------------------------------------

    def push_samples(self, samples) -> bool:
        """Buffer float samples; flush when the send interval has elapsed."""
        return self._push(float_to_pcm16(samples))

    def push_pcm(self, pcm_bytes: bytes) -> bool:
        """Buffer little-endian int16 PCM; flush when the send interval has elapsed."""
        return self._push(np.frombuffer(pcm_bytes, dtype="<i2"))

    def _push(self, pcm: np.ndarray) -> bool:
        with self._lock:
            self._buffer.append(pcm)
            now = self._clock()
            self.last_active = now
            if self._last_send is not None and now - self._last_send < SEND_INTERVAL:
                return False
            self._last_send = now
            merged = np.concatenate(self._buffer)
            self._buffer.clear()

        if merged.size == 0:
            return False
        self._send_chunk(merged)
        return True

    # -- model ---------------------------------------------------------------

    def _send_chunk(self, pcm: np.ndarray) -> None:
        wav_b64 = genai_client.encode_b64(pcm16_to_wav(pcm, self.sample_rate))
        parts = [
            genai_client.audio_part(wav_b64, "audio/wav"),
            genai_client.text_part(_COPILOT_PROMPT_TEMPLATE.format(battlecard=self.battlecard)),
        ]

        try:
            raw = genai_client.generate(
                parts,
                client=self._client,
                model=config.GENAI_LIVE_MODEL,
                temperature=0.3,
                json_output=True,
            )
            parsed = genai_client.parse_json_response(raw)
        except Exception as exc:
            logger.error("Live copilot request failed (session %s): %s", self.id, exc)
            self.last_error = BACKEND_ERROR_MESSAGE
            return

        self.last_error = None
        self.record(parsed.get("transcript") or "", parsed.get("suggestion") or "")

    def record(self, transcript: str, suggestion: str) -> None:
        """Append a model reply to the feeds; empty fields are ignored."""
        with self._lock:
            if transcript.strip():
                self.transcript.append({"text": transcript, "isModel": False, "review": None})
            if suggestion.strip():
                self.suggestions.insert(0, build_suggestion(suggestion))
                del self.suggestions[MAX_SUGGESTIONS:]

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            self.last_active = self._clock()
            return {
                "id": self.id,
                "transcript": list(self.transcript),
                "suggestions": list(self.suggestions),
                "error": self.last_error,
            }


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class LiveSessionRegistry:
    """
    In-process map of active live sessions.

    Sessions idle for longer than ``idle_timeout`` seconds are dropped
    the next time the registry is used.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        idle_timeout: float = IDLE_TIMEOUT,
    ):
        self._sessions: dict[str, LiveSession] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._idle_timeout = idle_timeout

    def start(
        self,
        battlecard: str,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        client=None,
        owner_id: str | None = None,
    ) -> LiveSession:
        session = LiveSession(
            battlecard,
            sample_rate=sample_rate,
            client=client,
            owner_id=owner_id,
            clock=self._clock,
        )
        with self._lock:
            self._prune()
            self._sessions[session.id] = session
        logger.info("Live session %s started (rate=%d).", session.id, sample_rate)
        return session

    def get(self, session_id: str) -> LiveSession | None:
        with self._lock:
            self._prune()
            return self._sessions.get(session_id)

    def stop(self, session_id: str) -> LiveSession | None:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is not None:
            logger.info("Live session %s stopped.", session_id)
        return session

    def _prune(self) -> None:
        # caller holds self._lock
        now = self._clock()
        expired = [
            session_id
            for session_id, session in self._sessions.items()
            if now - session.last_active > self._idle_timeout
        ]
        for session_id in expired:
            del self._sessions[session_id]
            logger.info("Live session %s expired after %.0fs idle.", session_id, self._idle_timeout)


sessions = LiveSessionRegistry()
