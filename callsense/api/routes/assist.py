"""
callsense/api/routes/assist.py
===============================
AI assistance endpoints — CallSense API

Responsibility:
    - POST /api/mentor: sales mentor chat
    - /api/live/sessions: live copilot sessions (start, push audio, poll, stop)
    - POST /api/generate: raw inference proxy taking {model, contents, config}
"""

import asyncio
import base64
import binascii
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from callsense import genai_client
from callsense.api.deps import current_user, get_store
from callsense.api.schemas import GenerateRequest, LiveAudioRequest, LiveStartRequest, MentorRequest
from callsense.live import copilot
from callsense.mentor import ask_mentor
from callsense.models import User
from callsense.store import repository
from callsense.store.document_store import DocumentStore

logger = logging.getLogger("callsense.api.assist")

router = APIRouter(prefix="/api", tags=["assist"])


# ---------------------------------------------------------------------------
# Mentor
# ---------------------------------------------------------------------------


@router.post("/mentor")
async def mentor_chat(body: MentorRequest, _: User = Depends(current_user)):
    answer = await asyncio.to_thread(ask_mentor, body.question)
    return {"answer": answer}


# ---------------------------------------------------------------------------
# Live copilot
# ---------------------------------------------------------------------------


def _owned_session(session_id: str, user: User) -> copilot.LiveSession:
    session = copilot.sessions.get(session_id)
    if session is None or session.owner_id != user.id:
        raise HTTPException(status_code=404, detail="Live session not found.")
    return session


@router.post("/live/sessions", status_code=201)
async def start_live_session(
    body: LiveStartRequest,
    user: User = Depends(current_user),
    store: DocumentStore = Depends(get_store),
):
    """Prepare the battlecard from the knowledge base files and rules, then open a session."""
    pdfs: list[str] = []
    instructions = ""
    if body.useKnowledgeBase:
        pdfs = [kb.url for kb in repository.list_knowledge_base_files(store) if kb.url]
        instructions = repository.get_admin_rules(store)

    battlecard = await asyncio.to_thread(copilot.prepare_live_context, pdfs, instructions)
    session = copilot.sessions.start(battlecard, sample_rate=body.sampleRate, owner_id=user.id)
    return {"id": session.id, "battlecard": battlecard, "sendInterval": copilot.SEND_INTERVAL}


@router.post("/live/sessions/{session_id}/audio")
async def push_live_audio(session_id: str, body: LiveAudioRequest, user: User = Depends(current_user)):
    session = _owned_session(session_id, user)

    if body.samples is not None:
        flushed = await asyncio.to_thread(session.push_samples, body.samples)
    elif body.pcm is not None:
        try:
            pcm_bytes = base64.b64decode(body.pcm, validate=True)
        except (binascii.Error, ValueError):
            raise HTTPException(status_code=422, detail="pcm must be base64 encoded.")
        if len(pcm_bytes) % 2:
            raise HTTPException(status_code=422, detail="pcm must hold 16-bit samples.")
        flushed = await asyncio.to_thread(session.push_pcm, pcm_bytes)
    else:
        raise HTTPException(status_code=422, detail="Provide samples or pcm.")

    return {**session.snapshot(), "flushed": flushed}


@router.get("/live/sessions/{session_id}")
def live_session_state(session_id: str, user: User = Depends(current_user)):
    return _owned_session(session_id, user).snapshot()


@router.delete("/live/sessions/{session_id}")
def stop_live_session(session_id: str, user: User = Depends(current_user)):
    _owned_session(session_id, user)
    copilot.sessions.stop(session_id)
    return {"ok": True}


# ---------------------------------------------------------------------------
# Inference proxy
# ---------------------------------------------------------------------------


@router.post("/generate")
async def generate(body: GenerateRequest):
    """
    Forward one generation request to the inference endpoint.

    Returns ``{"text", "raw"}``; errors use the ``{"error", "details"}`` shape.
    """
    if not body.model or not body.contents:
        return JSONResponse(status_code=400, content={"error": "Missing model or contents"})

    try:
        parts = genai_client.parts_from_contents(body.contents)
        options = genai_client.options_from_config(body.config)
        text, raw = await asyncio.to_thread(
            genai_client.generate_raw, parts, model=body.model, **options
        )
    except Exception as exc:
        logger.error("Inference proxy request failed: %s", exc)
        return JSONResponse(
            status_code=500,
            content={"error": "Inference request failed", "details": str(exc) or "Unknown error"},
        )

    return {"text": text, "raw": raw}
