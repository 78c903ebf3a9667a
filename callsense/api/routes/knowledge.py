"""
callsense/api/routes/knowledge.py
==================================
Company knowledge endpoints — CallSense API

Responsibility:
    - Admin rules (free-text instructions) read/write
    - PDF upload: extract the knowledge base and keep the PDF inline
    - List and remove uploaded PDFs
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from callsense import genai_client
from callsense.api.deps import current_user, get_store, require_admin
from callsense.api.schemas import RulesRequest
from callsense.audit.knowledge import convert_pdf_to_knowledge
from callsense.genai_client import MalformedResponseError, QuotaExceededError
from callsense.models import User
from callsense.store import repository
from callsense.store.document_store import DocumentStore

logger = logging.getLogger("callsense.api.knowledge")

router = APIRouter(prefix="/api/knowledge", tags=["knowledge"])


@router.get("")
def get_knowledge(_: User = Depends(current_user), store: DocumentStore = Depends(get_store)):
    knowledge = repository.get_company_knowledge(store)
    return knowledge.to_document() if knowledge is not None else None


@router.get("/rules")
def get_rules(_: User = Depends(current_user), store: DocumentStore = Depends(get_store)):
    return {"rules": repository.get_admin_rules(store)}


@router.put("/rules")
def save_rules(body: RulesRequest, _: User = Depends(require_admin), store: DocumentStore = Depends(get_store)):
    repository.save_admin_rules(store, body.rules)
    return {"rules": body.rules}


@router.get("/files")
def list_files(_: User = Depends(current_user), store: DocumentStore = Depends(get_store)):
    return [
        {"id": kb.id, "fileName": kb.fileName, "uploadedAt": kb.uploadedAt, "mimeType": kb.mimeType}
        for kb in repository.list_knowledge_base_files(store)
    ]


@router.post("/files", status_code=201)
async def upload_file(
    file: UploadFile = File(...),
    _: User = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    """Extract knowledge from a PDF and store both the knowledge and the file."""
    filename = file.filename or "document.pdf"
    if file.content_type != "application/pdf" and not filename.lower().endswith(".pdf"):
        raise HTTPException(status_code=422, detail="Please upload a PDF file.")

    pdf_bytes = await file.read()
    if not pdf_bytes:
        raise HTTPException(status_code=422, detail="PDF file is empty.")

    try:
        knowledge = await asyncio.to_thread(convert_pdf_to_knowledge, pdf_bytes, filename)
    except QuotaExceededError as exc:
        raise HTTPException(status_code=429, detail=str(exc))
    except MalformedResponseError as exc:
        logger.error("Knowledge extraction returned malformed JSON: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc))
    except Exception as exc:
        logger.error("Knowledge extraction failed: %s", exc, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to process PDF.")

    repository.save_company_knowledge(store, knowledge, filename)
    kb_file = repository.add_knowledge_base_file(store, filename, genai_client.encode_b64(pdf_bytes))

    return {"id": kb_file.id, "fileName": kb_file.fileName, "uploadedAt": kb_file.uploadedAt}


@router.delete("/files/{file_id}")
def remove_file(file_id: str, _: User = Depends(require_admin), store: DocumentStore = Depends(get_store)):
    if not repository.remove_knowledge_base_file(store, file_id):
        raise HTTPException(status_code=404, detail="File not found.")
    return {"ok": True}
