"""
callsense/api/routes/reports.py
================================
Call report endpoints — CallSense API

Responsibility:
    - POST /api/reports/analyze: accept a recording plus client details
      (multipart/form-data), run the audit pipeline, store the report
    - List, view and remove reports with the role rules applied

Pipeline errors are mapped to HTTP statuses here; the pipeline itself
knows nothing about HTTP.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from callsense.api.deps import current_user, get_store
from callsense.audit.media import MediaValidationError
from callsense.audit.pipeline import AnalysisError, ClientDetails, analyze_call
from callsense.audit.report_validator import ReportVerificationError
from callsense.genai_client import MalformedResponseError, QuotaExceededError
from callsense.models import LeadType, RelationshipType, User
from callsense.report_view import build_report_view
from callsense.store import repository
from callsense.store.document_store import DocumentStore

logger = logging.getLogger("callsense.api.reports")

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.post("/analyze", status_code=201)
async def analyze_report(
    file: UploadFile = File(...),
    clientName: str = Form(""),
    clientPhone: str = Form(""),
    clientConcern: str = Form(""),
    leadType: LeadType = Form(LeadType.NEW_LEAD),
    relationshipType: RelationshipType = Form(RelationshipType.LEAD),
    user: User = Depends(current_user),
    store: DocumentStore = Depends(get_store),
):
    """
    Analyse an uploaded call and save the report for the signed-in user.

    Returns the report view plus the status messages emitted on the way.
    """
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="Audio file is required.")

    details = ClientDetails(
        name=clientName,
        phone=clientPhone,
        concern=clientConcern,
        lead_type=leadType,
        relationship_type=relationshipType,
    )
    if details.missing_fields():
        raise HTTPException(
            status_code=422,
            detail="Please fill in all client details (Name, Number, Concern) before uploading.",
        )

    try:
        audio_bytes = await file.read()
    except Exception:
        raise HTTPException(status_code=400, detail="Failed to read uploaded file.")

    logger.info("Call received from %s: %s (%.2f KB)", user.id, file.filename, len(audio_bytes) / 1024)

    statuses: list[str] = ["Gathering context..."]
    knowledge = repository.get_company_knowledge(store)
    instructions = knowledge.rules if knowledge is not None and isinstance(knowledge.rules, str) else ""
    statuses.append("Uploading and preparing media...")

    try:
        report = await asyncio.to_thread(
            analyze_call,
            audio_bytes,
            file.filename,
            user.name,
            details,
            knowledge,
            instructions,
            statuses.append,
            file.content_type,
        )
    except MediaValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except QuotaExceededError as exc:
        logger.warning("Inference quota exhausted: %s", exc.detail)
        raise HTTPException(status_code=429, detail=str(exc))
    except (AnalysisError, MalformedResponseError) as exc:
        logger.error("Analysis failed: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc))
    except ReportVerificationError as exc:
        logger.error("Report verification failed: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc))
    except Exception as exc:
        logger.error("Analysis unexpected error: %s", exc, exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to analyze media: {exc}")

    report.agentId = user.id
    report.agentName = user.name
    report.deletedByResponder = False
    repository.save_report(store, report)

    return {**build_report_view(report), "status": statuses}


@router.get("")
def list_reports(user: User = Depends(current_user), store: DocumentStore = Depends(get_store)):
    return [report.to_document() for report in repository.list_reports(store, user)]


@router.get("/{report_id}")
def view_report(report_id: str, user: User = Depends(current_user), store: DocumentStore = Depends(get_store)):
    report = repository.get_report(store, report_id)
    if report is None or not repository.can_view_report(user, report):
        raise HTTPException(status_code=404, detail="Report not found.")
    return build_report_view(report)


@router.delete("/{report_id}")
def delete_report(report_id: str, user: User = Depends(current_user), store: DocumentStore = Depends(get_store)):
    if not repository.delete_report(store, user, report_id):
        raise HTTPException(status_code=404, detail="Report not found.")
    return {"ok": True}
