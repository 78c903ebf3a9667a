"""
callsense/audit/pipeline.py
============================
Call Audit Orchestrator — CallSense

Responsibility:
    1. Validate the uploaded recording
    2. Transcribe it (Stage 1, retried on 500)
    3. Audit the transcript against company knowledge (Stage 2)
    4. Verify each stage output
    5. Compute the deterministic conversion score
    6. Assemble the CallAnalysis report with defaults for optional fields

Stage order:
    Stage 0: Media validation      → mime type + duration
    Stage 1: Transcription         → rawTranscript + clientName
    Stage 2: Audit                 → compliance, signals, outcome, feedback
    Score:   Deterministic scorer  → conversionScore

This layer MUST NOT:
    - Let the model decide the conversion score
    - Persist the report (the API layer does, after attaching the agent)
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable

from callsense import genai_client
from callsense.audit.auditor import audit_transcript
from callsense.audit.media import measure_duration, resolve_mime_type, validate_media
from callsense.audit.report_validator import verify_audit, verify_transcription
from callsense.audit.transcriber import transcribe_call
from callsense.genai_client import MalformedResponseError, QuotaExceededError
from callsense.models import (
    CallAnalysis,
    CompanyKnowledge,
    Feedback,
    LeadType,
    RelationshipType,
    TranscriptSegment,
    default_compliance,
    default_metrics,
    default_sentiment,
    new_id,
    utcnow,
)
from callsense.scoring.scorer import compute_conversion_score

logger = logging.getLogger("callsense.audit.pipeline")

StatusCallback = Callable[[str], None]


# =====================================================================
# Exceptions + inputs
# =====================================================================


class AnalysisError(Exception):
    """Raised when a call cannot be analysed; the message is user-facing."""
    pass


@dataclass
class ClientDetails:
    """Details the responder enters before uploading a call."""

    name: str
    phone: str
    concern: str
    lead_type: LeadType = LeadType.NEW_LEAD
    relationship_type: RelationshipType = RelationshipType.LEAD

    def missing_fields(self) -> list[str]:
        return [
            label
            for label, value in (("Name", self.name), ("Number", self.phone), ("Concern", self.concern))
            if not (value or "").strip()
        ]


MISSING_DETAILS_MESSAGE = (
    "Please fill in all client details (Name, Number, Concern) before uploading."
)


def _notify(on_status: StatusCallback | None, message: str) -> None:
    logger.info("Status: %s", message)
    if on_status is not None:
        on_status(message)


# =====================================================================
# Main orchestration
# =====================================================================


def analyze_call(
    audio_bytes: bytes,
    filename: str,
    agent_name: str,
    details: ClientDetails,
    knowledge: CompanyKnowledge | None = None,
    instructions: str = "",
    on_status: StatusCallback | None = None,
    content_type: str | None = None,
    client=None,
) -> CallAnalysis:
    """
    Analyse one call recording end to end.

    Args:
        audio_bytes:  Raw bytes of the uploaded recording.
        filename:     Original filename (for format detection).
        agent_name:   Responder who handled the call.
        details:      Client details entered by the responder.
        knowledge:    Company knowledge base, if one has been uploaded.
        instructions: Admin rules appended to the audit prompt.
        on_status:    Optional callback receiving progress messages.
        content_type: Content type declared by the uploader.
        client:       Optional pre-built API client (shared by both stages).

    Returns:
        CallAnalysis with the deterministic conversion score. ``agentId``
        is empty; the caller attaches the uploading user.

    Raises:
        MediaValidationError:    Unsupported or empty upload.
        QuotaExceededError:      The inference API quota is exhausted.
        AnalysisError:           Stage 1 failed or found no conversation,
                                 or a stage replied with malformed JSON.
        ReportVerificationError: Stage output missing required fields.
    """
    # ==================================================================
    # STAGE 0 — Media validation
    # ==================================================================
    logger.info("=" * 60)
    logger.info("STAGE 0: Media validation")
    logger.info("=" * 60)

    if details.missing_fields():
        raise AnalysisError(MISSING_DETAILS_MESSAGE)

    validate_media(audio_bytes, filename, content_type)
    mime_type = resolve_mime_type(filename, content_type)
    duration = measure_duration(audio_bytes, filename)

    logger.info("Stage 0 complete: %s, %.2f KB, duration=%s.", mime_type, len(audio_bytes) / 1024, duration)

    # ==================================================================
    # STAGE 1 — Transcription
    # ==================================================================
    logger.info("=" * 60)
    logger.info("STAGE 1: Transcription")
    logger.info("=" * 60)

    _notify(on_status, "Detecting speech & behavioral cues...")

    try:
        audio_metadata = transcribe_call(
            genai_client.encode_b64(audio_bytes), mime_type, agent_name, client=client
        )
    except QuotaExceededError:
        raise
    except MalformedResponseError as exc:
        raise AnalysisError(f"Speech analysis failed. {exc}") from exc
    except Exception as exc:
        logger.error("Transcription request failed: %s", exc)
        raise AnalysisError(f"Speech analysis failed. {exc}") from exc

    if not audio_metadata.get("rawTranscript"):
        raise AnalysisError("No conversation detected.")
    verify_transcription(audio_metadata)

    raw_transcript: list[dict[str, Any]] = audio_metadata["rawTranscript"]
    transcript_client_name = audio_metadata.get("clientName")

    logger.info("Stage 1 complete: %d segments.", len(raw_transcript))

    # ==================================================================
    # STAGE 2 — Audit
    # ==================================================================
    logger.info("=" * 60)
    logger.info("STAGE 2: Audit against knowledge base")
    logger.info("=" * 60)

    _notify(on_status, "Auditing against knowledge base...")

    try:
        audit = audit_transcript(
            agent_name,
            transcript_client_name or "Client",
            details.lead_type,
            details.relationship_type,
            raw_transcript,
            knowledge,
            instructions,
            client=client,
        )
    except MalformedResponseError as exc:
        raise AnalysisError(f"Audit failed. {exc}") from exc
    verify_audit(audit)

    logger.info(
        "Stage 2 complete: outcome=%s, buying signals=%s.",
        audit.get("dealOutcome"),
        audit.get("buyingSignals"),
    )

    # ==================================================================
    # SCORE + ASSEMBLY
    # ==================================================================
    buying_signals = audit.get("buyingSignals") or 0
    deal_outcome = audit.get("dealOutcome") or ""

    score = compute_conversion_score(
        audit.get("compliance"),
        buying_signals,
        details.lead_type,
        details.relationship_type,
        deal_outcome,
    )

    report = _assemble_report(
        audit=audit,
        raw_transcript=raw_transcript,
        transcript_client_name=transcript_client_name,
        agent_name=agent_name,
        details=details,
        duration=duration,
        score=score,
    )

    logger.info("Analysis complete: report %s, score=%d.", report.id, report.conversionScore)
    return report


# =====================================================================
# Report assembly
# =====================================================================


def _assemble_report(
    audit: dict[str, Any],
    raw_transcript: list[dict[str, Any]],
    transcript_client_name: str | None,
    agent_name: str,
    details: ClientDetails,
    duration: str,
    score: int,
) -> CallAnalysis:
    """
    Assemble the CallAnalysis from verified stage outputs.

    Only defaults optional values; never re-interprets the audit.
    """
    created_at = utcnow()
    segments = audit.get("transcript") or raw_transcript or []

    return CallAnalysis(
        id=new_id(),
        uploadDate=created_at.date().isoformat(),
        agentId="",
        agentName=agent_name,
        clientName=(
            details.name.strip()
            or audit.get("clientName")
            or transcript_client_name
            or "Client"
        ),
        clientPhone=details.phone,
        clientConcern=details.concern,
        duration=duration,
        conversionScore=score,
        summary=audit.get("summary") or "",
        sentiment=audit.get("sentiment") or default_sentiment(),
        metrics=audit.get("metrics") or default_metrics(),
        compliance=audit.get("compliance") or default_compliance(),
        transcript=[TranscriptSegment.from_dict(seg) for seg in segments if isinstance(seg, dict)],
        feedback=Feedback.from_dict(audit.get("feedback")),
        buyingSignals=int(audit.get("buyingSignals") or 0),
        dealOutcome=audit.get("dealOutcome") or "",
        leadType=details.lead_type.value,
        relationshipType=details.relationship_type.value,
        createdAt=created_at,
    )
