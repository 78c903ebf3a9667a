"""
callsense/audit/report_validator.py
====================================
Model Output Validator — CallSense

Responsibility:
    - Validate the JSON returned by each audit stage
    - FAIL FAST with a clear message when a required field is missing or
      has the wrong shape
    - NO auto-correction; optional fields are defaulted later by the
      pipeline, required ones are never invented

This module does NOT:
    - Call any LLM or external API
    - Modify stage outputs
"""

import logging
from typing import Any

from callsense.models import COMPLIANCE_KEYS

logger = logging.getLogger("callsense.audit.report_validator")


# =====================================================================
# Exception
# =====================================================================


class ReportVerificationError(Exception):
    """Raised when a stage output fails verification."""

    def __init__(self, stage: str, message: str):
        self.stage = stage
        self.message = message
        super().__init__(f"{stage} response is incomplete: {message}")


# =====================================================================
# Stage 1 — transcription
# =====================================================================


def verify_transcription(data: dict[str, Any]) -> None:
    """
    Verify the transcription stage output.

    Checks:
        - rawTranscript is a list of dicts
        - Each segment carries speaker, timestamp and text

    An absent transcript is handled by the pipeline ("No conversation
    detected.") and is not checked here.
    """
    segments = data.get("rawTranscript")
    if not isinstance(segments, list):
        raise ReportVerificationError(
            "Transcription", f"rawTranscript must be a list, got {type(segments).__name__}"
        )

    for i, seg in enumerate(segments):
        if not isinstance(seg, dict):
            raise ReportVerificationError("Transcription", f"Segment {i} is not an object")
        for key in ("speaker", "timestamp", "text"):
            if key not in seg:
                raise ReportVerificationError(
                    "Transcription", f"Segment {i} missing required key '{key}'"
                )

    logger.info("Transcription verification passed: %d segments.", len(segments))


# =====================================================================
# Stage 2 — audit
# =====================================================================

_REQUIRED_AUDIT_KEYS: tuple[str, ...] = (
    "buyingSignals",
    "dealOutcome",
    "summary",
    "sentiment",
    "metrics",
    "compliance",
    "feedback",
)

_REQUIRED_METRICS: tuple[str, ...] = (
    "activeListeningScore",
    "productKnowledgeScore",
    "empathyScore",
    "persuasionScore",
)


def verify_audit(data: dict[str, Any]) -> None:
    """
    Verify the audit stage output.

    Checks:
        - All required top-level keys are present
        - buyingSignals is a non-negative integer
        - sentiment carries client and responder labels
        - metrics carry the required scores, each within 0–100
        - compliance carries every check as a boolean
        - feedback carries strengths, weaknesses and actionableSteps lists
    """
    missing = [key for key in _REQUIRED_AUDIT_KEYS if key not in data]
    if missing:
        raise ReportVerificationError("Audit", f"missing fields: {', '.join(missing)}")

    signals = data["buyingSignals"]
    if isinstance(signals, bool) or not isinstance(signals, int) or signals < 0:
        raise ReportVerificationError("Audit", f"buyingSignals must be a non-negative int, got {signals!r}")

    sentiment = data["sentiment"]
    if not isinstance(sentiment, dict) or not {"client", "responder"} <= sentiment.keys():
        raise ReportVerificationError("Audit", "sentiment must include client and responder")

    metrics = data["metrics"]
    if not isinstance(metrics, dict):
        raise ReportVerificationError("Audit", "metrics must be an object")
    for key in _REQUIRED_METRICS:
        if key not in metrics:
            raise ReportVerificationError("Audit", f"metrics missing '{key}'")
    for key, value in metrics.items():
        if not isinstance(value, (int, float)) or not 0 <= value <= 100:
            raise ReportVerificationError("Audit", f"metric '{key}' out of range: {value!r}")

    compliance = data["compliance"]
    if not isinstance(compliance, dict):
        raise ReportVerificationError("Audit", "compliance must be an object")
    for key in COMPLIANCE_KEYS:
        if not isinstance(compliance.get(key), bool):
            raise ReportVerificationError("Audit", f"compliance '{key}' must be a boolean")

    feedback = data["feedback"]
    if not isinstance(feedback, dict):
        raise ReportVerificationError("Audit", "feedback must be an object")
    for key in ("strengths", "weaknesses", "actionableSteps"):
        if not isinstance(feedback.get(key), list):
            raise ReportVerificationError("Audit", f"feedback '{key}' must be a list")

    logger.info("Audit verification passed.")
