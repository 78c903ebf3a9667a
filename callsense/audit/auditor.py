"""
callsense/audit/auditor.py
===========================
Compliance Audit — CallSense Audit Stage 2

Responsibility:
    - Build the auditor prompt from the transcript, the lead context, the
      company knowledge and the admin rules
    - Request a structured audit: compliance booleans, buying-signal count,
      deal outcome, sentiment, coaching metrics, annotated transcript and
      feedback

The model only judges; the conversion score is computed deterministically
afterwards (see callsense.scoring).

This module does NOT:
    - Compute the conversion score
    - Transcribe audio
    - Store data
"""

import json
import logging
from typing import Any

from callsense import genai_client
from callsense.models import CompanyKnowledge, LeadType, RelationshipType

logger = logging.getLogger("callsense.audit.auditor")


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

_AUDIT_PROMPT_TEMPLATE: str = """
ROLE: CRITICAL SALES AUDITOR.
Auditing {agent_name} (Responder) performance with client {client_name}.

CONTEXT:
- Lead Type: {lead_type} (NEW_LEAD: No prior company knowledge. OLD_LEAD: Prior interaction, aware of services.)
- Relationship Type: {relationship_type} (LEAD: Potential client. CLIENT: Existing customer.)

INSTRUCTIONS:
1. Evaluate strict objective compliance (TRUE/FALSE):
  - dmVerified: Spoke to the decision maker.
  - needDiscovery: Performed discovery of needs/pain points.
  - priceAdherence: Clearly discussed pricing based on knowledge base.
  - objectionHandled: Addressed client pushbacks/objections effectively.
  - hardCloseAttempted: Made a clear attempt to close the deal/appointment.

2. Extract count of BUYING SIGNALS (price breakdown, payment method, start date, guarantee, enrollment process asked by client).

3. Determine dealOutcome (HardRejection, SoftRejection, Neutral, StrongInterest).

TRANSCRIPT:
{transcript}

COMPANY KNOWLEDGE (JSON):
{knowledge}

{admin_rules}

Return a detailed report following the strict response schema.
"""

_NO_KNOWLEDGE = "No specific SOP provided."


# ---------------------------------------------------------------------------
# Response schema
# ---------------------------------------------------------------------------

_SCORE = {"type": "integer"}

AUDIT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "clientName": {"type": "string"},
        "buyingSignals": {
            "type": "integer",
            "description": "Count of client buying signals observed",
        },
        "dealOutcome": {
            "type": "string",
            "description": "One of: HardRejection, SoftRejection, Neutral, StrongInterest",
        },
        "summary": {
            "type": "string",
            "description": "Blunt, expert assessment of call quality",
        },
        "sentiment": {
            "type": "object",
            "properties": {
                "client": {
                    "type": "string",
                    "description": (
                        "Positive: Receptive, appreciative, or ready to proceed. "
                        "Neutral: Seeking information, clarifying details, or showing no clear bias. "
                        "Negative: Declining service, expressing price objections "
                        "(e.g., 'too expensive' or 'out of budget'), or showing skepticism."
                    ),
                },
                "responder": {
                    "type": "string",
                    "description": "Professional, Passive, or Aggressive",
                },
            },
            "required": ["client", "responder"],
        },
        "metrics": {
            "type": "object",
            "properties": {
                "activeListeningScore": dict(_SCORE, description="Score int(0-100): how well agent identified client pain points and goals"),
                "productKnowledgeScore": dict(_SCORE, description="Score int(0-100): accuracy of plan, therapy, and pricing explanation"),
                "empathyScore": dict(_SCORE, description="Score int(0-100): rapport building and emotional understanding"),
                "persuasionScore": dict(_SCORE, description="Score int(0-100): agent confidence and strength in justifying value"),
                "politenessScore": dict(_SCORE, description="Score int(0-100): courtesy and professional etiquette"),
                "clarityScore": dict(_SCORE, description="Score int(0-100): communication clarity and lack of jargon"),
            },
            "required": [
                "activeListeningScore",
                "productKnowledgeScore",
                "empathyScore",
                "persuasionScore",
            ],
        },
        "compliance": {
            "type": "object",
            "properties": {
                "dmVerified": {"type": "boolean"},
                "needDiscovery": {"type": "boolean"},
                "priceAdherence": {"type": "boolean"},
                "objectionHandled": {"type": "boolean"},
                "hardCloseAttempted": {"type": "boolean"},
            },
            "required": [
                "dmVerified",
                "needDiscovery",
                "priceAdherence",
                "objectionHandled",
                "hardCloseAttempted",
            ],
        },
        "transcript": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "speaker": {"type": "string"},
                    "text": {"type": "string", "description": "reproduce the full dialogue text"},
                    "timestamp": {"type": "string"},
                    "sentiment": {"type": "string", "description": "only one word sentiment"},
                    "review": {"type": "string"},
                },
                "required": ["speaker", "text", "timestamp", "sentiment", "review"],
            },
        },
        "feedback": {
            "type": "object",
            "properties": {
                "strengths": {"type": "array", "items": {"type": "string"}},
                "weaknesses": {"type": "array", "items": {"type": "string"}},
                "missedOpportunities": {"type": "array", "items": {"type": "string"}},
                "actionableSteps": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "timestamp": {"type": "string"},
                            "issue": {"type": "string"},
                            "suggestion": {"type": "string"},
                            "category": {"type": "string"},
                            "priority": {"type": "string"},
                        },
                    },
                },
            },
            "required": ["strengths", "weaknesses", "actionableSteps"],
        },
    },
    "required": [
        "buyingSignals",
        "dealOutcome",
        "summary",
        "sentiment",
        "metrics",
        "compliance",
        "feedback",
    ],
}


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def build_audit_prompt(
    agent_name: str,
    client_name: str,
    lead_type: LeadType,
    relationship_type: RelationshipType,
    raw_transcript: list[dict[str, Any]],
    knowledge: CompanyKnowledge | None = None,
    instructions: str = "",
) -> str:
    """Render the auditor prompt."""
    knowledge_json = (
        json.dumps(knowledge.to_document(), ensure_ascii=False, default=str)
        if knowledge is not None
        else _NO_KNOWLEDGE
    )
    return _AUDIT_PROMPT_TEMPLATE.format(
        agent_name=agent_name,
        client_name=client_name or "Client",
        lead_type=lead_type.value,
        relationship_type=relationship_type.value,
        transcript=json.dumps(raw_transcript, ensure_ascii=False),
        knowledge=knowledge_json,
        admin_rules=f"ADMIN RULES: {instructions}" if instructions else "",
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def audit_transcript(
    agent_name: str,
    client_name: str,
    lead_type: LeadType,
    relationship_type: RelationshipType,
    raw_transcript: list[dict[str, Any]],
    knowledge: CompanyKnowledge | None = None,
    instructions: str = "",
    client=None,
) -> dict[str, Any]:
    """
    Audit a transcribed call against the company knowledge.

    Returns:
        Parsed audit JSON (unvalidated; see report_validator.verify_audit).

    Raises:
        QuotaExceededError:     On quota rejection.
        MalformedResponseError: If the reply is not JSON.
        openai.OpenAIError:     On other API failures.
    """
    prompt = build_audit_prompt(
        agent_name,
        client_name,
        lead_type,
        relationship_type,
        raw_transcript,
        knowledge,
        instructions,
    )

    logger.info(
        "Requesting audit for %d transcript segment(s) (lead=%s, relationship=%s).",
        len(raw_transcript),
        lead_type.value,
        relationship_type.value,
    )

    raw = genai_client.generate(
        [genai_client.text_part(prompt)],
        client=client,
        temperature=0.1,
        response_schema=AUDIT_SCHEMA,
        schema_name="call_audit",
    )
    return genai_client.parse_json_response(raw)
