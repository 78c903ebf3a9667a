"""
callsense/audit/knowledge.py
=============================
Knowledge Extraction — CallSense

Responsibility:
    - Convert an uploaded company PDF into a hierarchical JSON knowledge
      base used by the auditor
    - Default the standard sections the auditor relies on

This module does NOT:
    - Persist the knowledge (see callsense.store.repository)
    - Audit calls
"""

import logging

from callsense import genai_client
from callsense.models import CompanyKnowledge, new_id, utcnow

logger = logging.getLogger("callsense.audit.knowledge")


_EXTRACTION_PROMPT: str = """Extract all company knowledge from this PDF (company overview, programs, therapies, products, plans, pricing, rules, SOPs, guidelines, FAQs, objections, compliance).
Convert everything into well-structured, hierarchical JSON.
Rules:
Capture every detail present.
Preserve section structure.
Infer clear JSON keys (no fixed schema).
Use nested objects/arrays.
Do not summarize or invent content.
Output:
Valid JSON only
Task:
Create a complete JSON knowledge base for automated sales call comparison.
"""


def convert_pdf_to_knowledge(
    pdf_bytes: bytes,
    filename: str = "document.pdf",
    client=None,
) -> CompanyKnowledge:
    """
    Extract a JSON knowledge base from a PDF.

    Args:
        pdf_bytes: Raw PDF bytes.
        filename:  Original file name, recorded on the knowledge document.
        client:    Optional pre-built API client.

    Returns:
        CompanyKnowledge with a fresh id and ``updatedAt`` timestamp.

    Raises:
        QuotaExceededError:     On quota rejection.
        MalformedResponseError: If the reply is not a JSON object.
    """
    parts = [
        genai_client.pdf_part(genai_client.encode_b64(pdf_bytes), filename),
        genai_client.text_part(_EXTRACTION_PROMPT),
    ]

    logger.info("Extracting knowledge from %s (%.1f KB).", filename, len(pdf_bytes) / 1024)

    raw = genai_client.generate(parts, client=client, json_output=True)
    data = genai_client.parse_json_response(raw)

    data.pop("id", None)
    knowledge = CompanyKnowledge.from_document(new_id(), data)
    knowledge.updatedAt = utcnow().isoformat()
    knowledge.fileName = filename

    logger.info(
        "Knowledge extracted: %d top-level section(s).",
        len(knowledge.to_document()),
    )
    return knowledge
