"""
callsense/scoring/lead_strength.py
===================================
Lead Strength — CallSense

Weighted lead strength used to prioritise follow-ups. Combines the
audit's coaching metrics with whether objections were handled.
"""

from typing import Any

from callsense.models import CallAnalysis

WEIGHTS: dict[str, float] = {
    "productKnowledgeScore": 0.3,
    "persuasionScore": 0.3,
    "activeListeningScore": 0.2,
    "clarityScore": 0.1,
}
OBJECTION_WEIGHT: float = 0.1

HOT_THRESHOLD: int = 75
WARM_THRESHOLD: int = 45

LABEL_COLORS: dict[str, str] = {
    "Hot": "#20b384",
    "Warm": "#F59E0B",
    "Cold": "#E11D48",
}


def calculate_lead_strength(analysis: CallAnalysis) -> dict[str, Any]:
    """Return ``{"score", "label", "color"}`` for a report."""
    metrics = analysis.metrics or {}
    weighted = sum((metrics.get(key) or 0) * weight for key, weight in WEIGHTS.items())
    if analysis.compliance.get("objectionHandled"):
        weighted += 100 * OBJECTION_WEIGHT

    score = int(weighted + 0.5)

    if score >= HOT_THRESHOLD:
        label = "Hot"
    elif score >= WARM_THRESHOLD:
        label = "Warm"
    else:
        label = "Cold"

    return {"score": score, "label": label, "color": LABEL_COLORS[label]}
