"""
callsense/report_view.py
=========================
Report View Model — CallSense

Shapes one CallAnalysis for the report viewer: the four score gauges,
the compliance checklist with display labels, and the lead strength.
"""

from typing import Any

from callsense.models import CallAnalysis
from callsense.scoring import calculate_lead_strength

GOOD_COLOR = "#20b384"
FAIR_COLOR = "#F59E0B"
POOR_COLOR = "#E11D48"

# (metric key, gauge label)
GAUGES: tuple[tuple[str, str], ...] = (
    ("productKnowledgeScore", "Plan Accuracy"),
    ("persuasionScore", "Conviction"),
    ("activeListeningScore", "Discovery"),
    ("empathyScore", "EQ Rating"),
)

# (compliance key, label, description)
COMPLIANCE_ROWS: tuple[tuple[str, str, str], ...] = (
    ("dmVerified", "DM Verified", "Decision maker confirmed"),
    ("needDiscovery", "Pain Discovery", "Customer pain identified"),
    ("priceAdherence", "Accurate Pricing", "Pricing followed company policy"),
    ("objectionHandled", "Objection Nullified", "Objections handled clearly"),
    ("hardCloseAttempted", "Hard Close Logged", "Clear deal closing attempt made"),
)


def gauge_color(score: float) -> str:
    if score > 80:
        return GOOD_COLOR
    if score > 50:
        return FAIR_COLOR
    return POOR_COLOR


def build_report_view(report: CallAnalysis) -> dict[str, Any]:
    """Return the report document plus the derived view fields."""
    metrics = report.metrics or {}
    gauges = []
    for key, label in GAUGES:
        score = metrics.get(key) or 0
        gauges.append({"label": label, "score": score, "color": gauge_color(score)})

    checklist = [
        {
            "key": key,
            "label": label,
            "description": description,
            "passed": bool(report.compliance.get(key)),
        }
        for key, label, description in COMPLIANCE_ROWS
    ]

    return {
        "report": report.to_document(),
        "gauges": gauges,
        "compliance": checklist,
        "leadStrength": calculate_lead_strength(report),
    }
