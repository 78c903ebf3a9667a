"""
callsense/scoring/scorer.py
============================
Deterministic Conversion Scorer — CallSense

Responsibility:
    - Combine boolean compliance checks and a buying-signal count into a
      conversion score (0–100)
    - Drop introduction checks for callers who already know the company
    - Apply penalty multipliers for rejection outcomes

Scoring:
    - Compliance contributes up to 70 points (share of applicable checks passed)
    - Buying signals contribute 6 points each, capped at 5 signals (30 points)
    - The sum is capped at 100
    - HardRejection keeps 15% of the score, SoftRejection keeps 60%

This module does NOT:
    - Call any LLM or external API
    - Decide compliance, buying signals or deal outcome (the audit does)
    - Store data
"""

import logging
import math
from typing import Any, Mapping

from callsense.models import COMPLIANCE_KEYS, DealOutcome, LeadType, RelationshipType

logger = logging.getLogger("callsense.scoring.scorer")


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

COMPLIANCE_CEILING: float = 70.0
BUYING_SIGNAL_POINTS: int = 6
MAX_BUYING_SIGNALS: int = 5

# Checks that only make sense on a first conversation with a prospect
INTRO_CHECKS: frozenset[str] = frozenset({"needDiscovery", "dmVerified"})

OUTCOME_MULTIPLIERS: dict[str, float] = {
    DealOutcome.HARD_REJECTION.value: 0.15,
    DealOutcome.SOFT_REJECTION.value: 0.6,
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def round_half_up(value: float) -> int:
    """Round .5 upwards (Python's round() would round to even)."""
    return int(math.floor(value + 0.5))


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def applicable_checks(
    lead_type: LeadType | str | None,
    relationship_type: RelationshipType | str | None,
) -> list[str]:
    """Compliance keys that count toward the score for this caller."""
    checks = list(COMPLIANCE_KEYS)
    if (
        _enum_value(lead_type) == LeadType.OLD_LEAD.value
        or _enum_value(relationship_type) == RelationshipType.CLIENT.value
    ):
        checks = [key for key in checks if key not in INTRO_CHECKS]
    return checks


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def compute_conversion_score(
    compliance: Mapping[str, Any] | None,
    buying_signals: int | None,
    lead_type: LeadType | str | None,
    relationship_type: RelationshipType | str | None,
    deal_outcome: DealOutcome | str | None,
) -> int:
    """
    Compute the deterministic conversion score of an audited call.

    Args:
        compliance:        Compliance check results; a check passes only
                           when its value is exactly ``True``.
        buying_signals:    Count of buying signals raised by the client.
        lead_type:         NEW_LEAD or OLD_LEAD.
        relationship_type: LEAD or CLIENT.
        deal_outcome:      HardRejection, SoftRejection, Neutral or
                           StrongInterest (anything else is unpenalised).

    Returns:
        Integer score in [0, 100].
    """
    checks = applicable_checks(lead_type, relationship_type)
    compliance = compliance or {}

    passed = sum(1 for key in checks if compliance.get(key) is True)
    percentage = passed / len(checks) * COMPLIANCE_CEILING

    signals = max(int(buying_signals or 0), 0)
    buying_boost = min(signals, MAX_BUYING_SIGNALS) * BUYING_SIGNAL_POINTS

    score: float = min(100, round_half_up(percentage + buying_boost))

    multiplier = OUTCOME_MULTIPLIERS.get(_enum_value(deal_outcome))
    if multiplier is not None:
        score *= multiplier

    final_score = round_half_up(score)

    logger.info(
        "Conversion score: %d (passed=%d/%d, signals=%d, outcome=%s)",
        final_score,
        passed,
        len(checks),
        signals,
        _enum_value(deal_outcome) or "none",
    )
    return final_score
