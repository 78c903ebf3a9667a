# callsense/scoring/__init__.py
# ==============================
# Scoring — CallSense
#
# Responsibility:
#   - Deterministic conversion score from compliance + buying signals
#   - Lead strength label for follow-up prioritisation
#
# Public API:
#   - compute_conversion_score()
#   - calculate_lead_strength()

from callsense.scoring.scorer import compute_conversion_score  # noqa: F401
from callsense.scoring.lead_strength import calculate_lead_strength  # noqa: F401
