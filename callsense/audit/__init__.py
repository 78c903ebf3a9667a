# callsense/audit/__init__.py
# ============================
# Call Audit — CallSense
#
# Responsibility:
#   - Validate uploaded recordings
#   - Transcribe calls and audit them against company knowledge
#   - Extract company knowledge from PDFs
#
# Public API:
#   - analyze_call()             — full audit of one recording
#   - convert_pdf_to_knowledge() — PDF → knowledge base JSON

from callsense.audit.pipeline import AnalysisError, ClientDetails, analyze_call  # noqa: F401
from callsense.audit.knowledge import convert_pdf_to_knowledge  # noqa: F401
