# callsense/__init__.py
# ======================
# CallSense — sales-call auditing service
#
# Packages:
#   - audit    upload validation, transcription, compliance audit, knowledge extraction
#   - scoring  deterministic conversion score + lead strength
#   - live     real-time copilot sessions
#   - store    SQLAlchemy-backed document store and data service
#   - api      FastAPI application
