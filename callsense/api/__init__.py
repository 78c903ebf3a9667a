# callsense/api/__init__.py
# ==========================
# HTTP API Layer — CallSense
#
# Responsibility:
#   - FastAPI app, request dependencies and routers
#   - Map domain exceptions to HTTP status codes
