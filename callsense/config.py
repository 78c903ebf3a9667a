"""
callsense/config.py
====================
Runtime Configuration — CallSense

Responsibility:
    - Read service settings from the environment (.env loaded by main.py)
    - Provide defaults suitable for local development

All values are read once at import time. Tests patch the module
attributes directly when they need different values.
"""

import os

from dotenv import load_dotenv

load_dotenv()


# ---------------------------------------------------------------------------
# Generative-AI endpoint (any OpenAI-compatible chat completions API)
# ---------------------------------------------------------------------------

GENAI_API_KEY: str | None = (
    os.environ.get("GENAI_API_KEY")
    or os.environ.get("GEMINI_API_KEY")
    or os.environ.get("API_KEY")
)

GENAI_BASE_URL: str = os.environ.get(
    "GENAI_BASE_URL",
    "https://generativelanguage.googleapis.com/v1beta/openai/",
)

GENAI_MODEL: str = os.environ.get("GENAI_MODEL", "gemini-2.5-flash")

# Model used to condense the battlecard for live sessions
GENAI_CONTEXT_MODEL: str = os.environ.get("GENAI_CONTEXT_MODEL", "gemini-3-flash-preview")

GENAI_LIVE_MODEL: str = os.environ.get("GENAI_LIVE_MODEL", "gemini-2.5-flash")


# ---------------------------------------------------------------------------
# Document store
# ---------------------------------------------------------------------------

DATABASE_URL: str = os.environ.get("DATABASE_URL", "sqlite:///callsense.db")


# ---------------------------------------------------------------------------
# HTTP layer
# ---------------------------------------------------------------------------

CORS_ORIGINS: list[str] = [
    origin.strip()
    for origin in os.environ.get("CORS_ORIGINS", "*").split(",")
    if origin.strip()
]

# Sessions older than this are rejected; 0 disables expiry
SESSION_TTL_HOURS: int = int(os.environ.get("SESSION_TTL_HOURS", "72"))
