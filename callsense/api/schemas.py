"""
callsense/api/schemas.py
=========================
Request bodies for the CallSense API (pydantic).
"""

from typing import Any

from pydantic import BaseModel, Field

from callsense.models import UserRole


class SignUpRequest(BaseModel):
    email: str
    password: str
    fullName: str = ""
    role: UserRole


class SignInRequest(BaseModel):
    email: str
    password: str
    role: UserRole


class RulesRequest(BaseModel):
    rules: str = ""


class FeedbackRequest(BaseModel):
    feedbackText: str = Field(..., min_length=1)


class MentorRequest(BaseModel):
    question: str = Field(..., min_length=1)


class LiveStartRequest(BaseModel):
    sampleRate: int = Field(16000, gt=0)
    useKnowledgeBase: bool = True


class LiveAudioRequest(BaseModel):
    """Either float samples in [-1, 1] or base64 little-endian int16 PCM."""

    samples: list[float] | None = None
    pcm: str | None = None


class GenerateRequest(BaseModel):
    model: str | None = None
    contents: Any = None
    config: dict[str, Any] | None = None
