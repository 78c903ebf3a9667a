"""
callsense/models.py
====================
Domain Records — CallSense

Responsibility:
    - Define enums for roles, statuses, lead categories and deal outcomes
    - Define the records mirrored to and from the document store
    - Fill defaults for optional fields when a record is read back

Records are plain dataclasses; ``to_document()`` produces the camelCase
JSON body stored in the document store and ``from_document()`` rebuilds
the record, tolerating missing keys.

This module does NOT:
    - Talk to the document store (see callsense.store)
    - Validate model output (see callsense.audit.report_validator)
"""

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    RESPONDER = "RESPONDER"


class UserStatus(str, Enum):
    VERIFIED = "VERIFIED"
    UNVERIFIED = "UNVERIFIED"


class LeadType(str, Enum):
    """Whether the caller already knows the company."""

    NEW_LEAD = "NEW_LEAD"
    OLD_LEAD = "OLD_LEAD"


class RelationshipType(str, Enum):
    LEAD = "LEAD"
    CLIENT = "CLIENT"


class DealOutcome(str, Enum):
    HARD_REJECTION = "HardRejection"
    SOFT_REJECTION = "SoftRejection"
    NEUTRAL = "Neutral"
    STRONG_INTEREST = "StrongInterest"


COMPLIANCE_KEYS: tuple[str, ...] = (
    "dmVerified",
    "needDiscovery",
    "priceAdherence",
    "objectionHandled",
    "hardCloseAttempted",
)

METRIC_KEYS: tuple[str, ...] = (
    "politenessScore",
    "activeListeningScore",
    "productKnowledgeScore",
    "empathyScore",
    "clarityScore",
    "persuasionScore",
)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO string / datetime into an aware datetime (None if unusable)."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            try:
                parsed = datetime.strptime(value, "%m/%d/%Y")
            except ValueError:
                return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@dataclass
class User:
    id: str
    email: str
    name: str
    role: UserRole
    avatar: str = ""
    status: UserStatus = UserStatus.UNVERIFIED

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role.value,
            "avatar": self.avatar,
            "status": self.status.value,
        }

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "User":
        return cls(
            id=data.get("id") or doc_id,
            email=data.get("email", ""),
            name=data.get("name", ""),
            role=UserRole(data.get("role", UserRole.RESPONDER.value)),
            avatar=data.get("avatar", ""),
            status=UserStatus(data.get("status", UserStatus.UNVERIFIED.value)),
        )


# ---------------------------------------------------------------------------
# Call analysis report
# ---------------------------------------------------------------------------


@dataclass
class TranscriptSegment:
    speaker: str
    text: str
    timestamp: str
    sentiment: str | None = None
    review: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TranscriptSegment":
        return cls(
            speaker=data.get("speaker", ""),
            text=data.get("text", ""),
            timestamp=data.get("timestamp", ""),
            sentiment=data.get("sentiment"),
            review=data.get("review"),
        )


@dataclass
class FeedbackItem:
    suggestion: str
    category: str = "Sales Skill"
    priority: str = "Medium"
    timestamp: str | None = None
    issue: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FeedbackItem":
        return cls(
            suggestion=data.get("suggestion", ""),
            category=data.get("category") or "Sales Skill",
            priority=data.get("priority") or "Medium",
            timestamp=data.get("timestamp"),
            issue=data.get("issue"),
        )


@dataclass
class Feedback:
    strengths: list[str] = field(default_factory=list)
    weaknesses: list[str] = field(default_factory=list)
    actionableSteps: list[FeedbackItem] = field(default_factory=list)
    missedOpportunities: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Feedback":
        data = data or {}
        return cls(
            strengths=list(data.get("strengths") or []),
            weaknesses=list(data.get("weaknesses") or []),
            actionableSteps=[
                FeedbackItem.from_dict(item)
                for item in (data.get("actionableSteps") or [])
                if isinstance(item, dict)
            ],
            missedOpportunities=list(data.get("missedOpportunities") or []),
        )


def default_compliance() -> dict[str, bool]:
    return {key: False for key in COMPLIANCE_KEYS}


def default_metrics() -> dict[str, int]:
    return {key: 0 for key in METRIC_KEYS}


def default_sentiment() -> dict[str, str]:
    return {"client": "Neutral", "responder": "Professional"}


@dataclass
class CallAnalysis:
    id: str
    uploadDate: str
    agentId: str
    agentName: str
    duration: str
    conversionScore: int
    summary: str
    clientName: str | None = None
    clientPhone: str = ""
    clientConcern: str = ""
    sentiment: dict[str, str] = field(default_factory=default_sentiment)
    metrics: dict[str, int] = field(default_factory=default_metrics)
    compliance: dict[str, bool] = field(default_factory=default_compliance)
    transcript: list[TranscriptSegment] = field(default_factory=list)
    feedback: Feedback = field(default_factory=Feedback)
    buyingSignals: int = 0
    dealOutcome: str = ""
    leadType: str = LeadType.NEW_LEAD.value
    relationshipType: str = RelationshipType.LEAD.value
    deletedByResponder: bool = False
    createdAt: datetime = field(default_factory=utcnow)

    def to_document(self) -> dict[str, Any]:
        doc = asdict(self)
        doc["createdAt"] = self.createdAt.isoformat()
        return doc

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "CallAnalysis":
        """Rebuild a report, filling defaults for anything the store lacks."""
        compliance_data = data.get("compliance") or {}
        created_at = (
            parse_timestamp(data.get("createdAt"))
            or parse_timestamp(data.get("uploadDate"))
            or EPOCH
        )

        return cls(
            id=doc_id,
            uploadDate=data.get("uploadDate", ""),
            agentId=data.get("agentId") or "",
            agentName=data.get("agentName") or "Unknown Agent",
            clientName=data.get("clientName"),
            clientPhone=data.get("clientPhone") or "",
            clientConcern=data.get("clientConcern") or "",
            duration=data.get("duration") or "",
            conversionScore=int(data.get("conversionScore") or 0),
            summary=data.get("summary") or "",
            sentiment=data.get("sentiment") or default_sentiment(),
            metrics=data.get("metrics") or default_metrics(),
            compliance={
                key: bool(compliance_data.get(key) or False) for key in COMPLIANCE_KEYS
            },
            transcript=[
                TranscriptSegment.from_dict(seg)
                for seg in (data.get("transcript") or [])
                if isinstance(seg, dict)
            ],
            feedback=Feedback.from_dict(data.get("feedback")),
            buyingSignals=int(data.get("buyingSignals") or 0),
            dealOutcome=data.get("dealOutcome") or "",
            leadType=data.get("leadType") or LeadType.NEW_LEAD.value,
            relationshipType=data.get("relationshipType") or RelationshipType.LEAD.value,
            deletedByResponder=bool(data.get("deletedByResponder") or False),
            createdAt=created_at,
        )

    @property
    def client_sentiment(self) -> str | None:
        return (self.sentiment or {}).get("client")


# ---------------------------------------------------------------------------
# Knowledge
# ---------------------------------------------------------------------------


@dataclass
class CompanyKnowledge:
    """Free-form extracted knowledge; ``extra`` keeps every unknown key."""

    id: str
    rules: list[str] | str = field(default_factory=list)
    sops: list[Any] = field(default_factory=list)
    scripts: list[Any] = field(default_factory=list)
    guidelines: list[Any] = field(default_factory=list)
    pricing: dict[str, Any] = field(default_factory=dict)
    objectionHandling: list[Any] = field(default_factory=list)
    updatedAt: str = ""
    fileName: str | None = None
    uploadedAt: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    _KNOWN = (
        "id", "rules", "sops", "scripts", "guidelines", "pricing",
        "objectionHandling", "updatedAt", "fileName", "uploadedAt",
    )

    def to_document(self) -> dict[str, Any]:
        doc = dict(self.extra)
        for key in self._KNOWN:
            value = getattr(self, key)
            if value is not None:
                doc[key] = value
        return doc

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "CompanyKnowledge":
        return cls(
            id=data.get("id") or doc_id,
            rules=data.get("rules") or [],
            sops=data.get("sops") or [],
            scripts=data.get("scripts") or [],
            guidelines=data.get("guidelines") or [],
            pricing=data.get("pricing") or {},
            objectionHandling=data.get("objectionHandling") or [],
            updatedAt=data.get("updatedAt") or "",
            fileName=data.get("fileName"),
            uploadedAt=data.get("uploadedAt"),
            extra={k: v for k, v in data.items() if k not in cls._KNOWN},
        )


@dataclass
class KnowledgeBaseFile:
    id: str
    fileName: str
    url: str  # inline base64 bytes
    uploadedAt: str
    mimeType: str = "application/pdf"

    def to_document(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "KnowledgeBaseFile":
        return cls(
            id=doc_id,
            fileName=data.get("fileName", ""),
            url=data.get("url", ""),
            uploadedAt=data.get("uploadedAt") or utcnow().isoformat(),
            mimeType=data.get("mimeType") or "application/pdf",
        )


@dataclass
class ResponderFeedback:
    id: str
    responderId: str
    feedbackText: str
    createdAt: str

    def to_document(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "ResponderFeedback":
        return cls(
            id=doc_id,
            responderId=data.get("responderId", ""),
            feedbackText=data.get("feedbackText", ""),
            createdAt=data.get("createdAt", ""),
        )
