"""
callsense/store/repository.py
==============================
Data Service — CallSense

Responsibility:
    - Read and write domain records (users, reports, knowledge, files,
      responder feedback) through the DocumentStore
    - Apply the role rules for report visibility and deletion

Collections:
    users               User profiles
    callReports         CallAnalysis reports
    settings            "companyKnowledge" document (knowledge + admin rules)
    knowledgeBaseFiles  Uploaded PDFs (inline base64)
    responderFeedback   Admin feedback addressed to one responder

This module does NOT:
    - Authenticate (see callsense.auth)
    - Call the inference API
"""

import logging

from callsense.models import (
    CallAnalysis,
    CompanyKnowledge,
    KnowledgeBaseFile,
    ResponderFeedback,
    User,
    UserRole,
    UserStatus,
    utcnow,
)
from callsense.store.document_store import DocumentStore

logger = logging.getLogger("callsense.store.repository")

USERS = "users"
REPORTS = "callReports"
SETTINGS = "settings"
KNOWLEDGE_FILES = "knowledgeBaseFiles"
RESPONDER_FEEDBACK = "responderFeedback"

KNOWLEDGE_DOC_ID = "companyKnowledge"


# ---------------------------------------------------------------------------
# Company knowledge + admin rules
# ---------------------------------------------------------------------------


def save_company_knowledge(
    store: DocumentStore,
    knowledge: CompanyKnowledge,
    file_name: str | None = None,
) -> None:
    """
    Merge extracted knowledge into the settings document.

    Rules found in the PDF replace the stored rules; when the PDF has
    none, the admin rules already stored are kept.
    """
    now = utcnow().isoformat()
    body = knowledge.to_document()
    if not body.get("rules"):
        body.pop("rules", None)
    body.update(
        fileName=file_name or knowledge.fileName or "Unknown",
        uploadedAt=now,
        updatedAt=now,
    )
    store.set(SETTINGS, KNOWLEDGE_DOC_ID, body, merge=True)
    logger.info("Company knowledge saved from %s.", body["fileName"])


def get_company_knowledge(store: DocumentStore) -> CompanyKnowledge | None:
    data = store.get(SETTINGS, KNOWLEDGE_DOC_ID)
    if data is None:
        return None
    return CompanyKnowledge.from_document(KNOWLEDGE_DOC_ID, data)


def save_admin_rules(store: DocumentStore, rules: str) -> None:
    store.set(
        SETTINGS,
        KNOWLEDGE_DOC_ID,
        {"rules": rules, "updatedAt": utcnow().isoformat()},
        merge=True,
    )


def get_admin_rules(store: DocumentStore) -> str:
    """Admin rules as text; a stored list is joined line by line."""
    data = store.get(SETTINGS, KNOWLEDGE_DOC_ID)
    if data is None:
        return ""
    rules = data.get("rules")
    if isinstance(rules, str):
        return rules
    if isinstance(rules, list):
        return "\n".join(str(rule) for rule in rules)
    return ""


# ---------------------------------------------------------------------------
# Knowledge base files
# ---------------------------------------------------------------------------


def list_knowledge_base_files(store: DocumentStore) -> list[KnowledgeBaseFile]:
    """Uploaded files, newest first."""
    docs = store.query(KNOWLEDGE_FILES, order_by="uploadedAt", descending=True)
    return [KnowledgeBaseFile.from_document(doc_id, data) for doc_id, data in docs]


def add_knowledge_base_file(
    store: DocumentStore,
    file_name: str,
    data_b64: str,
    mime_type: str = "application/pdf",
) -> KnowledgeBaseFile:
    kb_file = KnowledgeBaseFile(
        id=store.new_id(),
        fileName=file_name,
        url=data_b64,
        uploadedAt=utcnow().isoformat(),
        mimeType=mime_type,
    )
    store.set(KNOWLEDGE_FILES, kb_file.id, kb_file.to_document())
    logger.info("Knowledge base file %s stored as %s.", file_name, kb_file.id)
    return kb_file


def remove_knowledge_base_file(store: DocumentStore, file_id: str) -> bool:
    return store.delete(KNOWLEDGE_FILES, file_id)


# ---------------------------------------------------------------------------
# Responder feedback
# ---------------------------------------------------------------------------


def save_responder_feedback(store: DocumentStore, responder_id: str, feedback_text: str) -> ResponderFeedback:
    feedback = ResponderFeedback(
        id=store.new_id(),
        responderId=responder_id,
        feedbackText=feedback_text,
        createdAt=utcnow().isoformat(),
    )
    store.set(RESPONDER_FEEDBACK, feedback.id, feedback.to_document())
    return feedback


def list_responder_feedback(store: DocumentStore, responder_id: str) -> list[ResponderFeedback]:
    """Feedback addressed to one responder, newest first."""
    docs = store.query(
        RESPONDER_FEEDBACK,
        where={"responderId": responder_id},
        order_by="createdAt",
        descending=True,
    )
    return [ResponderFeedback.from_document(doc_id, data) for doc_id, data in docs]


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def save_user(store: DocumentStore, user: User) -> None:
    store.set(USERS, user.id, user.to_document())


def get_user(store: DocumentStore, user_id: str) -> User | None:
    data = store.get(USERS, user_id)
    return User.from_document(user_id, data) if data is not None else None


def list_users(store: DocumentStore, role: UserRole | None = None) -> list[User]:
    where = {"role": role.value} if role is not None else None
    return [User.from_document(doc_id, data) for doc_id, data in store.query(USERS, where=where)]


def list_unverified_responders(store: DocumentStore) -> list[User]:
    docs = store.query(
        USERS,
        where={"status": UserStatus.UNVERIFIED.value, "role": UserRole.RESPONDER.value},
    )
    return [User.from_document(doc_id, data) for doc_id, data in docs]


def verify_user(store: DocumentStore, user_id: str) -> None:
    """Mark a user VERIFIED. Raises DocumentNotFound for unknown users."""
    store.update(USERS, user_id, {"status": UserStatus.VERIFIED.value})
    logger.info("User %s verified.", user_id)


def reject_user(store: DocumentStore, user_id: str) -> bool:
    """Delete the user's profile; their credentials are left in place."""
    removed = store.delete(USERS, user_id)
    logger.info("User %s rejected (profile removed=%s).", user_id, removed)
    return removed


# ---------------------------------------------------------------------------
# Call reports
# ---------------------------------------------------------------------------


def save_report(store: DocumentStore, report: CallAnalysis) -> None:
    body = report.to_document()
    body["updatedAt"] = utcnow().isoformat()
    store.set(REPORTS, report.id, body)
    logger.info("Report %s saved for agent %s.", report.id, report.agentId)


def get_report(store: DocumentStore, report_id: str) -> CallAnalysis | None:
    data = store.get(REPORTS, report_id)
    return CallAnalysis.from_document(report_id, data) if data is not None else None


def list_reports(store: DocumentStore, user: User) -> list[CallAnalysis]:
    """
    Reports visible to ``user``, newest first.

    Responders see only their own reports that they have not removed;
    admins see every report.
    """
    where = {"agentId": user.id} if user.role == UserRole.RESPONDER else None
    reports = [CallAnalysis.from_document(doc_id, data) for doc_id, data in store.query(REPORTS, where=where)]

    if user.role == UserRole.RESPONDER:
        reports = [report for report in reports if not report.deletedByResponder]

    reports.sort(key=lambda report: report.createdAt, reverse=True)
    return reports


def can_view_report(user: User, report: CallAnalysis) -> bool:
    if user.role == UserRole.ADMIN:
        return True
    return report.agentId == user.id and not report.deletedByResponder


def delete_report(store: DocumentStore, user: User, report_id: str) -> bool:
    """
    Remove a report for ``user``.

    Responders hide their own report (it stays visible to admins);
    admins delete it permanently. Returns False when the report is
    missing or not visible to the user.
    """
    report = get_report(store, report_id)
    if report is None or not can_view_report(user, report):
        return False

    if user.role == UserRole.RESPONDER:
        store.update(
            REPORTS,
            report_id,
            {"deletedByResponder": True, "updatedAt": utcnow().isoformat()},
        )
        logger.info("Report %s hidden by responder %s.", report_id, user.id)
        return True

    store.delete(REPORTS, report_id)
    logger.info("Report %s deleted by admin %s.", report_id, user.id)
    return True
