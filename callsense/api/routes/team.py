"""
callsense/api/routes/team.py
=============================
Team management and dashboard endpoints — CallSense API

Responsibility:
    - Admin approval queue: list, verify and reject responders
    - Admin feedback to responders; responders read their own feedback
    - Dashboard metrics (sentiment, agents, leaderboard)
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from callsense import dashboard
from callsense.api.deps import current_user, get_store, require_admin
from callsense.api.schemas import FeedbackRequest
from callsense.models import CallAnalysis, User, UserRole
from callsense.store import repository
from callsense.store.document_store import DocumentNotFound, DocumentStore

logger = logging.getLogger("callsense.api.team")

router = APIRouter(prefix="/api", tags=["team"])


def _summary(report: CallAnalysis) -> dict:
    return {
        "id": report.id,
        "clientName": report.clientName,
        "uploadDate": report.uploadDate,
        "conversionScore": report.conversionScore,
        "clientSentiment": report.client_sentiment,
    }


# ---------------------------------------------------------------------------
# Approval queue
# ---------------------------------------------------------------------------


@router.get("/team/pending")
def pending_users(_: User = Depends(require_admin), store: DocumentStore = Depends(get_store)):
    return [user.to_document() for user in repository.list_unverified_responders(store)]


@router.post("/team/{user_id}/verify")
def verify_user(user_id: str, _: User = Depends(require_admin), store: DocumentStore = Depends(get_store)):
    try:
        repository.verify_user(store, user_id)
    except DocumentNotFound:
        raise HTTPException(status_code=404, detail="User not found.")
    return {"ok": True}


@router.delete("/team/{user_id}")
def reject_user(user_id: str, _: User = Depends(require_admin), store: DocumentStore = Depends(get_store)):
    if not repository.reject_user(store, user_id):
        raise HTTPException(status_code=404, detail="User not found.")
    return {"ok": True}


# ---------------------------------------------------------------------------
# Feedback
# ---------------------------------------------------------------------------


@router.post("/team/{responder_id}/feedback", status_code=201)
def send_feedback(
    responder_id: str,
    body: FeedbackRequest,
    _: User = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    text = body.feedbackText.strip()
    if not text:
        raise HTTPException(status_code=422, detail="Feedback text is required.")
    return repository.save_responder_feedback(store, responder_id, text).to_document()


@router.get("/feedback")
def my_feedback(user: User = Depends(current_user), store: DocumentStore = Depends(get_store)):
    return [item.to_document() for item in repository.list_responder_feedback(store, user.id)]


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


@router.get("/dashboard")
def dashboard_metrics(
    timeFilter: dashboard.TimeFilter = Query(dashboard.TimeFilter.ALL),
    sentiment: str | None = Query(None),
    user: User = Depends(current_user),
    store: DocumentStore = Depends(get_store),
):
    """
    Sentiment counts and agents-by-sentiment over the time window.

    Admins also get per-agent stats and the leaderboard chart, computed
    over all reports.
    """
    reports = repository.list_reports(store, user)
    windowed = dashboard.filter_by_time(reports, timeFilter)

    result = {
        "timeFilter": timeFilter.value,
        "metrics": dashboard.sentiment_counts(windowed),
        "agentsBySentiment": dashboard.agents_by_sentiment(windowed, sentiment),
    }

    if user.role == UserRole.ADMIN:
        stats = dashboard.agent_stats(reports)
        result["agentStats"] = [
            {**{k: v for k, v in entry.items() if k != "reports"}, "reports": [_summary(r) for r in entry["reports"]]}
            for entry in stats
        ]
        result["chart"] = dashboard.chart_data(stats)

    return result


@router.get("/dashboard/agents/{agent_id}/reports")
def agent_reports(
    agent_id: str,
    sentiment: str | None = Query(None),
    user: User = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    stats = dashboard.agent_stats(repository.list_reports(store, user))
    return [report.to_document() for report in dashboard.agent_reports(stats, agent_id, sentiment)]
