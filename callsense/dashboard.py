"""
callsense/dashboard.py
=======================
Dashboard Aggregations — CallSense

Responsibility:
    - Filter reports by time window (Today / Week / Month / All)
    - Count client sentiment across reports
    - Group reports by agent for a selected client sentiment
    - Per-agent performance stats and the leaderboard chart (admins)

Pure functions over lists of CallAnalysis; nothing here reads the store.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from callsense.models import CallAnalysis
from callsense.scoring.scorer import round_half_up


class TimeFilter(str, Enum):
    TODAY = "Today"
    WEEK = "Week"
    MONTH = "Month"
    ALL = "All"


SENTIMENTS: tuple[str, ...] = ("Positive", "Neutral", "Negative")


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


def filter_by_time(
    reports: list[CallAnalysis],
    time_filter: TimeFilter,
    now: datetime | None = None,
) -> list[CallAnalysis]:
    """
    Keep reports created inside the window.

    ``Today`` starts at local midnight; ``Week`` and ``Month`` are the
    last 7 and 30 days.
    """
    now = (now or datetime.now()).astimezone()

    if time_filter == TimeFilter.TODAY:
        start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    elif time_filter == TimeFilter.WEEK:
        start = now - timedelta(days=7)
    elif time_filter == TimeFilter.MONTH:
        start = now - timedelta(days=30)
    else:
        return list(reports)

    return [report for report in reports if report.createdAt >= start]


def sentiment_counts(reports: list[CallAnalysis]) -> dict[str, int]:
    counts = {"total": len(reports), "positive": 0, "neutral": 0, "negative": 0}
    for report in reports:
        label = report.client_sentiment
        if label in SENTIMENTS:
            counts[label.lower()] += 1
    return counts


def agents_by_sentiment(reports: list[CallAnalysis], sentiment: str | None) -> list[dict[str, Any]]:
    """Agents who had calls with the selected client sentiment, with call counts."""
    if not sentiment:
        return []

    agents: dict[str, dict[str, Any]] = {}
    for report in reports:
        if report.client_sentiment != sentiment:
            continue
        entry = agents.setdefault(
            report.agentId,
            {"id": report.agentId, "name": report.agentName, "count": 0},
        )
        entry["count"] += 1
    return list(agents.values())


# ---------------------------------------------------------------------------
# Agent performance (admin)
# ---------------------------------------------------------------------------


def agent_stats(reports: list[CallAnalysis]) -> list[dict[str, Any]]:
    """
    Per-agent totals sorted by average score, best first.

    Each entry: agentId, agentName, totalCalls, totalScore, averageScore,
    reports.
    """
    stats: dict[str, dict[str, Any]] = {}
    for report in reports:
        key = report.agentId or "unknown"
        entry = stats.setdefault(
            key,
            {
                "agentId": key,
                "agentName": report.agentName or "Unknown Agent",
                "totalCalls": 0,
                "totalScore": 0,
                "reports": [],
            },
        )
        entry["totalCalls"] += 1
        entry["totalScore"] += report.conversionScore
        entry["reports"].append(report)

    for entry in stats.values():
        entry["averageScore"] = round_half_up(entry["totalScore"] / entry["totalCalls"])

    return sorted(stats.values(), key=lambda entry: entry["averageScore"], reverse=True)


def chart_data(stats: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Leaderboard points: agent first name + average score."""
    return [
        {"name": (entry["agentName"].split(" ") or [""])[0], "score": entry["averageScore"]}
        for entry in stats
    ]


def agent_reports(
    stats: list[dict[str, Any]],
    agent_id: str,
    sentiment: str | None = None,
) -> list[CallAnalysis]:
    """Reports of one agent, optionally narrowed to a client sentiment."""
    entry = next((entry for entry in stats if entry["agentId"] == agent_id), None)
    reports = entry["reports"] if entry else []
    if sentiment:
        reports = [report for report in reports if report.client_sentiment == sentiment]
    return reports
