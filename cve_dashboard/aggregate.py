"""Dashboard statistics over enriched articles."""

import math
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional

from .models import (
    Article,
    CVEScore,
    DashboardSnapshot,
    Severity,
    SeverityHistogram,
    ThreatItem,
    ThreatSummary,
    TrendPoint,
)
from .scoring import (
    THREAT_CATEGORIES,
    categorize_threat,
    highest_severity,
    reconcile_article,
    severity_from_score,
)

RECENT_WINDOW = timedelta(days=7)
TREND_DAYS = 7

# Heuristic weights and x10 scaling, not a calibrated scoring model.
THREAT_LEVEL_WEIGHTS = {
    Severity.CRITICAL: 25,
    Severity.HIGH: 15,
    Severity.MEDIUM: 10,
    Severity.LOW: 5,
}


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=timezone.utc)


def to_threat_item(article: Article) -> ThreatItem:
    result = reconcile_article(article)
    return ThreatItem(
        id=article.cves[0].id if article.cves else article.title,
        title=article.title,
        description=article.description or "",
        source=article.source or "Unknown Source",
        published_at=article.published_at,
        overall_severity=result.severity,
        score_to_report=result.score,
        severity_elevated=result.elevated,
        cves=tuple(
            CVEScore(id=cve.id, cvss_score=cve.cvss_score, severity=severity_from_score(cve.cvss_score))
            for cve in article.cves
        ),
    )


def severity_histogram(articles: List[Article]) -> SeverityHistogram:
    """Bucket every raw CVE score; a score of 0 counts as absent."""
    counts = Counter(
        severity_from_score(cve.cvss_score)
        for article in articles
        for cve in article.cves
        if cve.cvss_score > 0
    )
    return SeverityHistogram(
        critical=counts[Severity.CRITICAL],
        high=counts[Severity.HIGH],
        medium=counts[Severity.MEDIUM],
        low=counts[Severity.LOW],
    )


def threat_level_score(counts: Dict[Severity, int], total: int) -> float:
    weighted = sum(THREAT_LEVEL_WEIGHTS[severity] * counts.get(severity, 0) for severity in THREAT_LEVEL_WEIGHTS)
    return min(100.0, max(0.0, weighted / max(1, total) * 10))


def threat_trends(articles: List[Article], now: datetime) -> List[TrendPoint]:
    """Per-category counts for today and the six days before it, oldest first."""
    tz = now.tzinfo
    today = now.date()
    by_day: Dict[date, Counter] = {}
    for article in articles:
        day = _aware(article.published_at).astimezone(tz).date()
        by_day.setdefault(day, Counter())[categorize_threat(article.title, article.description)] += 1

    points = []
    for offset in range(TREND_DAYS - 1, -1, -1):
        day = today - timedelta(days=offset)
        counts = by_day.get(day, Counter())
        points.append(
            TrendPoint(
                name=f"{day:%b} {day.day}",
                counts=tuple((category, counts[category]) for category in THREAT_CATEGORIES),
            )
        )
    return points


def threat_distribution(articles: List[Article]) -> List[tuple]:
    counts = Counter(categorize_threat(article.title, article.description) for article in articles)
    return list(counts.items())


def build_snapshot(articles: List[Article], now: datetime) -> DashboardSnapshot:
    """
    Aggregate enriched articles into a dashboard snapshot.

    Deterministic for a given article list and ``now``.
    """
    now = _aware(now)
    items = [to_threat_item(article) for article in articles]
    severity_counts = Counter(item.overall_severity for item in items)
    cutoff = now - RECENT_WINDOW

    return DashboardSnapshot(
        total_threats=len(items),
        recent_threats=sum(1 for item in items if _aware(item.published_at) > cutoff),
        mitigated_threats=sum(
            1 for article in articles if any(cve.mitigation for cve in article.cves)
        ),
        critical_threats=severity_counts[Severity.CRITICAL],
        cves_monitored=sum(len(article.cves) for article in articles),
        threat_level=threat_level_score(severity_counts, len(items)),
        threat_trends=tuple(threat_trends(articles, now)),
        threat_distribution=tuple(threat_distribution(articles)),
        threats=tuple(items),
        cve_severity=severity_histogram(articles),
        last_updated=now,
    )


def build_threat_summary(articles: List[Article]) -> ThreatSummary:
    """Headline numbers over CVE-only severities."""
    severities = [cve.severity for article in articles for cve in article.cves]
    counts = Counter(severities)
    return ThreatSummary(
        active_threats=len(articles),
        cves_monitored=len({cve.id for article in articles for cve in article.cves}),
        mitigations_applied=sum(1 for article in articles for cve in article.cves if cve.mitigation),
        threat_level=highest_severity(severities),
        severity_distribution=SeverityHistogram(
            critical=counts[Severity.CRITICAL],
            high=counts[Severity.HIGH],
            medium=counts[Severity.MEDIUM],
            low=counts[Severity.LOW],
        ),
    )


def threats_view(articles: List[Article], now: Optional[datetime] = None) -> dict:
    """The ``{summary, threats}`` payload, optionally stamped with ``lastUpdated``."""
    data = {
        "summary": build_threat_summary(articles).to_dict(),
        "threats": [article.to_dict() for article in articles],
    }
    if now is not None:
        data["lastUpdated"] = _aware(now).isoformat()
    return data


def paginate_dashboard(snapshot: DashboardSnapshot, page: int = 1, limit: int = 10, search: str = "") -> dict:
    """
    Dashboard payload with a filtered, sliced threat list.

    The snapshot itself is left untouched.
    """
    if page < 1 or limit < 1:
        raise ValueError("page and limit must be positive integers")

    items = list(snapshot.threats)
    if search:
        needle = search.lower()
        items = [item for item in items if needle in item.title.lower() or needle in item.description.lower()]

    total = len(items)
    start = (page - 1) * limit
    data = snapshot.to_dict()
    data["recentThreatsList"] = [item.to_dict() for item in items[start:start + limit]]
    data["total"] = total
    data["page"] = page
    data["totalPages"] = math.ceil(total / limit)
    data["hasMore"] = start + limit < total
    return data
