import json
from datetime import timedelta

import pytest

from cve_dashboard.aggregate import (
    build_snapshot,
    build_threat_summary,
    paginate_dashboard,
    threat_level_score,
    threats_view,
)
from cve_dashboard.models import Severity
from cve_dashboard.scoring import THREAT_CATEGORIES


def test_critical_rce_scenario(make_article, make_cve, now):
    article = make_article("Critical RCE Vulnerability", cves=[make_cve("CVE-2024-0001", 9.8)])
    snapshot = build_snapshot([article], now)

    item = snapshot.threats[0]
    assert item.overall_severity == Severity.CRITICAL
    assert item.severity_elevated is False
    assert item.score_to_report == 9.8
    assert snapshot.cve_severity.critical == 1
    assert snapshot.critical_threats == 1
    assert dict(snapshot.threat_distribution) == {"Vulnerability": 1}


def test_zero_day_scenario_is_elevated(make_article, make_cve, now):
    article = make_article("Zero-day actively exploited", cves=[make_cve("CVE-2024-0002", 2.0)])
    snapshot = build_snapshot([article], now)

    item = snapshot.threats[0]
    assert item.overall_severity == Severity.CRITICAL
    assert item.severity_elevated is True
    # Raw histogram ignores elevation.
    assert snapshot.cve_severity.to_dict() == {"critical": 0, "high": 0, "medium": 0, "low": 1}


def test_neutral_title_with_low_score_stays_low(make_article, make_cve, now):
    article = make_article("Flaw in Acme widget", cves=[make_cve("CVE-2024-1111", 3.0)])

    item = build_snapshot([article], now).threats[0]

    assert item.overall_severity == Severity.LOW
    assert item.severity_elevated is False


def test_empty_input(now):
    snapshot = build_snapshot([], now)
    data = snapshot.to_dict()

    assert data["totalThreats"] == 0
    assert data["recentThreats"] == 0
    assert data["mitigatedThreats"] == 0
    assert data["criticalThreats"] == 0
    assert data["cvesMonitored"] == 0
    assert data["threatLevel"] == 0
    assert data["threatDistribution"] == []
    assert data["recentThreatsList"] == []
    assert data["cveSeverity"] == {"critical": 0, "high": 0, "medium": 0, "low": 0}
    assert len(data["threatTrends"]) == 7
    for point in data["threatTrends"]:
        assert all(point[category] == 0 for category in THREAT_CATEGORIES)


def test_trends_cover_seven_days_in_order(make_article, make_cve, now):
    articles = [
        make_article("Ransomware hits hospital", cves=[make_cve("CVE-2024-1001", 8.0)], published_at=now - timedelta(days=2)),
        make_article("Exploit for router bug", cves=[make_cve("CVE-2024-1002", 6.0)], published_at=now - timedelta(days=2)),
        make_article("Exploit for mail server", cves=[make_cve("CVE-2024-1003", 5.0)], published_at=now),
        make_article("Old exploit", cves=[make_cve("CVE-2024-1004", 5.0)], published_at=now - timedelta(days=10)),
    ]
    trends = [point.to_dict() for point in build_snapshot(articles, now).threat_trends]

    assert [point["name"] for point in trends] == [
        "Oct 10", "Oct 11", "Oct 12", "Oct 13", "Oct 14", "Oct 15", "Oct 16",
    ]
    assert trends[4]["Malware"] == 1
    assert trends[4]["Vulnerability"] == 1
    assert sum(trends[4][category] for category in THREAT_CATEGORIES) == 2
    assert trends[6]["Vulnerability"] == 1
    assert sum(sum(point[category] for category in THREAT_CATEGORIES) for point in trends) == 3


def test_recent_and_mitigated_counts(make_article, make_cve, now):
    articles = [
        make_article("Exploit A", cves=[make_cve("CVE-2024-2001", 5.0, mitigation=["patch"])], published_at=now - timedelta(days=1)),
        make_article("Exploit B", cves=[make_cve("CVE-2024-2002", 5.0)], published_at=now - timedelta(days=8)),
        make_article("Exploit C", cves=[], published_at=now - timedelta(days=3)),
    ]
    snapshot = build_snapshot(articles, now)
    assert snapshot.total_threats == 3
    assert snapshot.recent_threats == 2
    assert snapshot.mitigated_threats == 1
    assert snapshot.cves_monitored == 2


def test_zero_scores_are_absent_from_histogram(make_article, make_cve, now):
    article = make_article(
        "Exploit roundup",
        cves=[make_cve("CVE-2024-3001", 0.0), make_cve("CVE-2024-3002", 3.5), make_cve("CVE-2024-3003", 7.2)],
    )
    assert build_snapshot([article], now).cve_severity.to_dict() == {
        "critical": 0,
        "high": 1,
        "medium": 0,
        "low": 1,
    }


def test_threat_level_formula():
    assert threat_level_score({}, 0) == 0
    assert threat_level_score({Severity.CRITICAL: 1}, 1) == 100
    assert threat_level_score({Severity.LOW: 2}, 2) == 50
    assert threat_level_score({Severity.MEDIUM: 1, Severity.LOW: 3}, 4) == pytest.approx(62.5)


def test_threat_item_ids_fall_back_to_title(make_article, make_cve, now):
    with_cve = make_article("Exploit A", cves=[make_cve("CVE-2024-4001", 5.0)])
    without = make_article("Exploit B")
    items = build_snapshot([with_cve, without], now).threats
    assert items[0].id == "CVE-2024-4001"
    assert items[1].id == "Exploit B"


def test_snapshot_is_deterministic(make_article, make_cve, now):
    articles = [
        make_article("Phishing wave", cves=[make_cve("CVE-2024-5001", 4.2)], published_at=now - timedelta(days=1)),
        make_article("Zero-day in VPN", cves=[make_cve("CVE-2024-5002", 0.0)]),
    ]
    first = json.dumps(build_snapshot(articles, now).to_dict(), sort_keys=True)
    second = json.dumps(build_snapshot(articles, now).to_dict(), sort_keys=True)
    assert first == second


def test_threat_summary(make_article, make_cve):
    shared = make_cve("CVE-2024-6001", 9.1, mitigation=["patch"])
    articles = [
        make_article("Exploit A", cves=[shared, make_cve("CVE-2024-6002", 5.5)]),
        make_article("Exploit B", cves=[make_cve("CVE-2024-6001", 9.1)]),
    ]
    summary = build_threat_summary(articles).to_dict()
    assert summary == {
        "activeThreats": 2,
        "cvesMonitored": 2,
        "mitigationsApplied": 1,
        "threatLevel": "Critical",
        "severityDistribution": {"critical": 2, "high": 0, "medium": 1, "low": 0},
    }


def test_threats_view_shape(make_article, make_cve, now):
    data = threats_view([make_article("Exploit A", cves=[make_cve("CVE-2024-7001", 6.1)])], now=now)
    assert set(data) == {"summary", "threats", "lastUpdated"}
    threat = data["threats"][0]
    assert threat["threatLevel"] == "High"
    assert threat["cves"][0]["cvss"] == "6.1"
    assert build_threat_summary([]).threat_level == Severity.LOW


def test_paginate_dashboard(make_article, make_cve, now):
    articles = [make_article(f"Exploit {n}", cves=[make_cve(f"CVE-2024-800{n}", 5.0)]) for n in range(5)]
    articles.append(make_article("Phishing lure", description="fake invoices", cves=[make_cve("CVE-2024-8100", 5.0)]))
    snapshot = build_snapshot(articles, now)

    page = paginate_dashboard(snapshot, page=2, limit=2)
    assert [item["title"] for item in page["recentThreatsList"]] == ["Exploit 2", "Exploit 3"]
    assert page["total"] == 6
    assert page["totalPages"] == 3
    assert page["hasMore"] is True

    last = paginate_dashboard(snapshot, page=3, limit=2)
    assert last["hasMore"] is False

    found = paginate_dashboard(snapshot, search="INVOICES")
    assert [item["title"] for item in found["recentThreatsList"]] == ["Phishing lure"]
    assert found["totalThreats"] == 6
    assert len(snapshot.threats) == 6

    with pytest.raises(ValueError):
        paginate_dashboard(snapshot, page=0)
