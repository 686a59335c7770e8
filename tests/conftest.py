import pytest

from cve_dashboard.models import Article, CVERecord
from cve_dashboard.scoring import determine_threat_level, severity_from_score
from tests.fakes import NOW, FakeClock


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def make_cve():
    def _make(cve_id, score, mitigation=None, description="A flaw in a widget"):
        return CVERecord(
            id=cve_id,
            cvss_score=score,
            severity=severity_from_score(score),
            description=description,
            affected_systems=["Unknown"],
            mitigation=list(mitigation or []),
        )

    return _make


@pytest.fixture
def make_article():
    def _make(title, cves=(), description="", published_at=NOW, threat_level=None, source="Test Feed"):
        cves = list(cves)
        return Article(
            title=title,
            description=description,
            link="https://example.com/" + title.lower().replace(" ", "-"),
            source=source,
            published_at=published_at,
            threat_level=threat_level if threat_level is not None else determine_threat_level(title, cves),
            cve_ids=[cve.id for cve in cves],
            cves=cves,
        )

    return _make
