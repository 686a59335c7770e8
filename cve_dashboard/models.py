"""Data models for threat articles, CVE records and dashboard snapshots."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple


class Severity(str, Enum):
    """Severity tier, ordered Low < Medium < High < Critical."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def outranks(self, other: "Severity") -> bool:
        return self.rank > other.rank


_SEVERITY_RANK = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


@dataclass
class CVERecord:
    """A CVE resolved against the vulnerability database."""

    id: str
    cvss_score: float = 0.0
    severity: Severity = Severity.LOW
    description: str = ""
    affected_systems: List[str] = field(default_factory=list)
    mitigation: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "severity": self.severity.value,
            "cvss": str(self.cvss_score),
            "cvssScore": self.cvss_score,
            "description": self.description,
            "affectedSystems": list(self.affected_systems),
            "mitigation": list(self.mitigation),
        }


@dataclass
class Article:
    """A CVE-bearing entry from one threat feed."""

    title: str
    description: str
    link: str
    source: str
    published_at: datetime
    threat_level: Severity = Severity.MEDIUM  # scrape-time tag from title keywords
    cve_ids: List[str] = field(default_factory=list)
    cves: List[CVERecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "date": self.published_at.isoformat(),
            "source": self.source,
            "link": self.link,
            "description": self.description,
            "threatLevel": self.threat_level.value,
            "cves": [cve.to_dict() for cve in self.cves],
        }


@dataclass(frozen=True)
class CVEScore:
    """The per-CVE slice of a ThreatItem."""

    id: str
    cvss_score: float
    severity: Severity

    def to_dict(self) -> dict:
        return {"id": self.id, "cvssScore": self.cvss_score, "severity": self.severity.value}


@dataclass(frozen=True)
class ThreatItem:
    """Reporting view over an Article with its reconciled severity."""

    id: str
    title: str
    description: str
    source: str
    published_at: datetime
    overall_severity: Severity
    score_to_report: float
    severity_elevated: bool
    cves: Tuple[CVEScore, ...] = ()

    def to_dict(self) -> dict:
        published = self.published_at.isoformat()
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "source": self.source,
            "severity": self.overall_severity.value,
            "publishedDate": published,
            "lastModifiedDate": published,
            "cvssScore": self.score_to_report,
            "cves": [cve.to_dict() for cve in self.cves],
            "severityElevated": self.severity_elevated,
        }


@dataclass(frozen=True)
class TrendPoint:
    """Per-category article counts for one calendar day."""

    name: str
    counts: Tuple[Tuple[str, int], ...]

    def to_dict(self) -> dict:
        data = {"name": self.name}
        data.update(self.counts)
        return data


@dataclass(frozen=True)
class SeverityHistogram:
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "critical": self.critical,
            "high": self.high,
            "medium": self.medium,
            "low": self.low,
        }


@dataclass(frozen=True)
class DashboardSnapshot:
    """Point-in-time aggregate over one pipeline run. Never mutated."""

    total_threats: int
    recent_threats: int
    mitigated_threats: int
    critical_threats: int
    cves_monitored: int
    threat_level: float
    threat_trends: Tuple[TrendPoint, ...]
    threat_distribution: Tuple[Tuple[str, int], ...]
    threats: Tuple[ThreatItem, ...]
    cve_severity: SeverityHistogram
    last_updated: datetime

    def to_dict(self) -> dict:
        return {
            "totalThreats": self.total_threats,
            "recentThreats": self.recent_threats,
            "mitigatedThreats": self.mitigated_threats,
            "criticalThreats": self.critical_threats,
            "cvesMonitored": self.cves_monitored,
            "threatLevel": self.threat_level,
            "threatTrends": [point.to_dict() for point in self.threat_trends],
            "threatDistribution": [
                {"name": name, "value": value} for name, value in self.threat_distribution
            ],
            "recentThreatsList": [item.to_dict() for item in self.threats],
            "cveSeverity": self.cve_severity.to_dict(),
            "lastUpdated": self.last_updated.isoformat(),
        }


@dataclass(frozen=True)
class ThreatSummary:
    """Headline numbers for the article-list view."""

    active_threats: int
    cves_monitored: int
    mitigations_applied: int
    threat_level: Severity
    severity_distribution: SeverityHistogram

    def to_dict(self) -> dict:
        return {
            "activeThreats": self.active_threats,
            "cvesMonitored": self.cves_monitored,
            "mitigationsApplied": self.mitigations_applied,
            "threatLevel": self.threat_level.value,
            "severityDistribution": self.severity_distribution.to_dict(),
        }


@dataclass
class MitigationRequest:
    """Body of an on-demand mitigation-plan request."""

    cve_id: str
    environment: Optional[str] = None
    affected_systems: Optional[str] = None
    constraints: Optional[str] = None
