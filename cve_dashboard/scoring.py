"""Severity classification, threat categorization and severity reconciliation."""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .models import Article, CVERecord, Severity

logger = logging.getLogger(__name__)

CRITICAL_THRESHOLD = 9.0
HIGH_THRESHOLD = 7.0
MEDIUM_THRESHOLD = 4.0

# Scrape-time tag, applied to the title only.
TAG_CRITICAL_KEYWORDS = ["critical", "zero-day", "actively exploited"]
TAG_HIGH_KEYWORDS = ["high", "severe", "security breach"]
TAG_LOW_KEYWORDS = ["low", "minor"]

# Tag re-derived once CVE records are known, applied to the title only.
RETAG_CRITICAL_KEYWORDS = ["critical", "cvss 10.0", "actively exploited", "zero-day", "rce", "remote code execution"]
RETAG_HIGH_KEYWORDS = ["high", "severe", "security breach", "under attack", "exploit"]
RETAG_MEDIUM_KEYWORDS = ["vulnerability", "security", "patch", "update"]

# Last-resort reconciliation keywords, applied to the title only.
CRITICAL_KEYWORDS = ["critical", "actively exploited", "zero-day", "rce", "remote code execution"]
HIGH_KEYWORDS = ["high", "important", "security bypass"]
MEDIUM_KEYWORDS = ["medium", "moderate"]

TITLE_CVSS_PATTERN = re.compile(r"CVSS\s+(\d+\.?\d*)", re.IGNORECASE)
DESCRIPTION_CVSS_PATTERN = re.compile(r"CVSS score:\s*(\d+\.?\d*)", re.IGNORECASE)

THREAT_CATEGORIES = ["Malware", "Phishing", "Vulnerability", "DDoS", "Other"]

_CATEGORY_KEYWORDS = [
    ("Malware", ["malware", "ransomware", "trojan"]),
    ("Phishing", ["phishing", "social engineering", "credential"]),
    ("Vulnerability", ["vulnerability", "exploit", "cve"]),
    ("DDoS", ["ddos", "denial of service"]),
]


def severity_from_score(score: float) -> Severity:
    """Map a CVSS score to a tier; the lower edge of each band is inclusive."""
    if score >= CRITICAL_THRESHOLD:
        return Severity.CRITICAL
    if score >= HIGH_THRESHOLD:
        return Severity.HIGH
    if score >= MEDIUM_THRESHOLD:
        return Severity.MEDIUM
    return Severity.LOW


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def initial_threat_level(title: str) -> Severity:
    """Coarse tag assigned when an article is scraped. Defaults to Medium."""
    title_lower = title.lower()
    if _contains_any(title_lower, TAG_CRITICAL_KEYWORDS):
        return Severity.CRITICAL
    if _contains_any(title_lower, TAG_HIGH_KEYWORDS):
        return Severity.HIGH
    if _contains_any(title_lower, TAG_LOW_KEYWORDS):
        return Severity.LOW
    return Severity.MEDIUM


def determine_threat_level(title: str, cves: List[CVERecord]) -> Severity:
    """
    Tag an article from its title and its resolved CVE records.

    Replaces the scrape-time tag after enrichment. Defaults to Low.
    """
    title_lower = title.lower()
    if _contains_any(title_lower, RETAG_CRITICAL_KEYWORDS) or any(
        cve.cvss_score >= CRITICAL_THRESHOLD or cve.severity == Severity.CRITICAL for cve in cves
    ):
        return Severity.CRITICAL
    if _contains_any(title_lower, RETAG_HIGH_KEYWORDS) or any(cve.cvss_score >= HIGH_THRESHOLD for cve in cves):
        return Severity.HIGH
    if _contains_any(title_lower, RETAG_MEDIUM_KEYWORDS) or any(
        cve.cvss_score >= MEDIUM_THRESHOLD for cve in cves
    ):
        return Severity.MEDIUM
    return Severity.LOW


def categorize_threat(title: str, description: str) -> str:
    """Classify an article into one category, first match wins."""
    text = f"{title} {description}".lower()
    for category, keywords in _CATEGORY_KEYWORDS:
        if _contains_any(text, keywords):
            return category
    return "Other"


def recover_text_score(title: str, description: str) -> float:
    """
    Pull a CVSS score out of article text.

    Looks for "CVSS <num>" in the title and "CVSS score: <num>" in the
    description and returns the larger, or 0.0 when neither is present.
    """
    scores = []
    for pattern, text in ((TITLE_CVSS_PATTERN, title), (DESCRIPTION_CVSS_PATTERN, description or "")):
        match = pattern.search(text)
        if match:
            scores.append(float(match.group(1)))
    return max(scores) if scores else 0.0


@dataclass(frozen=True)
class SeverityEvidence:
    """Signals available to the reconciliation strategies for one article."""

    title: str
    description: str
    threat_level: Severity
    cve_score: float  # highest CVSS score over the article's CVEs

    @property
    def cve_severity(self) -> Severity:
        return severity_from_score(self.cve_score)


@dataclass(frozen=True)
class Reconciliation:
    severity: Severity
    score: float
    elevated: bool
    strategy: str


# A strategy returns (tier, score to report) or None for "no opinion".
Strategy = Callable[[SeverityEvidence], Optional[Tuple[Severity, float]]]


def cve_score_strategy(evidence: SeverityEvidence) -> Optional[Tuple[Severity, float]]:
    if evidence.cve_score >= MEDIUM_THRESHOLD:
        return evidence.cve_severity, evidence.cve_score
    return None


def text_score_strategy(evidence: SeverityEvidence) -> Optional[Tuple[Severity, float]]:
    recovered = recover_text_score(evidence.title, evidence.description)
    if recovered >= MEDIUM_THRESHOLD:
        return severity_from_score(recovered), recovered
    return None


def keyword_strategy(evidence: SeverityEvidence) -> Optional[Tuple[Severity, float]]:
    title_lower = evidence.title.lower()
    level = evidence.threat_level
    if level == Severity.CRITICAL or _contains_any(title_lower, CRITICAL_KEYWORDS):
        severity = Severity.CRITICAL
    elif level == Severity.HIGH or _contains_any(title_lower, HIGH_KEYWORDS):
        severity = Severity.HIGH
    elif level == Severity.MEDIUM or _contains_any(title_lower, MEDIUM_KEYWORDS):
        severity = Severity.MEDIUM
    else:
        severity = Severity.LOW
    return severity, evidence.cve_score


DEFAULT_STRATEGIES: Sequence[Tuple[str, Strategy]] = (
    ("cve_score", cve_score_strategy),
    ("text_score", text_score_strategy),
    ("keywords", keyword_strategy),
)


def reconcile(
    evidence: SeverityEvidence,
    strategies: Sequence[Tuple[str, Strategy]] = DEFAULT_STRATEGIES,
) -> Reconciliation:
    """
    Pick an overall severity by asking each strategy in priority order.

    The first strategy with an opinion wins. The result is flagged as
    elevated when its tier outranks the tier the CVE scores alone imply.
    """
    baseline = evidence.cve_severity
    for name, strategy in strategies:
        opinion = strategy(evidence)
        if opinion is None:
            continue
        severity, score = opinion
        return Reconciliation(
            severity=severity,
            score=score,
            elevated=severity.outranks(baseline),
            strategy=name,
        )
    return Reconciliation(severity=baseline, score=evidence.cve_score, elevated=False, strategy="none")


def evidence_for(article: Article) -> SeverityEvidence:
    return SeverityEvidence(
        title=article.title,
        description=article.description,
        threat_level=article.threat_level,
        cve_score=max((cve.cvss_score for cve in article.cves), default=0.0),
    )


def reconcile_article(article: Article) -> Reconciliation:
    result = reconcile(evidence_for(article))
    if result.elevated:
        logger.debug(
            f"Severity elevated to {result.severity.value} by {result.strategy}: {article.title[:60]}"
        )
    return result


def highest_severity(severities: List[Severity]) -> Severity:
    """Return the top tier in a list, Low when the list is empty."""
    return max(severities, key=lambda severity: severity.rank, default=Severity.LOW)
