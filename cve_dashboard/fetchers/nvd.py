"""NVD CVE API 2.0 client."""

import logging
from typing import List, Optional

import requests

from ..models import CVERecord
from ..scoring import severity_from_score

logger = logging.getLogger(__name__)

NVD_API_BASE = "https://services.nvd.nist.gov/rest/json/cves/2.0"


class LookupFailed(Exception):
    """The vulnerability database could not be queried for a CVE."""


def _base_score(metrics: dict) -> float:
    for key in ("cvssMetricV31", "cvssMetricV30"):
        entries = metrics.get(key) or []
        if entries:
            score = (entries[0].get("cvssData") or {}).get("baseScore")
            if score:
                return float(score)
    return 0.0


def _description(cve: dict) -> str:
    descriptions = cve.get("descriptions") or []
    for entry in descriptions:
        if entry.get("lang") == "en" and entry.get("value"):
            return entry["value"]
    if descriptions and descriptions[0].get("value"):
        return descriptions[0]["value"]
    return "No description available"


def _affected_systems(cve: dict) -> List[str]:
    configurations = cve.get("configurations") or []
    if not configurations:
        return ["Unknown"]
    systems = []
    for node in configurations[0].get("nodes") or []:
        matches = node.get("cpeMatch") or []
        systems.append(matches[0].get("criteria", "Unknown") if matches else "Unknown")
    return systems or ["Unknown"]


def parse_nvd_cve(cve_id: str, payload: dict) -> Optional[CVERecord]:
    """Build a CVERecord from an NVD response, or None when it holds no CVE."""
    vulnerabilities = payload.get("vulnerabilities") or []
    if not vulnerabilities:
        return None

    cve = vulnerabilities[0].get("cve") or {}
    score = _base_score(cve.get("metrics") or {})
    return CVERecord(
        id=cve_id,
        cvss_score=score,
        severity=severity_from_score(score),
        description=_description(cve),
        affected_systems=_affected_systems(cve),
    )


class NvdClient:
    """Looks up single CVEs by id."""

    def __init__(self, api_key: Optional[str] = None, base_url: str = NVD_API_BASE, timeout: float = 20):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        if not api_key:
            logger.warning("NVD API key not set, using the public rate-limited tier")

    def lookup(self, cve_id: str) -> Optional[CVERecord]:
        """
        Fetch one CVE.

        Returns:
            CVERecord, or None when the database has no record for the id

        Raises:
            LookupFailed: on transport, HTTP status or JSON decode errors
        """
        headers = {"apiKey": self.api_key} if self.api_key else {}
        try:
            response = requests.get(
                self.base_url, params={"cveId": cve_id}, headers=headers, timeout=self.timeout
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise LookupFailed(f"NVD lookup failed for {cve_id}: {e}") from e

        record = parse_nvd_cve(cve_id, payload)
        if record is None:
            logger.info(f"No data found for CVE {cve_id}")
        return record
