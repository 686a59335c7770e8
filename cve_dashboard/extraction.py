"""CVE identifier extraction."""

import re
from typing import List

# Tight (CVE-2024-12345) and loosely spaced (cve 2024 12345) forms.
CVE_PATTERN = re.compile(r"\bCVE[\s-]*(\d{4})[\s-]*(\d{4,})(?!\d)", re.IGNORECASE)
CANONICAL_CVE_PATTERN = re.compile(r"CVE-\d{4}-\d{4,}")


def extract_cves(text: str) -> List[str]:
    """
    Find CVE identifiers in free text.

    Matches are normalized to ``CVE-YYYY-NNNN`` (upper case, single dashes)
    and de-duplicated, keeping first-seen order.

    Returns:
        List of unique canonical CVE ids; empty when none are found
    """
    if not text:
        return []
    found = (f"CVE-{year}-{number}" for year, number in CVE_PATTERN.findall(text))
    return list(dict.fromkeys(found))


def is_canonical_cve(cve_id: str) -> bool:
    """Check that a string is exactly one canonical CVE id."""
    return bool(CANONICAL_CVE_PATTERN.fullmatch(cve_id or ""))
