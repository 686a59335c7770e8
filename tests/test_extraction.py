import re

import pytest

from cve_dashboard.extraction import extract_cves, is_canonical_cve

CANONICAL = re.compile(r"^CVE-\d{4}-\d{4,}$")


def test_extracts_tight_form():
    assert extract_cves("Patch CVE-2024-12345 now") == ["CVE-2024-12345"]


@pytest.mark.parametrize(
    "text",
    [
        "cve-2023-44487 rapid reset",
        "CVE 2023 44487 rapid reset",
        "CVE  2023   44487",
        "cve-2023 44487",
    ],
)
def test_normalizes_loose_variants(text):
    assert extract_cves(text) == ["CVE-2023-44487"]


def test_deduplicates_keeping_first_seen_order():
    text = "CVE-2024-0002 and cve-2024-0001, again CVE 2024 0002"
    assert extract_cves(text) == ["CVE-2024-0002", "CVE-2024-0001"]


def test_no_matches_returns_empty_list():
    assert extract_cves("Nothing to see here") == []
    assert extract_cves("") == []
    assert extract_cves(None) == []


def test_rejects_short_sequence_numbers():
    assert extract_cves("CVE-2024-123 is not a real id") == []


def test_every_result_is_canonical():
    text = "cve-2021-44228, CVE 2014 0160; CVE-2017-0144 and CVE-2024-3094."
    found = extract_cves(text)
    assert len(found) == len(set(found)) == 4
    assert all(CANONICAL.match(cve_id) for cve_id in found)


def test_is_canonical_cve():
    assert is_canonical_cve("CVE-2024-12345")
    assert not is_canonical_cve("cve-2024-12345")
    assert not is_canonical_cve("CVE-2024-123")
    assert not is_canonical_cve("CVE-2024-12345\n")
    assert not is_canonical_cve("")
