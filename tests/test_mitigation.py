import json

import pytest

from cve_dashboard.genai import GenerationError, SafetyBlocked
from cve_dashboard.mitigation import (
    GENERIC_SUGGESTIONS,
    NO_DESCRIPTION,
    PLAN_KEYS,
    GeminiSuggester,
    InvalidCveId,
    PlanFormatError,
    fallback_mitigations,
    generate_mitigation_plan,
    parse_mitigation_request,
    parse_plan,
    parse_steps,
    validate_cve_id,
    validate_plan,
)
from cve_dashboard.models import MitigationRequest
from tests.fakes import FakeGenerator, FakeLookup

PLAN = {
    "immediateActions": ["Isolate affected hosts."],
    "shortTermRemediation": ["Apply vendor patch."],
    "longTermSolutions": ["Segment the network."],
    "additionalRecommendations": ["Monitor logs."],
}


@pytest.mark.parametrize(
    "description, first_step",
    [
        ("Allows remote code execution via crafted input", "Apply the latest security patches"),
        ("A denial of service in the parser", "Implement rate limiting and request throttling"),
        ("Information disclosure of session tokens", "Update to the latest version with security fixes"),
        ("Heap buffer overflow in decoder", "Apply the latest security patches"),
        ("Stored XSS in the admin panel", "Use parameterized queries and prepared statements"),
    ],
)
def test_fallback_table(description, first_step):
    steps = fallback_mitigations(description)
    assert len(steps) == 3
    assert steps[0] == first_step


def test_fallback_generic():
    assert fallback_mitigations("Something unusual") == GENERIC_SUGGESTIONS
    assert fallback_mitigations("") == GENERIC_SUGGESTIONS
    assert fallback_mitigations(None) == GENERIC_SUGGESTIONS


def test_parse_steps():
    text = "1. Patch the server\n\n2.   Restrict access\n   \n3.Rotate keys\nMonitor logs"
    assert parse_steps(text) == ["Patch the server", "Restrict access", "Rotate keys", "Monitor logs"]
    assert parse_steps("\n\n") == []


def test_suggester_prompts_with_description():
    generator = FakeGenerator(text="1. First\n2. Second\n3. Third")
    steps = GeminiSuggester(generator).suggest("CVE-2024-0001", "Buffer overflow in parser")

    assert steps == ["First", "Second", "Third"]
    assert "CVE: CVE-2024-0001" in generator.prompts[0]
    assert "Description: Buffer overflow in parser" in generator.prompts[0]


def test_suggester_empty_answer_raises():
    with pytest.raises(GenerationError):
        GeminiSuggester(FakeGenerator(text="  \n")).suggest("CVE-2024-0001", "desc")


@pytest.mark.parametrize("raw", [None, "", "   ", "CVE-24-1", "cve-2024-12345", "CVE-2024-123", 42])
def test_validate_cve_id_rejects(raw):
    with pytest.raises(InvalidCveId) as excinfo:
        validate_cve_id(raw)
    assert str(excinfo.value) == "Valid CVE ID is required (e.g., CVE-YYYY-NNNN)"


def test_validate_cve_id_trims():
    assert validate_cve_id("  CVE-2024-12345 ") == "CVE-2024-12345"


def test_parse_mitigation_request():
    request = parse_mitigation_request(
        {
            "cveId": "CVE-2024-0001",
            "environment": "  Kubernetes  ",
            "affectedSystems": ["web-01", " ", "db-01"],
            "constraints": "",
        }
    )
    assert request == MitigationRequest(
        cve_id="CVE-2024-0001",
        environment="Kubernetes",
        affected_systems="web-01, db-01",
        constraints=None,
    )
    with pytest.raises(InvalidCveId):
        parse_mitigation_request(["CVE-2024-0001"])


def test_validate_plan_drops_extra_keys():
    plan = dict(PLAN, note="extra")
    assert validate_plan(plan) == PLAN
    assert list(validate_plan(plan)) == PLAN_KEYS


@pytest.mark.parametrize(
    "plan",
    [
        [],
        {key: PLAN[key] for key in PLAN_KEYS[:3]},
        dict(PLAN, longTermSolutions="Segment the network."),
        dict(PLAN, immediateActions=["ok", 3]),
    ],
)
def test_validate_plan_rejects(plan):
    with pytest.raises(PlanFormatError):
        validate_plan(plan)


def test_parse_plan_rejects_non_json():
    with pytest.raises(PlanFormatError) as excinfo:
        parse_plan("Here is your plan: ...")
    assert str(excinfo.value) == "AI service returned an invalid plan format."


def test_generate_plan_uses_looked_up_description(make_cve):
    lookup = FakeLookup({"CVE-2024-0001": make_cve("CVE-2024-0001", 9.8, description="Auth bypass in VPN portal")})
    generator = FakeGenerator(text=json.dumps(dict(PLAN, extra=["x"])))
    request = MitigationRequest(cve_id="CVE-2024-0001", environment="AWS")

    plan = generate_mitigation_plan(request, generator, lookup=lookup, model="gemini-1.5-flash-latest")

    assert plan == PLAN
    prompt = generator.prompts[0]
    assert '"Auth bypass in VPN portal"' in prompt
    assert "Target Environment: AWS" in prompt
    assert "Specific Affected Systems/Assets: Not specified" in prompt
    assert "Operational Constraints or Considerations: None specified" in prompt
    assert generator.kwargs[0] == {
        "json_response": True,
        "temperature": 0.5,
        "model": "gemini-1.5-flash-latest",
        "safety_settings": True,
    }


def test_generate_plan_without_description():
    generator = FakeGenerator(text=json.dumps(PLAN))
    lookup = FakeLookup(failing=["CVE-2024-0001"])

    generate_mitigation_plan(MitigationRequest(cve_id="CVE-2024-0001"), generator, lookup=lookup)

    prompt = generator.prompts[0]
    assert NO_DESCRIPTION in prompt
    assert "Target Environment: General / Not specified" in prompt


def test_generate_plan_propagates_safety_block():
    generator = FakeGenerator(error=SafetyBlocked("Failed to generate plan due to safety settings."))
    with pytest.raises(SafetyBlocked):
        generate_mitigation_plan(MitigationRequest(cve_id="CVE-2024-0001"), generator)


def test_generate_plan_invalid_output():
    generator = FakeGenerator(text=json.dumps({"immediateActions": ["only one key"]}))
    with pytest.raises(PlanFormatError):
        generate_mitigation_plan(MitigationRequest(cve_id="CVE-2024-0001"), generator)
