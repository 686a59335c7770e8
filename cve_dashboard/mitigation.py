"""Mitigation suggestions and on-demand mitigation plans."""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from .extraction import is_canonical_cve
from .fetchers.nvd import LookupFailed
from .genai import GeminiClient, GenerationError
from .models import MitigationRequest

logger = logging.getLogger(__name__)

PLAN_KEYS = ["immediateActions", "shortTermRemediation", "longTermSolutions", "additionalRecommendations"]

NO_DESCRIPTION = "No official description readily available."

# (trigger terms, suggestions); first match over the lower-cased description wins.
FALLBACK_SUGGESTIONS = [
    (
        ["remote code execution", "rce"],
        [
            "Apply the latest security patches",
            "Restrict network access to affected services",
            "Implement proper input validation and sanitization",
        ],
    ),
    (
        ["denial of service", "dos"],
        [
            "Implement rate limiting and request throttling",
            "Configure proper resource limits and monitoring",
            "Use a web application firewall (WAF)",
        ],
    ),
    (
        ["information disclosure", "data leak"],
        [
            "Update to the latest version with security fixes",
            "Implement proper access controls and authentication",
            "Encrypt sensitive data at rest and in transit",
        ],
    ),
    (
        ["buffer overflow", "memory corruption"],
        [
            "Apply the latest security patches",
            "Enable address space layout randomization (ASLR)",
            "Implement proper bounds checking and input validation",
        ],
    ),
    (
        ["sql injection", "xss"],
        [
            "Use parameterized queries and prepared statements",
            "Implement proper input validation and sanitization",
            "Enable web application firewall (WAF) rules",
        ],
    ),
]

GENERIC_SUGGESTIONS = [
    "Update to the latest version with security patches",
    "Review and apply vendor security advisories",
    "Implement proper monitoring and logging",
]

_STEP_NUMBERING = re.compile(r"^\d+\.\s*")


class InvalidCveId(ValueError):
    """The supplied CVE id is not in CVE-YYYY-NNNN form."""

    message = "Valid CVE ID is required (e.g., CVE-YYYY-NNNN)"


class PlanFormatError(GenerationError):
    """The generated plan is not a JSON object of four string lists."""


def fallback_mitigations(description: str) -> List[str]:
    """Static suggestions keyed on the vulnerability class named in a description."""
    lower = (description or "").lower()
    for terms, suggestions in FALLBACK_SUGGESTIONS:
        if any(term in lower for term in terms):
            return list(suggestions)
    return list(GENERIC_SUGGESTIONS)


def parse_steps(text: str) -> List[str]:
    """Split generated text into steps, dropping blank lines and numbering."""
    return [_STEP_NUMBERING.sub("", line.strip()) for line in text.splitlines() if line.strip()]


class GeminiSuggester:
    """Asks the generative service for three mitigation steps per CVE."""

    PROMPT = (
        "You are a cybersecurity expert. For the following CVE vulnerability, "
        "provide 3 specific, actionable mitigation steps. Keep each step concise.\n\n"
        "CVE: {cve_id}\n"
        "Description: {description}\n\n"
        "Mitigation steps:"
    )

    def __init__(self, client: GeminiClient):
        self.client = client

    def suggest(self, cve_id: str, description: str) -> List[str]:
        text = self.client.generate(self.PROMPT.format(cve_id=cve_id, description=description))
        steps = parse_steps(text)
        if not steps:
            raise GenerationError(f"No mitigation steps returned for {cve_id}")
        return steps


def validate_cve_id(raw: Any) -> str:
    """Trim and check a CVE id, raising InvalidCveId before any external call."""
    cve_id = str(raw).strip() if raw is not None else ""
    if not cve_id or not is_canonical_cve(cve_id):
        raise InvalidCveId(InvalidCveId.message)
    return cve_id


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        value = ", ".join(str(item).strip() for item in value if str(item).strip())
    value = str(value).strip()
    return value or None


def parse_mitigation_request(body: Any) -> MitigationRequest:
    if not isinstance(body, dict):
        raise InvalidCveId(InvalidCveId.message)
    return MitigationRequest(
        cve_id=validate_cve_id(body.get("cveId")),
        environment=_as_text(body.get("environment")),
        affected_systems=_as_text(body.get("affectedSystems")),
        constraints=_as_text(body.get("constraints")),
    )


def build_plan_prompt(request: MitigationRequest, description: str) -> str:
    return f"""
Generate a structured cybersecurity mitigation plan for the vulnerability identified as {request.cve_id}.

CVE Description:
"{description}"

Provide the plan based on the following context (if specified):
- Target Environment: {request.environment or 'General / Not specified'}
- Specific Affected Systems/Assets: {request.affected_systems or 'Not specified'}
- Operational Constraints or Considerations: {request.constraints or 'None specified'}

Structure the response as a JSON object containing ONLY the following keys: "immediateActions", "shortTermRemediation", "longTermSolutions", "additionalRecommendations".
The value for each key MUST be an array of strings, where each string represents a distinct, actionable mitigation step or recommendation.
Focus on practical steps relevant to the CVE description and provided context.

Example format:
{{
  "immediateActions": ["Isolate affected systems.", "Block known malicious IPs."],
  "shortTermRemediation": ["Apply vendor patch XYZ.", "Implement stricter firewall rules."],
  "longTermSolutions": ["Upgrade underlying library.", "Implement network segmentation."],
  "additionalRecommendations": ["Monitor logs for indicators.", "Conduct user awareness training."]
}}
"""


def validate_plan(plan: Any) -> Dict[str, List[str]]:
    """
    Check a decoded plan and return it restricted to the four plan keys.

    Raises:
        PlanFormatError: when a key is missing or is not a list of strings
    """
    if not isinstance(plan, dict):
        raise PlanFormatError("AI service returned an invalid plan format.")
    for key in PLAN_KEYS:
        value = plan.get(key)
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            logger.error(f"Generated plan missing or invalid key '{key}'")
            raise PlanFormatError("AI service returned an invalid plan format.")
    return {key: list(plan[key]) for key in PLAN_KEYS}


def parse_plan(text: str) -> Dict[str, List[str]]:
    try:
        plan = json.loads(text)
    except ValueError as e:
        logger.error(f"Failed to parse JSON from generated plan: {e}")
        raise PlanFormatError("AI service returned an invalid plan format.") from e
    return validate_plan(plan)


def generate_mitigation_plan(
    request: MitigationRequest,
    client: GeminiClient,
    lookup=None,
    model: Optional[str] = None,
) -> Dict[str, List[str]]:
    """
    Produce a structured mitigation plan for one CVE.

    The CVE description comes from ``lookup`` (anything with a
    ``lookup(cve_id)`` method); failures there fall back to a placeholder.
    """
    description = NO_DESCRIPTION
    if lookup is not None:
        try:
            record = lookup.lookup(request.cve_id)
        except LookupFailed as e:
            logger.warning(f"Could not fetch description for {request.cve_id}: {e}")
            record = None
        if record is not None and record.description:
            description = record.description

    logger.info(f"Generating mitigation plan for {request.cve_id}")
    text = client.generate(
        build_plan_prompt(request, description),
        json_response=True,
        temperature=0.5,
        model=model,
        safety_settings=True,
    )
    plan = parse_plan(text)
    logger.info(f"Generated mitigation plan for {request.cve_id}")
    return plan
