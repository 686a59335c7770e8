"""Gemini text generation client."""

import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"

HARM_CATEGORIES = [
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
]


class GenerationError(Exception):
    """The generative service failed or returned no usable text."""


class SafetyBlocked(GenerationError):
    """Generation stopped because of safety settings."""


class GeminiClient:
    """Minimal client for the ``generateContent`` REST endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        base_url: str = GEMINI_API_BASE,
        timeout: float = 30,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def generate(
        self,
        prompt: str,
        json_response: bool = False,
        temperature: Optional[float] = None,
        model: Optional[str] = None,
        safety_settings: bool = False,
    ) -> str:
        """
        Generate text for a prompt.

        Args:
            prompt: Prompt text
            json_response: Ask the model for an ``application/json`` body
            temperature: Optional sampling temperature
            model: Override the client's default model
            safety_settings: Block harmful content at medium and above

        Returns:
            The first candidate's text

        Raises:
            SafetyBlocked: when the candidate finished for safety reasons
            GenerationError: on transport, HTTP status or response shape errors
        """
        url = f"{self.base_url}/{model or self.model}:generateContent"
        payload = {"contents": [{"parts": [{"text": prompt}]}]}

        generation_config = {}
        if json_response:
            generation_config["responseMimeType"] = "application/json"
        if temperature is not None:
            generation_config["temperature"] = temperature
        if generation_config:
            payload["generationConfig"] = generation_config
        if safety_settings:
            payload["safetySettings"] = [
                {"category": category, "threshold": "BLOCK_MEDIUM_AND_ABOVE"}
                for category in HARM_CATEGORIES
            ]

        # Key goes in a header, never in the URL.
        headers = {"Content-Type": "application/json", "x-goog-api-key": self.api_key}

        try:
            response = requests.post(url, json=payload, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise GenerationError(f"AI service request failed: {e.__class__.__name__}") from e

        if not response.ok:
            message = f"AI service failed with status {response.status_code}."
            try:
                body = response.json()
            except ValueError:
                body = None
            # Error bodies are sometimes wrapped in a one-element list.
            if isinstance(body, list) and body:
                body = body[0]
            error = body.get("error") if isinstance(body, dict) else None
            detail = error.get("message") if isinstance(error, dict) else None
            if detail:
                message = f"AI service error: {detail}"
            raise GenerationError(message)

        try:
            data = response.json()
        except ValueError as e:
            raise GenerationError("AI service returned a non-JSON response.") from e
        if not isinstance(data, dict):
            raise GenerationError("AI service returned an unexpected response format.")

        candidates = data.get("candidates") or []
        candidate = candidates[0] if candidates else {}
        finish_reason = candidate.get("finishReason")
        if finish_reason and finish_reason != "STOP":
            logger.warning(f"Gemini generation finished due to: {finish_reason}")
            if finish_reason == "SAFETY":
                raise SafetyBlocked("Failed to generate plan due to safety settings.")

        parts = (candidate.get("content") or {}).get("parts") or []
        text = parts[0].get("text") if parts else None
        if not text:
            raise GenerationError("AI service returned an unexpected response format.")
        return text
