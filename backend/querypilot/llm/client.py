"""Gemini API client for LLM interactions."""

from __future__ import annotations

import json
import logging

import httpx

from ..core.config import get_settings
from ..core.exceptions import ConfigurationError, LLMError

logger = logging.getLogger(__name__)

__all__ = ["LLMError", "call_gemini"]


def call_gemini(
    prompt: str,
    model: str | None = None,
    temperature: float | None = None,
    max_output_tokens: int | None = None,
) -> str:
    """Call the Gemini ``generateContent`` endpoint and return the response text.

    Args:
        prompt: Full prompt text
        model: Model to use (defaults to settings.gemini_model)
        temperature: Sampling temperature (defaults to settings.llm_temperature)
        max_output_tokens: Output token cap (defaults to settings.llm_max_output_tokens)

    Raises:
        ConfigurationError: If no API key is configured
        LLMError: If the request fails or the response has no text
    """
    settings = get_settings()
    if not settings.gemini_api_key:
        raise ConfigurationError("API key not configured. Please set GEMINI_API_KEY in your environment.")

    effective_model = model or settings.gemini_model
    payload = {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": {
            "temperature": settings.llm_temperature if temperature is None else temperature,
            "maxOutputTokens": max_output_tokens or settings.llm_max_output_tokens,
        },
    }

    logger.debug(f"Calling Gemini with model={effective_model}")

    try:
        response = httpx.post(
            f"{settings.gemini_base_url}/models/{effective_model}:generateContent",
            json=payload,
            headers={"x-goog-api-key": settings.gemini_api_key},
            timeout=settings.request_timeout,
        )
        response.raise_for_status()
    except httpx.TimeoutException as e:
        logger.error(f"Gemini request timed out after {settings.request_timeout}s")
        raise LLMError(f"LLM request timed out after {settings.request_timeout}s") from e
    except httpx.HTTPStatusError as e:
        logger.error(f"Gemini HTTP error: {e.response.status_code} - {e.response.text[:200]}")
        raise LLMError(f"LLM request failed with status {e.response.status_code}") from e
    except httpx.HTTPError as e:
        logger.error(f"Gemini connection error: {e}")
        raise LLMError(f"Failed to connect to LLM: {e}") from e

    try:
        data = response.json()
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse Gemini response as JSON: {response.text[:200]}")
        raise LLMError("LLM returned invalid JSON") from e

    if not isinstance(data, dict):
        logger.error(f"Unexpected response type: {type(data)}")
        raise LLMError("LLM response is not a dictionary")

    candidates = data.get("candidates")
    if not candidates or not isinstance(candidates, list):
        feedback = data.get("promptFeedback")
        logger.error(f"Missing or invalid 'candidates' in response: {feedback or data}")
        raise LLMError("LLM response missing 'candidates' array")

    candidate = candidates[0]
    if not isinstance(candidate, dict):
        logger.error(f"Invalid candidate in response: {candidate!r}")
        raise LLMError("LLM response candidate is not an object")

    content = candidate.get("content")
    if not isinstance(content, dict):
        logger.error(f"Missing or invalid 'content' in candidate: {candidate}")
        raise LLMError("LLM response missing content")

    parts = content.get("parts") or []
    if not isinstance(parts, list):
        logger.error(f"Invalid 'parts' in content: {parts!r}")
        raise LLMError("LLM response 'parts' is not a list")

    # Non-text parts and null text contribute nothing
    text = "".join(
        part["text"] for part in parts
        if isinstance(part, dict) and isinstance(part.get("text"), str)
    )
    logger.debug(f"Gemini response length: {len(text)} chars")

    return text
