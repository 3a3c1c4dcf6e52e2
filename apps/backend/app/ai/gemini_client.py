"""
GeminiClient — Async wrapper around Google Generative AI SDK.

This is the remote classification provider for TideWatch. Every call is a
single request: model id + prompt text + an optional structured-output
(JSON) instruction. Retries, timeouts and fallbacks belong to the caller
(see hazard_classifier.py), not to this wrapper.

Supports two runtime modes (set via AI_MOCK_MODE env var):
  - MOCK mode (default): returns deterministic canned responses.
    Use for tests and local dev without API keys.
  - REAL mode: makes actual Gemini API calls.
    Requires GEMINI_API_KEY to be set.

Extension pattern: add new mock response keys to _MOCK_RESPONSES and
reference them in generate() calls via the response_key parameter.
"""

import logging
import os
from typing import Any

# Python 3.14 + protobuf native extension can fail when importing Gemini deps.
# Keep this as default-only so users can still override it explicitly.
os.environ.setdefault("PROTOCOL_BUFFERS_PYTHON_IMPLEMENTATION", "python")

import google.generativeai as genai

from app.core.config import settings

logger = logging.getLogger(__name__)


# Canned responses for mock mode.
# Keys map to response_key arguments in generate() calls.
_MOCK_RESPONSES: dict[str, str] = {
    "default": (
        "[MOCK] This is a placeholder Gemini response. "
        "Set AI_MOCK_MODE=false and provide GEMINI_API_KEY for real responses."
    ),
    "hazard_report": (
        '{"is_valid_hazard": true, "severity_score": 6, '
        '"reasoning": "[MOCK] Description reports abnormal sea behaviour near the shore; '
        'treated as a moderate coastal hazard pending field verification.", '
        '"keywords": ["wave", "coast"], "language": "en", "confidence": 0.72}'
    ),
    "social_post": (
        '{"is_relevant": true, "sentiment": "Negative"}'
    ),
}


class GeminiClient:
    """
    Central Gemini interface for the TideWatch backend.

    One place for model swaps, cost logging and mock
    injection. Don't instantiate per-request; use the module-level
    `gemini_client` singleton (tests may build their own).
    """

    def __init__(self) -> None:
        self.mock_mode = settings.ai_mock_mode
        self.default_model = settings.classifier_model

        if not self.mock_mode:
            if not settings.gemini_api_key:
                logger.warning(
                    "GEMINI_API_KEY not set — falling back to mock mode. "
                    "Set AI_MOCK_MODE=true to silence this warning."
                )
                self.mock_mode = True
            else:
                genai.configure(api_key=settings.gemini_api_key)
                self._genai = genai

        if self.mock_mode:
            logger.info("GeminiClient initialised in MOCK mode")
        else:
            logger.info("GeminiClient initialised in REAL mode (model: %s)", self.default_model)

    async def generate(
        self,
        prompt: str,
        model: str | None = None,
        response_key: str = "default",
        json_output: bool = False,
        **generation_kwargs: Any,
    ) -> str:
        """
        Generate text from a Gemini model.

        Args:
            prompt:             The full prompt string.
            model:              Gemini model id (defaults to settings.classifier_model).
            response_key:       Mock response key (ignored in real mode).
            json_output:        Ask the model for a JSON body (structured output).
            **generation_kwargs: Extra generation_config entries (temperature, …).

        Returns:
            Generated text string.

        Raises:
            Exception: Propagates Gemini SDK errors in real mode.
        """
        if self.mock_mode:
            return _MOCK_RESPONSES.get(response_key, _MOCK_RESPONSES["default"])

        model_id = model or self.default_model
        generation_config = dict(generation_kwargs)
        if json_output:
            generation_config["response_mime_type"] = "application/json"

        try:
            gemini_model = self._genai.GenerativeModel(model_id)
            response = await gemini_model.generate_content_async(
                prompt,
                generation_config=generation_config or None,
            )
            return response.text
        except Exception as exc:
            logger.error("Gemini API error (model=%s): %s", model_id, exc)
            raise


# Module-level singleton: import and use this everywhere
gemini_client = GeminiClient()
