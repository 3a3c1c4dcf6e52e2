"""
hazard_classifier.py — Severity/validity classification for hazard reports.

Pipeline for classify():

  1. Reject empty or very short descriptions outright (no remote call).
  2. Score the text against the keyword lexicon (cheap, always available).
  3. Make exactly ONE remote Gemini request with a JSON-output instruction,
     bounded by settings.classifier_timeout_seconds.
  4. Validate every field of the reply individually (clamp / default).
  5. On any failure in 3–4 (transport error, provider error, timeout,
     unparsable body, missing is_valid_hazard) return the keyword result.

There is no retry: a failed call degrades to the keyword
verdict and the report carries on with confidence 0.5.

classify_social_post() never touches the network. Social content is mostly
noise, so it is triaged on keywords alone; paid remote analysis of social
posts is a separate batch job (services/social_analysis.py).
"""

import asyncio
import json
import logging
import math
import re
from typing import Any

from app.ai.gemini_client import GeminiClient, gemini_client
from app.ai.hazard_lexicon import KeywordScore, score_text
from app.core.config import settings
from app.core.errors import MalformedResponse, RemoteUnavailable
from app.models.classification import ClassificationResult, SocialClassification

logger = logging.getLogger(__name__)

MIN_DESCRIPTION_LENGTH = 10

TOO_SHORT_REASONING = "No description provided or description too short for analysis."
FALLBACK_REASONING = "AI analysis failed, using keyword-based assessment."
DEFAULT_REASONING = "AI analysis completed"

FALLBACK_CONFIDENCE = 0.5
DEFAULT_REMOTE_CONFIDENCE = 0.7


_CLASSIFY_PROMPT = """\
You are a disaster management analyst at an ocean information service.
A coastal resident has submitted the hazard report below, written in language "{language}".

REPORT:
"{description}"

Decide:
1. Is this a genuine ocean hazard? (tsunami, coastal flooding or inundation, high waves or swell surge,
   coastal erosion or damage, unusual tide behaviour, storm surge or cyclone impact)
2. How severe is it, from 1 (minor) to 10 (critical, life-threatening)?
3. Which words in the report indicate the hazard?
4. Which language is the report actually written in?
5. How confident are you, from 0.0 to 1.0?

Respond with valid JSON and nothing else:
{{
  "is_valid_hazard": <true|false>,
  "severity_score": <integer 1-10>,
  "reasoning": "<one or two sentences, in English>",
  "keywords": ["<keyword>", "..."],
  "language": "<ISO language code>",
  "confidence": <number 0.0-1.0>
}}"""


# ── Parsing helpers ────────────────────────────────────────────────────────────

def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _as_number(value: Any) -> float | None:
    """Coerce a JSON value to a finite float, or None when it isn't numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise MalformedResponse(f"is_valid_hazard is not a boolean: {value!r}")


def _extract_json(raw: str) -> dict:
    m = re.search(r"\{[\s\S]*\}", raw or "")
    if not m:
        raise MalformedResponse("no JSON object in provider reply")
    try:
        data = json.loads(m.group())
    except json.JSONDecodeError as exc:
        raise MalformedResponse(f"unparsable provider reply: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedResponse("provider reply is not a JSON object")
    return data


def parse_classification(raw: str, local: KeywordScore, language: str) -> ClassificationResult:
    """
    Build a ClassificationResult from a raw provider reply.

    Only is_valid_hazard is required; every other field is validated on its
    own and replaced by a safe default when missing or malformed.

    Raises:
        MalformedResponse: body is not JSON or is_valid_hazard is missing/invalid.
    """
    data = _extract_json(raw)
    if "is_valid_hazard" not in data:
        raise MalformedResponse("provider reply is missing is_valid_hazard")
    is_valid = _as_bool(data["is_valid_hazard"])

    severity = _as_number(data.get("severity_score"))
    if severity is None:
        severity = float(local.severity)
    severity_score = int(_clamp(_round_half_up(severity), 1, 10))

    confidence = _as_number(data.get("confidence"))
    if confidence is None:
        confidence = DEFAULT_REMOTE_CONFIDENCE
    confidence = _clamp(confidence, 0.0, 1.0)

    keywords = data.get("keywords")
    if isinstance(keywords, list):
        keywords = list(dict.fromkeys(str(k) for k in keywords if isinstance(k, (str, int, float))))
    else:
        keywords = list(local.keywords)

    reasoning = data.get("reasoning")
    if not isinstance(reasoning, str) or not reasoning.strip():
        reasoning = DEFAULT_REASONING

    detected_language = data.get("language")
    if not isinstance(detected_language, str) or not detected_language.strip():
        detected_language = language

    return ClassificationResult(
        is_valid_hazard=is_valid,
        severity_score=severity_score,
        reasoning=reasoning,
        keywords=keywords,
        language=detected_language,
        confidence=confidence,
    )


def keyword_fallback(local: KeywordScore, language: str) -> ClassificationResult:
    return ClassificationResult(
        is_valid_hazard=local.severity > 3,
        severity_score=local.severity,
        reasoning=FALLBACK_REASONING,
        keywords=list(local.keywords),
        language=language,
        confidence=FALLBACK_CONFIDENCE,
    )


# ── Classifier ────────────────────────────────────────────────────────────────

class HazardClassifier:
    """
    Combines the keyword scorer with one optional remote Gemini call.

    The client and timeout are injectable so tests can force the remote
    path to fail, hang, or return arbitrary bodies.
    """

    def __init__(self, client: GeminiClient | None = None, timeout: float | None = None) -> None:
        self.client = client or gemini_client
        self.timeout = timeout if timeout is not None else settings.classifier_timeout_seconds

    async def classify(self, description: str | None, language: str = "en") -> ClassificationResult:
        if not description or len(description.strip()) < MIN_DESCRIPTION_LENGTH:
            return ClassificationResult(
                is_valid_hazard=False,
                severity_score=1,
                reasoning=TOO_SHORT_REASONING,
                keywords=[],
                language=language,
                confidence=0.0,
            )

        local = score_text(description, language)
        prompt = _CLASSIFY_PROMPT.format(language=language, description=description.strip())

        try:
            raw = await self._request_remote(prompt)
            return parse_classification(raw, local, language)
        except (RemoteUnavailable, MalformedResponse) as exc:
            logger.warning("Hazard classification degraded to keywords: %s", exc)
            return keyword_fallback(local, language)

    async def _request_remote(self, prompt: str) -> str:
        """Exactly one provider request; every failure becomes RemoteUnavailable."""
        try:
            return await asyncio.wait_for(
                self.client.generate(
                    prompt,
                    response_key="hazard_report",
                    json_output=True,
                    temperature=0.3,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise RemoteUnavailable(f"provider timed out after {self.timeout:.1f}s") from exc
        except Exception as exc:
            raise RemoteUnavailable(str(exc) or exc.__class__.__name__) from exc

    def classify_social_post(self, text: str, language: str = "en") -> SocialClassification:
        """Keyword-only triage of a social post. Never calls the provider."""
        local = score_text(text, language)
        severity = local.severity

        if severity > 5:
            hazard_type_guess = "high-waves"
        elif severity > 3:
            hazard_type_guess = "unusual-tide"
        else:
            hazard_type_guess = None

        if severity > 6:
            sentiment = "negative"
        elif severity > 3:
            sentiment = "neutral"
        else:
            sentiment = "positive"

        return SocialClassification(
            is_relevant=severity > 2,
            hazard_type_guess=hazard_type_guess,
            sentiment=sentiment,
            confidence=min(severity / 10, 1.0),
            keywords=list(local.keywords),
        )


# Module-level singleton: routes and background workers share this
hazard_classifier = HazardClassifier()
