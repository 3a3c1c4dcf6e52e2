"""
classify.py — Direct access to the hazard classifier.

Routes:
  POST /api/v1/classify          — classify a report description (keyword + one Gemini call)
  POST /api/v1/classify/social   — keyword-only triage for a social post (no AI call)

The first route never fails because of the AI provider: a timeout, an
outage or an unparsable reply degrades to the keyword assessment, which is
reported in `reasoning`.
"""

import logging

from fastapi import APIRouter, Request

from app.ai.hazard_classifier import hazard_classifier
from app.core.rate_limit import limiter
from app.models.classification import (
    ClassificationResult,
    ClassifyRequest,
    ClassifySocialRequest,
    SocialClassification,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/classify", tags=["classify"])


@router.post("", response_model=ClassificationResult)
@limiter.limit("30/minute")
async def classify_description(request: Request, payload: ClassifyRequest):
    result = await hazard_classifier.classify(payload.description, payload.language)
    logger.debug(
        "Classify: valid=%s severity=%d keywords=%s",
        result.is_valid_hazard, result.severity_score, result.keywords,
    )
    return result


@router.post("/social", response_model=SocialClassification)
@limiter.limit("120/minute")
async def classify_social(request: Request, payload: ClassifySocialRequest):
    return hazard_classifier.classify_social_post(payload.text, payload.language)
