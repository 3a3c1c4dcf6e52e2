"""
classification.py — Pydantic models for the hazard classifier.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field

Sentiment = Literal["positive", "negative", "neutral"]


class ClassificationResult(BaseModel):
    """Verdict for a single report description."""

    is_valid_hazard: bool
    severity_score: int = Field(ge=1, le=10)
    reasoning: str
    keywords: list[str] = Field(default_factory=list)
    language: str = "en"
    confidence: float = Field(ge=0.0, le=1.0)


class SocialClassification(BaseModel):
    """Keyword-only triage for a short social post."""

    is_relevant: bool
    hazard_type_guess: Optional[str] = None  # "high-waves" | "unusual-tide" | None
    sentiment: Sentiment
    confidence: float = Field(ge=0.0, le=1.0)
    keywords: list[str] = Field(default_factory=list)


class ClassifyRequest(BaseModel):
    """Body of POST /api/v1/classify."""

    description: Optional[str] = Field(default=None, max_length=5000)
    language: str = Field(default="en", min_length=2, max_length=8)


class ClassifySocialRequest(BaseModel):
    """Body of POST /api/v1/classify/social."""

    text: str = Field(..., min_length=1, max_length=2000)
    language: str = Field(default="en", min_length=2, max_length=8)
