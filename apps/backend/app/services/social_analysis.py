"""
social_analysis.py — Simulated social feed + batch relevance analysis.

Two-stage triage keeps paid AI calls off the spam:

  1. classify_social_post()   keyword-only, free, every post
  2. one Gemini call          only for posts stage 1 found relevant

A failed or unparsable remote call marks the post not relevant with
neutral sentiment. Posts are processed in small batches (BATCH_SIZE) and
the route that triggers a batch is rate limited.
"""

import asyncio
import json
import logging
import random
import re
from datetime import datetime, timezone

from app.ai.gemini_client import GeminiClient, gemini_client
from app.ai.hazard_classifier import HazardClassifier, hazard_classifier
from app.core.config import settings
from app.models.social import SocialPost

logger = logging.getLogger(__name__)

SOCIAL_POSTS = "social_posts"
BATCH_SIZE = 5
FEED_LIMIT = 20

_LOCATIONS = ["Chennai", "Kolkata", "Mumbai", "Goa", "Visakhapatnam", "Puri"]
_USERNAMES = ["CoastalWatch", "OceanAlerts", "User123", "MarineLife", "DeepSeaDave", "CityReporter"]

# (mentioned hazard, text template). None marks spam.
_TEMPLATES: list[tuple[str | None, str]] = [
    ("high-waves", "Massive waves hitting {location} beach right now, stay away from the shore! #HighWaves"),
    ("coastal-flooding", "Flood water rising in the low-lying streets of {location}. Anyone else seeing this? #CoastalFlooding"),
    ("unusual-tide", "The tide at {location} is strangely low today. Is this normal? #Ocean"),
    ("tsunami-sighting", "Tsunami alert on my phone for the {location} coast, we are moving inland. #Tsunami"),
    (None, "Check out this amazing new crypto coin! #NotARealHazard"),
    (None, "Best holiday deals for {location}! Book now!"),
]

_SOCIAL_PROMPT = """\
You are a social media analyst for a coastal disaster management agency.
Decide whether the post below is about a real ocean hazard (tsunami, flooding, high waves, erosion,
unusual tides) and what its sentiment is.

POST:
"{post}"

Respond with valid JSON and nothing else:
{{
  "is_relevant": <true if it reports a real ocean hazard, false for spam, ads or unrelated chatter>,
  "sentiment": "<Positive|Negative|Neutral>"
}}"""


def make_simulated_posts(count: int = 10, rng: random.Random | None = None) -> list[dict]:
    """Build `count` mock post documents from the fixed templates."""
    rng = rng or random.Random()
    now = datetime.now(tz=timezone.utc)
    posts = []
    for _ in range(count):
        hazard, template = rng.choice(_TEMPLATES)
        location = rng.choice(_LOCATIONS)
        posts.append({
            "username": f"{rng.choice(_USERNAMES)}{rng.randint(0, 99)}",
            "post_content": template.format(location=location),
            "location_tag": location,
            "mentioned_hazard": hazard,
            "post_timestamp": now,
            "ai_analysis_complete": False,
        })
    return posts


def doc_to_post(doc: dict) -> SocialPost:
    return SocialPost(
        id=str(doc["_id"]),
        username=doc.get("username", ""),
        post_content=doc.get("post_content", ""),
        location_tag=doc.get("location_tag"),
        mentioned_hazard=doc.get("mentioned_hazard"),
        post_timestamp=doc.get("post_timestamp", datetime.now(tz=timezone.utc)),
        ai_analysis_complete=doc.get("ai_analysis_complete", False),
        is_relevant=doc.get("is_relevant"),
        sentiment=doc.get("sentiment"),
        keywords=doc.get("keywords", []),
    )


def _parse_social(raw: str) -> dict:
    """Parse the provider reply; unusable replies count as not relevant."""
    m = re.search(r"\{[\s\S]*\}", raw or "")
    if m:
        try:
            data = json.loads(m.group())
            relevant = data.get("is_relevant")
            sentiment = str(data.get("sentiment", "Neutral")).strip().lower()
            if isinstance(relevant, bool):
                return {
                    "is_relevant": relevant,
                    "sentiment": sentiment if sentiment in ("positive", "negative", "neutral") else "neutral",
                }
        except (json.JSONDecodeError, AttributeError):
            pass
    return {"is_relevant": False, "sentiment": "neutral"}


class SocialAnalyzer:
    def __init__(
        self,
        classifier: HazardClassifier | None = None,
        client: GeminiClient | None = None,
        timeout: float | None = None,
    ) -> None:
        self.classifier = classifier or hazard_classifier
        self.client = client or gemini_client
        self.timeout = timeout if timeout is not None else settings.classifier_timeout_seconds

    async def analyze_post(self, post_content: str, language: str = "en") -> tuple[dict, bool]:
        """
        Analyse one post. Returns (update fields, whether a remote call was made).
        """
        triage = self.classifier.classify_social_post(post_content, language)
        update = {
            "keywords": triage.keywords,
            "ai_analysis_complete": True,
        }
        if not triage.is_relevant:
            update.update({"is_relevant": False, "sentiment": triage.sentiment})
            return update, False

        try:
            raw = await asyncio.wait_for(
                self.client.generate(
                    _SOCIAL_PROMPT.format(post=post_content),
                    response_key="social_post",
                    json_output=True,
                ),
                timeout=self.timeout,
            )
            update.update(_parse_social(raw))
        except Exception as exc:
            logger.warning("Social post analysis failed, marking not relevant: %s", exc)
            update.update({"is_relevant": False, "sentiment": "neutral"})
        return update, True

    async def analyze_batch(self, db, limit: int = BATCH_SIZE) -> dict:
        """Analyse up to `limit` unanalysed posts; returns counters for the response."""
        cursor = db[SOCIAL_POSTS].find({"ai_analysis_complete": False}).limit(limit)
        posts = [doc async for doc in cursor]

        analyzed = relevant = remote_calls = 0
        for doc in posts:
            update, called = await self.analyze_post(doc.get("post_content", ""))
            await db[SOCIAL_POSTS].update_one({"_id": doc["_id"]}, {"$set": update})
            analyzed += 1
            relevant += int(bool(update.get("is_relevant")))
            remote_calls += int(called)

        return {"analyzed": analyzed, "relevant": relevant, "remote_calls": remote_calls}


social_analyzer = SocialAnalyzer()
