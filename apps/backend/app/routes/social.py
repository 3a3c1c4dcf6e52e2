"""
social.py — Simulated social-media feed for the analyst dashboard.

Routes:
  POST /api/v1/social/simulate   — insert mock posts (10 by default)
  GET  /api/v1/social/posts      — latest relevant posts, newest first
  POST /api/v1/social/analyze    — analyse the next batch of unanalysed posts

Analysis is two-stage (see services/social_analysis.py): keyword triage on
every post, then one Gemini call for the relevant ones only.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from app.core.database import get_db
from app.core.rate_limit import limiter
from app.models.social import AnalyzeResponse, SimulateResponse, SocialPost
from app.services import social_analysis
from app.services.social_analysis import FEED_LIMIT, SOCIAL_POSTS, doc_to_post, make_simulated_posts

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/social", tags=["social"])


def _require_db(db):
    if db is None:
        raise HTTPException(status_code=503, detail="Database unavailable")
    return db


@router.post("/simulate", response_model=SimulateResponse, status_code=201)
async def simulate_posts(
    count: int = Query(default=10, ge=1, le=100),
    db=Depends(get_db),
):
    _require_db(db)
    posts = make_simulated_posts(count)
    await db[SOCIAL_POSTS].insert_many(posts)
    logger.info("Inserted %d simulated social post(s)", len(posts))
    return SimulateResponse(created=len(posts), message="Mock social media posts created.")


@router.get("/posts", response_model=list[SocialPost])
async def list_posts(
    limit: int = Query(default=FEED_LIMIT, ge=1, le=200),
    relevant_only: bool = Query(default=True),
    db=Depends(get_db),
):
    if db is None:
        return []
    query = {"is_relevant": True} if relevant_only else {}
    cursor = db[SOCIAL_POSTS].find(query).sort("post_timestamp", -1).limit(limit)
    return [doc_to_post(doc) async for doc in cursor]


@router.post("/analyze", response_model=AnalyzeResponse)
@limiter.limit("10/minute")
async def analyze_posts(request: Request, db=Depends(get_db)):
    _require_db(db)
    counts = await social_analysis.social_analyzer.analyze_batch(db)
    if counts["analyzed"] == 0:
        message = "No new posts to analyze."
    else:
        message = (
            f"Analyzed {counts['analyzed']} post(s); {counts['relevant']} relevant, "
            f"{counts['remote_calls']} AI call(s)."
        )
    logger.info(message)
    return AnalyzeResponse(**counts, message=message)
