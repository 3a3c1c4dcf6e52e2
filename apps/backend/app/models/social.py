"""
social.py — Pydantic models for the simulated social-media feed.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class SocialPost(BaseModel):
    id: str
    username: str
    post_content: str
    location_tag: Optional[str] = None
    mentioned_hazard: Optional[str] = None
    post_timestamp: datetime
    ai_analysis_complete: bool = False
    is_relevant: Optional[bool] = None
    sentiment: Optional[str] = None
    keywords: list[str] = []


class SimulateResponse(BaseModel):
    created: int
    message: str


class AnalyzeResponse(BaseModel):
    analyzed: int
    relevant: int
    remote_calls: int
    message: str
