"""
rate_limit.py — Shared slowapi limiter for the AI-backed routes.

Requests are keyed by client IP. Only routes that can trigger a Gemini
call (or a burst of keyword work) opt in:

    @router.post("")
    @limiter.limit("30/minute")
    async def classify_description(request: Request, payload: ClassifyRequest):
        ...

The limiter is attached to app.state in main.py together with the
RateLimitExceeded → 429 handler.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
