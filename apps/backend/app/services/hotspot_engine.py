"""
hotspot_engine.py — Turns a report snapshot into ranked hotspots.

Clustering strategy: fixed-radius, single-pass STAR clustering.

    claimed = {}
    for each unclaimed report R (input order):
        neighbours = unclaimed reports within radius_km of R (haversine)
        if len(neighbours) >= 2:
            cluster = R + neighbours → Hotspot; claim them all

Each cluster is anchored at one report and only contains that report's
direct neighbours; overlapping stars are never merged. The intensity
formula below is calibrated against exactly this behaviour, so do not
swap in DBSCAN or transitive merging without recalibrating it.

Intensity
─────────
    intensity = round(min(10, count*2 + avg_severity*1.5 + recent_count*3))
    radius    = clamp(raw_intensity / 20, 0.01, 0.1)      # degrees, render hint

USAGE
─────
    from app.services.hotspot_engine import cluster_reports

    hotspots = cluster_reports(reports)   # descending by intensity

TESTING
────────
    pytest apps/backend/tests/test_hotspot_engine.py -v
"""

from __future__ import annotations

import math
import uuid
from datetime import datetime, timedelta, timezone
from typing import Sequence

from app.models.hotspot import Hotspot
from app.models.report import Report

# ── Tuning constants ──────────────────────────────────────────────────────────

EARTH_RADIUS_KM = 6371.0
DEFAULT_RADIUS_KM = 5.0       # ≈ 0.05° of latitude
MIN_NEIGHBOURS = 2            # anchor + 2 neighbours = 3 reports minimum
RECENT_WINDOW = timedelta(hours=24)

_COUNT_WEIGHT = 2.0
_SEVERITY_WEIGHT = 1.5
_RECENT_WEIGHT = 3.0
_MAX_INTENSITY = 10.0

_MIN_RADIUS_DEG = 0.01
_MAX_RADIUS_DEG = 0.1

# Display bands (same thresholds as the dashboard colours)
_LEVEL_THRESHOLDS = [
    (8, "CRITICAL"),
    (6, "HIGH"),
    (4, "MODERATE"),
    (0, "LOW"),
]


# ── Pure scoring functions ────────────────────────────────────────────────────

def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points, in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def compute_raw_intensity(report_count: int, avg_severity: float, recent_count: int) -> float:
    """Unrounded intensity, capped at 10."""
    return min(
        _MAX_INTENSITY,
        report_count * _COUNT_WEIGHT + avg_severity * _SEVERITY_WEIGHT + recent_count * _RECENT_WEIGHT,
    )


def compute_intensity(report_count: int, avg_severity: float, recent_count: int) -> int:
    """
    Integer intensity in [0, 10], rounded half-up.

    Monotonically non-decreasing in each argument.
    """
    return int(math.floor(compute_raw_intensity(report_count, avg_severity, recent_count) + 0.5))


def compute_radius(raw_intensity: float) -> float:
    return max(_MIN_RADIUS_DEG, min(_MAX_RADIUS_DEG, raw_intensity / 20))


def compute_level(intensity: int) -> str:
    for threshold, level in _LEVEL_THRESHOLDS:
        if intensity >= threshold:
            return level
    return "LOW"


def average_severity(reports: Sequence[Report]) -> float:
    """Mean of the severity scores that are present; 1 when none are."""
    scores = [r.severity_score for r in reports if r.severity_score is not None]
    if not scores:
        return 1.0
    return sum(scores) / len(scores)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def count_recent(reports: Sequence[Report], now: datetime) -> int:
    cutoff = now - RECENT_WINDOW
    return sum(1 for r in reports if _as_utc(r.created_at) > cutoff)


# ── Clustering ────────────────────────────────────────────────────────────────

def build_hotspot(members: Sequence[Report], now: datetime) -> Hotspot:
    """Aggregate one star cluster into a Hotspot."""
    count = len(members)
    avg = average_severity(members)
    recent = count_recent(members, now)
    raw = compute_raw_intensity(count, avg, recent)
    intensity = compute_intensity(count, avg, recent)

    return Hotspot(
        id=f"hotspot_{uuid.uuid4().hex[:12]}",
        latitude=sum(r.latitude for r in members) / count,
        longitude=sum(r.longitude for r in members) / count,
        intensity=intensity,
        radius=compute_radius(raw),
        report_count=count,
        avg_severity=round(avg, 1),
        hazard_types=list(dict.fromkeys(r.hazard_type.value for r in members)),
        level=compute_level(intensity),
        last_updated=now,
    )


def find_clusters(reports: Sequence[Report], radius_km: float = DEFAULT_RADIUS_KM) -> list[list[Report]]:
    """Star clusters of size >= 3, anchors taken in input order."""
    claimed: set[int] = set()
    clusters: list[list[Report]] = []

    for i, anchor in enumerate(reports):
        if i in claimed:
            continue
        neighbours = [
            j for j, other in enumerate(reports)
            if j != i and j not in claimed
            and haversine_km(anchor.latitude, anchor.longitude, other.latitude, other.longitude) <= radius_km
        ]
        if len(neighbours) < MIN_NEIGHBOURS:
            continue
        members = [i, *neighbours]
        claimed.update(members)
        clusters.append([reports[j] for j in members])

    return clusters


def cluster_reports(
    reports: Sequence[Report],
    *,
    now: datetime | None = None,
    radius_km: float = DEFAULT_RADIUS_KM,
) -> list[Hotspot]:
    """
    Compute hotspots for a report snapshot, sorted by intensity (highest first).

    Pure function of its input: the same snapshot always yields the same
    memberships and intensities (only ids and timestamps differ).
    """
    if not reports:
        return []
    now = now or datetime.now(tz=timezone.utc)
    snapshot = list(reports)
    hotspots = [build_hotspot(members, now) for members in find_clusters(snapshot, radius_km)]
    return sorted(hotspots, key=lambda h: h.intensity, reverse=True)
