"""
hazard_lexicon.py — Deterministic multilingual hazard-keyword scorer.

This is the always-available half of the classifier: it runs before every
remote call and is the whole answer when the provider is down. Pure
functions, no I/O, identical output for identical input.

USAGE
─────
    from app.ai.hazard_lexicon import score_text

    score = score_text("URGENT tsunami warning near the coast", "en")
    # score.keywords → ["tsunami", "warning"]
    # score.severity → 8

Severity floor
──────────────
    8  any high-severity keyword   (tsunami, emergency, evacuate …)
    5  any medium-severity keyword (flood, storm, cyclone …)
    3  any other lexicon keyword
    1  no match
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Language(str, Enum):
    EN = "en"
    HI = "hi"
    TA = "ta"
    TE = "te"
    BN = "bn"

    @classmethod
    def from_code(cls, code: str | None) -> "Language":
        """Map an ISO code to a supported language; anything unknown is English."""
        if code:
            try:
                return cls(code.strip().lower())
            except ValueError:
                pass
        return cls.EN


@dataclass(frozen=True)
class Lexicon:
    high: tuple[str, ...]
    medium: tuple[str, ...]
    other: tuple[str, ...]

    @property
    def all_keywords(self) -> tuple[str, ...]:
        return self.high + self.medium + self.other


@dataclass(frozen=True)
class KeywordScore:
    keywords: list[str] = field(default_factory=list)
    severity: int = 1


# ── Severity tiers ────────────────────────────────────────────────────────────

SEVERITY_HIGH = 8
SEVERITY_MEDIUM = 5
SEVERITY_ANY = 3
SEVERITY_NONE = 1

# ── Keyword tables ────────────────────────────────────────────────────────────
# Only tsunami / flood terms are tiered outside English. Native-script storm,
# cyclone and emergency words score like any other keyword (severity 3).

_LEXICONS: dict[Language, Lexicon] = {
    Language.EN: Lexicon(
        high=("tsunami", "emergency", "evacuate"),
        medium=("flood", "storm", "cyclone"),
        other=("wave", "tide", "erosion", "hurricane", "damage", "danger", "warning"),
    ),
    Language.HI: Lexicon(
        high=("सुनामी",),
        medium=("बाढ़",),
        other=("आपातकाल", "तूफान", "चक्रवात", "लहर", "ज्वार", "कटाव", "खतरा", "चेतावनी"),
    ),
    Language.TA: Lexicon(
        high=("சுனாமி",),
        medium=("வெள்ளம்",),
        other=("புயல்", "சூறாவளி", "அலை", "ஓதம்", "அரிப்பு", "ஆபத்து", "எச்சரிக்கை"),
    ),
    Language.TE: Lexicon(
        high=("సునామి",),
        medium=("వరద",),
        other=("తుఫాను", "చక్రవాతం", "అల", "ఓడ", "కోత", "ప్రమాదం", "హెచ్చరిక"),
    ),
    Language.BN: Lexicon(
        high=("সুনামি",),
        medium=("বন্যা",),
        other=("ঝড়", "ঘূর্ণিঝড়", "তরঙ্গ", "জোয়ার", "ক্ষয়", "বিপদ", "সতর্কতা"),
    ),
}


def lexicon_for(language: str | Language | None) -> Lexicon:
    return _LEXICONS[Language.from_code(language)]


# ── Pure scoring functions ────────────────────────────────────────────────────

def detect_keywords(text: str, language: str | Language | None = "en") -> list[str]:
    """
    Return the lexicon keywords that occur in `text`, in lexicon order.

    Matching is a case-insensitive substring test, so "Flooding" matches
    "flood".
    """
    if not text:
        return []
    lowered = text.casefold()
    return [kw for kw in lexicon_for(language).all_keywords if kw.casefold() in lowered]


def keyword_severity(keywords: list[str], language: str | Language | None = "en") -> int:
    """Severity floor for a list of already-detected keywords."""
    lexicon = lexicon_for(language)
    high = {kw.casefold() for kw in lexicon.high}
    medium = {kw.casefold() for kw in lexicon.medium}

    severity = SEVERITY_NONE
    for kw in keywords:
        kw = kw.casefold()
        if kw in high:
            severity = max(severity, SEVERITY_HIGH)
        elif kw in medium:
            severity = max(severity, SEVERITY_MEDIUM)
        else:
            severity = max(severity, SEVERITY_ANY)
    return severity


def score_text(text: str, language: str | Language | None = "en") -> KeywordScore:
    keywords = detect_keywords(text, language)
    return KeywordScore(keywords=keywords, severity=keyword_severity(keywords, language))
