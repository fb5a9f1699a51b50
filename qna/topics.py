"""
Topic and aspect extraction.

Pure, deterministic helpers. The traversal policies and the automation loop
both rely on repeatable topic sets for de-duplication and coverage decisions,
so nothing here may depend on state or randomness.
"""

from __future__ import annotations
import re

# label -> keyword stems (matched at a word start, so "user" also hits "users")
TOPIC_KEYWORDS: dict[str, tuple[str, ...]] = {
    "audience": ("audience", "user", "visitor", "customer", "persona", "driver", "member"),
    "purpose": ("purpose", "goal", "objective", "problem", "why"),
    "features": ("feature", "function", "capabilit", "workflow"),
    "platform": ("platform", "mobile", "desktop", "web", "ios", "android", "device", "browser"),
    "payment": ("payment", "pay", "price", "pricing", "billing", "checkout", "subscription"),
    "data": ("data", "content", "information", "record", "report"),
    "security": ("security", "secure", "privacy", "login", "authentic", "permission"),
    "accessibility": ("accessib", "a11y", "screen reader", "contrast", "disabilit"),
    "performance": ("performance", "speed", "fast", "latency", "scale", "real-time", "realtime"),
    "visual": ("design", "style", "color", "colour", "layout", "theme", "brand", "look"),
    "integration": ("integrat", "api", "third-party", "sync", "import", "export"),
    "constraints": ("constraint", "budget", "deadline", "timeline", "limit", "regulat", "complian"),
    "location": ("location", "map", "gps", "nearby", "address", "navigation"),
    "notifications": ("notif", "alert", "remind", "email", "sms"),
}

_PATTERNS: dict[str, re.Pattern[str]] = {
    label: re.compile(r"\b(?:" + "|".join(re.escape(k) for k in keywords) + r")", re.IGNORECASE)
    for label, keywords in TOPIC_KEYWORDS.items()
}

# sentence boundaries, semicolons, commas, and/or/plus conjunctions
_ASPECT_SPLIT_RE = re.compile(r"[.!?;\n,]+|\s+(?:and|or|plus|as well as)\s+|\s*&\s*", re.IGNORECASE)

MAX_CHILDREN_PER_NODE = 3


def extract_topics(text: str | None) -> set[str]:
    """Map a question or answer to coarse topic labels."""
    if not text:
        return set()
    return {label for label, pattern in _PATTERNS.items() if pattern.search(text)}


def extract_aspects(answer: str | None) -> list[str]:
    """Split an answer into clause-level aspects, first occurrence wins."""
    if not answer:
        return []
    aspects: list[str] = []
    seen: set[str] = set()
    for part in _ASPECT_SPLIT_RE.split(answer):
        clause = part.strip(" \t-*\"'()")
        if len(clause) < 2:
            continue
        key = clause.lower()
        if key in seen:
            continue
        seen.add(key)
        aspects.append(clause)
    return aspects


def child_target(answer: str | None) -> int:
    """How many children an answered node deserves (capped)."""
    return min(MAX_CHILDREN_PER_NODE, len(extract_aspects(answer)))


def aspect_covered(aspect: str, covered_topics: set[str], covered_texts: list[str]) -> bool:
    """
    An aspect counts as covered when all of its topic labels were already
    covered, or when its text already appears in a covering question/answer.
    """
    topics = extract_topics(aspect)
    if topics and topics <= covered_topics:
        return True
    needle = aspect.lower()
    return any(needle in text.lower() for text in covered_texts if text)


def uncovered_aspects(aspects: list[str], covered_topics: set[str], covered_texts: list[str]) -> list[str]:
    return [a for a in aspects if not aspect_covered(a, covered_topics, covered_texts)]
