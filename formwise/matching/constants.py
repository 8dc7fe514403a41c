"""Shared tables and limits for the matching strategies."""
from __future__ import annotations

from typing import Dict, FrozenSet, Tuple

FIELD_PURPOSE_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "name": ("name", "fullname", "first", "last", "given", "family"),
    "email": ("email", "mail", "e-mail", "inbox"),
    "phone": ("phone", "tel", "mobile", "cell", "telephone"),
    "address": ("address", "street", "addr", "location"),
    "city": ("city", "town"),
    "state": ("state", "province", "region"),
    "zip": ("zip", "postal", "postcode"),
    "country": ("country", "nation"),
    "company": ("company", "organization", "employer", "business"),
    "title": ("title", "position", "role", "job"),
}

STOP_WORDS: FrozenSet[str] = frozenset(
    {
        "the",
        "and",
        "for",
        "with",
        "your",
        "please",
        "enter",
        "type",
        "here",
        "click",
        "select",
        "choose",
        "submit",
        "field",
        "form",
        "info",
        "information",
        "optional",
        "required",
    }
)

# Weighted blend used by the rule-based scorer.
SCORE_WEIGHTS: Dict[str, float] = {
    "purpose": 0.4,
    "context": 0.3,
    "category": 0.2,
    "label": 0.1,
}

MIN_MATCH_CONFIDENCE = 0.35
MAX_ALTERNATIVES = 3
MAX_FIELDS_PER_PAGE = 200
MAX_RECORDS_FOR_MATCHING = 50
PROMPT_ANSWER_PREVIEW = 100

CONFIDENCE_LEVELS: Dict[str, float] = {
    "high": 0.8,
    "medium": 0.5,
    "low": 0.0,
}
