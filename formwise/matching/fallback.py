"""Deterministic, always-available field-to-record scorer."""
from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import List, Sequence, Set

from .constants import (
    FIELD_PURPOSE_KEYWORDS,
    MAX_ALTERNATIVES,
    MIN_MATCH_CONFIDENCE,
    SCORE_WEIGHTS,
    STOP_WORDS,
)
from .models import (
    AlternativeMatch,
    CompressedField,
    CompressedRecord,
    FieldMapping,
    RecordInput,
    create_empty_mapping,
    parse_records,
    round_confidence,
)

logger = logging.getLogger(__name__)

_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")

REASON_SEPARATOR = " · "


def tokenize(text: str) -> Set[str]:
    """Lowercase word set without stop words or one-character tokens."""

    return {
        word
        for word in _TOKEN_SPLIT.split(text.lower())
        if len(word) >= 2 and word not in STOP_WORDS
    }


def token_overlap(left: Set[str], right: Set[str]) -> int:
    return len(left & right)


@dataclass(slots=True)
class _Candidate:
    record: CompressedRecord
    score: float
    reasons: List[str]


class FallbackMatcher:
    """Weighted heuristic over purpose, context, category and label signals."""

    async def match_fields(
        self,
        fields: Sequence[CompressedField],
        records: Sequence[RecordInput],
    ) -> List[FieldMapping]:
        return self.match(fields, records)

    def match(
        self,
        fields: Sequence[CompressedField],
        records: Sequence[RecordInput],
    ) -> List[FieldMapping]:
        """Synchronous entry point; one mapping per field, in input order."""

        started = time.perf_counter()
        try:
            valid_records = parse_records(records)
            mappings = [self.match_single_field(field, valid_records) for field in fields]
        except Exception as exc:
            logger.error("Fallback matching failed", exc_info=exc)
            return [create_empty_mapping(field.id, "Fallback matching error") for field in fields]

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info("Fallback matching completed in %.2fms for %d fields", elapsed_ms, len(fields))
        return mappings

    def match_single_field(
        self, field: CompressedField, records: Sequence[CompressedRecord]
    ) -> FieldMapping:
        if not records:
            return create_empty_mapping(field.id, "No records available")

        candidates = [
            _Candidate(
                record=record,
                score=self.calculate_match_score(field, record),
                reasons=self.build_match_reasons(field, record),
            )
            for record in records
        ]
        # sorted() is stable, so equal scores keep record order.
        candidates = sorted(
            (candidate for candidate in candidates if candidate.score > 0),
            key=lambda candidate: candidate.score,
            reverse=True,
        )
        if not candidates:
            return create_empty_mapping(field.id, "No matching record found")

        best = candidates[0]
        confidence = round_confidence(best.score)
        alternatives = [
            AlternativeMatch(
                record_id=candidate.record.id,
                value=candidate.record.answer,
                confidence=round_confidence(candidate.score),
            )
            for candidate in candidates[1 : 1 + MAX_ALTERNATIVES]
            if candidate.record.id != best.record.id
        ]

        if confidence < MIN_MATCH_CONFIDENCE:
            return FieldMapping(
                field_id=field.id,
                record_id=None,
                value=None,
                confidence=confidence,
                reasoning=(
                    f"Low confidence match ({confidence * 100:.0f}%). "
                    f"{REASON_SEPARATOR.join(best.reasons)}"
                ),
                alternatives=alternatives,
            )

        return FieldMapping(
            field_id=field.id,
            record_id=best.record.id,
            value=best.record.answer,
            confidence=confidence,
            reasoning=REASON_SEPARATOR.join(best.reasons),
            alternatives=alternatives,
        )

    def calculate_match_score(self, field: CompressedField, record: CompressedRecord) -> float:
        score = (
            self.score_purpose_match(field, record) * SCORE_WEIGHTS["purpose"]
            + self.score_context_similarity(field, record) * SCORE_WEIGHTS["context"]
            + self.score_category_match(field, record) * SCORE_WEIGHTS["category"]
            + self.score_label_overlap(field, record) * SCORE_WEIGHTS["label"]
        )
        return min(1.0, score)

    def score_purpose_match(self, field: CompressedField, record: CompressedRecord) -> float:
        matched = _matched_purpose_keywords(field, record)
        if not matched:
            return 0.0
        return min(1.0, 0.6 + len(matched) * 0.2)

    def score_context_similarity(self, field: CompressedField, record: CompressedRecord) -> float:
        if not field.context or not record.question:
            return 0.0
        field_tokens = tokenize(field.context)
        record_tokens = tokenize(record.question)
        overlap = token_overlap(field_tokens, record_tokens)
        if overlap == 0:
            return 0.0
        return overlap / len(field_tokens | record_tokens)

    def score_category_match(self, field: CompressedField, record: CompressedRecord) -> float:
        labels = " ".join(field.labels).lower()
        category = record.category.lower()
        if category and category in labels:
            return 0.8
        overlap = token_overlap(tokenize(category), tokenize(labels))
        return min(0.6, overlap * 0.3) if overlap > 0 else 0.0

    def score_label_overlap(self, field: CompressedField, record: CompressedRecord) -> float:
        labels = " ".join(field.labels)
        overlap = token_overlap(tokenize(labels), tokenize(f"{record.question} {record.answer}"))
        return min(1.0, overlap * 0.5) if overlap > 0 else 0.0

    def build_match_reasons(self, field: CompressedField, record: CompressedRecord) -> List[str]:
        reasons: List[str] = []
        if _matched_purpose_keywords(field, record):
            reasons.append(f'Purpose "{field.purpose}" matches record context')

        if record.category and record.category.lower() in " ".join(field.labels).lower():
            reasons.append(f'Category "{record.category}" found in field labels')

        if field.context and record.question:
            overlap = token_overlap(tokenize(field.context), tokenize(record.question))
            if overlap > 0:
                reasons.append(f"{overlap} shared keywords with record question")

        if not reasons:
            reasons.append("Weak match based on partial context overlap")
        return reasons


def _matched_purpose_keywords(field: CompressedField, record: CompressedRecord) -> List[str]:
    if field.purpose == "unknown":
        return []
    keywords = FIELD_PURPOSE_KEYWORDS.get(field.purpose, ())
    record_text = f"{record.question} {record.category}".lower()
    return [keyword for keyword in keywords if keyword.lower() in record_text]


__all__ = ["FallbackMatcher", "REASON_SEPARATOR", "token_overlap", "tokenize"]
