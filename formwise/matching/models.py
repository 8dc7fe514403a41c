"""Compressed matcher inputs and the mapping output shared by every strategy."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Union

from ..detection.models import DetectedField, FieldPurpose, FieldType

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CompressedField:
    """The minimal view of a field the matchers reason about."""

    id: str
    type: FieldType
    purpose: FieldPurpose
    labels: List[str] = field(default_factory=list)
    context: str = ""

    @classmethod
    def from_detected(cls, detected: DetectedField) -> CompressedField:
        metadata = detected.metadata
        return cls(
            id=detected.id,
            type=metadata.field_type,
            purpose=metadata.field_purpose,
            labels=metadata.labels(),
            context=metadata.context(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "purpose": self.purpose,
            "labels": list(self.labels),
            "context": self.context,
        }


@dataclass(slots=True)
class CompressedRecord:
    """A stored question/answer/category triple."""

    id: str
    answer: str
    category: str = ""
    question: str = ""

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> CompressedRecord:
        """Create a record from a loosely typed mapping.

        Raises ``ValueError`` when the id or answer is missing.
        """

        record_id = payload.get("id")
        if record_id is None or not str(record_id).strip():
            raise ValueError("Record payload must include an 'id'")
        answer = payload.get("answer")
        if not isinstance(answer, str) or not answer.strip():
            raise ValueError(f"Record {record_id!r} has no answer")
        return cls(
            id=str(record_id),
            answer=answer,
            category=str(payload.get("category") or ""),
            question=str(payload.get("question") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "question": self.question,
            "answer": self.answer,
            "category": self.category,
        }


RecordInput = Union[CompressedRecord, Mapping[str, Any]]


def parse_records(records: Iterable[RecordInput]) -> List[CompressedRecord]:
    """Validate records, silently skipping malformed or duplicate entries."""

    parsed: List[CompressedRecord] = []
    seen: set[str] = set()
    for index, record in enumerate(records):
        try:
            if isinstance(record, CompressedRecord):
                candidate = record
                if not candidate.id or not candidate.answer:
                    raise ValueError("Record is missing an id or answer")
            elif isinstance(record, Mapping):
                candidate = CompressedRecord.from_mapping(record)
            else:
                raise ValueError(f"Unsupported record payload type {type(record).__name__}")
        except ValueError as exc:
            logger.debug("Skipping malformed record", extra={"index": index, "reason": str(exc)})
            continue
        if candidate.id in seen:
            logger.debug("Skipping duplicate record", extra={"record_id": candidate.id})
            continue
        seen.add(candidate.id)
        parsed.append(candidate)
    return parsed


@dataclass(slots=True)
class AlternativeMatch:
    record_id: str
    value: str
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {"record_id": self.record_id, "value": self.value, "confidence": self.confidence}


@dataclass(slots=True)
class FieldMapping:
    """One field's proposed record, with confidence, reasoning and alternatives."""

    field_id: str
    record_id: Optional[str]
    value: Optional[str]
    confidence: float
    reasoning: str
    alternatives: List[AlternativeMatch] = field(default_factory=list)
    auto_fill: bool = False

    @property
    def is_matched(self) -> bool:
        return self.record_id is not None and self.value is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field_id": self.field_id,
            "record_id": self.record_id,
            "value": self.value,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "alternatives": [alternative.to_dict() for alternative in self.alternatives],
            "auto_fill": self.auto_fill,
        }


@dataclass(slots=True)
class MatchingResult:
    """Telemetry wrapper around a mapping list."""

    success: bool
    mappings: List[FieldMapping] = field(default_factory=list)
    processing_time: Optional[float] = None
    error: Optional[str] = None

    @property
    def matched_count(self) -> int:
        return sum(1 for mapping in self.mappings if mapping.record_id is not None)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": self.success,
            "mappings": [mapping.to_dict() for mapping in self.mappings],
            "processing_time": self.processing_time,
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


class MatchingStrategy(Protocol):
    """Contract shared by the rule-based and the model-backed matcher."""

    async def match_fields(
        self,
        fields: Sequence[CompressedField],
        records: Sequence[RecordInput],
    ) -> List[FieldMapping]:
        ...


def round_confidence(value: float) -> float:
    """Clamp to [0, 1] and round half-up to two decimals."""

    clamped = max(0.0, min(1.0, float(value)))
    return math.floor(clamped * 100 + 0.5) / 100


def create_empty_mapping(field_id: str, reason: str, **overrides: Any) -> FieldMapping:
    mapping = FieldMapping(
        field_id=field_id,
        record_id=None,
        value=None,
        confidence=0.0,
        reasoning=reason,
        alternatives=[],
    )
    for key, value in overrides.items():
        setattr(mapping, key, value)
    return mapping


__all__ = [
    "AlternativeMatch",
    "CompressedField",
    "CompressedRecord",
    "FieldMapping",
    "MatchingResult",
    "MatchingStrategy",
    "RecordInput",
    "create_empty_mapping",
    "parse_records",
    "round_confidence",
]
