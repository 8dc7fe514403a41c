"""Language-model-backed matcher with complete rule-based fallback.

:class:`AIMatcher` asks a model for one decision per field. When the call
fails for any reason (transport error, timeout, empty or malformed output,
schema violation) the whole field set is handed to :class:`FallbackMatcher`
and its result is returned unchanged, so callers see the same shape either
way. The delegation lives in :meth:`AIMatcher._delegate_to_fallback`.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..errors import ModelResponseError
from .constants import MAX_ALTERNATIVES, MIN_MATCH_CONFIDENCE, PROMPT_ANSWER_PREVIEW
from .fallback import FallbackMatcher
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
from .providers import ModelClient

logger = logging.getLogger(__name__)

DEFAULT_REASONING = "AI-powered semantic match"
ALTERNATIVE_CONFIDENCE_PENALTY = 0.1


class AIMatch(BaseModel):
    """One field decision as returned by the model."""

    field_id: str
    record_id: Optional[str] = None
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""
    alternative_record_ids: List[str] = Field(default_factory=list)

    @field_validator("alternative_record_ids")
    @classmethod
    def _cap_alternatives(cls, value: List[str]) -> List[str]:
        return value[:MAX_ALTERNATIVES]


class BatchMatchResponse(BaseModel):
    matches: List[AIMatch] = Field(default_factory=list)
    reasoning: Optional[str] = None


SYSTEM_PROMPT = """You are an expert form-filling assistant that matches form fields to stored user records.

Your task is to analyze form fields and determine which stored record (if any) best matches each field.

Matching Criteria:
1. **Semantic Similarity**: The field's purpose should align with the record's content
2. **Context Alignment**: Field labels, placeholders, and helper text should relate to the record's question/category
3. **Type Compatibility**: Email fields need email records, phone fields need phone records, etc.
4. **Confidence Scoring**: Only suggest matches you're confident about (0.5+ confidence)

Important Rules:
- **NEVER** match password fields (they should have been filtered out already)
- Set record_id to null if no good match exists (confidence < 0.35)
- Provide clear reasoning for each match or rejection
- Include up to 3 alternative record ids when applicable
- Consider field purpose, labels, and context together

Output Format:
Respond with a single JSON object and nothing else:
{
  "matches": [
    {
      "field_id": "<field id>",
      "record_id": "<record id or null>",
      "confidence": 0.0,
      "reasoning": "<why this record was chosen or rejected>",
      "alternative_record_ids": ["<record id>"]
    }
  ],
  "reasoning": "<overall matching strategy>"
}
Return exactly one entry in "matches" per field."""


def build_user_prompt(fields: Sequence[CompressedField], records: Sequence[CompressedRecord]) -> str:
    field_blocks = "\n".join(
        f"\n**Field {index}**\n"
        f"- id: {field.id}\n"
        f"- type: {field.type}\n"
        f"- purpose: {field.purpose}\n"
        f"- labels: {', '.join(label for label in field.labels if label) or 'none'}\n"
        f"- context: {field.context or 'none'}"
        for index, field in enumerate(fields, start=1)
    )
    record_blocks = "\n".join(
        f"\n**Record {index}**\n"
        f"- id: {record.id}\n"
        f"- question: {record.question or 'none'}\n"
        f"- answer: {record.answer[:PROMPT_ANSWER_PREVIEW]}\n"
        f"- category: {record.category}"
        for index, record in enumerate(records, start=1)
    )
    return (
        "Match these form fields to the best stored records:\n\n"
        f"## Form Fields\n{field_blocks}\n\n"
        f"## Available Records\n{record_blocks}\n\n"
        "For each field, determine:\n"
        "1. Which record (if any) is the best match\n"
        "2. Your confidence in that match (0-1)\n"
        "3. Why you chose that record (or why no record fits)\n"
        "4. Up to 3 alternative records that could also work"
    )


def parse_model_response(text: str) -> BatchMatchResponse:
    """Strip code fences, decode JSON and validate it against the schema."""

    cleaned = (text or "").strip()
    if cleaned.startswith("```") and cleaned.endswith("```"):
        cleaned = cleaned.strip("`").strip()
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:].lstrip()
    cleaned = cleaned.strip()
    if not cleaned:
        raise ModelResponseError("Model returned an empty response")

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.warning("Failed to parse model response as JSON", exc_info=exc, extra={"raw_response": cleaned})
        raise ModelResponseError("Model response was not valid JSON", data={"raw_response": cleaned}) from exc

    try:
        return BatchMatchResponse.model_validate(data)
    except ValidationError as exc:
        raise ModelResponseError(
            "Model response did not match the expected schema",
            data={"errors": exc.errors()},
        ) from exc


class AIMatcher:
    """Model-backed matching strategy."""

    def __init__(
        self,
        client: ModelClient,
        *,
        fallback: Optional[FallbackMatcher] = None,
        timeout: float = 30.0,
        temperature: float = 0.3,
    ) -> None:
        self._client = client
        self._fallback = fallback or FallbackMatcher()
        self._timeout = timeout
        self._temperature = temperature

    @property
    def fallback(self) -> FallbackMatcher:
        return self._fallback

    async def match_fields(
        self,
        fields: Sequence[CompressedField],
        records: Sequence[RecordInput],
    ) -> List[FieldMapping]:
        if not fields:
            logger.info("No fields to match")
            return []

        valid_records = parse_records(records)
        if not valid_records:
            logger.info("No records available for matching")
            return [create_empty_mapping(field.id, "No records available") for field in fields]

        started = time.perf_counter()
        try:
            response = await self._request_matches(fields, valid_records)
        except Exception as exc:
            logger.error("AI matching failed, falling back to rule-based", exc_info=exc)
            return await self._delegate_to_fallback(fields, valid_records)

        mappings = self.convert_response(response, fields, valid_records)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info("AI matching completed in %.2fms for %d fields", elapsed_ms, len(fields))
        return mappings

    async def _delegate_to_fallback(
        self,
        fields: Sequence[CompressedField],
        records: Sequence[CompressedRecord],
    ) -> List[FieldMapping]:
        return await self._fallback.match_fields(fields, records)

    async def _request_matches(
        self,
        fields: Sequence[CompressedField],
        records: Sequence[CompressedRecord],
    ) -> BatchMatchResponse:
        prompt = build_user_prompt(fields, records)
        logger.debug(
            "Submitting match request",
            extra={"field_count": len(fields), "record_count": len(records)},
        )
        text = await asyncio.wait_for(
            self._client.complete(system=SYSTEM_PROMPT, prompt=prompt, temperature=self._temperature),
            timeout=self._timeout,
        )
        return parse_model_response(text)

    def convert_response(
        self,
        response: BatchMatchResponse,
        fields: Sequence[CompressedField],
        records: Sequence[CompressedRecord],
    ) -> List[FieldMapping]:
        """Resolve the model's ids and align the result with ``fields``."""

        records_by_id: Dict[str, CompressedRecord] = {record.id: record for record in records}
        field_ids = {field.id for field in fields}

        matches_by_field: Dict[str, AIMatch] = {}
        for match in response.matches:
            if match.field_id not in field_ids:
                logger.warning("Model returned a match for an unknown field", extra={"field_id": match.field_id})
                continue
            matches_by_field.setdefault(match.field_id, match)

        mappings: List[FieldMapping] = []
        for field in fields:
            match = matches_by_field.get(field.id)
            if match is None:
                mappings.append(create_empty_mapping(field.id, "No mapping generated"))
                continue
            mappings.append(self._to_mapping(match, records_by_id))
        return mappings

    def _to_mapping(self, match: AIMatch, records_by_id: Dict[str, CompressedRecord]) -> FieldMapping:
        record = records_by_id.get(match.record_id) if match.record_id else None
        if match.record_id and record is None:
            logger.debug("Dropping unknown record id", extra={"record_id": match.record_id})

        alternatives: List[AlternativeMatch] = []
        alternative_confidence = max(0.0, match.confidence - ALTERNATIVE_CONFIDENCE_PENALTY)
        for record_id in match.alternative_record_ids:
            alternative = records_by_id.get(record_id)
            if alternative is None or record_id == match.record_id:
                continue
            if any(existing.record_id == record_id for existing in alternatives):
                continue
            alternatives.append(
                AlternativeMatch(
                    record_id=alternative.id,
                    value=alternative.answer,
                    confidence=round_confidence(alternative_confidence),
                )
            )

        confidence = round_confidence(match.confidence)
        accepted = record is not None and confidence >= MIN_MATCH_CONFIDENCE
        return FieldMapping(
            field_id=match.field_id,
            record_id=record.id if accepted else None,
            value=record.answer if accepted else None,
            confidence=confidence,
            reasoning=match.reasoning or DEFAULT_REASONING,
            alternatives=alternatives[:MAX_ALTERNATIVES],
        )


__all__ = [
    "AIMatch",
    "AIMatcher",
    "BatchMatchResponse",
    "SYSTEM_PROMPT",
    "build_user_prompt",
    "parse_model_response",
]
