"""End-to-end proposal flow: detect, compress, match, decide.

One :meth:`AutofillPipeline.run` call reports its progress through a
:class:`~formwise.progress.ProgressTracker` and stops at ``showing-preview``;
filling the page is left to the caller, which can advance the returned
tracker to ``filling`` and ``completed`` itself.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .config import Settings, get_settings
from .decision import apply_confidence_threshold
from .detection import DetectedField, DetectedForm, DetectionResult, FormDetector
from .dom.tree import DomNode
from .errors import ProviderConfigurationError
from .matching.ai import AIMatcher
from .matching.fallback import FallbackMatcher
from .matching.models import (
    CompressedField,
    FieldMapping,
    MatchingResult,
    MatchingStrategy,
    RecordInput,
    create_empty_mapping,
    parse_records,
)
from .matching.providers import create_model_client, get_provider
from .progress import ProgressCallback, ProgressState, ProgressTracker
from .records import RecordStore

logger = logging.getLogger(__name__)

NO_RECORDS_REASON = "No stored records available"
NO_MAPPING_REASON = "No mapping generated"


@dataclass(slots=True)
class PipelineResult:
    detection: DetectionResult
    matching: Optional[MatchingResult] = None
    tracker: Optional[ProgressTracker] = field(default=None, repr=False)

    @property
    def success(self) -> bool:
        return self.detection.success and (self.matching is None or self.matching.success)

    @property
    def mappings(self) -> List[FieldMapping]:
        return self.matching.mappings if self.matching is not None else []

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "detection": self.detection.to_dict(),
            "matching": self.matching.to_dict() if self.matching is not None else None,
        }


def compress_fields(fields: Sequence[DetectedField]) -> List[CompressedField]:
    return [CompressedField.from_detected(detected) for detected in fields]


def combine_mappings(fields: Sequence[CompressedField], mappings: Sequence[FieldMapping]) -> List[FieldMapping]:
    """One mapping per field in ``fields`` order; gaps become empty mappings."""

    by_field: Dict[str, FieldMapping] = {}
    for mapping in mappings:
        by_field.setdefault(mapping.field_id, mapping)
    return [by_field.get(item.id) or create_empty_mapping(item.id, NO_MAPPING_REASON) for item in fields]


class AutofillPipeline:
    """Glue between detection, the matching strategies and the decision layer."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        detector: Optional[FormDetector] = None,
        fallback: Optional[FallbackMatcher] = None,
        ai_matcher: Optional[AIMatcher] = None,
        record_store: Optional[RecordStore] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.detector = detector or FormDetector()
        self.fallback = fallback or FallbackMatcher()
        self.record_store = record_store
        self._ai_matcher = ai_matcher
        self._ai_resolved = ai_matcher is not None
        self._progress_callback = progress_callback

    def detect(self, root: DomNode) -> DetectionResult:
        return self.detector.detect(root)

    def select_matcher(self) -> MatchingStrategy:
        """The AI strategy when it is enabled and configured, else the fallback."""

        if not self._ai_resolved:
            self._ai_matcher = self._build_ai_matcher()
            self._ai_resolved = True
        if self._ai_matcher is not None:
            return self._ai_matcher
        return self.fallback

    def _build_ai_matcher(self) -> Optional[AIMatcher]:
        settings = self.settings
        if not settings.ai_enabled:
            logger.info("AI matching disabled, using rule-based matcher")
            return None
        if not settings.provider:
            logger.info("No AI provider configured, using rule-based matcher")
            return None
        try:
            spec = get_provider(settings.provider)
            client = create_model_client(
                spec.provider,
                settings.resolved_api_key(spec.api_key_env),
                settings.model,
                timeout=settings.ai_timeout_seconds,
            )
        except ProviderConfigurationError as exc:
            logger.warning("AI provider unavailable, using rule-based matcher", extra={"reason": str(exc)})
            return None
        logger.info("Using AI provider", extra={"provider": spec.provider.value, "model": settings.model or spec.default_model})
        return AIMatcher(
            client,
            fallback=self.fallback,
            timeout=settings.ai_timeout_seconds,
            temperature=settings.ai_temperature,
        )

    def _load_records(self, records: Optional[Sequence[RecordInput]]) -> Sequence[RecordInput]:
        if records is not None:
            return records
        if self.record_store is None:
            return []
        return self.record_store.list_records()

    async def process_forms(
        self,
        forms: Sequence[DetectedForm],
        records: Optional[Sequence[RecordInput]] = None,
    ) -> MatchingResult:
        """Match every non-password field of ``forms`` and flag auto-fillable ones."""

        started = time.perf_counter()
        try:
            if not forms:
                return MatchingResult(success=True, mappings=[], processing_time=0.0)

            detected = [item for form in forms for item in form.fields]
            candidates = [item for item in detected if item.metadata.field_type != "password"]
            filtered = len(detected) - len(candidates)
            if filtered:
                logger.info("Filtered out %d password fields", filtered)

            limited = candidates[: self.settings.max_fields]
            if len(limited) < len(candidates):
                logger.warning(
                    "Limited processing to %d fields out of %d",
                    self.settings.max_fields,
                    len(candidates),
                )
            fields = compress_fields(limited)

            valid_records = parse_records(self._load_records(records))
            if not valid_records:
                mappings = [create_empty_mapping(item.id, NO_RECORDS_REASON) for item in fields]
            else:
                capped = valid_records[: self.settings.max_records]
                matcher = self.select_matcher()
                mappings = combine_mappings(fields, await matcher.match_fields(fields, capped))

            mappings = apply_confidence_threshold(mappings, self.settings.confidence_threshold)
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info("Matching completed in %.2fms: %d mappings", elapsed_ms, len(mappings))
            return MatchingResult(success=True, mappings=mappings, processing_time=elapsed_ms)
        except Exception as exc:
            logger.error("Error processing fields", exc_info=exc)
            return MatchingResult(success=False, mappings=[], error=str(exc) or exc.__class__.__name__)

    async def run(
        self,
        root: DomNode,
        records: Optional[Sequence[RecordInput]] = None,
    ) -> PipelineResult:
        tracker = ProgressTracker(self._progress_callback)
        tracker.advance(ProgressState.DETECTING, message="Detecting forms...")

        detection = self.detect(root)
        if not detection.success:
            tracker.fail(detection.error or "Failed to detect forms")
            return PipelineResult(detection=detection, tracker=tracker)

        tracker.advance(
            ProgressState.ANALYZING,
            message="Analyzing fields...",
            fields_detected=detection.total_fields,
        )
        tracker.advance(
            ProgressState.MATCHING,
            message="Matching records...",
            fields_detected=detection.total_fields,
        )

        matching = await self.process_forms(detection.forms, records)
        if not matching.success:
            tracker.fail(matching.error or "Failed to process fields")
            return PipelineResult(detection=detection, matching=matching, tracker=tracker)

        tracker.advance(
            ProgressState.SHOWING_PREVIEW,
            message="Preparing preview...",
            fields_detected=detection.total_fields,
            fields_matched=matching.matched_count,
        )
        logger.info(
            "Processed %d fields and found %d matches",
            detection.total_fields,
            matching.matched_count,
        )
        return PipelineResult(detection=detection, matching=matching, tracker=tracker)

    def record_accepted(self, mappings: Sequence[FieldMapping], accepted_field_ids: Sequence[str]) -> List[str]:
        """Forward the records behind accepted, matched mappings to the store."""

        accepted = set(accepted_field_ids)
        record_ids: List[str] = []
        for mapping in mappings:
            if mapping.field_id in accepted and mapping.record_id is not None and mapping.record_id not in record_ids:
                record_ids.append(mapping.record_id)
        if record_ids and self.record_store is not None:
            self.record_store.increment_usage(record_ids)
        return record_ids


__all__ = [
    "AutofillPipeline",
    "NO_MAPPING_REASON",
    "NO_RECORDS_REASON",
    "PipelineResult",
    "combine_mappings",
    "compress_fields",
]
