"""Auto-fill eligibility for proposed mappings."""
from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List

from .matching.models import FieldMapping


def is_auto_fillable(mapping: FieldMapping, threshold: float) -> bool:
    return (
        mapping.record_id is not None
        and mapping.value is not None
        and mapping.confidence >= threshold
    )


def apply_confidence_threshold(mappings: Iterable[FieldMapping], threshold: float) -> List[FieldMapping]:
    """Return copies of ``mappings`` with ``auto_fill`` set against ``threshold``.

    The input mappings are left untouched; only the flag differs on the copies.
    """

    if not 0.0 <= threshold <= 1.0:
        raise ValueError(f"Confidence threshold must be within [0, 1], got {threshold!r}")
    return [replace(mapping, auto_fill=is_auto_fillable(mapping, threshold)) for mapping in mappings]


__all__ = ["apply_confidence_threshold", "is_auto_fillable"]
