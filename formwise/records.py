"""Record store contract and a JSON-file-backed implementation."""
from __future__ import annotations

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Protocol, Sequence

from .matching.models import CompressedRecord, RecordInput, parse_records

logger = logging.getLogger(__name__)


class RecordStore(Protocol):
    """What the pipeline needs from whatever persists the user's records."""

    def list_records(self) -> Sequence[RecordInput]:
        ...

    def increment_usage(self, record_ids: Sequence[str]) -> None:
        ...


class InMemoryRecordStore:
    """Keeps records and usage counters in memory.

    Full records may carry extra keys (tags, timestamps, ...); only the
    compressed shape is handed to the matchers.
    """

    def __init__(self, records: Iterable[Mapping[str, Any]] = ()) -> None:
        self._records: List[Dict[str, Any]] = [dict(record) for record in records]
        self.usage: Counter[str] = Counter()

    @classmethod
    def from_json(cls, path: str | Path) -> InMemoryRecordStore:
        """Load a JSON list of records, or an object with a ``records`` list."""

        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        if isinstance(payload, Mapping):
            payload = payload.get("records", [])
        if not isinstance(payload, list):
            raise ValueError(f"{path} does not contain a list of records")
        return cls(item for item in payload if isinstance(item, Mapping))

    def __len__(self) -> int:
        return len(self._records)

    def list_records(self) -> List[CompressedRecord]:
        return parse_records(self._records)

    def increment_usage(self, record_ids: Sequence[str]) -> None:
        for record_id in record_ids:
            self.usage[record_id] += 1
        logger.debug("Incremented record usage", extra={"record_ids": list(record_ids)})


__all__ = ["InMemoryRecordStore", "RecordStore"]
