"""Field-to-record matching strategies."""

from .ai import AIMatcher, BatchMatchResponse, parse_model_response
from .constants import MAX_FIELDS_PER_PAGE, MAX_RECORDS_FOR_MATCHING, MIN_MATCH_CONFIDENCE
from .fallback import FallbackMatcher
from .models import (
    AlternativeMatch,
    CompressedField,
    CompressedRecord,
    FieldMapping,
    MatchingResult,
    MatchingStrategy,
    create_empty_mapping,
    parse_records,
    round_confidence,
)
from .providers import (
    PROVIDER_REGISTRY,
    ModelClient,
    Provider,
    ProviderSpec,
    create_model_client,
    get_provider,
    validate_provider_key,
)

__all__ = [
    "MAX_FIELDS_PER_PAGE",
    "MAX_RECORDS_FOR_MATCHING",
    "MIN_MATCH_CONFIDENCE",
    "PROVIDER_REGISTRY",
    "AIMatcher",
    "AlternativeMatch",
    "BatchMatchResponse",
    "CompressedField",
    "CompressedRecord",
    "FallbackMatcher",
    "FieldMapping",
    "MatchingResult",
    "MatchingStrategy",
    "ModelClient",
    "Provider",
    "ProviderSpec",
    "create_empty_mapping",
    "create_model_client",
    "get_provider",
    "parse_model_response",
    "parse_records",
    "round_confidence",
    "validate_provider_key",
]
