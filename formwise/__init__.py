"""Form detection and field-to-record matching."""

from .decision import apply_confidence_threshold, is_auto_fillable
from .detection import DetectedField, DetectedForm, DetectionResult, FieldAnalyzer, FormDetector
from .dom import DomNode, Rect, load_tree
from .errors import (
    DetectionError,
    FormwiseError,
    InvalidTransitionError,
    ModelResponseError,
    ProviderConfigurationError,
)
from .matching import (
    AIMatcher,
    CompressedField,
    CompressedRecord,
    FallbackMatcher,
    FieldMapping,
    MatchingResult,
    Provider,
)
from .pipeline import AutofillPipeline, PipelineResult
from .progress import ProgressState, ProgressTracker, ProgressUpdate

__all__ = [
    "AIMatcher",
    "AutofillPipeline",
    "CompressedField",
    "CompressedRecord",
    "DetectedField",
    "DetectedForm",
    "DetectionError",
    "DetectionResult",
    "DomNode",
    "FallbackMatcher",
    "FieldAnalyzer",
    "FieldMapping",
    "FormDetector",
    "FormwiseError",
    "InvalidTransitionError",
    "MatchingResult",
    "ModelResponseError",
    "PipelineResult",
    "ProgressState",
    "ProgressTracker",
    "ProgressUpdate",
    "Provider",
    "ProviderConfigurationError",
    "Rect",
    "apply_confidence_threshold",
    "is_auto_fillable",
    "load_tree",
]
