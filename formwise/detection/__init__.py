"""Form discovery and field analysis."""

from .field_analyzer import FieldAnalyzer, classify_field_type, infer_field_purpose
from .form_detector import FormDetector, is_valid_field
from .models import (
    STANDALONE_FORM_ID,
    DetectedField,
    DetectedForm,
    DetectionResult,
    FieldMetadata,
    FieldPurpose,
    FieldType,
)

__all__ = [
    "STANDALONE_FORM_ID",
    "DetectedField",
    "DetectedForm",
    "DetectionResult",
    "FieldAnalyzer",
    "FieldMetadata",
    "FieldPurpose",
    "FieldType",
    "FormDetector",
    "classify_field_type",
    "infer_field_purpose",
    "is_valid_field",
]
