"""Dataclasses describing detected fields and forms."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Literal, Optional

from ..dom.tree import DomNode, Rect

FieldType = Literal[
    "text",
    "email",
    "tel",
    "url",
    "textarea",
    "select",
    "radio",
    "checkbox",
    "date",
    "number",
    "password",
]

FieldPurpose = Literal[
    "name",
    "email",
    "phone",
    "address",
    "city",
    "state",
    "zip",
    "country",
    "company",
    "title",
    "unknown",
]

FIELD_ID_PREFIX = "__"
FORM_ID_PREFIX = "__form__"
STANDALONE_FORM_ID = "__form__standalone"
STANDALONE_FORM_NAME = "Standalone Fields"


@dataclass(slots=True)
class FieldMetadata:
    """Everything the analyzer learned about one field."""

    id: Optional[str]
    name: Optional[str]
    class_name: Optional[str]
    type: str

    label_tag: Optional[str]
    label_data: Optional[str]
    label_aria: Optional[str]
    label_left: Optional[str]
    label_right: Optional[str]
    label_top: Optional[str]

    placeholder: Optional[str]
    helper_text: Optional[str]
    autocomplete: Optional[str]

    required: bool
    disabled: bool
    readonly: bool
    max_length: Optional[int]

    rect: Optional[Rect]
    current_value: str

    field_type: FieldType
    field_purpose: FieldPurpose = "unknown"

    def labels(self) -> List[str]:
        """Non-empty label channels, de-duplicated, in precedence order."""

        ordered: List[str] = []
        for label in (
            self.label_tag,
            self.label_aria,
            self.label_data,
            self.label_left,
            self.label_right,
            self.label_top,
        ):
            if label and label not in ordered:
                ordered.append(label)
        return ordered

    def context(self) -> str:
        return " ".join(
            part for part in (self.placeholder, self.helper_text, self.name, self.id) if part
        )

    @property
    def has_label_text(self) -> bool:
        return bool(self.labels() or self.placeholder or self.helper_text)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["rect"] = self.rect.to_dict() if self.rect is not None else None
        return payload


@dataclass(slots=True)
class DetectedField:
    """A fillable control found during one detection pass."""

    id: str
    element: DomNode = field(repr=False)
    metadata: FieldMetadata
    form_id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "form_id": self.form_id,
            "metadata": self.metadata.to_dict(),
        }


@dataclass(slots=True)
class DetectedForm:
    """A group of fields sharing a form container, or the standalone group."""

    id: str
    element: Optional[DomNode] = field(repr=False)
    action: str
    method: str
    name: str
    fields: List[DetectedField] = field(default_factory=list)

    @property
    def is_standalone(self) -> bool:
        return self.id == STANDALONE_FORM_ID

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "action": self.action,
            "method": self.method,
            "name": self.name,
            "fields": [detected.to_dict() for detected in self.fields],
        }


@dataclass(slots=True)
class DetectionResult:
    """Outcome of :meth:`FormDetector.detect`."""

    success: bool
    forms: List[DetectedForm] = field(default_factory=list)
    total_fields: int = 0
    error: Optional[str] = None

    @classmethod
    def from_forms(cls, forms: List[DetectedForm]) -> DetectionResult:
        return cls(success=True, forms=forms, total_fields=sum(len(form.fields) for form in forms))

    @classmethod
    def failure(cls, error: str) -> DetectionResult:
        return cls(success=False, forms=[], total_fields=0, error=error)

    def iter_fields(self) -> List[DetectedField]:
        return [detected for form in self.forms for detected in form.fields]

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": self.success,
            "forms": [form.to_dict() for form in self.forms],
            "total_fields": self.total_fields,
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


__all__ = [
    "FIELD_ID_PREFIX",
    "FORM_ID_PREFIX",
    "STANDALONE_FORM_ID",
    "STANDALONE_FORM_NAME",
    "DetectedField",
    "DetectedForm",
    "DetectionResult",
    "FieldMetadata",
    "FieldPurpose",
    "FieldType",
]
