"""Per-field metadata extraction and purpose inference.

Labels are discovered through independent channels that are kept side by
side rather than collapsed into one value:

1. explicit ``<label>`` (``for``/``id`` association or an enclosing label),
2. ARIA (``aria-label`` or the text behind ``aria-labelledby``),
3. positional text to the left, right and above the field,
4. placeholder, ``data-label`` and helper text (``aria-describedby`` or a
   sibling whose class mentions help/hint/description).

The positional channel scans every text node of the document, so its results
are memoised per field and direction for the lifetime of one detection pass.
Call :meth:`FieldAnalyzer.begin_pass` before analysing a (possibly mutated)
tree; it clears that cache and rebuilds the document index.
"""
from __future__ import annotations

import logging
import re
from typing import Dict, List, Literal, Optional, Pattern, Sequence, Tuple

from ..dom.tree import DocumentIndex, DomNode, Rect, clean_text
from .models import FieldMetadata, FieldPurpose, FieldType

logger = logging.getLogger(__name__)

Direction = Literal["left", "right", "top"]

LATERAL_DISTANCE_THRESHOLD = 200.0
VERTICAL_DISTANCE_THRESHOLD = 100.0
TOP_HORIZONTAL_SLACK = 50.0
MAX_POSITIONAL_CANDIDATES = 20
TOP_ANCESTOR_DEPTH = 3

_NON_LABEL_PARENT_TAGS = frozenset(
    {"script", "style", "noscript", "input", "textarea", "select", "button", "a"}
)
_INTERACTIVE_ANCESTOR_TAGS = frozenset({"button", "a"})
_FORM_CONTROL_TAGS = ("input", "select", "textarea")
_CTA_CLASS_RE = re.compile(r"\b(btn|button|cta|action)\b", re.IGNORECASE)
_CONNECTOR_WORD_RE = re.compile(r"^(or|and|with|continue|sign|login|register)$", re.IGNORECASE)
_HELPER_CLASS_KEYWORDS = ("help", "hint", "description")

_INPUT_TYPE_MAP: Dict[str, FieldType] = {
    "email": "email",
    "tel": "tel",
    "url": "url",
    "password": "password",
    "number": "number",
    "date": "date",
    "checkbox": "checkbox",
    "radio": "radio",
}

AUTOCOMPLETE_PURPOSES: Dict[str, FieldPurpose] = {
    "name": "name",
    "given-name": "name",
    "family-name": "name",
    "email": "email",
    "tel": "phone",
    "street-address": "address",
    "address-line1": "address",
    "address-line2": "address",
    "city": "city",
    "state": "state",
    "postal-code": "zip",
    "country": "country",
    "organization": "company",
    "job-title": "title",
}

PURPOSE_PATTERNS: Sequence[Tuple[Pattern[str], FieldPurpose]] = (
    (re.compile(r"\b(email|e-mail|mail)\b", re.IGNORECASE), "email"),
    (re.compile(r"\b(phone|tel|telephone|mobile|cell)\b", re.IGNORECASE), "phone"),
    (
        re.compile(
            r"\b(name|full[\s-]?name|first[\s-]?name|last[\s-]?name|given[\s-]?name|family[\s-]?name)\b",
            re.IGNORECASE,
        ),
        "name",
    ),
    (re.compile(r"\b(address|street|addr|location|residence)\b", re.IGNORECASE), "address"),
    (re.compile(r"\b(city|town)\b", re.IGNORECASE), "city"),
    (re.compile(r"\b(state|province|region)\b", re.IGNORECASE), "state"),
    (re.compile(r"\b(zip|postal[\s-]?code|postcode)\b", re.IGNORECASE), "zip"),
    (re.compile(r"\b(country|nation)\b", re.IGNORECASE), "country"),
    (re.compile(r"\b(company|organization|employer|business)\b", re.IGNORECASE), "company"),
    (re.compile(r"\b(title|position|job[\s-]?title|role)\b", re.IGNORECASE), "title"),
)


class FieldAnalyzer:
    """Builds :class:`FieldMetadata` for individual field elements."""

    def __init__(self) -> None:
        self._index: Optional[DocumentIndex] = None
        self._label_cache: Dict[Tuple[str, Direction], Optional[str]] = {}
        self.positional_scans = 0

    # ------------------------------------------------------------------
    # Pass lifecycle
    # ------------------------------------------------------------------
    def begin_pass(self, root: DomNode) -> None:
        """Drop cached labels and index ``root`` for a fresh detection pass."""

        self._label_cache.clear()
        self._index = DocumentIndex.build(root)
        logger.debug(
            "Indexed document for analysis",
            extra={"elements": len(self._index.elements), "text_nodes": len(self._index.text_nodes)},
        )

    def _document(self, element: DomNode) -> DocumentIndex:
        if self._index is None or not self._index.root.contains(element):
            self.begin_pass(element.root())
        assert self._index is not None
        return self._index

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def analyze(self, element: DomNode, field_id: str) -> FieldMetadata:
        document = self._document(element)
        field_type = classify_field_type(element)

        metadata = FieldMetadata(
            id=element.get_attribute("id") or None,
            name=element.get_attribute("name") or None,
            class_name=element.get_attribute("class") or None,
            type=element.get_attribute("type") or element.tag,
            label_tag=self.find_explicit_label(element, document),
            label_data=element.get_attribute("data-label") or None,
            label_aria=self.find_aria_label(element, document),
            label_left=self.find_positional_label(element, field_id, "left"),
            label_right=self.find_positional_label(element, field_id, "right"),
            label_top=self.find_positional_label(element, field_id, "top"),
            placeholder=element.get_attribute("placeholder") or None,
            helper_text=self.find_helper_text(element, document),
            autocomplete=element.get_attribute("autocomplete") or None,
            required=element.has_attribute("required"),
            disabled=element.has_attribute("disabled"),
            readonly=element.has_attribute("readonly"),
            max_length=_max_length(element),
            rect=element.rect,
            current_value=_current_value(element),
            field_type=field_type,
        )
        metadata.field_purpose = infer_field_purpose(metadata)
        return metadata

    def find_explicit_label(self, element: DomNode, document: DocumentIndex) -> Optional[str]:
        element_id = element.element_id
        if element_id:
            label = document.labels_for.get(element_id)
            if label is not None:
                return clean_text(label.text_content())

        parent_label = element.closest("label")
        if parent_label is not None:
            return clean_text(parent_label.text_content(exclude_tags=_FORM_CONTROL_TAGS))

        return None

    def find_aria_label(self, element: DomNode, document: DocumentIndex) -> Optional[str]:
        aria_label = element.get_attribute("aria-label")
        if aria_label:
            return clean_text(aria_label)

        labelled_by = element.get_attribute("aria-labelledby")
        if labelled_by:
            parts = [
                document.by_id[ref].text_content()
                for ref in labelled_by.split()
                if ref in document.by_id
            ]
            if parts:
                return clean_text(" ".join(parts))

        return None

    def find_helper_text(self, element: DomNode, document: DocumentIndex) -> Optional[str]:
        described_by = element.get_attribute("aria-describedby")
        if described_by:
            helper = document.by_id.get(described_by.split()[0])
            if helper is not None:
                return clean_text(helper.text_content())

        parent = element.parent
        if parent is not None:
            for candidate in parent.iter_elements():
                if candidate is element:
                    continue
                class_name = candidate.class_name.lower()
                if any(keyword in class_name for keyword in _HELPER_CLASS_KEYWORDS):
                    return clean_text(candidate.text_content())

        return None

    def find_positional_label(
        self,
        element: DomNode,
        field_id: str,
        direction: Direction,
    ) -> Optional[str]:
        """Return the nearest text in ``direction``, scanning the document at most once."""

        key = (field_id, direction)
        if key in self._label_cache:
            return self._label_cache[key]

        label = self._scan_positional_label(element, self._document(element), direction)
        self._label_cache[key] = label
        return label

    # ------------------------------------------------------------------
    # Positional scan
    # ------------------------------------------------------------------
    def _scan_positional_label(
        self,
        element: DomNode,
        document: DocumentIndex,
        direction: Direction,
    ) -> Optional[str]:
        self.positional_scans += 1
        field_rect = element.rect
        if field_rect is None:
            return None

        threshold = VERTICAL_DISTANCE_THRESHOLD if direction == "top" else LATERAL_DISTANCE_THRESHOLD
        candidates: List[Tuple[float, DomNode]] = []

        for text_node in document.text_nodes:
            if len(candidates) >= MAX_POSITIONAL_CANDIDATES:
                break
            container = text_node.parent
            if container is None or container.rect is None:
                continue
            if not _accept_text_node(text_node, container, direction):
                continue
            distance = directional_distance(field_rect, container.rect, direction)
            if distance is not None and distance < threshold:
                candidates.append((distance, container))

        if not candidates:
            return None

        # sort is stable, so equal distances keep document order
        candidates.sort(key=lambda item: item[0])
        return clean_text(candidates[0][1].text_content())


def directional_distance(field_rect: Rect, label_rect: Rect, direction: Direction) -> Optional[float]:
    """Gap between a field and a label candidate, or ``None`` when not in ``direction``."""

    if direction == "left":
        if not field_rect.overlaps_vertically(label_rect) or label_rect.right > field_rect.left:
            return None
        return field_rect.left - label_rect.right

    if direction == "right":
        if not field_rect.overlaps_vertically(label_rect) or label_rect.left < field_rect.right:
            return None
        return label_rect.left - field_rect.right

    if direction == "top":
        if label_rect.bottom > field_rect.top:
            return None
        if not field_rect.overlaps_horizontally(label_rect):
            horizontal_gap = min(
                abs(field_rect.left - label_rect.right),
                abs(label_rect.left - field_rect.right),
            )
            if horizontal_gap > TOP_HORIZONTAL_SLACK:
                return None
        return field_rect.top - label_rect.bottom

    return None


def _accept_text_node(text_node: DomNode, container: DomNode, direction: Direction) -> bool:
    text = text_node.text.strip()
    if len(text) < 2:
        return False
    if container.tag in _NON_LABEL_PARENT_TAGS:
        return False
    if _CTA_CLASS_RE.search(container.class_name):
        return False

    if direction == "top":
        ancestor: Optional[DomNode] = container
        depth = 0
        while ancestor is not None and depth < TOP_ANCESTOR_DEPTH:
            if ancestor.tag in _INTERACTIVE_ANCESTOR_TAGS:
                return False
            if _CTA_CLASS_RE.search(ancestor.class_name):
                return False
            ancestor = ancestor.parent
            depth += 1
        if len(text) < 3:
            return False
        if _CONNECTOR_WORD_RE.match(text):
            return False

    return True


def classify_field_type(element: DomNode) -> FieldType:
    if element.tag == "textarea":
        return "textarea"
    if element.tag == "select":
        return "select"
    if element.tag == "input":
        return _INPUT_TYPE_MAP.get(element.input_type, "text")
    return "text"


def infer_field_purpose(metadata: FieldMetadata) -> FieldPurpose:
    if metadata.field_type == "email":
        return "email"
    if metadata.field_type == "tel":
        return "phone"

    autocomplete = (metadata.autocomplete or "").strip().lower()
    if autocomplete in AUTOCOMPLETE_PURPOSES:
        return AUTOCOMPLETE_PURPOSES[autocomplete]

    all_text = " ".join(
        part
        for part in (
            metadata.label_tag,
            metadata.label_aria,
            metadata.label_data,
            metadata.label_left,
            metadata.label_right,
            metadata.label_top,
            metadata.placeholder,
            metadata.name,
            metadata.id,
        )
        if part
    ).lower()

    for pattern, purpose in PURPOSE_PATTERNS:
        if pattern.search(all_text):
            return purpose

    return "unknown"


def _max_length(element: DomNode) -> Optional[int]:
    if element.tag not in {"input", "textarea"}:
        return None
    raw = element.get_attribute("maxlength")
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        return None
    return value if value > 0 else None


def _current_value(element: DomNode) -> str:
    if element.tag == "input" and element.input_type in {"checkbox", "radio"}:
        if not element.checked:
            return ""
        return element.value or element.get_attribute("value") or "on"
    if element.tag in {"input", "textarea", "select"}:
        if element.value is not None:
            return element.value
        return element.get_attribute("value") or ""
    return ""


__all__ = [
    "AUTOCOMPLETE_PURPOSES",
    "PURPOSE_PATTERNS",
    "FieldAnalyzer",
    "classify_field_type",
    "directional_distance",
    "infer_field_purpose",
]
