"""Discover forms and fillable fields in a document tree.

The detector walks the whole tree in document order, treating nested
boundaries (shadow-root-like subtrees) as inline content. Fields inside a
``<form>`` (or pointing at one through a ``form="<id>"`` attribute) are grouped
under that form; everything else lands in one synthetic standalone group.
Identifiers are handed out by per-pass counters and are only meaningful for
the pass that produced them.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from ..dom.tree import DomNode
from ..errors import DetectionError
from .field_analyzer import FieldAnalyzer
from .models import (
    FIELD_ID_PREFIX,
    FORM_ID_PREFIX,
    STANDALONE_FORM_ID,
    STANDALONE_FORM_NAME,
    DetectedField,
    DetectedForm,
    DetectionResult,
)

logger = logging.getLogger(__name__)

FIELD_TAGS = frozenset({"input", "textarea", "select"})

IGNORED_INPUT_TYPES = frozenset(
    {"hidden", "submit", "reset", "button", "image", "file", "checkbox", "radio"}
)

IGNORE_ATTRIBUTES: Tuple[str, ...] = ("data-formwise-ignore", "data-bwignore")


class FormDetector:
    """Groups analysed fields into forms for a single detection pass."""

    def __init__(self, analyzer: Optional[FieldAnalyzer] = None) -> None:
        self._analyzer = analyzer or FieldAnalyzer()
        self._form_counter = 0
        self._field_counter = 0

    @property
    def analyzer(self) -> FieldAnalyzer:
        return self._analyzer

    def detect(self, root: DomNode) -> DetectionResult:
        """Run a full pass and filter noise; never raises."""

        try:
            forms = [form for form in self.detect_all(root) if _is_relevant_form(form)]
        except Exception as exc:
            logger.error("Form detection failed", exc_info=exc)
            return DetectionResult.failure(str(exc) or exc.__class__.__name__)

        result = DetectionResult.from_forms(forms)
        logger.info(
            "Detected %d fields in %d forms",
            result.total_fields,
            len(result.forms),
        )
        for form in result.forms:
            logger.debug(
                "Form detected",
                extra={
                    "form_id": form.id,
                    "form_name": form.name,
                    "field_count": len(form.fields),
                    "action": form.action,
                    "method": form.method,
                },
            )
        return result

    def detect_all(self, root: DomNode) -> List[DetectedForm]:
        """Return every form of the pass, including empty ones."""

        if root is None:
            raise DetectionError("No document root supplied")

        self._form_counter = 0
        self._field_counter = 0
        self._analyzer.begin_pass(root)

        form_elements: List[DomNode] = []
        field_elements: List[DomNode] = []
        for node in root.iter_elements(include_self=True):
            if node.tag == "form":
                form_elements.append(node)
            elif node.tag in FIELD_TAGS:
                field_elements.append(node)

        forms_by_dom_id: Dict[str, DomNode] = {}
        for form_element in form_elements:
            dom_id = form_element.element_id
            if dom_id and dom_id not in forms_by_dom_id:
                forms_by_dom_id[dom_id] = form_element

        members: Dict[DomNode, List[DomNode]] = {form: [] for form in form_elements}
        standalone: List[DomNode] = []
        for element in field_elements:
            if not is_valid_field(element):
                continue
            owner = _owning_form(element, forms_by_dom_id)
            if owner is None or owner not in members:
                standalone.append(element)
            else:
                members[owner].append(element)

        forms: List[DetectedForm] = []
        for form_element in form_elements:
            form_id = f"{FORM_ID_PREFIX}{self._form_counter}"
            self._form_counter += 1
            forms.append(
                DetectedForm(
                    id=form_id,
                    element=form_element,
                    action=form_element.get_attribute("action") or "",
                    method=(form_element.get_attribute("method") or "get").lower(),
                    name=form_element.get_attribute("name") or form_element.element_id or "",
                    fields=[self._create_field(element, form_id) for element in members[form_element]],
                )
            )

        if standalone:
            forms.append(
                DetectedForm(
                    id=STANDALONE_FORM_ID,
                    element=None,
                    action="",
                    method="",
                    name=STANDALONE_FORM_NAME,
                    fields=[self._create_field(element, STANDALONE_FORM_ID) for element in standalone],
                )
            )

        return forms

    def _create_field(self, element: DomNode, form_id: str) -> DetectedField:
        field_id = f"{FIELD_ID_PREFIX}{self._field_counter}"
        self._field_counter += 1
        metadata = self._analyzer.analyze(element, field_id)
        return DetectedField(id=field_id, element=element, metadata=metadata, form_id=form_id)


def is_valid_field(element: DomNode) -> bool:
    """Whether ``element`` is a control this engine should propose values for."""

    if any(element.has_attribute(name) for name in IGNORE_ATTRIBUTES):
        return False
    if element.tag == "button":
        return False
    if element.tag == "input" and element.input_type == "hidden":
        return False
    if not element.is_rendered:
        return False
    if element.tag == "input" and element.input_type in IGNORED_INPUT_TYPES:
        return False
    return True


def _owning_form(element: DomNode, forms_by_dom_id: Dict[str, DomNode]) -> Optional[DomNode]:
    """Form that owns ``element``. It can sit above the pass root."""

    form_ref = element.get_attribute("form")
    if form_ref and form_ref in forms_by_dom_id:
        return forms_by_dom_id[form_ref]
    return element.closest("form")


def _is_relevant_form(form: DetectedForm) -> bool:
    if not form.fields:
        return False
    if len(form.fields) == 1:
        metadata = form.fields[0].metadata
        if metadata.field_purpose == "unknown" and not metadata.has_label_text:
            logger.debug("Dropping unlabeled single-field form", extra={"form_id": form.id})
            return False
    return True


__all__ = [
    "FIELD_TAGS",
    "IGNORED_INPUT_TYPES",
    "IGNORE_ATTRIBUTES",
    "FormDetector",
    "is_valid_field",
]
