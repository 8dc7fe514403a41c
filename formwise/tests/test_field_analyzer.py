from typing import Optional, Tuple

import pytest

from formwise.detection.field_analyzer import (
    FieldAnalyzer,
    classify_field_type,
    directional_distance,
    infer_field_purpose,
)
from formwise.dom.tree import DomNode, Rect


def el(tag: str, attrs: Optional[dict] = None, *children: DomNode, rect: Optional[Tuple[float, float, float, float]] = None) -> DomNode:
    return DomNode(
        tag=tag,
        attributes=dict(attrs or {}),
        children=list(children),
        rect=Rect(*rect) if rect else None,
    )


def txt(text: str) -> DomNode:
    return DomNode.text_node(text)


def page(*children: DomNode) -> DomNode:
    return el("html", None, el("body", None, *children, rect=(0, 0, 1200, 1200)), rect=(0, 0, 1200, 1200))


def analyze(root: DomNode, element: DomNode, field_id: str = "__0"):
    analyzer = FieldAnalyzer()
    analyzer.begin_pass(root)
    return analyzer.analyze(element, field_id)


def test_explicit_label_by_for_attribute() -> None:
    field = el("input", {"id": "email", "type": "email"}, rect=(140, 10, 200, 20))
    root = page(el("label", {"for": "email"}, txt("  Email\n   Address "), rect=(10, 10, 120, 20)), field)

    metadata = analyze(root, field)

    assert metadata.label_tag == "Email Address"
    assert metadata.field_type == "email"
    assert metadata.field_purpose == "email"


def test_enclosing_label_ignores_nested_control_text() -> None:
    select = el("select", {"name": "size"}, el("option", None, txt("Large")), rect=(80, 10, 100, 20))
    label = el("label", None, txt("Shirt size "), select, rect=(10, 10, 200, 20))
    root = page(label)

    metadata = analyze(root, select)

    assert metadata.label_tag == "Shirt size"
    assert metadata.field_type == "select"


def test_aria_label_and_labelledby() -> None:
    direct = el("input", {"aria-label": "Search query"}, rect=(10, 10, 100, 20))
    referenced = el(
        "input",
        {"aria-labelledby": "billing city-label"},
        rect=(10, 300, 100, 20),
    )
    root = page(
        direct,
        el("span", {"id": "billing"}, txt("Billing"), rect=(600, 600, 50, 10)),
        el("span", {"id": "city-label"}, txt("City"), rect=(700, 600, 50, 10)),
        referenced,
    )

    analyzer = FieldAnalyzer()
    analyzer.begin_pass(root)

    assert analyzer.analyze(direct, "__0").label_aria == "Search query"
    labelled = analyzer.analyze(referenced, "__1")
    assert labelled.label_aria == "Billing City"
    assert labelled.field_purpose == "city"


def test_helper_text_from_describedby_and_hint_sibling() -> None:
    described = el("input", {"aria-describedby": "pw-help"}, rect=(10, 10, 100, 20))
    hinted = el("input", {"name": "nickname"}, rect=(10, 500, 100, 20))
    root = page(
        described,
        el("p", {"id": "pw-help"}, txt("We never share this"), rect=(900, 900, 100, 10)),
        el("div", None, hinted, el("small", {"class": "form-hint"}, txt("Shown on your profile")), rect=(10, 480, 400, 80)),
    )

    analyzer = FieldAnalyzer()
    analyzer.begin_pass(root)

    assert analyzer.analyze(described, "__0").helper_text == "We never share this"
    assert analyzer.analyze(hinted, "__1").helper_text == "Shown on your profile"


def test_positional_labels_left_right_and_top() -> None:
    field = el("input", {"type": "text"}, rect=(200, 100, 200, 24))
    root = page(
        el("div", None, txt("Organization"), rect=(200, 60, 150, 20)),
        el("span", None, txt("Employer"), rect=(80, 102, 100, 20)),
        el("span", None, txt("(optional)"), rect=(420, 102, 80, 20)),
        field,
    )

    metadata = analyze(root, field)

    assert metadata.label_left == "Employer"
    assert metadata.label_right == "(optional)"
    assert metadata.label_top == "Organization"
    assert metadata.field_purpose == "company"


def test_positional_label_prefers_nearest_candidate() -> None:
    field = el("input", None, rect=(300, 100, 200, 24))
    root = page(
        el("span", None, txt("Far label"), rect=(50, 100, 100, 20)),
        el("span", None, txt("Near label"), rect=(180, 100, 100, 20)),
        field,
    )

    assert analyze(root, field).label_left == "Near label"


def test_positional_label_respects_distance_thresholds() -> None:
    field = el("input", None, rect=(500, 400, 200, 24))
    root = page(
        el("span", None, txt("Too far left"), rect=(100, 400, 100, 20)),
        el("div", None, txt("Too far above"), rect=(500, 200, 100, 20)),
        field,
    )

    metadata = analyze(root, field)

    assert metadata.label_left is None
    assert metadata.label_top is None


def test_top_label_skips_buttons_links_and_connector_words() -> None:
    field = el("input", None, rect=(100, 200, 200, 24))
    root = page(
        el("div", None, txt("Phone number"), rect=(100, 120, 150, 20)),
        el("button", None, txt("Continue with Google"), rect=(100, 150, 200, 20)),
        el("div", None, el("a", None, el("span", None, txt("Forgot it?"), rect=(100, 160, 80, 10)))),
        el("span", None, txt("Sign"), rect=(100, 175, 40, 20)),
        el("span", {"class": "btn-label"}, txt("Send code"), rect=(100, 170, 60, 10)),
        field,
    )

    metadata = analyze(root, field)

    assert metadata.label_top == "Phone number"
    assert metadata.field_purpose == "phone"


def test_top_label_requires_horizontal_proximity() -> None:
    field = el("input", None, rect=(500, 200, 100, 24))
    root = page(
        el("div", None, txt("Unrelated heading"), rect=(100, 170, 200, 20)),
        field,
    )

    assert analyze(root, field).label_top is None


def test_positional_lookup_is_cached_per_pass() -> None:
    field = el("input", None, rect=(200, 100, 200, 24))
    root = page(el("span", None, txt("Employer"), rect=(80, 102, 100, 20)), field)
    analyzer = FieldAnalyzer()
    analyzer.begin_pass(root)

    first = analyzer.find_positional_label(field, "__0", "left")
    second = analyzer.find_positional_label(field, "__0", "left")

    assert first == second == "Employer"
    assert analyzer.positional_scans == 1


def test_begin_pass_clears_cache_for_mutated_tree() -> None:
    field = el("input", None, rect=(200, 100, 200, 24))
    label = el("span", None, txt("Employer"), rect=(80, 102, 100, 20))
    root = page(label, field)
    analyzer = FieldAnalyzer()

    analyzer.begin_pass(root)
    assert analyzer.find_positional_label(field, "__0", "left") == "Employer"

    label.children[0].text = "Organisation"
    analyzer.begin_pass(root)

    assert analyzer.find_positional_label(field, "__0", "left") == "Organisation"
    assert analyzer.positional_scans == 2


def test_misses_are_cached_too() -> None:
    field = el("input", None, rect=(200, 100, 200, 24))
    analyzer = FieldAnalyzer()
    analyzer.begin_pass(page(field))

    assert analyzer.find_positional_label(field, "__0", "right") is None
    assert analyzer.find_positional_label(field, "__0", "right") is None
    assert analyzer.positional_scans == 1


def test_overly_long_label_text_is_dropped() -> None:
    field = el("input", {"id": "bio"}, rect=(140, 10, 200, 20))
    root = page(el("label", {"for": "bio"}, txt("x" * 250), rect=(10, 10, 120, 20)), field)

    assert analyze(root, field).label_tag is None


@pytest.mark.parametrize(
    ("attrs", "tag", "expected"),
    [
        ({"type": "email"}, "input", "email"),
        ({"type": "TEL"}, "input", "tel"),
        ({"type": "search"}, "input", "text"),
        ({}, "input", "text"),
        ({}, "textarea", "textarea"),
        ({"type": "password"}, "input", "password"),
        ({"type": "date"}, "input", "date"),
    ],
)
def test_classify_field_type(attrs, tag, expected) -> None:
    assert classify_field_type(el(tag, attrs)) == expected


def test_purpose_from_autocomplete_token() -> None:
    field = el("input", {"autocomplete": "postal-code", "name": "f7"}, rect=(10, 10, 100, 20))
    assert analyze(page(field), field).field_purpose == "zip"


def test_purpose_from_keywords_in_order() -> None:
    field = el("input", {"placeholder": "Job title", "name": "role_text"}, rect=(10, 10, 100, 20))
    metadata = analyze(page(field), field)

    assert metadata.placeholder == "Job title"
    assert metadata.field_purpose == "title"
    assert infer_field_purpose(metadata) == "title"


def test_unknown_purpose_when_nothing_matches() -> None:
    field = el("input", {"id": "book"}, rect=(140, 10, 200, 20))
    root = page(el("label", {"for": "book"}, txt("Favorite Book"), rect=(10, 10, 120, 20)), field)

    assert analyze(root, field).field_purpose == "unknown"


def test_metadata_flags_and_values() -> None:
    field = el(
        "input",
        {"type": "text", "name": "nick", "maxlength": "12", "required": "", "readonly": "", "class": "form-control"},
        rect=(10, 10, 100, 20),
    )
    field.value = "ada"
    checkbox = el("input", {"type": "checkbox"}, rect=(10, 300, 20, 20))
    checkbox.checked = True
    zero_max = el("textarea", {"maxlength": "0"}, rect=(10, 600, 100, 60))
    root = page(field, checkbox, zero_max)
    analyzer = FieldAnalyzer()
    analyzer.begin_pass(root)

    metadata = analyzer.analyze(field, "__0")
    assert metadata.max_length == 12
    assert metadata.required is True
    assert metadata.readonly is True
    assert metadata.disabled is False
    assert metadata.current_value == "ada"
    assert metadata.class_name == "form-control"
    assert metadata.rect == Rect(10, 10, 100, 20)

    assert analyzer.analyze(checkbox, "__1").current_value == "on"
    assert analyzer.analyze(zero_max, "__2").max_length is None


def test_directional_distance_requires_row_overlap() -> None:
    field = Rect(200, 100, 100, 20)

    assert directional_distance(field, Rect(50, 105, 100, 10), "left") == pytest.approx(50)
    assert directional_distance(field, Rect(50, 300, 100, 10), "left") is None
    assert directional_distance(field, Rect(320, 100, 40, 20), "right") == pytest.approx(20)
    assert directional_distance(field, Rect(200, 60, 100, 20), "top") == pytest.approx(20)
    assert directional_distance(field, Rect(200, 110, 100, 20), "top") is None
