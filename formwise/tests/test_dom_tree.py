import json

import pytest

from formwise.dom.tree import DocumentIndex, DomNode, Rect, clean_text, load_tree

SNAPSHOT = {
    "tag": "html",
    "rect": {"left": 0, "top": 0, "width": 800, "height": 600},
    "children": [
        {
            "tag": "BODY",
            "rect": {"x": 0, "y": 0, "right": 800, "bottom": 600},
            "children": [
                {"tag": "label", "attributes": {"for": "email"}, "children": [{"tag": "#text", "text": "Email"}]},
                {"tag": "my-widget", "shadow": [{"tag": "input", "attributes": {"id": "inner"}}], "children": []},
                {"tag": "input", "attributes": {"id": "email", "required": None}, "value": "a@b.com"},
                {"tag": "input", "attributes": {"id": "email", "type": "checkbox"}, "checked": True},
            ],
        }
    ],
}


def test_from_dict_builds_tree_with_parents() -> None:
    root = DomNode.from_dict(SNAPSHOT)
    body = root.children[0]
    widget = body.children[1]

    assert body.tag == "body"
    assert body.rect == Rect(0, 0, 800, 600)
    assert body.parent is root
    assert widget.has_nested_boundary
    assert widget.shadow_root[0].parent is widget
    assert body.children[2].get_attribute("required") == ""
    assert body.children[2].value == "a@b.com"
    assert body.children[3].checked is True


def test_walk_descends_into_nested_boundaries_in_order() -> None:
    root = DomNode.from_dict(SNAPSHOT)

    ids = [node.element_id for node in root.iter_elements() if node.tag == "input"]

    assert ids == ["inner", "email", "email"]


def test_document_index_keeps_first_id() -> None:
    root = DomNode.from_dict(SNAPSHOT)

    index = DocumentIndex.build(root)

    assert index.by_id["email"] is root.children[0].children[2]
    assert index.labels_for["email"].text_content() == "Email"
    assert [node.text for node in index.text_nodes] == ["Email"]


def test_to_dict_round_trips_through_disk(tmp_path) -> None:
    root = DomNode.from_dict(SNAPSHOT)
    path = tmp_path / "page.json"
    path.write_text(json.dumps({"url": "https://example.test", "tree": root.to_dict()}), encoding="utf-8")

    loaded = load_tree(path)

    assert loaded.to_dict() == root.to_dict()


def test_load_tree_rejects_non_tree(tmp_path) -> None:
    path = tmp_path / "bad.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")

    with pytest.raises(ValueError):
        load_tree(path)


def test_closest_contains_and_text_content() -> None:
    select = DomNode("select", children=[DomNode("option", children=[DomNode.text_node("Large")])])
    label = DomNode("label", children=[DomNode.text_node("Size "), select])

    assert select.closest("label") is label
    assert label.contains(select)
    assert not select.contains(label)
    assert label.text_content(exclude_tags=("select",)) == "Size "
    assert select.root() is label


@pytest.mark.parametrize(
    ("text", "expected"),
    [("  Full \n name ", "Full name"), ("", None), ("   ", None), ("x" * 200, None), ("x" * 199, "x" * 199)],
)
def test_clean_text(text, expected) -> None:
    assert clean_text(text) == expected
