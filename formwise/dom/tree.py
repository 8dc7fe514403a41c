"""Generic document tree used by the detector and the field analyzer.

A :class:`DomNode` is a platform-neutral stand-in for a rendered element: it
exposes attribute reads, a bounding rectangle, light-DOM children and an
optional list of children behind a nested boundary (``shadow_root``). Text is
carried by ``#text`` leaf nodes so geometry heuristics can walk text the same
way a browser tree walker would.

Trees are normally produced by :func:`formwise.dom.snapshot.snapshot_page`
or loaded from a JSON snapshot with :func:`load_tree`.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

TEXT_NODE = "#text"

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class Rect:
    """Bounding rectangle in viewport pixels."""

    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 and self.height <= 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Rect:
        """Create from dict with various formats."""
        if "width" in data and "height" in data:
            return cls(
                left=float(data.get("left", data.get("x", 0))),
                top=float(data.get("top", data.get("y", 0))),
                width=float(data["width"]),
                height=float(data["height"]),
            )
        left = float(data.get("left", data.get("x", 0)))
        top = float(data.get("top", data.get("y", 0)))
        right = float(data.get("right", left))
        bottom = float(data.get("bottom", top))
        return cls(left=left, top=top, width=right - left, height=bottom - top)

    def to_dict(self) -> Dict[str, float]:
        return {
            "x": self.left,
            "y": self.top,
            "width": self.width,
            "height": self.height,
            "top": self.top,
            "right": self.right,
            "bottom": self.bottom,
            "left": self.left,
        }

    def overlaps_vertically(self, other: Rect) -> bool:
        return min(self.bottom, other.bottom) - max(self.top, other.top) > 0

    def overlaps_horizontally(self, other: Rect) -> bool:
        return min(self.right, other.right) > max(self.left, other.left)


@dataclass(eq=False)
class DomNode:
    """One element (or text leaf) of a document tree.

    Nodes compare and hash by identity so they can key per-pass lookups.
    """

    tag: str
    attributes: Dict[str, str] = field(default_factory=dict)
    children: List[DomNode] = field(default_factory=list)
    shadow_root: Optional[List[DomNode]] = None
    text: str = ""
    rect: Optional[Rect] = None
    value: Optional[str] = None
    checked: bool = False
    parent: Optional[DomNode] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.tag = (self.tag or "").lower()
        for child in self.children:
            child.parent = self
        for child in self.shadow_root or ():
            child.parent = self

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    @classmethod
    def text_node(cls, text: str) -> DomNode:
        return cls(tag=TEXT_NODE, text=text)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> DomNode:
        """Build a tree from the JSON shape emitted by the page snapshotter."""

        tag = str(payload.get("tag") or "")
        if tag == TEXT_NODE:
            return cls.text_node(str(payload.get("text") or ""))

        rect_payload = payload.get("rect")
        shadow_payload = payload.get("shadow")
        value = payload.get("value")
        return cls(
            tag=tag,
            attributes={
                str(key): "" if attr is None else str(attr)
                for key, attr in (payload.get("attributes") or {}).items()
            },
            children=[cls.from_dict(child) for child in payload.get("children") or ()],
            shadow_root=(
                [cls.from_dict(child) for child in shadow_payload]
                if shadow_payload is not None
                else None
            ),
            rect=Rect.from_dict(rect_payload) if isinstance(rect_payload, Mapping) else None,
            value=None if value is None else str(value),
            checked=bool(payload.get("checked", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        if self.is_text:
            return {"tag": TEXT_NODE, "text": self.text}
        payload: Dict[str, Any] = {
            "tag": self.tag,
            "attributes": dict(self.attributes),
            "children": [child.to_dict() for child in self.children],
        }
        if self.shadow_root is not None:
            payload["shadow"] = [child.to_dict() for child in self.shadow_root]
        if self.rect is not None:
            payload["rect"] = {
                "left": self.rect.left,
                "top": self.rect.top,
                "width": self.rect.width,
                "height": self.rect.height,
            }
        if self.value is not None:
            payload["value"] = self.value
        if self.checked:
            payload["checked"] = True
        return payload

    def append(self, child: DomNode) -> DomNode:
        child.parent = self
        self.children.append(child)
        return child

    def attach_shadow(self, children: Sequence[DomNode]) -> None:
        self.shadow_root = list(children)
        for child in self.shadow_root:
            child.parent = self

    # ------------------------------------------------------------------
    # Attribute access
    # ------------------------------------------------------------------
    @property
    def is_text(self) -> bool:
        return self.tag == TEXT_NODE

    @property
    def has_nested_boundary(self) -> bool:
        return self.shadow_root is not None

    def get_attribute(self, name: str) -> Optional[str]:
        return self.attributes.get(name.lower())

    def has_attribute(self, name: str) -> bool:
        return name.lower() in self.attributes

    @property
    def element_id(self) -> Optional[str]:
        return self.attributes.get("id") or None

    @property
    def class_name(self) -> str:
        return self.attributes.get("class", "")

    @property
    def input_type(self) -> str:
        """Lower-cased ``type`` attribute, defaulting to ``text`` like a browser."""

        return (self.attributes.get("type") or "text").strip().lower() or "text"

    @property
    def is_rendered(self) -> bool:
        return self.rect is not None and not self.rect.is_empty

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------
    def child_nodes(self) -> Iterator[DomNode]:
        """Children in rendering order: nested-boundary content first, then light children."""

        if self.shadow_root is not None:
            yield from self.shadow_root
        yield from self.children

    def iter_descendants(self, *, include_self: bool = False) -> Iterator[DomNode]:
        """Depth-first document-order walk that descends into nested boundaries."""

        if include_self:
            yield self
        stack: List[Iterator[DomNode]] = [self.child_nodes()]
        while stack:
            node = next(stack[-1], None)
            if node is None:
                stack.pop()
                continue
            yield node
            stack.append(node.child_nodes())

    def iter_elements(self, *, include_self: bool = False) -> Iterator[DomNode]:
        return (node for node in self.iter_descendants(include_self=include_self) if not node.is_text)

    def ancestors(self) -> Iterator[DomNode]:
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def closest(self, tag: str) -> Optional[DomNode]:
        """Return the nearest node (self included) with the given tag."""

        tag = tag.lower()
        if self.tag == tag:
            return self
        for ancestor in self.ancestors():
            if ancestor.tag == tag:
                return ancestor
        return None

    def contains(self, other: DomNode) -> bool:
        return other is self or any(ancestor is self for ancestor in other.ancestors())

    def root(self) -> DomNode:
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    def text_content(self, *, exclude_tags: Iterable[str] = ()) -> str:
        """Concatenated light-tree text, skipping subtrees whose tag is excluded."""

        if self.is_text:
            return self.text
        excluded = {tag.lower() for tag in exclude_tags}
        parts: List[str] = []

        def _collect(node: DomNode) -> None:
            for child in node.children:
                if child.is_text:
                    parts.append(child.text)
                elif child.tag not in excluded:
                    _collect(child)

        _collect(self)
        return "".join(parts)


def clean_text(text: Optional[str], *, max_length: int = 200) -> Optional[str]:
    """Collapse whitespace; return ``None`` for empty or overly long text."""

    if not text:
        return None
    cleaned = _WHITESPACE_RE.sub(" ", text).strip()
    return cleaned if 0 < len(cleaned) < max_length else None


@dataclass
class DocumentIndex:
    """Lookup tables built once per detection pass."""

    root: DomNode
    elements: List[DomNode]
    text_nodes: List[DomNode]
    by_id: Dict[str, DomNode]
    labels_for: Dict[str, DomNode]

    @classmethod
    def build(cls, root: DomNode) -> DocumentIndex:
        elements: List[DomNode] = []
        text_nodes: List[DomNode] = []
        by_id: Dict[str, DomNode] = {}
        labels_for: Dict[str, DomNode] = {}

        for node in root.iter_descendants(include_self=True):
            if node.is_text:
                text_nodes.append(node)
                continue
            elements.append(node)
            element_id = node.element_id
            if element_id and element_id not in by_id:
                by_id[element_id] = node
            if node.tag == "label":
                target = node.get_attribute("for")
                if target and target not in labels_for:
                    labels_for[target] = node

        return cls(
            root=root,
            elements=elements,
            text_nodes=text_nodes,
            by_id=by_id,
            labels_for=labels_for,
        )


def load_tree(path: str | Path) -> DomNode:
    """Load a JSON tree snapshot from disk."""

    with Path(path).open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if isinstance(payload, Mapping) and "tree" in payload:
        payload = payload["tree"]
    if not isinstance(payload, Mapping):
        raise ValueError(f"Snapshot {path} does not contain a tree object")
    return DomNode.from_dict(payload)


__all__ = [
    "TEXT_NODE",
    "DocumentIndex",
    "DomNode",
    "Rect",
    "clean_text",
    "load_tree",
]
