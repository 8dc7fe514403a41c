"""Document tree abstraction and live-page snapshots."""

from .tree import TEXT_NODE, DocumentIndex, DomNode, Rect, clean_text, load_tree

__all__ = [
    "TEXT_NODE",
    "DocumentIndex",
    "DomNode",
    "Rect",
    "clean_text",
    "load_tree",
]
