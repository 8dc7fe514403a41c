"""Capture a live Playwright page as a :class:`~formwise.dom.tree.DomNode` tree.

The snapshot walks the rendered document once, descending into open shadow
roots, and records for every element its attributes, bounding rectangle and
current control value. The result is a plain JSON payload, so it can be saved
and replayed offline (``formwise detect snapshot.json``).
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

from playwright.sync_api import Page

from .tree import DomNode

logger = logging.getLogger(__name__)

_SNAPSHOT_SCRIPT = """
() => {
    const SKIPPED = new Set(["script", "style", "noscript", "template", "svg"]);

    const serialize = (node) => {
        if (node.nodeType === Node.TEXT_NODE) {
            const text = node.textContent || "";
            return text.trim() ? { tag: "#text", text } : null;
        }
        if (node.nodeType !== Node.ELEMENT_NODE) {
            return null;
        }
        const el = node;
        const tag = (el.tagName || "").toLowerCase();
        if (SKIPPED.has(tag)) {
            return null;
        }
        const attributes = {};
        for (const name of el.getAttributeNames ? el.getAttributeNames() : []) {
            attributes[name] = el.getAttribute(name) || "";
        }
        const rect = el.getBoundingClientRect();
        const payload = {
            tag,
            attributes,
            rect: { left: rect.left, top: rect.top, width: rect.width, height: rect.height },
            children: [],
        };
        if (el.offsetParent === null && getComputedStyle(el).position !== "fixed" && tag !== "body" && tag !== "html") {
            payload.rect = { left: rect.left, top: rect.top, width: 0, height: 0 };
        }
        if (tag === "input" || tag === "textarea" || tag === "select") {
            payload.value = el.value || "";
            if (tag === "input" && (el.type === "checkbox" || el.type === "radio")) {
                payload.checked = Boolean(el.checked);
            }
        }
        for (const child of el.childNodes) {
            const serialized = serialize(child);
            if (serialized) {
                payload.children.push(serialized);
            }
        }
        if (el.shadowRoot) {
            payload.shadow = [];
            for (const child of el.shadowRoot.childNodes) {
                const serialized = serialize(child);
                if (serialized) {
                    payload.shadow.push(serialized);
                }
            }
        }
        return payload;
    };

    return serialize(document.documentElement);
}
"""


def capture_page_tree(page: Page) -> Dict[str, Any]:
    """Return the raw JSON-ready snapshot of ``page``."""

    payload = page.evaluate(_SNAPSHOT_SCRIPT)
    if not isinstance(payload, dict):
        raise RuntimeError("Page snapshot did not return a document element")
    return payload


def snapshot_page(page: Page) -> DomNode:
    """Snapshot ``page`` into a :class:`DomNode` tree."""

    payload = capture_page_tree(page)
    logger.debug("Captured page snapshot", extra={"url": page.url})
    return DomNode.from_dict(payload)


def save_snapshot(page: Page, path: str | Path) -> Path:
    """Write the page snapshot to ``path`` and return the resolved path."""

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    payload = {"url": page.url, "tree": capture_page_tree(page)}
    target.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
    return target


def snapshot_url(url: str, *, headless: bool = True, timeout_ms: int = 30000) -> DomNode:
    """Launch Chromium, load ``url`` and return its tree."""

    from playwright.sync_api import sync_playwright

    with sync_playwright() as playwright:
        browser = playwright.chromium.launch(headless=headless)
        try:
            page = browser.new_page()
            page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
            return snapshot_page(page)
        finally:
            browser.close()


__all__ = ["capture_page_tree", "save_snapshot", "snapshot_page", "snapshot_url"]
