# src/a11y_auditor/aria/names.py
"""
Simplified accessible-name computation.

Follows the order of the accname algorithm for the cases a static document
can express: aria-labelledby, aria-label, native label relations
(label[for], wrapping label, alt, svg <title>, legend, caption, button
values), name from content, and finally the title attribute.
A placeholder is never a name.
"""
import logging
from typing import Dict, List, Optional, Tuple

from ..dom.core import Node
from ..dom.models import UIDocument
from .table import effective_role

logger = logging.getLogger(__name__)

LABELABLE_TAGS = {"input", "select", "textarea", "meter", "output", "progress"}

# Roles (and tags) whose name may be computed from their content
NAME_FROM_CONTENT_ROLES = {
    "button", "cell", "checkbox", "columnheader", "gridcell", "heading", "link", "menuitem",
    "menuitemcheckbox", "menuitemradio", "option", "radio", "row", "rowheader", "switch", "tab",
    "tooltip", "treeitem",
}
NAME_FROM_CONTENT_TAGS = {"a", "button", "summary", "label", "legend", "caption", "figcaption", "h1", "h2",
                          "h3", "h4", "h5", "h6", "th", "td", "li", "option"}

_DEFAULT_BUTTON_VALUES = {"submit": "Submit", "reset": "Reset"}


def _clean(value: Optional[str]) -> str:
    return " ".join((value or "").split())


class NameResolver:
    """
    Computes accessible names for nodes of one document.
    Builds the label[for] index once; names themselves are computed on demand.
    """

    def __init__(self, document: UIDocument):
        self.document = document
        self._labels: Dict[str, List[Node]] = {}
        for node in document.iter_nodes():
            if node.tag == "label" and node.attrs.get("for"):
                self._labels.setdefault(node.attrs["for"], []).append(node)

    def labels_for(self, node: Node) -> List[Node]:
        """<label> elements bound to the control, explicitly via `for` or by wrapping it."""
        found = []
        node_id = node.attrs.get("id")
        if node_id:
            found.extend(self._labels.get(node_id, []))
        for ancestor in self.document.ancestors(node):
            if ancestor.tag == "label" and all(f.path != ancestor.path for f in found):
                found.append(ancestor)
                break
        return found

    def name(self, node: Node) -> str:
        return self.name_with_source(node)[0]

    def name_with_source(self, node: Node) -> Tuple[str, Optional[str]]:
        """Returns (name, source) where source says which step produced the name."""
        labelledby = node.attrs.get("aria-labelledby", "")
        if labelledby.strip():
            refs = [ref for ref in self.document.resolve_idrefs(labelledby) if ref is not None]
            parts = [self._text_alternative(ref, set(), referenced=True) for ref in refs]
            text = _clean(" ".join(parts))
            if text:
                return text, "aria-labelledby"

        label = _clean(node.attrs.get("aria-label"))
        if label:
            return label, "aria-label"

        native, source = self._native_name(node)
        if native:
            return native, source

        if self.allows_name_from_content(node):
            text = self.content_text(node)
            if text:
                return text, "content"

        title = _clean(node.attrs.get("title"))
        if title:
            return title, "title"
        return "", None

    def allows_name_from_content(self, node: Node) -> bool:
        return node.tag in NAME_FROM_CONTENT_TAGS or effective_role(node, self.document) in NAME_FROM_CONTENT_ROLES

    def _native_name(self, node: Node) -> Tuple[str, Optional[str]]:
        tag = node.tag
        if tag == "input":
            input_type = node.attrs.get("type", "text").lower()
            if input_type in ("button", "submit", "reset"):
                value = _clean(node.attrs.get("value")) or _DEFAULT_BUTTON_VALUES.get(input_type, "")
                return value, "value"
            if input_type == "image":
                return _clean(node.attrs.get("alt")), "alt"
        if tag in LABELABLE_TAGS:
            parts = [self._label_text(label, node) for label in self.labels_for(node)]
            text = _clean(" ".join(parts))
            if text:
                return text, "label"
        if tag in ("img", "area"):
            return _clean(node.attrs.get("alt")), "alt"
        if tag == "svg":
            for child in node.children:
                if child.tag == "title":
                    return _clean(self.document.text_content(child)), "svg-title"
        if tag == "fieldset":
            return self._child_text(node, "legend"), "legend"
        if tag == "figure":
            return self._child_text(node, "figcaption"), "figcaption"
        if tag == "table":
            return self._child_text(node, "caption"), "caption"
        return "", None

    def _child_text(self, node: Node, tag: str) -> str:
        for child in node.children:
            if child.tag == tag:
                return self.content_text(child)
        return ""

    def _label_text(self, label: Node, control: Node) -> str:
        """Label content, excluding the labelled control's own subtree."""
        parts = [label.text] if label.text else []
        for child in label.children:
            if child.path == control.path:
                continue
            parts.append(self._text_alternative(child, {control.path}))
        return _clean(" ".join(parts))

    def content_text(self, node: Node) -> str:
        """Name from content: own text plus text alternatives of visible descendants."""
        parts = [node.text] if node.text else []
        for child in node.children:
            parts.append(self._text_alternative(child, {node.path}))
        return _clean(" ".join(parts))

    def _text_alternative(self, node: Node, visited: set, referenced: bool = False) -> str:
        if node.path in visited:
            return ""
        visited = visited | {node.path}
        # aria-labelledby targets contribute even when hidden
        if not referenced and (self.document.is_hidden(node) or node.attrs.get("aria-hidden", "").lower() == "true"):
            return ""
        label = _clean(node.attrs.get("aria-label"))
        if label:
            return label
        if node.tag in ("img", "area", "svg") or (node.tag == "input" and node.attrs.get("type") == "image"):
            return self._native_name(node)[0]
        parts = [node.text] if node.text else []
        parts.extend(self._text_alternative(child, visited) for child in node.children)
        return _clean(" ".join(parts))
