# src/a11y_auditor/dom/builder.py
import json
import logging
import re
from collections import Counter
from typing import Any, Dict, List, Mapping, Optional, Set

from bs4 import BeautifulSoup, Tag, NavigableString, Comment
from pydantic import ValidationError

from .core import Node, StyleFacts, BoundingBox, Binding, ModelIssue
from .models import UIDocument

logger = logging.getLogger(__name__)

SKIPPED_HTML_TAGS = {"script", "style", "template", "noscript"}
HANDLER_EVENTS = {
    "onclick": "click",
    "ondblclick": "dblclick",
    "onmousedown": "mousedown",
    "onmouseup": "mouseup",
    "onpointerdown": "pointerdown",
    "onpointerup": "pointerup",
    "onkeydown": "keydown",
    "onkeyup": "keyup",
    "onkeypress": "keypress",
}
REDUCED_MOTION = "prefers-reduced-motion: reduce"
MOTION_OK = "prefers-reduced-motion: no-preference"


def normalize_condition(condition: str) -> str:
    """'(prefers-reduced-motion:reduce)' -> 'prefers-reduced-motion: reduce'"""
    text = condition.strip().lower().strip("()").replace(" ", "")
    if ":" in text:
        feature, value = text.split(":", 1)
        return f"{feature}: {value}"
    return text


def parse_declarations(css: Optional[str]) -> Dict[str, str]:
    """Splits an inline CSS declaration block into a property -> value map."""
    out: Dict[str, str] = {}
    for chunk in (css or "").split(";"):
        if ":" not in chunk:
            continue
        prop, value = chunk.split(":", 1)
        prop = prop.strip().lower()
        value = value.replace("!important", "").strip()
        if prop and value:
            out[prop] = value
    return out


def parse_font_size_pt(value: Any) -> Optional[float]:
    """Converts '16px', '12pt', '1.5em' (against 16px) or bare px numbers to points."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value) * 0.75
    match = re.match(r"^\s*([0-9]*\.?[0-9]+)\s*(px|pt|em|rem)?\s*$", str(value).lower())
    if not match:
        return None
    number, unit = float(match.group(1)), match.group(2) or "px"
    if unit == "pt":
        return number
    if unit in ("em", "rem"):
        return number * 16 * 0.75
    return number * 0.75


def parse_duration_s(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = re.match(r"^\s*([0-9]*\.?[0-9]+)\s*(ms|s)\s*$", str(value).lower())
    if not match:
        return None
    number = float(match.group(1))
    return number / 1000 if match.group(2) == "ms" else number


def parse_font_weight(value: Any) -> int:
    if value is None:
        return 400
    text = str(value).strip().lower()
    if text in ("bold", "bolder"):
        return 700
    if text in ("normal", "lighter"):
        return 400
    try:
        return int(float(text))
    except ValueError:
        return 400


def parse_animation_shorthand(value: str) -> Dict[str, Any]:
    """
    Extracts name, duration and iteration count from an `animation` shorthand,
    e.g. 'spin 2s linear infinite'.
    """
    parts: Dict[str, Any] = {}
    keywords = {"linear", "ease", "ease-in", "ease-out", "ease-in-out", "step-start", "step-end",
                "normal", "reverse", "alternate", "alternate-reverse", "forwards", "backwards",
                "both", "running", "paused"}
    for token in value.split():
        token_l = token.lower()
        if token_l == "none":
            parts["animation_name"] = "none"
        elif token_l == "infinite":
            parts["animation_iteration_count"] = "infinite"
        elif parse_duration_s(token_l) is not None:
            # First time value is the duration, a second one would be the delay
            parts.setdefault("animation_duration_s", parse_duration_s(token_l))
        elif re.match(r"^[0-9]*\.?[0-9]+$", token_l):
            parts["animation_iteration_count"] = token_l
        elif token_l in keywords or token_l.startswith(("cubic-bezier", "steps(")):
            continue
        else:
            parts.setdefault("animation_name", token)
    return parts


def conditional_declarations(decl: Any) -> Dict[str, str]:
    if isinstance(decl, str):
        return parse_declarations(decl)
    if not isinstance(decl, Mapping):
        raise ValueError(f"Conditional declarations must be a mapping or CSS text, got {type(decl).__name__}")
    return {str(k).lower(): str(v) for k, v in decl.items()}


def style_fields_from_declarations(decls: Mapping[str, Any]) -> Dict[str, Any]:
    """Maps CSS-style (or snake_case) declarations onto StyleFacts field values."""
    fields: Dict[str, Any] = {}
    for raw_key, value in decls.items():
        key = str(raw_key).strip().lower().replace("-", "_")
        if key == "color":
            fields["color"] = value
        elif key in ("background_color", "background"):
            fields["background_color"] = value
        elif key == "border_color":
            fields["border_color"] = value
        elif key == "border" and isinstance(value, str):
            # 'border: 1px solid #333' -> color is the last token that is not a width/style
            tokens = [t for t in value.split() if not re.match(r"^[0-9.]+(px|em|rem|pt)?$", t)
                      and t not in ("solid", "dashed", "dotted", "double", "none")]
            if tokens:
                fields["border_color"] = tokens[-1]
        elif key == "font_size_pt":
            fields["font_size_pt"] = float(value)
        elif key == "font_size":
            fields["font_size_pt"] = parse_font_size_pt(value)
        elif key == "font_weight":
            fields["font_weight"] = parse_font_weight(value)
        elif key in ("display", "visibility"):
            fields[key] = str(value).strip().lower()
        elif key == "animation" and isinstance(value, str):
            fields.update(parse_animation_shorthand(value))
        elif key == "animation_name":
            fields["animation_name"] = value
        elif key in ("animation_duration", "animation_duration_s"):
            fields["animation_duration_s"] = parse_duration_s(value)
        elif key == "animation_iteration_count":
            fields["animation_iteration_count"] = value
        elif key == "conditional":
            if not isinstance(value, Mapping):
                raise ValueError(f"conditional must map conditions to declarations, got {type(value).__name__}")
            fields["conditional"] = {
                normalize_condition(cond): conditional_declarations(decl) for cond, decl in value.items()
            }
        elif key in ("box", "bbox"):
            fields["box"] = parse_box(value)
    return fields


def parse_box(value: Any) -> Optional[BoundingBox]:
    if value is None:
        return None
    if isinstance(value, BoundingBox):
        return value
    if isinstance(value, Mapping):
        return BoundingBox(**{k: float(v) for k, v in value.items() if k in ("x", "y", "width", "height")})
    if isinstance(value, str):
        value = [v for v in re.split(r"[,\s]+", value.strip()) if v]
    numbers = [float(v) for v in value]
    if len(numbers) != 4:
        raise ValueError(f"Bounding box needs 4 numbers, got {len(numbers)}")
    return BoundingBox(x=numbers[0], y=numbers[1], width=numbers[2], height=numbers[3])


def child_paths(parent_path: str, tags: List[str]) -> List[str]:
    """1-based index among same-tag siblings: /html[1]/body[1]/div[2]"""
    seen: Counter = Counter()
    paths = []
    for tag in tags:
        seen[tag] += 1
        paths.append(f"{parent_path}/{tag}[{seen[tag]}]")
    return paths


class DOMBuilder:
    """
    Builder responsible for turning loader output into a UIDocument model.

    Accepts nested mappings, flat id-referenced node tables, JSON text and
    raw HTML (parsed with BeautifulSoup). Structural problems are recorded on
    the document as ModelIssues instead of aborting the build.
    """

    # --- Mapping input ---

    def build(self, payload: Mapping[str, Any], source: str = "") -> UIDocument:
        """
        Builds a document from either a nested node mapping
        ({"tag": ..., "children": [...]}) or a flat table
        ({"root": "n1", "nodes": {"n1": {..., "children": ["n2"]}}}).
        """
        issues: List[ModelIssue] = []
        if "nodes" in payload and "root" in payload:
            root = self._build_flat(payload, issues)
        else:
            root = self._build_nested(payload, "", 1, issues)

        if root is None:
            raise ValueError("Document payload has no valid root node")

        self._record_duplicate_ids(root, issues)
        doc = UIDocument(root=root, source=source, issues=issues)
        logger.debug(f"Built document '{source}' with {len(doc)} nodes, {len(issues)} model issues")
        return doc

    def from_json(self, text: str, source: str = "") -> UIDocument:
        return self.build(json.loads(text), source=source)

    def _build_nested(
            self, data: Any, parent_path: str, index: int, issues: List[ModelIssue], tag_path: Optional[str] = None
    ) -> Optional[Node]:
        if not isinstance(data, Mapping) or not data.get("tag"):
            issues.append(ModelIssue(
                kind="invalid-node",
                path=parent_path or "/",
                message=f"Child entry without a tag ignored: {str(data)[:60]}"
            ))
            return None

        tag = str(data["tag"]).lower()
        path = tag_path or f"{parent_path}/{tag}[{index}]"

        raw_children = list(data.get("children") or [])
        valid = [c for c in raw_children if isinstance(c, Mapping) and c.get("tag")]
        for bad in (c for c in raw_children if not (isinstance(c, Mapping) and c.get("tag"))):
            self._build_nested(bad, path, 0, issues)

        paths = child_paths(path, [str(c["tag"]).lower() for c in valid])
        children = [self._build_nested(c, path, 0, issues, tag_path=p) for c, p in zip(valid, paths)]

        return self._make_node(data, path, tag, [c for c in children if c is not None], issues)

    def _build_flat(self, payload: Mapping[str, Any], issues: List[ModelIssue]) -> Optional[Node]:
        table = payload.get("nodes") or {}
        root_id = payload.get("root")
        if not isinstance(table, Mapping):
            issues.append(ModelIssue(
                kind="invalid-node", path="/", message="Node table must be a mapping of ids to records"
            ))
            return None
        if not isinstance(root_id, (str, int)) or root_id not in table:
            issues.append(ModelIssue(kind="dangling-child", path="/", message=f"Root id '{root_id}' not in node table"))
            return None

        visited: Set[str] = set()

        def build(node_id: str, path: str, chain: Set[str]) -> Node:
            visited.add(node_id)
            record = table[node_id]
            kept = []
            raw_children = record.get("children") or []
            if not isinstance(raw_children, (list, tuple)):
                issues.append(ModelIssue(kind="invalid-node", path=path, message="children must be a list of ids"))
                raw_children = []
            for child_id in raw_children:
                if not isinstance(child_id, (str, int)) or child_id not in table:
                    issues.append(ModelIssue(
                        kind="dangling-child",
                        path=path,
                        message=f"Child reference '{child_id}' points outside the document"
                    ))
                elif child_id in chain or child_id in visited:
                    issues.append(ModelIssue(
                        kind="cycle",
                        path=path,
                        message=f"Child reference '{child_id}' is already part of the tree"
                    ))
                elif not isinstance(table[child_id], Mapping):
                    issues.append(ModelIssue(
                        kind="invalid-node", path=path, message=f"Node '{child_id}' is not a node record"
                    ))
                elif not table[child_id].get("tag"):
                    issues.append(ModelIssue(
                        kind="invalid-node", path=path, message=f"Node '{child_id}' has no tag"
                    ))
                else:
                    kept.append(child_id)

            paths = child_paths(path, [str(table[c]["tag"]).lower() for c in kept])
            children = []
            for child_id, child_path in zip(kept, paths):
                # A sibling subtree may already have claimed this id
                if child_id in visited:
                    issues.append(ModelIssue(
                        kind="cycle", path=path, message=f"Child reference '{child_id}' is already part of the tree"
                    ))
                    continue
                children.append(build(child_id, child_path, chain | {node_id}))

            tag = str(record["tag"]).lower()
            return self._make_node(record, path, tag, children, issues)

        if not isinstance(table[root_id], Mapping):
            issues.append(ModelIssue(kind="invalid-node", path="/", message=f"Root '{root_id}' is not a node record"))
            return None
        root_tag = str(table[root_id].get("tag") or "").lower()
        if not root_tag:
            issues.append(ModelIssue(kind="invalid-node", path="/", message="Root node has no tag"))
            return None
        return build(root_id, f"/{root_tag}[1]", set())

    def _make_node(
            self, data: Mapping[str, Any], path: str, tag: str, children: List[Node], issues: List[ModelIssue]
    ) -> Node:
        style_data = data.get("style") or {}
        try:
            if isinstance(style_data, str):
                style_data = parse_declarations(style_data)
            elif not isinstance(style_data, Mapping):
                raise ValueError(f"style must be a mapping or CSS text, got {type(style_data).__name__}")
            style = StyleFacts(**style_fields_from_declarations(style_data))
        except (ValidationError, ValueError, TypeError, AttributeError) as e:
            issues.append(ModelIssue(kind="invalid-node", path=path, message=f"Unusable style facts: {e}"))
            style = StyleFacts()

        bindings = []
        raw_bindings = data.get("bindings") or []
        if not isinstance(raw_bindings, (list, tuple)):
            issues.append(ModelIssue(kind="invalid-node", path=path, message="bindings must be a list"))
            raw_bindings = []
        for raw in raw_bindings:
            try:
                bindings.append(raw if isinstance(raw, Binding) else Binding(**raw))
            except (ValidationError, TypeError) as e:
                issues.append(ModelIssue(kind="invalid-node", path=path, message=f"Unusable binding: {e}"))

        attrs = data.get("attrs") or {}
        if not isinstance(attrs, Mapping):
            issues.append(ModelIssue(
                kind="invalid-node", path=path, message=f"attrs must be a mapping, got {type(attrs).__name__}"
            ))
            attrs = {}

        return Node(
            path=path,
            tag=tag,
            attrs=attrs,
            text=" ".join(str(data.get("text") or "").split()),
            style=style,
            bindings=bindings,
            children=children
        )

    def _record_duplicate_ids(self, root: Node, issues: List[ModelIssue]) -> None:
        first_seen: Dict[str, str] = {}
        stack = [root]
        while stack:
            node = stack.pop()
            stack.extend(reversed(node.children))
            node_id = node.attrs.get("id")
            if not node_id:
                continue
            if node_id in first_seen:
                issues.append(ModelIssue(
                    kind="duplicate-id",
                    path=node.path,
                    message=f"Duplicate id '{node_id}' (first used at {first_seen[node_id]})"
                ))
            else:
                first_seen[node_id] = node.path

    # --- HTML input ---

    def parse_html(self, html: str, source: str = "") -> UIDocument:
        """
        Parses raw HTML into a UIDocument.

        Style facts are read from inline `style` attributes only (this is not
        a cascade engine). Loader conventions:
          - `on*` handler attributes become click/keyboard bindings,
          - `data-bindings` holds a JSON list of explicit bindings,
          - `data-bbox="x,y,w,h"` gives the resolved layout box,
          - `data-reduced-motion` / `data-motion-ok` hold declarations that
            apply under prefers-reduced-motion reduce / no-preference.
        """
        clean_html = (html or "").replace('\ufeff', '').strip()
        soup = BeautifulSoup(clean_html, 'html.parser')

        issues: List[ModelIssue] = []
        root_tag = soup.find('html')
        if root_tag is None:
            top_level = [c for c in soup.children if isinstance(c, Tag)]
            if len(top_level) == 1:
                root_tag = top_level[0]
            else:
                # Wrap loose fragments so the tree has a single root
                wrapper = soup.new_tag("body")
                for child in list(soup.contents):
                    wrapper.append(child.extract())
                root_tag = wrapper

        root = self._build_from_tag(root_tag, f"/{root_tag.name}[1]", issues)
        self._record_duplicate_ids(root, issues)
        doc = UIDocument(root=root, source=source, issues=issues)
        logger.debug(f"Parsed HTML '{source}' into {len(doc)} nodes")
        return doc

    def _build_from_tag(self, tag: Tag, path: str, issues: List[ModelIssue]) -> Node:
        child_tags = [c for c in tag.children if isinstance(c, Tag) and c.name not in SKIPPED_HTML_TAGS]
        paths = child_paths(path, [c.name for c in child_tags])
        children = [self._build_from_tag(c, p, issues) for c, p in zip(child_tags, paths)]

        own_text = " ".join(
            str(c) for c in tag.children
            if isinstance(c, NavigableString) and not isinstance(c, Comment)
        )

        attrs = dict(tag.attrs)
        declarations: Dict[str, Any] = dict(parse_declarations(attrs.get("style")))
        conditional = {}
        if attrs.get("data-reduced-motion"):
            conditional[REDUCED_MOTION] = parse_declarations(attrs["data-reduced-motion"])
        if attrs.get("data-motion-ok"):
            conditional[MOTION_OK] = parse_declarations(attrs["data-motion-ok"])
        if conditional:
            declarations["conditional"] = conditional
        if attrs.get("data-bbox"):
            declarations["box"] = attrs["data-bbox"]

        bindings: List[Dict[str, Any]] = []
        for attr_name, event in HANDLER_EVENTS.items():
            if attr_name in attrs:
                bindings.append({"event": event})
        if attrs.get("data-bindings"):
            try:
                explicit = json.loads(attrs["data-bindings"])
                bindings.extend(explicit if isinstance(explicit, list) else [explicit])
            except json.JSONDecodeError as e:
                issues.append(ModelIssue(kind="invalid-node", path=path, message=f"Malformed data-bindings: {e}"))

        record = {
            "tag": tag.name,
            "attrs": attrs,
            "text": own_text,
            "style": declarations,
            "bindings": bindings,
        }
        return self._make_node(record, path, tag.name.lower(), children, issues)
