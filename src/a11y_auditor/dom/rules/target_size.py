# src/a11y_auditor/dom/rules/target_size.py
import math
from typing import List, Optional

from ...model import Severity
from ..core import AuditResult, Node, RuleGroup, audit_spec


def is_target(node: Node, ctx) -> bool:
    """Visible pointer targets with a resolved, non-empty box."""
    if not ctx.is_exposed(node) or node.is_disabled:
        return False
    box = node.style.box
    if box is None or box.is_empty:
        return False
    return ctx.is_interactive(node) or node.has_click


def is_inline_link(node: Node, ctx) -> bool:
    """A link sitting inside a run of text; its size is set by the line height."""
    if ctx.role(node) != "link":
        return False
    parent = ctx.document.parent(node)
    return parent is not None and bool(parent.text.strip()) and not ctx.is_interactive(parent)


def nearest_target_distance(node: Node, ctx) -> Optional[float]:
    cx, cy = node.style.box.center
    distances = []
    for other in ctx.document.iter_nodes():
        if other.path == node.path or not is_target(other, ctx):
            continue
        ox, oy = other.style.box.center
        distances.append(math.hypot(cx - ox, cy - oy))
    return min(distances) if distances else None


# --- AUDIT RULES ---

@audit_spec("target.size", Severity.MEDIUM, wcag="2.5.8", applies_to=is_target)
def check_target_size(node: Node, ctx) -> List[AuditResult]:
    """
    Rule: Pointer targets are at least min_target_size in both dimensions.
    Exempt are inline links in text, and undersized targets whose
    min-size circle does not intersect the circle of any other target.
    """
    minimum = ctx.config.min_target_size
    box = node.style.box
    if box.width >= minimum and box.height >= minimum:
        return []
    if is_inline_link(node, ctx):
        return []

    distance = nearest_target_distance(node, ctx)
    if distance is None or distance >= minimum:
        return []

    return [AuditResult(
        node.path,
        f"Target is {box.width:g}x{box.height:g}, smaller than {minimum:g}x{minimum:g} and too close to another target.",
        f"Enlarge the target (including padding) to {minimum:g}x{minimum:g} or space it further from its neighbours.",
        {"width": box.width, "height": box.height, "min_size": minimum, "nearest_target_distance": distance}
    )]


# --- RULE GROUP ---

DEFINITION = RuleGroup(
    family="target",
    rules=[check_target_size]
)
