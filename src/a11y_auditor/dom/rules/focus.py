# src/a11y_auditor/dom/rules/focus.py
from typing import List

from ...focus.graph import visually_before
from ...model import FindingKind, Severity
from ..core import AuditResult, Node, RuleGroup, audit_spec, is_root

# Containers whose items are reached with arrow keys once the container has focus
ROVING_CONTAINER_ROLES = {
    "grid", "listbox", "menu", "menubar", "radiogroup", "tablist", "toolbar", "tree", "treegrid",
}


def is_focus_scope(node: Node, ctx) -> bool:
    return node.path in ctx.focus.scopes


def is_operable_control(node: Node, ctx) -> bool:
    return ctx.is_exposed(node) and ctx.is_interactive(node) and not node.is_disabled


def is_focusable(node: Node, ctx) -> bool:
    return ctx.focus.is_focusable(node.path)


def has_positive_tabindex(node: Node, ctx) -> bool:
    return node.tabindex is not None and node.tabindex > 0 and not ctx.is_hidden(node)


def reachable_by_arrow_keys(node: Node, ctx) -> bool:
    """Roving tabindex: an item of a composite widget whose container or sibling item is reachable."""
    for ancestor in ctx.document.ancestors(node):
        if ctx.role(ancestor) not in ROVING_CONTAINER_ROLES:
            continue
        if ctx.focus.reachable_under_any_scope(ancestor.path):
            return True
        return any(ctx.focus.reachable_under_any_scope(d.path) for d in ctx.document.descendants(ancestor))
    return False


# --- AUDIT RULES ---

@audit_spec("focus.trap", Severity.CRITICAL, wcag="2.1.2", applies_to=is_focus_scope)
def check_focus_trap(node: Node, ctx) -> List[AuditResult]:
    """
    Rule: A scope that keeps focus inside it offers a keyboard way out.
    """
    scope = ctx.focus.scopes[node.path]
    if scope.indeterminate:
        return [AuditResult(
            node.path,
            "Focus-restricting container has no focusable content; its keyboard behaviour cannot be determined.",
            "Move focus into the container when it opens and include a close control.",
            {"members": 0},
            FindingKind.INDETERMINATE
        )]
    if not scope.trap_candidate:
        return []
    return [AuditResult(
        node.path,
        f"Keyboard focus is trapped: {len(scope.members)} focusable element(s) cycle inside and no key closes it.",
        "Close the container on Escape, or provide a keyboard-operable close control.",
        {"members": list(scope.members), "modal": scope.modal}
    )]


@audit_spec("focus.order-mismatch", Severity.MEDIUM, wcag="2.4.3", applies_to=is_root)
def check_focus_order(node: Node, ctx) -> List[AuditResult]:
    """
    Rule: Sequential focus order follows the visual reading order.
    Each tab stop that lands visually before the previous one is reported.
    """
    results = []
    order = ctx.focus.order
    for previous_path, current_path in zip(order, order[1:]):
        previous = ctx.document.get(previous_path)
        current = ctx.document.get(current_path)
        a, b = previous.style.box, current.style.box
        if a is None or b is None or a.is_empty or b.is_empty:
            continue
        if visually_before(b, a):
            results.append(AuditResult(
                current_path,
                "Focus moves here after an element that is displayed later in the reading order.",
                "Make the DOM order match the visual order and avoid positive tabindex.",
                {"previous": previous_path, "box": b.model_dump(), "previous_box": a.model_dump()}
            ))
    return results


@audit_spec("focus.unreachable", Severity.HIGH, wcag="2.1.1", applies_to=is_operable_control)
def check_unreachable(node: Node, ctx) -> List[AuditResult]:
    """
    Rule: Every interactive element can be reached with the keyboard under
    some scope: the page tab order, a trigger that reveals it, or an open modal.
    """
    focus = ctx.focus
    if focus.reachable_under_any_scope(node.path):
        return []
    if reachable_by_arrow_keys(node, ctx):
        return []
    return [AuditResult(
        node.path,
        f"Interactive <{node.tag}> cannot be reached with the keyboard.",
        "Remove tabindex=\"-1\" or make a keyboard-reachable control move focus to it.",
        {"tabindex": node.tabindex, "focusable": focus.is_focusable(node.path)}
    )]


@audit_spec("focus.hidden-focusable", Severity.HIGH, wcag="2.4.7", applies_to=is_focusable)
def check_hidden_focusable(node: Node, ctx) -> List[AuditResult]:
    """
    Rule: Focusable elements are perceivable when focused: no zero-size box
    and not hidden from assistive technology with aria-hidden.
    """
    reasons = []
    box = node.style.box
    if box is not None and box.is_empty:
        reasons.append(f"its box is {box.width:g}x{box.height:g}")
    if ctx.document.is_aria_hidden(node):
        reasons.append("it is inside aria-hidden content")
    if not reasons:
        return []
    return [AuditResult(
        node.path,
        f"Focusable <{node.tag}> is not perceivable: {' and '.join(reasons)}.",
        "Remove it from the focus order (tabindex=\"-1\" or inert) or make it visible.",
        {"width": box.width if box else None, "height": box.height if box else None}
    )]


@audit_spec("focus.positive-tabindex", Severity.LOW, wcag="2.4.3", applies_to=has_positive_tabindex)
def check_positive_tabindex(node: Node, ctx) -> List[AuditResult]:
    """
    Rule: Positive tabindex overrides the natural order. It is honoured by the
    focus model and reported for review, never treated as an error on its own.
    """
    return [AuditResult(
        node.path,
        f"tabindex=\"{node.tabindex}\" moves this element ahead of the natural tab order.",
        "Use tabindex=\"0\" and arrange the DOM in the intended order.",
        {"tabindex": node.tabindex}
    )]


# --- RULE GROUP ---

DEFINITION = RuleGroup(
    family="focus",
    rules=[
        check_focus_trap,
        check_focus_order,
        check_unreachable,
        check_hidden_focusable,
        check_positive_tabindex,
    ]
)
