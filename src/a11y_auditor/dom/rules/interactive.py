# src/a11y_auditor/dom/rules/interactive.py
from typing import List

from ...aria.table import WIDGET_ROLES
from ...focus.graph import is_natively_activatable
from ...model import Severity
from ..core import AuditResult, Node, RuleGroup, audit_spec

# Click handlers here are event delegation, not controls
DELEGATION_TAGS = {"html", "body"}


def has_click_handler(node: Node, ctx) -> bool:
    return node.has_click and node.tag not in DELEGATION_TAGS and not ctx.is_hidden(node)


# --- AUDIT RULES ---

@audit_spec("interactive.keyboard-equivalent", Severity.CRITICAL, wcag="2.1.1", applies_to=has_click_handler)
def check_keyboard_equivalent(node: Node, ctx) -> List[AuditResult]:
    """
    Rule: A click binding on an element that is not natively interactive needs
    a keyboard activation binding, or an interactive role plus a tab stop.
    """
    if is_natively_activatable(node) or node.has_keyboard_activation:
        return []

    role = ctx.role(node)
    tab_stop = ctx.focus.in_order(node.path)
    if role in WIDGET_ROLES and tab_stop:
        return []

    if role in WIDGET_ROLES:
        message = f"Clickable role '{role}' element is not in the tab order and has no keyboard handler."
        fix = "Add tabindex=\"0\" and an Enter/Space key handler."
    elif tab_stop:
        message = f"Clickable <{node.tag}> is focusable but has no interactive role and no keyboard handler."
        fix = "Add an interactive role (e.g. role=\"button\") and an Enter/Space key handler."
    else:
        message = f"Clickable <{node.tag}> cannot be operated with a keyboard."
        fix = "Use a <button>, or add role=\"button\", tabindex=\"0\" and an Enter/Space key handler."

    return [AuditResult(
        node.path,
        message,
        fix,
        {"role": role, "focusable": ctx.focus.is_focusable(node.path), "in_tab_order": tab_stop}
    )]


# --- RULE GROUP ---

DEFINITION = RuleGroup(
    family="interactive",
    rules=[check_keyboard_equivalent]
)
