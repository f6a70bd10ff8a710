# src/a11y_auditor/dom/rules/live_region.py
from typing import List, Optional

from ...aria.table import LIVE_REGION_ROLES
from ...model import Severity
from ..core import AuditResult, Node, RuleGroup, audit_spec, is_root

STATUS_CLASS_TOKENS = {
    "toast", "snackbar", "notification", "alert", "status", "status-message", "flash", "flash-message",
    "error-message", "form-error", "validation-message",
}
# Binding actions that change a node's content without moving focus
UPDATE_ACTIONS = {"update", "announce", "notify", "set-text", "render"}


def live_container(node: Node, ctx) -> Optional[Node]:
    """The node itself or the nearest ancestor that is a live region."""
    for current in (node, *ctx.document.ancestors(node)):
        live = current.attrs.get("aria-live", "").strip().lower()
        if live in ("polite", "assertive"):
            return current
        if live == "off":
            return None
        if ctx.role(current) in LIVE_REGION_ROLES:
            return current
    return None


def updated_paths(ctx) -> set:
    paths = set()
    for node in ctx.document.iter_nodes():
        for binding in node.bindings:
            if binding.action in UPDATE_ACTIONS and binding.target:
                target = ctx.document.by_id(binding.target)
                if target is not None:
                    paths.add(target.path)
    return paths


def status_messages(ctx) -> List[Node]:
    """Status-like nodes in document order; hidden toasts count too, they are shown later."""
    updated = updated_paths(ctx)
    return [n for n in ctx.document.iter_nodes() if n.classes & STATUS_CLASS_TOKENS or n.path in updated]


# --- AUDIT RULES ---

@audit_spec("live-region.status-message", Severity.MEDIUM, wcag="4.1.3", applies_to=is_root)
def check_status_messages(node: Node, ctx) -> List[AuditResult]:
    """
    Rule: Content that appears or changes to report status (toasts, form
    errors, scripted updates) lives in a live region so it is announced
    without moving focus.
    """
    results = []
    for message in status_messages(ctx):
        if live_container(message, ctx) is not None:
            continue
        results.append(AuditResult(
            message.path,
            f"Status content in <{message.tag}> is updated without a live region and will not be announced.",
            "Add role=\"status\" (or role=\"alert\" for urgent errors) or aria-live=\"polite\" to its container.",
            {"classes": sorted(message.classes & STATUS_CLASS_TOKENS)}
        ))
    return results


# --- RULE GROUP ---

DEFINITION = RuleGroup(
    family="live-region",
    rules=[check_status_messages]
)
