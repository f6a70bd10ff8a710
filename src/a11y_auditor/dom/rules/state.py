# src/a11y_auditor/dom/rules/state.py
from typing import List

from ...model import Severity
from ..core import AuditResult, Node, RuleGroup, audit_spec


def has_state_mismatch(node: Node, ctx) -> bool:
    return bool(ctx.aria.for_node(node.path, "state-sync"))


# --- AUDIT RULES ---

@audit_spec("state.sync", Severity.HIGH, wcag="4.1.2", applies_to=has_state_mismatch)
def check_state_sync(node: Node, ctx) -> List[AuditResult]:
    """
    Rule: A state shown visually (expanded, selected, pressed, checked,
    invalid) is exposed through the matching ARIA state with the same value.
    """
    mismatches = ctx.aria.for_node(node.path, "state-sync")
    return [AuditResult(
        node.path,
        " ".join(v.message for v in mismatches),
        mismatches[0].suggested_fix,
        {"attributes": [v.attribute for v in mismatches]}
    )]


# --- RULE GROUP ---

DEFINITION = RuleGroup(
    family="state",
    rules=[check_state_sync]
)
