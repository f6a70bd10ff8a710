# src/a11y_auditor/dom/rules/aria.py
"""
Rules reporting the ARIA validity facts computed once per pass by the
AriaChecker. Each check maps to its own rule id so it can be disabled or
re-weighted on its own.
"""
from typing import Callable, List

from ...model import FindingKind, Severity
from ..core import AuditResult, Node, RuleGroup, audit_spec


def has_violation(check: str) -> Callable[[Node, object], bool]:
    def applies(node: Node, ctx) -> bool:
        return bool(ctx.aria.for_node(node.path, check))
    applies.__name__ = f"has_{check.replace('-', '_')}"
    return applies


def report(node: Node, ctx, check: str, kind: FindingKind = FindingKind.VIOLATION) -> List[AuditResult]:
    """One finding per node, joining every violation of the check."""
    violations = ctx.aria.for_node(node.path, check)
    attributes = [v.attribute for v in violations if v.attribute]
    return [AuditResult(
        node.path,
        " ".join(v.message for v in violations),
        violations[0].suggested_fix,
        {"check": check, "attributes": attributes} if attributes else {"check": check},
        kind
    )]


# --- AUDIT RULES ---

@audit_spec("aria.role-unknown", Severity.MEDIUM, wcag="4.1.2", applies_to=has_violation("role-unknown"))
def check_role_unknown(node: Node, ctx) -> List[AuditResult]:
    """Rule: Role values exist in WAI-ARIA; unknown roles fall back to native semantics."""
    return report(node, ctx, "role-unknown", FindingKind.MODEL_INVALID)


@audit_spec("aria.required-attr", Severity.HIGH, wcag="4.1.2", applies_to=has_violation("required-attr"))
def check_required_attributes(node: Node, ctx) -> List[AuditResult]:
    """Rule: Roles carry the states and properties they require."""
    return report(node, ctx, "required-attr")


@audit_spec("aria.prohibited-attr", Severity.MEDIUM, wcag="4.1.2", applies_to=has_violation("prohibited-attr"))
def check_prohibited_attributes(node: Node, ctx) -> List[AuditResult]:
    """Rule: Only defined aria-* attributes, and only those the role supports."""
    return report(node, ctx, "prohibited-attr")


@audit_spec("aria.attr-value", Severity.MEDIUM, wcag="4.1.2", applies_to=has_violation("attr-value"))
def check_attribute_values(node: Node, ctx) -> List[AuditResult]:
    return report(node, ctx, "attr-value")


@audit_spec("aria.idref", Severity.MEDIUM, wcag="1.3.1", applies_to=has_violation("idref"))
def check_idrefs(node: Node, ctx) -> List[AuditResult]:
    return report(node, ctx, "idref")


@audit_spec("aria.native-conflict", Severity.HIGH, wcag="4.1.2", applies_to=has_violation("native-conflict"))
def check_native_conflict(node: Node, ctx) -> List[AuditResult]:
    """Rule: A role never strips or contradicts an element's required native semantics."""
    return report(node, ctx, "native-conflict")


@audit_spec("aria.context", Severity.MEDIUM, wcag="1.3.1", applies_to=has_violation("context"))
def check_context(node: Node, ctx) -> List[AuditResult]:
    """Rule: Roles sit inside the roles that must own them, and own only allowed children."""
    return report(node, ctx, "context")


# --- RULE GROUP ---

DEFINITION = RuleGroup(
    family="aria",
    rules=[
        check_role_unknown,
        check_required_attributes,
        check_prohibited_attributes,
        check_attribute_values,
        check_idrefs,
        check_native_conflict,
        check_context,
    ]
)
