# src/a11y_auditor/dom/rules/contrast.py
from typing import Any, Dict, List

from ...color.contrast import ContrastResult
from ...model import FindingKind, Severity
from ..core import AuditResult, Node, RuleGroup, audit_spec


def has_visible_text(node: Node, ctx) -> bool:
    return bool(node.text.strip()) and ctx.is_exposed(node)


def is_visible_control(node: Node, ctx) -> bool:
    return ctx.is_exposed(node) and ctx.is_interactive(node)


def _hex(rgb) -> str:
    return "#{:02x}{:02x}{:02x}".format(*(int(round(c)) for c in rgb))


def measurement(result: ContrastResult) -> Dict[str, Any]:
    details: Dict[str, Any] = {"ratio": result.ratio, "required": result.required}
    if result.ratio is not None:
        details["ratio_display"] = f"{result.ratio:.2f}:1"
    if result.pair is not None:
        details["foreground"] = _hex(result.pair.foreground)
        details["background"] = _hex(result.pair.background)
    return details


# --- AUDIT RULES ---

@audit_spec("contrast.text", Severity.HIGH, wcag="1.4.3", applies_to=has_visible_text)
def check_text_contrast(node: Node, ctx) -> List[AuditResult]:
    """
    Rule: Text meets 4.5:1 against its background (3:1 for large text).
    Nodes without any declared text colour are skipped. An unparseable text
    colour, or a colour on an unresolvable background, is indeterminate.
    """
    if not ctx.colors.has_foreground(node):
        return []
    result = ctx.colors.text_contrast(node)
    details = measurement(result)
    details["large_text"] = result.large_text

    if result.indeterminate:
        return [AuditResult(
            node.path,
            f"Text contrast could not be determined: {result.reason}.",
            "Use a resolvable text colour and declare an opaque background on the text or one of its ancestors.",
            details,
            FindingKind.INDETERMINATE
        )]
    if result.passes:
        return []
    size = "large" if result.large_text else "normal"
    return [AuditResult(
        node.path,
        f"Text contrast {result.ratio:.2f}:1 is below the {result.required}:1 minimum for {size} text.",
        f"Darken or lighten the text or background to reach at least {result.required}:1.",
        details
    )]


@audit_spec("contrast.non-text", Severity.MEDIUM, wcag="1.4.11", applies_to=is_visible_control)
def check_boundary_contrast(node: Node, ctx) -> List[AuditResult]:
    """
    Rule: The visual boundary of a control (border or fill) reaches 3:1
    against the adjacent background.
    """
    result = ctx.colors.boundary_contrast(node)
    if result is None:
        return []
    details = measurement(result)
    if result.indeterminate:
        return [AuditResult(
            node.path,
            f"Control boundary contrast could not be determined: {result.reason}.",
            "Declare an opaque background behind the control.",
            details,
            FindingKind.INDETERMINATE
        )]
    if result.passes:
        return []
    return [AuditResult(
        node.path,
        f"Control boundary contrast {result.ratio:.2f}:1 is below the {result.required}:1 minimum.",
        "Give the control a border or fill that stands out from its surroundings.",
        details
    )]


# --- RULE GROUP ---

DEFINITION = RuleGroup(
    family="contrast",
    rules=[check_text_contrast, check_boundary_contrast]
)
