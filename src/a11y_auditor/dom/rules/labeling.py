# src/a11y_auditor/dom/rules/labeling.py
from typing import List

from ...aria.table import PRESENTATIONAL_ROLES
from ...model import Severity
from ..core import AuditResult, Node, RuleGroup, audit_spec

UNLABELED_INPUT_TYPES = {"hidden", "button", "submit", "reset", "image"}
FORM_ROLES = {"textbox", "searchbox", "combobox", "listbox", "slider", "spinbutton", "checkbox", "radio", "switch"}
# Composite widgets named by their items rather than required to carry a name themselves
COMPOSITE_ROLES = {"grid", "gridcell", "menu", "menubar", "radiogroup", "tablist", "tree", "treegrid", "toolbar"}
GRAPHIC_TAGS = {"img", "svg", "area"}


def is_form_control(node: Node, ctx) -> bool:
    if not ctx.is_exposed(node):
        return False
    if node.tag == "input":
        return node.attrs.get("type", "text").lower() not in UNLABELED_INPUT_TYPES
    if node.tag in ("select", "textarea"):
        return True
    return bool(node.role_tokens) and ctx.role(node) in FORM_ROLES


def is_graphic(node: Node, ctx) -> bool:
    if not ctx.is_exposed(node):
        return False
    if node.tag == "area" and "href" not in node.attrs:
        return False
    return node.tag in GRAPHIC_TAGS or ctx.role(node) == "img"


def is_named_control(node: Node, ctx) -> bool:
    """Interactive nodes that need a name and are not covered by the form-control rule."""
    if not ctx.is_exposed(node) or not ctx.is_interactive(node):
        return False
    if is_form_control(node, ctx):
        return False
    return ctx.role(node) not in COMPOSITE_ROLES


def is_decorative(node: Node, ctx) -> bool:
    if node.tag == "img" and node.attrs.get("alt") == "" and not node.attrs.get("aria-label"):
        return True
    return node.role in PRESENTATIONAL_ROLES


def inside_control(node: Node, ctx) -> bool:
    return any(ctx.is_interactive(a) or a.has_click for a in ctx.document.ancestors(node))


def graphic_descendants(node: Node, ctx) -> List[Node]:
    return [d for d in ctx.document.descendants(node) if is_graphic(d, ctx)]


# --- AUDIT RULES ---

@audit_spec("label.form-control", Severity.CRITICAL, wcag="1.3.1", applies_to=is_form_control)
def check_form_control_label(node: Node, ctx) -> List[AuditResult]:
    """
    Rule: Every form control has a programmatic label.
    A placeholder disappears on input and is not a label.
    """
    name, source = ctx.names.name_with_source(node)
    if name:
        return []
    placeholder = node.attrs.get("placeholder", "").strip()
    if placeholder:
        message = f"Form control is labelled only by its placeholder ('{placeholder}')."
    else:
        message = f"Form control <{node.tag}> has no associated label."
    return [AuditResult(
        node.path,
        message,
        "Associate a <label for=...>, wrap the control in a <label>, or add aria-labelledby.",
        {"placeholder": placeholder or None, "role": ctx.role(node)}
    )]


@audit_spec("label.text-alternative", Severity.HIGH, wcag="1.1.1", applies_to=is_graphic)
def check_text_alternative(node: Node, ctx) -> List[AuditResult]:
    """
    Rule: Informative graphics carry a text alternative; decorative ones say so.
    Graphics inside a control are judged through the control's name instead.
    """
    if is_decorative(node, ctx) or inside_control(node, ctx):
        return []
    if ctx.names.name(node):
        return []
    if node.tag == "img" and "alt" not in node.attrs:
        message = "Image has no alt attribute."
    else:
        message = f"Graphic <{node.tag}> has no text alternative."
    return [AuditResult(
        node.path,
        message,
        "Add alt text (or aria-label); use alt=\"\" or aria-hidden=\"true\" if it is purely decorative."
    )]


@audit_spec("label.control-name", Severity.CRITICAL, wcag="4.1.2", applies_to=is_named_control)
def check_control_name(node: Node, ctx) -> List[AuditResult]:
    """
    Rule: Buttons, links and other interactive controls have an accessible name.
    """
    if ctx.names.name(node):
        return []
    graphics = graphic_descendants(node, ctx)
    if graphics:
        message = f"Icon-only control <{node.tag}> has no accessible name; its graphic has no text alternative."
        fix = "Add aria-label to the control, or a text alternative to the graphic."
    else:
        message = f"Interactive control <{node.tag}> has no accessible name."
        fix = "Add visible text, aria-label or aria-labelledby."
    return [AuditResult(
        node.path,
        message,
        fix,
        {"role": ctx.role(node), "graphics": [g.path for g in graphics]}
    )]


# --- RULE GROUP ---

DEFINITION = RuleGroup(
    family="labeling",
    rules=[check_form_control_label, check_text_alternative, check_control_name]
)
