# src/a11y_auditor/dom/rules/motion.py
from typing import List, Optional

from ...model import Severity
from ..builder import MOTION_OK, REDUCED_MOTION, style_fields_from_declarations
from ..core import AuditResult, Node, RuleGroup, StyleFacts, audit_spec

# Animations running longer than this must be pausable (WCAG 2.2.2)
CONTINUOUS_AFTER_S = 5.0
# Reduced-motion resets usually collapse durations to 0.01ms, which never renders
NEGLIGIBLE_DURATION_S = 0.01


def style_under(style: StyleFacts, condition: Optional[str]) -> StyleFacts:
    """The node's style with the declarations of one media condition applied."""
    if condition is None or condition not in style.conditional:
        return style
    overrides = style_fields_from_declarations(style.conditional[condition])
    return style.model_copy(update=overrides)


def is_continuous(style: StyleFacts, min_duration_s: float = 0.0) -> bool:
    name = (style.animation_name or "").strip().lower()
    if not name or name == "none":
        return False
    duration = style.animation_duration_s or 0.0
    if duration <= min_duration_s:
        return False
    count = (style.animation_iteration_count or "1").strip().lower()
    if count == "infinite":
        return True
    try:
        return duration * float(count) > CONTINUOUS_AFTER_S
    except ValueError:
        return False


def paused_under(style: StyleFacts, condition: str) -> bool:
    declarations = style.conditional.get(condition, {})
    return declarations.get("animation-play-state", "").strip().lower() == "paused"


def is_animated(node: Node, ctx) -> bool:
    if ctx.is_hidden(node):
        return False
    style = node.style
    return bool(style.animation_name) or any(
        "animation" in prop for decls in style.conditional.values() for prop in decls
    )


# --- AUDIT RULES ---

@audit_spec("motion.reduced-motion", Severity.MEDIUM, wcag="2.2.2", applies_to=is_animated)
def check_reduced_motion(node: Node, ctx) -> List[AuditResult]:
    """
    Rule: A continuous or auto-playing animation is gated by the reduced
    motion preference: either it only runs under 'no-preference', or the
    'reduce' condition stops it.
    """
    with_motion = style_under(node.style, MOTION_OK)
    if not is_continuous(with_motion):
        return []

    reduced = style_under(node.style, REDUCED_MOTION)
    if not is_continuous(reduced, NEGLIGIBLE_DURATION_S) or paused_under(node.style, REDUCED_MOTION):
        return []

    count = with_motion.animation_iteration_count or "1"
    return [AuditResult(
        node.path,
        f"Animation '{with_motion.animation_name}' runs continuously and ignores prefers-reduced-motion.",
        "Disable or shorten the animation inside @media (prefers-reduced-motion: reduce), "
        "or only start it under (prefers-reduced-motion: no-preference).",
        {
            "animation_name": with_motion.animation_name,
            "duration_s": with_motion.animation_duration_s,
            "iteration_count": count,
        }
    )]


# --- RULE GROUP ---

DEFINITION = RuleGroup(
    family="motion",
    rules=[check_reduced_motion]
)
