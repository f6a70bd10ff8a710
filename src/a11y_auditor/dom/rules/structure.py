# src/a11y_auditor/dom/rules/structure.py
import re
from collections import defaultdict
from typing import List, Optional

from ...aria.table import LANDMARK_ROLES
from ...model import Severity
from ..core import AuditResult, Node, RuleGroup, audit_spec, is_root

HEADING_TAG = re.compile(r"^h([1-6])$")
LANG_TAG = re.compile(r"^[a-zA-Z]{2,3}(-[a-zA-Z0-9]{1,8})*$")


def heading_level(node: Node, ctx) -> Optional[int]:
    """Level of an exposed heading, or None when the node is not a heading."""
    if ctx.role(node) != "heading":
        return None
    raw = node.attrs.get("aria-level", "").strip()
    if raw:
        try:
            level = int(raw)
            if level >= 1:
                return level
        except ValueError:
            pass
    match = HEADING_TAG.match(node.tag)
    # role="heading" without aria-level defaults to level 2
    return int(match.group(1)) if match else 2


def exposed_headings(ctx) -> List[tuple]:
    found = []
    for node in ctx.document.iter_nodes():
        if not ctx.is_exposed(node):
            continue
        level = heading_level(node, ctx)
        if level is not None:
            found.append((node, level))
    return found


# --- AUDIT RULES ---

@audit_spec("structure.single-h1", Severity.MEDIUM, wcag="1.3.1", applies_to=is_root)
def check_single_h1(node: Node, ctx) -> List[AuditResult]:
    """
    Rule: A document has exactly one top-level heading.
    Missing is reported on the root; every extra level-one heading on itself.
    """
    results = []
    top = [n for n, level in exposed_headings(ctx) if level == 1]
    if not top:
        results.append(AuditResult(
            node.path,
            "Document has no level-one heading.",
            "Add a single <h1> describing the page content."
        ))
    for extra in top[1:]:
        results.append(AuditResult(
            extra.path,
            f"Document has {len(top)} level-one headings; only one is expected.",
            "Demote secondary headings to <h2> or lower.",
            {"count": len(top), "first": top[0].path}
        ))
    return results


@audit_spec("structure.heading-order", Severity.MEDIUM, wcag="1.3.1", applies_to=is_root)
def check_heading_order(node: Node, ctx) -> List[AuditResult]:
    """
    Rule: Heading levels do not jump forward by more than one level
    in document order (h2 -> h4 skips h3). Going back up is always fine.
    """
    results = []
    previous = None
    for heading, level in exposed_headings(ctx):
        if previous is not None and level - previous >= 2:
            results.append(AuditResult(
                heading.path,
                f"Heading level {level} follows level {previous}, skipping {level - previous - 1} level(s).",
                f"Use a level {previous + 1} heading here or restructure the outline.",
                {"level": level, "previous_level": previous}
            ))
        previous = level
    return results


@audit_spec("structure.landmark-main", Severity.MEDIUM, wcag="1.3.1", applies_to=is_root)
def check_main_landmark(node: Node, ctx) -> List[AuditResult]:
    """
    Rule: The document exposes exactly one main landmark.
    """
    results = []
    mains = [n for n in ctx.nodes_with_role("main") if ctx.is_exposed(n)]
    if not mains:
        results.append(AuditResult(
            node.path,
            "Document has no main landmark.",
            "Wrap the primary content in <main> (or role=\"main\")."
        ))
    for extra in mains[1:]:
        results.append(AuditResult(
            extra.path,
            f"Document has {len(mains)} main landmarks; only one may be visible.",
            "Keep a single main landmark; hide or remove the others.",
            {"count": len(mains), "first": mains[0].path}
        ))
    return results


@audit_spec("structure.landmark-unique", Severity.MEDIUM, wcag="1.3.1", applies_to=is_root)
def check_unique_landmarks(node: Node, ctx) -> List[AuditResult]:
    """
    Rule: When a landmark kind occurs more than once, every instance has a
    distinct accessible name so users can tell them apart.
    """
    results = []
    by_role = defaultdict(list)
    for landmark in ctx.visible_nodes():
        role = ctx.role(landmark)
        if role in LANDMARK_ROLES and role != "main" and ctx.is_exposed(landmark):
            by_role[role].append(landmark)

    for role, landmarks in by_role.items():
        if len(landmarks) < 2:
            continue
        names = [ctx.names.name(n).lower() for n in landmarks]
        for landmark, name in zip(landmarks, names):
            if not name:
                results.append(AuditResult(
                    landmark.path,
                    f"One of {len(landmarks)} '{role}' landmarks has no accessible name.",
                    "Give each landmark of the same kind a unique aria-label or aria-labelledby.",
                    {"role": role, "count": len(landmarks)}
                ))
            elif names.count(name) > 1:
                results.append(AuditResult(
                    landmark.path,
                    f"'{role}' landmark name '{name}' is shared by {names.count(name)} landmarks.",
                    "Give each landmark of the same kind a unique label.",
                    {"role": role, "name": name}
                ))
    return results


@audit_spec("structure.page-language", Severity.HIGH, wcag="3.1.1", applies_to=is_root)
def check_page_language(node: Node, ctx) -> List[AuditResult]:
    """
    Rule: A full page declares its primary language on <html>.
    Fragments (documents not rooted at <html>) are not checked.
    """
    if node.tag != "html":
        return []
    lang = node.attrs.get("lang", "").strip()
    if not lang:
        return [AuditResult(node.path, "The <html> element has no lang attribute.", "Add lang=\"en\" (or the page language).")]
    if not LANG_TAG.match(lang):
        return [AuditResult(
            node.path,
            f"lang=\"{lang}\" is not a valid language tag.",
            "Use a BCP 47 tag such as 'en', 'nl' or 'en-GB'.",
            {"lang": lang}
        )]
    return []


@audit_spec("structure.page-title", Severity.MEDIUM, wcag="2.4.2", applies_to=is_root)
def check_page_title(node: Node, ctx) -> List[AuditResult]:
    """
    Rule: A full page has a non-empty <title>.
    """
    if node.tag != "html":
        return []
    for candidate in ctx.document.descendants(node):
        if candidate.tag == "title" and ctx.document.text_content(candidate):
            return []
    return [AuditResult(node.path, "Page has no (non-empty) <title>.", "Add a descriptive <title> in <head>.")]


# --- RULE GROUP ---

DEFINITION = RuleGroup(
    family="structure",
    rules=[
        check_single_h1,
        check_heading_order,
        check_main_landmark,
        check_unique_landmarks,
        check_page_language,
        check_page_title,
    ]
)
