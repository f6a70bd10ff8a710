# src/a11y_auditor/dom/rules/model_integrity.py
from collections import OrderedDict
from typing import List

from ...model import FindingKind, Severity
from ..core import AuditResult, Node, RuleGroup, audit_spec, is_root


# --- AUDIT RULES ---

@audit_spec("model.structure", Severity.MEDIUM, applies_to=is_root)
def check_model_structure(node: Node, ctx) -> List[AuditResult]:
    """
    Rule: Reports the structural problems the loader recovered from
    (dangling child references, cycles, duplicate ids, unusable nodes).
    Issues are grouped per node; paths outside the tree land on the root.
    """
    grouped = OrderedDict()
    for issue in ctx.document.issues:
        path = issue.path if ctx.document.contains(issue.path) else node.path
        grouped.setdefault(path, []).append(issue)

    results = []
    for path, issues in grouped.items():
        results.append(AuditResult(
            path,
            " ".join(issue.message for issue in issues),
            "Fix the document model supplied to the evaluator.",
            {"issues": [issue.kind for issue in issues]},
            FindingKind.MODEL_INVALID
        ))
    return results


# --- RULE GROUP ---

DEFINITION = RuleGroup(
    family="model",
    rules=[check_model_structure]
)
