# src/a11y_auditor/dom/facts.py
"""
Derived facts shared by every rule of one evaluation pass.

Everything here is computed once, before any rule runs, and is read-only
afterwards so rules can be dispatched concurrently over the same context.
"""
import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional

from ..aria.checker import AriaChecker, AriaReport
from ..aria.names import NameResolver
from ..aria.table import effective_role, is_interactive
from ..color.contrast import ColorResolver
from ..focus.graph import FocusGraph, FocusGraphBuilder
from ..managers.config_manager import EvaluationConfig
from .core import Node
from .models import UIDocument

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleContext:
    document: UIDocument
    config: EvaluationConfig
    focus: FocusGraph
    aria: AriaReport
    colors: ColorResolver
    names: NameResolver

    # --- Convenience views over the document and derived facts ---

    def role(self, node: Node) -> Optional[str]:
        return effective_role(node, self.document)

    def is_interactive(self, node: Node) -> bool:
        return is_interactive(node, self.document)

    def is_hidden(self, node: Node) -> bool:
        return self.document.is_hidden(node)

    def is_exposed(self, node: Node) -> bool:
        """Rendered and present in the accessibility tree."""
        return not self.document.is_hidden(node) and not self.document.is_aria_hidden(node)

    def visible_nodes(self) -> Iterator[Node]:
        return (n for n in self.document.iter_nodes() if not self.document.is_hidden(n))

    def nodes_with_role(self, *roles: str) -> List[Node]:
        return [n for n in self.visible_nodes() if self.role(n) in roles]


def build_context(document: UIDocument, config: EvaluationConfig) -> RuleContext:
    """Computes the derived facts for one pass."""
    focus = FocusGraphBuilder().build(document)
    aria = AriaChecker().check_document(document)
    colors = ColorResolver(document, config.default_background)
    names = NameResolver(document)
    logger.debug(
        f"Derived facts for '{document.source}': {len(document)} nodes, "
        f"{len(focus.order)} tab stops, {aria.total} ARIA violations"
    )
    return RuleContext(document=document, config=config, focus=focus, aria=aria, colors=colors, names=names)
