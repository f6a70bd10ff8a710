from typing import Optional, List, Dict, Iterator
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from .core import Node, ModelIssue


class UIDocument(BaseModel):
    """
    Represents a normalized user-interface document.

    The root container for the immutable node tree plus any structural
    problems the loader recorded. Read-only indexes (path lookup, parent map,
    document order, id map) are built once when the document is created.
    """
    model_config = ConfigDict(frozen=True)

    root: Node
    source: str = ""
    issues: List[ModelIssue] = Field(default_factory=list)

    _index: Dict[str, Node] = PrivateAttr(default_factory=dict)
    _parents: Dict[str, Optional[str]] = PrivateAttr(default_factory=dict)
    _order: Dict[str, int] = PrivateAttr(default_factory=dict)
    _ids: Dict[str, str] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context) -> None:
        index: Dict[str, Node] = {}
        parents: Dict[str, Optional[str]] = {}
        ids: Dict[str, str] = {}

        # Iterative pre-order walk keeps very deep trees off the call stack
        stack = [(self.root, None)]
        while stack:
            node, parent_path = stack.pop()
            if node.path in index:
                continue
            index[node.path] = node
            parents[node.path] = parent_path
            node_id = node.attrs.get("id")
            if node_id and node_id not in ids:
                ids[node_id] = node.path
            for child in reversed(node.children):
                stack.append((child, node.path))

        self._index = index
        self._parents = parents
        self._order = {path: i for i, path in enumerate(index)}
        self._ids = ids

    # --- Lookup ---

    def iter_nodes(self) -> Iterator[Node]:
        """Yields every node in document (pre-)order."""
        return iter(self._index.values())

    def get(self, path: str) -> Optional[Node]:
        return self._index.get(path)

    def contains(self, path: str) -> bool:
        return path in self._index

    def order_of(self, path: str) -> int:
        """Document-order position; unknown paths sort last."""
        return self._order.get(path, len(self._order))

    def by_id(self, element_id: str) -> Optional[Node]:
        path = self._ids.get(element_id)
        return self._index.get(path) if path else None

    def resolve_idrefs(self, value: Optional[str]) -> List[Optional[Node]]:
        """Resolves a space separated IDREF list; unknown ids map to None."""
        return [self.by_id(token) for token in (value or "").split()]

    # --- Tree navigation ---

    def parent(self, node: Node) -> Optional[Node]:
        parent_path = self._parents.get(node.path)
        return self._index.get(parent_path) if parent_path else None

    def ancestors(self, node: Node) -> Iterator[Node]:
        """Yields ancestors nearest first."""
        current = self.parent(node)
        while current is not None:
            yield current
            current = self.parent(current)

    def descendants(self, node: Node) -> Iterator[Node]:
        """Yields descendants in document order (excluding the node itself)."""
        stack = list(reversed(node.children))
        while stack:
            current = stack.pop()
            yield current
            stack.extend(reversed(current.children))

    def is_descendant(self, node: Node, ancestor: Node) -> bool:
        return any(a.path == ancestor.path for a in self.ancestors(node))

    # --- Derived helpers ---

    def is_hidden(self, node: Node) -> bool:
        """Hidden when the node or any ancestor is hidden or inert."""
        if node.is_hidden_self or "inert" in node.attrs:
            return True
        return any(a.is_hidden_self or "inert" in a.attrs for a in self.ancestors(node))

    def is_aria_hidden(self, node: Node) -> bool:
        chain = [node, *self.ancestors(node)]
        return any(n.attrs.get("aria-hidden", "").lower() == "true" for n in chain)

    def text_content(self, node: Node) -> str:
        """Concatenated visible text of the node and its descendants."""
        parts = [node.text] if node.text else []
        for desc in self.descendants(node):
            if desc.text and not self.is_hidden(desc):
                parts.append(desc.text)
        return " ".join(p.strip() for p in parts if p.strip())

    def __len__(self) -> int:
        return len(self._index)
