# src/a11y_auditor/focus/graph.py
import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, NamedTuple, Optional, Tuple

import networkx as nx

from ..dom.core import Node, BoundingBox
from ..dom.models import UIDocument

logger = logging.getLogger(__name__)

START = "#start"

NATIVE_FOCUSABLE_TAGS = {"button", "select", "textarea", "summary", "iframe"}
NATIVE_ACTIVATABLE_TAGS = {"button", "select", "textarea", "summary", "input"}
DISABLEABLE_TAGS = {"button", "input", "select", "textarea", "option", "optgroup", "fieldset"}
RESTRICTING_ROLES = {"dialog", "alertdialog"}
CLOSE_ACTIONS = {"close", "dismiss", "hide"}
OPEN_ACTIONS = {"open", "toggle", "show", "expand"}


class KeyEdge(NamedTuple):
    """What pressing `key` on a node does."""
    key: str
    action: str
    target: Optional[str] = None  # path of the affected node, if any


class TriggerEdge(NamedTuple):
    """Nodes a trigger makes reachable / unreachable when it fires."""
    action: str
    target: str
    reachable: FrozenSet[str]
    unreachable: FrozenSet[str]


@dataclass(frozen=True)
class FocusScope:
    """A scope-restricting container (open modal, scripted focus trap)."""
    path: str
    members: Tuple[str, ...]  # focusable descendants in tab order
    reachable: FrozenSet[str]
    restricts: bool
    has_escape: bool
    modal: bool

    @property
    def indeterminate(self) -> bool:
        """A restricting scope with nothing focusable inside cannot be enumerated."""
        return not self.members

    @property
    def trap_candidate(self) -> bool:
        return self.restricts and bool(self.members) and not self.has_escape


@dataclass(frozen=True)
class FocusGraph:
    """
    Keyboard focus facts for one document: tab order, activation edges,
    trigger reachability and restricting scopes. Built once per pass and
    never mutated; a changed document needs a new graph.

    While `active_scope` is open, focusable nodes outside it are in
    `unreachable_while_active`.
    """
    order: Tuple[str, ...]
    focusable: FrozenSet[str]
    activatable: Mapping[str, bool]
    edges: Mapping[str, Tuple[KeyEdge, ...]]
    triggers: Mapping[str, Tuple[TriggerEdge, ...]]
    scopes: Mapping[str, FocusScope]
    active_scope: Optional[str]
    graph: nx.DiGraph = field(compare=False, repr=False)
    reachable: FrozenSet[str] = frozenset()
    unreachable_while_active: FrozenSet[str] = frozenset()
    _positions: Dict[Optional[str], Dict[str, int]] = field(
        default_factory=dict, init=False, compare=False, repr=False
    )

    def __post_init__(self):
        # Tab position per sequence (None is the page order)
        positions = {None: {p: i for i, p in enumerate(self.order)}}
        for path, scope in self.scopes.items():
            positions[path] = {p: i for i, p in enumerate(scope.members)}
        object.__setattr__(self, "_positions", positions)

    def sequence(self, within: Optional[str] = None) -> Tuple[str, ...]:
        if within is None:
            return self.order
        return self.scopes[within].members

    def next_focus(self, path: str, within: Optional[str] = None) -> Optional[str]:
        """Next tab stop; wraps inside a restricting scope, leaves the page at the end otherwise."""
        seq = self.sequence(within)
        i = self._positions[within].get(path)
        if i is None:
            return None
        if i + 1 < len(seq):
            return seq[i + 1]
        return seq[0] if within is not None and self.scopes[within].restricts else None

    def previous_focus(self, path: str, within: Optional[str] = None) -> Optional[str]:
        seq = self.sequence(within)
        i = self._positions[within].get(path)
        if i is None:
            return None
        if i > 0:
            return seq[i - 1]
        return seq[-1] if within is not None and self.scopes[within].restricts else None

    def is_focusable(self, path: str) -> bool:
        return path in self.focusable

    def in_order(self, path: str) -> bool:
        return path in self.order

    def is_reachable(self, path: str, within: Optional[str] = None) -> bool:
        """
        Reachable by keyboard in the document's current state: inside the
        active scope when one is open, otherwise from the start of the
        document (tab order plus modeled key/trigger edges). `within` asks
        about a specific scope instead.
        """
        if within is None and self.active_scope is not None:
            within = self.active_scope
        if within is not None:
            return path in self.scopes[within].reachable
        return path in self.reachable

    def reachable_from_start(self, path: str) -> bool:
        """Page-level reachability with no restricting scope open."""
        return path in self.reachable

    def reachable_under_any_scope(self, path: str) -> bool:
        return self.reachable_from_start(path) or any(path in s.reachable for s in self.scopes.values())

    def is_activatable(self, path: str) -> bool:
        return self.activatable.get(path, False)

    @property
    def trap_candidates(self) -> List[FocusScope]:
        return [s for s in self.scopes.values() if s.trap_candidate]


def is_natively_focusable(node: Node) -> bool:
    tag = node.tag
    if tag in ("a", "area"):
        return "href" in node.attrs
    if tag == "input":
        return node.attrs.get("type", "text").lower() != "hidden"
    if tag in ("audio", "video"):
        return "controls" in node.attrs
    if node.attrs.get("contenteditable", "false").lower() in ("", "true", "plaintext-only"):
        return True
    return tag in NATIVE_FOCUSABLE_TAGS


def is_natively_activatable(node: Node) -> bool:
    if node.tag in ("a", "area"):
        return "href" in node.attrs
    if node.tag == "input":
        return node.attrs.get("type", "text").lower() != "hidden"
    return node.tag in NATIVE_ACTIVATABLE_TAGS


def visually_before(a: BoundingBox, b: BoundingBox) -> bool:
    """
    Reading-order comparison of two boxes (left-to-right, top-to-bottom).
    Boxes overlapping vertically by at least half the smaller height share a row.
    """
    overlap = min(a.bottom, b.bottom) - max(a.y, b.y)
    smaller = min(a.height, b.height)
    if smaller > 0 and overlap >= smaller / 2:
        return a.x < b.x
    return a.y < b.y


class FocusGraphBuilder:
    """
    Constructs the FocusGraph for a document.

    Traverses the document in order, collecting natively focusable nodes
    and nodes made focusable with a non-negative tabindex. Positive tabindex
    values are honoured (ascending, ties by document order) ahead of the
    natural order.
    """

    def build(self, document: UIDocument) -> FocusGraph:
        focusable: List[Node] = []
        positive: List[Tuple[int, int, str]] = []
        natural: List[str] = []
        activatable: Dict[str, bool] = {}

        for position, node in enumerate(document.iter_nodes()):
            if document.is_hidden(node):
                continue
            disabled = node.is_disabled and node.tag in DISABLEABLE_TAGS
            tabindex = node.tabindex
            native = is_natively_focusable(node) and not disabled

            if native or (tabindex is not None and not disabled):
                focusable.append(node)
                if tabindex is None or tabindex == 0:
                    natural.append(node.path)
                elif tabindex > 0:
                    positive.append((tabindex, position, node.path))

            if native or node.bindings or tabindex is not None:
                activatable[node.path] = (native and is_natively_activatable(node)) or node.has_keyboard_activation

        order = tuple(path for _, _, path in sorted(positive)) + tuple(natural)
        focusable_paths = frozenset(n.path for n in focusable)

        edges = self._key_edges(document, focusable_paths)
        graph = nx.DiGraph()
        graph.add_node(START)
        graph.add_nodes_from(order)
        if order:
            graph.add_edge(START, order[0], kind="tab")
        for a, b in zip(order, order[1:]):
            graph.add_edge(a, b, kind="tab")

        triggers = self._trigger_edges(document, focusable_paths, order, graph)
        reachable = frozenset(nx.descendants(graph, START))

        scopes = {}
        for node in document.iter_nodes():
            if self._is_restricting(node, document):
                scopes[node.path] = self._build_scope(node, document, order, graph, edges)
        active_scope = list(scopes)[-1] if scopes else None
        unreachable_while_active: FrozenSet[str] = frozenset()
        if active_scope is not None:
            scope_node = document.get(active_scope)
            inside = {active_scope, *(d.path for d in document.descendants(scope_node))}
            unreachable_while_active = focusable_paths - inside

        logger.debug(
            f"Focus graph: {len(order)} tab stops, {len(focusable_paths)} focusable, "
            f"{len(scopes)} restricting scopes (active: {active_scope})"
        )
        return FocusGraph(
            order=order,
            focusable=focusable_paths,
            activatable=activatable,
            edges=edges,
            triggers=triggers,
            scopes=scopes,
            active_scope=active_scope,
            graph=graph,
            reachable=reachable,
            unreachable_while_active=unreachable_while_active
        )

    # --- Edges ---

    def _key_edges(self, document: UIDocument, focusable_paths: FrozenSet[str]) -> Dict[str, Tuple[KeyEdge, ...]]:
        edges: Dict[str, Tuple[KeyEdge, ...]] = {}
        for node in document.iter_nodes():
            found: List[KeyEdge] = []
            if node.path in focusable_paths and is_natively_activatable(node):
                input_type = node.attrs.get("type", "text").lower()
                if node.tag == "input" and input_type in ("checkbox", "radio"):
                    found.append(KeyEdge("Space", "activate", node.path))
                elif node.tag in ("a", "area"):
                    found.append(KeyEdge("Enter", "activate", node.path))
                elif node.tag in ("button", "summary") or input_type in ("button", "submit", "reset", "image"):
                    found.append(KeyEdge("Enter", "activate", node.path))
                    found.append(KeyEdge("Space", "activate", node.path))

            for binding in node.bindings:
                if not binding.is_keyboard:
                    continue
                target = self._target_path(binding.target, document)
                if binding.target and target is None:
                    # dangling target, the handler affects nothing we can model
                    continue
                if target is None and binding.action not in CLOSE_ACTIONS:
                    # untargeted close handlers act on the enclosing scope
                    target = node.path
                keys = [binding.key] if binding.key else ["Enter", "Space"]
                found.extend(KeyEdge(key, binding.action, target) for key in keys)

            if node.tag == "dialog":
                found.append(KeyEdge("Escape", "close", node.path))
            if found:
                edges[node.path] = tuple(found)
        return edges

    def _trigger_edges(
            self, document: UIDocument, focusable: FrozenSet[str], order: Tuple[str, ...], graph: nx.DiGraph
    ) -> Dict[str, Tuple[TriggerEdge, ...]]:
        """
        Bindings that open, show or move focus to another node become graph
        edges from every tab stop able to fire them (the node itself or a
        focused descendant, since key events bubble).
        """
        triggers: Dict[str, Tuple[TriggerEdge, ...]] = {}
        for node in document.iter_nodes():
            found: List[TriggerEdge] = []
            for binding in node.bindings:
                target_node = document.by_id(binding.target) if binding.target else None
                if target_node is None:
                    continue
                subtree = [target_node, *document.descendants(target_node)]
                inside = frozenset(n.path for n in subtree if n.path in focusable)
                if binding.action == "focus":
                    reachable, unreachable = frozenset({target_node.path}), frozenset()
                elif binding.action in OPEN_ACTIONS:
                    reachable = inside
                    modal = self._is_modal_candidate(target_node)
                    unreachable = frozenset(p for p in order if p not in inside) if modal else frozenset()
                elif binding.action in CLOSE_ACTIONS:
                    reachable = frozenset(p for p in order if p not in inside)
                    unreachable = inside
                else:
                    continue

                found.append(TriggerEdge(binding.action, target_node.path, reachable, unreachable))
                origins = [p for p in [node.path, *(d.path for d in document.descendants(node))] if p in focusable]
                for origin in origins:
                    for dest in reachable:
                        if dest != origin:
                            graph.add_edge(origin, dest, kind="trigger", action=binding.action)
            if found:
                triggers[node.path] = tuple(found)
        return triggers

    @staticmethod
    def _target_path(target_id: Optional[str], document: UIDocument) -> Optional[str]:
        if not target_id:
            return None
        target = document.by_id(target_id)
        return target.path if target else None

    # --- Scopes ---

    @staticmethod
    def _is_modal_candidate(node: Node) -> bool:
        is_dialog = node.role in RESTRICTING_ROLES or node.tag == "dialog"
        return is_dialog and node.attrs.get("aria-modal", "").lower() == "true"

    def _is_restricting(self, node: Node, document: UIDocument) -> bool:
        if document.is_hidden(node):
            return False
        if self._is_modal_candidate(node):
            return True
        return any(b.action == "trap-focus" for b in node.bindings)

    def _build_scope(
            self, scope: Node, document: UIDocument, order: Tuple[str, ...], graph: nx.DiGraph,
            edges: Mapping[str, Tuple[KeyEdge, ...]]
    ) -> FocusScope:
        inside = {scope.path, *(d.path for d in document.descendants(scope))}
        members = tuple(p for p in order if p in inside)

        reachable: FrozenSet[str] = frozenset()
        if members:
            scoped = graph.subgraph(p for p in graph.nodes if p in inside).copy()
            for a, b in zip(members, members[1:] + members[:1]):
                if a != b:
                    scoped.add_edge(a, b, kind="scope", scope=scope.path)
            reachable = frozenset(nx.descendants(scoped, members[0])) | {members[0]}

        return FocusScope(
            path=scope.path,
            members=members,
            reachable=reachable,
            restricts=bool(members),
            has_escape=self._has_escape(scope, document, edges, set(members)),
            modal=self._is_modal_candidate(scope)
        )

    def _has_escape(
            self, scope: Node, document: UIDocument, edges: Mapping[str, Tuple[KeyEdge, ...]], members: set
    ) -> bool:
        """
        A modeled keyboard escape: an Escape key edge that closes the scope,
        or a keyboard-activatable tab stop inside the scope whose binding
        closes it. Key events bubble to the document, so an Escape handler
        outside the scope counts when it targets the scope or an ancestor.
        """
        candidates = [scope, *document.descendants(scope)]
        inside = {n.path for n in candidates}
        for path, node_edges in edges.items():
            if path in inside or document.is_hidden(document.get(path)):
                continue
            for edge in node_edges:
                if edge.key.lower() not in ("escape", "esc") or edge.action not in CLOSE_ACTIONS:
                    continue
                # Untargeted handlers outside the scope close their own enclosing scope, not this one
                if edge.target is not None and self._closes(edge.target, scope, document):
                    return True

        for node in candidates:
            if document.is_hidden(node):
                continue
            for edge in edges.get(node.path, ()):
                if edge.key.lower() in ("escape", "esc") and edge.action in CLOSE_ACTIONS:
                    if self._closes(edge.target, scope, document):
                        return True
            if node.path in members and (is_natively_activatable(node) or node.has_keyboard_activation):
                for binding in node.bindings:
                    if binding.action in CLOSE_ACTIONS and (binding.is_click or binding.is_activation_key):
                        if not binding.target:
                            return True
                        target = document.by_id(binding.target)
                        if target is not None and (target.path == scope.path or document.is_descendant(scope, target)):
                            return True
        return False

    @staticmethod
    def _closes(target_path: Optional[str], scope: Node, document: UIDocument) -> bool:
        if target_path is None:
            return True
        if target_path == scope.path:
            return True
        target = document.get(target_path)
        # Closing an ancestor of the scope also removes it; closing a node inside it does not
        return target is not None and document.is_descendant(scope, target)

