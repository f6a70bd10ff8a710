# src/a11y_auditor/aria/checker.py
import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, NamedTuple, Optional, Tuple

from ..dom.core import Node
from ..dom.models import UIDocument
from ..focus.graph import is_natively_focusable
from .table import (
    ATTRIBUTE_TYPES, GLOBAL_ATTRIBUTES, NO_ROLE_ELEMENTS, PRESENTATIONAL_ROLES, ROLES, WIDGET_ROLES,
    effective_role, is_interactive, role_spec,
)

logger = logging.getLogger(__name__)

ABSTRACT_ROLES = {
    "command", "composite", "input", "landmark", "range", "roletype", "section", "sectionhead", "select",
    "structure", "widget", "window",
}
HEADING_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6"}
HEADING_ALLOWED_ROLES = {"heading", "none", "presentation", "tab"}
TRANSPARENT_ROLES = {"generic", "none", "presentation"}

# Visual state vocabulary -> ARIA state attribute
STATE_CLASS_TOKENS = {
    "expanded": ("expanded", "is-expanded", "open", "is-open"),
    "selected": ("selected", "is-selected"),
    "pressed": ("pressed", "is-pressed"),
    "checked": ("checked", "is-checked"),
    "invalid": ("invalid", "is-invalid", "error", "has-error"),
}
DATA_STATE_ON = {"open": "expanded", "checked": "checked", "on": "pressed", "active": "selected"}
DATA_STATE_OFF = {"closed": "expanded", "unchecked": "checked", "off": "pressed", "inactive": "selected"}

CHECKS = (
    "role-unknown", "required-attr", "prohibited-attr", "attr-value", "idref", "native-conflict", "context",
    "state-sync",
)


class AriaViolation(NamedTuple):
    check: str
    message: str
    suggested_fix: Optional[str] = None
    attribute: Optional[str] = None


@dataclass(frozen=True)
class AriaReport:
    """ARIA violations of one document keyed by node path, in check order."""
    violations: Mapping[str, Tuple[AriaViolation, ...]]

    def for_node(self, path: str, check: Optional[str] = None) -> Tuple[AriaViolation, ...]:
        found = self.violations.get(path, ())
        if check is None:
            return found
        return tuple(v for v in found if v.check == check)

    def paths(self, check: str) -> List[str]:
        return [path for path, found in self.violations.items() if any(v.check == check for v in found)]

    @property
    def total(self) -> int:
        return sum(len(v) for v in self.violations.values())


def native_state(node: Node, state: str) -> bool:
    """True when the element exposes this state through native semantics."""
    input_type = node.attrs.get("type", "text").lower()
    if state == "checked":
        return node.tag == "input" and input_type in ("checkbox", "radio")
    if state == "expanded":
        return node.tag in ("details", "summary", "select")
    if state == "selected":
        return node.tag == "option"
    return False


def native_provides(node: Node, attribute: str) -> bool:
    """Required ARIA attributes that an element's native semantics already supply."""
    input_type = node.attrs.get("type", "text").lower()
    if attribute == "aria-checked":
        return node.tag == "input" and input_type in ("checkbox", "radio")
    if attribute == "aria-level":
        return node.tag in HEADING_TAGS
    if attribute == "aria-valuenow":
        return (node.tag == "input" and input_type in ("range", "number")) or node.tag in ("meter", "progress")
    if attribute == "aria-expanded":
        return node.tag == "select" or (node.tag == "input" and "list" in node.attrs)
    if attribute == "aria-selected":
        return node.tag == "option"
    return False


def valid_value(attribute: str, value: str) -> bool:
    kind = ATTRIBUTE_TYPES.get(attribute)
    if kind is None:
        return True
    text = value.strip().lower()
    if not text:
        # empty means "use the default"
        return True
    if kind == "true/false":
        return text in ("true", "false")
    if kind == "true/false/undefined":
        return text in ("true", "false", "undefined")
    if kind == "tristate":
        return text in ("true", "false", "mixed")
    if kind.startswith("tokens:"):
        return text in kind[len("tokens:"):].split()
    if kind.startswith("tokenlist:"):
        allowed = kind[len("tokenlist:"):].split()
        return all(token in allowed for token in text.split())
    if kind == "idref":
        return len(text.split()) == 1
    if kind == "integer":
        try:
            int(text)
        except ValueError:
            return False
        return True
    if kind == "number":
        try:
            float(text)
        except ValueError:
            return False
        return True
    return True


class AriaChecker:
    """
    Validates roles and states/properties of every node against the static
    ARIA table. The checker is a pure function of the document.
    """

    def check_document(self, document: UIDocument) -> AriaReport:
        owners = self._owners(document)
        violations: Dict[str, Tuple[AriaViolation, ...]] = {}
        for node in document.iter_nodes():
            if document.is_hidden(node):
                continue
            found = self.check_node(node, document, owners)
            if found:
                violations[node.path] = tuple(found)
        logger.debug(f"ARIA check: {sum(len(v) for v in violations.values())} violations on {len(violations)} nodes")
        return AriaReport(violations=violations)

    def check_node(
            self, node: Node, document: UIDocument, owners: Optional[Mapping[str, str]] = None
    ) -> List[AriaViolation]:
        found: List[AriaViolation] = []
        found.extend(self._check_role(node))
        role = effective_role(node, document)
        explicit = role if role in node.role_tokens else None
        found.extend(self._check_required(node, explicit))
        found.extend(self._check_attributes(node, role))
        found.extend(self._check_idrefs(node, document))
        found.extend(self._check_native_conflict(node, explicit))
        found.extend(self._check_context(node, explicit, document, owners or {}))
        found.extend(self.check_state_sync(node, document))
        return found

    # --- Roles ---

    @staticmethod
    def _check_role(node: Node) -> List[AriaViolation]:
        tokens = node.role_tokens
        if not tokens or any(token in ROLES for token in tokens):
            return []
        raw = node.attrs.get("role", "")
        if any(token in ABSTRACT_ROLES for token in tokens):
            message = f"Role '{raw}' is an abstract ARIA role and may not be used in content."
        else:
            message = f"Role '{raw}' is not a valid ARIA role; it is ignored and native semantics apply."
        return [AriaViolation("role-unknown", message, "Use a concrete role from the WAI-ARIA 1.2 role list.")]

    @staticmethod
    def _check_required(node: Node, role: Optional[str]) -> List[AriaViolation]:
        spec = role_spec(role)
        if spec is None:
            return []
        missing = sorted(
            attr for attr in spec.required if attr not in node.attrs and not native_provides(node, attr)
        )
        if not missing:
            return []
        return [AriaViolation(
            "required-attr",
            f"Role '{role}' requires {', '.join(missing)}.",
            f"Add {', '.join(missing)} and keep it in sync with the widget state.",
            missing[0]
        )]

    @staticmethod
    def _check_attributes(node: Node, role: Optional[str]) -> List[AriaViolation]:
        found = []
        spec = role_spec(role)
        permitted = GLOBAL_ATTRIBUTES | (spec.permitted if spec else frozenset())
        for attr, value in node.aria_attrs.items():
            if attr not in ATTRIBUTE_TYPES:
                found.append(AriaViolation(
                    "prohibited-attr", f"'{attr}' is not a defined ARIA attribute.",
                    f"Remove '{attr}' or correct its spelling.", attr
                ))
                continue
            if attr not in permitted:
                target = f"role '{role}'" if role else f"<{node.tag}> without a role"
                found.append(AriaViolation(
                    "prohibited-attr", f"'{attr}' is not supported on {target}.",
                    f"Remove '{attr}' or give the element a role that supports it.", attr
                ))
            if not valid_value(attr, value):
                found.append(AriaViolation(
                    "attr-value", f"'{attr}=\"{value}\"' is not a valid value ({ATTRIBUTE_TYPES[attr]}).",
                    f"Use a value permitted for '{attr}'.", attr
                ))
        return found

    @staticmethod
    def _check_idrefs(node: Node, document: UIDocument) -> List[AriaViolation]:
        found = []
        for attr, value in node.aria_attrs.items():
            if ATTRIBUTE_TYPES.get(attr) not in ("idref", "idrefs"):
                continue
            missing = [token for token in value.split() if document.by_id(token) is None]
            if missing:
                found.append(AriaViolation(
                    "idref", f"'{attr}' references id(s) not present in the document: {', '.join(missing)}.",
                    "Point the reference at an existing element id.", attr
                ))
        return found

    @staticmethod
    def _check_native_conflict(node: Node, role: Optional[str]) -> List[AriaViolation]:
        if not node.role_tokens:
            return []
        fix = "Remove the role attribute or use an element without conflicting native semantics."
        if node.tag in NO_ROLE_ELEMENTS:
            return [AriaViolation("native-conflict", f"<{node.tag}> may not carry a role attribute.", fix)]
        if role is None:
            return []
        focusable = is_natively_focusable(node) or (node.tabindex is not None and node.tabindex >= 0)
        if role in PRESENTATIONAL_ROLES and focusable:
            return [AriaViolation(
                "native-conflict",
                f"role='{role}' on a focusable <{node.tag}> cannot remove its semantics.", fix
            )]
        if is_natively_focusable(node) and node.tag != "iframe" and role not in WIDGET_ROLES | PRESENTATIONAL_ROLES:
            return [AriaViolation(
                "native-conflict",
                f"Interactive <{node.tag}> is overridden with non-interactive role '{role}'.", fix
            )]
        if node.tag in HEADING_TAGS and role not in HEADING_ALLOWED_ROLES:
            return [AriaViolation("native-conflict", f"<{node.tag}> may not take role '{role}'.", fix)]
        return []

    # --- Ownership ---

    @staticmethod
    def _owners(document: UIDocument) -> Dict[str, str]:
        """Maps owned node path -> owner path for aria-owns relations."""
        owners = {}
        for node in document.iter_nodes():
            for owned in document.resolve_idrefs(node.attrs.get("aria-owns")):
                if owned is not None:
                    owners.setdefault(owned.path, node.path)
        return owners

    def _check_context(
            self, node: Node, role: Optional[str], document: UIDocument, owners: Mapping[str, str]
    ) -> List[AriaViolation]:
        found = []
        spec = role_spec(role)
        if spec is not None and spec.context:
            parent_role = self._owning_role(node, document, owners)
            if parent_role not in spec.context:
                expected = " or ".join(sorted(spec.context))
                found.append(AriaViolation(
                    "context",
                    f"Role '{role}' must be owned by {expected}; found {parent_role or 'no owning role'}.",
                    f"Place the element inside an element with role {expected}."
                ))
        if spec is not None and spec.owned:
            stray = sorted({
                r for r in (effective_role(child, document) for child in self._owned_elements(node, document))
                if r not in spec.owned and r not in TRANSPARENT_ROLES
            })
            if stray:
                found.append(AriaViolation(
                    "context",
                    f"Role '{role}' may only own {', '.join(sorted(spec.owned))}; it owns {', '.join(stray)}.",
                    "Move the unexpected children out or give them an allowed role."
                ))
        return found

    @staticmethod
    def _owning_role(node: Node, document: UIDocument, owners: Mapping[str, str]) -> Optional[str]:
        current = document.get(owners[node.path]) if node.path in owners else document.parent(node)
        while current is not None:
            role = effective_role(current, document)
            if role is not None and role not in TRANSPARENT_ROLES:
                return role
            current = document.get(owners[current.path]) if current.path in owners else document.parent(current)
        return None

    def _owned_elements(self, node: Node, document: UIDocument) -> List[Node]:
        """Children with an explicit role, looking through role-less wrappers."""
        owned = []
        for child in node.children:
            if document.is_hidden(child):
                continue
            if child.role_tokens:
                owned.append(child)
            elif effective_role(child, document) in (None, "generic"):
                owned.extend(self._owned_elements(child, document))
        return owned

    # --- State exposure ---

    @staticmethod
    def check_state_sync(node: Node, document: UIDocument) -> List[AriaViolation]:
        """
        Visual state conveyed through class tokens or data-state on an
        interactive element must be exposed through the matching ARIA state
        attribute. Containers styled as open or erroneous are not checked.
        """
        if not (is_interactive(node, document) or node.has_click):
            return []
        visual_on, visual_off = set(), set()
        classes = node.classes
        for state, tokens in STATE_CLASS_TOKENS.items():
            if classes.intersection(tokens):
                visual_on.add(state)
        data_state = node.attrs.get("data-state", "").strip().lower()
        if data_state in DATA_STATE_ON:
            visual_on.add(DATA_STATE_ON[data_state])
        elif data_state in DATA_STATE_OFF:
            visual_off.add(DATA_STATE_OFF[data_state])

        found = []
        for state in sorted(visual_on | visual_off):
            if native_state(node, state):
                continue
            attribute = f"aria-{state}"
            actual = node.attrs.get(attribute, "").strip().lower()
            expected = "true" if state in visual_on else "false"
            if state in visual_on and actual not in ("true", "mixed"):
                shown = f"'{actual}'" if actual else "absent"
                found.append(AriaViolation(
                    "state-sync",
                    f"Element is visually {state} but {attribute} is {shown}.",
                    f"Set {attribute}=\"{expected}\" whenever the {state} style is applied.", attribute
                ))
            elif state in visual_off and actual == "true":
                found.append(AriaViolation(
                    "state-sync",
                    f"Element is visually not {state} but {attribute} is 'true'.",
                    f"Set {attribute}=\"{expected}\" whenever the {state} style is removed.", attribute
                ))
        return found
