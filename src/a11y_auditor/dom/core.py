from typing import Dict, Any, List, Callable, Optional, Set, NamedTuple, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..model import FindingKind, Severity

CLICK_EVENTS = frozenset({"click", "dblclick", "mousedown", "mouseup", "pointerdown", "pointerup", "tap"})
KEY_EVENTS = frozenset({"keydown", "keyup", "keypress"})
ACTIVATION_KEYS = frozenset({"enter", "space", " ", "spacebar"})
ESCAPE_KEYS = frozenset({"escape", "esc"})


def audit_spec(
        rule_id: str,
        severity: Severity,
        wcag: Optional[str] = None,
        applies_to: Optional[Callable[..., bool]] = None
):
    """
    Decorator declaring the identity of a rule function: its stable id,
    default severity, WCAG reference and node-applicability filter.
    Facilitates auto-discovery by the RuleRegistry.
    """
    def decorator(func):
        func.rule_id = rule_id
        func.severity = severity
        func.wcag = wcag
        func.applies_to = applies_to
        return func
    return decorator


class BoundingBox(BaseModel):
    """Resolved layout box in logical units (CSS pixels)."""
    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


class StyleFacts(BaseModel):
    """
    Computed style snapshot for a node, as resolved by the loader.
    Colors are kept as CSS strings; `conditional` maps a media condition
    (e.g. 'prefers-reduced-motion: reduce') to declaration overrides.
    """
    model_config = ConfigDict(frozen=True)

    color: Optional[str] = None
    background_color: Optional[str] = None
    border_color: Optional[str] = None
    font_size_pt: Optional[float] = None
    font_weight: int = 400
    display: Optional[str] = None
    visibility: Optional[str] = None
    animation_name: Optional[str] = None
    animation_duration_s: Optional[float] = None
    animation_iteration_count: Optional[str] = None
    conditional: Dict[str, Dict[str, str]] = Field(default_factory=dict)
    box: Optional[BoundingBox] = None

    @field_validator('animation_iteration_count', mode='before')
    @classmethod
    def stringify_count(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v).strip().lower()

    @property
    def is_bold(self) -> bool:
        return self.font_weight >= 700


class Binding(BaseModel):
    """
    An interactive binding attached to a node: which event (and key, for
    keyboard events) triggers which action, optionally on another node by id.
    """
    model_config = ConfigDict(frozen=True)

    event: str
    key: Optional[str] = None
    action: str = "activate"  # activate, open, close, toggle, trap-focus, ...
    target: Optional[str] = None

    @field_validator('event', 'action', mode='before')
    @classmethod
    def lower(cls, v: Any) -> str:
        return str(v).strip().lower()

    @property
    def is_click(self) -> bool:
        return self.event in CLICK_EVENTS

    @property
    def is_keyboard(self) -> bool:
        return self.event in KEY_EVENTS

    @property
    def normalized_key(self) -> Optional[str]:
        return self.key.strip().lower() if self.key else None

    @property
    def is_activation_key(self) -> bool:
        # A key handler without a declared key is assumed to handle Enter/Space.
        return self.is_keyboard and (self.key is None or self.normalized_key in ACTIVATION_KEYS)

    @property
    def is_escape(self) -> bool:
        return self.is_keyboard and self.normalized_key in ESCAPE_KEYS


class Node(BaseModel):
    """
    Immutable node of the normalized UI tree.
    `path` is the stable identity of the node from the document root.
    """
    model_config = ConfigDict(frozen=True)

    path: str
    tag: str
    attrs: Dict[str, str] = Field(default_factory=dict)
    text: str = ""
    style: StyleFacts = Field(default_factory=StyleFacts)
    bindings: List[Binding] = Field(default_factory=list)
    children: List['Node'] = Field(default_factory=list)

    @field_validator('attrs', mode='before')
    @classmethod
    def stringify_attrs(cls, v: Any) -> Dict[str, str]:
        """BeautifulSoup returns multi-valued attributes (class, rel) as lists."""
        out = {}
        for key, value in (v or {}).items():
            if isinstance(value, (list, tuple)):
                value = " ".join(str(x) for x in value)
            out[str(key).lower()] = "" if value is None else str(value)
        return out

    @property
    def role(self) -> Optional[str]:
        """First token of the explicit role attribute, lowercased."""
        tokens = self.role_tokens
        return tokens[0] if tokens else None

    @property
    def role_tokens(self) -> List[str]:
        return self.attrs.get("role", "").lower().split()

    @property
    def classes(self) -> Set[str]:
        return set(self.attrs.get("class", "").lower().split())

    @property
    def tabindex(self) -> Optional[int]:
        raw = self.attrs.get("tabindex")
        if raw is None:
            return None
        try:
            return int(raw.strip())
        except ValueError:
            return None

    @property
    def aria_attrs(self) -> Dict[str, str]:
        return {k: v for k, v in self.attrs.items() if k.startswith("aria-")}

    @property
    def is_hidden_self(self) -> bool:
        """Hidden by its own attributes/style (ancestors are not considered)."""
        if "hidden" in self.attrs:
            return True
        if (self.style.display or "").lower() == "none":
            return True
        return (self.style.visibility or "").lower() in ("hidden", "collapse")

    @property
    def is_disabled(self) -> bool:
        return "disabled" in self.attrs

    @property
    def has_click(self) -> bool:
        return any(b.is_click for b in self.bindings)

    @property
    def has_keyboard_activation(self) -> bool:
        return any(b.is_activation_key for b in self.bindings)

    def get_attr(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.attrs.get(name, default)


class ModelIssue(BaseModel):
    """A structural problem in the supplied document model, recorded by the loader."""
    model_config = ConfigDict(frozen=True)

    kind: str  # 'dangling-child', 'cycle', 'duplicate-id', 'invalid-node'
    path: str
    message: str


class AuditResult(NamedTuple):
    """What a rule returns for one concern; the engine stamps rule id, severity and WCAG."""
    node_path: str
    message: str
    suggested_fix: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    kind: FindingKind = FindingKind.VIOLATION


def any_node(node: Node, ctx: Any) -> bool:
    return True


def is_root(node: Node, ctx: Any) -> bool:
    return node.path == ctx.document.root.path


class RuleDefinition:
    """
    Configuration object binding a rule id to its applicability filter,
    default severity, WCAG reference and pure check function.
    """

    def __init__(
            self,
            rule_id: str,
            family: str,
            check: Callable[[Node, Any], List[AuditResult]],
            severity: Severity,
            wcag: Optional[str] = None,
            applies_to: Optional[Callable[[Node, Any], bool]] = None
    ):
        self.rule_id = rule_id
        self.family = family
        self.check = check
        self.severity = severity
        self.wcag = wcag
        self.applies_to = applies_to or any_node

    @classmethod
    def from_function(cls, family: str, func: Callable) -> "RuleDefinition":
        if not hasattr(func, "rule_id"):
            raise ValueError(f"{func.__name__} is not decorated with @audit_spec")
        return cls(
            rule_id=func.rule_id,
            family=family,
            check=func,
            severity=func.severity,
            wcag=func.wcag,
            applies_to=func.applies_to
        )

    def __repr__(self) -> str:
        return f"RuleDefinition({self.rule_id!r}, family={self.family!r}, severity={self.severity.name})"


class RuleGroup:
    """
    A family of rules exported by a catalog module as `DEFINITION`.
    """

    def __init__(self, family: str, rules: List[Callable]):
        self.family = family
        self.rules = [RuleDefinition.from_function(family, rule) for rule in rules]
        self.rule_ids = [r.rule_id for r in self.rules]


Node.model_rebuild()
