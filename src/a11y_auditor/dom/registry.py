# src/a11y_auditor/dom/registry.py
import importlib
import logging
import pkgutil
from typing import Dict, List, Optional

from ..managers.config_manager import ConfigurationError, EvaluationConfig
from .core import RuleDefinition, RuleGroup

logger = logging.getLogger(__name__)

RULES_PACKAGE = "a11y_auditor.dom.rules"


class RuleRegistry:
    """
    Catalog of conformance rules.

    Dynamically discovers the modules of the 'a11y_auditor.dom.rules' package
    and registers every rule of their `DEFINITION` (a RuleGroup), keyed by
    stable rule id. Catalog order is module name order, then declaration
    order within a module, so the catalog is the same on every run.
    """

    def __init__(self, package: str = RULES_PACKAGE):
        self.package = package
        self._rules: Dict[str, RuleDefinition] = {}
        self._loaded = False

    def discover(self) -> "RuleRegistry":
        if self._loaded:
            return self

        rules_pkg = importlib.import_module(self.package)
        names = sorted(name for _, name, _ in pkgutil.iter_modules(rules_pkg.__path__))
        for name in names:
            full_name = f"{self.package}.{name}"
            try:
                module = importlib.import_module(full_name)
            except Exception as e:
                logger.error(f"Error loading rule module {full_name}: {e}", exc_info=True)
                continue
            definition = getattr(module, "DEFINITION", None)
            if not isinstance(definition, RuleGroup):
                continue
            for rule in definition.rules:
                self.register(rule)
            logger.debug(f"Rule family loaded: {definition.family} ({len(definition.rules)} rules)")

        self._loaded = True
        logger.debug(f"Rule catalog: {len(self._rules)} rules")
        return self

    def register(self, rule: RuleDefinition) -> None:
        if rule.rule_id in self._rules:
            raise ValueError(f"Duplicate rule id: {rule.rule_id}")
        self._rules[rule.rule_id] = rule

    def get(self, rule_id: str) -> Optional[RuleDefinition]:
        return self._rules.get(rule_id)

    def all_rules(self) -> List[RuleDefinition]:
        return list(self._rules.values())

    @property
    def rule_ids(self) -> List[str]:
        return list(self._rules)

    def families(self) -> Dict[str, List[str]]:
        grouped: Dict[str, List[str]] = {}
        for rule in self._rules.values():
            grouped.setdefault(rule.family, []).append(rule.rule_id)
        return grouped

    def select(self, config: EvaluationConfig) -> List[RuleDefinition]:
        """
        The enabled rules for a pass, in catalog order.
        Raises ConfigurationError for rule ids the catalog does not know.
        """
        referenced = set(config.disabled_rules) | set(config.severity_overrides)
        if config.enabled_rules is not None:
            referenced |= set(config.enabled_rules)
        unknown = sorted(r for r in referenced if r not in self._rules)
        if unknown:
            raise ConfigurationError(f"Unknown rule id(s): {', '.join(unknown)}")

        selected = []
        for rule_id, rule in self._rules.items():
            if config.enabled_rules is not None and rule_id not in config.enabled_rules:
                continue
            if rule_id in config.disabled_rules:
                continue
            selected.append(rule)
        return selected
