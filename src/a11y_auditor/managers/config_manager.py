# src/a11y_auditor/managers/config_manager.py
import json
import logging
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..color.contrast import parse_color
from ..model import Severity
from ..utils.path_utils import PathUtils

logger = logging.getLogger(__name__)

SUPPORTED_WCAG_LEVELS = ("AA",)


class ConfigurationError(ValueError):
    """Invalid evaluation configuration, raised before any rule runs."""


class EvaluationConfig(BaseModel):
    """
    Explicit, immutable configuration for one evaluation pass.
    Nothing ambient is consulted while a pass runs; everything the engine
    needs to know arrives through this object.
    """
    model_config = ConfigDict(frozen=True, extra='forbid')

    wcag_level: str = "AA"
    min_target_size: float = 44.0  # CSS px, both dimensions
    enabled_rules: Optional[FrozenSet[str]] = None  # None = whole catalog
    disabled_rules: FrozenSet[str] = Field(default_factory=frozenset)
    severity_overrides: Dict[str, Severity] = Field(default_factory=dict)
    default_background: Optional[str] = None  # None = unresolved backgrounds are indeterminate
    workers: int = 4
    rule_timeout: Optional[float] = 10.0  # seconds per rule, measured from its start

    @field_validator('wcag_level', mode='before')
    @classmethod
    def check_level(cls, v: Any) -> str:
        level = str(v).strip().upper()
        if level not in SUPPORTED_WCAG_LEVELS:
            raise ValueError(f"Unsupported WCAG level {v!r}; only AA is evaluated")
        return level

    @field_validator('min_target_size')
    @classmethod
    def check_target_size(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("min_target_size must be positive")
        return v

    @field_validator('workers')
    @classmethod
    def check_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError("workers must be at least 1")
        return v

    @field_validator('rule_timeout')
    @classmethod
    def check_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("rule_timeout must be positive or None")
        return v

    @field_validator('severity_overrides', mode='before')
    @classmethod
    def parse_overrides(cls, v: Any) -> Dict[str, Severity]:
        return {str(rule_id): Severity.parse(sev) for rule_id, sev in (v or {}).items()}

    @field_validator('default_background')
    @classmethod
    def check_background(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        parsed = parse_color(v)
        if parsed is None or parsed[3] < 1.0:
            raise ValueError(f"default_background {v!r} is not an opaque colour")
        return v

    @classmethod
    def create(cls, **values: Any) -> "EvaluationConfig":
        """Builds a config, reporting any validation problem as ConfigurationError."""
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e

    def severity_for(self, rule_id: str, default: Severity) -> Severity:
        return self.severity_overrides.get(rule_id, default)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigManager:
    """
    A singleton class to manage the application's configuration.
    It loads settings from the packaged settings.json (plus optional user
    overrides) and allows for in-memory modifications.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ConfigManager, cls).__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        self._config: Dict[str, Any] = {}
        self.reset()
        logger.debug("ConfigManager initialized.")

    def get_all(self) -> Dict[str, Any]:
        return self._config

    def get_nested(self, key_path: str, default: Optional[Any] = None) -> Any:
        """
        Safely retrieves a nested value from the configuration.
        e.g., 'evaluation.min_target_size'.
        """
        value = self._config
        for key in key_path.split('.'):
            if isinstance(value, dict):
                value = value.get(key)
            else:
                return default
        return value if value is not None else default

    def set_nested(self, key_path: str, value: Any) -> bool:
        """
        Sets a nested value in the in-memory configuration, casting it to
        the type of the value it replaces where possible.
        e.g., 'evaluation.workers', '8'
        """
        keys = key_path.split('.')
        d = self._config
        for key in keys[:-1]:
            d = d.setdefault(key, {})
            if not isinstance(d, dict):
                logger.error(f"Cannot set value: '{key}' is not a dictionary.")
                return False

        original_value = d.get(keys[-1])
        if original_value is not None and not isinstance(original_value, (dict, list)):
            try:
                value = type(original_value)(value)
            except (ValueError, TypeError):
                logger.warning(
                    f"Could not cast new value for '{key_path}' to type {type(original_value).__name__}. "
                    f"Storing as given."
                )

        d[keys[-1]] = value
        logger.info(f"Configuration updated: {key_path} = {value}")
        return True

    def load_file(self, path: Path, merge: bool = True):
        """Loads a settings file, merged over the current configuration by default."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        self._config = _deep_merge(self._config, data) if merge else data
        logger.info(f"Configuration loaded from {path}.")

    def reset(self):
        """Resets the in-memory configuration from settings.json (and user overrides)."""
        config_path = PathUtils.get_settings_file()
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                self._config = json.load(f)
        except FileNotFoundError:
            logger.warning(f"settings.json not found at {config_path}. Using empty config.")
            self._config = {}
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load settings.json: {e}", exc_info=True)
            self._config = {}

        user_path = PathUtils.get_user_settings_file()
        if user_path.exists():
            try:
                self.load_file(user_path)
            except (OSError, json.JSONDecodeError) as e:
                logger.error(f"Ignoring unreadable user settings {user_path}: {e}")
        logger.debug("Configuration has been (re)loaded.")

    def build_evaluation_config(self, **overrides: Any) -> EvaluationConfig:
        """
        EvaluationConfig from the 'evaluation' and 'severity_overrides'
        sections, with keyword overrides applied on top.
        """
        values = dict(self._config.get("evaluation") or {})
        values["severity_overrides"] = dict(self._config.get("severity_overrides") or {})
        values.update(overrides)
        for key in ("enabled_rules", "disabled_rules"):
            if values.get(key) is not None:
                values[key] = frozenset(values[key])
        if values.get("disabled_rules") is None:
            values.pop("disabled_rules", None)
        return EvaluationConfig.create(**values)


# The global singleton instance that the entire application uses.
config_manager = ConfigManager()
