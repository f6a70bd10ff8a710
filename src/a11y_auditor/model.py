from collections import Counter, defaultdict
from enum import Enum, IntEnum
from typing import Optional, Dict, Any, List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Severity(IntEnum):
    """
    Fixed, ordered severity scale. Higher values sort first in reports and
    are compared against a caller-supplied threshold for pass/fail decisions.
    """
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @classmethod
    def parse(cls, value: Any) -> "Severity":
        """Accepts a Severity, its name (case-insensitive) or its integer value."""
        if isinstance(value, Severity):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"Unknown severity: {value!r}") from None
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            raise ValueError(f"Unknown severity: {value!r}") from None


class FindingKind(str, Enum):
    VIOLATION = "violation"
    INDETERMINATE = "indeterminate"
    ENGINE_FAULT = "engine_fault"
    MODEL_INVALID = "model_invalid"


class Finding(BaseModel):
    """
    A single reported conformance problem.
    Findings are plain values; the engine aggregates and returns them.
    """
    model_config = ConfigDict(frozen=True)

    rule_id: str  # e.g., 'contrast.text', 'focus.trap'
    severity: Severity
    node_path: str  # e.g., '/html[1]/body[1]/div[2]'
    message: str
    suggested_fix: Optional[str] = None
    wcag: Optional[str] = None  # success criterion, e.g., '1.4.3'
    kind: FindingKind = FindingKind.VIOLATION
    details: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('severity', mode='before')
    @classmethod
    def parse_severity(cls, v: Any) -> Severity:
        return Severity.parse(v)

    @property
    def key(self):
        """Deduplication key."""
        return self.rule_id, self.node_path

    def to_record(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "severity": self.severity.name,
            "node_path": self.node_path,
            "message": self.message,
            "suggested_fix": self.suggested_fix,
            "wcag": self.wcag,
            "kind": self.kind.value,
            "details": dict(self.details),
        }


def count_by_severity(findings: List[Finding]) -> Dict[Severity, int]:
    """Severity -> count, always containing all four levels."""
    counts = Counter(f.severity for f in findings)
    return {sev: counts.get(sev, 0) for sev in sorted(Severity, reverse=True)}


class EvaluationResult(BaseModel):
    """
    The ordered output of one evaluation pass.
    Summaries are derived views over `findings`, never stored separately.
    """
    model_config = ConfigDict(frozen=True)

    source: str = ""
    findings: List[Finding] = Field(default_factory=list)

    @property
    def summary(self) -> Dict[Severity, int]:
        return count_by_severity(self.findings)

    def by_rule(self) -> Dict[str, List[Finding]]:
        grouped: Dict[str, List[Finding]] = defaultdict(list)
        for finding in self.findings:
            grouped[finding.rule_id].append(finding)
        return dict(grouped)

    def passes(self, threshold: Severity) -> bool:
        """
        True when no finding reaches `threshold`.
        The threshold is a caller decision; the engine only classifies.
        """
        threshold = Severity.parse(threshold)
        return not any(f.severity >= threshold for f in self.findings)

    def to_records(self) -> List[Dict[str, Any]]:
        return [f.to_record() for f in self.findings]
