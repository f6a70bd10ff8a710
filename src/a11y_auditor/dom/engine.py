# src/a11y_auditor/dom/engine.py
import logging
import time
from concurrent.futures import ThreadPoolExecutor, Future, TimeoutError as FuturesTimeout
from typing import Dict, List, NamedTuple, Optional, Tuple

from ..managers.config_manager import EvaluationConfig
from ..model import EvaluationResult, Finding, FindingKind, Severity
from .core import AuditResult, RuleDefinition
from .facts import RuleContext, build_context
from .models import UIDocument
from .registry import RuleRegistry

logger = logging.getLogger(__name__)

ENGINE_FAULT_PREFIX = "engine.fault/"
POLL_INTERVAL_S = 0.05


class RuleOutcome(NamedTuple):
    """Everything one rule produced during a pass, before findings are built."""
    rule: RuleDefinition
    results: List[AuditResult]
    faults: List[Tuple[str, str]]  # (node path, error)
    timed_out: bool = False


class ConformanceEngine:
    """
    Evaluation engine for UI documents.

    Computes the derived facts once, runs every enabled rule over the nodes
    it applies to, isolates rule failures, then deduplicates and orders the
    findings (severity descending, document order, rule id). Holds no state
    between passes: the same document and configuration always yield the
    same ordered findings.
    """

    def __init__(self, registry: Optional[RuleRegistry] = None):
        self.registry = (registry or RuleRegistry()).discover()

    def evaluate(self, document: UIDocument, config: Optional[EvaluationConfig] = None) -> EvaluationResult:
        config = config or EvaluationConfig()
        rules = self.registry.select(config)
        started = time.monotonic()

        ctx = build_context(document, config)
        outcomes = self._dispatch(rules, ctx)
        findings = self._collect(outcomes, ctx)

        logger.debug(
            f"Evaluated '{document.source}' with {len(rules)} rules in {time.monotonic() - started:.3f}s: "
            f"{len(findings)} findings"
        )
        return EvaluationResult(source=document.source, findings=findings)

    # --- Dispatch ---

    @staticmethod
    def _run_rule(rule: RuleDefinition, ctx: RuleContext, started: Optional[Dict[str, float]] = None) -> RuleOutcome:
        """Runs one rule over every applicable node; one failing node never stops the others."""
        if started is not None:
            started[rule.rule_id] = time.monotonic()
        results: List[AuditResult] = []
        faults: List[Tuple[str, str]] = []
        for node in ctx.document.iter_nodes():
            try:
                if not rule.applies_to(node, ctx):
                    continue
                results.extend(rule.check(node, ctx) or [])
            except Exception as e:
                logger.error(f"Rule {rule.rule_id} failed on {node.path}: {e}", exc_info=True)
                faults.append((node.path, f"{type(e).__name__}: {e}"))
        return RuleOutcome(rule, results, faults)

    def _dispatch(self, rules: List[RuleDefinition], ctx: RuleContext) -> List[RuleOutcome]:
        """
        Runs the rules and returns their outcomes in catalog order,
        whatever order the workers finished in.
        """
        config = ctx.config
        if config.workers == 1 and config.rule_timeout is None:
            return [self._run_rule(rule, ctx) for rule in rules]

        outcomes: Dict[str, RuleOutcome] = {}
        pending = list(rules)
        while pending:
            # Rules a stuck worker kept from starting get a fresh pool
            started: Dict[str, float] = {}
            stuck: List[Future] = []
            stalled: List[RuleDefinition] = []
            executor = ThreadPoolExecutor(max_workers=config.workers, thread_name_prefix="a11y-rule")
            try:
                futures = [(rule, executor.submit(self._run_rule, rule, ctx, started)) for rule in pending]
                for rule, future in futures:
                    outcome = self._await(rule, future, started, stuck, config)
                    if outcome is None:
                        stalled.append(rule)
                    else:
                        outcomes[rule.rule_id] = outcome
            finally:
                executor.shutdown(wait=not stuck, cancel_futures=True)
            pending = stalled
        return [outcomes[rule.rule_id] for rule in rules]

    @staticmethod
    def _await(
            rule: RuleDefinition, future: Future, started: Dict[str, float], stuck: List[Future],
            config: EvaluationConfig
    ) -> Optional[RuleOutcome]:
        """
        Waits for a rule, bounding its runtime from the moment it started.
        Returns None when the rule could not start because every worker is
        held by a timed-out rule.
        """
        timeout = config.rule_timeout
        while True:
            begun = started.get(rule.rule_id)
            if begun is None:
                if sum(1 for f in stuck if not f.done()) >= config.workers and future.cancel():
                    return None
                wait = POLL_INTERVAL_S
            elif timeout is None:
                wait = None
            else:
                wait = timeout - (time.monotonic() - begun)
                if wait <= 0:
                    future.cancel()
                    stuck.append(future)
                    logger.error(f"Rule {rule.rule_id} exceeded its {timeout}s timeout")
                    return RuleOutcome(rule, [], [], timed_out=True)
            try:
                return future.result(timeout=wait)
            except FuturesTimeout:
                continue

    # --- Aggregation ---

    def _collect(self, outcomes: List[RuleOutcome], ctx: RuleContext) -> List[Finding]:
        document = ctx.document
        findings: List[Finding] = []
        seen = set()

        def add(finding: Finding):
            if finding.key not in seen:
                seen.add(finding.key)
                findings.append(finding)

        for outcome in outcomes:
            rule = outcome.rule
            severity = ctx.config.severity_for(rule.rule_id, rule.severity)
            faults = list(outcome.faults)
            for hit in outcome.results:
                if not isinstance(hit, AuditResult):
                    faults.append((document.root.path, f"invalid result {hit!r}"))
                    continue
                if not document.contains(hit.node_path):
                    faults.append((hit.node_path, "finding references a node that is not in the document"))
                    continue
                add(Finding(
                    rule_id=rule.rule_id,
                    severity=Severity.LOW if hit.kind == FindingKind.INDETERMINATE else severity,
                    node_path=hit.node_path,
                    message=hit.message,
                    suggested_fix=hit.suggested_fix,
                    wcag=rule.wcag,
                    kind=hit.kind,
                    details=dict(hit.details or {})
                ))
            if faults or outcome.timed_out:
                add(self._fault_finding(rule, faults, outcome.timed_out, ctx))

        findings.sort(key=lambda f: (-f.severity, document.order_of(f.node_path), f.rule_id))
        return findings

    @staticmethod
    def _fault_finding(
            rule: RuleDefinition, faults: List[Tuple[str, str]], timed_out: bool, ctx: RuleContext
    ) -> Finding:
        """The single meta-finding recording that a rule could not be applied cleanly."""
        paths = sorted({path for path, _ in faults}, key=ctx.document.order_of)
        if timed_out:
            message = f"Rule '{rule.rule_id}' did not finish within {ctx.config.rule_timeout}s and was skipped."
        else:
            message = f"Rule '{rule.rule_id}' failed on {len(paths)} node(s); its results are incomplete."
        return Finding(
            rule_id=f"{ENGINE_FAULT_PREFIX}{rule.rule_id}",
            severity=Severity.LOW,
            node_path=ctx.document.root.path,
            message=message,
            suggested_fix=None,
            wcag=None,
            kind=FindingKind.ENGINE_FAULT,
            details={
                "failed_rule": rule.rule_id,
                "paths": paths,
                "errors": [error for _, error in faults],
                "timed_out": timed_out,
            }
        )
