# src/a11y_auditor/controllers/audit_controller.py
import logging
from collections import Counter, defaultdict
from concurrent.futures import ProcessPoolExecutor
from functools import partial
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import pandas as pd
from tqdm import tqdm

from a11y_auditor.dom.builder import DOMBuilder
from a11y_auditor.dom.engine import ConformanceEngine
from a11y_auditor.managers.config_manager import EvaluationConfig, config_manager
from a11y_auditor.model import EvaluationResult, Finding, Severity, count_by_severity
from a11y_auditor.utils.configure_logging import configure_from_settings

logger = logging.getLogger(__name__)

Document = Tuple[str, Union[str, Mapping[str, Any]]]  # (source label, HTML / JSON text / node mapping)


def load_document(builder: DOMBuilder, source: str, content: Union[str, Mapping[str, Any]]):
    """HTML text, JSON text or an already decoded node mapping."""
    if isinstance(content, Mapping):
        return builder.build(content, source=source)
    text = (content or "").lstrip("\ufeff").lstrip()
    if text.startswith(("{", "[")):
        return builder.from_json(text, source=source)
    return builder.parse_html(text, source=source)


def _worker_evaluate(document: Document, config: EvaluationConfig) -> Dict[str, Any]:
    """
    Worker function evaluating a single document in a separate process.
    Returns plain records so results cross the process boundary cheaply.
    """
    source, content = document
    try:
        doc = load_document(DOMBuilder(), source, content)
        result = ConformanceEngine().evaluate(doc, config)
    except Exception as e:
        logger.error(f"Worker failed on {source}: {e}")
        return {"error": f"{type(e).__name__}: {e}", "source": source}

    return {
        "source": source,
        "findings": result.to_records(),
    }


class AuditController:
    """
    Orchestrates batch evaluation: parallel execution over documents,
    aggregation of per-severity and per-rule statistics, and export rows.
    """

    def __init__(
            self,
            config: Optional[EvaluationConfig] = None,
            fail_threshold: Optional[Severity] = None,
            setup_logging: bool = False
    ):
        if setup_logging:
            # tqdm-aware root handler from the debug section
            configure_from_settings(config_manager.get_nested("debug"))
        self.config = config or config_manager.build_evaluation_config()
        self.fail_threshold = Severity.parse(
            fail_threshold or config_manager.get_nested("batch.fail_threshold", "HIGH")
        )

        # Results Buffers
        self.results: Dict[str, EvaluationResult] = {}
        self.errors: Dict[str, str] = {}
        self.export_rows: List[Dict[str, Any]] = []
        self.stats: Dict[str, Counter] = defaultdict(Counter)

    @staticmethod
    def _tasks(documents: Union[pd.DataFrame, Iterable[Document]]) -> List[Document]:
        if isinstance(documents, pd.DataFrame):
            source_col = "source" if "source" in documents.columns else "url"
            return [(str(getattr(row, source_col)), getattr(row, "content", "")) for row in documents.itertuples()]
        return [(str(source), content) for source, content in documents]

    def run_audit(
            self,
            documents: Union[pd.DataFrame, Iterable[Document]],
            workers: Optional[int] = None,
            progress_callback: Optional[Callable[[int, int], None]] = None,
            show_progress: bool = False
    ) -> Dict[str, Any]:
        """
        Evaluates every document and returns the batch summary.
        The configuration is validated against the catalog before any worker starts.
        """
        ConformanceEngine().registry.select(self.config)

        tasks = self._tasks(documents)
        total = len(tasks)
        workers = workers or config_manager.get_nested("batch.max_workers", 4)

        self.results = {}
        self.errors = {}
        self.export_rows = []
        self.stats = defaultdict(Counter)

        with ProcessPoolExecutor(max_workers=workers) as executor, \
                tqdm(total=total, desc="Evaluating", unit="doc", disable=not show_progress) as bar:
            func = partial(_worker_evaluate, config=self.config)
            for i, outcome in enumerate(executor.map(func, tasks)):
                bar.update(1)
                if progress_callback:
                    progress_callback(i + 1, total)

                if "error" in outcome:
                    self.errors[outcome["source"]] = outcome["error"]
                    continue
                self._aggregate(outcome)

        summary = self.summary()
        logger.info(
            f"Evaluated {total} documents: {summary['total_findings']} findings, "
            f"{summary['failed_documents']} below threshold {self.fail_threshold.name}, {len(self.errors)} errors"
        )
        return summary

    def _aggregate(self, outcome: Dict[str, Any]):
        source = outcome["source"]
        findings = [Finding(**record) for record in outcome["findings"]]
        self.results[source] = EvaluationResult(source=source, findings=findings)

        for finding in findings:
            self.stats[finding.severity.name][finding.rule_id] += 1
            self.export_rows.append({
                "Source": source,
                "Rule": finding.rule_id,
                "Severity": finding.severity.name,
                "Kind": finding.kind.value,
                "Node": finding.node_path,
                "WCAG": finding.wcag,
                "Message": finding.message,
                "Fix": finding.suggested_fix,
            })

    def summary(self) -> Dict[str, Any]:
        all_findings = [f for result in self.results.values() for f in result.findings]
        failed = [s for s, result in self.results.items() if not result.passes(self.fail_threshold)]
        return {
            "total_documents": len(self.results) + len(self.errors),
            "documents_with_findings": sum(1 for r in self.results.values() if r.findings),
            "total_findings": len(all_findings),
            "failed_documents": len(failed),
            "errors": len(self.errors),
            "by_severity": {sev.name: count for sev, count in count_by_severity(all_findings).items()},
            "stats": {sev: dict(rules) for sev, rules in self.stats.items()},
        }

    # --- Result Getters ---
    def get_results(self) -> Dict[str, EvaluationResult]:
        return self.results

    def get_results_for_export(self) -> List[Dict[str, Any]]:
        return self.export_rows

    def get_results_df(self) -> pd.DataFrame:
        columns = ["Source", "Rule", "Severity", "Kind", "Node", "WCAG", "Message", "Fix"]
        return pd.DataFrame(self.export_rows, columns=columns)

    def get_rule_breakdown_df(self) -> pd.DataFrame:
        """Findings per rule and severity, most frequent first."""
        df = self.get_results_df()
        if df.empty:
            return pd.DataFrame(columns=["Rule", "Severity", "Count"])
        breakdown = df.groupby(["Rule", "Severity"]).size().reset_index(name="Count")
        return breakdown.sort_values(["Count", "Rule"], ascending=[False, True]).reset_index(drop=True)
