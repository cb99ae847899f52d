"""
Table Analyzer - end-to-end inference of the tables behind an endpoint.

Pipeline (each stage completes before the next starts):
1. Score catalog tables against the payload field names
2. Expand the candidates along foreign keys
3. Probe the endpoint and diff before/after snapshots
4. Fall back to the best candidate when the probe confirms nothing
5. Collect fixture rows for the resulting tables

Usage:
    with Database(url) as db:
        result = TableAnalyzer(db, AnalyzerConfig()).analyze(request)
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from table_probe.config import AnalyzerConfig
from table_probe.discovery.candidate_scorer import CandidateScorer
from table_probe.discovery.relationship_expander import RelationshipExpander
from table_probe.errors import CatalogError
from table_probe.events import EventObserver, LoggingObserver, Outcome, Stage
from table_probe.fixtures.sample_extractor import SampleExtractor
from table_probe.fixtures.synthesizer import RowSynthesizer
from table_probe.metadata.catalog import SchemaCatalogReader
from table_probe.metadata.database import Database
from table_probe.models import (
    DEFAULT_SCHEMA,
    AnalysisResult,
    ColumnMetadata,
    RequestDescription,
    RowMap,
    TableCandidate,
    TableRef,
)
from table_probe.probe.empirical_probe import EmpiricalProbe
from table_probe.probe.invoker import EndpointInvoker
from table_probe.probe.snapshots import SnapshotReader
from table_probe.request import load_request

logger = logging.getLogger(__name__)


class TableAnalyzer:
    """
    Orchestrates one analysis per request.

    Only an unreadable request description aborts a run; every stage below
    degrades to a smaller result instead of raising.
    """

    def __init__(
        self,
        database: Database,
        config: Optional[AnalyzerConfig] = None,
        observer: Optional[EventObserver] = None,
        invoker: Optional[EndpointInvoker] = None,
        catalog: Optional[SchemaCatalogReader] = None,
        sleep: Callable[[float], Any] = time.sleep,
    ):
        """
        Initialize the analyzer.

        Args:
            database: Row and metadata store
            config: Analysis configuration (defaults when omitted)
            observer: Receives stage events (logged when omitted)
            invoker: HTTP invoker; built from the config when omitted
            catalog: Catalog reader; built on `database` when omitted
            sleep: Settle delay implementation
        """
        self.database = database
        self.config = config or AnalyzerConfig()
        self.observer = observer or LoggingObserver()
        self.catalog = catalog or SchemaCatalogReader(database)

        self._owns_invoker = invoker is None
        self.invoker = invoker or EndpointInvoker(
            base_url=self.config.base_url,
            timeout=self.config.request_timeout,
            headers=self.config.headers,
        )

        self.scorer = CandidateScorer(
            confidence_threshold=self.config.confidence_threshold,
            top_k=self.config.top_k,
            observer=self.observer,
        )
        self.expander = RelationshipExpander(
            self.catalog,
            max_workers=self.config.max_workers,
            observer=self.observer,
        )
        self.probe = EmpiricalProbe(
            SnapshotReader(database, limit=self.config.snapshot_limit),
            self.invoker,
            settle_seconds=self.config.settle_seconds,
            sleep=sleep,
            observer=self.observer,
            max_workers=self.config.max_workers,
        )
        self.extractor = SampleExtractor(
            database,
            recency_window_days=self.config.recency_window_days,
            max_workers=self.config.max_workers,
            observer=self.observer,
        )

    def close(self) -> None:
        if self._owns_invoker:
            self.invoker.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def discover(self, request: RequestDescription) -> AnalysisResult:
        """
        Run the schema-only stages (scoring and relationship expansion).

        No request is sent to the endpoint.
        """
        result = AnalysisResult(endpoint=request.endpoint, method=request.method)
        result.suspected_tables = self.scorer.discover(request.fields, self.catalog, self.config.schema)
        related = self.expander.expand(c.table for c in result.suspected_tables)
        result.related_tables = sorted(related)
        return result

    def analyze(self, request: RequestDescription) -> AnalysisResult:
        """
        Determine the tables an endpoint touches and collect fixture rows.

        Args:
            request: Endpoint and payload shape

        Returns:
            AnalysisResult; `confirmed_tables` is empty only when neither the
            probe nor the schema analysis found anything
        """
        self.observer.emit(
            Stage.REQUEST,
            Outcome.OK,
            detail=f"{request.method} {request.endpoint}",
            fields=list(request.fields),
        )

        if request.known_tables and not self.config.force:
            logger.info(f"{request.name}: using {len(request.known_tables)} known tables, inference skipped")
            self.observer.emit(Stage.SCORING, Outcome.SKIPPED, detail="tables already known (use force to re-run)")
            result = AnalysisResult(
                endpoint=request.endpoint,
                method=request.method,
                confirmed_tables=list(request.known_tables),
                skipped_inference=True,
            )
            result.samples = self.collect_samples(result.confirmed_tables)
            return result

        result = self.discover(request)
        tables = [c.table for c in result.suspected_tables] + result.related_tables

        if tables:
            report = self.probe.run(request, tables, self._known_columns())
            result.invocation = report.invocation
            result.confirmations = report.results
            result.confirmed_tables = list(report.confirmed)
        else:
            self.observer.emit(Stage.INVOKE, Outcome.SKIPPED, detail="no suspected tables to observe")

        if not result.confirmed_tables:
            self._fall_back(result)

        result.samples = self.collect_samples(result.confirmed_tables)
        return result

    def _fall_back(self, result: AnalysisResult) -> None:
        best = self._best_candidate(result.suspected_tables)
        if best is None:
            logger.warning(f"No tables found for {result.method} {result.endpoint}")
            self.observer.emit(Stage.FALLBACK, Outcome.FAILED, detail="no candidates to fall back to")
            return

        result.confirmed_tables = [best.table]
        result.fallback_used = True
        logger.info(f"Probe confirmed nothing, falling back to {best.table} ({best.confidence:.0%})")
        self.observer.emit(
            Stage.FALLBACK,
            Outcome.OK,
            table=best.table,
            detail=f"best candidate at {best.confidence:.0%}",
            confidence=best.confidence,
        )

    @staticmethod
    def _best_candidate(candidates: Sequence[TableCandidate]) -> Optional[TableCandidate]:
        if not candidates:
            return None
        return min(candidates, key=lambda c: (-c.confidence, c.table.qualified_name))

    def _known_columns(self) -> Dict[TableRef, List[str]]:
        known: Dict[TableRef, List[str]] = defaultdict(list)
        for col in self.scorer.catalog_columns:
            known[col.table].append(col.name)
        return dict(known)

    def collect_samples(self, tables: List[TableRef]) -> Dict[TableRef, List[RowMap]]:
        """Collect fixture rows according to the configured data strategy."""
        if not tables:
            return {}

        strategy = self.config.data_strategy
        count = self.config.sample_count

        if strategy == "generate":
            return self._generate(tables, count)

        samples = self.extractor.extract(tables, count)
        if strategy == "both":
            empty = [t for t in tables if not samples.get(t)]
            if empty:
                samples.update(self._generate(empty, count))
        return samples

    def _generate(self, tables: List[TableRef], count: int) -> Dict[TableRef, List[RowMap]]:
        columns = self._columns_for(tables)
        synthesizer = RowSynthesizer(self.config.seed)
        samples = {}
        for table in tables:
            table_columns = columns.get(table, [])
            if not table_columns:
                logger.warning(f"No column metadata for {table}, cannot generate rows")
                self.observer.emit(Stage.SAMPLING, Outcome.FAILED, table=table, detail="no column metadata")
                samples[table] = []
                continue
            samples[table] = synthesizer.generate(table_columns, count)
            self.observer.emit(
                Stage.SAMPLING, Outcome.OK, table=table, detail=f"{count} generated rows", rows=count,
            )
        return samples

    def _columns_for(self, tables: List[TableRef]) -> Dict[TableRef, List[ColumnMetadata]]:
        cached: Dict[TableRef, List[ColumnMetadata]] = defaultdict(list)
        for col in self.scorer.catalog_columns:
            cached[col.table].append(col)
        if all(cached.get(t) for t in tables):
            return dict(cached)

        schemas = {t.schema for t in tables}
        scope = schemas.pop() if len(schemas) == 1 else None
        try:
            return self.catalog.columns_for(tables, scope)
        except CatalogError as e:
            logger.warning(f"Column metadata unavailable: {e}")
            return dict(cached)


def analyze_file(
    path: Path,
    database: Database,
    config: Optional[AnalyzerConfig] = None,
    observer: Optional[EventObserver] = None,
) -> AnalysisResult:
    """
    Load a request description and analyze it.

    Raises:
        RequestDescriptionError: If the request file cannot be parsed
    """
    config = config or AnalyzerConfig()
    request = load_request(path, default_schema=config.schema or DEFAULT_SCHEMA)
    with TableAnalyzer(database, config, observer) as analyzer:
        return analyzer.analyze(request)
