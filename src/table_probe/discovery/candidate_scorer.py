"""
Candidate Scorer - ranks tables by how well their columns cover a payload.

A table's confidence is the fraction of payload fields that have at least one
name variant among the table's columns. Tables at or below the threshold are
dropped; the rest are ranked and truncated to the top K.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Dict, List, Optional, Sequence, Set

from table_probe.config import CONFIDENCE_THRESHOLD, TOP_K_CANDIDATES
from table_probe.discovery.name_variants import expand_field_variants
from table_probe.errors import CatalogError
from table_probe.events import EventObserver, Outcome, Stage
from table_probe.metadata.catalog import SchemaCatalogReader
from table_probe.models import ColumnMetadata, TableCandidate, TableRef

logger = logging.getLogger(__name__)


class CandidateScorer:
    """
    Scores every table in the catalog against the payload fields.

    Matching is exact and case-sensitive against the unmodified column name;
    the variant set already enumerates the case forms worth trying.
    """

    def __init__(
        self,
        confidence_threshold: float = CONFIDENCE_THRESHOLD,
        top_k: int = TOP_K_CANDIDATES,
        observer: Optional[EventObserver] = None,
    ):
        """
        Initialize the scorer.

        Args:
            confidence_threshold: Tables must score strictly above this
            top_k: Maximum number of candidates returned
            observer: Receives scoring events
        """
        self.confidence_threshold = confidence_threshold
        self.top_k = top_k
        self.observer = observer or EventObserver()
        # Columns read by the last discover() call
        self.catalog_columns: List[ColumnMetadata] = []

    def score(
        self,
        fields: Sequence[str],
        columns: Sequence[ColumnMetadata],
    ) -> List[TableCandidate]:
        """
        Score tables by payload field coverage.

        Args:
            fields: Payload field names
            columns: Column metadata for every table in scope

        Returns:
            Candidates sorted by confidence (descending), at most top_k
        """
        if not fields:
            return []

        by_table: Dict[TableRef, List[ColumnMetadata]] = OrderedDict()
        for col in columns:
            by_table.setdefault(col.table, []).append(col)

        variants = {f: expand_field_variants(f) for f in dict.fromkeys(fields)}

        candidates: List[TableCandidate] = []
        for table, table_columns in by_table.items():
            names: Set[str] = {c.name for c in table_columns}
            matched = tuple(f for f in fields if variants[f] & names)
            confidence = len(matched) / len(fields)

            if confidence <= self.confidence_threshold:
                continue

            candidates.append(TableCandidate(
                table=table,
                columns=tuple(table_columns),
                confidence=confidence,
                matched_fields=matched,
            ))

        candidates.sort(key=lambda c: (-c.confidence, c.table.qualified_name))
        return candidates[:self.top_k]

    def discover(
        self,
        fields: Sequence[str],
        catalog: SchemaCatalogReader,
        scope: Optional[str] = None,
    ) -> List[TableCandidate]:
        """
        Fetch the catalog and score it.

        A catalog failure is not fatal: it is reported and yields no
        candidates, so the rest of the run can still degrade gracefully.
        """
        self.catalog_columns = []
        if not fields:
            self.observer.emit(Stage.SCORING, Outcome.SKIPPED, detail="no payload fields to score")
            return []

        try:
            columns = catalog.fetch(scope)
        except CatalogError as e:
            logger.warning(f"Schema analysis skipped: {e}")
            self.observer.emit(Stage.CATALOG, Outcome.FAILED, detail=str(e))
            return []
        self.catalog_columns = columns
        self.observer.emit(Stage.CATALOG, Outcome.OK, detail=f"{len(columns)} columns", columns=len(columns))

        candidates = self.score(fields, columns)
        for candidate in candidates:
            self.observer.emit(
                Stage.SCORING,
                Outcome.OK,
                table=candidate.table,
                detail=f"confidence {candidate.confidence:.0%}",
                confidence=candidate.confidence,
                matched_fields=list(candidate.matched_fields),
            )
        logger.info(f"Found {len(candidates)} candidate tables for {len(fields)} fields")
        return candidates
