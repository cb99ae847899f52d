"""
Relationship Expander - grows the candidate set along foreign keys.

Endpoints that write one table usually touch its neighbours too (a parent
looked up for validation, a child row created alongside). For every seed
table both outgoing and incoming foreign keys are followed one hop.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional, Set

from table_probe.config import MAX_WORKERS
from table_probe.errors import CatalogError
from table_probe.events import EventObserver, Outcome, Stage
from table_probe.metadata.catalog import SchemaCatalogReader
from table_probe.models import ForeignKeyEdge, TableRef

logger = logging.getLogger(__name__)


class RelationshipExpander:
    """Discovers tables linked to a seed set by foreign keys."""

    def __init__(
        self,
        catalog: SchemaCatalogReader,
        max_workers: int = MAX_WORKERS,
        observer: Optional[EventObserver] = None,
    ):
        self.catalog = catalog
        self.max_workers = max_workers
        self.observer = observer or EventObserver()
        self.edges: List[ForeignKeyEdge] = []

    def expand(self, seed: Iterable[TableRef]) -> Set[TableRef]:
        """
        Find tables one foreign-key hop away from any seed table.

        Lookups that fail are logged and skipped; the remaining seeds are
        still expanded.

        Args:
            seed: Tables to expand from

        Returns:
            Linked tables, never including any seed table
        """
        seeds = list(dict.fromkeys(seed))
        self.edges = []
        if not seeds:
            return set()

        workers = max(1, min(self.max_workers, len(seeds)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            lookups = list(pool.map(self._lookup, seeds))

        related: Set[TableRef] = set()
        for table, edges in zip(seeds, lookups):
            if edges is None:
                continue
            self.edges.extend(edges)
            related.update(edge.other(table) for edge in edges)

        related.difference_update(seeds)

        for table in sorted(related):
            self.observer.emit(Stage.RELATIONSHIPS, Outcome.OK, table=table, detail="linked by foreign key")
        logger.info(f"Found {len(related)} related tables for {len(seeds)} seed tables")
        return related

    def _lookup(self, table: TableRef) -> Optional[List[ForeignKeyEdge]]:
        try:
            return self.catalog.foreign_keys(table)
        except CatalogError as e:
            logger.warning(f"Foreign key lookup failed for {table}: {e}")
            self.observer.emit(Stage.RELATIONSHIPS, Outcome.FAILED, table=table, detail=str(e))
            return None
