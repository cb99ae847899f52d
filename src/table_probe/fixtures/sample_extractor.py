"""
Sample Extractor - pulls realistic existing rows for fixture data.

Each table is read with the strictest query that works: live (not soft-deleted)
recent rows in random order first, then progressively looser variants. A
query that references a missing column fails and the next one is tried.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from table_probe.config import MAX_WORKERS, RECENCY_WINDOW_DAYS, SAMPLE_COUNT
from table_probe.errors import IdentifierError
from table_probe.events import EventObserver, Outcome, Stage
from table_probe.metadata.database import Database
from table_probe.models import RowMap, TableRef

logger = logging.getLogger(__name__)

INTERNAL_COLUMNS = ("created_at", "updated_at", "deleted_at")


def sanitize_row(row: RowMap) -> RowMap:
    """
    Make a row safe to embed in a fixture.

    Internal timestamp columns are dropped; dates, times and datetimes become
    ISO-8601 strings; Decimal and UUID values become strings.
    """
    clean: RowMap = {}
    for key, value in row.items():
        if key in INTERNAL_COLUMNS:
            continue
        if isinstance(value, (datetime, date, time)):
            value = value.isoformat()
        elif isinstance(value, (Decimal, UUID)):
            value = str(value)
        clean[key] = value
    return clean


class SampleExtractor:
    """Extracts sanitized sample rows from confirmed tables."""

    def __init__(
        self,
        database: Database,
        recency_window_days: int = RECENCY_WINDOW_DAYS,
        max_workers: int = MAX_WORKERS,
        observer: Optional[EventObserver] = None,
    ):
        self.database = database
        self.recency_window_days = recency_window_days
        self.max_workers = max_workers
        self.observer = observer or EventObserver()

    def extract(self, tables: Iterable[TableRef], count: int = SAMPLE_COUNT) -> Dict[TableRef, List[RowMap]]:
        """
        Extract up to `count` sanitized rows from each table.

        Args:
            tables: Tables to sample
            count: Maximum rows per table

        Returns:
            Dict of table -> rows; a table that cannot be read maps to []
        """
        tables = list(dict.fromkeys(tables))
        if not tables:
            return {}

        workers = max(1, min(self.max_workers, len(tables)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            rows = list(pool.map(lambda t: self._extract_table(t, count), tables))

        samples = dict(zip(tables, rows))
        logger.info(f"Extracted {sum(len(r) for r in rows)} sample rows from {len(tables)} tables")
        return samples

    def _queries(self, qualified: str) -> List[Tuple[str, Dict[str, Any], bool]]:
        """The query ladder as (sql, params, uses_recency) triples."""
        since = (datetime.now(timezone.utc) - timedelta(days=self.recency_window_days)).isoformat()
        base = f"SELECT * FROM {qualified}"
        return [
            (f"{base} WHERE deleted_at IS NULL AND created_at >= :since ORDER BY RANDOM() LIMIT :count",
             {"since": since}, True),
            (f"{base} WHERE deleted_at IS NULL ORDER BY RANDOM() LIMIT :count", {}, False),
            (f"{base} ORDER BY RANDOM() LIMIT :count", {}, False),
            (f"{base} LIMIT :count", {}, False),
        ]

    def _extract_table(self, table: TableRef, count: int) -> List[RowMap]:
        try:
            qualified = self.database.quote_table(table)
        except IdentifierError as e:
            logger.warning(f"Skipping samples for {table}: {e}")
            self.observer.emit(Stage.SAMPLING, Outcome.FAILED, table=table, detail=str(e))
            return []

        last_error: Optional[Exception] = None
        for sql, params, uses_recency in self._queries(qualified):
            try:
                rows = self.database.fetch_all(sql, {**params, "count": count})
            except SQLAlchemyError as e:
                logger.debug(f"Sample query for {table} failed, loosening: {e}")
                last_error = e
                continue

            if not rows and uses_recency:
                continue

            sanitized = [sanitize_row(row) for row in rows]
            self.observer.emit(Stage.SAMPLING, Outcome.OK, table=table, detail=f"{len(sanitized)} rows",
                               rows=len(sanitized))
            return sanitized

        logger.warning(f"Could not sample {table}: {last_error}")
        self.observer.emit(Stage.SAMPLING, Outcome.FAILED, table=table, detail=str(last_error))
        return []
