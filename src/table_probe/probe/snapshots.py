"""
Snapshot reader: bounded, ordered reads of a table's most recent rows.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from table_probe.config import SNAPSHOT_LIMIT
from table_probe.errors import IdentifierError, SnapshotError
from table_probe.metadata.database import Database
from table_probe.models import Snapshot, TableRef

logger = logging.getLogger(__name__)

RECENCY_COLUMNS = ("created_at", "updated_at", "id")


class SnapshotReader:
    """
    Reads the newest rows of a table.

    The ordering column is picked from RECENCY_COLUMNS; when the catalog knows
    the table's columns only those present are tried. If no ordering works
    the rows are read unordered.
    """

    def __init__(self, database: Database, limit: int = SNAPSHOT_LIMIT):
        self.database = database
        self.limit = limit

    def capture(self, table: TableRef, known_columns: Optional[Iterable[str]] = None) -> Snapshot:
        """
        Capture a snapshot of one table.

        Args:
            table: Table to read
            known_columns: Column names from the catalog, if known

        Returns:
            Snapshot of at most `limit` rows

        Raises:
            SnapshotError: If the table cannot be read at all
        """
        for column in self._ordering_candidates(known_columns):
            try:
                return self._read(table, column)
            except SnapshotError as e:
                logger.debug(f"Ordering {table} by {column} failed: {e}")

        return self._read(table, None)

    def recapture(self, previous: Snapshot) -> Snapshot:
        """Read the table again with exactly the ordering of `previous`."""
        return self._read(previous.table, previous.order_by)

    def _ordering_candidates(self, known_columns: Optional[Iterable[str]]) -> List[str]:
        if known_columns is None:
            return list(RECENCY_COLUMNS)
        known = set(known_columns)
        return [c for c in RECENCY_COLUMNS if c in known]

    def _read(self, table: TableRef, order_by: Optional[str]) -> Snapshot:
        try:
            sql = f"SELECT * FROM {self.database.quote_table(table)}"
            if order_by is not None:
                sql += f" ORDER BY {self.database.quote_identifier(order_by)} DESC NULLS LAST"
            sql += " LIMIT :limit"
            rows = self.database.fetch_all(sql, {"limit": self.limit})
        except (SQLAlchemyError, IdentifierError) as e:
            raise SnapshotError(f"Cannot read {table}: {e}") from e

        return Snapshot(table=table, rows=rows, order_by=order_by, limit=self.limit)
