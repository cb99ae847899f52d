"""
Schema catalog reader for PostgreSQL-compatible stores.

Reads column metadata and foreign-key constraints from the standard
information_schema views:
- information_schema.columns
- information_schema.table_constraints
- information_schema.key_column_usage
- information_schema.constraint_column_usage
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from table_probe.errors import CatalogError
from table_probe.metadata.database import Database
from table_probe.models import ColumnMetadata, ForeignKeyEdge, TableRef

logger = logging.getLogger(__name__)

SYSTEM_SCHEMAS = ("information_schema", "pg_catalog", "pg_toast")

_COLUMNS_SQL = """
    SELECT
        table_schema,
        table_name,
        column_name,
        data_type,
        is_nullable
    FROM information_schema.columns
    WHERE {predicate}
    ORDER BY table_schema, table_name, ordinal_position
"""

_FK_SQL = """
    SELECT
        tc.table_schema AS referencing_schema,
        tc.table_name AS referencing_table,
        kcu.column_name AS referencing_column,
        ccu.table_schema AS referenced_schema,
        ccu.table_name AS referenced_table,
        ccu.column_name AS referenced_column
    FROM information_schema.table_constraints AS tc
    JOIN information_schema.key_column_usage AS kcu
        ON tc.constraint_name = kcu.constraint_name
        AND tc.table_schema = kcu.table_schema
    JOIN information_schema.constraint_column_usage AS ccu
        ON ccu.constraint_name = tc.constraint_name
        AND ccu.constraint_schema = tc.constraint_schema
    WHERE tc.constraint_type = 'FOREIGN KEY'
        AND {side}.table_schema = :schema
        AND {side}.table_name = :table_name
"""


class SchemaCatalogReader:
    """
    Fetches column and foreign-key metadata from the live store.

    The reader does not recover from errors: every failure is raised as
    CatalogError so the calling stage decides what "absent" means for it.
    """

    def __init__(self, database: Database):
        self.database = database

    def fetch(self, scope: Optional[str] = None) -> List[ColumnMetadata]:
        """
        Get column metadata for every table in a scope.

        Args:
            scope: Schema name, or None for every non-system schema

        Returns:
            List of ColumnMetadata in catalog order

        Raises:
            CatalogError: the metadata query failed
        """
        if scope:
            predicate = "table_schema = :scope"
            params: Dict[str, str] = {"scope": scope}
        else:
            placeholders = ", ".join(f":sys{i}" for i in range(len(SYSTEM_SCHEMAS)))
            predicate = f"table_schema NOT IN ({placeholders})"
            params = {f"sys{i}": name for i, name in enumerate(SYSTEM_SCHEMAS)}

        try:
            rows = self.database.fetch_all(_COLUMNS_SQL.format(predicate=predicate), params)
        except SQLAlchemyError as e:
            raise CatalogError(f"Could not read column metadata: {e}") from e

        columns = [
            ColumnMetadata(
                table=TableRef(schema=row["table_schema"], name=row["table_name"]),
                name=row["column_name"],
                data_type=row["data_type"],
                nullable=str(row["is_nullable"]).upper() == "YES",
            )
            for row in rows
        ]
        logger.info(
            f"Read {len(columns)} columns from "
            f"{'schema ' + scope if scope else 'all non-system schemas'}"
        )
        return columns

    def foreign_keys(self, table: TableRef) -> List[ForeignKeyEdge]:
        """
        Get foreign keys touching a table, in both directions.

        Outgoing edges are columns of `table` that reference another table;
        incoming edges are columns of other tables that reference `table`.

        Raises:
            CatalogError: either lookup failed
        """
        params = {"schema": table.schema, "table_name": table.name}
        edges: List[ForeignKeyEdge] = []
        for side in ("tc", "ccu"):
            try:
                rows = self.database.fetch_all(_FK_SQL.format(side=side), params)
            except SQLAlchemyError as e:
                raise CatalogError(f"Could not read foreign keys for {table}: {e}") from e
            edges.extend(self._edge_from_row(row) for row in rows)

        logger.debug(f"{table}: {len(edges)} foreign key edges")
        return edges

    def columns_for(self, tables: List[TableRef], scope: Optional[str] = None) -> Dict[TableRef, List[ColumnMetadata]]:
        """Fetch the scope once and group the columns of the requested tables."""
        wanted = set(tables)
        grouped: Dict[TableRef, List[ColumnMetadata]] = {t: [] for t in tables}
        for col in self.fetch(scope):
            if col.table in wanted:
                grouped[col.table].append(col)
        return grouped

    @staticmethod
    def _edge_from_row(row) -> ForeignKeyEdge:
        return ForeignKeyEdge(
            from_table=TableRef(row["referencing_schema"], row["referencing_table"]),
            to_table=TableRef(row["referenced_schema"], row["referenced_table"]),
            from_column=row.get("referencing_column"),
            to_column=row.get("referenced_column"),
        )
