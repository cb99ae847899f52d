"""
Metadata and row-store access.

Provides the database wrapper used for every query and the catalog reader
that extracts column definitions and foreign keys from information_schema.
"""

from table_probe.metadata.catalog import SYSTEM_SCHEMAS, SchemaCatalogReader
from table_probe.metadata.database import Database

__all__ = [
    "Database",
    "SchemaCatalogReader",
    "SYSTEM_SCHEMAS",
]
