"""
Core data models for the table_probe package.

Defines the structures that flow through one analysis run: table references,
catalog metadata, scored candidates, foreign-key edges, snapshots, probe
payloads and the final analysis result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

DEFAULT_SCHEMA = "public"

RowMap = Dict[str, Any]


class DataType(str, Enum):
    """Normalized data types for catalog columns."""
    STRING = "string"
    INTEGER = "integer"
    BIGINT = "bigint"
    DECIMAL = "decimal"
    FLOAT = "float"
    DATE = "date"
    TIME = "time"
    TIMESTAMP = "timestamp"
    BOOLEAN = "boolean"
    UUID = "uuid"
    JSON = "json"
    BINARY = "binary"
    UNKNOWN = "unknown"


# information_schema.columns.data_type -> DataType
PG_TYPE_MAP = {
    "character varying": DataType.STRING,
    "varchar": DataType.STRING,
    "character": DataType.STRING,
    "char": DataType.STRING,
    "text": DataType.STRING,
    "citext": DataType.STRING,
    "smallint": DataType.INTEGER,
    "integer": DataType.INTEGER,
    "int": DataType.INTEGER,
    "bigint": DataType.BIGINT,
    "numeric": DataType.DECIMAL,
    "decimal": DataType.DECIMAL,
    "real": DataType.FLOAT,
    "double precision": DataType.FLOAT,
    "date": DataType.DATE,
    "time without time zone": DataType.TIME,
    "time with time zone": DataType.TIME,
    "timestamp without time zone": DataType.TIMESTAMP,
    "timestamp with time zone": DataType.TIMESTAMP,
    "timestamp": DataType.TIMESTAMP,
    "boolean": DataType.BOOLEAN,
    "uuid": DataType.UUID,
    "json": DataType.JSON,
    "jsonb": DataType.JSON,
    "bytea": DataType.BINARY,
}


@dataclass(frozen=True, order=True)
class TableRef:
    """Schema-qualified reference to a table. Equality is structural."""
    schema: str
    name: str

    @property
    def qualified_name(self) -> str:
        """Return the canonical `schema.name` identifier."""
        return f"{self.schema}.{self.name}"

    @classmethod
    def parse(cls, value: str, default_schema: str = DEFAULT_SCHEMA) -> TableRef:
        """Parse `schema.name` (or a bare `name`) into a TableRef."""
        value = value.strip()
        if not value:
            raise ValueError("Empty table reference")
        if "." in value:
            schema, name = value.split(".", 1)
            return cls(schema=schema, name=name)
        return cls(schema=default_schema, name=value)

    def __str__(self) -> str:
        return self.qualified_name


@dataclass(frozen=True)
class ColumnMetadata:
    """Metadata for a single column as read from the live catalog."""
    table: TableRef
    name: str
    data_type: str
    nullable: bool = True

    @property
    def kind(self) -> DataType:
        """Normalized type of the column."""
        return PG_TYPE_MAP.get(self.data_type.lower(), DataType.UNKNOWN)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table.qualified_name,
            "name": self.name,
            "data_type": self.data_type,
            "nullable": self.nullable,
        }


@dataclass(frozen=True)
class TableCandidate:
    """A table whose columns plausibly correspond to the request payload."""
    table: TableRef
    columns: Tuple[ColumnMetadata, ...]
    confidence: float
    matched_fields: Tuple[str, ...] = ()

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table.qualified_name,
            "confidence": round(self.confidence, 4),
            "matched_fields": list(self.matched_fields),
        }


@dataclass(frozen=True)
class ForeignKeyEdge:
    """
    A foreign key between two tables.

    Direction is kept for reporting only; traversal treats the edge as
    undirected (see `other`).
    """
    from_table: TableRef
    to_table: TableRef
    from_column: Optional[str] = None
    to_column: Optional[str] = None

    def other(self, table: TableRef) -> TableRef:
        """Return the end of the edge that is not `table`."""
        return self.to_table if table == self.from_table else self.from_table

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from_table": self.from_table.qualified_name,
            "from_column": self.from_column,
            "to_table": self.to_table.qualified_name,
            "to_column": self.to_column,
        }


@dataclass
class Snapshot:
    """Bounded, ordered read of a table's most recent rows at one instant."""
    table: TableRef
    rows: List[RowMap]
    order_by: Optional[str] = None
    limit: int = 10

    def comparable_with(self, other: Snapshot) -> bool:
        """Snapshots are diffable only when taken with the same ordering and limit."""
        return (
            self.table == other.table
            and self.order_by == other.order_by
            and self.limit == other.limit
        )


@dataclass(frozen=True)
class ProbePayload:
    """
    Synthesized request body whose marker values are process-unique.

    `markers` holds the string forms of the unique values; values that cannot
    be unique (booleans, the current instant) are sent but never matched.
    """
    values: Dict[str, Any]
    markers: Tuple[str, ...]
    token: int


@dataclass(frozen=True)
class ConfirmationResult:
    """Outcome of diffing one table's before/after snapshots."""
    table: TableRef
    confirmed: bool
    new_rows: int = 0
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table.qualified_name,
            "confirmed": self.confirmed,
            "new_rows": self.new_rows,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class InvocationOutcome:
    """What happened when the endpoint under test was called."""
    method: str
    url: str
    status_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def reached(self) -> bool:
        """True if the endpoint produced any HTTP response."""
        return self.status_code is not None

    @property
    def ok(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "url": self.url,
            "status_code": self.status_code,
            "error": self.error,
        }


@dataclass
class RequestDescription:
    """The primary input: an endpoint and the shape of its request payload."""
    endpoint: str
    method: str = "POST"
    fields: List[str] = field(default_factory=list)
    headers: Dict[str, str] = field(default_factory=dict)
    known_tables: List[TableRef] = field(default_factory=list)
    name: Optional[str] = None

    def __post_init__(self):
        self.method = self.method.upper()
        if self.name is None:
            self.name = _slug(f"{self.method} {self.endpoint}")


@dataclass
class AnalysisResult:
    """Result of one `analyze()` run."""
    endpoint: str
    method: str
    suspected_tables: List[TableCandidate] = field(default_factory=list)
    related_tables: List[TableRef] = field(default_factory=list)
    confirmed_tables: List[TableRef] = field(default_factory=list)
    fallback_used: bool = False
    skipped_inference: bool = False
    invocation: Optional[InvocationOutcome] = None
    confirmations: List[ConfirmationResult] = field(default_factory=list)
    samples: Dict[TableRef, List[RowMap]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "endpoint": self.endpoint,
            "method": self.method,
            "suspected_tables": [c.to_dict() for c in self.suspected_tables],
            "related_tables": [t.qualified_name for t in self.related_tables],
            "confirmed_tables": [t.qualified_name for t in self.confirmed_tables],
            "fallback_used": self.fallback_used,
            "skipped_inference": self.skipped_inference,
            "invocation": self.invocation.to_dict() if self.invocation else None,
            "confirmations": [c.to_dict() for c in self.confirmations],
            "samples": {t.qualified_name: rows for t, rows in self.samples.items()},
        }


def _slug(text: str) -> str:
    out = []
    for ch in text.lower():
        out.append(ch if ch.isalnum() else "_")
    return "_".join(part for part in "".join(out).split("_") if part) or "request"
