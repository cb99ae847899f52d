"""
Table Probe - infers which database tables an HTTP endpoint reads or writes

Given an endpoint and the field names of its request payload, the analyzer
ranks schema tables by name similarity, follows foreign keys, and confirms
the guess with a single uniquely tagged request diffed against table
snapshots. The resulting mapping drives fixture data for automated tests.

Features:
- Naming-convention aware matching of payload fields to columns
- Foreign-key expansion of the candidate set
- Empirical confirmation via before/after snapshots
- Fixture extraction from live rows or Faker-generated data
"""

__version__ = "0.1.0"

from table_probe.models import (
    AnalysisResult,
    ColumnMetadata,
    ConfirmationResult,
    ForeignKeyEdge,
    RequestDescription,
    Snapshot,
    TableCandidate,
    TableRef,
)
from table_probe.config import AnalyzerConfig
from table_probe.errors import (
    CatalogError,
    RequestDescriptionError,
    SnapshotError,
    TableProbeError,
)
from table_probe.events import AnalysisEvent, EventObserver, LoggingObserver, RecordingObserver
from table_probe.metadata import Database, SchemaCatalogReader
from table_probe.analyzer import TableAnalyzer, analyze_file
from table_probe.request import load_request

__all__ = [
    # Core models
    "AnalysisResult",
    "ColumnMetadata",
    "ConfirmationResult",
    "ForeignKeyEdge",
    "RequestDescription",
    "Snapshot",
    "TableCandidate",
    "TableRef",
    # Configuration and errors
    "AnalyzerConfig",
    "CatalogError",
    "RequestDescriptionError",
    "SnapshotError",
    "TableProbeError",
    # Events
    "AnalysisEvent",
    "EventObserver",
    "LoggingObserver",
    "RecordingObserver",
    # Pipeline
    "Database",
    "SchemaCatalogReader",
    "TableAnalyzer",
    "analyze_file",
    "load_request",
]
