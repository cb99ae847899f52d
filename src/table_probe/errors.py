"""
Exception hierarchy for table_probe.

Only RequestDescriptionError is allowed to abort an analysis run; every other
error is recovered by the stage that raised it.
"""


class TableProbeError(Exception):
    """Base class for all table_probe errors."""


class RequestDescriptionError(TableProbeError):
    """The request description (endpoint + payload shape) cannot be parsed."""


class CatalogError(TableProbeError):
    """A schema or foreign-key metadata query failed."""


class SnapshotError(TableProbeError):
    """A table could not be read for a before/after snapshot."""


class IdentifierError(TableProbeError, ValueError):
    """An identifier was refused by the quoting helper."""
