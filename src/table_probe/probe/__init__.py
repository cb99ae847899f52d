"""
Probe module: empirical confirmation of the tables an endpoint writes.

- Unique payload synthesis
- Before/after table snapshots
- A single live call to the endpoint
- Snapshot diffing against the probe markers
"""

from table_probe.probe.empirical_probe import (
    EmpiricalProbe,
    ProbeReport,
    ProbeState,
    diff_snapshots,
    row_identity,
)
from table_probe.probe.invoker import EndpointInvoker
from table_probe.probe.payload import synthesize_payload, unique_token
from table_probe.probe.snapshots import SnapshotReader

__all__ = [
    "EmpiricalProbe",
    "EndpointInvoker",
    "ProbeReport",
    "ProbeState",
    "SnapshotReader",
    "diff_snapshots",
    "row_identity",
    "synthesize_payload",
    "unique_token",
]
