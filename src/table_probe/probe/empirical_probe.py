"""
Empirical Probe - confirms which tables an endpoint writes by calling it.

The probe snapshots every table under suspicion, issues exactly one request
with uniquely tagged values, waits a fixed settle delay, snapshots again and
looks for new rows carrying one of the tags.

Every failure below the whole-run level degrades instead of raising: an
unreadable table is dropped, a failed call is recorded and the diff still runs.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple

from table_probe.config import MAX_WORKERS, SETTLE_SECONDS
from table_probe.errors import SnapshotError
from table_probe.events import EventObserver, Outcome, Stage
from table_probe.models import (
    ConfirmationResult,
    InvocationOutcome,
    ProbePayload,
    RequestDescription,
    RowMap,
    Snapshot,
    TableRef,
)
from table_probe.probe.invoker import EndpointInvoker
from table_probe.probe.payload import synthesize_payload
from table_probe.probe.snapshots import SnapshotReader

logger = logging.getLogger(__name__)


class ProbeState(str, Enum):
    """States of one probe run, in order."""
    SNAPSHOT_BEFORE = "snapshot_before"
    INVOKE = "invoke"
    SETTLE = "settle"
    SNAPSHOT_AFTER = "snapshot_after"
    DIFF = "diff"
    RESULT = "result"


@dataclass
class ProbeReport:
    """Everything a probe run observed."""
    confirmed: List[TableRef] = field(default_factory=list)
    results: List[ConfirmationResult] = field(default_factory=list)
    invocation: Optional[InvocationOutcome] = None
    payload: Optional[ProbePayload] = None
    states: List[ProbeState] = field(default_factory=list)
    unreadable: Dict[TableRef, str] = field(default_factory=dict)


def row_identity(row: RowMap) -> Hashable:
    """Identity key of a row: its `id` when present, otherwise the whole row."""
    if row.get("id") is not None:
        return ("id", str(row["id"]))
    return tuple(sorted((k, repr(v)) for k, v in row.items()))


def _contains_marker(row: RowMap, markers: Sequence[str]) -> Optional[str]:
    for value in row.values():
        if value is None:
            continue
        text = str(value)
        for marker in markers:
            if marker in text:
                return marker
    return None


def diff_snapshots(before: Snapshot, after: Snapshot, markers: Sequence[str]) -> ConfirmationResult:
    """
    Decide whether the probe wrote to a table.

    Only rows of `after` whose identity is absent from `before` are examined.
    A marker found as a substring of any of their values confirms the table;
    substring containment tolerates values that the service trims, prefixes
    or wraps before storing them. An unrelated free-text column that happens
    to contain a marker is a possible false positive.

    Args:
        before: Snapshot taken before the call
        after: Snapshot taken after the call, with the same ordering
        markers: String forms of the unique probe values

    Returns:
        ConfirmationResult for the table
    """
    table = before.table
    if not before.comparable_with(after):
        return ConfirmationResult(table=table, confirmed=False, reason="snapshots are not comparable")

    seen = {row_identity(row) for row in before.rows}
    new_rows = [row for row in after.rows if row_identity(row) not in seen]
    if not new_rows:
        return ConfirmationResult(table=table, confirmed=False, reason="no new rows")

    for row in new_rows:
        marker = _contains_marker(row, markers)
        if marker is not None:
            return ConfirmationResult(
                table=table,
                confirmed=True,
                new_rows=len(new_rows),
                reason=f"new row contains {marker}",
            )

    return ConfirmationResult(
        table=table,
        confirmed=False,
        new_rows=len(new_rows),
        reason=f"{len(new_rows)} new rows without probe values",
    )


class EmpiricalProbe:
    """Runs the snapshot/invoke/settle/snapshot/diff cycle for one request."""

    def __init__(
        self,
        snapshot_reader: SnapshotReader,
        invoker: EndpointInvoker,
        settle_seconds: float = SETTLE_SECONDS,
        sleep: Callable[[float], Any] = time.sleep,
        observer: Optional[EventObserver] = None,
        max_workers: int = MAX_WORKERS,
    ):
        self.snapshot_reader = snapshot_reader
        self.invoker = invoker
        self.settle_seconds = settle_seconds
        self.sleep = sleep
        self.observer = observer or EventObserver()
        self.max_workers = max_workers

    def run(
        self,
        request: RequestDescription,
        tables: Iterable[TableRef],
        known_columns: Optional[Mapping[TableRef, Sequence[str]]] = None,
    ) -> ProbeReport:
        """
        Probe the endpoint and report the tables it wrote to.

        Args:
            request: Endpoint, method, headers and payload fields
            tables: Tables under suspicion (candidates and related)
            known_columns: Catalog column names per table, used to pick the
                snapshot ordering column

        Returns:
            ProbeReport; `confirmed` keeps the order of `tables`
        """
        report = ProbeReport()
        tables = list(dict.fromkeys(tables))
        known_columns = known_columns or {}

        report.states.append(ProbeState.SNAPSHOT_BEFORE)
        before = self._capture_all(
            [(t, lambda t=t: self.snapshot_reader.capture(t, known_columns.get(t))) for t in tables],
            Stage.SNAPSHOT_BEFORE,
            report,
        )
        if not before:
            self.observer.emit(Stage.INVOKE, Outcome.SKIPPED, detail="no readable tables to observe")
            logger.warning("Probe skipped: none of the suspected tables could be read")
            report.states.append(ProbeState.RESULT)
            return report

        report.states.append(ProbeState.INVOKE)
        report.payload = synthesize_payload(request.fields)
        report.invocation = self.invoker.invoke(
            request.method, request.endpoint, report.payload.values, headers=request.headers,
        )
        self._report_invocation(report.invocation)

        report.states.append(ProbeState.SETTLE)
        if self.settle_seconds > 0:
            self.sleep(self.settle_seconds)
        self.observer.emit(Stage.SETTLE, Outcome.OK, detail=f"waited {self.settle_seconds:g}s")

        report.states.append(ProbeState.SNAPSHOT_AFTER)
        after = self._capture_all(
            [(t, lambda s=s: self.snapshot_reader.recapture(s)) for t, s in before.items()],
            Stage.SNAPSHOT_AFTER,
            report,
        )

        report.states.append(ProbeState.DIFF)
        for table in tables:
            if table not in before or table not in after:
                continue
            result = diff_snapshots(before[table], after[table], report.payload.markers)
            report.results.append(result)
            self.observer.emit(
                Stage.DIFF,
                Outcome.CONFIRMED if result.confirmed else Outcome.REJECTED,
                table=table,
                detail=result.reason,
                new_rows=result.new_rows,
            )
            if result.confirmed:
                report.confirmed.append(table)

        report.states.append(ProbeState.RESULT)
        self.observer.emit(
            Stage.RESULT,
            Outcome.OK if report.confirmed else Outcome.SKIPPED,
            detail=f"{len(report.confirmed)} confirmed of {len(report.results)} compared",
            confirmed=[t.qualified_name for t in report.confirmed],
        )
        logger.info(f"Probe confirmed {len(report.confirmed)} of {len(tables)} tables")
        return report

    def _capture_all(
        self,
        tasks: List[Tuple[TableRef, Callable[[], Snapshot]]],
        stage: Stage,
        report: ProbeReport,
    ) -> Dict[TableRef, Snapshot]:
        """Run snapshot reads with bounded fan-out; failures drop the table."""
        if not tasks:
            return {}

        def attempt(task):
            table, read = task
            try:
                return table, read(), None
            except SnapshotError as e:
                return table, None, str(e)

        workers = max(1, min(self.max_workers, len(tasks)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            outcomes = list(pool.map(attempt, tasks))

        snapshots: Dict[TableRef, Snapshot] = {}
        for table, snapshot, error in outcomes:
            if snapshot is None:
                report.unreadable[table] = error
                logger.warning(f"Snapshot of {table} failed: {error}")
                self.observer.emit(stage, Outcome.FAILED, table=table, detail=error)
                continue
            snapshots[table] = snapshot
            self.observer.emit(
                stage,
                Outcome.OK,
                table=table,
                detail=f"{len(snapshot.rows)} rows",
                rows=len(snapshot.rows),
                order_by=snapshot.order_by,
            )
        return snapshots

    def _report_invocation(self, outcome: InvocationOutcome) -> None:
        if outcome.ok:
            self.observer.emit(Stage.INVOKE, Outcome.OK, detail=f"HTTP {outcome.status_code}",
                               status_code=outcome.status_code)
        elif outcome.reached:
            self.observer.emit(Stage.INVOKE, Outcome.FAILED,
                               detail=f"HTTP {outcome.status_code}, diffing anyway",
                               status_code=outcome.status_code)
        else:
            self.observer.emit(Stage.INVOKE, Outcome.FAILED,
                               detail=f"{outcome.error}, diffing anyway", error=outcome.error)
