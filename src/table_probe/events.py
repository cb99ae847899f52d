"""
Structured event stream for analysis runs.

Stages report what they did as AnalysisEvent records delivered to an injected
observer, so the algorithm never prints or formats anything itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from table_probe.models import TableRef

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    """Pipeline stages, in execution order."""
    REQUEST = "request"
    CATALOG = "catalog"
    SCORING = "scoring"
    RELATIONSHIPS = "relationships"
    SNAPSHOT_BEFORE = "snapshot_before"
    INVOKE = "invoke"
    SETTLE = "settle"
    SNAPSHOT_AFTER = "snapshot_after"
    DIFF = "diff"
    RESULT = "result"
    FALLBACK = "fallback"
    SAMPLING = "sampling"


class Outcome(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"
    FAILED = "failed"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


@dataclass(frozen=True)
class AnalysisEvent:
    """One thing that happened during a run."""
    stage: Stage
    outcome: Outcome
    table: Optional[TableRef] = None
    detail: str = ""
    data: Dict[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        """Human-readable one-line form."""
        parts = [f"[{self.stage.value}]", self.outcome.value]
        if self.table is not None:
            parts.append(self.table.qualified_name)
        if self.detail:
            parts.append(f"- {self.detail}")
        return " ".join(parts)


class EventObserver:
    """Receives analysis events. The base class ignores them."""

    def notify(self, event: AnalysisEvent) -> None:
        pass

    def emit(
        self,
        stage: Stage,
        outcome: Outcome,
        table: Optional[TableRef] = None,
        detail: str = "",
        **data: Any,
    ) -> None:
        """Build an event and deliver it."""
        self.notify(AnalysisEvent(stage=stage, outcome=outcome, table=table, detail=detail, data=data))


class LoggingObserver(EventObserver):
    """Forwards events to the standard logging system."""

    LEVELS = {
        Outcome.FAILED: logging.WARNING,
        Outcome.SKIPPED: logging.INFO,
        Outcome.REJECTED: logging.DEBUG,
    }

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def notify(self, event: AnalysisEvent) -> None:
        self.log.log(self.LEVELS.get(event.outcome, logging.INFO), event.describe())


class RecordingObserver(EventObserver):
    """Keeps every event in memory, optionally forwarding to another observer."""

    def __init__(self, forward: Optional[EventObserver] = None):
        self.events: List[AnalysisEvent] = []
        self.forward = forward

    def notify(self, event: AnalysisEvent) -> None:
        self.events.append(event)
        if self.forward is not None:
            self.forward.notify(event)

    def for_stage(self, stage: Stage) -> List[AnalysisEvent]:
        return [e for e in self.events if e.stage == stage]
