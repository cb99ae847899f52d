"""
Probe payload synthesis.

Every value that can carry identity is derived from one process-unique token
(microsecond timestamp mixed with an attempt counter), so finding it in a new
row after the probe cannot be explained by data that existed before.
"""

from __future__ import annotations

import itertools
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from table_probe.discovery.name_variants import to_snake_case
from table_probe.models import ProbePayload

# Keeps generated ids inside a signed 32-bit integer column.
ID_BASE = 1_000_000_000
ID_SPAN = 1_000_000_000

_attempts = itertools.count()
_lock = threading.Lock()

BOOLEAN_PREFIXES = ("is", "has", "can", "should")
DATE_WORDS = {"date", "time", "datetime", "timestamp", "at", "dob", "birthday"}


def unique_token() -> int:
    """Return a process-unique integer token."""
    with _lock:
        attempt = next(_attempts) % 100
    return (time.time_ns() // 1000) * 100 + attempt


def _words(field: str) -> List[str]:
    return [w for w in to_snake_case(field).lower().split("_") if w]


def _value_for(field: str, token: int, now: datetime) -> Tuple[Any, bool]:
    """Return (value, is_marker) for one field."""
    lower = field.lower()
    words = _words(field)

    if "email" in lower:
        return f"probe_{token}@analyzer.test", True
    if "phone" in lower:
        return f"+1{token % 10_000_000_000:010d}", True
    if (len(words) > 1 and words[-1] == "id") or (field.endswith("ID") and lower != "id"):
        return ID_BASE + token % ID_SPAN, True
    if "amount" in lower or "price" in lower:
        # Numeric columns may rescale the value, so it never serves as a marker
        return float(f"{token % 10_000_000}.99"), False
    if DATE_WORDS.intersection(words):
        return now.isoformat(), False
    if words and words[0] in BOOLEAN_PREFIXES and len(words) > 1:
        return True, False
    if "name" in lower:
        return f"TEST_{token}_NAME", True
    if "status" in lower:
        return f"TEST_STATUS_{token}", True
    return f"TEST_{token}_{field.upper()}", True


def synthesize_payload(
    fields: Sequence[str],
    token: Optional[int] = None,
    now: Optional[datetime] = None,
) -> ProbePayload:
    """
    Build a probe payload for the given fields.

    Args:
        fields: Payload field names
        token: Unique token to derive values from (generated when omitted)
        now: Instant used for date-like fields (current UTC time when omitted)

    Returns:
        ProbePayload with values keyed by field and the unique markers
    """
    token = unique_token() if token is None else token
    now = now or datetime.now(timezone.utc)

    values: Dict[str, Any] = {}
    markers: List[str] = []
    for field in fields:
        value, is_marker = _value_for(field, token, now)
        values[field] = value
        if is_marker:
            markers.append(str(value))

    return ProbePayload(values=values, markers=tuple(dict.fromkeys(markers)), token=token)
