"""
Configuration for an analysis run.

Every tunable of the inference heuristics lives here as a named field so it
can be adjusted from a YAML file or the CLI without touching algorithm code.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIDENCE_THRESHOLD = 0.3
TOP_K_CANDIDATES = 10
SNAPSHOT_LIMIT = 10
SETTLE_SECONDS = 1.0
SAMPLE_COUNT = 5
RECENCY_WINDOW_DAYS = 30
MAX_WORKERS = 4
REQUEST_TIMEOUT = 30.0
DEFAULT_BASE_URL = "http://localhost:3000"

DATA_STRATEGIES = ("existing", "generate", "both")


@dataclass
class AnalyzerConfig:
    """Configuration for a table analysis run."""
    # None scans every non-system schema
    schema: Optional[str] = None

    # Stage 1: candidate scoring
    confidence_threshold: float = CONFIDENCE_THRESHOLD
    top_k: int = TOP_K_CANDIDATES

    # Stage 3: empirical probe
    base_url: Optional[str] = None
    request_timeout: float = REQUEST_TIMEOUT
    headers: Dict[str, str] = field(default_factory=dict)
    snapshot_limit: int = SNAPSHOT_LIMIT
    settle_seconds: float = SETTLE_SECONDS

    # Fixtures
    sample_count: int = SAMPLE_COUNT
    recency_window_days: int = RECENCY_WINDOW_DAYS
    data_strategy: str = "existing"
    seed: Optional[int] = None
    output_dir: Optional[Path] = None

    # Re-run inference even when the request already lists its tables
    force: bool = False
    max_workers: int = MAX_WORKERS

    def __post_init__(self):
        if self.base_url is None:
            self.base_url = os.environ.get("STAND_URL", DEFAULT_BASE_URL)
        self.base_url = self.base_url.rstrip("/")
        if isinstance(self.output_dir, str):
            self.output_dir = Path(self.output_dir)
        if self.data_strategy not in DATA_STRATEGIES:
            raise ValueError(
                f"Unknown data strategy {self.data_strategy!r}; "
                f"expected one of {', '.join(DATA_STRATEGIES)}"
            )
        if not 0.0 <= self.confidence_threshold < 1.0:
            raise ValueError("confidence_threshold must be in [0, 1)")
        if self.top_k < 1 or self.snapshot_limit < 1 or self.max_workers < 1:
            raise ValueError("top_k, snapshot_limit and max_workers must be positive")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AnalyzerConfig:
        """Create from a dictionary, ignoring keys this version does not know."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_yaml(cls, path: Path) -> AnalyzerConfig:
        """Load configuration from a YAML file."""
        path = Path(path)
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        logger.info(f"Loaded analyzer config from {path}")
        return cls.from_dict(data)

    def merged(self, **overrides: Any) -> AnalyzerConfig:
        """Return a copy with the non-None overrides applied."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data.update({k: v for k, v in overrides.items() if v is not None})
        return AnalyzerConfig(**data)
