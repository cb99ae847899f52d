"""
Fixture Writer - persists analysis results as test fixture artifacts.

Output Structure:
    output/<request name>/
    ├── fixtures.json       # Confirmed tables and their sample rows
    ├── csv/                # One CSV per sampled table
    │   ├── public.orders.csv
    │   └── ...
    └── manifest.json       # Run manifest
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List

import pandas as pd

from table_probe.models import AnalysisResult, RequestDescription, RowMap, TableRef

logger = logging.getLogger(__name__)


class FixtureWriter:
    """Writes sample rows and the inferred table mapping for one request."""

    def __init__(self, output_dir: Path):
        self.output_dir = Path(output_dir)

    def directory_for(self, request: RequestDescription) -> Path:
        return self.output_dir / request.name

    def write(self, request: RequestDescription, result: AnalysisResult) -> Dict[str, Path]:
        """
        Write fixture artifacts for an analysis result.

        Args:
            request: The analyzed request
            result: Its analysis result

        Returns:
            Dict of artifact name -> path
        """
        target = self.directory_for(request)
        target.mkdir(parents=True, exist_ok=True)

        paths: Dict[str, Path] = {}
        paths["fixtures"] = self._write_fixtures(target, result)
        for table, path in self._write_csv(target, result.samples).items():
            paths[f"csv:{table.qualified_name}"] = path
        paths["manifest"] = self._write_manifest(target, request, result)
        return paths

    def _write_fixtures(self, target: Path, result: AnalysisResult) -> Path:
        fixtures = {
            "endpoint": result.endpoint,
            "method": result.method,
            "tables": [t.qualified_name for t in result.confirmed_tables],
            "fallback_used": result.fallback_used,
            "data": {t.qualified_name: rows for t, rows in result.samples.items()},
        }
        path = target / "fixtures.json"
        with open(path, "w") as f:
            json.dump(fixtures, f, indent=2, default=str)
        logger.info(f"Wrote fixtures to {path}")
        return path

    def _write_csv(self, target: Path, samples: Dict[TableRef, List[RowMap]]) -> Dict[TableRef, Path]:
        csv_dir = target / "csv"
        paths = {}
        for table, rows in samples.items():
            if not rows:
                continue
            csv_dir.mkdir(parents=True, exist_ok=True)
            path = csv_dir / f"{table.qualified_name}.csv"
            df = pd.DataFrame(rows)
            df.to_csv(path, index=False, na_rep="")
            paths[table] = path
            logger.info(f"Wrote {len(df)} rows to {path}")
        return paths

    def _write_manifest(self, target: Path, request: RequestDescription, result: AnalysisResult) -> Path:
        manifest = {
            "generated_at": datetime.now().isoformat(),
            "request": request.name,
            "endpoint": request.endpoint,
            "method": request.method,
            "fields": list(request.fields),
            "skipped_inference": result.skipped_inference,
            "fallback_used": result.fallback_used,
            "invocation": result.invocation.to_dict() if result.invocation else None,
            "tables": {},
        }
        for table, rows in result.samples.items():
            columns = list(dict.fromkeys(k for row in rows for k in row))
            manifest["tables"][table.qualified_name] = {
                "rows": len(rows),
                "columns": len(columns),
                "column_list": columns,
                "confirmed": table in result.confirmed_tables,
            }

        path = target / "manifest.json"
        with open(path, "w") as f:
            json.dump(manifest, f, indent=2, default=str)
        logger.info(f"Wrote manifest to {path}")
        return path
