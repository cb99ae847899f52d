"""
Fixtures module: sample data for the tables an endpoint touches.

- Sanitized samples of existing rows
- Faker-synthesized rows from column metadata
- JSON/CSV fixture output
"""

from table_probe.fixtures.sample_extractor import SampleExtractor, sanitize_row
from table_probe.fixtures.synthesizer import RowSynthesizer
from table_probe.fixtures.writer import FixtureWriter

__all__ = [
    "FixtureWriter",
    "RowSynthesizer",
    "SampleExtractor",
    "sanitize_row",
]
