"""
Row synthesizer for the `generate` data strategy.

Builds fixture rows from catalog column metadata alone, so tables that hold
no usable data (or must not be copied) can still get fixtures. The name of a
text column selects a Faker provider when it looks like a well-known attribute;
otherwise the normalized data type decides.
"""

from __future__ import annotations

import logging
import random
import re
from datetime import datetime, timedelta
from typing import Any, Callable, List, Optional, Sequence

from faker import Faker

from table_probe.discovery.name_variants import to_snake_case
from table_probe.fixtures.sample_extractor import INTERNAL_COLUMNS, sanitize_row
from table_probe.models import ColumnMetadata, DataType, RowMap

logger = logging.getLogger(__name__)

# Column name pattern -> Faker provider name. A pattern must cover whole snake_case words.
_NAME_PATTERNS = [
    (r"e_?mail", "email"),
    (r"phone|mobile", "phone_number"),
    (r"first_?name", "first_name"),
    (r"last_?name|surname", "last_name"),
    (r"user_?name|login", "user_name"),
    (r"company|organi[sz]ation", "company"),
    (r"address|street", "street_address"),
    (r"city", "city"),
    (r"country", "country"),
    (r"zip|postal|postcode", "postcode"),
    (r"url|website", "url"),
    (r"full_?name|customer_?name|name", "name"),
    (r"description|comment|notes?", "sentence"),
]
NAME_PROVIDERS = [
    (re.compile(rf"(?:^|_)(?:{pattern})(?:_|$)"), provider) for pattern, provider in _NAME_PATTERNS
]

# Only text columns take a provider chosen by name
NAMED_KINDS = (DataType.STRING, DataType.UNKNOWN)


class RowSynthesizer:
    """Generates plausible rows for a table from its column metadata."""

    def __init__(self, seed: Optional[int] = None):
        self.faker = Faker()
        self.random = random.Random(seed)
        if seed is not None:
            self.faker.seed_instance(seed)

    def generate(self, columns: Sequence[ColumnMetadata], count: int) -> List[RowMap]:
        """
        Generate `count` sanitized rows.

        Args:
            columns: Columns of one table
            count: Number of rows

        Returns:
            Rows in the same shape SampleExtractor produces
        """
        columns = [c for c in columns if c.name not in INTERNAL_COLUMNS]
        generators = {c.name: self._column_generator(c) for c in columns}

        rows = []
        for i in range(count):
            row = {name: gen(i) for name, gen in generators.items()}
            rows.append(sanitize_row(row))
        return rows

    def _column_generator(self, col: ColumnMetadata) -> Callable[[int], Any]:
        name = to_snake_case(col.name).lower()
        kind = col.kind

        if name == "id":
            start = self.random.randint(100_000, 900_000)
            return lambda i: start + i

        if kind in NAMED_KINDS and not name.endswith("_id"):
            for pattern, provider in NAME_PROVIDERS:
                if pattern.search(name):
                    return self._faker_generator(provider)

        if kind in (DataType.INTEGER, DataType.BIGINT):
            return lambda i: self.random.randint(1, 1_000_000)
        if kind in (DataType.DECIMAL, DataType.FLOAT):
            return lambda i: round(self.random.uniform(0.0, 10_000.0), 2)
        if kind == DataType.BOOLEAN:
            return lambda i: self.random.choice([True, False])
        if kind == DataType.DATE:
            return lambda i: self._recent_datetime().date()
        if kind == DataType.TIMESTAMP:
            return lambda i: self._recent_datetime()
        if kind == DataType.TIME:
            return lambda i: self._recent_datetime().time().replace(microsecond=0)
        if kind == DataType.UUID:
            return lambda i: self.faker.uuid4()
        if kind == DataType.JSON:
            return lambda i: {}
        if kind == DataType.BINARY:
            return lambda i: None

        return lambda i: self.faker.pystr(min_chars=8, max_chars=16)

    def _faker_generator(self, provider: str) -> Callable[[int], Any]:
        try:
            method = getattr(self.faker, provider)
        except AttributeError:
            logger.warning(f"Unknown Faker provider: {provider}")
            return lambda i: self.faker.word()
        return lambda i: method()

    def _recent_datetime(self) -> datetime:
        seconds = self.random.randint(0, 365 * 24 * 3600)
        return (datetime.now() - timedelta(seconds=seconds)).replace(microsecond=0)
