"""
Request description loading.

A request description names the endpoint under test and the shape of its
payload. It is the only input whose failure aborts an analysis run.

Example (YAML or JSON):

    endpoint: /api/orders
    method: POST
    headers:
      Authorization: Bearer ...
    fields: [orderId, customerName, totalAmount]
    tables: [public.orders]        # optional, skips inference unless forced

Instead of `fields` the payload shape may be given as a JSON-Schema object
(`schema.properties`) or as an `example` body.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List

import yaml

from table_probe.errors import RequestDescriptionError
from table_probe.models import DEFAULT_SCHEMA, RequestDescription, TableRef

logger = logging.getLogger(__name__)


def _payload_fields(data: Dict[str, Any]) -> List[str]:
    if "fields" in data:
        fields = data["fields"]
        if not isinstance(fields, list) or not all(isinstance(f, str) for f in fields):
            raise RequestDescriptionError("'fields' must be a list of field names")
        return fields

    schema = data.get("schema")
    if schema is not None:
        if not isinstance(schema, dict) or not isinstance(schema.get("properties", {}), dict):
            raise RequestDescriptionError("'schema' must be an object with 'properties'")
        return list(schema.get("properties", {}))

    example = data.get("example")
    if example is not None:
        if not isinstance(example, dict):
            raise RequestDescriptionError("'example' must be an object")
        return list(example)

    return []


def parse_request(data: Any, default_schema: str = DEFAULT_SCHEMA) -> RequestDescription:
    """
    Build a RequestDescription from already-parsed data.

    Raises:
        RequestDescriptionError: If required keys are missing or malformed
    """
    if not isinstance(data, dict):
        raise RequestDescriptionError("Request description must be a mapping")

    endpoint = data.get("endpoint")
    if not isinstance(endpoint, str) or not endpoint.strip():
        raise RequestDescriptionError("Request description needs a non-empty 'endpoint'")

    method = data.get("method", "POST")
    if not isinstance(method, str):
        raise RequestDescriptionError("'method' must be a string")

    headers = data.get("headers") or {}
    if not isinstance(headers, dict):
        raise RequestDescriptionError("'headers' must be a mapping")

    tables = data.get("tables") or []
    if not isinstance(tables, list):
        raise RequestDescriptionError("'tables' must be a list")
    try:
        known_tables = [TableRef.parse(str(t), default_schema) for t in tables]
    except ValueError as e:
        raise RequestDescriptionError(f"Invalid table reference: {e}") from e

    return RequestDescription(
        endpoint=endpoint.strip(),
        method=method,
        fields=_payload_fields(data),
        headers={str(k): str(v) for k, v in headers.items()},
        known_tables=known_tables,
        name=data.get("name"),
    )


def load_request(path: Path, default_schema: str = DEFAULT_SCHEMA) -> RequestDescription:
    """
    Load a request description from a YAML or JSON file.

    Args:
        path: File to read
        default_schema: Schema for table references without one

    Returns:
        Parsed RequestDescription

    Raises:
        RequestDescriptionError: If the file cannot be read or parsed
    """
    path = Path(path)
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise RequestDescriptionError(f"Cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise RequestDescriptionError(f"Cannot parse {path}: {e}") from e

    request = parse_request(data, default_schema)
    logger.info(f"Loaded request {request.method} {request.endpoint} with {len(request.fields)} fields")
    return request
