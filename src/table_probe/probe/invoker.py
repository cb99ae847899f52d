"""
HTTP invoker for the endpoint under test.

Never raises for HTTP-level problems: a non-2xx status or a transport error is
captured in the returned InvocationOutcome so the probe can still diff.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from table_probe.config import DEFAULT_BASE_URL, REQUEST_TIMEOUT
from table_probe.models import InvocationOutcome

logger = logging.getLogger(__name__)

BODY_METHODS = ("POST", "PUT", "PATCH")


class EndpointInvoker:
    """Issues single requests against the service being analyzed."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = REQUEST_TIMEOUT,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.Client] = None,
    ):
        """
        Initialize the invoker.

        Args:
            base_url: Prefix for relative endpoints
            timeout: Request timeout in seconds
            headers: Headers sent with every request
            client: Pre-built client (e.g. one with a mock transport)
        """
        self.base_url = base_url.rstrip("/")
        self.headers = dict(headers or {})
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=timeout)

    def url_for(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def invoke(
        self,
        method: str,
        endpoint: str,
        body: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> InvocationOutcome:
        """
        Call the endpoint exactly once.

        The body goes as JSON for POST/PUT/PATCH and as query parameters for
        every other method.
        """
        method = method.upper()
        url = self.url_for(endpoint)
        request_headers = {**self.headers, **(headers or {})}

        kwargs: Dict[str, Any] = {"headers": request_headers}
        if body:
            if method in BODY_METHODS:
                kwargs["json"] = body
            else:
                kwargs["params"] = {k: str(v) for k, v in body.items()}

        logger.info(f"{method} {url}")
        try:
            response = self.client.request(method, url, **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"{method} {url} failed: {e}")
            return InvocationOutcome(method=method, url=url, error=f"{type(e).__name__}: {e}")

        if response.is_success:
            logger.info(f"{method} {url} -> {response.status_code}")
        else:
            logger.warning(f"{method} {url} -> {response.status_code}")
        return InvocationOutcome(method=method, url=url, status_code=response.status_code)

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
