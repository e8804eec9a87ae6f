"""EndpointTester: Single HTTP probe of a user-supplied endpoint.

The probed document is what the extraction chain runs against. JSON bodies are
parsed; any other body is kept as its stripped text so that a plain-text
endpoint (e.g. a random number service) can be addressed with the root path
``$``.

.. code-block:: python

    tester = EndpointTester()
    result = await tester.probe("https://api.coingecko.com/api/v3/simple/price?ids=bitcoin&vs_currencies=usd")
    result.data
    # {'bitcoin': {'usd': 42000}}
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from .FeedConfig import APIHeader, CustomFeedConfig, active_headers
from .fetchers import BaseFetcher

logger = logging.getLogger(__name__)


@dataclass
class ProbeResult:
    """Outcome of probing an endpoint.

    :ivar success: True for a 2xx response.
    :ivar status_code: HTTP status, or None if no response was received.
    :ivar data: Parsed body, or None if no response was received.
    :ivar error: Error message for failed probes.
    :ivar response_time_ms: Wall time of the request in milliseconds.
    """

    success: bool
    status_code: int | None = None
    data: Any = None
    error: str | None = None
    response_time_ms: float = 0.0


def parse_body(text: str) -> Any:
    """Parse a response body as JSON, falling back to its stripped text.

    :param text: Raw response body.
    :returns: Parsed JSON value, or the stripped text.
    """
    try:
        return json.loads(text)
    except ValueError:
        return text.strip()


class EndpointTester:
    """Probes custom API endpoints over the shared HTTP client.

    :ivar timeout: Request timeout in seconds.
    """

    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self, client: httpx.AsyncClient | None = None, timeout: float | None = None
    ) -> None:
        """Initialize the tester.

        :param client: HTTP client to use; defaults to the fetchers' shared client.
        :param timeout: Request timeout in seconds (default: 10).
        """
        self._client = client
        self.timeout = timeout or self.DEFAULT_TIMEOUT

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client or BaseFetcher.get_shared_client()

    async def probe(
        self,
        url: str,
        method: str = "GET",
        headers: list[APIHeader] | tuple[APIHeader, ...] = (),
        body: str | None = None,
    ) -> ProbeResult:
        """Send one request and parse the response body.

        :param url: Endpoint URL (http or https).
        :param method: "GET" or "POST".
        :param headers: Header rows; only enabled rows with a key are sent.
        :param body: Request body, sent for POST only.
        :returns: ProbeResult. Non-2xx responses keep their parsed body.
        """
        method = method.upper()
        request_headers = {"Content-Type": "application/json"}
        request_headers.update(active_headers(headers))
        content = body if method == "POST" and body else None

        start = time.perf_counter()
        try:
            response = await self.client.request(
                method,
                url,
                headers=request_headers,
                content=content,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning(f"Probe of {url} timed out: {e}")
            return ProbeResult(
                success=False,
                error=f"Request timeout: {e}",
                response_time_ms=_elapsed_ms(start),
            )
        except httpx.HTTPError as e:
            logger.warning(f"Probe of {url} failed: {e}")
            return ProbeResult(
                success=False,
                error=f"Request failed: {e}",
                response_time_ms=_elapsed_ms(start),
            )

        elapsed = _elapsed_ms(start)
        data = parse_body(response.text)

        if not response.is_success:
            logger.debug(f"Probe of {url} returned HTTP {response.status_code}")
            return ProbeResult(
                success=False,
                status_code=response.status_code,
                data=data,
                error=f"HTTP {response.status_code}: {response.reason_phrase}",
                response_time_ms=elapsed,
            )

        return ProbeResult(
            success=True,
            status_code=response.status_code,
            data=data,
            response_time_ms=elapsed,
        )

    async def probe_config(self, config: CustomFeedConfig) -> ProbeResult:
        """Probe the endpoint described by a custom feed config.

        :param config: Custom feed configuration.
        :returns: ProbeResult.
        """
        return await self.probe(config.url, config.method, config.headers, config.body)


def is_valid_url(url: str) -> bool:
    """Check that a URL is absolute http(s).

    :param url: URL to check.
    :returns: True for http:// and https:// URLs with a host.
    """
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError):
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.host)


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
