"""
Endpoint fallback with bounded retry and exponential back-off.

Strategy:
  1. Try each endpoint in order.
  2. On timeout / network error, move to the next endpoint.
  3. If every endpoint failed in one round, wait (exponential back-off) and retry.
  4. Give up after ``max_retries`` rounds.

Any other failure (HTTP error status, unreadable body) aborts immediately.
Worst-case latency is bounded by
``max_retries * (len(endpoints) * timeout) + sum of back-off delays``.
"""

import asyncio
from typing import Any, Awaitable, Callable, Iterable, List, Mapping, Optional

import httpx

from ...core.logging import get_logger
from .exceptions import TransientUpstreamError, UpstreamRequestError, UpstreamUnavailableError

logger = get_logger(__name__)

TRANSIENT_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    httpx.ProxyError,
)


def dedupe_endpoints(endpoints: Iterable[Optional[str]]) -> List[str]:
    """Drop empty and repeated base URLs, keeping first-seen order."""
    seen: List[str] = []
    for endpoint in endpoints:
        if not endpoint:
            continue
        normalized = endpoint.rstrip("/")
        if normalized not in seen:
            seen.append(normalized)
    return seen


def is_transient(error: BaseException) -> bool:
    """Timeouts, resets, refused connections and DNS failures are transient."""
    return isinstance(error, TRANSIENT_ERRORS)


class ResilientFetcher:
    """GET JSON from the first healthy endpoint of an ordered list."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        endpoints: Iterable[Optional[str]],
        max_retries: int = 3,
        base_delay: float = 0.5,
        timeout: float = 8.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        name: str = "upstream",
    ):
        """
        Initialize the fetcher.

        Args:
            client: Shared HTTP client
            endpoints: Base URLs, primary first; blanks and duplicates are dropped
            max_retries: Rounds over all endpoints
            base_delay: Back-off base in seconds; round ``n`` waits ``base_delay * 2**n``
            timeout: Per-request timeout in seconds
            sleep: Awaitable sleep, injectable for tests
            name: Label used in logs
        """
        self.client = client
        self.endpoints = dedupe_endpoints(endpoints)
        if not self.endpoints:
            raise ValueError("At least one endpoint is required")
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.timeout = timeout
        self._sleep = sleep
        self.name = name

    async def get_json(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        """
        Fetch ``path`` from the endpoints with fallback and retry.

        Args:
            path: Path appended to each base URL
            params: Query parameters
            headers: Extra request headers

        Returns:
            Decoded JSON body of the first successful response

        Raises:
            UpstreamRequestError: On a non-transient failure (no retry)
            UpstreamUnavailableError: When all endpoints failed on every attempt
        """
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            for base_url in self.endpoints:
                try:
                    return await self._try_fetch(base_url, path, params, headers)
                except TransientUpstreamError as e:
                    last_error = e
                    logger.warning(
                        f"[{self.name}] {base_url} attempt {attempt + 1}/{self.max_retries} "
                        f"failed ({e.original_error!r}) - trying next endpoint"
                    )

            if attempt < self.max_retries - 1:
                delay = self.base_delay * 2**attempt
                logger.warning(
                    f"[{self.name}] all {len(self.endpoints)} endpoints failed on attempt "
                    f"{attempt + 1} - retrying in {delay}s"
                )
                await self._sleep(delay)

        raise UpstreamUnavailableError(len(self.endpoints), self.max_retries, last_error)

    async def _try_fetch(
        self,
        base_url: str,
        path: str,
        params: Optional[Mapping[str, Any]],
        headers: Optional[Mapping[str, str]],
    ) -> Any:
        url = f"{base_url}{path}"
        try:
            response = await self.client.get(url, params=params, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise UpstreamRequestError(
                f"[{self.name}] {url} returned HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            if is_transient(e):
                raise TransientUpstreamError(base_url, e) from e
            raise UpstreamRequestError(f"[{self.name}] {url} failed: {e!r}") from e
        except ValueError as e:
            raise UpstreamRequestError(f"[{self.name}] {url} returned invalid JSON: {e}") from e
