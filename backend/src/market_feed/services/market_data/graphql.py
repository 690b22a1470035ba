"""Minimal GraphQL-over-HTTP client for liquidity-pool indexers."""

from typing import Any, Dict, Optional

import httpx

from ...core.logging import get_logger
from .exceptions import SubgraphQueryError, UpstreamRequestError

logger = get_logger(__name__)


class GraphQLClient:
    """POSTs ``{query, variables}`` documents and unwraps the ``data`` member."""

    def __init__(self, client: httpx.AsyncClient, timeout: float = 15.0):
        self.client = client
        self.timeout = timeout

    async def query(self, url: str, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Run one GraphQL query.

        Args:
            url: Indexer endpoint
            query: GraphQL document
            variables: Query variables

        Returns:
            The reply's ``data`` object

        Raises:
            SubgraphQueryError: If the reply carries ``errors`` or no ``data``
            UpstreamRequestError: On an HTTP error status or an unreadable body
            httpx.HTTPError: On transport failures
        """
        response = await self.client.post(
            url,
            json={"query": query, "variables": variables or {}},
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
        )
        try:
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise UpstreamRequestError(
                f"Subgraph {url} returned HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except ValueError as e:
            raise UpstreamRequestError(f"Subgraph {url} returned invalid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise SubgraphQueryError("Subgraph returned a non-object reply")
        errors = payload.get("errors")
        if errors:
            first = errors[0]
            message = first.get("message", first) if isinstance(first, dict) else first
            raise SubgraphQueryError(f"Subgraph query error: {message}")
        data = payload.get("data")
        if not data:
            raise SubgraphQueryError("Subgraph returned no data")
        return data
