from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Protocol

import requests

logger = logging.getLogger(__name__)

PAIRS_QUERY = """{
  pairs(first: 1000) {
    id
    reserve0
    reserve1
    token0 { id symbol name decimals }
    token1 { id symbol name decimals }
  }
}"""


class SnapshotSource(Protocol):
    def fetch_pairs(self) -> List[Dict[str, Any]]: ...


class SubgraphSnapshotSource:
    """
    Reads the current reserve snapshot from a Uniswap-V2 style subgraph.

    Reserves come back as human decimal strings; the pair graph parses them
    at each token's precision.
    """

    def __init__(self, endpoint: str, timeout_seconds: float = 10.0) -> None:
        self._endpoint = endpoint
        self._timeout = timeout_seconds
        self._session = requests.Session()

    def _post(self, query: str) -> Dict[str, Any]:
        resp = self._session.post(
            self._endpoint, json={"query": query}, timeout=self._timeout
        )
        try:
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise RuntimeError(f"Subgraph request failed: {exc}  body={resp.text!r}") from exc
        try:
            payload = resp.json()
        except ValueError as exc:
            raise RuntimeError(f"Invalid JSON from subgraph: {resp.text!r}") from exc
        if payload.get("errors"):
            raise RuntimeError(f"Subgraph returned errors: {payload['errors']}")
        return payload.get("data") or {}

    def fetch_pairs(self) -> List[Dict[str, Any]]:
        data = self._post(PAIRS_QUERY)
        pairs = data.get("pairs")
        if pairs is None:
            raise RuntimeError(f"Unexpected subgraph response schema: {data}")
        logger.debug("subgraph returned %d pairs", len(pairs))
        return list(pairs)


class CallableSnapshotSource:
    """Adapts any zero-argument callable returning pair dicts."""

    def __init__(self, fetch: Callable[[], List[Dict[str, Any]]]) -> None:
        self._fetch = fetch

    def fetch_pairs(self) -> List[Dict[str, Any]]:
        return list(self._fetch())
