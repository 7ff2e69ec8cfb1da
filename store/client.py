"""
Backing store client.

Minimal client for the store's v2 keys HTTP API. Only what the start-up
needs: an existence query, plus reads and writes used by node components.
"""

import logging
from typing import Dict, List, Optional, Sequence

import requests

logger = logging.getLogger(__name__)

KEY_NOT_FOUND = 100


class StoreError(Exception):
    """Any failure talking to the store."""

    def __init__(self, message: str, error_code: Optional[int] = None):
        super().__init__(message)
        self.error_code = error_code


class StoreKeyNotFound(StoreError):
    """The store answered, but the key does not exist."""

    def __init__(self, key: str):
        super().__init__(f"Key not found: {key}", KEY_NOT_FOUND)
        self.key = key


def is_not_found(err: Exception) -> bool:
    return isinstance(err, StoreError) and err.error_code == KEY_NOT_FOUND


class StoreClient:
    """
    Client for one or more store servers.

    Usage:
        client = StoreClient(["http://10.0.0.5:4001"])
        client.get("/")
    """

    def __init__(self, servers: Sequence[str], timeout: float = 1.0, session: Optional[requests.Session] = None):
        """
        Args:
            servers: Store base URLs, tried in order
            timeout: Per-request timeout in seconds
            session: Optional requests session (tests inject one)
        """
        if not servers:
            raise ValueError("at least one store server is required")
        self.servers: List[str] = [s.rstrip("/") for s in servers]
        self.timeout = timeout
        self._session = session or requests.Session()

    def _key_url(self, server: str, key: str) -> str:
        return f"{server}/v2/keys/{key.lstrip('/')}"

    def _request(self, method: str, key: str, **kwargs) -> Dict:
        last_error: Optional[Exception] = None
        for server in self.servers:
            url = self._key_url(server, key)
            try:
                response = self._session.request(method, url, timeout=self.timeout, **kwargs)
            except requests.RequestException as e:
                last_error = e
                logger.debug(f"Store request to {url} failed: {e}")
                continue

            try:
                payload = response.json()
            except ValueError:
                payload = {}
            if not isinstance(payload, dict):
                payload = {}

            if response.status_code == 404 and payload.get("errorCode") == KEY_NOT_FOUND:
                raise StoreKeyNotFound(key)
            if 200 <= response.status_code < 300:
                return payload

            message = payload.get("message")
            raise StoreError(
                f"HTTP {response.status_code} from {url}: {message or response.text}",
                payload.get("errorCode"),
            )

        raise StoreError(f"Unable to reach store servers {self.servers}: {last_error}")

    def get(self, key: str, recursive: bool = False) -> Dict:
        params = {"recursive": "true"} if recursive else None
        return self._request("GET", key, params=params)

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> Dict:
        data = {"value": value}
        if ttl is not None:
            data["ttl"] = str(ttl)
        return self._request("PUT", key, data=data)

    def close(self) -> None:
        self._session.close()
