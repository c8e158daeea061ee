"""
Key-Value Store Backends

Durable string key-value storage with prefix listing and per-key expiry.
Trigger rules and daily completion records both live here, partitioned by key prefix.
"""

import logging
import threading
import time
from collections.abc import Callable
from typing import Optional, Protocol
from urllib.parse import quote

import requests

from .exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

CLOUDFLARE_API_URL = "https://api.cloudflare.com/client/v4"
CLOUDFLARE_MIN_TTL_SECONDS = 60


class KeyValueStore(Protocol):
    """What the trigger store and dedup guard need from a key-value service."""

    def get(self, key: str) -> Optional[str]: ...

    def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None: ...

    def list_keys(self, prefix: str) -> list[str]: ...

    def delete(self, key: str) -> None: ...


class InMemoryKVStore:
    """Thread-safe in-process store. Expiry is evaluated lazily against ``clock``."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._data: dict[str, tuple[str, Optional[float]]] = {}
        self.lock = threading.Lock()

    def _live(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self.clock() >= expires_at:
            del self._data[key]
            return None
        return value

    def _expiry(self, ttl_seconds: Optional[int]) -> Optional[float]:
        return self.clock() + ttl_seconds if ttl_seconds is not None else None

    def get(self, key: str) -> Optional[str]:
        with self.lock:
            return self._live(key)

    def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        with self.lock:
            self._data[key] = (value, self._expiry(ttl_seconds))

    def put_if_absent(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> bool:
        """Write only if no live value exists. Returns True if this call wrote."""
        with self.lock:
            if self._live(key) is not None:
                return False
            self._data[key] = (value, self._expiry(ttl_seconds))
            return True

    def list_keys(self, prefix: str) -> list[str]:
        with self.lock:
            return sorted(k for k in list(self._data) if k.startswith(prefix) and self._live(k) is not None)

    def delete(self, key: str) -> None:
        with self.lock:
            self._data.pop(key, None)


class CloudflareKVStore:
    """Cloudflare Workers KV namespace accessed through the REST API."""

    def __init__(
        self,
        account_id: str,
        namespace_id: str,
        api_token: str,
        timeout: float = 5,
        base_url: str = CLOUDFLARE_API_URL,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the KV client.

        Args:
            account_id: Cloudflare account id
            namespace_id: KV namespace id
            api_token: API token with Workers KV read/write permission
            timeout: Per-request timeout in seconds
            base_url: API root (overridable for testing)
            session: Optional preconfigured session
        """
        self.namespace_url = (
            f"{base_url.rstrip('/')}/accounts/{account_id}/storage/kv/namespaces/{namespace_id}"
        )
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {api_token}"})

    def _value_url(self, key: str) -> str:
        return f"{self.namespace_url}/values/{quote(key, safe='')}"

    def get(self, key: str) -> Optional[str]:
        try:
            response = self.session.get(self._value_url(key), timeout=self.timeout)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.text
        except requests.exceptions.RequestException as e:
            raise StoreUnavailableError(f"KV read failed for {key}: {e}") from e

    def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        params = {}
        if ttl_seconds is not None:
            params["expiration_ttl"] = max(int(ttl_seconds), CLOUDFLARE_MIN_TTL_SECONDS)
        try:
            response = self.session.put(
                self._value_url(key),
                params=params,
                data=value.encode("utf-8"),
                headers={"Content-Type": "text/plain"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            logger.debug(f"KV put {key} (ttl={params.get('expiration_ttl')})")
        except requests.exceptions.RequestException as e:
            raise StoreUnavailableError(f"KV write failed for {key}: {e}") from e

    def list_keys(self, prefix: str) -> list[str]:
        keys: list[str] = []
        cursor = None
        try:
            while True:
                params = {"prefix": prefix}
                if cursor:
                    params["cursor"] = cursor
                response = self.session.get(
                    f"{self.namespace_url}/keys", params=params, timeout=self.timeout
                )
                response.raise_for_status()
                payload = response.json()
                keys.extend(entry["name"] for entry in payload.get("result", []))
                cursor = (payload.get("result_info") or {}).get("cursor")
                if not cursor:
                    break
        except requests.exceptions.RequestException as e:
            raise StoreUnavailableError(f"KV list failed for prefix {prefix!r}: {e}") from e
        except (ValueError, KeyError, TypeError) as e:
            raise StoreUnavailableError(f"Unexpected KV list response for prefix {prefix!r}: {e}") from e
        return keys

    def delete(self, key: str) -> None:
        try:
            response = self.session.delete(self._value_url(key), timeout=self.timeout)
            if response.status_code != 404:
                response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise StoreUnavailableError(f"KV delete failed for {key}: {e}") from e
