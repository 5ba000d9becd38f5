#!/usr/bin/env python3
"""
Consul K/V client: the remote store behind the settings cache.

Implements:
- get_value(key) -> FetchResult
- list_keys() -> FetchResult
- get_all() -> FetchResult
- put_value(key, value) -> WriteResult
- get_stats() -> dict

Endpoints:
- GET  /v1/kv/{key}   -> [{"Key": ..., "Value": <base64>}] or 404
- GET  /v1/kv/?keys   -> ["key", ...]
- PUT  /v1/kv/{key}   -> true | false
"""

import logging
import os
import threading
from typing import Any, Callable, Dict, List, Optional, Protocol
from urllib.parse import quote

import requests

from .circuit_breaker import CircuitBreaker
from .codec import decode_base64, encode_value, read_as
from .results import FetchResult, Outcome, WriteResult

logger = logging.getLogger(__name__)

RequestHook = Callable[[requests.PreparedRequest], None]
ResponseHook = Callable[[requests.Response], None]


class RemoteStoreClient(Protocol):
    """Operations the cache layer needs from a remote key-value store."""

    def get_value(self, key: str) -> FetchResult: ...

    def list_keys(self) -> FetchResult: ...

    def get_all(self) -> FetchResult: ...

    def put_value(self, key: str, value: Any) -> WriteResult: ...


class ConsulKVClient:
    """
    Consul K/V store client.

    Errors never escape a read: every outcome is reported through a
    FetchResult or WriteResult and logged.

    Auth: ACL token from the constructor or the CONSUL_HTTP_TOKEN env var,
    sent as X-Consul-Token. Anything else (signing, tracing headers) goes in
    ``request_hooks``, which see each PreparedRequest before it is sent.
    """

    DEFAULT_URL = "http://127.0.0.1:8500"
    DEFAULT_TIMEOUT = 10
    KV_PREFIX = "/v1/kv/"

    def __init__(
        self,
        base_url: str = None,
        token: str = None,
        timeout: float = None,
        breaker: CircuitBreaker = None,
        session: requests.Session = None,
    ):
        self.base_url = (base_url or os.environ.get("CONSUL_HTTP_ADDR") or self.DEFAULT_URL).rstrip("/")
        self.token = token or os.environ.get("CONSUL_HTTP_TOKEN")
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self.breaker = breaker or CircuitBreaker()
        self.session = session or requests.Session()

        self.request_hooks: List[RequestHook] = []
        self.response_hooks: List[ResponseHook] = []

        self._request_count = 0
        self._error_count = 0
        self._lock = threading.Lock()

        logger.info(
            f"ConsulKVClient initialized (base_url={self.base_url}, "
            f"token={'configured' if self.token else 'missing'})"
        )

    @property
    def kv_endpoint(self) -> str:
        return f"{self.base_url}{self.KV_PREFIX}"

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["X-Consul-Token"] = self.token
        return headers

    def _url(self, key: str = "") -> str:
        return f"{self.kv_endpoint}{quote(key, safe='/')}"

    def _request(self, method: str, url: str, data: bytes = None) -> Optional[requests.Response]:
        """Send a request to Consul. Returns None on transport failure, hook failure or an open breaker."""
        if not self.breaker.can_attempt():
            logger.warning(f"Consul circuit open, skipping {method} {url}")
            return None

        with self._lock:
            self._request_count += 1

        try:
            prepared = self.session.prepare_request(
                requests.Request(method, url, headers=self._headers(), data=data)
            )
            for hook in self.request_hooks:
                hook(prepared)
            resp = self.session.send(prepared, timeout=self.timeout)
            for hook in self.response_hooks:
                hook(resp)
        except requests.Timeout:
            logger.error(f"Consul timeout: {method} {url} (>{self.timeout}s)")
            return self._failed("timeout")
        except requests.ConnectionError:
            logger.error(f"Consul connection error: {method} {url}")
            return self._failed("connection error")
        except requests.RequestException as e:
            logger.error(f"Consul request error: {method} {url}: {e}")
            return self._failed(str(e))
        except Exception as e:
            logger.error(f"Consul unexpected error: {method} {url}: {e}")
            return self._failed(str(e))

        if resp.status_code >= 500:
            self.breaker.record_failure(f"HTTP {resp.status_code}")
        else:
            self.breaker.record_success()

        if resp.status_code >= 400 and resp.status_code != 404:
            logger.warning(f"Consul error: {method} {url} -> {resp.status_code} {resp.text[:200]}")
            self._count_error()
        return resp

    def _count_error(self) -> None:
        with self._lock:
            self._error_count += 1

    def _failed(self, reason: str) -> None:
        self._count_error()
        self.breaker.record_failure(reason)
        return None

    # ── Reads ────────────────────────────────────────────────────

    def get_value(self, key: str) -> FetchResult:
        """GET /v1/kv/{key}. The result holds the stored text, undecoded."""
        resp = self._request("GET", self._url(key))
        if resp is None:
            return FetchResult.transport_error(key, "remote store unavailable")
        if resp.status_code == 404:
            logger.debug(f"No config value with key {key}")
            return FetchResult.not_found(key)
        if resp.status_code != 200:
            return FetchResult.transport_error(key, f"unexpected status {resp.status_code}", resp.status_code)

        try:
            entries = resp.json()
            raw = decode_base64(entries[0].get("Value"))
        except (ValueError, TypeError, KeyError, IndexError, AttributeError) as e:
            logger.error(f"Unable to decode config value for key {key}: {e}")
            return FetchResult.decode_error(key, str(e))

        logger.debug(f"Got config value {raw!r} for key {key}")
        return FetchResult.found(key, raw)

    def list_keys(self) -> FetchResult:
        """GET /v1/kv/?keys. An empty store answers 404, which reads as no keys."""
        resp = self._request("GET", f"{self.kv_endpoint}?keys")
        if resp is None:
            return FetchResult.transport_error(None, "remote store unavailable")
        if resp.status_code == 404:
            return FetchResult.found(None, [])
        if resp.status_code != 200:
            return FetchResult.transport_error(None, f"unexpected status {resp.status_code}", resp.status_code)

        try:
            keys = resp.json()
        except ValueError as e:
            logger.error(f"Unable to decode key listing: {e}")
            return FetchResult.decode_error(None, str(e))
        if not isinstance(keys, list):
            return FetchResult.decode_error(None, f"expected a list of keys, got {type(keys).__name__}")

        logger.debug(f"Listed {len(keys)} config keys")
        return FetchResult.found(None, keys)

    def get_all(self) -> FetchResult:
        """List every key then read each value as a string.

        Keys deleted between the listing and the read are skipped. Any other
        failure fails the whole dump so a partial map is never returned.
        """
        listing = self.list_keys()
        if not listing.ok:
            return listing

        values: Dict[str, Optional[str]] = {}
        for key in listing.value:
            result = self.get_value(key)
            if result.outcome is Outcome.NOT_FOUND:
                continue
            if not result.ok:
                return FetchResult(result.outcome, key=None, error=f"{key}: {result.error}",
                                   status_code=result.status_code)
            values[key] = read_as(result.value, str)
        return FetchResult.found(None, values)

    # ── Writes ───────────────────────────────────────────────────

    def put_value(self, key: str, value: Any) -> WriteResult:
        """PUT /v1/kv/{key} with the JSON-encoded value. Consul answers ``true`` on success."""
        body = encode_value(value)
        resp = self._request("PUT", self._url(key), data=body.encode("utf-8"))
        if resp is None:
            return WriteResult(success=False, key=key, message="remote store unavailable")
        if resp.status_code >= 400:
            return WriteResult(
                success=False, key=key,
                message=f"HTTP {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )
        if resp.text.strip().lower() != "true":
            self._count_error()
            return WriteResult(
                success=False, key=key,
                message=f"remote store rejected the write ({resp.text.strip()[:50]!r})",
                status_code=resp.status_code,
            )

        logger.debug(f"Stored config value for key {key}")
        return WriteResult(success=True, key=key, message="ok", status_code=resp.status_code)

    def get_stats(self) -> Dict[str, Any]:
        """Get client-side stats."""
        with self._lock:
            requests_made, errors = self._request_count, self._error_count
        return {
            "base_url": self.base_url,
            "token_configured": bool(self.token),
            "total_requests": requests_made,
            "total_errors": errors,
            "circuit_open": self.breaker.is_open,
            "error_rate_percent": (
                round(errors / requests_made * 100, 1)
                if requests_made > 0 else 0
            ),
        }
