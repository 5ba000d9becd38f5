import sys
import threading
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cache.layer import CacheLayer  # noqa: E402
from cache.store import MemoryCacheStore  # noqa: E402
from kvstore.codec import encode_value, read_as  # noqa: E402
from kvstore.results import FetchResult, WriteResult  # noqa: E402


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRemoteStore:
    """In-memory stand-in for ConsulKVClient that counts calls.

    Values are held as Python objects and handed out JSON-encoded, the way
    Consul returns text written by ConsulKVClient.put_value.
    """

    def __init__(self, data=None):
        self.data = dict(data or {})
        self.calls = {"get_value": 0, "list_keys": 0, "get_all": 0, "put_value": 0}
        self.fail_reads = False
        self.reject_writes = False
        self._lock = threading.Lock()

    def _hit(self, name):
        with self._lock:
            self.calls[name] += 1

    def get_value(self, key):
        self._hit("get_value")
        if self.fail_reads:
            return FetchResult.transport_error(key, "connection refused")
        if key not in self.data:
            return FetchResult.not_found(key)
        return FetchResult.found(key, encode_value(self.data[key]))

    def list_keys(self):
        self._hit("list_keys")
        if self.fail_reads:
            return FetchResult.transport_error(None, "connection refused")
        return FetchResult.found(None, sorted(self.data))

    def get_all(self):
        self._hit("get_all")
        if self.fail_reads:
            return FetchResult.transport_error(None, "connection refused")
        return FetchResult.found(None, {k: read_as(encode_value(v), str) for k, v in self.data.items()})

    def put_value(self, key, value):
        self._hit("put_value")
        if self.reject_writes:
            return WriteResult(success=False, key=key, message="remote store rejected the write")
        with self._lock:
            self.data[key] = value
        return WriteResult(success=True, key=key, message="ok", status_code=200)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def remote():
    return FakeRemoteStore({"db.host": "db.internal", "db.port": 5432})


@pytest.fixture
def store(clock):
    return MemoryCacheStore(clock=clock)


@pytest.fixture
def layer(remote, store):
    return CacheLayer(remote, store, ttl_ms=2000)
