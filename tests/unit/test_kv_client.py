#!/usr/bin/env python3
"""
Unit tests for the Consul K/V client
"""

import base64
import json
import threading
from unittest.mock import MagicMock, patch

import pytest
import requests as req

from kvstore.circuit_breaker import CircuitBreaker
from kvstore.client import ConsulKVClient
from kvstore.results import Outcome


def _response(status_code=200, body=None, text=None):
    resp = MagicMock()
    resp.status_code = status_code
    if body is not None:
        resp.json.return_value = body
        resp.text = json.dumps(body)
    else:
        resp.json.side_effect = ValueError("no json")
        resp.text = text or ""
    return resp


def _kv_entry(key, value):
    encoded = base64.b64encode(json.dumps(value).encode("utf-8")).decode("ascii")
    return [{"Key": key, "Value": encoded, "Flags": 0}]


@pytest.fixture
def session():
    session = MagicMock()
    session.prepare_request.side_effect = lambda request: request.prepare()
    return session


@pytest.fixture
def client(session):
    return ConsulKVClient(base_url="http://consul:8500/", token="acl-tok", session=session)


def _sent(session):
    return session.send.call_args[0][0]


class TestClientInit:

    def test_strips_trailing_slash(self, client):
        assert client.base_url == "http://consul:8500"
        assert client.kv_endpoint == "http://consul:8500/v1/kv/"

    def test_defaults_to_local_agent(self):
        with patch.dict("os.environ", {}, clear=True):
            client = ConsulKVClient()
            assert client.base_url == ConsulKVClient.DEFAULT_URL
            assert client.token is None
            assert client.timeout == ConsulKVClient.DEFAULT_TIMEOUT

    def test_reads_env(self):
        with patch.dict("os.environ", {
            "CONSUL_HTTP_ADDR": "http://env-consul:8500",
            "CONSUL_HTTP_TOKEN": "env-tok",
        }):
            client = ConsulKVClient()
            assert client.base_url == "http://env-consul:8500"
            assert client.token == "env-tok"

    def test_token_header(self, client):
        assert client._headers()["X-Consul-Token"] == "acl-tok"
        client.token = None
        assert "X-Consul-Token" not in client._headers()


class TestGetValue:

    def test_found(self, client, session):
        session.send.return_value = _response(200, _kv_entry("db.port", 5432))

        result = client.get_value("db.port")

        assert result.ok
        assert result.value == "5432"
        sent = _sent(session)
        assert sent.method == "GET"
        assert sent.url == "http://consul:8500/v1/kv/db.port"
        assert sent.headers["X-Consul-Token"] == "acl-tok"

    def test_plain_text_value(self, client, session):
        encoded = base64.b64encode(b"not json").decode()
        session.send.return_value = _response(200, [{"Key": "k", "Value": encoded}])
        assert client.get_value("k").value == "not json"

    def test_not_found(self, client, session):
        session.send.return_value = _response(404, text="")
        result = client.get_value("missing")
        assert result.outcome is Outcome.NOT_FOUND

    def test_server_error(self, client, session):
        session.send.return_value = _response(500, text="boom")
        result = client.get_value("k")
        assert result.outcome is Outcome.TRANSPORT_ERROR
        assert result.status_code == 500

    def test_connection_error(self, client, session):
        session.send.side_effect = req.ConnectionError()
        result = client.get_value("k")
        assert result.outcome is Outcome.TRANSPORT_ERROR
        assert client.get_stats()["total_errors"] == 1

    def test_timeout(self, client, session):
        session.send.side_effect = req.Timeout()
        assert client.get_value("k").outcome is Outcome.TRANSPORT_ERROR

    def test_malformed_body(self, client, session):
        session.send.return_value = _response(200, [])
        assert client.get_value("k").outcome is Outcome.DECODE_ERROR

    def test_bad_base64(self, client, session):
        session.send.return_value = _response(200, [{"Key": "k", "Value": "%%%"}])
        assert client.get_value("k").outcome is Outcome.DECODE_ERROR


class TestListAndGetAll:

    def test_list_keys(self, client, session):
        session.send.return_value = _response(200, ["a", "b"])

        result = client.list_keys()

        assert result.value == ["a", "b"]
        assert _sent(session).url == "http://consul:8500/v1/kv/?keys"

    def test_list_keys_empty_store(self, client, session):
        session.send.return_value = _response(404, text="")
        result = client.list_keys()
        assert result.ok
        assert result.value == []

    def test_get_all(self, client, session):
        session.send.side_effect = [
            _response(200, ["db.host", "db.port", "gone"]),
            _response(200, _kv_entry("db.host", "db.internal")),
            _response(200, _kv_entry("db.port", 5432)),
            _response(404, text=""),
        ]

        result = client.get_all()

        assert result.value == {"db.host": "db.internal", "db.port": "5432"}

    def test_get_all_keeps_plain_text_verbatim(self, client, session):
        """Test: values written as plain text by other tools are not reformatted."""
        session.send.side_effect = [
            _response(200, ["price", "code", "big"]),
            _response(200, [{"Key": "price", "Value": base64.b64encode(b"1.50").decode()}]),
            _response(200, [{"Key": "code", "Value": base64.b64encode(b"007").decode()}]),
            _response(200, [{"Key": "big", "Value": base64.b64encode(b"1e3").decode()}]),
        ]

        result = client.get_all()

        assert result.value == {"price": "1.50", "code": "007", "big": "1e3"}

    def test_get_all_fails_whole_on_error(self, client, session):
        session.send.side_effect = [
            _response(200, ["a", "b"]),
            _response(200, _kv_entry("a", "x")),
            req.ConnectionError(),
        ]
        result = client.get_all()
        assert result.outcome is Outcome.TRANSPORT_ERROR
        assert result.value is None


class TestPutValue:

    def test_put_success(self, client, session):
        session.send.return_value = _response(200, True)

        result = client.put_value("feature.enabled", True)

        assert result.success
        sent = _sent(session)
        assert sent.method == "PUT"
        assert sent.url == "http://consul:8500/v1/kv/feature.enabled"
        assert sent.body == b"true"

    def test_put_rejected(self, client, session):
        session.send.return_value = _response(200, False)
        result = client.put_value("k", 1)
        assert not result.success
        assert "rejected" in result.message

    def test_put_http_error(self, client, session):
        session.send.return_value = _response(403, text="Permission denied")
        result = client.put_value("k", 1)
        assert not result.success
        assert result.status_code == 403

    def test_put_connection_error(self, client, session):
        session.send.side_effect = req.ConnectionError()
        result = client.put_value("k", 1)
        assert not result.success
        assert result.message == "remote store unavailable"


class TestHooksAndBreaker:

    def test_request_and_response_hooks(self, client, session):
        """Test: request hooks can rewrite headers before send; response hooks see the reply."""
        seen = []
        client.request_hooks.append(lambda prepared: prepared.headers.update({"X-Trace": "abc"}))
        client.response_hooks.append(seen.append)
        resp = _response(200, ["a"])
        session.send.return_value = resp

        client.list_keys()

        assert _sent(session).headers["X-Trace"] == "abc"
        assert seen == [resp]

    def test_raising_request_hook_is_a_transport_error(self, client, session):
        """Test: a hook that fails before send is reported, not raised."""
        def refresh_token(prepared):
            raise RuntimeError("token refresh failed")

        client.request_hooks.append(refresh_token)

        result = client.get_value("db.host")

        assert result.outcome is Outcome.TRANSPORT_ERROR
        session.send.assert_not_called()
        assert client.get_stats()["total_errors"] == 1

    def test_raising_response_hook_is_a_transport_error(self, client, session):
        def audit(resp):
            raise RuntimeError("audit sink down")

        client.response_hooks.append(audit)
        session.send.return_value = _response(200, True)

        result = client.put_value("k", 1)

        assert not result.success
        assert result.message == "remote store unavailable"

    def test_counters_survive_concurrent_requests(self, session):
        client = ConsulKVClient(
            base_url="http://consul:8500", session=session,
            breaker=CircuitBreaker(max_failures=0),
        )
        session.send.side_effect = req.ConnectionError()

        def worker():
            for _ in range(100):
                client.get_value("k")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        stats = client.get_stats()
        assert stats["total_requests"] == 800
        assert stats["total_errors"] == 800

    def test_breaker_short_circuits(self, session):
        client = ConsulKVClient(
            base_url="http://consul:8500", session=session,
            breaker=CircuitBreaker(max_failures=2, ttl_sec=60),
        )
        session.send.side_effect = req.ConnectionError()

        client.get_value("k")
        client.get_value("k")
        result = client.get_value("k")

        assert result.outcome is Outcome.TRANSPORT_ERROR
        assert session.send.call_count == 2
        assert client.get_stats()["circuit_open"] is True

    def test_not_found_does_not_trip_breaker(self, session):
        client = ConsulKVClient(
            base_url="http://consul:8500", session=session,
            breaker=CircuitBreaker(max_failures=1, ttl_sec=60),
        )
        session.send.return_value = _response(404, text="")
        client.get_value("a")
        client.get_value("b")
        assert session.send.call_count == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
