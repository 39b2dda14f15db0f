"""Tests for the resilient request helper and rate limiting."""

from __future__ import annotations

import httpx
import pytest

from refindex.utils import HttpClient, NetworkError, RateLimiter, RateLimiterRegistry, backoff_delay


@pytest.fixture
def sleeps(monkeypatch):
    """Record back-off sleeps instead of sleeping."""
    recorded: list[float] = []
    monkeypatch.setattr("refindex.utils.time.sleep", lambda s: recorded.append(s))
    return recorded


def make_client(handler, **kwargs) -> HttpClient:
    return HttpClient(transport=httpx.MockTransport(handler), **kwargs)


class TestBackoff:
    """Tests for backoff_delay function."""

    def test_doubles(self):
        assert [backoff_delay(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]

    def test_capped(self):
        assert backoff_delay(4) == 15.0
        assert backoff_delay(10) == 15.0


class TestRequestJson:
    """Tests for HttpClient.request_json."""

    def test_parses_json(self, sleeps):
        client = make_client(lambda request: httpx.Response(200, json={"ok": True}))
        resp = client.request_json("https://example.org/api")
        assert resp.status == 200
        assert resp.data == {"ok": True}
        assert sleeps == []

    def test_malformed_json_returns_raw_text(self, sleeps):
        client = make_client(lambda request: httpx.Response(200, text="<html>oops</html>"))
        resp = client.request_json("https://example.org/api")
        assert resp.status == 200
        assert resp.data == "<html>oops</html>"

    def test_always_503_tries_max_attempts(self, sleeps):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503, text="busy")

        client = make_client(handler, max_attempts=3)
        resp = client.request_json("https://example.org/api")
        assert len(calls) == 3
        assert resp.status == 503
        assert sleeps == [2.0, 4.0]

    def test_404_not_retried(self, sleeps):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404, json={"message": "not found"})

        resp = make_client(handler).request_json("https://example.org/api")
        assert len(calls) == 1
        assert resp.status == 404
        assert sleeps == []

    def test_400_not_retried(self, sleeps):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(400)

        make_client(handler).request_json("https://example.org/api")
        assert len(calls) == 1

    def test_recovers_after_429(self, sleeps):
        statuses = iter([429, 200])
        client = make_client(lambda request: httpx.Response(next(statuses), json={"n": 1}))
        resp = client.request_json("https://example.org/api")
        assert resp.status == 200
        assert sleeps == [2.0]

    def test_transport_errors_raise_after_retries(self, sleeps):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("refused", request=request)

        client = make_client(handler, max_attempts=3)
        with pytest.raises(NetworkError):
            client.request_json("https://example.org/api")
        assert len(calls) == 3

    def test_sends_params_and_headers(self, sleeps):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["accept"] = request.headers["Accept"]
            seen["ua"] = request.headers["User-Agent"]
            return httpx.Response(200, json={})

        client = make_client(handler, user_agent="refindex-test/1.0")
        client.request_json(
            "https://example.org/api", params={"q": "a b"}, headers={"User-Agent": "custom"}, accept="text/xml"
        )
        assert "q=a+b" in seen["url"]
        assert seen["accept"] == "text/xml"
        assert seen["ua"] == "custom"

    def test_context_manager_closes(self):
        with make_client(lambda request: httpx.Response(200)) as client:
            pass
        assert client.client.is_closed


class TestRateLimiter:
    """Tests for rate limiting."""

    def test_allows_requests_below_limit(self, sleeps):
        limiter = RateLimiter(5)
        for _ in range(5):
            limiter.wait()
        assert sleeps == []
        assert len(limiter.timestamps) == 5

    def test_sleeps_when_limit_reached(self, sleeps):
        limiter = RateLimiter(2)
        limiter.wait()
        limiter.wait()
        limiter.wait()
        assert len(sleeps) == 1
        assert 0 < sleeps[0] <= 60.01

    def test_registry_per_service(self):
        registry = RateLimiterRegistry({"custom": 7})
        assert registry.get("custom").req_per_min == 7
        assert registry.get("crossref").req_per_min == 50
        assert registry.get("unknown").req_per_min == 30
        assert registry.get("crossref") is registry.get("crossref")
