"""Tests for the rate-limited, retrying HTTP fetcher."""

import json
from unittest.mock import AsyncMock
from urllib.parse import parse_qs

import httpx
import pytest
from structlog.testing import capture_logs

from dealmonitor.scrapers.http_client import (
    HttpClientConfig,
    HttpFetcher,
    interpolate_env_vars,
)
from dealmonitor.scrapers.schema import LoginConfig
from dealmonitor.scrapers.utils.rate_limiter import IntervalRateLimiter


def _fetcher(handler, env=None, **config):
    config.setdefault("rate_limit_ms", 0)
    config.setdefault("max_retries", 2)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    sleep = AsyncMock()
    fetcher = HttpFetcher(
        config=HttpClientConfig(**config),
        client=client,
        sleep=sleep,
        api_timeout_ms=5000,
        env=env or {},
    )
    return fetcher, sleep


class TestFetch:

    async def test_success_sends_browser_headers(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, text="<html>ok</html>")

        fetcher, _ = _fetcher(handler)
        response = await fetcher.fetch("https://shop.example.com/p/1", headers={"Cookie": "a=b"})

        assert response.text == "<html>ok</html>"
        assert seen[0].headers["Accept"].startswith("text/html")
        assert seen[0].headers["User-Agent"]
        assert seen[0].headers["Cookie"] == "a=b"

    async def test_throttling_is_retried_then_given_up(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(429)

        fetcher, sleep = _fetcher(handler, backoff_base_ms=800, backoff_max_ms=8000)
        assert await fetcher.fetch("https://shop.example.com/") is None

        assert len(attempts) == 3
        delays = [call.args[0] for call in sleep.await_args_list]
        assert delays == [pytest.approx(0.8), pytest.approx(1.6)]

    async def test_retry_notice_is_logged(self):
        responses = iter([httpx.Response(503), httpx.Response(200, text="ok")])
        fetcher, _ = _fetcher(lambda request: next(responses))

        with capture_logs() as logs:
            response = await fetcher.fetch("https://shop.example.com/")

        assert response.text == "ok"
        retries = [entry for entry in logs if entry["event"].startswith("Retrying")]
        assert len(retries) == 1
        assert retries[0]["log_level"] == "warning"

    async def test_backoff_is_capped(self):
        fetcher, sleep = _fetcher(
            lambda request: httpx.Response(503),
            max_retries=3,
            backoff_base_ms=800,
            backoff_max_ms=2000,
        )
        await fetcher.fetch("https://shop.example.com/")

        delays = [call.args[0] for call in sleep.await_args_list]
        assert delays == [pytest.approx(0.8), pytest.approx(1.6), pytest.approx(2.0)]

    async def test_not_found_is_not_retried(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(404)

        fetcher, sleep = _fetcher(handler)
        assert await fetcher.fetch("https://shop.example.com/missing") is None
        assert len(attempts) == 1
        sleep.assert_not_awaited()

    async def test_recovers_after_service_unavailable(self):
        statuses = iter([503, 200])

        def handler(request):
            return httpx.Response(next(statuses), text="recovered")

        fetcher, _ = _fetcher(handler)
        assert await fetcher.fetch_text("https://shop.example.com/") == "recovered"

    async def test_timeout_is_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ReadTimeout("slow", request=request)
            return httpx.Response(200, text="late")

        fetcher, _ = _fetcher(handler)
        assert await fetcher.fetch_text("https://shop.example.com/") == "late"
        assert len(calls) == 2

    async def test_rate_limiter_spaces_requests(self):
        sleep = AsyncMock()
        ticks = iter([0.0, 0.1, 0.35])
        limiter = IntervalRateLimiter(350, sleep=sleep, clock=lambda: next(ticks))

        await limiter.acquire()
        await limiter.acquire()

        sleep.assert_awaited_once()
        assert sleep.await_args.args[0] == pytest.approx(0.25)


class TestFetchApiJson:

    async def test_post_with_interpolated_params_and_headers(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"total": 1}, headers={"X-Request-Id": "abc"})

        fetcher, _ = _fetcher(handler, env={"API_KEY": "k-123"})
        response = await fetcher.fetch_api_json(
            "https://api.example.com/search",
            params={"key": "${API_KEY}", "q": "boots"},
            headers={"Authorization": "Bearer ${AUTH_TOKEN}", "Accept": "application/vnd+json"},
            auth_token="tok",
        )

        assert response.data == {"total": 1}
        assert response.headers["x-request-id"] == "abc"
        request = seen[0]
        assert request.method == "POST"
        assert request.url.params["key"] == "k-123"
        assert request.url.params["q"] == "boots"
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.headers["Accept"] == "application/vnd+json"
        assert json.loads(request.content) == {}

    async def test_post_body_is_sent(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[])

        fetcher, _ = _fetcher(handler)
        await fetcher.fetch_api_json("https://api.example.com", body={"offset": 120, "limit": 120})
        assert json.loads(seen[0].content) == {"offset": 120, "limit": 120}

    async def test_get_has_no_body(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"items": []})

        fetcher, _ = _fetcher(handler)
        await fetcher.fetch_api_json("https://api.example.com", method="get", params={"page": 2})

        assert seen[0].method == "GET"
        assert seen[0].content == b""
        assert seen[0].url.params["page"] == "2"

    async def test_error_status_is_none(self):
        fetcher, _ = _fetcher(lambda request: httpx.Response(500))
        assert await fetcher.fetch_api_json("https://api.example.com") is None

    async def test_non_json_body_is_none(self):
        fetcher, _ = _fetcher(lambda request: httpx.Response(200, text="<html>"))
        assert await fetcher.fetch_api_json("https://api.example.com") is None

    async def test_network_error_is_none(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        fetcher, _ = _fetcher(handler)
        assert await fetcher.fetch_api_json("https://api.example.com") is None


class TestInterpolation:

    def test_placeholders(self):
        env = {"REGION": "eu"}
        assert interpolate_env_vars("${REGION}-${AUTH_TOKEN}", "t", env) == "eu-t"
        assert interpolate_env_vars("${MISSING}x", None, env) == "x"
        assert interpolate_env_vars("${AUTH_TOKEN}", None, env) == ""


class TestLoginSession:

    LOGIN = LoginConfig(
        url="https://shop.example.com/login",
        fields={"user": "me", "password": "${SHOP_PASSWORD}"},
        session_cookie="sid",
    )

    async def test_login_returns_rotated_cookie(self):
        seen = []

        def handler(request):
            seen.append(request)
            if request.method == "GET":
                return httpx.Response(200, headers={"Set-Cookie": "sid=guest; Path=/"})
            return httpx.Response(302, headers={"Set-Cookie": "sid=member; Path=/"})

        fetcher, _ = _fetcher(handler, env={"SHOP_PASSWORD": "s3cret"})
        cookie = await fetcher.login_session("https://shop.example.com/deals", self.LOGIN)

        assert cookie == "sid=member"
        post = seen[1]
        assert post.url == "https://shop.example.com/login"
        assert parse_qs(post.content.decode()) == {"user": ["me"], "password": ["s3cret"]}
        assert "sid=guest" in post.headers["Cookie"]

    async def test_cookie_header_name_override(self):
        def handler(request):
            if request.method == "GET":
                return httpx.Response(200, headers={"Set-Cookie": "sid=guest; Path=/"})
            return httpx.Response(200)

        login = self.LOGIN.model_copy(update={"cookie_header": "session"})
        fetcher, _ = _fetcher(handler)
        assert await fetcher.login_session("https://shop.example.com/", login) == "session=guest"

    async def test_no_session_cookie(self):
        fetcher, _ = _fetcher(lambda request: httpx.Response(200))
        assert await fetcher.login_session("https://shop.example.com/", self.LOGIN) is None
