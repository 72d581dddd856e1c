"""HTTP fetcher with a shared rate limiter, capped exponential backoff and timeouts.

All requests made through one ``HttpFetcher`` pass through the same
interval limiter, so the fetcher never hammers a site even when callers
fetch pages concurrently. Terminal failures are reported as ``None``;
callers record an error for that URL and move on.
"""

import asyncio
import json
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import httpx
import structlog

from dealmonitor.config import settings
from dealmonitor.core.exceptions import (
    FetchError,
    NonRetryableFetchError,
    RetryableFetchError,
)
from dealmonitor.scrapers.schema import LoginConfig
from dealmonitor.scrapers.utils.rate_limiter import IntervalRateLimiter
from dealmonitor.scrapers.utils.retry import fetch_retrying
from dealmonitor.scrapers.utils.user_agents import API_USER_AGENT, get_random_user_agent

logger = structlog.get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 403, 503})

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")

HTML_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

API_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
    "Sec-Fetch-Dest": "empty",
    "Sec-Fetch-Mode": "cors",
    "Sec-Fetch-Site": "same-site",
    "User-Agent": API_USER_AGENT,
}


@dataclass
class HttpClientConfig:
    """Per-fetcher request discipline. Durations are milliseconds."""

    rate_limit_ms: int = 350
    max_retries: int = 3
    backoff_base_ms: int = 800
    backoff_max_ms: int = 8000
    timeout_ms: int = 12000

    @classmethod
    def from_settings(cls) -> "HttpClientConfig":
        return cls(
            rate_limit_ms=settings.SCRAPE_RATE_LIMIT_MS,
            max_retries=settings.SCRAPE_MAX_RETRIES,
            backoff_base_ms=settings.SCRAPE_BACKOFF_BASE_MS,
            backoff_max_ms=settings.SCRAPE_BACKOFF_MAX_MS,
            timeout_ms=settings.SCRAPE_TIMEOUT_MS,
        )


@dataclass
class ApiResponse:
    """Decoded JSON body plus lower-cased response headers."""

    data: Any
    headers: Dict[str, str] = field(default_factory=dict)


def interpolate_env_vars(
    value: str,
    auth_token: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> str:
    """Substitute ``${NAME}`` placeholders.

    ``${AUTH_TOKEN}`` takes the per-site token; any other name is read from
    the environment. Unknown names become an empty string.
    """
    source = os.environ if env is None else env

    def _replace(match: "re.Match[str]") -> str:
        key = match.group(1)
        if key == "AUTH_TOKEN":
            return auth_token or ""
        return source.get(key, "")

    return _PLACEHOLDER.sub(_replace, value)


def interpolate_mapping(
    values: Optional[Mapping[str, Any]],
    auth_token: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    return {
        key: interpolate_env_vars(str(value), auth_token, env)
        for key, value in (values or {}).items()
    }


class HttpFetcher:
    """Rate-limited, retrying HTTP client shared by one scrape job."""

    def __init__(
        self,
        config: Optional[HttpClientConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep=None,
        api_timeout_ms: Optional[int] = None,
        env: Optional[Mapping[str, str]] = None,
    ):
        """Initialize the fetcher.

        Args:
            config: Request discipline (defaults from settings)
            client: httpx client to use; one is created and owned if omitted
            sleep: Awaitable sleep used for rate limiting and backoff
            api_timeout_ms: Timeout for JSON API requests
            env: Mapping used for ``${NAME}`` interpolation (os.environ)
        """
        self.config = config or HttpClientConfig.from_settings()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(follow_redirects=True)
        self._sleep = sleep or asyncio.sleep
        self.api_timeout_ms = api_timeout_ms or settings.API_TIMEOUT_MS
        self.env = env
        self.rate_limiter = IntervalRateLimiter(self.config.rate_limit_ms, sleep=self._sleep)
        self.logger = logger.bind(service="http_fetcher")

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpFetcher":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _attempt(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        **kwargs: Any,
    ) -> httpx.Response:
        """One rate-limited request; raises a FetchError subclass on failure."""
        await self.rate_limiter.acquire()
        try:
            response = await self._client.request(
                method,
                url,
                headers=headers,
                timeout=self.config.timeout_ms / 1000.0,
                **kwargs,
            )
        except httpx.TimeoutException as e:
            raise RetryableFetchError(url, f"Timeout after {self.config.timeout_ms}ms: {e}") from e
        except httpx.HTTPError as e:
            raise RetryableFetchError(url, f"Network error: {e}") from e

        status = response.status_code
        if status in RETRYABLE_STATUS_CODES:
            raise RetryableFetchError(url, f"HTTP {status}", status_code=status)
        if not response.is_success:
            raise NonRetryableFetchError(url, f"HTTP {status}", status_code=status)
        return response

    async def fetch(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        method: str = "GET",
    ) -> Optional[httpx.Response]:
        """Fetch a URL with retries.

        Retries 429/403/503, timeouts and network errors up to
        ``max_retries`` times; any other non-2xx status fails immediately.

        Args:
            url: Absolute URL to fetch
            headers: Extra headers overriding the browser-like defaults
            method: HTTP method

        Returns:
            The successful response, or None after a terminal failure
        """
        merged = {**HTML_HEADERS, "User-Agent": get_random_user_agent(), **(headers or {})}
        retrying = fetch_retrying(
            self.config.max_retries,
            self.config.backoff_base_ms,
            self.config.backoff_max_ms,
            sleep=self._sleep,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._attempt(method, url, merged)
        except FetchError as e:
            self.logger.warning(
                "fetch_failed",
                url=url,
                status_code=e.status_code,
                error=e.message,
            )
        return None

    async def fetch_text(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[str]:
        response = await self.fetch(url, headers=headers)
        return response.text if response is not None else None

    async def fetch_api_json(
        self,
        api_url: str,
        method: str = "POST",
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[Any] = None,
        auth_token: Optional[str] = None,
        timeout_ms: Optional[int] = None,
    ) -> Optional[ApiResponse]:
        """Call a JSON API endpoint once.

        Query params and headers may contain ``${ENV_VAR}`` and
        ``${AUTH_TOKEN}`` placeholders. Schema headers override the default
        browser-like header set. POST requests always carry a JSON body
        (``{}`` when none is given).

        Returns:
            ApiResponse, or None on any failure including non-2xx statuses
        """
        method = method.upper()
        query = interpolate_mapping(params, auth_token, self.env)
        merged_headers = {**API_HEADERS, **interpolate_mapping(headers, auth_token, self.env)}
        timeout = (timeout_ms or self.api_timeout_ms) / 1000.0

        request_kwargs: Dict[str, Any] = {}
        if method == "POST":
            request_kwargs["content"] = json.dumps(body if body is not None else {})

        await self.rate_limiter.acquire()
        try:
            response = await self._client.request(
                method,
                api_url,
                params=query or None,
                headers=merged_headers,
                timeout=timeout,
                **request_kwargs,
            )
        except httpx.HTTPError as e:
            self.logger.error("api_request_error", url=api_url, error=str(e))
            return None

        if not response.is_success:
            self.logger.error("api_request_failed", url=api_url, status_code=response.status_code)
            return None

        try:
            data = response.json()
        except ValueError as e:
            self.logger.error("api_response_not_json", url=api_url, error=str(e))
            return None

        return ApiResponse(
            data=data,
            headers={key.lower(): value for key, value in response.headers.items()},
        )

    async def login_session(
        self,
        page_url: str,
        login: LoginConfig,
        user_agent: Optional[str] = None,
        auth_token: Optional[str] = None,
    ) -> Optional[str]:
        """Obtain an authenticated session cookie via a form login.

        GETs the page for a fresh session cookie, POSTs the interpolated
        login fields with it and keeps the cookie if the server rotates it.

        Returns:
            ``Cookie`` header value (``<cookieHeader|sessionCookie>=<value>``),
            or None if no session cookie could be obtained
        """
        user_agent = user_agent or get_random_user_agent()
        try:
            await self.rate_limiter.acquire()
            pre_login = await self._client.get(
                page_url,
                headers={"User-Agent": user_agent},
                follow_redirects=False,
                timeout=self.config.timeout_ms / 1000.0,
            )
            session_value = pre_login.cookies.get(login.session_cookie)
            if not session_value:
                self.logger.warning("login_no_session_cookie", url=page_url, cookie=login.session_cookie)
                return None

            await self.rate_limiter.acquire()
            login_response = await self._client.post(
                login.url,
                data=interpolate_mapping(login.fields, auth_token, self.env),
                headers={
                    "Content-Type": "application/x-www-form-urlencoded",
                    "Cookie": f"{login.session_cookie}={session_value}",
                    "User-Agent": user_agent,
                },
                follow_redirects=False,
                timeout=self.config.timeout_ms / 1000.0,
            )
        except httpx.HTTPError as e:
            self.logger.error("login_failed", url=login.url, error=str(e))
            return None

        self.logger.info("login_response", url=login.url, status_code=login_response.status_code)
        rotated = login_response.cookies.get(login.session_cookie)
        if rotated:
            session_value = rotated

        cookie_name = login.cookie_header or login.session_cookie
        return f"{cookie_name}={session_value}"
