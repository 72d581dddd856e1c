"""Pagination policies for HTML listings and JSON APIs.

- HTML listing pages (default parser): pages 2..N via ``pageNo=N``.
- html-dom schemas with ``htmlPagination``: ``{offset}`` URL template until
  two consecutive empty pages.
- api-json with a known total: remaining pages in concurrent batches.
- api-json with an unknown total: sequential pages until an empty one.

Variant folding (dedup, filtering, persistence) is always done by the
caller one page at a time, never concurrently.
"""

import asyncio
import math
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import httpx
import structlog

from dealmonitor.config import settings
from dealmonitor.core.cancellation import CancellationToken
from dealmonitor.scrapers.adapters.next_data import parse_next_data_page
from dealmonitor.scrapers.base import Variant
from dealmonitor.scrapers.http_client import ApiResponse, HttpFetcher
from dealmonitor.scrapers.schema import ApiPaginationConfig, ProductPageSchema
from dealmonitor.scrapers.schema_parser import parse_from_api_data, parse_with_schema
from dealmonitor.scrapers.utils.path_resolver import resolve_path
from dealmonitor.scrapers.utils.retry import page_retrying
from dealmonitor.scrapers.utils.url import resolve_full_url

logger = structlog.get_logger(__name__)

FoldVariants = Callable[[List[Variant]], Awaitable[None]]

# Consecutive empty html-dom pages that end template pagination.
MAX_CONSECUTIVE_EMPTY_PAGES = 2


@dataclass
class ErrorEntry:
    """A URL- or page-level failure reported in the job result."""

    url: str
    message: str


@dataclass
class PageCounter:
    completed: int = 0
    total: int = 0


@dataclass
class PageContext:
    """Per-URL state shared between the orchestrator and the driver."""

    url: str
    token: CancellationToken
    errors: List[ErrorEntry] = field(default_factory=list)
    pages: PageCounter = field(default_factory=PageCounter)
    max_pages: int = 2000
    on_progress: Callable[[], None] = lambda: None


@dataclass(frozen=True)
class PageRequest:
    """One API page: 0-based index and the item offset it starts at."""

    index: int
    offset: int

    @property
    def number(self) -> int:
        return self.index + 1


def required_pages(total_items: int, page_size: int, max_pages: int) -> int:
    return min(math.ceil(total_items / page_size), max_pages)


def plan_remaining_pages(total_items: int, page_size: int, max_pages: int) -> List[PageRequest]:
    """Pages still to fetch after page 1, which disclosed the total.

    >>> [p.number for p in plan_remaining_pages(250, 120, 2000)]
    [2, 3]
    """
    pages = required_pages(total_items, page_size, max_pages)
    return [PageRequest(index=i, offset=i * page_size) for i in range(1, pages)]


def build_page_request(
    schema: ProductPageSchema,
    params: Dict[str, Any],
    pagination: ApiPaginationConfig,
    page: PageRequest,
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Build (query_params, json_body) for one API page.

    Merged URL/schema params go into the body. Pagination parameters go
    into the body or the query string per ``paginationIn``; with a
    ``cursorTemplate`` the offset is formatted into it and no limit is sent.
    """
    value = page.offset if pagination.style == "offset" else page.number
    cursor = (
        pagination.cursor_template.replace("{offset}", str(value))
        if pagination.cursor_template
        else None
    )

    body: Dict[str, Any] = {**(schema.extraction.api_body or {}), **params}
    query: Dict[str, Any] = {}

    if pagination.pagination_in == "query":
        query[pagination.offset_param] = cursor if cursor is not None else str(value)
        if cursor is None:
            query[pagination.limit_param] = str(pagination.page_size)
        body.pop(pagination.offset_param, None)
        body.pop(pagination.limit_param, None)
    else:
        body[pagination.offset_param] = cursor if cursor is not None else value
        if cursor is None:
            body[pagination.limit_param] = pagination.page_size

    if schema.extraction.api_method == "GET":
        # GET requests carry no body
        query = {**{k: v for k, v in body.items() if not isinstance(v, (dict, list))}, **query}
    return query, body


class PaginationDriver:
    """Fetches follow-up pages for one URL and hands their variants back."""

    def __init__(
        self,
        fetcher: HttpFetcher,
        concurrency: Optional[int] = None,
        page_delay_ms: Optional[int] = None,
        page_attempts: int = 3,
        page_backoff_seconds: float = 1.0,
        sleep=None,
    ):
        """Initialize the driver.

        Args:
            fetcher: Shared rate-limited fetcher
            concurrency: API pages fetched per batch when the total is known
            page_delay_ms: Delay between API batches / sequential pages
            page_attempts: Attempts per API page before recording an error
            page_backoff_seconds: Linear backoff step between page attempts
            sleep: Awaitable sleep (defaults to asyncio.sleep)
        """
        self.fetcher = fetcher
        self.concurrency = concurrency or settings.API_PAGE_CONCURRENCY
        self.page_delay = (
            page_delay_ms if page_delay_ms is not None else settings.API_PAGE_DELAY_MS
        ) / 1000.0
        self.page_attempts = page_attempts
        self.page_backoff_seconds = page_backoff_seconds
        self._sleep = sleep or asyncio.sleep
        self.logger = logger.bind(service="pagination")

    # ------------------------------------------------------------------
    # HTML
    # ------------------------------------------------------------------

    async def fetch_listing_pages(
        self,
        ctx: PageContext,
        page_count: int,
        headers: Optional[Dict[str, str]] = None,
    ) -> List[Variant]:
        """Fetch listing pages 2..min(page_count, max_pages) sequentially."""
        last_page = min(page_count, ctx.max_pages)
        if last_page <= 1:
            return []

        ctx.pages.total += last_page - 1
        variants: List[Variant] = []
        for page_no in range(2, last_page + 1):
            if ctx.token.is_cancelled:
                break
            page_url = str(httpx.URL(ctx.url).copy_set_param("pageNo", page_no))
            html = await self.fetcher.fetch_text(page_url, headers=headers)
            ctx.pages.completed += 1
            if html is None:
                ctx.errors.append(ErrorEntry(page_url, "Failed to fetch pagination page"))
                continue

            result = parse_next_data_page(html)
            if result.diagnostic:
                ctx.errors.append(
                    ErrorEntry(page_url, "Could not parse __NEXT_DATA__ from pagination page")
                )
                continue
            variants.extend(result.variants)
            ctx.on_progress()

        self.logger.info("listing_pagination_complete", url=ctx.url, pages=last_page, variants=len(variants))
        return variants

    async def fetch_template_pages(
        self,
        ctx: PageContext,
        schema: ProductPageSchema,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> List[Variant]:
        """html-dom ``{offset}`` pagination; stops after two empty pages in a row."""
        config = schema.extraction.html_pagination
        if config is None:
            return []

        max_pages = min(config.max_pages, ctx.max_pages)
        variants: List[Variant] = []
        consecutive_empty = 0

        for page in range(1, max_pages):
            if ctx.token.is_cancelled:
                break
            offset = page * config.page_size
            page_url = resolve_full_url(
                config.url_template.replace("{offset}", str(offset)), base_url
            )

            ctx.pages.total += 1
            html = await self.fetcher.fetch_text(page_url, headers=headers)
            ctx.pages.completed += 1
            if html is None:
                ctx.errors.append(ErrorEntry(page_url, "Failed to fetch html-dom pagination page"))
                continue

            page_variants = parse_with_schema(html, schema).variants
            if not page_variants:
                consecutive_empty += 1
                self.logger.warning(
                    "template_page_empty",
                    url=page_url,
                    consecutive_empty=consecutive_empty,
                    html_chars=len(html),
                )
                if consecutive_empty >= MAX_CONSECUTIVE_EMPTY_PAGES:
                    break
                continue

            consecutive_empty = 0
            variants.extend(page_variants)
            ctx.on_progress()

        self.logger.info("template_pagination_complete", url=ctx.url, variants=len(variants))
        return variants

    # ------------------------------------------------------------------
    # JSON API
    # ------------------------------------------------------------------

    async def fetch_api_page(
        self,
        schema: ProductPageSchema,
        params: Dict[str, Any],
        pagination: ApiPaginationConfig,
        page: PageRequest,
        auth_token: Optional[str] = None,
    ) -> Optional[ApiResponse]:
        """Fetch one API page, retrying with linear backoff.

        Returns:
            ApiResponse, or None once every attempt has failed
        """
        query, body = build_page_request(schema, params, pagination, page)
        extraction = schema.extraction

        async def _request() -> Optional[ApiResponse]:
            response = await self.fetcher.fetch_api_json(
                extraction.api_url,
                method=extraction.api_method,
                params=query,
                headers=extraction.api_headers,
                body=body,
                auth_token=auth_token,
            )
            if response is None:
                self.logger.warning("api_page_attempt_failed", page=page.number, offset=page.offset)
            return response

        retrying = page_retrying(
            attempts=self.page_attempts,
            backoff_seconds=self.page_backoff_seconds,
            sleep=self._sleep,
        )
        return await retrying(_request)

    def _resolve_total(
        self,
        data: Any,
        pagination: ApiPaginationConfig,
        first_page_count: int,
    ) -> int:
        """Total item count from the first response, or 0 when unknown.

        A "total" no larger than a full first page is a per-page count,
        not a grand total.
        """
        total = resolve_path(data, pagination.total_path)
        if isinstance(total, bool) or not isinstance(total, (int, float)) or total <= 0:
            self.logger.warning("api_total_unresolved", total_path=pagination.total_path)
            return 0
        if total <= first_page_count and first_page_count >= pagination.page_size:
            self.logger.warning(
                "api_total_looks_per_page",
                total=total,
                first_page_count=first_page_count,
                page_size=pagination.page_size,
            )
            return 0
        return int(total)

    async def fetch_api_pages(
        self,
        ctx: PageContext,
        schema: ProductPageSchema,
        params: Dict[str, Any],
        fold: FoldVariants,
        auth_token: Optional[str] = None,
    ) -> None:
        """Fetch every page of a paginated api-json endpoint.

        The first page discloses the total; the rest are fetched in batches
        when it is known, or one by one until an empty page otherwise.
        """
        pagination = schema.extraction.pagination
        first_page = PageRequest(index=0, offset=0)

        ctx.pages.total += 1
        first = await self.fetch_api_page(schema, params, pagination, first_page, auth_token)
        if first is None:
            ctx.pages.completed += 1
            ctx.errors.append(
                ErrorEntry(
                    ctx.url,
                    f"API pagination failed on first page after {self.page_attempts} retries",
                )
            )
            return

        first_result = parse_from_api_data(first.data, schema)
        total_items = self._resolve_total(first.data, pagination, len(first_result.variants))
        if total_items:
            ctx.pages.total += max(
                required_pages(total_items, pagination.page_size, ctx.max_pages) - 1, 0
            )
        ctx.pages.completed += 1

        await fold(first_result.variants)
        ctx.on_progress()

        if total_items and total_items <= pagination.page_size:
            return

        if total_items:
            await self._fetch_known_total(ctx, schema, params, pagination, total_items, fold, auth_token)
        else:
            await self._fetch_until_empty(ctx, schema, params, pagination, fold, auth_token)

    async def _fetch_known_total(
        self,
        ctx: PageContext,
        schema: ProductPageSchema,
        params: Dict[str, Any],
        pagination: ApiPaginationConfig,
        total_items: int,
        fold: FoldVariants,
        auth_token: Optional[str],
    ) -> None:
        remaining = plan_remaining_pages(total_items, pagination.page_size, ctx.max_pages)
        self.logger.info(
            "api_pagination_known_total",
            url=ctx.url,
            total_items=total_items,
            remaining_pages=len(remaining),
            concurrency=self.concurrency,
        )

        failed = 0
        for start in range(0, len(remaining), self.concurrency):
            if ctx.token.is_cancelled:
                break
            batch = remaining[start:start + self.concurrency]
            responses = await asyncio.gather(
                *(
                    self.fetch_api_page(schema, params, pagination, page, auth_token)
                    for page in batch
                )
            )

            for page, response in zip(batch, responses):
                if response is None:
                    failed += 1
                    ctx.errors.append(
                        ErrorEntry(
                            ctx.url,
                            f"API pagination failed at page {page.number} (offset {page.offset}) "
                            f"after {self.page_attempts} retries",
                        )
                    )
                    continue
                await fold(parse_from_api_data(response.data, schema).variants)

            if start + self.concurrency < len(remaining):
                await self._sleep(self.page_delay)

            ctx.pages.completed += len(batch)
            ctx.on_progress()

        self.logger.info(
            "api_pagination_complete",
            url=ctx.url,
            pages=len(remaining) + 1,
            failed_pages=failed,
        )

    async def _fetch_until_empty(
        self,
        ctx: PageContext,
        schema: ProductPageSchema,
        params: Dict[str, Any],
        pagination: ApiPaginationConfig,
        fold: FoldVariants,
        auth_token: Optional[str],
    ) -> None:
        index = 1
        while index < ctx.max_pages:
            if ctx.token.is_cancelled:
                break
            page = PageRequest(index=index, offset=index * pagination.page_size)
            ctx.pages.total += 1
            response = await self.fetch_api_page(schema, params, pagination, page, auth_token)
            ctx.pages.completed += 1

            if response is None:
                ctx.errors.append(
                    ErrorEntry(
                        ctx.url,
                        f"API pagination failed at page {page.number} (offset {page.offset}) "
                        f"after {self.page_attempts} retries",
                    )
                )
                break

            variants = parse_from_api_data(response.data, schema).variants
            if not variants:
                self.logger.info("api_pagination_empty_page", url=ctx.url, page=page.number)
                break

            await fold(variants)
            ctx.on_progress()
            index += 1
            await self._sleep(self.page_delay)
