"""Scrape job orchestration.

Connects the fetcher, extractors and pagination driver with the filter
engine, the seen tracker and the injected persistence services. One
``ScraperService`` runs at most one job at a time and owns the progress
tracker that the status endpoint reads.
"""

import dataclasses
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Set

import httpx
import structlog

from dealmonitor.config import settings
from dealmonitor.core.exceptions import (
    InvalidUrlError,
    JobAlreadyRunningError,
    SchemaValidationError,
    ScraperError,
)
from dealmonitor.scrapers.adapters.next_data import parse_next_data_page
from dealmonitor.scrapers.base import ParseResult, Variant
from dealmonitor.scrapers.http_client import HttpFetcher, interpolate_mapping
from dealmonitor.scrapers.pagination import (
    ErrorEntry,
    PageContext,
    PageCounter,
    PageRequest,
    PaginationDriver,
)
from dealmonitor.scrapers.price_verifier import PriceVerification, verify_price
from dealmonitor.scrapers.progress import ProgressTracker
from dealmonitor.scrapers.schema import ProductPageSchema, parse_schema_json
from dealmonitor.scrapers.schema_parser import parse_from_api_data, parse_with_schema
from dealmonitor.scrapers.utils.url import resolve_full_url, validate_scrape_url
from dealmonitor.services.contracts import (
    ConfigStore,
    DealPayload,
    DealRepository,
    NullWebhookDispatcher,
    PlaintextDecryptor,
    SecretDecryptor,
    UrlStatus,
    UrlStatusReporter,
    WebhookDispatcher,
    WebsiteRecord,
)
from dealmonitor.services.filter_engine import FilterCriteria, find_matching_filters
from dealmonitor.services.seen_tracker import SeenTracker

logger = structlog.get_logger(__name__)

AUTO_LOGIN_FAILED = "Session expired and auto-login failed to restore prices. Check login credentials."


@dataclass
class ScrapeResult:
    """Summary returned by every job run, including partial failures."""

    total_products_encountered: int = 0
    new_deals_found: int = 0
    duration_ms: int = 0
    errors: List[ErrorEntry] = field(default_factory=list)


@dataclass
class _JobRun:
    filters: List[FilterCriteria]
    total_products: int = 0
    new_deals: int = 0
    errors: List[ErrorEntry] = field(default_factory=list)
    pages: PageCounter = field(default_factory=PageCounter)


@dataclass
class _WebsiteRun:
    website: WebsiteRecord
    schema: Optional[ProductPageSchema]
    auth_token: Optional[str]
    processed_ids: Set[str] = field(default_factory=set)
    pending_deals: List[DealPayload] = field(default_factory=list)


def pick_best_variant_per_product(
    variants: List[Variant],
    on_variant: Optional[Callable[[str], None]] = None,
) -> List[Variant]:
    """Best in-stock variant per productId.

    Highest discount wins, then the lowest best price. Every variant,
    in stock or not, is reported to ``on_variant`` by composite id.
    """
    best: Dict[str, Variant] = {}
    for variant in variants:
        if on_variant is not None:
            on_variant(variant.composite_id)
        if not variant.in_stock:
            continue
        current = best.get(variant.product_id)
        if (
            current is None
            or variant.discount_percentage > current.discount_percentage
            or (
                variant.discount_percentage == current.discount_percentage
                and variant.best_price < current.best_price
            )
        ):
            best[variant.product_id] = variant
    return list(best.values())


class ScraperService:
    """Runs scrape jobs: fetch, paginate, extract, filter, dedup, persist."""

    def __init__(
        self,
        config_store: ConfigStore,
        deal_repository: DealRepository,
        seen_tracker: SeenTracker,
        url_status_reporter: Optional[UrlStatusReporter] = None,
        decryptor: Optional[SecretDecryptor] = None,
        webhooks: Optional[WebhookDispatcher] = None,
        fetcher: Optional[HttpFetcher] = None,
        pagination: Optional[PaginationDriver] = None,
        progress: Optional[ProgressTracker] = None,
        max_pages: Optional[int] = None,
        ttl_days: Optional[int] = None,
        webhook_batch_size: Optional[int] = None,
        verify_discount_threshold: Optional[int] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """Initialize the service.

        Args:
            config_store: Source of websites, URLs and filters
            deal_repository: Persists deals and notifications
            seen_tracker: Dedup set for emitted deals
            url_status_reporter: Receives per-URL outcomes (defaults to
                ``deal_repository`` when it implements the method)
            decryptor: Decrypts per-site auth tokens
            webhooks: Receives batches of new deals per website
            fetcher: Shared rate-limited HTTP fetcher
            pagination: Pagination driver (built on ``fetcher`` if omitted)
            progress: Progress tracker exposed to the status endpoint
            max_pages: Page cap for every pagination policy
            ttl_days: Seen-entry lifetime
            webhook_batch_size: Pending deals that trigger a mid-site flush
            verify_discount_threshold: Discount from which detail pages are checked
            clock: Monotonic clock in seconds
        """
        self.config_store = config_store
        self.deal_repository = deal_repository
        self.seen_tracker = seen_tracker
        self.url_status_reporter = url_status_reporter or deal_repository
        self.decryptor = decryptor or PlaintextDecryptor()
        self.webhooks = webhooks or NullWebhookDispatcher()
        self.fetcher = fetcher or HttpFetcher()
        self.pagination = pagination or PaginationDriver(self.fetcher)
        self.progress = progress or ProgressTracker()
        self.max_pages = max_pages or settings.SCRAPE_MAX_PAGES
        self.ttl_days = ttl_days or settings.SEEN_TTL_DAYS
        self.webhook_batch_size = webhook_batch_size or settings.WEBHOOK_BATCH_SIZE
        self.verify_discount_threshold = (
            verify_discount_threshold
            if verify_discount_threshold is not None
            else settings.VERIFY_DISCOUNT_THRESHOLD
        )
        self._clock = clock or time.monotonic
        self._running = False
        self.logger = logger.bind(service="scraper_service")

    @property
    def is_running(self) -> bool:
        return self._running

    async def close(self) -> None:
        await self.fetcher.close()

    # ------------------------------------------------------------------
    # Job entry point
    # ------------------------------------------------------------------

    async def execute_scrape_job(
        self,
        website_id: Optional[str] = None,
        filter_id: Optional[str] = None,
    ) -> ScrapeResult:
        """Run one complete scrape job.

        Args:
            website_id: Limit the run to this website
            filter_id: Evaluate only this filter

        Returns:
            ScrapeResult with counters, duration and URL/page errors

        Raises:
            JobAlreadyRunningError: If a job is already running on this service
        """
        if self._running:
            raise JobAlreadyRunningError()
        self._running = True
        try:
            return await self._run_job(website_id, filter_id)
        finally:
            self._running = False

    async def _run_job(self, website_id: Optional[str], filter_id: Optional[str]) -> ScrapeResult:
        started = self._clock()
        self.progress.reset()
        run = _JobRun(filters=[])

        try:
            await self.seen_tracker.clean_expired_items()

            websites = await self.config_store.get_active_websites(website_id)
            if not websites:
                self.logger.info("no_active_websites", website_id=website_id)
                return self._finish(run, started)

            run.filters = await self.config_store.get_active_filters(filter_id)
            if not run.filters:
                self.logger.info("no_active_filters", filter_id=filter_id)
                return self._finish(run, started)

            self.logger.info(
                "scrape_job_started",
                websites=len(websites),
                filters=len(run.filters),
            )

            for website in websites:
                if self.progress.is_cancelled:
                    self.logger.info("scrape_job_cancelled")
                    break
                await self._process_website(run, website)

        except Exception as e:
            self.progress.fail(str(e))
            self.logger.error("scrape_job_failed", error=str(e), exc_info=True)
            raise

        return self._finish(run, started)

    def _finish(self, run: _JobRun, started: float) -> ScrapeResult:
        duration_ms = int((self._clock() - started) * 1000)
        cancelled = self.progress.is_cancelled
        if not cancelled:
            self.progress.complete(run.total_products, run.new_deals)

        self.logger.info(
            "scrape_job_cancelled" if cancelled else "scrape_job_complete",
            total_products=run.total_products,
            new_deals=run.new_deals,
            duration_ms=duration_ms,
            errors=len(run.errors),
        )
        return ScrapeResult(
            total_products_encountered=run.total_products,
            new_deals_found=run.new_deals,
            duration_ms=duration_ms,
            errors=run.errors,
        )

    # ------------------------------------------------------------------
    # Websites and URLs
    # ------------------------------------------------------------------

    def _resolve_schema(self, website: WebsiteRecord) -> Optional[ProductPageSchema]:
        """Custom schema, or None to use the default __NEXT_DATA__ parser."""
        if not website.product_schema:
            return None
        parsed = parse_schema_json(website.product_schema)
        if not parsed.valid:
            self.logger.warning("invalid_website_schema", website=website.name, error=parsed.error)
            return None
        return parsed.schema

    def _resolve_auth_token(self, website: WebsiteRecord) -> Optional[str]:
        if not website.auth_token:
            return None
        try:
            return self.decryptor.decrypt(website.auth_token)
        except Exception as e:
            self.logger.warning("auth_token_decrypt_failed", website=website.name, error=str(e))
            return None

    async def _process_website(self, run: _JobRun, website: WebsiteRecord) -> None:
        site = _WebsiteRun(
            website=website,
            schema=self._resolve_schema(website),
            auth_token=self._resolve_auth_token(website),
        )
        urls = await self.config_store.get_urls(website.id)
        self.logger.info(
            "website_started",
            website=website.name,
            urls=len(urls),
            method=site.schema.method if site.schema else "next-data",
            auth_token_present=site.auth_token is not None,
        )

        for url_row in urls:
            if self.progress.is_cancelled:
                self.logger.info("scrape_job_cancelled", website=website.name)
                break

            self.progress.update(current_website=website.name)
            products_before = run.total_products
            errors_before = len(run.errors)
            try:
                await self._process_url(run, site, url_row.url)
                row_urls = (url_row.url, url_row.url.strip())
                url_error = next(
                    (e for e in run.errors[errors_before:] if e.url in row_urls),
                    None,
                )
                await self.url_status_reporter.update_url_status(
                    url_row.id,
                    UrlStatus(
                        status="error" if url_error else "ok",
                        error=url_error.message if url_error else None,
                        count=run.total_products - products_before,
                        scraped_at=datetime.now(timezone.utc),
                    ),
                )
            except Exception as e:
                self.logger.error(
                    "url_processing_failed",
                    url=url_row.url,
                    error=str(e),
                    exc_info=True,
                )
                run.errors.append(ErrorEntry(url_row.url, str(e)))
                await self.url_status_reporter.update_url_status(
                    url_row.id,
                    UrlStatus(
                        status="error",
                        error=str(e),
                        count=0,
                        scraped_at=datetime.now(timezone.utc),
                    ),
                )

        await self._flush_webhooks(site)

    def _page_headers(self, site: _WebsiteRun) -> Dict[str, str]:
        """Interpolated schema headers sent on html page fetches."""
        if site.schema is None:
            return {}
        headers = interpolate_mapping(
            site.schema.extraction.api_headers, site.auth_token, self.fetcher.env
        )
        if headers:
            self.logger.debug(
                "page_headers",
                keys=sorted(headers),
                cookie_present="Cookie" in headers,
                auth_token_chars=len(site.auth_token) if site.auth_token else 0,
            )
        return headers

    def _report_progress(self, run: _JobRun) -> None:
        self.progress.update(
            current_page=run.pages.completed,
            total_pages=run.pages.total,
            total_products=run.total_products,
            new_deals=run.new_deals,
            unique_products=self.progress.unique_product_count,
        )

    async def _process_url(self, run: _JobRun, site: _WebsiteRun, raw_url: str) -> None:
        validation = validate_scrape_url(raw_url)
        if not validation.valid:
            run.errors.append(ErrorEntry(raw_url, validation.error or "Invalid URL"))
            return

        ctx = PageContext(
            url=validation.url,
            token=self.progress.token,
            errors=run.errors,
            pages=run.pages,
            max_pages=self.max_pages,
            on_progress=lambda: self._report_progress(run),
        )
        schema = site.schema

        if schema is not None and schema.method == "api-json":
            await self._process_api_url(run, site, ctx)
            return

        headers = self._page_headers(site)
        run.pages.total += 1
        html = await self.fetcher.fetch_text(ctx.url, headers=headers)
        if html is None:
            run.pages.completed += 1
            run.errors.append(ErrorEntry(ctx.url, "Failed to fetch (retries exhausted or unreachable)"))
            return

        if schema is not None:
            variants = list(parse_with_schema(html, schema).variants)
            if schema.method == "html-dom":
                if not variants and schema.extraction.login is not None:
                    variants = await self._retry_with_login(site, ctx, headers)
                if schema.extraction.html_pagination is not None:
                    variants.extend(
                        await self.pagination.fetch_template_pages(
                            ctx, schema, site.website.base_url, headers
                        )
                    )
            await self._fold_variants(run, site, variants, verify_headers=headers)
        else:
            result = parse_next_data_page(html)
            if result.diagnostic:
                run.pages.completed += 1
                run.errors.append(ErrorEntry(ctx.url, "Could not parse __NEXT_DATA__ from page"))
                return
            variants = list(result.variants)
            if result.page_type == "listing":
                variants.extend(await self.pagination.fetch_listing_pages(ctx, result.page_count))
            await self._fold_variants(run, site, variants)

        run.pages.completed += 1
        self._report_progress(run)

    async def _retry_with_login(
        self,
        site: _WebsiteRun,
        ctx: PageContext,
        headers: Dict[str, str],
    ) -> List[Variant]:
        """Log in and re-fetch a page that came back without products.

        On success the session cookie is written into ``headers`` so later
        pages of the same URL reuse it.
        """
        login = site.schema.extraction.login
        self.logger.info("auto_login_started", url=ctx.url, login_url=login.url)

        cookie = await self.fetcher.login_session(
            ctx.url,
            login,
            user_agent=headers.get("User-Agent"),
            auth_token=site.auth_token,
        )
        variants: List[Variant] = []
        if cookie is not None:
            headers["Cookie"] = cookie
            html = await self.fetcher.fetch_text(ctx.url, headers=headers)
            if html is not None:
                variants = list(parse_with_schema(html, site.schema).variants)

        if not variants:
            self.logger.warning("auto_login_failed", url=ctx.url)
            ctx.errors.append(ErrorEntry(ctx.url, AUTO_LOGIN_FAILED))
        return variants

    async def _process_api_url(self, run: _JobRun, site: _WebsiteRun, ctx: PageContext) -> None:
        schema = site.schema
        extraction = schema.extraction
        if not extraction.api_url:
            run.errors.append(ErrorEntry(ctx.url, "api-json schema has no apiUrl"))
            return

        # Query params of the monitored URL override the schema's defaults
        params = dict(extraction.api_params)
        for key, value in httpx.URL(ctx.url).params.multi_items():
            params[key] = value

        async def fold(variants: List[Variant]) -> None:
            await self._fold_variants(run, site, variants)

        if extraction.pagination is not None:
            await self.pagination.fetch_api_pages(ctx, schema, params, fold, site.auth_token)
            return

        run.pages.total += 1
        response = await self.fetcher.fetch_api_json(
            extraction.api_url,
            method=extraction.api_method,
            params=params,
            headers=extraction.api_headers,
            body=extraction.api_body,
            auth_token=site.auth_token,
        )
        run.pages.completed += 1
        if response is None:
            run.errors.append(ErrorEntry(ctx.url, "API request failed for api-json schema"))
            return

        await fold(parse_from_api_data(response.data, schema).variants)
        self._report_progress(run)

    # ------------------------------------------------------------------
    # Matching and emission
    # ------------------------------------------------------------------

    async def _fold_variants(
        self,
        run: _JobRun,
        site: _WebsiteRun,
        variants: List[Variant],
        verify_headers: Optional[Dict[str, str]] = None,
    ) -> None:
        """Evaluate one batch of variants; never called concurrently."""
        run.total_products += len(variants)
        for variant in pick_best_variant_per_product(variants, self.progress.track_unique_product):
            if variant.product_id in site.processed_ids:
                continue
            site.processed_ids.add(variant.product_id)
            await self._evaluate_and_persist(run, site, variant, verify_headers)

    async def _evaluate_and_persist(
        self,
        run: _JobRun,
        site: _WebsiteRun,
        variant: Variant,
        verify_headers: Optional[Dict[str, str]],
    ) -> None:
        matches = find_matching_filters(variant, run.filters)
        if not matches:
            return
        matched = matches[0]

        # Dedup on the product, not the SKU
        if not await self.seen_tracker.is_new_deal(variant.product_id):
            return

        base_url = site.website.base_url
        product_url = resolve_full_url(variant.product_url, base_url) or ""
        image_url = resolve_full_url(variant.image_url, base_url)

        verification = PriceVerification()
        if (
            verify_headers is not None
            and variant.discount_percentage >= self.verify_discount_threshold
            and product_url.startswith("http")
        ):
            verification = await verify_price(
                self.fetcher, product_url, variant.best_price, headers=verify_headers
            )

        self.logger.info(
            "new_deal_found",
            product_id=variant.product_id,
            name=variant.display_name[:60],
            discount=str(variant.discount_percentage),
            best_price=str(variant.best_price),
            filter_id=matched.id,
            price_verification=verification.status,
        )

        resolved = dataclasses.replace(variant, product_url=product_url, image_url=image_url)
        deal_id = await self.deal_repository.insert_deal(resolved, matched.id)
        await self.seen_tracker.mark_as_seen(variant.product_id, self.ttl_days)
        await self.deal_repository.create_notification(deal_id)
        run.new_deals += 1

        site.pending_deals.append(
            DealPayload(
                product_name=variant.display_name,
                brand=variant.brand,
                list_price=variant.list_price,
                best_price=variant.best_price,
                discount_percentage=variant.discount_percentage,
                image_url=image_url,
                product_url=product_url,
                website_name=site.website.name,
                price_verification=verification.status,
                detail_price=verification.detail_price,
            )
        )
        if len(site.pending_deals) >= self.webhook_batch_size:
            await self._flush_webhooks(site)

    async def _flush_webhooks(self, site: _WebsiteRun) -> None:
        if not site.pending_deals:
            return
        batch, site.pending_deals = site.pending_deals, []
        try:
            await self.webhooks.dispatch(site.website.id, batch)
        except Exception as e:
            self.logger.error(
                "webhook_dispatch_failed",
                website=site.website.name,
                deals=len(batch),
                error=str(e),
            )

    # ------------------------------------------------------------------
    # Preview
    # ------------------------------------------------------------------

    async def preview_url(self, url: str, schema_json: Optional[str] = None) -> ParseResult:
        """Parse the first page of ``url`` without persisting anything.

        Raises:
            InvalidUrlError: If the URL is not an absolute http(s) URL
            SchemaValidationError: If ``schema_json`` is given and invalid
            ScraperError: If the page or API could not be fetched
        """
        validation = validate_scrape_url(url)
        if not validation.valid:
            raise InvalidUrlError(validation.error)
        url = validation.url

        schema: Optional[ProductPageSchema] = None
        if schema_json:
            parsed = parse_schema_json(schema_json)
            if not parsed.valid:
                raise SchemaValidationError(parsed.error)
            schema = parsed.schema

        if schema is None:
            html = await self.fetcher.fetch_text(url)
            if html is None:
                raise ScraperError(url, "Failed to fetch page")
            return parse_next_data_page(html)

        extraction = schema.extraction
        if schema.method == "api-json":
            if not extraction.api_url:
                raise SchemaValidationError("api-json schema has no apiUrl")
            params = dict(extraction.api_params)
            for key, value in httpx.URL(url).params.multi_items():
                params[key] = value
            if extraction.pagination is not None:
                response = await self.pagination.fetch_api_page(
                    schema, params, extraction.pagination, PageRequest(index=0, offset=0)
                )
            else:
                response = await self.fetcher.fetch_api_json(
                    extraction.api_url,
                    method=extraction.api_method,
                    params=params,
                    headers=extraction.api_headers,
                    body=extraction.api_body,
                )
            if response is None:
                raise ScraperError(url, "API request failed")
            return parse_from_api_data(response.data, schema)

        headers = interpolate_mapping(extraction.api_headers, None, self.fetcher.env)
        html = await self.fetcher.fetch_text(url, headers=headers)
        if html is None:
            raise ScraperError(url, "Failed to fetch page")
        return parse_with_schema(html, schema)
