"""Custom exception classes for the application."""

from typing import Optional


class DealMonitorException(Exception):
    """Base exception for all DealMonitor errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class ScraperError(DealMonitorException):
    """Raised when a scraper encounters an error."""

    def __init__(self, source: str, message: str):
        super().__init__(f"Scraper error for {source}: {message}")


class FetchError(DealMonitorException):
    """Raised by the HTTP fetcher for a failed attempt."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class RetryableFetchError(FetchError):
    """Network failure, timeout, or a throttling status (429, 403, 503)."""


class NonRetryableFetchError(FetchError):
    """Any other non-2xx status. Never retried."""


class SchemaValidationError(DealMonitorException):
    """Raised when a product page schema document is invalid."""


class JobAlreadyRunningError(DealMonitorException):
    """Raised when a scrape job is triggered while another one is running."""

    def __init__(self):
        super().__init__("Scrape already in progress")


class DecryptionError(DealMonitorException):
    """Raised when a stored website secret cannot be decrypted."""


class InvalidUrlError(DealMonitorException):
    """Raised when a URL submitted for scraping is not an absolute http(s) URL."""
