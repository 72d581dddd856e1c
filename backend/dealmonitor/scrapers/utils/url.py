"""URL validation and resolution helpers."""

from typing import Optional
from urllib.parse import urljoin, urlparse

from pydantic import BaseModel


class UrlValidationResult(BaseModel):
    valid: bool
    url: Optional[str] = None
    error: Optional[str] = None


def validate_scrape_url(raw: Optional[str]) -> UrlValidationResult:
    """Validate a product page URL before it is fetched.

    The value is trimmed and must start with http:// or https://.
    """
    url = (raw or "").strip()
    if not url:
        return UrlValidationResult(valid=False, error="URL is required")
    lowered = url.lower()
    if not (lowered.startswith("http://") or lowered.startswith("https://")):
        return UrlValidationResult(valid=False, error="URL must start with http:// or https://")
    if not urlparse(url).netloc:
        return UrlValidationResult(valid=False, error="URL has no host")
    return UrlValidationResult(valid=True, url=url)


def resolve_full_url(url: Optional[str], base_url: str) -> Optional[str]:
    """Resolve a possibly relative product/image URL against a site base URL.

    Absolute and protocol-relative URLs are returned as-is (the latter
    with https added).
    """
    if not url:
        return url
    if url.startswith("http://") or url.startswith("https://"):
        return url
    if url.startswith("//"):
        return f"https:{url}"
    base = base_url if base_url.endswith("/") else f"{base_url}/"
    return urljoin(base, url)
