"""
Errors — Exception taxonomy for the media aggregator.

  UpstreamError       Network failure, timeout or non-2xx from Shopify.
  RateLimited         A 429 from Shopify (subclass of UpstreamError).
  ResourceNotFound    A replace search fallback ran out of candidates.
  ReplacementError    Any other failure inside a replace chain.
  ResourceExhaustion  The memory ceiling was hit while paging a listing.

Aggregation never lets these escape for a single source; replacement
surfaces them to the caller.
"""

from typing import Optional


class ShopifyMediaError(Exception):
    """Base class for all aggregator errors."""


class UpstreamError(ShopifyMediaError):
    """A Shopify call failed at the transport or HTTP level."""

    def __init__(self, url: str, message: str, status: Optional[int] = None):
        self.url = url
        self.status = status
        self.message = message
        prefix = f"HTTP {status}" if status else "Request failed"
        super().__init__(f"{prefix} for {url}: {message}")


class RateLimited(UpstreamError):
    """Shopify answered 429 Too Many Requests."""

    def __init__(self, url: str, message: str = "Too Many Requests"):
        super().__init__(url, message, status=429)


class ResourceNotFound(ShopifyMediaError):
    """No store resource references the image being replaced."""


class ReplacementError(ShopifyMediaError):
    """A replace operation failed part way through its chain."""


class ResourceExhaustion(ShopifyMediaError):
    """Process memory crossed the configured ceiling."""

    def __init__(self, used_mb: float, limit_mb: float):
        self.used_mb = used_mb
        self.limit_mb = limit_mb
        super().__init__(f"Memory usage {used_mb:.0f} MB exceeds limit of {limit_mb:.0f} MB")
