"""
Paginator — Drives Shopify list calls page by page until exhaustion.

Two pagination styles are handled uniformly and both return a PageResult:

  Link-header style (REST):
      GET products.json?limit=250
      Link: <https://shop/admin/api/2023-10/products.json?page_info=abc>; rel="next"
      The rel="next" URL is followed until the header no longer carries one.

  Cursor style (GraphQL connections):
      files(first: 100, after: $after) { edges { node } pageInfo { hasNextPage endCursor } }
      The endCursor is fed back as $after until hasNextPage is false.

Stopping early:
  - A 429 is retried according to RetryPolicy (one retry after a fixed delay).
    If the page is still rate limited, paging stops and the result is marked
    partial. It is not an error for the caller.
  - The MemoryGuard and max_pages bounds stop paging the same way.
  - Any other UpstreamError propagates to the calling extractor.
"""

import functools
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type

import psutil

from .errors import RateLimited, ResourceExhaustion
from .settings import DEFAULT_SETTINGS

logger = logging.getLogger(__name__)

NEXT_LINK_PATTERN = re.compile(r'<([^>]+)>;\s*rel="next"')


def parse_next_link(link_header: Optional[str]) -> Optional[str]:
    """Extract the rel="next" URL from a Link header, or None."""
    if not link_header or 'rel="next"' not in link_header:
        return None
    match = NEXT_LINK_PATTERN.search(link_header)
    return match.group(1) if match else None


@dataclass
class RetryPolicy:
    max_attempts: int = DEFAULT_SETTINGS["RATE_LIMIT_MAX_ATTEMPTS"]
    delay: float = DEFAULT_SETTINGS["RATE_LIMIT_RETRY_DELAY"]
    retry_on: Tuple[Type[Exception], ...] = (RateLimited,)


@dataclass
class RetryOutcome:
    value: Any = None
    exhausted: bool = False
    attempts: int = 0


def retry_call(
    policy: RetryPolicy,
    operation: Callable[[], Any],
    sleep: Callable[[float], None] = time.sleep,
) -> RetryOutcome:
    """Run operation, retrying the policy's exceptions with a fixed delay.

    Returns a RetryOutcome with exhausted=True when every attempt failed with
    a retryable error. Other exceptions propagate untouched.
    """
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return RetryOutcome(value=operation(), attempts=attempt)
        except policy.retry_on as e:
            logger.warning("Attempt %d/%d failed: %s", attempt, policy.max_attempts, e)
            if attempt < policy.max_attempts:
                sleep(policy.delay)
    return RetryOutcome(exhausted=True, attempts=policy.max_attempts)


def _process_rss_mb() -> float:
    return psutil.Process().memory_info().rss / (1024 * 1024)


class MemoryGuard:
    """Soft ceiling on process memory while a listing grows.

    Attributes:
        limit_mb: RSS ceiling in megabytes; 0 or less disables the guard.
    """

    def __init__(self, limit_mb: float = DEFAULT_SETTINGS["MEMORY_LIMIT_MB"],
                 usage_mb: Callable[[], float] = _process_rss_mb):
        self.limit_mb = limit_mb
        self._usage_mb = usage_mb

    def check(self) -> None:
        """Raise ResourceExhaustion if current usage is above the ceiling."""
        if self.limit_mb <= 0:
            return
        used = self._usage_mb()
        if used > self.limit_mb:
            raise ResourceExhaustion(used, self.limit_mb)


@dataclass
class PageResult:
    items: List[Any] = field(default_factory=list)
    partial: bool = False
    pages: int = 0


class Paginator:
    """Fetches every page of a REST or GraphQL listing through one client.

    Attributes:
        client: The ShopifyClient used for every page request.
        retry_policy: How 429 responses are retried.
        memory_guard: Checked before each page.
        max_pages: Hard bound on pages per listing.
    """

    def __init__(
        self,
        client,
        retry_policy: Optional[RetryPolicy] = None,
        memory_guard: Optional[MemoryGuard] = None,
        max_pages: int = DEFAULT_SETTINGS["MAX_PAGES"],
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy()
        self.memory_guard = memory_guard or MemoryGuard()
        self.max_pages = max_pages
        self._sleep = sleep

    def _may_fetch(self, pages: int, label: str) -> bool:
        if pages >= self.max_pages:
            logger.warning("Stopping %s after %d pages (page limit)", label, pages)
            return False
        try:
            self.memory_guard.check()
        except ResourceExhaustion as e:
            logger.warning("Stopping %s after %d pages: %s", label, pages, e)
            return False
        return True

    def list_all(
        self,
        path: str,
        extract_page: Callable[[Dict[str, Any]], List[Any]],
        params: Optional[Dict[str, Any]] = None,
    ) -> PageResult:
        """Follow Link-header pagination starting at a REST path.

        Args:
            path: First page path (e.g., "products.json") or absolute URL.
            extract_page: Pulls the item list out of one page's JSON body.
            params: Query parameters for the first page only; later pages
                    carry their own query string in the next link.

        Returns:
            PageResult with all items in page order.
        """
        result = PageResult()
        url = self.client.rest_url(path)

        while url:
            if not self._may_fetch(result.pages, path):
                result.partial = True
                break

            outcome = retry_call(
                self.retry_policy,
                functools.partial(self.client.get, url, params=params),
                self._sleep,
            )
            if outcome.exhausted:
                logger.warning("Rate limit retries exhausted for %s, returning partial results", url)
                result.partial = True
                break

            response = outcome.value
            result.items.extend(extract_page(response.json()) or [])
            result.pages += 1
            logger.debug("%s: page %d, %d items so far", path, result.pages, len(result.items))

            url = parse_next_link(response.headers.get("Link"))
            params = None

        return result

    def list_connection(
        self,
        query: str,
        connection_path: Sequence[str],
        variables: Optional[Dict[str, Any]] = None,
        map_node: Optional[Callable[[Dict[str, Any]], Any]] = None,
    ) -> PageResult:
        """Follow cursor pagination of a GraphQL connection.

        Args:
            query: GraphQL document taking an $after cursor variable.
            connection_path: Keys leading from "data" to the connection
                             (e.g., ("files",) or ("metaobjects",)).
            variables: Base variables sent with every page.
            map_node: Optional transform applied to each edge's node.

        Returns:
            PageResult with the (mapped) nodes in page order.
        """
        result = PageResult()
        label = ".".join(connection_path)
        cursor = None

        while True:
            if not self._may_fetch(result.pages, label):
                result.partial = True
                break

            page_vars = dict(variables or {})
            if cursor:
                page_vars["after"] = cursor

            outcome = retry_call(
                self.retry_policy,
                functools.partial(self.client.graphql, query, page_vars),
                self._sleep,
            )
            if outcome.exhausted:
                logger.warning("Rate limit retries exhausted for %s, returning partial results", label)
                result.partial = True
                break

            connection = outcome.value
            for key in connection_path:
                connection = (connection or {}).get(key)
            connection = connection or {}

            for edge in connection.get("edges") or []:
                node = edge.get("node")
                if node is not None:
                    result.items.append(map_node(node) if map_node else node)
            result.pages += 1

            page_info = connection.get("pageInfo") or {}
            cursor = page_info.get("endCursor")
            if not page_info.get("hasNextPage") or not cursor:
                break

        return result
