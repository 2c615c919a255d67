"""
Shopify API Client — Handles all HTTP communication with a Shopify store.

This module is responsible for every call the aggregator makes upstream.
It uses two Shopify Admin API surfaces plus one storage endpoint:

  1. REST Admin API — Used for themes, products, collections, blogs, pages
     and metafields (list + update).

  2. GraphQL Admin API — Used for the Files API, metaobjects, staged uploads
     and metaobject updates.

  3. Staged upload targets — Pre-signed storage URLs returned by
     stagedUploadsCreate. These receive the raw bytes and must NOT see the
     store's access token.

Authentication:
    The access token is an opaque credential handed in by the caller (the
    OAuth layer lives elsewhere). It is attached as the
    X-Shopify-Access-Token header on REST and GraphQL calls only.

Throttling and errors:
    Every call waits on the injected RateLimiter first. Transport failures,
    timeouts and non-2xx answers are logged with the failing URL and raised
    as UpstreamError; 429 answers raise RateLimited so the paginator can
    retry them.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from .errors import RateLimited, UpstreamError
from .rate_limiter import RateLimiter, get_shared_limiter
from .settings import DEFAULT_SETTINGS

logger = logging.getLogger(__name__)


def normalize_shop_domain(shop: str) -> str:
    """Strip scheme and trailing slashes: "https://x.myshopify.com/" -> "x.myshopify.com"."""
    shop = shop.strip()
    for prefix in ("https://", "http://"):
        if shop.startswith(prefix):
            shop = shop[len(prefix):]
    return shop.rstrip("/")


class ShopifyClient:
    """Client for the Shopify Admin REST and GraphQL APIs of one store.

    Attributes:
        shop: Store domain (e.g., "acme.myshopify.com").
        api_version: Admin API version used in every path.
        timeout: Per-call timeout in seconds.
        debug: If True, log every request at DEBUG level.
    """

    def __init__(
        self,
        shop: str,
        access_token: str,
        rate_limiter: Optional[RateLimiter] = None,
        api_version: str = DEFAULT_SETTINGS["SHOPIFY_API_VERSION"],
        timeout: float = DEFAULT_SETTINGS["REQUEST_TIMEOUT"],
        session: Optional[requests.Session] = None,
        debug: bool = False,
    ):
        """Initialize the client.

        Args:
            shop: Store domain, with or without scheme.
            access_token: Admin API access token for the store.
            rate_limiter: Throttle gate; defaults to the process-wide limiter.
            api_version: Admin API version (e.g., "2023-10").
            timeout: Seconds before a stalled call counts as failed.
            session: Optional requests.Session to reuse (tests inject mocks).
            debug: Enable verbose request logging.
        """
        self.shop = normalize_shop_domain(shop)
        self._access_token = access_token
        self.rate_limiter = rate_limiter or get_shared_limiter()
        self.api_version = api_version
        self.timeout = timeout
        self.debug = debug
        self._session = session or requests.Session()

    @property
    def api_base(self) -> str:
        return f"https://{self.shop}/admin/api/{self.api_version}"

    @property
    def graphql_url(self) -> str:
        return f"{self.api_base}/graphql.json"

    def rest_url(self, path: str) -> str:
        """Resolve a REST path ("products.json") or pass a full URL through."""
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.api_base}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        url: str,
        authenticated: bool = True,
        **kwargs: Any,
    ) -> requests.Response:
        """Issue one throttled HTTP call.

        Args:
            method: HTTP verb.
            url: Absolute URL.
            authenticated: Attach the store access token header.
            **kwargs: Passed to requests (json, params, data, files, ...).

        Returns:
            The successful requests.Response.

        Raises:
            RateLimited: Shopify answered 429.
            UpstreamError: Network failure, timeout or any other non-2xx.
        """
        headers = dict(kwargs.pop("headers", None) or {})
        if authenticated:
            headers["X-Shopify-Access-Token"] = self._access_token

        self.rate_limiter.wait()

        if self.debug:
            logger.debug("%s %s", method, url)

        try:
            response = self._session.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            logger.error("[API Error] %s: %s", url, e)
            raise UpstreamError(url, str(e)) from e

        if response.status_code == 429:
            logger.warning("[API Error] %s: rate limited (429)", url)
            raise RateLimited(url)

        if not 200 <= response.status_code < 300:
            message = (response.text or "")[:500]
            logger.error("[API Error] %s: HTTP %s %s", url, response.status_code, message)
            raise UpstreamError(url, message, status=response.status_code)

        return response

    def get(self, path: str, params: Optional[Dict] = None) -> requests.Response:
        return self.request("GET", self.rest_url(path), params=params)

    def get_json(self, path: str, params: Optional[Dict] = None) -> Dict[str, Any]:
        return self.get(path, params=params).json()

    def put_json(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("PUT", self.rest_url(path), json=payload).json()

    def graphql(self, query: str, variables: Optional[Dict] = None) -> Dict[str, Any]:
        """Execute a GraphQL query or mutation against the Admin API.

        Args:
            query: The GraphQL document.
            variables: Optional dict of GraphQL variables.

        Returns:
            The "data" portion of the GraphQL response (a dict).

        Raises:
            UpstreamError: HTTP failure, or the response contains an "errors" array.
        """
        payload = {"query": query}
        if variables:
            payload["variables"] = variables

        response = self.request(
            "POST",
            self.graphql_url,
            json=payload,
            headers={"Content-Type": "application/json"},
        )
        result = response.json()

        if result.get("errors"):
            error_messages = [e.get("message", str(e)) for e in result["errors"]]
            message = f"GraphQL errors: {'; '.join(error_messages)}"
            # Cost-based throttling comes back as HTTP 200 with a THROTTLED error
            if any((e.get("extensions") or {}).get("code") == "THROTTLED" for e in result["errors"]):
                logger.warning("[API Error] %s: %s", self.graphql_url, message)
                raise RateLimited(self.graphql_url, message)
            logger.error("[API Error] %s: %s", self.graphql_url, message)
            raise UpstreamError(self.graphql_url, message)

        return result.get("data") or {}

    def upload_staged(
        self,
        target_url: str,
        parameters: List[Dict[str, str]],
        content: bytes,
        filename: str,
        mime_type: str,
    ) -> requests.Response:
        """POST raw bytes to a pre-signed staged upload target.

        The form parameters returned by stagedUploadsCreate must be sent
        before the file part, in the order given.
        """
        form = [(param["name"], param["value"]) for param in parameters]
        return self.request(
            "POST",
            target_url,
            authenticated=False,
            data=form,
            files={"file": (filename, content, mime_type)},
        )

    def get_shop(self) -> Dict[str, Any]:
        """Fetch the shop record; a cheap way to check the token is valid."""
        return self.get_json("shop.json").get("shop", {})
