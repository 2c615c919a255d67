"""Shared fixtures: an in-memory Shopify store and small image payloads."""

import io

import pytest
from PIL import Image

from shopify_media.errors import UpstreamError
from shopify_media.paginator import MemoryGuard, Paginator, RetryPolicy

SHOP = "test-shop.myshopify.com"
API_BASE = f"https://{SHOP}/admin/api/2023-10"


class FakeResponse:
    def __init__(self, body, link=None):
        self._body = body
        self.headers = {"Link": link} if link else {}

    def json(self):
        return self._body


class FakeShopifyClient:
    """Serves canned REST and GraphQL answers keyed like the real endpoints.

    rest:    {"products.json": body, ...}. Keys are paths relative to the
             Admin API base, including the query string of follow-up pages.
             A value may be a dict body, a FakeResponse, an exception
             instance or a list of those consumed one per call (the last
             entry repeats).
    graphql: {"operationName": value} matched against the query text, with
             the same value forms; callables receive the variables.
    puts:    {"path": body or callable(payload)}; default echoes the payload.

    Every call is recorded so tests can assert on what was sent.
    """

    shop = SHOP
    api_base = API_BASE

    def __init__(self, rest=None, graphql=None, puts=None):
        self.rest = dict(rest or {})
        self.graphql_answers = dict(graphql or {})
        self.puts = dict(puts or {})
        self.get_calls = []
        self.put_calls = []
        self.graphql_calls = []
        self.uploads = []

    @staticmethod
    def response(body, link=None):
        return FakeResponse(body, link)

    def rest_url(self, path):
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{API_BASE}/{path.lstrip('/')}"

    def _next(self, entries, key, url, argument=None):
        if key not in entries:
            raise UpstreamError(url, "Not Found", status=404)
        value = entries[key]
        if isinstance(value, list):
            value = value.pop(0) if len(value) > 1 else value[0]
        if isinstance(value, Exception):
            raise value
        if callable(value):
            value = value(argument)
        return value

    def get(self, path, params=None):
        url = self.rest_url(path)
        self.get_calls.append((url, params))
        key = url[len(API_BASE) + 1:] if url.startswith(API_BASE) else url
        value = self._next(self.rest, key, url)
        return value if isinstance(value, FakeResponse) else FakeResponse(value)

    def get_json(self, path, params=None):
        return self.get(path, params=params).json()

    def put_json(self, path, payload):
        self.put_calls.append((path, payload))
        if path not in self.puts:
            return payload
        return self._next(self.puts, path, self.rest_url(path), payload)

    def graphql(self, query, variables=None):
        self.graphql_calls.append((query, variables))
        for operation in self.graphql_answers:
            if operation in query:
                return self._next(self.graphql_answers, operation, API_BASE, variables)
        raise UpstreamError(f"{API_BASE}/graphql.json", f"No canned answer for query: {query[:40]}")

    def upload_staged(self, target_url, parameters, content, filename, mime_type):
        self.uploads.append({
            "url": target_url,
            "parameters": parameters,
            "content": content,
            "filename": filename,
            "mime_type": mime_type,
        })
        return FakeResponse({})

    def get_shop(self):
        return self.get_json("shop.json").get("shop", {})


def make_paginator(client, max_attempts=2, max_pages=200, usage_mb=None, limit_mb=0, sleeps=None):
    """Paginator with no real sleeping and the memory guard off by default."""
    guard = MemoryGuard(limit_mb, usage_mb=usage_mb or (lambda: 0.0))
    return Paginator(
        client,
        retry_policy=RetryPolicy(max_attempts=max_attempts, delay=2.0),
        memory_guard=guard,
        max_pages=max_pages,
        sleep=(sleeps.append if sleeps is not None else (lambda _seconds: None)),
    )


def staged_upload_answers(new_url="https://cdn.shopify.com/s/files/1/new-image.png",
                          file_id="gid://shopify/MediaImage/900"):
    """GraphQL answers for a successful stagedUploadsCreate + fileCreate."""
    return {
        "stagedUploadsCreate": {
            "stagedUploadsCreate": {
                "stagedUploads": [{
                    "url": "https://storage.example.com/upload",
                    "resourceUrl": "https://storage.example.com/upload/tmp/new-image.png",
                    "parameters": [
                        {"name": "key", "value": "tmp/new-image.png"},
                        {"name": "policy", "value": "abc"},
                    ],
                }],
                "userErrors": [],
            }
        },
        "fileCreate": {
            "fileCreate": {
                "files": [{"id": file_id, "fileStatus": "READY", "image": {"url": new_url}}],
                "userErrors": [],
            }
        },
    }


def _image_bytes(fmt, size=(4, 3)):
    buffer = io.BytesIO()
    Image.new("RGB", size, color=(200, 30, 30)).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def png_bytes():
    return _image_bytes("PNG")


@pytest.fixture
def jpeg_bytes():
    return _image_bytes("JPEG")


@pytest.fixture
def fake_client():
    """Factory for FakeShopifyClient instances."""
    return FakeShopifyClient
