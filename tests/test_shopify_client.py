"""Tests for shopify_media.shopify_client.ShopifyClient."""

from unittest.mock import MagicMock

import pytest
import requests

from shopify_media.errors import RateLimited, UpstreamError
from shopify_media.rate_limiter import RateLimiter
from shopify_media.shopify_client import ShopifyClient, normalize_shop_domain


def _response(status=200, body=None, text="", headers=None):
    response = MagicMock()
    response.status_code = status
    response.json.return_value = body if body is not None else {}
    response.text = text
    response.headers = headers or {}
    return response


def _make_client(*responses):
    session = MagicMock()
    session.request.side_effect = list(responses)
    limiter = MagicMock(spec=RateLimiter)
    client = ShopifyClient("acme.myshopify.com", "shpat_token", rate_limiter=limiter, session=session)
    return client, session, limiter


def test_normalize_shop_domain():
    assert normalize_shop_domain("https://acme.myshopify.com/") == "acme.myshopify.com"
    assert normalize_shop_domain("acme.myshopify.com") == "acme.myshopify.com"


def test_rest_url_and_graphql_url():
    client, _, _ = _make_client()
    assert client.rest_url("products.json") == "https://acme.myshopify.com/admin/api/2023-10/products.json"
    assert client.graphql_url == "https://acme.myshopify.com/admin/api/2023-10/graphql.json"
    absolute = "https://acme.myshopify.com/admin/api/2023-10/products.json?page_info=x"
    assert client.rest_url(absolute) == absolute


def test_get_sends_token_and_waits_on_limiter():
    client, session, limiter = _make_client(_response(body={"products": []}))

    assert client.get_json("products.json", params={"limit": 250}) == {"products": []}

    limiter.wait.assert_called_once()
    method, url = session.request.call_args[0]
    kwargs = session.request.call_args[1]
    assert method == "GET"
    assert url.endswith("/products.json")
    assert kwargs["headers"]["X-Shopify-Access-Token"] == "shpat_token"
    assert kwargs["params"] == {"limit": 250}
    assert kwargs["timeout"] == 30


def test_429_raises_rate_limited():
    client, _, _ = _make_client(_response(status=429))
    with pytest.raises(RateLimited) as exc:
        client.get("products.json")
    assert exc.value.status == 429


def test_non_2xx_raises_upstream_error_with_url():
    client, _, _ = _make_client(_response(status=404, text="Not Found"))
    with pytest.raises(UpstreamError) as exc:
        client.get("pages/1.json")
    assert exc.value.status == 404
    assert exc.value.url.endswith("/pages/1.json")
    assert not isinstance(exc.value, RateLimited)


def test_transport_failure_raises_upstream_error():
    client, _, _ = _make_client(requests.ConnectionError("boom"))
    with pytest.raises(UpstreamError) as exc:
        client.get("themes.json")
    assert exc.value.status is None


def test_graphql_returns_data():
    client, session, _ = _make_client(_response(body={"data": {"files": {"edges": []}}}))

    data = client.graphql("query { files { edges { node { id } } } }", {"first": 100})

    assert data == {"files": {"edges": []}}
    payload = session.request.call_args[1]["json"]
    assert payload["variables"] == {"first": 100}


def test_graphql_errors_raise_upstream_error():
    client, _, _ = _make_client(_response(body={"errors": [{"message": "Field 'x' doesn't exist"}]}))
    with pytest.raises(UpstreamError) as exc:
        client.graphql("query { x }")
    assert "doesn't exist" in str(exc.value)


def test_graphql_throttled_raises_rate_limited():
    body = {"errors": [{"message": "Throttled", "extensions": {"code": "THROTTLED"}}]}
    client, _, _ = _make_client(_response(body=body))
    with pytest.raises(RateLimited):
        client.graphql("query { shop { name } }")


def test_upload_staged_does_not_send_access_token():
    client, session, _ = _make_client(_response(status=201))

    client.upload_staged(
        "https://storage.example.com/upload",
        [{"name": "key", "value": "tmp/a.png"}, {"name": "policy", "value": "p"}],
        b"bytes",
        "a.png",
        "image/png",
    )

    kwargs = session.request.call_args[1]
    assert "X-Shopify-Access-Token" not in kwargs["headers"]
    assert kwargs["data"] == [("key", "tmp/a.png"), ("policy", "p")]
    assert kwargs["files"] == {"file": ("a.png", b"bytes", "image/png")}
