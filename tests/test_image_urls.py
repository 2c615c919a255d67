"""Tests for shopify_media.image_urls."""

import pytest

from shopify_media.image_urls import (
    RegexImageScanner,
    SoupImageScanner,
    contains_image_url,
    get_scanner,
    html_body,
    rewrite_image_url,
    validate_image_url,
)


# ---------------------------------------------------------------------------
# validate_image_url
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("url", [
    "https://cdn.shopify.com/s/files/1/0001/a.jpg",
    "http://example.com/img.png?v=2",
])
def test_validate_accepts_absolute_http_urls(url):
    assert validate_image_url(url) is True


@pytest.mark.parametrize("url", [
    None,
    "",
    "/relative/a.jpg",
    "a.jpg",
    "ftp://example.com/a.jpg",
    "javascript:alert(1)",
    "https://",
    "//cdn.shopify.com/a.jpg",
    42,
])
def test_validate_rejects_everything_else(url):
    assert validate_image_url(url) is False


# ---------------------------------------------------------------------------
# HTML scanners
# ---------------------------------------------------------------------------

ARTICLE_HTML = """
<p>Intro</p>
<img src="https://cdn.shopify.com/s/files/1/a.jpg" alt="A">
<IMG class="wide" SRC='https://cdn.shopify.com/s/files/1/b.png'>
<img src="/relative/c.gif">
<img alt="no source">
"""


@pytest.mark.parametrize("scanner_cls", [RegexImageScanner, SoupImageScanner])
def test_scanners_find_absolute_img_sources(scanner_cls):
    found = scanner_cls().scan(ARTICLE_HTML)
    assert found == [
        "https://cdn.shopify.com/s/files/1/a.jpg",
        "https://cdn.shopify.com/s/files/1/b.png",
    ]


@pytest.mark.parametrize("scanner_cls", [RegexImageScanner, SoupImageScanner])
def test_scanners_handle_empty_input(scanner_cls):
    assert scanner_cls().scan("") == []
    assert scanner_cls().scan(None) == []


def test_get_scanner_by_name():
    assert isinstance(get_scanner("regex"), RegexImageScanner)
    assert isinstance(get_scanner("SOUP"), SoupImageScanner)
    with pytest.raises(ValueError):
        get_scanner("lxml")


# ---------------------------------------------------------------------------
# rewrite_image_url
# ---------------------------------------------------------------------------


def test_rewrite_replaces_every_occurrence():
    old = "https://cdn.shopify.com/s/files/1/a.jpg"
    new = "https://cdn.shopify.com/s/files/1/new.png"
    html = f'<img src="{old}"><p>text</p><img src="{old}">'

    updated, count = rewrite_image_url(html, old, new)

    assert count == 2
    assert old not in updated
    assert updated.count(new) == 2


def test_rewrite_leaves_longer_urls_alone():
    old = "https://cdn.shopify.com/s/files/1/a.jpg"
    other = old + "?v=2"
    html = f'<img src="{old}"><img src="{other}">'

    updated, count = rewrite_image_url(html, old, "https://cdn.shopify.com/new.jpg")

    assert count == 1
    assert f'src="{other}"' in updated


def test_rewrite_handles_html_escaped_url():
    old = "https://cdn.shopify.com/a.jpg?v=1&width=200"
    html = '<img src="https://cdn.shopify.com/a.jpg?v=1&amp;width=200">'

    updated, count = rewrite_image_url(html, old, "https://cdn.shopify.com/b.jpg?x=1&y=2")

    assert count == 1
    assert updated == '<img src="https://cdn.shopify.com/b.jpg?x=1&amp;y=2">'


def test_rewrite_without_match_returns_body_unchanged():
    html = '<img src="https://cdn.shopify.com/other.jpg">'
    assert rewrite_image_url(html, "https://cdn.shopify.com/a.jpg", "https://x/y.jpg") == (html, 0)


def test_html_body_prefers_body_html_then_content():
    assert html_body({"body_html": "<p>a</p>", "content": "<p>b</p>"}) == ("body_html", "<p>a</p>")
    assert html_body({"body_html": "", "content": "<p>b</p>"}) == ("content", "<p>b</p>")
    assert html_body({"body_html": None}) == ("body_html", "")


def test_contains_image_url_accepts_escaped_form():
    url = "https://cdn.shopify.com/a.jpg?v=1&w=2"
    assert contains_image_url(f'<img src="{url}">', url)
    assert contains_image_url('<img src="https://cdn.shopify.com/a.jpg?v=1&amp;w=2">', url)
    assert not contains_image_url("", url)
