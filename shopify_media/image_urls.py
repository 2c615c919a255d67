"""Image URL validation and discovery of images embedded in HTML bodies."""

import re
from collections import OrderedDict
from html import escape
from typing import Any, Dict, List, Tuple
from urllib.parse import urlparse

from bs4 import BeautifulSoup

IMG_SRC_PATTERN = re.compile(r"""<img[^>]*src=["']([^"']+)["'][^>]*>""", re.IGNORECASE)


def validate_image_url(url) -> bool:
    """Accept only absolute http/https URLs with a host."""
    if not url or not isinstance(url, str):
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class HtmlImageScanner:
    """Finds image URLs inside a blob of article or page HTML."""

    def scan(self, html: str) -> List[str]:
        if not html or not isinstance(html, str):
            return []
        return [url for url in self._candidates(html) if validate_image_url(url)]

    def _candidates(self, html: str) -> List[str]:
        raise NotImplementedError


class RegexImageScanner(HtmlImageScanner):
    """Pattern match on <img ... src="..."> tags."""

    def _candidates(self, html: str) -> List[str]:
        return IMG_SRC_PATTERN.findall(html)


class SoupImageScanner(HtmlImageScanner):
    """Parse the HTML and read the src attribute of every <img> element."""

    def _candidates(self, html: str) -> List[str]:
        soup = BeautifulSoup(html, "html.parser")
        return [img.get("src", "") for img in soup.find_all("img")]


def rewrite_image_url(html: str, old_url: str, new_url: str) -> Tuple[str, int]:
    """Replace every whole occurrence of old_url in html with new_url.

    An occurrence only counts when the URL ends there (quote, whitespace,
    angle bracket, closing paren or end of text), so a different URL that
    merely starts with old_url ("...a.jpg?v=2") is left alone. The
    HTML-escaped spelling of old_url (& as &amp;) is rewritten too.

    Returns:
        (new_html, number_of_replacements)
    """
    total = 0
    for old, new in OrderedDict([(old_url, new_url), (escape(old_url), escape(new_url))]).items():
        pattern = re.compile(re.escape(old) + r"""(?=["'\s<>)]|$)""")
        html, count = pattern.subn(lambda _m, new=new: new, html)
        total += count
    return html, total


BODY_FIELDS = ("body_html", "content")


def html_body(resource: Dict[str, Any]) -> Tuple[str, str]:
    """Return (field_name, html) for the first non-empty body field.

    Articles usually carry body_html; some payloads only have content.
    Defaults to ("body_html", "") when neither is set.
    """
    for name in BODY_FIELDS:
        if resource.get(name):
            return name, resource[name]
    return BODY_FIELDS[0], ""


def contains_image_url(html: str, url: str) -> bool:
    """True if url appears in html, raw or HTML-escaped."""
    if not html:
        return False
    return url in html or escape(url) in html


SCANNERS = {
    "regex": RegexImageScanner,
    "soup": SoupImageScanner,
}


def get_scanner(name: str = "regex") -> HtmlImageScanner:
    try:
        return SCANNERS[name.lower()]()
    except KeyError:
        raise ValueError(f"Unknown HTML scanner {name!r}; expected one of {sorted(SCANNERS)}")
