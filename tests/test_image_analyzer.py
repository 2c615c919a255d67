"""Tests for shopify_media.image_analyzer."""

import io
from unittest.mock import MagicMock

import pytest
import requests
from PIL import Image

from shopify_media.image_analyzer import (
    ImageAnalyzer,
    classify_image,
    format_file_size,
    infer_type_from_url,
    read_dimensions,
)
from shopify_media.models import ImageRecord

CDN = "https://cdn.shopify.com/s/files/1/0001"


def _png(width, height):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height)).save(buffer, format="PNG")
    return buffer.getvalue()


def _session(content=None, error=None):
    session = MagicMock()
    if error is not None:
        session.get.side_effect = error
        return session
    response = MagicMock()
    response.iter_content.return_value = [content[:10], content[10:]]
    session.get.return_value.__enter__.return_value = response
    return session


def test_format_file_size():
    assert format_file_size(0) == "Unknown"
    assert format_file_size(500) == "500 Bytes"
    assert format_file_size(1536) == "1.5 KB"
    assert format_file_size(1048576) == "1 MB"


@pytest.mark.parametrize("url,expected", [
    (f"{CDN}/a.jpg", "JPEG"),
    (f"{CDN}/a.JPEG?v=1", "JPEG"),
    (f"{CDN}/a.webp", "WebP"),
    (f"{CDN}/a.tif", "TIFF"),
    (f"{CDN}/a.heic", "HEIC"),
    (f"{CDN}/noextension", "UNKNOWN"),
])
def test_infer_type_from_url(url, expected):
    assert infer_type_from_url(url) == expected


@pytest.mark.parametrize("category,url,expected", [
    ("collections", f"{CDN}/c.jpg", "collection"),
    ("theme", f"{CDN}/t/1/assets/hero-banner.jpg", "banner"),
    ("theme", f"{CDN}/t/1/assets/logo.png", "thumbnail"),
    ("theme", f"{CDN}/t/1/assets/background.png", "banner"),
    ("products", f"{CDN}/p.jpg", "product"),
    ("files", f"{CDN}/f.jpg", "product"),
])
def test_classify_image(category, url, expected):
    assert classify_image(ImageRecord(url=url, category=category)) == expected


def test_read_dimensions_of_garbage():
    assert read_dimensions(b"not an image") == (0, 0, None)


def test_analyze_records_size_and_dimensions():
    data = _png(40, 20)
    record = ImageRecord(url=f"{CDN}/a.png", category="products")

    ImageAnalyzer(session=_session(data)).analyze([record])

    assert record.size == len(data)
    assert (record.width, record.height) == (40, 20)
    assert record.type == "PNG"
    assert record.aspect_ratio == "2.00"
    assert record.total_pixels == 800
    assert record.is_large is False
    assert record.size_formatted != "Not checked"


def test_analyze_keeps_size_when_dimensions_unreadable():
    data = b"x" * 2000
    record = ImageRecord(url=f"{CDN}/a.svg", category="files")

    ImageAnalyzer(session=_session(data)).analyze_one(record)

    assert record.size == 2000
    assert (record.width, record.height) == (0, 0)
    assert record.type == "SVG"
    assert record.aspect_ratio == "unknown"


def test_analyze_download_failure_falls_back_to_zeros():
    record = ImageRecord(url=f"{CDN}/a.jpg", category="products", size=99)

    ImageAnalyzer(session=_session(error=requests.Timeout("slow"))).analyze_one(record)

    assert record.size == 0
    assert record.size_formatted == "Unknown"
    assert record.type == "JPEG"
    assert record.image_type == "product"


def test_analyze_rejects_oversized_downloads():
    record = ImageRecord(url=f"{CDN}/a.png", category="products")

    ImageAnalyzer(session=_session(_png(40, 20)), max_bytes=10).analyze_one(record)

    assert record.size == 0
    assert record.size_formatted == "Unknown"
