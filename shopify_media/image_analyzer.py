"""Lazy analysis pass: download each image and fill in size and dimensions."""

import io
import logging
import re
from typing import List, Optional, Tuple

import requests
from PIL import Image, UnidentifiedImageError

from .models import ImageRecord

logger = logging.getLogger(__name__)

ANALYZE_TIMEOUT = 5
MAX_IMAGE_BYTES = 50 * 1024 * 1024
LARGE_IMAGE_BYTES = 1024 * 1024

URL_EXTENSION_PATTERN = re.compile(r"\.([^./?]+)(?:\?|$)")
EXTENSION_TYPES = {
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "png": "PNG",
    "gif": "GIF",
    "webp": "WebP",
    "svg": "SVG",
    "bmp": "BMP",
    "tiff": "TIFF",
    "tif": "TIFF",
    "ico": "ICO",
    "avif": "AVIF",
}


def format_file_size(size: int) -> str:
    """Human readable size: 1536 -> "1.5 KB". Zero means unknown."""
    if not size:
        return "Unknown"
    units = ["Bytes", "KB", "MB", "GB"]
    value, exponent = float(size), 0
    while value >= 1024 and exponent < len(units) - 1:
        value /= 1024
        exponent += 1
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {units[exponent]}"


def infer_type_from_url(url: str) -> str:
    match = URL_EXTENSION_PATTERN.search(url)
    if not match:
        return "UNKNOWN"
    extension = match.group(1).lower()
    return EXTENSION_TYPES.get(extension, extension.upper())


def classify_image(record: ImageRecord) -> str:
    """Pick the sizing profile used by the optimization estimate."""
    if record.category == "collections":
        return "collection"
    if record.category == "theme":
        url = record.url.lower()
        if any(word in url for word in ("banner", "hero", "slider")):
            return "banner"
        if any(word in url for word in ("thumb", "icon", "logo")):
            return "thumbnail"
        return "banner"
    return "product"


class ImageAnalyzer:
    """Downloads images from the CDN and records their size and dimensions.

    Image downloads go straight to the CDN, not the Admin API, so they do not
    pass through the Shopify rate limiter.
    """

    def __init__(self, session: Optional[requests.Session] = None,
                 timeout: float = ANALYZE_TIMEOUT, max_bytes: int = MAX_IMAGE_BYTES):
        self._session = session or requests.Session()
        self.timeout = timeout
        self.max_bytes = max_bytes

    def analyze(self, records: List[ImageRecord]) -> List[ImageRecord]:
        analyzed = [self.analyze_one(record) for record in records]
        logger.info("Analyzed %d images", len(analyzed))
        return analyzed

    def analyze_one(self, record: ImageRecord) -> ImageRecord:
        """Fill in analysis fields on record (in place) and return it."""
        record.image_type = classify_image(record)
        try:
            data = self._download(record.url)
        except (requests.RequestException, ValueError) as e:
            logger.warning("Failed to analyze image %s: %s", record.url, e)
            self._reset(record)
            return record

        record.size = len(data)
        record.size_formatted = format_file_size(record.size)
        record.is_large = record.size > LARGE_IMAGE_BYTES

        width, height, fmt = read_dimensions(data)
        record.width, record.height = width, height
        record.type = fmt.upper() if fmt else infer_type_from_url(record.url)
        record.aspect_ratio = f"{width / height:.2f}" if width and height else "unknown"
        record.total_pixels = width * height
        return record

    def _download(self, url: str) -> bytes:
        with self._session.get(url, timeout=self.timeout, stream=True) as response:
            response.raise_for_status()
            chunks, total = [], 0
            for chunk in response.iter_content(chunk_size=64 * 1024):
                total += len(chunk)
                if total > self.max_bytes:
                    raise ValueError(f"Image larger than {self.max_bytes} bytes")
                chunks.append(chunk)
        return b"".join(chunks)

    @staticmethod
    def _reset(record: ImageRecord) -> None:
        record.size = 0
        record.size_formatted = "Unknown"
        record.width = record.height = 0
        record.is_large = False
        record.type = infer_type_from_url(record.url)
        record.aspect_ratio = "unknown"
        record.total_pixels = 0


def read_dimensions(data: bytes) -> Tuple[int, int, Optional[str]]:
    """Width, height and format from the image header; zeros if unreadable."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
            return width, height, img.format
    except (UnidentifiedImageError, OSError):
        return 0, 0, None
