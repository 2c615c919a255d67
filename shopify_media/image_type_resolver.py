"""
Image-Type Resolver — Works out which resource an image belongs to.

A replace request only carries what the web layer sent back: the image URL,
its category and whatever extraction identifiers survived the round trip.
The resolver turns that into a Locator for the ReplacementDispatcher.

Priority (first match wins):
  1. Side-channel identifiers captured at extraction time (metafieldId,
     metaobjectId, fileId, blogId, pageId, then productId, collectionId,
     themeId), or a typed ImageSource. This is the reliable path.
  2. The URL path:
       /products/{id}/images/{id}   -> product with both ids
       /collections/...             -> collection (handle if present)
       /t/{themeId}/assets/{key}    -> theme with theme id and asset key
       /files/{name}                -> file, unless a different category
                                       hint was given (every CDN URL
                                       contains /s/files/)
  3. The category hint, with empty sub-identifiers. The dispatcher then
     searches the store for the resource at replace time.
  4. Anything else is treated as a generic file.
"""

import logging
import re
from dataclasses import asdict
from typing import Any, Dict, Optional, Union
from urllib.parse import urlparse

from .models import SOURCE_TYPES, ImageSource, Locator

logger = logging.getLogger(__name__)

CATEGORY_TO_TYPE = {
    "theme": "theme",
    "products": "product",
    "collections": "collection",
    "blogs": "blog",
    "pages": "page",
    "metafields": "metafield",
    "files": "file",
    "metaobjects": "metaobject",
}

# Checked in order; each key maps to the category whose ImageSource it belongs to
SIDE_CHANNEL_KEYS = (
    ("metafieldId", "metafields"),
    ("metaobjectId", "metaobjects"),
    ("fileId", "files"),
    ("blogId", "blogs"),
    ("pageId", "pages"),
    ("productId", "products"),
    ("collectionId", "collections"),
    ("themeId", "theme"),
)

PRODUCT_ID_PATTERN = re.compile(r"/products/(\d+)")
PRODUCT_IMAGE_ID_PATTERN = re.compile(r"/images/(\d+)")
COLLECTION_HANDLE_PATTERN = re.compile(r"/collections/(.+?)/")
THEME_ID_PATTERN = re.compile(r"/t/(\d+)")
THEME_ASSET_PATTERN = re.compile(r"/assets/(.+)$")
FILE_NAME_PATTERN = re.compile(r".*/files/(.+)$")


class ImageTypeResolver:
    """Derives a Locator from an image URL, category and side data."""

    def resolve(
        self,
        url: str,
        category: Optional[str] = None,
        side_data: Optional[Union[Dict[str, Any], ImageSource]] = None,
    ) -> Locator:
        locator = (
            self._from_side_data(url, side_data)
            or self._from_url(url, category)
            or self._from_category(url, category)
        )
        logger.debug("Resolved %s (%s) to %s %s", url, category, locator.type, locator.fields)
        return locator

    def _from_side_data(self, url, side_data) -> Optional[Locator]:
        if not side_data:
            return None
        if isinstance(side_data, ImageSource):
            return Locator(CATEGORY_TO_TYPE[side_data.CATEGORY], url, asdict(side_data))

        for key, category in SIDE_CHANNEL_KEYS:
            if side_data.get(key):
                source = SOURCE_TYPES[category].from_side_data(side_data)
                return Locator(CATEGORY_TO_TYPE[category], url, asdict(source))
        return None

    def _from_url(self, url: str, category: Optional[str]) -> Optional[Locator]:
        try:
            path = urlparse(url).path
        except (TypeError, ValueError):
            return None
        if not path:
            return None

        if "/products/" in path and "/images/" in path:
            product = PRODUCT_ID_PATTERN.search(path)
            image = PRODUCT_IMAGE_ID_PATTERN.search(path)
            return Locator("product", url, {
                "product_id": int(product.group(1)) if product else None,
                "image_id": int(image.group(1)) if image else None,
            })

        if "/collections/" in path or category == "collections":
            handle = COLLECTION_HANDLE_PATTERN.search(path)
            return Locator("collection", url, {
                "collection_id": None,
                "collection_type": None,
                "collection_handle": handle.group(1) if handle else None,
            })

        if "/t/" in path and "/assets/" in path:
            theme = THEME_ID_PATTERN.search(path)
            asset = THEME_ASSET_PATTERN.search(path)
            return Locator("theme", url, {
                "theme_id": int(theme.group(1)) if theme else None,
                "asset_key": f"assets/{asset.group(1)}" if asset else None,
            })

        if "/files/" in path and category in (None, "", "files"):
            name = FILE_NAME_PATTERN.search(path)
            return Locator("file", url, {
                "file_id": None,
                "file_name": name.group(1) if name else None,
            })

        return None

    def _from_category(self, url: str, category: Optional[str]) -> Locator:
        source_cls = SOURCE_TYPES.get(category or "")
        if source_cls is None:
            return Locator("file", url, {"file_id": None, "file_name": None})
        return Locator(CATEGORY_TO_TYPE[category], url, asdict(source_cls()))
