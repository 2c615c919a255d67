"""
Replacement Dispatcher — Writes new image bytes back to where an image lives.

Given a Locator from the ImageTypeResolver and the new bytes, one branch per
resource type performs the write:

  product     PUT products/{pid}/images/{iid}.json with a base64 attachment.
              Without ids, every product's images are scanned for the URL
              first (slow path, one call per product).
  collection  Find the custom or smart collection whose image.src matches,
              then PUT it with a base64 image attachment.
  theme       PUT themes/{id}/assets.json with the asset key and attachment.
              Needs a resolvable theme id (locator, else the main theme).
  file        Staged upload: stagedUploadsCreate -> POST bytes to the
              pre-signed target -> fileCreate. Always a new file; the
              Files API cannot overwrite.
  blog, page  Upload as a file, then rewrite every occurrence of the old URL
              in the article / page body (body_html, or content when that is
              the only field set) and save the same field.
  metafield   Upload as a file, then point the metafield at the new file
              (file GID for file_reference metafields, URL otherwise).
  metaobject  Upload as a file, then metaobjectUpdate the field by key.

Failure semantics:
  Each call is all-or-nothing from the caller's point of view: any failure
  raises ReplacementError (or ResourceNotFound when a search came up empty).
  Side effects already committed are NOT rolled back. A file uploaded before
  a failed metafield / metaobject / body update stays in the Files library.
"""

import base64
import io
import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import urlparse

from PIL import Image, UnidentifiedImageError

from .errors import ReplacementError, ResourceNotFound, UpstreamError
from .graphql_queries import (
    FILE_CREATE_MUTATION,
    FILE_QUERY,
    METAOBJECT_UPDATE_MUTATION,
    STAGED_UPLOADS_CREATE_MUTATION,
)
from .image_urls import contains_image_url, html_body, rewrite_image_url
from .models import Locator, ReplacementResult
from .paginator import Paginator
from .source_extractors import REST_PAGE_SIZE, select_theme

logger = logging.getLogger(__name__)

FILE_POLL_ATTEMPTS = 5
FILE_POLL_DELAY = 1.0

DEFAULT_MIME_TYPE = "image/jpeg"
MIME_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/avif": "avif",
    "image/bmp": "bmp",
    "image/tiff": "tiff",
}


def sniff_mime_type(data: bytes) -> str:
    """Read the image format from the bytes' header; JPEG if unknown."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return Image.MIME.get(img.format, DEFAULT_MIME_TYPE)
    except (UnidentifiedImageError, OSError):
        return DEFAULT_MIME_TYPE


def same_image_url(a: Optional[str], b: Optional[str]) -> bool:
    """True when two URLs match, ignoring the CDN cache-busting query string."""
    if not a or not b:
        return False
    return a == b or a.split("?", 1)[0] == b.split("?", 1)[0]


class ReplacementDispatcher:
    """Routes a replace request to the branch for its resource type.

    Attributes:
        client: ShopifyClient for the store.
        paginator: Used by the search fallbacks.
    """

    def __init__(self, client, paginator: Optional[Paginator] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.client = client
        self.paginator = paginator or Paginator(client)
        self._sleep = sleep
        self._handlers = {
            "product": self._replace_product,
            "collection": self._replace_collection,
            "theme": self._replace_theme,
            "file": self._replace_file,
            "blog": self._replace_blog,
            "page": self._replace_page,
            "metafield": self._replace_metafield,
            "metaobject": self._replace_metaobject,
        }

    def replace(self, locator: Locator, image_bytes: bytes,
                filename: Optional[str] = None) -> ReplacementResult:
        """Replace the image identified by locator with image_bytes.

        Raises:
            ResourceNotFound: A search fallback found no matching resource.
            ReplacementError: Any other failure in the replace chain.
        """
        handler = self._handlers.get(locator.type)
        if handler is None:
            raise ReplacementError(f"Unsupported image type: {locator.type}")
        if not image_bytes:
            raise ReplacementError("No image data supplied")

        mime_type = sniff_mime_type(image_bytes)
        if not filename:
            filename = f"replacement_{int(time.time())}.{MIME_EXTENSIONS.get(mime_type, 'jpg')}"

        logger.info("Replacing %s image %s", locator.type, locator.original_url)
        try:
            return handler(locator, image_bytes, filename, mime_type)
        except (ResourceNotFound, ReplacementError):
            raise
        except UpstreamError as e:
            raise ReplacementError(f"Failed to replace {locator.type} image: {e}") from e
        except (KeyError, IndexError, TypeError) as e:
            raise ReplacementError(
                f"Unexpected Shopify response while replacing {locator.type} image: {e!r}"
            ) from e

    # -- REST attachment branches -------------------------------------------

    def _replace_product(self, locator, image_bytes, filename, mime_type) -> ReplacementResult:
        product_id, image_id = locator.get("product_id"), locator.get("image_id")
        if not (product_id and image_id):
            logger.info("Searching products for image %s", locator.original_url)
            product_id, image_id = self._find_product_image(locator.original_url)

        body = self.client.put_json(
            f"products/{product_id}/images/{image_id}.json",
            {"image": {"id": image_id, "attachment": _b64(image_bytes), "filename": filename}},
        )
        image = body["image"]
        return ReplacementResult(image["src"], image["id"], "product")

    def _find_product_image(self, url: str) -> Tuple[Any, Any]:
        listing = self.paginator.list_all(
            "products.json",
            lambda body: [p["id"] for p in body.get("products") or [] if p.get("id")],
            params={"limit": REST_PAGE_SIZE, "fields": "id"},
        )
        for product_id in listing.items:
            images = self.client.get_json(f"products/{product_id}/images.json").get("images") or []
            for image in images:
                if same_image_url(image.get("src"), url):
                    return product_id, image["id"]
        raise ResourceNotFound(f"Product image not found: {url}")

    def _replace_collection(self, locator, image_bytes, filename, mime_type) -> ReplacementResult:
        collection_id = locator.get("collection_id")
        collection_type = locator.get("collection_type")
        if not (collection_id and collection_type):
            collection_type, collection_id = self._find_collection(locator.original_url)

        key = f"{collection_type}_collection"
        body = self.client.put_json(
            f"{key}s/{collection_id}.json",
            {key: {
                "id": collection_id,
                "image": {"attachment": _b64(image_bytes), "filename": filename},
            }},
        )
        collection = body[key]
        return ReplacementResult(collection["image"]["src"], collection["id"], "collection")

    def _find_collection(self, url: str) -> Tuple[str, Any]:
        for collection_type in ("custom", "smart"):
            key = f"{collection_type}_collections"
            listing = self.paginator.list_all(
                f"{key}.json",
                lambda body, key=key: body.get(key) or [],
                params={"limit": REST_PAGE_SIZE, "fields": "id,image"},
            )
            for collection in listing.items:
                if same_image_url((collection.get("image") or {}).get("src"), url):
                    return collection_type, collection["id"]
        raise ResourceNotFound(f"Collection image not found: {url}")

    def _replace_theme(self, locator, image_bytes, filename, mime_type) -> ReplacementResult:
        theme_id = locator.get("theme_id")
        if not theme_id:
            theme = select_theme(self.client.get_json("themes.json").get("themes") or [])
            theme_id = theme["id"] if theme else None
        if not theme_id:
            raise ReplacementError("Theme asset replacement not implemented: no theme id could be resolved")

        asset_key = locator.get("asset_key") or asset_key_from_url(locator.original_url)
        if not asset_key:
            raise ReplacementError(f"Could not derive a theme asset key from {locator.original_url}")

        body = self.client.put_json(
            f"themes/{theme_id}/assets.json",
            {"asset": {"key": asset_key, "attachment": _b64(image_bytes)}},
        )
        asset = body["asset"]
        new_url = asset.get("public_url") or locator.original_url.split("?", 1)[0]
        return ReplacementResult(new_url, asset.get("key", asset_key), "theme")

    # -- Files API --------------------------------------------------------

    def _replace_file(self, locator, image_bytes, filename, mime_type) -> ReplacementResult:
        return self._upload_file(image_bytes, filename, mime_type)

    def _upload_file(self, image_bytes: bytes, filename: str, mime_type: str) -> ReplacementResult:
        """Create a new File from bytes via the staged upload protocol."""
        data = self.client.graphql(STAGED_UPLOADS_CREATE_MUTATION, {
            "input": [{
                "filename": filename,
                "mimeType": mime_type,
                "httpMethod": "POST",
                "resource": "IMAGE",
            }]
        })
        staged = data["stagedUploadsCreate"]
        _raise_user_errors(staged, "stagedUploadsCreate")
        target = staged["stagedUploads"][0]

        self.client.upload_staged(target["url"], target["parameters"], image_bytes, filename, mime_type)

        data = self.client.graphql(FILE_CREATE_MUTATION, {
            "files": [{"originalSource": target["resourceUrl"], "contentType": "IMAGE"}]
        })
        created = data["fileCreate"]
        _raise_user_errors(created, "fileCreate")
        new_file = created["files"][0]

        new_url = (new_file.get("image") or {}).get("url") or self._wait_for_file_url(new_file["id"])
        logger.info("Created file %s at %s", new_file["id"], new_url)
        return ReplacementResult(new_url, new_file["id"], "file")

    def _wait_for_file_url(self, file_id: str) -> str:
        """Poll a freshly created file until Shopify has processed its image."""
        for attempt in range(FILE_POLL_ATTEMPTS):
            node = self.client.graphql(FILE_QUERY, {"id": file_id}).get("node") or {}
            if node.get("fileStatus") == "FAILED":
                raise ReplacementError(f"Shopify failed to process uploaded file {file_id}")
            url = (node.get("image") or {}).get("url")
            if url:
                return url
            self._sleep(FILE_POLL_DELAY)
        raise ReplacementError(f"Uploaded file {file_id} is still processing; no URL yet")

    # -- Upload-then-relink branches ------------------------------------

    def _replace_blog(self, locator, image_bytes, filename, mime_type) -> ReplacementResult:
        blog_id, article_id = locator.get("blog_id"), locator.get("article_id")
        if not (blog_id and article_id):
            blog_id, article_id = self._find_article(locator.original_url)

        path = f"blogs/{blog_id}/articles/{article_id}.json"
        article = self.client.get_json(path)["article"]
        field_name, body = html_body(article)
        _ensure_present(body, locator.original_url, f"article {article_id}")

        uploaded = self._upload_file(image_bytes, filename, mime_type)
        updated, count = rewrite_image_url(body, locator.original_url, uploaded.new_url)
        logger.info("Rewrote %d occurrence(s) in article %s", count, article_id)

        saved = self.client.put_json(path, {"article": {"id": article_id, field_name: updated}})
        return ReplacementResult(uploaded.new_url, saved["article"]["id"], "blog")

    def _find_article(self, url: str) -> Tuple[Any, Any]:
        blogs = self.paginator.list_all("blogs.json", lambda body: body.get("blogs") or [])
        for blog in blogs.items:
            articles = self.paginator.list_all(
                f"blogs/{blog['id']}/articles.json",
                lambda body: body.get("articles") or [],
                params={"limit": REST_PAGE_SIZE},
            )
            for article in articles.items:
                if contains_image_url(html_body(article)[1], url):
                    return blog["id"], article["id"]
        raise ResourceNotFound(f"No blog article references {url}")

    def _replace_page(self, locator, image_bytes, filename, mime_type) -> ReplacementResult:
        page_id = locator.get("page_id") or self._find_page(locator.original_url)

        path = f"pages/{page_id}.json"
        page = self.client.get_json(path)["page"]
        field_name, body = html_body(page)
        _ensure_present(body, locator.original_url, f"page {page_id}")

        uploaded = self._upload_file(image_bytes, filename, mime_type)
        updated, count = rewrite_image_url(body, locator.original_url, uploaded.new_url)
        logger.info("Rewrote %d occurrence(s) in page %s", count, page_id)

        saved = self.client.put_json(path, {"page": {"id": page_id, field_name: updated}})
        return ReplacementResult(uploaded.new_url, saved["page"]["id"], "page")

    def _find_page(self, url: str) -> Any:
        pages = self.paginator.list_all(
            "pages.json", lambda body: body.get("pages") or [], params={"limit": REST_PAGE_SIZE}
        )
        for page in pages.items:
            if contains_image_url(html_body(page)[1], url):
                return page["id"]
        raise ResourceNotFound(f"No page references {url}")

    def _replace_metafield(self, locator, image_bytes, filename, mime_type) -> ReplacementResult:
        metafield_id = locator.get("metafield_id")
        if not metafield_id:
            raise ReplacementError("Missing metafield ID for metafield image replacement")

        uploaded = self._upload_file(image_bytes, filename, mime_type)
        if locator.get("metafield_type") == "file_reference":
            update = {"id": metafield_id, "value": uploaded.resource_id, "type": "file_reference"}
        else:
            update = {"id": metafield_id, "value": uploaded.new_url, "type": "url"}

        saved = self.client.put_json(f"metafields/{metafield_id}.json", {"metafield": update})
        return ReplacementResult(uploaded.new_url, saved["metafield"]["id"], "metafield")

    def _replace_metaobject(self, locator, image_bytes, filename, mime_type) -> ReplacementResult:
        metaobject_id, field_key = locator.get("metaobject_id"), locator.get("field_key")
        if not (metaobject_id and field_key):
            raise ReplacementError("Missing metaobject ID or field key for metaobject image replacement")

        uploaded = self._upload_file(image_bytes, filename, mime_type)
        # Text fields hold the URL itself; file_reference fields hold the file GID
        if locator.get("field_type") in ("single_line_text_field", "url"):
            value = uploaded.new_url
        else:
            value = uploaded.resource_id

        data = self.client.graphql(METAOBJECT_UPDATE_MUTATION, {
            "id": metaobject_id,
            "metaobject": {"fields": [{"key": field_key, "value": value}]},
        })
        updated = data["metaobjectUpdate"]
        _raise_user_errors(updated, "metaobjectUpdate")
        return ReplacementResult(uploaded.new_url, updated["metaobject"]["id"], "metaobject")


def asset_key_from_url(url: str) -> Optional[str]:
    """Recover a theme asset key ("assets/logo.png") from an asset URL."""
    path = urlparse(url).path
    if "/assets/" in path:
        return "assets/" + path.split("/assets/", 1)[1]
    if "/files/" in path:
        return path.split("/files/", 1)[1] or None
    return None


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _raise_user_errors(payload: Dict[str, Any], operation: str) -> None:
    errors = payload.get("userErrors") or []
    if errors:
        messages = "; ".join(e.get("message", str(e)) for e in errors)
        raise ReplacementError(f"{operation} failed: {messages}")


def _ensure_present(body: str, url: str, where: str) -> None:
    if not contains_image_url(body, url):
        raise ResourceNotFound(f"{url} does not appear in {where}")
