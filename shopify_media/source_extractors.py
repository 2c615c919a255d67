"""
Source Extractors — Pull image references out of each Shopify resource type.

There is one extractor per image category. Each one knows the endpoints and
the response shape of its resource type and turns them into ImageRecords
tagged with the matching ImageSource variant:

  theme        themes.json -> main theme -> themes/{id}/assets.json
               keeps image-extension keys; URL is public_url, else /files/{key}
  products     products.json (ids only, paginated) -> products/{id}/images.json
               one call per product; a failing product is skipped
  collections  custom_collections.json + smart_collections.json (paginated)
               keeps collections whose image.src is set
  blogs        blogs.json -> blogs/{id}/articles.json, <img> tags in body_html
               (or content when body_html is empty)
  pages        pages.json (paginated), <img> tags in body_html
  metafields   products/{id}/metafields.json and collections/{id}/metafields.json
               for a bounded sample; file_reference and url typed values
  files        GraphQL files(query: "media_type:IMAGE"), cursor paginated
  metaobjects  GraphQL metaobjectDefinitions -> metaobjects(type) per
               definition with a file or text field

Every URL goes through validate_image_url; anything relative or malformed is
dropped silently. Extractors raise on failures that make their whole source
unusable and let the aggregator record the category as skipped.

Product ids and the collection list are needed by both their own extractor
and the metafields extractor. They are cached on a shared ExtractionContext
so the store is only listed once per aggregation.
"""

import json
import logging
import re
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urlparse

from .errors import UpstreamError
from .graphql_queries import FILES_QUERY, METAOBJECT_DEFINITIONS_QUERY, METAOBJECTS_QUERY
from .image_urls import HtmlImageScanner, RegexImageScanner, html_body, validate_image_url
from .models import (
    BlogSource,
    CollectionSource,
    FileSource,
    ImageRecord,
    ImageSource,
    MetafieldSource,
    MetaobjectSource,
    PageSource,
    ProductSource,
    ThemeSource,
)
from .paginator import PageResult, Paginator
from .settings import DEFAULT_SETTINGS, IMAGE_EXTENSIONS

logger = logging.getLogger(__name__)

IMAGE_KEY_PATTERN = re.compile(r"\.(%s)$" % "|".join(IMAGE_EXTENSIONS), re.IGNORECASE)

REST_PAGE_SIZE = 250
FILES_PAGE_SIZE = 100
METAOBJECT_PAGE_SIZE = 50

# Metaobject field types that may hold an image
METAOBJECT_FILE_FIELD_TYPES = ("file_reference",)
METAOBJECT_TEXT_FIELD_TYPES = ("single_line_text_field", "url")


def looks_like_image_url(url: str) -> bool:
    """Heuristic for free-text fields: a valid URL that points at an image.

    Accepts URLs whose path ends in a known image extension, or that are
    served from Shopify's CDN / files path.
    """
    if not validate_image_url(url):
        return False
    parsed = urlparse(url)
    if IMAGE_KEY_PATTERN.search(parsed.path):
        return True
    return parsed.netloc.endswith("cdn.shopify.com") or "/files/" in parsed.path


def select_theme(themes: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Pick the live theme: role "main", falling back to a published theme."""
    for theme in themes:
        if theme.get("role") == "main":
            return theme
    for theme in themes:
        if theme.get("role") == "published" or theme.get("published_at"):
            return theme
    return None


@dataclass
class ExtractionOutcome:
    records: List[ImageRecord] = field(default_factory=list)
    partial: bool = False


@dataclass
class ExtractionContext:
    """Listings shared between extractors within one aggregation run."""

    product_ids: Optional[PageResult] = None
    collections: Optional[List[Tuple[str, Dict[str, Any]]]] = None
    collections_partial: bool = False

    def load_product_ids(self, paginator: Paginator) -> PageResult:
        if self.product_ids is None:
            self.product_ids = paginator.list_all(
                "products.json",
                lambda body: [p["id"] for p in body.get("products") or [] if p.get("id")],
                params={"limit": REST_PAGE_SIZE, "fields": "id"},
            )
        return self.product_ids

    def load_collections(self, paginator: Paginator) -> List[Tuple[str, Dict[str, Any]]]:
        """Return (collection_type, collection) pairs for custom and smart collections."""
        if self.collections is None:
            collections = []
            for collection_type in ("custom", "smart"):
                key = f"{collection_type}_collections"
                listing = paginator.list_all(
                    f"{key}.json",
                    lambda body, key=key: body.get(key) or [],
                    params={"limit": REST_PAGE_SIZE, "fields": "id,title,handle,image"},
                )
                self.collections_partial = self.collections_partial or listing.partial
                collections.extend((collection_type, c) for c in listing.items)
            self.collections = collections
        return self.collections


class SourceExtractor:
    """Base class for the per-category extractors.

    Attributes:
        category: The ImageRecord category this extractor produces.
        client: ShopifyClient for the store.
        paginator: Paginator sharing the same client.
        context: Listings shared with other extractors.
    """

    category = ""

    def __init__(
        self,
        client,
        paginator: Paginator,
        context: Optional[ExtractionContext] = None,
        html_scanner: Optional[HtmlImageScanner] = None,
        metafield_sample_size: int = DEFAULT_SETTINGS["METAFIELD_SAMPLE_SIZE"],
    ):
        self.client = client
        self.paginator = paginator
        self.context = context or ExtractionContext()
        self.html_scanner = html_scanner or RegexImageScanner()
        self.metafield_sample_size = metafield_sample_size

    def extract(self) -> ExtractionOutcome:
        raise NotImplementedError

    def _record(self, url: Any, source: ImageSource, **extra: Any) -> Optional[ImageRecord]:
        if not validate_image_url(url):
            logger.debug("Dropping invalid %s image URL: %r", self.category, url)
            return None
        extra = {k: v for k, v in extra.items() if v is not None}
        return ImageRecord(url=url, category=self.category, source=source, **extra)

    def _collect(self, candidates: Iterable[Optional[ImageRecord]]) -> List[ImageRecord]:
        return [record for record in candidates if record is not None]

    def _scan_html(self, html: Optional[str]) -> List[str]:
        """Unique image URLs in an HTML body, in first-seen order."""
        return list(OrderedDict.fromkeys(self.html_scanner.scan(html or "")))


class ThemeExtractor(SourceExtractor):
    category = "theme"

    def extract(self) -> ExtractionOutcome:
        themes = self.client.get_json("themes.json").get("themes") or []
        theme = select_theme(themes)
        if not theme:
            logger.info("No main or published theme found")
            return ExtractionOutcome()

        theme_id = theme["id"]
        logger.debug("Using theme %s (%s)", theme_id, theme.get("name"))
        assets = self.client.get_json(f"themes/{theme_id}/assets.json").get("assets") or []

        records = []
        for asset in assets:
            key = asset.get("key")
            if not key or not IMAGE_KEY_PATTERN.search(key):
                continue
            url = asset.get("public_url") or f"https://{self.client.shop}/files/{key}"
            records.append(
                self._record(
                    url,
                    ThemeSource(theme_id=theme_id, asset_key=key),
                    mime_type=asset.get("content_type"),
                    size=asset.get("size"),
                )
            )
        return ExtractionOutcome(self._collect(records))


class ProductExtractor(SourceExtractor):
    category = "products"

    def extract(self) -> ExtractionOutcome:
        listing = self.context.load_product_ids(self.paginator)
        logger.info("Found %d products, fetching images", len(listing.items))

        records = []
        for product_id in listing.items:
            try:
                images = self.client.get_json(f"products/{product_id}/images.json").get("images") or []
            except UpstreamError as e:
                logger.warning("Skipping images of product %s: %s", product_id, e)
                continue
            for image in images:
                records.append(
                    self._record(
                        image.get("src"),
                        ProductSource(product_id=product_id, image_id=image.get("id")),
                        alt=image.get("alt"),
                        width=image.get("width"),
                        height=image.get("height"),
                    )
                )
        return ExtractionOutcome(self._collect(records), partial=listing.partial)


class CollectionExtractor(SourceExtractor):
    category = "collections"

    def extract(self) -> ExtractionOutcome:
        collections = self.context.load_collections(self.paginator)
        records = []
        for collection_type, collection in collections:
            image = collection.get("image") or {}
            if not image.get("src"):
                continue
            records.append(
                self._record(
                    image["src"],
                    CollectionSource(
                        collection_id=collection.get("id"),
                        collection_title=collection.get("title"),
                        collection_type=collection_type,
                    ),
                    alt=image.get("alt"),
                    width=image.get("width"),
                    height=image.get("height"),
                )
            )
        return ExtractionOutcome(self._collect(records), partial=self.context.collections_partial)


class BlogExtractor(SourceExtractor):
    category = "blogs"

    def extract(self) -> ExtractionOutcome:
        blogs = self.paginator.list_all(
            "blogs.json", lambda body: body.get("blogs") or [], params={"limit": REST_PAGE_SIZE}
        )
        partial = blogs.partial
        records = []

        for blog in blogs.items:
            try:
                articles = self.paginator.list_all(
                    f"blogs/{blog['id']}/articles.json",
                    lambda body: body.get("articles") or [],
                    params={"limit": REST_PAGE_SIZE},
                )
            except UpstreamError as e:
                logger.warning("Failed to fetch articles for blog %s: %s", blog.get("id"), e)
                continue
            partial = partial or articles.partial

            for article in articles.items:
                _, body = html_body(article)
                for url in self._scan_html(body):
                    records.append(
                        self._record(
                            url,
                            BlogSource(
                                blog_id=blog["id"],
                                article_id=article.get("id"),
                                blog_title=blog.get("title"),
                                article_title=article.get("title"),
                            ),
                        )
                    )
        return ExtractionOutcome(self._collect(records), partial=partial)


class PageExtractor(SourceExtractor):
    category = "pages"

    def extract(self) -> ExtractionOutcome:
        pages = self.paginator.list_all(
            "pages.json", lambda body: body.get("pages") or [], params={"limit": REST_PAGE_SIZE}
        )
        records = []
        for page in pages.items:
            for url in self._scan_html(html_body(page)[1]):
                records.append(
                    self._record(
                        url,
                        PageSource(
                            page_id=page.get("id"),
                            page_title=page.get("title"),
                            page_handle=page.get("handle"),
                        ),
                    )
                )
        return ExtractionOutcome(self._collect(records), partial=pages.partial)


def extract_metafield_images(
    metafields: List[Dict[str, Any]],
    resource_type: Optional[str] = None,
    resource_id: Any = None,
) -> List[Tuple[str, MetafieldSource]]:
    """Find image URLs in a resource's metafields.

    file_reference values may be a JSON object with a "url" key or a bare
    URL; url-typed values are used directly. Anything else is ignored.
    """
    found = []
    for metafield in metafields:
        value = metafield.get("value")
        metafield_type = metafield.get("type")
        if not value:
            continue

        url = None
        if metafield_type == "file_reference":
            try:
                payload = json.loads(value)
            except (TypeError, ValueError):
                payload = None
            if isinstance(payload, dict) and validate_image_url(payload.get("url")):
                url = payload["url"]
            elif validate_image_url(value):
                url = value
        elif metafield_type == "url" and validate_image_url(value):
            url = value

        if url:
            found.append((
                url,
                MetafieldSource(
                    metafield_id=metafield.get("id"),
                    metafield_key=metafield.get("key"),
                    metafield_namespace=metafield.get("namespace"),
                    resource_type=metafield.get("owner_resource") or resource_type,
                    resource_id=metafield.get("owner_id") or resource_id,
                    metafield_type=metafield_type,
                ),
            ))
    return found


class MetafieldExtractor(SourceExtractor):
    category = "metafields"

    def extract(self) -> ExtractionOutcome:
        limit = self.metafield_sample_size
        product_ids = self.context.load_product_ids(self.paginator).items[:limit]
        collections = self.context.load_collections(self.paginator)[:limit]

        owners = [("products", "product", pid) for pid in product_ids]
        owners += [("collections", "collection", c.get("id")) for _, c in collections]

        records = []
        for endpoint, resource_type, resource_id in owners:
            try:
                metafields = self.client.get_json(
                    f"{endpoint}/{resource_id}/metafields.json"
                ).get("metafields") or []
            except UpstreamError as e:
                logger.warning("Failed to fetch metafields for %s/%s: %s", endpoint, resource_id, e)
                continue
            for url, source in extract_metafield_images(metafields, resource_type, resource_id):
                records.append(self._record(url, source))
        return ExtractionOutcome(self._collect(records))


class FileExtractor(SourceExtractor):
    category = "files"

    def extract(self) -> ExtractionOutcome:
        listing = self.paginator.list_connection(
            FILES_QUERY, ("files",), variables={"first": FILES_PAGE_SIZE}
        )
        records = []
        for node in listing.items:
            image = node.get("image") or {}
            url = image.get("url") or (node.get("originalSource") or {}).get("url")
            records.append(
                self._record(
                    url,
                    FileSource(file_id=node.get("id")),
                    alt=node.get("alt"),
                    mime_type=node.get("mimeType"),
                    width=image.get("width"),
                    height=image.get("height"),
                )
            )
        return ExtractionOutcome(self._collect(records), partial=listing.partial)


class MetaobjectExtractor(SourceExtractor):
    category = "metaobjects"

    def extract(self) -> ExtractionOutcome:
        definitions = self.paginator.list_connection(
            METAOBJECT_DEFINITIONS_QUERY,
            ("metaobjectDefinitions",),
            variables={"first": METAOBJECT_PAGE_SIZE},
        )
        partial = definitions.partial
        records = []

        for definition in definitions.items:
            if not self._has_image_fields(definition):
                continue
            metaobject_type = definition.get("type")
            try:
                instances = self.paginator.list_connection(
                    METAOBJECTS_QUERY,
                    ("metaobjects",),
                    variables={"type": metaobject_type, "first": METAOBJECT_PAGE_SIZE},
                )
            except UpstreamError as e:
                logger.warning("Failed to fetch metaobjects of type %s: %s", metaobject_type, e)
                continue
            partial = partial or instances.partial

            for metaobject in instances.items:
                records.extend(self._field_records(metaobject))
        return ExtractionOutcome(self._collect(records), partial=partial)

    @staticmethod
    def _has_image_fields(definition: Dict[str, Any]) -> bool:
        wanted = METAOBJECT_FILE_FIELD_TYPES + METAOBJECT_TEXT_FIELD_TYPES
        return any(
            ((f.get("type") or {}).get("name")) in wanted
            for f in definition.get("fieldDefinitions") or []
        )

    def _field_records(self, metaobject: Dict[str, Any]) -> List[Optional[ImageRecord]]:
        records = []
        for fld in metaobject.get("fields") or []:
            source = MetaobjectSource(
                metaobject_id=metaobject.get("id"),
                field_key=fld.get("key"),
                metaobject_type=metaobject.get("type"),
                metaobject_handle=metaobject.get("handle"),
                field_type=fld.get("type"),
            )
            reference = fld.get("reference") or {}
            image = reference.get("image") or {}
            if fld.get("type") in METAOBJECT_FILE_FIELD_TYPES and image.get("url"):
                records.append(
                    self._record(
                        image["url"],
                        source,
                        alt=reference.get("alt"),
                        width=image.get("width"),
                        height=image.get("height"),
                    )
                )
            elif fld.get("type") in METAOBJECT_TEXT_FIELD_TYPES and looks_like_image_url(fld.get("value")):
                records.append(self._record(fld["value"], source))
        return records


EXTRACTORS = OrderedDict(
    (cls.category, cls)
    for cls in (
        ThemeExtractor,
        ProductExtractor,
        CollectionExtractor,
        BlogExtractor,
        PageExtractor,
        MetafieldExtractor,
        FileExtractor,
        MetaobjectExtractor,
    )
)
