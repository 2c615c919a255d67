"""
Data models used throughout the aggregation and replacement pipeline.

ImageRecord is the unit everything operates on. Where an image came from is
captured by an ImageSource variant chosen by the extractor that produced the
record; each variant carries exactly the identifiers its replace path needs.

Wire format:
    Records travel to the web layer as flat dicts with camelCase keys, the
    source identifiers merged in beside the image fields:

    {
      "url": "https://cdn.shopify.com/...",
      "category": "blogs",
      "size": 0, "sizeFormatted": "Not checked", "isLarge": false,
      "width": 0, "height": 0,
      "blogId": 12, "articleId": 34, "blogTitle": "News", ...
    }

    ImageRecord.from_dict() accepts the same shape back, so a record that
    round-trips through a browser can still be resolved and replaced.
"""

from dataclasses import dataclass, field, fields as dataclass_fields
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Type

from .image_urls import validate_image_url
from .settings import CATEGORIES


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


@dataclass
class ImageSource:
    """Base class for the per-category locator variants."""

    CATEGORY: ClassVar[str] = ""
    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = ()

    def missing_fields(self) -> List[str]:
        return [name for name in self.REQUIRED_FIELDS if getattr(self, name) in (None, "")]

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()

    def to_side_data(self) -> Dict[str, Any]:
        """Return the identifiers as camelCase keys, skipping empty ones."""
        data = {}
        for f in dataclass_fields(self):
            value = getattr(self, f.name)
            if value is not None:
                data[_camel(f.name)] = value
        return data

    @classmethod
    def from_side_data(cls, data: Dict[str, Any]) -> "ImageSource":
        kwargs = {}
        for f in dataclass_fields(cls):
            key = _camel(f.name)
            if key in data:
                kwargs[f.name] = data[key]
        return cls(**kwargs)


@dataclass
class ThemeSource(ImageSource):
    CATEGORY: ClassVar[str] = "theme"
    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = ("theme_id", "asset_key")

    theme_id: Optional[int] = None
    asset_key: Optional[str] = None


@dataclass
class ProductSource(ImageSource):
    CATEGORY: ClassVar[str] = "products"
    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = ("product_id", "image_id")

    product_id: Optional[int] = None
    image_id: Optional[int] = None


@dataclass
class CollectionSource(ImageSource):
    CATEGORY: ClassVar[str] = "collections"
    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = ("collection_id", "collection_type")

    collection_id: Optional[int] = None
    collection_title: Optional[str] = None
    collection_type: Optional[str] = None


@dataclass
class BlogSource(ImageSource):
    CATEGORY: ClassVar[str] = "blogs"
    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = ("blog_id", "article_id")

    blog_id: Optional[int] = None
    article_id: Optional[int] = None
    blog_title: Optional[str] = None
    article_title: Optional[str] = None


@dataclass
class PageSource(ImageSource):
    CATEGORY: ClassVar[str] = "pages"
    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = ("page_id",)

    page_id: Optional[int] = None
    page_title: Optional[str] = None
    page_handle: Optional[str] = None


@dataclass
class MetafieldSource(ImageSource):
    CATEGORY: ClassVar[str] = "metafields"
    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = ("metafield_id",)

    metafield_id: Optional[int] = None
    metafield_key: Optional[str] = None
    metafield_namespace: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[int] = None
    metafield_type: Optional[str] = None


@dataclass
class FileSource(ImageSource):
    CATEGORY: ClassVar[str] = "files"
    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = ()

    file_id: Optional[str] = None


@dataclass
class MetaobjectSource(ImageSource):
    CATEGORY: ClassVar[str] = "metaobjects"
    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = ("metaobject_id", "field_key")

    metaobject_id: Optional[str] = None
    field_key: Optional[str] = None
    metaobject_type: Optional[str] = None
    metaobject_handle: Optional[str] = None
    field_type: Optional[str] = None


SOURCE_TYPES: Dict[str, Type[ImageSource]] = {
    cls.CATEGORY: cls
    for cls in (
        ThemeSource,
        ProductSource,
        CollectionSource,
        BlogSource,
        PageSource,
        MetafieldSource,
        FileSource,
        MetaobjectSource,
    )
}


@dataclass
class ImageRecord:
    """A single image found in the store, plus optional analysis results."""

    url: str
    category: str
    source: Optional[ImageSource] = None
    size: int = 0
    width: int = 0
    height: int = 0
    alt: Optional[str] = None
    mime_type: Optional[str] = None
    size_formatted: str = "Not checked"
    is_large: bool = False
    type: Optional[str] = None
    image_type: Optional[str] = None
    aspect_ratio: Optional[str] = None
    total_pixels: int = 0

    def __post_init__(self):
        if self.category not in CATEGORIES:
            raise ValueError(f"Unknown image category: {self.category!r}")
        if not validate_image_url(self.url):
            raise ValueError(f"Not an absolute http(s) URL: {self.url!r}")
        if self.source is None:
            self.source = SOURCE_TYPES[self.category]()
        elif self.source.CATEGORY != self.category:
            raise ValueError(
                f"{type(self.source).__name__} cannot describe a {self.category} image"
            )

    @property
    def is_replaceable(self) -> bool:
        """False when the locator lacks fields its replace branch needs."""
        return self.source.is_complete

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "url": self.url,
            "category": self.category,
            "size": self.size,
            "sizeFormatted": self.size_formatted,
            "isLarge": self.is_large,
            "width": self.width,
            "height": self.height,
        }
        optional = {
            "alt": self.alt,
            "mimeType": self.mime_type,
            "type": self.type,
            "imageType": self.image_type,
            "aspectRatio": self.aspect_ratio,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        if self.total_pixels:
            data["totalPixels"] = self.total_pixels
        data.update(self.source.to_side_data())
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImageRecord":
        category = data["category"]
        source_cls = SOURCE_TYPES.get(category)
        if source_cls is None:
            raise ValueError(f"Unknown image category: {category!r}")
        return cls(
            url=data["url"],
            category=category,
            source=source_cls.from_side_data(data),
            size=data.get("size", 0) or 0,
            width=data.get("width", 0) or 0,
            height=data.get("height", 0) or 0,
            alt=data.get("alt"),
            mime_type=data.get("mimeType"),
            size_formatted=data.get("sizeFormatted", "Not checked"),
            is_large=bool(data.get("isLarge", False)),
            type=data.get("type"),
            image_type=data.get("imageType"),
            aspect_ratio=data.get("aspectRatio"),
            total_pixels=data.get("totalPixels", 0) or 0,
        )


@dataclass
class Locator:
    """Where an image lives, re-derived every time a replace is requested.

    type is one of: product, collection, theme, file, blog, page,
    metafield, metaobject. fields holds sub-identifiers, any of which may
    be None when the replace path has to search for the resource.
    """

    type: str
    original_url: str
    fields: Dict[str, Any] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        value = self.fields.get(name)
        return default if value is None else value


@dataclass
class ReplacementResult:
    new_url: str
    resource_id: Any
    image_type: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "newUrl": self.new_url,
            "resourceId": self.resource_id,
            "imageType": self.image_type,
        }


@dataclass
class AggregationResult:
    """Combined output of one aggregation run. Never persisted."""

    images: List[ImageRecord] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    partial: List[str] = field(default_factory=list)
    category_counts: Dict[str, int] = field(
        default_factory=lambda: {category: 0 for category in CATEGORIES}
    )

    def add(self, records: List[ImageRecord]) -> None:
        for record in records:
            self.images.append(record)
            self.category_counts[record.category] += 1

    @property
    def total_files(self) -> int:
        return len(self.images)

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            "totalFiles": self.total_files,
            "categories": dict(self.category_counts),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "images": [image.to_dict() for image in self.images],
            "skipped": list(self.skipped),
            "partial": list(self.partial),
            "stats": self.stats,
        }
