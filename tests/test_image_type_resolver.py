"""Tests for shopify_media.image_type_resolver.ImageTypeResolver."""

import pytest

from shopify_media.image_type_resolver import ImageTypeResolver
from shopify_media.models import BlogSource, ProductSource

CDN = "https://cdn.shopify.com/s/files/1/0001/2345"


@pytest.fixture
def resolver():
    return ImageTypeResolver()


# ---------------------------------------------------------------------------
# Side-channel identifiers
# ---------------------------------------------------------------------------


class TestSideChannel:
    def test_metafield_id_wins_over_url_and_category(self, resolver):
        locator = resolver.resolve(
            f"{CDN}/files/hero.png",
            "products",
            {"metafieldId": 500, "metafieldKey": "hero", "metafieldNamespace": "custom",
             "resourceType": "product", "resourceId": 1, "productId": 1},
        )
        assert locator.type == "metafield"
        assert locator.fields["metafield_id"] == 500
        assert locator.fields["metafield_key"] == "hero"

    def test_metaobject_before_file(self, resolver):
        locator = resolver.resolve(
            f"{CDN}/files/a.png", "metaobjects",
            {"metaobjectId": "gid://shopify/Metaobject/9", "fieldKey": "image", "fileId": "gid://x"},
        )
        assert locator.type == "metaobject"
        assert locator.fields["field_key"] == "image"

    def test_blog_side_data(self, resolver):
        locator = resolver.resolve(f"{CDN}/files/a.jpg", "blogs", {"blogId": 20, "articleId": 30})
        assert locator.type == "blog"
        assert locator.fields["blog_id"] == 20
        assert locator.fields["article_id"] == 30

    def test_page_side_data(self, resolver):
        locator = resolver.resolve(f"{CDN}/files/a.jpg", "pages", {"pageId": 40})
        assert locator.type == "page"
        assert locator.get("page_id") == 40

    def test_typed_source_is_accepted(self, resolver):
        locator = resolver.resolve(f"{CDN}/files/a.jpg", None, BlogSource(blog_id=1, article_id=2))
        assert locator.type == "blog"
        assert locator.fields["article_id"] == 2

    def test_product_side_data(self, resolver):
        locator = resolver.resolve(f"{CDN}/products/a.jpg", "products", ProductSource(5, 6).to_side_data())
        assert locator.type == "product"
        assert (locator.get("product_id"), locator.get("image_id")) == (5, 6)

    def test_unrelated_side_data_is_ignored(self, resolver):
        locator = resolver.resolve(f"{CDN}/files/a.jpg", "files", {"somethingElse": 1})
        assert locator.type == "file"


# ---------------------------------------------------------------------------
# URL patterns
# ---------------------------------------------------------------------------


class TestUrlPatterns:
    def test_product_url_extracts_both_ids(self, resolver):
        locator = resolver.resolve("https://shop.example.com/products/123/images/456.jpg")
        assert locator.type == "product"
        assert locator.fields == {"product_id": 123, "image_id": 456}

    def test_collection_url(self, resolver):
        locator = resolver.resolve("https://shop.example.com/collections/summer-sale/banner.jpg")
        assert locator.type == "collection"
        assert locator.fields["collection_handle"] == "summer-sale"
        assert locator.fields["collection_id"] is None

    def test_collections_category_hint_on_cdn_url(self, resolver):
        locator = resolver.resolve(f"{CDN}/collections/summer.jpg", "collections")
        assert locator.type == "collection"

    def test_theme_asset_url(self, resolver):
        locator = resolver.resolve(f"{CDN}/t/77/assets/logo.png?v=123")
        assert locator.type == "theme"
        assert locator.fields == {"theme_id": 77, "asset_key": "assets/logo.png"}

    def test_files_url_without_hint(self, resolver):
        locator = resolver.resolve(f"{CDN}/files/banner.webp")
        assert locator.type == "file"
        assert locator.fields["file_name"] == "banner.webp"

    def test_files_url_defers_to_other_category_hint(self, resolver):
        locator = resolver.resolve(f"{CDN}/files/team.jpg", "pages")
        assert locator.type == "page"
        assert locator.get("page_id") is None


# ---------------------------------------------------------------------------
# Fallbacks
# ---------------------------------------------------------------------------


class TestFallbacks:
    @pytest.mark.parametrize("category,expected", [
        ("theme", "theme"),
        ("products", "product"),
        ("blogs", "blog"),
        ("metafields", "metafield"),
        ("metaobjects", "metaobject"),
    ])
    def test_category_hint_with_empty_fields(self, resolver, category, expected):
        locator = resolver.resolve("https://example.com/img/a.jpg", category)
        assert locator.type == expected
        assert all(value is None for value in locator.fields.values())

    def test_unknown_everything_is_a_file(self, resolver):
        locator = resolver.resolve("https://example.com/img/a.jpg")
        assert locator.type == "file"
        assert locator.fields == {"file_id": None, "file_name": None}
        assert locator.original_url == "https://example.com/img/a.jpg"
