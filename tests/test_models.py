"""Tests for shopify_media.models."""

import pytest

from shopify_media.models import (
    AggregationResult,
    BlogSource,
    CollectionSource,
    FileSource,
    ImageRecord,
    MetaobjectSource,
    ProductSource,
    ReplacementResult,
)

URL = "https://cdn.shopify.com/s/files/1/0001/a.jpg"


def test_record_rejects_invalid_url_and_category():
    with pytest.raises(ValueError):
        ImageRecord(url="/relative.jpg", category="products")
    with pytest.raises(ValueError):
        ImageRecord(url=URL, category="videos")


def test_record_rejects_mismatched_source():
    with pytest.raises(ValueError):
        ImageRecord(url=URL, category="blogs", source=ProductSource(1, 2))


def test_record_defaults():
    record = ImageRecord(url=URL, category="files")
    assert (record.size, record.width, record.height) == (0, 0, 0)
    assert record.size_formatted == "Not checked"
    assert record.source == FileSource()


def test_to_dict_flattens_source_identifiers():
    record = ImageRecord(
        url=URL,
        category="blogs",
        source=BlogSource(blog_id=20, article_id=30, blog_title="News", article_title="Launch"),
    )

    assert record.to_dict() == {
        "url": URL,
        "category": "blogs",
        "size": 0,
        "sizeFormatted": "Not checked",
        "isLarge": False,
        "width": 0,
        "height": 0,
        "blogId": 20,
        "articleId": 30,
        "blogTitle": "News",
        "articleTitle": "Launch",
    }


def test_from_dict_restores_typed_source():
    data = {
        "url": URL,
        "category": "metaobjects",
        "size": 2048,
        "width": 10,
        "height": 20,
        "metaobjectId": "gid://shopify/Metaobject/9",
        "fieldKey": "image",
        "imageType": "product",
    }

    record = ImageRecord.from_dict(data)

    assert record.source == MetaobjectSource(metaobject_id="gid://shopify/Metaobject/9", field_key="image")
    assert record.size == 2048
    assert record.image_type == "product"
    assert record.is_replaceable


def test_is_replaceable_requires_locator_fields():
    assert not ImageRecord(url=URL, category="products", source=ProductSource(product_id=1)).is_replaceable
    assert not ImageRecord(url=URL, category="collections", source=CollectionSource(collection_id=5)).is_replaceable
    assert ImageRecord(url=URL, category="files").is_replaceable


def test_aggregation_result_counts_per_category():
    result = AggregationResult()
    result.add([
        ImageRecord(url=URL, category="products", source=ProductSource(1, 2)),
        ImageRecord(url=URL, category="products", source=ProductSource(1, 3)),
        ImageRecord(url=URL, category="files"),
    ])

    stats = result.to_dict()["stats"]
    assert stats["totalFiles"] == 3
    assert stats["categories"]["products"] == 2
    assert stats["categories"]["files"] == 1
    assert stats["categories"]["theme"] == 0


def test_replacement_result_to_dict():
    result = ReplacementResult("https://cdn.shopify.com/new.jpg", 11, "product")
    assert result.to_dict() == {"newUrl": "https://cdn.shopify.com/new.jpg", "resourceId": 11, "imageType": "product"}
