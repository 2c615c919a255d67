"""
Shopify media package — Aggregation and replacement of store images.

Each module handles one concern:

  orchestrator.py           .env-driven workflows behind run.py
  shopify_client.py         HTTP communication with the Shopify Admin API
  rate_limiter.py           Global throttle gate shared by every client
  paginator.py              Link-header and cursor paging, 429 retry, memory guard
  graphql_queries.py        GraphQL queries and mutations
  source_extractors.py      One extractor per image source
  aggregator.py             Runs the extractors and combines their records
  image_type_resolver.py    URL + category + side data -> Locator
  replacement_dispatcher.py Locator + bytes -> updated resource
  image_analyzer.py         Optional size/dimension pass
  optimization.py           Savings estimate for analyzed images
  output_manager.py         Timestamped JSON output and retention cleanup
"""

from typing import Any, Dict, Mapping, Optional, Union

from .aggregator import MediaAggregator
from .errors import (
    RateLimited,
    ReplacementError,
    ResourceExhaustion,
    ResourceNotFound,
    ShopifyMediaError,
    UpstreamError,
)
from .image_analyzer import ImageAnalyzer
from .image_type_resolver import ImageTypeResolver
from .models import AggregationResult, ImageRecord, ImageSource, Locator, ReplacementResult
from .optimization import estimate_savings, summarize_savings
from .orchestrator import MediaOrchestrator, create_aggregator, create_client, create_paginator, load_settings
from .replacement_dispatcher import ReplacementDispatcher
from .shopify_client import ShopifyClient


def aggregate_media(shop: str, access_token: str,
                    settings: Optional[Mapping[str, Any]] = None) -> AggregationResult:
    """Enumerate every image of a store across all eight sources.

    Args:
        shop: Store domain (e.g., "acme.myshopify.com").
        access_token: Admin API access token.
        settings: Overrides for DEFAULT_SETTINGS keys.

    Returns:
        AggregationResult. Source failures are reported in skipped/partial,
        never raised.
    """
    merged = load_settings(environ={}, overrides=settings)
    client = create_client(shop, access_token, merged)
    return create_aggregator(client, merged).aggregate()


def resolve_and_replace(
    shop: str,
    access_token: str,
    url: str,
    category: Optional[str],
    image_bytes: bytes,
    side_data: Optional[Union[Dict[str, Any], ImageSource]] = None,
    settings: Optional[Mapping[str, Any]] = None,
    filename: Optional[str] = None,
) -> ReplacementResult:
    """Resolve which resource owns url and replace its image with image_bytes.

    Raises:
        ResourceNotFound: No resource referencing url could be found.
        ReplacementError: The replace chain failed.
    """
    merged = load_settings(environ={}, overrides=settings)
    locator = ImageTypeResolver().resolve(url, category, side_data)
    client = create_client(shop, access_token, merged)
    dispatcher = ReplacementDispatcher(client, create_paginator(client, merged))
    return dispatcher.replace(locator, image_bytes, filename)
