"""
Media Aggregator — Runs every source extractor and merges their output.

Each of the eight extractors is independently fallible. A failing extractor
is logged and its category appended to `skipped`; the others still run and
their images are returned. An extractor whose listing was cut short (rate
limit retries exhausted, memory ceiling, page bound) still contributes what
it fetched and its category is listed under `partial`.

Extractors run sequentially in registry order, so products and collections
are listed before the metafields extractor samples them. All upstream calls
share one RateLimiter through the client, so running more extractors never
raises the request rate.
"""

import logging
from typing import Iterable, Optional

from .image_urls import HtmlImageScanner
from .models import AggregationResult
from .paginator import Paginator
from .settings import DEFAULT_SETTINGS
from .source_extractors import EXTRACTORS, ExtractionContext

logger = logging.getLogger(__name__)


class MediaAggregator:
    """Aggregates images from every source type of one store.

    Attributes:
        client: ShopifyClient for the store.
        paginator: Paginator bound to the same client.
        categories: Which sources to run (default: all eight).
    """

    def __init__(
        self,
        client,
        paginator: Optional[Paginator] = None,
        categories: Optional[Iterable[str]] = None,
        html_scanner: Optional[HtmlImageScanner] = None,
        metafield_sample_size: int = DEFAULT_SETTINGS["METAFIELD_SAMPLE_SIZE"],
        extractors=None,
    ):
        self.client = client
        self.paginator = paginator or Paginator(client)
        self.extractors = extractors or EXTRACTORS
        self.categories = list(categories) if categories is not None else list(self.extractors)
        unknown = [c for c in self.categories if c not in self.extractors]
        if unknown:
            raise ValueError(f"Unknown image categories: {', '.join(unknown)}")
        self.html_scanner = html_scanner
        self.metafield_sample_size = metafield_sample_size

    def aggregate(self) -> AggregationResult:
        """Run the selected extractors and combine their records.

        Returns:
            AggregationResult with images, skipped and partial categories,
            and per-category counts. Never raises for a failing source.
        """
        result = AggregationResult()
        context = ExtractionContext()

        for category in self.categories:
            extractor = self.extractors[category](
                self.client,
                self.paginator,
                context=context,
                html_scanner=self.html_scanner,
                metafield_sample_size=self.metafield_sample_size,
            )
            try:
                outcome = extractor.extract()
            except Exception as e:
                logger.warning("[API Error] %s: %s", category, e)
                result.skipped.append(category)
                continue

            result.add(outcome.records)
            if outcome.partial:
                result.partial.append(category)
            logger.info("Found %d %s images%s", len(outcome.records), category,
                        " (partial)" if outcome.partial else "")

        logger.info("Aggregation complete: %d images, skipped=%s, partial=%s",
                    result.total_files, result.skipped, result.partial)
        return result
