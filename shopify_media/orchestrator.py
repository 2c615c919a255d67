"""
Media Orchestrator — Pipeline coordination for Shopify media aggregation.

This module ties the other modules (ShopifyClient, Paginator,
MediaAggregator, ImageAnalyzer, ImageTypeResolver, ReplacementDispatcher,
OutputManager) into the workflows run.py exposes.

Aggregation run:

  Step 1: CONNECT
      Calls ShopifyClient.get_shop() so a bad token or shop domain fails
      fast, before eight sources are walked.

  Step 2: AGGREGATE
      MediaAggregator runs every source extractor behind the shared throttle
      and returns an AggregationResult. Failing sources are listed under
      "skipped", truncated ones under "partial"; neither fails the run.

  Step 3: ANALYZE (optional, --analyze)
      ImageAnalyzer downloads each image from the CDN to record size and
      dimensions, then the optimization estimate summarizes the savings.

  Step 4: SAVE OUTPUT
      Writes media.json (and optimization.json) to a timestamped folder.

Replace run (--replace URL --image PATH):

  Step 1: RESOLVE
      ImageTypeResolver turns URL, category and side data into a Locator.

  Step 2: REPLACE
      ReplacementDispatcher uploads the bytes and re-points the resource.

Configuration:
    Settings come from a .env file (python-dotenv), then the environment,
    then DEFAULT_SETTINGS. Required: SHOPIFY_SHOP, SHOPIFY_ACCESS_TOKEN.

Typical usage:
    orchestrator = MediaOrchestrator(env_file="./.env")
    if orchestrator.validate_config():
        results = orchestrator.run()
        orchestrator.print_summary(results)
"""

import logging
import os
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv

from .aggregator import MediaAggregator
from .image_analyzer import ImageAnalyzer
from .image_type_resolver import ImageTypeResolver
from .image_urls import get_scanner
from .optimization import summarize_savings
from .output_manager import OutputManager
from .paginator import MemoryGuard, Paginator, RetryPolicy
from .rate_limiter import get_shared_limiter
from .replacement_dispatcher import ReplacementDispatcher
from .settings import DEFAULT_SETTINGS
from .shopify_client import ShopifyClient

logger = logging.getLogger(__name__)


def _coerce(value: str, default: Any) -> Any:
    """Convert an environment string to the type of its default."""
    if isinstance(default, bool):
        return value.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    return value


def load_settings(environ: Optional[Mapping[str, str]] = None,
                  overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """Merge DEFAULT_SETTINGS, environment values and explicit overrides.

    Args:
        environ: Source of environment strings (default: os.environ).
        overrides: Already-typed values that win over everything else.

    Returns:
        A complete settings dict keyed like DEFAULT_SETTINGS.

    Raises:
        ValueError: If an environment value cannot be converted.
    """
    environ = os.environ if environ is None else environ
    settings = dict(DEFAULT_SETTINGS)
    for key, default in DEFAULT_SETTINGS.items():
        raw = environ.get(key)
        if raw not in (None, ""):
            try:
                settings[key] = _coerce(raw, default)
            except ValueError:
                raise ValueError(f"{key} must be a {type(default).__name__}, got {raw!r}")
    if overrides:
        settings.update(overrides)
    return settings


def create_client(shop: str, access_token: str, settings: Mapping[str, Any]) -> ShopifyClient:
    limiter = get_shared_limiter(settings["API_CALL_DELAY"])
    return ShopifyClient(
        shop,
        access_token,
        rate_limiter=limiter,
        api_version=settings["SHOPIFY_API_VERSION"],
        timeout=settings["REQUEST_TIMEOUT"],
        debug=settings["DEBUG"],
    )


def create_paginator(client, settings: Mapping[str, Any]) -> Paginator:
    if settings["RATE_LIMIT_MAX_ATTEMPTS"] < 1:
        raise ValueError("RATE_LIMIT_MAX_ATTEMPTS must be at least 1")
    return Paginator(
        client,
        retry_policy=RetryPolicy(
            max_attempts=settings["RATE_LIMIT_MAX_ATTEMPTS"],
            delay=settings["RATE_LIMIT_RETRY_DELAY"],
        ),
        memory_guard=MemoryGuard(settings["MEMORY_LIMIT_MB"]),
        max_pages=settings["MAX_PAGES"],
    )


def create_aggregator(client, settings: Mapping[str, Any], paginator: Optional[Paginator] = None,
                      categories=None) -> MediaAggregator:
    return MediaAggregator(
        client,
        paginator=paginator or create_paginator(client, settings),
        categories=categories,
        html_scanner=get_scanner(settings["HTML_SCANNER"]),
        metafield_sample_size=settings["METAFIELD_SAMPLE_SIZE"],
    )


def _banner(title: str) -> None:
    print(f"\n{'='*60}")
    print(title)
    print("="*60)


class MediaOrchestrator:
    """Runs the aggregation and replace workflows for one store.

    Attributes:
        shop: Store domain (e.g., "acme.myshopify.com").
        access_token: Admin API access token.
        settings: Merged configuration (see settings.py).
        analyze: Whether run() downloads images to record size and dimensions.
        save_json: Whether results are written to disk.
        debug: Whether to print tracebacks and enable debug logging.
        output_manager: Handles timestamped output folders and retention cleanup.
    """

    def __init__(self, env_file: str = "./.env"):
        """Load configuration from env_file (if present) and the environment.

        Args:
            env_file: Path to a .env file, loaded via python-dotenv when it exists.
        """
        env_path = Path(env_file)
        if env_path.exists():
            load_dotenv(env_path)
            print(f"Loaded configuration from: {env_file}")
        else:
            print(f"Warning: {env_file} not found, using defaults/environment")

        self.shop = os.getenv("SHOPIFY_SHOP", "")
        self.access_token = os.getenv("SHOPIFY_ACCESS_TOKEN", "")
        self.settings = load_settings()

        self.analyze = False
        self.save_json = self.settings["SAVE_JSON"]
        self.debug = self.settings["DEBUG"]

        self.output_manager = OutputManager(
            self.settings["OUTPUT_DIR"],
            self.shop or self.settings["PROVIDER_NAME"],
            self.settings["OUTPUT_RETENTION_DAYS"],
        )

    def validate_config(self) -> bool:
        """Check that the required values are present.

        Returns:
            True if SHOPIFY_SHOP and SHOPIFY_ACCESS_TOKEN are set and
            HTML_SCANNER names a known scanner and RATE_LIMIT_MAX_ATTEMPTS
            is at least 1. Prints each problem otherwise.
        """
        errors = []
        if not self.shop:
            errors.append("SHOPIFY_SHOP is required")
        if not self.access_token:
            errors.append("SHOPIFY_ACCESS_TOKEN is required")
        if self.settings["RATE_LIMIT_MAX_ATTEMPTS"] < 1:
            errors.append("RATE_LIMIT_MAX_ATTEMPTS must be at least 1")
        try:
            get_scanner(self.settings["HTML_SCANNER"])
        except ValueError as e:
            errors.append(str(e))

        if errors:
            print("\nConfiguration Errors:")
            for err in errors:
                print(f"  - {err}")
            return False
        return True

    def _effective_settings(self) -> Dict[str, Any]:
        return dict(self.settings, DEBUG=self.debug, SAVE_JSON=self.save_json)

    def run(self) -> Dict[str, Any]:
        """Execute the aggregation pipeline.

        Returns:
            A dict containing:
                - started_at/completed_at: ISO timestamps
                - mode: "aggregate"
                - shop: Normalized store domain
                - success: True if every step completed
                - summary: totalFiles, per-category counts, skipped, partial
                - optimization: Savings summary (only with analyze)
                - json_path: Path to media.json (if save_json)
                - error: Error message (if success=False)
        """
        settings = self._effective_settings()
        results = {
            "started_at": datetime.now(timezone.utc).isoformat(),
            "mode": "aggregate",
            "shop": self.shop,
            "config": {
                "api_version": settings["SHOPIFY_API_VERSION"],
                "analyze": self.analyze,
                "html_scanner": settings["HTML_SCANNER"],
            },
            "success": False,
        }

        try:
            _banner("STEP 1: CONNECT")
            client = create_client(self.shop, self.access_token, settings)
            results["shop"] = client.shop
            shop = client.get_shop()
            print(f"  Connected to: {shop.get('name', client.shop)}")

            _banner("STEP 2: AGGREGATE")
            aggregation = create_aggregator(client, settings).aggregate()
            for category, count in aggregation.category_counts.items():
                print(f"  {category}: {count}")
            if aggregation.skipped:
                print(f"  Skipped: {', '.join(aggregation.skipped)}")
            if aggregation.partial:
                print(f"  Partial: {', '.join(aggregation.partial)}")

            if self.analyze:
                _banner("STEP 3: ANALYZE")
                ImageAnalyzer().analyze(aggregation.images)
                results["optimization"] = summarize_savings(aggregation.images)
                print(f"  Analyzed {aggregation.total_files} images")
                print(f"  Estimated savings: {results['optimization']['formattedSavings']}")

            _banner("STEP 4: SAVE OUTPUT")
            if self.save_json:
                results["json_path"] = self.output_manager.write_json("media.json", aggregation.to_dict())
                print(f"  Saved media list: {results['json_path']}")
                if "optimization" in results:
                    self.output_manager.write_json("optimization.json", results["optimization"])
            else:
                print("  SAVE_JSON disabled, nothing written")

            results["success"] = True
            results["summary"] = dict(
                aggregation.stats,
                skipped=list(aggregation.skipped),
                partial=list(aggregation.partial),
            )

        except Exception as e:
            results["error"] = str(e)
            print(f"\n  ERROR: {e}")
            if self.debug:
                traceback.print_exc()

        return self._finish(results)

    def replace(self, url: str, image_path: str, category: Optional[str] = None,
                side_data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Replace one image with the contents of image_path.

        Returns:
            A dict with success, locator type, the ReplacementResult fields
            under "replacement", and error when success is False.
        """
        settings = self._effective_settings()
        results = {
            "started_at": datetime.now(timezone.utc).isoformat(),
            "mode": "replace",
            "shop": self.shop,
            "url": url,
            "category": category,
            "success": False,
        }

        try:
            _banner("STEP 1: RESOLVE")
            locator = ImageTypeResolver().resolve(url, category, side_data)
            results["image_type"] = locator.type
            print(f"  Image type: {locator.type}")
            for name, value in locator.fields.items():
                if value is not None:
                    print(f"  {name}: {value}")

            _banner("STEP 2: REPLACE")
            image_bytes = Path(image_path).read_bytes()
            client = create_client(self.shop, self.access_token, settings)
            dispatcher = ReplacementDispatcher(client, create_paginator(client, settings))
            replacement = dispatcher.replace(locator, image_bytes, Path(image_path).name)
            results["replacement"] = replacement.to_dict()
            results["success"] = True
            print(f"  New URL: {replacement.new_url}")

        except Exception as e:
            results["error"] = str(e)
            print(f"\n  ERROR: {e}")
            if self.debug:
                traceback.print_exc()

        return self._finish(results)

    def _finish(self, results: Dict[str, Any]) -> Dict[str, Any]:
        results["completed_at"] = datetime.now(timezone.utc).isoformat()
        if self.save_json:
            try:
                path = self.output_manager.write_json("run_results.json", results)
                print(f"\n  Results saved to: {path}")
            except OSError as e:
                logger.warning("Could not save run results: %s", e)
        return results

    def print_summary(self, results: Dict[str, Any]):
        """Print a human-readable execution summary.

        Args:
            results: The dict returned by run() or replace().
        """
        _banner("REPLACE COMPLETE" if results.get("mode") == "replace" else "AGGREGATION COMPLETE")
        print(f"Status: {'SUCCESS' if results.get('success') else 'FAILED'}")
        print(f"Shop: {results.get('shop', 'N/A')}")

        summary = results.get("summary", {})
        if summary:
            print(f"Total images: {summary.get('totalFiles', 0)}")
            for category, count in summary.get("categories", {}).items():
                print(f"  {category}: {count}")
            if summary.get("skipped"):
                print(f"Skipped: {', '.join(summary['skipped'])}")
            if summary.get("partial"):
                print(f"Partial: {', '.join(summary['partial'])}")

        optimization = results.get("optimization")
        if optimization:
            print(f"Optimizable images: {optimization['optimizableImages']}")
            print(f"Estimated savings: {optimization['formattedSavings']} "
                  f"({optimization['totalSavingsPercent']}%)")

        replacement = results.get("replacement")
        if replacement:
            print(f"Image type: {replacement['imageType']}")
            print(f"New URL: {replacement['newUrl']}")

        if results.get("error"):
            print(f"Error: {results['error']}")
