"""
Settings — Default configuration values for the Shopify media aggregator.

This module provides the DEFAULT_SETTINGS dict that the orchestrator uses as
fallback values when environment variables are not set. The actual configuration
is loaded from .env at runtime; these defaults keep the aggregator usable out
of the box against any store.

Configuration precedence (highest to lowest):
  1. CLI flags (--debug, --analyze)
  2. Environment variables (from .env file)
  3. DEFAULT_SETTINGS (this file)

Settings reference:
  SHOPIFY_API_VERSION      Admin API version used for REST and GraphQL paths
  API_CALL_DELAY           Seconds between any two upstream calls (global throttle)
  REQUEST_TIMEOUT          Per-call timeout in seconds
  RATE_LIMIT_MAX_ATTEMPTS  Attempts per page when Shopify answers 429 (1 retry)
  RATE_LIMIT_RETRY_DELAY   Fixed wait before retrying a rate-limited page
  MAX_PAGES                Upper bound on pages fetched for one listing
  MEMORY_LIMIT_MB          Process RSS ceiling that truncates a listing (0 = off)
  METAFIELD_SAMPLE_SIZE    How many products / collections get metafield lookups
  HTML_SCANNER             "regex" or "soup" — how <img> tags are found in HTML
  OUTPUT_DIR               Where to write aggregation output (default: ./output)
  OUTPUT_RETENTION_DAYS    How many days to keep old output folders (0 = keep forever)
  SAVE_JSON                Whether to write the aggregation result to disk
  DEBUG                    Whether to enable debug logging
"""

PROVIDER_NAME = "Shopify_Media"

CATEGORIES = (
    "theme",
    "products",
    "collections",
    "blogs",
    "pages",
    "metafields",
    "files",
    "metaobjects",
)

IMAGE_EXTENSIONS = ("png", "jpg", "jpeg", "gif", "webp", "svg", "ico")

DEFAULT_SETTINGS = {
    "PROVIDER_NAME": PROVIDER_NAME,
    "SHOPIFY_API_VERSION": "2023-10",
    "API_CALL_DELAY": 2.0,
    "REQUEST_TIMEOUT": 30,
    "RATE_LIMIT_MAX_ATTEMPTS": 2,
    "RATE_LIMIT_RETRY_DELAY": 2.0,
    "MAX_PAGES": 200,
    "MEMORY_LIMIT_MB": 1024,
    "METAFIELD_SAMPLE_SIZE": 50,
    "HTML_SCANNER": "regex",
    "OUTPUT_DIR": "./output",
    "OUTPUT_RETENTION_DAYS": 30,
    "SAVE_JSON": True,
    "DEBUG": False,
}
