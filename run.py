#!/usr/bin/env python3
"""
Shopify Media Aggregator — Entry Point.

Reads configuration from a .env file and either lists every image of the
store or replaces a single one.

The aggregation run (managed by MediaOrchestrator) performs 4 steps:
  1. Connect and check the access token
  2. Walk theme, products, collections, blogs, pages, metafields, files
     and metaobjects for image URLs
  3. Optionally download each image for size, dimensions and savings
  4. Save the result as timestamped JSON files

Usage:
    python run.py                                     # Aggregate and save JSON
    python run.py --analyze                           # Also measure every image
    python run.py --replace URL --image new.png       # Replace one image
    python run.py --replace URL --image new.png --category products
    python run.py --debug                             # Verbose output
    python run.py --version                           # Show version
    python run.py --env /path                         # Use alternate .env file
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from shopify_media import MediaOrchestrator
from shopify_media.settings import CATEGORIES

# Single version for the whole repository lives in VERSION next to this file.
VERSION_FILE = Path(__file__).resolve().parent / "VERSION"
VERSION = VERSION_FILE.read_text().strip() if VERSION_FILE.exists() else "unknown"


def main():
    """Parse CLI arguments and run the requested workflow."""
    parser = argparse.ArgumentParser(
        description="Shopify Media Aggregator - List and replace store images"
    )
    parser.add_argument("--env", "-e", default="./.env", help="Path to .env file")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    parser.add_argument("--analyze", action="store_true",
                        help="Download each image to record size and dimensions")
    parser.add_argument("--replace", metavar="URL", help="URL of the image to replace")
    parser.add_argument("--image", metavar="PATH", help="Replacement image file (with --replace)")
    parser.add_argument("--category", choices=CATEGORIES, help="Category hint for --replace")
    parser.add_argument("--side-data", metavar="JSON",
                        help='Extraction identifiers for --replace, e.g. \'{"productId": 1}\'')
    parser.add_argument("--version", "-v", action="store_true", help="Show version and exit")

    args = parser.parse_args()

    if args.version:
        print(f"shopify-media {VERSION}")
        sys.exit(0)

    if args.replace and not args.image:
        parser.error("--replace requires --image")

    side_data = None
    if args.side_data:
        try:
            side_data = json.loads(args.side_data)
        except ValueError as e:
            parser.error(f"--side-data is not valid JSON: {e}")

    # Initialize the orchestrator (loads .env and builds internal config)
    orchestrator = MediaOrchestrator(env_file=args.env)

    # Apply CLI overrides on top of .env values
    if args.debug:
        orchestrator.debug = True
    if args.analyze:
        orchestrator.analyze = True

    logging.basicConfig(
        level=logging.DEBUG if orchestrator.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print(f"\n{'='*60}")
    print(f"SHOPIFY MEDIA AGGREGATOR v{VERSION}")
    print("="*60)
    print(f"Shop: {orchestrator.shop}")
    print(f"Mode: {'Replace' if args.replace else 'Aggregate'}")

    if not orchestrator.validate_config():
        sys.exit(1)

    # Cleanup old output folders based on retention policy
    if orchestrator.output_manager.retention_days > 0:
        deleted = orchestrator.output_manager.cleanup_old_runs()
        if deleted > 0:
            print(f"Cleaned up {deleted} old output folder(s)")

    if args.replace:
        results = orchestrator.replace(args.replace, args.image, args.category, side_data)
    else:
        results = orchestrator.run()

    orchestrator.print_summary(results)

    if not results.get("success"):
        sys.exit(1)


if __name__ == "__main__":
    main()
