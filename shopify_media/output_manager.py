"""
Output Manager — Per-run output folders for aggregation results.

Each run writes into a folder under the base output directory named
YYYYMMDD_HHMM_{shop} (e.g., "20260220_1430_acme-myshopify-com"). Inside it
the orchestrator saves:
  - media.json:        The AggregationResult (images, skipped, partial, stats)
  - optimization.json: Savings summary, only when the analyze pass ran
  - run_results.json:  Run metadata, counts and any error

Folders older than OUTPUT_RETENTION_DAYS are removed before a new run starts.
retention_days=0 keeps everything.
"""

import json
import logging
import os
import re
import shutil
from datetime import datetime, timedelta
from typing import Any, Optional

logger = logging.getLogger(__name__)

FOLDER_PATTERN = re.compile(r"^(\d{8}_\d{4})_.+$")
FOLDER_TIMESTAMP_FORMAT = "%Y%m%d_%H%M"


def safe_label(label: str) -> str:
    """Folder-safe form of a shop domain or provider name."""
    return re.sub(r"[^A-Za-z0-9_-]", "-", label.strip()) or "shop"


class OutputManager:
    """Creates the run folder, writes JSON into it and prunes old runs.

    Attributes:
        base_dir: Root output directory (default: ./output).
        label: Shop domain or provider name used in the folder name.
        retention_days: Folders older than this are deleted (0 = keep forever).
        current_dir: This run's folder, None until create_run_dir() is called.
    """

    def __init__(self, base_dir: str, label: str, retention_days: int = 30,
                 now: Optional[datetime] = None):
        self.base_dir = base_dir
        self.label = safe_label(label)
        self.retention_days = retention_days
        self.current_dir = None
        self._started = now or datetime.now()

    def create_run_dir(self) -> str:
        folder = f"{self._started.strftime(FOLDER_TIMESTAMP_FORMAT)}_{self.label}"
        self.current_dir = os.path.join(self.base_dir, folder)
        os.makedirs(self.current_dir, exist_ok=True)
        return self.current_dir

    def path_for(self, filename: str) -> str:
        """Full path of filename inside the current run folder.

        Raises:
            RuntimeError: If create_run_dir() has not been called yet.
        """
        if not self.current_dir:
            raise RuntimeError("Run directory not created. Call create_run_dir() first.")
        return os.path.join(self.current_dir, filename)

    def write_json(self, filename: str, data: Any) -> str:
        """Serialize data into the run folder and return the file path."""
        if not self.current_dir:
            self.create_run_dir()
        path = self.path_for(filename)
        with open(path, "w") as f:
            json.dump(data, f, indent=2, default=str)
        logger.debug("Wrote %s", path)
        return path

    def cleanup_old_runs(self, now: Optional[datetime] = None) -> int:
        """Delete run folders older than retention_days.

        Folders that do not follow the YYYYMMDD_HHMM_* naming are never
        touched.

        Returns:
            The number of folders deleted.
        """
        if self.retention_days <= 0 or not os.path.isdir(self.base_dir):
            return 0

        cutoff = (now or datetime.now()) - timedelta(days=self.retention_days)
        deleted = 0
        for name in sorted(os.listdir(self.base_dir)):
            path = os.path.join(self.base_dir, name)
            match = FOLDER_PATTERN.match(name)
            if not match or not os.path.isdir(path):
                continue
            try:
                created = datetime.strptime(match.group(1), FOLDER_TIMESTAMP_FORMAT)
                if created < cutoff:
                    shutil.rmtree(path)
                    deleted += 1
                    logger.debug("Deleted old output folder: %s", name)
            except (ValueError, OSError) as e:
                logger.warning("Could not process output folder %s: %s", name, e)
        return deleted
