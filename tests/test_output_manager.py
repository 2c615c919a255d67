"""Tests for shopify_media.output_manager.OutputManager."""

import json
import os
from datetime import datetime

import pytest

from shopify_media.output_manager import OutputManager, safe_label

NOW = datetime(2026, 3, 15, 14, 30)


def test_safe_label():
    assert safe_label("acme.myshopify.com") == "acme-myshopify-com"
    assert safe_label("Shopify_Media") == "Shopify_Media"


def test_create_run_dir_uses_timestamp_and_shop(tmp_path):
    manager = OutputManager(str(tmp_path), "acme.myshopify.com", now=NOW)

    path = manager.create_run_dir()

    assert os.path.basename(path) == "20260315_1430_acme-myshopify-com"
    assert os.path.isdir(path)


def test_path_for_requires_run_dir(tmp_path):
    manager = OutputManager(str(tmp_path), "acme")
    with pytest.raises(RuntimeError):
        manager.path_for("media.json")


def test_write_json_creates_run_dir(tmp_path):
    manager = OutputManager(str(tmp_path), "acme", now=NOW)

    path = manager.write_json("media.json", {"images": [], "stats": {"totalFiles": 0}})

    with open(path) as f:
        assert json.load(f) == {"images": [], "stats": {"totalFiles": 0}}
    assert os.path.dirname(path) == manager.current_dir


def test_cleanup_removes_only_expired_run_folders(tmp_path):
    for name in ("20260101_0900_acme", "20260314_0900_acme", "notes", "20269999_0000_bad"):
        (tmp_path / name).mkdir()
    (tmp_path / "20250101_0000_file.txt").write_text("not a folder")

    manager = OutputManager(str(tmp_path), "acme", retention_days=30)
    deleted = manager.cleanup_old_runs(now=NOW)

    assert deleted == 1
    remaining = sorted(os.listdir(tmp_path))
    assert remaining == ["20250101_0000_file.txt", "20260314_0900_acme", "20269999_0000_bad", "notes"]


def test_cleanup_disabled_with_zero_retention(tmp_path):
    (tmp_path / "20200101_0000_acme").mkdir()
    assert OutputManager(str(tmp_path), "acme", retention_days=0).cleanup_old_runs(now=NOW) == 0
    assert os.listdir(tmp_path) == ["20200101_0000_acme"]


def test_cleanup_missing_base_dir(tmp_path):
    assert OutputManager(str(tmp_path / "missing"), "acme").cleanup_old_runs() == 0
