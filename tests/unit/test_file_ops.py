"""Unit tests for crash-safe artifact writes and run-directory names."""

import json
import os
from datetime import datetime

import pytest

from ideation_system.utils import file_ops
from ideation_system.utils.file_ops import atomic_write_bytes, atomic_write_json, topic_slug


def test_json_is_written_with_fallbacks(tmp_path):
    target = tmp_path / "sessions" / "run-1.json"
    atomic_write_json(target, {"topic": "フィンテック", "started_at": datetime(2024, 5, 1)})

    text = target.read_text(encoding="utf-8")
    assert text.endswith("\n")
    assert "フィンテック" in text
    assert json.loads(text) == {"topic": "フィンテック", "started_at": "2024-05-01 00:00:00"}


def test_failed_replace_keeps_previous_file(tmp_path, monkeypatch):
    target = tmp_path / "result.json"
    target.write_bytes(b"old")

    def broken_replace(src, dst):
        raise OSError("rename failed")

    monkeypatch.setattr(file_ops.os, "replace", broken_replace)
    with pytest.raises(OSError, match="rename failed"):
        atomic_write_bytes(target, b"new")

    assert target.read_bytes() == b"old"
    assert os.listdir(tmp_path) == ["result.json"]


@pytest.mark.parametrize("topic,slug", [
    ("Fintech in Japan!", "fintech_in_japan"),
    ("  agri--tech / drones ", "agri_tech_drones"),
    ("???", "run"),
])
def test_topic_slug(topic, slug):
    assert topic_slug(topic) == slug


def test_topic_slug_is_truncated():
    assert topic_slug("a" * 80, limit=10) == "a" * 10
