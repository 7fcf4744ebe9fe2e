"""Run artifacts on disk: crash-safe writes and run-directory names."""

from pathlib import Path
from typing import Any, Mapping, Union
import json
import os
import re
import tempfile

PathLike = Union[str, Path]


def atomic_write_bytes(path: PathLike, data: bytes) -> None:
    """
    Replace ``path`` with ``data`` so readers see the old file or the new one, never a partial write.

    The temp file lives in the target directory so the final rename stays on one filesystem.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".part")
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp, target)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def atomic_write_text(path: PathLike, text: str, encoding: str = "utf-8") -> None:
    atomic_write_bytes(path, text.encode(encoding))


def atomic_write_json(path: PathLike, payload: Mapping[str, Any], indent: int = 2) -> None:
    """Session and report JSON; datetimes and enums fall back to ``str``."""
    atomic_write_text(path, json.dumps(payload, indent=indent, ensure_ascii=False, default=str) + "\n")


def topic_slug(topic: str, limit: int = 50) -> str:
    """``"Fintech in Japan!"`` -> ``"fintech_in_japan"``; empty topics become ``"run"``."""
    slug = re.sub(r"[^\w\s-]", "", topic.lower())
    slug = re.sub(r"[\s_-]+", "_", slug).strip("_")
    return slug[:limit] or "run"
