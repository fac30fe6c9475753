"""Disk and encoding helpers for archives, traces and finished frames."""

from __future__ import annotations

import base64
import hashlib
import json
import os
import tempfile
from pathlib import Path, PurePosixPath
from typing import Any, Iterable, List


def ensure_dir(path: str | Path) -> Path:
    """Create the directory if it does not exist."""
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def read_archives(paths: Iterable[str | Path]) -> List[bytes]:
    """Read every uploaded archive fully into memory, in the given order."""
    payloads: List[bytes] = []
    for path in paths:
        source = Path(path)
        if not source.is_file():
            raise FileNotFoundError(f"Archive not found: {source}")
        payloads.append(source.read_bytes())
    return payloads


def write_trace(path: str | Path, payload: Any) -> Path:
    """Write a prompt (text) or a response (anything JSON-serialisable) as UTF-8."""
    if isinstance(payload, str):
        content = payload
    else:
        content = json.dumps(payload, indent=2, ensure_ascii=False, default=str)
    target = Path(path)
    ensure_dir(target.parent)
    target.write_text(content, encoding="utf-8")
    return target


def content_digest(text: str, length: int = 64) -> str:
    """Hex SHA-256 of ``text``, truncated to ``length`` characters."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:length]


def encode_b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_b64(data: str) -> bytes:
    """Decode base64 that may still carry a ``data:<type>;base64,`` prefix."""
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    return base64.b64decode(data)


def data_url(payload: bytes, media_type: str) -> str:
    return f"data:{media_type};base64,{encode_b64(payload)}"


def extension_of(name: str) -> str:
    """Lower-cased extension of an archive entry name, or an empty string."""
    suffix = PurePosixPath(name).suffix
    return suffix[1:].lower() if suffix else ""


def safe_relative_path(name: str) -> Path:
    """Turn an archive-style name into a relative path that cannot escape its root."""
    parts = [part for part in PurePosixPath(name.replace("\\", "/")).parts if part not in {"", ".", "..", "/"}]
    if not parts:
        raise ValueError(f"Cannot derive a file name from {name!r}.")
    return Path(*parts)


def atomic_write(path: str | Path, content: bytes) -> Path:
    """Write ``content`` through a temporary sibling so readers never see a partial file."""
    target = Path(path)
    ensure_dir(target.parent)
    fd, temp_name = tempfile.mkstemp(prefix=f".{target.name}.", dir=target.parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
        os.replace(temp_name, target)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise
    return target
