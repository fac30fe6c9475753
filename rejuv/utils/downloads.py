"""File-save collaborator writing finished frames into an output directory."""

from __future__ import annotations

from pathlib import Path
from typing import List

from .files import atomic_write, ensure_dir, safe_relative_path
from .images import to_png


class DirectorySaver:
    """Saves each payload as PNG under ``output_dir`` keeping archive sub-folders."""

    def __init__(self, output_dir: str | Path = "outputs") -> None:
        self._output_dir = ensure_dir(output_dir)
        self.saved: List[Path] = []

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    def save(self, payload: bytes, filename: str) -> None:
        target = atomic_write(self._output_dir / safe_relative_path(filename), to_png(payload))
        self.saved.append(target)
