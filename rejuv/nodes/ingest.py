"""Node for unpacking uploaded production archives into the run state."""

from __future__ import annotations

from typing import Iterable, List

from ..types import RunState
from ..utils.archive import classify_entries, merge_archives
from .base import BaseNode


class IngestArchives(BaseNode):
    """Extracts every archive and classifies avatars, scenes and text roles."""

    def __init__(self, run_id: str, logger, payloads: Iterable[bytes], default_style: str) -> None:
        super().__init__(name="IngestArchives", run_id=run_id, logger=logger)
        self._payloads: List[bytes] = list(payloads)
        self._default_style = default_style

    def run(self, state: RunState) -> RunState:
        """Populate ``state.archive``; extraction errors propagate to the caller."""
        self.log_prompt(f"Extracting {len(self._payloads)} archive(s).")

        images, texts = merge_archives(self._payloads)
        state.add_log(f"Extracted {len(images)} total images and {len(texts)} text files.")

        archive = classify_entries(images, texts, self._default_style)
        state.add_log(f"Classified {len(archive.avatars)} avatars and {len(archive.scenes)} scene images.")
        if archive.full_script is None:
            state.add_log("WARNING: No 'full' script file found. Character Bible cannot be generated.")

        state.archive = archive
        state.add_log(f"Extraction complete. {len(archive.scenes)} frames ready for processing.")

        self.log_response(
            {
                "avatars": list(archive.avatars),
                "scenes": [image.file_name for image in archive.scenes],
                "texts": [text.name for text in archive.texts],
                "full_script": archive.full_script.name if archive.full_script else None,
                "story_map": archive.story_map.name if archive.story_map else None,
                "style": archive.style,
            }
        )
        return state
