"""Pairing scene frames with their transcript text and windowing the full script."""

from __future__ import annotations

from typing import Iterable, Optional

from ..types import SourceImage, TextDocument

NO_CONTEXT = "No context."
SEARCH_KEY_LENGTH = 50
CONTEXT_BEFORE = 500
CONTEXT_AFTER = 1500


def find_paired_text(image: SourceImage, texts: Iterable[TextDocument]) -> Optional[TextDocument]:
    """Return the first ``.txt`` document whose name starts with the image stem."""
    stem = image.stem
    return next((text for text in texts if text.name.startswith(stem) and text.name.endswith(".txt")), None)


def derive_snippet(content: str, header_lines: int = 3) -> str:
    """Drop the metadata header lines that precede the transcript body."""
    return "\n".join(content.split("\n")[header_lines:])


def resolve_script_context(snippet: str, full_script: Optional[str]) -> str:
    """Return the script excerpt surrounding the first exact occurrence of ``snippet``.

    The lookup key is the first 50 characters of the snippet. Without a script
    or without a match the ``NO_CONTEXT`` sentinel is returned.
    """
    if full_script is None:
        return NO_CONTEXT
    key = snippet[:SEARCH_KEY_LENGTH]
    idx = full_script.find(key)
    if idx == -1:
        return NO_CONTEXT
    return full_script[max(0, idx - CONTEXT_BEFORE) : min(len(full_script), idx + CONTEXT_AFTER)]
