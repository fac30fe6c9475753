"""ZIP extraction and filename-based classification of production assets."""

from __future__ import annotations

import zipfile
from io import BytesIO
from typing import Dict, Iterable, List, Optional, Tuple

from ..types import ProductionArchive, SourceImage, TextDocument
from .files import extension_of

IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "webp"}
TEXT_EXTENSIONS = {"txt", "md"}

AVATAR_MARKER = "avatar"
FULL_SCRIPT_MARKER = "full"
STORY_MAP_MARKER = "story"
STYLE_MARKER = "style"


def media_type_for(extension: str) -> str:
    """Map an image extension onto its media type (``jpg`` becomes ``jpeg``)."""
    extension = extension.lower()
    return f"image/{'jpeg' if extension == 'jpg' else extension}"


def extract_archive(data: bytes) -> Tuple[Dict[str, SourceImage], List[TextDocument]]:
    """Return every image and text entry of a ZIP payload, keyed by archive path.

    Raises ``zipfile.BadZipFile`` when ``data`` is not a ZIP archive.
    """
    images: Dict[str, SourceImage] = {}
    texts: List[TextDocument] = []
    with zipfile.ZipFile(BytesIO(data)) as archive:
        for entry in archive.infolist():
            if entry.is_dir():
                continue
            ext = extension_of(entry.filename)
            if ext in IMAGE_EXTENSIONS:
                images[entry.filename] = SourceImage(
                    file_name=entry.filename,
                    payload=archive.read(entry),
                    media_type=media_type_for(ext),
                )
            elif ext in TEXT_EXTENSIONS:
                content = archive.read(entry).decode("utf-8", errors="replace")
                texts.append(TextDocument(name=entry.filename, content=content))
    return images, texts


def merge_archives(payloads: Iterable[bytes]) -> Tuple[Dict[str, SourceImage], List[TextDocument]]:
    """Extract several archives in order; later images replace same-named earlier ones."""
    images: Dict[str, SourceImage] = {}
    texts: List[TextDocument] = []
    for payload in payloads:
        extracted_images, extracted_texts = extract_archive(payload)
        images.update(extracted_images)
        texts.extend(extracted_texts)
    return images, texts


def _first_named(texts: Iterable[TextDocument], marker: str) -> Optional[TextDocument]:
    return next((text for text in texts if marker in text.name.lower()), None)


def classify_entries(
    images: Dict[str, SourceImage],
    texts: List[TextDocument],
    default_style: str,
) -> ProductionArchive:
    """Split extracted entries into avatars, scenes and the named text roles.

    This is the only place that knows the filename conventions; swapping it
    for a manifest reader leaves the orchestrator untouched.
    """
    avatars: Dict[str, SourceImage] = {}
    scenes: List[SourceImage] = []
    for path, image in images.items():
        if AVATAR_MARKER in path.lower():
            avatars[path] = image
        else:
            scenes.append(image)

    style_document = _first_named(texts, STYLE_MARKER)
    return ProductionArchive(
        images=dict(images),
        texts=list(texts),
        avatars=avatars,
        scenes=scenes,
        full_script=_first_named(texts, FULL_SCRIPT_MARKER),
        story_map=_first_named(texts, STORY_MAP_MARKER),
        style=style_document.content if style_document else default_style,
    )
