"""In-process stand-ins for the remote services and archive fixtures."""

from __future__ import annotations

import zipfile
from io import BytesIO
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from PIL import Image

from rejuv.types import SourceImage


def png_bytes(colour: Tuple[int, int, int] = (200, 40, 40), size: Tuple[int, int] = (8, 8), mode: str = "RGB") -> bytes:
    """Return a tiny PNG image."""
    buffer = BytesIO()
    Image.new(mode, size, colour if mode == "RGB" else colour[0]).save(buffer, format="PNG")
    return buffer.getvalue()


def jpeg_bytes(colour: Tuple[int, int, int] = (30, 90, 200), size: Tuple[int, int] = (8, 8)) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, colour).save(buffer, format="JPEG")
    return buffer.getvalue()


def build_zip(entries: Sequence[Tuple[str, Any]]) -> bytes:
    """Build a ZIP archive in memory; names ending in ``/`` become directory entries."""
    buffer = BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in entries:
            if name.endswith("/"):
                archive.writestr(zipfile.ZipInfo(name), b"")
            elif isinstance(content, str):
                archive.writestr(name, content.encode("utf-8"))
            else:
                archive.writestr(name, content)
    return buffer.getvalue()


def frame_text(*body_lines: str) -> str:
    """A per-frame transcript file: three metadata header lines, then the body."""
    return "\n".join(["1", "00:00:01,000 --> 00:00:04,000", "SPEAKER: unknown", *body_lines])


class FakeService:
    """Records every remote call and answers from canned values."""

    def __init__(
        self,
        *,
        bible: str = "HERO: a weary detective. avatar_hero.png matches HERO.",
        analysis: str = "A man in a trench coat, black and white, low key lighting.",
        mapping: Optional[Mapping[str, Any]] = None,
        prompt: str = "Tight low-angle close-up of the detective, vibrant neon colour.",
        image: Optional[bytes] = None,
        failures: Optional[Dict[str, Exception]] = None,
        failing_scenes: Sequence[str] = (),
        on_call: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.bible = bible
        self.analysis = analysis
        self.mapping = dict(mapping) if mapping is not None else {
            "characterName": "Hero",
            "avatarFilename": "avatar_hero.png",
            "otherCharacters": [],
            "reasoning": "dialogue matches",
        }
        self.prompt = prompt
        self.image = png_bytes() if image is None else image
        self.failures = dict(failures or {})
        self.failing_scenes = set(failing_scenes)
        self.on_call = on_call
        self.calls: List[Tuple[str, Any]] = []

    def _record(self, kind: str, payload: Any) -> None:
        self.calls.append((kind, payload))
        if self.on_call is not None:
            self.on_call(kind)
        if kind in self.failures:
            raise self.failures[kind]

    def kinds(self) -> List[str]:
        return [kind for kind, _ in self.calls]

    def prompts(self, kind: str) -> List[Any]:
        return [payload for recorded, payload in self.calls if recorded == kind]

    def generate_text(self, prompt: str) -> str:
        kind = "bible" if prompt.startswith("I am producing a film") else "compose"
        self._record(kind, prompt)
        return self.bible if kind == "bible" else self.prompt

    def generate_structured(self, prompt: str, schema: Mapping[str, Any]) -> Any:
        self._record("resolve", prompt)
        return dict(self.mapping)

    def generate_multimodal_text(self, images: Sequence[SourceImage], prompt: str) -> str:
        self._record("analyze", [image.file_name for image in images])
        if any(image.file_name in self.failing_scenes for image in images):
            raise RuntimeError("vision model unavailable")
        return self.analysis

    def generate_image(self, parts: Sequence[Any], aspect_ratio: str = "16:9") -> Optional[bytes]:
        self._record("image", list(parts))
        return self.image


class RecordingSaver:
    """File-save collaborator that keeps payloads in memory."""

    def __init__(self) -> None:
        self.saved: List[Tuple[str, bytes]] = []

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.saved]

    def save(self, payload: bytes, filename: str) -> None:
        self.saved.append((filename, payload))
