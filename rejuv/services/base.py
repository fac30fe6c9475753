"""Service abstractions for the remote generation stack."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, Sequence, Union

from ..types import SourceImage

ImagePart = SourceImage
RequestPart = Union[str, SourceImage]


class GenerationService(Protocol):
    """The four remote operations the pipeline depends on.

    Every call may block and may raise; callers decide whether a failure is
    fatal to the run, fatal to the frame, or degraded into a default.
    """

    def generate_text(self, prompt: str) -> str:
        ...

    def generate_structured(self, prompt: str, schema: Mapping[str, Any]) -> Any:
        ...

    def generate_multimodal_text(self, images: Sequence[ImagePart], prompt: str) -> str:
        ...

    def generate_image(self, parts: Sequence[RequestPart], aspect_ratio: str = "16:9") -> Optional[bytes]:
        ...


class FileSaver(Protocol):
    """Receives finished frames; the CLI writes them to disk."""

    def save(self, payload: bytes, filename: str) -> None:
        ...
