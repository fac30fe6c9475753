"""Node sending the composed prompt and references to the image model."""

from __future__ import annotations

from typing import List

from ..services.base import GenerationService, RequestPart
from ..types import ASPECT_RATIOS, FrameJob, SourceImage
from .base import BaseNode


def build_synthesis_parts(prompt: str, avatar: SourceImage | None, scene: SourceImage) -> List[RequestPart]:
    """Return the ordered request: instruction text, avatar (if any), then scene."""
    instruction = (
        "**PRIMARY GOAL:** Generate a new, high-quality, cinematic image based on the following detailed prompt.\n"
        f"**PROMPT:** {prompt}\n"
    )
    parts: List[RequestPart] = []
    if avatar is not None:
        instruction += (
            "**REFERENCE AVATAR:** Use the provided avatar image as a strong reference for the character's "
            "appearance, integrating them into the scene.\n"
        )
        parts.append(avatar)
    instruction += (
        "**REFERENCE SCENE:** Use the provided scene image for composition, lighting, and environmental "
        "context. Replace or modify characters as needed to match the avatar and prompt."
    )
    parts.append(scene)
    return [instruction, *parts]


class SynthesizeFrame(BaseNode):
    """Generates the rejuvenated frame; ``frame.output`` stays None when nothing came back."""

    def __init__(self, run_id: str, logger, service: GenerationService, aspect_ratio: str = "16:9") -> None:
        super().__init__(name="SynthesizeFrame", run_id=run_id, logger=logger)
        if aspect_ratio not in ASPECT_RATIOS:
            raise ValueError(f"Unsupported aspect ratio {aspect_ratio!r}; expected one of {ASPECT_RATIOS}.")
        self._service = service
        self._aspect_ratio = aspect_ratio

    def run(self, frame: FrameJob) -> FrameJob:
        parts = build_synthesis_parts(frame.prompt, frame.avatar, frame.image)
        self.log_prompt(parts[0], frame)

        frame.output = self._service.generate_image(parts, self._aspect_ratio)

        self.log_response(
            {
                "aspect_ratio": self._aspect_ratio,
                "references": [part.file_name for part in parts if isinstance(part, SourceImage)],
                "output_bytes": len(frame.output) if frame.output else 0,
            },
            frame,
        )
        return frame
