"""Pillow helpers for reference preparation, mock rendering and output normalisation."""

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from typing import Optional, Tuple

from PIL import Image, ImageChops, ImageDraw, ImageOps, ImageStat, UnidentifiedImageError

MAX_REFERENCE_DIM = 4096
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
_MONOCHROME_TOLERANCE = 12


@dataclass(frozen=True, slots=True)
class ImageSummary:
    """Cheap measurements used by the offline scene analyzer."""

    width: int
    height: int
    monochrome: bool
    mean_rgb: Tuple[int, int, int]


def prepare_reference_image(payload: bytes, media_type: str) -> Tuple[bytes, str]:
    """Downscale oversized references before they are sent to a remote model.

    Images within bounds, and payloads Pillow cannot decode, are returned
    untouched.
    """
    try:
        with Image.open(BytesIO(payload)) as image:
            if max(image.size) <= MAX_REFERENCE_DIM:
                return payload, media_type
            if getattr(image, "n_frames", 1) > 1:
                image.seek(0)
            image = ImageOps.exif_transpose(image)
            if image.mode not in {"RGB", "RGBA"}:
                image = image.convert("RGBA" if "A" in image.getbands() else "RGB")
            image.thumbnail((MAX_REFERENCE_DIM, MAX_REFERENCE_DIM), Image.LANCZOS)

            has_alpha = "A" in image.getbands()
            output = BytesIO()
            if has_alpha:
                image.save(output, format="PNG", optimize=True)
                return output.getvalue(), "image/png"
            image.save(output, format="JPEG", optimize=True, quality=90)
            return output.getvalue(), "image/jpeg"
    except (UnidentifiedImageError, OSError):
        return payload, media_type


def summarise_image(payload: bytes) -> Optional[ImageSummary]:
    """Return size, colour cast and a monochrome flag, or None if undecodable."""
    try:
        with Image.open(BytesIO(payload)) as image:
            width, height = image.size
            rgb = image.convert("RGB")
    except (UnidentifiedImageError, OSError):
        return None

    rgb.thumbnail((64, 64))
    red, green, blue = rgb.split()
    spread = max(
        ImageChops.difference(red, green).getextrema()[1],
        ImageChops.difference(green, blue).getextrema()[1],
    )
    mean = ImageStat.Stat(rgb).mean
    return ImageSummary(
        width=width,
        height=height,
        monochrome=spread <= _MONOCHROME_TOLERANCE,
        mean_rgb=(int(mean[0]), int(mean[1]), int(mean[2])),
    )


def render_placeholder(seed: bytes, size: Tuple[int, int], label: str = "") -> bytes:
    """Render a deterministic PNG used by the offline image generator."""
    colour = (seed[0] if seed else 40, seed[1] if len(seed) > 1 else 40, seed[2] if len(seed) > 2 else 40)
    image = Image.new("RGB", size, colour)
    if label:
        ImageDraw.Draw(image).text((4, 4), label[:40], fill=(255, 255, 255))
    output = BytesIO()
    image.save(output, format="PNG")
    return output.getvalue()


def to_png(payload: bytes) -> bytes:
    """Re-encode a generated image as PNG; undecodable payloads pass through."""
    if payload.startswith(PNG_SIGNATURE):
        return payload
    try:
        with Image.open(BytesIO(payload)) as image:
            if image.mode not in {"RGB", "RGBA", "L", "LA"}:
                image = image.convert("RGBA" if "A" in image.getbands() else "RGB")
            output = BytesIO()
            image.save(output, format="PNG")
            return output.getvalue()
    except (UnidentifiedImageError, OSError):
        return payload
