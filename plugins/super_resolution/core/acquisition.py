"""Input image acquisition: bundled sample, camera capture or gallery pick."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from PIL import Image, ImageDraw, ImageOps

from common.imaging import ImageDecodeError, decode_image, exif_orientation, image_to_bytes, prepare_rgb
from common.logging import get_logger

from .errors import SuperResolutionInputError

logger = get_logger("acquisition")

PASSTHROUGH_FORMATS = {"PNG", "JPEG"}


class AcquisitionMode(str, Enum):
    SAMPLE = "sample"
    CAPTURE = "capture"
    PICK = "pick"


def mode_from_text(text: str | None) -> AcquisitionMode:
    """Map a button label or form value to a mode; anything unknown is SAMPLE."""

    normalized = (text or "").strip().lower()
    for mode in AcquisitionMode:
        if normalized == mode.value:
            return mode
    return AcquisitionMode.SAMPLE


def synthetic_sample(size: int = 256) -> bytes:
    """A deterministic test card used when no sample image is installed."""

    image = Image.new("RGB", (size, size))
    draw = ImageDraw.Draw(image)
    for y in range(size):
        shade = int(255 * y / max(size - 1, 1))
        draw.line([(0, y), (size, y)], fill=(shade, 96, 255 - shade))
    step = max(size // 8, 1)
    for row in range(0, size, step):
        for col in range(0, size, step):
            if (row // step + col // step) % 2 == 0:
                draw.rectangle([col, row, col + step // 2, row + step // 2], fill=(240, 240, 240))
    draw.ellipse([size // 4, size // 4, 3 * size // 4, 3 * size // 4], outline=(20, 20, 20), width=3)
    draw.text((step // 2, size - step), "SR sample", fill=(255, 255, 255))
    return image_to_bytes(image, "png")


def normalize_image(data: bytes, *, max_side: int) -> bytes:
    """Decode, orient and bound an acquired image.

    PNG and JPEG inputs that need no rotation or resizing come back
    unchanged; everything else is re-encoded as PNG.
    """

    try:
        raw = decode_image(data, transpose=False)
    except ImageDecodeError as exc:
        raise SuperResolutionInputError(str(exc)) from exc

    changed = raw.format not in PASSTHROUGH_FORMATS
    image = raw
    if exif_orientation(raw) != 1:
        image = ImageOps.exif_transpose(raw)
        changed = True
    image = prepare_rgb(image)
    if image.mode != raw.mode:
        changed = True
    if max_side > 0 and max(image.size) > max_side:
        image = image.copy()
        image.thumbnail((max_side, max_side), Image.LANCZOS)
        changed = True

    if not changed:
        return data
    logger.info("normalized input image to %dx%d PNG", image.width, image.height)
    return image_to_bytes(image, "png")


class ImageAcquirer:
    def __init__(self, *, sample_image: Path | None, max_input_side: int = 0):
        self.sample_image = sample_image
        self.max_input_side = max_input_side

    def sample_bytes(self) -> bytes:
        if self.sample_image is not None and self.sample_image.is_file():
            return self.sample_image.read_bytes()
        logger.info("sample image %s not found; using generated test card", self.sample_image)
        return synthetic_sample()

    def acquire(self, mode: AcquisitionMode, upload: bytes | None = None) -> bytes | None:
        """Return the input image for ``mode``.

        ``None`` means nothing was captured or picked (the user cancelled).
        """

        if mode is AcquisitionMode.SAMPLE:
            data = self.sample_bytes()
        elif not upload:
            logger.info("no image provided for %s; nothing to run", mode.value)
            return None
        else:
            data = upload
        return normalize_image(data, max_side=self.max_input_side)


__all__ = [
    "AcquisitionMode",
    "ImageAcquirer",
    "mode_from_text",
    "normalize_image",
    "synthetic_sample",
]
