"""Shared imaging helpers."""

from __future__ import annotations

from io import BytesIO

from PIL import Image, ImageOps, UnidentifiedImageError


class ImageDecodeError(ValueError):
    """Raised when bytes cannot be decoded as an image."""


_FORMATS = {"png": "PNG", "jpg": "JPEG", "jpeg": "JPEG"}
_MIMETYPES = {"PNG": "image/png", "JPEG": "image/jpeg", "WEBP": "image/webp", "BMP": "image/bmp"}


EXIF_ORIENTATION = 0x0112


def exif_orientation(image: Image.Image) -> int:
    try:
        return int(image.getexif().get(EXIF_ORIENTATION, 1))
    except (TypeError, ValueError):
        return 1


def decode_image(data: bytes, *, transpose: bool = True) -> Image.Image:
    """Open ``data`` and apply any EXIF orientation.

    The decoded ``format`` (PNG, JPEG, ...) is preserved on the returned image.
    """

    if not data:
        raise ImageDecodeError("Image stream is empty")
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageDecodeError("Unsupported or corrupted image stream") from exc
    if not transpose or exif_orientation(image) == 1:
        return image
    transposed = ImageOps.exif_transpose(image)
    transposed.format = image.format
    return transposed


def prepare_rgb(image: Image.Image) -> Image.Image:
    if image.mode in {"RGBA", "LA"} or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", image.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def normalize_output_format(value: str | None) -> str:
    normalized = (value or "png").lower()
    if normalized in {"jpg", "jpeg"}:
        return "jpg"
    if normalized == "png":
        return "png"
    raise ValueError("Output format must be png or jpg")


def image_to_bytes(image: Image.Image, format: str = "png") -> bytes:
    fmt = _FORMATS[normalize_output_format(format)]
    buf = BytesIO()
    if fmt == "JPEG":
        image.save(buf, format=fmt, quality=95)
    else:
        image.save(buf, format=fmt)
    return buf.getvalue()


def mimetype_for(data: bytes) -> str:
    """Best-effort MIME type of encoded image bytes."""

    if data.startswith(b"\x89PNG"):
        return "image/png"
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    try:
        with Image.open(BytesIO(data)) as image:
            return _MIMETYPES.get(image.format or "", "application/octet-stream")
    except (UnidentifiedImageError, OSError):
        return "application/octet-stream"


__all__ = [
    "ImageDecodeError",
    "decode_image",
    "exif_orientation",
    "prepare_rgb",
    "normalize_output_format",
    "image_to_bytes",
    "mimetype_for",
]
