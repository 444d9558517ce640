"""Common IO helpers for plugins."""

from __future__ import annotations

import base64
import os
from io import BytesIO
from typing import IO

SAFE_FILENAME_CHARS = {"-", "_", "."}


def buffer_from_bytes(data: bytes) -> BytesIO:
    buffer = BytesIO()
    buffer.write(data)
    buffer.seek(0)
    return buffer


def read_upload(stream: IO[bytes]) -> bytes:
    """Read an upload stream from the start without losing its position."""

    try:
        stream.seek(0)
    except (AttributeError, OSError):
        pass
    return stream.read()


def stream_size(stream: IO[bytes]) -> int:
    try:
        current = stream.tell()
    except (AttributeError, OSError):
        current = None
    try:
        stream.seek(0, 2)
        size = stream.tell()
    finally:
        try:
            stream.seek(current or 0)
        except (AttributeError, OSError):
            pass
    return size


def to_base64(data: bytes | None) -> str | None:
    if data is None:
        return None
    return base64.b64encode(data).decode("ascii")


def secure_filename(filename: str, *, fallback: str = "upload") -> str:
    """Sanitize filenames without relying on Werkzeug internals."""

    if not filename:
        return fallback
    name, ext = os.path.splitext(filename)
    safe_name = "".join(
        ch if ch.isalnum() or ch in SAFE_FILENAME_CHARS else "_" for ch in name
    )
    safe_ext = "".join(ch for ch in ext if ch.isalnum() or ch in SAFE_FILENAME_CHARS)
    safe_name = safe_name.strip("._") or fallback
    safe_ext = safe_ext.strip("._")
    return f"{safe_name}{f'.{safe_ext}' if safe_ext else ''}"


__all__ = [
    "buffer_from_bytes",
    "read_upload",
    "stream_size",
    "to_base64",
    "secure_filename",
]
