from __future__ import annotations

from pathlib import Path
from typing import Iterable

from fastapi import UploadFile

from dermascan.analysis.models import ImageRef

IMAGE_CONTENT_TYPES: tuple[str, ...] = ("image/",)


async def read_upload_image(upload: UploadFile, chunk_size: int = 1024 * 1024) -> ImageRef:
    """Read an UploadFile fully into memory. No size or dimension checks."""
    chunks: list[bytes] = []
    while True:
        chunk = await upload.read(chunk_size)
        if not chunk:
            break
        chunks.append(chunk)
    await upload.close()
    return ImageRef(
        filename=sanitize_filename(upload.filename or "photo"),
        content_type=upload.content_type or "application/octet-stream",
        data=b"".join(chunks),
    )


def sanitize_filename(name: str) -> str:
    """Basic sanitization to avoid directory traversal."""
    return Path(name).name


def allowed_content_type(content_type: str, allowed_types: Iterable[str] = IMAGE_CONTENT_TYPES) -> bool:
    return any(content_type.startswith(prefix) for prefix in allowed_types)
