"""Validation helpers for uploaded photos."""

import asyncio
import io

from fastapi import HTTPException, UploadFile
from PIL import Image, ImageOps, UnidentifiedImageError

ALLOWED_IMAGE_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "image/bmp",
    "image/heic",
    "application/octet-stream",
}


def validate_image_file(image_file: UploadFile) -> None:
    """Reject uploads whose declared content type is not an image."""
    if image_file.content_type:
        content_type = image_file.content_type.lower().split(";", 1)[0].strip()
        if content_type not in ALLOWED_IMAGE_TYPES:
            raise HTTPException(status_code=415, detail=f"Unsupported image content type: {image_file.content_type}")


def decode_image(raw: bytes) -> Image.Image:
    """Decode raw bytes into an upright RGB image."""
    if not raw:
        raise HTTPException(status_code=400, detail="Uploaded image is empty.")
    try:
        with Image.open(io.BytesIO(raw)) as src:
            src.load()
            return ImageOps.exif_transpose(src).convert("RGB")
    except (UnidentifiedImageError, OSError) as exc:
        raise HTTPException(status_code=400, detail="Uploaded file is not a readable image.") from exc


async def read_image(image_file: UploadFile) -> Image.Image:
    """Read and decode a validated image upload."""
    validate_image_file(image_file)
    raw = await image_file.read()
    return await asyncio.to_thread(decode_image, raw)
