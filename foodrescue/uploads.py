# foodrescue/uploads.py
import os
import random
import time
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from .logging import get_logger

log = get_logger("uploads")

ALLOWED_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif", ".webp"}
ALLOWED_SUBTYPES = {"jpeg", "jpg", "png", "gif", "webp"}
MAX_UPLOAD_BYTES = 10 * 1024 * 1024  # 10MB limit


class UploadRejected(ValueError):
    pass


def _extension(filename: Optional[str]) -> str:
    return os.path.splitext(filename or "")[1].lower()


def check_image_type(filename: Optional[str], content_type: Optional[str]) -> None:
    subtype = (content_type or "").lower().partition("/")[2]
    if not (content_type or "").lower().startswith("image/") or subtype not in ALLOWED_SUBTYPES:
        raise UploadRejected("Only image files are allowed!")
    if _extension(filename) not in ALLOWED_EXTENSIONS:
        raise UploadRejected("Only image files are allowed!")


async def read_image(upload: UploadFile) -> bytes:
    """Validate type and size of an uploaded image and return its bytes."""
    check_image_type(upload.filename, upload.content_type)
    data = await upload.read(MAX_UPLOAD_BYTES + 1)
    if len(data) > MAX_UPLOAD_BYTES:
        raise UploadRejected("Image is too large (max 10 MB)")
    if not data:
        raise UploadRejected("Uploaded image is empty")
    return data


def save_image(upload_dir: Path, original_name: Optional[str], data: bytes) -> str:
    """Write the image under a generated name and return its public path."""
    upload_dir.mkdir(parents=True, exist_ok=True)
    unique_suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    name = unique_suffix + _extension(original_name)
    (upload_dir / name).write_bytes(data)
    log.info("Stored upload %s (%d bytes)", name, len(data))
    return f"/uploads/{name}"


def resolve_upload(upload_dir: Path, name: str) -> Optional[Path]:
    """Path of a stored upload, or None if it does not exist or escapes the upload dir."""
    root = upload_dir.resolve()
    candidate = (root / name).resolve()
    if candidate.parent != root or not candidate.is_file():
        return None
    return candidate
