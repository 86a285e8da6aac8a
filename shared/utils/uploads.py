"""
shared/utils/uploads.py
Local-disk storage for event images and profile photos.
Files land under UPLOAD_DIR/<kind>s/ and are served from /uploads.
"""

import os
import random
import time
from pathlib import Path

import aiofiles
from fastapi import HTTPException, UploadFile, status

from config.settings import settings

IMAGE_KINDS = {"event": "events", "profile": "profiles"}


def upload_root() -> Path:
    return Path(settings.UPLOAD_DIR)


def ensure_upload_dirs() -> None:
    for sub in IMAGE_KINDS.values():
        (upload_root() / sub).mkdir(parents=True, exist_ok=True)


def _generate_filename(kind: str, original: str | None) -> str:
    ext = os.path.splitext(original or "")[1].lower()
    suffix = random.randint(0, 10**9 - 1)
    return f"{kind}-{int(time.time() * 1000)}-{suffix}{ext}"


async def read_limited(file: UploadFile) -> bytes:
    """Read an upload, refusing anything over MAX_UPLOAD_SIZE_BYTES."""
    data = await file.read(settings.MAX_UPLOAD_SIZE_BYTES + 1)
    if len(data) > settings.MAX_UPLOAD_SIZE_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="File too large. Maximum size is 5MB",
        )
    return data


async def save_image(file: UploadFile, kind: str) -> str:
    """
    Validate and persist an image upload.
    Returns the public URL path, e.g. /uploads/events/event-1700000000000-42.png
    """
    if not (file.content_type or "").startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only image files are allowed",
        )

    data = await read_limited(file)
    sub = IMAGE_KINDS[kind]
    target_dir = upload_root() / sub
    target_dir.mkdir(parents=True, exist_ok=True)

    filename = _generate_filename(kind, file.filename)
    async with aiofiles.open(target_dir / filename, "wb") as f:
        await f.write(data)
    return f"/uploads/{sub}/{filename}"
