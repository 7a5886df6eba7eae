import logging
import os
import random
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from fastapi import UploadFile

from sentiscope import config
from sentiscope.errors import AppError

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = {".csv"}
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp"}

UPLOAD_RULES = {
    "csv": (CSV_EXTENSIONS, "Only CSV files are allowed"),
    "image": (IMAGE_EXTENSIONS, "Only image files (JPG, PNG, GIF, BMP, WEBP) are allowed"),
}


def validate_upload(filename: str, size: int, kind: str) -> str:
    """Reject bad extensions and oversized files; returns the lower-cased extension."""
    allowed, message = UPLOAD_RULES[kind]
    ext = Path(filename or "").suffix.lower()
    if ext not in allowed:
        raise AppError(message, 400)
    if size > config.MAX_UPLOAD_BYTES:
        limit_mb = config.MAX_UPLOAD_BYTES // (1024 * 1024)
        raise AppError(f"File too large. Maximum size is {limit_mb}MB", 413)
    if size == 0:
        raise AppError("Uploaded file is empty", 400)
    return ext


async def read_upload(file: UploadFile) -> bytes:
    # read one byte past the limit so oversized files are detected without buffering them whole
    return await file.read(config.MAX_UPLOAD_BYTES + 1)


@contextmanager
def temp_upload(contents: bytes, kind: str, ext: str) -> Iterator[str]:
    """Write an upload to UPLOAD_DIR and remove it however the block exits."""
    upload_dir = Path(config.UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)
    unique = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    temp_path = upload_dir / f"{kind}-{unique}{ext}"
    temp_path.write_bytes(contents)
    try:
        yield str(temp_path)
    finally:
        if temp_path.exists():
            os.remove(temp_path)
            logger.debug("Removed temp upload %s", temp_path)
