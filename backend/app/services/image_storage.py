"""
Storage of images attached to checklist answers.

Images are written under ``settings.upload_dir`` with a generated name; the
stored name is what ends up in ``ChecklistAnswer.image_path``.
"""

import logging
import secrets
import time
from pathlib import Path
from typing import List, Optional

from fastapi import UploadFile

from backend.app.core.config import settings
from backend.app.core.exceptions import ValidationFailedError

logger = logging.getLogger("checklist")

ALLOWED_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif", ".webp"}
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}


def _unique_name(extension: str) -> str:
    return f"{int(time.time() * 1000)}-{secrets.randbelow(10 ** 9)}{extension}"


async def save_image(upload: UploadFile, upload_dir: Optional[str] = None) -> Optional[str]:
    """
    Validate and store one uploaded image.

    Returns the stored file name, or None for an empty file field.

    Raises:
        ValidationFailedError: not an allowed image type or too large
    """
    if upload is None or not upload.filename:
        return None

    extension = Path(upload.filename).suffix.lower()
    if extension not in ALLOWED_EXTENSIONS or (upload.content_type or "").lower() not in ALLOWED_CONTENT_TYPES:
        raise ValidationFailedError("Only images are allowed", details={"filename": upload.filename})

    content = await upload.read(settings.max_upload_bytes + 1)
    if len(content) > settings.max_upload_bytes:
        raise ValidationFailedError(
            "Image exceeds the upload size limit",
            details={"filename": upload.filename, "max_bytes": settings.max_upload_bytes},
        )
    if not content:
        return None

    target_dir = Path(upload_dir or settings.upload_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    name = _unique_name(extension)
    (target_dir / name).write_bytes(content)
    logger.info("Stored upload %s as %s (%s bytes)", upload.filename, name, len(content))
    return name


def discard_images(names: List[str], upload_dir: Optional[str] = None) -> None:
    """Remove stored images of a submission that did not go through."""
    target_dir = Path(upload_dir or settings.upload_dir)
    for name in names:
        try:
            (target_dir / name).unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove orphaned upload %s: %s", name, exc)
