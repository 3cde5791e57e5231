import logging
import uuid
from dataclasses import dataclass
from pathlib import Path

from fastapi import UploadFile

from src.core.config import settings
from src.core.exceptions import ValidationError
from src.models.chat import AttachmentKind

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}
ALLOWED_EXTENSIONS = IMAGE_EXTENSIONS | {".pdf", ".doc", ".docx", ".txt", ".zip"}
CHUNK_SIZE = 64 * 1024


@dataclass
class StoredFile:
    path: str
    kind: AttachmentKind
    original_name: str


def upload_root() -> Path:
    root = Path(settings.upload_dir)
    root.mkdir(parents=True, exist_ok=True)
    return root


def attachment_kind(filename: str, content_type: str | None = None) -> AttachmentKind:
    if Path(filename).suffix.lower() in IMAGE_EXTENSIONS:
        return AttachmentKind.IMAGE
    if content_type and content_type.startswith("image/"):
        return AttachmentKind.IMAGE
    return AttachmentKind.FILE


async def save_upload_file(file: UploadFile) -> StoredFile:
    """Save a chat attachment under the upload dir and return its relative path."""
    if file is None or not file.filename:
        raise ValidationError("No file uploaded")

    ext = Path(file.filename).suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationError(f"File type {ext or '(none)'} is not allowed")
    if file.size is not None and file.size > settings.max_upload_bytes:
        raise ValidationError("File too large")

    unique_name = f"{uuid.uuid4()}{ext}"
    file_path = upload_root() / unique_name
    written = 0
    try:
        with open(file_path, "wb") as buffer:
            while True:
                chunk = await file.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > settings.max_upload_bytes:
                    raise ValidationError("File too large")
                buffer.write(chunk)
    except ValidationError:
        file_path.unlink(missing_ok=True)
        raise

    logger.info("Stored upload %s (%s)", unique_name, file.filename)
    return StoredFile(
        path=file_path.as_posix(),
        kind=attachment_kind(file.filename, file.content_type),
        original_name=file.filename,
    )
