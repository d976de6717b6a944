import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import UploadFile

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = frozenset({
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
})
MAX_UPLOAD_BYTES = 5 * 1024 * 1024
_CHUNK_BYTES = 64 * 1024


class FileRejected(Exception):
    """Upload refused because of its type or size."""


@dataclass
class StoredFile:
    original_name: str
    stored_path: str
    size: int
    mime_type: str

    @property
    def filename(self) -> str:
        return Path(self.stored_path).name

    def to_record(self) -> Dict[str, Any]:
        return {
            "originalName": self.original_name,
            "filename": self.filename,
            "path": self.stored_path,
            "size": self.size,
            "mimetype": self.mime_type,
        }


class FileIntake:
    """Stores uploaded documents under ``upload_dir`` after type and size checks."""

    def __init__(self, upload_dir: str, max_bytes: int = MAX_UPLOAD_BYTES, allowed_types=ALLOWED_MIME_TYPES):
        self.upload_dir = Path(upload_dir)
        self.max_bytes = max_bytes
        self.allowed_types = allowed_types

    async def accept(self, upload: UploadFile) -> StoredFile:
        mime_type = (upload.content_type or "").split(";")[0].strip().lower()
        if mime_type not in self.allowed_types:
            raise FileRejected("Invalid file type. Only PDF, DOC, DOCX, and TXT files are allowed.")

        self.upload_dir.mkdir(parents=True, exist_ok=True)
        suffix = Path(upload.filename or "").suffix.lower()
        target = self.upload_dir / f"{uuid.uuid4().hex}{suffix}"

        size = 0
        try:
            with open(target, "wb") as out:
                while True:
                    chunk = await upload.read(_CHUNK_BYTES)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > self.max_bytes:
                        raise FileRejected(f"File too large. Maximum size is {self.max_bytes // (1024 * 1024)}MB.")
                    out.write(chunk)
        except FileRejected:
            target.unlink(missing_ok=True)
            raise

        return StoredFile(
            original_name=upload.filename or target.name,
            stored_path=str(target),
            size=size,
            mime_type=mime_type,
        )

    def discard(self, path: Optional[str]) -> bool:
        """Remove a stored file if it is still there."""
        if not path:
            return False
        try:
            Path(path).unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.warning(f"Failed to delete uploaded file: {exc}")
            return False
