import logging
import os
import secrets
import time
from pathlib import Path

from imageshare.core.errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}
ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}


class LocalFileStore:
    def __init__(self, root: str, max_bytes: int = 10 * 1024 * 1024):
        self.root = Path(root)
        self.max_bytes = max_bytes
        self.root.mkdir(parents=True, exist_ok=True)

    def _filename(self, content_type: str, original_name: str | None) -> str:
        ext = os.path.splitext(original_name or "")[1].lower()
        if ext not in ALLOWED_EXTENSIONS:
            ext = ALLOWED_MIME_TYPES[content_type]
        return f"{int(time.time() * 1000)}-{secrets.token_hex(16)}{ext}"

    def save(self, data: bytes, content_type: str | None, original_name: str | None = None) -> str:
        if content_type not in ALLOWED_MIME_TYPES:
            raise ValidationError("Only image files are allowed", details={"content_type": content_type})
        if not data:
            raise ValidationError("No image file provided")
        if len(data) > self.max_bytes:
            raise ValidationError(
                "Image file is too large",
                details={"max_bytes": self.max_bytes, "size": len(data)},
            )

        filename = self._filename(content_type, original_name)
        (self.root / filename).write_bytes(data)
        logger.info("upload_stored filename=%s size=%s content_type=%s", filename, len(data), content_type)
        return filename

    def delete(self, filename: str) -> None:
        path = self.root / Path(filename).name
        path.unlink(missing_ok=True)
