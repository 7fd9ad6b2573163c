"""
Disk-backed file store for uploaded photos and generated reports.

Uploads and report artifacts share one directory, which the API also serves
read-only under ``url_prefix``. Every stored file gets a generated name, so
client-supplied filenames never reach the filesystem.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

from fastapi import UploadFile

from .errors import UploadRejected
from .utils import (
    IMAGE_MIME_TYPES,
    allowed_image_extensions,
    ensure_directory,
    normalized_extension,
    unique_report_name,
    unique_upload_name,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


class FileStore:
    """
    Stores uploads under unique names and hands out paths for new artifacts.

    Attributes:
        root: Directory holding uploads and generated reports
        url_prefix: Public URL path the directory is mounted under
        max_upload_bytes: Largest accepted upload
        allowed_extensions: Accepted image extensions (lowercase, dotted)
    """

    def __init__(
        self,
        root: Path,
        url_prefix: str = "/uploads",
        max_upload_mb: float = 10,
        allowed_extensions: Iterable[str] = (".jpeg", ".jpg", ".png", ".gif"),
        allow_webp: bool = False,
    ) -> None:
        self.root = ensure_directory(Path(root))
        self.url_prefix = url_prefix.rstrip("/")
        self.max_upload_bytes = int(max_upload_mb * 1024 * 1024)
        self.allowed_extensions = allowed_image_extensions(allowed_extensions, allow_webp=allow_webp)
        self.allowed_mime_types = set().union(*(IMAGE_MIME_TYPES.get(ext, set()) for ext in self.allowed_extensions))

    def url_for(self, path: Path) -> str:
        return f"{self.url_prefix}/{Path(path).name}"

    def new_artifact_path(self) -> Path:
        """Reserve a unique path for a generated report (the file is not created)."""
        ensure_directory(self.root)
        return self.root / unique_report_name()

    def check_image(self, filename: Optional[str], content_type: Optional[str]) -> str:
        """
        Validate an upload's name and declared MIME type.

        Both the extension and the MIME type must be in the allowed image set.

        Returns:
            The normalised extension to store the file under

        Raises:
            UploadRejected: If either check fails
        """
        extension = normalized_extension(filename or "")
        mime = (content_type or "").split(";")[0].strip().lower()
        if extension not in self.allowed_extensions or mime not in self.allowed_mime_types:
            raise UploadRejected("Only image files are allowed!")
        return extension

    async def save_upload(self, upload: UploadFile) -> Path:
        """
        Stream an uploaded image to disk under a generated name.

        The size limit is enforced while streaming; an oversized or failed
        upload leaves no partial file behind.

        Raises:
            UploadRejected: On a disallowed type (400) or oversized file (413)
        """
        extension = self.check_image(upload.filename, upload.content_type)
        destination = ensure_directory(self.root) / unique_upload_name(extension)

        written = 0
        try:
            with destination.open("wb") as buffer:
                while chunk := await upload.read(CHUNK_SIZE):
                    written += len(chunk)
                    if written > self.max_upload_bytes:
                        raise UploadRejected(
                            f"File too large; the limit is {self.max_upload_bytes // (1024 * 1024)} MB",
                            status_code=413,
                        )
                    buffer.write(chunk)
        except BaseException:
            destination.unlink(missing_ok=True)
            raise
        finally:
            await upload.close()

        logger.info(f"Stored upload {destination.name} ({written} bytes)")
        return destination
