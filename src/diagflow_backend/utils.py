"""
Utility functions for file system operations and artifact naming.

This module provides helper functions for:
- Ensuring directory creation with proper error handling
- Normalising file extensions
- Generating collision-free names for uploads and generated reports
"""

from __future__ import annotations

import secrets
import time
from pathlib import Path
from typing import Iterable

REPORT_EXTENSION = ".pdf"

IMAGE_MIME_TYPES = {
    ".jpeg": {"image/jpeg", "image/jpg", "image/pjpeg"},
    ".jpg": {"image/jpeg", "image/jpg", "image/pjpeg"},
    ".png": {"image/png"},
    ".gif": {"image/gif"},
    ".webp": {"image/webp"},
}


def ensure_directory(path: Path) -> Path:
    """
    Create a directory if it doesn't exist, including parent directories.

    This is a safe idempotent operation that won't fail if the directory
    already exists.

    Args:
        path: The directory path to create

    Returns:
        The same path object for chaining

    Raises:
        OSError: If directory creation fails due to permissions or other I/O errors
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def normalized_extension(filename: str) -> str:
    """
    Return the lowercase extension of a filename, including the dot.

    Example:
        >>> normalized_extension("Brake Pad.JPG")
        ".jpg"
        >>> normalized_extension("no-extension")
        ""
    """
    return Path(filename).suffix.lower()


def epoch_millis() -> int:
    return time.time_ns() // 1_000_000


def unique_upload_name(extension: str) -> str:
    """
    Name for a stored upload: ``{epochMillis}-{randomInt}{ext}``.

    The random part is drawn from ``secrets`` so two uploads landing in the
    same millisecond still get distinct names.
    """
    return f"{epoch_millis()}-{secrets.randbelow(10**9)}{extension}"


def unique_report_name() -> str:
    """
    Name for a generated report: ``report-{epochMillis}-{hex}.pdf``.

    The hex suffix keeps concurrent submissions within one millisecond apart.
    """
    return f"report-{epoch_millis()}-{secrets.token_hex(4)}{REPORT_EXTENSION}"


def allowed_image_extensions(base: Iterable[str], allow_webp: bool = False) -> set[str]:
    """
    Build the set of accepted image extensions.

    Args:
        base: Configured extensions (with or without a leading dot)
        allow_webp: Whether ``.webp`` uploads are accepted as well

    Returns:
        Lowercase extensions, each starting with a dot
    """
    extensions = {ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in base}
    if allow_webp:
        extensions.add(".webp")
    return extensions
