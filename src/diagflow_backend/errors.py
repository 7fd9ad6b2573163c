"""
Exception types raised by the report pipeline and the file store.

Each error carries the HTTP status the API layer should answer with, so route
handlers never have to map exception classes to status codes themselves.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class DiagFlowError(Exception):
    """Base class for errors that are reported to API clients."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(DiagFlowError):
    """A required input is missing or malformed (e.g. no recipient address)."""

    status_code = 400


class UploadRejected(DiagFlowError):
    """An uploaded file failed the type or size checks."""

    status_code = 400

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


class RenderError(DiagFlowError):
    """The PDF artifact could not be written."""

    status_code = 500


class DeliveryError(DiagFlowError):
    """The outbound transport rejected the message or could not be reached."""

    status_code = 500

    def __init__(self, message: str, artifact: Optional[Path] = None) -> None:
        super().__init__(message)
        self.artifact = artifact
