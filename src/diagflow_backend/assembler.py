from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from .errors import RenderError
from .file_store import FileStore
from .models import DiagnosticSession
from .rendering import render, write_pdf

logger = logging.getLogger(__name__)


class ReportAssembler:
    """
    Renders a diagnostic session into a PDF artifact in the file store.

    Each call creates exactly one uniquely named file. The assembler never
    deletes what it creates; removal is scheduled by the caller once the
    artifact has been dispatched.
    """

    def __init__(
        self,
        file_store: FileStore,
        product_name: str = "DiagFlow",
        tagline: str = "DiagFlow - Professional Vehicle Diagnostics",
    ) -> None:
        self.file_store = file_store
        self.product_name = product_name
        self.tagline = tagline

    def assemble(self, session: DiagnosticSession, generated_at: Optional[datetime] = None) -> Path:
        """
        Write the rendered report to a new artifact and return its path.

        The sink is closed before this method returns, on success and on error.

        Raises:
            RenderError: If the artifact cannot be created or written
        """
        document = render(
            session,
            generated_at=generated_at,
            product_name=self.product_name,
            tagline=self.tagline,
        )

        try:
            artifact = self.file_store.new_artifact_path()
            sink = artifact.open("xb")
        except OSError as exc:
            raise RenderError(f"Could not create report file: {exc}") from exc

        try:
            with sink:
                write_pdf(document, sink, title=f"{self.product_name} Diagnostic Report")
        except Exception as exc:
            artifact.unlink(missing_ok=True)
            logger.error(f"Failed to write report {artifact.name}: {exc}")
            raise RenderError(f"Failed to generate PDF report: {exc}") from exc

        logger.info(f"Generated report {artifact.name} ({len(document)} blocks)")
        return artifact
