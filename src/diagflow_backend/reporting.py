"""
Report submission pipeline: validate, assemble, deliver, clean up.

``ReportService`` ties the pipeline stages together for the submit-report
endpoint. Stage order matters:

1. The recipient is checked before anything is rendered.
2. The assembler writes one PDF artifact to the file store.
3. The gateway emails it, or reports it as generated but not sent when no
   transport is configured.
4. If delivery was attempted, successfully or not, the artifact is scheduled
   for delayed deletion. Unsent artifacts stay available for download.
"""

from __future__ import annotations

import logging
from typing import Optional

from omegaconf import DictConfig

from .assembler import ReportAssembler
from .cleanup import ArtifactJanitor
from .configuration import transport_configured
from .dispatch import DeliveryResult, DispatchGateway, SmtpTransport, Transport, validate_recipient
from .file_store import FileStore
from .models import DiagnosticSession

logger = logging.getLogger(__name__)


class ReportService:
    def __init__(self, assembler: ReportAssembler, gateway: DispatchGateway, janitor: ArtifactJanitor) -> None:
        self.assembler = assembler
        self.gateway = gateway
        self.janitor = janitor

    @classmethod
    def from_config(
        cls,
        config: DictConfig,
        file_store: FileStore,
        transport: Optional[Transport] = None,
    ) -> "ReportService":
        """
        Wire the pipeline from configuration.

        An explicit ``transport`` wins; otherwise an SMTP transport is built
        only when credentials are configured.
        """
        if transport is None and transport_configured(config):
            transport = SmtpTransport.from_config(config)
        report = config.report
        return cls(
            assembler=ReportAssembler(file_store, product_name=report.product_name, tagline=report.tagline),
            gateway=DispatchGateway(
                transport,
                sender=config.smtp.sender or config.smtp.user,
                attachment_filename=report.attachment_filename,
            ),
            janitor=ArtifactJanitor(delay_seconds=float(report.cleanup_delay_seconds)),
        )

    def submit(self, recipient: Optional[str], session: DiagnosticSession) -> DeliveryResult:
        """
        Render ``session`` and email it to ``recipient``.

        Raises:
            ValidationError: Missing or malformed recipient; nothing is rendered
            RenderError: The artifact could not be written
            DeliveryError: The transport failed; the artifact is still cleaned up
        """
        recipient = validate_recipient(recipient)

        artifact = self.assembler.assemble(session)
        if not self.gateway.configured:
            return self.gateway.deliver(recipient, session, artifact)

        try:
            return self.gateway.deliver(recipient, session, artifact)
        finally:
            self.janitor.schedule(artifact)

    def close(self) -> None:
        self.janitor.shutdown()
