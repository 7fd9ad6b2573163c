"""
Outbound delivery of generated reports.

``DispatchGateway`` builds the report email and hands it to a transport. The
default transport is ``SmtpTransport``; tests and alternative deployments can
pass any object with a ``send(message)`` method.
"""

from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formatdate, make_msgid, parseaddr
from pathlib import Path
from typing import Optional, Protocol

from omegaconf import DictConfig

from .errors import DeliveryError, ValidationError
from .models import DiagnosticSession
from .rendering import vehicle_lines

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "PDF report generated (email not configured)"


class Transport(Protocol):
    def send(self, message: EmailMessage) -> None: ...


class SmtpTransport:
    """Sends messages through an SMTP relay with STARTTLS and login."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        user: Optional[str] = None,
        password: Optional[str] = None,
        starttls: bool = True,
        timeout: Optional[float] = None,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.starttls = starttls
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: DictConfig) -> "SmtpTransport":
        smtp = config.smtp
        return cls(
            host=smtp.host,
            port=int(smtp.port),
            user=smtp.user,
            password=smtp.password,
            starttls=bool(smtp.starttls),
            timeout=smtp.timeout,
        )

    def send(self, message: EmailMessage) -> None:
        logger.info(f"Connecting to {self.host}:{self.port}")
        kwargs = {} if self.timeout is None else {"timeout": self.timeout}
        with smtplib.SMTP(self.host, self.port, **kwargs) as server:
            if self.starttls:
                server.starttls()
            if self.user and self.password:
                server.login(self.user, self.password)
            server.send_message(message)


@dataclass
class DeliveryResult:
    sent: bool
    message: str
    artifact: Path
    recipient: Optional[str] = None


def validate_recipient(recipient: Optional[str]) -> str:
    """
    Return the trimmed recipient address.

    Raises:
        ValidationError: If the address is empty, spans several lines, or
            does not parse as a single address
    """
    if not recipient or not recipient.strip():
        raise ValidationError("Email address is required")
    recipient = recipient.strip()
    if "\r" in recipient or "\n" in recipient:
        raise ValidationError("Invalid email address")
    _, address = parseaddr(recipient)
    if not address or "," in recipient:
        raise ValidationError("Invalid email address")
    return recipient


def build_subject(session: DiagnosticSession) -> str:
    return f"Diagnostic Report - {session.vehicle_info.description()}"


def build_body(session: DiagnosticSession) -> str:
    lines = ["DiagFlow Diagnostic Report", ""]
    lines += [f"{label}: {value}" for label, value in vehicle_lines(session)]
    lines += [
        f"Steps Completed: {session.completed_steps} of {session.total_steps}",
        "",
        "Please find the detailed diagnostic report attached.",
    ]
    return "\n".join(lines)


class DispatchGateway:
    """
    Emails a report artifact to a recipient.

    The gateway makes one delivery attempt per call and never retries. When no
    transport credentials are configured it reports the report as generated
    but not sent instead of failing.
    """

    def __init__(
        self,
        transport: Optional[Transport],
        sender: Optional[str] = None,
        attachment_filename: str = "diagnostic-report.pdf",
    ) -> None:
        self.transport = transport
        self.sender = sender
        self.attachment_filename = attachment_filename

    @property
    def configured(self) -> bool:
        return self.transport is not None

    def build_message(self, recipient: str, session: DiagnosticSession, artifact: Path) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = build_subject(session)
        if self.sender:
            message["From"] = self.sender
        message["To"] = recipient
        message["Date"] = formatdate(localtime=True)
        message["Message-ID"] = make_msgid()
        message.set_content(build_body(session))
        message.add_attachment(
            artifact.read_bytes(),
            maintype="application",
            subtype="pdf",
            filename=self.attachment_filename,
        )
        return message

    def deliver(self, recipient: Optional[str], session: DiagnosticSession, artifact: Path) -> DeliveryResult:
        """
        Send ``artifact`` to ``recipient``.

        Raises:
            ValidationError: If ``recipient`` is empty or malformed; nothing is read or sent
            DeliveryError: If the transport fails; carries the artifact path
        """
        recipient = validate_recipient(recipient)

        if self.transport is None:
            logger.warning(f"Email transport not configured; keeping {artifact.name} for download")
            return DeliveryResult(sent=False, message=NOT_CONFIGURED_MESSAGE, artifact=artifact)

        try:
            message = self.build_message(recipient, session, artifact)
            self.transport.send(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error(f"Failed to email report {artifact.name} to {recipient}: {exc}")
            raise DeliveryError(f"Failed to send email: {exc}", artifact=artifact) from exc

        logger.info(f"Report {artifact.name} emailed to {recipient}")
        return DeliveryResult(
            sent=True,
            message="Report sent successfully",
            artifact=artifact,
            recipient=recipient,
        )
