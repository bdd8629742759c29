"""
OSM Element Tracker — Report Delivery
======================================
Backends that deliver a finalized :class:`~osm_element_tracker.report.RunReport`.

* :class:`EmailNotifier` — report body as the mail text, consolidated diff
  as an attachment, sent to a recipient list over SMTP.
* :class:`ReportFileNotifier` — writes the same two texts to a directory.
"""

from __future__ import annotations

import logging
import smtplib
from abc import ABC, abstractmethod
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path

from shared.python.exceptions import OutputWriteError

from osm_element_tracker.report import RunReport

logger = logging.getLogger("osm_element_tracker.notifier")

ATTACHMENT_NAME = "reportDiff.txt"
REPORT_NAME = "report.txt"


class NotifierBackend(ABC):
    """Abstract base for report delivery backends."""

    @abstractmethod
    def send(self, report: RunReport) -> None:
        """Deliver the report.

        Args:
            report: The finalized run report.  Only called when
                    ``report.has_changes`` is ``True``.
        """


class ReportFileNotifier(NotifierBackend):
    """Write ``report.txt`` and ``reportDiff.txt`` into *output_dir*.

    Args:
        output_dir: Destination directory; created if missing.
    """

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = Path(output_dir)

    def send(self, report: RunReport) -> None:
        """Write both report files, replacing earlier ones.

        Raises:
            OutputWriteError: If a file cannot be written.
        """
        for name, text in ((REPORT_NAME, report.body), (ATTACHMENT_NAME, report.attachment)):
            path = self.output_dir / name
            try:
                self.output_dir.mkdir(parents=True, exist_ok=True)
                path.write_text(text, encoding="utf-8")
            except OSError as exc:
                raise OutputWriteError(str(path), str(exc)) from exc
        logger.info("ReportFileNotifier: wrote report to %s", self.output_dir)


class EmailNotifier(NotifierBackend):
    """Send the report via SMTP.

    Args:
        recipients: Recipient e-mail addresses.
        sender: Sender address.
        smtp_host: SMTP server hostname.
        smtp_port: SMTP server port.
        username: SMTP login; when set the connection is upgraded with
                  STARTTLS before logging in.
        password: SMTP password.
    """

    def __init__(
        self,
        recipients: list[str],
        sender: str,
        smtp_host: str = "localhost",
        smtp_port: int = 25,
        username: str | None = None,
        password: str | None = None,
    ) -> None:
        if not recipients:
            raise ValueError("EmailNotifier needs at least one recipient")
        self.recipients = recipients
        self.sender = sender
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.username = username
        self.password = password

    def build_message(self, report: RunReport) -> MIMEMultipart:
        msg = MIMEMultipart()
        msg["Subject"] = report.subject
        msg["From"] = self.sender
        msg["To"] = ", ".join(self.recipients)
        msg.attach(MIMEText(report.body, "plain", "utf-8"))

        attachment = MIMEApplication(report.attachment.encode("utf-8"), _subtype="octet-stream")
        attachment.add_header("Content-Disposition", "attachment", filename=ATTACHMENT_NAME)
        msg.attach(attachment)
        return msg

    def send(self, report: RunReport) -> None:
        """Send the report mail.

        Raises:
            smtplib.SMTPException: On SMTP connection or authentication failure.
        """
        msg = self.build_message(report)

        with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
            if self.username:
                server.starttls()
                server.login(self.username, self.password or "")
            server.sendmail(self.sender, self.recipients, msg.as_string())

        logger.info("EmailNotifier: sent to %s", self.recipients)
