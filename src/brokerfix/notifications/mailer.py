"""Email notification of remediation reports."""

import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List

import aiosmtplib

from ..config import RunnerConfig
from ..reports import Report, ReportDeliveryError

logger = logging.getLogger(__name__)


def build_message(report: Report, sender: str, recipients: List[str]) -> MIMEMultipart:
    """Build a multipart message with plain-text and HTML bodies."""
    msg = MIMEMultipart("alternative")
    msg["Subject"] = report.title
    msg["From"] = sender
    msg["To"] = ", ".join(recipients)

    msg.attach(MIMEText(report.text, "plain"))
    msg.attach(MIMEText(report.html, "html"))
    return msg


async def send_report_email(report: Report, config: RunnerConfig) -> bool:
    """Send the report through the configured SMTP relay.

    Args:
        report: Rendered report
        config: Run configuration (server, port, sender, recipients)

    Returns:
        True if sent, False if mail is not configured

    Raises:
        ReportDeliveryError: if the relay rejects or cannot be reached
    """
    if not config.mail_configured:
        logger.warning("Email not configured (need SMTP server, sender and recipients)")
        return False

    msg = build_message(report, config.smtp_sender, config.smtp_recipients)

    try:
        await aiosmtplib.send(
            msg,
            hostname=config.smtp_server,
            port=config.smtp_port,
            timeout=config.command_timeout,
        )
    except (aiosmtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send report email: {e}")
        raise ReportDeliveryError(f"SMTP delivery via {config.smtp_server} failed: {e}") from e

    logger.info(f"Report emailed to {len(config.smtp_recipients)} recipients: {report.title}")
    return True
