"""Notification module.

Provides delivery of remediation reports by email.
"""

from .mailer import build_message, send_report_email

__all__ = [
    "build_message",
    "send_report_email",
]
