"""Report module.

Renders and persists the HTML summary of a remediation run.
"""

from .html import Report, ReportDeliveryError, build_report, report_filename, write_report

__all__ = [
    "Report",
    "ReportDeliveryError",
    "build_report",
    "report_filename",
    "write_report",
]
