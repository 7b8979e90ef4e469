"""brokerfix - Citrix broker machine remediation.

Finds AppsOnly machines that are powered off, unregistered or stuck in
maintenance mode, fixes them through the Broker SDK and mails a report.

Usage:
    from brokerfix import RunnerConfig, run

    config = RunnerConfig.from_env()
    config.validate()
    summary = await run(config)
"""

from .actions import fetch_machines, remediate_machines
from .broker import BrokerClient, BrokerConnectionError, CommandError
from .config import ConfigError, RunnerConfig
from .notifications import send_report_email
from .reports import ReportDeliveryError, build_report, write_report
from .runner import RunSummary, run

__version__ = "1.0.0"

__all__ = [
    # Config
    "RunnerConfig",
    "ConfigError",
    # Broker
    "BrokerClient",
    "BrokerConnectionError",
    "CommandError",
    # Actions
    "fetch_machines",
    "remediate_machines",
    # Reports
    "build_report",
    "write_report",
    "ReportDeliveryError",
    # Notifications
    "send_report_email",
    # Runner
    "run",
    "RunSummary",
]
