"""Remediation Runner.

One run: fetch candidates, remediate them one at a time, then report
and notify if any power action was taken.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from .actions import RemediationResult, fetch_machines, remediate_machines
from .broker import BrokerClient, BrokerConnectionError, CommandError
from .config import RunnerConfig
from .notifications import send_report_email
from .reports import ReportDeliveryError, build_report, write_report

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_PARTIAL_FAILURE = 1
EXIT_FATAL = 2


@dataclass
class RunSummary:
    """Outcome of a run."""
    result: Optional[RemediationResult] = None
    report_path: Optional[Path] = None
    emailed: bool = False
    delivery_errors: int = 0
    fatal_error: Optional[str] = None

    @property
    def exit_code(self) -> int:
        if self.fatal_error:
            return EXIT_FATAL
        if self.delivery_errors or (self.result and self.result.failures):
            return EXIT_PARTIAL_FAILURE
        return EXIT_OK


async def deliver_report(
    result: RemediationResult,
    config: RunnerConfig,
    summary: RunSummary,
    now: datetime,
) -> None:
    """Write and mail the report; each step failing on its own."""
    report = build_report(result, now)
    if report is None:
        logger.info("No power actions taken, no report sent")
        return

    if config.dry_run:
        logger.info(f"Dry run: report {report.filename} not written or sent")
        return

    try:
        summary.report_path = write_report(report, config.report_dir)
    except ReportDeliveryError as e:
        logger.error(str(e))
        summary.delivery_errors += 1

    try:
        summary.emailed = await send_report_email(report, config)
    except ReportDeliveryError as e:
        logger.error(str(e))
        summary.delivery_errors += 1


async def run(config: RunnerConfig, client=None, now: Optional[datetime] = None) -> RunSummary:
    """Execute one remediation run.

    Args:
        config: Validated run configuration
        client: Broker client; built from config when omitted
        now: Report timestamp (defaults to local time)

    Returns:
        RunSummary; its exit_code is the process exit status
    """
    summary = RunSummary()

    if client is None:
        client = BrokerClient(config)

    logger.info(f"Starting remediation run against {config.admin_address}")

    try:
        machines = await fetch_machines(client, config.exclude_machine_names)
    except BrokerConnectionError as e:
        logger.error(f"Broker connection failed: {e}")
        summary.fatal_error = str(e)
        return summary

    try:
        result = await remediate_machines(
            client,
            machines,
            fail_fast=config.fail_fast,
            dry_run=config.dry_run,
        )
    except CommandError as e:
        logger.error(f"Aborting run (fail fast): {e}")
        summary.fatal_error = str(e)
        return summary

    summary.result = result
    await deliver_report(result, config, summary, now or datetime.now())

    if summary.exit_code == EXIT_OK:
        logger.info("Remediation run finished")
    else:
        logger.warning(
            f"Remediation run finished with {len(result.failures)} command failures "
            f"and {summary.delivery_errors} delivery errors"
        )
    return summary
