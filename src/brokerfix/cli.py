#!/usr/bin/env python3
"""
brokerfix command line

Usage:
    brokerfix --delivery-controller ddc01.corp.local \\
        --exclude-machine-name CORP\\golden01 \\
        --smtp-server smtp.corp.local --smtp-sender citrix@corp.local \\
        --smtp-recipient ops@corp.local
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import ConfigError, RunnerConfig
from .runner import EXIT_FATAL, run

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='brokerfix',
        description='Power on, reset and un-maintenance broker machines, then mail a report',
    )
    parser.add_argument('--config', type=Path, help='YAML settings file')
    parser.add_argument('--delivery-controller', help='Delivery Controller hostname')
    parser.add_argument('--delivery-controller-port', type=int, help='Broker SDK port (default 80)')
    parser.add_argument('--exclude-machine-name', action='append', dest='exclude_machine_names',
                        metavar='NAME', help='Machine to skip; repeatable')
    parser.add_argument('--smtp-server', help='SMTP relay host')
    parser.add_argument('--smtp-port', type=int, help='SMTP relay port (default 25)')
    parser.add_argument('--smtp-sender', help='From address')
    parser.add_argument('--smtp-recipient', action='append', dest='smtp_recipients',
                        metavar='ADDRESS', help='To address; repeatable')
    parser.add_argument('--report-dir', type=Path, help='Directory for HTML reports')
    parser.add_argument('--winrm-host', help='Host running the Broker SDK (default: controller)')
    parser.add_argument('--winrm-transport', help='WinRM transport (default kerberos)')
    parser.add_argument('--command-timeout', type=int, help='Seconds per remote call (default 60)')
    parser.add_argument('--fail-fast', action='store_const', const=True,
                        help='Abort on the first rejected broker command')
    parser.add_argument('--dry-run', action='store_const', const=True,
                        help='Decide but issue no commands, write no report')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    return parser


def load_config(args: argparse.Namespace) -> RunnerConfig:
    """Layer environment, YAML file and command-line settings."""
    config = RunnerConfig.from_env()
    if args.config:
        config = config.merge_yaml(args.config)

    overrides = {
        key: value for key, value in vars(args).items()
        if key not in ('config', 'verbose')
    }
    config = config.merge(overrides)
    config.validate()
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the brokerfix command."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
    )

    try:
        config = load_config(args)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_FATAL

    summary = asyncio.run(run(config))
    return summary.exit_code


if __name__ == "__main__":
    sys.exit(main())
