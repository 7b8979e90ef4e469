"""Remediation actions module.

Provides the machine fetcher and the remediation decision engine.
"""

from .models import (
    ActionRecord,
    CommandFailure,
    MaintenanceModeRecord,
    RemediationAction,
    RemediationResult,
)
from .remediation import fetch_machines, is_excluded, remediate_machine, remediate_machines

__all__ = [
    "fetch_machines",
    "is_excluded",
    "remediate_machine",
    "remediate_machines",
    "ActionRecord",
    "CommandFailure",
    "MaintenanceModeRecord",
    "RemediationAction",
    "RemediationResult",
]
