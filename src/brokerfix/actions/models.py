"""Data models for remediation results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List

MAINTENANCE_MODE_ACTION = "Disable maintenance mode"


class RemediationAction(str, Enum):
    """Power actions; values are the broker's hosting action names."""
    TURN_ON = "TurnOn"
    RESET = "Reset"


@dataclass(frozen=True)
class ActionRecord:
    """A power action issued for a machine."""
    machine_name: str
    action: RemediationAction


@dataclass(frozen=True)
class MaintenanceModeRecord:
    """Maintenance mode was turned off for a machine."""
    machine_name: str
    action: str = MAINTENANCE_MODE_ACTION


@dataclass(frozen=True)
class CommandFailure:
    """A broker command that was rejected."""
    machine_name: str
    command: str
    error: str


@dataclass
class RemediationResult:
    """Everything one remediation pass did, in encounter order."""
    actions: List[ActionRecord] = field(default_factory=list)
    maintenance: List[MaintenanceModeRecord] = field(default_factory=list)
    failures: List[CommandFailure] = field(default_factory=list)
    machines_seen: int = 0
    skipped: int = 0
    dry_run: bool = False

    @property
    def has_actions(self) -> bool:
        return bool(self.actions)
