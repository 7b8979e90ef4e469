"""Data models for broker machine inventory."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class DeliveryType(str, Enum):
    """How a machine's sessions are delivered."""
    APPS_ONLY = "AppsOnly"
    DESKTOPS_ONLY = "DesktopsOnly"
    DESKTOPS_AND_APPS = "DesktopsAndApps"
    UNKNOWN = "Unknown"

    @classmethod
    def _missing_(cls, value):
        return cls.UNKNOWN


class PowerState(str, Enum):
    """Broker hosting power states."""
    ON = "On"
    OFF = "Off"
    TURNING_ON = "TurningOn"
    TURNING_OFF = "TurningOff"
    SUSPENDED = "Suspended"
    SUSPENDING = "Suspending"
    RESUMING = "Resuming"
    UNAVAILABLE = "Unavailable"
    UNMANAGED = "Unmanaged"
    UNKNOWN = "Unknown"

    @classmethod
    def _missing_(cls, value):
        return cls.UNKNOWN


class RegistrationState(str, Enum):
    """Machine agent registration states."""
    REGISTERED = "Registered"
    UNREGISTERED = "Unregistered"
    INITIALIZING = "Initializing"
    AGENT_ERROR = "AgentError"
    UNKNOWN = "Unknown"

    @classmethod
    def _missing_(cls, value):
        return cls.UNKNOWN


@dataclass(frozen=True)
class Machine:
    """A broker machine snapshot, read once per run."""
    name: str
    delivery_type: DeliveryType
    power_state: PowerState
    registration_state: RegistrationState
    in_maintenance_mode: bool = False

    @property
    def short_name(self) -> str:
        """Machine name without the ``DOMAIN\\`` prefix."""
        return self.name.rsplit("\\", 1)[-1]

    @classmethod
    def from_broker(cls, data: Dict[str, Any]) -> "Machine":
        """Build from a ``Get-BrokerMachine`` JSON object."""
        maintenance = data.get("InMaintenanceMode", False)
        if isinstance(maintenance, str):
            maintenance = maintenance.strip().lower() == "true"

        return cls(
            name=str(data["MachineName"]),
            delivery_type=DeliveryType(data.get("DeliveryType") or "Unknown"),
            power_state=PowerState(data.get("PowerState") or "Unknown"),
            registration_state=RegistrationState(data.get("RegistrationState") or "Unknown"),
            in_maintenance_mode=bool(maintenance),
        )
