"""Configuration for brokerfix.

Settings are layered: dataclass defaults, then environment variables,
then an optional YAML file, then command-line arguments.
"""

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

# Relative to the working directory the run starts in
DEFAULT_REPORT_DIR = Path("reports")

_TRUE_VALUES = ("1", "true", "yes", "on")


class ConfigError(Exception):
    """Raised when configuration is missing or malformed."""


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


def _as_int(name: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}")


@dataclass
class RunnerConfig:
    """Remediation run configuration."""

    # Broker
    delivery_controller: str = ""
    delivery_controller_port: int = 80
    exclude_machine_names: List[str] = field(default_factory=list)

    # WinRM transport to the controller
    winrm_host: str = ""
    winrm_transport: str = "kerberos"
    winrm_user: str = ""
    winrm_password: str = ""
    command_timeout: int = 60

    # Mail
    smtp_server: str = ""
    smtp_port: int = 25
    smtp_sender: str = ""
    smtp_recipients: List[str] = field(default_factory=list)

    # Behaviour
    report_dir: Path = DEFAULT_REPORT_DIR
    fail_fast: bool = False
    dry_run: bool = False

    @property
    def admin_address(self) -> str:
        """Broker SDK admin address, ``host:port``."""
        return f"{self.delivery_controller}:{self.delivery_controller_port}"

    @property
    def mail_configured(self) -> bool:
        return bool(self.smtp_server and self.smtp_sender and self.smtp_recipients)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "RunnerConfig":
        """Load configuration from environment variables."""
        env = os.environ if environ is None else environ
        return cls(
            delivery_controller=env.get("BROKERFIX_DELIVERY_CONTROLLER", ""),
            delivery_controller_port=_as_int(
                "BROKERFIX_DELIVERY_CONTROLLER_PORT",
                env.get("BROKERFIX_DELIVERY_CONTROLLER_PORT", "80"),
            ),
            exclude_machine_names=_split_list(env.get("BROKERFIX_EXCLUDE_MACHINE_NAMES", "")),
            winrm_host=env.get("BROKERFIX_WINRM_HOST", ""),
            winrm_transport=env.get("BROKERFIX_WINRM_TRANSPORT", "kerberos"),
            winrm_user=env.get("BROKERFIX_WINRM_USER", ""),
            winrm_password=env.get("BROKERFIX_WINRM_PASSWORD", ""),
            command_timeout=_as_int(
                "BROKERFIX_COMMAND_TIMEOUT", env.get("BROKERFIX_COMMAND_TIMEOUT", "60")
            ),
            smtp_server=env.get("BROKERFIX_SMTP_SERVER", ""),
            smtp_port=_as_int("BROKERFIX_SMTP_PORT", env.get("BROKERFIX_SMTP_PORT", "25")),
            smtp_sender=env.get("BROKERFIX_SMTP_SENDER", ""),
            smtp_recipients=_split_list(env.get("BROKERFIX_SMTP_RECIPIENTS", "")),
            report_dir=Path(env.get("BROKERFIX_REPORT_DIR", str(DEFAULT_REPORT_DIR))),
            fail_fast=_as_bool(env.get("BROKERFIX_FAIL_FAST", "false")),
            dry_run=_as_bool(env.get("BROKERFIX_DRY_RUN", "false")),
        )

    def merge(self, overrides: Dict[str, Any]) -> "RunnerConfig":
        """Return a copy with every non-None override applied.

        Keys must be field names. Values are coerced to the field's type,
        so YAML and argparse output can be passed straight in.
        """
        known = {f.name for f in fields(self)}
        changes: Dict[str, Any] = {}

        for key, value in overrides.items():
            if key not in known:
                raise ConfigError(f"Unknown setting: {key}")
            if value is None:
                continue

            if key in ("exclude_machine_names", "smtp_recipients"):
                if isinstance(value, str):
                    value = _split_list(value)
                value = [str(v) for v in value]
            elif key in ("delivery_controller_port", "smtp_port", "command_timeout"):
                value = _as_int(key, value)
            elif key in ("fail_fast", "dry_run"):
                value = _as_bool(value)
            elif key == "report_dir":
                value = Path(value)
            else:
                value = str(value)

            changes[key] = value

        return replace(self, **changes)

    def merge_yaml(self, path: Path) -> "RunnerConfig":
        """Apply settings from a YAML mapping file."""
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}")
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}")

        if data is None:
            return self
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        return self.merge(data)

    def validate(self) -> None:
        """Check required settings."""
        if not self.delivery_controller:
            raise ConfigError("DeliveryController is required")
        if not 0 < self.delivery_controller_port < 65536:
            raise ConfigError(f"Invalid DeliveryControllerPort: {self.delivery_controller_port}")
        if self.command_timeout <= 0:
            raise ConfigError("command_timeout must be positive")
