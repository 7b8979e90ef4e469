"""Citrix Broker SDK client.

Runs Broker PowerShell SDK cmdlets on a remote Windows host over WinRM
and parses their JSON output. Authentication comes from the ambient
environment: a Kerberos ticket by default, or WinRM credentials when
configured.
"""

import asyncio
import json
import logging
from typing import List, Optional

import requests
import winrm
from winrm.exceptions import WinRMError, WinRMOperationTimeoutError, WinRMTransportError

from ..config import RunnerConfig
from .models import DeliveryType, Machine

logger = logging.getLogger(__name__)

WINRM_PORT = 5985

_TRANSPORT_ERRORS = (
    WinRMError,
    WinRMTransportError,
    WinRMOperationTimeoutError,
    requests.exceptions.RequestException,
)

_PREAMBLE = """$ErrorActionPreference = 'Stop'
Add-PSSnapin Citrix.Broker.Admin.V2 -ErrorAction SilentlyContinue
"""

GET_MACHINES_SCRIPT = _PREAMBLE + """$machines = Get-BrokerMachine -AdminAddress '${ADMIN_ADDRESS}' ${FILTER}-MaxRecordCount 100000 |
    Select-Object MachineName,
        @{Name='DeliveryType'; Expression={[string]$_.DeliveryType}},
        @{Name='PowerState'; Expression={[string]$_.PowerState}},
        @{Name='RegistrationState'; Expression={[string]$_.RegistrationState}},
        InMaintenanceMode
ConvertTo-Json -InputObject @($machines) -Depth 2 -Compress
"""

POWER_ACTION_SCRIPT = _PREAMBLE + """New-BrokerHostingPowerAction -AdminAddress '${ADMIN_ADDRESS}' -MachineName '${MACHINE}' -Action ${ACTION} | Out-Null
"""

DISABLE_MAINTENANCE_SCRIPT = _PREAMBLE + """Set-BrokerMachine -AdminAddress '${ADMIN_ADDRESS}' -MachineName '${MACHINE}' -InMaintenanceMode $false
"""


class BrokerConnectionError(Exception):
    """Broker unreachable, caller unauthorized, or inventory unreadable."""


class CommandError(Exception):
    """A mutating broker command was rejected or timed out."""

    def __init__(self, machine_name: str, command: str, message: str):
        super().__init__(f"{command} failed for {machine_name}: {message}")
        self.machine_name = machine_name
        self.command = command
        self.message = message


def _ps_quote(value: str) -> str:
    """Escape a value for a single-quoted PowerShell string."""
    return value.replace("'", "''")


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace").strip() if data else ""


class BrokerClient:
    """Broker admin API bound to one delivery controller for one run."""

    def __init__(self, config: RunnerConfig, session: Optional[winrm.Session] = None):
        self.admin_address = config.admin_address
        self.host = config.winrm_host or config.delivery_controller
        self.timeout = config.command_timeout

        if session is None:
            session = winrm.Session(
                f"http://{self.host}:{WINRM_PORT}/wsman",
                auth=(config.winrm_user or None, config.winrm_password or None),
                transport=config.winrm_transport,
                operation_timeout_sec=self.timeout,
                read_timeout_sec=self.timeout + 10,
            )
        self.session = session

    def _render(self, template: str, **values: str) -> str:
        script = template.replace("${ADMIN_ADDRESS}", _ps_quote(self.admin_address))
        for key, value in values.items():
            script = script.replace("${" + key + "}", value)
        return script

    async def _run(self, script: str):
        return await asyncio.to_thread(self.session.run_ps, script)

    async def get_machines(self, delivery_type: Optional[DeliveryType] = None) -> List[Machine]:
        """List broker machines, optionally filtered by delivery type.

        Raises:
            BrokerConnectionError: if the controller cannot be queried
        """
        filter_arg = f"-DeliveryType {delivery_type.value} " if delivery_type else ""
        script = self._render(GET_MACHINES_SCRIPT, FILTER=filter_arg)

        logger.debug(f"Querying machines from {self.admin_address} via {self.host}")

        try:
            response = await self._run(script)
        except _TRANSPORT_ERRORS as e:
            raise BrokerConnectionError(f"WinRM call to {self.host} failed: {e}") from e

        if response.status_code != 0:
            raise BrokerConnectionError(
                f"Get-BrokerMachine failed on {self.admin_address}: {_decode(response.std_err)[:500]}"
            )

        output = _decode(response.std_out)
        if not output:
            return []

        try:
            data = json.loads(output)
            if isinstance(data, dict):
                data = [data]
            machines = [Machine.from_broker(item) for item in data]
        except (ValueError, KeyError, TypeError) as e:
            raise BrokerConnectionError(f"Unreadable machine inventory: {e}") from e

        logger.debug(f"Broker returned {len(machines)} machines")
        return machines

    async def _command(self, machine_name: str, command: str, script: str) -> None:
        try:
            response = await self._run(script)
        except _TRANSPORT_ERRORS as e:
            raise CommandError(machine_name, command, str(e)) from e

        if response.status_code != 0:
            raise CommandError(machine_name, command, _decode(response.std_err)[:500])

    async def power_action(self, machine_name: str, action: str) -> None:
        """Queue a hosting power action (``TurnOn``, ``Reset``) for a machine."""
        script = self._render(
            POWER_ACTION_SCRIPT, MACHINE=_ps_quote(machine_name), ACTION=action
        )
        await self._command(machine_name, action, script)

    async def disable_maintenance_mode(self, machine_name: str) -> None:
        script = self._render(DISABLE_MAINTENANCE_SCRIPT, MACHINE=_ps_quote(machine_name))
        await self._command(machine_name, "DisableMaintenanceMode", script)
