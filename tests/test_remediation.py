"""Tests for the machine fetcher and the remediation policy."""

import logging
from dataclasses import fields

import pytest

from brokerfix.actions import (
    ActionRecord,
    MaintenanceModeRecord,
    RemediationAction,
    RemediationResult,
    fetch_machines,
    is_excluded,
    remediate_machine,
    remediate_machines,
)
from brokerfix.broker import BrokerConnectionError, CommandError


class TestFetchMachines:
    """Test candidate selection."""

    @pytest.mark.asyncio
    async def test_only_apps_only_machines(self, fake_broker, make_machine):
        """Machines with other delivery types are dropped."""
        client = fake_broker([
            make_machine("CORP\\vm1", power="Off"),
            make_machine("CORP\\vm2", power="Off", delivery="DesktopsOnly"),
            make_machine("CORP\\vm3", power="Off", delivery="SomethingNew"),
        ])

        machines = await fetch_machines(client)

        assert [m.name for m in machines] == ["CORP\\vm1"]

    @pytest.mark.asyncio
    async def test_excluded_machines_dropped(self, fake_broker, make_machine):
        """Exclusion applies regardless of state, preserving order."""
        client = fake_broker([
            make_machine("CORP\\vm1", power="Off", maintenance=True),
            make_machine("CORP\\vm2", registration="Unregistered"),
            make_machine("CORP\\vm3", power="Off"),
        ])

        machines = await fetch_machines(client, ["CORP\\vm1", "vm2"])

        assert [m.name for m in machines] == ["CORP\\vm3"]

    @pytest.mark.asyncio
    async def test_connection_error_propagates(self, fake_broker):
        """An unreachable broker is fatal."""
        client = fake_broker(unreachable=True)

        with pytest.raises(BrokerConnectionError):
            await fetch_machines(client)


class TestIsExcluded:

    def test_case_insensitive_short_name(self, make_machine):
        machine = make_machine("CORP\\VM-Golden")
        assert is_excluded(machine, ["vm-golden"])
        assert is_excluded(machine, ["corp\\vm-golden"])
        assert not is_excluded(machine, ["vm-gold"])
        assert not is_excluded(machine, [])


class TestRemediationPolicy:
    """Test per-machine decisions."""

    @pytest.mark.asyncio
    async def test_maintenance_and_powered_off(self, fake_broker, make_machine):
        """Maintenance and power checks are independent."""
        machine = make_machine("vm1", power="Off", maintenance=True)
        client = fake_broker([machine])

        result = await remediate_machines(client, [machine])

        assert result.maintenance == [MaintenanceModeRecord("vm1")]
        assert result.maintenance[0].action == "Disable maintenance mode"
        assert result.actions == [ActionRecord("vm1", RemediationAction.TURN_ON)]
        assert client.calls == [("vm1", "DisableMaintenanceMode"), ("vm1", "TurnOn")]

    @pytest.mark.asyncio
    async def test_healthy_machine_untouched(self, fake_broker, make_machine):
        """Powered on, registered and not in maintenance: no record at all."""
        machine = make_machine("vm1")
        client = fake_broker([machine])

        result = await remediate_machines(client, [machine])

        assert result.actions == []
        assert result.maintenance == []
        assert result.skipped == 1
        assert client.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("power", ["On", "Unknown", "TurningOn"])
    @pytest.mark.parametrize("registration", ["Unregistered", "AgentError", "Initializing"])
    async def test_unregistered_is_reset(self, fake_broker, make_machine, power, registration):
        """Not off and not registered gives exactly one Reset."""
        machine = make_machine("vm1", power=power, registration=registration)
        client = fake_broker([machine])

        result = await remediate_machines(client, [machine])

        assert result.actions == [ActionRecord("vm1", RemediationAction.RESET)]

    @pytest.mark.asyncio
    async def test_powered_off_unregistered_only_turned_on(self, fake_broker, make_machine):
        """TurnOn and Reset are mutually exclusive."""
        machine = make_machine("vm1", power="Off", registration="Unregistered")
        client = fake_broker([machine])

        result = await remediate_machines(client, [machine])

        assert result.actions == [ActionRecord("vm1", RemediationAction.TURN_ON)]

    @pytest.mark.asyncio
    async def test_maintenance_only(self, fake_broker, make_machine):
        machine = make_machine("vm1", maintenance=True)
        client = fake_broker([machine])

        result = await remediate_machines(client, [machine])

        assert result.maintenance == [MaintenanceModeRecord("vm1")]
        assert result.actions == []
        assert not result.has_actions

    @pytest.mark.asyncio
    async def test_encounter_order_preserved(self, fake_broker, make_machine):
        machines = [
            make_machine("vm3", registration="Unregistered"),
            make_machine("vm1", power="Off"),
            make_machine("vm2", power="Off", maintenance=True),
        ]
        client = fake_broker(machines)

        result = await remediate_machines(client, machines)

        assert [r.machine_name for r in result.actions] == ["vm3", "vm1", "vm2"]
        assert result.machines_seen == 3


class TestRemediationResult:

    def test_fields(self):
        """The result carries only the ordered lists and counters."""
        result = RemediationResult()

        assert [f.name for f in fields(result)] == [
            "actions",
            "maintenance",
            "failures",
            "machines_seen",
            "skipped",
            "dry_run",
        ]
        assert not result.has_actions


class TestCommandFailures:
    """Test the failure policy."""

    @pytest.mark.asyncio
    async def test_failure_isolated_per_machine(self, fake_broker, make_machine):
        """A rejected command is recorded and the loop continues."""
        machines = [
            make_machine("vm1", power="Off"),
            make_machine("vm2", registration="Unregistered"),
        ]
        client = fake_broker(machines, reject=[("vm1", "TurnOn")])

        result = await remediate_machines(client, machines)

        assert result.actions == [ActionRecord("vm2", RemediationAction.RESET)]
        assert len(result.failures) == 1
        assert result.failures[0].machine_name == "vm1"
        assert result.failures[0].command == "TurnOn"
        assert "locked" in result.failures[0].error

    @pytest.mark.asyncio
    async def test_maintenance_failure_still_checks_power(self, fake_broker, make_machine):
        machine = make_machine("vm1", power="Off", maintenance=True)
        client = fake_broker([machine], reject=[("vm1", "DisableMaintenanceMode")])

        result = await remediate_machines(client, [machine])

        assert result.maintenance == []
        assert result.actions == [ActionRecord("vm1", RemediationAction.TURN_ON)]
        assert [f.command for f in result.failures] == ["DisableMaintenanceMode"]

    @pytest.mark.asyncio
    async def test_fail_fast_aborts(self, fake_broker, make_machine):
        """With fail_fast the first rejection stops the run."""
        machines = [
            make_machine("vm1", power="Off"),
            make_machine("vm2", power="Off"),
        ]
        client = fake_broker(machines, reject=[("vm1", "TurnOn")])

        with pytest.raises(CommandError):
            await remediate_machines(client, machines, fail_fast=True)

        assert client.calls == [("vm1", "TurnOn")]


class TestDryRun:

    @pytest.mark.asyncio
    async def test_no_commands_issued(self, fake_broker, make_machine):
        """Dry run records decisions without calling the broker."""
        machines = [
            make_machine("vm1", power="Off", maintenance=True),
            make_machine("vm2", registration="Unregistered"),
        ]
        client = fake_broker(machines)

        result = await remediate_machines(client, machines, dry_run=True)

        assert client.calls == []
        assert result.dry_run is True
        assert [a.action for a in result.actions] == [
            RemediationAction.TURN_ON,
            RemediationAction.RESET,
        ]
        assert len(result.maintenance) == 1


class TestLogging:
    """Test log levels for decisions, actions and failures."""

    @pytest.mark.asyncio
    async def test_power_actions_logged_at_info(self, fake_broker, make_machine, caplog):
        machines = [
            make_machine("CORP\\vm1", power="Off"),
            make_machine("CORP\\vm2", registration="Unregistered"),
        ]
        client = fake_broker(machines)

        with caplog.at_level(logging.DEBUG, logger="brokerfix.actions.remediation"):
            await remediate_machines(client, machines)

        info = [r.getMessage() for r in caplog.records if r.levelno == logging.INFO]
        assert any("TurnOn" in m and "CORP\\vm1" in m for m in info)
        assert any("Reset" in m and "CORP\\vm2" in m for m in info)

    @pytest.mark.asyncio
    async def test_healthy_machine_logged_at_debug_only(self, fake_broker, make_machine, caplog):
        """A skip decision is traced at DEBUG and nowhere higher."""
        machine = make_machine("CORP\\vm1")
        client = fake_broker([machine])

        with caplog.at_level(logging.DEBUG, logger="brokerfix.actions.remediation"):
            await remediate_machine(client, machine, RemediationResult())

        about_vm1 = [r for r in caplog.records if "CORP\\vm1" in r.getMessage()]
        assert about_vm1
        assert all(r.levelno == logging.DEBUG for r in about_vm1)

    @pytest.mark.asyncio
    async def test_rejected_command_logged_at_error(self, fake_broker, make_machine, caplog):
        machine = make_machine("CORP\\vm1", power="Off")
        client = fake_broker([machine], reject=[("CORP\\vm1", "TurnOn")])

        with caplog.at_level(logging.DEBUG, logger="brokerfix.actions.remediation"):
            await remediate_machines(client, [machine])

        errors = [r.getMessage() for r in caplog.records if r.levelno == logging.ERROR]
        assert len(errors) == 1
        assert "TurnOn" in errors[0]
        assert "CORP\\vm1" in errors[0]
        assert "locked" in errors[0]
