"""Shared fixtures: an in-memory broker and machine factory."""

import pytest

from brokerfix.broker import (
    BrokerConnectionError,
    CommandError,
    DeliveryType,
    Machine,
    PowerState,
    RegistrationState,
)
from brokerfix.config import RunnerConfig


class FakeBrokerClient:
    """Stands in for BrokerClient; records every command issued."""

    def __init__(self, machines=(), reject=(), unreachable=False):
        self.machines = list(machines)
        self.reject = set(reject)  # (machine_name, command) pairs
        self.unreachable = unreachable
        self.calls = []

    async def get_machines(self, delivery_type=None):
        if self.unreachable:
            raise BrokerConnectionError("ddc01.corp.local: access denied")
        # Ignores delivery_type so client-side filtering is exercised
        return list(self.machines)

    async def _command(self, machine_name, command):
        self.calls.append((machine_name, command))
        if (machine_name, command) in self.reject:
            raise CommandError(machine_name, command, "Machine is locked")

    async def power_action(self, machine_name, action):
        await self._command(machine_name, action)

    async def disable_maintenance_mode(self, machine_name):
        await self._command(machine_name, "DisableMaintenanceMode")


@pytest.fixture
def make_machine():
    def _make(
        name,
        power="On",
        registration="Registered",
        maintenance=False,
        delivery="AppsOnly",
    ):
        return Machine(
            name=name,
            delivery_type=DeliveryType(delivery),
            power_state=PowerState(power),
            registration_state=RegistrationState(registration),
            in_maintenance_mode=maintenance,
        )
    return _make


@pytest.fixture
def fake_broker():
    return FakeBrokerClient


@pytest.fixture
def config(tmp_path):
    return RunnerConfig(
        delivery_controller="ddc01.corp.local",
        smtp_server="smtp.corp.local",
        smtp_sender="citrix@corp.local",
        smtp_recipients=["ops@corp.local", "desk@corp.local"],
        report_dir=tmp_path / "reports",
    )


@pytest.fixture
def sent_mail(monkeypatch):
    """Capture aiosmtplib.send calls instead of talking to a relay."""
    import aiosmtplib

    sent = []

    async def fake_send(message, **kwargs):
        sent.append((message, kwargs))
        return {}, "OK"

    monkeypatch.setattr(aiosmtplib, "send", fake_send)
    return sent
