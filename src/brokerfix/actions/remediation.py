"""Auto-remediation for broker machines.

Policy, evaluated per machine in this order:
1. In maintenance mode -> turn maintenance mode off (always checked)
2. Powered off -> turn on
3. Otherwise, not registered -> reset
"""

import logging
from typing import Iterable, List, Sequence

from ..broker import CommandError, DeliveryType, Machine, PowerState, RegistrationState
from .models import (
    ActionRecord,
    CommandFailure,
    MaintenanceModeRecord,
    RemediationAction,
    RemediationResult,
)

logger = logging.getLogger(__name__)


def is_excluded(machine: Machine, excluded: Iterable[str]) -> bool:
    """Check a machine against the exclusion list.

    Matching is case-insensitive and a bare name also matches the
    domain-qualified broker name.
    """
    names = {machine.name.lower(), machine.short_name.lower()}
    return any(name.lower() in names for name in excluded)


async def fetch_machines(client, excluded: Sequence[str] = ()) -> List[Machine]:
    """Get the AppsOnly machines that are not excluded, in broker order.

    Raises:
        BrokerConnectionError: if the broker cannot be queried
    """
    machines = await client.get_machines(delivery_type=DeliveryType.APPS_ONLY)

    candidates = []
    for machine in machines:
        if machine.delivery_type != DeliveryType.APPS_ONLY:
            logger.debug(f"Skipping {machine.name}: delivery type {machine.delivery_type.value}")
            continue
        if is_excluded(machine, excluded):
            logger.debug(f"Skipping {machine.name}: excluded")
            continue
        candidates.append(machine)

    logger.info(f"{len(candidates)} of {len(machines)} machines selected for remediation")
    return candidates


async def _issue(
    coro_factory,
    machine: Machine,
    command: str,
    result: RemediationResult,
    fail_fast: bool,
) -> bool:
    """Run one broker command, recording a failure instead of raising.

    Returns True if the broker accepted the command.
    """
    if result.dry_run:
        return True

    try:
        await coro_factory()
    except CommandError as e:
        if fail_fast:
            raise
        logger.error(f"{command} failed for {machine.name}: {e.message}")
        result.failures.append(CommandFailure(machine.name, command, e.message))
        return False

    return True


async def remediate_machine(
    client,
    machine: Machine,
    result: RemediationResult,
    fail_fast: bool = False,
) -> None:
    """Apply the remediation policy to one machine, appending to result."""
    acted = False
    prefix = "[dry run] " if result.dry_run else ""

    if machine.in_maintenance_mode:
        ok = await _issue(
            lambda: client.disable_maintenance_mode(machine.name),
            machine, "DisableMaintenanceMode", result, fail_fast,
        )
        if ok:
            logger.info(f"{prefix}Disabled maintenance mode on {machine.name}")
            result.maintenance.append(MaintenanceModeRecord(machine.name))
        acted = True

    if machine.power_state == PowerState.OFF:
        action = RemediationAction.TURN_ON
    elif machine.registration_state != RegistrationState.REGISTERED:
        action = RemediationAction.RESET
    else:
        action = None
        logger.debug(
            f"No power action for {machine.name}: "
            f"{machine.power_state.value}, {machine.registration_state.value}"
        )

    if action is not None:
        ok = await _issue(
            lambda: client.power_action(machine.name, action.value),
            machine, action.value, result, fail_fast,
        )
        if ok:
            logger.info(
                f"{prefix}{action.value} issued for {machine.name} "
                f"({machine.power_state.value}, {machine.registration_state.value})"
            )
            result.actions.append(ActionRecord(machine.name, action))
        acted = True

    if not acted:
        result.skipped += 1


async def remediate_machines(
    client,
    machines: Sequence[Machine],
    fail_fast: bool = False,
    dry_run: bool = False,
) -> RemediationResult:
    """Run the remediation policy over machines, one at a time.

    Args:
        client: Broker client used for commands
        machines: Candidates from fetch_machines
        fail_fast: Re-raise the first CommandError instead of continuing
        dry_run: Record decisions without issuing any command

    Returns:
        RemediationResult with actions, maintenance records and failures
    """
    result = RemediationResult(dry_run=dry_run)

    if dry_run:
        logger.info("Dry run: no broker commands will be issued")

    for machine in machines:
        result.machines_seen += 1
        await remediate_machine(client, machine, result, fail_fast=fail_fast)

    logger.info(
        f"Remediation pass complete: {len(result.actions)} power actions, "
        f"{len(result.maintenance)} maintenance changes, "
        f"{len(result.failures)} failures, {result.skipped} healthy"
    )
    return result
