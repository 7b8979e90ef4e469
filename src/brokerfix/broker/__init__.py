"""Broker access module.

Provides the machine models and the client used to query and command
the delivery controller.
"""

from .client import BrokerClient, BrokerConnectionError, CommandError
from .models import DeliveryType, Machine, PowerState, RegistrationState

__all__ = [
    "BrokerClient",
    "BrokerConnectionError",
    "CommandError",
    "DeliveryType",
    "Machine",
    "PowerState",
    "RegistrationState",
]
