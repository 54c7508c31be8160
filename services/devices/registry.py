"""
In-memory device registry.

Holds the catalog of controllable devices and their last-known state.
Devices are registered once at startup and never removed during a run.
Setting a state here has no effect on the controller link; the command
relay is responsible for forwarding the matching wire command.
"""

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Optional

from homelink.exceptions import DeviceNotFoundError

logger = logging.getLogger(__name__)


class DeviceState(IntEnum):
    """Device power state. Values match the request surface (0/1)."""

    OFF = 0
    ON = 1

    @property
    def wire_word(self) -> str:
        """Lowercase word used in wire commands."""
        return self.name.lower()


@dataclass
class Device:
    """A controllable device wired to a controller pin."""

    id: str
    name: str
    pin: int
    state: DeviceState = DeviceState.OFF

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "pin": self.pin,
            "state": int(self.state),
        }


class DeviceRegistry:
    """Catalog of devices, kept in registration order."""

    def __init__(self, devices: Optional[Iterable[Device]] = None):
        self._devices: dict[str, Device] = {}
        for device in devices or []:
            self.register(device)

    @classmethod
    def from_config(cls, device_configs: Iterable) -> "DeviceRegistry":
        """Build a registry from DeviceConfig entries; all devices start OFF."""
        return cls(
            Device(id=cfg.id, name=cfg.name, pin=cfg.pin) for cfg in device_configs
        )

    def register(self, device: Device) -> None:
        """Add a device. Ids are unique and stable."""
        if device.id in self._devices:
            raise ValueError(f"Device already registered: {device.id}")
        self._devices[device.id] = device
        logger.debug(f"Registered device {device.id} on pin {device.pin}")

    def get(self, device_id: str) -> Optional[Device]:
        """Look up a device by id."""
        return self._devices.get(device_id)

    def set_state(self, device_id: str, state: DeviceState) -> Device:
        """
        Record a device's new state.

        Raises:
            DeviceNotFoundError: If the id is not registered
        """
        device = self._devices.get(device_id)
        if device is None:
            raise DeviceNotFoundError("Device not found", device_id=device_id)
        device.state = DeviceState(state)
        return device

    def list_all(self) -> list[Device]:
        """All devices in registration order."""
        return list(self._devices.values())

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._devices

    def __len__(self) -> int:
        return len(self._devices)
