"""
Device services.

Device registry and the command relay that forwards device-state and raw
commands to the controller link.
"""

from .registry import Device, DeviceRegistry, DeviceState
from .relay import (
    CommandRelay,
    ForwardStatus,
    RelayResult,
    format_device_command,
    normalize_command,
    parse_state,
)

__all__ = [
    "CommandRelay",
    "Device",
    "DeviceRegistry",
    "DeviceState",
    "ForwardStatus",
    "RelayResult",
    "format_device_command",
    "normalize_command",
    "parse_state",
]
