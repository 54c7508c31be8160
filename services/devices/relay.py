"""
Command relay between the request surface and the controller link.

Validates device-state changes and free-form commands, records device
state in the registry, and forwards one wire command per request:

    "<deviceId> on" / "<deviceId> off"   structured device command
    "<free text>"                        lowercase, trimmed raw command

Registry state is updated before forwarding and stays updated when the link
is down or the write fails: a successful result means "accepted", not
"confirmed by hardware". RelayResult.forward_status reports which of the
two actually happened.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol

from homelink.exceptions import (
    DeviceNotFoundError,
    EmptyCommandError,
    InvalidCommandError,
    InvalidStateError,
    LinkUnavailableError,
    LinkWriteError,
    VoiceAuthenticationError,
)
from services.devices.registry import Device, DeviceRegistry, DeviceState

logger = logging.getLogger(__name__)


class ForwardStatus(Enum):
    """Outcome of forwarding a wire command."""

    SENT = "sent"
    LINK_UNAVAILABLE = "link_unavailable"
    WRITE_FAILED = "write_failed"


@dataclass
class RelayResult:
    """Result of an accepted relay request."""

    command: str
    forward_status: ForwardStatus
    device: Optional[Device] = None

    @property
    def forwarded(self) -> bool:
        return self.forward_status == ForwardStatus.SENT

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data: dict[str, Any] = {
            "command": self.command,
            "forwarded": self.forwarded,
            "forwardStatus": self.forward_status.value,
        }
        if self.device is not None:
            data["device"] = self.device.to_dict()
        return data


class LinkWriter(Protocol):
    """The part of the link manager the relay depends on."""

    def is_available(self) -> bool:
        ...

    async def write(self, line: str) -> None:
        ...


class Authenticator(Protocol):
    """Boolean voice verdict consumed when authentication is required."""

    @property
    def is_trained(self) -> bool:
        ...

    def authenticate(self, candidate: Any) -> bool:
        ...


def format_device_command(device_id: str, state: DeviceState) -> str:
    """Build the structured wire command for a device state."""
    return f"{device_id} {state.wire_word}"


def normalize_command(text: Any) -> str:
    """
    Normalize a raw command to its wire form.

    Raises:
        EmptyCommandError: If the command is missing or blank
        InvalidCommandError: If the command is not text or spans lines
    """
    if text is None:
        raise EmptyCommandError("Command is required")
    if not isinstance(text, str):
        raise InvalidCommandError("Command must be a string", parameter="command")

    command = text.strip().lower()
    if not command:
        raise EmptyCommandError("Command is required")
    if "\n" in command or "\r" in command:
        raise InvalidCommandError("Command must be a single line", command=command)
    return command


def parse_state(device_id: str, requested: Any) -> DeviceState:
    """
    Validate a requested state value.

    Only the numbers 0 and 1 are accepted; booleans and strings are not.

    Raises:
        InvalidStateError: If the value is not exactly 0 or 1
    """
    if isinstance(requested, bool) or not isinstance(requested, (int, float)):
        raise InvalidStateError(
            "Invalid state. Must be 0 (off) or 1 (on)", device_id, requested
        )
    if requested not in (0, 1):
        raise InvalidStateError(
            "Invalid state. Must be 0 (off) or 1 (on)", device_id, requested
        )
    return DeviceState(int(requested))


class CommandRelay:
    """
    Translates validated requests into wire commands.

    Attributes:
        registry: Device catalog mutated by device-state requests
        link: Controller link used for forwarding
        authenticator: Voice verdict source for raw commands
        require_auth: Gate raw commands on a matching voice signature
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        link: LinkWriter,
        authenticator: Optional[Authenticator] = None,
        require_auth: bool = False,
    ):
        if require_auth and authenticator is None:
            raise ValueError("require_auth needs an authenticator")
        self.registry = registry
        self.link = link
        self.authenticator = authenticator
        self.require_auth = require_auth

    async def apply_device_state(self, device_id: str, requested_state: Any) -> RelayResult:
        """
        Set a device state and forward the matching wire command.

        Args:
            device_id: Registered device id
            requested_state: 0 (off) or 1 (on)

        Returns:
            RelayResult with the updated device

        Raises:
            DeviceNotFoundError: Unknown id; the registry is not touched
            InvalidStateError: State is not 0 or 1
        """
        if self.registry.get(device_id) is None:
            raise DeviceNotFoundError("Device not found", device_id=device_id)

        state = parse_state(device_id, requested_state)
        device = self.registry.set_state(device_id, state)
        command = format_device_command(device_id, state)

        status = await self._forward(command)
        logger.info(f"{device.name} turned {state.name} ({status.value})")
        return RelayResult(command=command, forward_status=status, device=device)

    async def apply_raw_command(self, text: Any, signature: Any = None) -> RelayResult:
        """
        Forward a free-form command verbatim after normalization.

        Raw commands are not checked against the registry and never change
        device state.

        Args:
            text: Command text
            signature: Voice signature of the speaker, required when
                require_auth is set

        Raises:
            EmptyCommandError: Command blank after trimming
            InvalidCommandError: Command is not a single line of text
            VoiceAuthenticationError: Voice gate rejected the speaker
        """
        command = normalize_command(text)
        logger.info(f"Voice command received: {command}")

        if self.require_auth:
            self._check_voice(signature)

        status = await self._forward(command)
        return RelayResult(command=command, forward_status=status)

    def _check_voice(self, signature: Any) -> None:
        if not self.authenticator.is_trained:
            raise VoiceAuthenticationError(
                "Voice training required before issuing voice commands"
            )
        if signature is None:
            raise VoiceAuthenticationError("Voice signature is required")
        if not self.authenticator.authenticate(signature):
            logger.warning("Unauthorized voice command rejected")
            raise VoiceAuthenticationError("Voice not recognized. Access denied.")

    async def _forward(self, command: str) -> ForwardStatus:
        """Write a command to the link, absorbing link-layer failures."""
        try:
            await self.link.write(command)
        except LinkUnavailableError:
            logger.warning(f"Cannot send '{command}', controller not connected")
            return ForwardStatus.LINK_UNAVAILABLE
        except LinkWriteError as e:
            logger.error(f"Command '{command}' not delivered: {e}")
            return ForwardStatus.WRITE_FAILED
        return ForwardStatus.SENT
