"""
HOMELINK Custom Exceptions

Provides the domain-specific exception hierarchy for the HOMELINK device
relay. Each exception carries a human-readable message, an optional details
dict, and the HTTP status code the request layer reports it with.

Exception Hierarchy:
    HomeLinkError (base)
    ├── ConfigurationError
    ├── LinkError
    │   ├── LinkUnavailableError
    │   ├── LinkWriteError
    │   └── DiscoveryEmptyError
    ├── DeviceError
    │   ├── DeviceNotFoundError
    │   └── InvalidStateError
    ├── CommandError
    │   ├── EmptyCommandError
    │   └── InvalidCommandError
    └── VoiceAuthError
        ├── VoiceAuthenticationError
        └── EnrollmentError
"""

from typing import Any, Optional


class HomeLinkError(Exception):
    """Base exception for all HOMELINK errors.

    Attributes:
        message: Human-readable error description
        details: Optional dict with additional error context
        status_code: HTTP status used when the error reaches a client
    """

    status_code = 500

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(HomeLinkError):
    """Error in configuration file or settings.

    Raised when configuration validation fails, the requested file is
    missing, or the file cannot be parsed.
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_file: Optional[str] = None,
    ) -> None:
        details = {}
        if config_key:
            details["config_key"] = config_key
        if config_file:
            details["config_file"] = config_file
        super().__init__(message, details)
        self.config_key = config_key
        self.config_file = config_file


# =============================================================================
# Link Errors
# =============================================================================

class LinkError(HomeLinkError):
    """Base class for controller link errors.

    Link errors are never fatal to request handling: the relay and the
    orchestrator log them and continue without the hardware link.
    """

    status_code = 503

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs
        if path:
            details["path"] = path
        super().__init__(message, details)
        self.path = path


class LinkUnavailableError(LinkError):
    """No open link to the controller; the command was not forwarded."""
    pass


class LinkWriteError(LinkError):
    """Writing to an open link failed.

    Reported once to the caller. The link state is left untouched; only an
    observed error or close event changes it.
    """

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        line: Optional[str] = None,
    ) -> None:
        super().__init__(message, path)
        if line:
            self.details["line"] = line
        self.line = line


class DiscoveryEmptyError(LinkError):
    """Port enumeration produced no usable serial endpoint."""
    pass


# =============================================================================
# Device Errors
# =============================================================================

class DeviceError(HomeLinkError):
    """Base class for device validation errors."""

    def __init__(
        self,
        message: str,
        device_id: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs
        if device_id:
            details["device_id"] = device_id
        super().__init__(message, details)
        self.device_id = device_id


class DeviceNotFoundError(DeviceError):
    """Device id is not present in the registry.

    Unknown ids are rejected, never auto-created.
    """

    status_code = 404


class InvalidStateError(DeviceError):
    """Requested device state is not exactly 0 (off) or 1 (on)."""

    status_code = 400

    def __init__(
        self,
        message: str,
        device_id: Optional[str] = None,
        state: Any = None,
    ) -> None:
        super().__init__(message, device_id)
        self.details["state"] = repr(state)
        self.state = state


# =============================================================================
# Command Errors
# =============================================================================

class CommandError(HomeLinkError):
    """Base class for raw command errors."""

    status_code = 400


class EmptyCommandError(CommandError):
    """Raw command is empty after trimming."""
    pass


class InvalidCommandError(CommandError):
    """Raw command or request payload is malformed.

    Raised when a command is not text or a request body cannot be parsed.
    """

    def __init__(
        self,
        message: str,
        command: Optional[str] = None,
        parameter: Optional[str] = None,
    ) -> None:
        details: dict[str, Any] = {}
        if command:
            details["command"] = command
        if parameter:
            details["parameter"] = parameter
        super().__init__(message, details)
        self.command = command
        self.parameter = parameter


# =============================================================================
# Voice Authentication Errors
# =============================================================================

class VoiceAuthError(HomeLinkError):
    """Base class for voice signature errors."""
    pass


class VoiceAuthenticationError(VoiceAuthError):
    """Voice signature was rejected, or no signatures are enrolled."""

    status_code = 403


class EnrollmentError(VoiceAuthError):
    """Enrollment request does not fit the current session state."""

    status_code = 409

    def __init__(
        self,
        message: str,
        session_state: Optional[str] = None,
    ) -> None:
        details: dict[str, Any] = {}
        if session_state:
            details["session_state"] = session_state
        super().__init__(message, details)
        self.session_state = session_state
