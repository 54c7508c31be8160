"""
Controller link manager.

Owns the single serial connection to the device controller. Opening,
writing and reading run in executor threads so a slow port never stalls
the event loop; link activity is published to registered callbacks as
LinkEvent notifications.

State machine:
    UNINITIALIZED -> CONNECTING -> OPEN -> (CLOSED | ERROR)

ERROR is not terminal for the application: the relay keeps working with the
link treated as absent. Nothing here reconnects on its own; a new open()
(via the orchestrator's re-init) is the only way back to OPEN.
"""

import asyncio
import functools
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional

import serial

from homelink.exceptions import LinkUnavailableError, LinkWriteError

logger = logging.getLogger(__name__)

DEFAULT_BAUD_RATE = 9600
LINE_TERMINATOR = "\n"


class LinkState(Enum):
    """Connection lifecycle states."""

    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    ERROR = "error"


class LinkEventType(Enum):
    """Kinds of link notifications."""

    OPEN = "open"
    DATA = "data"
    ERROR = "error"
    CLOSE = "close"


@dataclass
class LinkEvent:
    """Notification published by the link manager."""

    kind: LinkEventType
    path: Optional[str]
    data: Optional[str] = None  # Line received from the controller
    error: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class LinkStatus:
    """Snapshot of the link for status queries."""

    state: LinkState
    path: Optional[str]
    baud_rate: Optional[int]
    last_error: Optional[str] = None

    @property
    def connected(self) -> bool:
        return self.state == LinkState.OPEN

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "connected": self.connected,
            "path": self.path if self.connected else None,
            "state": self.state.value,
            "baudRate": self.baud_rate,
            "lastError": self.last_error,
        }


LinkCallback = Callable[[LinkEvent], None]


class LinkManager:
    """
    Manages the byte-stream link to the device controller.

    At most one serial handle exists at a time; open() and close() are
    serialized so overlapping calls never leave a stray handle open. Lines
    received from the controller are reported to observers for diagnostics
    only.

    Example:
        >>> link = LinkManager()
        >>> link.register_callback(lambda event: print(event.kind))
        >>> await link.open("/dev/rfcomm0", 9600)
        >>> await link.write("light on")
        >>> await link.close()
    """

    def __init__(
        self,
        read_timeout: float = 1.0,
        serial_factory: Optional[Callable[..., Any]] = None,
    ):
        """
        Initialize link manager.

        Args:
            read_timeout: Serial read timeout in seconds; bounds how long the
                reader thread blocks between checks for shutdown
            serial_factory: Callable returning an open serial handle, called
                with port/baudrate/timeout keywords (default serial.Serial)
        """
        self.read_timeout = read_timeout
        self._serial_factory = serial_factory or serial.Serial
        self._serial = None
        self._state = LinkState.UNINITIALIZED
        self._path: Optional[str] = None
        self._baud_rate: Optional[int] = None
        self._last_error: Optional[str] = None
        self._callbacks: List[LinkCallback] = []
        self._reader_task: Optional[asyncio.Task] = None
        self._write_lock = asyncio.Lock()
        self._lifecycle_lock = asyncio.Lock()

    @property
    def state(self) -> LinkState:
        """Current link state."""
        return self._state

    @property
    def path(self) -> Optional[str]:
        """Path of the current (or last attempted) endpoint."""
        return self._path

    def is_available(self) -> bool:
        """True iff the link is open."""
        return self._state == LinkState.OPEN and self._serial is not None

    def status(self) -> LinkStatus:
        """Return a snapshot of the link state."""
        return LinkStatus(
            state=self._state,
            path=self._path,
            baud_rate=self._baud_rate,
            last_error=self._last_error,
        )

    # =========================================================================
    # Observers
    # =========================================================================

    def register_callback(self, callback: LinkCallback) -> None:
        """Register an observer for link events."""
        self._callbacks.append(callback)
        logger.debug(f"Registered link callback, total: {len(self._callbacks)}")

    def unregister_callback(self, callback: LinkCallback) -> None:
        """Remove a previously registered observer."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)
            logger.debug(f"Unregistered link callback, remaining: {len(self._callbacks)}")

    def _notify(self, event: LinkEvent) -> None:
        for callback in list(self._callbacks):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Link callback error: {e}")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def open(self, path: str, baud_rate: int = DEFAULT_BAUD_RATE) -> bool:
        """
        Open the link and start reading controller lines.

        Any existing connection is closed first. A failed open leaves the
        manager in ERROR with no handle; it is not retried.

        Args:
            path: Serial port path
            baud_rate: Serial communication speed

        Returns:
            True if the link is open
        """
        async with self._lifecycle_lock:
            return await self._open_locked(path, baud_rate)

    async def _open_locked(self, path: str, baud_rate: int) -> bool:
        if self._serial is not None:
            await self._close_locked()

        self._state = LinkState.CONNECTING
        self._path = path
        self._baud_rate = baud_rate
        logger.debug(f"Opening link on {path} at {baud_rate} baud")

        loop = asyncio.get_running_loop()
        try:
            handle = await loop.run_in_executor(
                None,
                functools.partial(
                    self._serial_factory,
                    port=path,
                    baudrate=baud_rate,
                    timeout=self.read_timeout,
                ),
            )
        except Exception as e:
            self._serial = None
            self._state = LinkState.ERROR
            self._last_error = str(e)
            logger.error(f"Link initialization failed on {path}: {e}")
            self._notify(LinkEvent(LinkEventType.ERROR, path, error=str(e)))
            return False

        self._serial = handle
        self._state = LinkState.OPEN
        self._last_error = None
        logger.info(f"Link connected to controller on {path}")
        self._notify(LinkEvent(LinkEventType.OPEN, path))

        self._reader_task = asyncio.create_task(self._read_loop(handle))
        return True

    async def close(self) -> None:
        """
        Close the link gracefully.

        Pending output is flushed on a best-effort basis. Calling this on a
        closed or never-opened manager does nothing.
        """
        async with self._lifecycle_lock:
            await self._close_locked()

    async def _close_locked(self) -> None:
        handle = self._serial
        task = self._reader_task
        if handle is None:
            return

        self._serial = None
        self._reader_task = None
        self._state = LinkState.CLOSED

        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if handle is not None:
            try:
                handle.flush()
                handle.close()
            except Exception as e:
                logger.error(f"Error closing serial port: {e}")

        logger.info(f"Link to {self._path} closed")
        self._notify(LinkEvent(LinkEventType.CLOSE, self._path))

    def _fail(self, handle: Any, error: str) -> None:
        """Move to ERROR and discard the handle after an observed failure."""
        if self._serial is not handle:
            return
        self._serial = None
        self._reader_task = None
        self._state = LinkState.ERROR
        self._last_error = error
        try:
            handle.close()
        except Exception as e:
            logger.debug(f"Ignoring close error on failed link: {e}")
        logger.error(f"Link connection error on {self._path}: {error}")
        self._notify(LinkEvent(LinkEventType.ERROR, self._path, error=error))

    async def _read_loop(self, handle: Any) -> None:
        """Read newline-delimited controller output until the link goes away."""
        loop = asyncio.get_running_loop()
        while self._serial is handle:
            try:
                raw = await loop.run_in_executor(None, handle.readline)
            except Exception as e:
                self._fail(handle, str(e))
                return

            if not raw or self._serial is not handle:
                continue

            line = raw.decode("ascii", errors="replace").strip()
            if line:
                logger.info(f"Controller: {line}")
                self._notify(LinkEvent(LinkEventType.DATA, self._path, data=line))

    # =========================================================================
    # Output
    # =========================================================================

    @staticmethod
    def _write_bytes(handle: Any, data: bytes) -> None:
        handle.write(data)
        handle.flush()

    async def write(self, line: str) -> None:
        """
        Send one line to the controller.

        A single newline terminator is appended. A failed write is reported
        to the caller and leaves the link state unchanged.

        Args:
            line: Wire command without terminator

        Raises:
            LinkUnavailableError: If the link is not open
            LinkWriteError: If the serial write fails
        """
        if not self.is_available():
            raise LinkUnavailableError(
                "Cannot send command, controller not connected", path=self._path
            )

        handle = self._serial
        data = f"{line}{LINE_TERMINATOR}".encode("ascii", errors="replace")
        loop = asyncio.get_running_loop()

        async with self._write_lock:
            try:
                await loop.run_in_executor(None, self._write_bytes, handle, data)
            except Exception as e:
                logger.error(f"Failed to send command '{line}': {e}")
                raise LinkWriteError(
                    f"Failed to send command: {e}", path=self._path, line=line
                ) from e

        logger.info(f"Sent to controller: {line}")
