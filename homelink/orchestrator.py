"""
HOMELINK Orchestrator

Owns every piece of runtime state for one relay process: the device
registry, the controller link, the command relay, the voice matcher and the
active enrollment session. Request handlers receive the orchestrator and
call into it; nothing is kept in module-level globals.

All mutation happens on the event loop, one request handler at a time
between awaits. Link I/O runs in executor threads, so a slow port never
blocks other requests.
"""

from __future__ import annotations

import time
from typing import Any, Optional

from homelink.config import HomeLinkConfig
from homelink.exceptions import DiscoveryEmptyError, EnrollmentError
from homelink.logging_config import get_logger
from services.devices import CommandRelay, DeviceRegistry, RelayResult
from services.link import (
    LinkEndpoint,
    LinkEvent,
    LinkEventType,
    LinkManager,
    LinkStatus,
    find_controller_port,
    list_endpoints,
)
from services.voice_auth import (
    EnrollmentAttempt,
    EnrollmentSession,
    EnrollmentState,
    JsonFileStore,
    KeyValueStore,
    VoiceSignature,
    VoiceSignatureMatcher,
)

__all__ = ["Orchestrator", "create_orchestrator"]

logger = get_logger(__name__)


class Orchestrator:
    """
    Central context object for the relay.

    Attributes:
        config: Loaded configuration
        registry: Device catalog
        link: Controller link manager
        matcher: Voice signature matcher
        relay: Command relay wired to the three above
    """

    def __init__(
        self,
        config: HomeLinkConfig,
        link: Optional[LinkManager] = None,
        store: Optional[KeyValueStore] = None,
    ):
        """
        Build the runtime graph from configuration.

        Args:
            config: Loaded configuration
            link: Link manager to use (default: a new serial LinkManager)
            store: Signature store (default: JSON file at voice.store_path)
        """
        self.config = config
        self.registry = DeviceRegistry.from_config(config.devices)
        self.link = link or LinkManager(read_timeout=config.serial.read_timeout)
        self.matcher = VoiceSignatureMatcher(
            store if store is not None else JsonFileStore(config.voice.store_path),
            threshold=config.voice.threshold,
            min_signatures=config.voice.min_signatures,
        )
        self.relay = CommandRelay(
            self.registry,
            self.link,
            authenticator=self.matcher,
            require_auth=config.voice.required,
        )
        self.enrollment: Optional[EnrollmentSession] = None
        self.started_at: Optional[float] = None

        self.link.register_callback(self._on_link_event)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self, connect: Optional[bool] = None) -> None:
        """
        Load persisted signatures and bring up the link.

        Args:
            connect: Run discovery and open the link (default:
                serial.auto_connect)
        """
        self.started_at = time.time()
        self.matcher.load()

        if connect is None:
            connect = self.config.serial.auto_connect
        if connect:
            await self.connect_link()
        else:
            logger.info("Link auto-connect disabled, running without controller")

    async def shutdown(self) -> None:
        """Close the link. Safe to call more than once."""
        if self.enrollment is not None:
            self.enrollment.abandon()
            self.enrollment = None
        await self.link.close()
        logger.info("Orchestrator stopped")

    # =========================================================================
    # Link
    # =========================================================================

    async def connect_link(self, path: Optional[str] = None) -> LinkStatus:
        """
        Run a fresh discovery and open cycle.

        Any open connection is closed first. Failures leave the relay running
        without a link; they are logged, never raised.

        Args:
            path: Open this port directly instead of running discovery

        Returns:
            Link status after the attempt
        """
        serial_cfg = self.config.serial
        await self.link.close()

        if path is None:
            try:
                path = await find_controller_port(
                    serial_cfg.preferred_port,
                    serial_cfg.controller_keywords,
                    serial_cfg.path_fragments,
                )
            except DiscoveryEmptyError:
                logger.warning("Controller not found. Running without controller connection.")
                return self.link.status()

        await self.link.open(path, serial_cfg.baud_rate)
        return self.link.status()

    async def list_ports(self) -> list[LinkEndpoint]:
        """Enumerate serial endpoints."""
        return await list_endpoints()

    def link_status(self) -> LinkStatus:
        return self.link.status()

    def _on_link_event(self, event: LinkEvent) -> None:
        if event.kind == LinkEventType.ERROR:
            logger.warning(f"Controller link unavailable: {event.error}")
        elif event.kind == LinkEventType.DATA:
            logger.debug(f"Controller line on {event.path}: {event.data}")

    # =========================================================================
    # Devices and commands
    # =========================================================================

    def list_devices(self) -> dict[str, Any]:
        """Devices plus whether the link is open."""
        return {
            "devices": [d.to_dict() for d in self.registry.list_all()],
            "linkOpen": self.link.is_available(),
        }

    async def set_device_state(self, device_id: str, state: Any) -> RelayResult:
        return await self.relay.apply_device_state(device_id, state)

    async def send_command(
        self,
        text: Any,
        signature: Optional[VoiceSignature] = None,
    ) -> RelayResult:
        return await self.relay.apply_raw_command(text, signature)

    # =========================================================================
    # Voice enrollment
    # =========================================================================

    def start_enrollment(self) -> EnrollmentSession:
        """
        Begin a new enrollment session.

        Previously enrolled signatures are dropped from memory, and the
        trained flag cleared, until the new session completes. Stored
        signatures stay on disk until then.
        """
        if self.enrollment is not None:
            self.enrollment.abandon()

        self.matcher.reset()
        self.enrollment = EnrollmentSession(
            self.config.voice.training_phrases,
            min_signatures=self.config.voice.min_signatures,
        )
        logger.info("Starting voice training")
        return self.enrollment

    def submit_enrollment_attempt(
        self,
        transcript: str,
        confidence: float,
    ) -> EnrollmentAttempt:
        """
        Forward one attempt to the active session.

        Raises:
            EnrollmentError: If no session is active
        """
        session = self.enrollment
        if session is None:
            raise EnrollmentError("No voice training in progress")

        attempt = session.submit_attempt(transcript, confidence)
        if session.is_finished:
            if session.state == EnrollmentState.COMPLETED:
                self.matcher.complete_enrollment(session.collected)
            self.enrollment = None
        return attempt

    def abandon_enrollment(self) -> bool:
        """Abandon the active session. Returns False if none was active."""
        if self.enrollment is None:
            return False
        self.enrollment.abandon()
        self.enrollment = None
        return True

    def forget_voice(self) -> None:
        """Delete enrolled signatures everywhere."""
        self.abandon_enrollment()
        self.matcher.forget()

    def voice_status(self) -> dict[str, Any]:
        return {
            "trained": self.matcher.is_trained,
            "required": self.relay.require_auth,
            "signatures": len(self.matcher.signatures),
            "enrollment": self.enrollment.to_dict() if self.enrollment else None,
        }


def create_orchestrator(config: Optional[HomeLinkConfig] = None) -> Orchestrator:
    """Create an orchestrator from config (defaults when omitted)."""
    return Orchestrator(config or HomeLinkConfig())
