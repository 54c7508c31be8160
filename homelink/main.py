"""
HOMELINK Application Entry Point

Parses command-line arguments, loads configuration, starts the
orchestrator and the HTTP API, and closes the controller link on
shutdown.

Usage:
    homelink                              # Run with default config
    homelink --config /path/to/config.yaml
    homelink --serial-port /dev/rfcomm0   # Skip discovery
    homelink --list-ports                 # Show serial ports and exit
    homelink --dry-run                    # Validate config without starting

Entry Points:
    - CLI: `homelink` command (via pyproject.toml)
    - Direct: `python -m homelink.main`
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from typing import TYPE_CHECKING

from aiohttp import web

from homelink import __version__
from homelink.config import HomeLinkConfig, load_config
from homelink.exceptions import ConfigurationError, HomeLinkError
from homelink.logging_config import get_logger, setup_logging
from homelink.orchestrator import Orchestrator
from homelink.server import create_app
from services.link import list_endpoints

if TYPE_CHECKING:
    from types import FrameType

__all__ = ["main", "async_main", "create_parser"]

logger = get_logger(__name__)


# =============================================================================
# Argument Parser
# =============================================================================


def create_parser() -> argparse.ArgumentParser:
    """Create command-line argument parser."""
    parser = argparse.ArgumentParser(
        prog="homelink",
        description="HOMELINK voice-controlled device relay",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    # Configuration
    parser.add_argument(
        "-c",
        "--config",
        type=str,
        metavar="PATH",
        help="Path to configuration file (default: auto-discover)",
    )

    # Logging
    parser.add_argument(
        "-l",
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Set logging level (overrides config file)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        metavar="PATH",
        help="Path to log file (default: stdout only)",
    )

    # Server
    parser.add_argument("--host", type=str, help="Bind address for the HTTP API")
    parser.add_argument("--port", type=int, help="Port for the HTTP API")

    # Link
    parser.add_argument(
        "--serial-port",
        type=str,
        metavar="PATH",
        help="Open this serial port directly instead of running discovery",
    )
    parser.add_argument(
        "--no-link",
        action="store_true",
        help="Start without connecting to the controller",
    )

    # Operation modes
    parser.add_argument(
        "--list-ports",
        action="store_true",
        help="List serial ports and exit",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate configuration and exit without starting services",
    )

    return parser


# =============================================================================
# Signal Handling
# =============================================================================


class GracefulShutdown:
    """Turns SIGINT/SIGTERM into an asyncio event that stops the relay.

    The first signal lets async_main close the HTTP site and the controller
    link. A second signal exits immediately.
    """

    SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(self) -> None:
        self._requested = False
        self._event: asyncio.Event | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._previous: dict[int, signal.Handlers] = {}

    @property
    def shutdown_requested(self) -> bool:
        return self._requested

    def install_handlers(self) -> None:
        for sig in self.SIGNALS:
            self._previous[sig] = signal.signal(sig, self._handle_signal)
        logger.debug("Shutdown handlers installed for SIGINT/SIGTERM")

    def restore_handlers(self) -> None:
        while self._previous:
            sig, handler = self._previous.popitem()
            signal.signal(sig, handler)

    def _handle_signal(self, signum: int, frame: FrameType | None) -> None:
        signal_name = signal.Signals(signum).name
        if self._requested:
            logger.warning(f"Received {signal_name} again - forcing immediate exit")
            sys.exit(1)

        logger.info(f"Received {signal_name} - shutting down server...")
        self._requested = True
        if self._event is not None and self._loop is not None:
            # Wake the loop even while it is blocked in select()
            self._loop.call_soon_threadsafe(self._event.set)

    def get_shutdown_event(self) -> asyncio.Event:
        """Event set on the first signal. Must be called inside the loop."""
        if self._event is None:
            self._event = asyncio.Event()
            self._loop = asyncio.get_running_loop()
        return self._event


# =============================================================================
# Main Entry Points
# =============================================================================


def apply_overrides(config: HomeLinkConfig, args: argparse.Namespace) -> HomeLinkConfig:
    """Apply command-line overrides to a loaded configuration."""
    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port
    if args.no_link:
        config.serial.auto_connect = False
    return config


async def list_ports_main() -> int:
    """Print enumerated serial ports."""
    endpoints = await list_endpoints()
    if not endpoints:
        print("No serial ports found.")
        return 1
    for endpoint in endpoints:
        details = ", ".join(filter(None, [endpoint.manufacturer, endpoint.friendly_name]))
        print(f"  {endpoint.path}" + (f"  ({details})" if details else ""))
    return 0


async def async_main(
    args: argparse.Namespace,
    config: HomeLinkConfig,
    shutdown: GracefulShutdown,
) -> int:
    """Run the relay until a shutdown signal arrives.

    Returns:
        Exit code (0 for success)
    """
    shutdown_event = shutdown.get_shutdown_event()
    orchestrator = Orchestrator(config)
    runner = web.AppRunner(create_app(orchestrator))

    try:
        if args.serial_port and not args.no_link:
            await orchestrator.start(connect=False)
            await orchestrator.connect_link(args.serial_port)
        else:
            await orchestrator.start()

        await runner.setup()
        site = web.TCPSite(runner, config.server.host, config.server.port)
        await site.start()

        logger.info("HOMELINK server started")
        logger.info(f"API available at http://{config.server.host}:{config.server.port}/api")
        await shutdown_event.wait()
        return 0
    except OSError as e:
        logger.error(f"Cannot start HTTP server: {e}")
        return 1
    finally:
        await runner.cleanup()
        await orchestrator.shutdown()


def main() -> int:
    """Main entry point for the HOMELINK application.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    parser = create_parser()
    args = parser.parse_args()

    setup_logging(log_level=args.log_level or "INFO", log_file=args.log_file)
    logger.info(f"HOMELINK v{__version__} starting...")

    if args.list_ports:
        return asyncio.run(list_ports_main())

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    # Command-line logging options override the config file
    setup_logging(
        log_level=args.log_level or config.log_level,
        log_file=args.log_file or config.log_file,
    )

    config = apply_overrides(config, args)

    if args.dry_run:
        logger.info("Dry run mode - configuration valid, exiting")
        print("Configuration is valid")
        return 0

    shutdown = GracefulShutdown()
    shutdown.install_handlers()

    try:
        return asyncio.run(async_main(args, config, shutdown))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except HomeLinkError as e:
        logger.error(f"HOMELINK error: {e}")
        return 1
    finally:
        shutdown.restore_handlers()
        logger.info("HOMELINK shutdown complete")


if __name__ == "__main__":
    sys.exit(main())
