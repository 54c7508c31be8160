"""
Serial endpoint discovery for the controller link.

Enumerates the serial ports visible to the host and picks the one most
likely to be the device controller. Selection is a priority cascade:

    1. The explicitly configured port, when present
    2. A port whose manufacturer or friendly name mentions a controller
       keyword, or whose path contains a known serial-naming fragment
    3. The first enumerated port

An empty enumeration is a valid outcome; the relay then runs link-less.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from serial.tools import list_ports

from homelink.exceptions import DiscoveryEmptyError

logger = logging.getLogger(__name__)

DEFAULT_CONTROLLER_KEYWORDS = ("arduino",)
DEFAULT_PATH_FRAGMENTS = ("usbserial", "com")


@dataclass(frozen=True)
class LinkEndpoint:
    """A serial endpoint produced by a single enumeration."""

    path: str
    manufacturer: Optional[str] = None
    friendly_name: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "path": self.path,
            "manufacturer": self.manufacturer,
            "friendlyName": self.friendly_name,
        }


def _contains(value: Optional[str], keywords: Sequence[str]) -> bool:
    if not value:
        return False
    lowered = value.lower()
    return any(keyword.lower() in lowered for keyword in keywords)


def select_endpoint(
    preferred_path: Optional[str],
    endpoints: Sequence[LinkEndpoint],
    controller_keywords: Sequence[str] = DEFAULT_CONTROLLER_KEYWORDS,
    path_fragments: Sequence[str] = DEFAULT_PATH_FRAGMENTS,
) -> Optional[str]:
    """
    Choose the endpoint path to open.

    Args:
        preferred_path: Explicitly configured port path
        endpoints: Enumerated endpoints, in enumeration order
        controller_keywords: Substrings identifying the controller by
            manufacturer or friendly name (case-insensitive)
        path_fragments: Substrings identifying a serial device by path
            (case-insensitive)

    Returns:
        Selected path, or None if there are no endpoints
    """
    if not endpoints:
        return None

    for endpoint in endpoints:
        if preferred_path is not None and endpoint.path == preferred_path:
            return endpoint.path

    for endpoint in endpoints:
        if (
            _contains(endpoint.manufacturer, controller_keywords)
            or _contains(endpoint.friendly_name, controller_keywords)
            or _contains(endpoint.path, path_fragments)
        ):
            return endpoint.path

    return endpoints[0].path


def enumerate_endpoints() -> list[LinkEndpoint]:
    """Enumerate serial ports synchronously via pyserial."""
    endpoints = []
    for port in list_ports.comports():
        description = port.description if port.description not in (None, "n/a") else None
        endpoints.append(
            LinkEndpoint(
                path=port.device,
                manufacturer=port.manufacturer,
                friendly_name=description,
            )
        )
    return endpoints


async def list_endpoints() -> list[LinkEndpoint]:
    """
    Enumerate serial ports without blocking the event loop.

    Enumeration failures are logged and reported as an empty list.

    Returns:
        Endpoints in enumeration order
    """
    loop = asyncio.get_running_loop()
    try:
        endpoints = await loop.run_in_executor(None, enumerate_endpoints)
    except Exception as e:
        logger.error(f"Error listing serial ports: {e}")
        return []

    if not endpoints:
        logger.warning("No serial ports found")
    else:
        logger.debug(f"Found serial ports: {[e.path for e in endpoints]}")
    return endpoints


async def find_controller_port(
    preferred_path: Optional[str] = None,
    controller_keywords: Sequence[str] = DEFAULT_CONTROLLER_KEYWORDS,
    path_fragments: Sequence[str] = DEFAULT_PATH_FRAGMENTS,
) -> str:
    """
    Enumerate ports and select the controller port.

    Raises:
        DiscoveryEmptyError: If no serial endpoint is available
    """
    endpoints = await list_endpoints()
    path = select_endpoint(preferred_path, endpoints, controller_keywords, path_fragments)
    if path is None:
        raise DiscoveryEmptyError("No serial endpoints discovered")
    if preferred_path is not None and path != preferred_path:
        logger.info(f"Preferred port {preferred_path} not found, selected {path}")
    return path
