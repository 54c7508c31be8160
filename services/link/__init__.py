"""
Controller link services.

Serial endpoint discovery and the single byte-stream connection to the
device controller.
"""

from .discovery import (
    LinkEndpoint,
    find_controller_port,
    list_endpoints,
    select_endpoint,
)
from .link_manager import (
    LinkEvent,
    LinkEventType,
    LinkManager,
    LinkState,
    LinkStatus,
)

__all__ = [
    "LinkEndpoint",
    "LinkEvent",
    "LinkEventType",
    "LinkManager",
    "LinkState",
    "LinkStatus",
    "find_controller_port",
    "list_endpoints",
    "select_endpoint",
]
