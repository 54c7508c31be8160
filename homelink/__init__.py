"""
HOMELINK - Voice-Controlled Device Relay

Bridges a set of named on/off devices to a browser UI. Requests arrive over
HTTP; device commands leave as text lines over a single serial link to the
controller that switches the hardware. Raw voice commands can be gated on a
lightweight voice-signature match.

Architecture:
    - homelink: configuration, logging, orchestration, HTTP API, CLI
    - services.link: serial discovery and the controller link
    - services.devices: device registry and command relay
    - services.voice_auth: signature extraction, enrollment, matching
"""

__version__ = "0.1.0"
__license__ = "CC BY-NC-SA 4.0"

# Version tuple for programmatic comparison
VERSION_INFO = (0, 1, 0)

# Core exceptions (import base class for convenience)
from homelink.exceptions import HomeLinkError

# Orchestrator is imported from homelink.orchestrator directly; importing it
# here would create a cycle with the services packages.
