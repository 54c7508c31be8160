"""
HOMELINK Unit Tests - Link Discovery

Unit tests for services/link/discovery.py.
Port enumeration is patched; no serial hardware is required.

Run:
    pytest tests/unit/test_link_discovery.py -v
"""

import logging

import pytest
from unittest.mock import Mock, patch

from homelink.exceptions import DiscoveryEmptyError
from services.link.discovery import (
    LinkEndpoint,
    enumerate_endpoints,
    find_controller_port,
    list_endpoints,
    select_endpoint,
)


def _port(device, manufacturer=None, description="n/a"):
    port = Mock()
    port.device = device
    port.manufacturer = manufacturer
    port.description = description
    return port


# =============================================================================
# Endpoint Selection
# =============================================================================

class TestSelectEndpoint:
    """Unit tests for the selection cascade."""

    def test_empty_list_selects_nothing(self):
        assert select_endpoint("COM3", []) is None
        assert select_endpoint(None, []) is None

    def test_preferred_path_wins(self):
        endpoints = [
            LinkEndpoint("/dev/ttyACM0", manufacturer="Arduino LLC"),
            LinkEndpoint("COM3"),
        ]
        assert select_endpoint("COM3", endpoints) == "COM3"

    def test_keyword_match_when_preferred_missing(self):
        """Manufacturer keyword beats enumeration order."""
        endpoints = [
            LinkEndpoint("/dev/ttyS0"),
            LinkEndpoint("/dev/ttyACM0", manufacturer="Arduino (www.arduino.cc)"),
        ]
        assert select_endpoint("COM3", endpoints) == "/dev/ttyACM0"

    def test_keyword_match_is_case_insensitive(self):
        endpoints = [
            LinkEndpoint("/dev/ttyS0"),
            LinkEndpoint("/dev/ttyS1", friendly_name="ARDUINO Uno"),
        ]
        assert select_endpoint(None, endpoints) == "/dev/ttyS1"

    def test_path_fragment_match(self):
        endpoints = [
            LinkEndpoint("/dev/ttyS0"),
            LinkEndpoint("/dev/cu.usbserial-1410"),
        ]
        assert select_endpoint("COM3", endpoints) == "/dev/cu.usbserial-1410"

    def test_first_endpoint_fallback(self):
        endpoints = [LinkEndpoint("/dev/ttyS0"), LinkEndpoint("/dev/ttyS1")]
        assert select_endpoint("COM3", endpoints) == "/dev/ttyS0"

    def test_custom_keywords(self):
        endpoints = [
            LinkEndpoint("/dev/ttyS0", manufacturer="Arduino"),
            LinkEndpoint("/dev/rfcomm0", friendly_name="HC-05 Bluetooth"),
        ]
        selected = select_endpoint(
            None, endpoints, controller_keywords=("hc-05",), path_fragments=()
        )
        assert selected == "/dev/rfcomm0"

    def test_no_preferred_path_uses_cascade(self):
        endpoints = [LinkEndpoint("/dev/ttyS0"), LinkEndpoint("COM7")]
        assert select_endpoint(None, endpoints) == "COM7"


class TestLinkEndpoint:
    """Unit tests for LinkEndpoint."""

    def test_to_dict(self):
        endpoint = LinkEndpoint("COM3", manufacturer="Arduino", friendly_name="Uno")
        assert endpoint.to_dict() == {
            "path": "COM3",
            "manufacturer": "Arduino",
            "friendlyName": "Uno",
        }


# =============================================================================
# Enumeration
# =============================================================================

class TestEnumeration:
    """Unit tests for pyserial-backed enumeration."""

    def test_enumerate_maps_port_info(self):
        ports = [
            _port("/dev/ttyACM0", "Arduino LLC", "Arduino Uno"),
            _port("/dev/ttyS0"),
        ]
        with patch("services.link.discovery.list_ports.comports", return_value=ports):
            endpoints = enumerate_endpoints()

        assert endpoints == [
            LinkEndpoint("/dev/ttyACM0", "Arduino LLC", "Arduino Uno"),
            LinkEndpoint("/dev/ttyS0", None, None),
        ]

    @pytest.mark.asyncio
    async def test_list_endpoints_absorbs_errors(self):
        with patch(
            "services.link.discovery.list_ports.comports",
            side_effect=OSError("permission denied"),
        ):
            assert await list_endpoints() == []

    @pytest.mark.asyncio
    async def test_find_controller_port(self):
        ports = [_port("/dev/ttyS0"), _port("/dev/ttyACM0", "Arduino LLC")]
        with patch("services.link.discovery.list_ports.comports", return_value=ports):
            assert await find_controller_port("COM3") == "/dev/ttyACM0"

    @pytest.mark.asyncio
    async def test_find_controller_port_raises_when_empty(self):
        with patch("services.link.discovery.list_ports.comports", return_value=[]):
            with pytest.raises(DiscoveryEmptyError):
                await find_controller_port("COM3")

    @pytest.mark.asyncio
    async def test_no_preferred_port_logs_no_fallback(self, caplog):
        caplog.set_level(logging.INFO, logger="services.link.discovery")
        with patch("services.link.discovery.list_ports.comports", return_value=[_port("COM7")]):
            assert await find_controller_port(None) == "COM7"
        assert "Preferred port" not in caplog.text

    @pytest.mark.asyncio
    async def test_missing_preferred_port_is_logged(self, caplog):
        caplog.set_level(logging.INFO, logger="services.link.discovery")
        with patch("services.link.discovery.list_ports.comports", return_value=[_port("COM7")]):
            await find_controller_port("COM3")
        assert "Preferred port COM3 not found, selected COM7" in caplog.text
