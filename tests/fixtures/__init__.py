"""
HOMELINK Test Fixtures Package.

Provides stand-ins for the controller hardware so the relay can be tested
without a serial device attached.

Available fixtures:
- MockSerial: Simulates an open serial handle (pyserial Serial)
- MockSerialFactory: Replaces serial.Serial and records opened handles

Usage:
    from tests.fixtures import MockSerialFactory

    async def test_write():
        factory = MockSerialFactory()
        link = LinkManager(serial_factory=factory)
        await link.open("/dev/rfcomm0")
        await link.write("light on")
        assert factory.last.lines == ["light on\\n"]
"""

from tests.fixtures.mock_serial import MockSerial, MockSerialFactory

__all__ = [
    "MockSerial",
    "MockSerialFactory",
]
