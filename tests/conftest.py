"""
Pytest Fixtures for HOMELINK Testing.

Shared fixtures for the unit tests. Nothing here touches real serial
ports or the user's voice store.
"""

import asyncio
from typing import AsyncGenerator

import pytest
import pytest_asyncio

from homelink.config import HomeLinkConfig
from homelink.orchestrator import Orchestrator
from services.link import LinkEvent, LinkManager
from services.voice_auth import MemoryStore
from tests.fixtures import MockSerialFactory


# =============================================================================
# Link Fixtures
# =============================================================================

@pytest.fixture
def serial_factory() -> MockSerialFactory:
    """Provide a factory that opens mock serial handles."""
    return MockSerialFactory()


@pytest_asyncio.fixture
async def link(serial_factory) -> AsyncGenerator[LinkManager, None]:
    """
    Provide an unopened LinkManager backed by mock serial handles.

    Closed automatically so no reader task outlives the test.
    """
    manager = LinkManager(read_timeout=0.05, serial_factory=serial_factory)
    yield manager
    await manager.close()


@pytest.fixture
def link_events():
    """Collect link events; use ``wait_for(kind)`` to await a specific one."""

    class EventRecorder:
        def __init__(self):
            self.events: list[LinkEvent] = []
            self._changed = asyncio.Event()

        def __call__(self, event: LinkEvent) -> None:
            self.events.append(event)
            self._changed.set()

        @property
        def kinds(self):
            return [e.kind for e in self.events]

        async def wait_for(self, kind, timeout: float = 2.0) -> LinkEvent:
            async def _wait():
                while True:
                    for event in self.events:
                        if event.kind == kind:
                            return event
                    self._changed.clear()
                    await self._changed.wait()

            return await asyncio.wait_for(_wait(), timeout)

    return EventRecorder()


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture
def config(tmp_path) -> HomeLinkConfig:
    """Default configuration with auto-connect off and a temporary store."""
    cfg = HomeLinkConfig()
    cfg.serial.auto_connect = False
    cfg.voice.store_path = tmp_path / "voice_store.json"
    return cfg


@pytest_asyncio.fixture
async def orchestrator(config, serial_factory) -> AsyncGenerator[Orchestrator, None]:
    """Provide a started orchestrator with a mock link and in-memory store."""
    orch = Orchestrator(
        config,
        link=LinkManager(read_timeout=0.05, serial_factory=serial_factory),
        store=MemoryStore(),
    )
    await orch.start()
    yield orch
    await orch.shutdown()
