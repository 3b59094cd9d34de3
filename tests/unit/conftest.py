"""
Unit Test Fixtures.

Fixtures for unit tests - all external dependencies are mocked.
Unit tests should be fast and isolated, never touching the network.
"""

import asyncio
import asyncio.coroutines
import inspect
from unittest.mock import MagicMock

import pytest

from notesync.gateways.base import AuthGateway, NotesGateway
from notesync.models.base import GatewayResult
from notesync.stores.channel import NotificationChannel


# =============================================================================
# Gateway Mock Fixtures
# =============================================================================


@pytest.fixture
def mock_notes_gateway() -> MagicMock:
    """
    Mock notes gateway.

    Every coroutine method is an AsyncMock (spec'd from NotesGateway);
    metadata calls succeed with empty values by default.

    Usage:
        def test_load(mock_notes_gateway, make_page):
            mock_notes_gateway.fetch_page.return_value = GatewayResult.ok(make_page([...]))
    """
    gateway = MagicMock(spec=NotesGateway)
    gateway.list_categories.return_value = GatewayResult.ok([])
    gateway.list_tags.return_value = GatewayResult.ok([])
    gateway.get_statistics.return_value = GatewayResult.ok({})
    return gateway


@pytest.fixture
def mock_auth_gateway() -> MagicMock:
    """
    Mock auth gateway with real notification channels.

    Starts without an identity; set get_current_identity / is_session_valid
    return values to simulate a restored session.
    """
    gateway = MagicMock(spec=AuthGateway)
    gateway.identity_changes = NotificationChannel("identity")
    gateway.validity_changes = NotificationChannel("session-validity")
    gateway.get_current_identity.return_value = None
    gateway.is_session_valid.return_value = False
    return gateway


# =============================================================================
# Concurrency Helpers
# =============================================================================


class Gate:
    """
    Holds a gateway call open until released.

    Usage:
        gate = Gate(GatewayResult.ok(note))
        mock_notes_gateway.toggle_completion.side_effect = gate
        task = asyncio.create_task(store.toggle_note_completion("1"))
        await gate.entered.wait()
        ...
        gate.release()
        await task
    """

    def __init__(self, result: GatewayResult) -> None:
        self.result = result
        self.entered = asyncio.Event()
        self._released = asyncio.Event()
        self.calls: list[tuple] = []
        # Let AsyncMock recognise the instance as a coroutine function so it
        # awaits the call when used as a side_effect.
        if hasattr(inspect, "markcoroutinefunction"):
            inspect.markcoroutinefunction(self)
        else:
            self._is_coroutine = asyncio.coroutines._is_coroutine

    async def __call__(self, *args: object) -> GatewayResult:
        self.calls.append(args)
        self.entered.set()
        await self._released.wait()
        return self.result

    def release(self) -> None:
        self._released.set()


@pytest.fixture
def gate():
    """Factory for Gate instances."""
    return Gate


@pytest.fixture
def recorder():
    """
    Factory for a channel subscriber that records every published value.

    Usage:
        seen = recorder(store.changes)
        ...
        assert seen[-1].phase == LoadPhase.LOADED
    """
    def _subscribe(channel: NotificationChannel) -> list:
        seen: list = []
        channel.subscribe(seen.append)
        return seen

    return _subscribe
