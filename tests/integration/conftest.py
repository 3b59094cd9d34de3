"""
Integration Test Fixtures.

Fixtures for integration tests - real stores wired to real gateways.
The HTTP variants talk to an in-process MockTransport instead of the
notes service, so nothing leaves the test process.
"""

from collections.abc import AsyncGenerator

import pytest_asyncio

from notesync.app import NotesApp, create_app


@pytest_asyncio.fixture
async def demo_app() -> AsyncGenerator[NotesApp, None]:
    """
    Started application on the in-memory gateways.

    Usage:
        async def test_login(demo_app: NotesApp):
            assert await demo_app.session.login("jane@example.com", "secret1")
    """
    app = create_app(demo_mode=True)
    await app.start()
    yield app
    await app.close()
