"""
Root Pytest Fixtures.

Shared fixtures available to all test types: factories for the wire
models, and config cache isolation.
"""

from collections.abc import Callable
from datetime import timedelta
from typing import Any

import pytest

from notesync.core.config import get_app_config, get_settings
from notesync.core.utils import utc_now
from notesync.models.base import Page
from notesync.models.note import Note
from notesync.models.user import User


# =============================================================================
# Configuration
# =============================================================================


@pytest.fixture(autouse=True)
def _clear_config_cache():
    """Clear lru_cache between tests so each test gets a fresh load."""
    get_settings.cache_clear()
    get_app_config.cache_clear()
    yield
    get_settings.cache_clear()
    get_app_config.cache_clear()


# =============================================================================
# Model Factories
# =============================================================================


@pytest.fixture
def make_note() -> Callable[..., Note]:
    """
    Factory for persisted notes.

    Usage:
        def test_something(make_note):
            note = make_note("1", is_completed=True)
    """
    def _make(note_id: str | None = "1", **overrides: Any) -> Note:
        created = utc_now() - timedelta(days=1)
        data: dict[str, Any] = {
            "id": note_id,
            "title": f"Note {note_id}",
            "content": f"Content of note {note_id}",
            "created_at": created,
            "updated_at": created + timedelta(hours=1),
        }
        data.update(overrides)
        return Note(**data)

    return _make


@pytest.fixture
def make_page() -> Callable[..., Page]:
    """
    Factory for note pages.

    Usage:
        page = make_page([note1, note2], page=1, total_count=2)
    """
    def _make(
        items: list[Note],
        page: int = 1,
        page_size: int = 20,
        total_count: int | None = None,
        has_next: bool | None = None,
    ) -> Page:
        total = total_count if total_count is not None else len(items)
        total_pages = max(1, -(-total // page_size)) if total else 0
        return Page(
            items=items,
            total_count=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages,
            has_next=has_next if has_next is not None else page < total_pages,
            has_previous=page > 1,
        )

    return _make


@pytest.fixture
def user() -> User:
    """A signed-in user."""
    now = utc_now()
    return User(
        id="user-1",
        email="jane@example.com",
        username="jane",
        first_name="Jane",
        last_name="Doe",
        created_at=now,
        updated_at=now,
    )
