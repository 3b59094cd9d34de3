"""
Application Composition Root.

Builds the gateways and stores from configuration and drives their
lifecycle. Gateways are injected into the stores here and nowhere else.

Usage:
    app = create_app()
    await app.start()
    ...
    await app.close()
"""

from notesync.core.config import get_app_config
from notesync.core.logging import get_logger
from notesync.gateways.base import AuthGateway, CredentialStore, NotesGateway
from notesync.gateways.client import APIClient
from notesync.gateways.http_auth import HttpAuthGateway
from notesync.gateways.http_notes import HttpNotesGateway
from notesync.gateways.memory import (
    InMemoryAuthGateway,
    InMemoryNotesGateway,
    MemoryCredentialStore,
    seed_notes,
)
from notesync.models.note import NoteSort, SortDirection, SortField
from notesync.stores.channel import Subscription
from notesync.stores.collection import CollectionStore, LoadPhase
from notesync.stores.session import SessionPhase, SessionSnapshot, SessionStore

logger = get_logger(__name__)


class NotesApp:
    """
    The wired-up client: one Session Store and one Collection Store.

    The collection is cleared whenever the session becomes
    unauthenticated, so a signed-out user never sees the previous
    user's notes.
    """

    def __init__(
        self,
        auth_gateway: AuthGateway,
        notes_gateway: NotesGateway,
        page_size: int = 20,
        sort: NoteSort | None = None,
    ) -> None:
        self.auth_gateway = auth_gateway
        self.notes_gateway = notes_gateway
        self.session = SessionStore(auth_gateway)
        self.collection = CollectionStore(notes_gateway, page_size=page_size, sort=sort)
        self._session_subscription: Subscription | None = None

    async def start(self) -> None:
        """Restore the session and, when signed in, load the notes."""
        if self._session_subscription is None:
            self._session_subscription = self.session.changes.subscribe(self._on_session_changed)
        await self.session.initialize()
        if self.session.is_authenticated:
            await self.collection.initialize()
        logger.info(
            "Application started",
            extra={"authenticated": self.session.is_authenticated},
        )

    async def close(self) -> None:
        """Dispose subscriptions and release gateway resources. Idempotent."""
        if self._session_subscription is not None:
            self._session_subscription.unsubscribe()
            self._session_subscription = None
        self.session.dispose()
        self.collection.changes.clear()
        await self.auth_gateway.aclose()
        await self.notes_gateway.aclose()
        logger.info("Application closed")

    async def __aenter__(self) -> "NotesApp":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _on_session_changed(self, snapshot: SessionSnapshot) -> None:
        if snapshot.phase == SessionPhase.UNAUTHENTICATED and self.collection.phase != LoadPhase.INITIAL:
            self.collection.clear()


def create_app(
    demo_mode: bool | None = None,
    auth_gateway: AuthGateway | None = None,
    notes_gateway: NotesGateway | None = None,
    credentials: CredentialStore | None = None,
    client: APIClient | None = None,
) -> NotesApp:
    """
    Create the application from configuration.

    Args:
        demo_mode: Use the in-memory gateways. Defaults to features.yaml.
        auth_gateway: Explicit auth gateway, overriding configuration
        notes_gateway: Explicit notes gateway, overriding configuration
        credentials: Credential store for the HTTP auth gateway
        client: Shared APIClient for the HTTP gateways

    Returns:
        A NotesApp that has not been started yet
    """
    app_config = get_app_config()
    settings = app_config.application
    features = app_config.features
    if demo_mode is None:
        demo_mode = features.demo_mode

    if demo_mode:
        latency = features.demo_latency_ms / 1000
        auth_gateway = auth_gateway or InMemoryAuthGateway(latency=latency)
        notes_gateway = notes_gateway or InMemoryNotesGateway(notes=seed_notes(), latency=latency)
    else:
        client = client or APIClient()
        auth_gateway = auth_gateway or HttpAuthGateway(client, credentials or MemoryCredentialStore())
        notes_gateway = notes_gateway or HttpNotesGateway(client)

    logger.info(
        "Creating application",
        extra={"app_name": settings.name, "env": settings.environment, "demo_mode": demo_mode},
    )
    sort = NoteSort(
        field=SortField(settings.sorting.default_field),
        direction=SortDirection(settings.sorting.default_direction),
    )
    return NotesApp(
        auth_gateway,
        notes_gateway,
        page_size=settings.pagination.default_page_size,
        sort=sort,
    )
