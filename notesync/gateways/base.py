"""
Gateway Interfaces.

Defines the contracts the stores consume. Stores talk to the notes
service exclusively through these interfaces, so HTTP and in-memory
implementations are interchangeable and test doubles are trivial.

Every remote operation returns a GatewayResult instead of raising;
implementations classify transport failures themselves.
"""

from abc import ABC, abstractmethod

from notesync.models.base import GatewayResult, Page
from notesync.models.note import Note, NoteFilter, NoteSort
from notesync.models.user import ProfileUpdate, RegisterRequest, User
from notesync.stores.channel import NotificationChannel


class AuthGateway(ABC):
    """
    Authentication collaborator.

    Besides request/response operations, an auth gateway pushes identity
    and session-validity changes out of band on two channels the Session
    Store subscribes to.
    """

    def __init__(self) -> None:
        self.identity_changes: NotificationChannel[User | None] = NotificationChannel("identity")
        self.validity_changes: NotificationChannel[bool] = NotificationChannel("session-validity")

    @abstractmethod
    async def initialize(self) -> None:
        """Restore any persisted session."""
        ...

    @abstractmethod
    async def login(self, email: str, password: str) -> GatewayResult:
        """Result data is the signed-in User."""
        ...

    @abstractmethod
    async def register(self, request: RegisterRequest) -> GatewayResult:
        """Result data is the newly created User."""
        ...

    @abstractmethod
    async def logout(self) -> None:
        """End the session. Must not raise; local state is always cleared."""
        ...

    @abstractmethod
    def get_current_identity(self) -> User | None:
        """Identity snapshot, no network round trip."""
        ...

    @abstractmethod
    def is_session_valid(self) -> bool:
        """Local validity check of the current session, no network round trip."""
        ...

    @abstractmethod
    async def fetch_profile(self) -> GatewayResult:
        ...

    @abstractmethod
    async def update_profile(self, update: ProfileUpdate) -> GatewayResult:
        ...

    @abstractmethod
    async def change_password(self, current_password: str, new_password: str) -> GatewayResult:
        ...

    @abstractmethod
    async def delete_account(self, password: str) -> GatewayResult:
        ...

    def _emit_identity(self, user: User | None, valid: bool) -> None:
        self.identity_changes.publish(user)
        self.validity_changes.publish(valid)

    async def aclose(self) -> None:
        """Release resources held by the gateway."""
        self.identity_changes.clear()
        self.validity_changes.clear()


class NotesGateway(ABC):
    """Notes collaborator: paginated listing, CRUD and metadata."""

    @abstractmethod
    async def fetch_page(
        self,
        page: int,
        page_size: int,
        filters: NoteFilter,
        sort: NoteSort,
    ) -> GatewayResult:
        """Result data is a Page of Note."""
        ...

    @abstractmethod
    async def get(self, note_id: str) -> GatewayResult:
        ...

    @abstractmethod
    async def create(self, note: Note) -> GatewayResult:
        ...

    @abstractmethod
    async def update(self, note_id: str, note: Note) -> GatewayResult:
        ...

    @abstractmethod
    async def delete(self, note_id: str) -> GatewayResult:
        ...

    @abstractmethod
    async def toggle_completion(self, note_id: str) -> GatewayResult:
        ...

    @abstractmethod
    async def list_categories(self) -> GatewayResult:
        ...

    @abstractmethod
    async def list_tags(self) -> GatewayResult:
        ...

    @abstractmethod
    async def get_statistics(self) -> GatewayResult:
        """Result data is a mapping of counter name to count."""
        ...

    async def aclose(self) -> None:
        """Release resources held by the gateway."""


class CredentialStore(ABC):
    """Key/value storage for tokens and the cached identity."""

    @abstractmethod
    async def read(self, key: str) -> str | None:
        ...

    @abstractmethod
    async def write(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...
