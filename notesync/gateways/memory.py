"""
In-Memory Gateways.

Demo-mode implementations of the gateway interfaces. They keep all state
in process, apply the same filtering, sorting and pagination rules the
service does, and can inject latency so the stores' asynchronous
behavior is visible from the shell.

Usage:
    auth = InMemoryAuthGateway(latency=0.2)
    notes = InMemoryNotesGateway(notes=seed_notes())
"""

import asyncio
import itertools
import math
from datetime import timedelta

from notesync.core.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    RemoteError,
    UnauthorizedError,
    ValidationError,
)
from notesync.core.logging import get_logger, log_with_source
from notesync.core.utils import utc_now
from notesync.gateways.base import AuthGateway, CredentialStore, NotesGateway
from notesync.models.base import GatewayResult, Page
from notesync.models.note import Note, NoteFilter, NotePriority, NoteSort, SortDirection, SortField
from notesync.models.user import ProfileUpdate, RegisterRequest, User

logger = get_logger(__name__)

MIN_DEMO_PASSWORD_LENGTH = 6
MIN_DEMO_USERNAME_LENGTH = 3
SESSION_LIFETIME = timedelta(hours=1)


class MemoryCredentialStore(CredentialStore):
    """Credential storage that lives as long as the process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    async def read(self, key: str) -> str | None:
        return self._values.get(key)

    async def write(self, key: str, value: str) -> None:
        self._values[key] = value

    async def delete(self, key: str) -> None:
        self._values.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._values


class _Simulated:
    """Latency and one-shot failure injection shared by the demo gateways."""

    def __init__(self, latency: float = 0.0) -> None:
        self.latency = latency
        self._failures: dict[str, RemoteError] = {}

    def fail_next(self, operation: str, error: RemoteError) -> None:
        """Make the next call of `operation` fail with `error`."""
        self._failures[operation] = error

    async def _begin(self, operation: str) -> GatewayResult | None:
        await asyncio.sleep(self.latency)
        error = self._failures.pop(operation, None)
        if error is None:
            return None
        log_with_source(logger, "gateway", "debug", "Injected failure", operation=operation, code=error.code)
        return GatewayResult.from_error(error)


def _fail(error: RemoteError) -> GatewayResult:
    return GatewayResult.from_error(error)


# =============================================================================
# Auth
# =============================================================================


class InMemoryAuthGateway(_Simulated, AuthGateway):
    """
    Demo authentication.

    Any syntactically plausible email with a password of at least six
    characters signs in; registered accounts must use their password.
    """

    def __init__(self, latency: float = 0.0) -> None:
        _Simulated.__init__(self, latency)
        AuthGateway.__init__(self)
        self._accounts: dict[str, tuple[User, str]] = {}
        self._user: User | None = None
        self._expires_at = None
        self._ids = itertools.count(1)

    async def initialize(self) -> None:
        await asyncio.sleep(0)
        self._emit_identity(self._user, self.is_session_valid())

    async def login(self, email: str, password: str) -> GatewayResult:
        failure = await self._begin("login")
        if failure is not None:
            return failure

        email = email.strip().lower()
        rejected = self._check_credentials(email, password)
        if rejected is not None:
            return rejected

        account = self._accounts.get(email)
        if account is not None:
            user, expected = account
            if password != expected:
                return _fail(AuthenticationError("Invalid email or password", code="INVALID_CREDENTIALS"))
        else:
            user = self._new_user(email, email.split("@")[0])
            self._accounts[email] = (user, password)

        self._start_session(user)
        return GatewayResult.ok(user, message="Login successful")

    async def register(self, request: RegisterRequest) -> GatewayResult:
        failure = await self._begin("register")
        if failure is not None:
            return failure

        email = request.email.strip().lower()
        rejected = self._check_credentials(email, request.password)
        if rejected is not None:
            return rejected
        if len(request.username.strip()) < MIN_DEMO_USERNAME_LENGTH:
            return _fail(ValidationError(
                f"Username must be at least {MIN_DEMO_USERNAME_LENGTH} characters",
                code="USERNAME_TOO_SHORT",
                field_errors={"username": ["Too short"]},
            ))
        if email in self._accounts:
            return _fail(ConflictError("An account with this email already exists", code="EMAIL_EXISTS"))

        user = self._new_user(
            email,
            request.username.strip(),
            first_name=request.first_name,
            last_name=request.last_name,
        )
        self._accounts[email] = (user, request.password)
        self._start_session(user)
        return GatewayResult.ok(user, message="Registration successful")

    async def logout(self) -> None:
        await asyncio.sleep(self.latency)
        self._user = None
        self._expires_at = None
        self._emit_identity(None, False)

    def get_current_identity(self) -> User | None:
        return self._user

    def is_session_valid(self) -> bool:
        return self._user is not None and self._expires_at is not None and utc_now() < self._expires_at

    async def fetch_profile(self) -> GatewayResult:
        failure = await self._begin("fetch_profile")
        if failure is not None:
            return failure
        if self._user is None:
            return _fail(UnauthorizedError())
        return GatewayResult.ok(self._user)

    async def update_profile(self, update: ProfileUpdate) -> GatewayResult:
        failure = await self._begin("update_profile")
        if failure is not None:
            return failure
        if self._user is None:
            return _fail(UnauthorizedError())

        changes = update.model_dump(exclude_unset=True)
        changes["updated_at"] = utc_now()
        user = self._user.model_copy(update=changes)
        password = self._accounts[user.email][1]
        self._accounts[user.email] = (user, password)
        self._user = user
        self.identity_changes.publish(user)
        return GatewayResult.ok(user, message="Profile updated")

    async def change_password(self, current_password: str, new_password: str) -> GatewayResult:
        failure = await self._begin("change_password")
        if failure is not None:
            return failure
        if self._user is None or self._accounts[self._user.email][1] != current_password:
            return _fail(UnauthorizedError("Current password is incorrect"))

        self._accounts[self._user.email] = (self._user, new_password)
        return GatewayResult.ok(message="Password changed")

    async def delete_account(self, password: str) -> GatewayResult:
        failure = await self._begin("delete_account")
        if failure is not None:
            return failure
        if self._user is None or self._accounts[self._user.email][1] != password:
            return _fail(UnauthorizedError("Password is incorrect"))

        del self._accounts[self._user.email]
        await self.logout()
        return GatewayResult.ok(message="Account deleted")

    def expire_session(self) -> None:
        """Invalidate the session out of band, as a token expiry would."""
        self._expires_at = utc_now()
        self.validity_changes.publish(False)

    def _check_credentials(self, email: str, password: str) -> GatewayResult | None:
        if "@" not in email or "." not in email:
            return _fail(ValidationError(
                "Invalid email format", code="INVALID_EMAIL", field_errors={"email": ["Invalid format"]},
            ))
        if len(password) < MIN_DEMO_PASSWORD_LENGTH:
            return _fail(ValidationError(
                f"Password must be at least {MIN_DEMO_PASSWORD_LENGTH} characters",
                code="PASSWORD_TOO_SHORT",
                field_errors={"password": ["Too short"]},
            ))
        return None

    def _new_user(self, email: str, username: str, **names: str | None) -> User:
        now = utc_now()
        return User(
            id=f"user-{next(self._ids)}",
            email=email,
            username=username,
            created_at=now,
            updated_at=now,
            **names,
        )

    def _start_session(self, user: User) -> None:
        self._user = user
        self._expires_at = utc_now() + SESSION_LIFETIME
        self._emit_identity(user, True)


# =============================================================================
# Notes
# =============================================================================


def seed_notes() -> list[Note]:
    """Sample notes the demo gateway starts with."""
    now = utc_now()
    return [
        Note(
            id="1",
            title="Welcome to NoteSync",
            content="Notes are synced with the service; toggling completion is instant.",
            created_at=now - timedelta(days=2),
            updated_at=now - timedelta(days=1),
            tags=["welcome"],
            category="General",
        ),
        Note(
            id="2",
            title="Shopping list",
            content="Milk, eggs, coffee",
            created_at=now - timedelta(days=1),
            updated_at=now - timedelta(hours=3),
            tags=["errands", "home"],
            priority=NotePriority.HIGH,
            category="Personal",
        ),
    ]


def _sort_key(field: SortField):
    if field == SortField.TITLE:
        return lambda note: note.title.lower()
    if field == SortField.PRIORITY:
        return lambda note: note.priority.rank
    if field == SortField.CREATED_AT:
        return lambda note: note.created_at
    return lambda note: note.updated_at


class InMemoryNotesGateway(_Simulated, NotesGateway):
    """Notes held in a dict, queried the way the service queries them."""

    def __init__(self, notes: list[Note] | None = None, latency: float = 0.0) -> None:
        super().__init__(latency)
        self._notes: dict[str, Note] = {note.id: note for note in (notes or []) if note.id}
        numeric = [int(note_id) for note_id in self._notes if note_id.isdigit()]
        self._ids = itertools.count(max(numeric, default=0) + 1)

    @property
    def notes(self) -> list[Note]:
        return list(self._notes.values())

    async def fetch_page(
        self,
        page: int,
        page_size: int,
        filters: NoteFilter,
        sort: NoteSort,
    ) -> GatewayResult:
        failure = await self._begin("fetch_page")
        if failure is not None:
            return failure

        matching = [note for note in self._notes.values() if filters.matches(note)]
        matching.sort(key=_sort_key(sort.field), reverse=sort.direction == SortDirection.DESC)

        total = len(matching)
        total_pages = math.ceil(total / page_size) if total else 0
        start = (page - 1) * page_size
        return GatewayResult.ok(Page(
            items=matching[start:start + page_size],
            total_count=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_previous=page > 1,
        ))

    async def get(self, note_id: str) -> GatewayResult:
        failure = await self._begin("get")
        if failure is not None:
            return failure
        note = self._notes.get(note_id)
        if note is None:
            return _fail(NotFoundError("Note not found", code="NOTE_NOT_FOUND"))
        return GatewayResult.ok(note)

    async def create(self, note: Note) -> GatewayResult:
        failure = await self._begin("create")
        if failure is not None:
            return failure
        if not note.is_valid:
            return _fail(ValidationError("Please provide both title and content for the note"))

        now = utc_now()
        created = note.copy_with(id=str(next(self._ids)), created_at=now, updated_at=now)
        self._notes[created.id] = created
        return GatewayResult.ok(created, message="Note created")

    async def update(self, note_id: str, note: Note) -> GatewayResult:
        failure = await self._begin("update")
        if failure is not None:
            return failure
        existing = self._notes.get(note_id)
        if existing is None:
            return _fail(NotFoundError("Note not found", code="NOTE_NOT_FOUND"))
        if not note.is_valid:
            return _fail(ValidationError("Please provide both title and content for the note"))

        updated = note.copy_with(
            id=note_id,
            created_at=existing.created_at,
            updated_at=max(utc_now(), existing.created_at),
        )
        self._notes[note_id] = updated
        return GatewayResult.ok(updated, message="Note updated")

    async def delete(self, note_id: str) -> GatewayResult:
        failure = await self._begin("delete")
        if failure is not None:
            return failure
        if self._notes.pop(note_id, None) is None:
            return _fail(NotFoundError("Note not found", code="NOTE_NOT_FOUND"))
        return GatewayResult.ok(message="Note deleted")

    async def toggle_completion(self, note_id: str) -> GatewayResult:
        failure = await self._begin("toggle_completion")
        if failure is not None:
            return failure
        note = self._notes.get(note_id)
        if note is None:
            return _fail(NotFoundError("Note not found", code="NOTE_NOT_FOUND"))

        toggled = note.toggle_completion()
        self._notes[note_id] = toggled
        return GatewayResult.ok(toggled)

    async def list_categories(self) -> GatewayResult:
        failure = await self._begin("list_categories")
        if failure is not None:
            return failure
        return GatewayResult.ok(sorted({note.category for note in self._notes.values() if note.category}))

    async def list_tags(self) -> GatewayResult:
        failure = await self._begin("list_tags")
        if failure is not None:
            return failure
        return GatewayResult.ok(sorted({tag for note in self._notes.values() for tag in note.tags}))

    async def get_statistics(self) -> GatewayResult:
        failure = await self._begin("get_statistics")
        if failure is not None:
            return failure

        notes = list(self._notes.values())
        completed = sum(1 for note in notes if note.is_completed)
        stats = {
            "total": len(notes),
            "completed": completed,
            "pending": len(notes) - completed,
        }
        for priority in NotePriority:
            stats[priority.value] = sum(1 for note in notes if note.priority == priority)
        return GatewayResult.ok(stats)
