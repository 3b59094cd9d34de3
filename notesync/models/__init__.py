# Wire models package
from notesync.models.base import GatewayResult, Page
from notesync.models.note import (
    Note,
    NoteFilter,
    NotePriority,
    NoteSort,
    SortDirection,
    SortField,
)
from notesync.models.user import (
    AuthTokens,
    LoginRequest,
    ProfileUpdate,
    RegisterRequest,
    User,
)

__all__ = [
    "AuthTokens",
    "GatewayResult",
    "LoginRequest",
    "Note",
    "NoteFilter",
    "NotePriority",
    "NoteSort",
    "Page",
    "ProfileUpdate",
    "RegisterRequest",
    "SortDirection",
    "SortField",
    "User",
]
