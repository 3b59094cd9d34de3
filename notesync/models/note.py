"""
Note Models.

The note entity exchanged with the notes service, plus the filter and
sort descriptors sent along with every page fetch.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from notesync.core.exceptions import ValidationError
from notesync.core.utils import ensure_utc, utc_now

MAX_TAGS_PER_NOTE = 10
TITLE_MAX_LENGTH = 200
CONTENT_MAX_LENGTH = 10000
TAG_MAX_LENGTH = 50
SHORT_CONTENT_LENGTH = 100


class NotePriority(str, Enum):
    """Note priority levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @property
    def rank(self) -> int:
        """Sort weight, urgent highest."""
        return _PRIORITY_RANKS[self]


_PRIORITY_RANKS = {
    NotePriority.LOW: 1,
    NotePriority.MEDIUM: 2,
    NotePriority.HIGH: 3,
    NotePriority.URGENT: 4,
}


class Note(BaseModel):
    """
    A single note.

    Notes are immutable; every mutation helper returns a new instance.
    A note without an id is provisional: it exists only on the client
    until the service persists it and assigns one.
    """

    id: str | None = Field(default=None, description="Service-assigned identifier")
    title: str = Field(max_length=TITLE_MAX_LENGTH)
    content: str = Field(max_length=CONTENT_MAX_LENGTH)
    is_completed: bool = False
    created_at: datetime
    updated_at: datetime
    owner_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("owner_id", "user_id"),
    )
    tags: list[str] = Field(default_factory=list)
    priority: NotePriority = NotePriority.MEDIUM
    category: str | None = None

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))

    @model_validator(mode="after")
    def _check_timestamps(self) -> "Note":
        if self.updated_at < self.created_at:
            raise ValueError("updated_at must not be earlier than created_at")
        return self

    # -------------------------------------------------------------------------
    # Construction and serialization
    # -------------------------------------------------------------------------

    @classmethod
    def create(
        cls,
        title: str,
        content: str,
        owner_id: str | None = None,
        tags: list[str] | None = None,
        priority: NotePriority = NotePriority.MEDIUM,
        category: str | None = None,
    ) -> "Note":
        """
        Build a provisional note for a "new note" intent.

        Raises:
            ValidationError: If more than MAX_TAGS_PER_NOTE distinct tags are given
        """
        unique_tags = list(dict.fromkeys(tags or []))
        if len(unique_tags) > MAX_TAGS_PER_NOTE:
            raise ValidationError(
                f"A note can have at most {MAX_TAGS_PER_NOTE} tags",
                code="TAG_LIMIT_EXCEEDED",
                field_errors={"tags": [f"Maximum is {MAX_TAGS_PER_NOTE}"]},
            )
        now = utc_now()
        return cls(
            title=title,
            content=content,
            created_at=now,
            updated_at=now,
            owner_id=owner_id,
            tags=unique_tags,
            priority=priority,
            category=category,
        )

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "Note":
        return cls.model_validate(data)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    def copy_with(self, **changes: Any) -> "Note":
        """
        Return a copy with the given fields replaced.

        updated_at is refreshed unless explicitly provided. The copy is
        re-validated so invariants hold on the result.
        """
        changes.setdefault("updated_at", max(utc_now(), self.created_at))
        data = self.model_dump()
        data.update(changes)
        return Note.model_validate(data)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def toggle_completion(self) -> "Note":
        return self.copy_with(is_completed=not self.is_completed)

    def mark_completed(self) -> "Note":
        return self.copy_with(is_completed=True)

    def mark_incomplete(self) -> "Note":
        return self.copy_with(is_completed=False)

    def add_tag(self, tag: str) -> "Note":
        """
        Add a tag, keeping tags unique.

        Raises:
            ValidationError: If the note already has MAX_TAGS_PER_NOTE tags
        """
        tag = tag.strip()
        if not tag or tag in self.tags:
            return self
        if len(tag) > TAG_MAX_LENGTH:
            raise ValidationError(
                f"Tags must be at most {TAG_MAX_LENGTH} characters",
                field_errors={"tags": [f"Maximum length is {TAG_MAX_LENGTH}"]},
            )
        if len(self.tags) >= MAX_TAGS_PER_NOTE:
            raise ValidationError(
                f"A note can have at most {MAX_TAGS_PER_NOTE} tags",
                code="TAG_LIMIT_EXCEEDED",
                field_errors={"tags": [f"Maximum is {MAX_TAGS_PER_NOTE}"]},
            )
        return self.copy_with(tags=[*self.tags, tag])

    def remove_tag(self, tag: str) -> "Note":
        if tag not in self.tags:
            return self
        return self.copy_with(tags=[t for t in self.tags if t != tag])

    # -------------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------------

    @property
    def is_persisted(self) -> bool:
        return self.id is not None

    @property
    def is_valid(self) -> bool:
        """A note is valid iff trimmed title and trimmed content are non-empty."""
        return bool(self.title.strip()) and bool(self.content.strip())

    @property
    def has_content(self) -> bool:
        return bool(self.content.strip())

    @property
    def has_tags(self) -> bool:
        return bool(self.tags)

    @property
    def display_title(self) -> str:
        return self.title or "Untitled Note"

    @property
    def short_content(self) -> str:
        if len(self.content) > SHORT_CONTENT_LENGTH:
            return self.content[:SHORT_CONTENT_LENGTH - 3] + "..."
        return self.content

    def contains_query(self, query: str) -> bool:
        """Case-insensitive match against title, content, tags and category."""
        needle = query.lower()
        return (
            needle in self.title.lower()
            or needle in self.content.lower()
            or any(needle in tag.lower() for tag in self.tags)
            or (self.category is not None and needle in self.category.lower())
        )

    def __repr__(self) -> str:
        return f"<Note(id={self.id}, title={self.title!r}, is_completed={self.is_completed})>"


# =============================================================================
# Query descriptors
# =============================================================================


class SortField(str, Enum):
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    TITLE = "title"
    PRIORITY = "priority"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class NoteSort(BaseModel):
    """Sort descriptor applied to page fetches."""

    field: SortField = SortField.UPDATED_AT
    direction: SortDirection = SortDirection.DESC

    model_config = ConfigDict(frozen=True)

    def to_query_params(self) -> dict[str, str]:
        return {"sort_by": self.field.value, "sort_order": self.direction.value}


class NoteFilter(BaseModel):
    """Filter descriptor applied to page fetches."""

    search_text: str = ""
    category: str | None = None
    tags: tuple[str, ...] = ()
    priority: NotePriority | None = None
    completed: bool | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_active(self) -> bool:
        """True when any criterion narrows the listing."""
        return (
            bool(self.search_text)
            or self.category is not None
            or bool(self.tags)
            or self.priority is not None
            or self.completed is not None
        )

    def matches(self, note: Note) -> bool:
        """Evaluate the filter against a single note."""
        if self.search_text and not note.contains_query(self.search_text):
            return False
        if self.category is not None and note.category != self.category:
            return False
        if self.tags and not set(self.tags).issubset(note.tags):
            return False
        if self.priority is not None and note.priority != self.priority:
            return False
        if self.completed is not None and note.is_completed != self.completed:
            return False
        return True

    def to_query_params(self) -> dict[str, Any]:
        """Query string parameters; empty criteria are omitted."""
        params: dict[str, Any] = {}
        if self.search_text:
            params["search"] = self.search_text
        if self.category:
            params["category"] = self.category
        if self.tags:
            params["tags"] = ",".join(self.tags)
        if self.priority is not None:
            params["priority"] = self.priority.value
        if self.completed is not None:
            params["is_completed"] = "true" if self.completed else "false"
        return params
