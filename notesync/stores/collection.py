"""
Collection Store.

Client view of the note collection under the active filter, sort and page
window. Loads pages through the notes gateway, applies create, update and
delete once the gateway confirms them, and toggles completion
optimistically with rollback.

Every list effect of an asynchronous response is applied by id lookup at
the moment the response arrives, so a response for a note that a racing
operation removed degrades to a no-op.
"""

import asyncio
import dataclasses
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from notesync.core.exceptions import ErrorInfo
from notesync.core.utils import utc_now
from notesync.gateways.base import NotesGateway
from notesync.models.base import GatewayResult, Page
from notesync.models.note import (
    Note,
    NoteFilter,
    NotePriority,
    NoteSort,
    SortDirection,
    SortField,
)
from notesync.stores.base import BaseStore

DEFAULT_PAGE_SIZE = 20


class LoadPhase(str, Enum):
    INITIAL = "initial"
    LOADING = "loading"
    LOADED = "loaded"
    REFRESHING = "refreshing"
    LOADING_MORE = "loading_more"
    ERROR = "error"


@dataclass(frozen=True)
class PaginationState:
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    total_count: int = 0
    total_pages: int = 0
    has_next: bool = False
    has_previous: bool = False


@dataclass(frozen=True)
class CollectionSnapshot:
    """Published state of the Collection Store."""

    notes: tuple[Note, ...] = ()
    phase: LoadPhase = LoadPhase.INITIAL
    pagination: PaginationState = PaginationState()
    filters: NoteFilter = NoteFilter()
    sort: NoteSort = NoteSort()
    error: ErrorInfo | None = None
    categories: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    statistics: dict[str, int] = field(default_factory=dict)
    last_sync_at: datetime | None = None

    @property
    def is_empty(self) -> bool:
        return not self.notes

    @property
    def has_next(self) -> bool:
        return self.pagination.has_next

    @property
    def can_load_more(self) -> bool:
        return self.pagination.has_next and self.phase not in (LoadPhase.LOADING, LoadPhase.LOADING_MORE)

    @property
    def is_loading(self) -> bool:
        return self.phase in (LoadPhase.LOADING, LoadPhase.REFRESHING, LoadPhase.LOADING_MORE)

    @property
    def has_error(self) -> bool:
        return self.error is not None


@dataclass
class PendingToggle:
    """
    An optimistic completion toggle awaiting the gateway.

    The record is invalidated when the note it covers is deleted,
    updated or dropped by a list replacement; an invalid record's
    response no longer touches the list.
    """

    note_id: str
    original: Note
    valid: bool = True


class CollectionStore(BaseStore[CollectionSnapshot]):
    """
    Owns the loaded note list and its query descriptors.

    Failures never raise: they move the store to the error phase and are
    published with an ErrorInfo, leaving the list renderable.
    """

    def __init__(
        self,
        gateway: NotesGateway,
        page_size: int = DEFAULT_PAGE_SIZE,
        sort: NoteSort | None = None,
    ) -> None:
        super().__init__("collection")
        self._gateway = gateway
        self._default_page_size = page_size
        self._default_sort = sort or NoteSort()
        self._pending: list[PendingToggle] = []
        self._reset()

    def _reset(self) -> None:
        self._notes: list[Note] = []
        self._phase = LoadPhase.INITIAL
        self._pagination = PaginationState(page_size=self._default_page_size)
        self._filters = NoteFilter()
        self._sort = self._default_sort
        self._error: ErrorInfo | None = None
        self._categories: list[str] = []
        self._tags: list[str] = []
        self._statistics: dict[str, int] = {}
        self._last_sync_at: datetime | None = None
        self._invalidate_pending()

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def snapshot(self) -> CollectionSnapshot:
        return CollectionSnapshot(
            notes=tuple(self._notes),
            phase=self._phase,
            pagination=self._pagination,
            filters=self._filters,
            sort=self._sort,
            error=self._error,
            categories=tuple(self._categories),
            tags=tuple(self._tags),
            statistics=dict(self._statistics),
            last_sync_at=self._last_sync_at,
        )

    @property
    def notes(self) -> tuple[Note, ...]:
        return tuple(self._notes)

    @property
    def phase(self) -> LoadPhase:
        return self._phase

    @property
    def pagination(self) -> PaginationState:
        return self._pagination

    @property
    def filters(self) -> NoteFilter:
        return self._filters

    @property
    def sort(self) -> NoteSort:
        return self._sort

    @property
    def error(self) -> ErrorInfo | None:
        return self._error

    @property
    def categories(self) -> tuple[str, ...]:
        return tuple(self._categories)

    @property
    def tags(self) -> tuple[str, ...]:
        return tuple(self._tags)

    @property
    def statistics(self) -> dict[str, int]:
        return dict(self._statistics)

    @property
    def last_sync_at(self) -> datetime | None:
        return self._last_sync_at

    @property
    def is_empty(self) -> bool:
        return not self._notes

    @property
    def has_next(self) -> bool:
        return self._pagination.has_next

    @property
    def can_load_more(self) -> bool:
        return self.snapshot.can_load_more

    @property
    def is_loading(self) -> bool:
        return self.snapshot.is_loading

    @property
    def has_error(self) -> bool:
        return self._error is not None

    @property
    def total_count(self) -> int:
        return self._pagination.total_count

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def initialize(self) -> None:
        """First page, then metadata."""
        await self.load_notes()
        await self.load_metadata()

    async def load_notes(self, refresh: bool = False) -> None:
        """
        Fetch the current page.

        A refresh starts over at page 1 with an empty list; otherwise an
        empty list shows `loading` and a non-empty one reloads in the
        background. Page 1 replaces the list, later pages append.
        """
        if refresh:
            self._pagination = dataclasses.replace(self._pagination, page=1)
            self._notes = []
            self._invalidate_pending()
            self._phase = LoadPhase.REFRESHING
            self._publish()
        elif not self._notes:
            self._phase = LoadPhase.LOADING
            self._publish()

        page = self._pagination.page
        result = await self._fetch(page)
        if not result.success:
            self._set_error(result.to_error_info())
            self._logger.warning(
                "Loading notes failed",
                extra={"page": page, "codes": list(result.errors)},
            )
            return

        self._apply_page(result.data, replace=page == 1)

    async def load_more_notes(self) -> None:
        """Fetch the next page. No-op unless more pages exist and no load is running."""
        if not self.can_load_more:
            return

        previous_page = self._pagination.page
        next_page = previous_page + 1
        self._pagination = dataclasses.replace(self._pagination, page=next_page)
        self._phase = LoadPhase.LOADING_MORE
        self._publish()

        result = await self._fetch(next_page)
        if not result.success:
            if self._pagination.page == next_page:
                self._pagination = dataclasses.replace(self._pagination, page=previous_page)
            self._set_error(result.to_error_info())
            self._logger.warning(
                "Loading more notes failed",
                extra={"page": next_page, "codes": list(result.errors)},
            )
            return

        self._apply_page(result.data, replace=False)

    async def refresh_notes(self) -> None:
        await self.load_notes(refresh=True)

    async def load_metadata(self) -> None:
        """
        Fetch categories, tags and counters.

        Best effort: failures are logged and leave the phase untouched.
        """
        categories, tags, statistics = await asyncio.gather(
            self._call("list_categories", self._gateway.list_categories()),
            self._call("list_tags", self._gateway.list_tags()),
            self._call("get_statistics", self._gateway.get_statistics()),
        )

        changed = False
        if self._metadata_ok("categories", categories):
            self._categories = list(categories.data or [])
            changed = True
        if self._metadata_ok("tags", tags):
            self._tags = list(tags.data or [])
            changed = True
        if self._metadata_ok("statistics", statistics):
            self._statistics = dict(statistics.data or {})
            changed = True

        if changed:
            self._publish()

    def _metadata_ok(self, name: str, result: GatewayResult) -> bool:
        if not result.success:
            self._logger.warning(
                "Loading metadata failed",
                extra={"metadata": name, "codes": list(result.errors)},
            )
        return result.success

    # -------------------------------------------------------------------------
    # Filtering and sorting
    # -------------------------------------------------------------------------

    async def search_notes(self, query: str) -> None:
        await self._apply_filters(self._filters.model_copy(update={"search_text": query}))

    async def clear_search(self) -> None:
        await self.search_notes("")

    async def filter_by_category(self, category: str | None) -> None:
        await self._apply_filters(self._filters.model_copy(update={"category": category}))

    async def filter_by_tags(self, tags: Iterable[str]) -> None:
        await self._apply_filters(self._filters.model_copy(update={"tags": tuple(tags)}))

    async def filter_by_priority(self, priority: NotePriority | None) -> None:
        await self._apply_filters(self._filters.model_copy(update={"priority": priority}))

    async def filter_by_completion(self, completed: bool | None) -> None:
        await self._apply_filters(self._filters.model_copy(update={"completed": completed}))

    async def change_sorting(self, sort_field: SortField, direction: SortDirection) -> None:
        sort = NoteSort(field=sort_field, direction=direction)
        if sort == self._sort:
            return
        self._sort = sort
        self._logger.debug("Sorting changed", extra={"field": sort_field.value, "direction": direction.value})
        await self.load_notes(refresh=True)

    async def clear_all_filters(self) -> None:
        await self._apply_filters(NoteFilter())

    async def _apply_filters(self, filters: NoteFilter) -> None:
        if filters == self._filters:
            return
        self._filters = filters
        self._logger.debug("Filters changed", extra={"filters": filters.to_query_params()})
        await self.load_notes(refresh=True)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def create_note(self, note: Note) -> Note | None:
        """Persist a new note and put it at the head of the list."""
        result = await self._call("create", self._gateway.create(note))
        if not result.success or result.data is None:
            self._set_error(result.to_error_info())
            return None

        created: Note = result.data
        self._notes.insert(0, created)
        self._pagination = dataclasses.replace(
            self._pagination, total_count=self._pagination.total_count + 1,
        )
        self._publish()
        self._logger.info("Note created", extra={"note_id": created.id})
        return created

    async def update_note(self, note_id: str, note: Note) -> Note | None:
        """Persist an edit; the loaded entry, if any, is replaced in place."""
        result = await self._call("update", self._gateway.update(note_id, note))
        if not result.success or result.data is None:
            self._set_error(result.to_error_info())
            return None

        updated: Note = result.data
        self._invalidate_pending(note_id)
        index = self._index_of(note_id)
        if index is not None:
            self._notes[index] = updated
            self._publish()
        self._logger.info("Note updated", extra={"note_id": note_id, "in_window": index is not None})
        return updated

    async def delete_note(self, note_id: str) -> bool:
        """
        Delete a note once the gateway confirms.

        The total count is decremented on every confirmed delete, whether
        or not the note was loaded, and never drops below zero.
        """
        result = await self._call("delete", self._gateway.delete(note_id))
        if not result.success:
            self._set_error(result.to_error_info())
            return False

        self._invalidate_pending(note_id)
        index = self._index_of(note_id)
        if index is not None:
            del self._notes[index]
        self._pagination = dataclasses.replace(
            self._pagination, total_count=max(0, self._pagination.total_count - 1),
        )
        self._publish()
        self._logger.info("Note deleted", extra={"note_id": note_id, "in_window": index is not None})
        return True

    async def toggle_note_completion(self, note_id: str) -> Note | None:
        """
        Flip completion optimistically.

        The flipped copy is published before the gateway is called. On
        success the gateway's copy replaces it; on failure the original is
        restored and published before the error is. Returns the gateway's
        note, or None when the note is not loaded or the call failed.
        """
        index = self._index_of(note_id)
        if index is None:
            return None

        current = self._notes[index]
        # An overlapping toggle hands over the last confirmed copy.
        prior = next(
            (r for r in reversed(self._pending) if r.note_id == note_id and r.valid),
            None,
        )
        original = prior.original if prior is not None else current
        # A newer toggle owns the entry from here on.
        self._invalidate_pending(note_id)
        record = PendingToggle(note_id=note_id, original=original)
        self._pending.append(record)
        self._notes[index] = current.toggle_completion()
        self._publish()

        try:
            result = await self._call("toggle_completion", self._gateway.toggle_completion(note_id))
        finally:
            self._pending.remove(record)

        if result.success and result.data is not None:
            if record.valid:
                self._replace_by_id(note_id, result.data)
            else:
                for successor in self._pending:
                    if successor.note_id == note_id and successor.valid:
                        successor.original = result.data
            return result.data

        if record.valid and self._replace_by_id(note_id, record.original):
            self._logger.debug("Toggle rolled back", extra={"note_id": note_id})
        self._set_error(result.to_error_info())
        return None

    # -------------------------------------------------------------------------
    # Derived queries
    # -------------------------------------------------------------------------

    def get_note_by_id(self, note_id: str) -> Note | None:
        index = self._index_of(note_id)
        return self._notes[index] if index is not None else None

    def get_notes_by_category(self, category: str) -> list[Note]:
        return [note for note in self._notes if note.category == category]

    def get_notes_by_priority(self, priority: NotePriority) -> list[Note]:
        return [note for note in self._notes if note.priority == priority]

    def get_completed_notes(self) -> list[Note]:
        return [note for note in self._notes if note.is_completed]

    def get_pending_notes(self) -> list[Note]:
        return [note for note in self._notes if not note.is_completed]

    # -------------------------------------------------------------------------
    # Housekeeping
    # -------------------------------------------------------------------------

    def clear_error(self) -> None:
        if self._phase != LoadPhase.ERROR and self._error is None:
            return
        self._error = None
        if self._phase == LoadPhase.ERROR:
            self._phase = LoadPhase.LOADED
        self._publish()

    def clear(self) -> None:
        """Back to the initial state, e.g. after sign-out."""
        self._reset()
        self._publish()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _fetch(self, page: int) -> GatewayResult:
        return await self._call(
            "fetch_page",
            self._gateway.fetch_page(page, self._pagination.page_size, self._filters, self._sort),
        )

    def _apply_page(self, page: Page, replace: bool) -> None:
        if replace:
            self._invalidate_pending()
            self._notes = list(page.items)
        else:
            self._notes.extend(page.items)

        self._pagination = dataclasses.replace(
            self._pagination,
            page=page.page,
            total_count=page.total_count,
            total_pages=page.total_pages,
            has_next=page.has_next,
            has_previous=page.has_previous,
        )
        self._last_sync_at = utc_now()
        self._error = None
        self._phase = LoadPhase.LOADED
        self._publish()
        self._logger.info(
            "Notes loaded",
            extra={"page": page.page, "count": len(page.items), "total": page.total_count},
        )

    def _set_error(self, error: ErrorInfo) -> None:
        self._error = error
        self._phase = LoadPhase.ERROR
        self._publish()

    def _index_of(self, note_id: str) -> int | None:
        for index, note in enumerate(self._notes):
            if note.id == note_id:
                return index
        return None

    def _replace_by_id(self, note_id: str, note: Note) -> bool:
        index = self._index_of(note_id)
        if index is None:
            return False
        self._notes[index] = note
        self._publish()
        return True

    def _invalidate_pending(self, note_id: str | None = None) -> None:
        for record in self._pending:
            if note_id is None or record.note_id == note_id:
                record.valid = False
