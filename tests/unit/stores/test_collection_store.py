"""Unit tests for the Collection Store."""

import asyncio

import pytest
import pytest_asyncio

from notesync.core.exceptions import ErrorKind, NetworkTimeoutError, ValidationError
from notesync.models.base import GatewayResult
from notesync.models.note import Note, NoteFilter, NotePriority, NoteSort, SortDirection, SortField
from notesync.stores.collection import CollectionStore, LoadPhase


def _network_failure() -> GatewayResult:
    return GatewayResult.from_error(NetworkTimeoutError())


@pytest.fixture
def store(mock_notes_gateway) -> CollectionStore:
    return CollectionStore(mock_notes_gateway, page_size=2)


@pytest_asyncio.fixture
async def loaded_store(store, mock_notes_gateway, make_note, make_page):
    """Store holding notes 1 and 2 out of 5, page 1."""
    mock_notes_gateway.fetch_page.return_value = GatewayResult.ok(
        make_page([make_note("1"), make_note("2")], page_size=2, total_count=5)
    )
    await store.load_notes()
    mock_notes_gateway.fetch_page.reset_mock()
    return store


# =============================================================================
# Loading
# =============================================================================


class TestLoadNotes:
    """Tests for load_notes."""

    @pytest.mark.asyncio
    async def test_first_load_of_two_notes(self, store, mock_notes_gateway, make_note, make_page):
        mock_notes_gateway.fetch_page.return_value = GatewayResult.ok(
            make_page([make_note("1"), make_note("2")], page=1)
        )

        await store.load_notes()

        assert store.is_empty is False
        assert store.has_next is False
        assert store.phase == LoadPhase.LOADED
        assert [note.id for note in store.notes] == ["1", "2"]
        assert store.last_sync_at is not None

    @pytest.mark.asyncio
    async def test_first_load_publishes_loading_then_loaded(
        self, store, mock_notes_gateway, make_note, make_page, recorder,
    ):
        mock_notes_gateway.fetch_page.return_value = GatewayResult.ok(make_page([make_note("1")]))
        seen = recorder(store.changes)

        await store.load_notes()

        assert [snapshot.phase for snapshot in seen] == [LoadPhase.LOADING, LoadPhase.LOADED]

    @pytest.mark.asyncio
    async def test_fetch_uses_current_query(self, store, mock_notes_gateway, make_page):
        mock_notes_gateway.fetch_page.return_value = GatewayResult.ok(make_page([]))

        await store.load_notes()

        mock_notes_gateway.fetch_page.assert_awaited_once_with(1, 2, NoteFilter(), NoteSort())

    @pytest.mark.asyncio
    async def test_refresh_clears_list_and_reports_refreshing(
        self, loaded_store, mock_notes_gateway, make_note, make_page, recorder,
    ):
        mock_notes_gateway.fetch_page.return_value = GatewayResult.ok(make_page([make_note("9")]))
        seen = recorder(loaded_store.changes)

        await loaded_store.load_notes(refresh=True)

        assert seen[0].phase == LoadPhase.REFRESHING
        assert seen[0].notes == ()
        assert [note.id for note in loaded_store.notes] == ["9"]

    @pytest.mark.asyncio
    async def test_background_reload_keeps_phase_until_response(
        self, loaded_store, mock_notes_gateway, make_note, make_page, recorder,
    ):
        mock_notes_gateway.fetch_page.return_value = GatewayResult.ok(
            make_page([make_note("1"), make_note("2")], page_size=2, total_count=5)
        )
        seen = recorder(loaded_store.changes)

        await loaded_store.load_notes()

        assert [snapshot.phase for snapshot in seen] == [LoadPhase.LOADED]

    @pytest.mark.asyncio
    async def test_failure_keeps_existing_list(self, loaded_store, mock_notes_gateway):
        mock_notes_gateway.fetch_page.return_value = _network_failure()

        await loaded_store.load_notes()

        assert loaded_store.phase == LoadPhase.ERROR
        assert loaded_store.error.kind == ErrorKind.TIMEOUT
        assert loaded_store.error.codes == ("TIMEOUT_ERROR",)
        assert [note.id for note in loaded_store.notes] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_gateway_exception_becomes_error_phase(self, store, mock_notes_gateway):
        mock_notes_gateway.fetch_page.side_effect = RuntimeError("boom")

        await store.load_notes()

        assert store.phase == LoadPhase.ERROR
        assert store.error.kind == ErrorKind.UNKNOWN


class TestLoadMoreNotes:
    """Tests for load_more_notes pagination."""

    @pytest.mark.asyncio
    async def test_appends_next_page(self, loaded_store, mock_notes_gateway, make_note, make_page):
        mock_notes_gateway.fetch_page.return_value = GatewayResult.ok(
            make_page([make_note("3"), make_note("4")], page=2, page_size=2, total_count=5)
        )

        await loaded_store.load_more_notes()

        mock_notes_gateway.fetch_page.assert_awaited_once_with(2, 2, NoteFilter(), NoteSort())
        assert [note.id for note in loaded_store.notes] == ["1", "2", "3", "4"]
        assert loaded_store.pagination.page == 2
        assert loaded_store.phase == LoadPhase.LOADED

    @pytest.mark.asyncio
    async def test_monotonic_over_several_pages(self, store, mock_notes_gateway, make_note, make_page):
        pages = [
            make_page([make_note(str(n)) for n in ids], page=page, page_size=3, total_count=8)
            for page, ids in ((1, (1, 2, 3)), (2, (4, 5, 6)), (3, (7, 8)))
        ]
        mock_notes_gateway.fetch_page.side_effect = [GatewayResult.ok(page) for page in pages]

        await store.load_notes()
        loads = 0
        while store.can_load_more:
            await store.load_more_notes()
            loads += 1

        assert loads == 2
        assert len(store.notes) == sum(len(page.items) for page in pages)
        assert store.pagination.page == 1 + loads

    @pytest.mark.asyncio
    async def test_noop_without_next_page(self, store, mock_notes_gateway, make_note, make_page):
        mock_notes_gateway.fetch_page.return_value = GatewayResult.ok(make_page([make_note("1")]))
        await store.load_notes()
        mock_notes_gateway.fetch_page.reset_mock()

        await store.load_more_notes()

        mock_notes_gateway.fetch_page.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejected_while_already_loading_more(
        self, loaded_store, mock_notes_gateway, make_note, make_page, gate,
    ):
        held = gate(GatewayResult.ok(make_page([make_note("3")], page=2, page_size=2, total_count=5)))
        mock_notes_gateway.fetch_page.side_effect = held

        first = asyncio.create_task(loaded_store.load_more_notes())
        await held.entered.wait()
        assert loaded_store.phase == LoadPhase.LOADING_MORE
        assert loaded_store.can_load_more is False

        await loaded_store.load_more_notes()
        held.release()
        await first

        assert len(held.calls) == 1

    @pytest.mark.asyncio
    async def test_failure_rolls_page_back(self, loaded_store, mock_notes_gateway, make_note, make_page):
        mock_notes_gateway.fetch_page.return_value = _network_failure()

        await loaded_store.load_more_notes()

        assert loaded_store.pagination.page == 1
        assert loaded_store.phase == LoadPhase.ERROR
        assert len(loaded_store.notes) == 2

        mock_notes_gateway.fetch_page.reset_mock()
        mock_notes_gateway.fetch_page.return_value = GatewayResult.ok(
            make_page([make_note("3")], page=2, page_size=2, total_count=5)
        )
        await loaded_store.load_more_notes()

        assert mock_notes_gateway.fetch_page.await_args.args[0] == 2

    @pytest.mark.asyncio
    async def test_stale_load_more_appends_after_refresh(
        self, loaded_store, mock_notes_gateway, make_note, make_page, gate,
    ):
        stale = gate(GatewayResult.ok(make_page([make_note("3")], page=2, page_size=2, total_count=5)))
        mock_notes_gateway.fetch_page.side_effect = stale
        more = asyncio.create_task(loaded_store.load_more_notes())
        await stale.entered.wait()

        mock_notes_gateway.fetch_page.side_effect = None
        mock_notes_gateway.fetch_page.return_value = GatewayResult.ok(
            make_page([make_note("7")], page=1, page_size=2, total_count=5)
        )
        await loaded_store.refresh_notes()
        stale.release()
        await more

        assert [note.id for note in loaded_store.notes] == ["7", "3"]


# =============================================================================
# Filters and sorting
# =============================================================================


class TestFilters:
    """Tests for the filter, search and sort mutators."""

    @pytest.mark.asyncio
    async def test_search_refreshes_from_page_one(self, loaded_store, mock_notes_gateway, make_page):
        mock_notes_gateway.fetch_page.return_value = GatewayResult.ok(make_page([]))

        await loaded_store.search_notes("milk")

        page, page_size, filters, sort = mock_notes_gateway.fetch_page.await_args.args
        assert page == 1
        assert filters.search_text == "milk"
        assert loaded_store.filters.search_text == "milk"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "mutator, value",
        [
            ("search_notes", ""),
            ("filter_by_category", None),
            ("filter_by_tags", []),
            ("filter_by_priority", None),
            ("filter_by_completion", None),
        ],
    )
    async def test_current_value_is_noop(self, loaded_store, mock_notes_gateway, recorder, mutator, value):
        seen = recorder(loaded_store.changes)
        phase = loaded_store.phase

        await getattr(loaded_store, mutator)(value)

        mock_notes_gateway.fetch_page.assert_not_awaited()
        assert loaded_store.phase == phase
        assert seen == []

    @pytest.mark.asyncio
    async def test_equal_tag_list_is_noop(self, loaded_store, mock_notes_gateway, make_page):
        mock_notes_gateway.fetch_page.return_value = GatewayResult.ok(make_page([]))
        await loaded_store.filter_by_tags(["work", "home"])
        mock_notes_gateway.fetch_page.reset_mock()

        await loaded_store.filter_by_tags(["work", "home"])

        mock_notes_gateway.fetch_page.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_filters_accumulate(self, loaded_store, mock_notes_gateway, make_page):
        mock_notes_gateway.fetch_page.return_value = GatewayResult.ok(make_page([]))

        await loaded_store.filter_by_category("Work")
        await loaded_store.filter_by_priority(NotePriority.HIGH)
        await loaded_store.filter_by_completion(False)

        assert loaded_store.filters == NoteFilter(
            category="Work", priority=NotePriority.HIGH, completed=False,
        )
        assert mock_notes_gateway.fetch_page.await_count == 3

    @pytest.mark.asyncio
    async def test_change_sorting(self, loaded_store, mock_notes_gateway, make_page):
        mock_notes_gateway.fetch_page.return_value = GatewayResult.ok(make_page([]))

        await loaded_store.change_sorting(SortField.TITLE, SortDirection.ASC)
        await loaded_store.change_sorting(SortField.TITLE, SortDirection.ASC)

        assert loaded_store.sort == NoteSort(field=SortField.TITLE, direction=SortDirection.ASC)
        assert mock_notes_gateway.fetch_page.await_count == 1

    @pytest.mark.asyncio
    async def test_clear_all_filters(self, loaded_store, mock_notes_gateway, make_page):
        mock_notes_gateway.fetch_page.return_value = GatewayResult.ok(make_page([]))
        await loaded_store.search_notes("milk")
        await loaded_store.filter_by_category("Home")

        await loaded_store.clear_all_filters()
        await loaded_store.clear_all_filters()

        assert loaded_store.filters == NoteFilter()
        assert mock_notes_gateway.fetch_page.await_count == 3

    @pytest.mark.asyncio
    async def test_clear_search(self, loaded_store, mock_notes_gateway, make_page):
        mock_notes_gateway.fetch_page.return_value = GatewayResult.ok(make_page([]))
        await loaded_store.search_notes("milk")

        await loaded_store.clear_search()

        assert loaded_store.filters.search_text == ""


# =============================================================================
# Mutations
# =============================================================================


class TestCreateUpdateDelete:
    """Tests for create_note, update_note and delete_note."""

    @pytest.mark.asyncio
    async def test_create_inserts_at_head(self, loaded_store, mock_notes_gateway, make_note):
        draft = Note.create(title="New", content="Body")
        persisted = draft.copy_with(id="10", updated_at=draft.created_at)
        mock_notes_gateway.create.return_value = GatewayResult.ok(persisted)

        created = await loaded_store.create_note(draft)

        head = loaded_store.notes[0]
        assert created == persisted
        assert head.id == "10"
        assert head.created_at == head.updated_at
        assert loaded_store.total_count == 6

    @pytest.mark.asyncio
    async def test_create_failure_surfaces_validation_error(self, loaded_store, mock_notes_gateway):
        mock_notes_gateway.create.return_value = GatewayResult.from_error(
            ValidationError("Please provide both title and content for the note")
        )

        created = await loaded_store.create_note(Note.create(title="", content=""))

        assert created is None
        assert loaded_store.error.kind == ErrorKind.VALIDATION
        assert loaded_store.phase == LoadPhase.ERROR
        assert len(loaded_store.notes) == 2

    @pytest.mark.asyncio
    async def test_update_replaces_in_place(self, loaded_store, mock_notes_gateway, make_note):
        edited = make_note("2", title="Edited")
        mock_notes_gateway.update.return_value = GatewayResult.ok(edited)

        await loaded_store.update_note("2", edited)

        assert [note.title for note in loaded_store.notes] == ["Note 1", "Edited"]

    @pytest.mark.asyncio
    async def test_update_of_unloaded_note_leaves_list(self, loaded_store, mock_notes_gateway, make_note, recorder):
        mock_notes_gateway.update.return_value = GatewayResult.ok(make_note("42"))
        seen = recorder(loaded_store.changes)

        updated = await loaded_store.update_note("42", make_note("42"))

        assert updated.id == "42"
        assert [note.id for note in loaded_store.notes] == ["1", "2"]
        assert seen == []

    @pytest.mark.asyncio
    async def test_delete_removes_entry(self, loaded_store, mock_notes_gateway):
        mock_notes_gateway.delete.return_value = GatewayResult.ok()

        assert await loaded_store.delete_note("1") is True

        assert [note.id for note in loaded_store.notes] == ["2"]
        assert loaded_store.total_count == 4

    @pytest.mark.asyncio
    async def test_delete_of_unloaded_note_still_decrements(self, loaded_store, mock_notes_gateway):
        mock_notes_gateway.delete.return_value = GatewayResult.ok()

        await loaded_store.delete_note("42")

        mock_notes_gateway.delete.assert_awaited_once_with("42")
        assert [note.id for note in loaded_store.notes] == ["1", "2"]
        assert loaded_store.total_count == 4

    @pytest.mark.asyncio
    async def test_delete_count_never_negative(self, store, mock_notes_gateway):
        mock_notes_gateway.delete.return_value = GatewayResult.ok()

        await store.delete_note("42")

        assert store.total_count == 0

    @pytest.mark.asyncio
    async def test_failed_delete_leaves_list(self, loaded_store, mock_notes_gateway):
        mock_notes_gateway.delete.return_value = _network_failure()

        assert await loaded_store.delete_note("1") is False

        assert [note.id for note in loaded_store.notes] == ["1", "2"]
        assert loaded_store.total_count == 5
        assert loaded_store.error.code == "TIMEOUT_ERROR"


class TestToggleCompletion:
    """Tests for the optimistic completion toggle."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("note_id", ["1", "2"])
    @pytest.mark.parametrize("initially_completed", [False, True])
    async def test_flips_before_response_and_rolls_back_on_failure(
        self, store, mock_notes_gateway, make_note, make_page, gate, recorder,
        note_id, initially_completed,
    ):
        mock_notes_gateway.fetch_page.return_value = GatewayResult.ok(make_page([
            make_note("1", is_completed=initially_completed),
            make_note("2", is_completed=initially_completed),
        ]))
        await store.load_notes()
        before = store.snapshot
        held = gate(_network_failure())
        mock_notes_gateway.toggle_completion.side_effect = held
        seen = recorder(store.changes)

        task = asyncio.create_task(store.toggle_note_completion(note_id))
        await held.entered.wait()

        assert seen[0].notes != before.notes
        flipped = next(note for note in seen[0].notes if note.id == note_id)
        assert flipped.is_completed is not initially_completed

        held.release()
        assert await task is None

        assert seen[-2] == before
        assert seen[-1].error.kind == ErrorKind.TIMEOUT
        assert store.notes == before.notes

    @pytest.mark.asyncio
    async def test_success_adopts_gateway_copy(self, loaded_store, mock_notes_gateway, make_note):
        authoritative = make_note("1", is_completed=True, title="Server title")
        mock_notes_gateway.toggle_completion.return_value = GatewayResult.ok(authoritative)

        result = await loaded_store.toggle_note_completion("1")

        assert result == authoritative
        assert loaded_store.notes[0] == authoritative

    @pytest.mark.asyncio
    async def test_unknown_id_is_noop(self, loaded_store, mock_notes_gateway):
        assert await loaded_store.toggle_note_completion("42") is None

        mock_notes_gateway.toggle_completion.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_after_delete_does_not_reinsert(self, loaded_store, mock_notes_gateway, gate):
        held = gate(_network_failure())
        mock_notes_gateway.toggle_completion.side_effect = held
        mock_notes_gateway.delete.return_value = GatewayResult.ok()

        task = asyncio.create_task(loaded_store.toggle_note_completion("1"))
        await held.entered.wait()
        await loaded_store.delete_note("1")
        held.release()
        await task

        assert [note.id for note in loaded_store.notes] == ["2"]

    @pytest.mark.asyncio
    async def test_failure_after_refresh_keeps_new_list(
        self, loaded_store, mock_notes_gateway, make_note, make_page, gate,
    ):
        held = gate(_network_failure())
        mock_notes_gateway.toggle_completion.side_effect = held
        fresh = make_note("1", title="Fresh", is_completed=True)
        mock_notes_gateway.fetch_page.return_value = GatewayResult.ok(make_page([fresh]))

        task = asyncio.create_task(loaded_store.toggle_note_completion("1"))
        await held.entered.wait()
        await loaded_store.refresh_notes()
        held.release()
        await task

        assert loaded_store.notes == (fresh,)

    @pytest.mark.asyncio
    async def test_overlapping_failures_restore_original(self, loaded_store, mock_notes_gateway, gate):
        original = loaded_store.get_note_by_id("1")
        held = gate(_network_failure())
        mock_notes_gateway.toggle_completion.side_effect = held

        first = asyncio.create_task(loaded_store.toggle_note_completion("1"))
        await held.entered.wait()
        second = asyncio.create_task(loaded_store.toggle_note_completion("1"))
        while len(held.calls) < 2:
            await asyncio.sleep(0)
        held.release()

        assert await asyncio.gather(first, second) == [None, None]
        assert loaded_store.get_note_by_id("1") == original
        assert loaded_store.get_note_by_id("1").is_completed is False

    @pytest.mark.asyncio
    async def test_failure_after_overlapping_success_keeps_server_copy(
        self, loaded_store, mock_notes_gateway, make_note, gate,
    ):
        confirmed = make_note("1", is_completed=True)
        gates = [gate(GatewayResult.ok(confirmed)), gate(_network_failure())]
        pending = list(gates)

        async def next_gate(*args):
            return await pending.pop(0)(*args)

        mock_notes_gateway.toggle_completion.side_effect = next_gate

        first = asyncio.create_task(loaded_store.toggle_note_completion("1"))
        await gates[0].entered.wait()
        second = asyncio.create_task(loaded_store.toggle_note_completion("1"))
        await gates[1].entered.wait()
        gates[0].release()
        assert await first == confirmed
        gates[1].release()
        assert await second is None

        assert loaded_store.get_note_by_id("1") == confirmed

    @pytest.mark.asyncio
    async def test_success_after_update_keeps_update(self, loaded_store, mock_notes_gateway, make_note, gate):
        held = gate(GatewayResult.ok(make_note("1", is_completed=True)))
        mock_notes_gateway.toggle_completion.side_effect = held
        edited = make_note("1", title="Edited")
        mock_notes_gateway.update.return_value = GatewayResult.ok(edited)

        task = asyncio.create_task(loaded_store.toggle_note_completion("1"))
        await held.entered.wait()
        await loaded_store.update_note("1", edited)
        held.release()
        await task

        assert loaded_store.notes[0] == edited


# =============================================================================
# Metadata, queries and housekeeping
# =============================================================================


class TestMetadata:
    """Tests for load_metadata."""

    @pytest.mark.asyncio
    async def test_loads_all_metadata(self, store, mock_notes_gateway):
        mock_notes_gateway.list_categories.return_value = GatewayResult.ok(["Home", "Work"])
        mock_notes_gateway.list_tags.return_value = GatewayResult.ok(["a", "b"])
        mock_notes_gateway.get_statistics.return_value = GatewayResult.ok({"total": 3})

        await store.load_metadata()

        assert store.categories == ("Home", "Work")
        assert store.tags == ("a", "b")
        assert store.statistics == {"total": 3}

    @pytest.mark.asyncio
    async def test_failures_do_not_change_phase(self, loaded_store, mock_notes_gateway):
        mock_notes_gateway.list_categories.return_value = _network_failure()
        mock_notes_gateway.list_tags.side_effect = RuntimeError("boom")
        mock_notes_gateway.get_statistics.return_value = GatewayResult.ok({"total": 5})

        await loaded_store.load_metadata()

        assert loaded_store.phase == LoadPhase.LOADED
        assert loaded_store.error is None
        assert loaded_store.categories == ()
        assert loaded_store.statistics == {"total": 5}

    @pytest.mark.asyncio
    async def test_initialize_loads_notes_then_metadata(self, store, mock_notes_gateway, make_note, make_page):
        mock_notes_gateway.fetch_page.return_value = GatewayResult.ok(make_page([make_note("1")]))
        mock_notes_gateway.list_tags.return_value = GatewayResult.ok(["x"])

        await store.initialize()

        assert len(store.notes) == 1
        assert store.tags == ("x",)


class TestQueriesAndHousekeeping:
    """Tests for derived queries, clear_error and clear."""

    @pytest.mark.asyncio
    async def test_derived_queries(self, store, mock_notes_gateway, make_note, make_page):
        mock_notes_gateway.fetch_page.return_value = GatewayResult.ok(make_page([
            make_note("1", category="Work", priority=NotePriority.HIGH, is_completed=True),
            make_note("2", category="Home"),
        ]))
        await store.load_notes()
        mock_notes_gateway.fetch_page.reset_mock()

        assert store.get_note_by_id("2").id == "2"
        assert store.get_note_by_id("9") is None
        assert [n.id for n in store.get_notes_by_category("Work")] == ["1"]
        assert [n.id for n in store.get_notes_by_priority(NotePriority.MEDIUM)] == ["2"]
        assert [n.id for n in store.get_completed_notes()] == ["1"]
        assert [n.id for n in store.get_pending_notes()] == ["2"]
        mock_notes_gateway.fetch_page.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_clear_error_returns_to_loaded(self, loaded_store, mock_notes_gateway):
        mock_notes_gateway.fetch_page.return_value = _network_failure()
        await loaded_store.load_notes()

        loaded_store.clear_error()

        assert loaded_store.phase == LoadPhase.LOADED
        assert loaded_store.error is None

    @pytest.mark.asyncio
    async def test_clear_resets_everything(self, loaded_store, mock_notes_gateway, make_page):
        mock_notes_gateway.fetch_page.return_value = GatewayResult.ok(make_page([]))
        await loaded_store.search_notes("milk")

        loaded_store.clear()

        assert loaded_store.snapshot.phase == LoadPhase.INITIAL
        assert loaded_store.notes == ()
        assert loaded_store.filters == NoteFilter()
        assert loaded_store.pagination.page == 1
        assert loaded_store.pagination.page_size == 2
