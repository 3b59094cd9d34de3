"""
HTTP Notes Gateway.

NotesGateway implementation backed by the notes service REST API.

Endpoints:
    GET    /notes                 paginated listing (filters as query params)
    GET    /notes/{id}            single note
    POST   /notes                 create
    PUT    /notes/{id}            update
    DELETE /notes/{id}            delete
    PUT    /notes/{id}/toggle     flip completion
    GET    /notes/statistics      aggregate counters
    GET    /categories            available categories
    GET    /tags                  available tags
"""

from typing import Any

from notesync.core.exceptions import ValidationError
from notesync.gateways.base import NotesGateway
from notesync.gateways.client import APIClient
from notesync.models.base import GatewayResult, Page
from notesync.models.note import Note, NoteFilter, NoteSort


def _parse_page(data: Any) -> Page[Note]:
    return Page[Note].model_validate(data)


def _parse_strings(data: Any) -> list[str]:
    if not isinstance(data, list):
        raise ValueError("Expected a list of strings")
    return [str(item) for item in data]


def _parse_counters(data: Any) -> dict[str, int]:
    if not isinstance(data, dict):
        raise ValueError("Expected a mapping of counters")
    return {str(key): int(value) for key, value in data.items()}


def _invalid_note_result() -> GatewayResult:
    return GatewayResult.from_error(
        ValidationError("Please provide both title and content for the note")
    )


class HttpNotesGateway(NotesGateway):
    """Notes gateway talking to the REST API through APIClient."""

    def __init__(self, client: APIClient) -> None:
        self._client = client

    async def fetch_page(
        self,
        page: int,
        page_size: int,
        filters: NoteFilter,
        sort: NoteSort,
    ) -> GatewayResult:
        params: dict[str, Any] = {"page": page, "page_size": page_size}
        params.update(sort.to_query_params())
        params.update(filters.to_query_params())
        return await self._client.call("GET", "/notes", parse=_parse_page, params=params)

    async def get(self, note_id: str) -> GatewayResult:
        return await self._client.call("GET", f"/notes/{note_id}", parse=Note.from_json)

    async def create(self, note: Note) -> GatewayResult:
        if not note.is_valid:
            return _invalid_note_result()
        payload = note.to_json()
        payload.pop("id", None)
        return await self._client.call("POST", "/notes", parse=Note.from_json, json=payload)

    async def update(self, note_id: str, note: Note) -> GatewayResult:
        if not note.is_valid:
            return _invalid_note_result()
        return await self._client.call(
            "PUT", f"/notes/{note_id}", parse=Note.from_json, json=note.to_json(),
        )

    async def delete(self, note_id: str) -> GatewayResult:
        return await self._client.call("DELETE", f"/notes/{note_id}")

    async def toggle_completion(self, note_id: str) -> GatewayResult:
        return await self._client.call("PUT", f"/notes/{note_id}/toggle", parse=Note.from_json)

    async def list_categories(self) -> GatewayResult:
        return await self._client.call("GET", "/categories", parse=_parse_strings)

    async def list_tags(self) -> GatewayResult:
        return await self._client.call("GET", "/tags", parse=_parse_strings)

    async def get_statistics(self) -> GatewayResult:
        return await self._client.call("GET", "/notes/statistics", parse=_parse_counters)

    async def aclose(self) -> None:
        await self._client.close()
