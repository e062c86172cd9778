"""Remote entity services.

:class:`RemoteService` is the contract :class:`~pyrecaudo.store.EntityStore`
consumes. :class:`HttpEntityService` implements it for a plain REST resource
and is the typed deserialization boundary for everything the backend sends.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Generic, Protocol, TypeVar
from urllib.parse import quote

from pydantic import BaseModel, TypeAdapter, ValidationError

from pyrecaudo._transport import Transport
from pyrecaudo.exceptions import DataIntegrityError, InvalidArgumentError

_logger = logging.getLogger(__name__)

T = TypeVar("T")
F = TypeVar("F")
T_co = TypeVar("T_co", covariant=True)
F_contra = TypeVar("F_contra", contravariant=True)

EntityId = int | str


class RemoteService(Protocol[T_co, F_contra]):
    """Structural contract for a remote entity collection.

    Every method raises :class:`~pyrecaudo.exceptions.NetworkError` when the
    backend is unreachable. Empty results are empty lists, never ``None``.
    A service may additionally define ``async search(term) -> list[T]``;
    setting ``supports_search = False`` hides it from callers.
    """

    async def get_all(self) -> list[T_co]:
        ...

    async def get_by_id(self, entity_id: EntityId) -> T_co:
        ...

    async def create(self, payload: F_contra) -> T_co:
        ...

    async def update(self, entity_id: EntityId, payload: F_contra) -> T_co:
        ...

    async def delete(self, entity_id: EntityId) -> None:
        ...


def search_capability(service: object) -> Callable[[str], Awaitable[list[Any]]] | None:
    """Return the service's ``search`` coroutine function, if it offers one."""
    if not getattr(service, "supports_search", True):
        return None
    search = getattr(service, "search", None)
    return search if callable(search) else None


def encode_payload(payload: Any) -> Any:
    """Convert a form payload into a JSON-ready document."""
    if isinstance(payload, BaseModel):
        return payload.model_dump(by_alias=True, exclude_none=True, mode="json")
    if isinstance(payload, Mapping):
        return dict(payload)
    raise InvalidArgumentError(f"unsupported payload type {type(payload).__name__}")


def _unwrap(body: Any) -> Any:
    """Strip the optional ``{"data": ...}`` envelope some endpoints use."""
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


class HttpEntityService(Generic[T, F]):
    """REST resource at ``{base_url}{endpoint}``.

    ``GET /`` lists, ``GET /{id}`` reads, ``POST /`` creates, ``PUT /{id}``
    updates and ``DELETE /{id}`` removes. With ``searchable=True`` the
    service also answers ``search(term)`` through ``GET /?{search_param}=term``.

    Parameters
    ----------
    transport : Transport
        JSON transport used for every call.
    endpoint : str
        Resource path, e.g. ``"/api/sector"``.
    item_type : type
        Record type each element is validated as.
    searchable : bool
        Whether the backend supports server-side search on this resource.
    search_param : str
        Query parameter carrying the search term.
    """

    def __init__(
        self,
        transport: Transport,
        endpoint: str,
        item_type: type[T],
        *,
        searchable: bool = False,
        search_param: str = "search",
    ) -> None:
        self._transport = transport
        self._endpoint = endpoint.rstrip("/")
        self._item_type = item_type
        self._item_adapter: TypeAdapter[T] = TypeAdapter(item_type)
        self._list_adapter: TypeAdapter[list[T]] = TypeAdapter(list[item_type])  # type: ignore[valid-type]
        self._search_param = search_param
        self.supports_search = searchable

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def item_type(self) -> type[T]:
        return self._item_type

    def _item_path(self, entity_id: EntityId) -> str:
        if isinstance(entity_id, bool) or not isinstance(entity_id, (int, str)) or entity_id == "":
            raise InvalidArgumentError(f"invalid entity id {entity_id!r}")
        return f"{self._endpoint}/{quote(str(entity_id), safe='')}"

    def _parse_list(self, body: Any) -> list[T]:
        data = _unwrap(body)
        if data is None:
            return []
        if not isinstance(data, list):
            raise DataIntegrityError(f"{self._endpoint} returned {type(data).__name__}, expected a list")
        try:
            return self._list_adapter.validate_python(data)
        except ValidationError as exc:
            raise DataIntegrityError(f"{self._endpoint} returned invalid records: {exc.error_count()} errors") from exc

    def _parse_item(self, body: Any) -> T:
        data = _unwrap(body)
        if data is None:
            raise DataIntegrityError(f"{self._endpoint} returned an empty body, expected a record")
        try:
            return self._item_adapter.validate_python(data)
        except ValidationError as exc:
            raise DataIntegrityError(f"{self._endpoint} returned an invalid record: {exc.error_count()} errors") from exc

    async def get_all(self) -> list[T]:
        body = await self._transport.request("GET", self._endpoint)
        items = self._parse_list(body)
        _logger.debug("%s: fetched %d records", self._endpoint, len(items))
        return items

    async def get_by_id(self, entity_id: EntityId) -> T:
        body = await self._transport.request("GET", self._item_path(entity_id))
        return self._parse_item(body)

    async def create(self, payload: F) -> T:
        body = await self._transport.request("POST", self._endpoint, json_body=encode_payload(payload))
        return self._parse_item(body)

    async def update(self, entity_id: EntityId, payload: F) -> T:
        body = await self._transport.request("PUT", self._item_path(entity_id), json_body=encode_payload(payload))
        return self._parse_item(body)

    async def delete(self, entity_id: EntityId) -> None:
        await self._transport.request("DELETE", self._item_path(entity_id))

    async def search(self, term: str) -> list[T]:
        body = await self._transport.request("GET", self._endpoint, params={self._search_param: term})
        return self._parse_list(body)
