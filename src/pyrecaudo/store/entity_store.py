"""Resilient entity store.

:class:`EntityStore` keeps one collection of records usable while the
backend comes and goes. Reads fall back to the last cached snapshot; writes
always go to the backend and fail loudly.

Reads (``load`` and ``search``) share one sequence counter. Only the most
recently issued read may apply its result, so a slow response can never
overwrite a newer one. A successful write also advances the counter, so a
read that started before the write cannot resurrect the old list.
"""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
from collections.abc import AsyncIterator, Callable, Hashable, Sequence
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from pyrecaudo.cache import LocalCache, MemoryCache, check_key
from pyrecaudo.exceptions import DataIntegrityError, InvalidArgumentError, InvalidStateError
from pyrecaudo.service import EntityId, RemoteService, search_capability
from pyrecaudo.store.policy import (
    filter_items,
    is_valid_identifier,
    remove_by_id,
    replace_by_id,
    upsert,
)
from pyrecaudo.store.state import (
    ErrorKind,
    SourceOfTruth,
    StoreMode,
    StorePhase,
    StoreState,
    error_kind_for,
)

_logger = logging.getLogger(__name__)

T = TypeVar("T")
F = TypeVar("F")

StateListener = Callable[[StoreState], None]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class EntityStore(Generic[T, F]):
    """Loads, searches and edits one remote collection with offline fallback.

    Usage::

        store = EntityStore(
            sector_service,
            cache_key="sectores",
            get_id=lambda s: s.codigo,
            cache=FileCache(config.cache_dir),
            item_type=Sector,
        )
        await store.load()
        if store.state.degraded:
            warn_user()

    Parameters
    ----------
    service : RemoteService
        Backend collection.
    cache_key : str
        Key the collection snapshot is stored under. An unusable key raises
        :class:`InvalidArgumentError` here rather than on first cache access.
    get_id : callable
        Returns a record's identifier, or ``None`` when it has none.
    cache : LocalCache, optional
        Snapshot store. Defaults to a private :class:`MemoryCache`.
    item_type : type, optional
        Record type cached snapshots are validated as. Defaults to the
        service's ``item_type`` when it exposes one, so cached and remote
        records share a type.
    validate : callable, optional
        Domain check applied to every fetched collection; returning
        ``False`` rejects the payload with :class:`DataIntegrityError`.
    entity_name : str, optional
        Label used in log messages. Defaults to *cache_key*.
    """

    def __init__(
        self,
        service: RemoteService[T, F],
        *,
        cache_key: str,
        get_id: Callable[[T], Hashable | None],
        cache: LocalCache | None = None,
        item_type: Any = None,
        validate: Callable[[list[T]], bool] | None = None,
        entity_name: str | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._service = service
        self._cache_key = check_key(cache_key)
        self._get_id = get_id
        self._cache = cache if cache is not None else MemoryCache()
        self._item_type = item_type if item_type is not None else getattr(service, "item_type", Any)
        self._validate = validate
        self._name = entity_name or cache_key
        self._clock = clock

        self._state = StoreState()
        self._collection: list[T] | None = None
        self._settled = StorePhase.IDLE
        self._pending = 0
        self._read_seq = 0
        self._alive = True
        self._listeners: list[StateListener] = []
        self._background: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> EntityStore[T, F]:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    @property
    def closed(self) -> bool:
        return not self._alive

    def close(self) -> None:
        """Detach the store from its owner.

        Operations still in flight complete, but their results are
        discarded and listeners are no longer called.
        """
        if self._alive:
            _logger.debug("[%s] store closed", self._name)
        self._alive = False
        self._listeners.clear()

    async def aclose(self) -> None:
        """Close the store and wait for pending cache writes."""
        self.close()
        await self.flush()

    async def flush(self) -> None:
        """Wait until every scheduled cache write has finished."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> StoreState:
        return self._state.snapshot()

    @property
    def items(self) -> list[T]:
        return list(self._state.items)

    @property
    def selected(self) -> T | None:
        return self._state.selected

    @property
    def cache_key(self) -> str:
        return self._cache_key

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call *listener* with a fresh snapshot after every state change.

        Returns a function that removes the listener.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return _unsubscribe

    def _publish(self) -> None:
        if not self._alive or not self._listeners:
            return
        snapshot = self._state.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                _logger.exception("[%s] state listener raised", self._name)

    def _update(self, **changes: Any) -> None:
        if not self._alive:
            return
        for field_name, value in changes.items():
            setattr(self._state, field_name, value)
        self._publish()

    @contextlib.asynccontextmanager
    async def _busy(self) -> AsyncIterator[None]:
        self._pending += 1
        self._update(loading=True, phase=StorePhase.LOADING)
        try:
            yield
        finally:
            self._pending -= 1
            if self._pending == 0:
                self._update(loading=False, phase=self._settled)

    def _next_read(self) -> int:
        self._read_seq += 1
        return self._read_seq

    def _is_current(self, seq: int) -> bool:
        return self._alive and seq == self._read_seq

    def _settle(self, phase: StorePhase) -> None:
        self._settled = phase
        if self._pending == 0:
            self._update(phase=phase)

    def _record_error(self, exc: BaseException) -> None:
        self._update(error=error_kind_for(exc), error_message=str(exc) or type(exc).__name__)

    def set_error(self, message: str | None, kind: ErrorKind = ErrorKind.UNKNOWN) -> None:
        """Set or (with ``None``) dismiss the surfaced error."""
        if message is None:
            self._update(error=None, error_message=None)
        else:
            self._update(error=kind, error_message=message)

    # ------------------------------------------------------------------
    # Remote and cache helpers
    # ------------------------------------------------------------------

    async def _fetch_remote(self) -> list[T]:
        data = await self._service.get_all()
        if not isinstance(data, list):
            raise DataIntegrityError(f"{self._name}: expected a list, got {type(data).__name__}")
        if self._validate is not None and not self._validate(data):
            raise DataIntegrityError(f"{self._name}: received data failed validation")
        return data

    def _spawn(self, coro: Any) -> None:
        task: asyncio.Task[None] = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _mirror(self, items: Sequence[T]) -> None:
        if items:
            await self._cache.save(self._cache_key, items)
        else:
            await self._cache.clear(self._cache_key)

    async def _refresh_cache_after_write(self, patch: Callable[[list[T]], list[T]]) -> None:
        """Re-sync the snapshot with the backend after a confirmed write.

        The snapshot always holds the whole collection. When the re-fetch
        fails, *patch* is applied to the previous snapshot (or to the full
        collection held in memory) instead of to the possibly filtered
        ``items``.
        """
        try:
            authoritative = await self._fetch_remote()
        except Exception as exc:  # noqa: BLE001 - cache refresh is best-effort
            _logger.warning("[%s] could not re-fetch after write, patching snapshot: %s", self._name, exc)
        else:
            await self._mirror(authoritative)
            return

        base = await self._cached_items()
        if base is None:
            base = self._collection
        if base is None:
            _logger.debug("[%s] no full collection to patch, snapshot left as is", self._name)
            return
        await self._mirror(patch(list(base)))

    async def _cached_items(self) -> list[T] | None:
        return await self._cache.load(self._cache_key, self._item_type)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Fetch the collection, falling back to the cached snapshot.

        Never raises for remote or cache failures: the outcome is reported
        through ``state.error`` and ``state.source_of_truth``.
        """
        seq = self._next_read()
        async with self._busy():
            await self._load(seq)

    async def _load(self, seq: int) -> None:
        self._update(error=None, error_message=None)
        _logger.debug("[%s] loading", self._name)
        try:
            items = await self._fetch_remote()
        except Exception as remote_exc:  # noqa: BLE001 - read failures fall back to the cache
            _logger.warning("[%s] remote load failed: %s", self._name, remote_exc)
            cached = await self._cached_items()
            if not self._is_current(seq):
                return
            if cached is not None:
                _logger.warning("[%s] using cached snapshot (%d items)", self._name, len(cached))
                self._collection = list(cached)
                self._update(items=cached, source_of_truth=SourceOfTruth.CACHE)
                self._settle(StorePhase.READY_CACHE)
            else:
                self._collection = None
                self._update(items=[])
                self._record_error(remote_exc)
                self._settle(StorePhase.FAILED)
            return

        if not self._is_current(seq):
            _logger.debug("[%s] discarding superseded load", self._name)
            return
        self._collection = list(items)
        self._update(items=items, source_of_truth=SourceOfTruth.REMOTE, last_synced_at=self._clock())
        self._settle(StorePhase.READY_REMOTE)
        _logger.info("[%s] loaded %d items", self._name, len(items))
        self._spawn(self._mirror(list(items)))

    async def refresh(self) -> None:
        """Clear the search term and reload."""
        self._update(search_term="")
        await self.load()

    async def search(self, term: str) -> None:
        """Narrow ``items`` to records matching *term*.

        A blank term reloads the full collection. While the data comes from
        the backend, server-side search is used when available, with a
        client-side filter over the full collection as fallback. In degraded
        mode the full collection held by the store is filtered locally
        without any network call, so successive searches do not narrow each
        other. The snapshot is read only when nothing is held yet.
        """
        if not term.strip():
            await self.refresh()
            return
        self._update(search_term=term)

        seq = self._next_read()
        async with self._busy():
            self._update(error=None, error_message=None)
            if self._state.source_of_truth == SourceOfTruth.CACHE:
                base = self._collection or (await self._cached_items()) or []
                results = filter_items(base, term)
            else:
                try:
                    results = await self._remote_search(term)
                except Exception as exc:  # noqa: BLE001 - read failures are reported, not raised
                    _logger.warning("[%s] search failed: %s", self._name, exc)
                    if self._is_current(seq):
                        self._record_error(exc)
                    return
            if not self._is_current(seq):
                _logger.debug("[%s] discarding superseded search", self._name)
                return
            self._update(items=results)
            _logger.debug("[%s] search %r matched %d items", self._name, term, len(results))

    async def _remote_search(self, term: str) -> list[T]:
        search = search_capability(self._service)
        if search is not None:
            try:
                results = await search(term)
                if not isinstance(results, list):
                    raise DataIntegrityError(f"{self._name}: search returned {type(results).__name__}")
                return results
            except Exception as exc:  # noqa: BLE001 - fall back to client-side filtering
                _logger.warning("[%s] remote search failed, filtering locally: %s", self._name, exc)
        return filter_items(await self._fetch_remote(), term)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select(self, item: T | None) -> None:
        """Select *item* for editing. ``None`` is ignored."""
        if item is None:
            return
        self._update(selected=item, mode=StoreMode.EDITING)

    def clear_selection(self) -> None:
        self._update(selected=None, mode=StoreMode.BROWSING)

    def set_edit_mode(self, editing: bool) -> None:
        self._update(mode=StoreMode.EDITING if editing else StoreMode.BROWSING)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def get_by_id(self, entity_id: EntityId) -> T:
        if not is_valid_identifier(entity_id):
            raise InvalidArgumentError(f"invalid {self._name} id {entity_id!r}")
        return await self._service.get_by_id(entity_id)

    async def save(self, payload: F) -> T:
        """Create a record, or update the selected one in edit mode.

        Raises
        ------
        InvalidStateError
            Edit mode without a selection, or a selection without an id.
        Exception
            Whatever the remote service raised, unchanged.
        """
        entity_id: Hashable | None = None
        if self._state.mode == StoreMode.EDITING:
            if self._state.selected is None:
                raise InvalidStateError(f"cannot update {self._name}: nothing selected")
            entity_id = self._get_id(self._state.selected)
            if entity_id is None:
                raise InvalidStateError(f"cannot update {self._name}: selected record has no id")

        async with self._busy():
            self._update(error=None, error_message=None)
            try:
                if entity_id is not None:
                    _logger.debug("[%s] updating id %s", self._name, entity_id)
                    result = await self._service.update(entity_id, payload)  # type: ignore[arg-type]
                else:
                    _logger.debug("[%s] creating", self._name)
                    result = await self._service.create(payload)
            except Exception as exc:
                _logger.error("[%s] save failed: %s", self._name, exc)
                self._record_error(exc)
                raise

            if not self._alive:
                return result
            patch: Callable[[list[T]], list[T]]
            if entity_id is not None:
                patch = functools.partial(replace_by_id, updated=result, entity_id=entity_id, get_id=self._get_id)
            else:
                patch = functools.partial(upsert, created=result, get_id=self._get_id)
            merged = patch(self._state.items)
            if self._collection is not None:
                self._collection = patch(self._collection)
            self._next_read()
            self._update(
                items=merged,
                selected=None,
                mode=StoreMode.BROWSING,
                last_synced_at=self._clock(),
            )
            _logger.info("[%s] saved", self._name)
            self._spawn(self._refresh_cache_after_write(patch))
            return result

    async def delete(self, entity_id: EntityId) -> None:
        """Delete a record remotely, then drop it from ``items``.

        Nothing is removed locally unless the backend confirmed the delete.
        """
        if not is_valid_identifier(entity_id):
            raise InvalidArgumentError(f"invalid {self._name} id {entity_id!r}")

        async with self._busy():
            self._update(error=None, error_message=None)
            try:
                await self._service.delete(entity_id)
            except Exception as exc:
                _logger.error("[%s] delete of id %s failed: %s", self._name, entity_id, exc)
                self._record_error(exc)
                raise

            if not self._alive:
                return
            patch = functools.partial(remove_by_id, entity_id=entity_id, get_id=self._get_id)
            remaining = patch(self._state.items)
            if self._collection is not None:
                self._collection = patch(self._collection)
            changes: dict[str, Any] = {"items": remaining}
            selected = self._state.selected
            if selected is not None and self._get_id(selected) == entity_id:
                changes.update(selected=None, mode=StoreMode.BROWSING)
            self._next_read()
            self._update(**changes)
            _logger.info("[%s] deleted id %s", self._name, entity_id)
            self._spawn(self._refresh_cache_after_write(patch))
