"""Advisory snapshot storage for entity collections.

Each collection is stored under its own key as a bare JSON array, exactly
the shape the remote service returns. The cache is best-effort: write
failures are logged and swallowed, and unreadable snapshots are reported as
missing.
"""

from __future__ import annotations

import abc
import asyncio
import contextlib
import functools
import logging
import os
import re
import tempfile
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from pyrecaudo.exceptions import CacheCorruptionError, InvalidArgumentError

_logger = logging.getLogger(__name__)

_KEY_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")

_ANY_LIST: TypeAdapter[list[Any]] = TypeAdapter(list[Any])


def _utcnow() -> datetime:
    return datetime.now(UTC)


@functools.lru_cache(maxsize=64)
def _list_adapter(item_type: Any) -> TypeAdapter[list[Any]]:
    return TypeAdapter(list[item_type])


class CacheRecord(BaseModel):
    """A named snapshot of one collection."""

    model_config = ConfigDict(frozen=True)

    key: str
    collection: list[Any]
    written_at: datetime


def encode_snapshot(collection: Sequence[Any]) -> str:
    """Serialize a collection to a JSON array.

    Pydantic models are dumped with their aliases so the stored document
    matches what the backend sends.
    """
    return _ANY_LIST.dump_json(list(collection), by_alias=True).decode("utf-8")


def decode_snapshot(raw: str | bytes, item_type: Any = Any) -> list[Any]:
    """Parse a stored snapshot into a typed list.

    Raises :class:`CacheCorruptionError` when the document is not JSON, is
    not an array, or an element does not validate as *item_type*.
    """
    try:
        data = _ANY_LIST.validate_json(raw)
    except ValidationError as exc:
        raise CacheCorruptionError(f"snapshot is not a JSON array: {exc.errors()[0]['msg']}") from exc
    if item_type is Any:
        return data
    try:
        return _list_adapter(item_type).validate_python(data)
    except ValidationError as exc:
        raise CacheCorruptionError(f"snapshot does not match {item_type!r}: {exc.error_count()} errors") from exc


def check_key(key: str) -> str:
    """Return *key* if it is usable as a snapshot name, else raise InvalidArgumentError."""
    if not isinstance(key, str) or not _KEY_RE.match(key):
        raise InvalidArgumentError(f"invalid cache key {key!r}")
    return key


class LocalCache(abc.ABC):
    """Durable, best-effort snapshot store keyed by collection name.

    Subclasses implement raw storage; this base class owns serialization
    and the rule that cache problems never reach the caller.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock

    @abc.abstractmethod
    async def _read(self, key: str) -> tuple[str, datetime] | None:
        """Return the stored document and its write time, or ``None``."""

    @abc.abstractmethod
    async def _write(self, key: str, document: str, written_at: datetime) -> None:
        """Replace the stored document for *key* in one step."""

    @abc.abstractmethod
    async def _remove(self, key: str) -> None:
        ...

    async def save(self, key: str, collection: Sequence[Any]) -> bool:
        """Persist *collection* under *key*.

        Returns ``False`` (after logging) when the snapshot could not be
        serialized or stored; the previous snapshot is then left intact.
        """
        check_key(key)
        try:
            document = encode_snapshot(collection)
        except Exception as exc:  # noqa: BLE001 - caching is advisory
            _logger.warning("Could not serialize snapshot %s: %s", key, exc)
            return False
        try:
            await self._write(key, document, self._clock())
        except Exception as exc:  # noqa: BLE001 - caching is advisory
            _logger.warning("Could not store snapshot %s: %s", key, exc)
            return False
        _logger.debug("Stored snapshot %s (%d items)", key, len(collection))
        return True

    async def load_record(self, key: str, item_type: Any = Any) -> CacheRecord | None:
        """Load the full snapshot record, or ``None`` on any problem."""
        check_key(key)
        try:
            stored = await self._read(key)
        except Exception as exc:  # noqa: BLE001 - caching is advisory
            _logger.warning("Could not read snapshot %s: %s", key, exc)
            return None
        if stored is None:
            return None
        document, written_at = stored
        try:
            collection = decode_snapshot(document, item_type)
        except CacheCorruptionError as exc:
            _logger.warning("Ignoring corrupt snapshot %s: %s", key, exc)
            return None
        return CacheRecord(key=key, collection=collection, written_at=written_at)

    async def load(self, key: str, item_type: Any = Any) -> list[Any] | None:
        """Load the collection stored under *key*, or ``None``.

        Missing keys, unparseable documents, non-array payloads and items
        that fail to validate as *item_type* all read as ``None``.
        """
        record = await self.load_record(key, item_type)
        return record.collection if record is not None else None

    async def clear(self, key: str) -> None:
        """Remove the snapshot for *key* so stale data cannot resurface."""
        check_key(key)
        try:
            await self._remove(key)
        except Exception as exc:  # noqa: BLE001 - caching is advisory
            _logger.warning("Could not clear snapshot %s: %s", key, exc)


class MemoryCache(LocalCache):
    """Process-local cache, mainly for tests and short-lived tools."""

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        super().__init__(clock=clock)
        self._documents: dict[str, tuple[str, datetime]] = {}

    async def _read(self, key: str) -> tuple[str, datetime] | None:
        return self._documents.get(key)

    async def _write(self, key: str, document: str, written_at: datetime) -> None:
        self._documents[key] = (document, written_at)

    async def _remove(self, key: str) -> None:
        self._documents.pop(key, None)

    def put_raw(self, key: str, document: str) -> None:
        """Store *document* verbatim, bypassing serialization."""
        self._documents[check_key(key)] = (document, self._clock())

    def keys(self) -> list[str]:
        return sorted(self._documents)


class FileCache(LocalCache):
    """One ``<key>.json`` file per collection inside a directory.

    Writes go to a temporary file that is atomically renamed over the
    previous snapshot, so readers see either the old or the new document.
    """

    def __init__(self, directory: str | os.PathLike[str], *, clock: Callable[[], datetime] = _utcnow) -> None:
        super().__init__(clock=clock)
        self._dir = Path(directory)

    @property
    def directory(self) -> Path:
        return self._dir

    def _path(self, key: str) -> Path:
        return self._dir / f"{key}.json"

    def _read_sync(self, key: str) -> tuple[str, datetime] | None:
        path = self._path(key)
        try:
            document = path.read_text(encoding="utf-8")
            mtime = path.stat().st_mtime
        except FileNotFoundError:
            return None
        return document, datetime.fromtimestamp(mtime, tz=UTC)

    def _write_sync(self, key: str, document: str, written_at: datetime) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._dir, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(document)
                fh.flush()
                os.fsync(fh.fileno())
            ts = written_at.timestamp()
            os.utime(tmp_name, (ts, ts))
            os.replace(tmp_name, self._path(key))
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise

    def _remove_sync(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass

    async def _read(self, key: str) -> tuple[str, datetime] | None:
        return await asyncio.to_thread(self._read_sync, key)

    async def _write(self, key: str, document: str, written_at: datetime) -> None:
        await asyncio.to_thread(self._write_sync, key, document, written_at)

    async def _remove(self, key: str) -> None:
        await asyncio.to_thread(self._remove_sync, key)
