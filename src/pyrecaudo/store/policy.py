"""Collection merge and client-side search rules.

This module contains no I/O. Identity is always resolved through the
caller-supplied ``get_id`` function.
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Sequence
from typing import Any, TypeVar

from pydantic import TypeAdapter
from pydantic_core import PydanticSerializationError

T = TypeVar("T")

GetId = Callable[[Any], Hashable | None]

_ANY: TypeAdapter[Any] = TypeAdapter(Any)


def is_valid_identifier(value: object) -> bool:
    """Identifiers are non-empty strings or positive integers.

    ``bool`` is rejected even though it subclasses ``int``.
    """
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return value > 0
    if isinstance(value, str):
        return bool(value.strip())
    return False


def canonical_text(item: Any) -> str:
    """Case-folded string projection of a record used for substring search."""
    searchable = getattr(item, "searchable_text", None)
    if callable(searchable):
        return str(searchable()).casefold()
    try:
        text = _ANY.dump_json(item, by_alias=True).decode("utf-8")
    except PydanticSerializationError:
        text = str(item)
    return text.casefold()


def filter_items(items: Sequence[T], term: str) -> list[T]:
    """Records whose canonical text contains *term*, case-insensitively."""
    needle = term.strip().casefold()
    if not needle:
        return list(items)
    return [item for item in items if needle in canonical_text(item)]


def replace_by_id(items: Sequence[T], updated: T, entity_id: Hashable, get_id: GetId) -> list[T]:
    """Replace every record whose id equals *entity_id* with *updated*."""
    return [updated if get_id(item) == entity_id else item for item in items]


def upsert(items: Sequence[T], created: T, get_id: GetId) -> list[T]:
    """Append *created*, or replace the record already carrying its id.

    Keeps ids unique even when the backend echoes an id the list already
    holds.
    """
    new_id = get_id(created)
    if new_id is not None and any(get_id(item) == new_id for item in items):
        return replace_by_id(items, created, new_id, get_id)
    return [*items, created]


def remove_by_id(items: Sequence[T], entity_id: Hashable, get_id: GetId) -> list[T]:
    return [item for item in items if get_id(item) != entity_id]
