"""Observable store state.

UI code never mutates these objects; it receives fresh :class:`StoreState`
snapshots from :meth:`EntityStore.subscribe` or :attr:`EntityStore.state`.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from pyrecaudo.exceptions import (
    CacheCorruptionError,
    DataIntegrityError,
    InvalidArgumentError,
    InvalidStateError,
    NetworkError,
)


class StoreMode(StrEnum):
    BROWSING = "browsing"
    EDITING = "editing"


class SourceOfTruth(StrEnum):
    REMOTE = "remote"
    CACHE = "cache"


class StorePhase(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    READY_REMOTE = "ready_remote"
    READY_CACHE = "ready_cache"
    FAILED = "failed"


class ErrorKind(StrEnum):
    NETWORK = "network"
    DATA_INTEGRITY = "data_integrity"
    CACHE_CORRUPTION = "cache_corruption"
    INVALID_ARGUMENT = "invalid_argument"
    INVALID_STATE = "invalid_state"
    UNKNOWN = "unknown"


_ERROR_KINDS: tuple[tuple[type[Exception], ErrorKind], ...] = (
    (NetworkError, ErrorKind.NETWORK),
    (DataIntegrityError, ErrorKind.DATA_INTEGRITY),
    (CacheCorruptionError, ErrorKind.CACHE_CORRUPTION),
    (InvalidArgumentError, ErrorKind.INVALID_ARGUMENT),
    (InvalidStateError, ErrorKind.INVALID_STATE),
)


def error_kind_for(exc: BaseException) -> ErrorKind:
    for exc_type, kind in _ERROR_KINDS:
        if isinstance(exc, exc_type):
            return kind
    return ErrorKind.UNKNOWN


class StoreState(BaseModel):
    """Everything a view needs to render one entity collection."""

    model_config = ConfigDict(extra="forbid")

    items: list[Any] = Field(default_factory=list)
    selected: Any | None = None
    mode: StoreMode = StoreMode.BROWSING
    loading: bool = False
    phase: StorePhase = StorePhase.IDLE
    error: ErrorKind | None = None
    error_message: str | None = None
    source_of_truth: SourceOfTruth = SourceOfTruth.REMOTE
    last_synced_at: datetime | None = None
    search_term: str = ""

    @property
    def degraded(self) -> bool:
        """Items come from the offline snapshot; they may be stale and writes will likely fail."""
        return self.source_of_truth == SourceOfTruth.CACHE

    @property
    def is_editing(self) -> bool:
        return self.mode == StoreMode.EDITING

    def snapshot(self) -> StoreState:
        return self.model_copy(update={"items": list(self.items)})
