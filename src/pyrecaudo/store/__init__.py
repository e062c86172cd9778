"""Entity store layer.

This package is the single place where remote results, cached snapshots
and user edits are merged into the list a view displays.
"""

from pyrecaudo.store.entity_store import EntityStore, StateListener
from pyrecaudo.store.state import (
    ErrorKind,
    SourceOfTruth,
    StoreMode,
    StorePhase,
    StoreState,
    error_kind_for,
)

__all__ = [
    "EntityStore",
    "ErrorKind",
    "SourceOfTruth",
    "StateListener",
    "StoreMode",
    "StorePhase",
    "StoreState",
    "error_kind_for",
]
