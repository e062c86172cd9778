"""pyrecaudo - Resilient async data access for municipal collections back offices."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyrecaudo")
except PackageNotFoundError:
    __version__ = "0+local"

from pyrecaudo._transport import JsonTransport, Transport
from pyrecaudo.cache import CacheRecord, FileCache, LocalCache, MemoryCache
from pyrecaudo.config import RecaudoConfig
from pyrecaudo.connectivity import (
    ConnectivityMonitor,
    ConnectivityStatistics,
    ConnectivityStatus,
    ServiceStatus,
)
from pyrecaudo.exceptions import (
    CacheCorruptionError,
    DataIntegrityError,
    InvalidArgumentError,
    InvalidStateError,
    NetworkError,
    RecaudoConfigError,
    RecaudoError,
)
from pyrecaudo.service import EntityId, HttpEntityService, RemoteService
from pyrecaudo.store import (
    EntityStore,
    ErrorKind,
    SourceOfTruth,
    StoreMode,
    StorePhase,
    StoreState,
)

__all__ = [
    "__version__",
    "CacheCorruptionError",
    "CacheRecord",
    "ConnectivityMonitor",
    "ConnectivityStatistics",
    "ConnectivityStatus",
    "DataIntegrityError",
    "EntityId",
    "EntityStore",
    "ErrorKind",
    "FileCache",
    "HttpEntityService",
    "InvalidArgumentError",
    "InvalidStateError",
    "JsonTransport",
    "LocalCache",
    "MemoryCache",
    "NetworkError",
    "RecaudoConfig",
    "RecaudoConfigError",
    "RecaudoError",
    "RemoteService",
    "ServiceStatus",
    "SourceOfTruth",
    "StoreMode",
    "StorePhase",
    "StoreState",
    "Transport",
]
