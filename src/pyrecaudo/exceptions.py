"""Custom exception hierarchy for pyrecaudo."""

from __future__ import annotations


class RecaudoError(Exception):
    """Base exception for all pyrecaudo errors."""


class RecaudoConfigError(RecaudoError):
    """Invalid or missing configuration."""


class NetworkError(RecaudoError):
    """Remote service unreachable or answered with a non-2xx status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Whether the same request may succeed if sent again.

        Connection failures and timeouts carry no status code. Among HTTP
        failures only ``429`` and ``5xx`` are worth retrying.
        """
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500


class DataIntegrityError(RecaudoError):
    """Payload has the wrong shape or was rejected by a domain validator."""


class CacheCorruptionError(RecaudoError):
    """Persisted snapshot could not be decoded.

    Never escapes :class:`~pyrecaudo.cache.LocalCache`; callers only ever
    see a cache miss.
    """


class InvalidArgumentError(RecaudoError, ValueError):
    """Caller supplied a bad identifier or payload."""


class InvalidStateError(RecaudoError):
    """Operation invoked in a state that does not support it.

    For example saving in edit mode without a selection, or a selected
    record whose identifier cannot be resolved.
    """
