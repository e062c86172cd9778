"""Internal constants shared across the library."""

BASE_URL = "http://localhost:8080"
USER_AGENT = "pyrecaudo/1.0"

#: Hard ceiling for a single health probe, in seconds.
PROBE_TIMEOUT_S: float = 5.0

#: How long a probe result stays valid before a re-probe is forced (5 minutes).
STATUS_VALIDITY_S: float = 5 * 60

DEFAULT_REQUEST_TIMEOUT_S: float = 30.0
DEFAULT_RETRIES = 3

# Exponential backoff between transport retries: 1s, 2s, 4s ... capped at 10s.
_BACKOFF_BASE_S = 1.0
_BACKOFF_CAP_S = 10.0

DEFAULT_SERVICE = "default"

DEFAULT_HEALTH_ENDPOINTS: dict[str, str] = {
    DEFAULT_SERVICE: "/api/health",
    "sector": "/api/sector/health",
    "barrio": "/api/barrio/health",
    "contribuyente": "/api/contribuyente/health",
}


def backoff_delay(attempt: int) -> float:
    """Delay in seconds to wait after the given failed attempt (1-based).

    Raises :class:`ValueError` for attempts below 1.
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    return min(_BACKOFF_BASE_S * 2 ** (attempt - 1), _BACKOFF_CAP_S)
