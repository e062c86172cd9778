"""Client configuration for pyrecaudo."""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Any

from pyrecaudo._constants import (
    BASE_URL,
    DEFAULT_HEALTH_ENDPOINTS,
    DEFAULT_REQUEST_TIMEOUT_S,
    DEFAULT_RETRIES,
    DEFAULT_SERVICE,
    PROBE_TIMEOUT_S,
    STATUS_VALIDITY_S,
    USER_AGENT,
)
from pyrecaudo.exceptions import RecaudoConfigError


def _env_float(env_key: str, value: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise RecaudoConfigError(f"{env_key} must be a number, got {value!r}") from exc


def _env_int(env_key: str, value: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise RecaudoConfigError(f"{env_key} must be an integer, got {value!r}") from exc


def _parse_health_endpoints(value: str) -> dict[str, str]:
    """Parse ``name=path,name=path`` into a mapping."""
    endpoints: dict[str, str] = {}
    for chunk in value.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        name, sep, path = chunk.partition("=")
        if not sep or not name.strip() or not path.strip():
            raise RecaudoConfigError(f"Invalid health endpoint entry {chunk!r} (expected name=path)")
        endpoints[name.strip()] = path.strip()
    return endpoints


@dataclasses.dataclass(frozen=True)
class RecaudoConfig:
    """Data-access configuration.

    Parameters
    ----------
    base_url : str
        Backend base URL, without a trailing slash.
    request_timeout : float
        Per-request timeout in seconds for functional calls.
    retries : int
        Maximum attempts per functional request (``1`` disables retries).
    probe_timeout : float
        Hard ceiling in seconds for a single health probe.
    status_validity : float
        Seconds a probe result stays fresh before a re-probe is forced.
    health_endpoints : dict[str, str]
        Health-check paths (or absolute URLs) keyed by service name.
        Must contain a ``"default"`` entry used for unknown services.
    cache_dir : Path or None
        Directory for :class:`~pyrecaudo.cache.FileCache` snapshots.
        ``None`` selects the in-memory cache.
    user_agent : str
        User-Agent header sent with every request.
    """

    base_url: str = BASE_URL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT_S
    retries: int = DEFAULT_RETRIES
    probe_timeout: float = PROBE_TIMEOUT_S
    status_validity: float = STATUS_VALIDITY_S
    health_endpoints: dict[str, str] = dataclasses.field(default_factory=lambda: dict(DEFAULT_HEALTH_ENDPOINTS))
    cache_dir: Path | None = None
    user_agent: str = USER_AGENT

    def __post_init__(self) -> None:
        if not self.base_url:
            raise RecaudoConfigError("base_url must be non-empty")
        if self.base_url.endswith("/"):
            object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        if self.retries < 1:
            raise RecaudoConfigError(f"retries must be >= 1, got {self.retries}")
        if self.request_timeout <= 0 or self.probe_timeout <= 0:
            raise RecaudoConfigError("timeouts must be positive")
        if self.status_validity < 0:
            raise RecaudoConfigError(f"status_validity must be >= 0, got {self.status_validity}")
        if DEFAULT_SERVICE not in self.health_endpoints:
            raise RecaudoConfigError(f"health_endpoints must define a {DEFAULT_SERVICE!r} entry")
        if self.cache_dir is not None and not isinstance(self.cache_dir, Path):
            object.__setattr__(self, "cache_dir", Path(self.cache_dir))

    def health_url(self, service: str) -> str:
        """Absolute health-check URL for *service*, falling back to the default."""
        path = self.health_endpoints.get(service) or self.health_endpoints[DEFAULT_SERVICE]
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}{path}"

    @classmethod
    def from_env(cls, **overrides: Any) -> RecaudoConfig:
        """Create configuration from environment variables.

        Reads optional ``RECAUDO_*`` variables. Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        RecaudoConfig
            Populated configuration.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        base_url = env.get("RECAUDO_BASE_URL")
        if base_url is not None:
            config_kwargs["base_url"] = base_url
        user_agent = env.get("RECAUDO_USER_AGENT")
        if user_agent is not None:
            config_kwargs["user_agent"] = user_agent

        _FLOAT_FIELDS = {
            "RECAUDO_REQUEST_TIMEOUT": "request_timeout",
            "RECAUDO_PROBE_TIMEOUT": "probe_timeout",
            "RECAUDO_STATUS_VALIDITY": "status_validity",
        }
        for env_key, field_name in _FLOAT_FIELDS.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_float(env_key, val)

        retries_env = env.get("RECAUDO_RETRIES")
        if retries_env is not None and "retries" not in overrides:
            config_kwargs["retries"] = _env_int("RECAUDO_RETRIES", retries_env)

        cache_dir_env = env.get("RECAUDO_CACHE_DIR")
        if cache_dir_env and "cache_dir" not in overrides:
            config_kwargs["cache_dir"] = Path(cache_dir_env).expanduser()

        # Extra endpoints are layered over the defaults, not replacing them.
        health_env = env.get("RECAUDO_HEALTH_ENDPOINTS")
        if health_env and "health_endpoints" not in overrides:
            endpoints = dict(DEFAULT_HEALTH_ENDPOINTS)
            endpoints.update(_parse_health_endpoints(health_env))
            config_kwargs["health_endpoints"] = endpoints

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
