"""Network reachability and remote-service health tracking.

A :class:`ConnectivityMonitor` is created once by the application's
composition root and injected wherever reachability matters. It answers two
questions:

* *Is the network up?* A flag flipped by :meth:`ConnectivityMonitor.set_online`
  whenever the environment reports a change. It is never polled.
* *Is service X up?* A health probe result cached per service for
  ``config.status_validity`` seconds.

Probe failures of any kind are reported as "unavailable" and never raised.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import aiohttp
from pydantic import BaseModel, ConfigDict, Field

from pyrecaudo.config import RecaudoConfig
from pyrecaudo.exceptions import InvalidArgumentError

_logger = logging.getLogger(__name__)

ConnectivityListener = Callable[[bool, str | None], None]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ServiceStatus(BaseModel):
    """Last probe outcome for one named service."""

    model_config = ConfigDict(extra="forbid")

    available: bool = False
    last_check: datetime | None = None
    response_time_ms: float | None = None
    error: str | None = None


class ConnectivityStatus(BaseModel):
    """Snapshot of everything the monitor knows."""

    model_config = ConfigDict(extra="forbid")

    online: bool = True
    service_available: dict[str, bool] = Field(default_factory=dict)
    services: dict[str, ServiceStatus] = Field(default_factory=dict)
    last_checked_at: datetime | None = None


class ConnectivityStatistics(BaseModel):
    model_config = ConfigDict(frozen=True)

    online: bool
    total_services: int
    available_services: int
    average_response_time_ms: float
    last_check: datetime | None


class ConnectivityMonitor:
    """Tracks network reachability and per-service health.

    Usage::

        async with aiohttp.ClientSession() as http:
            monitor = ConnectivityMonitor(config, http)
            if await monitor.check_service_availability("sector"):
                ...
    """

    def __init__(
        self,
        config: RecaudoConfig,
        http_session: aiohttp.ClientSession,
        *,
        online: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._config = config
        self._http = http_session
        self._clock = clock
        self._status = ConnectivityStatus(online=online)
        self._validity = timedelta(seconds=config.status_validity)
        self._listeners: list[ConnectivityListener] = []
        self._inflight: dict[str, asyncio.Task[bool]] = {}
        self._background: set[asyncio.Task[object]] = set()
        self._monitor_task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Environment connectivity
    # ------------------------------------------------------------------

    def is_online(self) -> bool:
        """Last known environment connectivity flag."""
        return self._status.online

    def set_online(self, online: bool) -> None:
        """Record an environment online/offline notification.

        Going offline marks every known service unavailable. Coming back
        online schedules a background sweep of all services when an event
        loop is running.
        """
        if online == self._status.online:
            return
        self._status.online = online
        if online:
            _logger.info("Network connection restored")
            self._spawn_sweep()
        else:
            _logger.warning("Network connection lost")
            self._mark_all_unavailable("No network connection")
        self._notify(online)

    def _spawn_sweep(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task: asyncio.Task[object] = loop.create_task(self.check_all_services())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _mark_all_unavailable(self, error: str) -> None:
        now = self._clock()
        for name in set(self._config.health_endpoints) | set(self._status.services):
            self._record(name, available=False, now=now, error=error)

    # ------------------------------------------------------------------
    # Health probes
    # ------------------------------------------------------------------

    def _record(
        self,
        name: str,
        *,
        available: bool,
        now: datetime,
        response_time_ms: float | None = None,
        error: str | None = None,
    ) -> None:
        self._status.services[name] = ServiceStatus(
            available=available,
            last_check=now,
            response_time_ms=response_time_ms,
            error=error,
        )
        self._status.service_available[name] = available
        self._status.last_checked_at = now

    def _cached(self, name: str) -> ServiceStatus | None:
        status = self._status.services.get(name)
        if status is None or status.last_check is None:
            return None
        if self._clock() - status.last_check >= self._validity:
            return None
        return status

    async def _probe(self, name: str) -> bool:
        url = self._config.health_url(name)
        started = time.monotonic()
        error: str | None = None
        available = False
        try:
            async with asyncio.timeout(self._config.probe_timeout):
                async with self._http.get(url, headers={"accept": "application/json"}) as resp:
                    status = resp.status
            available = 200 <= status < 300
            if not available:
                error = f"HTTP {status}"
        except TimeoutError:
            error = "Timeout"
        except Exception as exc:  # noqa: BLE001 - any probe failure means unavailable
            error = str(exc) or type(exc).__name__
            _logger.debug("Health probe for %s failed: %s", name, error)

        elapsed_ms = (time.monotonic() - started) * 1000.0
        self._record(
            name,
            available=available,
            now=self._clock(),
            response_time_ms=round(elapsed_ms, 1),
            error=error,
        )
        _logger.debug(
            "Service %s: %s (%.0fms)",
            name,
            "available" if available else "unavailable",
            elapsed_ms,
        )
        return available

    async def check_service_availability(self, name: str, force_check: bool = False) -> bool:
        """Return whether the named remote capability is reachable.

        Offline environments answer ``False`` without touching the network.
        A cached answer younger than ``status_validity`` is reused unless
        *force_check* is set. Concurrent probes for the same service share
        one request.
        """
        if not name or not name.strip():
            raise InvalidArgumentError("service name must be non-empty")
        if not self._status.online:
            return False

        if not force_check:
            cached = self._cached(name)
            if cached is not None:
                return cached.available

        task = self._inflight.get(name)
        if task is None:
            task = asyncio.ensure_future(self._probe(name))
            self._inflight[name] = task
            task.add_done_callback(lambda _t, _name=name: self._inflight.pop(_name, None))
        return await asyncio.shield(task)

    async def check_all_services(self) -> dict[str, ServiceStatus]:
        """Probe every configured service concurrently and notify listeners."""
        if not self._status.online:
            self._mark_all_unavailable("No network connection")
            return self.get_all_service_status()

        names = list(self._config.health_endpoints)
        await asyncio.gather(*(self.check_service_availability(name, force_check=True) for name in names))
        self._notify(self._status.online)
        return self.get_all_service_status()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_status(self) -> ConnectivityStatus:
        return self._status.model_copy(deep=True)

    def get_service_status(self, name: str) -> ServiceStatus | None:
        status = self._status.services.get(name)
        return status.model_copy() if status is not None else None

    def get_all_service_status(self) -> dict[str, ServiceStatus]:
        return {name: status.model_copy() for name, status in self._status.services.items()}

    def is_service_available(self, name: str) -> bool:
        """Last known probe result, without probing."""
        return self._status.service_available.get(name, False)

    def any_service_available(self) -> bool:
        if not self._status.online:
            return False
        return any(self._status.service_available.values())

    def statistics(self) -> ConnectivityStatistics:
        statuses = list(self._status.services.values())
        times = [s.response_time_ms for s in statuses if s.response_time_ms is not None]
        average = round(sum(times) / len(times), 1) if times else 0.0
        return ConnectivityStatistics(
            online=self._status.online,
            total_services=len(statuses),
            available_services=sum(1 for s in statuses if s.available),
            average_response_time_ms=average,
            last_check=self._status.last_checked_at,
        )

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, callback: ConnectivityListener) -> Callable[[], None]:
        """Register *callback* and call it with the current state.

        Returns a function that removes the listener.
        """
        self._listeners.append(callback)
        callback(self._status.online, None)

        def _remove() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(callback)

        return _remove

    def _notify(self, online: bool, name: str | None = None) -> None:
        for listener in list(self._listeners):
            try:
                listener(online, name)
            except Exception:
                _logger.exception("Connectivity listener raised")

    # ------------------------------------------------------------------
    # Periodic monitoring
    # ------------------------------------------------------------------

    @property
    def is_monitoring(self) -> bool:
        return self._monitor_task is not None and not self._monitor_task.done()

    def start_monitoring(self, interval: float = 60.0) -> None:
        """Sweep all services every *interval* seconds until stopped."""
        if interval <= 0:
            raise InvalidArgumentError(f"interval must be positive, got {interval}")
        self.stop_monitoring()
        self._monitor_task = asyncio.get_running_loop().create_task(self._monitor_loop(interval))
        _logger.info("Connectivity monitoring started every %.0fs", interval)

    async def _monitor_loop(self, interval: float) -> None:
        while True:
            await self.check_all_services()
            await asyncio.sleep(interval)

    def stop_monitoring(self) -> None:
        if self._monitor_task is not None:
            self._monitor_task.cancel()
            self._monitor_task = None
            _logger.info("Connectivity monitoring stopped")

    async def aclose(self) -> None:
        """Stop monitoring and wait for background sweeps to finish."""
        self.stop_monitoring()
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
