from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any

import aiohttp
import pytest

from pyrecaudo.config import RecaudoConfig
from pyrecaudo.connectivity import ConnectivityMonitor
from pyrecaudo.exceptions import InvalidArgumentError


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class _FakeResponse:
    def __init__(self, status: int, delay: float = 0.0, error: Exception | None = None) -> None:
        self.status = status
        self._delay = delay
        self._error = error

    async def __aenter__(self) -> _FakeResponse:
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


class _FakeSession:
    """Minimal stand-in for ``aiohttp.ClientSession.get``."""

    def __init__(self, status: int = 200, *, delay: float = 0.0, error: Exception | None = None) -> None:
        self.status = status
        self.delay = delay
        self.error = error
        self.urls: list[str] = []

    def get(self, url: str, **_kwargs: Any) -> _FakeResponse:
        self.urls.append(url)
        return _FakeResponse(self.status, self.delay, self.error)


def _config(**overrides: Any) -> RecaudoConfig:
    return RecaudoConfig(
        base_url="http://backend.test",
        health_endpoints={"default": "/api/health", "sector": "/api/sector/health"},
        **overrides,
    )


def _monitor(session: _FakeSession, clock: _Clock | None = None, **kwargs: Any) -> ConnectivityMonitor:
    return ConnectivityMonitor(_config(), session, clock=clock or _Clock(), **kwargs)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_offline_answers_false_without_probing() -> None:
    session = _FakeSession()
    monitor = _monitor(session, online=False)

    assert monitor.is_online() is False
    assert await monitor.check_service_availability("sector") is False
    assert session.urls == []


@pytest.mark.asyncio
async def test_probe_uses_service_specific_url() -> None:
    session = _FakeSession(204)
    monitor = _monitor(session)

    assert await monitor.check_service_availability("sector") is True
    assert await monitor.check_service_availability("predio") is True

    assert session.urls == [
        "http://backend.test/api/sector/health",
        "http://backend.test/api/health",
    ]


@pytest.mark.asyncio
async def test_cached_result_reused_until_validity_expires() -> None:
    session = _FakeSession()
    clock = _Clock()
    monitor = _monitor(session, clock)

    await monitor.check_service_availability("sector")
    clock.advance(299)
    await monitor.check_service_availability("sector")
    assert len(session.urls) == 1

    clock.advance(1)
    await monitor.check_service_availability("sector")
    assert len(session.urls) == 2


@pytest.mark.asyncio
async def test_force_check_bypasses_cache() -> None:
    session = _FakeSession()
    monitor = _monitor(session)

    await monitor.check_service_availability("sector")
    session.status = 503
    assert await monitor.check_service_availability("sector", force_check=True) is False
    assert len(session.urls) == 2


@pytest.mark.asyncio
async def test_non_success_status_is_unavailable() -> None:
    clock = _Clock()
    monitor = _monitor(_FakeSession(500), clock)

    assert await monitor.check_service_availability("sector") is False

    status = monitor.get_service_status("sector")
    assert status is not None
    assert status.available is False
    assert status.error == "HTTP 500"
    assert monitor.get_status().last_checked_at == clock.now


@pytest.mark.asyncio
async def test_network_exception_is_unavailable_not_raised() -> None:
    session = _FakeSession(error=aiohttp.ClientConnectionError("dns failure"))
    monitor = _monitor(session)

    assert await monitor.check_service_availability("sector") is False
    assert monitor.get_status().service_available == {"sector": False}


@pytest.mark.asyncio
async def test_probe_timeout_is_unavailable() -> None:
    session = _FakeSession(delay=1.0)
    monitor = ConnectivityMonitor(_config(probe_timeout=0.01), session, clock=_Clock())  # type: ignore[arg-type]

    assert await monitor.check_service_availability("sector") is False
    status = monitor.get_service_status("sector")
    assert status is not None
    assert status.error == "Timeout"


@pytest.mark.asyncio
async def test_empty_service_name_is_programmer_error() -> None:
    monitor = _monitor(_FakeSession())

    with pytest.raises(InvalidArgumentError):
        await monitor.check_service_availability("  ")


@pytest.mark.asyncio
async def test_concurrent_probes_share_one_request() -> None:
    session = _FakeSession(delay=0.01)
    monitor = _monitor(session)

    results = await asyncio.gather(
        monitor.check_service_availability("sector"),
        monitor.check_service_availability("sector"),
    )

    assert results == [True, True]
    assert len(session.urls) == 1


@pytest.mark.asyncio
async def test_going_offline_marks_services_unavailable_and_notifies() -> None:
    monitor = _monitor(_FakeSession())
    events: list[tuple[bool, str | None]] = []
    monitor.add_listener(lambda online, name: events.append((online, name)))
    await monitor.check_service_availability("sector")

    monitor.set_online(False)

    assert events == [(True, None), (False, None)]
    assert monitor.is_service_available("sector") is False
    assert monitor.any_service_available() is False


@pytest.mark.asyncio
async def test_coming_back_online_sweeps_all_services() -> None:
    session = _FakeSession()
    monitor = _monitor(session, online=False)

    monitor.set_online(True)
    await monitor.aclose()

    assert sorted(session.urls) == [
        "http://backend.test/api/health",
        "http://backend.test/api/sector/health",
    ]


@pytest.mark.asyncio
async def test_check_all_services_and_statistics() -> None:
    monitor = _monitor(_FakeSession())

    statuses = await monitor.check_all_services()

    assert set(statuses) == {"default", "sector"}
    stats = monitor.statistics()
    assert stats.online is True
    assert stats.total_services == 2
    assert stats.available_services == 2
    assert monitor.any_service_available() is True


@pytest.mark.asyncio
async def test_listener_errors_do_not_propagate() -> None:
    monitor = _monitor(_FakeSession())
    calls: list[bool] = []

    def _boom(online: bool, _name: str | None) -> None:
        calls.append(online)
        if len(calls) > 1:
            raise RuntimeError("listener bug")

    remove = monitor.add_listener(_boom)
    monitor.set_online(False)
    remove()
    monitor.set_online(True)
    await monitor.aclose()

    assert calls == [True, False]


@pytest.mark.asyncio
async def test_periodic_monitoring_can_be_stopped() -> None:
    session = _FakeSession()
    monitor = _monitor(session)

    monitor.start_monitoring(interval=3600)
    await asyncio.sleep(0.01)
    assert monitor.is_monitoring
    monitor.stop_monitoring()

    assert not monitor.is_monitoring
    assert len(session.urls) == 2

    with pytest.raises(InvalidArgumentError):
        monitor.start_monitoring(interval=0)
