from __future__ import annotations

import json
from typing import Any

import aiohttp
import pytest

from pyrecaudo._constants import backoff_delay
from pyrecaudo._transport import JsonTransport
from pyrecaudo.config import RecaudoConfig
from pyrecaudo.exceptions import NetworkError


class _FakeResponse:
    def __init__(self, status: int, text: str) -> None:
        self.status = status
        self._text = text

    async def __aenter__(self) -> _FakeResponse:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None

    async def text(self) -> str:
        return self._text


class _RaisingResponse:
    def __init__(self, error: Exception) -> None:
        self._error = error

    async def __aenter__(self) -> _FakeResponse:
        raise self._error

    async def __aexit__(self, *exc: Any) -> None:
        return None


class _ScriptedSession:
    """Replays one scripted outcome per request."""

    def __init__(self, *outcomes: tuple[int, Any] | Exception) -> None:
        self._outcomes = list(outcomes)
        self.requests: list[dict[str, Any]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> Any:
        self.requests.append({"method": method, "url": url, **kwargs})
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            return _RaisingResponse(outcome)
        status, body = outcome
        text = body if isinstance(body, str) else json.dumps(body)
        return _FakeResponse(status, text)


class _Offline:
    def is_online(self) -> bool:
        return False


def _transport(session: _ScriptedSession, retries: int = 3, **kwargs: Any) -> tuple[JsonTransport, list[float]]:
    sleeps: list[float] = []

    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    config = RecaudoConfig(base_url="http://backend.test/", retries=retries)
    return JsonTransport(config, session, sleep=_sleep, **kwargs), sleeps  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_json_response_is_decoded() -> None:
    session = _ScriptedSession((200, [{"codigo": 1}]))
    transport, _ = _transport(session)

    body = await transport.request("get", "/api/sector", params={"search": "centro"})

    assert body == [{"codigo": 1}]
    sent = session.requests[0]
    assert sent["method"] == "GET"
    assert sent["url"] == "http://backend.test/api/sector"
    assert sent["params"] == {"search": "centro"}
    assert sent["headers"]["accept"] == "application/json"


@pytest.mark.asyncio
async def test_no_content_decodes_to_none() -> None:
    transport, _ = _transport(_ScriptedSession((204, "")))
    assert await transport.request("DELETE", "/api/sector/1") is None


@pytest.mark.asyncio
async def test_client_error_is_not_retried() -> None:
    session = _ScriptedSession((404, {"message": "Sector no encontrado"}))
    transport, sleeps = _transport(session)

    with pytest.raises(NetworkError) as exc_info:
        await transport.request("GET", "/api/sector/9")

    exc = exc_info.value
    assert exc.status_code == 404
    assert exc.endpoint == "/api/sector/9"
    assert "Sector no encontrado" in str(exc)
    assert sleeps == []


@pytest.mark.asyncio
async def test_server_errors_are_retried_with_backoff() -> None:
    session = _ScriptedSession((503, "busy"), (500, "boom"), (200, {"ok": True}))
    transport, sleeps = _transport(session)

    assert await transport.request("GET", "/api/health") == {"ok": True}
    assert sleeps == [backoff_delay(1), backoff_delay(2)] == [1.0, 2.0]


@pytest.mark.asyncio
async def test_retries_exhausted_raises_last_error() -> None:
    session = _ScriptedSession((429, "slow down"), (429, "slow down"))
    transport, sleeps = _transport(session, retries=2)

    with pytest.raises(NetworkError) as exc_info:
        await transport.request("GET", "/api/sector")

    assert exc_info.value.status_code == 429
    assert sleeps == [1.0]


@pytest.mark.asyncio
async def test_connection_errors_are_wrapped() -> None:
    session = _ScriptedSession(aiohttp.ClientConnectionError("refused"))
    transport, _ = _transport(session, retries=1)

    with pytest.raises(NetworkError) as exc_info:
        await transport.request("GET", "/api/sector")

    assert exc_info.value.status_code is None
    assert isinstance(exc_info.value.__cause__, aiohttp.ClientConnectionError)


@pytest.mark.asyncio
async def test_invalid_json_is_network_error() -> None:
    transport, _ = _transport(_ScriptedSession((200, "<html>proxy error</html>")))

    with pytest.raises(NetworkError, match="Invalid JSON"):
        await transport.request("GET", "/api/sector")


@pytest.mark.asyncio
async def test_offline_monitor_short_circuits() -> None:
    session = _ScriptedSession()
    transport, _ = _transport(session, monitor=_Offline())

    with pytest.raises(NetworkError, match="No network connection"):
        await transport.request("GET", "/api/sector")

    assert session.requests == []


def test_backoff_is_capped() -> None:
    assert backoff_delay(3) == 4.0
    assert backoff_delay(10) == 10.0
    with pytest.raises(ValueError):
        backoff_delay(0)
