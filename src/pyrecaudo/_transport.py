"""JSON-over-HTTP transport with retries and connectivity short-circuit."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any, Protocol

import aiohttp

from pyrecaudo._constants import backoff_delay
from pyrecaudo.config import RecaudoConfig
from pyrecaudo.exceptions import NetworkError

if TYPE_CHECKING:
    from pyrecaudo.connectivity import ConnectivityMonitor

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by remote services.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`JsonTransport`) concrete.
    """

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        json_body: Any = None,
    ) -> Any:
        ...


def _error_message(text: str, status: int) -> str:
    """Pick the backend's ``message`` field when the error body is JSON."""
    try:
        body = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        body = None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if isinstance(message, str) and message.strip():
            return message.strip()
    return text[:200].strip() or f"HTTP {status}"


class JsonTransport:
    """HTTP transport that sends and receives JSON documents."""

    def __init__(
        self,
        config: RecaudoConfig,
        http_session: aiohttp.ClientSession,
        *,
        monitor: ConnectivityMonitor | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._http = http_session
        self._monitor = monitor
        self._sleep = sleep

    async def _send_once(
        self,
        method: str,
        url: str,
        endpoint: str,
        params: Mapping[str, str] | None,
        json_body: Any,
    ) -> Any:
        headers: dict[str, str] = {
            "accept": "application/json",
            "user-agent": self._config.user_agent,
        }
        timeout = aiohttp.ClientTimeout(total=self._config.request_timeout)

        try:
            async with self._http.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=headers,
                timeout=timeout,
            ) as resp:
                text = await resp.text()
                status = resp.status
        except aiohttp.ClientError as exc:
            raise NetworkError(f"Request to {endpoint} failed: {exc}", endpoint=endpoint) from exc
        except TimeoutError as exc:
            raise NetworkError(f"Request to {endpoint} timed out", endpoint=endpoint) from exc

        if not 200 <= status < 300:
            raise NetworkError(
                f"HTTP {status} from {endpoint}: {_error_message(text, status)}",
                status_code=status,
                endpoint=endpoint,
            )

        if status == 204 or not text.strip():
            return None

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise NetworkError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                status_code=status,
                endpoint=endpoint,
            ) from exc

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        json_body: Any = None,
    ) -> Any:
        """Send a JSON request, retrying transient failures.

        Network errors, timeouts, ``429`` and ``5xx`` answers are retried
        with exponential backoff up to ``config.retries`` attempts. Other
        ``4xx`` answers fail on the first attempt.
        """
        method = method.upper()
        url = f"{self._config.base_url}{path}"
        retries = self._config.retries

        for attempt in range(1, retries + 1):
            if self._monitor is not None and not self._monitor.is_online():
                raise NetworkError("No network connection", endpoint=path)

            _logger.debug("%s %s (attempt %d/%d)", method, url, attempt, retries)
            try:
                return await self._send_once(method, url, path, params, json_body)
            except NetworkError as exc:
                if attempt >= retries or not exc.is_retryable:
                    _logger.debug("%s %s failed: %s", method, url, exc)
                    raise
                delay = backoff_delay(attempt)
                _logger.info("%s %s failed (%s), retrying in %.1fs", method, url, exc, delay)
                await self._sleep(delay)

        # Unreachable: the loop either returns or raises.
        raise NetworkError(f"Request to {path} failed", endpoint=path)
