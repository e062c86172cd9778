from __future__ import annotations

from pathlib import Path

import pytest

from pyrecaudo.config import RecaudoConfig
from pyrecaudo.exceptions import RecaudoConfigError


def test_defaults() -> None:
    config = RecaudoConfig()
    assert config.probe_timeout == 5.0
    assert config.status_validity == 300
    assert config.cache_dir is None
    assert config.health_url("sector") == "http://localhost:8080/api/sector/health"
    assert config.health_url("unknown") == "http://localhost:8080/api/health"


def test_trailing_slash_stripped_and_absolute_health_urls_kept() -> None:
    config = RecaudoConfig(
        base_url="https://rentas.example.gob/",
        health_endpoints={"default": "/health", "caja": "https://caja.example.gob/ping"},
    )
    assert config.base_url == "https://rentas.example.gob"
    assert config.health_url("caja") == "https://caja.example.gob/ping"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"base_url": ""},
        {"retries": 0},
        {"probe_timeout": 0},
        {"status_validity": -1},
        {"health_endpoints": {"sector": "/x"}},
    ],
)
def test_invalid_values_rejected(kwargs: dict[str, object]) -> None:
    with pytest.raises(RecaudoConfigError):
        RecaudoConfig(**kwargs)  # type: ignore[arg-type]


def test_from_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("RECAUDO_BASE_URL", "http://api.test")
    monkeypatch.setenv("RECAUDO_RETRIES", "5")
    monkeypatch.setenv("RECAUDO_PROBE_TIMEOUT", "2.5")
    monkeypatch.setenv("RECAUDO_CACHE_DIR", str(tmp_path))
    monkeypatch.setenv("RECAUDO_HEALTH_ENDPOINTS", "caja=/api/caja/health, predio=/api/predio/health")

    config = RecaudoConfig.from_env(retries=2)

    assert config.base_url == "http://api.test"
    assert config.retries == 2
    assert config.probe_timeout == 2.5
    assert config.cache_dir == tmp_path
    assert config.health_url("caja") == "http://api.test/api/caja/health"
    assert "default" in config.health_endpoints


def test_from_env_rejects_bad_numbers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RECAUDO_REQUEST_TIMEOUT", "soon")
    with pytest.raises(RecaudoConfigError):
        RecaudoConfig.from_env()


def test_from_env_rejects_bad_health_entries(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RECAUDO_HEALTH_ENDPOINTS", "caja")
    with pytest.raises(RecaudoConfigError):
        RecaudoConfig.from_env()
