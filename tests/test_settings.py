"""Tests for configuration and logging setup."""

import logging

import pytest

from threadline.api.dependencies import get_poll_settings
from threadline.core.logging_config import configure_logging, resolve_level
from threadline.core.settings import Settings


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("BLUESKY_API_URL", "POLL_INITIAL_INTERVAL_SECONDS", "PUBLIC_URL", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.bluesky_api_url == "https://public.api.bsky.app"
    assert settings.request_timeout_seconds == 10.0
    assert settings.poll_initial_interval_seconds == 30
    assert settings.poll_max_interval_seconds == 120
    assert settings.poll_disable_after_seconds == 1800
    assert settings.max_root_hops == 1000


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BLUESKY_API_URL", "http://localhost:2584")
    monkeypatch.setenv("POLL_ENABLED", "false")
    monkeypatch.setenv("LOG_LEVEL", " DEBUG ")
    monkeypatch.setenv("PUBLIC_URL", "https://threads.example/")

    settings = Settings(_env_file=None)

    assert settings.bluesky_api_url == "http://localhost:2584"
    assert settings.poll_enabled is False
    assert settings.log_level == "debug"
    assert settings.public_base_url == "https://threads.example"


def test_poll_settings_follow_configuration(mocker) -> None:
    mocker.patch("threadline.api.dependencies.settings.poll_enabled", False)
    assert get_poll_settings() is None

    mocker.patch("threadline.api.dependencies.settings.poll_enabled", True)
    mocker.patch("threadline.api.dependencies.settings.poll_initial_interval_seconds", 60)
    mocker.patch("threadline.api.dependencies.settings.poll_max_interval_seconds", 30)
    polling = get_poll_settings()

    assert polling is not None
    assert polling.initial_interval == 60.0
    assert polling.max_interval == 60.0


@pytest.mark.parametrize(
    ("name", "level"),
    [("trace", logging.DEBUG), ("info", logging.INFO), ("WARN", logging.WARNING), ("error", logging.ERROR)],
)
def test_resolve_level(name: str, level: int) -> None:
    assert resolve_level(name) == level


def test_resolve_level_rejects_unknown() -> None:
    with pytest.raises(ValueError, match="failed to parse log level"):
        resolve_level("loud")


def test_configure_logging_installs_one_handler() -> None:
    root = logging.getLogger()
    previous = root.level
    try:
        configure_logging("debug")
        configure_logging("warning")

        ours = [handler for handler in root.handlers if getattr(handler, "_threadline", False)]
        assert len(ours) == 1
        assert root.level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        for handler in list(root.handlers):
            if getattr(handler, "_threadline", False):
                root.removeHandler(handler)
        root.setLevel(previous)
