"""Pytest configuration and fixtures.

Provides environment isolation, logging configuration, and the shared
settings/adaptor fixtures. Test doubles live in tests/helpers.py.
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import suppress
import logging
import os
from typing import Any

import pytest

from gemrelay import GeminiAdaptor, GeminiSettings, RelayInfo
from tests.helpers import FakeFetcher

# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    with suppress(Exception):
        monkeypatch.setattr(
            "dotenv.load_dotenv", lambda *_args, **_kwargs: False, raising=False
        )


@pytest.fixture(autouse=True)
def isolate_provider_env(request, monkeypatch):
    """Ensure a clean provider environment for each test.

    Clears GEMINI_* env vars to prevent test pollution.
    Opt-out: @pytest.mark.allow_env_pollution
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return
    for key in list(os.environ.keys()):
        if key.startswith("GEMINI_"):
            monkeypatch.delenv(key, raising=False)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# =============================================================================
# Shared fixtures
# =============================================================================


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def settings() -> GeminiSettings:
    """Settings with the thinking adapter on and a fixed test key."""
    return GeminiSettings(
        api_key="test-key",
        thinking_adapter_enabled=True,
        version_settings={"default": "v1beta", "gemini-1.5-pro": "v1"},
    )


@pytest.fixture
def adaptor(settings: GeminiSettings, fetcher: FakeFetcher) -> GeminiAdaptor:
    return GeminiAdaptor(settings, fetcher=fetcher)


@pytest.fixture
def make_info(adaptor: GeminiAdaptor) -> Callable[..., RelayInfo]:
    """Return a factory for initialized RelayInfo objects."""

    def _make(model: str, **kwargs: Any) -> RelayInfo:
        info = RelayInfo(origin_model=model, **kwargs)
        adaptor.init(info)
        return info

    return _make
