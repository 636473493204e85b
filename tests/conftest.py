"""Pytest configuration and shared fixtures for mockgen tests.

Builders and test doubles live in ``tests.helpers``; this module wires
them into fixtures.
"""

from __future__ import annotations

from collections.abc import Callable, Generator

import pytest

from tests.helpers import FakeSurface


@pytest.fixture
def fake_surfaces() -> list[FakeSurface]:
    """Surfaces created by the surface factory, in creation order."""
    return []


@pytest.fixture
def surface_factory(fake_surfaces: list[FakeSurface]) -> Callable[[], FakeSurface]:
    """Factory creating a fresh FakeSurface per capture run."""

    def factory() -> FakeSurface:
        surface = FakeSurface()
        fake_surfaces.append(surface)
        return surface

    return factory


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Generator[pytest.MonkeyPatch, None, None]:
    """Remove mockgen environment variables for the duration of a test."""
    for name in ("AI_API_KEY", "MOCKGEN_ALLOWED_HOSTS", "MOCKGEN_HEADLESS", "MOCKGEN_DEFAULT_URL"):
        monkeypatch.delenv(name, raising=False)
    yield monkeypatch
