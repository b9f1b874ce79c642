"""Pytest configuration and shared fixtures for service-client-core tests."""

import asyncio

import pytest


@pytest.fixture(autouse=True)
def clear_env(monkeypatch):
    """Auto-cleanup: Clear client-related environment variables before each test.

    This prevents a developer's shell or .env file from leaking into config tests.
    """
    import os

    test_prefixes = ("TEST_", "SERVICE_CLIENT_")

    for key in list(os.environ.keys()):
        if any(key.startswith(prefix) for prefix in test_prefixes):
            monkeypatch.delenv(key, raising=False)

    yield


@pytest.fixture
def recorded_sleeps(monkeypatch):
    """Replace asyncio.sleep so backoff delays are recorded instead of waited out."""
    delays: list[float] = []
    original_sleep = asyncio.sleep

    async def fake_sleep(delay, *args, **kwargs):
        delays.append(delay)
        await original_sleep(0)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return delays
