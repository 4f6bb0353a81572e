"""Pytest configuration and shared fixtures for all tests."""

import pytest


@pytest.fixture(autouse=True)
def disable_sentry_for_tests(monkeypatch):
    """Disable Sentry telemetry for all tests.

    This fixture runs automatically for every test so that a SENTRY_DSN in
    the developer's environment never sends events from test runs. Tests that
    exercise Sentry setup (test_sentry_filtering.py) set TELEMETRY=true
    themselves and patch ``sentry_sdk.init``.
    """
    monkeypatch.setenv("TELEMETRY", "false")
    monkeypatch.delenv("SENTRY_DSN", raising=False)
