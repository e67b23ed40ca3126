"""Pytest configuration and fixtures for Vidya tests."""

import pytest


@pytest.fixture(scope="session", autouse=True)
def setup_telemetry():
    """Setup OpenTelemetry for all tests.

    This fixture sets up telemetry once per test session so traced code
    paths run against a real tracer provider.
    """
    from vidya.observability.tracing import setup_telemetry

    setup_telemetry(
        service_name="vidya-test",
        environment="test",
        enable_console_export=False,  # Keep test output clean
        otlp_endpoint=None,  # No external OTLP collector for tests
    )

    yield
