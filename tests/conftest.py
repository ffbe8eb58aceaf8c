"""Shared test fixtures and configuration for the Talking Timer test suite.

This module provides reusable fixtures for common test scenarios including:
- A controllable millisecond clock for the dispatcher
- MQTT and Home Assistant configuration objects
- Mock paho/httpx clients
"""

from __future__ import annotations

import logging
from typing import Any
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from talking_timer.countdown.config import HomeAssistantConfig, MqttConfig

# ============================================================================
# Pytest Configuration
# ============================================================================


@pytest.fixture(scope="session")
def anyio_backend():
    """Configure anyio backend for async tests."""
    return "asyncio"


# ============================================================================
# Clock Fixtures
# ============================================================================


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, milliseconds: float) -> float:
        self.now += milliseconds
        return self.now


@pytest.fixture
def clock():
    """Fake clock starting at t=0 ms."""
    return FakeClock()


# ============================================================================
# Logging Fixtures
# ============================================================================


@pytest.fixture
def mock_logger():
    """Create a mock logger for testing.

    Returns a Mock with spec=logging.Logger to ensure only valid
    logger methods can be called.
    """
    return Mock(spec=logging.Logger)


# ============================================================================
# Home Assistant Fixtures
# ============================================================================


@pytest.fixture
def ha_config():
    """Home Assistant configuration with TTS routed to a kitchen speaker."""
    return HomeAssistantConfig(
        base_url="http://homeassistant.local:8123",
        token="test_token_123",
        verify_ssl=True,
        tts_entity="tts.piper",
        media_player_entity="media_player.kitchen",
    )


@pytest.fixture
def mock_ha_response():
    """Create a factory for mock Home Assistant API responses.

    Usage:
        response = mock_ha_response(status_code=200, json_data={"state": "on"})
    """

    def _create_response(
        status_code: int = 200,
        json_data: Any = None,
        text: str = "",
        content_type: str = "application/json",
    ) -> Mock:
        response = Mock(spec=httpx.Response)
        response.status_code = status_code
        response.json = Mock(return_value=json_data if json_data is not None else {})
        response.text = text
        response.headers = {"content-type": content_type}
        return response

    return _create_response


@pytest.fixture
def mock_httpx_client():
    """Create a mock httpx.AsyncClient for Home Assistant tests."""
    return AsyncMock(spec=httpx.AsyncClient)


# ============================================================================
# MQTT Fixtures
# ============================================================================


@pytest.fixture
def mqtt_config():
    """Basic MQTT configuration for testing."""
    return MqttConfig(
        host="localhost",
        port=1883,
        username=None,
        password=None,
        tls_enabled=False,
        cert=None,
        key=None,
        ca_cert=None,
        topic_base="talking-timer/test-device",
    )

