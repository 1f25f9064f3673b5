"""Pytest configuration for tests."""
from __future__ import annotations

import socket as _socket_module
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

# Save the real socket.socket before pytest-socket replaces it
_original_socket = _socket_module.socket


def pytest_load_initial_conftests(early_config, parser, args):
    """Restore socket before plugins initialize."""
    _socket_module.socket = _original_socket


def pytest_configure(config):
    """Configure pytest."""
    _socket_module.socket = _original_socket
    config.addinivalue_line("markers", "unit: Simple unit tests without async/network requirements")


def _mock_state(value: Any, attributes: dict[str, Any] | None = None) -> MagicMock:
    state = MagicMock()
    state.state = value
    state.attributes = attributes or {}
    return state


@pytest.fixture
def states() -> dict[str, MagicMock]:
    """Entity states served by the mocked hass."""
    return {}


@pytest.fixture
def set_state(states: dict[str, MagicMock]) -> Callable[..., None]:
    """Set an entity state on the mocked hass."""

    def _set(entity_id: str, value: Any, **attributes: Any) -> None:
        states[entity_id] = _mock_state(value, attributes)

    return _set


@pytest.fixture
def mock_hass(states: dict[str, MagicMock]) -> MagicMock:
    """MagicMock hass reading states from the states fixture."""
    hass = MagicMock()
    hass.states.get.side_effect = states.get
    hass.services.async_call = AsyncMock()
    hass.data = {}
    return hass
