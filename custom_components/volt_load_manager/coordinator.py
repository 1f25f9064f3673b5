"""DataUpdateCoordinator for Volt Load Manager integration."""
from __future__ import annotations

from datetime import timedelta
import logging
from typing import TYPE_CHECKING

from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.update_coordinator import (
    DataUpdateCoordinator,
    UpdateFailed,
)

from .const import DOMAIN, UPDATE_INTERVAL_STATE
from .models import SystemState

if TYPE_CHECKING:
    from .engine import VoltEngine

_LOGGER = logging.getLogger(__name__)

UPDATE_INTERVAL = timedelta(seconds=UPDATE_INTERVAL_STATE)


class VoltLoadManagerCoordinator(DataUpdateCoordinator[SystemState]):
    """Refreshes engine state for entities.

    Engine mutations triggered by services and the scheduler are pushed
    to entities immediately through the engine listener.
    """

    def __init__(self, hass: HomeAssistant, engine: VoltEngine) -> None:
        """Initialize the coordinator.

        Args:
            hass: Home Assistant instance
            engine: Engine owning the system state
        """
        super().__init__(
            hass,
            _LOGGER,
            name=DOMAIN,
            update_interval=UPDATE_INTERVAL,
        )
        self.engine = engine
        self._remove_engine_listener = engine.async_add_listener(self._handle_engine_update)

    @callback
    def _handle_engine_update(self) -> None:
        self.async_set_updated_data(self.engine.state)

    @callback
    def async_shutdown_listener(self) -> None:
        """Stop following engine updates."""
        self._remove_engine_listener()

    async def _async_update_data(self) -> SystemState:
        """Refresh sensor readings and decisions.

        Raises:
            UpdateFailed: If the refresh fails
        """
        try:
            return await self.engine.async_refresh_state(publish=False)
        except HomeAssistantError as err:
            raise UpdateFailed(f"Error refreshing Volt Load Manager state: {err}") from err
