"""Switch platform for Volt Load Manager integration."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from homeassistant.components.switch import SwitchDeviceClass, SwitchEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import EntityCategory
from homeassistant.helpers.restore_state import RestoreEntity

from .const import CONF_LOAD_MANAGER_ENABLED, CONF_OPTIMIZATION_ENABLED, DOMAIN
from .entities.base import device_info
from .helpers import get_config

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddEntitiesCallback

    from .engine import VoltEngine


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up Volt Load Manager switches from a config entry."""
    engine = hass.data[DOMAIN][config_entry.entry_id]["engine"]
    async_add_entities(
        [
            LoadManagerSwitch(config_entry, engine),
            BatteryOptimizationSwitch(config_entry, engine),
        ]
    )


class _EngineToggleSwitch(SwitchEntity, RestoreEntity):
    """Config switch mirrored into an engine flag."""

    _attr_has_entity_name = True
    _attr_entity_category = EntityCategory.CONFIG
    _attr_device_class = SwitchDeviceClass.SWITCH
    _config_key: str
    _unique_suffix: str

    def __init__(self, config_entry: ConfigEntry, engine: VoltEngine) -> None:
        """Initialize the switch."""
        self._engine = engine
        self._attr_unique_id = f"{config_entry.entry_id}_{self._unique_suffix}"
        self._attr_device_info = device_info(config_entry)
        self._attr_is_on = bool(get_config(config_entry).get(self._config_key, True))

    async def _async_set_engine(self, enabled: bool) -> None:
        raise NotImplementedError

    async def async_added_to_hass(self) -> None:
        """Restore last state when added to hass."""
        if (last_state := await self.async_get_last_state()) is not None:
            self._attr_is_on = last_state.state == "on"
        await self._async_set_engine(bool(self._attr_is_on))

    async def async_turn_on(self, **kwargs: Any) -> None:
        self._attr_is_on = True
        await self._async_set_engine(True)
        self.async_write_ha_state()

    async def async_turn_off(self, **kwargs: Any) -> None:
        self._attr_is_on = False
        await self._async_set_engine(False)
        self.async_write_ha_state()


class LoadManagerSwitch(_EngineToggleSwitch):
    """Switch enabling automatic load shedding and restoration."""

    _attr_translation_key = "load_manager"
    _attr_icon = "mdi:scale-balance"
    _config_key = CONF_LOAD_MANAGER_ENABLED
    _unique_suffix = "load_manager_switch"

    async def _async_set_engine(self, enabled: bool) -> None:
        await self._engine.async_set_load_manager_enabled(enabled)


class BatteryOptimizationSwitch(_EngineToggleSwitch):
    """Switch enabling target SOC optimization and charging commands."""

    _attr_translation_key = "battery_optimization"
    _attr_icon = "mdi:battery-heart-variant"
    _config_key = CONF_OPTIMIZATION_ENABLED
    _unique_suffix = "battery_optimization_switch"

    async def _async_set_engine(self, enabled: bool) -> None:
        await self._engine.async_set_optimization_enabled(enabled)
