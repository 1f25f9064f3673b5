"""Binary sensor platform for Volt Load Manager integration."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from homeassistant.components.binary_sensor import (
    BinarySensorDeviceClass,
    BinarySensorEntity,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from .const import DOMAIN
from .entities.base import VoltLoadManagerEntity

if TYPE_CHECKING:
    from homeassistant.helpers.entity_platform import AddEntitiesCallback


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up Volt Load Manager binary sensors from a config entry."""
    coordinator = hass.data[DOMAIN][config_entry.entry_id]["coordinator"]
    async_add_entities(
        [
            OverloadBinarySensor(coordinator, config_entry),
            ManualOverrideBinarySensor(coordinator, config_entry),
        ]
    )


class OverloadBinarySensor(VoltLoadManagerEntity, BinarySensorEntity):
    """On while demand exceeds the usable ceiling."""

    _attr_translation_key = "overload"
    _attr_unique_id = "overload"
    _attr_device_class = BinarySensorDeviceClass.PROBLEM
    _attr_icon = "mdi:flash-alert"

    @property
    def is_on(self) -> bool | None:
        if self.system_state is None:
            return None
        return self.system_state.is_overloaded

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        state = self.system_state
        if state is None:
            return {}
        return {
            "demand_w": round(state.demand_power, 0),
            "max_available_w": round(state.max_available, 0),
            "period": state.current_period,
        }


class ManualOverrideBinarySensor(VoltLoadManagerEntity, BinarySensorEntity):
    """On while a manual target SOC override is in force."""

    _attr_translation_key = "manual_override"
    _attr_unique_id = "manual_override"
    _attr_icon = "mdi:hand-back-right"

    @property
    def is_on(self) -> bool | None:
        if self.system_state is None:
            return None
        return self.system_state.manual_override is not None

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        state = self.system_state
        if state is None or state.manual_override is None:
            return {}
        return state.manual_override.to_dict()
