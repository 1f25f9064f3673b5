"""Base entity classes for Volt Load Manager."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from homeassistant.components.sensor import SensorEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from ..const import DOMAIN

if TYPE_CHECKING:
    from ..coordinator import VoltLoadManagerCoordinator
    from ..models import SystemState


def device_info(config_entry: ConfigEntry) -> dict[str, Any]:
    """Device grouping all entities of one entry."""
    return {
        "identifiers": {(DOMAIN, config_entry.entry_id)},
        "name": "Volt Load Manager",
        "manufacturer": "Volt Load Manager",
        "model": "Battery & Load Balancer",
    }


class VoltLoadManagerEntity(CoordinatorEntity["VoltLoadManagerCoordinator"]):
    """Base coordinator entity for Volt Load Manager."""

    _attr_has_entity_name = True
    _attr_should_poll = False

    def __init__(
        self,
        coordinator: VoltLoadManagerCoordinator,
        config_entry: ConfigEntry,
    ) -> None:
        """Initialize the entity."""
        super().__init__(coordinator)
        self.config_entry = config_entry
        self._attr_device_info = device_info(config_entry)

        base_unique_id = getattr(self, "_attr_unique_id", None)
        if base_unique_id and isinstance(base_unique_id, str):
            prefix = f"{config_entry.entry_id}_"
            if not base_unique_id.startswith(prefix):
                self._attr_unique_id = f"{prefix}{base_unique_id}"

    @property
    def system_state(self) -> SystemState | None:
        """Latest engine state published by the coordinator."""
        return self.coordinator.data


class VoltLoadManagerSensor(VoltLoadManagerEntity, SensorEntity):
    """Base sensor class for Volt Load Manager."""

    pass
