"""Sensor platform for Volt Load Manager integration."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from homeassistant.components.sensor import SensorEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from .const import DOMAIN
from .entities.sensors import (
    ActiveAlertsSensor,
    ChargingDecisionSensor,
    ContractedPowerSensor,
    CurrentPriceSensor,
    LastActionSensor,
    PowerUsageSensor,
    ShedLoadsSensor,
    TargetSocSensor,
    TariffPeriodSensor,
)

if TYPE_CHECKING:
    from homeassistant.helpers.entity_platform import AddEntitiesCallback

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up Volt Load Manager sensors from a config entry."""
    coordinator = hass.data[DOMAIN][config_entry.entry_id]["coordinator"]

    sensors: list[SensorEntity] = [
        TargetSocSensor(coordinator, config_entry),
        ChargingDecisionSensor(coordinator, config_entry),
        TariffPeriodSensor(coordinator, config_entry),
        CurrentPriceSensor(coordinator, config_entry),
        ContractedPowerSensor(coordinator, config_entry),
        PowerUsageSensor(coordinator, config_entry),
        ShedLoadsSensor(coordinator, config_entry),
        ActiveAlertsSensor(coordinator, config_entry),
        LastActionSensor(coordinator, config_entry),
    ]

    async_add_entities(sensors)
    _LOGGER.debug("Added %d Volt Load Manager sensors", len(sensors))
