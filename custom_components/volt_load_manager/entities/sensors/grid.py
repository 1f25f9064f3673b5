"""Tariff and grid power sensors for Volt Load Manager."""
from __future__ import annotations

from typing import Any

from homeassistant.components.sensor import SensorDeviceClass, SensorStateClass
from homeassistant.const import PERCENTAGE, UnitOfPower

from ...const import PERIOD_UNKNOWN, PERIODS
from ..base import VoltLoadManagerSensor


class TariffPeriodSensor(VoltLoadManagerSensor):
    """Active tariff period."""

    _attr_name = "Tariff Period"
    _attr_unique_id = "tariff_period"
    _attr_device_class = SensorDeviceClass.ENUM
    _attr_options = [*PERIODS, PERIOD_UNKNOWN]
    _attr_icon = "mdi:clock-time-four-outline"

    @property
    def native_value(self) -> str | None:
        """Return the state of the sensor."""
        if self.system_state is None:
            return None
        return self.system_state.current_period

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        """Return whether the active period charges the battery from the grid."""
        if self.system_state is None:
            return {}
        return {"charge_battery": self.system_state.period_charges_battery}


class CurrentPriceSensor(VoltLoadManagerSensor):
    """Electricity price used for the last decision."""

    _attr_name = "Current Price"
    _attr_unique_id = "current_price"
    _attr_native_unit_of_measurement = "EUR/kWh"
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_suggested_display_precision = 4
    _attr_icon = "mdi:currency-eur"

    @property
    def native_value(self) -> float | None:
        """Return the state of the sensor."""
        if self.system_state is None:
            return None
        return self.system_state.current_price


class ContractedPowerSensor(VoltLoadManagerSensor):
    """Contracted power of the active period."""

    _attr_name = "Contracted Power"
    _attr_unique_id = "contracted_power"
    _attr_device_class = SensorDeviceClass.POWER
    _attr_native_unit_of_measurement = UnitOfPower.WATT
    _attr_icon = "mdi:transmission-tower"

    @property
    def native_value(self) -> float | None:
        """Return the state of the sensor."""
        if self.system_state is None:
            return None
        return round(self.system_state.contracted_power, 0)

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        state = self.system_state
        if state is None:
            return {}
        return {"max_available": round(state.max_available, 0)}


class PowerUsageSensor(VoltLoadManagerSensor):
    """Demand as a share of the usable ceiling."""

    _attr_name = "Power Usage"
    _attr_unique_id = "power_usage"
    _attr_native_unit_of_measurement = PERCENTAGE
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_icon = "mdi:gauge"

    @property
    def native_value(self) -> float | None:
        """Return the state of the sensor."""
        if self.system_state is None:
            return None
        return round(self.system_state.usage_percent, 1)

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        state = self.system_state
        if state is None:
            return {}
        return {
            "demand_w": round(state.demand_power, 0),
            "managed_loads_w": round(state.total_managed_power, 0),
            "max_available_w": round(state.max_available, 0),
            "grid_power_w": state.grid_power,
            "pv_power_w": state.pv_power,
        }
