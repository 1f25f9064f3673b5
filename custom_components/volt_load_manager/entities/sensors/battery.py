"""Battery decision sensors for Volt Load Manager."""
from __future__ import annotations

from typing import Any

from homeassistant.components.sensor import SensorDeviceClass, SensorStateClass
from homeassistant.const import PERCENTAGE

from ...const import DECISION_CHARGE, DECISION_HOLD, DECISION_IDLE
from ..base import VoltLoadManagerSensor


class TargetSocSensor(VoltLoadManagerSensor):
    """Effective target SOC produced by the rule cascade."""

    _attr_name = "Target SOC"
    _attr_unique_id = "target_soc"
    _attr_device_class = SensorDeviceClass.BATTERY
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_native_unit_of_measurement = PERCENTAGE
    _attr_icon = "mdi:battery-charging-high"

    @property
    def native_value(self) -> float | None:
        """Return the state of the sensor."""
        if self.system_state is None:
            return None
        return round(self.system_state.effective_target_soc, 0)

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        state = self.system_state
        if state is None:
            return {}
        return {
            "rule": state.target_rule,
            "current_soc": state.battery.soc,
            "manual_override": (
                state.manual_override.to_dict() if state.manual_override else None
            ),
        }


class ChargingDecisionSensor(VoltLoadManagerSensor):
    """Charge/hold/idle decision with its reason."""

    _attr_name = "Charging Decision"
    _attr_unique_id = "charging_decision"
    _attr_device_class = SensorDeviceClass.ENUM
    _attr_options = [DECISION_CHARGE, DECISION_HOLD, DECISION_IDLE]
    _attr_icon = "mdi:battery-sync"

    @property
    def native_value(self) -> str | None:
        """Return the state of the sensor."""
        if self.system_state is None:
            return None
        return self.system_state.charging_decision

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        state = self.system_state
        if state is None:
            return {}
        return {
            "reason": state.charging_reason,
            "target_soc": state.effective_target_soc,
            "last_charging_update": (
                state.last_charging_update.isoformat() if state.last_charging_update else None
            ),
        }
