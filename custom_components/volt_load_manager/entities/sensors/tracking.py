"""Load and alert tracking sensors for Volt Load Manager."""
from __future__ import annotations

from typing import Any

from homeassistant.components.sensor import SensorStateClass
from homeassistant.const import EntityCategory

from ..base import VoltLoadManagerSensor


class ShedLoadsSensor(VoltLoadManagerSensor):
    """Number of loads currently switched off by the engine."""

    _attr_name = "Shed Loads"
    _attr_unique_id = "shed_loads"
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_icon = "mdi:power-plug-off"

    @property
    def native_value(self) -> int | None:
        """Return the state of the sensor."""
        if self.system_state is None:
            return None
        return len(self.system_state.shed_loads)

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        state = self.system_state
        if state is None:
            return {}
        return {
            "shed_loads": list(state.shed_loads),
            "loads": [load.to_dict() for load in state.loads],
        }


class ActiveAlertsSensor(VoltLoadManagerSensor):
    """Number of active alerts."""

    _attr_name = "Active Alerts"
    _attr_unique_id = "active_alerts"
    _attr_icon = "mdi:alert"

    @property
    def native_value(self) -> int | None:
        """Return the state of the sensor."""
        if self.system_state is None:
            return None
        return len(self.system_state.active_alerts)

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        state = self.system_state
        if state is None:
            return {}
        return {
            "alerts": [alert.to_dict() for alert in state.active_alerts.values()],
            "recent": [alert.to_dict() for alert in state.alert_history[:10]],
            "do_not_disturb_until": state.dnd_until.isoformat() if state.dnd_until else None,
        }


class LastActionSensor(VoltLoadManagerSensor):
    """Summary of the last action taken by the engine."""

    _attr_name = "Last Action"
    _attr_unique_id = "last_action"
    _attr_entity_category = EntityCategory.DIAGNOSTIC
    _attr_icon = "mdi:history"

    @property
    def native_value(self) -> str | None:
        """Return the state of the sensor."""
        if self.system_state is None or not self.system_state.last_action:
            return None
        return str(self.system_state.last_action.get("summary", ""))[:255]

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        if self.system_state is None or not self.system_state.last_action:
            return {}
        return dict(self.system_state.last_action)
