"""Tests for sensor and binary sensor values."""
from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from custom_components.volt_load_manager.binary_sensor import (
    ManualOverrideBinarySensor,
    OverloadBinarySensor,
)
from custom_components.volt_load_manager.entities.sensors import (
    ActiveAlertsSensor,
    ChargingDecisionSensor,
    LastActionSensor,
    PowerUsageSensor,
    ShedLoadsSensor,
    TargetSocSensor,
    TariffPeriodSensor,
)
from custom_components.volt_load_manager.models import (
    Alert,
    Load,
    ManualOverride,
    SystemState,
)

NOW = datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def state() -> SystemState:
    state = SystemState(
        current_period="punta",
        demand_power=3700.0,
        max_available=3105.0,
        usage_percent=119.163,
        is_overloaded=True,
        effective_target_soc=100.0,
        target_rule="cheap_price",
        charging_decision="charge",
        charging_reason="SOC 40% < target 100%",
        manual_override=ManualOverride(target_soc=80, expires_at=NOW),
        loads=[Load(id="heater", name="Heater", priority="accessory", switch_entity="switch.heater")],
        shed_loads=["heater"],
        last_action={"scenario": "Load Balance", "summary": "Shed 1 load(s), saved 900 W"},
    )
    alert = Alert(
        id="overload_1",
        type="overload",
        severity="danger",
        message="Power overload: 3700 W (limit 3105 W)",
        value=3700.0,
        threshold=3105.0,
        timestamp=NOW,
    )
    state.active_alerts = {"overload": alert}
    state.alert_history = [alert]
    return state


@pytest.fixture
def coordinator(state: SystemState) -> MagicMock:
    coordinator = MagicMock()
    coordinator.data = state
    return coordinator


@pytest.fixture
def entry() -> MagicMock:
    entry = MagicMock()
    entry.entry_id = "entry-1"
    return entry


def test_unique_ids_are_prefixed_with_entry_id(coordinator, entry) -> None:
    sensor = TargetSocSensor(coordinator, entry)
    binary = OverloadBinarySensor(coordinator, entry)

    assert sensor.unique_id == "entry-1_target_soc"
    assert binary.unique_id == "entry-1_overload"
    assert sensor.device_info["identifiers"] == {("volt_load_manager", "entry-1")}


def test_battery_sensors(coordinator, entry) -> None:
    target = TargetSocSensor(coordinator, entry)
    decision = ChargingDecisionSensor(coordinator, entry)

    assert target.native_value == 100
    assert target.extra_state_attributes["rule"] == "cheap_price"
    assert target.extra_state_attributes["manual_override"]["target_soc"] == 80
    assert decision.native_value == "charge"
    assert decision.extra_state_attributes["reason"] == "SOC 40% < target 100%"


def test_grid_sensors(coordinator, entry) -> None:
    period = TariffPeriodSensor(coordinator, entry)
    assert period.native_value == "punta"
    assert period.extra_state_attributes == {"charge_battery": False}
    usage = PowerUsageSensor(coordinator, entry)
    assert usage.native_value == 119.2
    assert usage.extra_state_attributes["demand_w"] == 3700


def test_tracking_sensors(coordinator, entry) -> None:
    shed = ShedLoadsSensor(coordinator, entry)
    alerts = ActiveAlertsSensor(coordinator, entry)
    last = LastActionSensor(coordinator, entry)

    assert shed.native_value == 1
    assert shed.extra_state_attributes["loads"][0]["id"] == "heater"
    assert alerts.native_value == 1
    assert alerts.extra_state_attributes["alerts"][0]["type"] == "overload"
    assert alerts.extra_state_attributes["do_not_disturb_until"] is None
    assert last.native_value == "Shed 1 load(s), saved 900 W"
    assert last.extra_state_attributes["scenario"] == "Load Balance"


def test_binary_sensors(coordinator, entry, state: SystemState) -> None:
    overload = OverloadBinarySensor(coordinator, entry)
    override = ManualOverrideBinarySensor(coordinator, entry)

    assert overload.is_on is True
    assert override.is_on is True
    assert override.extra_state_attributes["expires_at"] == NOW.isoformat()

    state.manual_override = None
    assert override.is_on is False
    assert override.extra_state_attributes == {}


def test_sensors_without_data(entry) -> None:
    coordinator = MagicMock()
    coordinator.data = None

    assert TargetSocSensor(coordinator, entry).native_value is None
    assert ShedLoadsSensor(coordinator, entry).extra_state_attributes == {}
    assert OverloadBinarySensor(coordinator, entry).is_on is None
