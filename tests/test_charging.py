"""Tests for the charging state machine and inverter commands."""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from homeassistant.exceptions import HomeAssistantError

from custom_components.volt_load_manager.const import (
    DECISION_CHARGE,
    DECISION_HOLD,
    DECISION_IDLE,
)
from custom_components.volt_load_manager.decision_engine.charging import (
    async_apply_charging_decision,
    decide_charging,
    idle_decision,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    ("current", "target", "expected"),
    [
        (50, 100, DECISION_CHARGE),
        (97.9, 100, DECISION_CHARGE),
        (98, 100, DECISION_HOLD),
        (99, 100, DECISION_HOLD),
        (100, 100, DECISION_HOLD),
        (60, 40, DECISION_HOLD),
        (37.5, 40, DECISION_CHARGE),
        (38, 40, DECISION_HOLD),
    ],
)
def test_decide_charging_hysteresis_band(current: float, target: float, expected: str) -> None:
    assert decide_charging(current, target).decision == expected


@pytest.mark.unit
def test_decide_charging_reasons_carry_target_reason() -> None:
    charge = decide_charging(40, 100, "[cheap_price] Cheap price")
    hold_band = decide_charging(99, 100)
    hold_above = decide_charging(80, 50)

    assert charge.reason == "SOC 40% < target 100% ([cheap_price] Cheap price)"
    assert "within 2 points" in hold_band.reason
    assert hold_above.reason == "SOC 80% >= target 50%"


@pytest.mark.unit
def test_idle_decision_targets_current_soc() -> None:
    decision = idle_decision(42)

    assert decision.decision == DECISION_IDLE
    assert decision.target_soc == 42
    assert decision.reason == "Battery optimization disabled"


@pytest.mark.asyncio
async def test_charge_sets_both_controls_to_target() -> None:
    hass = MagicMock()
    hass.services.async_call = AsyncMock()

    result = await async_apply_charging_decision(
        hass,
        decide_charging(40, 90),
        charge_target_entity="number.charge_target_soc",
        grid_charge_entity="number.grid_charge_soc",
    )

    assert result.success
    assert result.commands == (
        ("number.charge_target_soc", 90, True),
        ("number.grid_charge_soc", 90, True),
    )
    calls = hass.services.async_call.call_args_list
    assert [call.args[:3] for call in calls] == [
        ("number", "set_value", {"entity_id": "number.charge_target_soc", "value": 90}),
        ("number", "set_value", {"entity_id": "number.grid_charge_soc", "value": 90}),
    ]
    assert all(call.kwargs["blocking"] is True for call in calls)


@pytest.mark.asyncio
async def test_hold_disables_grid_charging_only() -> None:
    hass = MagicMock()
    hass.services.async_call = AsyncMock()

    result = await async_apply_charging_decision(
        hass,
        decide_charging(99, 100),
        charge_target_entity="number.charge_target_soc",
        grid_charge_entity="number.grid_charge_soc",
    )

    assert result.commands == (("number.grid_charge_soc", 0, True),)
    hass.services.async_call.assert_awaited_once()
    assert hass.services.async_call.call_args.args[2] == {
        "entity_id": "number.grid_charge_soc",
        "value": 0,
    }


@pytest.mark.asyncio
async def test_idle_issues_no_commands() -> None:
    hass = MagicMock()
    hass.services.async_call = AsyncMock()

    result = await async_apply_charging_decision(
        hass,
        idle_decision(50),
        charge_target_entity="number.charge_target_soc",
        grid_charge_entity="number.grid_charge_soc",
    )

    assert result.commands == ()
    hass.services.async_call.assert_not_awaited()


@pytest.mark.asyncio
async def test_command_failure_is_reported_not_raised() -> None:
    hass = MagicMock()
    hass.services.async_call = AsyncMock(
        side_effect=[HomeAssistantError("inverter offline"), None]
    )

    result = await async_apply_charging_decision(
        hass,
        decide_charging(10, 80),
        charge_target_entity="number.charge_target_soc",
        grid_charge_entity="number.grid_charge_soc",
    )

    assert not result.success
    assert result.commands == (
        ("number.charge_target_soc", 80, False),
        ("number.grid_charge_soc", 80, True),
    )


@pytest.mark.asyncio
async def test_unconfigured_controls_are_skipped() -> None:
    hass = MagicMock()
    hass.services.async_call = AsyncMock()

    result = await async_apply_charging_decision(
        hass,
        decide_charging(10, 80),
        charge_target_entity=None,
        grid_charge_entity=None,
    )

    assert result.commands == ()
    assert result.success
