"""Tests for Volt Load Manager service registration and dispatch."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from homeassistant.exceptions import ServiceValidationError
from homeassistant.util import dt as dt_util

from custom_components.volt_load_manager.const import (
    ACTION_BALANCE_LOADS,
    ACTION_SET_TARGET_SOC,
    DOMAIN,
    SERVICE_APPLY_CHARGING,
    SERVICE_BALANCE_LOADS,
    SERVICE_CLEAR_ALERTS,
    SERVICE_CLEAR_TARGET_SOC,
    SERVICE_GET_CHARGING_PLAN,
    SERVICE_GET_STATE,
    SERVICE_RESTORE_LOADS,
    SERVICE_SCHEDULE_ACTION,
    SERVICE_SET_DO_NOT_DISTURB,
    SERVICE_SET_TARGET_SOC,
)
from custom_components.volt_load_manager.models import SystemState
from custom_components.volt_load_manager.services import async_register_services

NOW = datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def runtime(monkeypatch: pytest.MonkeyPatch) -> tuple[MagicMock, MagicMock, MagicMock]:
    monkeypatch.setattr(dt_util, "now", lambda: NOW)

    engine = MagicMock()
    engine.state = SystemState()
    engine.optimization_enabled = True
    engine.load_manager_enabled = False
    for name in (
        "async_set_manual_override",
        "async_clear_manual_override",
        "async_apply_charging",
        "async_balance_loads",
        "async_restore_all_loads",
        "async_get_charging_plan",
        "async_clear_alerts",
        "async_set_do_not_disturb",
    ):
        setattr(engine, name, AsyncMock())
    scheduler = MagicMock()
    scheduler.pending_actions = []
    scheduler.async_schedule_action = AsyncMock(return_value="action-1")

    entry = MagicMock(domain=DOMAIN, entry_id="entry-1")
    hass = MagicMock()
    hass.services.async_register = MagicMock()
    hass.config_entries.async_entries.return_value = [entry]
    hass.config_entries.async_get_entry.return_value = entry
    hass.data = {DOMAIN: {"entry-1": {"engine": engine, "scheduler": scheduler}}}
    return hass, engine, scheduler


async def _handler(hass: MagicMock, service: str):
    await async_register_services(hass)
    call_args = next(
        call
        for call in hass.services.async_register.call_args_list
        if call.args[0] == DOMAIN and call.args[1] == service
    )
    return call_args.args[2]


def _call(**data) -> MagicMock:
    service_call = MagicMock()
    service_call.data = data
    return service_call


@pytest.mark.asyncio
async def test_async_register_services_registers_all_services() -> None:
    hass = MagicMock()
    hass.services.async_register = MagicMock()

    await async_register_services(hass)

    service_names = {call.args[1] for call in hass.services.async_register.call_args_list}
    assert service_names == {
        SERVICE_SET_TARGET_SOC,
        SERVICE_CLEAR_TARGET_SOC,
        SERVICE_APPLY_CHARGING,
        SERVICE_BALANCE_LOADS,
        SERVICE_RESTORE_LOADS,
        SERVICE_GET_CHARGING_PLAN,
        SERVICE_GET_STATE,
        SERVICE_CLEAR_ALERTS,
        SERVICE_SCHEDULE_ACTION,
        SERVICE_SET_DO_NOT_DISTURB,
    }


@pytest.mark.asyncio
async def test_set_target_soc_handler_dispatches_to_engine(runtime) -> None:
    hass, engine, _ = runtime
    handler = await _handler(hass, SERVICE_SET_TARGET_SOC)

    await handler(_call(entry_id="entry-1", target_soc=80.0, duration_minutes=60))

    engine.async_set_manual_override.assert_awaited_once_with(80.0, NOW + timedelta(hours=1))


@pytest.mark.asyncio
async def test_set_target_soc_naive_expiry_uses_local_time_zone(runtime) -> None:
    hass, engine, _ = runtime
    handler = await _handler(hass, SERVICE_SET_TARGET_SOC)

    await handler(_call(target_soc=70.0, expires_at=datetime(2026, 10, 14, 18, 0)))

    expires_at = engine.async_set_manual_override.call_args.args[1]
    assert expires_at.tzinfo is not None
    assert expires_at.hour == 18


@pytest.mark.asyncio
async def test_set_target_soc_rejection_becomes_validation_error(runtime) -> None:
    hass, engine, _ = runtime
    engine.async_set_manual_override.side_effect = ValueError("Target SOC must be between 10 and 100")
    handler = await _handler(hass, SERVICE_SET_TARGET_SOC)

    with pytest.raises(ServiceValidationError):
        await handler(_call(target_soc=5.0))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("service", "method"),
    [
        (SERVICE_CLEAR_TARGET_SOC, "async_clear_manual_override"),
        (SERVICE_APPLY_CHARGING, "async_apply_charging"),
        (SERVICE_BALANCE_LOADS, "async_balance_loads"),
        (SERVICE_RESTORE_LOADS, "async_restore_all_loads"),
    ],
)
async def test_simple_handlers_dispatch_to_engine(runtime, service: str, method: str) -> None:
    hass, engine, _ = runtime
    handler = await _handler(hass, service)

    await handler(_call())

    getattr(engine, method).assert_awaited_once_with()


@pytest.mark.asyncio
async def test_unknown_entry_raises_validation_error(runtime) -> None:
    hass, _, _ = runtime
    hass.config_entries.async_get_entry.return_value = None
    handler = await _handler(hass, SERVICE_BALANCE_LOADS)

    with pytest.raises(ServiceValidationError):
        await handler(_call(entry_id="missing"))


@pytest.mark.asyncio
async def test_get_state_returns_state_and_flags(runtime) -> None:
    hass, engine, _ = runtime
    engine.state.shed_loads = ["heater"]
    handler = await _handler(hass, SERVICE_GET_STATE)

    response = await handler(_call())

    assert response["shed_loads"] == ["heater"]
    assert response["optimization_enabled"] is True
    assert response["load_manager_enabled"] is False
    assert response["pending_actions"] == []


@pytest.mark.asyncio
async def test_get_charging_plan_passes_overrides(runtime) -> None:
    hass, engine, _ = runtime
    engine.async_get_charging_plan.return_value = {"plan": {"action": "hold"}}
    handler = await _handler(hass, SERVICE_GET_CHARGING_PLAN)

    response = await handler(_call(target_soc=90.0))

    assert response == {"plan": {"action": "hold"}}
    engine.async_get_charging_plan.assert_awaited_once_with(target_soc=90.0, charge_rate_kw=None)


@pytest.mark.asyncio
async def test_clear_alerts_forwards_history_flag(runtime) -> None:
    hass, engine, _ = runtime
    handler = await _handler(hass, SERVICE_CLEAR_ALERTS)

    await handler(_call(include_history=True))

    engine.async_clear_alerts.assert_awaited_once_with(True)


@pytest.mark.asyncio
async def test_schedule_action_with_delay(runtime) -> None:
    hass, _, scheduler = runtime
    handler = await _handler(hass, SERVICE_SCHEDULE_ACTION)

    response = await handler(_call(action=ACTION_SET_TARGET_SOC, delay_minutes=30, target_soc=70.0))

    scheduler.async_schedule_action.assert_awaited_once_with(
        ACTION_SET_TARGET_SOC, NOW + timedelta(minutes=30), {"target_soc": 70.0}
    )
    assert response["id"] == "action-1"


@pytest.mark.asyncio
async def test_schedule_action_requires_time_and_target(runtime) -> None:
    hass, _, scheduler = runtime
    handler = await _handler(hass, SERVICE_SCHEDULE_ACTION)

    with pytest.raises(ServiceValidationError):
        await handler(_call(action=ACTION_BALANCE_LOADS))
    with pytest.raises(ServiceValidationError):
        await handler(_call(action=ACTION_SET_TARGET_SOC, delay_minutes=5))
    scheduler.async_schedule_action.assert_not_awaited()


@pytest.mark.asyncio
async def test_set_do_not_disturb_duration_and_clear(runtime) -> None:
    hass, engine, _ = runtime
    handler = await _handler(hass, SERVICE_SET_DO_NOT_DISTURB)

    await handler(_call(duration_minutes=120))
    await handler(_call())

    assert [call.args[0] for call in engine.async_set_do_not_disturb.await_args_list] == [
        NOW + timedelta(hours=2),
        None,
    ]
