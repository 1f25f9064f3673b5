"""Service handlers for Volt Load Manager integration."""
from __future__ import annotations

from datetime import datetime, timedelta
import logging
from typing import TYPE_CHECKING, Any

import voluptuous as vol

from homeassistant.core import ServiceCall, ServiceResponse, SupportsResponse
from homeassistant.exceptions import ServiceValidationError
from homeassistant.helpers import config_validation as cv
from homeassistant.util import dt as dt_util

from .const import (
    ACTION_SET_TARGET_SOC,
    DOMAIN,
    SCHEDULED_ACTIONS,
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
from .helpers import get_entry_data, resolve_entry

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from .engine import VoltEngine
    from .scheduler.action_scheduler import ActionScheduler

_LOGGER = logging.getLogger(__name__)

ATTR_ENTRY_ID = "entry_id"
ATTR_TARGET_SOC = "target_soc"
ATTR_EXPIRES_AT = "expires_at"
ATTR_DURATION_MINUTES = "duration_minutes"
ATTR_CHARGE_RATE_KW = "charge_rate_kw"
ATTR_INCLUDE_HISTORY = "include_history"
ATTR_ACTION = "action"
ATTR_RUN_AT = "run_at"
ATTR_DELAY_MINUTES = "delay_minutes"
ATTR_UNTIL = "until"

_ENTRY_SCHEMA = {vol.Optional(ATTR_ENTRY_ID): cv.string}
_PERCENT = vol.All(vol.Coerce(float), vol.Range(min=0, max=100))
_MINUTES = vol.All(vol.Coerce(int), vol.Range(min=1, max=7 * 24 * 60))

ENTRY_ONLY_SCHEMA = vol.Schema(_ENTRY_SCHEMA)

SET_TARGET_SOC_SCHEMA = vol.Schema(
    {
        **_ENTRY_SCHEMA,
        vol.Required(ATTR_TARGET_SOC): _PERCENT,
        vol.Exclusive(ATTR_EXPIRES_AT, "expiry"): cv.datetime,
        vol.Exclusive(ATTR_DURATION_MINUTES, "expiry"): _MINUTES,
    }
)

GET_CHARGING_PLAN_SCHEMA = vol.Schema(
    {
        **_ENTRY_SCHEMA,
        vol.Optional(ATTR_TARGET_SOC): _PERCENT,
        vol.Optional(ATTR_CHARGE_RATE_KW): vol.All(vol.Coerce(float), vol.Range(min=0.1, max=100)),
    }
)

CLEAR_ALERTS_SCHEMA = vol.Schema(
    {
        **_ENTRY_SCHEMA,
        vol.Optional(ATTR_INCLUDE_HISTORY, default=False): cv.boolean,
    }
)

SCHEDULE_ACTION_SCHEMA = vol.Schema(
    {
        **_ENTRY_SCHEMA,
        vol.Required(ATTR_ACTION): vol.In(SCHEDULED_ACTIONS),
        vol.Exclusive(ATTR_RUN_AT, "when"): cv.datetime,
        vol.Exclusive(ATTR_DELAY_MINUTES, "when"): _MINUTES,
        vol.Optional(ATTR_TARGET_SOC): _PERCENT,
        vol.Optional(ATTR_EXPIRES_AT): cv.datetime,
    }
)

SET_DO_NOT_DISTURB_SCHEMA = vol.Schema(
    {
        **_ENTRY_SCHEMA,
        vol.Exclusive(ATTR_UNTIL, "until"): cv.datetime,
        vol.Exclusive(ATTR_DURATION_MINUTES, "until"): _MINUTES,
    }
)


def _as_aware(value: datetime) -> datetime:
    """Interpret naive datetimes in the Home Assistant time zone."""
    if value.tzinfo is None:
        return value.replace(tzinfo=dt_util.get_default_time_zone())
    return value


def _resolve_runtime(hass: HomeAssistant, call: ServiceCall) -> dict[str, Any]:
    """Return the runtime data of the targeted entry.

    Raises:
        ServiceValidationError: If no single loaded entry matches
    """
    entry = resolve_entry(hass, call.data.get(ATTR_ENTRY_ID))
    if entry is None:
        raise ServiceValidationError("No matching Volt Load Manager entry found")
    entry_data = get_entry_data(hass, entry.entry_id)
    if not entry_data or "engine" not in entry_data:
        raise ServiceValidationError(f"Volt Load Manager entry {entry.entry_id} is not loaded")
    return entry_data


def _expiry_from_call(call: ServiceCall) -> datetime | None:
    if call.data.get(ATTR_EXPIRES_AT) is not None:
        return _as_aware(call.data[ATTR_EXPIRES_AT])
    if call.data.get(ATTR_DURATION_MINUTES) is not None:
        return dt_util.now() + timedelta(minutes=call.data[ATTR_DURATION_MINUTES])
    return None


async def async_register_services(hass: HomeAssistant) -> None:
    """Register all services for the Volt Load Manager integration.

    Args:
        hass: Home Assistant instance
    """

    async def handle_set_target_soc(call: ServiceCall) -> None:
        engine: VoltEngine = _resolve_runtime(hass, call)["engine"]
        try:
            await engine.async_set_manual_override(
                call.data[ATTR_TARGET_SOC], _expiry_from_call(call)
            )
        except ValueError as err:
            raise ServiceValidationError(str(err)) from err

    async def handle_clear_target_soc(call: ServiceCall) -> None:
        engine: VoltEngine = _resolve_runtime(hass, call)["engine"]
        await engine.async_clear_manual_override()

    async def handle_apply_charging(call: ServiceCall) -> None:
        engine: VoltEngine = _resolve_runtime(hass, call)["engine"]
        await engine.async_apply_charging()

    async def handle_balance_loads(call: ServiceCall) -> None:
        engine: VoltEngine = _resolve_runtime(hass, call)["engine"]
        await engine.async_balance_loads()

    async def handle_restore_loads(call: ServiceCall) -> None:
        engine: VoltEngine = _resolve_runtime(hass, call)["engine"]
        await engine.async_restore_all_loads()

    async def handle_get_charging_plan(call: ServiceCall) -> ServiceResponse:
        engine: VoltEngine = _resolve_runtime(hass, call)["engine"]
        return await engine.async_get_charging_plan(
            target_soc=call.data.get(ATTR_TARGET_SOC),
            charge_rate_kw=call.data.get(ATTR_CHARGE_RATE_KW),
        )

    async def handle_get_state(call: ServiceCall) -> ServiceResponse:
        runtime = _resolve_runtime(hass, call)
        engine: VoltEngine = runtime["engine"]
        scheduler: ActionScheduler | None = runtime.get("scheduler")
        return {
            **engine.state.to_dict(),
            "optimization_enabled": engine.optimization_enabled,
            "load_manager_enabled": engine.load_manager_enabled,
            "pending_actions": scheduler.pending_actions if scheduler else [],
            "snapshots": list(engine.state.snapshots),
        }

    async def handle_clear_alerts(call: ServiceCall) -> None:
        engine: VoltEngine = _resolve_runtime(hass, call)["engine"]
        await engine.async_clear_alerts(call.data.get(ATTR_INCLUDE_HISTORY, False))

    async def handle_schedule_action(call: ServiceCall) -> ServiceResponse:
        runtime = _resolve_runtime(hass, call)
        scheduler: ActionScheduler | None = runtime.get("scheduler")
        if scheduler is None:
            raise ServiceValidationError("Scheduler is not running")

        if call.data.get(ATTR_RUN_AT) is not None:
            run_at = _as_aware(call.data[ATTR_RUN_AT])
        elif call.data.get(ATTR_DELAY_MINUTES) is not None:
            run_at = dt_util.now() + timedelta(minutes=call.data[ATTR_DELAY_MINUTES])
        else:
            raise ServiceValidationError("Either run_at or delay_minutes is required")

        action = call.data[ATTR_ACTION]
        data: dict[str, Any] = {}
        if action == ACTION_SET_TARGET_SOC:
            if call.data.get(ATTR_TARGET_SOC) is None:
                raise ServiceValidationError("target_soc is required for set_target_soc")
            data[ATTR_TARGET_SOC] = call.data[ATTR_TARGET_SOC]
            if call.data.get(ATTR_EXPIRES_AT) is not None:
                data[ATTR_EXPIRES_AT] = _as_aware(call.data[ATTR_EXPIRES_AT]).isoformat()

        action_id = await scheduler.async_schedule_action(action, run_at, data)
        return {"id": action_id, "action": action, "run_at": run_at.isoformat()}

    async def handle_set_do_not_disturb(call: ServiceCall) -> None:
        engine: VoltEngine = _resolve_runtime(hass, call)["engine"]
        if call.data.get(ATTR_UNTIL) is not None:
            until: datetime | None = _as_aware(call.data[ATTR_UNTIL])
        elif call.data.get(ATTR_DURATION_MINUTES) is not None:
            until = dt_util.now() + timedelta(minutes=call.data[ATTR_DURATION_MINUTES])
        else:
            until = None
        await engine.async_set_do_not_disturb(until)

    # Register services
    hass.services.async_register(
        DOMAIN, SERVICE_SET_TARGET_SOC, handle_set_target_soc, schema=SET_TARGET_SOC_SCHEMA
    )
    hass.services.async_register(
        DOMAIN, SERVICE_CLEAR_TARGET_SOC, handle_clear_target_soc, schema=ENTRY_ONLY_SCHEMA
    )
    hass.services.async_register(
        DOMAIN, SERVICE_APPLY_CHARGING, handle_apply_charging, schema=ENTRY_ONLY_SCHEMA
    )
    hass.services.async_register(
        DOMAIN, SERVICE_BALANCE_LOADS, handle_balance_loads, schema=ENTRY_ONLY_SCHEMA
    )
    hass.services.async_register(
        DOMAIN, SERVICE_RESTORE_LOADS, handle_restore_loads, schema=ENTRY_ONLY_SCHEMA
    )
    hass.services.async_register(
        DOMAIN,
        SERVICE_GET_CHARGING_PLAN,
        handle_get_charging_plan,
        schema=GET_CHARGING_PLAN_SCHEMA,
        supports_response=SupportsResponse.ONLY,
    )
    hass.services.async_register(
        DOMAIN,
        SERVICE_GET_STATE,
        handle_get_state,
        schema=ENTRY_ONLY_SCHEMA,
        supports_response=SupportsResponse.ONLY,
    )
    hass.services.async_register(
        DOMAIN, SERVICE_CLEAR_ALERTS, handle_clear_alerts, schema=CLEAR_ALERTS_SCHEMA
    )
    hass.services.async_register(
        DOMAIN,
        SERVICE_SCHEDULE_ACTION,
        handle_schedule_action,
        schema=SCHEDULE_ACTION_SCHEMA,
        supports_response=SupportsResponse.OPTIONAL,
    )
    hass.services.async_register(
        DOMAIN,
        SERVICE_SET_DO_NOT_DISTURB,
        handle_set_do_not_disturb,
        schema=SET_DO_NOT_DISTURB_SCHEMA,
    )

    _LOGGER.info("Volt Load Manager services registered")
