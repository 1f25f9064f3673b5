"""Volt Load Manager engine: the single writer of the system state."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any

from homeassistant.core import Context, callback
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.storage import Store
from homeassistant.util import dt as dt_util

from .calculations.tariff import (
    TariffWindows,
    calculate_max_available,
    get_period_settings,
    is_weekend,
    resolve_period,
)
from .calculations.utils import clamp, safe_float
from .const import (
    CONF_BATTERY_CAPACITY_KWH,
    CONF_BATTERY_CAPACITY_SENSOR,
    CONF_BATTERY_POWER_SENSOR,
    CONF_BATTERY_SOC_SENSOR,
    CONF_CAR_CHARGING_SLOT_ENTITY,
    CONF_CAR_SOC_SENSOR,
    CONF_CHARGE_RATE_KW,
    CONF_CHARGE_TARGET_SOC_ENTITY,
    CONF_ESIOS_API_TOKEN,
    CONF_GRID_CHARGE_SOC_ENTITY,
    CONF_GRID_POWER_SENSOR,
    CONF_LATITUDE,
    CONF_LOAD_MANAGER_ENABLED,
    CONF_LOAD_POWER_SENSOR,
    CONF_LOADS,
    CONF_LONGITUDE,
    CONF_NOTIFY_SERVICE,
    CONF_OPTIMIZATION_ENABLED,
    CONF_PRICE_SENSOR,
    CONF_PV_PEAK_POWER_KW,
    CONF_PV_POWER_SENSOR,
    CONF_SAFETY_MARGIN_PERCENT,
    CONF_TARIFF_PERIOD_SENSOR,
    DECISION_IDLE,
    DEFAULT_BATTERY_CAPACITY_KWH,
    DEFAULT_CHARGE_RATE_KW,
    DEFAULT_LATITUDE,
    DEFAULT_LONGITUDE,
    DEFAULT_PV_PEAK_POWER_KW,
    DEFAULT_SAFETY_MARGIN_PERCENT,
    SNAPSHOT_HISTORY_LIMIT,
    STORAGE_KEY_STATE,
    STORAGE_VERSION_STATE,
)
from .decision_engine.alerts import (
    AlertReadings,
    AlertThresholds,
    apply_alert_evaluation,
    evaluate_alerts,
)
from .decision_engine.charging import (
    ChargingDecision,
    async_apply_charging_decision,
    decide_charging,
    idle_decision,
)
from .decision_engine.load_balancer import (
    BALANCE_NONE,
    BALANCE_SHED,
    BalanceResult,
    async_balance,
    async_restore_all,
)
from .decision_engine.planner import estimate_monthly_savings, generate_charging_plan
from .decision_engine.target_soc import (
    TargetSocContext,
    TargetSocSettings,
    evaluate_target_soc,
)
from .helpers import get_config, get_float_value, get_power_watts, get_state_value, is_entity_on
from .models import BatterySnapshot, Load, ManualOverride, SystemState
from .utils.forecast import PriceForecastProvider, SolarForecastProvider
from .utils.logging import DecisionOutcome, log_decision_unified
from .utils.notify import async_send_notification

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

_LOGGER = logging.getLogger(__name__)


class VoltEngine:
    """Owns SystemState and serializes every evaluate-and-mutate cycle."""

    def __init__(
        self,
        hass: HomeAssistant,
        entry: ConfigEntry,
        *,
        price_provider: PriceForecastProvider | None = None,
        solar_provider: SolarForecastProvider | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            hass: Home Assistant instance
            entry: Config entry holding sensors, controls and loads
            price_provider: Optional price forecast provider
            solar_provider: Optional solar forecast provider
        """
        self.hass = hass
        self.entry = entry
        self.state = SystemState()
        self._lock = asyncio.Lock()
        self._store: Store[dict[str, Any]] = Store(
            hass, STORAGE_VERSION_STATE, f"{STORAGE_KEY_STATE}.{entry.entry_id}"
        )
        config = self.config
        self.price_provider = price_provider or PriceForecastProvider(
            hass, config.get(CONF_ESIOS_API_TOKEN)
        )
        self.solar_provider = solar_provider or SolarForecastProvider(hass)
        self.optimization_enabled = bool(config.get(CONF_OPTIMIZATION_ENABLED, True))
        self.load_manager_enabled = bool(config.get(CONF_LOAD_MANAGER_ENABLED, True))
        self._update_listeners: list[Callable[[], None]] = []

    @property
    def config(self) -> dict[str, Any]:
        """Entry data merged with options."""
        return get_config(self.entry)

    @callback
    def async_add_listener(self, update_callback: Callable[[], None]) -> Callable[[], None]:
        """Register a callback run after every state mutation."""
        self._update_listeners.append(update_callback)

        @callback
        def remove_listener() -> None:
            if update_callback in self._update_listeners:
                self._update_listeners.remove(update_callback)

        return remove_listener

    @callback
    def _async_publish(self) -> None:
        for update_callback in list(self._update_listeners):
            update_callback()

    # Persistence

    async def async_load(self) -> None:
        """Restore persisted state and build the configured loads."""
        async with self._lock:
            try:
                data = await self._store.async_load()
            except (HomeAssistantError, OSError, ValueError) as err:
                _LOGGER.error("Failed to load Volt Load Manager state: %s", err)
                data = None
            if isinstance(data, dict):
                self.state.restore_from_storage(data)
            self.state.loads = self._build_loads()
            self.state.shed_loads = [
                load_id for load_id in self.state.shed_loads if self.state.get_load(load_id)
            ]
            _LOGGER.info(
                "Volt Load Manager state loaded: %d load(s), %d shed, override %s",
                len(self.state.loads),
                len(self.state.shed_loads),
                "set" if self.state.manual_override else "none",
            )

    async def _async_save(self) -> None:
        """Persist state; in-memory state stays authoritative on failure."""
        try:
            await self._store.async_save(self.state.to_storage())
        except (HomeAssistantError, OSError) as err:
            _LOGGER.error("Failed to persist Volt Load Manager state: %s", err)

    def _build_loads(self) -> list[Load]:
        loads: list[Load] = []
        seen: set[str] = set()
        for raw in self.config.get(CONF_LOADS) or []:
            if not isinstance(raw, dict):
                continue
            load = Load.from_config(raw)
            if load.id in seen:
                _LOGGER.warning("Duplicate load id %s ignored", load.id)
                continue
            seen.add(load.id)
            loads.append(load)
        return loads

    # State refresh

    async def async_refresh_state(self, *, publish: bool = True) -> SystemState:
        """Read all sensors and re-evaluate decisions without issuing commands."""
        async with self._lock:
            await self._async_refresh()
        if publish:
            self._async_publish()
        return self.state

    async def _async_refresh(self) -> None:
        """Refresh from one consistent snapshot of sensor readings."""
        config = self.config
        now = dt_util.now()
        state = self.state

        soc = get_float_value(self.hass, config.get(CONF_BATTERY_SOC_SENSOR))
        if soc is not None:
            state.battery.soc = clamp(soc, 0.0, 100.0)
        elif config.get(CONF_BATTERY_SOC_SENSOR):
            _LOGGER.warning(
                "Battery SOC unavailable, keeping last value %.0f%%", state.battery.soc
            )
        state.battery.power = get_power_watts(self.hass, config.get(CONF_BATTERY_POWER_SENSOR)) or 0.0
        capacity = get_float_value(self.hass, config.get(CONF_BATTERY_CAPACITY_SENSOR))
        if capacity is None or capacity <= 0:
            capacity = safe_float(
                config.get(CONF_BATTERY_CAPACITY_KWH), DEFAULT_BATTERY_CAPACITY_KWH
            )
        state.battery.capacity_kwh = capacity

        state.grid_power = get_power_watts(self.hass, config.get(CONF_GRID_POWER_SENSOR)) or 0.0
        house_load = get_power_watts(self.hass, config.get(CONF_LOAD_POWER_SENSOR))
        state.load_power = house_load or 0.0
        state.pv_power = get_power_watts(self.hass, config.get(CONF_PV_POWER_SENSOR)) or 0.0
        state.current_price = get_float_value(self.hass, config.get(CONF_PRICE_SENSOR))
        state.car_soc = get_float_value(self.hass, config.get(CONF_CAR_SOC_SENSOR))
        slot_entity = config.get(CONF_CAR_CHARGING_SLOT_ENTITY)
        state.car_charging_slot = is_entity_on(self.hass, slot_entity) if slot_entity else None

        reported_period = get_state_value(self.hass, config.get(CONF_TARIFF_PERIOD_SENSOR))
        state.current_period = resolve_period(
            reported_period, now, TariffWindows.from_config(config)
        )
        period_settings = get_period_settings(state.current_period, config)
        state.period_charges_battery = period_settings.charge_battery
        state.contracted_power = period_settings.contracted_power_kw * 1000.0
        state.max_available = calculate_max_available(
            state.contracted_power,
            safe_float(config.get(CONF_SAFETY_MARGIN_PERCENT), DEFAULT_SAFETY_MARGIN_PERCENT),
        )

        for load in state.loads:
            # Loads without a switch are always running.
            load.is_on = is_entity_on(self.hass, load.switch_entity) if load.is_switchable else True
            load.current_power = get_power_watts(self.hass, load.power_sensor) or 0.0

        # Loads switched back on by the user are no longer engine-owned.
        reclaimed = [
            load_id
            for load_id in state.shed_loads
            if (load := state.get_load(load_id)) is None or load.is_on
        ]
        if reclaimed:
            state.shed_loads = [i for i in state.shed_loads if i not in reclaimed]
            _LOGGER.info("Loads %s switched on outside the engine; no longer shed", reclaimed)
            await self._async_save()

        state.total_managed_power = sum(load.current_power for load in state.loads if load.is_on)
        state.demand_power = house_load if house_load is not None else state.total_managed_power
        state.usage_percent = (
            state.demand_power / state.max_available * 100 if state.max_available > 0 else 0.0
        )
        state.is_overloaded = state.demand_power > state.max_available

        await self._async_evaluate_charging(now, period_settings.target_soc)
        await self._async_evaluate_alerts(now, soc)
        state.last_check = now

    async def _async_evaluate_charging(self, now: datetime, period_target_soc: float) -> ChargingDecision:
        state = self.state
        override = state.manual_override
        if override is not None and override.is_expired(now):
            _LOGGER.info("Manual override %.0f%% expired at %s", override.target_soc, override.expires_at)
            state.manual_override = None
            await self._async_save()

        if not self.optimization_enabled:
            decision = idle_decision(state.battery.soc)
            state.effective_target_soc = decision.target_soc
            state.target_rule = DECISION_IDLE
            state.charging_decision = decision.decision
            state.charging_reason = decision.reason
            return decision

        target = evaluate_target_soc(
            TargetSocContext(
                now=now,
                price=state.current_price,
                period=state.current_period,
                period_target_soc=period_target_soc,
                is_weekend=is_weekend(now),
                manual_override=state.manual_override,
            ),
            TargetSocSettings.from_config(self.config),
        )
        decision = decide_charging(state.battery.soc, target.target_soc, target.reason)
        state.effective_target_soc = target.target_soc
        state.target_rule = target.rule
        state.charging_decision = decision.decision
        state.charging_reason = decision.reason
        return decision

    async def _async_evaluate_alerts(self, now: datetime, soc: float | None) -> None:
        state = self.state
        evaluation = evaluate_alerts(
            AlertReadings(
                soc=soc,
                price=state.current_price,
                demand=state.demand_power,
                max_available=state.max_available if state.max_available > 0 else None,
            ),
            AlertThresholds.from_config(self.config),
            state.active_alerts,
            now,
        )
        if not evaluation.created and not evaluation.retired:
            return

        apply_alert_evaluation(evaluation, state.active_alerts, state.alert_history)
        await self._async_save()

        notify_service = self.config.get(CONF_NOTIFY_SERVICE)
        for alert in evaluation.created:
            await async_send_notification(
                self.hass,
                alert.message,
                notify_service=notify_service,
                dnd_until=state.dnd_until,
                now=now,
            )

    # Charging

    async def async_apply_charging(self) -> ChargingDecision:
        """Refresh state and push the charging decision to the inverter."""
        async with self._lock:
            decision = await self._async_apply_charging()
        self._async_publish()
        return decision

    async def _async_apply_charging(self) -> ChargingDecision:
        await self._async_refresh()
        state = self.state
        decision = ChargingDecision(
            decision=state.charging_decision,
            target_soc=state.effective_target_soc,
            current_soc=state.battery.soc,
            reason=state.charging_reason,
        )
        state.last_charging_update = dt_util.now()
        if decision.decision == DECISION_IDLE:
            _LOGGER.debug("Battery optimization disabled; no charging command")
            return decision

        config = self.config
        context = Context()
        result = await async_apply_charging_decision(
            self.hass,
            decision,
            charge_target_entity=config.get(CONF_CHARGE_TARGET_SOC_ENTITY),
            grid_charge_entity=config.get(CONF_GRID_CHARGE_SOC_ENTITY),
            context=context,
        )
        log_decision_unified(
            self.hass,
            self.entry.entry_id,
            DecisionOutcome(
                scenario="Charging",
                action_type=decision.decision,
                summary=f"{decision.decision.capitalize()} toward {decision.target_soc:.0f}%",
                reason=decision.reason,
                key_metrics={
                    "current_soc": f"{decision.current_soc:.0f}%",
                    "target_soc": f"{decision.target_soc:.0f}%",
                    "rule": state.target_rule,
                },
                full_details={
                    "current_soc": round(decision.current_soc, 1),
                    "target_soc": round(decision.target_soc, 1),
                    "rule": state.target_rule,
                    "success": result.success,
                },
                entities_changed=[
                    {"entity_id": entity_id, "value": value, "success": ok}
                    for entity_id, value, ok in result.commands
                ],
            ),
            state=state,
            context=context,
            logger=_LOGGER,
        )
        return decision

    # Loads

    async def async_balance_loads(self) -> BalanceResult:
        """Refresh state, then shed on overload or restore when there is headroom."""
        async with self._lock:
            if not self.load_manager_enabled:
                await self._async_refresh()
                result = BalanceResult(
                    mode=BALANCE_NONE,
                    demand=self.state.demand_power,
                    max_available=self.state.max_available,
                )
            else:
                result = await self._async_balance()
        self._async_publish()
        return result

    async def _async_balance(self) -> BalanceResult:
        await self._async_refresh()
        state = self.state
        context = Context()
        result = await async_balance(
            self.hass,
            state.loads,
            state.shed_loads,
            demand=state.demand_power,
            max_available=state.max_available,
            persist=self._async_save,
            context=context,
        )
        self._after_load_changes()
        if result.actions:
            self._log_balance(result, context)
        return result

    async def async_restore_all_loads(self) -> BalanceResult:
        """Turn every shed load back on regardless of headroom."""
        async with self._lock:
            context = Context()
            result = await async_restore_all(
                self.hass,
                self.state.loads,
                self.state.shed_loads,
                persist=self._async_save,
                context=context,
            )
            await self._async_save()
            self._after_load_changes()
            if result.actions:
                self._log_balance(result, context)
        self._async_publish()
        return result

    def _after_load_changes(self) -> None:
        state = self.state
        state.total_managed_power = sum(
            load.current_power for load in state.loads if load.is_on
        )

    def _log_balance(self, result: BalanceResult, context: Context) -> None:
        succeeded = [action for action in result.actions if action.success]
        if result.mode == BALANCE_SHED:
            summary = f"Shed {len(succeeded)} load(s), saved {result.saved:.0f} W"
        else:
            summary = f"Restored {len(succeeded)} load(s), {result.restored:.0f} W"
        log_decision_unified(
            self.hass,
            self.entry.entry_id,
            DecisionOutcome(
                scenario="Load Balance",
                action_type=result.mode,
                summary=summary,
                reason=(
                    f"Demand {result.demand:.0f} W, available {result.max_available:.0f} W"
                    if result.max_available
                    else None
                ),
                key_metrics={
                    "loads": ", ".join(action.name for action in succeeded) or "none",
                    "shed_count": str(len(self.state.shed_loads)),
                },
                full_details={
                    "demand_w": round(result.demand, 0),
                    "max_available_w": round(result.max_available, 0),
                    "saved_w": round(result.saved, 0),
                    "restored_w": round(result.restored, 0),
                    "shed_loads": list(self.state.shed_loads),
                },
                entities_changed=[
                    {
                        "load_id": action.load_id,
                        "action": action.action,
                        "power_w": action.power,
                        "success": action.success,
                    }
                    for action in result.actions
                ],
            ),
            state=self.state,
            context=context,
            logger=_LOGGER,
        )

    # Manual override

    async def async_set_manual_override(
        self, target_soc: float, expires_at: datetime | None = None
    ) -> ChargingDecision:
        """Set a manual target SOC and apply the resulting decision.

        Raises:
            ValueError: If the target is outside [min SOC, 100] or the expiry
                is not in the future
        """
        settings = TargetSocSettings.from_config(self.config)
        value = safe_float(target_soc, None)
        if value is None or not settings.min_soc <= value <= 100:
            raise ValueError(
                f"Target SOC must be between {settings.min_soc:.0f} and 100, got {target_soc}"
            )
        if expires_at is not None and expires_at <= dt_util.now():
            raise ValueError("Override expiry must be in the future")

        async with self._lock:
            self.state.manual_override = ManualOverride(target_soc=value, expires_at=expires_at)
            await self._async_save()
            _LOGGER.info("Manual override set to %.0f%% until %s", value, expires_at or "cleared")
            decision = await self._async_apply_charging()
        self._async_publish()
        return decision

    async def async_clear_manual_override(self) -> ChargingDecision:
        """Clear the manual override and apply the automatic decision."""
        async with self._lock:
            if self.state.manual_override is not None:
                self.state.manual_override = None
                await self._async_save()
                _LOGGER.info("Manual override cleared")
            decision = await self._async_apply_charging()
        self._async_publish()
        return decision

    # Switch entities

    async def async_set_optimization_enabled(self, enabled: bool) -> None:
        """Enable or disable battery optimization and re-evaluate."""
        async with self._lock:
            self.optimization_enabled = enabled
            await self._async_refresh()
        self._async_publish()

    async def async_set_load_manager_enabled(self, enabled: bool) -> None:
        """Enable or disable automatic load balancing."""
        async with self._lock:
            self.load_manager_enabled = enabled
        self._async_publish()

    # Planning

    async def async_get_charging_plan(
        self,
        target_soc: float | None = None,
        charge_rate_kw: float | None = None,
    ) -> dict[str, Any]:
        """Build a charging plan from the forecasts and a battery snapshot."""
        config = self.config
        async with self._lock:
            battery = BatterySnapshot(
                capacity_kwh=self.state.battery.capacity_kwh,
                current_soc=self.state.battery.soc,
                target_soc=(
                    clamp(float(target_soc), 0.0, 100.0)
                    if target_soc is not None
                    else self.state.effective_target_soc
                ),
                charge_rate_kw=(
                    float(charge_rate_kw)
                    if charge_rate_kw is not None
                    else safe_float(config.get(CONF_CHARGE_RATE_KW), DEFAULT_CHARGE_RATE_KW)
                ),
            )

        prices = await self.price_provider.async_get_price_forecast()
        solar = await self.solar_provider.async_get_solar_forecast(
            safe_float(config.get(CONF_LATITUDE), DEFAULT_LATITUDE),
            safe_float(config.get(CONF_LONGITUDE), DEFAULT_LONGITUDE),
            safe_float(config.get(CONF_PV_PEAK_POWER_KW), DEFAULT_PV_PEAK_POWER_KW),
        )
        plan = generate_charging_plan(prices, solar, battery, dt_util.now().hour)
        savings = estimate_monthly_savings(prices, battery_kwh=battery.capacity_kwh)
        return {
            "plan": plan.to_dict(),
            "battery": {
                "capacity_kwh": battery.capacity_kwh,
                "current_soc": battery.current_soc,
                "target_soc": battery.target_soc,
                "charge_rate_kw": battery.charge_rate_kw,
            },
            "prices": {
                "today": prices.today_stats.to_dict(),
                "tomorrow": prices.tomorrow_stats.to_dict(),
                "tomorrow_available": prices.tomorrow_available,
                "error": prices.error,
            },
            "solar": {
                "today_kwh": solar.today_kwh,
                "tomorrow_kwh": solar.tomorrow_kwh,
                "peak_hour": solar.peak_hour,
                "error": solar.error,
            },
            "monthly_savings": savings.to_dict(),
        }

    # Alerts

    async def async_set_do_not_disturb(self, until: datetime | None) -> None:
        """Suppress notifications until the given time (None clears)."""
        async with self._lock:
            self.state.dnd_until = until
            await self._async_save()
            _LOGGER.info("Do-Not-Disturb %s", f"until {until}" if until else "cleared")
        self._async_publish()

    async def async_clear_alerts(self, include_history: bool = False) -> None:
        """Drop active alerts and optionally the history."""
        async with self._lock:
            self.state.active_alerts.clear()
            if include_history:
                self.state.alert_history.clear()
            await self._async_save()
        self._async_publish()

    # History

    async def async_record_snapshot(self) -> dict[str, Any]:
        """Append a metrics snapshot to the bounded in-memory history."""
        async with self._lock:
            state = self.state
            snapshot = {
                "timestamp": dt_util.now().isoformat(),
                "soc": state.battery.soc,
                "battery_power": state.battery.power,
                "grid_power": state.grid_power,
                "load_power": state.load_power,
                "pv_power": state.pv_power,
                "price": state.current_price,
                "period": state.current_period,
                "target_soc": state.effective_target_soc,
                "decision": state.charging_decision,
                "usage_percent": round(state.usage_percent, 1),
                "shed_loads": len(state.shed_loads),
            }
            state.snapshots.append(snapshot)
            del state.snapshots[:-SNAPSHOT_HISTORY_LIMIT]
        return snapshot
