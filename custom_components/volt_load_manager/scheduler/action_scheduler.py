"""Action scheduler for Volt Load Manager."""
from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Callable

from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.event import (
    async_call_later,
    async_track_point_in_time,
    async_track_time_interval,
)
from homeassistant.helpers.storage import Store
from homeassistant.util import dt as dt_util

from ..calculations.utils import safe_float
from ..const import (
    ACTION_APPLY_CHARGING,
    ACTION_BALANCE_LOADS,
    ACTION_CLEAR_OVERRIDE,
    ACTION_RESTORE_LOADS,
    ACTION_SET_TARGET_SOC,
    CONF_CHECK_INTERVAL_SECONDS,
    DEFAULT_CHECK_INTERVAL_SECONDS,
    INITIAL_CHARGING_DELAY,
    SCHEDULED_ACTIONS,
    STORAGE_KEY_PENDING_ACTIONS,
    STORAGE_VERSION_PENDING_ACTIONS,
    UPDATE_INTERVAL_CHARGING,
    UPDATE_INTERVAL_SNAPSHOT,
)
from ..helpers import get_config

if TYPE_CHECKING:
    from datetime import datetime

    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

    from ..engine import VoltEngine

_LOGGER = logging.getLogger(__name__)


class ActionScheduler:
    """Named periodic tasks plus durable one-shot actions."""

    def __init__(self, hass: HomeAssistant, entry: ConfigEntry, engine: VoltEngine) -> None:
        """Initialize the scheduler."""
        self.hass = hass
        self.entry = entry
        self.engine = engine
        self._listeners: dict[str, Callable[[], None]] = {}
        self._pending: dict[str, dict[str, Any]] = {}
        self._pending_listeners: dict[str, Callable[[], None]] = {}
        self._store: Store[dict[str, Any]] = Store(
            hass,
            STORAGE_VERSION_PENDING_ACTIONS,
            f"{STORAGE_KEY_PENDING_ACTIONS}.{entry.entry_id}",
        )

    @property
    def pending_actions(self) -> list[dict[str, Any]]:
        """Pending one-shot actions ordered by due time."""
        return sorted(self._pending.values(), key=lambda item: item["run_at"])

    def start(self) -> None:
        """Start periodic tasks and restore pending one-shot actions."""
        interval = safe_float(
            get_config(self.entry).get(CONF_CHECK_INTERVAL_SECONDS),
            DEFAULT_CHECK_INTERVAL_SECONDS,
        )
        self._listeners["balance_loads"] = async_track_time_interval(
            self.hass, self._handle_balance, timedelta(seconds=max(interval, 5))
        )
        self._listeners["apply_charging"] = async_track_time_interval(
            self.hass, self._handle_charging, timedelta(seconds=UPDATE_INTERVAL_CHARGING)
        )
        self._listeners["record_snapshot"] = async_track_time_interval(
            self.hass, self._handle_snapshot, timedelta(seconds=UPDATE_INTERVAL_SNAPSHOT)
        )
        self._listeners["initial_charging"] = async_call_later(
            self.hass, INITIAL_CHARGING_DELAY, self._handle_initial_charging
        )

        self.hass.async_create_task(self._check_pending_actions())
        _LOGGER.info("Volt Load Manager scheduler started for entry %s", self.entry.entry_id)

    def stop(self) -> None:
        """Stop all scheduled listeners; pending actions stay persisted."""
        for remove_listener in self._listeners.values():
            remove_listener()
        self._listeners.clear()
        for remove_listener in self._pending_listeners.values():
            remove_listener()
        self._pending_listeners.clear()

    async def _handle_balance(self, now: datetime) -> None:
        """Run the periodic load balance."""
        if not self.engine.load_manager_enabled:
            return
        await self.engine.async_balance_loads()

    async def _handle_charging(self, now: datetime) -> None:
        """Re-evaluate and apply the charging decision."""
        _LOGGER.debug("Scheduler triggering charging evaluation")
        await self.engine.async_apply_charging()

    async def _handle_snapshot(self, now: datetime) -> None:
        """Record a metrics snapshot."""
        await self.engine.async_record_snapshot()

    async def _handle_initial_charging(self, now: datetime) -> None:
        """Apply the charging decision shortly after startup."""
        self._listeners.pop("initial_charging", None)
        _LOGGER.info("Scheduler applying initial charging decision")
        await self.engine.async_apply_charging()

    # One-shot actions

    async def async_schedule_action(
        self,
        action: str,
        run_at: datetime,
        data: dict[str, Any] | None = None,
    ) -> str:
        """Persist and arm a one-shot action.

        Raises:
            ValueError: If the action is unknown
        """
        if action not in SCHEDULED_ACTIONS:
            raise ValueError(f"Unknown scheduled action: {action}")

        action_id = uuid.uuid4().hex
        item = {
            "id": action_id,
            "action": action,
            "run_at": dt_util.as_utc(run_at).isoformat(),
            "data": dict(data or {}),
        }
        self._pending[action_id] = item
        await self._async_save_pending()
        self._arm(item)
        _LOGGER.info("Scheduled %s at %s", action, item["run_at"])
        return action_id

    async def async_cancel_action(self, action_id: str) -> bool:
        """Cancel a pending one-shot action."""
        if self._pending.pop(action_id, None) is None:
            return False
        remove_listener = self._pending_listeners.pop(action_id, None)
        if remove_listener is not None:
            remove_listener()
        await self._async_save_pending()
        return True

    def _arm(self, item: dict[str, Any]) -> None:
        action_id = item["id"]
        run_at = dt_util.parse_datetime(item["run_at"])
        if run_at is None:
            _LOGGER.warning("Dropping scheduled action %s with invalid time", action_id)
            self._pending.pop(action_id, None)
            return

        async def _fire(now: datetime) -> None:
            self._pending_listeners.pop(action_id, None)
            await self._async_run_pending(action_id)

        self._pending_listeners[action_id] = async_track_point_in_time(self.hass, _fire, run_at)

    async def _async_run_pending(self, action_id: str) -> None:
        item = self._pending.pop(action_id, None)
        if item is None:
            return
        await self._async_save_pending()
        try:
            await self._async_execute(item["action"], item.get("data") or {})
        except (HomeAssistantError, KeyError, TypeError, ValueError) as err:
            _LOGGER.warning("Scheduled action %s failed: %s", item["action"], err)

    async def _async_execute(self, action: str, data: dict[str, Any]) -> None:
        """Dispatch a one-shot action to the engine."""
        _LOGGER.info("Running scheduled action %s", action)
        if action == ACTION_CLEAR_OVERRIDE:
            await self.engine.async_clear_manual_override()
        elif action == ACTION_SET_TARGET_SOC:
            expires_at = dt_util.parse_datetime(str(data["expires_at"])) if data.get("expires_at") else None
            await self.engine.async_set_manual_override(float(data["target_soc"]), expires_at)
        elif action == ACTION_BALANCE_LOADS:
            await self.engine.async_balance_loads()
        elif action == ACTION_RESTORE_LOADS:
            await self.engine.async_restore_all_loads()
        elif action == ACTION_APPLY_CHARGING:
            await self.engine.async_apply_charging()

    async def _async_save_pending(self) -> None:
        try:
            await self._store.async_save({"actions": list(self._pending.values())})
        except (HomeAssistantError, OSError) as err:
            _LOGGER.error("Failed to persist scheduled actions: %s", err)

    async def _check_pending_actions(self) -> None:
        """Load pending actions after startup; run overdue ones and re-arm the rest."""
        try:
            data = await self._store.async_load()
        except (HomeAssistantError, OSError, ValueError) as err:
            _LOGGER.error("Failed to load scheduled actions: %s", err)
            return
        if not data:
            return

        now = dt_util.utcnow()
        overdue: list[str] = []
        for item in data.get("actions") or []:
            if not isinstance(item, dict) or item.get("action") not in SCHEDULED_ACTIONS:
                continue
            run_at = dt_util.parse_datetime(str(item.get("run_at", "")))
            if run_at is None or not item.get("id"):
                continue
            self._pending[item["id"]] = item
            if run_at <= now:
                overdue.append(item["id"])
            else:
                self._arm(item)

        for action_id in overdue:
            _LOGGER.info(
                "Startup: executing overdue scheduled action %s",
                self._pending[action_id]["action"],
            )
            await self._async_run_pending(action_id)
