"""Priority based load shedding and restoration."""
from __future__ import annotations

import dataclasses
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING

from ..const import (
    PRIORITY_ESSENTIAL,
    RESTORE_HEADROOM_FACTOR,
    RESTORE_ORDER,
    SHED_ORDER,
)
from ..controllers.inverter import async_turn_off, async_turn_on
from ..models import Load

if TYPE_CHECKING:
    from homeassistant.core import Context, HomeAssistant

_LOGGER = logging.getLogger(__name__)

BALANCE_SHED = "shed"
BALANCE_RESTORE = "restore"
BALANCE_NONE = "none"

PersistCallback = Callable[[], Awaitable[None]]


@dataclasses.dataclass(frozen=True, slots=True)
class LoadAction:
    """A single switch command issued by the balancer."""

    load_id: str
    name: str
    action: str
    power: float
    success: bool


@dataclasses.dataclass(frozen=True, slots=True)
class BalanceResult:
    """Outcome of one balance cycle."""

    mode: str
    demand: float
    max_available: float
    actions: tuple[LoadAction, ...] = ()
    saved: float = 0.0
    restored: float = 0.0

    @property
    def changed(self) -> bool:
        return any(action.success for action in self.actions)


def _is_manageable(load: Load) -> bool:
    return load.priority != PRIORITY_ESSENTIAL and load.is_switchable


def is_overloaded(demand: float, max_available: float) -> bool:
    """Return True when measured demand exceeds the usable ceiling."""
    return demand > max_available


def select_shed_candidates(
    loads: Iterable[Load], shed_loads: Iterable[str]
) -> list[Load]:
    """Order loads for shedding.

    Accessory loads come before comfort loads; within a tier the biggest
    consumer goes first. Only loads that are on, not shed already and have a
    switch are returned. Essential loads are never returned.
    """
    shed = set(shed_loads)
    eligible = [
        load
        for load in loads
        if _is_manageable(load) and load.is_on and load.id not in shed
    ]
    ordered: list[Load] = []
    for tier in SHED_ORDER:
        tier_loads = [load for load in eligible if load.priority == tier]
        ordered.extend(sorted(tier_loads, key=lambda load: load.current_power, reverse=True))
    return ordered


def select_restore_candidates(
    loads: Iterable[Load], shed_loads: Iterable[str]
) -> list[Load]:
    """Order shed loads for restoration.

    Comfort loads come before accessory loads; within a tier the smallest
    rated load goes first.
    """
    shed = set(shed_loads)
    eligible = [load for load in loads if _is_manageable(load) and load.id in shed]
    ordered: list[Load] = []
    for tier in RESTORE_ORDER:
        tier_loads = [load for load in eligible if load.priority == tier]
        ordered.extend(sorted(tier_loads, key=lambda load: load.max_power))
    return ordered


async def async_shed_loads(
    hass: HomeAssistant,
    loads: list[Load],
    shed_loads: list[str],
    *,
    demand: float,
    max_available: float,
    persist: PersistCallback | None = None,
    context: Context | None = None,
) -> BalanceResult:
    """Switch off loads until the excess over the ceiling is covered.

    ``shed_loads`` is updated in place and persisted after each success.

    Args:
        hass: Home Assistant instance
        loads: Configured loads with fresh readings
        shed_loads: Ids of loads currently forced off
        demand: Measured demand (W)
        max_available: Usable ceiling (W)
        persist: Awaited after every successful switch
        context: Optional context for the service calls

    Returns:
        BalanceResult with the commands issued
    """
    excess = demand - max_available
    saved = 0.0
    actions: list[LoadAction] = []

    for load in select_shed_candidates(loads, shed_loads):
        if saved >= excess:
            break
        ok = await async_turn_off(hass, load.switch_entity, context=context)
        actions.append(LoadAction(load.id, load.name, "off", load.current_power, ok))
        if not ok:
            _LOGGER.warning("Could not shed load %s (%s)", load.name, load.switch_entity)
            continue
        saved += load.current_power
        load.is_on = False
        shed_loads.append(load.id)
        _LOGGER.info(
            "Shed %s load %s (%.0f W), saved %.0f of %.0f W",
            load.priority,
            load.name,
            load.current_power,
            saved,
            excess,
        )
        if persist is not None:
            await persist()

    if saved < excess:
        _LOGGER.warning(
            "Overload not cleared: saved %.0f W of %.0f W excess", saved, excess
        )

    return BalanceResult(
        mode=BALANCE_SHED,
        demand=demand,
        max_available=max_available,
        actions=tuple(actions),
        saved=saved,
    )


async def async_restore_loads(
    hass: HomeAssistant,
    loads: list[Load],
    shed_loads: list[str],
    *,
    demand: float,
    max_available: float,
    persist: PersistCallback | None = None,
    context: Context | None = None,
    headroom_factor: float = RESTORE_HEADROOM_FACTOR,
) -> BalanceResult:
    """Switch shed loads back on while the headroom allows.

    A load restores only if its rated power fits in ``headroom_factor`` of
    the remaining headroom; each restored load consumes its rated power from
    the headroom.
    """
    headroom = max_available - demand
    restored = 0.0
    actions: list[LoadAction] = []

    for load in select_restore_candidates(loads, shed_loads):
        if load.max_power > headroom * headroom_factor:
            _LOGGER.debug(
                "Not restoring %s: %.0f W exceeds %.0f W of headroom",
                load.name,
                load.max_power,
                headroom * headroom_factor,
            )
            continue
        ok = await async_turn_on(hass, load.switch_entity, context=context)
        actions.append(LoadAction(load.id, load.name, "on", load.max_power, ok))
        if not ok:
            _LOGGER.warning("Could not restore load %s (%s)", load.name, load.switch_entity)
            continue
        headroom -= load.max_power
        restored += load.max_power
        load.is_on = True
        shed_loads.remove(load.id)
        _LOGGER.info("Restored %s load %s (%.0f W)", load.priority, load.name, load.max_power)
        if persist is not None:
            await persist()

    return BalanceResult(
        mode=BALANCE_RESTORE,
        demand=demand,
        max_available=max_available,
        actions=tuple(actions),
        restored=restored,
    )


async def async_restore_all(
    hass: HomeAssistant,
    loads: list[Load],
    shed_loads: list[str],
    *,
    persist: PersistCallback | None = None,
    context: Context | None = None,
) -> BalanceResult:
    """Turn every shed load back on regardless of headroom."""
    actions: list[LoadAction] = []
    restored = 0.0

    for load_id in list(shed_loads):
        load = next((item for item in loads if item.id == load_id), None)
        if load is None or not load.is_switchable:
            shed_loads.remove(load_id)
            continue
        ok = await async_turn_on(hass, load.switch_entity, context=context)
        actions.append(LoadAction(load.id, load.name, "on", load.max_power, ok))
        if not ok:
            _LOGGER.warning("Could not restore load %s (%s)", load.name, load.switch_entity)
            continue
        restored += load.max_power
        load.is_on = True
        shed_loads.remove(load_id)
        if persist is not None:
            await persist()

    _LOGGER.info("Restore all: %d load(s) switched on", sum(1 for a in actions if a.success))
    return BalanceResult(
        mode=BALANCE_RESTORE,
        demand=0.0,
        max_available=0.0,
        actions=tuple(actions),
        restored=restored,
    )


async def async_balance(
    hass: HomeAssistant,
    loads: list[Load],
    shed_loads: list[str],
    *,
    demand: float,
    max_available: float,
    persist: PersistCallback | None = None,
    context: Context | None = None,
) -> BalanceResult:
    """Shed on overload, otherwise restore when something is shed."""
    if is_overloaded(demand, max_available):
        _LOGGER.info(
            "Overload: demand %.0f W > available %.0f W", demand, max_available
        )
        return await async_shed_loads(
            hass,
            loads,
            shed_loads,
            demand=demand,
            max_available=max_available,
            persist=persist,
            context=context,
        )
    if shed_loads:
        return await async_restore_loads(
            hass,
            loads,
            shed_loads,
            demand=demand,
            max_available=max_available,
            persist=persist,
            context=context,
        )
    return BalanceResult(mode=BALANCE_NONE, demand=demand, max_available=max_available)
