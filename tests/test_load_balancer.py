"""Tests for priority load shedding and restoration."""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from homeassistant.exceptions import HomeAssistantError

from custom_components.volt_load_manager.const import (
    PRIORITY_ACCESSORY,
    PRIORITY_COMFORT,
    PRIORITY_ESSENTIAL,
)
from custom_components.volt_load_manager.decision_engine.load_balancer import (
    BALANCE_NONE,
    BALANCE_RESTORE,
    BALANCE_SHED,
    async_balance,
    async_restore_all,
    async_restore_loads,
    async_shed_loads,
    select_restore_candidates,
    select_shed_candidates,
)
from custom_components.volt_load_manager.models import Load


def _load(
    load_id: str,
    priority: str,
    power: float,
    *,
    is_on: bool = True,
    max_power: float | None = None,
    switch: bool = True,
) -> Load:
    return Load(
        id=load_id,
        name=load_id.upper(),
        priority=priority,
        switch_entity=f"switch.{load_id}" if switch else None,
        max_power=max_power if max_power is not None else power,
        current_power=power if is_on else 0.0,
        is_on=is_on,
    )


def _hass(side_effect=None) -> MagicMock:
    hass = MagicMock()
    hass.services.async_call = AsyncMock(side_effect=side_effect)
    return hass


def _switched(hass: MagicMock, service: str) -> list[str]:
    return [
        call.args[2]["entity_id"]
        for call in hass.services.async_call.call_args_list
        if call.args[1] == service
    ]


@pytest.fixture
def loads() -> list[Load]:
    return [
        _load("a", PRIORITY_ACCESSORY, 500),
        _load("b", PRIORITY_ACCESSORY, 900),
        _load("c", PRIORITY_COMFORT, 300),
        _load("fridge", PRIORITY_ESSENTIAL, 2000),
    ]


@pytest.mark.unit
def test_shed_order_accessory_first_biggest_first(loads: list[Load]) -> None:
    ordered = select_shed_candidates(loads, [])
    assert [load.id for load in ordered] == ["b", "a", "c"]


@pytest.mark.unit
def test_shed_candidates_skip_off_shed_and_unswitchable() -> None:
    loads = [
        _load("off", PRIORITY_ACCESSORY, 400, is_on=False),
        _load("manual", PRIORITY_ACCESSORY, 400, switch=False),
        _load("gone", PRIORITY_ACCESSORY, 400),
        _load("ok", PRIORITY_COMFORT, 400),
    ]
    assert [load.id for load in select_shed_candidates(loads, ["gone"])] == ["ok"]


@pytest.mark.asyncio
async def test_shed_stops_once_excess_is_covered(loads: list[Load]) -> None:
    """A(500) B(900) C(300) with 700 W excess sheds only B."""
    hass = _hass()
    shed: list[str] = []
    persist = AsyncMock()

    result = await async_shed_loads(
        hass, loads, shed, demand=3700, max_available=3000, persist=persist
    )

    assert result.mode == BALANCE_SHED
    assert shed == ["b"]
    assert result.saved == 900
    assert _switched(hass, "turn_off") == ["switch.b"]
    assert loads[1].is_on is False
    persist.assert_awaited_once()


@pytest.mark.asyncio
async def test_essential_loads_are_never_shed(loads: list[Load]) -> None:
    hass = _hass()
    shed: list[str] = []

    result = await async_shed_loads(hass, loads, shed, demand=10000, max_available=1000)

    assert shed == ["b", "a", "c"]
    assert result.saved == 1700
    assert "switch.fridge" not in _switched(hass, "turn_off")


@pytest.mark.asyncio
async def test_failed_shed_moves_on_to_next_load(loads: list[Load]) -> None:
    hass = _hass(side_effect=[HomeAssistantError("offline"), None, None])
    shed: list[str] = []

    result = await async_shed_loads(hass, loads, shed, demand=3700, max_available=3000)

    assert shed == ["a", "c"]
    assert result.saved == 800
    assert [(action.load_id, action.success) for action in result.actions] == [
        ("b", False),
        ("a", True),
        ("c", True),
    ]
    assert loads[1].is_on is True


@pytest.mark.unit
def test_restore_order_comfort_first_smallest_first() -> None:
    loads = [
        _load("e", PRIORITY_ACCESSORY, 0, is_on=False, max_power=150),
        _load("big", PRIORITY_COMFORT, 0, is_on=False, max_power=800),
        _load("d", PRIORITY_COMFORT, 0, is_on=False, max_power=200),
    ]
    ordered = select_restore_candidates(loads, ["e", "big", "d"])
    assert [load.id for load in ordered] == ["d", "big", "e"]


@pytest.mark.asyncio
async def test_restore_respects_headroom_factor() -> None:
    """D(comfort,200) restores within 300*0.8; E(accessory,150) no longer fits."""
    loads = [
        _load("d", PRIORITY_COMFORT, 0, is_on=False, max_power=200),
        _load("e", PRIORITY_ACCESSORY, 0, is_on=False, max_power=150),
    ]
    hass = _hass()
    shed = ["e", "d"]
    persist = AsyncMock()

    result = await async_restore_loads(
        hass, loads, shed, demand=2700, max_available=3000, persist=persist
    )

    assert result.mode == BALANCE_RESTORE
    assert _switched(hass, "turn_on") == ["switch.d"]
    assert shed == ["e"]
    assert result.restored == 200
    assert loads[0].is_on is True
    persist.assert_awaited_once()


@pytest.mark.asyncio
async def test_restore_both_when_headroom_allows() -> None:
    loads = [
        _load("d", PRIORITY_COMFORT, 0, is_on=False, max_power=200),
        _load("e", PRIORITY_ACCESSORY, 0, is_on=False, max_power=150),
    ]
    hass = _hass()
    shed = ["d", "e"]

    await async_restore_loads(hass, loads, shed, demand=2000, max_available=3000)

    assert shed == []
    assert _switched(hass, "turn_on") == ["switch.d", "switch.e"]


@pytest.mark.asyncio
async def test_balance_dispatches_by_state(loads: list[Load]) -> None:
    hass = _hass()

    idle = await async_balance(hass, loads, [], demand=1000, max_available=3000)
    assert idle.mode == BALANCE_NONE
    assert not idle.changed
    hass.services.async_call.assert_not_awaited()

    shed = await async_balance(hass, loads, [], demand=3500, max_available=3000)
    assert shed.mode == BALANCE_SHED
    assert shed.changed


@pytest.mark.asyncio
async def test_restore_all_ignores_headroom_and_drops_unknown_ids() -> None:
    loads = [
        _load("d", PRIORITY_COMFORT, 0, is_on=False, max_power=5000),
        _load("e", PRIORITY_ACCESSORY, 0, is_on=False, max_power=5000),
    ]
    hass = _hass()
    shed = ["d", "removed", "e"]

    result = await async_restore_all(hass, loads, shed)

    assert shed == []
    assert result.restored == 10000
    assert _switched(hass, "turn_on") == ["switch.d", "switch.e"]
