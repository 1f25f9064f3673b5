"""Tests for tariff period classification and contracted power."""
from __future__ import annotations

from datetime import datetime

import pytest

from custom_components.volt_load_manager.calculations.tariff import (
    TariffWindows,
    calculate_max_available,
    classify_period,
    get_period_settings,
    is_weekend,
    resolve_period,
)
from custom_components.volt_load_manager.const import (
    CONF_LLANO_CONTRACTED_POWER_KW,
    CONF_PUNTA_TARGET_SOC,
    CONF_PUNTA_WINDOWS,
    CONF_VALLE_CONTRACTED_POWER_KW,
    CONF_VALLE_END_HOUR,
    CONF_VALLE_START_HOUR,
    PERIOD_LLANO,
    PERIOD_PUNTA,
    PERIOD_VALLE,
)

# 2026-10-14 is a Wednesday, 2026-10-17 a Saturday.
WEDNESDAY = datetime(2026, 10, 14)
SATURDAY = datetime(2026, 10, 17)


@pytest.mark.unit
@pytest.mark.parametrize(
    ("hour", "expected"),
    [
        (0, PERIOD_VALLE),
        (7, PERIOD_VALLE),
        (8, PERIOD_LLANO),
        (9, PERIOD_LLANO),
        (10, PERIOD_PUNTA),
        (13, PERIOD_PUNTA),
        (14, PERIOD_LLANO),
        (17, PERIOD_LLANO),
        (18, PERIOD_PUNTA),
        (21, PERIOD_PUNTA),
        (22, PERIOD_LLANO),
        (23, PERIOD_LLANO),
    ],
)
def test_classify_period_weekday_boundaries(hour: int, expected: str) -> None:
    assert classify_period(WEDNESDAY.replace(hour=hour)) == expected


@pytest.mark.unit
@pytest.mark.parametrize("hour", [0, 9, 12, 19, 23])
def test_weekend_is_valle_all_day(hour: int) -> None:
    assert is_weekend(SATURDAY)
    assert classify_period(SATURDAY.replace(hour=hour)) == PERIOD_VALLE


@pytest.mark.unit
def test_custom_windows_from_config() -> None:
    windows = TariffWindows.from_config(
        {
            CONF_VALLE_START_HOUR: 23,
            CONF_VALLE_END_HOUR: 7,
            CONF_PUNTA_WINDOWS: "9-13",
        }
    )

    assert windows.punta_windows == ((9, 13),)
    assert classify_period(WEDNESDAY.replace(hour=23), windows) == PERIOD_VALLE
    assert classify_period(WEDNESDAY.replace(hour=7), windows) == PERIOD_LLANO
    assert classify_period(WEDNESDAY.replace(hour=9), windows) == PERIOD_PUNTA
    assert classify_period(WEDNESDAY.replace(hour=18), windows) == PERIOD_LLANO


@pytest.mark.unit
def test_invalid_punta_windows_fall_back_to_defaults() -> None:
    windows = TariffWindows.from_config({CONF_PUNTA_WINDOWS: "nonsense"})
    assert windows.punta_windows == ((10, 14), (18, 22))


@pytest.mark.unit
def test_resolve_period_prefers_reported_value() -> None:
    noon = WEDNESDAY.replace(hour=12)
    assert resolve_period("Valle", noon) == PERIOD_VALLE
    assert resolve_period(" punta ", noon) == PERIOD_PUNTA
    # Unrecognised labels fall back to the clock.
    assert resolve_period("P1", WEDNESDAY.replace(hour=15)) == PERIOD_LLANO
    assert resolve_period(None, WEDNESDAY.replace(hour=15)) == PERIOD_LLANO


@pytest.mark.unit
def test_period_settings_and_contracted_power() -> None:
    config = {
        CONF_VALLE_CONTRACTED_POWER_KW: 6.9,
        CONF_LLANO_CONTRACTED_POWER_KW: "4.6",
        CONF_PUNTA_TARGET_SOC: 130,
    }

    valle = get_period_settings(PERIOD_VALLE, config)
    assert valle.contracted_power_kw == 6.9
    assert valle.charge_battery is True

    assert get_period_settings(PERIOD_LLANO, config).contracted_power_kw == 4.6
    assert get_period_settings(PERIOD_LLANO, config).charge_battery is False
    assert get_period_settings(PERIOD_PUNTA, config).target_soc == 100.0
    assert get_period_settings("unknown", config).contracted_power_kw == 4.6


@pytest.mark.unit
def test_calculate_max_available_applies_margin() -> None:
    assert calculate_max_available(3450.0, 10) == pytest.approx(3105.0)
    assert calculate_max_available(3450.0, 0) == pytest.approx(3450.0)
    assert calculate_max_available(3450.0, -5) == pytest.approx(3450.0)
    assert calculate_max_available(3450.0, 150) == pytest.approx(0.0)
