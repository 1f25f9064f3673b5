"""Tariff period calculations (Spanish 2.0TD valle/llano/punta)."""
from __future__ import annotations

import dataclasses
from datetime import datetime
from typing import Any

from ..const import (
    CONF_LLANO_CONTRACTED_POWER_KW,
    CONF_LLANO_TARGET_SOC,
    CONF_PUNTA_CONTRACTED_POWER_KW,
    CONF_PUNTA_TARGET_SOC,
    CONF_PUNTA_WINDOWS,
    CONF_VALLE_CONTRACTED_POWER_KW,
    CONF_VALLE_END_HOUR,
    CONF_VALLE_START_HOUR,
    CONF_VALLE_TARGET_SOC,
    DEFAULT_LLANO_CONTRACTED_POWER_KW,
    DEFAULT_LLANO_TARGET_SOC,
    DEFAULT_PUNTA_CONTRACTED_POWER_KW,
    DEFAULT_PUNTA_TARGET_SOC,
    DEFAULT_PUNTA_WINDOWS,
    DEFAULT_SAFETY_MARGIN_PERCENT,
    DEFAULT_VALLE_CONTRACTED_POWER_KW,
    DEFAULT_VALLE_END_HOUR,
    DEFAULT_VALLE_START_HOUR,
    DEFAULT_VALLE_TARGET_SOC,
    PERIOD_LLANO,
    PERIOD_PUNTA,
    PERIOD_VALLE,
    PERIODS,
)
from ..utils.time_window import is_hour_in_any_window, is_hour_in_window, parse_hour_windows
from .utils import clamp, safe_float


@dataclasses.dataclass(frozen=True, slots=True)
class TariffWindows:
    """Clock windows that define the tariff periods on weekdays."""

    valle_start_hour: int = DEFAULT_VALLE_START_HOUR
    valle_end_hour: int = DEFAULT_VALLE_END_HOUR
    punta_windows: tuple[tuple[int, int], ...] = DEFAULT_PUNTA_WINDOWS

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> TariffWindows:
        """Build windows from config entry data, falling back to defaults."""
        punta = parse_hour_windows(config.get(CONF_PUNTA_WINDOWS))
        return cls(
            valle_start_hour=int(config.get(CONF_VALLE_START_HOUR, DEFAULT_VALLE_START_HOUR)),
            valle_end_hour=int(config.get(CONF_VALLE_END_HOUR, DEFAULT_VALLE_END_HOUR)),
            punta_windows=tuple(punta) if punta else DEFAULT_PUNTA_WINDOWS,
        )


@dataclasses.dataclass(frozen=True, slots=True)
class PeriodSettings:
    """Per-period contracted power and battery policy."""

    contracted_power_kw: float
    charge_battery: bool
    target_soc: float


_PERIOD_KEYS: dict[str, tuple[str, float, str, float]] = {
    PERIOD_VALLE: (
        CONF_VALLE_CONTRACTED_POWER_KW,
        DEFAULT_VALLE_CONTRACTED_POWER_KW,
        CONF_VALLE_TARGET_SOC,
        DEFAULT_VALLE_TARGET_SOC,
    ),
    PERIOD_LLANO: (
        CONF_LLANO_CONTRACTED_POWER_KW,
        DEFAULT_LLANO_CONTRACTED_POWER_KW,
        CONF_LLANO_TARGET_SOC,
        DEFAULT_LLANO_TARGET_SOC,
    ),
    PERIOD_PUNTA: (
        CONF_PUNTA_CONTRACTED_POWER_KW,
        DEFAULT_PUNTA_CONTRACTED_POWER_KW,
        CONF_PUNTA_TARGET_SOC,
        DEFAULT_PUNTA_TARGET_SOC,
    ),
}

# Only the cheap period charges from the grid by default.
_CHARGE_BATTERY = {PERIOD_VALLE: True, PERIOD_LLANO: False, PERIOD_PUNTA: False}


def is_weekend(now: datetime) -> bool:
    """Return True on Saturday and Sunday."""
    return now.weekday() >= 5


def classify_period(now: datetime, windows: TariffWindows | None = None) -> str:
    """Classify a local timestamp into valle, llano or punta.

    Weekends are valle all day. On weekdays the valle window wins over the
    punta windows, any other hour is llano.

    Args:
        now: Local time to classify
        windows: Tariff windows; defaults to 00-08 valle, 10-14 and 18-22 punta

    Returns:
        Period name
    """
    windows = windows or TariffWindows()
    if is_weekend(now):
        return PERIOD_VALLE

    hour = now.hour
    if is_hour_in_window(hour, windows.valle_start_hour, windows.valle_end_hour):
        return PERIOD_VALLE
    if is_hour_in_any_window(hour, windows.punta_windows):
        return PERIOD_PUNTA
    return PERIOD_LLANO


def resolve_period(
    reported: str | None, now: datetime, windows: TariffWindows | None = None
) -> str:
    """Prefer a period reported by a tariff sensor, else classify by clock."""
    if reported:
        normalized = str(reported).strip().lower()
        if normalized in PERIODS:
            return normalized
    return classify_period(now, windows)


def get_period_settings(period: str, config: dict[str, Any]) -> PeriodSettings:
    """Return contracted power and target SOC for a period.

    Unknown periods use the llano settings.
    """
    power_key, power_default, soc_key, soc_default = _PERIOD_KEYS.get(
        period, _PERIOD_KEYS[PERIOD_LLANO]
    )
    contracted = safe_float(config.get(power_key), power_default)
    target = safe_float(config.get(soc_key), soc_default)
    return PeriodSettings(
        contracted_power_kw=contracted,
        charge_battery=_CHARGE_BATTERY.get(period, False),
        target_soc=clamp(target, 0.0, 100.0),
    )


def calculate_max_available(
    contracted_power_w: float,
    safety_margin_percent: float = DEFAULT_SAFETY_MARGIN_PERCENT,
) -> float:
    """Apply the safety margin to the contracted power.

    Args:
        contracted_power_w: Contracted power (W)
        safety_margin_percent: Margin kept free (%)

    Returns:
        Usable power ceiling (W)
    """
    margin = clamp(safety_margin_percent, 0.0, 100.0)
    return contracted_power_w * (1 - margin / 100.0)
