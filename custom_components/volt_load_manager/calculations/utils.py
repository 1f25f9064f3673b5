"""Calculation utilities for Volt Load Manager."""
from __future__ import annotations

from typing import Any


def safe_float(value: Any, default: float | None = 0.0) -> float | None:
    """Safely convert value to float with None handling.

    Args:
        value: Value to convert
        default: Default value if conversion fails

    Returns:
        Float value or default
    """
    if value is None:
        return default
    try:
        result = float(value)
    except (ValueError, TypeError):
        return default
    if result != result:  # NaN
        return default
    return result


def clamp(value: float, min_val: float, max_val: float) -> float:
    """Clamp value between minimum and maximum.

    Args:
        value: Value to clamp
        min_val: Minimum allowed value
        max_val: Maximum allowed value

    Returns:
        Clamped value
    """
    return max(min_val, min(value, max_val))


def soc_to_kwh(soc: float, capacity_kwh: float) -> float:
    """Convert SOC percentage to stored energy in kWh."""
    return soc / 100.0 * capacity_kwh


def watts_to_kw(watts: float) -> float:
    """Convert W to kW."""
    return watts / 1000.0
