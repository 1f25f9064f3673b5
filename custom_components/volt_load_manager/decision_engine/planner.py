"""Forecast based charging planner (greedy cheapest hours)."""
from __future__ import annotations

import dataclasses
import logging
import math
from typing import Any

from ..const import (
    PLAN_CHARGE_NOW,
    PLAN_HOLD,
    PLAN_WAIT_FOR_CHEAP,
    PLAN_WAIT_FOR_SOLAR,
)
from ..calculations.utils import soc_to_kwh, watts_to_kw
from ..models import BatterySnapshot, ChargingPlan, PriceForecast, SolarForecast

_LOGGER = logging.getLogger(__name__)

# Household assumptions for the monthly estimate.
DAILY_USAGE_KWH = 25.0
DAILY_SOLAR_KWH = 15.0
MAX_BATTERY_SHIFT = 0.5
FALLBACK_AVG_PRICE = 0.15
FALLBACK_MIN_PRICE = 0.05


def generate_charging_plan(
    prices: PriceForecast,
    solar: SolarForecast,
    battery: BatterySnapshot,
    current_hour: int,
) -> ChargingPlan:
    """Pick the cheapest remaining hours of today to reach the target SOC.

    Args:
        prices: Price forecast (only today's hours are considered)
        solar: Solar forecast used to discount the energy needed
        battery: Capacity, current and target SOC, charge rate
        current_hour: Local hour the plan is made for

    Returns:
        ChargingPlan; amounts are rounded only here at the output
    """
    needed_kwh = soc_to_kwh(battery.target_soc - battery.current_soc, battery.capacity_kwh)
    if needed_kwh <= 0:
        return ChargingPlan(
            action=PLAN_HOLD,
            reason=(
                f"Battery already at {battery.current_soc:.0f}% "
                f"(target {battery.target_soc:.0f}%)"
            ),
        )

    remaining_solar_kwh = watts_to_kw(
        sum(point.watts for point in solar.today if point.hour >= current_hour)
    )
    if needed_kwh <= remaining_solar_kwh:
        return ChargingPlan(
            action=PLAN_WAIT_FOR_SOLAR,
            reason=f"Solar forecast ({remaining_solar_kwh:.1f} kWh) covers the {needed_kwh:.1f} kWh needed",
            needed_kwh=round(needed_kwh, 1),
            solar_coverage_kwh=round(remaining_solar_kwh, 1),
        )

    grid_kwh = needed_kwh - remaining_solar_kwh
    candidates = sorted(
        (point for point in prices.today if point.hour >= current_hour),
        key=lambda point: (point.price, point.hour),
    )
    if not candidates or battery.charge_rate_kw <= 0:
        reason = (
            "No price forecast for the remaining hours of today"
            if not candidates
            else "Charge rate is not configured"
        )
        return ChargingPlan(
            action=PLAN_HOLD,
            reason=reason,
            needed_kwh=round(needed_kwh, 1),
            grid_kwh=round(grid_kwh, 1),
            solar_coverage_kwh=round(remaining_solar_kwh, 1),
        )

    hours_needed = math.ceil(grid_kwh / battery.charge_rate_kw)
    selected = candidates[:hours_needed]

    estimated_cost = sum(point.price * battery.charge_rate_kw for point in selected)
    avg_price = sum(point.price for point in selected) / len(selected)
    current_price = prices.price_at(current_hour)
    if current_price is None:
        current_price = avg_price
    savings = grid_kwh * current_price - estimated_cost

    charge_hours = tuple(sorted(point.hour for point in selected))
    first = min(selected, key=lambda point: point.hour)
    if current_hour in charge_hours:
        action = PLAN_CHARGE_NOW
        reason = f"Current hour is among the cheapest ({current_price:.4f} EUR/kWh)"
    else:
        action = PLAN_WAIT_FOR_CHEAP
        reason = f"Wait until {first.hour:02d}:00 for a cheaper rate ({first.price:.4f} EUR/kWh)"

    _LOGGER.debug(
        "Charging plan %s: %.2f kWh from grid over hours %s", action, grid_kwh, charge_hours
    )
    return ChargingPlan(
        action=action,
        reason=reason,
        charge_hours=charge_hours,
        next_charge_hour=first.hour,
        needed_kwh=round(needed_kwh, 1),
        grid_kwh=round(grid_kwh, 1),
        estimated_cost=round(estimated_cost, 2),
        avg_price=round(avg_price, 4),
        savings=round(savings, 2),
        solar_coverage_kwh=round(remaining_solar_kwh, 1),
    )


@dataclasses.dataclass(frozen=True, slots=True)
class MonthlySavings:
    """Rough monthly bill with and without optimization."""

    base_monthly_bill: float
    optimized_monthly_bill: float
    monthly_savings: float
    savings_percent: float
    assumptions: dict[str, float]

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


def estimate_monthly_savings(
    prices: PriceForecast,
    *,
    battery_kwh: float,
    daily_usage_kwh: float = DAILY_USAGE_KWH,
    daily_solar_kwh: float = DAILY_SOLAR_KWH,
) -> MonthlySavings:
    """Estimate the monthly effect of solar plus cheap-hour charging.

    Uses today's average and minimum price. Solar energy is free, the battery
    shifts up to half of the remaining usage to the cheapest price and the
    rest is bought at the average price.
    """
    stats = prices.today_stats
    has_prices = bool(prices.today)
    avg_price = stats.avg if has_prices else FALLBACK_AVG_PRICE
    min_price = stats.min if has_prices else FALLBACK_MIN_PRICE

    solar_share = min(daily_solar_kwh / daily_usage_kwh, 1.0) if daily_usage_kwh > 0 else 0.0
    battery_shift = min(battery_kwh / daily_usage_kwh, MAX_BATTERY_SHIFT) if daily_usage_kwh > 0 else 0.0
    grid_share = 1 - solar_share

    base_bill = daily_usage_kwh * avg_price * 30
    optimized_bill = daily_usage_kwh * 30 * (
        battery_shift * grid_share * min_price
        + (grid_share - battery_shift * grid_share) * avg_price
    )
    savings_percent = (1 - optimized_bill / base_bill) * 100 if base_bill > 0 else 0.0

    return MonthlySavings(
        base_monthly_bill=round(base_bill, 2),
        optimized_monthly_bill=round(optimized_bill, 2),
        monthly_savings=round(base_bill - optimized_bill, 2),
        savings_percent=round(savings_percent, 1),
        assumptions={
            "daily_usage_kwh": daily_usage_kwh,
            "daily_solar_kwh": daily_solar_kwh,
            "battery_kwh": battery_kwh,
        },
    )
