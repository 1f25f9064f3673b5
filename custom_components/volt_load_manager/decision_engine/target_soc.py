"""Target SOC rule cascade."""
from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from ..calculations.utils import clamp, safe_float
from ..const import (
    CONF_ALWAYS_CHARGE_BELOW_PRICE,
    CONF_KEEP_FULL_WEEKENDS,
    CONF_MIN_SOC,
    CONF_NEVER_CHARGE_ABOVE_PRICE,
    DEFAULT_ALWAYS_CHARGE_BELOW_PRICE,
    DEFAULT_MIN_SOC,
    DEFAULT_NEVER_CHARGE_ABOVE_PRICE,
)
from ..models import ManualOverride

_LOGGER = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class TargetSocSettings:
    """Battery optimization thresholds, normalised at construction."""

    min_soc: float = DEFAULT_MIN_SOC
    always_charge_below: float = DEFAULT_ALWAYS_CHARGE_BELOW_PRICE
    never_charge_above: float = DEFAULT_NEVER_CHARGE_ABOVE_PRICE
    keep_full_weekends: bool = False

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> TargetSocSettings:
        """Build settings from config entry data.

        Mis-ordered price thresholds are swapped so the interpolation always
        runs from the cheap to the expensive threshold.
        """
        min_soc = clamp(safe_float(config.get(CONF_MIN_SOC), DEFAULT_MIN_SOC), 0.0, 100.0)
        low = safe_float(
            config.get(CONF_ALWAYS_CHARGE_BELOW_PRICE), DEFAULT_ALWAYS_CHARGE_BELOW_PRICE
        )
        high = safe_float(
            config.get(CONF_NEVER_CHARGE_ABOVE_PRICE), DEFAULT_NEVER_CHARGE_ABOVE_PRICE
        )
        if low > high:
            _LOGGER.warning(
                "Price thresholds are mis-ordered (always charge below %.4f > never charge above %.4f); swapping",
                low,
                high,
            )
            low, high = high, low
        return cls(
            min_soc=min_soc,
            always_charge_below=low,
            never_charge_above=high,
            keep_full_weekends=bool(config.get(CONF_KEEP_FULL_WEEKENDS, False)),
        )


@dataclasses.dataclass(frozen=True, slots=True)
class TargetSocContext:
    """Inputs for one evaluation of the cascade."""

    now: datetime
    price: float | None
    period: str
    period_target_soc: float
    is_weekend: bool
    manual_override: ManualOverride | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class TargetSocDecision:
    """Outcome of the cascade."""

    target_soc: float
    reason: str
    rule: str


@dataclasses.dataclass(frozen=True, slots=True)
class TargetSocRule:
    """A named predicate/action pair in the cascade."""

    name: str
    applies: Callable[[TargetSocContext, TargetSocSettings], bool]
    decide: Callable[[TargetSocContext, TargetSocSettings], tuple[float, str] | None]


def _override_active(ctx: TargetSocContext, settings: TargetSocSettings) -> bool:
    override = ctx.manual_override
    return override is not None and not override.is_expired(ctx.now)


def _override_target(
    ctx: TargetSocContext, settings: TargetSocSettings
) -> tuple[float, str] | None:
    override = ctx.manual_override
    if override is None:
        return None
    if override.expires_at is not None:
        until = f"until {override.expires_at.strftime('%Y-%m-%d %H:%M')}"
    else:
        until = "with no expiry"
    return override.target_soc, f"Manual override {override.target_soc:.0f}% {until}"


def _weekend_full(ctx: TargetSocContext, settings: TargetSocSettings) -> bool:
    return ctx.is_weekend and settings.keep_full_weekends


def _weekend_target(ctx: TargetSocContext, settings: TargetSocSettings) -> tuple[float, str]:
    return 100.0, f"Weekend ({ctx.now.strftime('%A')}): keep battery full"


def _price_cheap(ctx: TargetSocContext, settings: TargetSocSettings) -> bool:
    return ctx.price is not None and ctx.price <= settings.always_charge_below


def _cheap_target(ctx: TargetSocContext, settings: TargetSocSettings) -> tuple[float, str]:
    return (
        100.0,
        f"Cheap price {ctx.price:.4f} EUR/kWh <= {settings.always_charge_below:.4f}: charge to full",
    )


def _price_expensive(ctx: TargetSocContext, settings: TargetSocSettings) -> bool:
    return ctx.price is not None and ctx.price >= settings.never_charge_above


def _expensive_target(ctx: TargetSocContext, settings: TargetSocSettings) -> tuple[float, str]:
    return (
        settings.min_soc,
        f"Expensive price {ctx.price:.4f} EUR/kWh >= {settings.never_charge_above:.4f}: "
        f"keep minimum {settings.min_soc:.0f}%",
    )


def _price_known(ctx: TargetSocContext, settings: TargetSocSettings) -> bool:
    return ctx.price is not None


def _interpolated_target(
    ctx: TargetSocContext, settings: TargetSocSettings
) -> tuple[float, str] | None:
    if ctx.price is None:
        return None
    span = settings.never_charge_above - settings.always_charge_below
    ratio = (ctx.price - settings.always_charge_below) / span if span > 0 else 1.0
    ratio = clamp(ratio, 0.0, 1.0)
    target = float(round(100 - ratio * (100 - settings.min_soc)))
    return target, f"Price {ctx.price:.4f} EUR/kWh scaled between thresholds: target {target:.0f}%"


def _always(ctx: TargetSocContext, settings: TargetSocSettings) -> bool:
    return True


def _period_target(ctx: TargetSocContext, settings: TargetSocSettings) -> tuple[float, str]:
    return (
        ctx.period_target_soc,
        f"No price available: {ctx.period} period target {ctx.period_target_soc:.0f}%",
    )


# First match wins; order is significant.
TARGET_SOC_RULES: tuple[TargetSocRule, ...] = (
    TargetSocRule("manual_override", _override_active, _override_target),
    TargetSocRule("weekend_full", _weekend_full, _weekend_target),
    TargetSocRule("cheap_price", _price_cheap, _cheap_target),
    TargetSocRule("expensive_price", _price_expensive, _expensive_target),
    TargetSocRule("price_interpolation", _price_known, _interpolated_target),
    TargetSocRule("period_default", _always, _period_target),
)


def evaluate_target_soc(
    ctx: TargetSocContext,
    settings: TargetSocSettings,
    rules: tuple[TargetSocRule, ...] = TARGET_SOC_RULES,
) -> TargetSocDecision:
    """Run the rule cascade and return the first matching decision.

    Args:
        ctx: Price, period, weekend flag and override for this evaluation
        settings: Normalised thresholds
        rules: Ordered rules; defaults to the built-in cascade

    Returns:
        Target SOC clamped to [min_soc, 100] with the deciding rule and reason
    """
    for rule in rules:
        if not rule.applies(ctx, settings):
            continue
        outcome = rule.decide(ctx, settings)
        if outcome is None:
            continue
        target, reason = outcome
        target = clamp(target, settings.min_soc, 100.0)
        _LOGGER.debug("Target SOC rule %s: %.0f%% (%s)", rule.name, target, reason)
        return TargetSocDecision(target_soc=target, reason=f"[{rule.name}] {reason}", rule=rule.name)

    return TargetSocDecision(
        target_soc=settings.min_soc,
        reason=f"[fallback] No rule matched: minimum {settings.min_soc:.0f}%",
        rule="fallback",
    )
