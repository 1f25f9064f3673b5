"""Tests for the target SOC rule cascade."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from custom_components.volt_load_manager.const import (
    CONF_ALWAYS_CHARGE_BELOW_PRICE,
    CONF_KEEP_FULL_WEEKENDS,
    CONF_MIN_SOC,
    CONF_NEVER_CHARGE_ABOVE_PRICE,
    DECISION_CHARGE,
    DECISION_HOLD,
    PERIOD_LLANO,
)
from custom_components.volt_load_manager.decision_engine.charging import decide_charging
from custom_components.volt_load_manager.decision_engine.target_soc import (
    TARGET_SOC_RULES,
    TargetSocContext,
    TargetSocSettings,
    evaluate_target_soc,
)
from custom_components.volt_load_manager.models import ManualOverride

NOW = datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)
SETTINGS = TargetSocSettings(min_soc=10, always_charge_below=0.05, never_charge_above=0.15)


def _ctx(
    price: float | None = None,
    *,
    weekend: bool = False,
    override: ManualOverride | None = None,
    period_target: float = 50,
) -> TargetSocContext:
    return TargetSocContext(
        now=NOW,
        price=price,
        period=PERIOD_LLANO,
        period_target_soc=period_target,
        is_weekend=weekend,
        manual_override=override,
    )


def test_cheap_price_charges_to_full() -> None:
    """Price 0.03 below the 0.05 threshold on a weekday targets 100%."""
    decision = evaluate_target_soc(_ctx(0.03), SETTINGS)

    assert decision.target_soc == 100
    assert decision.rule == "cheap_price"
    assert decision.reason.startswith("[cheap_price]")

    assert decide_charging(97, decision.target_soc).decision == DECISION_CHARGE
    assert decide_charging(98, decision.target_soc).decision == DECISION_HOLD


def test_expensive_price_keeps_minimum() -> None:
    decision = evaluate_target_soc(_ctx(0.15), SETTINGS)

    assert decision.target_soc == 10
    assert decision.rule == "expensive_price"


@pytest.mark.parametrize(
    ("price", "expected"),
    [(0.05, 100), (0.10, 55), (0.12, 37), (0.15, 10)],
)
def test_price_interpolation_endpoints_and_midpoint(price: float, expected: float) -> None:
    assert evaluate_target_soc(_ctx(price), SETTINGS).target_soc == expected


def test_target_is_monotonic_in_price() -> None:
    prices = [0.0 + step * 0.005 for step in range(50)]
    targets = [evaluate_target_soc(_ctx(price), SETTINGS).target_soc for price in prices]

    assert all(a >= b for a, b in zip(targets, targets[1:]))
    assert all(SETTINGS.min_soc <= target <= 100 for target in targets)


def test_unknown_price_uses_period_target() -> None:
    decision = evaluate_target_soc(_ctx(None, period_target=35), SETTINGS)

    assert decision.target_soc == 35
    assert decision.rule == "period_default"


def test_period_target_is_clamped_to_min_soc() -> None:
    decision = evaluate_target_soc(_ctx(None, period_target=0), SETTINGS)
    assert decision.target_soc == SETTINGS.min_soc


def test_weekend_full_only_when_enabled() -> None:
    enabled = TargetSocSettings(
        min_soc=10, always_charge_below=0.05, never_charge_above=0.15, keep_full_weekends=True
    )

    assert evaluate_target_soc(_ctx(0.30, weekend=True), enabled).rule == "weekend_full"
    assert evaluate_target_soc(_ctx(0.30, weekend=True), enabled).target_soc == 100
    assert evaluate_target_soc(_ctx(0.30, weekend=True), SETTINGS).rule == "expensive_price"


def test_manual_override_wins_until_expired() -> None:
    override = ManualOverride(target_soc=80, expires_at=NOW + timedelta(hours=1))
    decision = evaluate_target_soc(_ctx(0.03, override=override), SETTINGS)

    assert decision.target_soc == 80
    assert decision.rule == "manual_override"

    expired = ManualOverride(target_soc=80, expires_at=NOW - timedelta(seconds=1))
    assert evaluate_target_soc(_ctx(0.03, override=expired), SETTINGS).rule == "cheap_price"


def test_override_without_expiry_never_expires() -> None:
    override = ManualOverride(target_soc=60)
    decision = evaluate_target_soc(_ctx(0.30, override=override), SETTINGS)

    assert decision.target_soc == 60
    assert "no expiry" in decision.reason


def test_override_below_min_soc_is_clamped() -> None:
    override = ManualOverride(target_soc=5)
    assert evaluate_target_soc(_ctx(None, override=override), SETTINGS).target_soc == 10


def test_settings_swap_misordered_thresholds() -> None:
    settings = TargetSocSettings.from_config(
        {
            CONF_MIN_SOC: 20,
            CONF_ALWAYS_CHARGE_BELOW_PRICE: 0.15,
            CONF_NEVER_CHARGE_ABOVE_PRICE: 0.05,
            CONF_KEEP_FULL_WEEKENDS: True,
        }
    )

    assert settings.always_charge_below == 0.05
    assert settings.never_charge_above == 0.15
    assert settings.min_soc == 20
    assert settings.keep_full_weekends is True


def test_interpolation_with_equal_thresholds_does_not_divide_by_zero() -> None:
    settings = TargetSocSettings(min_soc=10, always_charge_below=0.1, never_charge_above=0.1)
    interpolation_only = tuple(rule for rule in TARGET_SOC_RULES if rule.name == "price_interpolation")

    decision = evaluate_target_soc(_ctx(0.1), settings, rules=interpolation_only)

    assert decision.target_soc == 10


def test_empty_rule_list_falls_back_to_min_soc() -> None:
    decision = evaluate_target_soc(_ctx(0.1), SETTINGS, rules=())

    assert decision.rule == "fallback"
    assert decision.target_soc == SETTINGS.min_soc
