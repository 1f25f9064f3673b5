"""Edge-triggered threshold alerts."""
from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from ..calculations.utils import safe_float
from ..const import (
    ALERT_HIGH_PRICE,
    ALERT_HISTORY_LIMIT,
    ALERT_LOW_SOC,
    ALERT_OVERLOAD,
    CONF_HIGH_PRICE_ALERT,
    CONF_LOW_SOC_ALERT,
    CONF_OVERLOAD_ALERT,
    DEFAULT_HIGH_PRICE_ALERT,
    DEFAULT_LOW_SOC_ALERT,
    SEVERITY_DANGER,
    SEVERITY_WARNING,
)
from ..models import Alert

_LOGGER = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class AlertThresholds:
    """Configured alert thresholds; None disables a condition."""

    low_soc: float | None = DEFAULT_LOW_SOC_ALERT
    high_price: float | None = DEFAULT_HIGH_PRICE_ALERT
    overload: bool = True

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> AlertThresholds:
        low_soc = safe_float(config.get(CONF_LOW_SOC_ALERT), DEFAULT_LOW_SOC_ALERT)
        high_price = safe_float(config.get(CONF_HIGH_PRICE_ALERT), DEFAULT_HIGH_PRICE_ALERT)
        return cls(
            low_soc=low_soc if low_soc and low_soc > 0 else None,
            high_price=high_price if high_price and high_price > 0 else None,
            overload=bool(config.get(CONF_OVERLOAD_ALERT, True)),
        )


@dataclasses.dataclass(frozen=True, slots=True)
class AlertReadings:
    """Values the alert conditions look at; None means not readable."""

    soc: float | None
    price: float | None
    demand: float | None
    max_available: float | None


@dataclasses.dataclass(frozen=True, slots=True)
class AlertCondition:
    """One alert type: how to read its value and threshold and when it holds."""

    type: str
    severity: str
    value: Callable[[AlertReadings], float | None]
    threshold: Callable[[AlertThresholds, AlertReadings], float | None]
    holds: Callable[[float, float], bool]
    message: Callable[[float, float], str]


@dataclasses.dataclass(frozen=True, slots=True)
class AlertEvaluation:
    """Alerts to create and alert types to retire."""

    created: tuple[Alert, ...] = ()
    retired: tuple[str, ...] = ()


def _overload_threshold(thresholds: AlertThresholds, readings: AlertReadings) -> float | None:
    return readings.max_available if thresholds.overload else None


ALERT_CONDITIONS: tuple[AlertCondition, ...] = (
    AlertCondition(
        type=ALERT_LOW_SOC,
        severity=SEVERITY_DANGER,
        value=lambda readings: readings.soc,
        threshold=lambda thresholds, readings: thresholds.low_soc,
        holds=lambda value, threshold: value < threshold,
        message=lambda value, threshold: f"Battery low: {value:.0f}% (below {threshold:.0f}%)",
    ),
    AlertCondition(
        type=ALERT_HIGH_PRICE,
        severity=SEVERITY_WARNING,
        value=lambda readings: readings.price,
        threshold=lambda thresholds, readings: thresholds.high_price,
        holds=lambda value, threshold: value > threshold,
        message=lambda value, threshold: (
            f"High electricity price: {value:.4f} EUR/kWh (above {threshold:.4f})"
        ),
    ),
    AlertCondition(
        type=ALERT_OVERLOAD,
        severity=SEVERITY_DANGER,
        value=lambda readings: readings.demand,
        threshold=_overload_threshold,
        holds=lambda value, threshold: value > threshold,
        message=lambda value, threshold: (
            f"Power overload: {value:.0f} W (limit {threshold:.0f} W)"
        ),
    ),
)


def evaluate_alerts(
    readings: AlertReadings,
    thresholds: AlertThresholds,
    active: Mapping[str, Alert],
    now: datetime,
    conditions: tuple[AlertCondition, ...] = ALERT_CONDITIONS,
) -> AlertEvaluation:
    """Compare readings against thresholds without touching any state.

    A condition that holds with no active alert of its type creates one; an
    active alert whose condition no longer holds is retired. Conditions with
    an unreadable value or a disabled threshold leave their alert untouched,
    except that disabling a threshold retires its alert.
    """
    created: list[Alert] = []
    retired: list[str] = []

    for condition in conditions:
        threshold = condition.threshold(thresholds, readings)
        if threshold is None:
            if condition.type in active:
                retired.append(condition.type)
            continue
        value = condition.value(readings)
        if value is None:
            continue

        if condition.holds(value, threshold):
            if condition.type not in active:
                created.append(
                    Alert(
                        id=f"{condition.type}_{now.strftime('%Y%m%d%H%M%S%f')}",
                        type=condition.type,
                        severity=condition.severity,
                        message=condition.message(value, threshold),
                        value=round(value, 4),
                        threshold=round(threshold, 4),
                        timestamp=now,
                    )
                )
        elif condition.type in active:
            retired.append(condition.type)

    return AlertEvaluation(created=tuple(created), retired=tuple(retired))


def apply_alert_evaluation(
    evaluation: AlertEvaluation,
    active: dict[str, Alert],
    history: list[Alert],
    *,
    history_limit: int = ALERT_HISTORY_LIMIT,
) -> None:
    """Apply an evaluation to the active alerts and the history in place.

    History is kept most-recent-first and capped at ``history_limit``.
    """
    for alert_type in evaluation.retired:
        if active.pop(alert_type, None) is not None:
            _LOGGER.info("Alert %s cleared", alert_type)
    for alert in evaluation.created:
        active[alert.type] = alert
        history.insert(0, alert)
        _LOGGER.info("Alert %s raised: %s", alert.type, alert.message)
    del history[history_limit:]


def is_do_not_disturb(dnd_until: datetime | None, now: datetime) -> bool:
    """Return True while a Do-Not-Disturb window is in the future."""
    return dnd_until is not None and now < dnd_until
