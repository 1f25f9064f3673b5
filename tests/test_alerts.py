"""Tests for edge-triggered alerts and notification delivery."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from custom_components.volt_load_manager.const import (
    ALERT_HIGH_PRICE,
    ALERT_LOW_SOC,
    ALERT_OVERLOAD,
    CONF_HIGH_PRICE_ALERT,
    CONF_LOW_SOC_ALERT,
    CONF_OVERLOAD_ALERT,
    SEVERITY_DANGER,
)
from custom_components.volt_load_manager.decision_engine.alerts import (
    AlertReadings,
    AlertThresholds,
    apply_alert_evaluation,
    evaluate_alerts,
    is_do_not_disturb,
)
from custom_components.volt_load_manager.models import Alert
from custom_components.volt_load_manager.utils.notify import (
    async_send_notification,
    split_notify_service,
)

NOW = datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)
THRESHOLDS = AlertThresholds(low_soc=15, high_price=0.20, overload=True)


def _readings(soc=50.0, price=0.10, demand=1000.0, max_available=3000.0) -> AlertReadings:
    return AlertReadings(soc=soc, price=price, demand=demand, max_available=max_available)


def _run(readings: AlertReadings, active: dict, history: list, now: datetime = NOW, thresholds=THRESHOLDS):
    evaluation = evaluate_alerts(readings, thresholds, active, now)
    apply_alert_evaluation(evaluation, active, history)
    return evaluation


@pytest.mark.unit
def test_low_soc_fires_once_and_clears_on_recovery() -> None:
    """SOC 20, 14, 14, 16 creates one alert and retires it once."""
    active: dict[str, Alert] = {}
    history: list[Alert] = []

    sequence = [20, 14, 14, 16]
    evaluations = [
        _run(_readings(soc=soc), active, history, NOW + timedelta(minutes=index))
        for index, soc in enumerate(sequence)
    ]

    created = [alert for evaluation in evaluations for alert in evaluation.created]
    retired = [alert_type for evaluation in evaluations for alert_type in evaluation.retired]
    assert [alert.type for alert in created] == [ALERT_LOW_SOC]
    assert retired == [ALERT_LOW_SOC]
    assert active == {}
    assert len(history) == 1
    assert history[0].severity == SEVERITY_DANGER
    assert history[0].value == 14
    assert history[0].threshold == 15


@pytest.mark.unit
def test_price_and_overload_conditions() -> None:
    active: dict[str, Alert] = {}
    history: list[Alert] = []

    evaluation = _run(_readings(price=0.25, demand=3500), active, history)

    assert {alert.type for alert in evaluation.created} == {ALERT_HIGH_PRICE, ALERT_OVERLOAD}
    assert "3500 W" in active[ALERT_OVERLOAD].message
    # Equal to the limit is not an overload.
    evaluation = _run(_readings(price=0.25, demand=3000), active, history)
    assert evaluation.retired == (ALERT_OVERLOAD,)
    assert ALERT_HIGH_PRICE in active


@pytest.mark.unit
def test_unreadable_value_leaves_alert_untouched() -> None:
    active: dict[str, Alert] = {}
    history: list[Alert] = []
    _run(_readings(soc=10), active, history)

    evaluation = _run(_readings(soc=None), active, history)

    assert evaluation.created == ()
    assert evaluation.retired == ()
    assert ALERT_LOW_SOC in active


@pytest.mark.unit
def test_disabling_threshold_retires_alert() -> None:
    active: dict[str, Alert] = {}
    history: list[Alert] = []
    _run(_readings(soc=10, demand=5000), active, history)

    disabled = AlertThresholds(low_soc=None, high_price=0.20, overload=False)
    evaluation = _run(_readings(soc=10, demand=5000), active, history, thresholds=disabled)

    assert set(evaluation.retired) == {ALERT_LOW_SOC, ALERT_OVERLOAD}
    assert active == {}


@pytest.mark.unit
def test_thresholds_from_config() -> None:
    thresholds = AlertThresholds.from_config(
        {CONF_LOW_SOC_ALERT: 0, CONF_HIGH_PRICE_ALERT: "0.3", CONF_OVERLOAD_ALERT: False}
    )

    assert thresholds.low_soc is None
    assert thresholds.high_price == 0.3
    assert thresholds.overload is False


@pytest.mark.unit
def test_history_is_most_recent_first_and_capped() -> None:
    active: dict[str, Alert] = {}
    history: list[Alert] = []

    for index in range(120):
        now = NOW + timedelta(minutes=index)
        soc = 10 if index % 2 == 0 else 50
        _run(_readings(soc=soc), active, history, now)

    assert len(history) == 60
    for index in range(120, 200):
        now = NOW + timedelta(minutes=index)
        soc = 10 if index % 2 == 0 else 50
        _run(_readings(soc=soc), active, history, now)

    assert len(history) == 100
    assert history[0].timestamp > history[-1].timestamp


@pytest.mark.unit
def test_is_do_not_disturb() -> None:
    assert is_do_not_disturb(NOW + timedelta(hours=1), NOW)
    assert not is_do_not_disturb(NOW - timedelta(seconds=1), NOW)
    assert not is_do_not_disturb(None, NOW)


@pytest.mark.unit
@pytest.mark.parametrize(
    ("service", "expected"),
    [
        (None, ("notify", "notify")),
        ("notify.mobile_app_phone", ("notify", "mobile_app_phone")),
        ("persistent_notification", ("notify", "persistent_notification")),
    ],
)
def test_split_notify_service(service, expected) -> None:
    assert split_notify_service(service) == expected


@pytest.mark.asyncio
async def test_notification_suppressed_during_do_not_disturb() -> None:
    hass = MagicMock()
    hass.services.async_call = AsyncMock()

    sent = await async_send_notification(
        hass,
        "Battery low",
        notify_service="notify.mobile_app_phone",
        dnd_until=NOW + timedelta(hours=2),
        now=NOW,
    )

    assert sent is False
    hass.services.async_call.assert_not_awaited()


@pytest.mark.asyncio
async def test_notification_sent_outside_do_not_disturb() -> None:
    hass = MagicMock()
    hass.services.async_call = AsyncMock()

    sent = await async_send_notification(
        hass,
        "Battery low",
        notify_service="notify.mobile_app_phone",
        dnd_until=NOW - timedelta(minutes=1),
        now=NOW,
    )

    assert sent is True
    call = hass.services.async_call.call_args
    assert call.args[:2] == ("notify", "mobile_app_phone")
    assert call.args[2]["message"] == "Battery low"
