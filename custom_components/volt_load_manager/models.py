"""Data structures shared by the Volt Load Manager engine."""
from __future__ import annotations

import dataclasses
from datetime import datetime
from typing import Any

from homeassistant.util import dt as dt_util

from .calculations.utils import soc_to_kwh
from .const import (
    DECISION_HOLD,
    DEFAULT_BATTERY_CAPACITY_KWH,
    DEFAULT_LOAD_MAX_POWER_W,
    LOAD_ID,
    LOAD_MAX_POWER,
    LOAD_NAME,
    LOAD_POWER_SENSOR,
    LOAD_PRIORITIES,
    LOAD_PRIORITY,
    LOAD_SWITCH_ENTITY,
    PERIOD_UNKNOWN,
    PRIORITY_ACCESSORY,
    SEVERITY_INFO,
)


def _parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO timestamp from persisted data."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    return dt_util.parse_datetime(str(value))


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclasses.dataclass(slots=True)
class Load:
    """A switchable load configured by the user and refreshed every cycle."""

    id: str
    name: str
    priority: str
    switch_entity: str | None = None
    power_sensor: str | None = None
    max_power: float = DEFAULT_LOAD_MAX_POWER_W
    current_power: float = 0.0
    is_on: bool = False

    @property
    def is_switchable(self) -> bool:
        """Return True when the engine can switch this load."""
        return bool(self.switch_entity)

    @classmethod
    def from_config(cls, data: dict[str, Any]) -> Load:
        """Build a load from its configuration entry."""
        priority = str(data.get(LOAD_PRIORITY, PRIORITY_ACCESSORY)).lower()
        if priority not in LOAD_PRIORITIES:
            priority = PRIORITY_ACCESSORY
        load_id = str(data.get(LOAD_ID) or data.get(LOAD_SWITCH_ENTITY) or data.get(LOAD_NAME))
        try:
            max_power = float(data.get(LOAD_MAX_POWER) or DEFAULT_LOAD_MAX_POWER_W)
        except (TypeError, ValueError):
            max_power = DEFAULT_LOAD_MAX_POWER_W
        return cls(
            id=load_id,
            name=str(data.get(LOAD_NAME) or load_id),
            priority=priority,
            switch_entity=data.get(LOAD_SWITCH_ENTITY) or None,
            power_sensor=data.get(LOAD_POWER_SENSOR) or None,
            max_power=max_power,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "priority": self.priority,
            "switch_entity": self.switch_entity,
            "max_power": self.max_power,
            "current_power": round(self.current_power, 1),
            "is_on": self.is_on,
        }


@dataclasses.dataclass(frozen=True, slots=True)
class ManualOverride:
    """User supplied target SOC, optionally expiring."""

    target_soc: float
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        """Return True once the expiry instant has passed."""
        return self.expires_at is not None and now > self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {"target_soc": self.target_soc, "expires_at": _isoformat(self.expires_at)}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ManualOverride | None:
        """Restore from dict; returns None for missing or broken payloads."""
        if not isinstance(data, dict) or data.get("target_soc") is None:
            return None
        try:
            target_soc = float(data["target_soc"])
        except (TypeError, ValueError):
            return None
        return cls(target_soc=target_soc, expires_at=_parse_timestamp(data.get("expires_at")))


@dataclasses.dataclass(frozen=True, slots=True)
class Alert:
    """An alert record; immutable once created."""

    id: str
    type: str
    severity: str
    message: str
    value: float | None
    threshold: float | None
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "severity": self.severity,
            "message": self.message,
            "value": self.value,
            "threshold": self.threshold,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Alert | None:
        """Restore from dict; returns None for broken payloads."""
        timestamp = _parse_timestamp(data.get("timestamp"))
        if timestamp is None or not data.get("type"):
            return None
        return cls(
            id=str(data.get("id", "")),
            type=str(data["type"]),
            severity=str(data.get("severity", SEVERITY_INFO)),
            message=str(data.get("message", "")),
            value=data.get("value"),
            threshold=data.get("threshold"),
            timestamp=timestamp,
        )


@dataclasses.dataclass(frozen=True, slots=True)
class PricePoint:
    """Price for one hour of a day."""

    hour: int
    price: float


@dataclasses.dataclass(frozen=True, slots=True)
class SolarForecastPoint:
    """Estimated PV output for one hour of a day."""

    hour: int
    watts: float
    cloud_cover_percent: float = 0.0
    radiation: float = 0.0


@dataclasses.dataclass(frozen=True, slots=True)
class PriceStats:
    """Summary of one day of hourly prices."""

    avg: float = 0.0
    min: float = 0.0
    max: float = 0.0
    cheapest_hours: tuple[int, ...] = ()
    expensive_hours: tuple[int, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "avg": self.avg,
            "min": self.min,
            "max": self.max,
            "cheapest_hours": list(self.cheapest_hours),
            "expensive_hours": list(self.expensive_hours),
        }


@dataclasses.dataclass(frozen=True, slots=True)
class PriceForecast:
    """Hourly prices for today and tomorrow."""

    today: tuple[PricePoint, ...] = ()
    tomorrow: tuple[PricePoint, ...] = ()
    today_stats: PriceStats = dataclasses.field(default_factory=PriceStats)
    tomorrow_stats: PriceStats = dataclasses.field(default_factory=PriceStats)
    tomorrow_available: bool = False
    fetched_at: datetime | None = None
    error: str | None = None

    def price_at(self, hour: int) -> float | None:
        """Return today's price for an hour, if published."""
        return next((point.price for point in self.today if point.hour == hour), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "today": {
                "prices": [dataclasses.asdict(point) for point in self.today],
                "stats": self.today_stats.to_dict(),
            },
            "tomorrow": {
                "prices": [dataclasses.asdict(point) for point in self.tomorrow],
                "stats": self.tomorrow_stats.to_dict(),
                "available": self.tomorrow_available,
            },
            "fetched_at": _isoformat(self.fetched_at),
            "error": self.error,
        }


@dataclasses.dataclass(frozen=True, slots=True)
class SolarForecast:
    """Hourly PV estimates for today and tomorrow."""

    today: tuple[SolarForecastPoint, ...] = ()
    tomorrow: tuple[SolarForecastPoint, ...] = ()
    today_kwh: float = 0.0
    tomorrow_kwh: float = 0.0
    peak_hour: int | None = None
    peak_watts: float = 0.0
    fetched_at: datetime | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "today": {
                "total_kwh": self.today_kwh,
                "peak_hour": self.peak_hour,
                "peak_watts": self.peak_watts,
                "forecasts": [dataclasses.asdict(point) for point in self.today],
            },
            "tomorrow": {
                "total_kwh": self.tomorrow_kwh,
                "forecasts": [dataclasses.asdict(point) for point in self.tomorrow],
            },
            "fetched_at": _isoformat(self.fetched_at),
            "error": self.error,
        }


@dataclasses.dataclass(frozen=True, slots=True)
class BatterySnapshot:
    """Battery figures the planner works from."""

    capacity_kwh: float
    current_soc: float
    target_soc: float
    charge_rate_kw: float


@dataclasses.dataclass(frozen=True, slots=True)
class ChargingPlan:
    """Forward-looking charging recommendation."""

    action: str
    reason: str
    charge_hours: tuple[int, ...] = ()
    next_charge_hour: int | None = None
    needed_kwh: float = 0.0
    grid_kwh: float = 0.0
    estimated_cost: float = 0.0
    avg_price: float | None = None
    savings: float | None = None
    solar_coverage_kwh: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "reason": self.reason,
            "charge_hours": list(self.charge_hours),
            "next_charge_hour": self.next_charge_hour,
            "needed_kwh": self.needed_kwh,
            "grid_kwh": self.grid_kwh,
            "estimated_cost": self.estimated_cost,
            "avg_price": self.avg_price,
            "savings": self.savings,
            "solar_coverage_kwh": self.solar_coverage_kwh,
        }


@dataclasses.dataclass(slots=True)
class BatteryState:
    """Live battery readings."""

    soc: float = 0.0
    power: float = 0.0
    capacity_kwh: float = DEFAULT_BATTERY_CAPACITY_KWH

    @property
    def energy_kwh(self) -> float:
        return soc_to_kwh(self.soc, self.capacity_kwh)


@dataclasses.dataclass(slots=True)
class SystemState:
    """The single mutable state owned by the engine."""

    battery: BatteryState = dataclasses.field(default_factory=BatteryState)
    grid_power: float = 0.0
    load_power: float = 0.0
    pv_power: float = 0.0
    car_soc: float | None = None
    car_charging_slot: bool | None = None

    current_price: float | None = None
    current_period: str = PERIOD_UNKNOWN
    period_charges_battery: bool = False
    contracted_power: float = 0.0
    max_available: float = 0.0
    total_managed_power: float = 0.0
    demand_power: float = 0.0
    usage_percent: float = 0.0
    is_overloaded: bool = False

    manual_override: ManualOverride | None = None
    effective_target_soc: float = 0.0
    target_rule: str = ""
    charging_decision: str = DECISION_HOLD
    charging_reason: str = ""

    loads: list[Load] = dataclasses.field(default_factory=list)
    shed_loads: list[str] = dataclasses.field(default_factory=list)

    active_alerts: dict[str, Alert] = dataclasses.field(default_factory=dict)
    alert_history: list[Alert] = dataclasses.field(default_factory=list)
    dnd_until: datetime | None = None

    snapshots: list[dict[str, Any]] = dataclasses.field(default_factory=list)
    last_action: dict[str, Any] | None = None
    last_check: datetime | None = None
    last_charging_update: datetime | None = None

    def get_load(self, load_id: str) -> Load | None:
        """Return the configured load with this id."""
        return next((load for load in self.loads if load.id == load_id), None)

    def to_dict(self) -> dict[str, Any]:
        """Export full state as dictionary."""
        return {
            "battery": {
                "soc": self.battery.soc,
                "power": self.battery.power,
                "kwh": round(self.battery.energy_kwh, 2),
                "capacity": self.battery.capacity_kwh,
            },
            "grid": {"power": self.grid_power},
            "load": {"power": self.load_power},
            "pv": {"power": self.pv_power},
            "ev": {"soc": self.car_soc, "charging_slot": self.car_charging_slot},
            "current_price": self.current_price,
            "current_period": self.current_period,
            "period_charges_battery": self.period_charges_battery,
            "contracted_power": self.contracted_power,
            "max_available": round(self.max_available, 1),
            "total_managed_power": round(self.total_managed_power, 1),
            "usage_percent": round(self.usage_percent, 1),
            "is_overloaded": self.is_overloaded,
            "manual_override": self.manual_override.to_dict() if self.manual_override else None,
            "effective_target_soc": self.effective_target_soc,
            "target_rule": self.target_rule,
            "charging_decision": self.charging_decision,
            "charging_reason": self.charging_reason,
            "loads": [load.to_dict() for load in self.loads],
            "shed_loads": list(self.shed_loads),
            "active_alerts": [alert.to_dict() for alert in self.active_alerts.values()],
            "alert_history": [alert.to_dict() for alert in self.alert_history],
            "dnd_until": _isoformat(self.dnd_until),
            "last_action": self.last_action,
            "last_check": _isoformat(self.last_check),
            "last_charging_update": _isoformat(self.last_charging_update),
        }

    def to_storage(self) -> dict[str, Any]:
        """Return the subset of state that survives a restart."""
        return {
            "manual_override": self.manual_override.to_dict() if self.manual_override else None,
            "shed_loads": list(self.shed_loads),
            "active_alerts": [alert.to_dict() for alert in self.active_alerts.values()],
            "alert_history": [alert.to_dict() for alert in self.alert_history],
            "dnd_until": _isoformat(self.dnd_until),
        }

    def restore_from_storage(self, data: dict[str, Any]) -> None:
        """Apply persisted data loaded at startup."""
        self.manual_override = ManualOverride.from_dict(data.get("manual_override"))
        self.shed_loads = [str(load_id) for load_id in data.get("shed_loads") or []]
        self.active_alerts = {}
        for raw in data.get("active_alerts") or []:
            if isinstance(raw, dict) and (alert := Alert.from_dict(raw)) is not None:
                self.active_alerts[alert.type] = alert
        self.alert_history = [
            alert
            for raw in data.get("alert_history") or []
            if isinstance(raw, dict) and (alert := Alert.from_dict(raw)) is not None
        ]
        self.dnd_until = _parse_timestamp(data.get("dnd_until"))
