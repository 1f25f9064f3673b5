"""Sensor entity exports for Volt Load Manager."""
from .battery import ChargingDecisionSensor, TargetSocSensor
from .grid import ContractedPowerSensor, CurrentPriceSensor, PowerUsageSensor, TariffPeriodSensor
from .tracking import ActiveAlertsSensor, LastActionSensor, ShedLoadsSensor

__all__ = [
    "ActiveAlertsSensor",
    "ChargingDecisionSensor",
    "ContractedPowerSensor",
    "CurrentPriceSensor",
    "LastActionSensor",
    "PowerUsageSensor",
    "ShedLoadsSensor",
    "TargetSocSensor",
    "TariffPeriodSensor",
]
