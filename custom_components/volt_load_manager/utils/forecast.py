"""Price (ESIOS PVPC) and solar (Open-Meteo) forecast providers."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

import aiohttp
from homeassistant.helpers.aiohttp_client import async_get_clientsession
from homeassistant.util import dt as dt_util

from ..const import (
    ESIOS_PVPC_URL,
    FORECAST_CACHE_TTL_SECONDS,
    FORECAST_TIMEOUT_SECONDS,
    OPEN_METEO_URL,
    PV_CLOUD_LOSS_FACTOR,
    PV_PANEL_EFFICIENCY,
)
from ..calculations.utils import watts_to_kw
from ..models import PriceForecast, PricePoint, PriceStats, SolarForecast, SolarForecastPoint

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

_LOGGER = logging.getLogger(__name__)

TOMORROW_MIN_HOURS = 20
STATS_HOURS = 6


class ForecastError(Exception):
    """Raised when a forecast payload cannot be used."""


def price_stats(points: tuple[PricePoint, ...] | list[PricePoint]) -> PriceStats:
    """Average, min, max and the six cheapest and most expensive hours."""
    if not points:
        return PriceStats()
    ordered = sorted(points, key=lambda point: (point.price, point.hour))
    avg = sum(point.price for point in points) / len(points)
    return PriceStats(
        avg=round(avg, 4),
        min=ordered[0].price,
        max=ordered[-1].price,
        cheapest_hours=tuple(point.hour for point in ordered[:STATS_HOURS]),
        expensive_hours=tuple(point.hour for point in ordered[-STATS_HOURS:]),
    )


def parse_esios_prices(payload: Any, now: datetime) -> PriceForecast:
    """Parse an ESIOS indicator payload (EUR/MWh) into EUR/kWh per hour.

    Values are split into today and tomorrow by local date. Only the first
    value per local hour is kept.

    Raises:
        ForecastError: When the payload has no indicator values
    """
    try:
        values = payload["indicator"]["values"]
    except (KeyError, TypeError) as err:
        raise ForecastError("ESIOS response has no indicator values") from err
    if not isinstance(values, list):
        raise ForecastError("ESIOS indicator values is not a list")

    today = dt_util.as_local(now).date()
    tomorrow = today + timedelta(days=1)
    by_day: dict[Any, dict[int, PricePoint]] = {today: {}, tomorrow: {}}

    for item in values:
        if not isinstance(item, dict):
            continue
        timestamp = dt_util.parse_datetime(str(item.get("datetime", "")))
        try:
            value = float(item["value"])
        except (KeyError, TypeError, ValueError):
            continue
        if timestamp is None:
            continue
        local = dt_util.as_local(timestamp)
        day = by_day.get(local.date())
        if day is None or local.hour in day:
            continue
        day[local.hour] = PricePoint(hour=local.hour, price=value / 1000)

    today_points = tuple(sorted(by_day[today].values(), key=lambda point: point.hour))
    tomorrow_points = tuple(sorted(by_day[tomorrow].values(), key=lambda point: point.hour))
    return PriceForecast(
        today=today_points,
        tomorrow=tomorrow_points,
        today_stats=price_stats(today_points),
        tomorrow_stats=price_stats(tomorrow_points),
        tomorrow_available=len(tomorrow_points) >= TOMORROW_MIN_HOURS,
        fetched_at=now,
    )


def estimate_pv_watts(radiation: float, cloud_cover: float, peak_kw: float) -> float:
    """Estimate PV output from radiation (W/m2) and cloud cover (%)."""
    cloud_factor = 1 - (cloud_cover / 100) * PV_CLOUD_LOSS_FACTOR
    return max(0, round(radiation * PV_PANEL_EFFICIENCY * cloud_factor * peak_kw))


def parse_open_meteo(payload: Any, peak_kw: float, now: datetime) -> SolarForecast:
    """Parse Open-Meteo hourly radiation into two days of PV estimates.

    Raises:
        ForecastError: When the payload has no hourly block
    """
    hourly = payload.get("hourly") if isinstance(payload, dict) else None
    if not isinstance(hourly, dict) or not hourly.get("time"):
        raise ForecastError("Open-Meteo response has no hourly data")

    times = hourly["time"]
    direct = hourly.get("direct_radiation") or []
    diffuse = hourly.get("diffuse_radiation") or []
    cloud = hourly.get("cloudcover") or hourly.get("cloud_cover") or []

    def _at(series: list[Any], index: int) -> float:
        if index < len(series) and series[index] is not None:
            return float(series[index])
        return 0.0

    points: list[SolarForecastPoint] = []
    for index, raw_time in enumerate(times[:48]):
        timestamp = dt_util.parse_datetime(str(raw_time))
        if timestamp is None:
            continue
        radiation = _at(direct, index) + _at(diffuse, index)
        cloud_cover = _at(cloud, index)
        points.append(
            SolarForecastPoint(
                hour=timestamp.hour,
                watts=estimate_pv_watts(radiation, cloud_cover, peak_kw),
                cloud_cover_percent=cloud_cover,
                radiation=round(radiation),
            )
        )

    today = tuple(points[:24])
    tomorrow = tuple(points[24:48])
    peak = max(today, key=lambda point: point.watts, default=None)
    return SolarForecast(
        today=today,
        tomorrow=tomorrow,
        today_kwh=round(watts_to_kw(sum(point.watts for point in today)), 1),
        tomorrow_kwh=round(watts_to_kw(sum(point.watts for point in tomorrow)), 1),
        peak_hour=peak.hour if peak is not None and peak.watts > 0 else None,
        peak_watts=peak.watts if peak is not None else 0.0,
        fetched_at=now,
    )


class _CachedProvider:
    """Shared fetch and cache plumbing."""

    def __init__(self, hass: HomeAssistant) -> None:
        self.hass = hass
        self._session = async_get_clientsession(hass)
        self._cache: dict[Any, tuple[datetime, Any]] = {}

    def _cached(self, key: Any, now: datetime) -> Any | None:
        hit = self._cache.get(key)
        if hit is None:
            return None
        fetched_at, data = hit
        if (now - fetched_at).total_seconds() < FORECAST_CACHE_TTL_SECONDS:
            return data
        return None

    def _last_good(self, key: Any) -> Any | None:
        hit = self._cache.get(key)
        return hit[1] if hit is not None else None

    async def _fetch_json(
        self, url: str, params: dict[str, Any], headers: dict[str, str] | None = None
    ) -> Any:
        async with self._session.get(
            url,
            params=params,
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=FORECAST_TIMEOUT_SECONDS),
        ) as response:
            response.raise_for_status()
            return await response.json(content_type=None)


class PriceForecastProvider(_CachedProvider):
    """Hourly PVPC prices for today and tomorrow, cached 30 minutes."""

    def __init__(self, hass: HomeAssistant, api_token: str | None = None) -> None:
        super().__init__(hass)
        self._api_token = api_token

    async def async_get_price_forecast(self) -> PriceForecast:
        """Return prices; on failure the last good forecast or an empty one."""
        now = dt_util.now()
        cached = self._cached("prices", now)
        if cached is not None:
            return cached

        today = now.date()
        params = {
            "start_date": f"{today.isoformat()}T00:00",
            "end_date": f"{(today + timedelta(days=1)).isoformat()}T23:59",
        }
        headers = {"Accept": "application/json"}
        if self._api_token:
            headers["x-api-key"] = self._api_token

        try:
            payload = await self._fetch_json(ESIOS_PVPC_URL, params, headers)
            forecast = parse_esios_prices(payload, now)
        except (aiohttp.ClientError, asyncio.TimeoutError, ForecastError, ValueError) as err:
            _LOGGER.warning("Price forecast fetch failed: %s", err)
            last = self._last_good("prices")
            return last if last is not None else PriceForecast(error=str(err) or type(err).__name__)

        _LOGGER.debug(
            "Fetched %d price hours for today, %d for tomorrow",
            len(forecast.today),
            len(forecast.tomorrow),
        )
        self._cache["prices"] = (now, forecast)
        return forecast


class SolarForecastProvider(_CachedProvider):
    """Hourly PV estimates from Open-Meteo radiation, cached 30 minutes."""

    async def async_get_solar_forecast(
        self, latitude: float, longitude: float, peak_kw: float
    ) -> SolarForecast:
        """Return PV estimates; on failure the last good forecast or an empty one."""
        key = (round(latitude, 4), round(longitude, 4), peak_kw)
        now = dt_util.now()
        cached = self._cached(key, now)
        if cached is not None:
            return cached

        params = {
            "latitude": latitude,
            "longitude": longitude,
            "hourly": "direct_radiation,diffuse_radiation,cloudcover",
            "timezone": str(self.hass.config.time_zone or "auto"),
            "forecast_days": 2,
        }
        try:
            payload = await self._fetch_json(OPEN_METEO_URL, params)
            forecast = parse_open_meteo(payload, peak_kw, now)
        except (aiohttp.ClientError, asyncio.TimeoutError, ForecastError, ValueError) as err:
            _LOGGER.warning("Solar forecast fetch failed: %s", err)
            last = self._last_good(key)
            return last if last is not None else SolarForecast(error=str(err) or type(err).__name__)

        _LOGGER.debug(
            "Solar forecast: %.1f kWh today, %.1f kWh tomorrow",
            forecast.today_kwh,
            forecast.tomorrow_kwh,
        )
        self._cache[key] = (now, forecast)
        return forecast
