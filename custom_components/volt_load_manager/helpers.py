"""Helper utilities for Volt Load Manager integration."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from homeassistant.const import STATE_ON, STATE_UNAVAILABLE, STATE_UNKNOWN

from .calculations.utils import safe_float
from .const import DOMAIN

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

_LOGGER = logging.getLogger(__name__)

_INVALID_STATES = (STATE_UNKNOWN, STATE_UNAVAILABLE, "none", "")


def get_float_state_info(
    hass: HomeAssistant, entity_id: str | None
) -> tuple[float | None, str | None, str | None]:
    """Read a numeric entity state.

    Returns:
        Tuple of (value, raw state, error) where error is one of
        "missing", "unavailable", "invalid" or None
    """
    if not entity_id:
        return None, None, "missing"

    state = hass.states.get(entity_id)
    if state is None:
        return None, None, "missing"

    raw = state.state
    if raw is None or str(raw).lower() in _INVALID_STATES:
        return None, raw, "unavailable"

    value = safe_float(raw, None)
    if value is None:
        return None, raw, "invalid"
    return value, raw, None


def get_float_value(
    hass: HomeAssistant, entity_id: str | None, *, default: float | None = None
) -> float | None:
    """Return a numeric entity value or the default when unreadable."""
    value, raw, error = get_float_state_info(hass, entity_id)
    if error is not None:
        if entity_id:
            _LOGGER.debug("Cannot read %s (%s): %s", entity_id, error, raw)
        return default
    return value


def get_state_value(hass: HomeAssistant, entity_id: str | None) -> str | None:
    """Return the raw state string of an entity or None when unavailable."""
    if not entity_id:
        return None
    state = hass.states.get(entity_id)
    if state is None or state.state is None:
        return None
    if str(state.state).lower() in (STATE_UNKNOWN, STATE_UNAVAILABLE):
        return None
    return str(state.state)


def get_power_watts(hass: HomeAssistant, entity_id: str | None) -> float | None:
    """Return a power reading in watts, converting sensors reporting kW."""
    value = get_float_value(hass, entity_id)
    if value is None:
        return None
    state = hass.states.get(entity_id)
    unit = state.attributes.get("unit_of_measurement") if state is not None else None
    if isinstance(unit, str) and unit.strip().lower() == "kw":
        return value * 1000.0
    return value


def is_entity_on(hass: HomeAssistant, entity_id: str | None) -> bool:
    """Return True when an entity reports on; unreadable counts as off."""
    return get_state_value(hass, entity_id) == STATE_ON


def get_config(entry: ConfigEntry) -> dict[str, Any]:
    """Return entry data merged with options; options win."""
    return {**entry.data, **(entry.options or {})}


def resolve_entry(hass: HomeAssistant, entry_id: str | None) -> ConfigEntry | None:
    """Resolve a config entry for the integration.

    If entry_id is provided, validates and returns the matching entry.
    If entry_id is None, returns the single entry if exactly one exists.
    """
    if entry_id:
        entry = hass.config_entries.async_get_entry(entry_id)
        if entry is None or entry.domain != DOMAIN:
            _LOGGER.error("Invalid entry_id '%s' for %s", entry_id, DOMAIN)
            return None
        return entry

    entries = hass.config_entries.async_entries(DOMAIN)
    if not entries:
        _LOGGER.error("No Volt Load Manager configuration found")
        return None
    if len(entries) > 1:
        _LOGGER.error(
            "Multiple %s config entries exist; service call must include entry_id",
            DOMAIN,
        )
        return None

    return entries[0]


def get_entry_data(hass: HomeAssistant, entry_id: str) -> dict[str, Any] | None:
    """Return runtime integration data dict for an entry, when available."""
    if (
        DOMAIN in hass.data
        and entry_id in hass.data[DOMAIN]
        and isinstance(hass.data[DOMAIN][entry_id], dict)
    ):
        return hass.data[DOMAIN][entry_id]
    return None
