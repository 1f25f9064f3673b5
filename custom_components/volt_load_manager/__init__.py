"""The Volt Load Manager integration."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import Platform
from homeassistant.core import HomeAssistant

from .const import DOMAIN, SERVICE_GET_STATE
from .coordinator import VoltLoadManagerCoordinator
from .engine import VoltEngine
from .scheduler.action_scheduler import ActionScheduler
from .services import async_register_services

if TYPE_CHECKING:
    from homeassistant.helpers.typing import ConfigType

_LOGGER = logging.getLogger(__name__)

PLATFORMS: list[Platform] = [Platform.SENSOR, Platform.BINARY_SENSOR, Platform.SWITCH]


async def async_setup(hass: HomeAssistant, config: ConfigType) -> bool:
    """Set up the Volt Load Manager component."""
    hass.data.setdefault(DOMAIN, {})
    return True


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up Volt Load Manager from a config entry."""
    hass.data.setdefault(DOMAIN, {})

    engine = VoltEngine(hass, entry)
    await engine.async_load()

    coordinator = VoltLoadManagerCoordinator(hass, engine)
    await coordinator.async_config_entry_first_refresh()

    scheduler = ActionScheduler(hass, entry, engine)
    hass.data[DOMAIN][entry.entry_id] = {
        "engine": engine,
        "coordinator": coordinator,
        "scheduler": scheduler,
    }

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    # Register services (only once, not per config entry)
    if not hass.services.has_service(DOMAIN, SERVICE_GET_STATE):
        await async_register_services(hass)

    scheduler.start()
    entry.async_on_unload(entry.add_update_listener(async_reload_entry))

    _LOGGER.info(
        "Volt Load Manager started: %d managed load(s), optimization %s, load manager %s",
        len(engine.state.loads),
        "on" if engine.optimization_enabled else "off",
        "on" if engine.load_manager_enabled else "off",
    )
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    entry_data = hass.data.get(DOMAIN, {}).get(entry.entry_id, {})
    if scheduler := entry_data.get("scheduler"):
        scheduler.stop()

    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)

    if unload_ok:
        if coordinator := entry_data.get("coordinator"):
            coordinator.async_shutdown_listener()
        hass.data[DOMAIN].pop(entry.entry_id, None)

    return unload_ok


async def async_reload_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Reload config entry."""
    await hass.config_entries.async_reload(entry.entry_id)
