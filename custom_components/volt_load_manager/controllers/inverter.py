"""Command helpers for inverter controls and switchable loads."""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from homeassistant.exceptions import HomeAssistantError

from ..const import COMMAND_TIMEOUT_SECONDS

if TYPE_CHECKING:
    from homeassistant.core import Context, HomeAssistant

_LOGGER = logging.getLogger(__name__)


async def async_call_service(
    hass: HomeAssistant,
    domain: str,
    service: str,
    data: dict[str, Any],
    *,
    context: Context | None = None,
    timeout: float = COMMAND_TIMEOUT_SECONDS,
) -> bool:
    """Call a service and report success as a boolean.

    Failures and timeouts are logged and never raised.
    """
    try:
        async with asyncio.timeout(timeout):
            await hass.services.async_call(
                domain,
                service,
                data,
                blocking=True,
                context=context,
            )
    except TimeoutError:
        _LOGGER.warning(
            "Timed out after %ss calling %s.%s for %s",
            timeout,
            domain,
            service,
            data.get("entity_id"),
        )
        return False
    except HomeAssistantError as err:
        _LOGGER.warning(
            "Failed calling %s.%s for %s: %s",
            domain,
            service,
            data.get("entity_id"),
            err,
        )
        return False
    return True


async def async_turn_on(
    hass: HomeAssistant, entity_id: str | None, *, context: Context | None = None
) -> bool:
    """Turn an entity on through the generic homeassistant service."""
    if not entity_id:
        return False
    return await async_call_service(
        hass, "homeassistant", "turn_on", {"entity_id": entity_id}, context=context
    )


async def async_turn_off(
    hass: HomeAssistant, entity_id: str | None, *, context: Context | None = None
) -> bool:
    """Turn an entity off through the generic homeassistant service."""
    if not entity_id:
        return False
    return await async_call_service(
        hass, "homeassistant", "turn_off", {"entity_id": entity_id}, context=context
    )


async def async_set_number(
    hass: HomeAssistant,
    entity_id: str | None,
    value: float,
    *,
    context: Context | None = None,
    logger: logging.Logger | None = None,
) -> bool:
    """Set a number entity (charge target SOC, grid charge SOC) if provided."""
    if not entity_id:
        return False

    ok = await async_call_service(
        hass,
        "number",
        "set_value",
        {"entity_id": entity_id, "value": value},
        context=context,
    )
    if ok:
        (logger or _LOGGER).debug("Set %s to %s%%", entity_id, value)
    return ok
