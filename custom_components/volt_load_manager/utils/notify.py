"""Notification delivery through Home Assistant notify services."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from ..controllers.inverter import async_call_service
from ..decision_engine.alerts import is_do_not_disturb

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

_LOGGER = logging.getLogger(__name__)

DEFAULT_NOTIFY_SERVICE = "notify.notify"
NOTIFY_TITLE = "Volt Load Manager"


def split_notify_service(service: str | None) -> tuple[str, str]:
    """Split "notify.mobile_app_x" into domain and service name."""
    value = (service or DEFAULT_NOTIFY_SERVICE).strip()
    if "." not in value:
        return "notify", value
    domain, name = value.split(".", 1)
    return domain, name


async def async_send_notification(
    hass: HomeAssistant,
    message: str,
    *,
    notify_service: str | None,
    dnd_until: datetime | None,
    now: datetime,
    title: str = NOTIFY_TITLE,
) -> bool:
    """Send a notification unless Do-Not-Disturb is active.

    Returns:
        True when the notify service accepted the message
    """
    if is_do_not_disturb(dnd_until, now):
        _LOGGER.debug("Do-Not-Disturb until %s, notification suppressed: %s", dnd_until, message)
        return False

    domain, service = split_notify_service(notify_service)
    return await async_call_service(
        hass,
        domain,
        service,
        {"title": title, "message": message},
    )
