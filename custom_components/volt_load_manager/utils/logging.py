"""Shared decision logging helpers."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from homeassistant.util import dt as dt_util

from ..const import EVENT_ACTION

if TYPE_CHECKING:
    from homeassistant.core import Context, HomeAssistant

    from ..models import SystemState


@dataclass
class DecisionOutcome:
    """Unified decision outcome data structure."""

    # Core identification
    scenario: str  # e.g., "Charging", "Load Balance"
    action_type: str  # e.g., "charge", "shed", "override_set"

    # Concise summary (for logs + events)
    summary: str  # e.g., "Shed 1 load(s), saved 900 W"

    # Structured details (for state attributes)
    key_metrics: dict[str, str] = field(default_factory=dict)  # Pre-formatted strings
    reason: str | None = None

    # Complete data (for events)
    full_details: dict[str, Any] = field(default_factory=dict)

    # Entity changes (for events)
    entities_changed: list[dict[str, Any]] = field(default_factory=list)


def log_decision_unified(
    hass: HomeAssistant,
    entry_id: str,
    outcome: DecisionOutcome,
    *,
    state: SystemState | None = None,
    context: Context | None = None,
    logger: logging.Logger | None = None,
) -> None:
    """Log decision outcome to all channels with unified data.

    Args:
        hass: Home Assistant instance
        entry_id: Config entry id the decision belongs to
        outcome: DecisionOutcome object containing all decision data
        state: Optional system state whose last_action is updated
        context: Optional context for linking events
        logger: Optional logger for technical logs (e.g., _LOGGER)
    """

    # 1. Technical log
    if logger:
        if outcome.reason:
            logger.info("%s: %s (%s)", outcome.scenario, outcome.summary, outcome.reason)
        else:
            logger.info("%s: %s", outcome.scenario, outcome.summary)

    # 2. Last action on the state (exposed through sensor attributes)
    if state is not None:
        state.last_action = {
            "scenario": outcome.scenario,
            "action": outcome.action_type,
            "summary": outcome.summary,
            "reason": outcome.reason,
            "timestamp": dt_util.now().isoformat(),
            **outcome.key_metrics,
        }

    # 3. Custom event (complete data + entity changes)
    event_data = {
        "action": outcome.action_type,
        "description": outcome.summary,
        "scenario": outcome.scenario,
        "entry_id": entry_id,
        **outcome.full_details,
    }
    if outcome.reason:
        event_data["reason"] = outcome.reason
    if outcome.entities_changed:
        event_data["entities_changed"] = outcome.entities_changed

    hass.bus.async_fire(EVENT_ACTION, event_data, context=context)
