"""Charging state machine with a hysteresis band."""
from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING

from ..const import CHARGE_HYSTERESIS_SOC, DECISION_CHARGE, DECISION_HOLD, DECISION_IDLE
from ..controllers.inverter import async_set_number

if TYPE_CHECKING:
    from homeassistant.core import Context, HomeAssistant

_LOGGER = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class ChargingDecision:
    """Charge, hold or idle with the reason that produced it."""

    decision: str
    target_soc: float
    current_soc: float
    reason: str


@dataclasses.dataclass(frozen=True, slots=True)
class ChargingCommandResult:
    """Which commands were issued and whether they succeeded."""

    decision: str
    commands: tuple[tuple[str, float, bool], ...] = ()

    @property
    def success(self) -> bool:
        return all(ok for _, _, ok in self.commands)


def decide_charging(
    current_soc: float,
    target_soc: float,
    target_reason: str = "",
    *,
    hysteresis: float = CHARGE_HYSTERESIS_SOC,
) -> ChargingDecision:
    """Decide whether to charge from the grid.

    Charges only when the SOC sits more than ``hysteresis`` points below the
    target, so small oscillations around the target never flip the decision.
    """
    suffix = f" ({target_reason})" if target_reason else ""
    if current_soc < target_soc - hysteresis:
        return ChargingDecision(
            decision=DECISION_CHARGE,
            target_soc=target_soc,
            current_soc=current_soc,
            reason=f"SOC {current_soc:.0f}% < target {target_soc:.0f}%{suffix}",
        )
    if current_soc >= target_soc:
        relation = f"SOC {current_soc:.0f}% >= target {target_soc:.0f}%"
    else:
        relation = f"SOC {current_soc:.0f}% ~ target {target_soc:.0f}% (within {hysteresis:g} points)"
    return ChargingDecision(
        decision=DECISION_HOLD,
        target_soc=target_soc,
        current_soc=current_soc,
        reason=f"{relation}{suffix}",
    )


def idle_decision(current_soc: float) -> ChargingDecision:
    """Decision used while battery optimization is switched off."""
    return ChargingDecision(
        decision=DECISION_IDLE,
        target_soc=current_soc,
        current_soc=current_soc,
        reason="Battery optimization disabled",
    )


async def async_apply_charging_decision(
    hass: HomeAssistant,
    decision: ChargingDecision,
    *,
    charge_target_entity: str | None,
    grid_charge_entity: str | None,
    context: Context | None = None,
) -> ChargingCommandResult:
    """Push a charging decision to the inverter controls.

    On charge both controls are set to the target; on hold grid charging is
    disabled by setting its control to 0. Unconfigured controls are skipped
    and failures are only logged; the next cycle tries again.
    """
    commands: list[tuple[str, float, bool]] = []

    if decision.decision == DECISION_CHARGE:
        for entity_id in (charge_target_entity, grid_charge_entity):
            if not entity_id:
                continue
            ok = await async_set_number(
                hass, entity_id, decision.target_soc, context=context, logger=_LOGGER
            )
            commands.append((entity_id, decision.target_soc, ok))
    elif decision.decision == DECISION_HOLD and grid_charge_entity:
        ok = await async_set_number(hass, grid_charge_entity, 0, context=context, logger=_LOGGER)
        commands.append((grid_charge_entity, 0, ok))

    failed = [entity_id for entity_id, _, ok in commands if not ok]
    if failed:
        _LOGGER.warning("Charging command failed for %s; retrying next cycle", ", ".join(failed))

    return ChargingCommandResult(decision=decision.decision, commands=tuple(commands))
