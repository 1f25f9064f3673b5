"""Config flow for Volt Load Manager integration."""
from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.core import callback
from homeassistant.helpers import selector

from .const import (
    CONF_ALWAYS_CHARGE_BELOW_PRICE,
    CONF_BATTERY_CAPACITY_KWH,
    CONF_BATTERY_CAPACITY_SENSOR,
    CONF_BATTERY_POWER_SENSOR,
    CONF_BATTERY_SOC_SENSOR,
    CONF_CAR_CHARGING_SLOT_ENTITY,
    CONF_CAR_SOC_SENSOR,
    CONF_CHARGE_RATE_KW,
    CONF_CHARGE_TARGET_SOC_ENTITY,
    CONF_CHECK_INTERVAL_SECONDS,
    CONF_ESIOS_API_TOKEN,
    CONF_GRID_CHARGE_SOC_ENTITY,
    CONF_GRID_POWER_SENSOR,
    CONF_HIGH_PRICE_ALERT,
    CONF_KEEP_FULL_WEEKENDS,
    CONF_LATITUDE,
    CONF_LLANO_CONTRACTED_POWER_KW,
    CONF_LLANO_TARGET_SOC,
    CONF_LOAD_MANAGER_ENABLED,
    CONF_LOAD_POWER_SENSOR,
    CONF_LOADS,
    CONF_LONGITUDE,
    CONF_LOW_SOC_ALERT,
    CONF_MIN_SOC,
    CONF_NEVER_CHARGE_ABOVE_PRICE,
    CONF_NOTIFY_SERVICE,
    CONF_OPTIMIZATION_ENABLED,
    CONF_OVERLOAD_ALERT,
    CONF_PRICE_SENSOR,
    CONF_PUNTA_CONTRACTED_POWER_KW,
    CONF_PUNTA_TARGET_SOC,
    CONF_PUNTA_WINDOWS,
    CONF_PV_PEAK_POWER_KW,
    CONF_PV_POWER_SENSOR,
    CONF_SAFETY_MARGIN_PERCENT,
    CONF_TARIFF_PERIOD_SENSOR,
    CONF_VALLE_CONTRACTED_POWER_KW,
    CONF_VALLE_END_HOUR,
    CONF_VALLE_START_HOUR,
    CONF_VALLE_TARGET_SOC,
    DEFAULT_ALWAYS_CHARGE_BELOW_PRICE,
    DEFAULT_BATTERY_CAPACITY_KWH,
    DEFAULT_CHARGE_RATE_KW,
    DEFAULT_CHECK_INTERVAL_SECONDS,
    DEFAULT_HIGH_PRICE_ALERT,
    DEFAULT_LATITUDE,
    DEFAULT_LLANO_CONTRACTED_POWER_KW,
    DEFAULT_LLANO_TARGET_SOC,
    DEFAULT_LOAD_MAX_POWER_W,
    DEFAULT_LONGITUDE,
    DEFAULT_LOW_SOC_ALERT,
    DEFAULT_MIN_SOC,
    DEFAULT_NEVER_CHARGE_ABOVE_PRICE,
    DEFAULT_PUNTA_CONTRACTED_POWER_KW,
    DEFAULT_PUNTA_TARGET_SOC,
    DEFAULT_PUNTA_WINDOWS,
    DEFAULT_PV_PEAK_POWER_KW,
    DEFAULT_SAFETY_MARGIN_PERCENT,
    DEFAULT_VALLE_CONTRACTED_POWER_KW,
    DEFAULT_VALLE_END_HOUR,
    DEFAULT_VALLE_START_HOUR,
    DEFAULT_VALLE_TARGET_SOC,
    DOMAIN,
    LOAD_MAX_POWER,
    LOAD_NAME,
    LOAD_POWER_SENSOR,
    LOAD_PRIORITIES,
    LOAD_PRIORITY,
    LOAD_SWITCH_ENTITY,
    PRIORITY_ACCESSORY,
)
from .utils.time_window import parse_hour_windows

_LOGGER = logging.getLogger(__name__)

CONF_ADD_ANOTHER = "add_another"


def _format_windows(windows: Any) -> str:
    return ",".join(f"{start}-{end}" for start, end in windows)


def _is_numeric_state(state: str) -> bool:
    """Check if state is numeric."""
    try:
        float(state)
        return True
    except (ValueError, TypeError):
        return False


def _tariff_schema(defaults: dict[str, Any]) -> vol.Schema:
    hour = vol.All(vol.Coerce(int), vol.Range(min=0, max=23))
    power = vol.All(vol.Coerce(float), vol.Range(min=0.1, max=50))
    soc = vol.All(vol.Coerce(int), vol.Range(min=0, max=100))
    punta_default = defaults.get(CONF_PUNTA_WINDOWS, DEFAULT_PUNTA_WINDOWS)
    if not isinstance(punta_default, str):
        punta_default = _format_windows(punta_default)
    return vol.Schema(
        {
            vol.Required(
                CONF_VALLE_CONTRACTED_POWER_KW,
                default=defaults.get(CONF_VALLE_CONTRACTED_POWER_KW, DEFAULT_VALLE_CONTRACTED_POWER_KW),
            ): power,
            vol.Required(
                CONF_LLANO_CONTRACTED_POWER_KW,
                default=defaults.get(CONF_LLANO_CONTRACTED_POWER_KW, DEFAULT_LLANO_CONTRACTED_POWER_KW),
            ): power,
            vol.Required(
                CONF_PUNTA_CONTRACTED_POWER_KW,
                default=defaults.get(CONF_PUNTA_CONTRACTED_POWER_KW, DEFAULT_PUNTA_CONTRACTED_POWER_KW),
            ): power,
            vol.Required(
                CONF_VALLE_TARGET_SOC,
                default=defaults.get(CONF_VALLE_TARGET_SOC, DEFAULT_VALLE_TARGET_SOC),
            ): soc,
            vol.Required(
                CONF_LLANO_TARGET_SOC,
                default=defaults.get(CONF_LLANO_TARGET_SOC, DEFAULT_LLANO_TARGET_SOC),
            ): soc,
            vol.Required(
                CONF_PUNTA_TARGET_SOC,
                default=defaults.get(CONF_PUNTA_TARGET_SOC, DEFAULT_PUNTA_TARGET_SOC),
            ): soc,
            vol.Required(
                CONF_VALLE_START_HOUR,
                default=defaults.get(CONF_VALLE_START_HOUR, DEFAULT_VALLE_START_HOUR),
            ): hour,
            vol.Required(
                CONF_VALLE_END_HOUR,
                default=defaults.get(CONF_VALLE_END_HOUR, DEFAULT_VALLE_END_HOUR),
            ): hour,
            vol.Required(CONF_PUNTA_WINDOWS, default=punta_default): str,
        }
    )


def _optimization_schema(defaults: dict[str, Any]) -> vol.Schema:
    price = vol.All(vol.Coerce(float), vol.Range(min=0, max=5))
    return vol.Schema(
        {
            vol.Required(
                CONF_OPTIMIZATION_ENABLED,
                default=defaults.get(CONF_OPTIMIZATION_ENABLED, True),
            ): selector.BooleanSelector(),
            vol.Required(
                CONF_BATTERY_CAPACITY_KWH,
                default=defaults.get(CONF_BATTERY_CAPACITY_KWH, DEFAULT_BATTERY_CAPACITY_KWH),
            ): vol.All(vol.Coerce(float), vol.Range(min=0.5, max=500)),
            vol.Required(
                CONF_MIN_SOC, default=defaults.get(CONF_MIN_SOC, DEFAULT_MIN_SOC)
            ): vol.All(vol.Coerce(int), vol.Range(min=0, max=100)),
            vol.Required(
                CONF_ALWAYS_CHARGE_BELOW_PRICE,
                default=defaults.get(CONF_ALWAYS_CHARGE_BELOW_PRICE, DEFAULT_ALWAYS_CHARGE_BELOW_PRICE),
            ): price,
            vol.Required(
                CONF_NEVER_CHARGE_ABOVE_PRICE,
                default=defaults.get(CONF_NEVER_CHARGE_ABOVE_PRICE, DEFAULT_NEVER_CHARGE_ABOVE_PRICE),
            ): price,
            vol.Required(
                CONF_KEEP_FULL_WEEKENDS,
                default=defaults.get(CONF_KEEP_FULL_WEEKENDS, True),
            ): selector.BooleanSelector(),
        }
    )


def _load_manager_schema(defaults: dict[str, Any]) -> vol.Schema:
    return vol.Schema(
        {
            vol.Required(
                CONF_LOAD_MANAGER_ENABLED,
                default=defaults.get(CONF_LOAD_MANAGER_ENABLED, True),
            ): selector.BooleanSelector(),
            vol.Required(
                CONF_SAFETY_MARGIN_PERCENT,
                default=defaults.get(CONF_SAFETY_MARGIN_PERCENT, DEFAULT_SAFETY_MARGIN_PERCENT),
            ): vol.All(vol.Coerce(int), vol.Range(min=0, max=50)),
            vol.Required(
                CONF_CHECK_INTERVAL_SECONDS,
                default=defaults.get(CONF_CHECK_INTERVAL_SECONDS, DEFAULT_CHECK_INTERVAL_SECONDS),
            ): vol.All(vol.Coerce(int), vol.Range(min=5, max=3600)),
        }
    )


def _alerts_schema(defaults: dict[str, Any]) -> vol.Schema:
    schema: dict[Any, Any] = {
        vol.Required(
            CONF_LOW_SOC_ALERT, default=defaults.get(CONF_LOW_SOC_ALERT, DEFAULT_LOW_SOC_ALERT)
        ): vol.All(vol.Coerce(float), vol.Range(min=0, max=100)),
        vol.Required(
            CONF_HIGH_PRICE_ALERT,
            default=defaults.get(CONF_HIGH_PRICE_ALERT, DEFAULT_HIGH_PRICE_ALERT),
        ): vol.All(vol.Coerce(float), vol.Range(min=0, max=5)),
        vol.Required(
            CONF_OVERLOAD_ALERT, default=defaults.get(CONF_OVERLOAD_ALERT, True)
        ): selector.BooleanSelector(),
        vol.Required(
            CONF_LATITUDE, default=defaults.get(CONF_LATITUDE, DEFAULT_LATITUDE)
        ): vol.All(vol.Coerce(float), vol.Range(min=-90, max=90)),
        vol.Required(
            CONF_LONGITUDE, default=defaults.get(CONF_LONGITUDE, DEFAULT_LONGITUDE)
        ): vol.All(vol.Coerce(float), vol.Range(min=-180, max=180)),
        vol.Required(
            CONF_PV_PEAK_POWER_KW,
            default=defaults.get(CONF_PV_PEAK_POWER_KW, DEFAULT_PV_PEAK_POWER_KW),
        ): vol.All(vol.Coerce(float), vol.Range(min=0, max=100)),
        vol.Required(
            CONF_CHARGE_RATE_KW,
            default=defaults.get(CONF_CHARGE_RATE_KW, DEFAULT_CHARGE_RATE_KW),
        ): vol.All(vol.Coerce(float), vol.Range(min=0.1, max=50)),
    }
    if defaults.get(CONF_NOTIFY_SERVICE):
        schema[vol.Optional(CONF_NOTIFY_SERVICE, default=defaults[CONF_NOTIFY_SERVICE])] = str
    else:
        schema[vol.Optional(CONF_NOTIFY_SERVICE)] = str
    if defaults.get(CONF_ESIOS_API_TOKEN):
        schema[vol.Optional(CONF_ESIOS_API_TOKEN, default=defaults[CONF_ESIOS_API_TOKEN])] = str
    else:
        schema[vol.Optional(CONF_ESIOS_API_TOKEN)] = str
    return vol.Schema(schema)


def _validate_tariff(user_input: dict[str, Any]) -> dict[str, str]:
    """Validate tariff configuration."""
    errors: dict[str, str] = {}
    if user_input[CONF_VALLE_START_HOUR] == user_input[CONF_VALLE_END_HOUR]:
        errors[CONF_VALLE_END_HOUR] = "empty_window"
    raw = str(user_input[CONF_PUNTA_WINDOWS])
    fragments = [part for part in raw.split(",") if part.strip()]
    if not fragments or len(parse_hour_windows(raw)) != len(fragments):
        errors[CONF_PUNTA_WINDOWS] = "invalid_windows"
    return errors


def _validate_optimization(user_input: dict[str, Any]) -> dict[str, str]:
    """Validate price thresholds."""
    errors: dict[str, str] = {}
    if user_input[CONF_ALWAYS_CHARGE_BELOW_PRICE] >= user_input[CONF_NEVER_CHARGE_ABOVE_PRICE]:
        errors[CONF_ALWAYS_CHARGE_BELOW_PRICE] = "low_not_below_high"
    return errors


class VoltLoadManagerConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for Volt Load Manager."""

    VERSION = 1

    def __init__(self) -> None:
        """Initialize config flow."""
        self._data: dict[str, Any] = {}
        self._loads: list[dict[str, Any]] = []

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.FlowResult:
        """Handle sensor configuration."""
        errors: dict[str, str] = {}

        if user_input is not None:
            errors = self._validate_sensors(user_input)
            if not errors:
                self._data.update(user_input)
                return await self.async_step_controls()

        schema = vol.Schema(
            {
                vol.Required(CONF_BATTERY_SOC_SENSOR): selector.EntitySelector(
                    selector.EntitySelectorConfig(domain="sensor", device_class="battery")
                ),
                vol.Optional(CONF_BATTERY_POWER_SENSOR): selector.EntitySelector(
                    selector.EntitySelectorConfig(domain="sensor", device_class="power")
                ),
                vol.Optional(CONF_BATTERY_CAPACITY_SENSOR): selector.EntitySelector(
                    selector.EntitySelectorConfig(domain="sensor")
                ),
                vol.Optional(CONF_GRID_POWER_SENSOR): selector.EntitySelector(
                    selector.EntitySelectorConfig(domain="sensor", device_class="power")
                ),
                vol.Optional(CONF_LOAD_POWER_SENSOR): selector.EntitySelector(
                    selector.EntitySelectorConfig(domain="sensor", device_class="power")
                ),
                vol.Optional(CONF_PV_POWER_SENSOR): selector.EntitySelector(
                    selector.EntitySelectorConfig(domain="sensor", device_class="power")
                ),
                vol.Optional(CONF_PRICE_SENSOR): selector.EntitySelector(
                    selector.EntitySelectorConfig(domain="sensor")
                ),
                vol.Optional(CONF_TARIFF_PERIOD_SENSOR): selector.EntitySelector(
                    selector.EntitySelectorConfig(domain="sensor")
                ),
                vol.Optional(CONF_CAR_SOC_SENSOR): selector.EntitySelector(
                    selector.EntitySelectorConfig(domain="sensor")
                ),
                vol.Optional(CONF_CAR_CHARGING_SLOT_ENTITY): selector.EntitySelector(
                    selector.EntitySelectorConfig(domain=["binary_sensor", "switch", "input_boolean"])
                ),
            }
        )

        return self.async_show_form(step_id="user", data_schema=schema, errors=errors)

    async def async_step_controls(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.FlowResult:
        """Handle inverter control entities."""
        if user_input is not None:
            self._data.update(user_input)
            return await self.async_step_optimization()

        schema = vol.Schema(
            {
                vol.Optional(CONF_CHARGE_TARGET_SOC_ENTITY): selector.EntitySelector(
                    selector.EntitySelectorConfig(domain="number")
                ),
                vol.Optional(CONF_GRID_CHARGE_SOC_ENTITY): selector.EntitySelector(
                    selector.EntitySelectorConfig(domain="number")
                ),
            }
        )

        return self.async_show_form(step_id="controls", data_schema=schema)

    async def async_step_optimization(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.FlowResult:
        """Handle battery optimization parameters."""
        errors: dict[str, str] = {}

        if user_input is not None:
            errors = _validate_optimization(user_input)
            if not errors:
                self._data.update(user_input)
                return await self.async_step_tariff()

        return self.async_show_form(
            step_id="optimization",
            data_schema=_optimization_schema(user_input or {}),
            errors=errors,
        )

    async def async_step_tariff(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.FlowResult:
        """Handle tariff periods and contracted power."""
        errors: dict[str, str] = {}

        if user_input is not None:
            errors = _validate_tariff(user_input)
            if not errors:
                self._data.update(user_input)
                return await self.async_step_load_manager()

        return self.async_show_form(
            step_id="tariff", data_schema=_tariff_schema(user_input or {}), errors=errors
        )

    async def async_step_load_manager(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.FlowResult:
        """Handle load manager settings."""
        if user_input is not None:
            self._data.update(user_input)
            return await self.async_step_load()

        return self.async_show_form(
            step_id="load_manager", data_schema=_load_manager_schema({})
        )

    async def async_step_load(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.FlowResult:
        """Add one managed load; repeat while add_another is set."""
        errors: dict[str, str] = {}

        if user_input is not None:
            add_another = bool(user_input.pop(CONF_ADD_ANOTHER, False))
            name = str(user_input.get(LOAD_NAME) or "").strip()
            if not name and not user_input.get(LOAD_SWITCH_ENTITY):
                # Empty form ends the load list.
                return await self.async_step_alerts()
            if any(load.get(LOAD_NAME) == name for load in self._loads):
                errors[LOAD_NAME] = "duplicate_load"
            else:
                self._loads.append(user_input)
                if add_another:
                    return await self.async_step_load()
                return await self.async_step_alerts()

        schema = vol.Schema(
            {
                vol.Optional(LOAD_NAME): str,
                vol.Optional(LOAD_PRIORITY, default=PRIORITY_ACCESSORY): selector.SelectSelector(
                    selector.SelectSelectorConfig(
                        options=list(LOAD_PRIORITIES),
                        mode=selector.SelectSelectorMode.DROPDOWN,
                        translation_key="load_priority",
                    )
                ),
                vol.Optional(LOAD_SWITCH_ENTITY): selector.EntitySelector(
                    selector.EntitySelectorConfig(domain=["switch", "light", "climate", "fan"])
                ),
                vol.Optional(LOAD_POWER_SENSOR): selector.EntitySelector(
                    selector.EntitySelectorConfig(domain="sensor", device_class="power")
                ),
                vol.Optional(LOAD_MAX_POWER, default=DEFAULT_LOAD_MAX_POWER_W): vol.All(
                    vol.Coerce(float), vol.Range(min=0, max=50000)
                ),
                vol.Optional(CONF_ADD_ANOTHER, default=False): selector.BooleanSelector(),
            }
        )

        return self.async_show_form(
            step_id="load",
            data_schema=schema,
            errors=errors,
            description_placeholders={"count": str(len(self._loads))},
        )

    async def async_step_alerts(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.FlowResult:
        """Handle alerts, notifications and forecast location."""
        if user_input is not None:
            self._data.update(user_input)
            self._data[CONF_LOADS] = self._loads
            return self.async_create_entry(title="Volt Load Manager", data=self._data)

        defaults = {
            CONF_LATITUDE: self.hass.config.latitude,
            CONF_LONGITUDE: self.hass.config.longitude,
        }
        return self.async_show_form(step_id="alerts", data_schema=_alerts_schema(defaults))

    def _validate_sensors(self, user_input: dict[str, Any]) -> dict[str, str]:
        """Validate the battery SOC sensor."""
        errors: dict[str, str] = {}

        soc_state = self.hass.states.get(user_input[CONF_BATTERY_SOC_SENSOR])
        if not soc_state:
            errors[CONF_BATTERY_SOC_SENSOR] = "entity_not_found"
        elif not _is_numeric_state(soc_state.state):
            errors[CONF_BATTERY_SOC_SENSOR] = "not_numeric"

        return errors

    @staticmethod
    @callback
    def async_get_options_flow(
        config_entry: config_entries.ConfigEntry,
    ) -> config_entries.OptionsFlow:
        """Get the options flow for this handler."""
        return VoltLoadManagerOptionsFlow(config_entry)


class VoltLoadManagerOptionsFlow(config_entries.OptionsFlow):
    """Handle options flow for Volt Load Manager.

    Options are stored in entry.options and merged over entry.data by
    get_config; the update listener reloads the entry.
    """

    def __init__(self, config_entry: config_entries.ConfigEntry) -> None:
        """Initialize options flow."""
        self._entry = config_entry
        self._options: dict[str, Any] = {}

    @property
    def _current(self) -> dict[str, Any]:
        return {**self._entry.data, **self._entry.options, **self._options}

    async def async_step_init(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.FlowResult:
        """Battery optimization options."""
        errors: dict[str, str] = {}

        if user_input is not None:
            errors = _validate_optimization(user_input)
            if not errors:
                self._options.update(user_input)
                return await self.async_step_tariff()

        return self.async_show_form(
            step_id="init", data_schema=_optimization_schema(self._current), errors=errors
        )

    async def async_step_tariff(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.FlowResult:
        """Tariff options."""
        errors: dict[str, str] = {}

        if user_input is not None:
            errors = _validate_tariff(user_input)
            if not errors:
                self._options.update(user_input)
                return await self.async_step_load_manager()

        return self.async_show_form(
            step_id="tariff", data_schema=_tariff_schema(self._current), errors=errors
        )

    async def async_step_load_manager(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.FlowResult:
        """Load manager options."""
        if user_input is not None:
            self._options.update(user_input)
            return await self.async_step_alerts()

        return self.async_show_form(
            step_id="load_manager", data_schema=_load_manager_schema(self._current)
        )

    async def async_step_alerts(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.FlowResult:
        """Alert and forecast options."""
        if user_input is not None:
            self._options.update(user_input)
            _LOGGER.debug("Updating Volt Load Manager options: %s", sorted(self._options))
            return self.async_create_entry(title="", data={**self._entry.options, **self._options})

        return self.async_show_form(step_id="alerts", data_schema=_alerts_schema(self._current))
