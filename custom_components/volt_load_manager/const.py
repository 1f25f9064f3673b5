"""Constants for the Volt Load Manager integration."""

DOMAIN = "volt_load_manager"

# Sensors
CONF_BATTERY_SOC_SENSOR = "battery_soc_sensor"
CONF_BATTERY_POWER_SENSOR = "battery_power_sensor"
CONF_BATTERY_CAPACITY_SENSOR = "battery_capacity_sensor"
CONF_GRID_POWER_SENSOR = "grid_power_sensor"
CONF_LOAD_POWER_SENSOR = "load_power_sensor"
CONF_PV_POWER_SENSOR = "pv_power_sensor"
CONF_PRICE_SENSOR = "price_sensor"
CONF_TARIFF_PERIOD_SENSOR = "tariff_period_sensor"
CONF_CAR_SOC_SENSOR = "car_soc_sensor"
CONF_CAR_CHARGING_SLOT_ENTITY = "car_charging_slot_entity"

# Inverter controls
CONF_CHARGE_TARGET_SOC_ENTITY = "charge_target_soc_entity"
CONF_GRID_CHARGE_SOC_ENTITY = "grid_charge_soc_entity"
CONF_BATTERY_CAPACITY_KWH = "battery_capacity_kwh"

# Battery optimization
CONF_OPTIMIZATION_ENABLED = "optimization_enabled"
CONF_MIN_SOC = "min_soc"
CONF_ALWAYS_CHARGE_BELOW_PRICE = "always_charge_below_price"
CONF_NEVER_CHARGE_ABOVE_PRICE = "never_charge_above_price"
CONF_KEEP_FULL_WEEKENDS = "keep_full_weekends"

# Tariff periods
CONF_VALLE_CONTRACTED_POWER_KW = "valle_contracted_power_kw"
CONF_LLANO_CONTRACTED_POWER_KW = "llano_contracted_power_kw"
CONF_PUNTA_CONTRACTED_POWER_KW = "punta_contracted_power_kw"
CONF_VALLE_TARGET_SOC = "valle_target_soc"
CONF_LLANO_TARGET_SOC = "llano_target_soc"
CONF_PUNTA_TARGET_SOC = "punta_target_soc"
CONF_VALLE_START_HOUR = "valle_start_hour"
CONF_VALLE_END_HOUR = "valle_end_hour"
CONF_PUNTA_WINDOWS = "punta_windows"

# Load manager
CONF_LOAD_MANAGER_ENABLED = "load_manager_enabled"
CONF_SAFETY_MARGIN_PERCENT = "safety_margin_percent"
CONF_CHECK_INTERVAL_SECONDS = "check_interval_seconds"
CONF_LOADS = "loads"

# Load entry keys
LOAD_ID = "id"
LOAD_NAME = "name"
LOAD_PRIORITY = "priority"
LOAD_SWITCH_ENTITY = "switch_entity"
LOAD_POWER_SENSOR = "power_sensor"
LOAD_MAX_POWER = "max_power"

# Alerts
CONF_LOW_SOC_ALERT = "low_soc_alert"
CONF_HIGH_PRICE_ALERT = "high_price_alert"
CONF_OVERLOAD_ALERT = "overload_alert"
CONF_NOTIFY_SERVICE = "notify_service"

# Forecast
CONF_LATITUDE = "latitude"
CONF_LONGITUDE = "longitude"
CONF_PV_PEAK_POWER_KW = "pv_peak_power_kw"
CONF_CHARGE_RATE_KW = "charge_rate_kw"
CONF_ESIOS_API_TOKEN = "esios_api_token"

# Tariff period names
PERIOD_VALLE = "valle"
PERIOD_LLANO = "llano"
PERIOD_PUNTA = "punta"
PERIOD_UNKNOWN = "unknown"
PERIODS = (PERIOD_VALLE, PERIOD_LLANO, PERIOD_PUNTA)

# Load priorities
PRIORITY_ESSENTIAL = "essential"
PRIORITY_COMFORT = "comfort"
PRIORITY_ACCESSORY = "accessory"
LOAD_PRIORITIES = (PRIORITY_ESSENTIAL, PRIORITY_COMFORT, PRIORITY_ACCESSORY)
SHED_ORDER = (PRIORITY_ACCESSORY, PRIORITY_COMFORT)
RESTORE_ORDER = (PRIORITY_COMFORT, PRIORITY_ACCESSORY)

# Charging decisions
DECISION_CHARGE = "charge"
DECISION_HOLD = "hold"
DECISION_IDLE = "idle"

# Charging plan actions
PLAN_CHARGE_NOW = "charge_now"
PLAN_WAIT_FOR_CHEAP = "wait_for_cheap"
PLAN_WAIT_FOR_SOLAR = "wait_for_solar"
PLAN_HOLD = "hold"

# Alert types and severities
ALERT_LOW_SOC = "low_soc"
ALERT_HIGH_PRICE = "high_price"
ALERT_OVERLOAD = "overload"
SEVERITY_INFO = "info"
SEVERITY_WARNING = "warning"
SEVERITY_DANGER = "danger"
ALERT_HISTORY_LIMIT = 100

# Default values
DEFAULT_BATTERY_CAPACITY_KWH = 32.6
DEFAULT_MIN_SOC = 10
DEFAULT_ALWAYS_CHARGE_BELOW_PRICE = 0.05
DEFAULT_NEVER_CHARGE_ABOVE_PRICE = 0.15
DEFAULT_VALLE_CONTRACTED_POWER_KW = 6.9
DEFAULT_LLANO_CONTRACTED_POWER_KW = 3.45
DEFAULT_PUNTA_CONTRACTED_POWER_KW = 3.45
DEFAULT_VALLE_TARGET_SOC = 100
DEFAULT_LLANO_TARGET_SOC = 50
DEFAULT_PUNTA_TARGET_SOC = 20
DEFAULT_VALLE_START_HOUR = 0
DEFAULT_VALLE_END_HOUR = 8
DEFAULT_PUNTA_WINDOWS = ((10, 14), (18, 22))
DEFAULT_SAFETY_MARGIN_PERCENT = 10
DEFAULT_CHECK_INTERVAL_SECONDS = 30
DEFAULT_LOAD_MAX_POWER_W = 1000
DEFAULT_LOW_SOC_ALERT = 15
DEFAULT_HIGH_PRICE_ALERT = 0.20
DEFAULT_LATITUDE = 43.5322
DEFAULT_LONGITUDE = -5.6611
DEFAULT_PV_PEAK_POWER_KW = 8.0
DEFAULT_CHARGE_RATE_KW = 6.0

# Control constants
CHARGE_HYSTERESIS_SOC = 2
RESTORE_HEADROOM_FACTOR = 0.8
COMMAND_TIMEOUT_SECONDS = 5
FORECAST_TIMEOUT_SECONDS = 10
FORECAST_CACHE_TTL_SECONDS = 30 * 60
SNAPSHOT_HISTORY_LIMIT = 288

# Forecast sources
OPEN_METEO_URL = "https://api.open-meteo.com/v1/forecast"
ESIOS_PVPC_URL = "https://api.esios.ree.es/indicators/1001"
PV_PANEL_EFFICIENCY = 0.18
PV_CLOUD_LOSS_FACTOR = 0.3

# Services
SERVICE_SET_TARGET_SOC = "set_target_soc"
SERVICE_CLEAR_TARGET_SOC = "clear_target_soc"
SERVICE_APPLY_CHARGING = "apply_charging"
SERVICE_BALANCE_LOADS = "balance_loads"
SERVICE_RESTORE_LOADS = "restore_loads"
SERVICE_GET_CHARGING_PLAN = "get_charging_plan"
SERVICE_GET_STATE = "get_state"
SERVICE_CLEAR_ALERTS = "clear_alerts"
SERVICE_SCHEDULE_ACTION = "schedule_action"
SERVICE_SET_DO_NOT_DISTURB = "set_do_not_disturb"

# Scheduled one-shot actions
ACTION_CLEAR_OVERRIDE = "clear_override"
ACTION_SET_TARGET_SOC = "set_target_soc"
ACTION_BALANCE_LOADS = "balance_loads"
ACTION_RESTORE_LOADS = "restore_loads"
ACTION_APPLY_CHARGING = "apply_charging"
SCHEDULED_ACTIONS = (
    ACTION_CLEAR_OVERRIDE,
    ACTION_SET_TARGET_SOC,
    ACTION_BALANCE_LOADS,
    ACTION_RESTORE_LOADS,
    ACTION_APPLY_CHARGING,
)

# Storage
STORAGE_KEY_STATE = f"{DOMAIN}.state"
STORAGE_VERSION_STATE = 1
STORAGE_KEY_PENDING_ACTIONS = f"{DOMAIN}.pending_actions"
STORAGE_VERSION_PENDING_ACTIONS = 1

# Events
EVENT_ACTION = f"{DOMAIN}_action"

# Update intervals (seconds)
UPDATE_INTERVAL_STATE = 30
UPDATE_INTERVAL_CHARGING = 300
UPDATE_INTERVAL_SNAPSHOT = 300
INITIAL_CHARGING_DELAY = 5
