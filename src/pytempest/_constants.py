"""Internal constants shared across the library."""

REST_BASE_URL = "https://swd.weatherflow.com/swd/rest"
WS_URL = "wss://ws.weatherflow.com/swd/data"
USER_AGENT = "pytempest/0.3"

# Device type of the all-in-one Tempest sensor unit in station metadata.
PRIMARY_DEVICE_TYPE = "ST"

# ------------------------------------------------------------------
# WebSocket frame types
# ------------------------------------------------------------------

MSG_LISTEN_START = "listen_start"
MSG_LISTEN_STOP = "listen_stop"
MSG_ACK = "ack"
MSG_OBS_ST = "obs_st"
MSG_OBS_SKY = "obs_sky"  # legacy SKY hub record, same positional layout

OBSERVATION_MESSAGE_TYPES: frozenset[str] = frozenset({MSG_OBS_ST, MSG_OBS_SKY})
IGNORED_MESSAGE_TYPES: frozenset[str] = frozenset(
    {"connection_opened", "evt_precip", "evt_strike", "rapid_wind", "device_status", "hub_status"}
)

# ------------------------------------------------------------------
# Battery scale  (volts -> percent)
# ------------------------------------------------------------------

BATTERY_EMPTY_VOLTS = 2.4
BATTERY_FULL_VOLTS = 3.6
# A Tempest cell at or above nominal voltage reports as fully charged.
BATTERY_NOMINAL_VOLTS = 3.3
LOW_BATTERY_PERCENT = 20

# ------------------------------------------------------------------
# Display bounds for illuminance consumers
# ------------------------------------------------------------------

LUX_MIN = 0.0001
LUX_MAX = 100000.0

# Lightning strikes beyond this average distance (km) are not reported.
LIGHTNING_MAX_DISTANCE_KM = 50.0


def battery_percent(voltage: float) -> int:
    """Convert a battery voltage to a 0-100 percentage.

    Linear between 2.4 V (0 %) and 3.6 V (100 %), clamped to that range.
    Nominal voltage (3.3 V) and above reads as 100 %.
    """
    if voltage >= BATTERY_NOMINAL_VOLTS:
        return 100
    span = BATTERY_FULL_VOLTS - BATTERY_EMPTY_VOLTS
    percent = round(((voltage - BATTERY_EMPTY_VOLTS) / span) * 100)
    return max(0, min(100, int(percent)))


def clamp_lux(lux: float) -> float:
    """Clamp an illuminance value into the range accepted by display consumers."""
    return max(LUX_MIN, min(float(lux), LUX_MAX))
