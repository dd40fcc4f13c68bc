"""BLE protocol constants and timing defaults for the Airthings Wave Plus.

Frame layout of the sensor data characteristic (20 bytes, little-endian):

    byte 0      protocol version (unused)
    byte 1      humidity, units of 0.5 %rH
    bytes 2-3   reserved
    8 x uint16  radon short-term avg, radon long-term avg, temperature (0.01 C),
                pressure (0.02 hPa), CO2 (ppm), VOC (ppb), reserved, reserved
"""

import struct
from typing import Final

# ============================================================================
# Identification
# ============================================================================

# Bluetooth SIG company identifier for "Corentium AS", maker of the BLE
# receiver in the Wave Plus.
MANUFACTURER_ID: Final[int] = 820

SENSOR_CHARACTERISTIC_UUID: Final[str] = "b42e2a68-ade7-11e4-89d3-123b93f75cba"

# ============================================================================
# Frame Layout
# ============================================================================

FRAME_FORMAT: Final[str] = "<BBBBHHHHHHHH"
FRAME_STRUCT: Final[struct.Struct] = struct.Struct(FRAME_FORMAT)
FRAME_SIZE: Final[int] = FRAME_STRUCT.size

# Value the device emits for a channel it could not measure
SENTINEL: Final[int] = 0xFFFF

HUMIDITY_DIVISOR: Final[float] = 2.0
TEMPERATURE_DIVISOR: Final[float] = 100.0
PRESSURE_DIVISOR: Final[float] = 50.0

# Physical bounds above which humidity and temperature are considered garbage
HUMIDITY_MAX: Final[float] = 100.0
TEMPERATURE_MAX: Final[float] = 100.0

# ============================================================================
# Timing Defaults (seconds)
# ============================================================================

CACHE_TTL: Final[float] = 4 * 60.0
LOCK_TIMEOUT: Final[float] = 30.0
READ_TIMEOUT: Final[float] = 2.0
CONNECT_TIMEOUT: Final[float] = 10.0
RETRY_DELAY: Final[float] = 1.0
MAX_READ_ATTEMPTS: Final[int] = 5
SCAN_TIMEOUT: Final[float] = 30.0
