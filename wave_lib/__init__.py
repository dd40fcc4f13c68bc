"""
wave_lib - Read coordinator and BLE transport for Airthings Wave Plus sensors.

Serves humidity, radon, temperature, pressure, CO2 and VOC readings from a
single device behind a TTL cache with single-flight device access.
"""

from wave_lib.coordinator import ReadCoordinator
from wave_lib.errors import (
    DiscoveryFailure,
    LockTimeout,
    ReadFailed,
    TransportFailure,
    WaveError,
)
from wave_lib.models import ConnectionState, FrameStatus, SensorReading
from wave_lib.parsing import decode_frame
from wave_lib.policy import ReadPolicy

__version__ = "0.1.0"

__all__ = [
    "ReadCoordinator",
    "ReadPolicy",
    "SensorReading",
    "ConnectionState",
    "FrameStatus",
    "decode_frame",
    "WaveError",
    "DiscoveryFailure",
    "TransportFailure",
    "LockTimeout",
    "ReadFailed",
]
