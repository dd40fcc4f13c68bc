"""Data models for the Wave Plus sensor library."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ConnectionState(Enum):
    """Device adapter connection states."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class FrameStatus(Enum):
    """Classification of a decoded frame."""

    USABLE = "usable"
    BOGUS = "bogus"


@dataclass(frozen=True)
class SensorReading:
    """One decoded set of measurements from the sensor.

    Attributes:
        humidity: Relative humidity in percent.
        radon_st_avg: Radon short-term average, Bq/m3.
        radon_lt_avg: Radon long-term average, Bq/m3.
        temperature: Temperature in degrees Celsius.
        pressure: Relative atmospheric pressure in hPa.
        co2: Carbon dioxide in ppm, or None if the sensor could not measure it this cycle.
        voc: Volatile organic compounds in ppb, or None (same semantics as co2).
    """

    humidity: float
    radon_st_avg: int
    radon_lt_avg: int
    temperature: float
    pressure: float
    co2: Optional[int] = None
    voc: Optional[int] = None


@dataclass(frozen=True)
class ClassifiedFrame:
    """Result of decoding a raw frame.

    `reading` is set only for usable frames, `reason` only for bogus ones.
    """

    status: FrameStatus
    reading: Optional[SensorReading] = None
    reason: str = ""

    @property
    def usable(self) -> bool:
        return self.status == FrameStatus.USABLE


@dataclass
class CacheEntry:
    """Single-slot cache for the most recent usable reading.

    Freshness is judged lazily against a TTL at read time. The entry is
    never cleared, only superseded by a newer reading.
    """

    value: Optional[SensorReading] = None
    captured_at: Optional[float] = None

    def store(self, value: SensorReading, now: float) -> None:
        self.value = value
        self.captured_at = now

    def age(self, now: float) -> Optional[float]:
        """Seconds since the value was captured, or None when empty."""
        if self.captured_at is None:
            return None
        return now - self.captured_at

    def fresh(self, now: float, ttl_s: float) -> Optional[SensorReading]:
        """Return the cached value if it is younger than ttl_s, else None."""
        age = self.age(now)
        if age is None or age >= ttl_s:
            return None
        return self.value
