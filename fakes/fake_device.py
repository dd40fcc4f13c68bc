"""Fake Wave Plus device that simulates the BLE adapter in memory.

Frames and failures are scripted ahead of time. Once the script is
exhausted the device keeps returning its default frame.
"""

import asyncio
import logging
from collections import deque
from typing import Optional, Union

from wave_lib import protocol
from wave_lib.errors import TransportFailure
from wave_lib.models import ConnectionState

logger = logging.getLogger(__name__)


def build_frame(
    humidity: float = 45.0,
    radon_st_avg: int = 10,
    radon_lt_avg: int = 12,
    temperature: float = 21.37,
    pressure: float = 1000.0,
    co2: int = 612,
    voc: int = 512,
    version: int = 1,
) -> bytes:
    """Build a raw 20-byte sensor frame from engineering units.

    Pass protocol.SENTINEL for co2 or voc to simulate a missing channel.
    """
    return protocol.FRAME_STRUCT.pack(
        version,
        round(humidity * protocol.HUMIDITY_DIVISOR),
        0,
        0,
        radon_st_avg,
        radon_lt_avg,
        round(temperature * protocol.TEMPERATURE_DIVISOR),
        round(pressure * protocol.PRESSURE_DIVISOR),
        co2,
        voc,
        0,
        0,
    )


# Corrupted-frame signature: humidity 127.5, temperature 382.2, CO2/VOC sentinel
BOGUS_FRAME: bytes = build_frame(
    humidity=127.5,
    temperature=382.2,
    co2=protocol.SENTINEL,
    voc=protocol.SENTINEL,
)

ScriptItem = Union[bytes, Exception]


class FakeDevice:
    """Deterministic in-memory DeviceAdapter.

    Tracks how often each operation ran and how many reads overlapped, so
    tests can assert on single-flight behavior.
    """

    def __init__(
        self,
        frames: Optional[list[ScriptItem]] = None,
        default_frame: Optional[bytes] = None,
        read_delay_s: float = 0.0,
        device_id: str = "FA:KE:00:00:08:20",
    ) -> None:
        """Initialize fake device.

        Args:
            frames: Scripted read results; exceptions are raised instead of returned
            default_frame: Frame returned once the script is exhausted
            read_delay_s: Simulated radio latency per read
            device_id: Reported device identifier
        """
        self._script: deque[ScriptItem] = deque(frames or [])
        self.default_frame = default_frame if default_frame is not None else build_frame()
        self.read_delay_s = read_delay_s
        self._device_id = device_id
        self._state = ConnectionState.DISCONNECTED

        self.connect_calls = 0
        self.disconnect_calls = 0
        self.read_calls = 0
        self.fail_connect: Optional[Exception] = None

        self._reads_in_flight = 0
        self.max_reads_in_flight = 0

    @property
    def device_id(self) -> str:
        return self._device_id

    @property
    def state(self) -> ConnectionState:
        return self._state

    def queue(self, *items: ScriptItem) -> None:
        """Append frames or exceptions to the read script."""
        self._script.extend(items)

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.fail_connect is not None:
            raise self.fail_connect
        self._state = ConnectionState.CONNECTED
        logger.debug("FakeDevice connected")

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self._state = ConnectionState.DISCONNECTED
        logger.debug("FakeDevice disconnected")

    async def read_characteristic(self, uuid: str, timeout_s: float) -> bytes:
        if self._state != ConnectionState.CONNECTED:
            raise TransportFailure("FakeDevice is not connected")

        self.read_calls += 1
        self._reads_in_flight += 1
        self.max_reads_in_flight = max(self.max_reads_in_flight, self._reads_in_flight)
        try:
            item = self._script.popleft() if self._script else self.default_frame
            if self.read_delay_s:
                try:
                    await asyncio.wait_for(asyncio.sleep(self.read_delay_s), timeout=timeout_s)
                except asyncio.TimeoutError as e:
                    raise TransportFailure(f"Timeout reading characteristic {uuid}") from e
            if isinstance(item, Exception):
                raise item
            return item
        finally:
            self._reads_in_flight -= 1
