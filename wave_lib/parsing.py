"""Pure functions for decoding sensor data frames."""

import logging
import struct

from wave_lib import protocol
from wave_lib.models import ClassifiedFrame, FrameStatus, SensorReading

logger = logging.getLogger(__name__)


def decode_frame(raw: bytes) -> ClassifiedFrame:
    """Decode a raw sensor characteristic value and classify it.

    A frame is bogus when humidity and temperature are both out of range and
    CO2 and VOC both carry the sentinel value. That combination is the
    device's corrupted-frame signature. Otherwise the frame is usable, and a
    sentinel in CO2 or VOC alone masks just that channel to None.

    Args:
        raw: Bytes read from the sensor data characteristic

    Returns:
        ClassifiedFrame with status USABLE and a SensorReading, or status
        BOGUS and a reason. Buffers of the wrong size are classified bogus.
    """
    if len(raw) != protocol.FRAME_SIZE:
        return ClassifiedFrame(
            status=FrameStatus.BOGUS,
            reason=f"expected {protocol.FRAME_SIZE} bytes, got {len(raw)}",
        )

    try:
        fields = protocol.FRAME_STRUCT.unpack(bytes(raw))
    except struct.error as e:
        return ClassifiedFrame(status=FrameStatus.BOGUS, reason=f"unpack failed: {e}")

    # fields[0] is the protocol version, fields[2:4] are reserved
    humidity = fields[1] / protocol.HUMIDITY_DIVISOR
    radon_st_avg = fields[4]
    radon_lt_avg = fields[5]
    temperature = fields[6] / protocol.TEMPERATURE_DIVISOR
    pressure = fields[7] / protocol.PRESSURE_DIVISOR
    co2 = fields[8]
    voc = fields[9]

    if (
        humidity > protocol.HUMIDITY_MAX
        and temperature > protocol.TEMPERATURE_MAX
        and co2 == protocol.SENTINEL
        and voc == protocol.SENTINEL
    ):
        return ClassifiedFrame(
            status=FrameStatus.BOGUS,
            reason=(
                f"corrupted frame signature: humidity={humidity}, "
                f"temperature={temperature}, co2={co2}, voc={voc}"
            ),
        )

    reading = SensorReading(
        humidity=humidity,
        radon_st_avg=radon_st_avg,
        radon_lt_avg=radon_lt_avg,
        temperature=temperature,
        pressure=pressure,
        co2=None if co2 == protocol.SENTINEL else co2,
        voc=None if voc == protocol.SENTINEL else voc,
    )
    return ClassifiedFrame(status=FrameStatus.USABLE, reading=reading)
