"""Tests for sensor frame decoding and classification."""

import pytest

from fakes.fake_device import BOGUS_FRAME, build_frame
from wave_lib import protocol
from wave_lib.models import FrameStatus
from wave_lib.parsing import decode_frame


def test_decode_applies_unit_conversions() -> None:
    """Test raw fields are scaled into engineering units."""
    raw = protocol.FRAME_STRUCT.pack(1, 90, 0, 0, 10, 12, 2137, 50000, 612, 512, 0, 0)

    result = decode_frame(raw)

    assert result.status == FrameStatus.USABLE
    reading = result.reading
    assert reading.humidity == 45.0
    assert reading.radon_st_avg == 10
    assert reading.radon_lt_avg == 12
    assert reading.temperature == 21.37
    assert reading.pressure == 1000.0
    assert reading.co2 == 612
    assert reading.voc == 512


def test_bogus_frame_rejected() -> None:
    """Test the corrupted-frame signature is classified bogus with no reading."""
    result = decode_frame(BOGUS_FRAME)

    assert result.status == FrameStatus.BOGUS
    assert not result.usable
    assert result.reading is None
    assert "corrupted" in result.reason


def test_co2_sentinel_masked() -> None:
    """Test a CO2 sentinel masks only CO2."""
    raw = build_frame(humidity=45.0, temperature=21.37, co2=protocol.SENTINEL, voc=512,
                      radon_st_avg=10, radon_lt_avg=12)

    result = decode_frame(raw)

    assert result.usable
    assert result.reading.co2 is None
    assert result.reading.voc == 512
    assert result.reading.humidity == 45.0
    assert result.reading.temperature == 21.37
    assert result.reading.radon_st_avg == 10
    assert result.reading.radon_lt_avg == 12


def test_voc_sentinel_masked() -> None:
    """Test a VOC sentinel masks only VOC."""
    result = decode_frame(build_frame(co2=800, voc=protocol.SENTINEL))

    assert result.usable
    assert result.reading.co2 == 800
    assert result.reading.voc is None


def test_both_sentinels_with_sane_climate_is_usable() -> None:
    """Test missing CO2 and VOC alone do not make the frame bogus."""
    result = decode_frame(build_frame(co2=protocol.SENTINEL, voc=protocol.SENTINEL))

    assert result.usable
    assert result.reading.co2 is None
    assert result.reading.voc is None


@pytest.mark.parametrize(
    "overrides",
    [
        {"humidity": 50.0},  # humidity in range
        {"temperature": 20.0},  # temperature in range
        {"co2": 400},  # co2 measured
        {"voc": 100},  # voc measured
    ],
)
def test_partial_signature_is_not_bogus(overrides) -> None:
    """Test every condition of the signature is required for rejection."""
    fields = {
        "humidity": 127.5,
        "temperature": 382.2,
        "co2": protocol.SENTINEL,
        "voc": protocol.SENTINEL,
    }
    fields.update(overrides)

    result = decode_frame(build_frame(**fields))

    assert result.usable


def test_wrong_length_is_bogus() -> None:
    """Test truncated buffers are classified bogus rather than raising."""
    result = decode_frame(build_frame()[:12])

    assert result.status == FrameStatus.BOGUS
    assert "20 bytes" in result.reason


def test_decode_is_pure() -> None:
    """Test decoding the same frame twice yields equal results."""
    raw = build_frame()
    assert decode_frame(raw) == decode_frame(raw)


def test_decode_accepts_bytearray() -> None:
    """Test bytearray buffers (as returned by some BLE backends) decode."""
    result = decode_frame(bytearray(build_frame(co2=700)))
    assert result.reading.co2 == 700
