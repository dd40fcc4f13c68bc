"""Tests for the bleak-backed adapter and device discovery (no radio)."""

import asyncio
from types import SimpleNamespace

import pytest
from bleak.exc import BleakError

from wave_lib import protocol, transport
from wave_lib.errors import DiscoveryFailure, TransportFailure
from wave_lib.models import ConnectionState


class FakeBleakClient:
    """Stand-in for bleak.BleakClient."""

    instances: list = []

    def __init__(self, device, timeout: float = 10.0) -> None:
        self.device = device
        self.timeout = timeout
        self.is_connected = False
        self.connect_error = None
        self.read_delay_s = 0.0
        self.read_result = bytearray(b"\x01" * protocol.FRAME_SIZE)
        self.connects = 0
        self.disconnects = 0
        FakeBleakClient.instances.append(self)

    async def connect(self) -> None:
        self.connects += 1
        if self.connect_error is not None:
            raise self.connect_error
        self.is_connected = True

    async def disconnect(self) -> None:
        self.disconnects += 1
        self.is_connected = False

    async def read_gatt_char(self, uuid: str) -> bytearray:
        if self.read_delay_s:
            await asyncio.sleep(self.read_delay_s)
        return self.read_result


def make_scan_result(*entries):
    """Build a BleakScanner.discover(return_adv=True) result."""
    result = {}
    for address, manufacturer_data, rssi in entries:
        device = SimpleNamespace(address=address, name="Airthings Wave+")
        adv = SimpleNamespace(manufacturer_data=manufacturer_data, rssi=rssi)
        result[address] = (device, adv)
    return result


@pytest.fixture
def fake_client(monkeypatch):
    FakeBleakClient.instances = []
    monkeypatch.setattr(transport, "BleakClient", FakeBleakClient)
    return FakeBleakClient


@pytest.fixture
def fake_scan(monkeypatch):
    """Patch BleakScanner.discover to return a configurable result."""
    state = {"result": {}, "error": None, "calls": []}

    class FakeScanner:
        @staticmethod
        async def discover(timeout: float, return_adv: bool):
            state["calls"].append((timeout, return_adv))
            if state["error"] is not None:
                raise state["error"]
            return state["result"]

    monkeypatch.setattr(transport, "BleakScanner", FakeScanner)
    return state


# =============================================================================
# BleakDeviceAdapter
# =============================================================================

def test_adapter_connect_read_disconnect(fake_client) -> None:
    adapter = transport.BleakDeviceAdapter("AA:BB:CC:DD:EE:FF", connect_timeout_s=3.0)
    client = fake_client.instances[0]
    assert client.timeout == 3.0
    assert adapter.device_id == "AA:BB:CC:DD:EE:FF"
    assert adapter.state == ConnectionState.DISCONNECTED

    async def scenario():
        await adapter.connect()
        await adapter.connect()  # idempotent
        data = await adapter.read_characteristic(protocol.SENSOR_CHARACTERISTIC_UUID, 1.0)
        await adapter.disconnect()
        await adapter.disconnect()  # idempotent
        return data

    data = asyncio.run(scenario())

    assert isinstance(data, bytes)
    assert len(data) == protocol.FRAME_SIZE
    assert client.connects == 1
    assert client.disconnects == 1
    assert adapter.state == ConnectionState.DISCONNECTED


def test_adapter_wraps_connect_error(fake_client) -> None:
    adapter = transport.BleakDeviceAdapter("AA:BB:CC:DD:EE:FF")
    fake_client.instances[0].connect_error = BleakError("Device not found")

    with pytest.raises(TransportFailure, match="Failed to connect"):
        asyncio.run(adapter.connect())


def test_adapter_read_timeout(fake_client) -> None:
    adapter = transport.BleakDeviceAdapter("AA:BB:CC:DD:EE:FF")
    fake_client.instances[0].read_delay_s = 1.0

    async def scenario():
        await adapter.connect()
        await adapter.read_characteristic(protocol.SENSOR_CHARACTERISTIC_UUID, 0.05)

    with pytest.raises(TransportFailure, match="Timeout"):
        asyncio.run(scenario())


def test_adapter_uses_device_address(fake_client) -> None:
    device = SimpleNamespace(address="11:22:33:44:55:66", name="Wave")
    adapter = transport.BleakDeviceAdapter(device)
    assert adapter.device_id == "11:22:33:44:55:66"
    assert fake_client.instances[0].device is device


# =============================================================================
# Discovery
# =============================================================================

def test_signal_strength() -> None:
    assert transport.signal_strength(-100) == 0
    assert transport.signal_strength(-70) == 60
    assert transport.signal_strength(-40) == 100
    assert transport.signal_strength(None) is None


def test_find_by_manufacturer_id(fake_scan) -> None:
    fake_scan["result"] = make_scan_result(
        ("00:00:00:00:00:01", {76: b"\x02\x15"}, -80),
        ("00:00:00:00:00:02", {protocol.MANUFACTURER_ID: b"\x01\x02\x03"}, -60),
    )

    device = asyncio.run(transport.find_device_by_manufacturer_id(timeout_s=5.0))

    assert device.address == "00:00:00:00:00:02"
    assert fake_scan["calls"] == [(5.0, True)]


def test_find_by_partial_id_case_insensitive(fake_scan) -> None:
    fake_scan["result"] = make_scan_result(
        ("A4:DA:32:00:11:22", {}, -55),
        ("C8:0F:10:00:00:01", {}, -70),
    )

    device = asyncio.run(transport.find_device_by_id("c8:0f"))

    assert device.address == "C8:0F:10:00:00:01"


def test_no_match_raises_discovery_failure(fake_scan) -> None:
    fake_scan["result"] = make_scan_result(("00:00:00:00:00:01", {76: b""}, -80))

    with pytest.raises(DiscoveryFailure):
        asyncio.run(transport.find_device_by_manufacturer_id())

    with pytest.raises(DiscoveryFailure):
        asyncio.run(transport.find_device_by_id("FF:FF"))


def test_scan_error_raises_discovery_failure(fake_scan) -> None:
    fake_scan["error"] = BleakError("Bluetooth adapter not found")

    with pytest.raises(DiscoveryFailure, match="scan failed"):
        asyncio.run(transport.find_device_by_id("AA"))


def test_discover_prefers_configured_id(fake_scan, fake_client) -> None:
    fake_scan["result"] = make_scan_result(
        ("00:00:00:00:00:02", {protocol.MANUFACTURER_ID: b""}, -60),
        ("C8:0F:10:00:00:01", {}, -70),
    )

    adapter = asyncio.run(transport.discover(device_id="C8:0F"))

    assert adapter.device_id == "C8:0F:10:00:00:01"


def test_discover_falls_back_to_manufacturer_scan(fake_scan, fake_client, caplog) -> None:
    fake_scan["result"] = make_scan_result(
        ("00:00:00:00:00:02", {protocol.MANUFACTURER_ID: b""}, -60),
    )

    with caplog.at_level("WARNING", logger="wave_lib.transport"):
        adapter = asyncio.run(transport.discover(connect_timeout_s=4.0))

    assert adapter.device_id == "00:00:00:00:00:02"
    assert fake_client.instances[0].timeout == 4.0
    assert any("DEVICE_ID" in record.getMessage() for record in caplog.records)
