"""BLE transport layer and device discovery for the Wave Plus."""

import asyncio
import logging
from typing import Optional, Protocol, Union

from bleak import BleakClient, BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError

from wave_lib import protocol
from wave_lib.errors import DiscoveryFailure, TransportFailure
from wave_lib.models import ConnectionState

logger = logging.getLogger(__name__)


class DeviceAdapter(Protocol):
    """Protocol for a single sensor device connection (allows test doubles)."""

    @property
    def device_id(self) -> str:
        """Identifier of the device this adapter talks to."""
        ...

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        ...

    async def connect(self) -> None:
        """Connect to the device. No-op when already connected."""
        ...

    async def disconnect(self) -> None:
        """Disconnect from the device. No-op when already disconnected."""
        ...

    async def read_characteristic(self, uuid: str, timeout_s: float) -> bytes:
        """Read one GATT characteristic value, bounded by timeout_s."""
        ...


class BleakDeviceAdapter:
    """DeviceAdapter backed by a bleak BleakClient.

    All bleak, OS and timeout errors are wrapped in TransportFailure.
    """

    def __init__(
        self,
        device: Union[BLEDevice, str],
        connect_timeout_s: float = protocol.CONNECT_TIMEOUT,
    ) -> None:
        """Initialize adapter.

        Args:
            device: BLEDevice from a scan, or a device address
            connect_timeout_s: Bound on a single connect attempt
        """
        self._device_id = device if isinstance(device, str) else device.address
        self._connect_timeout_s = connect_timeout_s
        self._client = BleakClient(device, timeout=connect_timeout_s)

    @property
    def device_id(self) -> str:
        return self._device_id

    @property
    def state(self) -> ConnectionState:
        if self._client.is_connected:
            return ConnectionState.CONNECTED
        return ConnectionState.DISCONNECTED

    async def connect(self) -> None:
        if self._client.is_connected:
            return
        try:
            await asyncio.wait_for(self._client.connect(), timeout=self._connect_timeout_s)
            logger.debug(f"Connected to {self._device_id}")
        except asyncio.TimeoutError as e:
            raise TransportFailure(
                f"Timed out connecting to {self._device_id} after {self._connect_timeout_s}s"
            ) from e
        except (BleakError, OSError) as e:
            raise TransportFailure(f"Failed to connect to {self._device_id}: {e}") from e

    async def disconnect(self) -> None:
        if not self._client.is_connected:
            return
        try:
            await self._client.disconnect()
            logger.debug(f"Disconnected from {self._device_id}")
        except (BleakError, OSError) as e:
            raise TransportFailure(f"Failed to disconnect from {self._device_id}: {e}") from e

    async def read_characteristic(self, uuid: str, timeout_s: float) -> bytes:
        try:
            data = await asyncio.wait_for(self._client.read_gatt_char(uuid), timeout=timeout_s)
        except asyncio.TimeoutError as e:
            raise TransportFailure(f"Timeout reading characteristic {uuid}") from e
        except (BleakError, OSError) as e:
            raise TransportFailure(f"Failed to read characteristic {uuid}: {e}") from e
        logger.debug(f"Read {len(data)} bytes from {uuid}: {bytes(data).hex()}")
        return bytes(data)


# ============================================================================
# Discovery
# ============================================================================

def signal_strength(rssi: Optional[int]) -> Optional[int]:
    """Approximate signal strength percentage from RSSI in dBm."""
    if rssi is None:
        return None
    return max(0, min(100, 2 * (rssi + 100)))


def matches_manufacturer(adv: AdvertisementData, manufacturer_id: int) -> bool:
    """Check whether an advertisement carries manufacturer data for manufacturer_id."""
    return manufacturer_id in (adv.manufacturer_data or {})


def matches_device_id(device: BLEDevice, device_id: str) -> bool:
    """Check whether a device address starts with a (partial) device identifier."""
    return device.address.lower().startswith(device_id.lower())


async def _scan(timeout_s: float) -> dict[str, tuple[BLEDevice, AdvertisementData]]:
    try:
        found = await BleakScanner.discover(timeout=timeout_s, return_adv=True)
    except (BleakError, OSError) as e:
        raise DiscoveryFailure(f"BLE scan failed: {e}") from e

    for device, adv in found.values():
        strength = signal_strength(adv.rssi)
        logger.info(
            f"Found device, ID: {device.address}, name: {device.name or '??'}, "
            f"signal: {strength if strength is not None else '??'}%"
        )
    return found


async def find_device_by_manufacturer_id(
    manufacturer_id: int = protocol.MANUFACTURER_ID,
    timeout_s: float = protocol.SCAN_TIMEOUT,
) -> BLEDevice:
    """Scan for the first device advertising manufacturer_id.

    Raises:
        DiscoveryFailure: If no matching device is seen within timeout_s
    """
    logger.info(f"Scanning {timeout_s}s for manufacturer ID {manufacturer_id}...")
    for device, adv in (await _scan(timeout_s)).values():
        if matches_manufacturer(adv, manufacturer_id):
            return device
    raise DiscoveryFailure(f"No device with manufacturer ID {manufacturer_id} found")


async def find_device_by_id(
    device_id: str,
    timeout_s: float = protocol.SCAN_TIMEOUT,
) -> BLEDevice:
    """Scan for the first device whose address starts with device_id.

    Raises:
        DiscoveryFailure: If no matching device is seen within timeout_s
    """
    logger.info(f"Scanning {timeout_s}s for device ID {device_id}...")
    for device, _adv in (await _scan(timeout_s)).values():
        if matches_device_id(device, device_id):
            return device
    raise DiscoveryFailure(f"No device with ID starting with {device_id!r} found")


async def discover(
    device_id: Optional[str] = None,
    manufacturer_id: int = protocol.MANUFACTURER_ID,
    scan_timeout_s: float = protocol.SCAN_TIMEOUT,
    connect_timeout_s: float = protocol.CONNECT_TIMEOUT,
) -> BleakDeviceAdapter:
    """Resolve the sensor and wrap it in an adapter.

    Uses device_id when given, otherwise falls back to a manufacturer scan.

    Raises:
        DiscoveryFailure: If no matching device is found
    """
    if device_id:
        device = await find_device_by_id(device_id, scan_timeout_s)
    else:
        logger.warning("No device ID configured. Scanning by manufacturer ID...")
        device = await find_device_by_manufacturer_id(manufacturer_id, scan_timeout_s)
        logger.warning(
            f"Found device with ID {device.address}, set this as DEVICE_ID on next start"
        )
    return BleakDeviceAdapter(device, connect_timeout_s=connect_timeout_s)
