"""Scan for a Wave Plus and print the device ID to set as DEVICE_ID."""

import argparse
import asyncio
import logging
import sys

from wave_lib import protocol
from wave_lib.errors import DiscoveryFailure
from wave_lib.transport import find_device_by_manufacturer_id


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--manufacturer-id",
        type=int,
        default=protocol.MANUFACTURER_ID,
        help="Bluetooth company identifier to match (default: %(default)s)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=protocol.SCAN_TIMEOUT,
        help="Scan duration in seconds (default: %(default)s)",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(message)s")

    print(f"\n=== Scanning {args.timeout}s for manufacturer ID {args.manufacturer_id} ===")
    try:
        device = asyncio.run(find_device_by_manufacturer_id(args.manufacturer_id, args.timeout))
    except DiscoveryFailure as e:
        print(f"\n*** {e} ***")
        print("\nPossible reasons:")
        print("1. Device is out of range or its battery is flat")
        print("2. Bluetooth adapter is off or not accessible to this user")
        print("3. Another host is holding a connection to the device")
        return 1

    print(f"\nFound device: {device.address} ({device.name or 'unnamed'})")
    print(f"Set DEVICE_ID={device.address} on next start")
    return 0


if __name__ == "__main__":
    sys.exit(main())
