#!/usr/bin/env python3
"""
Pi Runbook: Read Coordinator Smoke Test
Expected: one fresh reading, then cache hits, then one fresh reading after the TTL
"""

import asyncio
import logging
import time

from wave_lib import ReadCoordinator, ReadPolicy
from wave_lib.errors import DiscoveryFailure, ReadFailed
from wave_lib.transport import discover

# ============================================================================
# CONFIGURATION - EDIT THIS
# ============================================================================
DEVICE_ID = None  # Partial device ID, or None to scan by manufacturer ID
CACHE_TTL_S = 10.0
CONCURRENT_CALLERS = 3

# ============================================================================
# TEST SCRIPT - DO NOT EDIT BELOW
# ============================================================================

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


async def main() -> int:
    print("=" * 70)
    print("Pi Runbook: Read Coordinator Smoke Test")
    print("=" * 70)
    print(f"Device ID: {DEVICE_ID or '(scan)'}")
    print(f"Cache TTL: {CACHE_TTL_S}s")
    print(f"Concurrent callers: {CONCURRENT_CALLERS}")
    print()

    print("[1/3] Discovering device...")
    try:
        adapter = await discover(device_id=DEVICE_ID)
    except DiscoveryFailure as e:
        print(f"      FAILED: {e}")
        return 1
    print(f"      Found {adapter.device_id}")
    print()

    coordinator = ReadCoordinator(adapter, ReadPolicy(cache_ttl_s=CACHE_TTL_S))

    print(f"[2/3] {CONCURRENT_CALLERS} concurrent reads against a cold cache...")
    start = time.monotonic()
    try:
        results = await asyncio.gather(
            *(coordinator.get_reading() for _ in range(CONCURRENT_CALLERS))
        )
    except ReadFailed as e:
        print(f"      FAILED: {e}")
        return 1
    elapsed = time.monotonic() - start
    fresh = sum(1 for _, cached in results if not cached)
    print(f"      {fresh} fresh, {len(results) - fresh} cached in {elapsed:.1f}s")
    print(f"      Reading: {results[0][0]}")
    print()

    print(f"[3/3] Waiting {CACHE_TTL_S}s for the cache to expire...")
    await asyncio.sleep(CACHE_TTL_S)
    reading, cached = await coordinator.get_reading()
    print(f"      cached={cached} reading={reading}")
    print()

    ok = fresh == 1 and not cached
    print("=" * 70)
    print("PASS" if ok else "FAIL")
    print("=" * 70)
    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
