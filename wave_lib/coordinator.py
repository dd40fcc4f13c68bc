"""Read coordinator: single-flight device reads behind a TTL cache."""

import asyncio
import logging
import time
from typing import Callable, Optional

from wave_lib import protocol
from wave_lib.errors import LockTimeout, ReadFailed, TransportFailure
from wave_lib.models import CacheEntry, ConnectionState, SensorReading
from wave_lib.parsing import decode_frame
from wave_lib.policy import ReadPolicy
from wave_lib.transport import DeviceAdapter

logger = logging.getLogger(__name__)


class ReadCoordinator:
    """Turns concurrent reading requests into at most one device transaction.

    Serves a cached reading while it is younger than the TTL. Otherwise one
    caller takes the read lock and runs connect, read, decode and disconnect,
    retrying transport failures and bogus frames up to the policy bound.
    Callers that queued behind it find the refreshed cache and return it.

    If the lock is not acquired within the lock timeout, the holder is assumed
    to be wedged and the lock is broken: a fresh lock replaces it and the
    caller proceeds. A lock is broken at most once, so at most two device
    transactions overlap after a break.
    """

    def __init__(
        self,
        adapter: DeviceAdapter,
        policy: Optional[ReadPolicy] = None,
        clock: Callable[[], float] = time.monotonic,
        characteristic_uuid: str = protocol.SENSOR_CHARACTERISTIC_UUID,
    ) -> None:
        """Initialize coordinator.

        Args:
            adapter: Device adapter for the single sensor
            policy: Timing and retry policy. Defaults to ReadPolicy().
            clock: Monotonic clock in seconds, used for cache age
            characteristic_uuid: GATT characteristic holding sensor frames
        """
        self._adapter = adapter
        self._policy = policy or ReadPolicy()
        self._clock = clock
        self._uuid = characteristic_uuid

        self._cache = CacheEntry()
        self._lock = asyncio.Lock()

        self.lock_breaks = 0

    @property
    def policy(self) -> ReadPolicy:
        return self._policy

    @property
    def device_id(self) -> str:
        return self._adapter.device_id

    def cached_reading(self) -> Optional[SensorReading]:
        """Last stored reading regardless of age, or None."""
        return self._cache.value

    def cache_age_s(self) -> Optional[float]:
        """Age of the cached reading in seconds, or None when empty."""
        return self._cache.age(self._clock())

    # ========================================================================
    # Public API
    # ========================================================================

    async def get_reading(self) -> tuple[SensorReading, bool]:
        """Return the current reading and whether it was served from cache.

        Returns:
            (reading, was_cached). was_cached is True for fresh cache hits and
            for stale readings returned after every attempt failed.

        Raises:
            ReadFailed: If every attempt failed and nothing is cached
        """
        cached = self._cache.fresh(self._clock(), self._policy.cache_ttl_s)
        if cached is not None:
            return cached, True

        lock = await self._acquire_lock()

        # The transaction runs in its own task so a cancelled caller does not
        # abort it halfway; the lock is released inside the task.
        refresh = asyncio.ensure_future(self._refresh(lock))
        try:
            return await asyncio.shield(refresh)
        except asyncio.CancelledError:
            refresh.add_done_callback(_log_abandoned_refresh)
            raise

    # ========================================================================
    # Locking
    # ========================================================================

    async def _acquire_lock(self) -> asyncio.Lock:
        """Acquire the read lock, breaking it after lock_timeout_s.

        A wedged lock is broken at most once. Callers that time out on a lock
        someone else already replaced wait on the replacement instead.

        Returns the lock object that was acquired; only that object may be
        released by the caller.
        """
        lock = self._lock
        while True:
            try:
                await self._wait_for_lock(lock)
                return lock
            except LockTimeout as e:
                if self._lock is lock:
                    self.lock_breaks += 1
                    logger.warning(f"{e}; assuming holder is wedged, forcing lock break")
                    break
                logger.debug(f"{e}; lock already broken, waiting on its replacement")
                lock = self._lock

        # Callers still queued on the old lock move to this one when they
        # time out. The wedged holder later releases only the old lock.
        lock = asyncio.Lock()
        self._lock = lock
        await lock.acquire()
        return lock

    async def _wait_for_lock(self, lock: asyncio.Lock) -> None:
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self._policy.lock_timeout_s)
        except asyncio.TimeoutError as e:
            raise LockTimeout(
                f"Read lock not acquired within {self._policy.lock_timeout_s}s"
            ) from e

    # ========================================================================
    # Device Transaction
    # ========================================================================

    async def _refresh(self, lock: asyncio.Lock) -> tuple[SensorReading, bool]:
        try:
            # Another caller may have refreshed the cache while we waited
            cached = self._cache.fresh(self._clock(), self._policy.cache_ttl_s)
            if cached is not None:
                logger.debug("Cache refreshed while waiting for lock")
                return cached, True

            captured_before = self._cache.captured_at
            reading = await self._read_with_retries()
            if reading is not None:
                # A transaction overlapping a forced break may finish after a
                # newer one; it must not replace that newer reading.
                if self._cache.captured_at == captured_before:
                    self._cache.store(reading, self._clock())
                else:
                    logger.warning("Cache updated by an overlapping read, keeping newer reading")
                return reading, False
        finally:
            lock.release()

        stale = self._cache.value
        if stale is not None:
            logger.warning(
                f"All {self._policy.max_attempts} read attempts failed, "
                f"serving stale reading ({self.cache_age_s():.0f}s old)"
            )
            return stale, True

        raise ReadFailed(
            f"All {self._policy.max_attempts} read attempts failed and no cached reading exists"
        )

    async def _read_with_retries(self) -> Optional[SensorReading]:
        """Run read attempts until one yields a usable frame.

        The device is disconnected on every path out of this method.

        Returns:
            The decoded reading, or None if attempts are exhausted
        """
        max_attempts = self._policy.max_attempts
        try:
            for attempt in range(1, max_attempts + 1):
                try:
                    raw = await self._read_frame()
                except TransportFailure as e:
                    logger.warning(f"Read attempt {attempt}/{max_attempts} failed: {e}")
                else:
                    classified = decode_frame(raw)
                    if classified.usable:
                        logger.debug(f"Read attempt {attempt}/{max_attempts}: {classified.reading}")
                        return classified.reading
                    logger.warning(
                        f"Read attempt {attempt}/{max_attempts} returned bogus frame: "
                        f"{classified.reason}"
                    )

                if attempt < max_attempts:
                    await asyncio.sleep(self._policy.retry_delay_s)
            return None
        finally:
            await self._disconnect()

    async def _read_frame(self) -> bytes:
        if self._adapter.state != ConnectionState.CONNECTED:
            await self._adapter.connect()
        return await self._adapter.read_characteristic(self._uuid, self._policy.read_timeout_s)

    async def _disconnect(self) -> None:
        try:
            await self._adapter.disconnect()
        except TransportFailure as e:
            logger.warning(f"Disconnect failed: {e}")


def _log_abandoned_refresh(task: "asyncio.Future") -> None:
    """Retrieve and log the outcome of a transaction whose caller was cancelled."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning(f"Read for a cancelled caller failed: {exc!r}")
