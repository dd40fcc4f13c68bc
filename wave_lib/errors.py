"""Custom exceptions for the Wave Plus sensor library."""


class WaveError(Exception):
    """Base exception for all Wave Plus library errors."""

    pass


class DiscoveryFailure(WaveError):
    """Raised when no matching device is found during a BLE scan."""

    pass


class TransportFailure(WaveError):
    """Raised when a BLE connect, read or disconnect fails or times out."""

    pass


class LockTimeout(WaveError):
    """Raised when the read lock is not acquired within the configured timeout."""

    pass


class ReadFailed(WaveError):
    """Raised when every read attempt is exhausted and no cached reading exists."""

    pass
