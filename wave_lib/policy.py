"""Cache TTL, lock and retry policy consumed by the read coordinator."""

from dataclasses import dataclass

from wave_lib import protocol


@dataclass(frozen=True)
class ReadPolicy:
    """Timing and retry bounds for a read coordinator.

    Attributes:
        cache_ttl_s: How long a successful reading is served without a new device transaction.
        lock_timeout_s: How long a caller waits for the read lock before forcing a break.
        read_timeout_s: Bound on one characteristic read. Must be shorter than lock_timeout_s.
        connect_timeout_s: Bound on one device connect.
        retry_delay_s: Backoff between failed attempts.
        max_attempts: Attempts per invocation before giving up.
    """

    cache_ttl_s: float = protocol.CACHE_TTL
    lock_timeout_s: float = protocol.LOCK_TIMEOUT
    read_timeout_s: float = protocol.READ_TIMEOUT
    connect_timeout_s: float = protocol.CONNECT_TIMEOUT
    retry_delay_s: float = protocol.RETRY_DELAY
    max_attempts: int = protocol.MAX_READ_ATTEMPTS

    def __post_init__(self) -> None:
        """Validate policy values."""
        if self.cache_ttl_s <= 0:
            raise ValueError(f"cache_ttl_s must be positive, got {self.cache_ttl_s}")
        if self.lock_timeout_s <= 0:
            raise ValueError(f"lock_timeout_s must be positive, got {self.lock_timeout_s}")
        if self.read_timeout_s <= 0:
            raise ValueError(f"read_timeout_s must be positive, got {self.read_timeout_s}")
        if self.read_timeout_s >= self.lock_timeout_s:
            raise ValueError(
                f"read_timeout_s ({self.read_timeout_s}) must be shorter than "
                f"lock_timeout_s ({self.lock_timeout_s})"
            )
        if self.connect_timeout_s <= 0:
            raise ValueError(
                f"connect_timeout_s must be positive, got {self.connect_timeout_s}"
            )
        if self.retry_delay_s < 0:
            raise ValueError(f"retry_delay_s must be >= 0, got {self.retry_delay_s}")
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
