"""
Rate Limiter

Fixed-window attempt counting per identifier, used to throttle logins,
password-reset requests and API calls.

Security considerations:
- check() is atomic per call: read, decide and mutate happen under one lock,
  so concurrent callers can never both slip past the cap
- Identifiers are namespaced by policy prefix (login:, api:, password-reset:)
  so one store serves every policy without key collisions
- The store is process-local; a shared backend can replace it behind the
  same check()/reset() interface (RateLimitStore)
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol


log = logging.getLogger(__name__)


# Sweep configuration
CLEANUP_INTERVAL_SECONDS = 60

# Identifier prefixes, one per policy
LOGIN_PREFIX = "login:"
API_PREFIX = "api:"
PASSWORD_RESET_PREFIX = "password-reset:"

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class RateLimitEntry:
    """Attempts seen for one identifier in the current window."""
    count: int
    reset_at: int  # epoch millis

    def is_expired(self, now: int) -> bool:
        return self.reset_at < now


@dataclass(frozen=True)
class RateLimitResult:
    """Decision returned by check()."""
    allowed: bool
    remaining: int
    reset_at: int  # epoch millis


@dataclass(frozen=True)
class RateLimitPolicy:
    """A (max attempts, window) pair."""
    max_attempts: int
    window_ms: int


# Defaults mirror the configuration defaults in crmguard.config
LOGIN_POLICY = RateLimitPolicy(max_attempts=5, window_ms=15 * MINUTE_MS)
API_POLICY = RateLimitPolicy(max_attempts=100, window_ms=MINUTE_MS)
PASSWORD_RESET_POLICY = RateLimitPolicy(max_attempts=3, window_ms=HOUR_MS)


class RateLimitStore(Protocol):
    """What an attempt counter backend must provide."""

    def check(self, identifier: str, max_attempts: int,
              window_ms: int) -> RateLimitResult: ...

    def reset(self, identifier: str) -> None: ...


class RateLimiter:
    """
    In-process rate limiter with a background expiry sweep.

    Lifecycle: construct, start() the sweep, call check()/reset() from any
    thread, shutdown() on process exit. Also usable as a context manager.

    Example:
        >>> with RateLimiter() as limiter:
        ...     result = limiter.check("login:alice@example.com", 5, 900_000)
        ...     result.allowed
        True
    """

    def __init__(self, cleanup_interval: float = CLEANUP_INTERVAL_SECONDS,
                 clock: Callable[[], int] = now_ms):
        """
        Args:
            cleanup_interval: Seconds between expiry sweeps
            clock: Returns the current time in epoch millis
        """
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._cleanup_interval = cleanup_interval
        self._stop = threading.Event()
        self._sweeper: Optional[threading.Thread] = None

    def check(self, identifier: str, max_attempts: int,
              window_ms: int) -> RateLimitResult:
        """
        Count an attempt and decide whether it is allowed.

        Args:
            identifier: Namespaced key, e.g. "login:alice@example.com"
            max_attempts: Attempts allowed per window
            window_ms: Window length in milliseconds

        Returns:
            RateLimitResult with allowed, remaining and reset_at
        """
        with self._lock:
            now = self._clock()
            entry = self._entries.get(identifier)

            # No entry or expired window: start a new one
            if entry is None or entry.is_expired(now):
                entry = RateLimitEntry(count=1, reset_at=now + window_ms)
                self._entries[identifier] = entry
                return RateLimitResult(
                    allowed=True,
                    remaining=max_attempts - 1,
                    reset_at=entry.reset_at,
                )

            if entry.count >= max_attempts:
                denied = RateLimitResult(
                    allowed=False,
                    remaining=0,
                    reset_at=entry.reset_at,
                )
            else:
                entry.count += 1
                return RateLimitResult(
                    allowed=True,
                    remaining=max_attempts - entry.count,
                    reset_at=entry.reset_at,
                )

        # Log only the policy prefix, identifiers carry emails
        log.info("Rate limit exceeded (%s)", identifier.split(":", 1)[0])
        return denied

    def reset(self, identifier: str) -> None:
        """Forget all attempts for an identifier (after a successful login)."""
        with self._lock:
            self._entries.pop(identifier, None)

    def get_count(self, identifier: str) -> int:
        """Attempts counted in the live window, 0 if none."""
        with self._lock:
            entry = self._entries.get(identifier)
            if entry is None or entry.is_expired(self._clock()):
                return 0
            return entry.count

    def cleanup(self) -> int:
        """
        Remove expired entries.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            expired = [
                key for key, entry in self._entries.items()
                if entry.is_expired(now)
            ]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self._cleanup_interval):
            removed = self.cleanup()
            if removed:
                log.debug("Swept expired rate limit entries", extra={'removed': removed})

    def start(self) -> None:
        """Start the background sweep. Calling it twice is harmless."""
        if self.running:
            return
        self._stop.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop,
            name="rate-limit-sweep",
            daemon=True,
        )
        self._sweeper.start()
        log.debug("Rate limit sweep started (every %ss)", self._cleanup_interval)

    def shutdown(self, timeout: Optional[float] = 5.0) -> None:
        """Stop the sweep and drop every entry."""
        self._stop.set()
        sweeper, self._sweeper = self._sweeper, None
        if sweeper is not None:
            sweeper.join(timeout)
        with self._lock:
            self._entries.clear()
        log.debug("Rate limit sweep stopped")

    @property
    def running(self) -> bool:
        """Whether the background sweep is alive."""
        return self._sweeper is not None and self._sweeper.is_alive()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __enter__(self) -> 'RateLimiter':
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()


class AuthRateLimits:
    """
    Named policies applied to one limiter through identifier prefixes.

    Example:
        >>> limits = AuthRateLimits(RateLimiter())
        >>> limits.check_login("alice@example.com").remaining
        4
    """

    def __init__(self, limiter: RateLimitStore,
                 login: RateLimitPolicy = LOGIN_POLICY,
                 api: RateLimitPolicy = API_POLICY,
                 password_reset: RateLimitPolicy = PASSWORD_RESET_POLICY):
        self._limiter = limiter
        self.login = login
        self.api = api
        self.password_reset = password_reset

    @classmethod
    def from_settings(cls, limiter: RateLimitStore, settings) -> 'AuthRateLimits':
        """Build the policies from a crmguard.config.Settings instance."""
        return cls(
            limiter,
            login=RateLimitPolicy(
                settings.max_failed_login_attempts,
                settings.lockout_window_ms,
            ),
            api=RateLimitPolicy(settings.rate_limit_api, MINUTE_MS),
            password_reset=RateLimitPolicy(
                settings.password_reset_max_attempts,
                settings.password_reset_window_ms,
            ),
        )

    def _check(self, prefix: str, identifier: str,
               policy: RateLimitPolicy) -> RateLimitResult:
        return self._limiter.check(
            prefix + identifier, policy.max_attempts, policy.window_ms
        )

    def check_login(self, identifier: str) -> RateLimitResult:
        return self._check(LOGIN_PREFIX, identifier, self.login)

    def check_api(self, identifier: str) -> RateLimitResult:
        return self._check(API_PREFIX, identifier, self.api)

    def check_password_reset(self, identifier: str) -> RateLimitResult:
        return self._check(PASSWORD_RESET_PREFIX, identifier, self.password_reset)

    def reset_login(self, identifier: str) -> None:
        """Clear failed login attempts after a successful login."""
        self._limiter.reset(LOGIN_PREFIX + identifier)

    @property
    def limiter(self) -> RateLimitStore:
        return self._limiter
