"""
Security Event Logger

Records security-relevant events (logins, 2FA results, lockouts, decryption
failures) for the audit trail.

Features:
- Privacy-preserving user hashes (SHA-256), identities never logged raw
- Events emitted on the "crmguard.audit" logger as structured records
- Bounded in-memory history for recent-activity views
- Sinks: callables that persist events elsewhere (e.g. the caller's database)
"""

import hashlib
import json
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


audit_log = logging.getLogger("crmguard.audit")
log = logging.getLogger(__name__)


# ============================================================================
# Constants
# ============================================================================

EVENT_VERSION = "1.0"
DEFAULT_HISTORY_SIZE = 1000


# ============================================================================
# Privacy Functions
# ============================================================================

def get_user_hash(identifier: str) -> str:
    """
    Compute a privacy-preserving hash of a user identifier.

    Lets events for the same user be correlated without storing the email
    or user id itself.

    Args:
        identifier: Email, user id or IP address

    Returns:
        Hex-encoded SHA-256 hash
    """
    return hashlib.sha256(identifier.encode('utf-8')).hexdigest()


# ============================================================================
# Event Types
# ============================================================================

class SecurityEventType(Enum):
    """Types of security events that can be logged."""

    # Authentication
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"
    LOGOUT = "logout"
    SESSION_EXPIRED = "session_expired"

    # Passwords
    PASSWORD_CHANGED = "password_changed"
    PASSWORD_RESET_REQUESTED = "password_reset_requested"
    PASSWORD_RESET_COMPLETED = "password_reset_completed"

    # Two-factor
    TWO_FACTOR_ENABLED = "2fa_enabled"
    TWO_FACTOR_DISABLED = "2fa_disabled"
    TWO_FACTOR_VERIFIED = "2fa_verified"
    TWO_FACTOR_FAILED = "2fa_failed"

    # Lockout
    ACCOUNT_LOCKED = "account_locked"
    ACCOUNT_UNLOCKED = "account_unlocked"

    # Credentials and data
    API_KEY_CREATED = "api_key_created"
    API_KEY_DELETED = "api_key_deleted"
    DECRYPTION_FAILED = "decryption_failed"
    DATA_EXPORT = "data_export"

    # Account changes
    EMAIL_CHANGED = "email_changed"
    ROLE_CHANGED = "role_changed"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"


# ============================================================================
# Event Structure
# ============================================================================

@dataclass
class SecurityEvent:
    """
    A security event.

    All user-identifying information is hashed before it gets here.
    """
    event_type: SecurityEventType
    user_hash: str
    timestamp: int  # Unix timestamp
    description: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        """Serialize to compact JSON."""
        return json.dumps({
            'version': EVENT_VERSION,
            'type': self.event_type.value,
            'user': self.user_hash,
            'time': self.timestamp,
            'iso_time': datetime.fromtimestamp(self.timestamp, timezone.utc).isoformat(),
            'description': self.description,
            'details': self.details,
        }, separators=(',', ':'))

    @classmethod
    def from_json(cls, data: str) -> 'SecurityEvent':
        """Parse an event produced by to_json()."""
        parsed = json.loads(data)
        return cls(
            event_type=SecurityEventType(parsed['type']),
            user_hash=parsed['user'],
            timestamp=parsed['time'],
            description=parsed.get('description'),
            details=parsed.get('details', {}),
        )

    def __str__(self) -> str:
        dt = datetime.fromtimestamp(self.timestamp, timezone.utc)
        return (
            f"[{dt.strftime('%Y-%m-%d %H:%M:%S')}] "
            f"{self.event_type.value} | "
            f"user:{self.user_hash[:8]}..."
        )


EventSink = Callable[[SecurityEvent], None]


# ============================================================================
# Event Logger
# ============================================================================

class EventLogger:
    """
    Audit logger for security events.

    Thread-safe; one instance is shared by the whole process.
    """

    def __init__(self, history_size: int = DEFAULT_HISTORY_SIZE):
        """
        Args:
            history_size: Number of recent events kept in memory
        """
        self._history: deque = deque(maxlen=history_size)
        self._sinks: List[EventSink] = []
        self._lock = threading.Lock()

    def add_sink(self, sink: EventSink) -> None:
        """Add a callable notified of every new event."""
        with self._lock:
            self._sinks.append(sink)

    def remove_sink(self, sink: EventSink) -> None:
        with self._lock:
            if sink in self._sinks:
                self._sinks.remove(sink)

    def log_event(
        self,
        event_type: SecurityEventType,
        user: Optional[str] = None,
        ip_address: Optional[str] = None,
        description: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SecurityEvent:
        """
        Record a security event.

        Args:
            event_type: What happened
            user: User identifier (will be hashed); None for system events
            ip_address: Client IP (will be hashed)
            description: Human-readable note, must not contain secrets
            metadata: Extra JSON-serializable details

        Returns:
            The recorded event
        """
        details = dict(metadata or {})
        if ip_address:
            details['ip_hash'] = get_user_hash(ip_address)[:16]

        event = SecurityEvent(
            event_type=event_type,
            user_hash=get_user_hash(user) if user else "system",
            timestamp=int(time.time()),
            description=description,
            details=details,
        )

        with self._lock:
            self._history.append(event)
            sinks = list(self._sinks)

        audit_log.info(
            event.to_json(),
            extra={'event_type': event_type.value, 'user_hash': event.user_hash},
        )

        # A broken sink must not break the login flow that logged the event
        for sink in sinks:
            try:
                sink(event)
            except Exception:
                log.exception("Security event sink failed for %s", event_type.value)

        return event

    # ========================================================================
    # Convenience
    # ========================================================================

    def log_login(self, user: str, success: bool,
                  ip_address: Optional[str] = None) -> SecurityEvent:
        """Log a password login attempt."""
        return self.log_event(
            SecurityEventType.LOGIN_SUCCESS if success else SecurityEventType.LOGIN_FAILED,
            user=user,
            ip_address=ip_address,
        )

    def log_two_factor(self, user: str, success: bool,
                       method: str = "totp") -> SecurityEvent:
        """Log a TOTP or backup code verification."""
        return self.log_event(
            SecurityEventType.TWO_FACTOR_VERIFIED if success
            else SecurityEventType.TWO_FACTOR_FAILED,
            user=user,
            metadata={'method': method},
        )

    def log_account_locked(self, user: str, reset_at: int,
                           ip_address: Optional[str] = None) -> SecurityEvent:
        """Log a rate limit lockout; reset_at is epoch millis."""
        return self.log_event(
            SecurityEventType.ACCOUNT_LOCKED,
            user=user,
            ip_address=ip_address,
            metadata={'reset_at': reset_at},
        )

    def log_decryption_failure(self, context: str) -> SecurityEvent:
        """Log a failed decryption (corrupted storage or tampering)."""
        return self.log_event(
            SecurityEventType.DECRYPTION_FAILED,
            description=f"Decryption failed for {context}",
        )

    # ========================================================================
    # Retrieval
    # ========================================================================

    def get_recent_events(self, count: int = 10) -> List[SecurityEvent]:
        """Get the most recent events, oldest first."""
        with self._lock:
            events = list(self._history)
        return events[-count:] if count > 0 else []

    def get_events_by_type(self, event_type: SecurityEventType) -> List[SecurityEvent]:
        with self._lock:
            return [e for e in self._history if e.event_type == event_type]

    def get_user_events(self, user: str) -> List[SecurityEvent]:
        """All kept events for one user."""
        user_hash = get_user_hash(user)
        with self._lock:
            return [e for e in self._history if e.user_hash == user_hash]

    def __len__(self) -> int:
        with self._lock:
            return len(self._history)
