# Integration Module
"""
Security audit events with privacy-preserving user hashes.
"""

from .event_logger import (
    EventLogger,
    SecurityEvent,
    SecurityEventType,
    get_user_hash,
)

__all__ = [
    'EventLogger',
    'SecurityEvent',
    'SecurityEventType',
    'get_user_hash',
]
