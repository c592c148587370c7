"""
Authentication session management backed by Redis.

This module provides the session store contract, the Redis implementation
with its read cache and write-back buffer, and the validator deciding
whether a session id may be used for a request.
"""

from session.cache import SessionCache
from session.codec import DecodeResult, JSONSessionCodec, SessionCodec
from session.connector import RedisConnector
from session.identifiers import SessionIDGenerator
from session.redis_store import RedisSessionStore, SESSION_KEY_PREFIX
from session.store import ActiveSessionStats, SessionStore
from session.validator import InvalidReason, SessionValidation, SessionValidator

__all__ = [
    "ActiveSessionStats",
    "DecodeResult",
    "InvalidReason",
    "JSONSessionCodec",
    "RedisConnector",
    "RedisSessionStore",
    "SESSION_KEY_PREFIX",
    "SessionCache",
    "SessionCodec",
    "SessionIDGenerator",
    "SessionStore",
    "SessionValidation",
    "SessionValidator",
]
