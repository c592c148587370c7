"""
Session record codec.

A session record is a flat mapping of field name to scalar value. The store
treats the encoded form as an opaque blob: the only thing it asks of a
decode is whether it produced a non-empty mapping.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

SessionRecord = dict[str, Any]


@dataclass(frozen=True)
class DecodeResult:
    """
    Outcome of decoding a stored blob.

    Attributes:
        ok: True when the blob decoded to a non-empty mapping.
        record: The decoded record, empty when ``ok`` is False.
        error: Short description of why decoding failed.
    """
    ok: bool
    record: SessionRecord = field(default_factory=dict)
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str) -> "DecodeResult":
        return cls(ok=False, error=error)


class SessionCodec(ABC):
    """
    Abstract base class for session record codecs.

    Implementations must round-trip a string-keyed mapping of scalar values.
    ``decode`` must never raise: malformed input is reported through
    ``DecodeResult``.
    """

    @abstractmethod
    def encode(self, record: SessionRecord) -> bytes:
        """
        Encode a session record into a blob.

        Raises:
            TypeError: If a field value cannot be represented.
        """
        pass

    @abstractmethod
    def decode(self, blob: Union[bytes, str, None]) -> DecodeResult:
        """Decode a blob read from the backend."""
        pass


class JSONSessionCodec(SessionCodec):
    """JSON codec storing records as UTF-8 objects with sorted keys."""

    def encode(self, record: SessionRecord) -> bytes:
        return json.dumps(record, sort_keys=True).encode("utf-8")

    def decode(self, blob: Union[bytes, str, None]) -> DecodeResult:
        if not blob:
            return DecodeResult.failure("empty payload")

        try:
            data = json.loads(blob)
        except (ValueError, TypeError, RecursionError) as e:
            # json.JSONDecodeError and UnicodeDecodeError are both ValueErrors;
            # deeply nested payloads exhaust the decoder stack
            logger.debug("Session payload is not valid JSON", extra={
                "extra_data": {"error": str(e)}
            })
            return DecodeResult.failure(f"malformed payload: {e}")

        if not isinstance(data, dict):
            return DecodeResult.failure(f"payload is a {type(data).__name__}, not a mapping")
        if not data:
            return DecodeResult.failure("payload is an empty mapping")

        return DecodeResult(ok=True, record=data)
