"""Reading: the outcome record of one ingest cycle.

A Reading is built once per cycle, after fetch+convert finished or failed,
and is written unchanged to the snapshot file and the history table.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class Reading:
    timestamp: str
    source_url: str
    is_available: bool
    payload: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None

    def __post_init__(self) -> None:
        # exactly one of payload / error_message, chosen by is_available
        if self.is_available:
            if self.payload is None or self.error_message is not None:
                raise ValueError("available reading needs a payload and no error")
        else:
            if self.error_message is None or self.payload is not None:
                raise ValueError("unavailable reading needs an error and no payload")

    @classmethod
    def success(cls, source_url: str, payload: Dict[str, Any]) -> "Reading":
        """payload must already be stamped; its timestamp becomes the reading's."""
        ts = payload.get("timestamp")
        if not isinstance(ts, str):
            raise ValueError("payload is not stamped")
        return cls(timestamp=ts, source_url=source_url, is_available=True, payload=payload)

    @classmethod
    def failure(cls, source_url: str, error_message: str, timestamp: Optional[str] = None) -> "Reading":
        return cls(
            timestamp=timestamp or utc_now_iso(),
            source_url=source_url,
            is_available=False,
            error_message=error_message or "unknown error",
        )

    def snapshot_document(self) -> Dict[str, Any]:
        if self.is_available:
            return dict(self.payload or {})
        return {
            "timestamp": self.timestamp,
            "is_available": False,
            "error": self.error_message,
        }
