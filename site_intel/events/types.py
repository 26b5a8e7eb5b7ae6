# site_intel/events/types.py
"""
Event vocabulary shared by the bus, the stream codec and the orchestrator.

Event kinds form a closed enum; anything else seen on the wire is ignored
by the decoder rather than dispatched.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class Phase(str, Enum):
    """Pipeline stages in their only legal order."""

    DISCOVERY = "discovery"
    RAPID_SCRAPE = "rapid-scrape"
    VALIDATION = "validation"
    ENHANCEMENT = "enhancement"
    COMPLETE = "complete"

    @property
    def order(self) -> int:
        return PHASE_ORDER.index(self)


PHASE_ORDER = (
    Phase.DISCOVERY,
    Phase.RAPID_SCRAPE,
    Phase.VALIDATION,
    Phase.ENHANCEMENT,
    Phase.COMPLETE,
)


class PhaseStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETE = "complete"
    SKIPPED = "skipped"
    FAILED = "failed"

    @property
    def finished(self) -> bool:
        return self in (PhaseStatus.COMPLETE, PhaseStatus.SKIPPED, PhaseStatus.FAILED)


class EventKind(str, Enum):
    PROGRESS = "progress"
    DATA = "data"
    STATUS = "status"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self in (EventKind.COMPLETE, EventKind.ERROR)


class EventPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    FATAL = "fatal"


class NotificationType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """One notification travelling from a phase to the subscribers.

    ``source`` identifies the producer (a URL, a batch, a phase) and is part
    of the dedup key; it is not serialized on the wire.
    """

    type: EventKind
    phase: Phase
    correlation_id: str
    payload: Dict[str, Any] = field(default_factory=dict)
    priority: EventPriority = EventPriority.NORMAL
    timestamp: int = field(default_factory=now_ms)
    source: str = ""

    @property
    def source_id(self) -> str:
        return self.source or self.phase.value

    def dedup_key(self) -> tuple[str, str, int]:
        # a re-delivered event keeps the producer's millisecond timestamp
        return (self.type.value, self.source_id, self.timestamp)

    def to_wire(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "phase": self.phase.value,
            "priority": self.priority.value,
            "correlationId": self.correlation_id,
            "timestamp": self.timestamp,
            "payload": self.payload,
        }

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> Optional[ProgressEvent]:
        """Build an event from a decoded JSON object; unknown type/phase → None."""
        try:
            kind = EventKind(data.get("type"))
            phase = Phase(data.get("phase", Phase.COMPLETE.value))
        except ValueError:
            return None
        try:
            priority = EventPriority(data.get("priority", EventPriority.NORMAL.value))
        except ValueError:
            priority = EventPriority.NORMAL
        payload = data.get("payload") or {}
        return cls(
            type=kind,
            phase=phase,
            correlation_id=str(data.get("correlationId", "")),
            payload=payload if isinstance(payload, dict) else {"value": payload},
            priority=priority,
            timestamp=int(data.get("timestamp", 0) or 0),
        )


__all__ = [
    "Phase",
    "PHASE_ORDER",
    "PhaseStatus",
    "EventKind",
    "EventPriority",
    "NotificationType",
    "ProgressEvent",
    "now_ms",
]
