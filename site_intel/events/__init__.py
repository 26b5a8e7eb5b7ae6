# File: site_intel/events/__init__.py
"""site_intel.events: Шина событий прогресса, дедупликация и кодек текстового потока."""

from .bus import EventBus, Subscriber
from .cache import DedupCache
from .phases import PhaseTracker, PhaseTransitionError
from .stream import StreamWriter, encode_event, read_event_stream
from .types import (
    PHASE_ORDER,
    EventKind,
    EventPriority,
    NotificationType,
    Phase,
    PhaseStatus,
    ProgressEvent,
)

__all__ = [
    "EventBus",
    "Subscriber",
    "DedupCache",
    "PhaseTracker",
    "PhaseTransitionError",
    "StreamWriter",
    "encode_event",
    "read_event_stream",
    "PHASE_ORDER",
    "EventKind",
    "EventPriority",
    "NotificationType",
    "Phase",
    "PhaseStatus",
    "ProgressEvent",
]
