# site_intel/events/bus.py
"""
Progress event bus.

Delivers events to live subscribers in publish order, dropping repeats:

* structural dedup: key ``(type, source id, timestamp)`` inside ``dedup_ttl``;
* notification dedup: key ``(message, notification type)`` inside
  ``notification_window``, independent of the event kind;
* terminal guard: at most one terminal event (``complete`` or ``error``)
  per correlation id.

Both dedup tables are :class:`~site_intel.events.cache.DedupCache` objects
driven by the same injected clock; a background task sweeps them every
``sweep_interval`` seconds while the bus is used as an async context manager.
"""
from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from site_intel.events.cache import Clock, DedupCache
from site_intel.events.types import (
    EventKind,
    EventPriority,
    NotificationType,
    Phase,
    PhaseStatus,
    ProgressEvent,
)
from site_intel.logger import logger

Subscriber = Callable[[ProgressEvent], Union[None, Awaitable[None]]]


class EventBus:
    """Fan-out of :class:`ProgressEvent` to subscribers with duplicate suppression."""

    def __init__(
        self,
        correlation_id: str,
        *,
        dedup_ttl: float = 10.0,
        sweep_interval: float = 60.0,
        notification_window: float = 2.0,
        clock: Optional[Clock] = None,
    ) -> None:
        self.correlation_id = correlation_id
        self.sweep_interval = sweep_interval
        self._events = DedupCache(dedup_ttl, clock)
        self._notifications = DedupCache(notification_window, clock)
        self._subscribers: List[Subscriber] = []
        self._terminated: Set[str] = set()
        self._sweeper: Optional[asyncio.Task[None]] = None
        self.delivered = 0
        self.dropped = 0
        self._dispatch: Dict[EventKind, Callable[[ProgressEvent], bool]] = {
            EventKind.PROGRESS: self._accept,
            EventKind.DATA: self._accept,
            EventKind.STATUS: self._accept,
            EventKind.COMPLETE: self._accept_terminal,
            EventKind.ERROR: self._accept_terminal,
        }

    # ------------------------------------------------------------------ #
    # lifecycle
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> EventBus:
        self._sweeper = asyncio.create_task(self._sweep_forever())
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            await asyncio.gather(self._sweeper, return_exceptions=True)
            self._sweeper = None

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.sweep()

    def sweep(self) -> int:
        removed = self._events.sweep() + self._notifications.sweep()
        if removed:
            logger.debug("Event dedup sweep removed %d entries", removed)
        return removed

    @property
    def pending_keys(self) -> int:
        return len(self._events) + len(self._notifications)

    # ------------------------------------------------------------------ #
    # subscription / delivery
    # ------------------------------------------------------------------ #

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register *subscriber*; the returned callable unsubscribes it."""
        self._subscribers.append(subscriber)

        def _unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return _unsubscribe

    def terminated(self, correlation_id: Optional[str] = None) -> bool:
        return (correlation_id or self.correlation_id) in self._terminated

    async def publish(self, event: ProgressEvent) -> bool:
        """Deliver *event* unless it is a duplicate; return True when delivered."""
        handler = self._dispatch.get(event.type)
        if handler is None or not handler(event):
            self.dropped += 1
            return False
        for subscriber in list(self._subscribers):
            try:
                result = subscriber(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                # a broken observer must not break the pipeline
                logger.error("Subscriber %r failed on %s event: %s", subscriber, event.type.value, exc)
        self.delivered += 1
        return True

    def _accept(self, event: ProgressEvent) -> bool:
        if self._events.check_and_insert(event.dedup_key()):
            logger.debug("Duplicate %s event from %s dropped", event.type.value, event.source_id)
            return False
        return True

    def _accept_terminal(self, event: ProgressEvent) -> bool:
        if event.correlation_id in self._terminated:
            logger.debug("Second terminal event for %s dropped", event.correlation_id)
            return False
        if not self._accept(event):
            return False
        self._terminated.add(event.correlation_id)
        return True

    # ------------------------------------------------------------------ #
    # event factories
    # ------------------------------------------------------------------ #

    def _event(
        self,
        kind: EventKind,
        phase: Phase,
        payload: Dict[str, Any],
        *,
        priority: EventPriority = EventPriority.NORMAL,
        source: str = "",
    ) -> ProgressEvent:
        return ProgressEvent(
            type=kind,
            phase=phase,
            correlation_id=self.correlation_id,
            payload=payload,
            priority=priority,
            source=source,
        )

    async def progress(self, phase: Phase, current: int, total: int, *, source: str = "", **extra: Any) -> bool:
        percentage = round(current * 100 / total) if total else 100
        payload = {"current": current, "total": total, "percentage": percentage, **extra}
        return await self.publish(
            self._event(EventKind.PROGRESS, phase, payload, priority=EventPriority.LOW, source=source)
        )

    async def data(self, phase: Phase, payload: Dict[str, Any], *, source: str = "") -> bool:
        return await self.publish(self._event(EventKind.DATA, phase, payload, source=source))

    async def status(self, phase: Phase, status: PhaseStatus, **extra: Any) -> bool:
        payload = {"status": status.value, **extra}
        return await self.publish(
            self._event(EventKind.STATUS, phase, payload, source=f"{phase.value}:{status.value}")
        )

    async def complete(self, payload: Dict[str, Any]) -> bool:
        return await self.publish(
            self._event(EventKind.COMPLETE, Phase.COMPLETE, payload, priority=EventPriority.HIGH, source="run")
        )

    async def error(self, phase: Phase, message: str, **extra: Any) -> bool:
        payload = {"message": message, **extra}
        return await self.publish(
            self._event(EventKind.ERROR, phase, payload, priority=EventPriority.FATAL, source="run")
        )

    async def notify(
        self,
        message: str,
        level: NotificationType = NotificationType.INFO,
        *,
        phase: Phase = Phase.COMPLETE,
        kind: EventKind = EventKind.STATUS,
    ) -> bool:
        """Human-readable notification; identical (message, level) pairs inside the window are dropped."""
        if self._notifications.check_and_insert((message, level.value)):
            logger.debug("Duplicate notification dropped: %s", message)
            self.dropped += 1
            return False
        priority = {
            NotificationType.ERROR: EventPriority.HIGH,
            NotificationType.WARNING: EventPriority.NORMAL,
            NotificationType.SUCCESS: EventPriority.NORMAL,
        }.get(level, EventPriority.LOW)
        payload = {"message": message, "notification": level.value}
        return await self.publish(
            self._event(kind, phase, payload, priority=priority, source=f"notify:{level.value}:{message}")
        )


__all__ = ["EventBus", "Subscriber"]
