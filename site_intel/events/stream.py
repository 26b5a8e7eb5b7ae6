# site_intel/events/stream.py
"""
Text event-stream codec.

Each event goes out as one ``data: {json}`` block followed by a blank line.
:class:`StreamWriter` is a bus subscriber that writes to any sink exposing
``write`` (sync or async), e.g. a text file, ``sys.stdout`` or an aiohttp
``StreamResponse``.  :func:`read_event_stream` is the consumer side.
"""
from __future__ import annotations

import inspect
import json
from typing import Any, Iterable, Iterator, Optional

from site_intel.errors import StreamClosedError, StreamWriteError
from site_intel.events.types import ProgressEvent
from site_intel.logger import logger

DONE_SENTINEL = "[DONE]"

_BENIGN_ERRORS = (StreamClosedError, ConnectionResetError, BrokenPipeError)


def encode_event(event: ProgressEvent) -> str:
    return f"data: {json.dumps(event.to_wire(), ensure_ascii=False, default=str)}\n\n"


class StreamWriter:
    """Writes bus events to a sink; a dead sink never breaks the pipeline."""

    def __init__(self, sink: Any, *, binary: bool = False) -> None:
        self._sink = sink
        self._binary = binary
        self.closed = False
        self.failed: Optional[StreamWriteError] = None
        self.written = 0

    @property
    def active(self) -> bool:
        return not self.closed and self.failed is None

    async def __call__(self, event: ProgressEvent) -> None:
        await self.write(encode_event(event))

    async def write(self, text: str) -> None:
        if not self.active:
            return
        if getattr(self._sink, "closed", False):
            self._mark_closed("sink reports closed")
            return
        try:
            result = self._sink.write(text.encode("utf-8") if self._binary else text)
            if inspect.isawaitable(result):
                await result
            flush = getattr(self._sink, "flush", None)
            if callable(flush) and not inspect.iscoroutinefunction(flush):
                flush()
            self.written += 1
        except _BENIGN_ERRORS as exc:
            self._mark_closed(str(exc))
        except ValueError as exc:
            # io raises ValueError on writes to a closed file
            if "closed" in str(exc):
                self._mark_closed(str(exc))
            else:
                self._fail(exc)
        except Exception as exc:
            self._fail(exc)

    async def close(self) -> None:
        if self.active:
            await self.write(f"data: {DONE_SENTINEL}\n\n")
        self.closed = True

    def _mark_closed(self, reason: str) -> None:
        logger.debug("Event stream closed by peer: %s", reason)
        self.closed = True

    def _fail(self, exc: Exception) -> None:
        self.failed = StreamWriteError(f"event stream write failed: {exc}")
        self.failed.__cause__ = exc
        logger.error("%s", self.failed)


def read_event_stream(lines: Iterable[str]) -> Iterator[ProgressEvent]:
    """Decode ``data: {...}`` lines (or bare JSON lines) into events.

    Blank lines, comments, ``[DONE]``, malformed JSON and unknown event types
    are skipped.
    """
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith(":"):
            continue
        if line.startswith("data:"):
            line = line[5:].strip()
        if line == DONE_SENTINEL or not line.startswith("{"):
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            logger.warning("Malformed event line skipped: %.80s", line)
            continue
        if not isinstance(data, dict):
            continue
        event = ProgressEvent.from_wire(data)
        if event is not None:
            yield event


__all__ = ["StreamWriter", "encode_event", "read_event_stream", "DONE_SENTINEL"]
