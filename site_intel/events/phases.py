# site_intel/events/phases.py
"""Phase state machine: pending → in-progress → {complete | skipped | failed}."""
from __future__ import annotations

from typing import Dict, Iterable, List

from site_intel.events.types import PHASE_ORDER, Phase, PhaseStatus


class PhaseTransitionError(RuntimeError):
    """Illegal transition or out-of-order phase start."""


class PhaseTracker:
    """Tracks the status of every phase of one run and enforces strict ordering."""

    def __init__(self, skip: Iterable[Phase] = ()) -> None:
        self._status: Dict[Phase, PhaseStatus] = {p: PhaseStatus.PENDING for p in PHASE_ORDER}
        self._requested_skips = frozenset(skip)
        if Phase.COMPLETE in self._requested_skips:
            raise PhaseTransitionError("the terminal phase cannot be skipped")

    def status(self, phase: Phase) -> PhaseStatus:
        return self._status[phase]

    def should_skip(self, phase: Phase) -> bool:
        return phase in self._requested_skips

    def snapshot(self) -> Dict[str, str]:
        return {p.value: s.value for p, s in self._status.items()}

    def start(self, phase: Phase) -> None:
        self._require(phase, PhaseStatus.PENDING)
        for earlier in PHASE_ORDER[: phase.order]:
            if not self._status[earlier].finished:
                raise PhaseTransitionError(
                    f"cannot start '{phase.value}' before '{earlier.value}' has finished"
                )
        later_started = [
            p for p in PHASE_ORDER[phase.order + 1:] if self._status[p] is not PhaseStatus.PENDING
        ]
        if later_started:
            raise PhaseTransitionError(f"'{later_started[0].value}' already left pending")
        self._status[phase] = PhaseStatus.IN_PROGRESS

    def complete(self, phase: Phase) -> None:
        self._require(phase, PhaseStatus.IN_PROGRESS)
        self._status[phase] = PhaseStatus.COMPLETE

    def fail(self, phase: Phase) -> None:
        if self._status[phase] not in (PhaseStatus.PENDING, PhaseStatus.IN_PROGRESS):
            raise PhaseTransitionError(
                f"'{phase.value}' is already {self._status[phase].value}"
            )
        self._status[phase] = PhaseStatus.FAILED

    def skip(self, phase: Phase) -> None:
        # skipped phases go straight from pending to skipped
        self._require(phase, PhaseStatus.PENDING)
        self._status[phase] = PhaseStatus.SKIPPED

    def skip_remaining(self) -> List[Phase]:
        """Mark all still-pending work phases as skipped (cancellation path)."""
        skipped = []
        for phase in PHASE_ORDER[:-1]:
            if self._status[phase] is PhaseStatus.PENDING:
                self._status[phase] = PhaseStatus.SKIPPED
                skipped.append(phase)
        return skipped

    def phases_run(self) -> List[str]:
        """Work phases that actually executed (completed or failed), in order."""
        return [
            p.value
            for p in PHASE_ORDER[:-1]
            if self._status[p] in (PhaseStatus.COMPLETE, PhaseStatus.FAILED)
        ]

    def _require(self, phase: Phase, expected: PhaseStatus) -> None:
        if self._status[phase] is not expected:
            raise PhaseTransitionError(
                f"'{phase.value}' is {self._status[phase].value}, expected {expected.value}"
            )


__all__ = ["PhaseTracker", "PhaseTransitionError"]
