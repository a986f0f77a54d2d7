"""
LearnForge Learning Monitor, Status & History
==============================================
The small pieces of state a learner keeps while it runs.

    LearningMonitor  — cooperative stop flag, read once per batch
    LearningStatus   — immutable progress snapshot pushed to observers
    HistoryEntry     — immutable (score, epoch) observation
    HistoryLedger    — append-only, chronologically ordered entries
    TrainingSession  — groups the above; lifecycle create → run → reset

Stop vs. Cancel:
    A stop request is polite: the running loop finishes its current batch
    and leaves. Nothing is raised and the caller decides whether partial
    training counts as success. Cancellation (see context.py) raises and
    aborts the whole multi-epoch run.

Thread Safety:
    request_stop() may be called from any thread while a loop runs. The
    flag is a threading.Event; a request that lands mid-batch is seen at
    the next batch boundary.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Iterator, Optional

import numpy as np


class LearningMonitor:
    """Holds the stop-learning flag shared between a learner and its observers."""

    def __init__(self):
        self._stop = threading.Event()

    def check_stop_learning(self) -> bool:
        return self._stop.is_set()

    def request_stop(self) -> None:
        self._stop.set()

    def reset(self) -> None:
        self._stop.clear()

    def __repr__(self) -> str:
        return f"LearningMonitor(stop_requested={self.check_stop_learning()})"


@dataclass(frozen=True)
class HistoryEntry:
    score: float
    epoch: int


@dataclass(frozen=True)
class LearningStatus:
    """
    Snapshot of learner progress.

    Parameters
    ----------
    current_epoch : int
        1-based number of the epoch just completed.
    max_epochs : int
        Number of epochs the run was configured for.
    score : float or None
        Network score after the epoch.
    training_method : str
        Human-readable regime label, e.g. "Backpropagation".
    """
    current_epoch: int
    max_epochs: int
    score: Optional[float]
    training_method: str


class HistoryLedger:
    """Append-only record of per-epoch scores in insertion order."""

    def __init__(self):
        self._entries: list[HistoryEntry] = []

    def append(self, entry: HistoryEntry) -> None:
        self._entries.append(entry)

    def clear(self) -> None:
        self._entries.clear()

    def entries(self) -> list[HistoryEntry]:
        """Copy of the recorded entries."""
        return list(self._entries)

    def scores(self) -> np.ndarray:
        return np.array([e.score for e in self._entries], dtype=np.float64)

    @property
    def last(self) -> Optional[HistoryEntry]:
        return self._entries[-1] if self._entries else None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(list(self._entries))


@dataclass
class TrainingSession:
    """
    Mutable state of one learner across epochs.

    Passed by reference to whoever needs it; reset() returns it to the
    state of a freshly created session.
    """
    score: Optional[float] = None
    status: Optional[LearningStatus] = None
    monitor: LearningMonitor = field(default_factory=LearningMonitor)
    history: HistoryLedger = field(default_factory=HistoryLedger)

    def reset(self) -> None:
        self.score = None
        self.status = None
        self.monitor.reset()
        self.history.clear()
