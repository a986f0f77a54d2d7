"""
LearnForge Execution Context
=============================
The learner never talks to its host directly. Everything it needs from
the outside world goes through a NodeContext:

    check_canceled()       raise CancellationSignal if the host aborted
    set_message(text)      short progress message ("Performing Finetuning")
    notify_observers(obj)  push a LearningStatus, HistoryEntry, or None (idle)

ExecutionContext is the in-process implementation used by scripts and
tests. Observers are plain callables; they are fire-and-forget, and an
observer that raises is logged and skipped so it cannot break training.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional, Protocol

from tqdm import tqdm

from learnforge.errors import CancellationSignal
from learnforge.training.monitor import LearningStatus

logger = logging.getLogger(__name__)

Observer = Callable[[Any], None]


class NodeContext(Protocol):
    """Capabilities a learner needs from its host."""

    def check_canceled(self) -> None:
        """Raise CancellationSignal if execution was canceled."""
        ...

    def set_message(self, message: str) -> None:
        ...

    def notify_observers(self, obj: Any) -> None:
        ...


class ExecutionContext:
    """
    In-process NodeContext with thread-safe cancellation.

    Parameters
    ----------
    observers : list of callables, optional
        Receive every object passed to notify_observers().
    show_progress : bool
        Mirror messages and epoch progress to a tqdm bar.

    Usage:
        >>> with ExecutionContext(show_progress=True) as ctx:
        ...     learner.train(net, data, "backprop", max_epochs=5, context=ctx)
    """

    def __init__(
        self,
        observers: Optional[list[Observer]] = None,
        show_progress: bool = False,
    ):
        self._canceled = threading.Event()
        self._observers: list[Observer] = list(observers or [])
        self.message: str = ""
        self._bar: Optional[tqdm] = tqdm(desc="learner", unit="epoch") if show_progress else None

    def add_observer(self, observer: Observer) -> None:
        self._observers.append(observer)

    def remove_observer(self, observer: Observer) -> None:
        self._observers.remove(observer)

    def cancel(self) -> None:
        """Request cancellation; may be called from any thread."""
        self._canceled.set()

    @property
    def is_canceled(self) -> bool:
        return self._canceled.is_set()

    def check_canceled(self) -> None:
        if self._canceled.is_set():
            raise CancellationSignal()

    def set_message(self, message: str) -> None:
        self.message = message
        logger.debug(message)
        if self._bar is not None:
            self._bar.set_description_str(message)

    def notify_observers(self, obj: Any) -> None:
        if self._bar is not None:
            self._update_bar(obj)
        for observer in list(self._observers):
            try:
                observer(obj)
            except Exception:
                logger.exception(f"Observer {observer!r} failed on {obj!r}")

    def _update_bar(self, obj: Any) -> None:
        if obj is None:
            self._bar.reset()
        elif isinstance(obj, LearningStatus):
            self._bar.total = obj.max_epochs
            self._bar.n = obj.current_epoch
            if obj.score is not None:
                self._bar.set_postfix(score=f"{obj.score:.4f}")
            self._bar.refresh()

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None

    def __enter__(self) -> ExecutionContext:
        return self

    def __exit__(self, *args) -> None:
        self.close()
