"""
Qt worker plumbing for running plan/sync off the caller's thread.

A worker is a QObject with a single `do_work` method. `WorkerThread` moves
it onto its own QThread, and the outcome comes back through `WorkerSignals`:
exactly one of finished / error / cancelled is emitted per run.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Optional

from PyQt6.QtCore import QObject, QThread, pyqtSignal, pyqtSlot, QMutex, QMutexLocker


class WorkerState(Enum):
    """Lifecycle of a worker run."""
    PENDING = auto()
    RUNNING = auto()
    CANCELLING = auto()
    CANCELLED = auto()
    COMPLETED = auto()
    FAILED = auto()


@dataclass
class ProgressInfo:
    """Generic progress payload; total is 0 while the amount of work is unknown."""
    current: int
    total: int
    message: str = ""
    detail: str = ""

    @property
    def percent(self) -> float:
        if self.total == 0:
            return 0.0
        return (self.current / self.total) * 100


class WorkerSignals(QObject):
    """Signals shared by every worker."""

    progress_detail = pyqtSignal(object)  # ProgressInfo
    status = pyqtSignal(str)

    finished = pyqtSignal(object)  # do_work() return value
    error = pyqtSignal(str, str)   # (exception class name, message)
    cancelled = pyqtSignal()

    state_changed = pyqtSignal(object)  # WorkerState


class WorkerMeta(type(QObject), type(ABC)):
    pass


class BaseWorker(QObject, ABC, metaclass=WorkerMeta):
    """
    Runs `do_work` and reports how it ended.

    Cancellation is cooperative: `cancel()` only sets a flag. Subclasses
    forward it to whatever they drive and may raise InterruptedError to
    stop early.
    """

    def __init__(self, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.signals = WorkerSignals()
        self._mutex = QMutex()
        self._state = WorkerState.PENDING
        self._cancel_requested = False
        self._result: Any = None
        self._error: Optional[tuple[str, str]] = None

    @property
    def state(self) -> WorkerState:
        with QMutexLocker(self._mutex):
            return self._state

    @state.setter
    def state(self, value: WorkerState) -> None:
        with QMutexLocker(self._mutex):
            self._state = value
        self.signals.state_changed.emit(value)

    @property
    def is_cancelled(self) -> bool:
        with QMutexLocker(self._mutex):
            return self._cancel_requested

    @property
    def result(self) -> Any:
        """Return value of `do_work`, None until it completes."""
        return self._result

    @property
    def error(self) -> Optional[tuple[str, str]]:
        """(exception class name, message) after a failed run."""
        return self._error

    def cancel(self) -> None:
        with QMutexLocker(self._mutex):
            self._cancel_requested = True
            running = self._state == WorkerState.RUNNING
        if running:
            self.state = WorkerState.CANCELLING

    @pyqtSlot()
    def run(self) -> None:
        """Thread entry point; override `do_work` instead."""
        self.state = WorkerState.RUNNING

        try:
            self._result = self.do_work()
        except InterruptedError:
            self._end_cancelled()
            return
        except Exception as e:
            logging.exception(f"{type(self).__name__} - Worker failed")
            self._error = (type(e).__name__, str(e))
            self.state = WorkerState.FAILED
            self.signals.error.emit(*self._error)
            return

        if self.is_cancelled:
            self._end_cancelled()
        else:
            self.state = WorkerState.COMPLETED
            self.signals.finished.emit(self._result)

    def _end_cancelled(self) -> None:
        logging.info(f"{type(self).__name__} - Cancelled")
        self.state = WorkerState.CANCELLED
        self.signals.cancelled.emit()

    @abstractmethod
    def do_work(self) -> Any:
        pass

    def report_progress_detail(self, info: ProgressInfo) -> None:
        self.signals.progress_detail.emit(info)

    def report_status(self, message: str) -> None:
        self.signals.status.emit(message)


class WorkerThread(QThread):
    """
    QThread owning one worker.

    The thread's event loop stops as soon as the worker reports any
    outcome, so `QThread.finished` fires after every run.
    """

    def __init__(
        self,
        worker: BaseWorker,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent)
        self.worker = worker
        self.worker.moveToThread(self)

        self.started.connect(self.worker.run)
        for outcome in (worker.signals.finished, worker.signals.error, worker.signals.cancelled):
            outcome.connect(self.quit)

    def cancel(self) -> None:
        self.worker.cancel()

    @property
    def result(self) -> Any:
        return self.worker.result

    @property
    def error(self) -> Optional[tuple[str, str]]:
        return self.worker.error
