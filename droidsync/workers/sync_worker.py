"""
Workers for synchronization operations.
"""

from __future__ import annotations

from typing import Optional

from PyQt6.QtCore import QObject, pyqtSignal

from droidsync.core.folder.scanner import ScanProgress
from droidsync.core.folder.sync import SyncEngine, SyncOptions
from droidsync.core.models import SyncPlan, SyncProgress, SyncRunResult
from droidsync.workers.base_worker import BaseWorker, ProgressInfo


class SyncPlanWorker(BaseWorker):
    """
    Worker for creating a synchronization plan.

    Scans both sides and diffs them without changing anything.
    """

    def __init__(
        self,
        engine: SyncEngine,
        options: Optional[SyncOptions] = None,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent=parent)
        self.engine = engine
        self.options = options or engine.options

    def do_work(self) -> SyncPlan:
        """Create sync plan."""
        self.report_status("Scanning...")

        def scan_progress(progress: ScanProgress) -> None:
            if self.is_cancelled:
                self.engine.cancel()
                return
            self.report_progress_detail(ProgressInfo(
                current=progress.entries_found,
                total=0,
                message=f"{progress.phase} {progress.side}",
                detail=progress.current_root,
            ))

        plan = self.engine.plan_sync(self.options, scan_progress)
        self.report_status(f"Plan ready: {plan.summary}")
        return plan

    def cancel(self) -> None:
        super().cancel()
        self.engine.cancel()


class SyncWorker(BaseWorker):
    """
    Worker for executing a synchronization.

    Executes the given plan, or plans first when none is given.
    Reports progress for each action.
    """

    # Emitted after every action and once at completion
    sync_progress = pyqtSignal(object)  # SyncProgress

    # Emitted for each failed action after the run
    sync_error = pyqtSignal(str, str)  # (path, error)

    def __init__(
        self,
        engine: SyncEngine,
        plan: Optional[SyncPlan] = None,
        options: Optional[SyncOptions] = None,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent=parent)
        self.engine = engine
        self.plan = plan
        self.options = options or engine.options

    def do_work(self) -> SyncRunResult:
        """Execute synchronization."""
        if self.plan is None:
            self.report_status("Planning...")
            self.plan = self.engine.plan_sync(self.options)

        if self.is_cancelled:
            raise InterruptedError("Cancelled")

        self.report_status("Synchronizing...")

        def progress_callback(progress: SyncProgress) -> None:
            if self.is_cancelled:
                self.engine.cancel()
            self.sync_progress.emit(progress)
            self.report_progress_detail(ProgressInfo(
                current=progress.completed_count,
                total=progress.total_count,
                message="Synchronizing",
                detail=progress.current_path,
            ))

        result = self.engine.execute(self.plan, progress_callback, self.options)

        for message in result.errors:
            path, _, error = message.partition(": ")
            self.sync_error.emit(path, error)

        return result

    def cancel(self) -> None:
        """Cancel synchronization."""
        super().cancel()
        self.engine.cancel()
