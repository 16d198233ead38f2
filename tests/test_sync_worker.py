"""
Tests for the Qt sync workers.

Workers are run synchronously with run(); signals are delivered
directly on the calling thread.
"""

from droidsync.core.errors import ActionFailed
from droidsync.core.folder.sync import SyncEngine, SyncOptions
from droidsync.core.models import SyncPlan, SyncRunResult
from droidsync.services.providers import LocalProvider
from droidsync.workers import SyncPlanWorker, SyncWorker, WorkerState


class RejectingProvider(LocalProvider):
    def push(self, local_source, path):
        raise ActionFailed(path, "No space left on device")


def collect(signal):
    received = []
    signal.connect(lambda *args: received.append(args))
    return received


class TestSyncWorker:
    """Tests for SyncWorker."""

    def test_plans_and_executes(self, qapp, local_dir, remote_dir, make_file):
        make_file(local_dir, "a.txt")
        make_file(local_dir, "b.txt")
        worker = SyncWorker(SyncEngine(LocalProvider(local_dir), LocalProvider(remote_dir)))
        finished = collect(worker.signals.finished)
        progress = collect(worker.sync_progress)

        worker.run()

        assert worker.state == WorkerState.COMPLETED
        result = finished[0][0]
        assert isinstance(result, SyncRunResult)
        assert result.success_count == 2
        assert [p[0].completed_count for p in progress] == [1, 2, 2]
        assert (remote_dir / "b.txt").exists()

    def test_action_errors_reported(self, qapp, local_dir, remote_dir, make_file):
        make_file(local_dir, "a.txt")
        worker = SyncWorker(SyncEngine(LocalProvider(local_dir), RejectingProvider(remote_dir)))
        errors = collect(worker.sync_error)

        worker.run()

        assert errors == [("a.txt", "No space left on device")]
        assert worker.result.error_count == 1

    def test_cancelled_before_start(self, qapp, local_dir, remote_dir, make_file):
        make_file(local_dir, "a.txt")
        worker = SyncWorker(SyncEngine(LocalProvider(local_dir), LocalProvider(remote_dir)))
        cancelled = collect(worker.signals.cancelled)

        worker.cancel()
        worker.run()

        assert cancelled
        assert worker.state == WorkerState.CANCELLED
        assert not (remote_dir / "a.txt").exists()

    def test_configuration_error(self, qapp, tmp_path, remote_dir):
        worker = SyncWorker(SyncEngine(LocalProvider(tmp_path / "nope"), LocalProvider(remote_dir)))
        errors = collect(worker.signals.error)

        worker.run()

        assert worker.state == WorkerState.FAILED
        assert errors[0][0] == "ConfigInvalid"
        assert worker.error[0] == "ConfigInvalid"


class TestSyncPlanWorker:
    """Tests for SyncPlanWorker."""

    def test_returns_plan(self, qapp, local_dir, remote_dir, make_file):
        make_file(local_dir, "a.txt")
        options = SyncOptions(patterns=["*.txt"])
        worker = SyncPlanWorker(SyncEngine(LocalProvider(local_dir), LocalProvider(remote_dir)), options)
        finished = collect(worker.signals.finished)
        details = collect(worker.signals.progress_detail)

        worker.run()
        # Scan progress is emitted from the scanner pool threads
        qapp.processEvents()

        plan = finished[0][0]
        assert isinstance(plan, SyncPlan)
        assert [a.file_path for a in plan.actions] == ["a.txt"]
        assert details
        assert not (remote_dir / "a.txt").exists()
