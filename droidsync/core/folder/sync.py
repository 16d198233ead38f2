"""
Folder synchronization engine.

Provides local <-> device synchronization with:
- Pattern-restricted scanning
- Path/attribute or content-hash identity
- Preview (plan) mode
- Progress reporting
- Partial-failure tolerance
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Optional

from droidsync.core.errors import ActionFailed, ConfigInvalid, SyncError
from droidsync.core.folder.differ import diff_inventories
from droidsync.core.folder.patterns import compile_patterns
from droidsync.core.folder.scanner import EXCLUDED_NAMES, InventoryBuilder, ScanProgress
from droidsync.core.models import (
    ActionTarget,
    IdentityMode,
    Inventory,
    SyncAction,
    SyncActionKind,
    SyncDirection,
    SyncPlan,
    SyncProgress,
    SyncRunResult,
)
from droidsync.services.hashing import HashAlgorithm
from droidsync.services.providers import LocalProvider, StorageProvider


@dataclass
class SyncOptions:
    """Options for synchronization."""
    direction: SyncDirection = SyncDirection.LOCAL_TO_REMOTE
    identity_mode: IdentityMode = IdentityMode.PATH_ATTRIBUTES
    delete_missing: bool = False  # Ignored for BIDIRECTIONAL

    # Filtering
    patterns: list[str] = field(default_factory=list)
    excluded_names: frozenset[str] = EXCLUDED_NAMES

    # Content identity
    hash_algorithm: HashAlgorithm = HashAlgorithm.MD5

    preserve_timestamps: bool = True


class SyncEngine:
    """
    Synchronizes a local directory with a remote provider.

    All transfers go through the local side: the remote provider pushes
    from or pulls to a local path.

    Usage:
        engine = SyncEngine(LocalProvider(path), AdbProvider(bridge, '/sdcard/DCIM'))
        plan = engine.plan_sync(options)
        result = engine.execute(plan, progress_callback)
    """

    def __init__(
        self,
        local: LocalProvider,
        remote: StorageProvider,
        options: Optional[SyncOptions] = None
    ):
        self.local = local
        self.remote = remote
        self.options = options or SyncOptions()
        self._cancelled = False
        self._builders: list[InventoryBuilder] = []

    # -------------------------------------------------------------------------
    # Planning
    # -------------------------------------------------------------------------

    def compile_patterns(self, options: Optional[SyncOptions] = None) -> list[str]:
        """Compile the option patterns against the remote and local roots."""
        options = options or self.options
        return compile_patterns(options.patterns, self.remote.root, self.local.root)

    def validate(self, options: Optional[SyncOptions] = None) -> list[str]:
        """
        Check options before any transport call.

        Returns:
            The compiled patterns

        Raises:
            ConfigInvalid: if the options cannot be used
        """
        options = options or self.options

        patterns = self.compile_patterns(options)

        if not self.local.exists():
            raise ConfigInvalid(f"Local directory not found: {self.local.root}")

        if options.identity_mode == IdentityMode.CONTENT_HASH:
            for provider in (self.local, self.remote):
                if not provider.supports_algorithm(options.hash_algorithm):
                    raise ConfigInvalid(
                        f"{options.hash_algorithm.name} hashing is not supported by the "
                        f"{provider.name} side"
                    )

        return patterns

    def build_inventories(
        self,
        patterns: list[str],
        options: Optional[SyncOptions] = None,
        progress_callback: Optional[Callable[[ScanProgress], None]] = None
    ) -> tuple[Inventory, Inventory]:
        """Scan both sides concurrently."""
        options = options or self.options
        algorithm = (options.hash_algorithm
                     if options.identity_mode == IdentityMode.CONTENT_HASH else None)

        local_builder = InventoryBuilder(patterns, options.excluded_names)
        remote_builder = InventoryBuilder(patterns, options.excluded_names)
        self._builders = [local_builder, remote_builder]

        logging.debug(f"SyncEngine - Scan roots: {local_builder.scan_roots}")

        with ThreadPoolExecutor(max_workers=2) as executor:
            local_future = executor.submit(
                local_builder.build, self.local, algorithm, progress_callback
            )
            remote_future = executor.submit(
                remote_builder.build, self.remote, algorithm, progress_callback
            )
            local_inventory = local_future.result()
            remote_inventory = remote_future.result()

        self._builders = []
        return local_inventory, remote_inventory

    def plan_sync(
        self,
        options: Optional[SyncOptions] = None,
        progress_callback: Optional[Callable[[ScanProgress], None]] = None
    ) -> SyncPlan:
        """
        Compute a synchronization plan without changing either side.

        Raises:
            ConfigInvalid: options are unusable
            ProviderUnavailable: a side could not be enumerated
            InterruptedError: the plan was cancelled
        """
        options = options or self.options
        self._cancelled = False

        patterns = self.validate(options)

        if not self.remote.exists():
            raise ConfigInvalid(f"Remote directory not found: {self.remote.root}")

        local_inventory, remote_inventory = self.build_inventories(
            patterns, options, progress_callback
        )

        if self._cancelled:
            raise InterruptedError("Cancelled")

        actions, summary = diff_inventories(
            local_inventory,
            remote_inventory,
            options.direction,
            options.identity_mode,
            options.delete_missing,
        )

        return SyncPlan(
            actions=actions,
            summary=summary,
            direction=options.direction,
            identity_mode=options.identity_mode,
            local_root=self.local.root,
            remote_root=self.remote.root,
        )

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def execute_sync(
        self,
        options: Optional[SyncOptions] = None,
        progress_callback: Optional[Callable[[SyncProgress], None]] = None
    ) -> SyncRunResult:
        """
        Perform full sync: plan and execute.

        Convenience method combining plan_sync + execute.
        """
        options = options or self.options
        plan = self.plan_sync(options)
        return self.execute(plan, progress_callback, options)

    def execute(
        self,
        plan: SyncPlan,
        progress_callback: Optional[Callable[[SyncProgress], None]] = None,
        options: Optional[SyncOptions] = None
    ) -> SyncRunResult:
        """
        Execute a synchronization plan.

        Actions run one at a time in plan order. A failing action is
        recorded and the run continues with the next one.

        Args:
            plan: The sync plan to execute
            progress_callback: Called after every action and once at the end

        Returns:
            SyncRunResult with execution details
        """
        options = options or self.options
        start_time = time.time()
        self._cancelled = False

        success_count = 0
        skipped_count = 0
        errors: list[str] = []
        bytes_completed = 0
        cancelled = False

        total_count = len(plan.actions)
        total_bytes = plan.summary.total_transfer_bytes

        for i, action in enumerate(plan.actions):
            if self._cancelled:
                cancelled = True
                logging.info(f"SyncEngine - Cancelled after {i} of {total_count} action(s)")
                break

            try:
                self._apply(action, options)
                if action.kind == SyncActionKind.SKIP:
                    skipped_count += 1
                else:
                    success_count += 1
                if action.is_transfer:
                    bytes_completed += action.size
            except ActionFailed as e:
                errors.append(f"{action.file_path}: {e.message}")
                logging.warning(f"SyncEngine - {action.kind.name} failed for {action.file_path}: {e.message}")
            except (SyncError, OSError) as e:
                errors.append(f"{action.file_path}: {e}")
                logging.warning(f"SyncEngine - {action.kind.name} failed for {action.file_path}: {e}")

            if progress_callback:
                progress_callback(SyncProgress(
                    current_path=action.file_path,
                    completed_count=i + 1,
                    total_count=total_count,
                    bytes_completed=bytes_completed,
                    total_bytes=total_bytes,
                ))

        if progress_callback and not cancelled:
            progress_callback(SyncProgress(
                current_path="",
                completed_count=total_count,
                total_count=total_count,
                bytes_completed=bytes_completed,
                total_bytes=total_bytes,
            ))

        result = SyncRunResult(
            success_count=success_count,
            skipped_count=skipped_count,
            error_count=len(errors),
            errors=tuple(errors),
            cancelled=cancelled,
            bytes_transferred=bytes_completed,
            duration=time.time() - start_time,
        )

        logging.info(
            f"SyncEngine - Done: {result.success_count} succeeded, "
            f"{result.skipped_count} skipped, {result.error_count} failed "
            f"in {result.duration:.2f}s"
        )
        return result

    def cancel(self) -> None:
        """Cancel ongoing planning or synchronization between actions."""
        self._cancelled = True
        for builder in self._builders:
            builder.cancel()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def _side(self, target: ActionTarget) -> StorageProvider:
        return self.local if target == ActionTarget.TO_LOCAL else self.remote

    def _apply(self, action: SyncAction, options: SyncOptions) -> None:
        """Apply a single action through the providers."""
        if action.kind == SyncActionKind.SKIP:
            return

        if action.target is None:
            raise ActionFailed(action.file_path, f"{action.kind.name} without a target side")

        path = action.file_path
        dest = self._side(action.target)

        if action.is_transfer:
            if action.target == ActionTarget.TO_REMOTE:
                self.remote.ensure_parent(path)
                self.remote.push(self.local.local_path(path), path)
            else:
                self.local.ensure_parent(path)
                self.remote.pull(path, self.local.local_path(path))
            self._preserve_timestamp(dest, action, options)

        elif action.kind == SyncActionKind.DELETE:
            dest.delete(path)

        elif action.kind == SyncActionKind.RENAME:
            if not action.rename_from:
                raise ActionFailed(path, "rename without a source path")
            dest.rename(action.rename_from, path)
            self._preserve_timestamp(dest, action, options)

    @staticmethod
    def _preserve_timestamp(
        dest: StorageProvider,
        action: SyncAction,
        options: SyncOptions
    ) -> None:
        """Copy the source mtime to the destination; failures are ignored."""
        if not options.preserve_timestamps or action.modified_time is None:
            return
        try:
            if not dest.set_modified_time(action.file_path, action.modified_time):
                logging.debug(f"SyncEngine - Timestamp not preserved for {action.file_path}")
        except (SyncError, OSError) as e:
            logging.debug(f"SyncEngine - Timestamp not preserved for {action.file_path}: {e}")
