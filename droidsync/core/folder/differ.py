"""
Diff engine: turns two inventories into an ordered list of sync actions.

Two identity modes are supported:
- PATH_ATTRIBUTES: records with the same path are the same file and are
  compared by size and modification time
- CONTENT_HASH: records with the same digest are the same file; a digest
  found under different paths on the two sides becomes a single rename

In CONTENT_HASH mode the rename pass runs before the path pass, otherwise
a moved but unmodified file would show up as a delete plus a copy.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable, Iterator, Optional

from droidsync.core.models import (
    ActionTarget,
    FileRecord,
    IdentityMode,
    Inventory,
    SyncAction,
    SyncActionKind,
    SyncDirection,
    SyncPlanSummary,
)


class HashIndex:
    """
    Multi-map from content digest to every record carrying it.

    Duplicate-content files are common, so a digest maps to a list of
    records kept in path order.
    """

    def __init__(self, records: Iterable[FileRecord] = ()):
        self._index: defaultdict[str, list[FileRecord]] = defaultdict(list)
        for record in records:
            if record.is_directory or not record.content_hash:
                continue
            self._index[record.content_hash].append(record)
        for group in self._index.values():
            group.sort(key=lambda r: r.relative_path)

    def digests(self) -> set[str]:
        return set(self._index)

    def __getitem__(self, digest: str) -> list[FileRecord]:
        return self._index.get(digest, [])

    def __contains__(self, digest: object) -> bool:
        return digest in self._index

    def __len__(self) -> int:
        return len(self._index)


def sort_actions(actions: Iterable[SyncAction]) -> list[SyncAction]:
    """Deduplicate actions and order them by destination path."""
    return sorted(dict.fromkeys(actions), key=lambda a: a.file_path)


class SyncDiffer:
    """
    Computes the actions reconciling a local and a remote inventory.

    Usage:
        differ = SyncDiffer(SyncDirection.BIDIRECTIONAL, IdentityMode.CONTENT_HASH)
        actions = differ.diff(local_inventory, remote_inventory)
    """

    def __init__(
        self,
        direction: SyncDirection = SyncDirection.LOCAL_TO_REMOTE,
        identity_mode: IdentityMode = IdentityMode.PATH_ATTRIBUTES,
        delete_missing: bool = False
    ):
        self.direction = direction
        self.identity_mode = identity_mode
        # Absence is not evidence of deletion when both sides are sources
        self.delete_missing = delete_missing and direction != SyncDirection.BIDIRECTIONAL

    def diff(self, local: Inventory, remote: Inventory) -> list[SyncAction]:
        """
        Compare two inventories.

        Args:
            local: Inventory of the local side
            remote: Inventory of the remote side

        Returns:
            Actions sorted by destination path, without duplicates
        """
        local_files = local.files()
        remote_files = remote.files()
        local_dirs = local.directories()
        remote_dirs = remote.directories()

        if self.identity_mode == IdentityMode.CONTENT_HASH:
            actions = list(self._diff_by_content(local_files, remote_files, local_dirs, remote_dirs))
        else:
            actions = list(self._diff_by_path(
                local_files, remote_files, local_dirs, remote_dirs, set(), set()
            ))

        actions = sort_actions(actions)
        logging.info(
            f"SyncDiffer - {self.direction.name}/{self.identity_mode.name}: "
            f"{SyncPlanSummary.from_actions(actions)}"
        )
        return actions

    # -------------------------------------------------------------------------
    # Path pass
    # -------------------------------------------------------------------------

    def _diff_by_path(
        self,
        local_files: dict[str, FileRecord],
        remote_files: dict[str, FileRecord],
        local_dirs: set[str],
        remote_dirs: set[str],
        reconciled_local: set[str],
        reconciled_remote: set[str]
    ) -> Iterator[SyncAction]:
        """Reconcile records by path, skipping already reconciled paths."""
        for path in sorted(set(local_files) | set(remote_files)):
            if path in reconciled_local or path in reconciled_remote:
                continue

            local = local_files.get(path)
            remote = remote_files.get(path)

            if local and remote:
                action = self._diff_pair(local, remote)
            elif local:
                action = self._diff_one_sided(local, ActionTarget.TO_REMOTE, remote_dirs)
            else:
                action = self._diff_one_sided(remote, ActionTarget.TO_LOCAL, local_dirs)

            if action is not None:
                yield action

    def _diff_one_sided(
        self,
        record: FileRecord,
        missing_side: ActionTarget,
        missing_side_dirs: set[str]
    ) -> Optional[SyncAction]:
        """Handle a file present on one side only."""
        path = record.relative_path

        if self._can_write(missing_side):
            if path in missing_side_dirs:
                return SyncAction(
                    file_path=path,
                    kind=SyncActionKind.SKIP,
                    target=None,
                    reason="File on one side, directory on the other",
                )
            return SyncAction(
                file_path=path,
                kind=SyncActionKind.COPY,
                target=missing_side,
                size=record.size,
                reason=f"Missing on {self._side_name(missing_side)}",
                modified_time=record.modified_time,
            )

        if self.delete_missing:
            holder = missing_side.opposite
            return SyncAction(
                file_path=path,
                kind=SyncActionKind.DELETE,
                target=holder,
                reason=f"Not present on {self._side_name(missing_side)}",
            )

        return None

    def _diff_pair(
        self,
        local: FileRecord,
        remote: FileRecord,
    ) -> Optional[SyncAction]:
        """Handle a path present as a file on both sides."""
        content_differs: Optional[bool] = None
        if local.content_hash and remote.content_hash:
            content_differs = local.content_hash != remote.content_hash

        if self.direction == SyncDirection.BIDIRECTIONAL:
            if content_differs is None:
                differs = (local.size != remote.size
                           or local.modified_time != remote.modified_time)
            else:
                differs = content_differs
            if not differs:
                return None
            if local.modified_time >= remote.modified_time:
                return self._update(local, ActionTarget.TO_REMOTE, "Local is newer or equal")
            return self._update(remote, ActionTarget.TO_LOCAL, "Remote is newer")

        if self.direction == SyncDirection.LOCAL_TO_REMOTE:
            source, dest, target = local, remote, ActionTarget.TO_REMOTE
        else:
            source, dest, target = remote, local, ActionTarget.TO_LOCAL

        if content_differs is None:
            differs = (source.size != dest.size
                       or source.modified_time > dest.modified_time)
        else:
            differs = content_differs

        if not differs:
            return None
        return self._update(source, target, "Content differs" if content_differs else "Size or time differs")

    @staticmethod
    def _update(source: FileRecord, target: ActionTarget, reason: str) -> SyncAction:
        return SyncAction(
            file_path=source.relative_path,
            kind=SyncActionKind.UPDATE,
            target=target,
            size=source.size,
            reason=reason,
            modified_time=source.modified_time,
        )

    # -------------------------------------------------------------------------
    # Content pass
    # -------------------------------------------------------------------------

    def _diff_by_content(
        self,
        local_files: dict[str, FileRecord],
        remote_files: dict[str, FileRecord],
        local_dirs: set[str],
        remote_dirs: set[str]
    ) -> Iterator[SyncAction]:
        local_index = HashIndex(local_files.values())
        remote_index = HashIndex(remote_files.values())

        reconciled_local: set[str] = set()
        reconciled_remote: set[str] = set()

        for digest in sorted(local_index.digests() & remote_index.digests()):
            local_group = local_index[digest]
            remote_group = remote_index[digest]
            local_paths = {r.relative_path for r in local_group}
            remote_paths = {r.relative_path for r in remote_group}

            if local_paths & remote_paths:
                # Content and location already agree; extra copies are duplicates
                reconciled_local |= local_paths
                reconciled_remote |= remote_paths
                continue

            target = self._rename_target(local_group[0], remote_group[0])
            if target == ActionTarget.TO_REMOTE:
                source, dest = local_group[0], remote_group[0]
                source_files, dest_files, dest_dirs = local_files, remote_files, remote_dirs
            else:
                source, dest = remote_group[0], local_group[0]
                source_files, dest_files, dest_dirs = remote_files, local_files, local_dirs

            if dest.relative_path in source_files:
                # Not a move: the old path is still in use on the source side
                continue
            if source.relative_path in dest_files or source.relative_path in dest_dirs:
                # The new path is taken on the destination; the path pass decides it
                continue

            yield SyncAction(
                file_path=source.relative_path,
                kind=SyncActionKind.RENAME,
                target=target,
                size=source.size,
                reason="Same content under a different path",
                rename_from=dest.relative_path,
                modified_time=source.modified_time,
            )
            reconciled_local |= local_paths
            reconciled_remote |= remote_paths

        yield from self._diff_by_path(
            local_files, remote_files, local_dirs, remote_dirs,
            reconciled_local, reconciled_remote
        )

    def _rename_target(self, local: FileRecord, remote: FileRecord) -> ActionTarget:
        """Side whose copy gets renamed to match the other side."""
        if self.direction == SyncDirection.LOCAL_TO_REMOTE:
            return ActionTarget.TO_REMOTE
        if self.direction == SyncDirection.REMOTE_TO_LOCAL:
            return ActionTarget.TO_LOCAL
        if local.modified_time < remote.modified_time:
            return ActionTarget.TO_LOCAL
        return ActionTarget.TO_REMOTE

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _can_write(self, target: ActionTarget) -> bool:
        """Check if the direction lets data flow into a side."""
        if self.direction == SyncDirection.BIDIRECTIONAL:
            return True
        if self.direction == SyncDirection.LOCAL_TO_REMOTE:
            return target == ActionTarget.TO_REMOTE
        return target == ActionTarget.TO_LOCAL

    @staticmethod
    def _side_name(target: ActionTarget) -> str:
        return "local" if target == ActionTarget.TO_LOCAL else "remote"


def diff_inventories(
    local: Inventory,
    remote: Inventory,
    direction: SyncDirection,
    identity_mode: IdentityMode,
    delete_missing: bool = False
) -> tuple[list[SyncAction], SyncPlanSummary]:
    """Compute the sorted action list and its summary."""
    actions = SyncDiffer(direction, identity_mode, delete_missing).diff(local, remote)
    return actions, SyncPlanSummary.from_actions(actions)
