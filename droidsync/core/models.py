"""
Core data models for the synchronization engine.

This module defines the data structures shared by every stage of a sync:
- File inventory models
- Sync action and plan models
- Progress and run result models

All models are designed to be:
- Transport-agnostic (the same records describe local and device files)
- Immutable where practical
- Type-hinted for IDE support
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import PurePosixPath
from typing import Iterable, Iterator, Optional


# =============================================================================
# Enumerations
# =============================================================================

class SyncDirection(Enum):
    """Which side(s) data is allowed to flow to."""
    LOCAL_TO_REMOTE = auto()
    REMOTE_TO_LOCAL = auto()
    BIDIRECTIONAL = auto()


class IdentityMode(Enum):
    """Policy for deciding whether two records denote the same file."""
    PATH_ATTRIBUTES = auto()  # Same path, compared by size + mtime
    CONTENT_HASH = auto()     # Same digest, regardless of path


class SyncActionKind(Enum):
    """Kind of reconciling operation."""
    COPY = auto()
    UPDATE = auto()
    DELETE = auto()
    RENAME = auto()
    SKIP = auto()


class ActionTarget(Enum):
    """Side an action is applied to."""
    TO_LOCAL = auto()
    TO_REMOTE = auto()

    @property
    def opposite(self) -> 'ActionTarget':
        if self is ActionTarget.TO_LOCAL:
            return ActionTarget.TO_REMOTE
        return ActionTarget.TO_LOCAL


# =============================================================================
# Inventory Models
# =============================================================================

@dataclass(frozen=True)
class RawEntry:
    """
    Unfiltered entry as returned by a provider enumeration.

    Paths are relative to the provider's sync root.
    """
    relative_path: str
    size: int
    modified_time: int
    is_directory: bool = False


@dataclass(frozen=True)
class FileRecord:
    """One entry in an inventory."""
    relative_path: str
    size: int
    modified_time: int
    is_directory: bool = False
    content_hash: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.relative_path:
            raise ValueError("relative_path must not be empty")
        parts = self.relative_path.split('/')
        if any(part in ('', '.', '..') for part in parts):
            raise ValueError(f"Invalid relative path: {self.relative_path!r}")
        if self.size < 0:
            raise ValueError(f"Negative size for {self.relative_path!r}")

    @classmethod
    def from_entry(cls, entry: RawEntry) -> 'FileRecord':
        return cls(
            relative_path=entry.relative_path,
            size=0 if entry.is_directory else entry.size,
            modified_time=int(entry.modified_time),
            is_directory=entry.is_directory,
        )

    @property
    def name(self) -> str:
        return PurePosixPath(self.relative_path).name

    @property
    def parent(self) -> str:
        """Parent directory relative to the root ('' for top-level entries)."""
        parent = str(PurePosixPath(self.relative_path).parent)
        return '' if parent == '.' else parent


class Inventory:
    """
    The filtered, path-ordered set of records on one side of a sync.

    Paths are unique; adding a path that is already present keeps the
    first record.
    """

    def __init__(self, records: Iterable[FileRecord] = ()):
        self._records: dict[str, FileRecord] = {}
        for record in records:
            self.add(record)

    def add(self, record: FileRecord) -> bool:
        """Add a record. Returns False if the path was already present."""
        if record.relative_path in self._records:
            return False
        self._records[record.relative_path] = record
        return True

    def replace(self, record: FileRecord) -> None:
        """Replace the record stored under the same path."""
        self._records[record.relative_path] = record

    def get(self, relative_path: str) -> Optional[FileRecord]:
        return self._records.get(relative_path)

    def __contains__(self, relative_path: object) -> bool:
        return relative_path in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[FileRecord]:
        for path in sorted(self._records):
            yield self._records[path]

    def files(self) -> dict[str, FileRecord]:
        """Files only, keyed by path, in ascending path order."""
        return {r.relative_path: r for r in self if not r.is_directory}

    def directories(self) -> set[str]:
        return {path for path, r in self._records.items() if r.is_directory}

    @property
    def file_count(self) -> int:
        return sum(1 for r in self._records.values() if not r.is_directory)

    @property
    def total_size(self) -> int:
        return sum(r.size for r in self._records.values() if not r.is_directory)


# =============================================================================
# Sync Models
# =============================================================================

@dataclass(frozen=True)
class SyncAction:
    """One reconciling operation."""
    file_path: str
    kind: SyncActionKind
    target: Optional[ActionTarget]
    size: int = 0
    reason: str = ""
    rename_from: Optional[str] = None
    modified_time: Optional[int] = None  # Source mtime to preserve

    @property
    def is_transfer(self) -> bool:
        return self.kind in (SyncActionKind.COPY, SyncActionKind.UPDATE)

    def __str__(self) -> str:
        side = self.target.name if self.target else "-"
        if self.kind is SyncActionKind.RENAME:
            return f"{self.kind.name:<6} {side:<9} {self.rename_from} -> {self.file_path}"
        return f"{self.kind.name:<6} {side:<9} {self.file_path}"


@dataclass(frozen=True)
class SyncPlanSummary:
    """Aggregate numbers for a list of actions."""
    total_transfer_bytes: int = 0
    copy_count: int = 0
    update_count: int = 0
    delete_count: int = 0
    rename_count: int = 0
    skip_count: int = 0

    @classmethod
    def from_actions(cls, actions: Iterable[SyncAction]) -> 'SyncPlanSummary':
        counts = {kind: 0 for kind in SyncActionKind}
        total_bytes = 0
        for action in actions:
            counts[action.kind] += 1
            if action.is_transfer:
                total_bytes += action.size
        return cls(
            total_transfer_bytes=total_bytes,
            copy_count=counts[SyncActionKind.COPY],
            update_count=counts[SyncActionKind.UPDATE],
            delete_count=counts[SyncActionKind.DELETE],
            rename_count=counts[SyncActionKind.RENAME],
            skip_count=counts[SyncActionKind.SKIP],
        )

    @property
    def total_actions(self) -> int:
        return (self.copy_count + self.update_count + self.delete_count
                + self.rename_count + self.skip_count)

    def __str__(self) -> str:
        return (f"{self.copy_count} copy, {self.update_count} update, "
                f"{self.delete_count} delete, {self.rename_count} rename, "
                f"{self.skip_count} skip ({self.total_transfer_bytes} bytes)")


@dataclass
class SyncPlan:
    """A computed, not yet executed, list of actions."""
    actions: list[SyncAction]
    summary: SyncPlanSummary
    direction: SyncDirection
    identity_mode: IdentityMode
    local_root: str = ""
    remote_root: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.actions

    @property
    def total_actions(self) -> int:
        return len(self.actions)

    def iter_by_kind(self, kind: SyncActionKind) -> Iterator[SyncAction]:
        """Iterate over actions of the given kind."""
        for action in self.actions:
            if action.kind == kind:
                yield action


@dataclass(frozen=True)
class SyncProgress:
    """Progress information for a sync run."""
    current_path: str
    completed_count: int
    total_count: int
    bytes_completed: int
    total_bytes: int

    @property
    def is_finished(self) -> bool:
        return self.completed_count >= self.total_count

    @property
    def percent_items(self) -> float:
        if self.total_count == 0:
            return 100.0
        return (self.completed_count / self.total_count) * 100

    @property
    def percent_bytes(self) -> float:
        if self.total_bytes == 0:
            return 100.0
        return (self.bytes_completed / self.total_bytes) * 100


@dataclass(frozen=True)
class SyncRunResult:
    """Terminal outcome of one execution."""
    success_count: int = 0
    skipped_count: int = 0
    error_count: int = 0
    errors: tuple[str, ...] = field(default_factory=tuple)  # "<path>: <message>"
    cancelled: bool = False
    bytes_transferred: int = 0
    duration: float = 0.0

    @property
    def has_errors(self) -> bool:
        return self.error_count > 0

    @property
    def success(self) -> bool:
        return not self.has_errors and not self.cancelled

    @property
    def processed_count(self) -> int:
        return self.success_count + self.skipped_count + self.error_count
