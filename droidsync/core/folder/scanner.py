"""
Inventory scanning for synchronization.

Provides:
- Scan planning (minimal set of subtrees to enumerate)
- Housekeeping-file exclusion
- Pattern-based filtering
- Merging per-root listings into one sorted inventory
- Content hashing of inventory files
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Sequence

from droidsync.core.folder.patterns import GlobMatcher, first_glob_index
from droidsync.core.models import FileRecord, Inventory, RawEntry
from droidsync.services.hashing import HashAlgorithm
from droidsync.services.providers import StorageProvider


# OS and device housekeeping names; an entry is excluded if any of its
# path components equals one of these.
EXCLUDED_NAMES = frozenset([
    '.DS_Store', '._.DS_Store', '.Spotlight-V100', '.Trashes', '.fseventsd',
    '.TemporaryItems', 'Thumbs.db', 'ehthumbs.db', 'desktop.ini',
    '.thumbnails', '.thumbdata', '.trashed', '$RECYCLE.BIN',
    'System Volume Information',
])


def is_excluded(relative_path: str, excluded: frozenset[str] = EXCLUDED_NAMES) -> bool:
    """Check if any component of a path is a housekeeping name."""
    return any(part in excluded for part in relative_path.split('/'))


def plan_scan_roots(patterns: Sequence[str]) -> list[str]:
    """
    Derive the minimal set of directories to enumerate for a pattern set.

    For each pattern the literal part before the first glob metacharacter
    is cut back to its last '/', giving the deepest directory the pattern
    can match under. Directories nested inside another selected directory
    are dropped. '' is the sync root itself.

    Example:
        ['Photos/*.jpg', 'Photos/Sub/*.png'] -> ['Photos']
    """
    if not patterns:
        return ['']

    roots: set[str] = set()
    for pattern in patterns:
        literal = pattern[:first_glob_index(pattern)]
        directory = literal.rsplit('/', 1)[0] if '/' in literal else ''
        roots.add(directory.strip('/'))

    if '' in roots:
        return ['']

    selected = []
    for root in sorted(roots):
        if any(root.startswith(parent + '/') for parent in selected):
            continue
        selected.append(root)
    return selected


@dataclass
class InventoryFilter:
    """
    Applies the exclusion list and compiled patterns to raw entries.

    Directories are never filtered by pattern: they stay as traversal
    anchors unless excluded.
    """
    patterns: list[str] = field(default_factory=list)
    excluded_names: frozenset[str] = EXCLUDED_NAMES

    def __post_init__(self) -> None:
        self._matcher = GlobMatcher(self.patterns)

    def accepts(self, entry: RawEntry | FileRecord) -> bool:
        if is_excluded(entry.relative_path, self.excluded_names):
            return False
        if entry.is_directory:
            return True
        return self._matcher.matches(entry.relative_path)

    def apply(self, entries: Iterable[RawEntry]) -> list[FileRecord]:
        """Filter raw entries into records, dropping invalid paths."""
        records = []
        for entry in entries:
            if not self.accepts(entry):
                continue
            try:
                records.append(FileRecord.from_entry(entry))
            except ValueError as e:
                logging.warning(f"InventoryFilter - Skipping entry: {e}")
        return records


@dataclass
class ScanProgress:
    """Progress information for inventory building."""
    side: str
    phase: str  # 'listing', 'hashing'
    current_root: str
    entries_found: int


class InventoryBuilder:
    """
    Builds the inventory of one side.

    Features:
    - Enumerates only the planned scan roots
    - Merges overlapping listings (first occurrence wins)
    - Optional content hashing in a single batched provider call
    """

    def __init__(
        self,
        patterns: Optional[Sequence[str]] = None,
        excluded_names: frozenset[str] = EXCLUDED_NAMES
    ):
        self.patterns = list(patterns or [])
        self.filter = InventoryFilter(self.patterns, excluded_names)
        self.scan_roots = plan_scan_roots(self.patterns)
        self._cancelled = False

    def build(
        self,
        provider: StorageProvider,
        algorithm: Optional[HashAlgorithm] = None,
        progress_callback: Optional[Callable[[ScanProgress], None]] = None
    ) -> Inventory:
        """
        Scan a provider and return its filtered inventory.

        Args:
            provider: Side to enumerate
            algorithm: Attach content hashes with this algorithm if given
            progress_callback: Called after each scan root

        Returns:
            Inventory sorted by path
        """
        start_time = time.time()
        self._cancelled = False
        inventory = Inventory()

        for scan_root in self.scan_roots:
            if self._cancelled:
                logging.info(f"InventoryBuilder - Scan of {provider.name} cancelled")
                break

            entries = provider.list_entries(scan_root, recursive=True)
            for record in self.filter.apply(entries):
                inventory.add(record)

            if progress_callback:
                progress_callback(ScanProgress(
                    side=provider.name,
                    phase='listing',
                    current_root=scan_root,
                    entries_found=len(inventory),
                ))

        if algorithm is not None and not self._cancelled:
            self._attach_hashes(provider, inventory, algorithm)
            if progress_callback:
                progress_callback(ScanProgress(
                    side=provider.name,
                    phase='hashing',
                    current_root='',
                    entries_found=len(inventory),
                ))

        logging.info(
            f"InventoryBuilder - {provider.name}: {inventory.file_count} file(s) "
            f"under {len(self.scan_roots)} scan root(s) in {time.time() - start_time:.2f}s"
        )
        return inventory

    def cancel(self) -> None:
        """Cancel an ongoing scan."""
        self._cancelled = True

    def _attach_hashes(
        self,
        provider: StorageProvider,
        inventory: Inventory,
        algorithm: HashAlgorithm
    ) -> None:
        files = [r for r in inventory if not r.is_directory]
        digests = provider.hash_files([r.relative_path for r in files], algorithm)

        for record in files:
            digest = digests.get(record.relative_path)
            if digest:
                inventory.replace(FileRecord(
                    relative_path=record.relative_path,
                    size=record.size,
                    modified_time=record.modified_time,
                    is_directory=False,
                    content_hash=digest,
                ))
