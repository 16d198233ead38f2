"""
Folder synchronization module.

Provides functionality for:
- Inclusion pattern compilation and matching
- Scan planning and inventory building
- Inventory diffing (path/attribute and content-hash identity)
- Plan execution
"""

from droidsync.core.folder.patterns import (
    GlobMatcher,
    compile_patterns,
)
from droidsync.core.folder.scanner import (
    EXCLUDED_NAMES,
    InventoryBuilder,
    InventoryFilter,
    ScanProgress,
    plan_scan_roots,
)
from droidsync.core.folder.differ import (
    HashIndex,
    SyncDiffer,
    diff_inventories,
)
from droidsync.core.folder.sync import (
    SyncEngine,
    SyncOptions,
)

__all__ = [
    # Patterns
    'GlobMatcher',
    'compile_patterns',
    # Scanner
    'EXCLUDED_NAMES',
    'InventoryBuilder',
    'InventoryFilter',
    'ScanProgress',
    'plan_scan_roots',
    # Differ
    'HashIndex',
    'SyncDiffer',
    'diff_inventories',
    # Sync
    'SyncEngine',
    'SyncOptions',
]
