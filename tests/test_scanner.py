"""
Tests for scan planning, filtering and inventory building.
"""

import hashlib

from droidsync.core.folder.scanner import (
    InventoryBuilder,
    InventoryFilter,
    is_excluded,
    plan_scan_roots,
)
from droidsync.core.models import RawEntry
from droidsync.services.hashing import HashAlgorithm
from droidsync.services.providers import LocalProvider


class RecordingProvider(LocalProvider):
    """LocalProvider that remembers which scan roots were listed."""

    def __init__(self, root):
        super().__init__(root)
        self.listed = []

    def list_entries(self, scan_root='', recursive=True):
        self.listed.append(scan_root)
        return super().list_entries(scan_root, recursive)


class TestPlanScanRoots:
    """Tests for plan_scan_roots."""

    def test_descendant_roots_subsumed(self):
        assert plan_scan_roots(["Photos/*.jpg", "Photos/Sub/*.png"]) == ["Photos"]

    def test_no_patterns_scans_root(self):
        assert plan_scan_roots([]) == [""]

    def test_top_level_glob_scans_root(self):
        assert plan_scan_roots(["**/*"]) == [""]
        assert plan_scan_roots(["*.jpg", "Music/**/*"]) == [""]

    def test_independent_roots_kept(self):
        assert plan_scan_roots(["Music/**/*", "DCIM/Camera/*.jpg"]) == ["DCIM/Camera", "Music"]

    def test_prefix_without_separator_is_not_a_descendant(self):
        assert plan_scan_roots(["Music2/**/*", "Music/**/*"]) == ["Music", "Music2"]

    def test_nested_recursive_patterns(self):
        assert plan_scan_roots(["Music/Rock/**/*", "Music/**/*"]) == ["Music"]


class TestInventoryFilter:
    """Tests for exclusion and pattern filtering."""

    def test_housekeeping_names_excluded(self):
        assert is_excluded(".DS_Store")
        assert is_excluded("DCIM/.thumbnails/1.jpg")
        assert not is_excluded("DCIM/thumbnails.jpg")

    def test_directories_not_pattern_filtered(self):
        entry_filter = InventoryFilter(["Photos/*.jpg"])
        assert entry_filter.accepts(RawEntry("Photos/Sub", 0, 0, True))
        assert not entry_filter.accepts(RawEntry("Photos/Sub/a.png", 1, 0))
        assert not entry_filter.accepts(RawEntry("Photos/.trashed", 0, 0, True))

    def test_invalid_entries_dropped(self):
        records = InventoryFilter().apply([
            RawEntry("ok.txt", 1, 0),
            RawEntry("bad/../x.txt", 1, 0),
        ])
        assert [r.relative_path for r in records] == ["ok.txt"]


class TestInventoryBuilder:
    """Tests for InventoryBuilder against a local directory."""

    def _populate(self, root, make_file):
        make_file(root, "Photos/a.jpg", b"aaa")
        make_file(root, "Photos/b.png", b"bb")
        make_file(root, "Photos/Sub/c.png", b"c")
        make_file(root, "Photos/.DS_Store", b"junk")
        make_file(root, "Music/x.mp3", b"xxxx")

    def test_only_planned_roots_listed(self, local_dir, make_file):
        self._populate(local_dir, make_file)
        provider = RecordingProvider(local_dir)

        builder = InventoryBuilder(["Photos/*.jpg", "Photos/Sub/*.png"])
        inventory = builder.build(provider)

        assert provider.listed == ["Photos"]
        assert list(inventory.files()) == ["Photos/Sub/c.png", "Photos/a.jpg"]
        assert "Photos/Sub" in inventory.directories()

    def test_no_patterns_lists_everything(self, local_dir, make_file):
        self._populate(local_dir, make_file)
        inventory = InventoryBuilder().build(LocalProvider(local_dir))

        assert set(inventory.files()) == {
            "Music/x.mp3", "Photos/a.jpg", "Photos/b.png", "Photos/Sub/c.png",
        }
        assert inventory.total_size == 3 + 2 + 1 + 4

    def test_missing_scan_root_is_empty(self, local_dir):
        inventory = InventoryBuilder(["Nowhere/**/*"]).build(LocalProvider(local_dir))
        assert len(inventory) == 0

    def test_hashes_attached(self, local_dir, make_file):
        make_file(local_dir, "a.txt", b"hello")
        inventory = InventoryBuilder().build(LocalProvider(local_dir), HashAlgorithm.MD5)

        assert inventory.get("a.txt").content_hash == hashlib.md5(b"hello").hexdigest()

    def test_progress_reported(self, local_dir, make_file):
        make_file(local_dir, "a.txt")
        events = []

        InventoryBuilder().build(LocalProvider(local_dir), HashAlgorithm.SHA1, events.append)

        assert [e.phase for e in events] == ["listing", "hashing"]
        assert events[-1].side == "local"
        assert events[-1].entries_found == 1
