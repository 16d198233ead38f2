"""
Tests for the diff engine.

Verifies that:
- Attribute mode compares by size and source recency
- delete_missing only prunes on one-way syncs
- Content mode turns moved files into single renames
- Plans are sorted and carry correct byte totals
"""

import pytest

from droidsync.core.folder.differ import HashIndex, SyncDiffer, diff_inventories
from droidsync.core.models import (
    ActionTarget,
    FileRecord,
    IdentityMode,
    Inventory,
    SyncActionKind,
    SyncDirection,
)


L2R = SyncDirection.LOCAL_TO_REMOTE
R2L = SyncDirection.REMOTE_TO_LOCAL
BOTH = SyncDirection.BIDIRECTIONAL


def rec(path, size=1, mtime=0, digest=None, is_dir=False):
    return FileRecord(path, 0 if is_dir else size, mtime, is_dir, digest)


def inv(*records):
    return Inventory(records)


def simplify(actions):
    return [(a.kind, a.target, a.file_path) for a in actions]


class TestAttributeMode:
    """PATH_ATTRIBUTES identity."""

    def test_missing_file_copied(self):
        actions = SyncDiffer(L2R).diff(inv(rec("a", size=10, mtime=5)), inv())

        assert simplify(actions) == [(SyncActionKind.COPY, ActionTarget.TO_REMOTE, "a")]
        assert actions[0].size == 10
        assert actions[0].modified_time == 5

    def test_equal_files_no_action(self):
        local = inv(rec("a", size=3, mtime=7))
        remote = inv(rec("a", size=3, mtime=7))
        assert SyncDiffer(L2R).diff(local, remote) == []

    def test_newer_source_updates(self):
        actions = SyncDiffer(L2R).diff(inv(rec("a", mtime=9)), inv(rec("a", mtime=3)))
        assert simplify(actions) == [(SyncActionKind.UPDATE, ActionTarget.TO_REMOTE, "a")]

    def test_older_source_same_size_left_alone(self):
        assert SyncDiffer(L2R).diff(inv(rec("a", mtime=3)), inv(rec("a", mtime=9))) == []

    def test_size_difference_updates(self):
        actions = SyncDiffer(L2R).diff(inv(rec("a", size=2, mtime=3)), inv(rec("a", size=5, mtime=9)))
        assert simplify(actions) == [(SyncActionKind.UPDATE, ActionTarget.TO_REMOTE, "a")]

    def test_destination_only_file_kept_without_delete_missing(self):
        assert SyncDiffer(L2R).diff(inv(), inv(rec("extra"))) == []

    def test_destination_only_file_deleted(self):
        actions = SyncDiffer(L2R, delete_missing=True).diff(inv(), inv(rec("extra")))
        assert simplify(actions) == [(SyncActionKind.DELETE, ActionTarget.TO_REMOTE, "extra")]
        assert actions[0].size == 0

    def test_delete_missing_one_way(self):
        """Source side never loses files; reversing prunes the destination."""
        local = inv(rec("a"), rec("b"))
        remote = inv(rec("a"))

        forward = SyncDiffer(L2R, delete_missing=True).diff(local, remote)
        assert simplify(forward) == [(SyncActionKind.COPY, ActionTarget.TO_REMOTE, "b")]

        backward = SyncDiffer(R2L, delete_missing=True).diff(local, remote)
        assert simplify(backward) == [(SyncActionKind.DELETE, ActionTarget.TO_LOCAL, "b")]

    def test_bidirectional_copies_both_ways(self):
        actions = SyncDiffer(BOTH).diff(inv(rec("a")), inv(rec("b")))
        assert simplify(actions) == [
            (SyncActionKind.COPY, ActionTarget.TO_REMOTE, "a"),
            (SyncActionKind.COPY, ActionTarget.TO_LOCAL, "b"),
        ]

    def test_bidirectional_newer_side_wins(self):
        actions = SyncDiffer(BOTH).diff(inv(rec("a", mtime=1)), inv(rec("a", mtime=2)))
        assert simplify(actions) == [(SyncActionKind.UPDATE, ActionTarget.TO_LOCAL, "a")]

    def test_bidirectional_tie_goes_to_local(self):
        actions = SyncDiffer(BOTH).diff(inv(rec("a", size=1, mtime=4)), inv(rec("a", size=2, mtime=4)))
        assert simplify(actions) == [(SyncActionKind.UPDATE, ActionTarget.TO_REMOTE, "a")]
        assert actions[0].size == 1

    def test_bidirectional_ignores_delete_missing(self):
        differ = SyncDiffer(BOTH, delete_missing=True)
        assert not differ.delete_missing
        actions = differ.diff(inv(rec("a")), inv())
        assert simplify(actions) == [(SyncActionKind.COPY, ActionTarget.TO_REMOTE, "a")]

    def test_file_over_directory_skipped(self):
        local = inv(rec("photos"))
        remote = inv(rec("photos", is_dir=True), rec("photos/x.jpg"))

        actions = SyncDiffer(BOTH).diff(local, remote)

        assert simplify(actions) == [
            (SyncActionKind.SKIP, None, "photos"),
            (SyncActionKind.COPY, ActionTarget.TO_LOCAL, "photos/x.jpg"),
        ]

    def test_directories_not_compared(self):
        assert SyncDiffer(L2R).diff(inv(rec("dir", is_dir=True)), inv()) == []

    def test_actions_sorted(self):
        local = inv(rec("c"), rec("a"), rec("b/z"), rec("b/a"))
        actions = SyncDiffer(L2R).diff(local, inv())
        assert [a.file_path for a in actions] == ["a", "b/a", "b/z", "c"]


class TestSymmetry:
    """Swapping sides and direction mirrors the plan."""

    @pytest.mark.parametrize("mode", list(IdentityMode))
    def test_mirror(self, mode):
        left = inv(rec("a", 1, 5, "h1"), rec("b", 2, 9, "h2"), rec("moved", 3, 9, "h3"))
        right = inv(rec("a", 1, 5, "h1"), rec("b", 4, 1, "h4"), rec("old", 3, 1, "h3"), rec("extra"))

        forward = SyncDiffer(L2R, mode, delete_missing=True).diff(left, right)
        backward = SyncDiffer(R2L, mode, delete_missing=True).diff(right, left)

        assert forward
        assert [(a.kind, a.file_path, a.rename_from) for a in forward] == \
            [(a.kind, a.file_path, a.rename_from) for a in backward]
        assert all(f.target == b.target.opposite for f, b in zip(forward, backward))


class TestContentMode:
    """CONTENT_HASH identity."""

    def test_rename_detected(self):
        local = inv(rec("a.txt", mtime=10, digest="H"))
        remote = inv(rec("b.txt", mtime=5, digest="H"))

        actions = SyncDiffer(BOTH, IdentityMode.CONTENT_HASH).diff(local, remote)

        assert len(actions) == 1
        action = actions[0]
        assert action.kind == SyncActionKind.RENAME
        assert action.target == ActionTarget.TO_REMOTE
        assert action.rename_from == "b.txt"
        assert action.file_path == "a.txt"

    def test_rename_toward_newer_side(self):
        local = inv(rec("a.txt", mtime=1, digest="H"))
        remote = inv(rec("b.txt", mtime=5, digest="H"))

        actions = SyncDiffer(BOTH, IdentityMode.CONTENT_HASH).diff(local, remote)

        assert simplify(actions) == [(SyncActionKind.RENAME, ActionTarget.TO_LOCAL, "b.txt")]
        assert actions[0].rename_from == "a.txt"

    def test_one_way_rename_follows_direction(self):
        local = inv(rec("a.txt", mtime=1, digest="H"))
        remote = inv(rec("b.txt", mtime=5, digest="H"))

        actions = SyncDiffer(L2R, IdentityMode.CONTENT_HASH).diff(local, remote)

        assert simplify(actions) == [(SyncActionKind.RENAME, ActionTarget.TO_REMOTE, "a.txt")]

    def test_same_content_same_path_no_action(self):
        local = inv(rec("a", mtime=1, digest="H"))
        remote = inv(rec("a", mtime=99, digest="H"))
        assert SyncDiffer(BOTH, IdentityMode.CONTENT_HASH).diff(local, remote) == []

    def test_same_path_different_content_updates(self):
        local = inv(rec("a", size=4, mtime=8, digest="H1"))
        remote = inv(rec("a", size=4, mtime=2, digest="H2"))

        actions = SyncDiffer(BOTH, IdentityMode.CONTENT_HASH).diff(local, remote)

        assert simplify(actions) == [(SyncActionKind.UPDATE, ActionTarget.TO_REMOTE, "a")]

    def test_duplicates_reconciled(self):
        """Extra same-hash copies do not produce actions."""
        local = inv(rec("a", digest="H"), rec("copy-of-a", digest="H"))
        remote = inv(rec("a", digest="H"))
        assert SyncDiffer(BOTH, IdentityMode.CONTENT_HASH).diff(local, remote) == []

    def test_unique_content_copied(self):
        local = inv(rec("new.jpg", size=7, digest="N"))
        actions = SyncDiffer(L2R, IdentityMode.CONTENT_HASH).diff(local, inv())
        assert simplify(actions) == [(SyncActionKind.COPY, ActionTarget.TO_REMOTE, "new.jpg")]

    def test_orphaned_content_deleted(self):
        remote = inv(rec("old.jpg", digest="O"))
        actions = SyncDiffer(L2R, IdentityMode.CONTENT_HASH, delete_missing=True).diff(inv(), remote)
        assert simplify(actions) == [(SyncActionKind.DELETE, ActionTarget.TO_REMOTE, "old.jpg")]

    def test_rename_not_emitted_when_old_path_in_use(self):
        """Renaming b away would lose the different file the source keeps at b."""
        local = inv(rec("a", mtime=5, digest="H"), rec("b", mtime=5, digest="X"))
        remote = inv(rec("b", mtime=1, digest="H"))

        actions = SyncDiffer(L2R, IdentityMode.CONTENT_HASH).diff(local, remote)

        assert SyncActionKind.RENAME not in {a.kind for a in actions}
        assert simplify(actions) == [
            (SyncActionKind.COPY, ActionTarget.TO_REMOTE, "a"),
            (SyncActionKind.UPDATE, ActionTarget.TO_REMOTE, "b"),
        ]

    def test_rename_not_emitted_over_occupied_path(self):
        """A newer different file at the new path must not be overwritten by a move."""
        local = inv(rec("a.txt", mtime=10, digest="H"))
        remote = inv(rec("b.txt", mtime=5, digest="H"), rec("a.txt", mtime=100, digest="G"))

        actions = SyncDiffer(BOTH, IdentityMode.CONTENT_HASH).diff(local, remote)

        assert SyncActionKind.RENAME not in {a.kind for a in actions}
        assert simplify(actions) == [
            (SyncActionKind.UPDATE, ActionTarget.TO_LOCAL, "a.txt"),
            (SyncActionKind.COPY, ActionTarget.TO_LOCAL, "b.txt"),
        ]

    def test_unhashed_records_fall_back_to_attributes(self):
        local = inv(rec("a", size=1, mtime=9))
        remote = inv(rec("a", size=1, mtime=2))
        actions = SyncDiffer(L2R, IdentityMode.CONTENT_HASH).diff(local, remote)
        assert simplify(actions) == [(SyncActionKind.UPDATE, ActionTarget.TO_REMOTE, "a")]


class TestHashIndex:
    """Tests for the digest multi-map."""

    def test_groups_duplicates(self):
        index = HashIndex([rec("b", digest="H"), rec("a", digest="H"), rec("c", digest="K"), rec("d")])

        assert len(index) == 2
        assert [r.relative_path for r in index["H"]] == ["a", "b"]
        assert "K" in index
        assert index["missing"] == []


class TestSummary:
    """Tests for byte totals and counts."""

    def test_transfer_bytes_exclude_delete_rename_skip(self):
        local = inv(rec("new", size=10, digest="N"), rec("upd", size=20, mtime=9, digest="U1"),
                    rec("moved", size=40, digest="M"), rec("clash", size=5, digest="C"))
        remote = inv(rec("upd", size=20, mtime=1, digest="U2"), rec("was", size=40, digest="M"),
                     rec("gone", size=80, digest="G"), rec("clash", is_dir=True))

        actions, summary = diff_inventories(local, remote, L2R, IdentityMode.CONTENT_HASH, True)

        assert summary.copy_count == 1
        assert summary.update_count == 1
        assert summary.rename_count == 1
        assert summary.delete_count == 1
        assert summary.skip_count == 1
        assert summary.total_transfer_bytes == 30
        assert summary.total_transfer_bytes == sum(a.size for a in actions if a.is_transfer)
        assert summary.total_actions == len(actions)
