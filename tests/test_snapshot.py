"""Tests for snapshot module."""

import os
import time

import pytest
from pathlib import Path

from snapwatch.identity import FileIdProvider, StatFileIdProvider
from snapwatch.ignore import IgnoreFilter
from snapwatch.models import ChangeKind, FileSystemChange
from snapwatch.snapshot import FileSystemEntry, Snapshot

LATENCY = 0.05
DIR = Path("/watched")


def entry(file_id, name, mtime=1000.0):
    return FileSystemEntry(file_id, DIR / name, mtime)


def snap(*entries):
    return Snapshot(DIR, entries)


def kinds(changes):
    return [c.kind for c in changes]


class TestSnapshotConstruction:
    """Tests for building snapshots."""

    def test_entries_sorted_by_id(self):
        snapshot = snap(entry(3, "c"), entry(1, "a"), entry(2, "b"))
        assert [e.id for e in snapshot] == [1, 2, 3]

    def test_empty(self):
        snapshot = Snapshot.empty(DIR)
        assert len(snapshot) == 0
        assert snapshot.directory == DIR

    def test_build_lists_immediate_children(self, tmp_path):
        (tmp_path / "a.txt").write_text("a")
        sub = tmp_path / "sub"
        sub.mkdir()
        (sub / "nested.txt").write_text("nested")

        snapshot = Snapshot.build(tmp_path)

        paths = {e.path for e in snapshot}
        assert paths == {tmp_path / "a.txt", sub}

    def test_build_marks_directories(self, tmp_path):
        (tmp_path / "a.txt").write_text("a")
        (tmp_path / "sub").mkdir()

        snapshot = Snapshot.build(tmp_path)

        assert {e.path.name: e.is_directory for e in snapshot} == {"a.txt": False, "sub": True}

    def test_build_uses_stat_identity(self, tmp_path):
        target = tmp_path / "a.txt"
        target.write_text("a")
        st = os.lstat(target)

        snapshot = Snapshot.build(tmp_path)

        assert snapshot.entries[0].id == (st.st_dev, st.st_ino)
        assert snapshot.entries[0].last_modified == st.st_mtime

    def test_build_missing_directory_is_empty(self, tmp_path):
        snapshot = Snapshot.build(tmp_path / "missing")
        assert len(snapshot) == 0

    def test_build_file_instead_of_directory_is_empty(self, tmp_path):
        target = tmp_path / "file.txt"
        target.write_text("x")
        assert len(Snapshot.build(target)) == 0

    def test_build_ignored_directory_is_empty(self, tmp_path):
        ignored = tmp_path / "build"
        ignored.mkdir()
        (ignored / "out.o").write_text("x")

        snapshot = Snapshot.build(ignored, ignore=IgnoreFilter(tmp_path, ["build"]))

        assert len(snapshot) == 0

    def test_build_name_filter_keeps_directories(self, tmp_path):
        (tmp_path / "keep.md").write_text("x")
        (tmp_path / "skip.txt").write_text("x")
        (tmp_path / "folder.txt").mkdir()

        snapshot = Snapshot.build(tmp_path, name_filter="*.md")

        paths = {e.path for e in snapshot}
        assert paths == {tmp_path / "keep.md", tmp_path / "folder.txt"}

    def test_build_with_custom_identity(self, tmp_path):
        (tmp_path / "b").write_text("x")
        (tmp_path / "a").write_text("x")

        class NameIds(FileIdProvider):
            def get_id(self, path, stat_result=None):
                return path.name

        snapshot = Snapshot.build(tmp_path, identity=NameIds())

        assert [e.id for e in snapshot] == ["a", "b"]

    def test_contains(self):
        snapshot = snap(entry(1, "a"))
        assert DIR / "a" in snapshot
        assert DIR / "b" not in snapshot

    def test_equality(self):
        assert snap(entry(1, "a")) == snap(entry(1, "a"))
        assert snap(entry(1, "a")) != snap(entry(1, "b"))


class TestSnapshotDiff:
    """Tests for Snapshot.diff."""

    def test_diff_with_itself_is_empty(self):
        snapshot = snap(entry(1, "a"), entry(2, "b"), entry(3, "c"))
        assert snapshot.diff(snapshot, LATENCY) == []

    def test_diff_of_empty_snapshots_is_empty(self):
        assert Snapshot.empty(DIR).diff(Snapshot.empty(DIR), LATENCY) == []

    def test_old_empty_all_adds(self):
        new = snap(entry(2, "b"), entry(1, "a"))
        changes = Snapshot.empty(DIR).diff(new, LATENCY)

        assert changes == [FileSystemChange.add(DIR / "a"), FileSystemChange.add(DIR / "b")]

    def test_new_empty_all_deletes(self):
        old = snap(entry(1, "b"), entry(2, "a"))
        changes = old.diff(Snapshot.empty(DIR), LATENCY)

        assert changes == [FileSystemChange.delete(DIR / "a"), FileSystemChange.delete(DIR / "b")]

    def test_fresh_entry_is_one_add(self):
        old = snap(entry(1, "a"), entry(3, "c"))
        new = snap(entry(1, "a"), entry(2, "b"), entry(3, "c"))

        assert old.diff(new, LATENCY) == [FileSystemChange.add(DIR / "b")]

    def test_missing_entry_is_one_delete(self):
        old = snap(entry(1, "a"), entry(2, "b"), entry(3, "c"))
        new = snap(entry(1, "a"), entry(3, "c"))

        assert old.diff(new, LATENCY) == [FileSystemChange.delete(DIR / "b")]

    def test_same_id_new_path_is_one_rename(self):
        old = snap(entry(1, "a"))
        new = snap(entry(1, "z"))

        assert old.diff(new, LATENCY) == [FileSystemChange.rename(DIR / "a", DIR / "z")]

    def test_rename_and_modify_together(self):
        old = snap(entry(1, "a", mtime=1000.0))
        new = snap(entry(1, "z", mtime=1001.0))

        changes = old.diff(new, LATENCY)

        assert changes == [
            FileSystemChange.rename(DIR / "a", DIR / "z"),
            FileSystemChange.modify(DIR / "z"),
        ]

    def test_modify_requires_advance_beyond_latency(self):
        old = snap(entry(1, "a", mtime=1000.0))

        assert old.diff(snap(entry(1, "a", mtime=1000.0 + LATENCY / 2)), LATENCY) == []
        assert old.diff(snap(entry(1, "a", mtime=1000.0 + LATENCY * 2)), LATENCY) == [
            FileSystemChange.modify(DIR / "a")
        ]

    def test_older_mtime_is_not_modify(self):
        old = snap(entry(1, "a", mtime=1000.0))
        new = snap(entry(1, "a", mtime=900.0))

        assert old.diff(new, LATENCY) == []

    def test_delete_and_recreate_same_name_is_delete_and_add(self):
        old = snap(entry(1, "a"))
        new = snap(entry(2, "a"))

        assert sorted(kinds(old.diff(new, LATENCY)), key=lambda k: k.value) == [
            ChangeKind.ADD,
            ChangeKind.DELETE,
        ]

    def test_tail_entries_emitted_en_masse(self):
        old = snap(entry(1, "a"), entry(2, "b"))
        new = snap(entry(1, "a"), entry(5, "e"), entry(6, "f"))

        changes = old.diff(new, LATENCY)

        assert changes == [
            FileSystemChange.delete(DIR / "b"),
            FileSystemChange.add(DIR / "e"),
            FileSystemChange.add(DIR / "f"),
        ]

    def test_result_sorted_by_path(self):
        old = snap(entry(1, "z"), entry(2, "m"))
        new = snap(entry(3, "a"), entry(4, "q"))

        changes = old.diff(new, LATENCY)

        assert [c.path.name for c in changes] == ["a", "m", "q", "z"]

    def test_symmetry_of_adds_and_deletes(self):
        old = snap(entry(1, "a"), entry(2, "b"), entry(4, "d"))
        new = snap(entry(2, "b"), entry(3, "c"), entry(5, "e"))

        forward = old.diff(new, LATENCY)
        backward = new.diff(old, LATENCY)

        swap = {ChangeKind.ADD: ChangeKind.DELETE, ChangeKind.DELETE: ChangeKind.ADD}
        swapped = {FileSystemChange(swap[c.kind], c.path) for c in backward}
        assert set(forward) == swapped

    def test_diff_real_directory_rename(self, tmp_path):
        (tmp_path / "a.txt").write_text("a")
        before = Snapshot.build(tmp_path)

        (tmp_path / "a.txt").rename(tmp_path / "b.txt")
        after = Snapshot.build(tmp_path)

        assert before.diff(after, LATENCY) == [
            FileSystemChange.rename(tmp_path / "a.txt", tmp_path / "b.txt")
        ]

    def test_diff_real_directory_modify(self, tmp_path):
        target = tmp_path / "a.txt"
        target.write_text("a")
        before = Snapshot.build(tmp_path)

        later = time.time() + 10
        os.utime(target, (later, later))
        after = Snapshot.build(tmp_path)

        assert before.diff(after, LATENCY) == [FileSystemChange.modify(target)]

    def test_folder_mtime_advance_is_not_modify(self):
        before = snap(FileSystemEntry(1, DIR / "sub", 1000.0, True))
        after = snap(FileSystemEntry(1, DIR / "sub", 1010.0, True))

        assert before.diff(after, LATENCY) == []

    def test_folder_rename_still_reported(self):
        before = snap(FileSystemEntry(1, DIR / "sub", 1000.0, True))
        after = snap(FileSystemEntry(1, DIR / "renamed", 1010.0, True))

        assert before.diff(after, LATENCY) == [FileSystemChange.rename(DIR / "sub", DIR / "renamed")]

    def test_child_added_to_real_folder_is_not_modify(self, tmp_path):
        sub = tmp_path / "sub"
        sub.mkdir()
        before = Snapshot.build(tmp_path)

        (sub / "new.txt").write_text("x")
        later = time.time() + 10
        os.utime(sub, (later, later))
        after = Snapshot.build(tmp_path)

        assert before.diff(after, LATENCY) == []


class TestStatFileIdProvider:
    """Tests for the default identity provider."""

    def test_stable_across_rename(self, tmp_path):
        provider = StatFileIdProvider()
        original = tmp_path / "a"
        original.write_text("x")
        before = provider.get_id(original)

        renamed = tmp_path / "b"
        original.rename(renamed)

        assert provider.get_id(renamed) == before

    def test_distinct_for_distinct_files(self, tmp_path):
        provider = StatFileIdProvider()
        (tmp_path / "a").write_text("x")
        (tmp_path / "b").write_text("x")

        assert provider.get_id(tmp_path / "a") != provider.get_id(tmp_path / "b")

    def test_uses_given_stat_result(self, tmp_path):
        provider = StatFileIdProvider()
        (tmp_path / "a").write_text("x")
        st = os.lstat(tmp_path / "a")

        assert provider.get_id(tmp_path / "does-not-matter", st) == (st.st_dev, st.st_ino)

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            StatFileIdProvider().get_id(tmp_path / "missing")
