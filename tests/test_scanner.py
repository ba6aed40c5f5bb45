"""Tests for the scan engine."""

from __future__ import annotations

import os
import posixpath
import threading

import pytest

from scrub.catalog import scan_environ
from scrub.core import scanner
from scrub.core.scanner import expand_target_path, scan_all, scan_target, walk_files
from scrub.core.whitelist import Whitelist
from scrub.models import CleanTarget
from scrub.utils import CancelToken


def _target(name, *paths, **kwargs):
    return CleanTarget(name=name, paths=tuple(str(p) for p in paths), description=f"{name} files", **kwargs)


@pytest.fixture
def temp_dir(tmp_path, make_file):
    root = tmp_path / "Temp"
    make_file(root / "a.tmp", 10)
    make_file(root / "b.tmp", 20)
    make_file(root / "c.tmp", 30)
    return root


class TestScanAll:
    def test_temp_target_with_whitelisted_file(self, temp_dir, whitelist):
        whitelist.add(str(temp_dir / "b.tmp"))
        target = _target("Temp", "%TEMP%")

        results = scan_all([target], whitelist, False, environ={"TEMP": str(temp_dir)})

        assert len(results) == 1
        result = results[0]
        assert result.category == "Temp"
        assert result.item_count == 2
        assert sorted(item.size_bytes for item in result.items) == [10, 30]
        assert result.total_size == 40
        assert all(item.category == "user" for item in result.items)
        assert str(temp_dir / "b.tmp") not in {item.path for item in result.items}

    def test_privileged_target_skipped_without_privilege(self, temp_dir):
        target = _target("System", temp_dir, requires_elevated_privilege=True, category="system")

        assert scan_all([target], None, False) == []
        assert [r.category for r in scan_all([target], None, True)] == ["System"]

    def test_empty_target_contributes_no_result(self, tmp_path, temp_dir):
        empty = tmp_path / "empty"
        empty.mkdir()
        targets = [
            _target("Missing", tmp_path / "does-not-exist"),
            _target("Empty", empty),
            _target("Temp", temp_dir),
        ]

        assert [r.category for r in scan_all(targets, None, False)] == ["Temp"]

    def test_results_sorted_by_target_name(self, tmp_path, make_file):
        targets = []
        for name in ("zeta", "alpha", "mid"):
            make_file(tmp_path / name / "f.bin", 4)
            targets.append(_target(name, tmp_path / name))

        results = scan_all(targets, None, False)

        assert [r.category for r in results] == ["alpha", "mid", "zeta"]

    def test_many_targets_concurrently(self, tmp_path, make_file):
        targets = []
        for i in range(20):
            for j in range(5):
                make_file(tmp_path / f"t{i:02d}" / f"f{j}.bin", i + 1)
            targets.append(_target(f"t{i:02d}", tmp_path / f"t{i:02d}"))

        results = scan_all(targets, None, False, max_workers=4)

        assert len(results) == 20
        for i, result in enumerate(results):
            assert result.item_count == 5
            assert result.total_size == 5 * (i + 1)

    def test_failing_target_does_not_abort_others(self, temp_dir, monkeypatch):
        real_scan_target = scanner.scan_target
        events = []

        def flaky(target, *args, **kwargs):
            if target.name == "Bad":
                raise RuntimeError("boom")
            return real_scan_target(target, *args, **kwargs)

        monkeypatch.setattr(scanner, "scan_target", flaky)
        targets = [_target("Bad", temp_dir), _target("Good", temp_dir)]

        results = scan_all(targets, None, False, on_progress=lambda name, status: events.append((name, status)))

        assert [r.category for r in results] == ["Good"]
        assert ("Bad", "error") in events
        assert ("Good", "done") in events

    def test_callbacks(self, temp_dir):
        seen = []
        lock = threading.Lock()

        def on_result(result):
            with lock:
                seen.append(result.category)

        scan_all([_target("Temp", temp_dir)], None, False, on_result=on_result)

        assert seen == ["Temp"]

    def test_cancelled_before_start(self, temp_dir):
        token = CancelToken()
        token.cancel()

        assert scan_all([_target("Temp", temp_dir)], None, False, cancel=token) == []

    def test_scan_never_deletes(self, temp_dir):
        scan_all([_target("Temp", temp_dir)], None, True)
        assert sorted(p.name for p in temp_dir.iterdir()) == ["a.tmp", "b.tmp", "c.tmp"]

    def test_totals_match_items(self, tmp_path, make_file):
        make_file(tmp_path / "mix" / "a", 1)
        make_file(tmp_path / "mix" / "deep" / "er" / "b", 1000)
        results = scan_all([_target("Mix", tmp_path / "mix")], None, False)

        for result in results:
            assert result.total_size == sum(i.size_bytes for i in result.items)
            assert result.item_count == len(result.items)
        assert results[0].total_size == 1001

    def test_whitelist_and_scan_share_xdg_default(self, tmp_path, monkeypatch, make_file):
        monkeypatch.delenv("XDG_CACHE_HOME", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        make_file(tmp_path / ".cache" / "pip" / "a.bin", 10)
        env = scan_environ()
        wl = Whitelist(["${XDG_CACHE_HOME}/pip/*"], flavour=posixpath, environ=env)

        assert scan_all([_target("Pip", "${XDG_CACHE_HOME}/pip")], wl, False, environ=env) == []


class TestScanTarget:
    def test_glob_paths(self, tmp_path, make_file):
        make_file(tmp_path / "profiles" / "one" / "cache2" / "x", 3)
        make_file(tmp_path / "profiles" / "two" / "cache2" / "y", 5)
        make_file(tmp_path / "profiles" / "two" / "prefs.js", 100)

        items = scan_target(_target("Firefox", tmp_path / "profiles" / "*" / "cache2", category="browser"))

        assert sorted(i.size_bytes for i in items) == [3, 5]
        assert {i.category for i in items} == {"browser"}

    def test_single_file_path(self, tmp_path, make_file):
        f = make_file(tmp_path / "crash.dmp", 64)
        items = scan_target(_target("Dumps", f))
        assert [(i.path, i.size_bytes) for i in items] == [(str(f), 64)]

    def test_whitelisted_subtree(self, tmp_path, make_file):
        make_file(tmp_path / "cache" / "keep" / "a", 1)
        make_file(tmp_path / "cache" / "keep" / "nested" / "b", 1)
        make_file(tmp_path / "cache" / "drop" / "c", 1)
        wl = Whitelist([str(tmp_path / "cache" / "keep")], flavour=posixpath)

        items = scan_target(_target("Cache", tmp_path / "cache"), wl)

        assert [os.path.basename(i.path) for i in items] == ["c"]

    @pytest.mark.skipif(os.name == "nt", reason="symlinks need privileges on Windows")
    def test_symlinks_are_not_followed(self, tmp_path, make_file):
        outside = make_file(tmp_path / "outside" / "big.bin", 1000)
        make_file(tmp_path / "cache" / "real.bin", 1)
        (tmp_path / "cache" / "link.bin").symlink_to(outside)
        (tmp_path / "cache" / "linkdir").symlink_to(outside.parent, target_is_directory=True)

        items = scan_target(_target("Cache", tmp_path / "cache"))

        assert [os.path.basename(i.path) for i in items] == ["real.bin"]

    def test_unreadable_directory_is_skipped(self, tmp_path, make_file, monkeypatch):
        make_file(tmp_path / "cache" / "ok" / "a", 2)
        make_file(tmp_path / "cache" / "locked" / "b", 2)
        locked = str(tmp_path / "cache" / "locked")
        real_scandir = os.scandir

        def guarded_scandir(path="."):
            if os.fspath(path) == locked:
                raise PermissionError(13, "Permission denied", locked)
            return real_scandir(path)

        monkeypatch.setattr(scanner.os, "scandir", guarded_scandir)

        items = scan_target(_target("Cache", tmp_path / "cache"))

        assert [os.path.basename(i.path) for i in items] == ["a"]


class TestHelpers:
    def test_expand_target_path_falls_back_to_literal(self, tmp_path):
        missing = str(tmp_path / "nothing-here")
        assert expand_target_path(missing) == [missing]

    def test_expand_target_path_sorted(self, tmp_path):
        for name in ("c", "a", "b"):
            (tmp_path / name).mkdir()
        assert expand_target_path(str(tmp_path / "*")) == [str(tmp_path / n) for n in ("a", "b", "c")]

    def test_expand_target_path_env(self, tmp_path):
        assert expand_target_path("$ROOT/x", {"ROOT": str(tmp_path)}) == [str(tmp_path / "x")]

    def test_walk_files_order_is_deterministic(self, tmp_path, make_file):
        for name in ("b", "a", "sub/c"):
            make_file(tmp_path / "w" / name, 1)
        first = [i.path for i in walk_files(str(tmp_path / "w"), "user", "")]
        second = [i.path for i in walk_files(str(tmp_path / "w"), "user", "")]
        assert first == second
        assert len(first) == 3

    def test_walk_files_honours_cancel(self, tmp_path, make_file):
        make_file(tmp_path / "w" / "a", 1)
        token = CancelToken()
        token.cancel()
        assert walk_files(str(tmp_path / "w"), "user", "", cancel=token) == []
