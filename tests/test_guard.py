"""Tests for the path guard."""

from __future__ import annotations

import ntpath
import os
import posixpath
from pathlib import Path

import pytest

from scrub.core.guard import (
    POSIX_NEVER_DELETE,
    WINDOWS_NEVER_DELETE,
    NeverDeleteSet,
    PathGuard,
    default_never_delete,
)
from scrub.errors import BlockReason, DeletionBlocked

needs_symlinks = pytest.mark.skipif(os.name == "nt", reason="symlinks need privileges on Windows")


def _reason(guard: PathGuard, path: str) -> BlockReason:
    with pytest.raises(DeletionBlocked) as excinfo:
        guard.validate(path)
    return excinfo.value.reason


class TestValidateBasics:
    @pytest.mark.parametrize("path", ["", "   ", "\t"])
    def test_rejects_empty(self, windows_guard, path):
        assert _reason(windows_guard, path) is BlockReason.EMPTY

    def test_rejects_relative(self, windows_guard):
        with pytest.raises(DeletionBlocked, match="absolute"):
            windows_guard.validate("relative\\x")

    @pytest.mark.parametrize("path", ["C:\\", "c:\\", "D:/", "\\\\server\\share"])
    def test_rejects_drive_roots(self, windows_guard, path):
        with pytest.raises(DeletionBlocked, match="drive root"):
            windows_guard.validate(path)

    def test_rejects_posix_root(self):
        guard = PathGuard(NeverDeleteSet(), flavour=posixpath)
        assert _reason(guard, "/") is BlockReason.DRIVE_ROOT
        assert _reason(guard, "//") is BlockReason.DRIVE_ROOT

    @pytest.mark.parametrize("path", ["C:\\a\\..\\..\\b", "C:/Temp/../Windows", "D:\\data\\..\\x"])
    def test_rejects_traversal(self, windows_guard, path):
        with pytest.raises(DeletionBlocked, match="traversal"):
            windows_guard.validate(path)

    def test_dotdot_inside_a_name_is_fine(self, windows_guard):
        windows_guard.validate("D:\\data\\file..tmp")

    @pytest.mark.parametrize("char", ["\x00", "\x07", "\n", "\x1b", "\x7f"])
    def test_rejects_control_characters(self, windows_guard, char):
        with pytest.raises(DeletionBlocked) as excinfo:
            windows_guard.validate(f"D:\\data\\bad{char}name")
        assert excinfo.value.reason is BlockReason.CONTROL_CHAR
        assert f"U+{ord(char):04X}" in str(excinfo.value)

    def test_allows_tab(self, windows_guard):
        windows_guard.validate("D:\\data\\odd\tname.tmp")

    def test_checks_run_in_order(self, windows_guard):
        # Relative *and* traversal: the earlier check wins.
        assert _reason(windows_guard, "..\\Windows") is BlockReason.NOT_ABSOLUTE

    @pytest.mark.parametrize(
        "path",
        ["C:\\ScrubTest\\file.tmp", "D:\\Projects\\app\\node_modules", "C:\\Temp\\cache.bin"],
    )
    def test_accepts_valid_paths(self, windows_guard, path):
        windows_guard.validate(path)


class TestNeverDelete:
    @pytest.mark.parametrize("protected", WINDOWS_NEVER_DELETE)
    def test_every_entry_is_blocked(self, windows_guard, protected):
        assert windows_guard.is_safe(protected) is False
        assert _reason(windows_guard, protected) is BlockReason.PROTECTED

    @pytest.mark.parametrize("protected", WINDOWS_NEVER_DELETE)
    def test_subdirectories_are_blocked(self, windows_guard, protected):
        nested = protected + "\\sub\\deeper\\file.dll"
        assert windows_guard.is_safe(nested) is False
        with pytest.raises(DeletionBlocked, match="protected"):
            windows_guard.validate(nested)

    @pytest.mark.parametrize(
        "path",
        ["c:\\windows", "C:\\WINDOWS", "c:\\WiNdOwS\\system32\\drivers", "c:/program files/app", "C:\\users\\me\\x"],
    )
    def test_case_insensitive(self, windows_guard, path):
        assert windows_guard.is_safe(path) is False
        with pytest.raises(DeletionBlocked):
            windows_guard.validate(path)

    @pytest.mark.parametrize("path", ["C:\\Windowsfoo\\x", "C:\\Windows.old", "C:\\Program Files Backup\\a", "D:\\Windows"])
    def test_prefix_is_separator_bounded(self, windows_guard, path):
        assert windows_guard.is_safe(path) is True

    def test_injected_set_replaces_defaults(self):
        guard = PathGuard(NeverDeleteSet(subtrees=("/srv/data",)), flavour=posixpath)
        assert guard.is_safe("/srv/data/db.sqlite") is False
        assert guard.is_safe("/srv/other") is True
        assert guard.is_safe("/etc/passwd") is True

    def test_exact_entries_protect_only_themselves(self):
        guard = PathGuard(NeverDeleteSet(exact=("/home",)), flavour=posixpath)
        assert guard.is_safe("/home") is False
        assert guard.is_safe("/HOME/") is False
        assert guard.is_safe("/home/alice/.cache/pip") is True

    def test_posix_defaults(self):
        guard = PathGuard(default_never_delete(posixpath), flavour=posixpath)
        for protected in POSIX_NEVER_DELETE:
            assert guard.is_safe(protected + "/x") is False
        assert guard.is_safe(str(Path.home())) is False
        assert guard.is_safe("/home") is False
        assert guard.is_safe("/tmp") is False
        assert guard.is_safe("/tmp/build-123/out.o") is True
        assert guard.is_safe("/var/cache/apt/archives/pkg.deb") is True

    @pytest.mark.parametrize("profile", ["/home/alice", "/home/alice/", "/Users/bob", "/HOME/Carol"])
    def test_every_user_profile_is_blocked(self, monkeypatch, profile):
        monkeypatch.setenv("HOME", "/root")
        guard = PathGuard(default_never_delete(posixpath), flavour=posixpath)

        assert guard.is_safe(profile) is False
        assert _reason(guard, profile) is BlockReason.PROTECTED

    def test_caches_inside_other_profiles_stay_cleanable(self, monkeypatch):
        monkeypatch.setenv("HOME", "/root")
        guard = PathGuard(default_never_delete(posixpath), flavour=posixpath)

        guard.validate("/home/alice/.cache/x")
        guard.validate("/Users/bob/Library/Caches/app")

    def test_mail_and_log_roots(self):
        guard = PathGuard(default_never_delete(posixpath), flavour=posixpath)
        assert guard.is_safe("/var/mail/alice") is False
        assert guard.is_safe("/var/log") is False
        assert guard.is_safe("/var/log/journal/abc") is True

    def test_profile_parents_only_block_direct_children(self):
        guard = PathGuard(NeverDeleteSet(profile_parents=("/srv/homes",)), flavour=posixpath)
        assert guard.is_safe("/srv/homes/dave") is False
        assert guard.is_safe("/srv/homes") is True
        assert guard.is_safe("/srv/homes/dave/tmp") is True

    def test_windows_defaults_selected_by_flavour(self):
        assert default_never_delete(ntpath).subtrees == WINDOWS_NEVER_DELETE
        assert "C:\\Users" in list(default_never_delete(ntpath))


@needs_symlinks
class TestSymlinks:
    def test_link_into_protected_tree_is_blocked(self, sandbox, sandbox_guard):
        target = sandbox / "protected" / "precious"
        target.mkdir(parents=True)
        link = sandbox / "innocent-looking"
        link.symlink_to(target)

        with pytest.raises(DeletionBlocked) as excinfo:
            sandbox_guard.validate(str(link))
        assert excinfo.value.reason is BlockReason.UNSAFE_LINK

    def test_dangling_link_fails_closed(self, sandbox, sandbox_guard):
        link = sandbox / "dangling"
        link.symlink_to(sandbox / "does-not-exist")

        with pytest.raises(DeletionBlocked) as excinfo:
            sandbox_guard.validate(str(link))
        assert excinfo.value.reason is BlockReason.UNRESOLVABLE_LINK

    def test_link_to_safe_target_passes(self, sandbox, sandbox_guard, make_file):
        target = make_file(sandbox / "cache" / "blob.bin")
        link = sandbox / "blob-link"
        link.symlink_to(target)
        sandbox_guard.validate(str(link))

    def test_guard_has_no_side_effects(self, sandbox, sandbox_guard, make_file):
        f = make_file(sandbox / "keep.txt")
        sandbox_guard.validate(str(f))
        assert f.exists()
