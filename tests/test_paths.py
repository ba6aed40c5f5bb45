"""Tests for env expansion and path helpers."""

from __future__ import annotations

import ntpath
import posixpath

import pytest

from scrub.core.paths import canonical, expand_env, has_glob, is_nested_or_equal


class TestExpandEnv:
    def test_windows_style(self):
        assert expand_env("%TEMP%\\x", {"TEMP": "C:\\Tmp"}) == "C:\\Tmp\\x"

    def test_windows_style_falls_back_to_upper_case(self):
        assert expand_env("%localappdata%\\pip", {"LOCALAPPDATA": "C:\\L"}) == "C:\\L\\pip"

    def test_windows_names_with_parentheses(self):
        env = {"ProgramFiles(x86)": "C:\\PF86"}
        assert expand_env("%ProgramFiles(x86)%\\App", env) == "C:\\PF86\\App"

    def test_posix_styles(self):
        env = {"HOME": "/home/u", "XDG_CACHE_HOME": "/home/u/.cache"}
        assert expand_env("$HOME/.npm", env) == "/home/u/.npm"
        assert expand_env("${XDG_CACHE_HOME}/pip", env) == "/home/u/.cache/pip"

    def test_unknown_variables_stay_verbatim(self):
        assert expand_env("%NOPE%\\x", {}) == "%NOPE%\\x"
        assert expand_env("$NOPE/x", {}) == "$NOPE/x"

    @pytest.mark.parametrize("raw, expected", [("~", "/home/u"), ("~/x", "/home/u/x"), ("/a/~b", "/a/~b")])
    def test_tilde(self, raw, expected):
        assert expand_env(raw, {"HOME": "/home/u"}) == expected

    def test_defaults_to_process_environment(self, monkeypatch):
        monkeypatch.setenv("SCRUB_PATHS_TEST", "/opt/x")
        assert expand_env("$SCRUB_PATHS_TEST/y") == "/opt/x/y"


class TestHelpers:
    def test_has_glob(self):
        assert has_glob("/a/*.log")
        assert has_glob("/a/file?.txt")
        assert has_glob("/a/[ab]")
        assert not has_glob("/a/b")

    def test_canonical_windows(self):
        assert canonical("C:/Users/Me/../Me/AppData", ntpath) == "c:\\users\\me\\appdata"

    def test_nesting(self):
        assert is_nested_or_equal("/a/b", "/a", posixpath)
        assert is_nested_or_equal("/a", "/a", posixpath)
        assert not is_nested_or_equal("/ab", "/a", posixpath)
        assert not is_nested_or_equal("/a", "/a/b", posixpath)
        assert is_nested_or_equal("c:\\x\\y", "c:\\x", ntpath)
