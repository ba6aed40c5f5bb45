"""Shared test fixtures."""

from __future__ import annotations

import ntpath
import posixpath

import pytest

from scrub.core.guard import NeverDeleteSet, PathGuard
from scrub.core.whitelist import Whitelist


@pytest.fixture(autouse=True)
def no_ambient_oplog_switch(monkeypatch):
    """Keep SCRUB_NO_OPLOG from the developer's shell out of the tests."""
    monkeypatch.delenv("SCRUB_NO_OPLOG", raising=False)


@pytest.fixture
def windows_guard():
    """Guard using Windows path rules and the built-in Windows never-delete set."""
    return PathGuard(flavour=ntpath)


@pytest.fixture
def sandbox(tmp_path):
    """Resolved scratch directory, safe for the host default guard."""
    root = tmp_path.resolve() / "sandbox"
    root.mkdir()
    return root


@pytest.fixture
def sandbox_guard(sandbox):
    """Guard that protects only ``sandbox/protected``."""
    return PathGuard(NeverDeleteSet(subtrees=(str(sandbox / "protected"),)), flavour=posixpath)


@pytest.fixture
def whitelist(tmp_path):
    return Whitelist(path=tmp_path / "whitelist.txt", flavour=posixpath)


@pytest.fixture
def make_file():
    """Create a file with *size* bytes, making parent directories."""

    def _make(path, size: int = 16):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"x" * size)
        return path

    return _make
