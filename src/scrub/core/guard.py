"""Path guard: decides whether a path may ever be touched by a deletion.

Every destructive operation in scrub goes through :meth:`PathGuard.validate`.
The never-delete set is an explicit immutable value injected into the guard,
so tests can substitute a small set without going near real system paths.
"""

from __future__ import annotations

import ntpath
import os
import posixpath
import stat
import unicodedata
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from types import ModuleType

from scrub.core.paths import canonical, flavour_seps, is_nested_or_equal
from scrub.errors import BlockReason, DeletionBlocked

WINDOWS_NEVER_DELETE: tuple[str, ...] = (
    "C:\\Windows",
    "C:\\Windows\\System32",
    "C:\\Windows\\SysWOW64",
    "C:\\Windows\\WinSxS",
    "C:\\Windows\\assembly",
    "C:\\Windows\\System32\\config",
    "C:\\Boot",
    "C:\\bootmgr",
    "C:\\EFI",
    "C:\\Program Files",
    "C:\\Program Files (x86)",
    "C:\\Users",
    "C:\\ProgramData",
    "C:\\Recovery",
    "C:\\Windows\\Installer",
    "C:\\Windows\\servicing",
    "C:\\Windows\\Prefetch",
)

POSIX_NEVER_DELETE: tuple[str, ...] = (
    "/bin",
    "/boot",
    "/dev",
    "/efi",
    "/etc",
    "/lib",
    "/lib32",
    "/lib64",
    "/libx32",
    "/opt",
    "/proc",
    "/run",
    "/sbin",
    "/snap",
    "/srv",
    "/sys",
    "/usr",
    "/var/lib",
    "/var/mail",
    "/var/spool",
    "/Applications",
    "/Library",
    "/System",
)

# Filesystem and user-profile roots: the directory itself is untouchable,
# its contents (caches, temp) are not.
POSIX_EXACT_ROOTS: tuple[str, ...] = ("/", "/home", "/root", "/Users", "/var", "/var/log", "/tmp")

# Every direct child of these is a user profile.
POSIX_PROFILE_PARENTS: tuple[str, ...] = ("/home", "/Users")


@dataclass(frozen=True, slots=True)
class NeverDeleteSet:
    """Hardcoded protected paths.

    ``subtrees`` block the path and everything beneath it; ``exact``
    blocks only the path itself; ``profile_parents`` block each direct
    child (a user profile) but not what lies inside it.
    """

    subtrees: tuple[str, ...] = field(default_factory=tuple)
    exact: tuple[str, ...] = field(default_factory=tuple)
    profile_parents: tuple[str, ...] = field(default_factory=tuple)

    def __iter__(self):
        yield from self.subtrees
        yield from self.exact
        yield from self.profile_parents


def host_flavour() -> ModuleType:
    return ntpath if os.name == "nt" else posixpath


def default_never_delete(flavour: ModuleType | None = None) -> NeverDeleteSet:
    """Return the built-in never-delete set for *flavour* (host by default)."""
    flavour = flavour or host_flavour()
    if flavour is ntpath:
        return NeverDeleteSet(subtrees=WINDOWS_NEVER_DELETE)
    exact = list(POSIX_EXACT_ROOTS)
    home = str(Path.home())
    if home not in exact:
        exact.append(home)
    return NeverDeleteSet(subtrees=POSIX_NEVER_DELETE, exact=tuple(exact), profile_parents=POSIX_PROFILE_PARENTS)


def is_link(path: str) -> bool:
    """True for symlinks, and for junctions/reparse points on Windows."""
    try:
        st = os.lstat(path)
    except (OSError, ValueError):
        return False
    if stat.S_ISLNK(st.st_mode):
        return True
    return bool(getattr(st, "st_file_attributes", 0) & stat.FILE_ATTRIBUTE_REPARSE_POINT)


class PathGuard:
    """Pure validation of paths handed to destructive operations.

    Args:
        never_delete: Protected paths. Defaults to the built-in set for
            the flavour.
        flavour: ``ntpath`` or ``posixpath``; the host's by default.
    """

    def __init__(
        self,
        never_delete: NeverDeleteSet | None = None,
        flavour: ModuleType | None = None,
    ) -> None:
        self.flavour = flavour or host_flavour()
        self.never_delete = never_delete or default_never_delete(self.flavour)
        self._subtrees = tuple(canonical(p, self.flavour) for p in self.never_delete.subtrees)
        self._exact = frozenset(canonical(p, self.flavour) for p in self.never_delete.exact)
        self._profile_parents = frozenset(canonical(p, self.flavour) for p in self.never_delete.profile_parents)

    def is_safe(self, path: str) -> bool:
        """Return False if *path* is, or lies under, a never-delete path."""
        cleaned = canonical(path, self.flavour)
        if cleaned in self._exact:
            return False
        if self.flavour.dirname(cleaned) in self._profile_parents:
            return False
        return not any(is_nested_or_equal(cleaned, p, self.flavour) for p in self._subtrees)

    def is_drive_root(self, path: str) -> bool:
        """True for ``C:\\``, ``\\\\server\\share`` or ``/``."""
        cleaned = self.flavour.normpath(path)
        _drive, rest = self.flavour.splitdrive(cleaned)
        seps = "".join(flavour_seps(self.flavour))
        return rest.strip(seps) == ""

    def validate(self, path: str) -> None:
        """Check *path* before any file operation.

        Raises:
            DeletionBlocked: With the first failing reason.
        """
        if not path or not path.strip():
            raise DeletionBlocked(path, BlockReason.EMPTY)

        if not self.flavour.isabs(path):
            raise DeletionBlocked(path, BlockReason.NOT_ABSOLUTE)

        if self.is_drive_root(path):
            raise DeletionBlocked(path, BlockReason.DRIVE_ROOT)

        # Checked on the raw path: normpath would silently collapse "..".
        parts = path
        for sep in flavour_seps(self.flavour)[1:]:
            parts = parts.replace(sep, self.flavour.sep)
        if ".." in parts.split(self.flavour.sep):
            raise DeletionBlocked(path, BlockReason.TRAVERSAL)

        for ch in path:
            if ch != "\t" and unicodedata.category(ch) == "Cc":
                raise DeletionBlocked(path, BlockReason.CONTROL_CHAR, f"U+{ord(ch):04X}")

        if not self.is_safe(path):
            raise DeletionBlocked(path, BlockReason.PROTECTED)

        if is_link(path):
            try:
                resolved = os.path.realpath(path, strict=True)
            except (OSError, RuntimeError) as exc:
                raise DeletionBlocked(path, BlockReason.UNRESOLVABLE_LINK, str(exc)) from exc
            if not self.is_safe(resolved):
                raise DeletionBlocked(path, BlockReason.UNSAFE_LINK, resolved)


@lru_cache(maxsize=1)
def default_guard() -> PathGuard:
    """Process-wide guard for the host flavour and built-in never-delete set."""
    return PathGuard()


def validate_path(path: str) -> None:
    default_guard().validate(path)


def is_safe_path(path: str) -> bool:
    return default_guard().is_safe(path)
