"""Operator-maintained whitelist of paths that must never be cleaned.

Patterns are stored one per line in a plain UTF-8 text file. ``#`` lines
and blank lines are ignored. Environment variables are expanded at match
time, so the file stays portable between accounts.
"""

from __future__ import annotations

import fnmatch
import logging
import ntpath
import re
from pathlib import Path
from types import ModuleType
from typing import Iterable, Mapping

from scrub.core.guard import host_flavour
from scrub.core.locks import ReadWriteLock
from scrub.core.paths import canonical, expand_env, has_glob, is_nested_or_equal
from scrub.errors import PatternExists, PatternNotFound, PatternRejected

log = logging.getLogger(__name__)

WINDOWS_DEFAULT_PATTERNS: tuple[str, ...] = (
    "%USERPROFILE%\\.cargo\\bin\\*",
    "%LOCALAPPDATA%\\JetBrains\\*",
    "%APPDATA%\\Code\\User\\*",
)

POSIX_DEFAULT_PATTERNS: tuple[str, ...] = (
    "~/.cargo/bin/*",
    "~/.local/share/JetBrains/*",
    "~/.config/Code/User/*",
)

_FILE_HEADER = (
    "# scrub whitelist - one glob pattern per line\n"
    "# Lines starting with # are comments\n"
    "# Environment variables (e.g. %USERPROFILE%, $HOME) are expanded at runtime\n"
    "\n"
)

_DRIVE_RE = re.compile(r"^[A-Za-z]:(?P<rest>.*)$")
_ROOT_RESTS = ("", "\\", "/", "\\*", "/*")


def validate_pattern(pattern: str) -> None:
    """Reject patterns broad enough to silently disable most cleanup.

    Raises:
        PatternRejected: For empty, wildcard-only, drive-root or shallow
            patterns.
    """
    cleaned = pattern.strip()
    if not cleaned:
        raise PatternRejected(pattern, "pattern cannot be empty")

    if cleaned in ("*", "**"):
        raise PatternRejected(pattern, "pattern is too broad and would match everything")

    drive = _DRIVE_RE.match(cleaned)
    if (drive and drive.group("rest") in _ROOT_RESTS) or cleaned in _ROOT_RESTS:
        raise PatternRejected(pattern, "pattern is a drive root and too dangerous")

    if cleaned.count("\\") + cleaned.count("/") < 2:
        raise PatternRejected(pattern, "pattern has fewer than 2 path separators and is too broad")


def default_patterns(flavour: ModuleType | None = None) -> tuple[str, ...]:
    if (flavour or host_flavour()) is ntpath:
        return WINDOWS_DEFAULT_PATTERNS
    return POSIX_DEFAULT_PATTERNS


class Whitelist:
    """Thread-safe set of exclusion patterns.

    ``is_whitelisted`` and ``list`` take the shared lock; ``add``,
    ``remove`` and ``save`` take the exclusive one. One instance is meant
    to be shared by every scan worker.

    Patterns are expanded against *environ* at match time (the live
    process environment when None). Pass the same mapping the scanner
    expands target paths with so both sides agree.
    """

    def __init__(
        self,
        patterns: Iterable[str] = (),
        path: Path | str | None = None,
        flavour: ModuleType | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._patterns: list[str] = [p.strip() for p in patterns if p.strip()]
        self._path = Path(path) if path is not None else None
        self._flavour = flavour or host_flavour()
        self._environ = environ
        self._lock = ReadWriteLock()

    @property
    def path(self) -> Path | None:
        return self._path

    @classmethod
    def load(
        cls,
        path: Path | str,
        flavour: ModuleType | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> Whitelist:
        """Read patterns from *path*.

        A missing file is seeded with the default developer-tool patterns,
        which are written back immediately.

        Raises:
            OSError: If the file exists but cannot be read, or the seed
                cannot be written.
        """
        path = Path(path)
        if not path.exists():
            wl = cls(default_patterns(flavour), path=path, flavour=flavour, environ=environ)
            wl.save()
            log.info("Created default whitelist at %s", path)
            return wl

        patterns = []
        for line in path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            patterns.append(line)
        log.debug("Loaded %d whitelist patterns from %s", len(patterns), path)
        return cls(patterns, path=path, flavour=flavour, environ=environ)

    def save(self) -> None:
        """Persist the patterns to the backing file.

        Raises:
            OSError: On write failure.
            ValueError: If the whitelist has no backing file.
        """
        if self._path is None:
            raise ValueError("whitelist has no backing file")
        with self._lock.write():
            body = _FILE_HEADER + "".join(f"{p}\n" for p in self._patterns)
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(body, encoding="utf-8")

    def add(self, pattern: str) -> None:
        """Append *pattern* after checking it is not dangerously broad.

        Raises:
            PatternRejected: Pattern too broad.
            PatternExists: Case-insensitive duplicate.
        """
        pattern = pattern.strip()
        validate_pattern(pattern)
        with self._lock.write():
            if any(existing.lower() == pattern.lower() for existing in self._patterns):
                raise PatternExists(pattern)
            self._patterns.append(pattern)
        log.info("Whitelisted pattern: %s", pattern)

    def remove(self, pattern: str) -> None:
        """Remove *pattern* (case-insensitive).

        Raises:
            PatternNotFound: No such pattern.
        """
        pattern = pattern.strip()
        with self._lock.write():
            for i, existing in enumerate(self._patterns):
                if existing.lower() == pattern.lower():
                    del self._patterns[i]
                    break
            else:
                raise PatternNotFound(pattern)
        log.info("Removed whitelist pattern: %s", pattern)

    def list(self) -> list[str]:
        """Return a copy of the current patterns."""
        with self._lock.read():
            return list(self._patterns)

    def is_whitelisted(self, path: str) -> bool:
        """Return True if *path* matches any pattern. First match wins."""
        flavour = self._flavour
        cleaned = canonical(path, flavour)
        with self._lock.read():
            for pattern in self._patterns:
                expanded = canonical(expand_env(pattern, self._environ), flavour)
                if cleaned == expanded:
                    return True
                if fnmatch.fnmatchcase(cleaned, expanded):
                    return True
                if not has_glob(expanded) and is_nested_or_equal(cleaned, expanded, flavour):
                    return True
        return False

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._patterns)

    def __contains__(self, pattern: str) -> bool:
        with self._lock.read():
            return any(p.lower() == pattern.strip().lower() for p in self._patterns)
