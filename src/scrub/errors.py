"""Exception hierarchy shared by the guard, whitelist, scanner and executor."""

from __future__ import annotations

from enum import Enum


class ScrubError(Exception):
    """Base class for all errors raised by scrub."""


class BlockReason(str, Enum):
    """Why the path guard refused a destructive operation."""

    EMPTY = "empty path"
    NOT_ABSOLUTE = "path must be absolute"
    DRIVE_ROOT = "path is a drive root"
    TRAVERSAL = "path contains traversal component (..)"
    CONTROL_CHAR = "path contains control character"
    PROTECTED = "path is protected and must never be deleted"
    UNSAFE_LINK = "symlink resolves to protected path"
    UNRESOLVABLE_LINK = "cannot resolve symlink"


class DeletionBlocked(ScrubError):
    """The path guard rejected the path. Policy, never worth retrying."""

    def __init__(self, path: str, reason: BlockReason, detail: str = "") -> None:
        self.path = path
        self.reason = reason
        self.detail = detail
        message = f"{reason.value}: {path!r}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class WhitelistedPath(ScrubError):
    """The path matches one of the operator's whitelist patterns."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"path is whitelisted: {path!r}")


class PatternError(ScrubError):
    """Base class for whitelist mutation failures."""

    def __init__(self, pattern: str, message: str) -> None:
        self.pattern = pattern
        super().__init__(message)


class PatternRejected(PatternError):
    """A whitelist pattern is too broad to accept."""

    def __init__(self, pattern: str, reason: str) -> None:
        self.reason = reason
        super().__init__(pattern, f"{reason}: {pattern!r}")


class PatternExists(PatternError):
    def __init__(self, pattern: str) -> None:
        super().__init__(pattern, f"pattern already exists: {pattern!r}")


class PatternNotFound(PatternError):
    def __init__(self, pattern: str) -> None:
        super().__init__(pattern, f"pattern not found: {pattern!r}")


class ScanPathError(ScrubError):
    """A single path could not be expanded or walked. Never fatal."""

    def __init__(self, path: str, cause: OSError) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"cannot scan {path!r}: {cause}")
