"""Cleaning result dataclass."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class CleanResult:
    """Best-effort summary of a batch deletion.

    I/O failures, guard rejections and whitelist skips are counted
    separately so callers can tell "the OS refused" from "the tool refused".
    """

    bytes_freed: int = 0
    items_deleted: int = 0
    error_count: int = 0
    blocked_count: int = 0
    whitelisted_count: int = 0
    errors: list[str] = field(default_factory=list)
    last_error: Exception | None = None
    cancelled: bool = False
    dry_run: bool = False

    @property
    def skipped(self) -> int:
        """Items that were not deleted for any reason."""
        return self.error_count + self.blocked_count + self.whitelisted_count
