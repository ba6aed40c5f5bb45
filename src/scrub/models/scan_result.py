"""Scan result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable


@dataclass(frozen=True, slots=True)
class CleanItem:
    """Single file, or whole artifact directory, eligible for deletion."""

    path: str
    size_bytes: int
    category: str
    description: str = ""


@dataclass(frozen=True, slots=True)
class ScanResult:
    """All items discovered for one clean target.

    ``category`` holds the target *name* (e.g. ``"UserTemp"``); the
    high-level category lives on each item. Totals are derived from
    ``items`` on every access so they can never drift.
    """

    category: str
    items: tuple[CleanItem, ...] = field(default_factory=tuple)

    @property
    def total_size(self) -> int:
        return sum(item.size_bytes for item in self.items)

    @property
    def item_count(self) -> int:
        return len(self.items)


def items_to_result(name: str, items: Iterable[CleanItem]) -> ScanResult:
    """Wrap discovered items in a :class:`ScanResult` for target *name*."""
    return ScanResult(category=name, items=tuple(items))
