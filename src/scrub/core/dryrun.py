"""Dry-run ledger: what *would* be deleted, without deleting anything."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable

import click

from scrub.models.scan_result import ScanResult
from scrub.utils import format_size

log = logging.getLogger(__name__)

_RULE = "=" * 60


@dataclass(frozen=True, slots=True)
class DryRunItem:
    path: str
    size: int
    category: str


@dataclass(frozen=True, slots=True)
class CategoryTotal:
    count: int
    size: int


class DryRunLedger:
    """Thread-safe, append-only record of a preview session.

    Fill it from the same scan results the executor would consume so the
    preview is a faithful prediction of the real run.
    """

    def __init__(self) -> None:
        self._items: list[DryRunItem] = []
        self._lock = threading.Lock()

    @classmethod
    def from_results(cls, results: Iterable[ScanResult]) -> DryRunLedger:
        ledger = cls()
        for result in results:
            for item in result.items:
                ledger.add(item.path, item.size_bytes, item.category)
        return ledger

    def add(self, path: str, size: int, category: str) -> None:
        """Record a path that would be deleted."""
        with self._lock:
            self._items.append(DryRunItem(path=path, size=size, category=category))

    def items(self) -> list[DryRunItem]:
        with self._lock:
            return list(self._items)

    def total_size(self) -> int:
        with self._lock:
            return sum(item.size for item in self._items)

    def count(self) -> int:
        with self._lock:
            return len(self._items)

    def category_summary(self) -> dict[str, CategoryTotal]:
        """Per-category count and size, keyed in sorted category order."""
        return _summarize(self.items())

    def format_summary(self) -> str:
        """Render the console summary table."""
        items = self.items()
        if not items:
            return "  Nothing to clean.\n"

        lines = ["", "  DRY RUN - no files deleted", ""]
        for category, entry in _summarize(items).items():
            lines.append(f"  {category.upper():<20s}  {entry.count:5d} items  {format_size(entry.size):>10s}")
        lines.append("  " + "-" * 42)
        total = sum(item.size for item in items)
        lines.append(f"  {'TOTAL':<20s}  {len(items):5d} items  {format_size(total):>10s}")
        lines.append("")
        lines.append("  Run without --dry-run to execute cleanup.")
        return "\n".join(lines) + "\n"

    def print_summary(self) -> None:
        click.echo(self.format_summary(), nl=False)

    def render_report(self, now: datetime | None = None) -> str:
        """Build the plain-text export.

        Categories are sorted and paths sorted within each category, so two
        reports of the same filesystem state differ only in the timestamp.
        """
        items = self.items()
        stamp = (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
        out = [f"scrub Dry Run Report — {stamp}", _RULE, ""]

        grouped: dict[str, list[DryRunItem]] = {}
        for item in items:
            grouped.setdefault(item.category, []).append(item)

        for category, entry in _summarize(items).items():
            out.append(f"[{category.upper()}] — {entry.count} items, {format_size(entry.size)}")
            for item in sorted(grouped[category], key=lambda i: i.path):
                out.append(f"  {format_size(item.size):>10s}  {item.path}")
            out.append("")

        out.append(_RULE)
        out.append(f"Total: {len(items)} items, {format_size(sum(i.size for i in items))}")
        return "\n".join(out) + "\n"

    def export_to_file(self, path: Path | str, now: datetime | None = None) -> Path:
        """Write the report to *path*, creating parent directories.

        Raises:
            OSError: If the directory or file cannot be written.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.render_report(now), encoding="utf-8")
        log.info("Exported dry-run report (%d items) to %s", self.count(), path)
        return path


def _summarize(items: list[DryRunItem]) -> dict[str, CategoryTotal]:
    counts: dict[str, list[int]] = {}
    for item in items:
        entry = counts.setdefault(item.category, [0, 0])
        entry[0] += 1
        entry[1] += item.size
    return {cat: CategoryTotal(count=c, size=s) for cat, (c, s) in sorted(counts.items())}
